"""Narration audio uploaders.

Responsibilities:
- Persist synthesized narration bytes and return a public, non-blank URL.
- Keep object paths deterministic per `(route_id, persona, stop_id)` so reruns overwrite.

Key types:
- `NarrationAudioUploader`: protocol consumed by the generation orchestrator.
- `BucketAudioUploader`: object-storage REST upload with inline fallback.
- `LocalDirectoryUploader`: filesystem-backed uploader for offline runs.
"""

from __future__ import annotations

import base64
from pathlib import Path
from typing import Protocol
from urllib.parse import quote

import requests

from ..errors import UploadError
from ..llm.retry import with_retry
from ..parsing import normalize_optional_text


def audio_object_path(route_id: str, persona: str, stop_id: str) -> str:
    """Return the storage object path for one narration clip."""

    return f"mixes/{route_id}/{persona}/{stop_id}.mp3"


def inline_audio_url(audio_bytes: bytes) -> str:
    """Encode narration bytes as an embedded `data:` URL."""

    encoded = base64.b64encode(audio_bytes).decode("ascii")
    return f"data:audio/mpeg;base64,{encoded}"


class _TransientUploadError(UploadError):
    """Upload failure worth retrying: timeouts, transport errors, 429, and 5xx."""


class NarrationAudioUploader(Protocol):
    """Protocol for narration audio persistence backends."""

    def upload(self, audio_bytes: bytes, *, route_id: str, persona: str, stop_id: str) -> str:
        """Store audio bytes and return a public URL, or raise `UploadError`."""


class BucketAudioUploader:
    """Upload narration clips to an object-storage bucket over REST.

    When storage is not configured, or the upload fails, clips are returned as
    inline `data:` URLs unless `require_storage_url` is set.
    """

    def __init__(
        self,
        *,
        storage_url: str | None,
        service_key: str | None,
        bucket: str = "narrations",
        require_storage_url: bool = False,
        timeout_seconds: float = 60.0,
        max_attempts: int = 3,
        base_delay_seconds: float = 0.25,
    ) -> None:
        """Initialize bucket coordinates and fallback policy."""

        normalized_url = normalize_optional_text(storage_url)
        self.storage_url = normalized_url.rstrip("/") if normalized_url else None
        self.service_key = normalize_optional_text(service_key)
        self.bucket = normalize_optional_text(bucket) or "narrations"
        self.require_storage_url = require_storage_url
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max(1, int(max_attempts))
        self.base_delay_seconds = base_delay_seconds

    @property
    def is_configured(self) -> bool:
        """Return whether bucket credentials are present."""

        return self.storage_url is not None and self.service_key is not None

    def public_url(self, object_path: str) -> str:
        """Return the public URL for a stored object path."""

        return (
            f"{self.storage_url}/storage/v1/object/public/"
            f"{quote(self.bucket)}/{quote(object_path)}"
        )

    def upload(self, audio_bytes: bytes, *, route_id: str, persona: str, stop_id: str) -> str:
        """Upload one clip with upsert semantics and return its public URL."""

        if not audio_bytes:
            raise UploadError("Refusing to upload empty narration audio.")
        if not self.is_configured:
            if self.require_storage_url:
                raise UploadError(
                    "Audio storage is not configured; set `storage_url` and `storage_service_key`."
                )
            return inline_audio_url(audio_bytes)

        object_path = audio_object_path(route_id, persona, stop_id)
        try:
            with_retry(
                lambda: self._put_object(object_path, audio_bytes),
                max_attempts=self.max_attempts,
                base_delay_seconds=self.base_delay_seconds,
                should_retry=lambda exc: isinstance(exc, _TransientUploadError),
            )
        except UploadError:
            if self.require_storage_url:
                raise
            return inline_audio_url(audio_bytes)
        return self.public_url(object_path)

    def _put_object(self, object_path: str, audio_bytes: bytes) -> None:
        endpoint = f"{self.storage_url}/storage/v1/object/{quote(self.bucket)}/{quote(object_path)}"
        try:
            response = requests.post(
                endpoint,
                data=audio_bytes,
                headers={
                    "Authorization": f"Bearer {self.service_key}",
                    "apikey": str(self.service_key),
                    "Content-Type": "audio/mpeg",
                    "x-upsert": "true",
                },
                timeout=self.timeout_seconds,
            )
        except requests.Timeout as exc:
            raise _TransientUploadError(f"Audio upload timed out for `{object_path}`.") from exc
        except requests.RequestException as exc:
            raise _TransientUploadError(f"Audio upload transport failure for `{object_path}`: {exc}") from exc

        if response.status_code >= 400:
            error_type = (
                _TransientUploadError
                if response.status_code == 429 or response.status_code >= 500
                else UploadError
            )
            body = (response.text or "").strip()[:180]
            raise error_type(
                f"Audio upload failed for `{object_path}` with HTTP {response.status_code}"
                + (f": {body}" if body else ".")
            )


class LocalDirectoryUploader:
    """Filesystem-backed uploader for offline runs and tests."""

    def __init__(self, root: Path, public_base_url: str | None = None) -> None:
        """Initialize the output root and optional public URL prefix."""

        self.root = root
        base = normalize_optional_text(public_base_url)
        self.public_base_url = base.rstrip("/") if base else None

    def upload(self, audio_bytes: bytes, *, route_id: str, persona: str, stop_id: str) -> str:
        """Write one clip below the root and return its URL."""

        if not audio_bytes:
            raise UploadError("Refusing to store empty narration audio.")
        object_path = audio_object_path(route_id, persona, stop_id)
        path = self.root / object_path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(audio_bytes)
        except OSError as exc:
            raise UploadError(f"Failed to write narration audio `{path}`: {exc}") from exc
        if self.public_base_url is not None:
            return f"{self.public_base_url}/{object_path}"
        return path.resolve().as_uri()
