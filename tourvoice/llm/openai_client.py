"""OpenAI REST clients for narration scripts and speech.

Both clients share `OpenAIRestClient._post`, which paces each endpoint,
retries transient failures, and turns every failure into an
`OpenAIProviderError` carrying a `failure_kind` the orchestrator can log.
"""

from __future__ import annotations

import json
import re
from typing import Any

import requests

from .rate_limiter import RateLimiter
from .retry import with_retry

TRANSIENT_FAILURE_KINDS = frozenset({"timeout", "transport", "rate_limited", "server_error"})

_MAX_DETAIL_CHARS = 180
_SECRET_PATTERNS = (
    (re.compile(r"\bsk-[A-Za-z0-9_-]{8,}\b"), "[redacted-key]"),
    (re.compile(r"(?i)bearer\s+[A-Za-z0-9._-]{12,}"), "Bearer [redacted-token]"),
)
_HEADLINES = {
    "invalid_api_key": "OpenAI authentication failed",
    "insufficient_quota": "OpenAI quota is insufficient for this request",
    "invalid_model": "OpenAI rejected the selected model",
    "timeout": "OpenAI request timed out",
    "rate_limited": "OpenAI rate limit reached",
    "server_error": "OpenAI service error",
}


class OpenAIProviderError(RuntimeError):
    """Raised when an OpenAI request fails or returns unusable output."""

    def __init__(
        self,
        message: str,
        *,
        failure_kind: str = "unknown",
        status_code: int | None = None,
        provider_code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.failure_kind = failure_kind
        self.status_code = status_code
        self.provider_code = provider_code

    @property
    def is_transient(self) -> bool:
        """Return whether another attempt may succeed."""

        return self.failure_kind in TRANSIENT_FAILURE_KINDS


def redact_secrets(text: str) -> str:
    """Mask API keys and bearer tokens echoed back in provider error bodies."""

    for pattern, replacement in _SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def _clip(text: str) -> str:
    compact = " ".join(text.split())
    if len(compact) <= _MAX_DETAIL_CHARS:
        return compact
    return compact[: _MAX_DETAIL_CHARS - 3] + "..."


def _error_details(body: bytes) -> tuple[str, str | None]:
    """Return the redacted provider message and error code from an error body."""

    text = body.decode("utf-8", errors="replace").strip()
    if not text:
        return "", None

    message, code = text, None
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        payload = None
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        if isinstance(error.get("message"), str) and error["message"].strip():
            message = error["message"]
        if isinstance(error.get("code"), str) and error["code"].strip():
            code = error["code"].strip()
    return _clip(redact_secrets(message)), code


def classify_http_failure(status_code: int, message: str, code: str | None) -> str:
    """Map an HTTP failure onto a `failure_kind`."""

    text = message.lower()
    code = (code or "").lower()
    if status_code == 401 or code == "invalid_api_key" or "api key" in text:
        return "invalid_api_key"
    if code == "insufficient_quota" or (status_code == 429 and "quota" in text):
        return "insufficient_quota"
    if code == "model_not_found" or (status_code in {400, 404} and "model" in text):
        return "invalid_model"
    if status_code in {408, 504}:
        return "timeout"
    if status_code == 429:
        return "rate_limited"
    if status_code >= 500:
        return "server_error"
    return "http_error"


def provider_error_for_status(status_code: int, body: bytes) -> OpenAIProviderError:
    """Build the provider error raised for a non-2xx response."""

    message, code = _error_details(body)
    kind = classify_http_failure(status_code, message, code)
    headline = _HEADLINES.get(kind, "OpenAI request failed")
    detail = f"{headline} (HTTP {status_code})" + (f": {message}" if message else ".")
    return OpenAIProviderError(
        detail, failure_kind=kind, status_code=status_code, provider_code=code
    )


class OpenAIRestClient:
    """Shared transport for OpenAI JSON endpoints."""

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str = "https://api.openai.com/v1",
        timeout_seconds: float = 60.0,
        rate_limiter: RateLimiter | None = None,
        max_attempts: int = 3,
        base_delay_seconds: float = 0.25,
    ) -> None:
        self.api_key = (api_key or "").strip()
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.rate_limiter = rate_limiter or RateLimiter()
        self.max_attempts = max(1, int(max_attempts))
        self.base_delay_seconds = base_delay_seconds
        self.retry_attempt_count = 0

    def _post(self, endpoint_path: str, payload: dict[str, Any]) -> bytes:
        """POST `payload` and return the raw response body.

        Raises:
            OpenAIProviderError: If no key is set or every attempt failed.
        """

        if not self.api_key:
            raise OpenAIProviderError(
                "Missing OpenAI API key. Set `OPENAI_API_KEY`, store one with "
                "`tourvoice credentials --set-api-key`, or pass `--api-key`.",
                failure_kind="invalid_api_key",
            )

        return with_retry(
            lambda: self._send(endpoint_path, payload),
            max_attempts=self.max_attempts,
            base_delay_seconds=self.base_delay_seconds,
            should_retry=lambda exc: isinstance(exc, OpenAIProviderError) and exc.is_transient,
            on_retry=self._count_retry,
        )

    def _send(self, endpoint_path: str, payload: dict[str, Any]) -> bytes:
        self.rate_limiter.acquire(f"openai:{endpoint_path}")
        try:
            response = requests.post(
                f"{self.base_url}{endpoint_path}",
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json=payload,
                timeout=self.timeout_seconds,
            )
        except requests.Timeout as exc:
            raise OpenAIProviderError("OpenAI request timed out.", failure_kind="timeout") from exc
        except requests.RequestException as exc:
            raise OpenAIProviderError(
                f"OpenAI request transport error: {_clip(redact_secrets(str(exc)))}",
                failure_kind="transport",
            ) from exc

        body = bytes(response.content or b"")
        if response.status_code >= 400:
            raise provider_error_for_status(response.status_code, body)
        return body

    def _count_retry(self, _retry_number: int, _exc: Exception) -> None:
        self.retry_attempt_count += 1


class OpenAIChatClient(OpenAIRestClient):
    """Chat-completions client returning the first assistant message."""

    def chat_completion_text(
        self,
        *,
        model: str,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.0,
        max_tokens: int | None = None,
    ) -> str:
        """Return the stripped text of the first choice."""

        payload: dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
        }
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        return _first_message_text(self._post("/chat/completions", payload))


def _first_message_text(body: bytes) -> str:
    try:
        payload = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise OpenAIProviderError("OpenAI returned an invalid JSON payload.") from exc

    choices = payload.get("choices") if isinstance(payload, dict) else None
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        raise OpenAIProviderError("OpenAI response has no usable `choices` entry.")
    message = choices[0].get("message")
    content = message.get("content") if isinstance(message, dict) else None

    # Content is either a string or a list of typed parts.
    if isinstance(content, list):
        content = "".join(
            part["text"]
            for part in content
            if isinstance(part, dict) and part.get("type") == "text" and isinstance(part.get("text"), str)
        )
    text = content.strip() if isinstance(content, str) else ""
    if not text:
        raise OpenAIProviderError("OpenAI response message content is empty.")
    return text


class OpenAISpeechClient(OpenAIRestClient):
    """Speech client returning encoded narration audio."""

    def synthesize_speech(
        self,
        *,
        model: str,
        voice: str,
        text: str,
        response_format: str = "mp3",
    ) -> bytes:
        """Return audio bytes from `/audio/speech`; an empty body is a failure."""

        audio = self._post(
            "/audio/speech",
            {"model": model, "voice": voice, "input": text, "response_format": response_format},
        )
        if not audio:
            raise OpenAIProviderError("OpenAI speech response is empty.", failure_kind="empty_response")
        return audio
