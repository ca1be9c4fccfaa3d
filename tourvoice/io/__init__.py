"""I/O boundaries for persisted tour state and narration audio."""

from .store import RelationalStore, SqliteStore
from .uploader import (
    BucketAudioUploader,
    LocalDirectoryUploader,
    NarrationAudioUploader,
    audio_object_path,
    inline_audio_url,
)

__all__ = [
    "BucketAudioUploader",
    "LocalDirectoryUploader",
    "NarrationAudioUploader",
    "RelationalStore",
    "SqliteStore",
    "audio_object_path",
    "inline_audio_url",
]
