"""Top-level package for Tourvoice.

This package generates and reuses persona narration (script plus synthesized
audio) for tour stops, deduplicated across tours through canonical stops. The
main entry point is `GenerationJobService`.
"""

from .generation.jobs import GenerationJobService

__all__ = ["GenerationJobService", "__version__"]

__version__ = "0.1.0"
