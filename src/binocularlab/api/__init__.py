from binocularlab.api.narrative import (
    NarrativeClient,
    NarrativeError,
    NarrativeRequest,
    NarrativeResult,
    analyze,
    gemini_backend,
)
from binocularlab.api.session import BinocularSession

__all__ = [
    "BinocularSession",
    "NarrativeClient",
    "NarrativeError",
    "NarrativeRequest",
    "NarrativeResult",
    "analyze",
    "gemini_backend",
]
