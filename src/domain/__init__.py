"""Domain layer: errors and schemas."""

from .errors import (
    AuthError,
    ErrorCodes,
    MalformedOutputError,
    NotFoundError,
    PipelineError,
    StoreError,
    UpstreamError,
    ValidationError,
)
from .schemas import (
    CallerIdentity,
    Document,
    DraftingParams,
    DraftRecord,
    ExtractionRecord,
    Jurisdiction,
    Matter,
    MatterStatus,
)

__all__ = [
    "PipelineError",
    "ValidationError",
    "AuthError",
    "NotFoundError",
    "UpstreamError",
    "MalformedOutputError",
    "StoreError",
    "ErrorCodes",
    "CallerIdentity",
    "Document",
    "DraftingParams",
    "DraftRecord",
    "ExtractionRecord",
    "Jurisdiction",
    "Matter",
    "MatterStatus",
]
