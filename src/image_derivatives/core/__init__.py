"""Core utilities and shared components for the image derivative pipeline."""

from .logging_config import get_logger, setup_logger
from .config import StorageConfig
from .exceptions import (
    AssetNotFoundError,
    ConfigurationError,
    DerivativePipelineError,
    ImageProcessingError,
    OwnerNotFoundError,
    ProcessingTimeoutError,
    StorageError,
    UploadValidationError,
    ValidationReason,
)
from .models import (
    AssetStatus,
    AsyncTicket,
    BatchSummary,
    DerivativeUrls,
    ExecutionMode,
    ImageAsset,
    ProcessingRequest,
    ProcessingResult,
    Role,
    SyncResult,
    UploadRequest,
)

__all__ = [
    "StorageConfig",
    "Role",
    "AssetStatus",
    "ExecutionMode",
    "UploadRequest",
    "ProcessingRequest",
    "ProcessingResult",
    "ImageAsset",
    "DerivativeUrls",
    "SyncResult",
    "AsyncTicket",
    "BatchSummary",
    "setup_logger",
    "get_logger",
    "DerivativePipelineError",
    "ConfigurationError",
    "UploadValidationError",
    "ValidationReason",
    "OwnerNotFoundError",
    "AssetNotFoundError",
    "ImageProcessingError",
    "ProcessingTimeoutError",
    "StorageError",
]
