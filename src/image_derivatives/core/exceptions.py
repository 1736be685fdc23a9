"""Custom exceptions for the image derivative pipeline."""

from __future__ import annotations

from enum import Enum


class DerivativePipelineError(Exception):
    """Base exception for all image derivative pipeline errors."""


class ConfigurationError(DerivativePipelineError):
    """Error raised for invalid configuration options."""


class ValidationReason(str, Enum):
    """Why an upload was rejected by the validation gate."""

    EMPTY_FILE = "empty_file"
    PATH_TRAVERSAL = "path_traversal"
    FILE_TOO_LARGE = "file_too_large"
    EXTENSION_NOT_ALLOWED = "extension_not_allowed"
    CONTENT_TYPE_NOT_ALLOWED = "content_type_not_allowed"
    SIGNATURE_MISMATCH = "signature_mismatch"


class UploadValidationError(DerivativePipelineError):
    """Error raised when uploaded bytes fail validation."""

    def __init__(self, reason: ValidationReason, message: str):
        super().__init__(message)
        self.reason = reason


class OwnerNotFoundError(DerivativePipelineError):
    """Error raised when the owning entity does not exist."""


class AssetNotFoundError(DerivativePipelineError):
    """Error raised when an image asset id is unknown."""


class ImageProcessingError(DerivativePipelineError):
    """Error raised when decoding or transforming a single image fails."""


class ProcessingTimeoutError(ImageProcessingError):
    """Error raised when decode/transform exceeds the configured timeout."""


class StorageError(DerivativePipelineError):
    """Error raised for file system failures (disk full, permission denied)."""
