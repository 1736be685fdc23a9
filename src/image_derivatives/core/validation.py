"""Content-sniffing validation of uploaded image bytes."""

from typing import Optional

from .config import StorageConfig
from .exceptions import UploadValidationError, ValidationReason
from .logging_config import get_logger
from .models import UploadRequest, ValidatedUpload

JPEG_SIGNATURE = b"\xff\xd8\xff"
PNG_SIGNATURE = b"\x89PNG"
RIFF_SIGNATURE = b"RIFF"
WEBP_SIGNATURE = b"WEBP"


def detect_format(data: bytes) -> Optional[str]:
    """
    Identify the image format from its leading magic bytes.

    Args:
        data: Raw file contents

    Returns:
        "jpeg", "png" or "webp", or None when no known signature matches
    """
    if data.startswith(JPEG_SIGNATURE):
        return "jpeg"
    if data.startswith(PNG_SIGNATURE):
        return "png"
    if data.startswith(RIFF_SIGNATURE) and data[8:12] == WEBP_SIGNATURE:
        return "webp"
    return None


def file_extension(filename: str) -> str:
    if "." not in filename:
        return ""
    return filename.rsplit(".", 1)[-1].strip().lower()


def has_path_traversal(filename: str) -> bool:
    return ".." in filename or "/" in filename or "\\" in filename or "\x00" in filename


def _reject(reason: ValidationReason, message: str, filename: str) -> UploadValidationError:
    get_logger("validation").warning(
        f"[VALIDATION] {message} - reason={reason.value}, filename={filename!r}"
    )
    return UploadValidationError(reason, message)


def validate_upload(
    data: bytes, filename: str, content_type: str, config: StorageConfig
) -> ValidatedUpload:
    """
    Verify that an upload is a genuine, size-compliant image of an allowed format.

    Checks run in order and stop at the first failure: non-empty buffer,
    no path traversal in the filename, size limit, allowed extension,
    allowed declared content type, then the magic-byte signature. The
    signature is authoritative: a correct extension and MIME type do not
    rescue bytes that are not a known image format. Nothing is written
    anywhere, whatever the outcome.

    Args:
        data: Raw uploaded bytes
        filename: Client-declared filename
        content_type: Client-declared MIME type
        config: Storage configuration with size and allow-lists

    Returns:
        The validated upload with its detected format

    Raises:
        UploadValidationError: With the specific ValidationReason
    """
    filename = filename or ""

    if not data:
        raise _reject(
            ValidationReason.EMPTY_FILE,
            "File is empty. Please select a valid image file.",
            filename,
        )

    if has_path_traversal(filename):
        raise _reject(
            ValidationReason.PATH_TRAVERSAL,
            "Invalid file name: path traversal detected",
            filename,
        )

    if len(data) > config.max_file_size:
        raise _reject(
            ValidationReason.FILE_TOO_LARGE,
            f"File size {len(data)} exceeds maximum allowed size of {config.max_file_size} bytes",
            filename,
        )

    extension = file_extension(filename)
    if extension not in config.allowed_extensions:
        raise _reject(
            ValidationReason.EXTENSION_NOT_ALLOWED,
            f"File extension {extension!r} is not allowed. "
            f"Allowed: {', '.join(config.allowed_extensions)}",
            filename,
        )

    declared_type = (content_type or "").split(";", 1)[0].strip().lower()
    if declared_type not in config.allowed_mime_types:
        raise _reject(
            ValidationReason.CONTENT_TYPE_NOT_ALLOWED,
            f"Content type {declared_type!r} is not allowed. "
            f"Allowed: {', '.join(config.allowed_mime_types)}",
            filename,
        )

    detected = detect_format(data)
    if detected is None:
        raise _reject(
            ValidationReason.SIGNATURE_MISMATCH,
            "File content does not match a supported image format",
            filename,
        )

    get_logger("validation").debug(
        f"[VALIDATION] Upload accepted - filename={filename!r}, format={detected}, size={len(data)}"
    )
    return ValidatedUpload(
        data=data,
        filename=filename,
        extension=extension,
        detected_format=detected,
        content_type=declared_type,
    )


def validate_request(request: UploadRequest, config: StorageConfig) -> ValidatedUpload:
    """Validate an UploadRequest; see validate_upload."""
    return validate_upload(request.data, request.filename, request.content_type, config)
