"""Process-wide storage configuration loaded from the environment."""

from pathlib import Path
from typing import Any, Tuple

from PIL import Image
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError

OUTPUT_FORMATS = ("webp", "png", "jpeg")
_FORMAT_ALIASES = {"jpg": "jpeg"}


class StorageConfig(BaseSettings):
    """
    Settings for staging, transforming and retaining uploaded images.

    Every field can be set through an ``IMAGE_STORAGE_`` prefixed
    environment variable, e.g. ``IMAGE_STORAGE_MAX_WIDTH=800``.
    Instances are immutable; use ``with_overrides`` to derive a new one.
    """

    upload_dir: Path = Path("uploads/images")
    base_path: str = "/uploads/images"
    max_file_size: int = Field(default=10 * 1024 * 1024, ge=1)
    max_width: int = Field(default=1200, ge=1)
    thumbnail_size: int = Field(default=300, ge=1)
    profile_max_size: int = Field(default=500, ge=1)
    optimize_quality: int = Field(default=85, ge=1, le=100)
    thumbnail_quality: int = Field(default=80, ge=1, le=100)
    keep_originals: bool = False
    allowed_extensions: Tuple[str, ...] = ("jpg", "jpeg", "png", "webp")
    allowed_mime_types: Tuple[str, ...] = ("image/jpeg", "image/png", "image/webp")
    output_format: str = "webp"
    processing_timeout: float = Field(default=30.0, gt=0)
    worker_concurrency: int = Field(default=2, ge=1)

    model_config = SettingsConfigDict(
        env_prefix="IMAGE_STORAGE_", frozen=True, extra="ignore"
    )

    @field_validator("allowed_extensions", mode="after")
    @classmethod
    def _normalize_extensions(cls, values: Tuple[str, ...]) -> Tuple[str, ...]:
        return tuple(value.strip().lower().lstrip(".") for value in values)

    @field_validator("allowed_mime_types", mode="after")
    @classmethod
    def _normalize_mime_types(cls, values: Tuple[str, ...]) -> Tuple[str, ...]:
        return tuple(value.strip().lower() for value in values)

    @field_validator("output_format", mode="after")
    @classmethod
    def _check_output_format(cls, value: str) -> str:
        fmt = value.strip().lower().lstrip(".")
        fmt = _FORMAT_ALIASES.get(fmt, fmt)
        if fmt not in OUTPUT_FORMATS:
            raise ValueError(
                f"output_format must be one of {OUTPUT_FORMATS}, got {value!r}"
            )
        Image.init()
        if fmt.upper() not in Image.SAVE:
            raise ValueError(f"Pillow cannot write {fmt} in this installation")
        return fmt

    @field_validator("base_path", mode="after")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/") or "/"

    @classmethod
    def load(cls, **overrides: Any) -> "StorageConfig":
        """Build a config from the environment, raising ConfigurationError on bad values."""
        try:
            return cls(**overrides)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid storage configuration: {exc}") from exc

    def with_overrides(self, **changes: Any) -> "StorageConfig":
        """Return a new validated config with the given fields replaced."""
        values = self.model_dump()
        values.update(changes)
        try:
            return StorageConfig(**values)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid storage configuration: {exc}") from exc

    @property
    def resolved_upload_dir(self) -> Path:
        """Absolute, normalized upload directory."""
        return self.upload_dir.expanduser().resolve()

    def public_url(self, filename: str) -> str:
        """Public URL for a file stored directly under the upload directory."""
        if self.base_path == "/":
            return f"/{filename}"
        return f"{self.base_path}/{filename}"
