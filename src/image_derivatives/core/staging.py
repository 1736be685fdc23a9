"""Collision-free staging of validated uploads."""

import os
import secrets
from datetime import datetime
from pathlib import Path
from typing import Optional

from .config import StorageConfig
from .error_handling import with_error_handling
from .files import remove_if_exists
from .logging_config import get_logger
from .models import ProcessingRequest, Role, StagedFile, ValidatedUpload, utc_now

STAGED_SUFFIX = ".tmp"
ORIGINAL_SUFFIX = ".original"
THUMBNAIL_MARKER = "_thumb"


def generate_basename(
    role: Role,
    owner_id: str,
    index: Optional[int] = None,
    now: Optional[datetime] = None,
) -> str:
    """
    Build a unique basename: ``{prefix}_{owner}_{timestamp}[_img{index}]_{random}``.

    The millisecond timestamp plus a random suffix keeps concurrent uploads
    for the same owner from ever sharing a path.

    Args:
        role: Image role, selects the filename prefix
        owner_id: Owning entity identifier
        index: Optional carousel position
        now: Clock override for tests

    Returns:
        The basename without any extension
    """
    now = now or utc_now()
    timestamp = now.strftime("%Y%m%d_%H%M%S") + f"{now.microsecond // 1000:03d}"
    parts = [role.prefix, safe_owner_id(owner_id), timestamp]
    if index is not None:
        parts.append(f"img{index}")
    parts.append(secrets.token_hex(4))
    return "_".join(parts)


def safe_owner_id(owner_id: str) -> str:
    """Reduce an owner id to characters that are safe inside a filename."""
    cleaned = "".join(ch if ch.isalnum() or ch == "-" else "-" for ch in str(owner_id))
    return cleaned.strip("-") or "owner"


class StagingArea:
    """Writes validated bytes to the upload directory and derives target paths."""

    def __init__(self, config: StorageConfig):
        self._config = config
        self._logger = get_logger("staging")

    @property
    def upload_dir(self) -> Path:
        return self._config.resolved_upload_dir

    def ensure_upload_dir(self) -> Path:
        upload_dir = self.upload_dir
        upload_dir.mkdir(parents=True, exist_ok=True)
        return upload_dir

    def target_paths(self, basename: str, role: Role) -> StagedFile:
        """Compute staged and derivative paths for a basename (no I/O)."""
        upload_dir = self.upload_dir
        ext = self._config.output_format
        thumbnail_path = None
        if role.has_thumbnail:
            thumbnail_path = str(upload_dir / f"{basename}{THUMBNAIL_MARKER}.{ext}")
        return StagedFile(
            basename=basename,
            staged_path=str(upload_dir / f"{basename}{STAGED_SUFFIX}"),
            optimized_path=str(upload_dir / f"{basename}.{ext}"),
            thumbnail_path=thumbnail_path,
        )

    @with_error_handling
    def stage(
        self,
        upload: ValidatedUpload,
        role: Role,
        owner_id: str,
        index: Optional[int] = None,
    ) -> StagedFile:
        """
        Persist validated bytes under a fresh basename.

        Raises:
            StorageError: If the staging file cannot be written
        """
        self.ensure_upload_dir()
        staged = self.target_paths(generate_basename(role, owner_id, index), role)

        # "xb" refuses to clobber an existing file
        with open(staged.staged_path, "xb") as handle:
            handle.write(upload.data)

        self._logger.info(
            f"[STAGING] Upload staged - owner_id={owner_id}, role={role.value}, "
            f"file={os.path.basename(staged.staged_path)}, size={upload.size}"
        )
        return staged

    def build_request(
        self, staged: StagedFile, asset_id: str, owner_id: str, role: Role
    ) -> ProcessingRequest:
        """Build the message the derivative worker consumes."""
        return ProcessingRequest(
            asset_id=asset_id,
            owner_id=owner_id,
            role=role,
            staged_path=staged.staged_path,
            optimized_path=staged.optimized_path,
            thumbnail_path=staged.thumbnail_path,
        )

    def discard(self, staged: StagedFile) -> None:
        """Remove a staged file that will never be processed."""
        try:
            remove_if_exists(staged.staged_path)
        except OSError as exc:
            self._logger.warning(
                f"[STAGING] Failed to discard staged file - file={staged.staged_path}, error={exc}"
            )
