"""Best-effort and all-or-nothing file operations under the upload directory."""

import os
import secrets
from pathlib import Path
from typing import List, Mapping, Optional

from .exceptions import StorageError
from .logging_config import get_logger

logger = get_logger("files")


def remove_if_exists(path: str) -> bool:
    """
    Delete a file, treating an already-missing file as success.

    Returns:
        True if this call removed the file
    """
    try:
        os.remove(path)
        return True
    except FileNotFoundError:
        return False


def rename_if_exists(source: str, target: str) -> bool:
    """
    Rename source to target when source still exists.

    A source that vanished in the meantime is a no-op, not an error.

    Returns:
        True if this call moved the file
    """
    try:
        os.replace(source, target)
        return True
    except FileNotFoundError:
        return False


def resolve_within(upload_dir: Path, filename: Optional[str]) -> Optional[Path]:
    """
    Resolve a stored filename under upload_dir, refusing escapes.

    Returns:
        The absolute path, or None for blank names and traversal attempts
    """
    if not filename:
        return None
    root = upload_dir.resolve()
    candidate = (root / filename).resolve()
    if candidate.parent != root:
        logger.warning(f"[SECURITY] Path traversal attempt detected - filename={filename!r}")
        return None
    return candidate


def write_all_or_nothing(
    outputs: Mapping[str, bytes], rollback_committed: bool = True
) -> None:
    """
    Write every output or leave none of them servable.

    Each payload goes to a private ``.part`` sibling first; only when all
    parts are on disk are they renamed over their targets. On failure the
    parts are removed, and so are targets already renamed by this call
    unless rollback_committed is False (overwrites of existing files).

    Raises:
        StorageError: If any write or rename fails
    """
    token = secrets.token_hex(4)
    parts = {target: f"{target}.{token}.part" for target in outputs}
    committed: List[str] = []
    try:
        for target, payload in outputs.items():
            with open(parts[target], "wb") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
        for target, part in parts.items():
            os.replace(part, target)
            committed.append(target)
    except OSError as exc:
        for part in parts.values():
            remove_if_exists(part)
        if rollback_committed:
            for target in committed:
                remove_if_exists(target)
        logger.error(f"[FILES] Failed to write derivatives - targets={list(outputs)}, error={exc}")
        raise StorageError(f"Failed to write derivatives: {exc}") from exc
