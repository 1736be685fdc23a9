"""Keep or discard the staged original once derivatives exist."""

import os
from typing import Optional

from .config import StorageConfig
from .files import remove_if_exists, rename_if_exists
from .logging_config import get_logger
from .protocols import LoggerProtocol
from .staging import ORIGINAL_SUFFIX, STAGED_SUFFIX


def original_path_for(staged_path: str) -> str:
    """Map ``{basename}.tmp`` to ``{basename}.original`` in the same directory."""
    directory, name = os.path.split(staged_path)
    if name.endswith(STAGED_SUFFIX):
        name = name[: -len(STAGED_SUFFIX)]
    return os.path.join(directory, name + ORIGINAL_SUFFIX)


class OriginalRetentionManager:
    """Applies the keep-originals policy to a staged file."""

    def __init__(self, config: StorageConfig, logger: Optional[LoggerProtocol] = None):
        self._config = config
        self._logger = logger or get_logger("retention")

    def finalize(self, staged_path: str) -> bool:
        """
        Rename the staged file to ``.original`` or delete it.

        Both branches are idempotent: a staged file that is already gone
        (renamed or removed by someone else) is not an error.

        Args:
            staged_path: Path of the staged upload

        Returns:
            True when an original is retained on disk afterwards
        """
        if self._config.keep_originals:
            original_path = original_path_for(staged_path)
            moved = rename_if_exists(staged_path, original_path)
            retained = moved or os.path.exists(original_path)
            self._logger.debug(
                f"[RETENTION] Original preserved - file={os.path.basename(original_path)}, "
                f"moved={moved}, retained={retained}"
            )
            return retained

        removed = remove_if_exists(staged_path)
        self._logger.debug(
            f"[RETENTION] Staged file deleted - file={os.path.basename(staged_path)}, removed={removed}"
        )
        return False

    def discard(self, staged_path: str) -> None:
        """Delete a staged file after a failed request."""
        if remove_if_exists(staged_path):
            self._logger.debug(
                f"[RETENTION] Staged file discarded - file={os.path.basename(staged_path)}"
            )
