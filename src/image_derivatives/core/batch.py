"""Operator-triggered regeneration of derivatives from retained originals."""

import time
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .config import StorageConfig
from .error_handling import BatchOperationContextManager
from .exceptions import ImageProcessingError
from .files import resolve_within, write_all_or_nothing
from .logging_config import get_logger
from .models import AssetStatus, BatchFailure, BatchSummary, ImageAsset
from .observability import (
    BATCH_FAILED,
    BATCH_PROCESSED,
    BATCH_SKIPPED,
    IMAGE_REPROCESSING,
    MetricsCollector,
    OperationTimer,
)
from .protocols import AssetRepository, LoggerProtocol
from .transforms import DerivativeKind
from .worker import DerivativeRenderer, read_bytes


class SkipAsset(Exception):
    """Raised internally when an asset has nothing to reprocess from."""


class BatchReprocessor:
    """
    Regenerates every READY asset's derivatives from its ``.original`` file.

    The asset list is a point-in-time snapshot; assets created while the
    run is in progress are left for the next run. Each asset is isolated:
    a failure is recorded in the summary and the run continues. Statuses
    are never changed, so a failed asset keeps serving its previous files.
    """

    def __init__(
        self,
        repository: AssetRepository,
        renderer: Optional[DerivativeRenderer] = None,
        logger: Optional[LoggerProtocol] = None,
        batch_size: int = 10,
        metrics_collector: Optional[MetricsCollector] = None,
    ):
        self._repository = repository
        self._renderer = renderer or DerivativeRenderer()
        self._logger = logger or get_logger("batch")
        self._batch_size = max(1, batch_size)
        self._metrics_collector = metrics_collector

    def reprocess_all(self, config: StorageConfig) -> BatchSummary:
        """
        Re-run each asset's role strategies under the given (current) config.

        Args:
            config: Storage configuration to render with, typically after an
                operator changed width or quality settings

        Returns:
            Counts of processed, failed and skipped assets plus failure details
        """
        start_time = time.time()
        snapshot = self._repository.list_assets(AssetStatus.READY, original_retained=True)
        summary = BatchSummary()
        self._logger.info(
            f"[BATCH_REPROCESSING] Found images to reprocess - count={len(snapshot)}, "
            f"max_width={config.max_width}, quality={config.optimize_quality}"
        )

        with BatchOperationContextManager(operation_name="Image reprocessing") as batch_manager:
            for offset in range(0, len(snapshot), self._batch_size):
                chunk = snapshot[offset : offset + self._batch_size]
                for asset in chunk:
                    self._reprocess_one(asset, config, summary, batch_manager)
                self._logger.info(
                    f"[BATCH_REPROCESSING] Progress: {min(offset + len(chunk), len(snapshot))}/{len(snapshot)} - "
                    f"processed={summary.processed}, failed={summary.failed}, skipped={summary.skipped}"
                )

        summary.processing_time = time.time() - start_time
        self._logger.info(
            f"[BATCH_REPROCESSING] Completed - processed={summary.processed}, "
            f"failed={summary.failed}, skipped={summary.skipped}, "
            f"time={summary.processing_time:.2f}s"
        )
        return summary

    def _reprocess_one(
        self,
        asset: ImageAsset,
        config: StorageConfig,
        summary: BatchSummary,
        batch_manager: BatchOperationContextManager,
    ) -> None:
        try:
            self.reprocess_asset(asset, config)
        except SkipAsset as reason:
            summary.skipped += 1
            self._count(BATCH_SKIPPED)
            self._logger.warning(
                f"[BATCH_REPROCESSING] Skipping image without original - id={asset.id}, reason={reason}"
            )
        except Exception as exc:
            summary.failed += 1
            self._count(BATCH_FAILED)
            summary.failures.append(BatchFailure(asset_id=asset.id, error=str(exc)))
            batch_manager.add_error(str(exc), item_identifier=asset.id)
            self._logger.error(
                f"[BATCH_REPROCESSING] Failed to reprocess image - id={asset.id}, "
                f"role={asset.role.value}, error={exc}"
            )
        else:
            summary.processed += 1
            self._count(BATCH_PROCESSED)
            self._logger.debug(
                f"[BATCH_REPROCESSING] Reprocessed image - id={asset.id}, role={asset.role.value}"
            )

    def _count(self, name: str) -> None:
        if self._metrics_collector is not None:
            self._metrics_collector.increment(name)

    def reprocess_asset(self, asset: ImageAsset, config: StorageConfig) -> None:
        """
        Overwrite one asset's derivative files in place from its original.

        Raises:
            SkipAsset: If the asset has no retained original on disk
            ImageProcessingError: If the original cannot be decoded or transformed
            StorageError: If writing the derivatives fails
        """
        upload_dir = config.resolved_upload_dir
        original = resolve_within(upload_dir, asset.original_file)
        if not asset.original_retained or original is None or not original.is_file():
            raise SkipAsset(f"no original file for {asset.original_file!r}")

        with OperationTimer(
            self._metrics_collector, IMAGE_REPROCESSING, role=asset.role.value
        ):
            rendered = self._renderer.render(read_bytes(str(original)), asset.role, config)
            targets = self._targets(asset, upload_dir, rendered.keys())
            write_all_or_nothing(
                {str(targets[kind]): payload for kind, payload in rendered.items()},
                rollback_committed=False,
            )

    def _targets(
        self, asset: ImageAsset, upload_dir: Path, kinds: Iterable[DerivativeKind]
    ) -> Dict[DerivativeKind, Path]:
        names = {
            DerivativeKind.OPTIMIZED: asset.optimized_file,
            DerivativeKind.THUMBNAIL: asset.thumbnail_file,
        }
        targets: Dict[DerivativeKind, Path] = {}
        missing: List[str] = []
        for kind in kinds:
            path = resolve_within(upload_dir, names.get(kind))
            if path is None:
                missing.append(kind.value)
            else:
                targets[kind] = path
        if missing:
            raise ImageProcessingError(
                f"Asset {asset.id} has no stored filename for: {', '.join(missing)}"
            )
        return targets
