"""Pipeline facade: submit uploads, reprocess, look up and delete assets."""

from pathlib import Path
from typing import List, Optional, Union

from .batch import BatchReprocessor
from .config import StorageConfig
from .exceptions import AssetNotFoundError, OwnerNotFoundError
from .files import remove_if_exists, resolve_within
from .logging_config import get_logger
from .observability import MetricsCollector
from .models import (
    AsyncTicket,
    BatchSummary,
    ExecutionMode,
    ImageAsset,
    Role,
    SubmitResult,
    SyncResult,
    UploadRequest,
)
from .protocols import AssetRepository, LoggerProtocol, RequestQueue
from .staging import ORIGINAL_SUFFIX, STAGED_SUFFIX, StagingArea
from .validation import validate_upload
from .worker import DerivativeWorker


class ImagePipeline:
    """
    Entry point used by the HTTP layer and the CLI.

    Flow: validation -> staging -> worker (inline for sync mode, through
    the request queue for async mode) -> retention -> asset status.
    """

    def __init__(
        self,
        config: StorageConfig,
        repository: AssetRepository,
        worker: DerivativeWorker,
        queue: RequestQueue,
        reprocessor: BatchReprocessor,
        staging: Optional[StagingArea] = None,
        logger: Optional[LoggerProtocol] = None,
        metrics_collector: Optional[MetricsCollector] = None,
    ):
        self._config = config
        self._repository = repository
        self._worker = worker
        self._queue = queue
        self._reprocessor = reprocessor
        self._staging = staging or StagingArea(config)
        self._logger = logger or get_logger("pipeline")
        self._metrics_collector = metrics_collector or MetricsCollector()

    @property
    def config(self) -> StorageConfig:
        return self._config

    @property
    def queue(self) -> RequestQueue:
        return self._queue

    @property
    def repository(self) -> AssetRepository:
        return self._repository

    @property
    def metrics(self) -> MetricsCollector:
        """Timers and counters for uploads and batch reprocessing."""
        return self._metrics_collector

    def close(self) -> None:
        """Drain and stop the request queue, then wait for in-flight renders."""
        self._queue.stop(wait=True)
        self._worker.renderer.shutdown(wait=True, timeout=self._config.processing_timeout)

    def submit(
        self,
        owner_id: str,
        role: Union[Role, str],
        data: bytes,
        filename: str,
        content_type: str,
        mode: Union[ExecutionMode, str] = ExecutionMode.SYNC,
        index: Optional[int] = None,
    ) -> SubmitResult:
        """
        Validate, stage and process (or enqueue) one uploaded image.

        Args:
            owner_id: Owning entity identifier
            role: Image role
            data: Raw uploaded bytes
            filename: Client-declared filename
            content_type: Client-declared MIME type
            mode: "sync" returns once derivatives exist, "async" returns a ticket
            index: Optional carousel position embedded in the filename

        Returns:
            SyncResult with URLs, or AsyncTicket with status PENDING

        Raises:
            UploadValidationError: Rejected before anything is written
            OwnerNotFoundError: Unknown owner, nothing is written
            ImageProcessingError: Sync mode only, corrupt image or timeout
            StorageError: Sync mode only, file system failure
        """
        role = Role(role)
        mode = ExecutionMode(mode)
        self._logger.info(
            f"[UPLOAD_IMAGE] Starting upload - owner_id={owner_id}, role={role.value}, "
            f"filename={filename!r}, size={len(data) if data else 0}, mode={mode.value}"
        )

        upload = validate_upload(data, filename, content_type, self._config)
        if not self._repository.find_owner(owner_id):
            raise OwnerNotFoundError(f"Owner {owner_id!r} not found")

        staged = self._staging.stage(upload, role, owner_id, index)
        try:
            asset = ImageAsset(
                owner_id=owner_id,
                role=role,
                optimized_file=staged.optimized_file,
                thumbnail_file=staged.thumbnail_file,
                original_file=staged.basename + ORIGINAL_SUFFIX,
                file_size=upload.size,
                content_type=upload.content_type,
            )
            asset_id = self._repository.create_asset(asset)
        except Exception:
            self._staging.discard(staged)
            raise

        request = self._staging.build_request(staged, asset_id, owner_id, role)

        if mode is ExecutionMode.SYNC:
            result = self._worker.process(request)
            return SyncResult(asset_id=asset_id, urls=result.urls)

        self._queue.publish(request)
        self._logger.info(
            f"[UPLOAD_IMAGE] Image queued for processing - event_id={request.event_id}, "
            f"asset_id={asset_id}"
        )
        return AsyncTicket(asset_id=asset_id, event_id=request.event_id)

    def submit_request(
        self, request: UploadRequest, mode: Union[ExecutionMode, str] = ExecutionMode.SYNC
    ) -> SubmitResult:
        """Submit a prebuilt UploadRequest; see submit."""
        return self.submit(
            request.owner_id,
            request.role,
            request.data,
            request.filename,
            request.content_type,
            mode=mode,
            index=request.index,
        )

    def get_asset(self, asset_id: str) -> ImageAsset:
        asset = self._repository.get_asset(asset_id)
        if asset is None:
            raise AssetNotFoundError(f"Image asset {asset_id!r} not found")
        return asset

    def delete_asset(self, asset_id: str) -> List[str]:
        """
        Remove an asset's files by their recorded names, then its record.

        Only the exact filenames stored on the asset are touched, so a
        concurrent upload for the same owner can never be caught up in it.

        Returns:
            Filenames actually removed from disk
        """
        asset = self.get_asset(asset_id)
        upload_dir = self._config.resolved_upload_dir
        removed: List[str] = []
        candidates = [asset.optimized_file, asset.thumbnail_file, asset.original_file]
        if asset.original_file:
            # A PENDING asset may still have its staged upload on disk
            candidates.append(Path(asset.original_file).stem + STAGED_SUFFIX)
        for filename in candidates:
            path = resolve_within(upload_dir, filename)
            if path is not None and remove_if_exists(str(path)):
                removed.append(path.name)

        self._repository.delete_asset(asset_id)
        self._logger.info(
            f"[DELETE_IMAGE] Image deleted - asset_id={asset_id}, files_removed={len(removed)}"
        )
        return removed

    def reprocess_all(self, config: Optional[StorageConfig] = None) -> BatchSummary:
        """Regenerate derivatives for every READY asset with a retained original."""
        return self._reprocessor.reprocess_all(config or self._config)

