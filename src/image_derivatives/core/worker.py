"""Derivative worker: turns processing requests into servable derivative files."""

import os
import threading
import time
from concurrent.futures import Future, TimeoutError as FutureTimeoutError
from typing import Dict, Mapping, Optional, Set

from .config import StorageConfig
from .error_handling import with_error_handling
from .exceptions import ImageProcessingError, ProcessingTimeoutError
from .files import remove_if_exists, write_all_or_nothing
from .logging_config import get_logger
from .models import (
    AssetStatus,
    DerivativeUrls,
    ProcessingRequest,
    ProcessingResult,
    Role,
)
from .observability import (
    IMAGE_PROCESSING,
    IMAGES_FAILED,
    IMAGES_PROCESSED,
    MetricsCollector,
    OperationTimer,
)
from .protocols import AssetRepository, LoggerProtocol
from .retention import OriginalRetentionManager, original_path_for
from .transforms import DerivativeKind, StrategyRegistry, default_registry


@with_error_handling
def read_bytes(path: str) -> bytes:
    with open(path, "rb") as handle:
        return handle.read()


class DerivativeRenderer:
    """
    Runs each decode/transform on a dedicated thread with a per-item timeout.

    Every render gets a dedicated thread, so the timeout clock starts when
    the render starts and an overrunning render never holds a slot another
    request is waiting for. A render that overruns is abandoned, not
    killed: its thread finishes in the background but its output is
    discarded because rendering never writes to disk.
    """

    def __init__(
        self,
        registry: Optional[StrategyRegistry] = None,
        logger: Optional[LoggerProtocol] = None,
    ):
        self._registry = registry or default_registry()
        self._logger = logger or get_logger("renderer")
        self._lock = threading.Lock()
        self._threads: Set[threading.Thread] = set()

    @property
    def registry(self) -> StrategyRegistry:
        return self._registry

    @property
    def active_renders(self) -> int:
        """Number of render threads still running, abandoned ones included."""
        with self._lock:
            return len(self._threads)

    def render(
        self, image_bytes: bytes, role: Role, config: StorageConfig
    ) -> Mapping[DerivativeKind, bytes]:
        """
        Produce encoded derivatives for a role within config.processing_timeout.

        Raises:
            ProcessingTimeoutError: If the timeout elapses
            ImageProcessingError: If decoding or transforming fails
        """
        future: Future = Future()
        thread = threading.Thread(
            target=self._run,
            args=(future, image_bytes, role, config),
            name=f"derivative-render-{role.value}",
            daemon=True,
        )
        with self._lock:
            self._threads.add(thread)
        thread.start()

        try:
            return future.result(timeout=config.processing_timeout)
        except FutureTimeoutError:
            self._logger.warning(
                f"[RENDER] Abandoning overrunning render - role={role.value}, "
                f"timeout={config.processing_timeout}s, active_renders={self.active_renders}"
            )
            raise ProcessingTimeoutError(
                f"Rendering {role.value} derivatives exceeded {config.processing_timeout}s"
            )

    def _run(
        self, future: Future, image_bytes: bytes, role: Role, config: StorageConfig
    ) -> None:
        try:
            if future.set_running_or_notify_cancel():
                try:
                    future.set_result(self._registry.render(image_bytes, role, config))
                except BaseException as exc:
                    future.set_exception(exc)
        finally:
            with self._lock:
                self._threads.discard(threading.current_thread())

    def shutdown(self, wait: bool = False, timeout: Optional[float] = None) -> None:
        """Optionally wait for in-flight renders, abandoned ones included."""
        if not wait:
            return
        with self._lock:
            threads = list(self._threads)
        for thread in threads:
            thread.join(timeout)


class DerivativeWorker:
    """Consumes processing requests and drives the asset to READY or FAILED."""

    def __init__(
        self,
        config: StorageConfig,
        repository: AssetRepository,
        renderer: Optional[DerivativeRenderer] = None,
        retention: Optional[OriginalRetentionManager] = None,
        logger: Optional[LoggerProtocol] = None,
        metrics_collector: Optional[MetricsCollector] = None,
    ):
        self._config = config
        self._repository = repository
        self._renderer = renderer or DerivativeRenderer()
        self._retention = retention or OriginalRetentionManager(config)
        self._logger = logger or get_logger("worker")
        self._metrics_collector = metrics_collector

    @property
    def renderer(self) -> DerivativeRenderer:
        return self._renderer

    def process(self, request: ProcessingRequest) -> ProcessingResult:
        """
        Process a request and raise on failure (synchronous contract).

        On failure the asset is marked FAILED, the staged file is deleted
        and no derivative file is left behind before the error propagates.

        Raises:
            ImageProcessingError: Corrupt image or timeout
            StorageError: File system failure
        """
        start_time = time.time()
        self._logger.info(
            f"[WORKER] Processing request - event_id={request.event_id}, "
            f"asset_id={request.asset_id}, role={request.role.value}"
        )
        with OperationTimer(
            self._metrics_collector, IMAGE_PROCESSING, role=request.role.value
        ):
            try:
                urls, retained = self._generate(request)
            except Exception as exc:
                self._fail(request, exc)
                self._count(IMAGES_FAILED)
                raise
        self._count(IMAGES_PROCESSED)

        result = ProcessingResult(
            event_id=request.event_id,
            asset_id=request.asset_id,
            success=True,
            urls=urls,
            original_retained=retained,
            processing_time=time.time() - start_time,
        )
        self._logger.info(
            f"[WORKER] Request processed - event_id={request.event_id}, "
            f"role={request.role.value}, retained={retained}, "
            f"processing_time_ms={result.processing_time * 1000:.1f}"
        )
        return result

    def handle(self, request: ProcessingRequest) -> ProcessingResult:
        """
        Process a request without raising (queue consumer contract).

        A failure is confined to this request: it is logged, the asset is
        marked FAILED and the consumer moves on to the next message.
        """
        start_time = time.time()
        try:
            return self.process(request)
        except Exception as exc:
            self._logger.error(
                f"[WORKER] Failed to process request - event_id={request.event_id}, "
                f"asset_id={request.asset_id}, error={exc}"
            )
            return ProcessingResult(
                event_id=request.event_id,
                asset_id=request.asset_id,
                success=False,
                error=str(exc),
                processing_time=time.time() - start_time,
            )

    def _generate(self, request: ProcessingRequest):
        image_bytes = read_bytes(request.staged_path)
        rendered = self._renderer.render(image_bytes, request.role, self._config)
        write_all_or_nothing(self._target_map(request, rendered))

        retained = self._retention.finalize(request.staged_path)
        urls = self._urls(request)
        self._repository.update_asset_status(
            request.asset_id,
            AssetStatus.READY,
            urls=urls,
            original_retained=retained,
            error="",
        )
        return urls, retained

    def _count(self, name: str) -> None:
        if self._metrics_collector is not None:
            self._metrics_collector.increment(name)

    def _target_map(
        self, request: ProcessingRequest, rendered: Mapping[DerivativeKind, bytes]
    ) -> Dict[str, bytes]:
        targets = {request.optimized_path: rendered[DerivativeKind.OPTIMIZED]}
        if DerivativeKind.THUMBNAIL in rendered:
            if not request.thumbnail_path:
                raise ImageProcessingError(
                    f"Role {request.role.value} produces a thumbnail but the request has no thumbnail path"
                )
            targets[request.thumbnail_path] = rendered[DerivativeKind.THUMBNAIL]
        return targets

    def _urls(self, request: ProcessingRequest) -> DerivativeUrls:
        thumbnail_url = None
        if request.thumbnail_path:
            thumbnail_url = self._config.public_url(os.path.basename(request.thumbnail_path))
        return DerivativeUrls(
            optimized_url=self._config.public_url(os.path.basename(request.optimized_path)),
            thumbnail_url=thumbnail_url,
        )

    def _fail(self, request: ProcessingRequest, exc: Exception) -> None:
        remove_if_exists(request.optimized_path)
        if request.thumbnail_path:
            remove_if_exists(request.thumbnail_path)
        self._retention.discard(request.staged_path)
        remove_if_exists(original_path_for(request.staged_path))
        try:
            self._repository.update_asset_status(
                request.asset_id, AssetStatus.FAILED, error=str(exc)
            )
            self._logger.warning(
                f"[WORKER] Status updated to FAILED - asset_id={request.asset_id}"
            )
        except Exception as status_exc:
            self._logger.error(
                f"[WORKER] Failed to update status to FAILED - asset_id={request.asset_id}, "
                f"error={status_exc}"
            )
