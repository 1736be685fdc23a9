"""Factory for wiring a fully configured image pipeline."""

from typing import Optional

from ..processors import InlineRequestQueue, ThreadedRequestQueue
from .batch import BatchReprocessor
from .config import StorageConfig
from .exceptions import ConfigurationError
from .logging_config import get_logger
from .observability import MetricsCollector
from .protocols import AssetRepository, LoggerProtocol, RequestQueue
from .retention import OriginalRetentionManager
from .services import ImagePipeline
from .staging import StagingArea
from .transforms import StrategyRegistry, default_registry
from .worker import DerivativeRenderer, DerivativeWorker

QUEUE_BACKENDS = ("inline", "thread")


class PipelineFactory:
    """Factory for creating the complete upload/derivative pipeline."""

    @staticmethod
    def create_pipeline(
        repository: AssetRepository,
        config: Optional[StorageConfig] = None,
        queue_backend: str = "thread",
        registry: Optional[StrategyRegistry] = None,
        logger: Optional[LoggerProtocol] = None,
        start_queue: bool = True,
        metrics_collector: Optional[MetricsCollector] = None,
    ) -> ImagePipeline:
        """
        Create a pipeline with its worker, queue and batch reprocessor.

        Args:
            repository: Persistence for owners and assets
            config: Storage settings (defaults to the environment)
            queue_backend: "thread" for consumer threads, "inline" to process on publish
            registry: Role -> strategy lookup (defaults to the standard roles)
            logger: Optional logger shared by all components
            start_queue: Start consumer threads immediately
            metrics_collector: Collector shared by the worker and the reprocessor

        Returns:
            The wired ImagePipeline
        """
        if queue_backend not in QUEUE_BACKENDS:
            raise ConfigurationError(
                f"Unknown queue backend {queue_backend!r}, expected one of {QUEUE_BACKENDS}"
            )
        config = config or StorageConfig.load()
        registry = registry or default_registry()

        staging = StagingArea(config)
        staging.ensure_upload_dir()

        metrics_collector = metrics_collector or MetricsCollector()
        renderer = DerivativeRenderer(registry, logger)
        retention = OriginalRetentionManager(config, logger)
        worker = DerivativeWorker(
            config, repository, renderer, retention, logger, metrics_collector
        )
        reprocessor = BatchReprocessor(
            repository, renderer, logger, metrics_collector=metrics_collector
        )
        queue = PipelineFactory.create_queue(queue_backend, worker, config)
        if start_queue:
            queue.start()

        get_logger("factory").info(
            f"[INIT] Pipeline created - upload_dir={config.resolved_upload_dir}, "
            f"queue={queue_backend}, keep_originals={config.keep_originals}"
        )
        return ImagePipeline(
            config=config,
            repository=repository,
            worker=worker,
            queue=queue,
            reprocessor=reprocessor,
            staging=staging,
            logger=logger,
            metrics_collector=metrics_collector,
        )

    @staticmethod
    def create_queue(
        queue_backend: str, worker: DerivativeWorker, config: StorageConfig
    ) -> RequestQueue:
        if queue_backend == "inline":
            return InlineRequestQueue(worker)
        return ThreadedRequestQueue(worker, concurrency=config.worker_concurrency)
