"""Tests for batch reprocessing of retained originals."""

import os

import pytest

from image_derivatives.core.batch import BatchReprocessor, SkipAsset
from image_derivatives.core.config import StorageConfig
from image_derivatives.core.factories import PipelineFactory
from image_derivatives.core.models import AssetStatus, Role
from image_derivatives.core.observability import (
    BATCH_FAILED,
    BATCH_PROCESSED,
    BATCH_SKIPPED,
    IMAGE_REPROCESSING,
    MetricsCollector,
)
from image_derivatives.core.worker import DerivativeRenderer
from image_derivatives.testing.fakes import (
    FakeLogger,
    InMemoryAssetRepository,
    create_test_image,
    image_size,
)

OWNER_ID = "owner-1"


class TestBatchReprocessor:
    """Tests for BatchReprocessor.reprocess_all."""

    @pytest.fixture(autouse=True)
    def setup(self, tmp_path):
        self.config = StorageConfig(upload_dir=tmp_path / "uploads", keep_originals=True)
        self.repository = InMemoryAssetRepository(owners=[OWNER_ID])
        self.pipeline = PipelineFactory.create_pipeline(
            self.repository, config=self.config, queue_backend="inline"
        )
        self.logger = FakeLogger()
        self.renderer = DerivativeRenderer()
        self.reprocessor = BatchReprocessor(
            self.repository, self.renderer, self.logger, batch_size=2
        )
        yield
        self.pipeline.close()
        self.renderer.shutdown(wait=True)

    def _submit(self, width=2000, height=1000, role=Role.PROJECT):
        result = self.pipeline.submit(
            OWNER_ID, role, create_test_image(width, height), "a.jpg", "image/jpeg"
        )
        return self.repository.get_asset(result.asset_id)

    def _path(self, filename):
        return str(self.config.resolved_upload_dir / filename)

    def test_reprocess_with_new_width(self):
        """Scenario: width 1200 -> 800 rewrites the same files at the new size."""
        asset = self._submit()
        assert image_size(self._path(asset.optimized_file)) == (1200, 600)

        summary = self.reprocessor.reprocess_all(self.config.with_overrides(max_width=800))

        assert summary.processed == 1
        assert summary.failed == 0
        assert image_size(self._path(asset.optimized_file)) == (800, 400)
        assert image_size(self._path(asset.thumbnail_file)) == (300, 300)
        after = self.repository.get_asset(asset.id)
        assert after.optimized_url == asset.optimized_url
        assert after.status == AssetStatus.READY

    def test_reprocess_is_idempotent(self):
        """Running twice with the same config gives the same file set and sizes."""
        asset = self._submit()
        config = self.config.with_overrides(max_width=640)

        self.reprocessor.reprocess_all(config)
        first = sorted(os.listdir(self.config.resolved_upload_dir))
        self.reprocessor.reprocess_all(config)

        assert sorted(os.listdir(self.config.resolved_upload_dir)) == first
        assert image_size(self._path(asset.optimized_file)) == (640, 320)

    def test_failure_is_isolated(self):
        """A corrupt original is reported and the other assets still succeed."""
        good = [self._submit() for _ in range(3)]
        broken = self._submit()
        with open(self._path(broken.original_file), "wb") as handle:
            handle.write(b"\xff\xd8\xffgarbage")

        summary = self.reprocessor.reprocess_all(self.config.with_overrides(max_width=500))

        assert summary.processed == 3
        assert summary.failed == 1
        assert summary.failures[0].asset_id == broken.id
        assert self.repository.get_asset(broken.id).status == AssetStatus.READY
        for asset in good:
            assert image_size(self._path(asset.optimized_file)) == (500, 250)

    def test_batch_outcomes_are_counted(self):
        """Processed, failed and skipped assets land in the metrics collector."""
        metrics = MetricsCollector()
        reprocessor = BatchReprocessor(
            self.repository, self.renderer, self.logger, metrics_collector=metrics
        )
        self._submit()
        broken = self._submit()
        missing = self._submit()
        with open(self._path(broken.original_file), "wb") as handle:
            handle.write(b"\xff\xd8\xffgarbage")
        os.remove(self._path(missing.original_file))

        reprocessor.reprocess_all(self.config)

        assert metrics.get_counter(BATCH_PROCESSED) == 1
        assert metrics.get_counter(BATCH_FAILED) == 1
        assert metrics.get_counter(BATCH_SKIPPED) == 1
        summary = metrics.get_summary(IMAGE_REPROCESSING)
        assert summary["total_operations"] == 2
        assert summary["failed_operations"] == 1

    def test_missing_original_is_skipped(self):
        asset = self._submit()
        os.remove(self._path(asset.original_file))

        summary = self.reprocessor.reprocess_all(self.config)

        assert summary.skipped == 1
        assert summary.total == 1
        assert self.logger.get_logs("WARNING")

    def test_assets_without_retained_original_are_not_listed(self):
        config = self.config.with_overrides(keep_originals=False)
        pipeline = PipelineFactory.create_pipeline(
            self.repository, config=config, queue_backend="inline"
        )
        pipeline.submit(OWNER_ID, Role.ARTICLE, create_test_image(), "a.jpg", "image/jpeg")
        pipeline.close()

        summary = self.reprocessor.reprocess_all(config)

        assert summary.total == 0

    def test_reprocess_asset_raises_skip(self):
        asset = self._submit().model_copy(update={"original_retained": False})
        with pytest.raises(SkipAsset):
            self.reprocessor.reprocess_asset(asset, self.config)

    def test_profile_reprocess(self):
        asset = self._submit(1000, 1000, Role.PROFILE)
        assert image_size(self._path(asset.optimized_file)) == (500, 500)

        self.reprocessor.reprocess_all(self.config.with_overrides(profile_max_size=200))

        assert image_size(self._path(asset.optimized_file)) == (200, 200)
        assert asset.thumbnail_file is None
