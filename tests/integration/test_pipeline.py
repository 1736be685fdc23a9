"""Integration tests for the complete pipeline."""

import io
import os

import pytest
from PIL import Image

from image_derivatives.core.config import StorageConfig
from image_derivatives.core.exceptions import UploadValidationError, ValidationReason
from image_derivatives.core.factories import PipelineFactory
from image_derivatives.core.models import AssetStatus, Role
from image_derivatives.core.repositories import JsonFileAssetRepository
from image_derivatives.testing.fakes import InMemoryAssetRepository, create_test_image

OWNER_ID = "owner-1"


def _banded_jpeg(width=2000, height=1000, band=500):
    """Red side bands around a blue center, so crops can be told apart."""
    image = Image.new("RGB", (width, height), color=(255, 0, 0))
    image.paste((0, 0, 255), (band, 0, width - band, height))
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=95)
    return buffer.getvalue()


def _open(config, filename):
    image = Image.open(config.resolved_upload_dir / filename)
    image.load()
    return image


class TestPipelineIntegration:
    """End-to-end scenarios through PipelineFactory."""

    @pytest.fixture(autouse=True)
    def setup(self, tmp_path):
        self.config = StorageConfig(
            upload_dir=tmp_path / "uploads", keep_originals=True, max_width=1200
        )
        self.repository = InMemoryAssetRepository(owners=[OWNER_ID])
        self.pipeline = PipelineFactory.create_pipeline(
            self.repository, config=self.config, queue_backend="thread"
        )
        yield
        self.pipeline.close()

    def test_project_upload(self):
        """A 2000x1000 JPEG gives 1200x600 plus a thumbnail of the centered square."""
        result = self.pipeline.submit(
            OWNER_ID, Role.PROJECT, _banded_jpeg(), "cover.jpg", "image/jpeg"
        )
        asset = self.repository.get_asset(result.asset_id)

        optimized = _open(self.config, asset.optimized_file)
        thumbnail = _open(self.config, asset.thumbnail_file)

        assert optimized.format == "WEBP" and optimized.size == (1200, 600)
        assert thumbnail.format == "WEBP" and thumbnail.size == (300, 300)
        # centered 1000x1000 square is entirely blue
        for xy in [(5, 5), (150, 150), (294, 294)]:
            red, _, blue = thumbnail.convert("RGB").getpixel(xy)
            assert blue > red + 100

    def test_profile_upload_never_upscales(self):
        result = self.pipeline.submit(
            OWNER_ID, Role.PROFILE, create_test_image(400, 400, "PNG"), "me.png", "image/png"
        )
        asset = self.repository.get_asset(result.asset_id)

        assert _open(self.config, asset.optimized_file).size == (400, 400)
        assert asset.thumbnail_file is None
        assert result.urls.thumbnail_url is None

    def test_reprocess_after_width_change(self):
        """Retained originals are re-rendered at the new width; others are excluded."""
        retained = [
            self.pipeline.submit(OWNER_ID, Role.ARTICLE, create_test_image(2000, 1000), "a.jpg", "image/jpeg")
            for _ in range(2)
        ]
        async_ticket = self.pipeline.submit(
            OWNER_ID, Role.PROJECT, create_test_image(1600, 900), "b.jpg", "image/jpeg",
            mode="async",
        )
        self.pipeline.queue.join()

        not_retained_pipeline = PipelineFactory.create_pipeline(
            self.repository,
            config=self.config.with_overrides(keep_originals=False),
            queue_backend="inline",
        )
        excluded = not_retained_pipeline.submit(
            OWNER_ID, Role.ARTICLE, create_test_image(2000, 1000), "c.jpg", "image/jpeg"
        )
        not_retained_pipeline.close()

        summary = self.pipeline.reprocess_all(self.config.with_overrides(max_width=800))

        assert summary.processed == 3
        assert summary.total == 3
        for asset_id in [r.asset_id for r in retained] + [async_ticket.asset_id]:
            asset = self.repository.get_asset(asset_id)
            assert _open(self.config, asset.optimized_file).width <= 800
        excluded_asset = self.repository.get_asset(excluded.asset_id)
        assert _open(self.config, excluded_asset.optimized_file).width == 1200

    def test_truncated_upload_is_rejected(self):
        """Two bytes never reach staging, and reprocessing has nothing to do."""
        with pytest.raises(UploadValidationError) as exc_info:
            self.pipeline.submit(OWNER_ID, Role.PROJECT, b"\xff\xd8", "a.jpg", "image/jpeg")

        assert exc_info.value.reason is ValidationReason.SIGNATURE_MISMATCH
        assert os.listdir(self.config.resolved_upload_dir) == []
        assert self.repository.get_assets() == []
        assert self.pipeline.reprocess_all().total == 0

    def test_async_uploads_reach_ready(self):
        tickets = [
            self.pipeline.submit(
                OWNER_ID, Role.PROJECT_CAROUSEL, create_test_image(1000, 1000), "c.jpg",
                "image/jpeg", mode="async", index=i,
            )
            for i in range(5)
        ]
        self.pipeline.queue.join()

        for ticket in tickets:
            asset = self.repository.get_asset(ticket.asset_id)
            assert asset.status == AssetStatus.READY
            assert asset.original_retained
            width, height = _open(self.config, asset.optimized_file).size
            assert abs(width / height - 16 / 9) < 0.02


class TestJsonRepositoryPipeline:
    def test_full_cycle_with_manifest(self, tmp_path):
        """Submit, reload the manifest, reprocess and delete."""
        config = StorageConfig(upload_dir=tmp_path / "uploads", keep_originals=True)
        manifest = tmp_path / "uploads" / "assets.json"
        repository = JsonFileAssetRepository(manifest, owners=[OWNER_ID])
        pipeline = PipelineFactory.create_pipeline(repository, config=config, queue_backend="inline")
        result = pipeline.submit(OWNER_ID, Role.ARTICLE, create_test_image(1500, 500), "a.jpg", "image/jpeg")
        pipeline.close()

        reloaded = PipelineFactory.create_pipeline(
            JsonFileAssetRepository(manifest), config=config, queue_backend="inline"
        )
        assert reloaded.get_asset(result.asset_id).status == AssetStatus.READY
        assert reloaded.reprocess_all(config.with_overrides(max_width=300)).processed == 1

        removed = reloaded.delete_asset(result.asset_id)
        reloaded.close()

        assert len(removed) == 3
        assert os.listdir(config.resolved_upload_dir) == ["assets.json"]
