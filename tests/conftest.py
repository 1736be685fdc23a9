"""Shared fixtures for the image derivative pipeline tests."""

import pytest

from image_derivatives.core.config import StorageConfig
from image_derivatives.core.factories import PipelineFactory
from image_derivatives.testing.fakes import FakeLogger, InMemoryAssetRepository

OWNER_ID = "owner-1"


@pytest.fixture
def config(tmp_path):
    """Storage config rooted in a per-test upload directory."""
    return StorageConfig(upload_dir=tmp_path / "uploads", base_path="/uploads/images")


@pytest.fixture
def repository():
    return InMemoryAssetRepository(owners=[OWNER_ID])


@pytest.fixture
def fake_logger():
    return FakeLogger()


@pytest.fixture
def pipeline(config, repository):
    """Pipeline with an inline queue so async submits finish before returning."""
    pipeline = PipelineFactory.create_pipeline(
        repository, config=config, queue_backend="inline"
    )
    yield pipeline
    pipeline.close()
