"""Testing utilities and fakes for the image derivative pipeline."""

from .fakes import (
    FakeLogger,
    InMemoryAssetRepository,
    create_test_image,
    image_size,
)

__all__ = [
    "FakeLogger",
    "InMemoryAssetRepository",
    "create_test_image",
    "image_size",
]
