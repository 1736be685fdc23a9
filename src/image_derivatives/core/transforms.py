"""Role-specific derivative strategies and the role -> strategy registry."""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, Mapping, Tuple

from PIL import Image

from .config import StorageConfig
from .error_handling import with_error_handling
from .exceptions import ConfigurationError
from .image_utils import (
    aspect_ratio_crop,
    decode_image,
    encode_image,
    max_width_optimize,
    profile_square,
    square_thumbnail,
)
from .models import Role


class DerivativeKind(str, Enum):
    """Which output slot a strategy fills."""

    OPTIMIZED = "optimized"
    THUMBNAIL = "thumbnail"


@dataclass(frozen=True)
class TransformStrategy:
    """A named geometric transform plus the quality setting it encodes at."""

    name: str
    kind: DerivativeKind
    transform: Callable[[Image.Image, StorageConfig], Image.Image]
    quality: Callable[[StorageConfig], int]

    def apply(self, image: Image.Image, config: StorageConfig) -> bytes:
        """Transform a decoded image and encode it with the current config."""
        result = self.transform(image, config)
        return encode_image(result, config.output_format, self.quality(config))


MAX_WIDTH_OPTIMIZE = TransformStrategy(
    name="max_width_optimize",
    kind=DerivativeKind.OPTIMIZED,
    transform=lambda image, config: max_width_optimize(image, config.max_width),
    quality=lambda config: config.optimize_quality,
)

SQUARE_THUMBNAIL = TransformStrategy(
    name="square_thumbnail",
    kind=DerivativeKind.THUMBNAIL,
    transform=lambda image, config: square_thumbnail(image, config.thumbnail_size),
    quality=lambda config: config.thumbnail_quality,
)

ASPECT_RATIO_CROP = TransformStrategy(
    name="aspect_ratio_crop_16_9",
    kind=DerivativeKind.OPTIMIZED,
    transform=lambda image, config: aspect_ratio_crop(image, config.max_width),
    quality=lambda config: config.optimize_quality,
)

PROFILE_SQUARE = TransformStrategy(
    name="profile_square",
    kind=DerivativeKind.OPTIMIZED,
    transform=lambda image, config: profile_square(image, config.profile_max_size),
    quality=lambda config: config.optimize_quality,
)


class StrategyRegistry:
    """Lookup from Role to the composed set of strategies it requires."""

    def __init__(self) -> None:
        self._strategies: Dict[Role, Tuple[TransformStrategy, ...]] = {}

    def register(self, role: Role, strategies: Iterable[TransformStrategy]) -> None:
        strategies = tuple(strategies)
        kinds = [strategy.kind for strategy in strategies]
        if DerivativeKind.OPTIMIZED not in kinds:
            raise ConfigurationError(f"Role {role.value} needs an optimized derivative")
        if len(set(kinds)) != len(kinds):
            raise ConfigurationError(f"Role {role.value} registers a derivative kind twice")
        if (DerivativeKind.THUMBNAIL in kinds) != role.has_thumbnail:
            raise ConfigurationError(f"Role {role.value} thumbnail strategy mismatch")
        self._strategies[role] = strategies

    def strategies_for(self, role: Role) -> Tuple[TransformStrategy, ...]:
        try:
            return self._strategies[role]
        except KeyError:
            raise ConfigurationError(f"No strategies registered for role {role.value}")

    @with_error_handling
    def render(
        self, image_bytes: bytes, role: Role, config: StorageConfig
    ) -> Mapping[DerivativeKind, bytes]:
        """
        Decode once and produce every derivative the role requires.

        Nothing touches the disk here; callers commit the returned bytes.

        Raises:
            ImageProcessingError: If decoding or any transform fails
        """
        image = decode_image(image_bytes)
        return {
            strategy.kind: strategy.apply(image, config)
            for strategy in self.strategies_for(role)
        }


def default_registry() -> StrategyRegistry:
    registry = StrategyRegistry()
    registry.register(Role.PROJECT, [MAX_WIDTH_OPTIMIZE, SQUARE_THUMBNAIL])
    registry.register(Role.PROJECT_CAROUSEL, [ASPECT_RATIO_CROP, SQUARE_THUMBNAIL])
    registry.register(Role.ARTICLE, [MAX_WIDTH_OPTIMIZE, SQUARE_THUMBNAIL])
    registry.register(Role.PROFILE, [PROFILE_SQUARE])
    return registry
