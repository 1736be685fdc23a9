"""Image geometry and codec utilities for the derivative pipeline."""

import io
from typing import Tuple

from PIL import Image, ImageOps

from .error_handling import with_error_handling
from .exceptions import ImageProcessingError

CAROUSEL_RATIO = 16 / 9

Box = Tuple[int, int, int, int]


@with_error_handling
def decode_image(image_bytes: bytes) -> Image.Image:
    """
    Decode bytes into a fully loaded, upright RGB or RGBA image.

    Args:
        image_bytes: Encoded JPEG, PNG or WebP bytes

    Returns:
        Loaded PIL Image

    Raises:
        ImageProcessingError: If the bytes cannot be decoded
    """
    try:
        image = Image.open(io.BytesIO(image_bytes))
        image.load()
    except OSError as e:
        raise ImageProcessingError(f"Cannot decode image: {e}") from e
    image = ImageOps.exif_transpose(image)
    return _normalize_mode(image)


def _normalize_mode(image: Image.Image) -> Image.Image:
    if image.mode in ("RGB", "RGBA"):
        return image
    has_alpha = image.mode in ("LA", "PA") or (
        image.mode == "P" and "transparency" in image.info
    )
    return image.convert("RGBA" if has_alpha else "RGB")


@with_error_handling
def encode_image(image: Image.Image, format_type: str, quality: int) -> bytes:
    """Encode an image to bytes in the given format and quality."""
    if format_type.upper() == "JPEG" and image.mode != "RGB":
        image = image.convert("RGB")
    output_stream = io.BytesIO()
    try:
        image.save(output_stream, format=format_type.upper(), quality=quality)
    except (OSError, KeyError) as e:
        raise ImageProcessingError(f"Cannot encode image as {format_type}: {e}") from e
    return output_stream.getvalue()


def center_square_box(width: int, height: int) -> Box:
    """Crop box of the largest centered square."""
    crop_size = min(width, height)
    x = (width - crop_size) // 2
    y = (height - crop_size) // 2
    return (x, y, x + crop_size, y + crop_size)


def aspect_crop_box(width: int, height: int, ratio: float = CAROUSEL_RATIO) -> Box:
    """
    Crop box of the largest centered region with the given width/height ratio.

    Wider sources keep full height and lose width, taller sources keep
    full width and lose height.
    """
    if width / height > ratio:
        crop_width = max(1, min(width, round(height * ratio)))
        x = (width - crop_width) // 2
        return (x, 0, x + crop_width, height)
    crop_height = max(1, min(height, round(width / ratio)))
    y = (height - crop_height) // 2
    return (0, y, width, y + crop_height)


def max_width_optimize(image: Image.Image, max_width: int) -> Image.Image:
    """
    Scale down to max_width preserving aspect ratio; never upscale.

    Args:
        image: Source image
        max_width: Width limit in pixels

    Returns:
        The resized image, or the source unchanged when already narrow enough
    """
    width, height = image.size
    if width <= max_width:
        return image
    new_height = max(1, round(height * max_width / width))
    return image.resize((max_width, new_height), Image.Resampling.LANCZOS)


def square_thumbnail(image: Image.Image, size: int) -> Image.Image:
    """Center-crop the largest square and resize it to exactly size x size."""
    square = image.crop(center_square_box(*image.size))
    if square.size == (size, size):
        return square
    return square.resize((size, size), Image.Resampling.LANCZOS)


def aspect_ratio_crop(
    image: Image.Image, max_width: int, ratio: float = CAROUSEL_RATIO
) -> Image.Image:
    """Center-crop to the target ratio, then apply max_width_optimize."""
    cropped = image.crop(aspect_crop_box(image.width, image.height, ratio))
    return max_width_optimize(cropped, max_width)


def profile_square(image: Image.Image, max_size: int) -> Image.Image:
    """Center-crop a square, shrinking it to max_size only when larger."""
    square = image.crop(center_square_box(*image.size))
    if square.width <= max_size:
        return square
    return square.resize((max_size, max_size), Image.Resampling.LANCZOS)
