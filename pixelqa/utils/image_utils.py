"""Image processing utilities: decode, normalize width, align onto a target canvas."""

import logging
import math
from numbers import Integral, Real
from pathlib import Path
from typing import Tuple, Union

import cv2
import numpy as np

from ..core.entities import AlignmentConfig, RasterImage
from ..core.exceptions import DecodeError, TransformError

logger = logging.getLogger(__name__)

DEFAULT_TARGET_WIDTH = 1200
DEFAULT_JPEG_QUALITY = 90
CANVAS_BACKGROUND = (0, 0, 0)  # opaque black, BGR


def decode_image(data: bytes) -> np.ndarray:
    """Decode encoded image bytes into a BGR array."""
    if not data:
        raise DecodeError("Image data is empty")
    buffer = np.frombuffer(data, dtype=np.uint8)
    image = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
    if image is None or image.size == 0:
        raise DecodeError("Could not decode image; expected a valid PNG or JPEG")
    return image


def encode_image(image: np.ndarray, quality: int = DEFAULT_JPEG_QUALITY) -> bytes:
    """Encode a BGR array as JPEG bytes."""
    ok, encoded = cv2.imencode(".jpg", image, [cv2.IMWRITE_JPEG_QUALITY, int(quality)])
    if not ok:
        raise TransformError("JPEG encoding failed")
    return encoded.tobytes()


def resize_to_width(image: np.ndarray, target_width: int) -> np.ndarray:
    """Resize ``image`` to ``target_width`` keeping the aspect ratio."""
    h, w = image.shape[:2]
    if w <= 0:
        raise DecodeError("Source image has zero width")
    target_height = max(1, int(round(h * target_width / w)))
    if (w, h) == (target_width, target_height):
        return image.copy()
    interpolation = cv2.INTER_AREA if target_width < w else cv2.INTER_LINEAR
    return cv2.resize(image, (target_width, target_height), interpolation=interpolation)


def normalize_image(data: bytes, target_width: int = DEFAULT_TARGET_WIDTH,
                    quality: int = DEFAULT_JPEG_QUALITY) -> RasterImage:
    """Decode an uploaded file and rescale it to the canonical width.

    Both images of a comparison go through here so that the overlay and the
    oracle see them at the same nominal width.

    Raises:
        DecodeError: ``data`` is not a readable image.
        TransformError: ``target_width`` is not a positive integer.
    """
    _require_positive_int(target_width, "target_width")
    image = decode_image(data)
    resized = resize_to_width(image, int(target_width))
    height, width = resized.shape[:2]
    logger.debug("Normalized image %sx%s -> %sx%s", image.shape[1], image.shape[0], width, height)
    return RasterImage(pixel_data=encode_image(resized, quality), width=width, height=height)


def normalize_image_file(path: Union[str, Path], target_width: int = DEFAULT_TARGET_WIDTH,
                         quality: int = DEFAULT_JPEG_QUALITY) -> RasterImage:
    """Read ``path`` and normalize it. Missing files are reported as decode errors."""
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise DecodeError(f"Could not read image file {path}: {e}") from e
    return normalize_image(data, target_width, quality)


def alignment_matrix(alignment: AlignmentConfig) -> np.ndarray:
    """2x3 affine matrix for ``p' = p * scale + (translate_x, translate_y)``.

    This is the canvas ``translate(x, y)`` followed by ``scale(s)`` with the
    origin at the top-left corner; the overlay renderer uses the same matrix.
    """
    s = float(alignment.scale)
    return np.float32([
        [s, 0.0, float(alignment.translate_x)],
        [0.0, s, float(alignment.translate_y)],
    ])


def warp_to_canvas(image: np.ndarray, alignment: AlignmentConfig,
                   size: Tuple[int, int]) -> np.ndarray:
    """Draw ``image`` on a black canvas of ``size`` (width, height) using ``alignment``."""
    width, height = size
    _require_positive_int(width, "target width")
    _require_positive_int(height, "target height")
    scale = alignment.scale
    if not isinstance(scale, Real) or not math.isfinite(scale) or scale <= 0:
        raise TransformError(f"Scale must be a positive finite number, got {scale!r}")
    for name, value in (("translate_x", alignment.translate_x), ("translate_y", alignment.translate_y)):
        if not math.isfinite(value):
            raise TransformError(f"{name} must be finite, got {value!r}")

    if alignment.is_identity() and image.shape[1] == width and image.shape[0] == height:
        return image.copy()

    return cv2.warpAffine(
        image,
        alignment_matrix(alignment),
        (int(width), int(height)),
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=CANVAS_BACKGROUND,
    )


def transform_image(source: RasterImage, alignment: AlignmentConfig,
                    target_width: int, target_height: int,
                    quality: int = DEFAULT_JPEG_QUALITY) -> RasterImage:
    """Render ``source`` into the target's coordinate frame.

    The output always has exactly ``target_width`` x ``target_height`` pixels
    regardless of the source size; uncovered canvas stays black and pixels
    pushed outside the canvas are clipped.

    Raises:
        DecodeError: source pixel data cannot be decoded.
        TransformError: invalid target dimensions or scale.
    """
    _require_positive_int(target_width, "target width")
    _require_positive_int(target_height, "target height")
    image = decode_image(source.pixel_data)
    canvas = warp_to_canvas(image, alignment, (int(target_width), int(target_height)))
    logger.debug(
        "Aligned %sx%s onto %sx%s (scale=%.3f, x=%.1f, y=%.1f)",
        source.width, source.height, target_width, target_height,
        alignment.scale, alignment.translate_x, alignment.translate_y
    )
    return RasterImage(pixel_data=encode_image(canvas, quality),
                       width=int(target_width), height=int(target_height))


def _require_positive_int(value, name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, Integral) or value <= 0:
        raise TransformError(f"{name} must be a positive integer, got {value!r}")
