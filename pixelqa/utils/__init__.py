"""Utility functions package."""

from .geometry import box_area, box_to_pixels, normalize_box, raw_box, scale_coordinate
from .image_utils import (
    decode_image, encode_image, normalize_image, normalize_image_file,
    transform_image, warp_to_canvas
)

__all__ = [
    "box_area", "box_to_pixels", "normalize_box", "raw_box", "scale_coordinate",
    "decode_image", "encode_image", "normalize_image", "normalize_image_file",
    "transform_image", "warp_to_canvas",
]
