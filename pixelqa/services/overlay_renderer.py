"""Preview rendering: design overlay or side-by-side view with issue boxes."""
import logging
from pathlib import Path
from typing import Optional, Sequence, Tuple, Union

import cv2
import numpy as np

from ..core.entities import AlignmentConfig, Discrepancy, RasterImage
from ..core.exceptions import TransformError
from ..utils.geometry import box_area, box_to_pixels
from ..utils.image_utils import decode_image, warp_to_canvas

logger = logging.getLogger(__name__)

DEFAULT_OPACITY = 0.5
ACTIVE_COLOR = (0, 0, 255)    # red, BGR
INACTIVE_COLOR = (0, 255, 255)  # yellow, BGR


def blend_overlay(design: np.ndarray, dev: np.ndarray, alignment: AlignmentConfig,
                  opacity: float = DEFAULT_OPACITY) -> np.ndarray:
    """Aligned design drawn over ``dev`` at ``opacity``.

    Only pixels the design actually covers are blended; the rest of the
    implementation shows through unchanged.
    """
    if not 0.0 <= opacity <= 1.0:
        raise TransformError(f"Opacity must be within [0, 1], got {opacity!r}")
    height, width = dev.shape[:2]
    warped = warp_to_canvas(design, alignment, (width, height))
    coverage = warp_to_canvas(np.full(design.shape[:2], 255, dtype=np.uint8), alignment, (width, height))

    blended = cv2.addWeighted(warped, opacity, dev, 1.0 - opacity, 0)
    result = dev.copy()
    covered = coverage > 0
    result[covered] = blended[covered]
    return result


def side_by_side(design: np.ndarray, dev: np.ndarray, alignment: AlignmentConfig) -> np.ndarray:
    """Aligned design on the left, implementation on the right."""
    height, width = dev.shape[:2]
    warped = warp_to_canvas(design, alignment, (width, height))
    return np.hstack([warped, dev])


def draw_issue_boxes(image: np.ndarray, issues: Sequence[Discrepancy],
                     frame_size: Tuple[int, int], active_index: Optional[int] = None,
                     x_offset: int = 0) -> np.ndarray:
    """Draw each issue's box in place; the active one red and labelled ``#n title``.

    ``frame_size`` is the (width, height) of the implementation raster the
    boxes refer to; ``x_offset`` shifts them when that raster is not at x=0.
    """
    width, height = frame_size
    drawn = 0
    # Active box last so it stays on top.
    order = [i for i in range(len(issues)) if i != active_index]
    if active_index is not None and 0 <= active_index < len(issues):
        order.append(active_index)

    for index in order:
        issue = issues[index]
        if issue.box is None or box_area(issue.box) == 0:
            continue
        x1, y1, x2, y2 = box_to_pixels(issue.box, width, height)
        active = index == active_index
        color = ACTIVE_COLOR if active else INACTIVE_COLOR
        cv2.rectangle(image, (x1 + x_offset, y1), (x2 + x_offset, y2), color, 3 if active else 2)
        if active:
            label = _ascii_label(f"#{index + 1} {issue.title}")
            cv2.putText(image, label, (x1 + x_offset, max(12, y1 - 6)),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.5, color, 1, cv2.LINE_AA)
        drawn += 1

    logger.debug(f"Drew {drawn} of {len(issues)} issue boxes")
    return image


def render_preview(design: RasterImage, dev: RasterImage, alignment: AlignmentConfig,
                   issues: Sequence[Discrepancy] = (), active_index: Optional[int] = None,
                   mode: str = "overlay", opacity: float = DEFAULT_OPACITY) -> np.ndarray:
    """Render the comparison view as a BGR array.

    Args:
        mode: ``"overlay"`` or ``"side_by_side"``
    """
    design_img = decode_image(design.pixel_data)
    dev_img = decode_image(dev.pixel_data)
    frame_size = (dev_img.shape[1], dev_img.shape[0])

    if mode == "overlay":
        canvas = blend_overlay(design_img, dev_img, alignment, opacity)
        x_offset = 0
    elif mode == "side_by_side":
        canvas = side_by_side(design_img, dev_img, alignment)
        x_offset = frame_size[0]
    else:
        raise ValueError(f"Unknown preview mode: {mode}")

    return draw_issue_boxes(canvas, issues, frame_size, active_index, x_offset)


def save_preview(image: np.ndarray, path: Union[str, Path]) -> Path:
    """Write ``image`` to ``path``; the extension picks the format."""
    path = Path(path)
    ok, encoded = cv2.imencode(path.suffix or ".png", image)
    if not ok:
        raise TransformError(f"Could not encode preview as {path.suffix or '.png'}")
    path.write_bytes(encoded.tobytes())
    logger.info(f"Preview saved to {path}")
    return path


def _ascii_label(text: str) -> str:
    # Hershey fonts only cover ASCII.
    return text.encode("ascii", "replace").decode("ascii")
