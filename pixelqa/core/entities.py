"""Domain entities (data-only structures) used across services."""
from __future__ import annotations

import base64
import hashlib
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .exceptions import ValidationError

Box2D = Tuple[int, int, int, int]  # (ymin, xmin, ymax, xmax) on a 0..1000 scale

SCALE_RANGE = (0.5, 2.0)
TRANSLATE_RANGE = (-200.0, 200.0)


class Severity(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class IssueCategory(str, Enum):
    LAYOUT = "Layout"    # spacing, alignment, size
    STYLE = "Style"      # color, font, shadow, radius
    CONTENT = "Content"  # missing element, wrong icon/image


@dataclass(slots=True, frozen=True)
class RasterImage:
    """Encoded raster plus its pixel dimensions."""
    pixel_data: bytes
    width: int
    height: int
    mime_type: str = "image/jpeg"
    fingerprint: str = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if not self.pixel_data:
            raise ValueError("RasterImage requires non-empty pixel data")
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"RasterImage dimensions must be positive, got {self.width}x{self.height}")
        object.__setattr__(self, "fingerprint", hashlib.sha1(self.pixel_data).hexdigest())

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    def to_base64(self) -> str:
        return base64.b64encode(self.pixel_data).decode("ascii")

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.to_base64()}"


@dataclass(slots=True, frozen=True)
class AlignmentConfig:
    """Uniform scale plus translation applied to the design image."""
    scale: float = 1.0
    translate_x: float = 0.0
    translate_y: float = 0.0

    @classmethod
    def clamped(cls, scale: float = 1.0, translate_x: float = 0.0,
                translate_y: float = 0.0) -> "AlignmentConfig":
        """Build a config with every value forced into the slider domain.

        Raises:
            ValidationError: a value is not a finite number.
        """
        values = {"scale": scale, "translate_x": translate_x, "translate_y": translate_y}
        for name, value in values.items():
            try:
                values[name] = float(value)
            except (TypeError, ValueError):
                raise ValidationError(f"{name} must be a number, got {value!r}") from None
            if not math.isfinite(values[name]):
                raise ValidationError(f"{name} must be finite, got {value!r}")
        lo, hi = SCALE_RANGE
        tlo, thi = TRANSLATE_RANGE
        return cls(
            scale=max(lo, min(hi, values["scale"])),
            translate_x=max(tlo, min(thi, values["translate_x"])),
            translate_y=max(tlo, min(thi, values["translate_y"])),
        )

    def is_identity(self) -> bool:
        return self.scale == 1.0 and self.translate_x == 0.0 and self.translate_y == 0.0

    def to_dict(self) -> Dict[str, float]:
        return {"scale": self.scale, "x": self.translate_x, "y": self.translate_y}


@dataclass(slots=True, frozen=True)
class Discrepancy:
    title: str
    description: str
    location: str
    severity: Severity
    category: IssueCategory
    box: Optional[Box2D] = None  # implementation-raster space, never design space

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "title": self.title,
            "description": self.description,
            "location": self.location,
            "severity": self.severity.value,
            "category": self.category.value,
        }
        if self.box is not None:
            data["box_2d"] = list(self.box)
        return data


@dataclass(slots=True, frozen=True)
class AnalysisResult:
    summary: str
    issues: Tuple[Discrepancy, ...] = ()

    def with_issues(self, issues) -> "AnalysisResult":
        return AnalysisResult(summary=self.summary, issues=tuple(issues))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary,
            "issues": [issue.to_dict() for issue in self.issues],
        }


@dataclass(slots=True, frozen=True)
class OracleRequest:
    """Body sent to an analysis oracle (camelCase on the wire)."""
    design_image_base64: str
    dev_image_base64: str
    system_instruction: str

    def to_payload(self) -> Dict[str, str]:
        return {
            "designImageBase64": self.design_image_base64,
            "devImageBase64": self.dev_image_base64,
            "systemInstruction": self.system_instruction,
        }


@dataclass(slots=True, frozen=True)
class OracleCandidate:
    backend: str
    endpoint: Optional[str]
    model: str

    def __str__(self) -> str:
        return f"{self.backend}:{self.model}@{self.endpoint or 'default'}"
