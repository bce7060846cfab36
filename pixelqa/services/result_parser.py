"""Turn raw oracle output into an ``AnalysisResult``.

Oracle output is only loosely typed. The top level must be a JSON object;
individual issues are repaired where possible (unknown severity/category are
coerced, bad boxes are dropped) and never reject the whole result.
"""
import json
import logging
import re
from collections.abc import Mapping
from typing import Any, Optional, Union

from ..core.entities import AnalysisResult, Discrepancy, IssueCategory, Severity
from ..core.exceptions import OracleError
from ..utils.geometry import normalize_box

logger = logging.getLogger(__name__)

INVALID_JSON = "invalid_json"

_CODE_FENCE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL | re.IGNORECASE)

_SEVERITIES = {s.value.lower(): s for s in Severity}
_CATEGORIES = {c.value.lower(): c for c in IssueCategory}


def strip_code_fence(text: str) -> str:
    match = _CODE_FENCE.match(text)
    return match.group(1) if match else text.strip()


def load_payload(raw: Union[str, bytes, Mapping]) -> dict:
    """Decode oracle output into a dict.

    Raises:
        OracleError: ``code="invalid_json"`` when the output is not a JSON
            object; the envelope's code otherwise when it is an
            ``{"error": {...}}`` body.
    """
    if isinstance(raw, Mapping):
        payload = dict(raw)
    else:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")
        try:
            payload = json.loads(strip_code_fence(raw or ""))
        except ValueError as e:
            raise OracleError(f"Oracle output is not valid JSON: {e}", code=INVALID_JSON) from e
        if not isinstance(payload, dict):
            raise OracleError(f"Oracle output must be a JSON object, got {type(payload).__name__}",
                              code=INVALID_JSON)

    error = payload.get("error")
    if error and "issues" not in payload:
        if isinstance(error, Mapping):
            raise OracleError(str(error.get("message") or "Analysis failed"),
                              code=str(error.get("code") or ""),
                              error_type=str(error.get("type") or ""),
                              status=error.get("status"))
        raise OracleError(str(error))
    return payload


def coerce_severity(value: Any) -> Severity:
    severity = _SEVERITIES.get(str(value).strip().lower()) if value is not None else None
    if severity is None:
        logger.warning(f"Unknown severity {value!r}, treating as Low")
        return Severity.LOW
    return severity


def coerce_category(value: Any) -> IssueCategory:
    category = _CATEGORIES.get(str(value).strip().lower()) if value is not None else None
    if category is None:
        logger.warning(f"Unknown category {value!r}, treating as Layout")
        return IssueCategory.LAYOUT
    return category


def parse_issue(raw: Any) -> Optional[Discrepancy]:
    """One issue, or ``None`` when ``raw`` is not an object at all."""
    if not isinstance(raw, Mapping):
        logger.debug(f"Skipping non-object issue: {raw!r}")
        return None
    box = normalize_box(raw)
    if box is None and any(k in raw for k in ("box_2d", "bbox", "bounding_box", "rect")):
        logger.debug(f"Dropping unusable box for issue {raw.get('title')!r}")
    return Discrepancy(
        title=_text(raw.get("title")),
        description=_text(raw.get("description")),
        location=_text(raw.get("location")),
        severity=coerce_severity(raw.get("severity")),
        category=coerce_category(raw.get("category")),
        box=box,
    )


def parse_result(raw: Union[str, bytes, Mapping]) -> AnalysisResult:
    """Parse oracle output, normalizing every issue's box."""
    payload = load_payload(raw)
    raw_issues = payload.get("issues")
    if not isinstance(raw_issues, list):
        if raw_issues is not None:
            logger.warning(f"'issues' is {type(raw_issues).__name__}, expected a list; ignoring")
        raw_issues = []
    issues = [issue for issue in (parse_issue(i) for i in raw_issues) if issue is not None]
    logger.debug(f"Parsed {len(issues)} of {len(raw_issues)} issues")
    return AnalysisResult(summary=_text(payload.get("summary")), issues=tuple(issues))


def _text(value: Any) -> str:
    return "" if value is None else str(value)
