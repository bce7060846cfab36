"""Severity ordering and category filtering of discrepancies."""
from typing import Iterable, Tuple

from ..core.entities import AnalysisResult, Discrepancy, IssueCategory, Severity

SEVERITY_WEIGHTS = {
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
}


def severity_weight(severity) -> int:
    return SEVERITY_WEIGHTS.get(severity, 0)


def rank_issues(issues: Iterable[Discrepancy]) -> Tuple[Discrepancy, ...]:
    """Highest severity first; equal severities keep their input order."""
    return tuple(sorted(issues, key=lambda issue: -severity_weight(issue.severity)))


def filter_issues(issues: Iterable[Discrepancy], excluded_categories: Iterable = ()) -> Tuple[Discrepancy, ...]:
    excluded = {getattr(c, "value", c) for c in excluded_categories}
    return tuple(issue for issue in issues if issue.category.value not in excluded)


def rank_and_filter(issues: Iterable[Discrepancy], excluded_categories: Iterable = (),
                    ignore_content: bool = False) -> Tuple[Discrepancy, ...]:
    excluded = set(getattr(c, "value", c) for c in excluded_categories)
    if ignore_content:
        excluded.add(IssueCategory.CONTENT.value)
    return filter_issues(rank_issues(issues), excluded)


def visible_result(result: AnalysisResult, excluded_categories: Iterable = (),
                   ignore_content: bool = False) -> AnalysisResult:
    """``result`` with its issues in display order."""
    return result.with_issues(rank_and_filter(result.issues, excluded_categories, ignore_content))
