"""Application services."""

from .analysis_gateway import AnalysisGateway
from .comparison_service import ComparisonService
from .issue_ranker import filter_issues, rank_and_filter, rank_issues, visible_result
from .overlay_renderer import render_preview, save_preview
from .result_parser import parse_result

__all__ = [
    "AnalysisGateway", "ComparisonService",
    "filter_issues", "rank_and_filter", "rank_issues", "visible_result",
    "render_preview", "save_preview", "parse_result",
]
