"""Comparison session state.

A session is an immutable snapshot of one design/implementation comparison.
Every transition returns a new snapshot, so the analysis worker and the caller
never mutate shared state; the service swaps the current snapshot under a lock.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

from .entities import AlignmentConfig, AnalysisResult, RasterImage


@dataclass(slots=True, frozen=True)
class AnalysisTicket:
    """Identity of one analysis run, captured when the run is triggered."""
    run_id: int
    design_fingerprint: str
    dev_fingerprint: str
    alignment: AlignmentConfig


@dataclass(slots=True, frozen=True)
class ComparisonSession:
    design: Optional[RasterImage] = None
    dev: Optional[RasterImage] = None
    alignment: AlignmentConfig = AlignmentConfig()
    result: Optional[AnalysisResult] = None
    error: Optional[str] = None
    is_analyzing: bool = False
    run_id: int = 0
    active_issue_index: Optional[int] = None
    ignore_content: bool = False

    @property
    def has_images(self) -> bool:
        return self.design is not None and self.dev is not None

    @property
    def can_analyze(self) -> bool:
        return self.has_images and not self.is_analyzing

    # -- uploads and alignment --

    def with_design(self, image: RasterImage) -> "ComparisonSession":
        return replace(self, design=image, alignment=AlignmentConfig(),
                       active_issue_index=None)

    def with_dev(self, image: RasterImage) -> "ComparisonSession":
        return replace(self, dev=image, alignment=AlignmentConfig(),
                       active_issue_index=None)

    def with_alignment(self, alignment: AlignmentConfig) -> "ComparisonSession":
        return replace(self, alignment=alignment)

    def reset_alignment(self) -> "ComparisonSession":
        return replace(self, alignment=AlignmentConfig())

    # -- analysis lifecycle --

    def begin_analysis(self) -> tuple["ComparisonSession", Optional[AnalysisTicket]]:
        """Start a run. Returns ``(self, None)`` when a run cannot start."""
        if not self.can_analyze:
            return self, None
        run_id = self.run_id + 1
        ticket = AnalysisTicket(
            run_id=run_id,
            design_fingerprint=self.design.fingerprint,
            dev_fingerprint=self.dev.fingerprint,
            alignment=self.alignment,
        )
        started = replace(self, is_analyzing=True, run_id=run_id, result=None,
                          error=None, active_issue_index=None)
        return started, ticket

    def is_current(self, ticket: AnalysisTicket) -> bool:
        """True when ``ticket`` still describes the images on screen."""
        return (
            ticket.run_id == self.run_id
            and self.design is not None
            and self.dev is not None
            and ticket.design_fingerprint == self.design.fingerprint
            and ticket.dev_fingerprint == self.dev.fingerprint
        )

    def apply_result(self, ticket: AnalysisTicket, result: AnalysisResult) -> "ComparisonSession":
        if ticket.run_id != self.run_id:
            return self
        if not self.is_current(ticket):
            return replace(self, is_analyzing=False)
        return replace(self, result=result, error=None, is_analyzing=False)

    def fail(self, ticket: AnalysisTicket, message: str) -> "ComparisonSession":
        if ticket.run_id != self.run_id:
            return self
        if not self.is_current(ticket):
            return replace(self, is_analyzing=False)
        return replace(self, error=message, is_analyzing=False)

    def reset(self) -> "ComparisonSession":
        # Bumping run_id orphans any outstanding request.
        return ComparisonSession(run_id=self.run_id + 1)

    # -- result view state --

    def select_issue(self, index: Optional[int]) -> "ComparisonSession":
        return replace(self, active_issue_index=index)

    def with_ignore_content(self, ignore: bool) -> "ComparisonSession":
        # Indices shift when the filter changes.
        return replace(self, ignore_content=ignore, active_issue_index=None)
