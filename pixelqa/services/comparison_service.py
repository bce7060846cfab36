"""Comparison workflow orchestration.

Holds the current ``ComparisonSession`` snapshot and runs the pipeline
normalize -> align -> oracle -> parse -> rank against it. Only one analysis
runs at a time; a result that arrives after the images changed is dropped.
"""
from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable, List, Optional, Union

from ..core.entities import AlignmentConfig, AnalysisResult, Discrepancy, RasterImage
from ..core.exceptions import ApplicationError, ConfigError, OracleError
from ..core.logging_config import CorrelationContext
from ..core.session import AnalysisTicket, ComparisonSession
from ..utils.image_utils import normalize_image, normalize_image_file, transform_image
from .analysis_gateway import AnalysisGateway
from .issue_ranker import visible_result

logger = logging.getLogger(__name__)

ImageSource = Union[bytes, str, Path]


class ComparisonService:
    """High-level design-vs-implementation comparison service."""

    def __init__(self, config, gateway: Optional[AnalysisGateway] = None):
        self.config = config
        self.gateway = gateway or AnalysisGateway(config)
        self._session = ComparisonSession()
        self._lock = threading.Lock()
        self._listeners: List[Callable[[ComparisonSession], None]] = []
        self._worker: Optional[threading.Thread] = None

    # -- state --

    @property
    def session(self) -> ComparisonSession:
        with self._lock:
            return self._session

    def add_listener(self, callback: Callable[[ComparisonSession], None]) -> None:
        """Add a listener called with the new snapshot after every change."""
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[ComparisonSession], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _update(self, transition: Callable[[ComparisonSession], ComparisonSession]) -> ComparisonSession:
        with self._lock:
            new_session = transition(self._session)
            changed = new_session is not self._session
            self._session = new_session
        if changed:
            self._notify(new_session)
        return new_session

    def _notify(self, session: ComparisonSession) -> None:
        for callback in list(self._listeners):
            try:
                callback(session)
            except Exception as e:
                logger.error(f"Error in session listener: {e}", exc_info=True)

    # -- uploads and alignment --

    def _normalize(self, source: ImageSource) -> RasterImage:
        if isinstance(source, (bytes, bytearray)):
            return normalize_image(bytes(source), self.config.target_width, self.config.jpeg_quality)
        return normalize_image_file(source, self.config.target_width, self.config.jpeg_quality)

    def upload_design(self, source: ImageSource) -> ComparisonSession:
        """Normalize and store the design mockup; alignment resets."""
        image = self._normalize(source)
        logger.info(f"Design uploaded ({image.width}x{image.height})")
        return self._update(lambda s: s.with_design(image))

    def upload_dev(self, source: ImageSource) -> ComparisonSession:
        """Normalize and store the implementation screenshot; alignment resets."""
        image = self._normalize(source)
        logger.info(f"Implementation uploaded ({image.width}x{image.height})")
        return self._update(lambda s: s.with_dev(image))

    def set_alignment(self, scale: float = 1.0, translate_x: float = 0.0,
                      translate_y: float = 0.0) -> ComparisonSession:
        alignment = AlignmentConfig.clamped(scale, translate_x, translate_y)
        return self._update(lambda s: s.with_alignment(alignment))

    def reset_alignment(self) -> ComparisonSession:
        return self._update(lambda s: s.reset_alignment())

    def reset(self) -> ComparisonSession:
        """Discard images, result and alignment. An outstanding run is orphaned."""
        logger.info("Session reset")
        return self._update(lambda s: s.reset())

    def select_issue(self, index: Optional[int]) -> ComparisonSession:
        return self._update(lambda s: s.select_issue(index))

    def set_ignore_content(self, ignore: bool) -> ComparisonSession:
        return self._update(lambda s: s.with_ignore_content(ignore))

    # -- analysis --

    def _begin(self) -> tuple[ComparisonSession, Optional[AnalysisTicket]]:
        with self._lock:
            started, ticket = self._session.begin_analysis()
            self._session = started
        if ticket is not None:
            self._notify(started)
        return started, ticket

    def _run(self, ticket: AnalysisTicket, design: RasterImage, dev: RasterImage) -> ComparisonSession:
        with CorrelationContext() as corr_id:
            logger.info(f"Analysis run {ticket.run_id} started (correlation {corr_id}, "
                        f"alignment {ticket.alignment.to_dict()})")
            try:
                aligned = transform_image(design, ticket.alignment, dev.width, dev.height,
                                          self.config.jpeg_quality)
                result = self.gateway.analyze(aligned, dev)
            except ConfigError as e:
                logger.error(f"Analysis not possible: {e}")
                return self._update(lambda s: s.fail(ticket, str(e)))
            except OracleError as e:
                logger.error(f"Analysis run {ticket.run_id} failed: {e.message}")
                return self._update(lambda s: s.fail(ticket, e.message))
            except ApplicationError as e:
                logger.error(f"Analysis run {ticket.run_id} failed: {e}")
                return self._update(lambda s: s.fail(ticket, str(e)))
            except Exception as e:
                logger.error(f"Unexpected error in analysis run {ticket.run_id}: {e}", exc_info=True)
                return self._update(lambda s: s.fail(ticket, "Analysis failed unexpectedly. Please try again."))

            logger.info(f"Analysis run {ticket.run_id} returned {len(result.issues)} issue(s)")
            session = self._update(lambda s: s.apply_result(ticket, result))
            if session.result is not result:
                logger.info(f"Discarded stale result of run {ticket.run_id}")
            return session

    def analyze(self) -> ComparisonSession:
        """Run one analysis synchronously.

        A call while another run is in flight, or before both images are
        present, returns the current snapshot unchanged.
        """
        started, ticket = self._begin()
        if ticket is None:
            logger.debug("Analyze ignored: missing images or analysis already running")
            return started
        return self._run(ticket, started.design, started.dev)

    def analyze_in_background(self, on_complete: Optional[Callable[[ComparisonSession], None]] = None) -> bool:
        """Start an analysis on a daemon thread. Returns False if nothing was started."""
        started, ticket = self._begin()
        if ticket is None:
            logger.debug("Background analyze ignored: missing images or analysis already running")
            return False

        def worker():
            session = self._run(ticket, started.design, started.dev)
            if on_complete is not None:
                try:
                    on_complete(session)
                except Exception as e:
                    logger.error(f"Error in analysis completion callback: {e}", exc_info=True)

        self._worker = threading.Thread(target=worker, name=f"pixelqa-analysis-{ticket.run_id}", daemon=True)
        self._worker.start()
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the background run finishes. True if none is running."""
        worker = self._worker
        if worker is None:
            return True
        worker.join(timeout)
        return not worker.is_alive()

    # -- result view --

    def visible_result(self) -> Optional[AnalysisResult]:
        """Current result ranked by severity with excluded categories removed."""
        session = self.session
        if session.result is None:
            return None
        return visible_result(session.result, self.config.excluded_categories, session.ignore_content)

    def active_issue(self) -> Optional[Discrepancy]:
        session = self.session
        result = self.visible_result()
        index = session.active_issue_index
        if result is None or index is None or not 0 <= index < len(result.issues):
            return None
        return result.issues[index]

    def close(self) -> None:
        self.gateway.close()
