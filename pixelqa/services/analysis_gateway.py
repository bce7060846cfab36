"""Analysis gateway: one oracle request with sequential candidate fallback.

The gateway owns the candidate list for the configured backend and walks it
in order. A candidate that cannot serve the request (HTML error page, unknown
model, empty or non-JSON output, network error, timeout) hands over to the
next one; any other provider error stops the walk and is raised as-is.
"""
import logging
from typing import Any, Dict, List, Optional

from ..backends import BaseOracleBackend, create_backend
from ..core.entities import AnalysisResult, OracleCandidate, OracleRequest, RasterImage
from ..core.exceptions import CandidateUnavailable, ConfigError, OracleError, OracleTimeoutError
from .prompts import SYSTEM_INSTRUCTION
from .result_parser import INVALID_JSON, load_payload, parse_result

logger = logging.getLogger(__name__)

EXHAUSTED_MESSAGE = "All candidate models/ endpoints failed."


class AnalysisGateway:
    """Sends a design/implementation pair to the configured oracle."""

    def __init__(self, config, backend: Optional[BaseOracleBackend] = None,
                 system_instruction: str = SYSTEM_INSTRUCTION):
        self.config = config
        self.backend = backend or create_backend(config)
        self.system_instruction = system_instruction

    def candidates(self) -> List[OracleCandidate]:
        return self.backend.candidates(self.config.oracle_model or None,
                                       self.config.oracle_endpoint or None)

    def build_request(self, design: RasterImage, dev: RasterImage) -> OracleRequest:
        return OracleRequest(
            design_image_base64=design.to_base64(),
            dev_image_base64=dev.to_base64(),
            system_instruction=self.system_instruction,
        )

    def _check_ready(self) -> None:
        if self.backend.requires_api_key and not self.backend.api_key:
            raise ConfigError(f"No API key configured for the '{self.backend.name}' backend")
        if self.backend.name == "proxy" and not self.config.oracle_endpoint:
            raise ConfigError("The proxy backend needs an endpoint (PIXELQA_ENDPOINT)")

    def request_analysis(self, request: OracleRequest) -> Dict[str, Any]:
        """Return the first candidate's decoded JSON payload.

        Raises:
            ConfigError: credentials or endpoint missing; nothing was sent.
            OracleTimeoutError: every candidate failed and the last one timed out.
            OracleError: a non-recoverable provider error, or all candidates failed.
        """
        self._check_ready()
        last_failure: Optional[OracleError] = None
        attempts = 0

        for candidate in self.candidates():
            attempts += 1
            logger.debug(f"Trying candidate {candidate}")
            try:
                text = self.backend.analyze(request, candidate)
                payload = load_payload(text)
            except (CandidateUnavailable, OracleTimeoutError) as e:
                logger.warning(f"Candidate {candidate} unavailable: {e.message}")
                last_failure = e
                continue
            except OracleError as e:
                if e.code != INVALID_JSON:
                    logger.error(f"Oracle error from {candidate}: {e.message}")
                    e.endpoint = e.endpoint or candidate.endpoint
                    e.model = e.model or candidate.model
                    raise
                logger.warning(f"Candidate {candidate} returned unusable output: {e.message}")
                last_failure = e
                continue

            logger.info(f"Analysis served by {candidate} after {attempts} attempt(s)")
            return payload

        logger.error(f"{EXHAUSTED_MESSAGE} ({attempts} attempt(s))")
        if isinstance(last_failure, OracleTimeoutError):
            raise OracleTimeoutError(EXHAUSTED_MESSAGE, status=502,
                                     endpoint=last_failure.endpoint, model=last_failure.model)
        raise OracleError(EXHAUSTED_MESSAGE, status=502)

    def analyze(self, design: RasterImage, dev: RasterImage) -> AnalysisResult:
        """Request an analysis and parse it; boxes come back normalized."""
        return parse_result(self.request_analysis(self.build_request(design, dev)))

    def health(self) -> Dict[str, Any]:
        """Configuration summary without secrets."""
        return {
            "has_key": bool(self.backend.api_key),
            "backend": self.backend.name,
            "endpoint": self.config.oracle_endpoint or None,
            "model": self.config.oracle_model or None,
            "workspace": self.config.dashscope_workspace or None,
        }

    def close(self) -> None:
        self.backend.close()
