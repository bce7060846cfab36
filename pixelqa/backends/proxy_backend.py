"""Remote analyze function backend.

Posts the oracle request body ``{designImageBase64, devImageBase64,
systemInstruction}`` to a deployed analyze endpoint that holds the provider
credentials itself, and returns its JSON body untouched.
"""
import json
import logging
import re
from typing import Any, Dict, List, Optional

import requests

from .base_backend import BaseOracleBackend
from ..core.entities import OracleCandidate, OracleRequest
from ..core.exceptions import CandidateUnavailable, OracleError, OracleTimeoutError

logger = logging.getLogger(__name__)

_HTML_BODY = re.compile(r"^\s*<html", re.IGNORECASE)


class ProxyBackend(BaseOracleBackend):
    name = "proxy"
    requires_api_key = False

    def __init__(self, config: Dict[str, Any], session: Optional[requests.Session] = None):
        super().__init__(config)
        self._session = session or requests.Session()

    def default_models(self) -> List[str]:
        # The remote function picks the model; one candidate per endpoint.
        return ["remote"]

    def default_endpoints(self) -> List[Optional[str]]:
        return []

    def candidates(self, preferred_model: Optional[str] = None,
                   endpoint: Optional[str] = None) -> List[OracleCandidate]:
        if not endpoint:
            return []
        return [OracleCandidate(backend=self.name, endpoint=endpoint, model=preferred_model or "remote")]

    def analyze(self, request: OracleRequest, candidate: OracleCandidate) -> str:
        endpoint, model = candidate.endpoint, candidate.model
        logger.debug(f"Posting analysis request to {endpoint}")
        try:
            response = self._session.post(endpoint, json=request.to_payload(), timeout=self.timeout)
        except requests.Timeout as e:
            raise OracleTimeoutError(f"Timed out after {self.timeout:g}s: {e}",
                                     endpoint=endpoint, model=model) from e
        except requests.RequestException as e:
            raise CandidateUnavailable(f"Request failed: {e}", endpoint=endpoint, model=model) from e

        text = response.text or ""
        if not response.ok:
            if _HTML_BODY.match(text):
                raise CandidateUnavailable(f"HTML error page (HTTP {response.status_code})",
                                           status=response.status_code, endpoint=endpoint, model=model)
            raise _envelope_error(text, response.status_code, endpoint, model)

        if not text.strip():
            raise CandidateUnavailable("Empty response body", endpoint=endpoint, model=model)
        return text

    def close(self) -> None:
        self._session.close()


def _envelope_error(text: str, status: int, endpoint: str, model: str) -> OracleError:
    """Build an ``OracleError`` from an ``{error: {...}}`` body, or from the raw text."""
    try:
        body = json.loads(text)
    except ValueError:
        body = None
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return OracleError(
            str(error.get("message") or "Analyze function request failed"),
            code=str(error.get("code") or ""),
            error_type=str(error.get("type") or ""),
            status=status,
            endpoint=error.get("endpoint") or endpoint,
            model=error.get("model") or model,
        )
    return OracleError(text.strip() or "Analyze function request failed",
                       status=status, endpoint=endpoint, model=model)
