"""Base backend interface for analysis oracles."""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..core.entities import OracleCandidate, OracleRequest

DESIGN_LABEL = "Design Mockup (Target):"
DEV_LABEL = "Development Screenshot (Implementation):"
COMPARE_PROMPT = ("Compare and find visual discrepancies. "
                  "Return result in Simplified Chinese and strictly JSON.")
JSON_REMINDER = "\nRespond strictly as JSON with fields {summary, issues[]}."


def clean_base64(value: str) -> str:
    """Strip a ``data:...;base64,`` prefix if present."""
    idx = value.find(",")
    return value[idx + 1:] if idx >= 0 else value


class BaseOracleBackend(ABC):
    """Abstract base class for oracle transports.

    A backend knows how to send one ``OracleRequest`` to one candidate
    (endpoint, model) and hand back the raw text the model produced. Candidate
    iteration belongs to the gateway; backends signal how a failure should be
    treated through the exception they raise:

    - ``CandidateUnavailable``: try the next candidate.
    - ``OracleTimeoutError``: the call timed out; try the next candidate.
    - ``OracleError``: stop and surface the error.
    """

    name: str = ""
    requires_api_key: bool = True

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.api_key: str = config.get("api_key") or ""
        self.timeout: float = float(config.get("timeout") or 20)

    @abstractmethod
    def default_models(self) -> List[str]:
        """Built-in fallback models, best first."""
        pass

    @abstractmethod
    def default_endpoints(self) -> List[Optional[str]]:
        """Built-in fallback endpoints, best first. ``None`` means the client default."""
        pass

    @abstractmethod
    def analyze(self, request: OracleRequest, candidate: OracleCandidate) -> str:
        """Send ``request`` to ``candidate`` and return the model's raw text output."""
        pass

    def resolve_endpoint(self, endpoint: str) -> str:
        """Turn a configured endpoint into the URL actually called."""
        return endpoint

    def candidates(self, preferred_model: Optional[str] = None,
                   endpoint: Optional[str] = None) -> List[OracleCandidate]:
        """Endpoints outer, models inner; duplicates removed preserving order."""
        models = _dedupe(([preferred_model] if preferred_model else []) + self.default_models())
        endpoints = _dedupe(([self.resolve_endpoint(endpoint)] if endpoint else []) + self.default_endpoints())
        return [OracleCandidate(backend=self.name, endpoint=ep, model=model)
                for ep in endpoints for model in models]

    def close(self) -> None:
        """Release network resources."""
        pass


def _dedupe(values: List[Optional[str]]) -> List[Optional[str]]:
    seen = set()
    result = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        result.append(value)
    return result
