"""DashScope (Qwen-VL) backend over the OpenAI-compatible chat-completions API."""
import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

import requests

from .base_backend import (
    COMPARE_PROMPT, DESIGN_LABEL, DEV_LABEL, JSON_REMINDER, BaseOracleBackend, clean_base64
)
from ..core.entities import OracleCandidate, OracleRequest
from ..core.exceptions import CandidateUnavailable, OracleError, OracleTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://dashscope.aliyuncs.com"
INTL_BASE_URL = "https://dashscope-intl.aliyuncs.com"
COMPLETIONS_PATH = "/compatible-mode/v1/chat/completions"

DEFAULT_MODEL = "qwen-vl-max"
FALLBACK_MODELS = [
    "qwen-vl-max",
    "qwen-vl-max-latest",
    "qwen3-vl-32b-thinking",
    "qwen3-vl-32b-instruct",
    "qwen3-vl-30b-a3b-thinking",
    "qwen3-vl-30b-a3b-instruct",
    "qwen3-vl-8b-thinking",
]

_HTML_BODY = re.compile(r"^\s*<html", re.IGNORECASE)


class DashScopeBackend(BaseOracleBackend):
    """Qwen-VL models through DashScope compatible mode."""

    name = "dashscope"

    def __init__(self, config: Dict[str, Any], session: Optional[requests.Session] = None):
        super().__init__(config)
        self.workspace: str = config.get("workspace") or ""
        self._session = session or requests.Session()

    def default_models(self) -> List[str]:
        return list(FALLBACK_MODELS)

    def default_endpoints(self) -> List[Optional[str]]:
        return [DEFAULT_BASE_URL + COMPLETIONS_PATH, INTL_BASE_URL + COMPLETIONS_PATH]

    def resolve_endpoint(self, endpoint: str) -> str:
        # A bare host gets the compatible-mode path appended.
        endpoint = endpoint.rstrip("/")
        if endpoint.endswith("/chat/completions"):
            return endpoint
        return endpoint + COMPLETIONS_PATH

    def candidates(self, preferred_model: Optional[str] = None,
                   endpoint: Optional[str] = None) -> List[OracleCandidate]:
        return super().candidates(preferred_model or DEFAULT_MODEL, endpoint)

    def build_payload(self, request: OracleRequest, model: str) -> Dict[str, Any]:
        design_url = f"data:image/jpeg;base64,{clean_base64(request.design_image_base64)}"
        dev_url = f"data:image/jpeg;base64,{clean_base64(request.dev_image_base64)}"
        return {
            "model": model,
            "messages": [
                {
                    "role": "system",
                    "content": [{"type": "text", "text": (request.system_instruction or "") + JSON_REMINDER}],
                },
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": DESIGN_LABEL},
                        {"type": "image_url", "image_url": {"url": design_url}},
                        {"type": "text", "text": DEV_LABEL},
                        {"type": "image_url", "image_url": {"url": dev_url}},
                        {"type": "text", "text": COMPARE_PROMPT},
                    ],
                },
            ],
            "response_format": {"type": "json_object"},
        }

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
            "X-DashScope-API-Key": self.api_key,
        }
        if self.workspace:
            headers["X-DashScope-Workspace"] = self.workspace
        return headers

    def analyze(self, request: OracleRequest, candidate: OracleCandidate) -> str:
        endpoint, model = candidate.endpoint, candidate.model
        try:
            response = self._session.post(
                endpoint,
                json=self.build_payload(request, model),
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise OracleTimeoutError(f"Timed out after {self.timeout:g}s: {e}",
                                     endpoint=endpoint, model=model) from e
        except requests.RequestException as e:
            raise CandidateUnavailable(f"Request failed: {e}", endpoint=endpoint, model=model) from e

        text = response.text or ""
        if not response.ok:
            code, error_type, message = _parse_error_body(text)
            if _HTML_BODY.match(text):
                raise CandidateUnavailable(f"HTML error page (HTTP {response.status_code})",
                                           status=response.status_code, endpoint=endpoint, model=model)
            if code == "model_not_found":
                raise CandidateUnavailable(message or "Model not found", code=code,
                                           status=response.status_code, endpoint=endpoint, model=model)
            raise OracleError(message or "DashScope request failed", code=code, error_type=error_type,
                              status=response.status_code, endpoint=endpoint, model=model)

        try:
            data = json.loads(text)
        except ValueError as e:
            raise CandidateUnavailable(f"Response body is not JSON: {e}", endpoint=endpoint, model=model) from e

        content = _first_message_content(data)
        if not content or not isinstance(content, str):
            raise CandidateUnavailable("Response has no message content", endpoint=endpoint, model=model)
        return content

    def close(self) -> None:
        self._session.close()


def _parse_error_body(text: str) -> Tuple[str, str, str]:
    """``(code, type, message)`` from an error body; blanks when it is not JSON."""
    try:
        body = json.loads(text)
    except ValueError:
        return "", "", ""
    error = body.get("error") if isinstance(body, dict) else None
    if not isinstance(error, dict):
        return "", "", ""
    return (str(error.get("code") or ""), str(error.get("type") or ""),
            str(error.get("message") or ""))


def _first_message_content(data: Any) -> Any:
    if not isinstance(data, dict):
        return None
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message")
    if not isinstance(message, dict):
        return None
    return message.get("content")
