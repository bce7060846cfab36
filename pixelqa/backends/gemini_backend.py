"""Gemini backend using the google-genai SDK."""
import base64
import binascii
import io
import logging
from typing import Any, Dict, List, Optional

from PIL import Image, UnidentifiedImageError
from google import genai
from google.genai import errors, types

from .base_backend import COMPARE_PROMPT, DESIGN_LABEL, DEV_LABEL, BaseOracleBackend, clean_base64
from ..core.entities import OracleCandidate, OracleRequest
from ..core.exceptions import CandidateUnavailable, OracleError, OracleTimeoutError

logger = logging.getLogger(__name__)

FALLBACK_MODELS = ["gemini-2.5-flash", "gemini-2.5-pro", "gemini-2.0-flash"]

_TIMEOUT_STATUSES = (408, 504)


class GeminiBackend(BaseOracleBackend):
    """Sends both screenshots as PIL images and asks for a JSON response."""

    name = "gemini"

    def __init__(self, config: Dict[str, Any], client: Optional["genai.Client"] = None):
        super().__init__(config)
        self.temperature = float(config.get("temperature", 0.2))
        self.max_tokens = int(config.get("max_tokens", 8192))
        self._client = client
        self._clients: Dict[Optional[str], "genai.Client"] = {}

    def default_models(self) -> List[str]:
        return list(FALLBACK_MODELS)

    def default_endpoints(self) -> List[Optional[str]]:
        return [None]

    def _get_client(self, endpoint: Optional[str]) -> "genai.Client":
        if self._client is not None:
            return self._client
        if endpoint not in self._clients:
            # HttpOptions.timeout is in milliseconds
            http_options = types.HttpOptions(timeout=int(self.timeout * 1000), base_url=endpoint)
            self._clients[endpoint] = genai.Client(api_key=self.api_key, http_options=http_options)
            logger.info(f"Gemini client initialized for {endpoint or 'default endpoint'}")
        return self._clients[endpoint]

    def _generation_config(self, system_instruction: str) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=self.temperature,
            max_output_tokens=self.max_tokens,
            response_mime_type="application/json",
        )

    def analyze(self, request: OracleRequest, candidate: OracleCandidate) -> str:
        endpoint, model = candidate.endpoint, candidate.model
        design = _to_pil(request.design_image_base64, "design")
        dev = _to_pil(request.dev_image_base64, "dev")
        contents = [DESIGN_LABEL, design, DEV_LABEL, dev, COMPARE_PROMPT]

        try:
            response = self._get_client(endpoint).models.generate_content(
                model=model,
                contents=contents,
                config=self._generation_config(request.system_instruction),
            )
        except errors.APIError as e:
            status = getattr(e, "code", None)
            message = getattr(e, "message", None) or str(e)
            if status == 404:
                raise CandidateUnavailable(message, code="model_not_found", status=status,
                                           endpoint=endpoint, model=model) from e
            if status in _TIMEOUT_STATUSES:
                raise OracleTimeoutError(message, status=status, endpoint=endpoint, model=model) from e
            raise OracleError(message, code=str(getattr(e, "status", "") or ""), status=status,
                              endpoint=endpoint, model=model) from e
        except Exception as e:
            if "timeout" in type(e).__name__.lower():
                raise OracleTimeoutError(f"Timed out after {self.timeout:g}s: {e}",
                                         endpoint=endpoint, model=model) from e
            raise CandidateUnavailable(f"Request failed: {e}", endpoint=endpoint, model=model) from e

        if response and response.text:
            return response.text

        diagnostic_msg = self._diagnose_empty_response(response, model)
        logger.warning(diagnostic_msg)
        raise CandidateUnavailable(diagnostic_msg, endpoint=endpoint, model=model)

    def _diagnose_empty_response(self, response, model: str) -> str:
        """Explain why a Gemini response carried no text.

        Args:
            response: The GenerateContentResponse object
            model: Model name for context

        Returns:
            Diagnostic message listing block reasons, finish reason and parts
        """
        if not response:
            return f"[{model}] Response object is None"

        diagnostics = []

        feedback = getattr(response, "prompt_feedback", None)
        if feedback:
            block_reason = getattr(feedback, "block_reason", None)
            if block_reason:
                diagnostics.append(f"PROMPT BLOCKED - Reason: {block_reason}")
            else:
                diagnostics.append(f"Prompt feedback present: {feedback}")

        candidates = getattr(response, "candidates", None)
        if not candidates:
            diagnostics.append("No candidates in response")
            return f"[{model}] Empty response - " + "; ".join(diagnostics)

        candidate = candidates[0]
        finish_reason = getattr(candidate, "finish_reason", None)
        if finish_reason is not None:
            reason = getattr(finish_reason, "name", None) or str(finish_reason).split(".")[-1]
            explanations = {
                "SAFETY": "Response blocked by safety filters",
                "MAX_TOKENS": "Response truncated due to token limit (increase oracle_max_tokens)",
                "RECITATION": "Response blocked due to recitation concerns",
                "OTHER": "Response stopped for other reasons",
                "STOP": "Normal completion",
            }
            diagnostics.append(f"Finish reason: {reason}")
            if reason in explanations:
                diagnostics.append(f"Explanation: {explanations[reason]}")

        content = getattr(candidate, "content", None)
        if not content:
            diagnostics.append("Candidate has no content")
        elif not getattr(content, "parts", None):
            diagnostics.append("Candidate content has no parts")
        else:
            diagnostics.append(f"Content parts: {len(content.parts)}, none with text")

        return f"[{model}] Empty response - " + "; ".join(diagnostics)


def _to_pil(data: str, label: str) -> Image.Image:
    try:
        raw = base64.b64decode(clean_base64(data), validate=False)
        image = Image.open(io.BytesIO(raw))
        image.load()
    except (binascii.Error, UnidentifiedImageError, OSError) as e:
        raise OracleError(f"Invalid {label} image in request: {e}") from e
    return image.convert("RGB")
