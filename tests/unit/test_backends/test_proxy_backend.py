"""Unit tests for the remote analyze-function backend."""
import json
from unittest.mock import Mock

import pytest
import requests

from pixelqa.backends import create_backend
from pixelqa.backends.proxy_backend import ProxyBackend
from pixelqa.config.settings import Config
from pixelqa.core.entities import OracleCandidate, OracleRequest
from pixelqa.core.exceptions import CandidateUnavailable, ConfigError, OracleError, OracleTimeoutError

ENDPOINT = "https://qa.example.com/.netlify/functions/analyze"
CANDIDATE = OracleCandidate(backend="proxy", endpoint=ENDPOINT, model="remote")


def http_response(status: int, text: str) -> Mock:
    return Mock(status_code=status, ok=200 <= status < 300, text=text)


@pytest.fixture
def session():
    return Mock(spec=requests.Session)


@pytest.fixture
def backend(session):
    return ProxyBackend({"timeout": 12}, session=session)


@pytest.fixture
def request_body():
    return OracleRequest("AAA", "BBB", "instruction")


class TestProxyBackend:
    def test_candidates_need_endpoint(self, backend):
        assert backend.candidates() == []
        assert backend.candidates(endpoint=ENDPOINT) == [CANDIDATE]

    def test_posts_request_body(self, backend, session, request_body):
        session.post.return_value = http_response(200, '{"summary": "ok", "issues": []}')

        text = backend.analyze(request_body, CANDIDATE)

        assert json.loads(text)["summary"] == "ok"
        session.post.assert_called_once_with(ENDPOINT, json=request_body.to_payload(), timeout=12.0)

    def test_error_envelope(self, backend, session, request_body):
        body = json.dumps({"error": {"message": "All candidate models/ endpoints failed."}})
        session.post.return_value = http_response(502, body)

        with pytest.raises(OracleError, match="All candidate") as exc_info:
            backend.analyze(request_body, CANDIDATE)

        assert exc_info.value.status == 502
        assert not isinstance(exc_info.value, CandidateUnavailable)

    def test_plain_text_error(self, backend, session, request_body):
        session.post.return_value = http_response(500, "Function crashed")

        with pytest.raises(OracleError, match="Function crashed"):
            backend.analyze(request_body, CANDIDATE)

    def test_html_page_is_unavailable(self, backend, session, request_body):
        session.post.return_value = http_response(404, "<html>Not found</html>")

        with pytest.raises(CandidateUnavailable):
            backend.analyze(request_body, CANDIDATE)

    def test_empty_body_is_unavailable(self, backend, session, request_body):
        session.post.return_value = http_response(200, "  ")

        with pytest.raises(CandidateUnavailable):
            backend.analyze(request_body, CANDIDATE)

    def test_timeout(self, backend, session, request_body):
        session.post.side_effect = requests.Timeout()

        with pytest.raises(OracleTimeoutError):
            backend.analyze(request_body, CANDIDATE)


class TestCreateBackend:
    """Backend factory."""

    @pytest.mark.parametrize("name", ["gemini", "dashscope", "proxy"])
    def test_creates_named_backend(self, name):
        backend = create_backend(Config(oracle_backend=name))

        assert backend.name == name

    def test_passes_backend_credentials(self):
        backend = create_backend(Config(oracle_backend="dashscope", dashscope_api_key="sk-1",
                                        dashscope_workspace="ws", oracle_timeout=9))

        assert backend.api_key == "sk-1"
        assert backend.workspace == "ws"
        assert backend.timeout == 9

    def test_unknown_backend(self):
        with pytest.raises(ConfigError):
            create_backend(Config(oracle_backend="openai"))
