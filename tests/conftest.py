"""Pytest configuration and shared fixtures for PixelQA.

Provides synthetic design/implementation screenshots, a ready-made
configuration and canned oracle responses so that no test needs network
access or real API keys.
"""
import json
import logging
import os
import sys
import tempfile
from pathlib import Path
from unittest.mock import Mock, patch

import cv2
import numpy as np
import pytest

# Add the project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from pixelqa.backends.base_backend import BaseOracleBackend
from pixelqa.config.settings import Config
from pixelqa.core.entities import OracleCandidate, RasterImage
from pixelqa.utils.image_utils import normalize_image

# Disable some verbose loggers during testing
logging.getLogger('PIL').setLevel(logging.WARNING)
logging.getLogger('urllib3').setLevel(logging.WARNING)

ENV_KEYS = (
    "PIXELQA_BACKEND", "PIXELQA_MODEL", "PIXELQA_ENDPOINT", "PIXELQA_TIMEOUT",
    "PIXELQA_TARGET_WIDTH", "PIXELQA_LOG_DIR", "DEBUG_LOGGING",
    "GEMINI_API_KEY", "GOOGLE_API_KEY", "GEMINI_MODEL",
    "DASHSCOPE_API_KEY", "VITE_DASHSCOPE_API_KEY", "DASHSCOPE_MODEL", "VITE_DASHSCOPE_MODEL",
    "DASHSCOPE_ENDPOINT", "VITE_DASHSCOPE_ENDPOINT", "DASHSCOPE_WORKSPACE",
    "VITE_DASHSCOPE_WORKSPACE", "DASHSCOPE_TIMEOUT_MS",
)


def encode_png(image: np.ndarray) -> bytes:
    ok, encoded = cv2.imencode(".png", image)
    assert ok
    return encoded.tobytes()


def decode(raster: RasterImage) -> np.ndarray:
    return cv2.imdecode(np.frombuffer(raster.pixel_data, dtype=np.uint8), cv2.IMREAD_COLOR)


@pytest.fixture
def temp_dir():
    """Provide a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def clean_env():
    """Run with no PixelQA/provider variables from the developer's shell."""
    saved = {k: os.environ.pop(k) for k in ENV_KEYS if k in os.environ}
    try:
        yield
    finally:
        os.environ.update(saved)


@pytest.fixture
def sample_image():
    """Provide a sample BGR image (100x100)."""
    image = np.zeros((100, 100, 3), dtype=np.uint8)

    # Blue square in top-left
    image[10:40, 10:40] = [255, 0, 0]

    # Green circle in center
    cv2.circle(image, (50, 50), 15, (0, 255, 0), -1)

    # Red rectangle in bottom-right
    image[60:90, 60:90] = [0, 0, 255]

    return image


@pytest.fixture
def design_bytes():
    """A 400x300 'mockup': white page with a dark header and a blue button."""
    image = np.full((300, 400, 3), 255, dtype=np.uint8)
    image[0:40, :] = (60, 60, 60)
    cv2.rectangle(image, (150, 200), (250, 240), (200, 100, 0), -1)
    return encode_png(image)


@pytest.fixture
def dev_bytes():
    """A 400x300 'implementation' whose button is shifted and recolored."""
    image = np.full((300, 400, 3), 255, dtype=np.uint8)
    image[0:40, :] = (60, 60, 60)
    cv2.rectangle(image, (160, 210), (260, 250), (0, 100, 200), -1)
    return encode_png(image)


@pytest.fixture
def design_raster(design_bytes):
    return normalize_image(design_bytes, target_width=200)


@pytest.fixture
def dev_raster(dev_bytes):
    return normalize_image(dev_bytes, target_width=200)


@pytest.fixture
def test_config():
    """Provide a real configuration wired for the DashScope backend."""
    return Config(
        oracle_backend="dashscope",
        dashscope_api_key="sk-test-key-for-testing-only",
        oracle_timeout=5,
        target_width=200,
        log_dir="test_logs",
    )


@pytest.fixture
def oracle_payload():
    """A typical oracle answer: two issues, one of them with a broken box."""
    return {
        "summary": "按钮颜色和位置与设计稿不一致",
        "issues": [
            {
                "title": "按钮位置偏移",
                "description": "按钮向右下偏移约 10px",
                "location": "页面底部按钮",
                "severity": "Medium",
                "category": "Layout",
                "box_2d": [0.7, 0.4, 0.84, 0.65],
            },
            {
                "title": "按钮颜色错误",
                "description": "按钮背景应为蓝色",
                "location": "页面底部按钮",
                "severity": "High",
                "category": "Style",
                "box_2d": [700, "wide", 840, 650],
            },
        ],
    }


@pytest.fixture
def oracle_text(oracle_payload):
    return json.dumps(oracle_payload, ensure_ascii=False)


@pytest.fixture
def mock_backend(oracle_text):
    """Backend double that answers every candidate with ``oracle_text``."""
    backend = Mock(spec=BaseOracleBackend)
    backend.name = "mock"
    backend.requires_api_key = True
    backend.api_key = "test-key"
    backend.analyze.return_value = oracle_text
    backend.candidates.return_value = [
        OracleCandidate(backend="mock", endpoint="https://primary.test", model="model-a"),
        OracleCandidate(backend="mock", endpoint="https://primary.test", model="model-b"),
        OracleCandidate(backend="mock", endpoint="https://fallback.test", model="model-a"),
    ]
    return backend


@pytest.fixture
def api_key_env(clean_env):
    """Provide environment variables for API keys during testing."""
    with patch.dict(os.environ, {
        'DASHSCOPE_API_KEY': 'sk-test-api-key-for-testing-only',
        'PIXELQA_BACKEND': 'dashscope',
    }):
        yield


@pytest.fixture
def make_png():
    """Factory: encode a BGR array (or a solid color of a given size) as PNG bytes."""
    def _make(image=None, width: int = 100, height: int = 80, color=(255, 255, 255)) -> bytes:
        if image is None:
            image = np.full((height, width, 3), color, dtype=np.uint8)
        return encode_png(image)
    return _make


@pytest.fixture
def decode_raster():
    """Decode a RasterImage back to a BGR array."""
    return decode
