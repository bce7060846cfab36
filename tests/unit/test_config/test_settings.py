"""Unit tests for configuration loading and environment handling."""
import json
import os
from unittest.mock import patch

import pytest

from pixelqa.config.defaults import DEFAULT_CONFIG
from pixelqa.config.env_config import (
    EnvironmentError, EnvironmentValidator, load_env_file, load_environment_config
)
from pixelqa.config.settings import Config, load_config, save_config


class TestEnvironmentValidator:
    """Test environment value validation."""

    @pytest.mark.parametrize("raw,expected", [
        ("  qwen-vl-max ", "qwen-vl-max"),
        ('"quoted"', "quoted"),
        ("`backticked`", "backticked"),
        ("'single'", "single"),
        ("``", None),
        ("", None),
        (None, None),
    ])
    def test_sanitize_value(self, raw, expected):
        assert EnvironmentValidator.sanitize_value(raw) == expected

    def test_validate_backend(self):
        assert EnvironmentValidator.validate_backend(" DashScope ") == "dashscope"
        with pytest.raises(EnvironmentError):
            EnvironmentValidator.validate_backend("openai")

    def test_validate_numeric_range(self):
        assert EnvironmentValidator.validate_numeric_range("30", 1, 300) == 30
        with pytest.raises(EnvironmentError):
            EnvironmentValidator.validate_numeric_range("0", 1, 300)
        with pytest.raises(EnvironmentError):
            EnvironmentValidator.validate_numeric_range("abc", 1, 300)


class TestLoadEnvironmentConfig:
    """Environment variables and .env files."""

    def test_empty_environment(self, clean_env, temp_dir):
        env = load_environment_config(str(temp_dir / "missing.env"))

        assert env.overrides() == {}

    def test_reads_env_file(self, clean_env, temp_dir):
        env_file = temp_dir / ".env"
        env_file.write_text(
            "# comment\n"
            "PIXELQA_BACKEND=dashscope\n"
            "export DASHSCOPE_API_KEY='sk-from-file'\n"
            "DASHSCOPE_WORKSPACE=`ws-1`\n"
            "PIXELQA_TIMEOUT=45\n",
            encoding="utf-8",
        )

        env = load_environment_config(str(env_file))

        assert env.oracle_backend == "dashscope"
        assert env.dashscope_api_key == "sk-from-file"
        assert env.dashscope_workspace == "ws-1"
        assert env.oracle_timeout == 45

    def test_legacy_dashscope_names(self, clean_env, temp_dir):
        with patch.dict(os.environ, {
            "VITE_DASHSCOPE_API_KEY": "sk-vite",
            "DASHSCOPE_MODEL": "qwen3-vl-32b-instruct",
            "DASHSCOPE_ENDPOINT": "https://example.test",
            "DASHSCOPE_TIMEOUT_MS": "15000",
        }):
            env = load_environment_config(str(temp_dir / "missing.env"))

        assert env.dashscope_api_key == "sk-vite"
        assert env.oracle_model == "qwen3-vl-32b-instruct"
        assert env.oracle_endpoint == "https://example.test"
        assert env.oracle_timeout == 15

    @pytest.mark.parametrize("name,value", [
        ("PIXELQA_TIMEOUT", "0"),
        ("PIXELQA_TIMEOUT", "abc"),
        ("PIXELQA_TARGET_WIDTH", "huge"),
        ("DASHSCOPE_TIMEOUT_MS", "-5"),
        ("PIXELQA_BACKEND", "openai"),
    ])
    def test_invalid_value_is_skipped_alone(self, clean_env, temp_dir, name, value):
        with patch.dict(os.environ, {name: value, "DASHSCOPE_API_KEY": "sk-still-here",
                                     "DASHSCOPE_WORKSPACE": "ws-1"}):
            env = load_environment_config(str(temp_dir / "missing.env"))

        assert env.dashscope_api_key == "sk-still-here"
        assert env.dashscope_workspace == "ws-1"
        assert env.oracle_timeout is None
        assert env.target_width is None
        assert env.oracle_backend is None

    def test_invalid_timeout_falls_back_to_legacy_millis(self, clean_env, temp_dir):
        with patch.dict(os.environ, {"PIXELQA_TIMEOUT": "abc", "DASHSCOPE_TIMEOUT_MS": "30000"}):
            env = load_environment_config(str(temp_dir / "missing.env"))

        assert env.oracle_timeout == 30

    def test_debug_logging_override(self, clean_env, temp_dir):
        with patch.dict(os.environ, {"DEBUG_LOGGING": "true"}):
            env = load_environment_config(str(temp_dir / "missing.env"))

        assert env.overrides() == {"debug": True, "log_level": "DEBUG"}

    def test_load_env_file_missing(self, temp_dir):
        assert load_env_file(str(temp_dir / "nope.env")) == {}


class TestLoadConfig:
    """defaults <- config.json <- environment."""

    def test_defaults(self, clean_env, temp_dir):
        config = load_config(str(temp_dir / "config.json"), str(temp_dir / "missing.env"))

        assert config.oracle_backend == DEFAULT_CONFIG["oracle_backend"]
        assert config.oracle_timeout == 20
        assert config.target_width == 1200
        assert config.overlay_opacity == 0.5

    def test_file_values(self, clean_env, temp_dir):
        path = temp_dir / "config.json"
        path.write_text(json.dumps({"oracle_backend": "proxy", "oracle_endpoint": "https://fn.test/analyze",
                                    "custom_key": 1}))

        config = load_config(str(path), str(temp_dir / "missing.env"))

        assert config.oracle_backend == "proxy"
        assert config.oracle_endpoint == "https://fn.test/analyze"
        assert config.get("custom_key") == 1

    def test_environment_wins_over_file(self, api_key_env, temp_dir):
        path = temp_dir / "config.json"
        path.write_text(json.dumps({"oracle_backend": "gemini"}))

        config = load_config(str(path), str(temp_dir / "missing.env"))

        assert config.oracle_backend == "dashscope"
        assert config.api_key == "sk-test-api-key-for-testing-only"

    def test_invalid_values_fall_back_to_defaults(self, clean_env, temp_dir):
        path = temp_dir / "config.json"
        path.write_text(json.dumps({"oracle_backend": "unknown", "oracle_timeout": -3,
                                    "overlay_opacity": "lots", "excluded_categories": "Content"}))

        config = load_config(str(path), str(temp_dir / "missing.env"))

        assert config.oracle_backend == DEFAULT_CONFIG["oracle_backend"]
        assert config.oracle_timeout == DEFAULT_CONFIG["oracle_timeout"]
        assert config.overlay_opacity == DEFAULT_CONFIG["overlay_opacity"]
        assert config.excluded_categories == []

    def test_one_bad_variable_keeps_backend_and_key(self, clean_env, temp_dir):
        env_file = temp_dir / ".env"
        env_file.write_text(
            "PIXELQA_BACKEND=dashscope\nDASHSCOPE_API_KEY=sk-abcdefabcdefabcdef\nPIXELQA_TIMEOUT=abc\n",
            encoding="utf-8",
        )

        config = load_config(str(temp_dir / "config.json"), str(env_file))

        assert config.oracle_backend == "dashscope"
        assert config.api_key == "sk-abcdefabcdefabcdef"
        assert config.oracle_timeout == DEFAULT_CONFIG["oracle_timeout"]

    def test_malformed_json_uses_defaults(self, clean_env, temp_dir):
        path = temp_dir / "config.json"
        path.write_text("{not json")

        config = load_config(str(path), str(temp_dir / "missing.env"))

        assert config.oracle_timeout == DEFAULT_CONFIG["oracle_timeout"]


class TestSaveConfig:
    def test_api_keys_are_not_written(self, temp_dir):
        path = temp_dir / "config.json"
        config = Config(oracle_backend="dashscope", dashscope_api_key="sk-secret", gemini_api_key="AIza-secret")

        save_config(config, str(path))
        saved = json.loads(path.read_text(encoding="utf-8"))

        assert saved["dashscope_api_key"] == ""
        assert saved["gemini_api_key"] == ""
        assert saved["oracle_backend"] == "dashscope"
        assert "extra" not in saved
