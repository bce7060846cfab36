"""Environment variable configuration.

Reads oracle credentials and overrides from the process environment and an
optional ``.env`` file. Values are validated here so the rest of the
application can trust them; anything left unset stays ``None`` and the
``config.json``/default value wins.
"""
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

logger = logging.getLogger(__name__)

VALID_BACKENDS = ("gemini", "dashscope", "proxy")


@dataclass(frozen=True)
class EnvironmentConfig:
    """Immutable environment configuration object."""

    oracle_backend: Optional[str]
    oracle_model: Optional[str]
    oracle_endpoint: Optional[str]
    oracle_timeout: Optional[int]
    gemini_api_key: Optional[str]
    dashscope_api_key: Optional[str]
    dashscope_workspace: Optional[str]
    target_width: Optional[int]
    debug_logging: bool
    log_dir: Optional[str]

    def overrides(self) -> Dict[str, object]:
        """Config keys this environment actually sets."""
        values = {
            "oracle_backend": self.oracle_backend,
            "oracle_model": self.oracle_model,
            "oracle_endpoint": self.oracle_endpoint,
            "oracle_timeout": self.oracle_timeout,
            "gemini_api_key": self.gemini_api_key,
            "dashscope_api_key": self.dashscope_api_key,
            "dashscope_workspace": self.dashscope_workspace,
            "target_width": self.target_width,
            "log_dir": self.log_dir,
        }
        result = {k: v for k, v in values.items() if v is not None}
        if self.debug_logging:
            result["debug"] = True
            result["log_level"] = "DEBUG"
        return result


class EnvironmentError(Exception):
    """Custom exception for environment configuration errors."""
    pass


class EnvironmentValidator:
    """Validates environment variable values."""

    GEMINI_API_KEY_PATTERN = re.compile(r'^AIza[0-9A-Za-z_-]{35}$')
    _QUOTES = "'\"`"

    @classmethod
    def sanitize_value(cls, value: Optional[str]) -> Optional[str]:
        """Trim whitespace and surrounding quotes/backticks; empty becomes ``None``."""
        if value is None:
            return None
        cleaned = str(value).strip().strip(cls._QUOTES).strip()
        return cleaned or None

    @classmethod
    def validate_api_key(cls, api_key: str) -> bool:
        """Loose check for Gemini keys; other providers are accepted as-is."""
        if not api_key or not isinstance(api_key, str):
            return False
        if not cls.GEMINI_API_KEY_PATTERN.match(api_key):
            logger.warning("API key does not match expected Gemini format")
            return False
        return True

    @classmethod
    def validate_backend(cls, backend: str) -> str:
        normalized = backend.strip().lower()
        if normalized not in VALID_BACKENDS:
            raise EnvironmentError(
                f"Unknown oracle backend '{backend}', expected one of {', '.join(VALID_BACKENDS)}"
            )
        return normalized

    @classmethod
    def validate_numeric_range(cls, value: Union[str, int, float],
                               min_val: Optional[Union[int, float]] = None,
                               max_val: Optional[Union[int, float]] = None,
                               value_type: type = int) -> Union[int, float]:
        """Validate numeric value within specified range.

        Raises:
            EnvironmentError: If validation fails
        """
        try:
            numeric_value = value_type(value)
        except (ValueError, TypeError):
            raise EnvironmentError(f"Invalid {value_type.__name__} value: {value}")

        if min_val is not None and numeric_value < min_val:
            raise EnvironmentError(f"Value {numeric_value} below minimum {min_val}")

        if max_val is not None and numeric_value > max_val:
            raise EnvironmentError(f"Value {numeric_value} above maximum {max_val}")

        return numeric_value


def load_env_file(env_path: Optional[str] = None) -> Dict[str, str]:
    """Load KEY=VALUE pairs from a ``.env`` file (missing file yields ``{}``)."""
    if env_path is None:
        env_path = ".env"

    env_vars: Dict[str, str] = {}
    env_file_path = Path(env_path)

    if not env_file_path.exists():
        logger.debug(f"Environment file {env_path} not found, using system environment only")
        return env_vars

    try:
        with open(env_file_path, 'r', encoding='utf-8') as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()

                if not line or line.startswith('#'):
                    continue

                if line.startswith('export '):
                    line = line[len('export '):]

                if '=' in line:
                    key, value = line.split('=', 1)
                    env_vars[key.strip()] = value.strip()
                else:
                    logger.warning(f"Invalid line format in {env_path}:{line_num}: {line}")

        logger.info(f"Loaded {len(env_vars)} variables from {env_path}")

    except OSError as e:
        logger.error(f"Error reading environment file {env_path}: {e}")

    return env_vars


def get_env_var(*keys: str, env_vars: Optional[Dict[str, str]] = None,
                default: Optional[str] = None) -> Optional[str]:
    """First non-empty value among ``keys``; ``.env`` entries win over the process env."""
    for key in keys:
        if env_vars and key in env_vars:
            value = EnvironmentValidator.sanitize_value(env_vars[key])
        else:
            value = EnvironmentValidator.sanitize_value(os.getenv(key))
        if value is not None:
            return value
    return default


def _checked(name: str, raw: Optional[str], check: Callable[[str], Any]) -> Any:
    """``check(raw)``, or ``None`` with a warning when the value is invalid."""
    if raw is None:
        return None
    try:
        return check(raw)
    except EnvironmentError as e:
        logger.warning(f"Ignoring invalid {name}: {e}")
        return None


def load_environment_config(env_file_path: Optional[str] = None) -> EnvironmentConfig:
    """Load and validate environment configuration.

    Each variable is validated on its own; an invalid value is logged and
    skipped so that the remaining settings, credentials included, still apply.
    """
    env_vars = load_env_file(env_file_path)
    validator = EnvironmentValidator()

    backend = _checked("PIXELQA_BACKEND", get_env_var("PIXELQA_BACKEND", env_vars=env_vars),
                       validator.validate_backend)

    gemini_key = get_env_var("GEMINI_API_KEY", "GOOGLE_API_KEY", env_vars=env_vars)
    if gemini_key is not None and not validator.validate_api_key(gemini_key):
        # Still usable; Google occasionally changes the key format.
        logger.info("Using Gemini API key with non-standard format")

    dashscope_key = get_env_var("DASHSCOPE_API_KEY", "VITE_DASHSCOPE_API_KEY", env_vars=env_vars)

    model = get_env_var("PIXELQA_MODEL", "DASHSCOPE_MODEL", "VITE_DASHSCOPE_MODEL",
                        "GEMINI_MODEL", env_vars=env_vars)
    endpoint = get_env_var("PIXELQA_ENDPOINT", "DASHSCOPE_ENDPOINT", "VITE_DASHSCOPE_ENDPOINT",
                           env_vars=env_vars)
    workspace = get_env_var("DASHSCOPE_WORKSPACE", "VITE_DASHSCOPE_WORKSPACE", env_vars=env_vars)

    timeout = _checked("PIXELQA_TIMEOUT", get_env_var("PIXELQA_TIMEOUT", env_vars=env_vars),
                       lambda v: validator.validate_numeric_range(v, 1, 300, int))
    if timeout is None:
        timeout_ms = _checked("DASHSCOPE_TIMEOUT_MS", get_env_var("DASHSCOPE_TIMEOUT_MS", env_vars=env_vars),
                              lambda v: validator.validate_numeric_range(v, 1, 300000, int))
        if timeout_ms is not None:
            timeout = max(1, timeout_ms // 1000)

    target_width = _checked("PIXELQA_TARGET_WIDTH", get_env_var("PIXELQA_TARGET_WIDTH", env_vars=env_vars),
                            lambda v: validator.validate_numeric_range(v, 64, 8192, int))

    debug_str = get_env_var("DEBUG_LOGGING", env_vars=env_vars, default="false")
    debug_logging = debug_str.lower() in ('true', '1', 'yes', 'on')

    log_dir = get_env_var("PIXELQA_LOG_DIR", env_vars=env_vars)

    config = EnvironmentConfig(
        oracle_backend=backend,
        oracle_model=model,
        oracle_endpoint=endpoint,
        oracle_timeout=timeout,
        gemini_api_key=gemini_key,
        dashscope_api_key=dashscope_key,
        dashscope_workspace=workspace,
        target_width=target_width,
        debug_logging=debug_logging,
        log_dir=log_dir,
    )

    if gemini_key or dashscope_key:
        logger.info("Environment configuration loaded - oracle credentials present")
    else:
        logger.info("Environment configuration loaded - configure an API key to enable analysis")

    return config


__all__ = [
    "EnvironmentConfig",
    "EnvironmentError",
    "EnvironmentValidator",
    "VALID_BACKENDS",
    "load_environment_config",
    "load_env_file",
    "get_env_var",
]
