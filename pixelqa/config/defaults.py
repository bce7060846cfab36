"""Default configuration values."""

from typing import Any, Dict

DEFAULT_CONFIG: Dict[str, Any] = {
    # Oracle selection
    "oracle_backend": "gemini",  # gemini, dashscope, proxy
    "oracle_model": "",          # empty = backend's preferred model
    "oracle_endpoint": "",       # empty = backend's default endpoint(s)
    "oracle_timeout": 20,        # seconds, per candidate call
    "oracle_temperature": 0.2,
    "oracle_max_tokens": 8192,

    # Credentials (environment only; never written by save_config)
    "gemini_api_key": "",
    "dashscope_api_key": "",
    "dashscope_workspace": "",

    # Raster pipeline
    "target_width": 1200,
    "jpeg_quality": 90,

    # Result view
    "overlay_opacity": 0.5,
    "excluded_categories": [],

    # Debug and Logging Settings
    "debug": False,
    "log_level": "INFO",
    "log_dir": "logs",
    "file_logging": False,
    "structured_logging": False,
}

SECRET_KEYS = ("gemini_api_key", "dashscope_api_key")
