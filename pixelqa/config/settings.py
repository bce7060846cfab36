"""Configuration dataclass and loading utilities.

Provides a strongly-typed configuration object that is injected into the
gateway and service instead of a global module-level dictionary.

Precedence, lowest to highest: ``DEFAULT_CONFIG`` -> ``config.json`` ->
environment (``.env`` file and process variables).
"""
from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional
import json, os, logging
from .defaults import DEFAULT_CONFIG, SECRET_KEYS
from .env_config import load_environment_config, VALID_BACKENDS

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Config:
    # Oracle
    oracle_backend: str = DEFAULT_CONFIG["oracle_backend"]
    oracle_model: str = DEFAULT_CONFIG["oracle_model"]
    oracle_endpoint: str = DEFAULT_CONFIG["oracle_endpoint"]
    oracle_timeout: int = DEFAULT_CONFIG["oracle_timeout"]
    oracle_temperature: float = DEFAULT_CONFIG["oracle_temperature"]
    oracle_max_tokens: int = DEFAULT_CONFIG["oracle_max_tokens"]

    # Credentials (secured with environment variables)
    gemini_api_key: str = DEFAULT_CONFIG["gemini_api_key"]
    dashscope_api_key: str = DEFAULT_CONFIG["dashscope_api_key"]
    dashscope_workspace: str = DEFAULT_CONFIG["dashscope_workspace"]

    # Raster pipeline
    target_width: int = DEFAULT_CONFIG["target_width"]
    jpeg_quality: int = DEFAULT_CONFIG["jpeg_quality"]

    # Result view
    overlay_opacity: float = DEFAULT_CONFIG["overlay_opacity"]
    excluded_categories: List[str] = field(default_factory=lambda: list(DEFAULT_CONFIG["excluded_categories"]))

    # Debug and Logging Settings
    debug: bool = DEFAULT_CONFIG["debug"]
    log_level: str = DEFAULT_CONFIG["log_level"]
    log_dir: str = DEFAULT_CONFIG["log_dir"]
    file_logging: bool = DEFAULT_CONFIG["file_logging"]
    structured_logging: bool = DEFAULT_CONFIG["structured_logging"]

    # Arbitrary extra values retained for forward compatibility
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        extra = d.pop("extra", {})
        d.update(extra)
        return d

    def get(self, key: str, default: Any = None) -> Any:
        if key in self.__dataclass_fields__:
            return getattr(self, key)
        return self.extra.get(key, default)

    @property
    def api_key(self) -> str:
        """Credential for the selected backend (empty when unset)."""
        if self.oracle_backend == "gemini":
            return self.gemini_api_key
        if self.oracle_backend == "dashscope":
            return self.dashscope_api_key
        return ""


_INTERNAL_KEYS = ("extra",)


def load_config(path: str = "config.json", env_file: Optional[str] = None) -> Config:
    """Load configuration from JSON file with environment overrides.

    Args:
        path: Path to config.json file
        env_file: Path to .env file (optional)

    Returns:
        Config: Loaded and validated configuration
    """
    data: Dict[str, Any] = {}
    env_config = load_environment_config(env_file)

    if os.path.isfile(path):
        try:
            with open(path, "r", encoding="utf-8") as f:
                loaded_data = json.load(f)
            if loaded_data is None:
                logger.warning(f"Configuration file '{path}' is empty, using defaults")
            elif not isinstance(loaded_data, dict):
                logger.error(f"Configuration file '{path}' does not contain a valid JSON object, using defaults")
            else:
                data = loaded_data
                logger.info(f"Successfully loaded configuration from '{path}'")
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse JSON configuration file '{path}': {e}. Using defaults.")
        except PermissionError:
            logger.error(f"Permission denied reading configuration file '{path}'. Using defaults.")
        except OSError as e:
            logger.error(f"Error reading configuration file '{path}': {e}. Using defaults.")
    else:
        logger.debug(f"Configuration file '{path}' does not exist. Using defaults.")

    merged = {**DEFAULT_CONFIG, **data}
    overrides = env_config.overrides()
    if overrides:
        merged.update(overrides)
        logger.debug(f"Applied environment overrides: {sorted(k for k in overrides if k not in SECRET_KEYS)}")

    merged = _sanitize_config_values(merged)

    extra = {k: v for k, v in merged.items() if k not in Config.__dataclass_fields__}
    if extra:
        logger.info(f"Found extra configuration keys: {list(extra.keys())}")

    return Config(
        **{k: merged[k] for k in Config.__dataclass_fields__ if k not in _INTERNAL_KEYS},
        extra=extra,
    )


def save_config(cfg: Config, path: str = "config.json") -> None:
    """Save configuration to JSON. API keys are never written to disk."""
    config_dict = cfg.to_dict()
    for key in SECRET_KEYS:
        if config_dict.get(key):
            config_dict[key] = ""
            logger.info(f"{key} excluded from saved config")

    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(config_dict, f, indent=2, ensure_ascii=False)
        logger.info(f"Configuration saved successfully to '{path}'")
    except PermissionError:
        logger.error(f"Permission denied writing configuration file '{path}'")
    except OSError as e:
        logger.error(f"OS error saving configuration file '{path}': {e}")


def _sanitize_config_values(config_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Coerce values from ``config.json`` into their expected types and ranges.

    Invalid entries fall back to the default with a warning instead of failing
    the whole load.
    """
    backend = str(config_dict.get("oracle_backend") or "").strip().lower()
    if backend not in VALID_BACKENDS:
        logger.warning(f"Unknown oracle backend '{backend}', using '{DEFAULT_CONFIG['oracle_backend']}'")
        backend = DEFAULT_CONFIG["oracle_backend"]
    config_dict["oracle_backend"] = backend

    for key in ("oracle_model", "oracle_endpoint", "gemini_api_key",
                "dashscope_api_key", "dashscope_workspace", "log_dir", "log_level"):
        value = config_dict.get(key)
        config_dict[key] = str(value).strip().strip("'\"`").strip() if value is not None else ""
    config_dict["log_level"] = config_dict["log_level"].upper() or DEFAULT_CONFIG["log_level"]

    ranges = {
        "oracle_timeout": (1, 300, int),
        "oracle_max_tokens": (1, 65536, int),
        "target_width": (64, 8192, int),
        "jpeg_quality": (1, 100, int),
        "oracle_temperature": (0.0, 2.0, float),
        "overlay_opacity": (0.0, 1.0, float),
    }
    for key, (lo, hi, kind) in ranges.items():
        try:
            value = kind(config_dict.get(key))
            if not lo <= value <= hi:
                raise ValueError(f"{value} outside [{lo}, {hi}]")
            config_dict[key] = value
        except (TypeError, ValueError) as e:
            logger.warning(f"Invalid value for '{key}' ({e}), using default")
            config_dict[key] = DEFAULT_CONFIG[key]

    excluded = config_dict.get("excluded_categories") or []
    if not isinstance(excluded, (list, tuple)):
        logger.warning("'excluded_categories' must be a list, ignoring")
        excluded = []
    config_dict["excluded_categories"] = [str(c) for c in excluded]

    for key in ("debug", "file_logging", "structured_logging"):
        config_dict[key] = bool(config_dict.get(key))

    return config_dict
