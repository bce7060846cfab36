"""Oracle backends and the factory that picks one from configuration."""

from .base_backend import BaseOracleBackend
from .dashscope_backend import DashScopeBackend
from .gemini_backend import GeminiBackend
from .proxy_backend import ProxyBackend
from ..core.exceptions import ConfigError

BACKENDS = {
    GeminiBackend.name: GeminiBackend,
    DashScopeBackend.name: DashScopeBackend,
    ProxyBackend.name: ProxyBackend,
}


def create_backend(config) -> BaseOracleBackend:
    """Instantiate the backend named by ``config.oracle_backend``."""
    backend_cls = BACKENDS.get(config.oracle_backend)
    if backend_cls is None:
        raise ConfigError(f"Unknown oracle backend '{config.oracle_backend}'")
    return backend_cls({
        "api_key": config.api_key,
        "timeout": config.oracle_timeout,
        "temperature": config.oracle_temperature,
        "max_tokens": config.oracle_max_tokens,
        "workspace": config.dashscope_workspace,
    })


__all__ = ["BACKENDS", "BaseOracleBackend", "DashScopeBackend", "GeminiBackend",
           "ProxyBackend", "create_backend"]
