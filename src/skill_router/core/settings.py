"""Environment-based settings for tooling around the router."""

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


class Settings:
    """Settings loaded from environment variables."""

    def __init__(self):
        self.home = Path(os.getenv("SKILL_ROUTER_HOME", str(Path.home() / ".skill-router")))
        self.config_path = Path(
            os.getenv("SKILL_ROUTER_CONFIG_PATH", str(self.home / "routing_config.json"))
        )
        self.log_level = os.getenv("SKILL_ROUTER_LOG_LEVEL", "WARNING").upper()

    def configure_logging(self, level: str = None):
        """Configure root logging for command-line use."""
        logging.basicConfig(
            level=getattr(logging, (level or self.log_level).upper(), logging.WARNING),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


_settings = None


def _get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """Re-read the environment (used by tests)."""
    global _settings
    _settings = Settings()
    return _settings


class _SettingsProxy:
    """Lazy proxy so settings aren't loaded until first access."""

    def __getattr__(self, name):
        return getattr(_get_settings(), name)


settings = _SettingsProxy()
