"""Configuration module - exports Settings, the YAML loader, and a module-level singleton."""

from src.config.loader import ScopedConfigResolver, load_config
from src.config.settings import Settings

settings = Settings()

__all__ = ["ScopedConfigResolver", "Settings", "load_config", "settings"]
