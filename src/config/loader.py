"""YAML configuration loader with environment variable overrides.

Configuration is layered (later layers override earlier):

  1. ``Settings`` defaults, ``.env`` and environment variables
  2. ``config/config.yaml`` ``pipeline:`` section (repo-wide tuning)
  3. ``config/config.yaml`` ``scopes.<scope>:`` section (per-scope tuning)

Example ``config.yaml``::

    pipeline:
      retrieval:
        min_similarity: 0.25
    scopes:
      legal-team:
        chunking:
          strategy: semantic
          chunk_size: 1500

``ScopedConfigResolver.resolve("legal-team")`` returns a PipelineConfig with
the semantic/1500 chunking and the 0.25 floor; every other scope gets the
0.25 floor and the Settings defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import ValidationError

from src.config.settings import Settings
from src.models.config import PipelineConfig
from src.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)


def load_config(path: str = "config/config.yaml") -> dict:
    """Load the YAML config file, returning ``{}`` when it does not exist."""
    config_path = Path(path)
    if not config_path.exists():
        return {}
    with open(config_path, encoding="utf-8") as f:
        try:
            loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Cannot parse {path}: {exc}") from exc
    if not isinstance(loaded, dict):
        raise ConfigurationError(f"{path} must contain a mapping at the top level")
    return loaded


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


class ScopedConfigResolver:
    """Resolve the effective PipelineConfig for a scope.

    Resolved configs are memoised per scope; the YAML is read once at
    construction.
    """

    def __init__(self, settings: Settings, yaml_config: dict[str, Any] | None = None) -> None:
        self._base = settings.to_pipeline_config().model_dump(mode="json")
        yaml_config = yaml_config or {}
        _deep_merge(self._base, yaml_config.get("pipeline") or {})
        self._scopes: dict[str, dict[str, Any]] = yaml_config.get("scopes") or {}
        self._cache: dict[str, PipelineConfig] = {}
        self._default = self._build(self._base, scope=None)

    @classmethod
    def from_settings(cls, settings: Settings) -> ScopedConfigResolver:
        return cls(settings, load_config(settings.config_path))

    @property
    def default(self) -> PipelineConfig:
        return self._default

    def resolve(self, scope: str | None) -> PipelineConfig:
        if not scope or scope not in self._scopes:
            return self._default
        if scope not in self._cache:
            merged = _copy_nested(self._base)
            _deep_merge(merged, self._scopes[scope] or {})
            self._cache[scope] = self._build(merged, scope=scope)
            logger.debug("scope_config_resolved", scope=scope)
        return self._cache[scope]

    @staticmethod
    def _build(data: dict[str, Any], scope: str | None) -> PipelineConfig:
        try:
            return PipelineConfig.model_validate(data)
        except ValidationError as exc:
            where = f"scope '{scope}'" if scope else "pipeline defaults"
            raise ConfigurationError(f"Invalid configuration for {where}: {exc}") from exc


def _copy_nested(data: dict[str, Any]) -> dict[str, Any]:
    return {k: _copy_nested(v) if isinstance(v, dict) else v for k, v in data.items()}
