"""YAML configuration loader with environment variable overrides.

Configuration is loaded in layers (later layers override earlier):

  1. ``config/config.yaml``  static defaults checked into the repo
  2. ``.env`` file           local developer overrides (not committed)
  3. Environment vars        set at deploy time

``load_config()`` reads the YAML file, then deep-merges the values derived
from :class:`~ragline.config.settings.Settings` on top::

    base      = {"ingestion": {"concurrency": 2}}
    overrides = {"ingestion": {"max_upload_bytes": 1024}}
    result    = {"ingestion": {"concurrency": 2, "max_upload_bytes": 1024}}
"""

from pathlib import Path

import yaml

from ragline.config.settings import Settings


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Environment variables (via Settings) override YAML values where keys overlap.

    Args:
        path: Path to the YAML configuration file.
        settings: Pre-built settings; a fresh ``Settings()`` is read when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "embedding": {
            "provider": settings.embedding_provider,
            "default_model": settings.default_embedding_model,
            "available_providers": settings.get_available_embedding_providers(),
        },
        "llm": {
            "provider": settings.llm_provider,
            "default_model": settings.default_llm_model,
        },
        "catalog": {
            "db_path": settings.catalog_db_path,
        },
        "ingestion": {
            "concurrency": settings.ingestion_concurrency,
            "max_upload_bytes": settings.max_upload_bytes,
        },
        "logging": {
            "level": settings.log_level,
            "format": settings.log_format,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
