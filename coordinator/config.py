"""
Configuration loading.

Settings come from an optional config.yaml with `coordinator:` and
`search:` sections. Missing files or keys fall back to the defaults
below. SEARCHPOOL_CONFIG may point at the file.
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

import yaml

from shared.logging import get_logger

log = get_logger("coordinator", "config")

CONFIG_ENV = "SEARCHPOOL_CONFIG"
DEFAULT_CONFIG_PATH = Path("config.yaml")


def _pick(cls, data: dict) -> dict:
    """Keep only keys that are fields of the dataclass."""
    names = {f.name for f in fields(cls)}
    unknown = set(data) - names
    if unknown:
        log.warning("coordinator.config.unknown_keys",
                    section=cls.__name__, keys=sorted(unknown))
    return {k: v for k, v in data.items() if k in names}


@dataclass
class CoordinatorConfig:
    """Scheduling and execution settings."""
    dispatch_interval: float = 1.0  # Seconds between idle dispatch checks
    execution_timeout: Optional[float] = 30.0  # None disables the bound
    default_priority: str = "medium"
    shutdown_grace: float = 5.0  # Seconds to let in-flight tasks finish on stop

    @classmethod
    def from_dict(cls, data: dict) -> "CoordinatorConfig":
        return cls(**_pick(cls, data or {}))


@dataclass
class SearchConfig:
    """Search worker and provider settings."""
    default_max_results: int = 10
    default_vector_results: int = 5
    authority_domains: list[str] = field(default_factory=lambda: ["wikipedia"])
    recency_days: int = 30
    snippet_length: int = 200

    # Web search provider
    endpoint: Optional[str] = None
    api_key: Optional[str] = None
    request_timeout: float = 10.0

    # Embedding provider
    embedding_dimension: int = 1536

    @classmethod
    def from_dict(cls, data: dict) -> "SearchConfig":
        return cls(**_pick(cls, data or {}))


@dataclass
class Settings:
    """Full application settings."""
    coordinator: CoordinatorConfig = field(default_factory=CoordinatorConfig)
    search: SearchConfig = field(default_factory=SearchConfig)

    @classmethod
    def from_dict(cls, data: dict) -> "Settings":
        data = data or {}
        return cls(
            coordinator=CoordinatorConfig.from_dict(data.get("coordinator", {})),
            search=SearchConfig.from_dict(data.get("search", {})),
        )


def load_config(path: Optional[str] = None) -> Settings:
    """
    Load settings from YAML.

    Resolution order: explicit path, SEARCHPOOL_CONFIG, ./config.yaml.
    A missing file yields defaults.
    """
    config_path = Path(path or os.environ.get(CONFIG_ENV) or DEFAULT_CONFIG_PATH)
    if not config_path.exists():
        log.debug("coordinator.config.defaults", path=str(config_path))
        return Settings()

    data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    log.info("coordinator.config.loaded", path=str(config_path))
    return Settings.from_dict(data)
