"""Configuration model for the release catalog."""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

ENV_ENVIRONMENT = "RELEASE_CATALOG_ENV"
ENV_DATABASE = "RELEASE_CATALOG_DB"

DEVELOPMENT = "development"
PRODUCTION = "production"


@dataclass
class CacheConfig:
    """Configuration for the read-through cache."""
    default_ttl_seconds: int = 3600
    sweep_interval_seconds: float = 300.0
    published_releases_ttl_seconds: int = 600
    release_ttl_seconds: int = 300


@dataclass
class CatalogConfig:
    """Main configuration model."""
    environment: str = PRODUCTION
    database_path: Path = field(default_factory=lambda: Path.home() / ".local" / "share" / "release-catalog" / "catalog.db")
    cache: CacheConfig = field(default_factory=CacheConfig)

    @property
    def is_development(self) -> bool:
        return self.environment == DEVELOPMENT

    def effective_ttl(self, ttl_seconds: int) -> int:
        """Caching is disabled in development so edits show up immediately."""
        return 0 if self.is_development else ttl_seconds

    @classmethod
    def default(cls) -> "CatalogConfig":
        return cls()

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        base: Optional["CatalogConfig"] = None,
    ) -> "CatalogConfig":
        """Apply environment overrides on top of ``base`` (or the defaults)."""
        environ = os.environ if environ is None else environ
        config = base or cls.default()
        if environ.get(ENV_ENVIRONMENT):
            config.environment = environ[ENV_ENVIRONMENT].strip().lower()
        if environ.get(ENV_DATABASE):
            config.database_path = Path(environ[ENV_DATABASE]).expanduser()
        return config


def _dataclass_to_dict(obj):
    """Convert dataclass to dict recursively."""
    from dataclasses import is_dataclass, asdict
    if is_dataclass(obj):
        result = {}
        for key, value in asdict(obj).items():
            result[key] = _dataclass_to_dict(value)
        return result
    elif isinstance(obj, Path):
        return str(obj)
    elif isinstance(obj, dict):
        return {key: _dataclass_to_dict(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [_dataclass_to_dict(item) for item in obj]
    else:
        return obj


def _dict_to_dataclass(data, dataclass_type):
    """Convert dict to dataclass recursively."""
    from dataclasses import is_dataclass, fields
    if not is_dataclass(dataclass_type):
        return data

    # Get field types
    field_types = {f.name: f.type for f in fields(dataclass_type)}

    kwargs = {}
    for field_name, field_type in field_types.items():
        if field_name in data:
            if hasattr(field_type, '__dataclass_fields__'):
                # It's a dataclass
                kwargs[field_name] = _dict_to_dataclass(data[field_name], field_type)
            elif field_type is Path:
                kwargs[field_name] = Path(data[field_name]).expanduser()
            else:
                kwargs[field_name] = data[field_name]

    return dataclass_type(**kwargs)


def load_config(config_path: Path) -> CatalogConfig:
    """Load configuration from JSON file."""
    with open(config_path, 'r') as f:
        config_data = json.load(f)

    return _dict_to_dataclass(config_data, CatalogConfig)


def save_config(config: CatalogConfig, config_path: Path) -> None:
    """Save configuration to JSON file."""
    config_dict = _dataclass_to_dict(config)

    with open(config_path, 'w') as f:
        json.dump(config_dict, f, indent=2)
