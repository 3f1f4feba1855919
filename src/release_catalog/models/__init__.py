"""Data models for the release catalog."""

from .config import CacheConfig, CatalogConfig, load_config, save_config

__all__ = ["CacheConfig", "CatalogConfig", "load_config", "save_config"]
