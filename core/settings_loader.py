"""
Settings loader module for the Bond Generator.
Provides centralized access to all configuration settings from the combined settings.yaml file.
"""

import os
import yaml
from pathlib import Path
import logging
from typing import Any, Dict, List

from core.config import (
    DEFAULT_BOND_PREFIX,
    DEFAULT_COLUMN_ALIASES,
    DEFAULT_FILL_WORKERS,
    MIN_BOND_NUMBER_WIDTH,
)

logger = logging.getLogger(__name__)

# Path to the combined settings file
# Always resolve relative to the project root (parent of core/)
_CORE_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = _CORE_DIR.parent
SETTINGS_FILE = _PROJECT_ROOT / 'settings.yaml'

# Environment variable that points at an alternative settings file
SETTINGS_FILE_ENV_VAR = "BOND_GENERATOR_SETTINGS"

# Cache for loaded settings to avoid repeated file reads
_settings_cache = None
_cache_mtime = None
_cache_path = None


def _settings_path() -> Path:
    override = os.environ.get(SETTINGS_FILE_ENV_VAR)
    return Path(override) if override else Path(SETTINGS_FILE)


def load_settings() -> Dict[str, Any]:
    """
    Load settings from the combined YAML file with caching.
    Returns the full settings dictionary.
    """
    global _settings_cache, _cache_mtime, _cache_path

    try:
        settings_path = _settings_path()

        # Check if we need to reload (file changed, path changed or not cached)
        if settings_path.exists():
            current_mtime = settings_path.stat().st_mtime
            if (
                _settings_cache is None
                or _cache_mtime != current_mtime
                or _cache_path != settings_path
            ):
                with open(settings_path, 'r', encoding='utf-8') as f:
                    _settings_cache = yaml.safe_load(f) or {}
                _cache_mtime = current_mtime
                _cache_path = settings_path
                logger.info(f"Loaded settings from {settings_path}")
            return _settings_cache
        else:
            logger.warning(f"Settings file {settings_path} not found, using defaults")
            return {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Error loading settings: {e}")
        return {}


def get_app_config() -> Dict[str, Any]:
    """Get application configuration settings."""
    settings = load_settings()
    return settings.get('app_config', {}) or {}


def get_bond_generator_settings() -> Dict[str, Any]:
    """Get the bond_generator section (aliases, numbering, filling)."""
    settings = load_settings()
    return settings.get('bond_generator', {}) or {}


def get_column_aliases() -> Dict[str, List[str]]:
    """
    Get column alias lists keyed by canonical field name.

    Aliases from settings.yaml are tried first, followed by the built-in
    defaults, so a configured alias can only add synonyms, never remove one.
    """
    configured = get_bond_generator_settings().get('column_aliases', {}) or {}
    merged: Dict[str, List[str]] = {}
    for field, defaults in DEFAULT_COLUMN_ALIASES.items():
        extra = [str(a) for a in (configured.get(field) or [])]
        merged[field] = list(dict.fromkeys(extra + list(defaults)))
    for field, extra in configured.items():
        if field not in merged:
            merged[field] = [str(a) for a in (extra or [])]
    return merged


def get_numbering_defaults() -> Dict[str, Any]:
    """Get default bond numbering conventions (prefix, minimum width)."""
    numbering = get_bond_generator_settings().get('numbering', {}) or {}
    return {
        'default_prefix': numbering.get('default_prefix', DEFAULT_BOND_PREFIX),
        'min_width': int(numbering.get('min_width', MIN_BOND_NUMBER_WIDTH)),
    }


def get_fill_workers() -> int:
    """Get the worker count used for parallel document filling."""
    filling = get_bond_generator_settings().get('filling', {}) or {}
    workers = filling.get('max_workers', DEFAULT_FILL_WORKERS)
    try:
        return max(1, int(workers))
    except (TypeError, ValueError):
        logger.warning(f"Invalid filling.max_workers value {workers!r}, using {DEFAULT_FILL_WORKERS}")
        return DEFAULT_FILL_WORKERS


def get_auth_settings() -> Dict[str, Any]:
    """Get API authorization settings."""
    settings = load_settings()
    auth = settings.get('auth', {}) or {}
    return {
        'enabled': bool(auth.get('enabled', True)),
        'api_tokens': dict(auth.get('api_tokens', {}) or {}),
    }


def reload_settings():
    """Force reload of settings from disk."""
    global _settings_cache, _cache_mtime, _cache_path
    _settings_cache = None
    _cache_mtime = None
    _cache_path = None
    logger.info("Settings cache cleared, will reload on next access")
