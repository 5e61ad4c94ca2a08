"""Shared application settings helpers."""

from .coercion import coerce_bool, coerce_int_clamped, normalize_package_extension, sanitize_release_url
from .config import UpdaterConfig, load_updater_config
from .paths import get_downloads_dir_path, get_settings_schema_path, get_store_dir_path

__all__ = [
    "UpdaterConfig",
    "coerce_bool",
    "coerce_int_clamped",
    "get_downloads_dir_path",
    "get_settings_schema_path",
    "get_store_dir_path",
    "load_updater_config",
    "normalize_package_extension",
    "sanitize_release_url",
]
