from __future__ import annotations

import os
from pathlib import Path


def _app_data_dir() -> Path:
    override = os.environ.get("CORDIUM_HOME")
    if override:
        return Path(override)
    appdata = os.environ.get("APPDATA")
    if appdata:
        return Path(appdata) / "cordium"
    return Path.home() / ".cordium"


def get_store_dir_path() -> Path:
    return _app_data_dir() / "prefs"


def get_downloads_dir_path() -> Path:
    return _app_data_dir() / "downloads"


def get_settings_schema_path() -> Path:
    return Path(__file__).resolve().parents[1] / "assets" / "settings.json"
