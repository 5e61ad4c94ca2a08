"""Declarative settings schema, persistence and page control."""

from .models import (
    ActionItem,
    InfoItem,
    ItemType,
    SelectionItem,
    SelectionOption,
    SettingItem,
    SettingsCategory,
    SettingsConfig,
    SettingsSubpage,
    SubpageItem,
    ToggleItem,
)
from .parser import load_schema_file, parse
from .store import SettingsStore

__all__ = [
    "ActionItem",
    "InfoItem",
    "ItemType",
    "SelectionItem",
    "SelectionOption",
    "SettingItem",
    "SettingsCategory",
    "SettingsConfig",
    "SettingsStore",
    "SettingsSubpage",
    "SubpageItem",
    "ToggleItem",
    "load_schema_file",
    "parse",
]
