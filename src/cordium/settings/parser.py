from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

from ..errors import SchemaError
from ..logging_utils import get_logger
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

_LOGGER = get_logger(__name__)
_MISSING = object()


def parse(document: str) -> SettingsConfig:
    """Parse a settings JSON document into a :class:`SettingsConfig`.

    Raises :class:`SchemaError` on invalid JSON, missing required fields,
    wrongly typed fields and unknown item types. ``subpages`` is optional.
    """
    try:
        root = json.loads(document)
    except (TypeError, ValueError) as exc:
        raise SchemaError(f"invalid JSON: {exc}") from exc
    if not isinstance(root, dict):
        raise SchemaError("document root must be an object")

    categories = _parse_categories(_require(root, "categories", list, ""), "categories")
    subpages: dict[str, SettingsSubpage] = {}
    raw_subpages = _optional(root, "subpages", dict, "", None)
    if raw_subpages is not None:
        for page_id, raw_page in raw_subpages.items():
            subpages[page_id] = _parse_subpage(raw_page, f"subpages.{page_id}")

    config = SettingsConfig(categories=categories, subpages=subpages)
    _warn_on_duplicate_ids(config)
    return config


def load_schema_file(path: Path) -> SettingsConfig:
    try:
        document = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise SchemaError(f"cannot read settings file {path}: {exc}") from exc
    return parse(document)


def _parse_subpage(raw: object, where: str) -> SettingsSubpage:
    obj = _as_object(raw, where)
    return SettingsSubpage(
        title=_require(obj, "title", str, where),
        categories=_parse_categories(_require(obj, "categories", list, where), f"{where}.categories"),
    )


def _parse_categories(raw: list, where: str) -> tuple[SettingsCategory, ...]:
    return tuple(_parse_category(entry, f"{where}[{index}]") for index, entry in enumerate(raw))


def _parse_category(raw: object, where: str) -> SettingsCategory:
    obj = _as_object(raw, where)
    items = _require(obj, "items", list, where)
    return SettingsCategory(
        id=_require(obj, "id", str, where),
        title=_require(obj, "title", str, where),
        items=tuple(_parse_item(entry, f"{where}.items[{index}]") for index, entry in enumerate(items)),
    )


def _parse_item(raw: object, where: str) -> SettingItem:
    obj = _as_object(raw, where)
    type_name = _require(obj, "type", str, where)
    try:
        item_type = ItemType(type_name)
    except ValueError:
        raise SchemaError(f"unknown setting type: {type_name!r}", where) from None
    base = {
        "id": _require(obj, "id", str, where),
        "title": _require(obj, "title", str, where),
        "subtitle": _optional(obj, "subtitle", str, where, None),
        "icon": _optional(obj, "icon", str, where, None),
    }
    return _VARIANT_PARSERS[item_type](obj, base, where)


def _parse_info(obj: dict, base: dict, where: str) -> SettingItem:
    return InfoItem(**base, is_dynamic=_optional(obj, "dynamic", bool, where, False))


def _parse_action(obj: dict, base: dict, where: str) -> SettingItem:
    return ActionItem(**base, is_dynamic=_optional(obj, "dynamic", bool, where, False))


def _parse_toggle(obj: dict, base: dict, where: str) -> SettingItem:
    return ToggleItem(
        **base,
        key=_require(obj, "key", str, where),
        default=_require(obj, "default", bool, where),
    )


def _parse_selection(obj: dict, base: dict, where: str) -> SettingItem:
    raw_options = _require(obj, "options", list, where)
    options = []
    for index, raw_option in enumerate(raw_options):
        option_where = f"{where}.options[{index}]"
        option = _as_object(raw_option, option_where)
        options.append(
            SelectionOption(
                value=_require(option, "value", str, option_where),
                label=_require(option, "label", str, option_where),
            )
        )
    return SelectionItem(
        **base,
        key=_require(obj, "key", str, where),
        default=_require(obj, "default", str, where),
        options=tuple(options),
    )


def _parse_subpage_item(obj: dict, base: dict, where: str) -> SettingItem:
    return SubpageItem(**base, page_id=_require(obj, "page", str, where))


_VARIANT_PARSERS: dict[ItemType, Callable[[dict, dict, str], SettingItem]] = {
    ItemType.INFO: _parse_info,
    ItemType.ACTION: _parse_action,
    ItemType.TOGGLE: _parse_toggle,
    ItemType.SELECTION: _parse_selection,
    ItemType.SUBPAGE: _parse_subpage_item,
}


def _as_object(raw: object, where: str) -> dict:
    if not isinstance(raw, dict):
        raise SchemaError("expected an object", where)
    return raw


def _check_type(value: Any, expected: type, key: str, where: str) -> Any:
    # bool is an int subclass; keep JSON booleans and numbers apart.
    if expected is not bool and isinstance(value, bool):
        raise SchemaError(f"field {key!r} must be {expected.__name__}", where)
    if not isinstance(value, expected):
        raise SchemaError(f"field {key!r} must be {expected.__name__}", where)
    return value


def _require(obj: dict, key: str, expected: type, where: str) -> Any:
    value = obj.get(key, _MISSING)
    if value is _MISSING or value is None:
        raise SchemaError(f"missing required field {key!r}", where)
    return _check_type(value, expected, key, where)


def _optional(obj: dict, key: str, expected: type, where: str, default: Any) -> Any:
    value = obj.get(key)
    if value is None:
        return default
    return _check_type(value, expected, key, where)


def _warn_on_duplicate_ids(config: SettingsConfig) -> None:
    seen: set[str] = set()
    for item in config.iter_items():
        if item.id in seen:
            _LOGGER.warning("Duplicate setting id %r; handlers and subtitles are keyed by id", item.id)
        seen.add(item.id)
