"""Typed model of a declarative settings page."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import ClassVar, Iterator

from ..errors import NotFoundError


class ItemType(str, Enum):
    INFO = "info"
    ACTION = "action"
    TOGGLE = "toggle"
    SELECTION = "selection"
    SUBPAGE = "subpage"


@dataclass(frozen=True, kw_only=True)
class SettingItem:
    """Fields shared by every settings row.

    ``id`` is the dispatch key for handlers and dynamic subtitles, so it is
    expected to be unique across the whole document.
    """

    kind: ClassVar[ItemType]

    id: str
    title: str
    subtitle: str | None = None
    icon: str | None = None

    def with_subtitle(self, subtitle: str | None) -> "SettingItem":
        return replace(self, subtitle=subtitle)


@dataclass(frozen=True, kw_only=True)
class InfoItem(SettingItem):
    kind: ClassVar[ItemType] = ItemType.INFO
    is_dynamic: bool = False


@dataclass(frozen=True, kw_only=True)
class ActionItem(SettingItem):
    kind: ClassVar[ItemType] = ItemType.ACTION
    is_dynamic: bool = False


@dataclass(frozen=True, kw_only=True)
class ToggleItem(SettingItem):
    kind: ClassVar[ItemType] = ItemType.TOGGLE
    key: str
    default: bool


@dataclass(frozen=True)
class SelectionOption:
    value: str
    label: str


@dataclass(frozen=True, kw_only=True)
class SelectionItem(SettingItem):
    kind: ClassVar[ItemType] = ItemType.SELECTION
    key: str
    default: str
    options: tuple[SelectionOption, ...] = ()

    def index_of(self, value: str) -> int:
        for index, option in enumerate(self.options):
            if option.value == value:
                return index
        return -1

    def label_for(self, value: str) -> str:
        index = self.index_of(value)
        return self.options[index].label if index >= 0 else value


@dataclass(frozen=True, kw_only=True)
class SubpageItem(SettingItem):
    kind: ClassVar[ItemType] = ItemType.SUBPAGE
    page_id: str


@dataclass(frozen=True)
class SettingsCategory:
    id: str
    title: str
    items: tuple[SettingItem, ...] = ()


@dataclass(frozen=True)
class SettingsSubpage:
    title: str
    categories: tuple[SettingsCategory, ...] = ()


@dataclass(frozen=True)
class SettingsConfig:
    categories: tuple[SettingsCategory, ...] = ()
    subpages: dict[str, SettingsSubpage] = field(default_factory=dict)

    def get_subpage(self, page_id: str) -> SettingsSubpage:
        subpage = self.subpages.get(page_id)
        if subpage is None:
            raise NotFoundError(page_id)
        return subpage

    def iter_items(self) -> Iterator[SettingItem]:
        for category in self.categories:
            yield from category.items
        for subpage in self.subpages.values():
            for category in subpage.categories:
                yield from category.items

    def find_item(self, item_id: str) -> SettingItem | None:
        for item in self.iter_items():
            if item.id == item_id:
                return item
        return None
