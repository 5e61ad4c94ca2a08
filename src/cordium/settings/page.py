from __future__ import annotations

from typing import Callable, Protocol, Sequence

from ..app_settings.defaults import ROOT_PAGE_TITLE
from ..errors import NotFoundError, SchemaError
from ..logging_utils import get_logger
from .handlers.registry import HandlerRegistry
from .models import (
    ActionItem,
    ItemType,
    SelectionItem,
    SettingItem,
    SettingsCategory,
    SettingsConfig,
    SubpageItem,
    ToggleItem,
)
from .parser import parse
from .store import SettingsStore

_LOGGER = get_logger(__name__)


class SettingsView(Protocol):
    def show_page(self, categories: Sequence[SettingsCategory], title: str) -> None: ...

    def set_back_enabled(self, enabled: bool) -> None: ...

    def update_item_subtitle(self, item_id: str, subtitle: str) -> None: ...

    def show_message(self, text: str, long: bool = False) -> None: ...

    def show_error(self, title: str, summary: str, details: str) -> None: ...

    def choose_option(
        self,
        title: str,
        labels: list[str],
        current_index: int,
        on_chosen: Callable[[int], None],
    ) -> None: ...

    def request_install_permission(self, on_result: Callable[[bool], None]) -> None: ...


class SettingsPageController:
    """Owns the loaded settings document and the page currently shown.

    Clicks are routed to the handler registered for the item id when there is
    one, otherwise to the default behaviour of the item's type.
    """

    def __init__(self, context, store: SettingsStore, registry: HandlerRegistry, view: SettingsView) -> None:
        self.context = context
        self.store = store
        self.registry = registry
        self.view = view
        self._config: SettingsConfig | None = None
        self._current_page_id: str | None = None
        self._visible_keys: set[str] = set()
        self._subtitle_overrides: dict[str, str] = {}
        self._default_actions: dict[ItemType, Callable[[SettingItem], None]] = {
            ItemType.SUBPAGE: self._open_subpage,
            ItemType.SELECTION: self._choose_selection,
            ItemType.TOGGLE: self._flip_toggle,
            ItemType.ACTION: self._acknowledge_action,
            ItemType.INFO: lambda _item: None,
        }
        self.store.subscribe(self._on_store_changed)

    @property
    def config(self) -> SettingsConfig | None:
        return self._config

    @property
    def current_page_id(self) -> str | None:
        return self._current_page_id

    @property
    def back_enabled(self) -> bool:
        return self._current_page_id is not None

    def load_schema(self, document: str) -> bool:
        try:
            self._config = parse(document)
        except SchemaError as exc:
            _LOGGER.error("Settings schema rejected: %s", exc)
            self._config = None
            self.view.show_error("Settings", "Error loading settings.", str(exc))
            return False
        _LOGGER.info(
            "Settings schema loaded: %d categories, %d subpages",
            len(self._config.categories),
            len(self._config.subpages),
        )
        return True

    def load_page(self, page_id: str | None = None) -> bool:
        if self._config is None:
            _LOGGER.warning("load_page(%r) called without a loaded schema", page_id)
            return False
        if page_id is None:
            categories, title = self._config.categories, ROOT_PAGE_TITLE
        else:
            try:
                subpage = self._config.get_subpage(page_id)
            except NotFoundError as exc:
                _LOGGER.warning("%s", exc)
                self.view.show_message(str(exc))
                return False
            categories, title = subpage.categories, subpage.title
        self._current_page_id = page_id
        self.view.set_back_enabled(page_id is not None)
        self._render(categories, title)
        return True

    def go_back(self) -> bool:
        if self._current_page_id is None:
            return False
        return self.load_page(None)

    def return_to_root(self) -> None:
        if self._current_page_id is not None:
            self.load_page(None)

    def on_item_clicked(self, item: SettingItem) -> None:
        handler = self.registry.get(item.id)
        if handler is not None:
            _LOGGER.debug("Dispatching item id=%s to %s", item.id, type(handler).__name__)
            handler.handle(self.context, item, self, self.store)
            return
        self._default_actions[item.kind](item)

    def update_item_subtitle(self, item_id: str, subtitle: str) -> None:
        self._subtitle_overrides[item_id] = subtitle
        self.view.update_item_subtitle(item_id, subtitle)

    def notify(self, text: str, long: bool = False) -> None:
        self.view.show_message(text, long=long)

    def request_install_permission(self, on_result: Callable[[bool], None]) -> None:
        self.view.request_install_permission(on_result)

    def teardown(self) -> None:
        self.store.unsubscribe(self._on_store_changed)
        self.registry.cleanup_all()
        _LOGGER.debug("Settings page torn down")

    def _current_categories(self) -> tuple[tuple[SettingsCategory, ...], str]:
        assert self._config is not None
        if self._current_page_id is None:
            return self._config.categories, ROOT_PAGE_TITLE
        subpage = self._config.get_subpage(self._current_page_id)
        return subpage.categories, subpage.title

    def _render(self, categories: Sequence[SettingsCategory], title: str) -> None:
        rendered = []
        keys: set[str] = set()
        for category in categories:
            items = []
            for item in category.items:
                if item.id in self._subtitle_overrides:
                    item = item.with_subtitle(self._subtitle_overrides[item.id])
                key = getattr(item, "key", None)
                if key:
                    keys.add(key)
                items.append(item)
            rendered.append(SettingsCategory(id=category.id, title=category.title, items=tuple(items)))
        self._visible_keys = keys
        self.view.show_page(rendered, title)

    def _refresh(self) -> None:
        if self._config is None:
            return
        self._render(*self._current_categories())

    def _on_store_changed(self, key: str) -> None:
        if key in self._visible_keys:
            self._refresh()

    def _open_subpage(self, item: SubpageItem) -> None:
        self.load_page(item.page_id)

    def _choose_selection(self, item: SelectionItem) -> None:
        current = self.store.get_string(item.key, item.default)
        labels = [option.label for option in item.options]

        def _on_chosen(index: int) -> None:
            if not 0 <= index < len(item.options):
                return
            option = item.options[index]
            try:
                self.store.set_string(item.key, option.value)
            except OSError:
                self.notify(f"Could not save {item.title}", long=True)
                return
            self.notify(f"Selected: {option.label}")

        self.view.choose_option(item.title, labels, item.index_of(current), _on_chosen)

    def _flip_toggle(self, item: ToggleItem) -> None:
        value = not self.store.get_boolean(item.key, item.default)
        try:
            self.store.set_boolean(item.key, value)
        except OSError:
            self.notify(f"Could not save {item.title}", long=True)
            return
        self.notify(f"{item.title}: {'ON' if value else 'OFF'}")

    def _acknowledge_action(self, item: ActionItem) -> None:
        self.notify(f"Action: {item.title}")
