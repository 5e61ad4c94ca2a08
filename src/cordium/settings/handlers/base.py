from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ...context import AppContext
    from ..models import SettingItem
    from ..page import SettingsPageController
    from ..store import SettingsStore


class SettingHandler:
    """Override behaviour bound to one setting id.

    A registered handler replaces the default click behaviour of its item
    entirely. ``cleanup`` runs when the hosting page is torn down.
    """

    setting_id: str = ""

    def handle(
        self,
        context: "AppContext",
        item: "SettingItem",
        page: "SettingsPageController",
        store: "SettingsStore",
    ) -> None:
        raise NotImplementedError

    def cleanup(self) -> None:
        return
