from __future__ import annotations

from .base import SettingHandler


class BuildNumberHandler(SettingHandler):
    setting_id = "build_number"

    def handle(self, context, item, page, store) -> None:
        self.update_build_number(context, page)

    def update_build_number(self, context, page) -> None:
        page.update_item_subtitle(self.setting_id, context.app_info.describe())
