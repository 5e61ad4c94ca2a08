from __future__ import annotations

from typing import Iterator

from ...logging_utils import get_logger
from .base import SettingHandler

_LOGGER = get_logger(__name__)


class HandlerRegistry:
    def __init__(self, handlers: list[SettingHandler] | None = None) -> None:
        self._handlers: dict[str, SettingHandler] = {}
        for handler in handlers or []:
            self.register(handler)

    def register(self, handler: SettingHandler) -> None:
        if not handler.setting_id:
            raise ValueError(f"{type(handler).__name__} has no setting_id")
        if handler.setting_id in self._handlers:
            _LOGGER.warning("Replacing handler for setting id=%s", handler.setting_id)
        self._handlers[handler.setting_id] = handler

    def get(self, setting_id: str) -> SettingHandler | None:
        return self._handlers.get(setting_id)

    def __iter__(self) -> Iterator[SettingHandler]:
        return iter(list(self._handlers.values()))

    def cleanup_all(self) -> None:
        for handler in self:
            try:
                handler.cleanup()
            except Exception:  # noqa: BLE001
                _LOGGER.exception("Cleanup failed for handler id=%s", handler.setting_id)
