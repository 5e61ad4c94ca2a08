from __future__ import annotations

import json
import os
import threading
from pathlib import Path
from typing import Callable

from ..app_settings.coercion import coerce_bool
from ..logging_utils import get_logger

_LOGGER = get_logger(__name__)

StoreListener = Callable[[str], None]


class SettingsStore:
    """Namespaced boolean/string preferences persisted as one JSON file.

    Every write is committed to disk before the setter returns; a write that
    cannot be committed raises ``OSError`` and changes nothing. Listeners are
    told the key of each write made through this instance.
    """

    def __init__(self, base_dir: Path, namespace: str) -> None:
        self.namespace = namespace
        self.path = Path(base_dir) / f"{namespace}.json"
        self._lock = threading.Lock()
        self._values: dict[str, bool | str] = {}
        self._listeners: list[StoreListener] = []
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            _LOGGER.debug("SettingsStore %s starts empty (no file at %s)", self.namespace, self.path)
            return
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except Exception:
            _LOGGER.exception("SettingsStore failed to read %s; starting empty", self.path)
            return
        if not isinstance(data, dict):
            _LOGGER.warning("SettingsStore ignoring non-object payload in %s", self.path)
            return
        self._values = {
            str(key): value for key, value in data.items() if isinstance(value, (bool, str))
        }
        _LOGGER.debug("SettingsStore %s loaded %d entries", self.namespace, len(self._values))

    def _commit(self, values: dict[str, bool | str]) -> None:
        """Write ``values`` to disk, then make them the in-memory state.

        On failure the error is logged and re-raised with both copies untouched.
        """
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as handle:
                json.dump(values, handle, ensure_ascii=False, indent=2)
                handle.flush()
                os.fsync(handle.fileno())
            tmp.replace(self.path)
        except OSError:
            _LOGGER.exception("SettingsStore failed to write %s", self.path)
            tmp.unlink(missing_ok=True)
            raise
        self._values = values

    def get_boolean(self, key: str, default: bool) -> bool:
        with self._lock:
            value = self._values.get(key)
        if value is None:
            return default
        return coerce_bool(value, default)

    def set_boolean(self, key: str, value: bool) -> None:
        self._write(key, bool(value))

    def get_string(self, key: str, default: str) -> str:
        with self._lock:
            value = self._values.get(key)
        if isinstance(value, str):
            return value
        return default

    def set_string(self, key: str, value: str) -> None:
        self._write(key, str(value))

    def contains(self, key: str) -> bool:
        with self._lock:
            return key in self._values

    def remove(self, key: str) -> None:
        with self._lock:
            if key not in self._values:
                return
            values = dict(self._values)
            del values[key]
            self._commit(values)
        self._notify(key)

    def clear(self) -> None:
        with self._lock:
            removed = list(self._values)
            self._commit({})
        _LOGGER.info("SettingsStore %s cleared (%d keys)", self.namespace, len(removed))
        for key in removed:
            self._notify(key)

    def get_all(self) -> dict[str, bool | str]:
        with self._lock:
            return dict(self._values)

    def subscribe(self, listener: StoreListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: StoreListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def _write(self, key: str, value: bool | str) -> None:
        with self._lock:
            self._commit({**self._values, key: value})
        _LOGGER.debug("SettingsStore %s set %s=%r", self.namespace, key, value)
        self._notify(key)

    def _notify(self, key: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(key)
            except Exception:  # noqa: BLE001
                _LOGGER.exception("SettingsStore listener failed for key=%s", key)
