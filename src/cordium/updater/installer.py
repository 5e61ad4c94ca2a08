from __future__ import annotations

import os
import webbrowser
from pathlib import Path

from ..app_settings.defaults import INSTALL_PERMISSION_KEY
from ..errors import InstallError
from ..logging_utils import get_logger
from ..settings.store import SettingsStore

_LOGGER = get_logger(__name__)


class InstallPermission:
    """The "allow installs from this source" grant, kept in the settings store."""

    def __init__(self, store: SettingsStore, required: bool = True, key: str = INSTALL_PERMISSION_KEY) -> None:
        self.store = store
        self.required = required
        self.key = key

    def is_required(self) -> bool:
        return self.required

    def is_granted(self) -> bool:
        return self.store.get_boolean(self.key, False)

    def grant(self) -> None:
        self.store.set_boolean(self.key, True)


class PackageInstaller:
    def launch(self, path: Path) -> None:
        """Hand a downloaded package to the system installer."""
        target = Path(path).resolve()
        if not target.exists():
            raise InstallError(f"Update package not found: {target}")
        try:
            if os.name == "nt":
                _LOGGER.info("Opening update package via os.startfile: %s", target)
                os.startfile(str(target))  # type: ignore[attr-defined]  # noqa: S606
                return
            _LOGGER.info("Opening update package via webbrowser: %s", target)
            opened = webbrowser.open(target.as_uri())
        except OSError as exc:
            raise InstallError(f"Could not open installer: {exc}") from exc
        if not opened:
            raise InstallError("No application is registered to open the update package.")
