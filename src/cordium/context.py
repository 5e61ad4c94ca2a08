from __future__ import annotations

from dataclasses import dataclass, field
from importlib import metadata
from pathlib import Path

from . import __build__, __version__
from .app_settings import UpdaterConfig, get_downloads_dir_path
from .updater.downloads import DownloadManager
from .updater.installer import InstallPermission, PackageInstaller


@dataclass(frozen=True)
class AppInfo:
    version_name: str | None
    version_code: int | None

    def describe(self) -> str:
        if not self.version_name:
            return "Unknown"
        if self.version_code is None:
            return self.version_name
        return f"{self.version_name} ({self.version_code})"


def read_app_info() -> AppInfo:
    try:
        version = metadata.version("cordium")
    except metadata.PackageNotFoundError:
        version = __version__
    return AppInfo(version_name=version or None, version_code=__build__)


@dataclass
class AppContext:
    """Services handed to setting handlers."""

    app_info: AppInfo
    updater: UpdaterConfig
    download_manager: DownloadManager
    install_permission: InstallPermission
    installer: PackageInstaller = field(default_factory=PackageInstaller)
    downloads_dir: Path = field(default_factory=get_downloads_dir_path)
