from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

from . import defaults
from .coercion import coerce_bool, coerce_int_clamped, normalize_package_extension, sanitize_release_url


@dataclass(frozen=True)
class UpdaterConfig:
    release_url: str = defaults.DEFAULT_RELEASE_URL
    check_timeout_sec: int = defaults.CHECK_TIMEOUT_SEC
    download_timeout_sec: int = defaults.DOWNLOAD_TIMEOUT_SEC
    check_watchdog_sec: int = defaults.CHECK_WATCHDOG_SEC
    poll_interval_ms: int = defaults.DOWNLOAD_POLL_INTERVAL_MS
    package_extension: str = defaults.PACKAGE_EXTENSION
    install_permission_required: bool = True

    def package_file_name(self, version: str) -> str:
        return defaults.PACKAGE_FILE_TEMPLATE.format(version=version, extension=self.package_extension)


def load_updater_config(env: Mapping[str, str] | None = None) -> UpdaterConfig:
    """Build the updater configuration from ``CORDIUM_*`` environment overrides.

    Unset or invalid values fall back to the defaults; numeric values are clamped
    to sane ranges so a bad override cannot disable timeouts altogether.
    """
    source = os.environ if env is None else env
    check_timeout = coerce_int_clamped(
        source.get("CORDIUM_CHECK_TIMEOUT_SEC", defaults.CHECK_TIMEOUT_SEC),
        defaults.CHECK_TIMEOUT_SEC,
        1,
        60,
    )
    return UpdaterConfig(
        release_url=sanitize_release_url(source.get("CORDIUM_RELEASE_URL"), defaults.DEFAULT_RELEASE_URL),
        check_timeout_sec=check_timeout,
        download_timeout_sec=coerce_int_clamped(
            source.get("CORDIUM_DOWNLOAD_TIMEOUT_SEC", defaults.DOWNLOAD_TIMEOUT_SEC),
            defaults.DOWNLOAD_TIMEOUT_SEC,
            1,
            600,
        ),
        check_watchdog_sec=max(defaults.CHECK_WATCHDOG_SEC, check_timeout * 2 + 2),
        poll_interval_ms=coerce_int_clamped(
            source.get("CORDIUM_POLL_INTERVAL_MS", defaults.DOWNLOAD_POLL_INTERVAL_MS),
            defaults.DOWNLOAD_POLL_INTERVAL_MS,
            50,
            10000,
        ),
        package_extension=normalize_package_extension(
            source.get("CORDIUM_PACKAGE_EXTENSION"),
            defaults.PACKAGE_EXTENSION,
        ),
        install_permission_required=coerce_bool(source.get("CORDIUM_INSTALL_PERMISSION_REQUIRED", True), True),
    )
