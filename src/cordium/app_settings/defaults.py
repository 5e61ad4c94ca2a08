from __future__ import annotations

DEFAULT_RELEASE_URL = "https://api.github.com/repos/hecker-01/cordium/releases/latest"
RELEASE_ACCEPT_HEADER = "application/vnd.github.v3+json"
DEFAULT_USER_AGENT = "Cordium-Updater"

CHECK_TIMEOUT_SEC = 5
DOWNLOAD_TIMEOUT_SEC = 20
CHECK_WATCHDOG_SEC = 12
DOWNLOAD_POLL_INTERVAL_MS = 500

PACKAGE_EXTENSION = ".apk"
PACKAGE_FILE_TEMPLATE = "Cordium-{version}{extension}"

SETTINGS_NAMESPACE = "cordium_settings"
INSTALL_PERMISSION_KEY = "allow_package_installs"
ROOT_PAGE_TITLE = "Settings"
