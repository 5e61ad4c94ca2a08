import os
import sys
import traceback
from typing import Optional

from PySide6.QtWidgets import QApplication

from .app_settings import get_downloads_dir_path, get_settings_schema_path, get_store_dir_path, load_updater_config
from .app_settings.defaults import SETTINGS_NAMESPACE
from .context import AppContext, read_app_info
from .logging_utils import configure_app_logging, get_logger
from .settings.store import SettingsStore
from .ui.main_window import MainWindow
from .updater.downloads import DownloadManager
from .updater.installer import InstallPermission

LOGGER = get_logger(__name__)


def build_context(store: SettingsStore, app: QApplication) -> AppContext:
    config = load_updater_config()
    return AppContext(
        app_info=read_app_info(),
        updater=config,
        download_manager=DownloadManager(app, timeout=config.download_timeout_sec),
        install_permission=InstallPermission(store, required=config.install_permission_required),
        downloads_dir=get_downloads_dir_path(),
    )


def main(existing_app: Optional[QApplication] = None) -> MainWindow:
    owns_app = existing_app is None
    app = existing_app or QApplication(sys.argv)
    level = configure_app_logging(os.environ.get("CORDIUM_LOG_LEVEL", "INFO"))
    app.setApplicationName("Cordium")
    LOGGER.info("App main() starting (owns_app=%s, log_level=%s)", owns_app, level)

    store = SettingsStore(get_store_dir_path(), SETTINGS_NAMESPACE)
    context = build_context(store, app)
    LOGGER.info("Running version %s", context.app_info.describe())
    schema_text = get_settings_schema_path().read_text(encoding="utf-8")
    window = MainWindow(context, store, schema_text)

    def _global_exception_hook(exc_type, exc_value, exc_tb) -> None:
        error_text = "".join(traceback.format_exception(exc_type, exc_value, exc_tb)).strip()
        LOGGER.error("Unhandled exception routed to global hook:\n%s", error_text)
        sys.__excepthook__(exc_type, exc_value, exc_tb)

    sys.excepthook = _global_exception_hook

    if owns_app:
        window.show()
        LOGGER.info("Window shown by app.main() (standalone mode)")
    return window


def run() -> int:
    app = QApplication.instance() or QApplication(sys.argv)
    window = main(app)
    window.show()
    return app.exec()
