from __future__ import annotations

from PySide6.QtCore import Qt
from PySide6.QtGui import QKeySequence, QShortcut
from PySide6.QtWidgets import QLabel, QMainWindow, QTabWidget, QVBoxLayout, QWidget

from ..context import AppContext
from ..logging_utils import get_logger
from ..settings.handlers import BuildNumberHandler, HandlerRegistry, build_default_registry
from ..settings.page import SettingsPageController
from ..settings.store import SettingsStore
from .settings_view import SettingsListView

_LOGGER = get_logger(__name__)


class ProfilePage(QWidget):
    def __init__(self, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        label = QLabel("Profile", self)
        label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        layout = QVBoxLayout(self)
        layout.addWidget(label)


class MainWindow(QMainWindow):
    def __init__(
        self,
        context: AppContext,
        store: SettingsStore,
        schema_text: str,
        registry: HandlerRegistry | None = None,
    ) -> None:
        super().__init__()
        self.setWindowTitle("Cordium")
        self.resize(420, 720)
        self.context = context

        self.tabs = QTabWidget(self)
        self.profile_page = ProfilePage(self.tabs)
        self.settings_view = SettingsListView(store, self.tabs)
        self.tabs.addTab(self.profile_page, "Profile")
        self.settings_tab_index = self.tabs.addTab(self.settings_view, "Settings")
        self.tabs.tabBarClicked.connect(self._on_tab_bar_clicked)
        self.setCentralWidget(self.tabs)

        self.controller = SettingsPageController(
            context,
            store,
            registry if registry is not None else build_default_registry(context),
            self.settings_view,
        )
        self.settings_view.item_clicked.connect(self.controller.on_item_clicked)
        self.settings_view.back_requested.connect(self.controller.go_back)
        self.settings_view.status_message.connect(self.statusBar().showMessage)
        back_shortcut = QShortcut(QKeySequence(Qt.Key.Key_Escape), self.settings_view)
        back_shortcut.activated.connect(self.controller.go_back)

        if self.controller.load_schema(schema_text):
            self.controller.load_page(None)
            build_number = self.controller.registry.get(BuildNumberHandler.setting_id)
            if isinstance(build_number, BuildNumberHandler):
                build_number.update_build_number(context, self.controller)
        _LOGGER.info("Main window created")

    def _on_tab_bar_clicked(self, index: int) -> None:
        if index == self.settings_tab_index and self.tabs.currentIndex() == index:
            self.controller.return_to_root()

    def closeEvent(self, event) -> None:  # noqa: N802
        self.controller.teardown()
        self.context.download_manager.shutdown()
        super().closeEvent(event)
