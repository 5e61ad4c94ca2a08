from __future__ import annotations

from typing import Callable, Sequence

from PySide6.QtCore import Qt, Signal
from PySide6.QtGui import QFont, QIcon
from PySide6.QtWidgets import (
    QHBoxLayout,
    QInputDialog,
    QLabel,
    QListWidget,
    QListWidgetItem,
    QMessageBox,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from ..settings.models import ItemType, SettingItem, SettingsCategory
from ..settings.store import SettingsStore

_ITEM_ROLE = Qt.ItemDataRole.UserRole
SHORT_MESSAGE_MS = 2000
LONG_MESSAGE_MS = 3500


class SettingsListView(QWidget):
    """List rendering of a settings page; reports clicks through ``item_clicked``."""

    item_clicked = Signal(object)
    back_requested = Signal()
    status_message = Signal(str, int)

    def __init__(self, store: SettingsStore, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.store = store
        self._rows: dict[str, QListWidgetItem] = {}

        self.back_button = QPushButton("Back", self)
        self.back_button.setVisible(False)
        self.back_button.clicked.connect(self.back_requested.emit)
        self.title_label = QLabel("", self)
        title_font = QFont(self.title_label.font())
        title_font.setPointSize(title_font.pointSize() + 6)
        title_font.setBold(True)
        self.title_label.setFont(title_font)

        header = QHBoxLayout()
        header.addWidget(self.back_button)
        header.addWidget(self.title_label, 1)

        self.list_widget = QListWidget(self)
        self.list_widget.setWordWrap(True)
        self.list_widget.itemClicked.connect(self._on_row_clicked)

        layout = QVBoxLayout(self)
        layout.addLayout(header)
        layout.addWidget(self.list_widget, 1)

    def show_page(self, categories: Sequence[SettingsCategory], title: str) -> None:
        self.title_label.setText(title)
        self.list_widget.clear()
        self._rows.clear()
        for category in categories:
            header = QListWidgetItem(category.title)
            header_font = QFont(header.font())
            header_font.setBold(True)
            header.setFont(header_font)
            header.setFlags(Qt.ItemFlag.NoItemFlags)
            self.list_widget.addItem(header)
            for item in category.items:
                row = QListWidgetItem(self._row_text(item))
                row.setData(_ITEM_ROLE, item)
                if item.icon:
                    row.setIcon(QIcon.fromTheme(item.icon))
                if item.kind is ItemType.TOGGLE:
                    checked = self.store.get_boolean(item.key, item.default)
                    row.setCheckState(Qt.CheckState.Checked if checked else Qt.CheckState.Unchecked)
                self.list_widget.addItem(row)
                self._rows[item.id] = row

    def set_back_enabled(self, enabled: bool) -> None:
        self.back_button.setVisible(enabled)

    def update_item_subtitle(self, item_id: str, subtitle: str) -> None:
        row = self._rows.get(item_id)
        if row is None:
            return
        item = row.data(_ITEM_ROLE).with_subtitle(subtitle)
        row.setData(_ITEM_ROLE, item)
        row.setText(self._row_text(item))

    def show_message(self, text: str, long: bool = False) -> None:
        self.status_message.emit(text, LONG_MESSAGE_MS if long else SHORT_MESSAGE_MS)

    def show_error(self, title: str, summary: str, details: str) -> None:
        box = QMessageBox(self)
        box.setWindowTitle(title)
        box.setIcon(QMessageBox.Critical)
        box.setText(summary)
        box.setInformativeText("Open 'Show Details...' for technical information.")
        box.setDetailedText(details)
        box.setStandardButtons(QMessageBox.Ok)
        box.exec()

    def choose_option(
        self,
        title: str,
        labels: list[str],
        current_index: int,
        on_chosen: Callable[[int], None],
    ) -> None:
        if not labels:
            return
        text, ok = QInputDialog.getItem(self, title, title, labels, max(current_index, 0), False)
        if ok and text in labels:
            on_chosen(labels.index(text))

    def request_install_permission(self, on_result: Callable[[bool], None]) -> None:
        answer = QMessageBox.question(
            self,
            "Install Update",
            "Allow Cordium to open downloaded update packages?\n"
            "You can change this later under Settings > Updates.",
            QMessageBox.Yes | QMessageBox.No,
            QMessageBox.No,
        )
        on_result(answer == QMessageBox.Yes)

    def _row_text(self, item: SettingItem) -> str:
        lines = [item.title]
        if item.kind is ItemType.SELECTION:
            current = self.store.get_string(item.key, item.default)
            lines[0] = f"{item.title}: {item.label_for(current)}"
        if item.subtitle:
            lines.append(item.subtitle)
        if item.kind is ItemType.SUBPAGE:
            lines[0] = f"{lines[0]}  >"
        return "\n".join(lines)

    def _on_row_clicked(self, row: QListWidgetItem) -> None:
        item = row.data(_ITEM_ROLE)
        if isinstance(item, SettingItem):
            self.item_clicked.emit(item)
