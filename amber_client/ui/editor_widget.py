"""Plain-text Amber editor with a minimal completion popup."""

from __future__ import annotations

import re

from PySide6.QtCore import Qt, Signal
from PySide6.QtGui import QKeyEvent, QTextCursor
from PySide6.QtWidgets import QListWidget, QListWidgetItem, QPlainTextEdit, QWidget

_COMPLETION_ITEM_ROLE = Qt.UserRole + 1
_WORD_BEFORE_CURSOR_RE = re.compile(r"[A-Za-z0-9_./\-]*$")


def completion_insert_text(item: dict) -> str:
    text_edit = item.get("textEdit")
    if isinstance(text_edit, dict) and isinstance(text_edit.get("newText"), str):
        return str(text_edit["newText"])
    return str(item.get("insertText") or item.get("label") or "")


class AmberEditor(QPlainTextEdit):
    completionAccepted = Signal(str)

    def __init__(self, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.setLineWrapMode(QPlainTextEdit.NoWrap)
        self._popup = QListWidget(self)
        self._popup.hide()
        self._popup.setFocusPolicy(Qt.NoFocus)
        self._popup.itemClicked.connect(self._on_popup_clicked)

    def suggestions_visible(self) -> bool:
        return self._popup.isVisible()

    def hide_suggestions(self) -> None:
        self._popup.hide()
        self._popup.clear()

    def show_suggestions(self, items: list[dict]) -> None:
        clean_items = [item for item in items if isinstance(item, dict)]
        self._popup.clear()
        if not clean_items:
            self.hide_suggestions()
            return
        for item in clean_items:
            label = str(item.get("label") or completion_insert_text(item))
            detail = str(item.get("detail") or "").strip()
            row = QListWidgetItem(f"{label}    {detail}" if detail else label)
            row.setData(_COMPLETION_ITEM_ROLE, item)
            self._popup.addItem(row)
        self._popup.setCurrentRow(0)

        rect = self.cursorRect()
        height = min(220, 22 * len(clean_items) + 6)
        self._popup.setGeometry(rect.left() + 4, rect.bottom() + 4, 320, height)
        self._popup.show()
        self._popup.raise_()

    def accept_suggestion(self) -> bool:
        if not self.suggestions_visible():
            return False
        row = self._popup.currentItem()
        data = row.data(_COMPLETION_ITEM_ROLE) if row is not None else None
        if not isinstance(data, dict):
            return False
        text = completion_insert_text(data)
        self.hide_suggestions()
        if not text:
            return False

        cursor = self.textCursor()
        before = cursor.block().text()[: cursor.positionInBlock()]
        match = _WORD_BEFORE_CURSOR_RE.search(before)
        prefix_len = len(match.group(0)) if match else 0
        cursor.movePosition(QTextCursor.Left, QTextCursor.KeepAnchor, prefix_len)
        cursor.insertText(text)
        self.setTextCursor(cursor)
        self.completionAccepted.emit(text)
        return True

    def keyPressEvent(self, event: QKeyEvent) -> None:
        if self.suggestions_visible():
            key = event.key()
            if key in (Qt.Key_Return, Qt.Key_Enter, Qt.Key_Tab):
                if self.accept_suggestion():
                    return
            elif key == Qt.Key_Escape:
                self.hide_suggestions()
                return
            elif key in (Qt.Key_Up, Qt.Key_Down):
                count = self._popup.count()
                if count:
                    delta = -1 if key == Qt.Key_Up else 1
                    row = (max(0, self._popup.currentRow()) + delta) % count
                    self._popup.setCurrentRow(row)
                return
        super().keyPressEvent(event)

    def _on_popup_clicked(self, _item: QListWidgetItem) -> None:
        self.accept_suggestion()
        self.setFocus()
