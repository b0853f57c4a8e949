from __future__ import annotations

from typing import Optional, Sequence

from PySide6.QtWidgets import QMessageBox, QWidget


class MessageBoxPrompter:
    """Modal prompts backed by QMessageBox, shaped for `ErrorPolicy`."""

    def __init__(self, parent: Optional[QWidget] = None, *, title: str = "Amber") -> None:
        self._parent = parent
        self._title = title

    def choose(self, message: str, options: Sequence[str]) -> str | None:
        box = QMessageBox(self._parent)
        box.setIcon(QMessageBox.Critical)
        box.setWindowTitle(self._title)
        box.setText(str(message or ""))
        buttons = {box.addButton(str(option), QMessageBox.ActionRole): str(option) for option in options}
        box.addButton(QMessageBox.Close)
        box.exec()
        # Closing the box without picking an option is a dismissal.
        return buttons.get(box.clickedButton())

    def inform(self, message: str) -> None:
        QMessageBox.information(self._parent, self._title, str(message or ""))
