"""Binds an editor widget to the analyzer session and the trigger loop."""

from __future__ import annotations

from typing import Any

from PySide6.QtCore import QObject, QTimer, Signal
from PySide6.QtGui import QTextCursor
from PySide6.QtWidgets import QPlainTextEdit

from amber_client.controllers.client_supervisor import AMBER_LANGUAGE_ID, ClientSupervisor
from amber_client.controllers.trigger_coordinator import TriggerCoordinator
from amber_client.logger import get_logger
from amber_client.lsp.lsp_client import SERVER_NOT_RUNNING
from amber_client.lsp.types import EditEvent, Position, Range, TextChange
from amber_client.services.client_contracts import CompletionCallback
from amber_client.services.edit_classifier import ContextPolicy

_PARAGRAPH_SEPARATOR = "\u2029"  # QTextCursor.selectedText() line break

log = get_logger("editor-bridge")


def build_edit_event(
    document_uri: str,
    *,
    line: int,
    character: int,
    chars_removed: int,
    inserted_text: str,
) -> EditEvent:
    """EditEvent for one `contentsChange`; the end of the range only marks removal."""
    start = Position(max(0, int(line)), max(0, int(character)))
    end = Position(start.line, start.character + max(0, int(chars_removed)))
    return EditEvent(document_uri, TextChange(Range(start, end), str(inserted_text or "")))


class EditorBridge(QObject):
    """Host adapter for one Amber document.

    Keeps the analyzer's copy of the document in sync and implements the
    completion host commands the trigger loop needs.
    """

    suggestionsRequested = Signal(object)

    def __init__(
        self,
        editor: QPlainTextEdit,
        supervisor: ClientSupervisor,
        *,
        document_uri: str,
        policy: ContextPolicy = ContextPolicy.IMPORT_CLAUSE,
        did_change_debounce_ms: int = 150,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._editor = editor
        self._supervisor = supervisor
        self._uri = str(document_uri or "")
        self._opened = False
        self.coordinator = TriggerCoordinator(self, policy=policy, parent=self)

        self._change_timer = QTimer(self)
        self._change_timer.setSingleShot(True)
        self._change_timer.setInterval(max(0, int(did_change_debounce_ms)))
        self._change_timer.timeout.connect(self.sync_document)

        self._supervisor.sessionStarted.connect(self._on_session_started)
        self._editor.document().contentsChange.connect(self._on_contents_change)

    @property
    def document_uri(self) -> str:
        return self._uri

    def execute_completion(self, uri: str, line: int, character: int, callback: CompletionCallback) -> None:
        client = self._supervisor.client()
        if client is None or not self._supervisor.is_running():
            log.debug("completion skipped for {}: analyzer not running", uri)
            callback(None, {"code": SERVER_NOT_RUNNING, "message": "amber_lsp_not_running"})
            return
        self.sync_document()
        client.completion(
            uri=uri,
            line=line,
            character=character,
            on_result=lambda result: callback(result, None),
            on_error=lambda err: callback(None, err),
        )

    def trigger_suggest(self, items: list[dict[str, Any]]) -> None:
        show = getattr(self._editor, "show_suggestions", None)
        if callable(show):
            show(items)
        self.suggestionsRequested.emit(items)

    def close(self) -> None:
        self._change_timer.stop()
        client = self._supervisor.client()
        if client is not None and self._opened:
            client.did_close(uri=self._uri)
        self._opened = False

    def _on_session_started(self) -> None:
        self._opened = False
        self.sync_document()

    def sync_document(self) -> None:
        self._change_timer.stop()
        client = self._supervisor.client()
        if client is None:
            return
        text = self._editor.toPlainText()
        if not self._opened:
            client.did_open(uri=self._uri, language_id=AMBER_LANGUAGE_ID, text=text)
            self._opened = True
            return
        client.did_change(uri=self._uri, text=text, language_id=AMBER_LANGUAGE_ID)

    def _on_contents_change(self, position: int, chars_removed: int, chars_added: int) -> None:
        if chars_removed == 0 and chars_added == 0:
            return
        self._change_timer.start()

        document = self._editor.document()
        block = document.findBlock(position)
        if not block.isValid():
            return
        cursor = QTextCursor(document)
        cursor.setPosition(position)
        cursor.setPosition(min(position + chars_added, document.characterCount() - 1), QTextCursor.KeepAnchor)
        inserted = cursor.selectedText().replace(_PARAGRAPH_SEPARATOR, "\n")

        event = build_edit_event(
            self._uri,
            line=block.blockNumber(),
            character=position - block.position(),
            chars_removed=chars_removed,
            inserted_text=inserted,
        )
        self.coordinator.handle_edit(event, block.text())
