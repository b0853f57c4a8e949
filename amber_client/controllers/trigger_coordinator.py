"""Proactive completion requests driven by single keystrokes."""

from __future__ import annotations

from typing import Any

from PySide6.QtCore import QObject, Signal

from amber_client.logger import get_logger
from amber_client.lsp.types import EditEvent, utf16_code_units
from amber_client.services.client_contracts import CompletionHost
from amber_client.services.debounce_gate import DebounceGate
from amber_client.services.edit_classifier import ContextPolicy, classify

log = get_logger("trigger")


def completion_items(result_obj: object) -> list[dict[str, Any]]:
    """Accept either a bare item list or a `CompletionList`."""
    if isinstance(result_obj, list):
        raw = result_obj
    elif isinstance(result_obj, dict):
        raw = result_obj.get("items")
        if not isinstance(raw, list):
            raw = []
    else:
        raw = []
    return [item for item in raw if isinstance(item, dict)]


class TriggerCoordinator(QObject):
    completionRequested = Signal(str, object)  # uri, (line, character)
    suggestionsShown = Signal(object)

    def __init__(
        self,
        host: CompletionHost,
        *,
        policy: ContextPolicy = ContextPolicy.IMPORT_CLAUSE,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._host = host
        self._policy = policy
        self._gate = DebounceGate()
        self._next_token = 0
        self._latest_by_uri: dict[str, int] = {}

    @property
    def gate(self) -> DebounceGate:
        return self._gate

    @property
    def policy(self) -> ContextPolicy:
        return self._policy

    def set_policy(self, policy: ContextPolicy) -> None:
        self._policy = policy

    def handle_edit(self, event: EditEvent, line_text: str) -> bool:
        """Returns True when a completion query was issued for this edit."""
        suppressed, self._gate = self._gate.consume()
        if suppressed:
            return False
        if not classify(event, line_text, policy=self._policy):
            return False

        start = event.change.range.start
        line = start.line
        character = start.character + utf16_code_units(event.change.text)
        uri = event.document_uri

        self._next_token += 1
        token = self._next_token
        self._latest_by_uri[uri] = token
        self.completionRequested.emit(uri, (line, character))
        self._host.execute_completion(
            uri,
            line,
            character,
            lambda result, error, u=uri, t=token: self._on_completion_result(u, t, result, error),
        )
        return True

    def _on_completion_result(self, uri: str, token: int, result_obj: object, error_obj: object) -> None:
        if self._latest_by_uri.get(uri) != token:
            return
        self._latest_by_uri.pop(uri, None)
        if error_obj is not None:
            log.debug("completion query failed: {}", error_obj)
            return
        items = completion_items(result_obj)
        if not items:
            return
        self._host.trigger_suggest(items)
        # The acceptance edit that follows must not trigger again.
        self._gate = self._gate.arm()
        self.suggestionsShown.emit(items)
