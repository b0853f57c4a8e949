"""Activation and deactivation of the Amber client for one editor window."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Callable, Protocol, Sequence

from PySide6.QtCore import QObject, QUrl
from PySide6.QtWidgets import QPlainTextEdit

from amber_client.controllers.client_supervisor import ClientFactory, ClientSupervisor
from amber_client.logger import get_logger
from amber_client.services.crash_report import CrashReporter
from amber_client.services.edit_classifier import ContextPolicy
from amber_client.services.error_policy import ErrorPolicy
from amber_client.services.server_spec import ServerProcessSpec, build_server_spec
from amber_client.settings_store import JsonSettingsStore
from amber_client.ui.editor_bridge import EditorBridge

log = get_logger("extension")


class Prompter(Protocol):
    """Anything with `choose(message, options)` and `inform(message)`."""

    def choose(self, message: str, options: Sequence[str]) -> str | None:
        ...

    def inform(self, message: str) -> None:
        ...


@dataclass
class ExtensionContext:
    extension_path: str
    workspace_root: str
    settings: JsonSettingsStore
    subscriptions: list[Callable[[], None]] = field(default_factory=list)

    def dispose(self) -> None:
        while self.subscriptions:
            self.subscriptions.pop()()


class AmberExtension(QObject):
    def __init__(
        self,
        context: ExtensionContext,
        prompter: Prompter,
        *,
        client_factory: ClientFactory | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self.context = context
        self.settings = context.settings.amber_lsp()
        self.policy = ContextPolicy.from_name(self.settings["trigger_policy"])
        self.spec: ServerProcessSpec = build_server_spec(
            version=self.settings["version"],
            server_path=self.settings["server_path"],
            extension_path=context.extension_path,
            cwd=context.workspace_root,
        )
        error_policy = ErrorPolicy(
            prompt=prompter.choose,
            inform=prompter.inform,
            reporter=CrashReporter(endpoint=self.settings["crash_report_endpoint"]),
        )
        self.supervisor = ClientSupervisor(
            error_policy,
            workspace_root=context.workspace_root,
            shutdown_timeout_ms=self.settings["shutdown_timeout_ms"],
            client_factory=client_factory,
            parent=self,
        )
        self._bridges: dict[str, EditorBridge] = {}
        context.subscriptions.append(self.stop)

    def start(self) -> None:
        log.info("activating amber-lsp: {}", " ".join(self.spec.command_line()))
        self.supervisor.start(self.spec)

    def stop(self) -> bool:
        for bridge in list(self._bridges.values()):
            bridge.close()
        self._bridges.clear()
        return self.supervisor.stop()

    def attach_editor(self, editor: QPlainTextEdit, file_path: str) -> EditorBridge:
        uri = QUrl.fromLocalFile(os.path.abspath(file_path)).toString()
        existing = self._bridges.get(uri)
        if existing is not None:
            return existing
        bridge = EditorBridge(editor, self.supervisor, document_uri=uri, policy=self.policy, parent=self)
        self._bridges[uri] = bridge
        if self.supervisor.client() is not None:
            bridge.sync_document()
        return bridge


_extension: AmberExtension | None = None


def activate(
    context: ExtensionContext,
    prompter: Prompter,
    *,
    client_factory: ClientFactory | None = None,
) -> AmberExtension:
    global _extension
    if _extension is not None:
        _extension.stop()
    _extension = AmberExtension(context, prompter, client_factory=client_factory)
    _extension.start()
    return _extension


def deactivate() -> bool:
    """Stop the window's session. Returns False when nothing was active."""
    global _extension
    if _extension is None:
        return False
    extension = _extension
    _extension = None
    extension.context.dispose()
    return True
