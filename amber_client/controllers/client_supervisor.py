"""Ownership of the analyzer session: start, stop, crash recovery."""

from __future__ import annotations

import enum
import os
from functools import partial
from typing import Callable

from PySide6.QtCore import QObject, QUrl, Signal

from amber_client.logger import get_logger
from amber_client.lsp.lsp_client import LspClient
from amber_client.services.client_contracts import LanguageClientTransport
from amber_client.services.config_file_watcher import CONFIG_FILE_GLOB, ConfigFileWatcher
from amber_client.services.error_policy import ErrorPolicy, RecoveryAction
from amber_client.services.server_spec import ServerProcessSpec

AMBER_LANGUAGE_ID = "amber"
DOCUMENT_SELECTOR = [{"scheme": "file", "language": AMBER_LANGUAGE_ID}]

# Set on every client before it is started.
TRACE_LEVEL = "verbose"

ClientFactory = Callable[[QObject], LanguageClientTransport]
WatcherFactory = Callable[[str, QObject], ConfigFileWatcher]

log = get_logger("supervisor")


class SessionState(enum.Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    AWAITING_DECISION = "awaiting_decision"
    RESTARTING = "restarting"
    TERMINATED = "terminated"


def _default_watcher(root: str, parent: QObject) -> ConfigFileWatcher:
    return ConfigFileWatcher(root, CONFIG_FILE_GLOB, parent)


class ClientSupervisor(QObject):
    """Owns at most one analyzer session and applies the error policy to it."""

    stateChanged = Signal(str)
    statusMessage = Signal(str)
    sessionStarted = Signal()
    sessionTerminated = Signal()

    def __init__(
        self,
        policy: ErrorPolicy,
        *,
        workspace_root: str = "",
        shutdown_timeout_ms: int = 1200,
        client_factory: ClientFactory | None = None,
        watcher_factory: WatcherFactory | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._policy = policy
        self._workspace_root = os.path.abspath(workspace_root) if workspace_root else ""
        self._shutdown_timeout_ms = int(shutdown_timeout_ms)
        self._client_factory: ClientFactory = client_factory or LspClient
        self._watcher_factory: WatcherFactory = watcher_factory or _default_watcher

        self._client: LanguageClientTransport | None = None
        self._watcher: ConfigFileWatcher | None = None
        self._spec: ServerProcessSpec | None = None
        self._state = SessionState.STOPPED
        self.restart_count = 0

    def state(self) -> SessionState:
        return self._state

    def spec(self) -> ServerProcessSpec | None:
        return self._spec

    def client(self) -> LanguageClientTransport | None:
        return self._client

    def is_running(self) -> bool:
        return self._client is not None and self._state in {SessionState.STARTING, SessionState.RUNNING}

    def start(self, spec: ServerProcessSpec) -> None:
        self.stop()
        self._spec = spec

        client = self._client_factory(self)
        client.protocolError.connect(partial(self._on_protocol_error, client))
        client.connectionClosed.connect(partial(self._on_connection_closed, client))
        client.ready.connect(partial(self._on_client_ready, client))
        client.statusMessage.connect(self.statusMessage.emit)
        self._client = client

        set_timeout = getattr(client, "set_shutdown_timeout", None)
        if callable(set_timeout):
            set_timeout(self._shutdown_timeout_ms)
        client.set_trace(TRACE_LEVEL)

        root = self._workspace_root
        cwd = spec.cwd or root
        self._set_state(SessionState.STARTING)
        client.start(
            program=spec.command,
            args=list(spec.args),
            env=spec.env,
            cwd=cwd,
            root_uri=QUrl.fromLocalFile(root).toString() if root else "",
            workspace_name=os.path.basename(root) if root else "",
            document_selector=[dict(item) for item in DOCUMENT_SELECTOR],
        )
        if self._client is not client:
            # Launch failed synchronously and the session was already torn down.
            return
        self._start_watcher()
        self.statusMessage.emit("amber-lsp start")

    def stop(self) -> bool:
        """Shut the session down. Returns False when there was nothing to stop."""
        client = self._client
        if client is None:
            return False
        self._teardown(SessionState.STOPPED)
        return True

    def restart(self) -> bool:
        if self._spec is None:
            return False
        self.restart_count += 1
        self._teardown(SessionState.RESTARTING)
        self.start(self._spec)
        return True

    def _teardown(self, final_state: SessionState) -> None:
        client = self._client
        self._client = None
        self._stop_watcher()
        if client is not None:
            client.stop()
            if client.is_running():
                client.stopped.connect(client.deleteLater)
            else:
                client.deleteLater()
        self._set_state(final_state)

    def _start_watcher(self) -> None:
        if not self._workspace_root or not os.path.isdir(self._workspace_root):
            return
        watcher = self._watcher_factory(self._workspace_root, self)
        watcher.filesChanged.connect(self._on_watched_files_changed)
        watcher.start()
        self._watcher = watcher

    def _stop_watcher(self) -> None:
        watcher = self._watcher
        self._watcher = None
        if watcher is not None:
            watcher.stop()
            watcher.deleteLater()

    def _on_watched_files_changed(self, changes: object) -> None:
        if self._client is None or not isinstance(changes, list):
            return
        self._client.did_change_watched_files(changes)

    def _on_client_ready(self, client: LanguageClientTransport) -> None:
        if client is not self._client:
            return
        self._set_state(SessionState.RUNNING)
        self.sessionStarted.emit()

    def _on_protocol_error(self, client: LanguageClientTransport, error: object) -> None:
        if client is not self._client:
            return
        if getattr(error, "kind", None) == "launch":
            self._on_launch_failed(error)
            return
        outcome = self._policy.error(error)
        log.warning(outcome.message)
        if not outcome.handled:
            log.error("protocol error: {!r}", error)
        self.statusMessage.emit(outcome.message)

    def _on_launch_failed(self, error: object) -> None:
        message = f"Could not start amber-lsp: {error}"
        log.error(message)
        self._teardown(SessionState.TERMINATED)
        self.statusMessage.emit(message)
        self.sessionTerminated.emit()

    def _on_connection_closed(self, client: LanguageClientTransport) -> None:
        if client is not self._client:
            return
        if self._state is SessionState.AWAITING_DECISION:
            log.info("closure ignored while a decision is pending")
            return

        self._set_state(SessionState.AWAITING_DECISION)
        outcome = self._policy.closed()
        if client is not self._client:
            # Stopped or replaced while the prompt was open.
            return

        if outcome.action is RecoveryAction.RESTART_WITH_PROMPT:
            log.info("restarting amber-lsp after user confirmation")
            self.restart()
            return

        log.info("amber-lsp terminated after closure")
        self._teardown(SessionState.TERMINATED)
        self.sessionTerminated.emit()

    def _set_state(self, state: SessionState) -> None:
        if state is self._state:
            return
        self._state = state
        self.stateChanged.emit(state.value)
