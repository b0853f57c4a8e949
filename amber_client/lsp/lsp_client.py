"""Async LSP client for the Amber analyzer over stdio using QProcess."""

from __future__ import annotations

import fnmatch
import os
from typing import Any, Callable, Mapping, NamedTuple

from PySide6.QtCore import QObject, QProcess, QProcessEnvironment, QTimer, QUrl, Signal

from amber_client.logger import get_logger

from .json_rpc import LspMessageParser, encode_lsp_message

OnResult = Callable[[object], None]
OnError = Callable[[object], None]

TRACE_LEVELS = ("off", "messages", "verbose")
METHOD_NOT_FOUND = -32601
SERVER_NOT_RUNNING = -32000
TERMINATE_GRACE_MS = 1000

# Server requests that must be acknowledged with an empty result.
_ACKNOWLEDGED_SERVER_REQUESTS = frozenset(
    {
        "client/registerCapability",
        "client/unregisterCapability",
        "window/workDoneProgress/create",
    }
)

log = get_logger("amber-lsp")


class ProtocolError(RuntimeError):
    """Transport-level failure of the protocol connection."""

    def __init__(self, message: str, *, kind: str = "process") -> None:
        super().__init__(message)
        self.kind = kind


class _Callbacks(NamedTuple):
    method: str
    on_result: OnResult | None
    on_error: OnError | None


def _local_path(uri: str) -> str:
    url = QUrl(str(uri or ""))
    return url.toLocalFile() if url.isLocalFile() else str(uri or "")


def build_initialize_params(
    *,
    root_uri: str,
    workspace_name: str,
    trace: str,
    initialization_options: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """`initialize` request for the analyzer; Amber only needs completion and file watching."""
    params: dict[str, Any] = {
        "processId": os.getpid(),
        "clientInfo": {"name": "amber-client"},
        "rootUri": root_uri or None,
        "trace": trace,
        "capabilities": {
            "textDocument": {
                "synchronization": {"dynamicRegistration": False, "didSave": False},
                "completion": {
                    "contextSupport": True,
                    "completionItem": {"snippetSupport": False, "insertReplaceSupport": False},
                },
            },
            "workspace": {
                "workspaceFolders": True,
                "configuration": True,
                "didChangeWatchedFiles": {"dynamicRegistration": True},
            },
        },
        "initializationOptions": dict(initialization_options or {}),
    }
    if root_uri:
        name = workspace_name or os.path.basename(_local_path(root_uri).rstrip("/")) or "workspace"
        params["workspaceFolders"] = [{"uri": root_uri, "name": name}]
    return params


class LspClient(QObject):
    """One analyzer process and the JSON-RPC conversation with it.

    Messages sent before `initialize` completes are held back and flushed once
    the server is ready. `protocolError` carries recoverable transport
    failures; `connectionClosed` fires once when the analyzer exits without a
    prior `stop()`.
    """

    started = Signal()
    stopped = Signal()
    ready = Signal()
    notificationReceived = Signal(str, object)
    statusMessage = Signal(str)
    trafficLogged = Signal(str, str)  # direction, summary
    protocolError = Signal(object)
    connectionClosed = Signal()

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._process = QProcess(self)
        self._process.started.connect(self._on_started)
        self._process.finished.connect(self._on_finished)
        self._process.errorOccurred.connect(self._on_error_occurred)
        self._process.readyReadStandardOutput.connect(self._read_stdout)
        self._process.readyReadStandardError.connect(self._read_stderr)

        self._parser = LspMessageParser()
        self._request_seq = 0
        self._callbacks: dict[int, _Callbacks] = {}
        self._held: list[dict[str, Any]] = []
        self._versions: dict[str, int] = {}
        self._launch: dict[str, Any] = {}
        self._selector: list[dict[str, str]] = []

        self._alive = False
        self._initialized = False
        self._stop_requested = False
        self._trace = "off"

        # shutdown timeout -> terminate(); grace period -> kill()
        self._shutdown_timer = QTimer(self)
        self._shutdown_timer.setSingleShot(True)
        self._shutdown_timer.setInterval(1200)
        self._shutdown_timer.timeout.connect(self._terminate)
        self._kill_timer = QTimer(self)
        self._kill_timer.setSingleShot(True)
        self._kill_timer.setInterval(TERMINATE_GRACE_MS)
        self._kill_timer.timeout.connect(self._kill)

    def set_trace(self, level: str) -> None:
        value = str(level or "").strip().lower()
        self._trace = value if value in TRACE_LEVELS else "off"
        if self.is_ready():
            self.notify("$/setTrace", {"value": self._trace})

    def set_shutdown_timeout(self, timeout_ms: int) -> None:
        self._shutdown_timer.setInterval(max(100, int(timeout_ms)))

    def is_running(self) -> bool:
        return self._process.state() != QProcess.NotRunning

    def is_ready(self) -> bool:
        return self._alive and self._initialized

    def accepts_document(self, uri: str, language_id: str) -> bool:
        """Apply the document selector given to `start()`; no selector accepts everything."""
        if not self._selector:
            return True
        scheme = QUrl(str(uri or "")).scheme() or "file"
        path = _local_path(uri)
        for entry in self._selector:
            if entry.get("scheme") and entry["scheme"] != scheme:
                continue
            if entry.get("language") and entry["language"] != language_id:
                continue
            if entry.get("pattern") and not fnmatch.fnmatch(path, entry["pattern"]):
                continue
            return True
        return False

    def start(
        self,
        *,
        program: str,
        args: list[str] | None = None,
        env: Mapping[str, str] | None = None,
        cwd: str = "",
        root_uri: str = "",
        workspace_name: str = "",
        document_selector: list[dict[str, str]] | None = None,
        initialization_options: dict[str, Any] | None = None,
    ) -> None:
        self.stop()
        self._reset()
        self._request_seq = 0
        self._stop_requested = False
        self._selector = [dict(entry) for entry in document_selector or []]
        self._launch = {
            "root_uri": str(root_uri or "").strip(),
            "workspace_name": str(workspace_name or "").strip(),
            "initialization_options": initialization_options or {},
        }

        if env is not None:
            environment = QProcessEnvironment()
            for key, value in env.items():
                environment.insert(str(key), str(value))
            self._process.setProcessEnvironment(environment)
        if cwd and os.path.isdir(cwd):
            self._process.setWorkingDirectory(cwd)

        command = str(program or "").strip() or "amber-lsp"
        arguments = [str(arg) for arg in args or []]
        log.info("starting {} {}", command, " ".join(arguments))
        self._process.start(command, arguments)

    def stop(self) -> None:
        """Ask the analyzer to shut down; it is killed if it has not exited in time."""
        state = self._process.state()
        if state == QProcess.NotRunning:
            self._reset()
            return

        self._stop_requested = True
        if state == QProcess.Starting:
            self._process.kill()
            return
        if not self.is_ready():
            self._send_exit()
            self._terminate()
            return

        self.request("shutdown", None, on_result=self._send_exit, on_error=self._send_exit)
        self._shutdown_timer.start()

    def request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        *,
        on_result: OnResult | None = None,
        on_error: OnError | None = None,
    ) -> int:
        """Returns the request id, or 0 when no analyzer process is running."""
        if not self.is_running():
            if on_error is not None:
                on_error({"code": SERVER_NOT_RUNNING, "message": f"{method}: analyzer not running"})
            return 0
        self._request_seq += 1
        request_id = self._request_seq
        self._callbacks[request_id] = _Callbacks(method, on_result, on_error)
        message: dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "method": method}
        if params is not None:
            message["params"] = params
        self._dispatch(message, hold=method != "initialize")
        return request_id

    def notify(self, method: str, params: dict[str, Any] | None = None, *, requires_ready: bool = True) -> None:
        message: dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            message["params"] = params
        self._dispatch(message, hold=requires_ready)

    def completion(
        self,
        *,
        uri: str,
        line: int,
        character: int,
        on_result: OnResult,
        on_error: OnError | None = None,
    ) -> int:
        params = {
            "textDocument": {"uri": uri},
            "position": {"line": max(0, int(line)), "character": max(0, int(character))},
            "context": {"triggerKind": 1},
        }
        return self.request("textDocument/completion", params, on_result=on_result, on_error=on_error)

    def did_open(self, *, uri: str, language_id: str, text: str) -> int:
        if not uri or not self.accepts_document(uri, language_id):
            return 0
        if uri in self._versions:
            return self.did_change(uri=uri, text=text, language_id=language_id)
        self._versions[uri] = 1
        document = {"uri": uri, "languageId": language_id, "version": 1, "text": text or ""}
        self.notify("textDocument/didOpen", {"textDocument": document})
        return 1

    def did_change(self, *, uri: str, text: str, language_id: str = "amber") -> int:
        if not uri or not self.accepts_document(uri, language_id):
            return 0
        if uri not in self._versions:
            return self.did_open(uri=uri, language_id=language_id, text=text)
        version = self._versions[uri] + 1
        self._versions[uri] = version
        # Full-text sync; the analyzer re-parses the whole file anyway.
        self.notify(
            "textDocument/didChange",
            {"textDocument": {"uri": uri, "version": version}, "contentChanges": [{"text": text or ""}]},
        )
        return version

    def did_close(self, *, uri: str) -> None:
        if self._versions.pop(uri, None) is not None:
            self.notify("textDocument/didClose", {"textDocument": {"uri": uri}})

    def did_change_watched_files(self, changes: list[dict[str, Any]]) -> None:
        if changes:
            self.notify("workspace/didChangeWatchedFiles", {"changes": list(changes)})

    def _reset(self) -> None:
        self._shutdown_timer.stop()
        self._kill_timer.stop()
        self._alive = False
        self._initialized = False
        self._callbacks.clear()
        self._held.clear()
        self._versions.clear()
        self._parser.reset()

    def _dispatch(self, message: dict[str, Any], *, hold: bool) -> None:
        if not self.is_running():
            return
        if hold and not self.is_ready():
            self._held.append(message)
            return
        self._write(message)

    def _write(self, message: dict[str, Any]) -> None:
        if not self.is_running():
            return
        if self._process.write(encode_lsp_message(message)) < 0:
            if not self._stop_requested:
                error = ProtocolError(f"write failed: {self._process.errorString()}", kind="write")
                self.protocolError.emit(error)
            return
        self._trace_traffic("out", message)

    def _send_exit(self, _reply: object = None) -> None:
        if self.is_running():
            self.notify("exit", None, requires_ready=False)

    def _terminate(self) -> None:
        if self.is_running():
            self._process.terminate()
            self._kill_timer.start()

    def _kill(self) -> None:
        if self.is_running():
            self._process.kill()

    def _on_started(self) -> None:
        self._alive = True
        self.started.emit()
        params = build_initialize_params(
            root_uri=self._launch.get("root_uri", ""),
            workspace_name=self._launch.get("workspace_name", ""),
            trace=self._trace,
            initialization_options=self._launch.get("initialization_options"),
        )
        self.request("initialize", params, on_result=self._on_initialized, on_error=self._on_initialize_failed)

    def _on_initialized(self, _result: object) -> None:
        self._initialized = True
        self.notify("initialized", {}, requires_ready=False)
        if self._trace != "off":
            self.notify("$/setTrace", {"value": self._trace})
        self.ready.emit()

        held, self._held = self._held, []
        for message in held:
            self._write(message)

    def _on_initialize_failed(self, error: object) -> None:
        self._initialized = False
        self.protocolError.emit(ProtocolError(f"initialize failed: {error}", kind="initialize"))

    def _on_finished(self, exit_code: int, _exit_status: QProcess.ExitStatus) -> None:
        was_alive = self._alive
        requested = self._stop_requested
        self._stop_requested = False
        self._reset()
        log.info("analyzer exited with code {} (requested={})", exit_code, requested)
        if not was_alive:
            return
        self.stopped.emit()
        if not requested:
            self.connectionClosed.emit()

    def _on_error_occurred(self, error: QProcess.ProcessError) -> None:
        # Crashes are reported once through `finished` -> `connectionClosed`.
        if error == QProcess.ProcessError.Crashed:
            return
        if error == QProcess.ProcessError.FailedToStart:
            # No `started` or `finished` follows; the session is over.
            self._stop_requested = False
            self._reset()
            log.error("could not launch analyzer: {}", self._process.errorString())
            self.protocolError.emit(ProtocolError(self._process.errorString(), kind="launch"))
            return
        io_errors = (QProcess.ProcessError.ReadError, QProcess.ProcessError.WriteError)
        if self._stop_requested and error in io_errors:
            return
        kind = "write" if error == QProcess.ProcessError.WriteError else "process"
        self.protocolError.emit(ProtocolError(self._process.errorString(), kind=kind))

    def _read_stdout(self) -> None:
        chunk = bytes(self._process.readAllStandardOutput())
        for message in self._parser.feed(chunk):
            self._trace_traffic("in", message)
            self._route(message)
        for problem in self._parser.take_errors():
            self.protocolError.emit(ProtocolError(problem, kind="decode"))

    def _read_stderr(self) -> None:
        text = bytes(self._process.readAllStandardError()).decode("utf-8", errors="replace").strip()
        if text:
            log.debug("stderr: {}", text)

    def _route(self, message: dict[str, Any]) -> None:
        method = message.get("method")
        if not method:
            if "id" in message:
                self._resolve(message)
            return
        if "id" in message:
            self._answer(message["id"], str(method), message.get("params"))
            return

        params = message.get("params")
        if method in ("window/logMessage", "window/showMessage") and isinstance(params, dict):
            text = str(params.get("message") or "").strip()
            if text:
                self.statusMessage.emit(text)
        elif method == "$/logTrace" and isinstance(params, dict):
            log.trace("server trace: {}", params.get("message"))
        self.notificationReceived.emit(str(method), params)

    def _answer(self, request_id: object, method: str, params: object) -> None:
        reply: dict[str, Any] = {"jsonrpc": "2.0", "id": request_id}
        if method in _ACKNOWLEDGED_SERVER_REQUESTS:
            reply["result"] = None
        elif method == "workspace/configuration":
            items = params.get("items") if isinstance(params, dict) else None
            reply["result"] = [None] * (len(items) if isinstance(items, list) else 0)
        else:
            reply["error"] = {"code": METHOD_NOT_FOUND, "message": f"Unsupported request: {method}"}
        self._write(reply)

    def _resolve(self, message: dict[str, Any]) -> None:
        try:
            callbacks = self._callbacks.pop(int(message["id"]), None)
        except (TypeError, ValueError):
            return
        if callbacks is None:
            return
        if "error" in message:
            if callbacks.on_error is not None:
                callbacks.on_error(message["error"])
        elif callbacks.on_result is not None:
            callbacks.on_result(message.get("result"))

    def _trace_traffic(self, direction: str, message: dict[str, Any]) -> None:
        if self._trace == "off":
            return
        if self._trace == "verbose":
            summary = str(message)
        else:
            summary = str(message.get("method") or f"response #{message.get('id')}")
        log.debug("[{}] {}", direction, summary)
        self.trafficLogged.emit(direction, summary)
