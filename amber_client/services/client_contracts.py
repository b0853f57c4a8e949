"""Capability contracts between the supervisor, the trigger loop and the host.

These keep the protocol transport and the editor replaceable, so the
decision logic runs against fakes without a process or a UI.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping, Protocol

CompletionCallback = Callable[[object, object], None]  # result, error


class LanguageClientTransport(Protocol):
    """What the supervisor needs from a protocol client.

    Implementations expose Qt signals `protocolError(object)`,
    `connectionClosed()`, `ready()` and `statusMessage(str)`.
    """

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
        ...

    def stop(self) -> None:
        ...

    def set_trace(self, level: str) -> None:
        ...

    def is_running(self) -> bool:
        ...

    def completion(
        self,
        *,
        uri: str,
        line: int,
        character: int,
        on_result: Callable[[object], None],
        on_error: Callable[[object], None] | None = None,
    ) -> int:
        ...

    def did_change_watched_files(self, changes: list[dict[str, Any]]) -> None:
        ...


class CompletionHost(Protocol):
    """Host-side commands the trigger loop invokes."""

    def execute_completion(self, uri: str, line: int, character: int, callback: CompletionCallback) -> None:
        ...

    def trigger_suggest(self, items: list[dict[str, Any]]) -> None:
        ...
