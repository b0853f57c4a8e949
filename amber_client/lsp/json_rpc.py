"""Content-Length framing for LSP messages exchanged over the analyzer's stdio."""

from __future__ import annotations

import json
from typing import Any

_HEADER_END = b"\r\n\r\n"


def encode_lsp_message(payload: dict[str, Any]) -> bytes:
    body = json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    return b"Content-Length: %d\r\n\r\n" % len(body) + body


def content_length(header: bytes) -> int | None:
    """Value of the `Content-Length` field, or None when missing or invalid."""
    for field in header.split(b"\r\n"):
        name, sep, value = field.partition(b":")
        if not sep or name.strip().lower() != b"content-length":
            continue
        try:
            length = int(value.strip())
        except ValueError:
            return None
        return length if length >= 0 else None
    return None


class LspMessageParser:
    """Incremental parser for `Content-Length` framed LSP messages.

    Frames that cannot be decoded are skipped; a short description of each
    is kept until `take_errors()` drains it so the transport can report them.
    """

    def __init__(self) -> None:
        self._pending = bytearray()
        self._body_size: int | None = None
        self._problems: list[str] = []

    def reset(self) -> None:
        self._pending = bytearray()
        self._body_size = None
        self._problems = []

    def take_errors(self) -> list[str]:
        problems, self._problems = self._problems, []
        return problems

    def feed(self, data: bytes | bytearray) -> list[dict[str, Any]]:
        self._pending += data or b""
        decoded: list[dict[str, Any]] = []
        while self._next_body_size() is not None:
            size = self._body_size
            if len(self._pending) < size:
                break
            body = bytes(self._pending[:size])
            del self._pending[:size]
            self._body_size = None

            message = self._decode(body)
            if message is not None:
                decoded.append(message)
        return decoded

    def _next_body_size(self) -> int | None:
        # Skips frames whose header carries no usable length.
        while self._body_size is None:
            end = self._pending.find(_HEADER_END)
            if end < 0:
                return None
            header = bytes(self._pending[:end])
            del self._pending[: end + len(_HEADER_END)]
            self._body_size = content_length(header)
            if self._body_size is None:
                self._problems.append(f"malformed header: {header[:80]!r}")
        return self._body_size

    def _decode(self, body: bytes) -> dict[str, Any] | None:
        try:
            value = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            self._problems.append(f"undecodable body: {exc}")
            return None
        if not isinstance(value, dict):
            self._problems.append(f"unexpected payload type: {type(value).__name__}")
            return None
        return value
