"""LSP position/range values and the editor-side edit event."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Position:
    line: int
    character: int


@dataclass(frozen=True)
class Range:
    start: Position
    end: Position

    @property
    def is_empty(self) -> bool:
        return self.start == self.end

    @classmethod
    def at(cls, line: int, character: int) -> "Range":
        pos = Position(line, character)
        return cls(pos, pos)


@dataclass(frozen=True)
class TextChange:
    """One incremental content change: `range` is replaced by `text`."""

    range: Range
    text: str


@dataclass(frozen=True)
class EditEvent:
    document_uri: str
    change: TextChange | None

    @classmethod
    def insertion(cls, document_uri: str, line: int, character: int, text: str) -> "EditEvent":
        return cls(document_uri, TextChange(Range.at(line, character), text))


def utf16_code_units(text: str) -> int:
    if not text:
        return 0
    return len(text.encode("utf-16-le")) // 2


def codepoint_index_from_utf16_units(text: str, utf16_units: int) -> int:
    if not text:
        return 0
    remaining = max(0, int(utf16_units))
    idx = 0
    while idx < len(text):
        units = 1 if ord(text[idx]) <= 0xFFFF else 2
        if remaining < units:
            break
        remaining -= units
        idx += 1
    return idx
