"""Line-local heuristics that decide whether a keystroke should request completions.

Pure functions: they look at a single incremental change and the text of the
line it lands on, never at the rest of the document.
"""

from __future__ import annotations

import enum
import re

from amber_client.lsp.types import EditEvent, codepoint_index_from_utf16_units

_TRIGGER_CHAR_RE = re.compile(r"^[A-Za-z./]$")
_IMPORT_STRING_RE = re.compile(r'\bfrom\b([^"]*)"([^"]*)$')


class ContextPolicy(enum.Enum):
    GENERIC_STRING = "string"
    IMPORT_CLAUSE = "import"

    @classmethod
    def from_name(cls, name: str | None) -> "ContextPolicy":
        key = str(name or "").strip().lower()
        for policy in cls:
            if policy.value == key:
                return policy
        return cls.IMPORT_CLAUSE


def _text_before(line_text: str, column: int) -> str:
    # Columns are LSP positions (UTF-16 code units).
    text = str(line_text or "")
    return text[: codepoint_index_from_utf16_units(text, column)]


def is_inside_string(line_text: str, column: int) -> bool:
    """Odd number of double quotes before the column. Escapes are not tracked."""
    return _text_before(line_text, column).count('"') % 2 == 1


def is_inside_import_string(line_text: str, column: int) -> bool:
    """Cursor sits in an unterminated string that follows a `from` keyword."""
    return _IMPORT_STRING_RE.search(_text_before(line_text, column)) is not None


def is_trigger_shaped(event: EditEvent) -> bool:
    change = event.change
    if change is None:
        return False
    # Replacements are accepted completions or selection deletes, not keystrokes.
    if not change.range.is_empty:
        return False
    return len(change.text) == 1


def is_trigger_character(text: str) -> bool:
    return _TRIGGER_CHAR_RE.match(str(text or "")) is not None


def in_trigger_context(line_text: str, column: int, policy: ContextPolicy) -> bool:
    if policy is ContextPolicy.GENERIC_STRING:
        return is_inside_string(line_text, column)
    return is_inside_import_string(line_text, column)


def classify(
    event: EditEvent,
    line_text_before_change: str,
    *,
    policy: ContextPolicy = ContextPolicy.IMPORT_CLAUSE,
) -> bool:
    if not is_trigger_shaped(event):
        return False
    change = event.change
    if not is_trigger_character(change.text):
        return False
    return in_trigger_context(line_text_before_change, change.range.start.character, policy)
