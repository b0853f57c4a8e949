"""Suppression of the edit that accepting a suggestion produces."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class DebounceGate:
    """Immutable one-shot suppression state.

    Armed right after the suggestion UI is shown; the next edit event of the
    document consumes it, whatever its shape.
    """

    armed: bool = False

    def arm(self) -> "DebounceGate":
        return DebounceGate(armed=True)

    def consume(self) -> tuple[bool, "DebounceGate"]:
        return self.armed, DebounceGate(armed=False)
