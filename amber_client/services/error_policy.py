"""Maps protocol failures of the analyzer connection to recovery actions."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Callable, Protocol, Sequence

from amber_client.logger import get_logger

ISSUE_TRACKER = "github.com/amber-lang/amber-lsp/issues"

RESTART_OPTION = "Restart"
REPORT_OPTION = "Report Issue"
CLOSED_PROMPT = "Amber language server stopped."
REPORT_SENT_MESSAGE = "Crash report sent successfully. Thank you for helping us improve Amber!"
REPORT_LOCAL_MESSAGE = f"Could not send a crash report. Please report the issue to {ISSUE_TRACKER}"

PromptFn = Callable[[str, Sequence[str]], "str | None"]
InformFn = Callable[[str], None]

log = get_logger("error-policy")


class RecoveryAction(enum.Enum):
    CONTINUE = "continue"
    RESTART_WITH_PROMPT = "restart"
    TERMINATE_WITH_PROMPT = "terminate"


@dataclass(frozen=True)
class ErrorOutcome:
    action: RecoveryAction
    message: str = ""
    handled: bool = True


class CrashReportSink(Protocol):
    @property
    def available(self) -> bool:
        ...

    def submit(self) -> bool:
        ...


class ErrorPolicy:
    """Decides what the supervisor does after an error or an unexpected closure.

    The prompt, the informational message and the crash reporter are injected
    so the decisions can be exercised without a UI or a network.
    """

    def __init__(self, *, prompt: PromptFn, inform: InformFn, reporter: CrashReportSink | None = None) -> None:
        self._prompt = prompt
        self._inform = inform
        self._reporter = reporter

    def error(self, error: object) -> ErrorOutcome:
        detail = str(getattr(error, "message", "") or error or "unknown error")
        return ErrorOutcome(
            action=RecoveryAction.CONTINUE,
            message=f"Amber language server error: {detail}. Please report the issue to {ISSUE_TRACKER}",
            handled=False,
        )

    def closed(self) -> ErrorOutcome:
        choice = self._prompt(CLOSED_PROMPT, (RESTART_OPTION, REPORT_OPTION))
        log.info("{} Error handling: {}", CLOSED_PROMPT, choice)

        if choice == RESTART_OPTION:
            return ErrorOutcome(action=RecoveryAction.RESTART_WITH_PROMPT)

        if choice == REPORT_OPTION:
            if self._submit_report():
                self._inform(REPORT_SENT_MESSAGE)
            else:
                self._inform(REPORT_LOCAL_MESSAGE)
        return ErrorOutcome(action=RecoveryAction.TERMINATE_WITH_PROMPT)

    def _submit_report(self) -> bool:
        reporter = self._reporter
        if reporter is None or not reporter.available:
            return False
        try:
            return bool(reporter.submit())
        except Exception as exc:
            # Reporting is best effort; the decision stands either way.
            log.exception("crash reporter failed: {}", exc)
            return False
