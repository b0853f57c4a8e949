from amber_client.services.error_policy import (
    CLOSED_PROMPT,
    ISSUE_TRACKER,
    REPORT_LOCAL_MESSAGE,
    REPORT_OPTION,
    REPORT_SENT_MESSAGE,
    RESTART_OPTION,
    ErrorPolicy,
    RecoveryAction,
)
from amber_client.lsp.lsp_client import ProtocolError
from tests.fakes import FakeReporter, ScriptedPrompt


def _policy(prompt: ScriptedPrompt, reporter: FakeReporter | None = None) -> ErrorPolicy:
    return ErrorPolicy(prompt=prompt.choose, inform=prompt.inform, reporter=reporter)


def test_error_continues_and_points_at_the_tracker() -> None:
    prompt = ScriptedPrompt()
    outcome = _policy(prompt).error(ProtocolError("Invalid JSON-RPC body", kind="decode"))

    assert outcome.action is RecoveryAction.CONTINUE
    assert outcome.handled is False
    assert "Invalid JSON-RPC body" in outcome.message
    assert ISSUE_TRACKER in outcome.message
    assert prompt.asked == []


def test_error_without_detail_still_has_a_message() -> None:
    outcome = _policy(ScriptedPrompt()).error(None)
    assert outcome.message.startswith("Amber language server error: unknown error")


def test_closed_offers_restart_and_report() -> None:
    prompt = ScriptedPrompt(RESTART_OPTION)
    outcome = _policy(prompt).closed()

    assert outcome.action is RecoveryAction.RESTART_WITH_PROMPT
    assert prompt.asked == [(CLOSED_PROMPT, (RESTART_OPTION, REPORT_OPTION))]
    assert prompt.informed == []


def test_dismissed_prompt_terminates_without_message() -> None:
    prompt = ScriptedPrompt(None)
    outcome = _policy(prompt).closed()

    assert outcome.action is RecoveryAction.TERMINATE_WITH_PROMPT
    assert prompt.informed == []


def test_report_sent_acknowledges_and_terminates() -> None:
    prompt = ScriptedPrompt(REPORT_OPTION)
    reporter = FakeReporter(result=True)
    outcome = _policy(prompt, reporter).closed()

    assert outcome.action is RecoveryAction.TERMINATE_WITH_PROMPT
    assert reporter.submissions == 1
    assert prompt.informed == [REPORT_SENT_MESSAGE]


def test_report_without_reporter_falls_back_to_local_message() -> None:
    prompt = ScriptedPrompt(REPORT_OPTION)
    outcome = _policy(prompt).closed()

    assert outcome.action is RecoveryAction.TERMINATE_WITH_PROMPT
    assert prompt.informed == [REPORT_LOCAL_MESSAGE]


def test_unavailable_reporter_is_not_called() -> None:
    prompt = ScriptedPrompt(REPORT_OPTION)
    reporter = FakeReporter(available=False)
    _policy(prompt, reporter).closed()

    assert reporter.submissions == 0
    assert prompt.informed == [REPORT_LOCAL_MESSAGE]


def test_failing_reporter_does_not_change_the_decision() -> None:
    for reporter in (FakeReporter(result=False), FakeReporter(error=RuntimeError("offline"))):
        prompt = ScriptedPrompt(REPORT_OPTION)
        outcome = _policy(prompt, reporter).closed()

        assert outcome.action is RecoveryAction.TERMINATE_WITH_PROMPT
        assert reporter.submissions == 1
        assert prompt.informed == [REPORT_LOCAL_MESSAGE]
