from amber_client.controllers.trigger_coordinator import TriggerCoordinator, completion_items
from amber_client.lsp.types import EditEvent, Position, Range, TextChange
from amber_client.services.debounce_gate import DebounceGate
from amber_client.services.edit_classifier import ContextPolicy
from tests.fakes import FakeCompletionHost

URI = "file:///work/main.ab"
LINE = 'import { split } from "std/'


def _type(coordinator: TriggerCoordinator, line: str, char: str) -> bool:
    event = EditEvent.insertion(URI, 3, len(line), char)
    return coordinator.handle_edit(event, line + char)


def test_debounce_gate_is_one_shot() -> None:
    gate = DebounceGate().arm()
    was_armed, gate = gate.consume()
    assert was_armed is True
    was_armed, gate = gate.consume()
    assert was_armed is False
    assert gate == DebounceGate()


def test_completion_items_accepts_lists_and_completion_lists() -> None:
    assert completion_items([{"label": "a"}, "junk"]) == [{"label": "a"}]
    assert completion_items({"isIncomplete": False, "items": [{"label": "b"}]}) == [{"label": "b"}]
    assert completion_items({"items": None}) == []
    assert completion_items(None) == []


def test_trigger_worthy_edit_queries_after_the_inserted_character() -> None:
    host = FakeCompletionHost()
    coordinator = TriggerCoordinator(host)

    assert _type(coordinator, LINE, "t") is True
    assert host.queries == [(URI, 3, len(LINE) + 1)]


def test_non_trigger_edit_issues_no_query() -> None:
    host = FakeCompletionHost()
    coordinator = TriggerCoordinator(host)

    assert _type(coordinator, "let x = 1", "a") is False
    assert host.queries == []


def test_non_empty_results_show_suggestions_and_arm_gate() -> None:
    host = FakeCompletionHost()
    coordinator = TriggerCoordinator(host)
    shown = []
    coordinator.suggestionsShown.connect(shown.append)

    _type(coordinator, LINE, "t")
    host.callbacks[0]({"items": [{"label": "text"}]}, None)

    assert host.shown == [[{"label": "text"}]]
    assert shown == [[{"label": "text"}]]
    assert coordinator.gate.armed is True


def test_empty_or_failed_results_show_nothing() -> None:
    host = FakeCompletionHost()
    coordinator = TriggerCoordinator(host)

    _type(coordinator, LINE, "t")
    host.callbacks[0]([], None)
    _type(coordinator, LINE + "t", "e")
    host.callbacks[1](None, {"code": -32603, "message": "boom"})

    assert host.shown == []
    assert coordinator.gate.armed is False


def test_acceptance_edit_consumes_the_gate_once() -> None:
    host = FakeCompletionHost()
    coordinator = TriggerCoordinator(host)
    _type(coordinator, LINE, "t")
    host.callbacks[0]([{"label": "text"}], None)

    # Accepting the suggestion replaces the typed prefix.
    acceptance = EditEvent(URI, TextChange(Range(Position(3, len(LINE)), Position(3, len(LINE) + 1)), "text"))
    assert coordinator.handle_edit(acceptance, LINE + "text") is False
    assert coordinator.gate.armed is False

    assert _type(coordinator, LINE + "text", "/") is True
    assert len(host.queries) == 2


def test_armed_gate_swallows_next_trigger_worthy_edit() -> None:
    host = FakeCompletionHost()
    coordinator = TriggerCoordinator(host)
    _type(coordinator, LINE, "t")
    host.callbacks[0]([{"label": "text"}], None)

    assert _type(coordinator, LINE + "t", "e") is False
    assert len(host.queries) == 1
    assert _type(coordinator, LINE + "te", "x") is True


def test_stale_results_are_dropped() -> None:
    host = FakeCompletionHost()
    coordinator = TriggerCoordinator(host)

    _type(coordinator, LINE, "t")
    _type(coordinator, LINE + "t", "e")
    host.callbacks[0]([{"label": "stale"}], None)
    assert host.shown == []

    host.callbacks[1]([{"label": "text"}], None)
    assert host.shown == [[{"label": "text"}]]


def test_policy_selection_changes_decisions() -> None:
    host = FakeCompletionHost()
    coordinator = TriggerCoordinator(host, policy=ContextPolicy.GENERIC_STRING)
    line = 'import "std/'

    assert _type(coordinator, line, "i") is True
    coordinator.set_policy(ContextPolicy.IMPORT_CLAUSE)
    assert _type(coordinator, line, "i") is False
