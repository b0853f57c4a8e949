import pytest
from PySide6.QtGui import QTextCursor
from PySide6.QtTest import QTest

from amber_client.controllers.client_supervisor import ClientSupervisor
from amber_client.lsp.types import utf16_code_units
from amber_client.services.error_policy import ErrorPolicy
from amber_client.services.server_spec import ServerProcessSpec
from amber_client.ui.editor_bridge import EditorBridge, build_edit_event
from amber_client.ui.editor_widget import AmberEditor, completion_insert_text
from tests.fakes import FakeClientFactory, ScriptedPrompt

URI = "file:///work/main.ab"
IMPORT_LINE = 'import { split } from "std/'


@pytest.fixture
def factory() -> FakeClientFactory:
    return FakeClientFactory()


@pytest.fixture
def supervisor(factory: FakeClientFactory) -> ClientSupervisor:
    prompt = ScriptedPrompt()
    return ClientSupervisor(ErrorPolicy(prompt=prompt.choose, inform=prompt.inform), client_factory=factory)


@pytest.fixture
def editor():
    widget = AmberEditor()
    widget.show()
    yield widget
    widget.close()
    widget.deleteLater()


def _attach(editor: AmberEditor, supervisor: ClientSupervisor, text: str, *, start: bool = True) -> EditorBridge:
    editor.setPlainText(text)
    editor.moveCursor(QTextCursor.End)
    bridge = EditorBridge(editor, supervisor, document_uri=URI)
    if start:
        supervisor.start(ServerProcessSpec(command="amber-lsp"))
        supervisor.client().ready.emit()
    return bridge


def test_single_keystroke_becomes_an_empty_range_insert() -> None:
    event = build_edit_event(URI, line=2, character=7, chars_removed=0, inserted_text="s")
    assert event.change.range.is_empty
    assert event.change.range.start.line == 2
    assert event.change.range.start.character == 7
    assert event.change.text == "s"


def test_replacement_keeps_the_removed_span() -> None:
    event = build_edit_event(URI, line=0, character=3, chars_removed=4, inserted_text="text")
    assert not event.change.range.is_empty
    assert event.change.range.end.character == 7


def test_completion_insert_text_prefers_edits_then_insert_text() -> None:
    assert completion_insert_text({"label": "x", "textEdit": {"newText": "std/math"}}) == "std/math"
    assert completion_insert_text({"label": "std/text", "insertText": "text"}) == "text"
    assert completion_insert_text({"label": "std/array"}) == "std/array"


def test_typing_in_an_import_path_queries_after_syncing(editor, supervisor, factory) -> None:
    bridge = _attach(editor, supervisor, "echo 1\n" + IMPORT_LINE)
    client = factory.latest
    assert client.opened == ["echo 1\n" + IMPORT_LINE]

    QTest.keyClicks(editor, "t")

    assert len(client.completions) == 1
    query = client.completions[0]
    assert (query["uri"], query["line"], query["character"]) == (URI, 1, len(IMPORT_LINE) + 1)
    assert client.calls[-2:] == ["did_change", "completion"]
    assert client.changed[-1] == "echo 1\n" + IMPORT_LINE + "t"
    assert bridge.document_uri == URI


def test_typing_outside_an_import_path_issues_no_query(editor, supervisor, factory) -> None:
    bridge = _attach(editor, supervisor, 'echo "std/')

    QTest.keyClicks(editor, "ab")

    assert factory.latest.completions == []
    assert bridge.coordinator.gate.armed is False


def test_columns_are_utf16_code_units(editor, supervisor, factory) -> None:
    line = 'import * from "\U0001F600/'
    bridge = _attach(editor, supervisor, line)

    QTest.keyClicks(editor, "a")

    assert factory.latest.completions[0]["character"] == utf16_code_units(line) + 1
    assert utf16_code_units(line) == len(line) + 1
    assert bridge.coordinator.gate.armed is False


def test_accepting_a_suggestion_does_not_retrigger(editor, supervisor, factory) -> None:
    bridge = _attach(editor, supervisor, IMPORT_LINE)
    client = factory.latest
    QTest.keyClicks(editor, "t")

    client.completions[0]["on_result"]([{"label": "std/text"}])
    assert editor.suggestions_visible()
    assert bridge.coordinator.gate.armed is True

    assert editor.accept_suggestion() is True
    assert editor.toPlainText() == 'import { split } from "std/text'
    assert bridge.coordinator.gate.armed is False
    assert len(client.completions) == 1

    QTest.keyClicks(editor, "/")
    assert len(client.completions) == 2


def test_completion_without_a_session_reports_an_error(editor, supervisor, factory) -> None:
    bridge = _attach(editor, supervisor, IMPORT_LINE, start=False)
    results = []

    bridge.execute_completion(URI, 0, len(IMPORT_LINE), lambda result, error: results.append((result, error)))

    assert factory.created == []
    assert results[0][0] is None
    assert results[0][1]["message"] == "amber_lsp_not_running"
