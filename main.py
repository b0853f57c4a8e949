import os
import sys
from pathlib import Path

from PySide6.QtWidgets import QApplication, QMainWindow

from amber_client.extension import ExtensionContext, activate, deactivate
from amber_client.logger import setup_logger
from amber_client.settings_store import JsonSettingsStore
from amber_client.ui.editor_widget import AmberEditor
from amber_client.ui.prompts import MessageBoxPrompter

APP_NAME = "Amber"
SETTINGS_ENV = "AMBER_CLIENT_SETTINGS"


def _settings_path() -> Path:
    override = str(os.environ.get(SETTINGS_ENV) or "").strip()
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / "amber-client" / "settings.json"


def _load_settings() -> JsonSettingsStore:
    store = JsonSettingsStore(_settings_path())
    store.load()
    if store.last_error:
        print(f"[{APP_NAME}] Ignoring invalid settings: {store.last_error}")
    return store


class AmberWindow(QMainWindow):
    def __init__(self, file_path: Path) -> None:
        super().__init__()
        self.file_path = file_path
        self.editor = AmberEditor(self)
        if file_path.is_file():
            self.editor.setPlainText(file_path.read_text(encoding="utf-8"))
        self.setCentralWidget(self.editor)
        self.setWindowTitle(f"{APP_NAME} [{file_path.name}]")
        self.resize(900, 640)

    def closeEvent(self, event) -> None:
        deactivate()
        super().closeEvent(event)


if __name__ == "__main__":
    args = sys.argv[1:]
    target = Path(args[0] if args else "main.ab").expanduser().resolve()
    setup_logger(log_level="DEBUG", console_output=True)

    app = QApplication([sys.argv[0]])
    app.setApplicationName(APP_NAME)
    window = AmberWindow(target)

    context = ExtensionContext(
        extension_path=str(Path(__file__).resolve().parent),
        workspace_root=str(target.parent),
        settings=_load_settings(),
    )
    extension = activate(context, MessageBoxPrompter(window))
    extension.supervisor.statusMessage.connect(lambda text: window.statusBar().showMessage(text, 4000))
    extension.attach_editor(window.editor, str(target))

    window.show()
    sys.exit(app.exec())
