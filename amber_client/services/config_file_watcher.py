"""Watches the workspace for auxiliary config files and reports LSP file events."""

from __future__ import annotations

import fnmatch
import os
from pathlib import Path

from PySide6.QtCore import QFileSystemWatcher, QObject, QUrl, Signal

CONFIG_FILE_GLOB = "**/.clientrc"

FILE_CREATED = 1
FILE_CHANGED = 2
FILE_DELETED = 3

_SKIP_WALK_DIRS = {".git", ".hg", ".svn", ".venv", "__pycache__", "node_modules", "target"}
_MAX_WATCHED_DIRS = 512


def glob_matches(relative_path: str, pattern: str) -> bool:
    rel = str(relative_path or "").replace(os.sep, "/")
    if fnmatch.fnmatchcase(rel, pattern):
        return True
    # `**/` also matches files directly under the root.
    if pattern.startswith("**/"):
        return fnmatch.fnmatchcase(rel, pattern[3:])
    return False


class ConfigFileWatcher(QObject):
    filesChanged = Signal(object)  # list[{"uri": str, "type": int}]

    def __init__(self, root: str, pattern: str = CONFIG_FILE_GLOB, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._root = os.path.abspath(str(root or "."))
        self._pattern = str(pattern or CONFIG_FILE_GLOB)
        self._known: dict[str, float] = {}
        self._watcher = QFileSystemWatcher(self)
        self._watcher.directoryChanged.connect(self.rescan_directory)
        self._watcher.fileChanged.connect(self._on_file_changed)

    @property
    def root(self) -> str:
        return self._root

    def known_files(self) -> list[str]:
        return sorted(self._known)

    def start(self) -> None:
        self._known.clear()
        directories: list[str] = []
        for dirpath, dirnames, filenames in os.walk(self._root):
            dirnames[:] = [name for name in dirnames if name not in _SKIP_WALK_DIRS]
            if len(directories) < _MAX_WATCHED_DIRS:
                directories.append(dirpath)
            for name in filenames:
                path = os.path.join(dirpath, name)
                if self._matches(path):
                    self._known[path] = self._mtime(path)
        if directories:
            self._watcher.addPaths(directories)
        if self._known:
            self._watcher.addPaths(list(self._known))

    def stop(self) -> None:
        for paths in (self._watcher.directories(), self._watcher.files()):
            if paths:
                self._watcher.removePaths(paths)
        self._known.clear()

    def rescan_directory(self, directory: str) -> list[dict]:
        directory = os.path.abspath(str(directory or ""))
        present: dict[str, float] = {}
        if os.path.isdir(directory):
            for entry in Path(directory).iterdir():
                path = str(entry)
                if entry.is_file() and self._matches(path):
                    present[path] = self._mtime(path)

        changes: list[dict] = []
        for path in [p for p in self._known if os.path.dirname(p) == directory]:
            if path not in present:
                self._known.pop(path, None)
                changes.append(self._event(path, FILE_DELETED))
        for path, mtime in present.items():
            previous = self._known.get(path)
            if previous is None:
                self._watcher.addPath(path)
                changes.append(self._event(path, FILE_CREATED))
            elif previous != mtime:
                changes.append(self._event(path, FILE_CHANGED))
            self._known[path] = mtime

        if changes:
            self.filesChanged.emit(changes)
        return changes

    def _on_file_changed(self, path: str) -> None:
        if not os.path.exists(path):
            self.rescan_directory(os.path.dirname(path))
            return
        self._known[path] = self._mtime(path)
        self.filesChanged.emit([self._event(path, FILE_CHANGED)])

    def _matches(self, path: str) -> bool:
        rel = os.path.relpath(path, self._root)
        return glob_matches(rel, self._pattern)

    @staticmethod
    def _mtime(path: str) -> float:
        try:
            return os.stat(path).st_mtime
        except OSError:
            return 0.0

    @staticmethod
    def _event(path: str, change_type: int) -> dict:
        return {"uri": QUrl.fromLocalFile(path).toString(), "type": change_type}
