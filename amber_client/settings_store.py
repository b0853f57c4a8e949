from __future__ import annotations

import json
from copy import deepcopy
from pathlib import Path
from typing import Any, Mapping

from amber_client.settings_models import AmberLspSettings, default_settings, normalize_client_settings

_MISSING = object()


def deep_merge_defaults(data: Mapping[str, Any], defaults: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of `data` with every key of `defaults` it lacks filled in, recursively."""
    merged = {key: deepcopy(value) for key, value in data.items()}
    for key, fallback in defaults.items():
        value = merged.get(key, _MISSING)
        if value is _MISSING:
            merged[key] = deepcopy(fallback)
        elif isinstance(value, dict) and isinstance(fallback, dict):
            merged[key] = deep_merge_defaults(value, fallback)
    return merged


def dot_get(data: Mapping[str, Any], key: str, default: Any = None) -> Any:
    node: Any = data
    for part in key.split(".") if key else ():
        node = node.get(part, _MISSING) if isinstance(node, Mapping) else _MISSING
        if node is _MISSING:
            return default
    return node


class JsonSettingsStore:
    """Settings held in one JSON file, with defaults and dot-key lookup.

    `path=None` gives an in-memory store. The file is only read: one that
    cannot be parsed is left alone, the store falls back to defaults and
    records `last_error`.
    """

    def __init__(self, path: Path | str | None, defaults: Mapping[str, Any] | None = None) -> None:
        self.path = Path(path) if path else None
        self.defaults = deepcopy(dict(default_settings() if defaults is None else defaults))
        self.data: dict[str, Any] = deepcopy(self.defaults)
        self.last_error: str | None = None

    def load(self) -> dict[str, Any]:
        self.last_error = None
        raw: object = {}
        if self.path is not None and self.path.exists():
            try:
                raw = json.loads(self.path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                self.last_error = str(exc)
                raw = {}
            if not isinstance(raw, dict):
                self.last_error = f"Settings root in '{self.path}' must be a JSON object."
                raw = {}
        self.data = deep_merge_defaults(raw, self.defaults)
        return self.data

    def get(self, key: str, default: Any = None) -> Any:
        return dot_get(self.data, key, default)

    def amber_lsp(self) -> AmberLspSettings:
        section = self.get("amber-lsp")
        return normalize_client_settings(section if isinstance(section, dict) else None)
