from __future__ import annotations

from copy import deepcopy
from typing import Any, TypedDict

AMBER_VERSIONS = ("auto", "0.3.4-alpha", "0.3.5-alpha", "0.4.0-alpha")
TRIGGER_POLICIES = ("import", "string")


class AmberLspSettings(TypedDict, total=False):
    version: str
    server_path: str
    trigger_policy: str  # import | string
    crash_report_endpoint: str
    shutdown_timeout_ms: int


ClientSettings = TypedDict("ClientSettings", {"amber-lsp": AmberLspSettings}, total=False)


_DEFAULT_AMBER_LSP_SETTINGS: AmberLspSettings = {
    "version": "auto",
    "server_path": "",
    "trigger_policy": "import",
    "crash_report_endpoint": "",
    "shutdown_timeout_ms": 1200,
}


def default_settings() -> dict[str, Any]:
    return {"amber-lsp": deepcopy(dict(_DEFAULT_AMBER_LSP_SETTINGS))}


def normalize_client_settings(raw: dict[str, Any] | None) -> AmberLspSettings:
    """Return a complete `amber-lsp` section with invalid values replaced by defaults."""
    data: dict[str, Any] = dict(_DEFAULT_AMBER_LSP_SETTINGS)
    if isinstance(raw, dict):
        data.update({key: value for key, value in raw.items() if key in _DEFAULT_AMBER_LSP_SETTINGS})

    version = str(data.get("version") or "auto").strip().lower()
    data["version"] = version if version in AMBER_VERSIONS else "auto"

    data["server_path"] = str(data.get("server_path") or "").strip()

    policy = str(data.get("trigger_policy") or "import").strip().lower()
    data["trigger_policy"] = policy if policy in TRIGGER_POLICIES else "import"

    data["crash_report_endpoint"] = str(data.get("crash_report_endpoint") or "").strip()

    try:
        timeout = int(data.get("shutdown_timeout_ms", 1200))
    except (TypeError, ValueError):
        timeout = 1200
    data["shutdown_timeout_ms"] = max(200, min(10000, timeout))
    return data  # type: ignore[return-value]
