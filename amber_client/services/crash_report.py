from __future__ import annotations

import json
import tempfile
import urllib.error
import urllib.request
from pathlib import Path

from amber_client.logger import get_logger

LOG_FILE_PREFIX = "amber-lsp.log"
TAIL_LINES = 100

log = get_logger("crash-report")


class CrashReportError(RuntimeError):
    def __init__(self, message: str, *, kind: str = "report_error") -> None:
        super().__init__(message)
        self.kind = kind


def default_logs_dir() -> Path:
    return Path(tempfile.gettempdir()) / "amber-lsp"


def latest_log_file(logs_dir: Path) -> Path | None:
    """Newest analyzer log; the rolling appender suffixes names with the hour, so the max name wins."""
    try:
        candidates = [
            entry
            for entry in Path(logs_dir).iterdir()
            if entry.is_file() and entry.name.startswith(LOG_FILE_PREFIX)
        ]
    except OSError:
        return None
    if not candidates:
        return None
    return max(candidates, key=lambda entry: entry.name)


def read_log_tail(path: Path, lines: int = TAIL_LINES) -> str:
    text = Path(path).read_text(encoding="utf-8", errors="replace")
    return "\n".join(text.split("\n")[-max(1, int(lines)):])


class CrashReporter:
    """Posts the tail of the analyzer's log to the crash-report endpoint."""

    def __init__(
        self,
        *,
        endpoint: str = "",
        logs_dir: Path | str | None = None,
        timeout_s: float = 10.0,
    ) -> None:
        self._endpoint = str(endpoint or "").strip()
        self._logs_dir = Path(logs_dir) if logs_dir else default_logs_dir()
        self._timeout_s = max(1.0, float(timeout_s))

    @property
    def available(self) -> bool:
        return bool(self._endpoint)

    def collect(self) -> dict[str, str]:
        path = latest_log_file(self._logs_dir)
        if path is None:
            raise CrashReportError(f"No log file found in {self._logs_dir}", kind="no_logs")
        try:
            return {"logs": read_log_tail(path)}
        except OSError as exc:
            raise CrashReportError(f"Could not read {path}: {exc}", kind="no_logs") from exc

    def submit(self) -> bool:
        if not self.available:
            return False
        try:
            self._post(self.collect())
        except CrashReportError as exc:
            log.warning("crash report not sent ({}): {}", exc.kind, exc)
            return False
        log.info("crash report sent to {}", self._endpoint)
        return True

    def _post(self, payload: dict[str, str]) -> None:
        body = json.dumps(payload).encode("utf-8")
        request = urllib.request.Request(
            url=self._endpoint,
            data=body,
            headers={"Content-Type": "application/json", "User-Agent": "amber-client"},
            method="POST",
        )
        try:
            with urllib.request.urlopen(request, timeout=self._timeout_s) as response:
                response.read()
        except urllib.error.HTTPError as exc:
            status = int(getattr(exc, "code", 0) or 0)
            raise CrashReportError(f"Crash report rejected with HTTP {status}.", kind="http") from None
        except urllib.error.URLError as exc:
            raise CrashReportError("Network error while sending crash report.", kind="network") from exc
        except TimeoutError as exc:
            raise CrashReportError("Timed out while sending crash report.", kind="network") from exc
