import json

import pytest

from amber_client.services import crash_report
from amber_client.services.crash_report import CrashReporter, CrashReportError, latest_log_file, read_log_tail


def _write_log(directory, name: str, count: int) -> None:
    (directory / name).write_text("\n".join(f"line {i}" for i in range(count)), encoding="utf-8")


def test_latest_log_is_the_newest_hourly_file(tmp_path) -> None:
    _write_log(tmp_path, "amber-lsp.log.2024-05-01-09", 1)
    _write_log(tmp_path, "amber-lsp.log.2024-05-01-10", 1)
    _write_log(tmp_path, "other.log", 1)

    assert latest_log_file(tmp_path).name == "amber-lsp.log.2024-05-01-10"
    assert latest_log_file(tmp_path / "missing") is None


def test_tail_keeps_the_last_hundred_lines(tmp_path) -> None:
    _write_log(tmp_path, "amber-lsp.log", 150)
    tail = read_log_tail(tmp_path / "amber-lsp.log").split("\n")

    assert len(tail) == 100
    assert tail[0] == "line 50"
    assert tail[-1] == "line 149"


def test_reporter_without_endpoint_is_unavailable(tmp_path) -> None:
    reporter = CrashReporter(logs_dir=tmp_path)
    assert reporter.available is False
    assert reporter.submit() is False


def test_missing_logs_fail_the_submission(tmp_path) -> None:
    reporter = CrashReporter(endpoint="http://127.0.0.1:9/report", logs_dir=tmp_path)
    with pytest.raises(CrashReportError) as info:
        reporter.collect()
    assert info.value.kind == "no_logs"
    assert reporter.submit() is False


def test_submit_posts_the_log_tail(tmp_path, monkeypatch) -> None:
    _write_log(tmp_path, "amber-lsp.log.2024-05-01-10", 3)
    sent = []

    class _Response:
        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def read(self):
            return b""

    def fake_urlopen(request, timeout):
        sent.append((request.full_url, request.get_method(), json.loads(request.data)))
        return _Response()

    monkeypatch.setattr(crash_report.urllib.request, "urlopen", fake_urlopen)
    reporter = CrashReporter(endpoint="https://reports.example/amber", logs_dir=tmp_path)

    assert reporter.submit() is True
    assert sent == [("https://reports.example/amber", "POST", {"logs": "line 0\nline 1\nline 2"})]
