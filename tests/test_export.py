from __future__ import annotations

import os
from datetime import datetime

from logdeck_export import RULE, export_logs_to_string, export_to_file, format_record
from logdeck_records import API, ApiPayload


def test_empty_export():
    assert export_logs_to_string([]) == "No logs to export"


def test_general_block_layout(make_record):
    rec = make_record("Save failed", level="error", t=3, source_name="Repo",
                      file_path="app/repo.py:88", stack_trace="Traceback ...")
    assert format_record(rec).splitlines() == [
        "=== ERROR ===",
        "Time: 2024-05-01 12:00:03.000",
        "Source: Repo",
        "File: app/repo.py:88",
        "Message: Save failed",
        "Stack Trace:",
        "Traceback ...",
        RULE,
    ]


def test_api_block_includes_request_lines(make_record):
    payload = ApiPayload("GET", "https://x.test/", status_code=None,
                         duration_ms=30000.0, error="timed out")
    rec = make_record("GET https://x.test/ → failed: timed out", level="network_error",
                      producer=API, payload=payload)
    lines = format_record(rec).splitlines()
    assert "Request: GET https://x.test/" in lines
    assert "Status: -" in lines
    assert "Duration: 30000 ms" in lines
    assert "Error: timed out" in lines
    assert not any(line.startswith("Source:") for line in lines)


def test_export_keeps_given_order_and_header(make_record):
    a = make_record("first", t=1)
    b = make_record("second", t=2)
    text = export_logs_to_string([b, a], generated=datetime(2024, 5, 2, 8, 30))
    lines = text.splitlines()
    assert lines[:3] == ["=== LOGDECK EXPORT ===", "Generated: 2024-05-02T08:30:00",
                         "Total Logs: 2"]
    assert text.index("Message: second") < text.index("Message: first")


def test_export_is_deterministic_per_record(make_record):
    recs = [make_record("a", t=1), make_record("b", t=2)]
    when = datetime(2024, 1, 1)
    assert export_logs_to_string(recs, when) == export_logs_to_string(recs, when)


def test_export_to_file_writes_txt(tmp_path, make_record):
    status = export_to_file([make_record("hello")], directory=str(tmp_path))
    assert status.startswith("exported -> logdeck_export_")
    (written,) = os.listdir(tmp_path)
    assert written.endswith(".txt")
    assert "Message: hello" in (tmp_path / written).read_text(encoding="utf-8")


def test_export_to_file_reports_failure(tmp_path, make_record):
    missing = tmp_path / "does-not-exist"
    status = export_to_file([make_record()], directory=str(missing))
    assert status.startswith("export failed:")
