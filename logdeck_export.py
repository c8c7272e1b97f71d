"""
logdeck_export.py — plain-text export of a record sequence

One block per record, in the order given. Block content depends only on the
record; the header carries the generation time.
"""

import os
from datetime import datetime

from logdeck_records import level_label

RULE = '=' * 50


def _fmt_time(ts: datetime) -> str:
    return ts.isoformat(sep=' ', timespec='milliseconds')


def format_record(record) -> str:
    out = [f'=== {level_label(record.level)} ===',
           f'Time: {_fmt_time(record.timestamp)}']
    if record.source_name:
        out.append(f'Source: {record.source_name}')
    out.append(f'File: {record.file_path}')
    p = record.payload
    if p is not None:
        out.append(f'Request: {p.method} {p.url}')
        out.append(f'Status: {p.status_code if p.status_code is not None else "-"}')
        if p.duration_ms is not None:
            out.append(f'Duration: {p.duration_ms:.0f} ms')
        if p.error:
            out.append(f'Error: {p.error}')
    out.append(f'Message: {record.message}')
    if record.stack_trace:
        out.append('Stack Trace:')
        out.append(record.stack_trace)
    out.append(RULE)
    return '\n'.join(out)


def export_logs_to_string(records, generated: datetime | None = None) -> str:
    records = list(records)
    if not records:
        return 'No logs to export'
    generated = generated or datetime.now()
    out = ['=== LOGDECK EXPORT ===',
           f'Generated: {generated.isoformat(timespec="seconds")}',
           f'Total Logs: {len(records)}',
           '']
    for r in records:
        out.append(format_record(r))
        out.append('')
    return '\n'.join(out)


def export_to_file(records, directory: str | None = None) -> str:
    # Write the export to a timestamped .txt; returns a status line for the UI.
    text  = export_logs_to_string(records)
    ts    = datetime.now().strftime('%Y%m%d_%H%M%S')
    fname = f'logdeck_export_{ts}.txt'
    fpath = os.path.join(directory or os.getcwd(), fname)
    try:
        with open(fpath, 'w', encoding='utf-8') as fh:
            fh.write(text)
    except OSError as exc:
        return f'export failed: {exc}'
    return f'exported -> {fname}'
