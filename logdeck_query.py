"""
logdeck_query.py — filtering, facet counts and statistics over a unified feed

Everything here is a pure function of (records, filter criteria). The only
stateful entry point is clear_all_logs(), which forwards to the subsystem.
"""

import re
from collections import Counter
from datetime import datetime

from logdeck_export import export_logs_to_string as _export
from logdeck_records import UNKNOWN_PATH, level_label, producer_spec, producers

FACET_KINDS = ('class', 'source', 'file')

STAT_TOTAL  = 'total'
STAT_ERRORS = 'errors'

_RE_STATUS_CLASS = re.compile(r'^[1-5]xx$')


def _snap(state):
    # Accept a FilterState or an already taken FilterSnapshot.
    return state.snapshot() if hasattr(state, 'snapshot') else state


def _in_producers(record, selected) -> bool:
    return not selected or record.producer in selected


def has_explicit_source(record) -> bool:
    return bool(record.source_name)


def matches_search(record, query: str) -> bool:
    if not query:
        return True
    needle = query.lower()
    hay    = [record.message, record.source_name]
    if record.file_path != UNKNOWN_PATH:
        hay.append(record.file_path)
    if record.payload is not None:
        hay.append(record.payload.url)
    return any(h and needle in h.lower() for h in hay)


def in_stats_bucket(record, key: str | None) -> bool:
    if key is None or key == STAT_TOTAL:
        return True
    if key == STAT_ERRORS:
        return record.is_error
    if key == record.level or key == record.producer:
        return True
    if _RE_STATUS_CLASS.match(key) and record.payload is not None:
        return record.payload.status_class == key
    return False


def _passes_facets(record, snap) -> bool:
    # Facet gate: with any facet set non-empty the record must hit at least
    # one of the non-empty sets; empty sets never constrain.
    if not snap.has_facet_filter:
        return True
    # Each kind uses the same values available_facet_values() counts.
    for kind, selected in (('source', snap.selected_source_names),
                           ('file',   snap.selected_file_paths),
                           ('class',  snap.selected_classes)):
        if selected and any(v in selected for v in facet_values(record, kind)):
            return True
    return False


def passes(record, snap) -> bool:
    if not _in_producers(record, snap.selected_producers):
        return False
    sub_types = snap.sub_types_for(record.producer)
    if sub_types and record.level not in sub_types:
        return False
    if not _passes_facets(record, snap):
        return False
    if not matches_search(record, snap.search_query):
        return False
    return in_stats_bucket(record, snap.stats_filter)


def apply_filters(records, state) -> list:
    snap = _snap(state)
    out  = [r for r in records if passes(r, snap)]
    if not snap.sort_newest_first:
        out.reverse()
    return out


# Facets

def facet_values(record, kind: str) -> tuple:
    # Values a record contributes to (and is matched by) one facet kind.
    if kind == 'class':
        return record.class_keys
    if kind == 'source':
        return (record.source_name,) if record.source_name else ()
    if kind == 'file':
        return (record.file_key,) if record.file_path != UNKNOWN_PATH else ()
    raise ValueError(f'unknown facet kind {kind!r}; expected one of {FACET_KINDS}')


def available_facet_values(records, kind: str, selected_producers=()) -> dict:
    # value -> count over the selected producers, by count desc then value asc.
    if kind not in FACET_KINDS:
        raise ValueError(f'unknown facet kind {kind!r}; expected one of {FACET_KINDS}')
    counts: Counter = Counter()
    for r in records:
        if not _in_producers(r, selected_producers):
            continue
        counts.update(facet_values(r, kind))
    return dict(sorted(counts.items(), key=lambda kv: (-kv[1], kv[0])))


# Statistics

def _bucket_key(ts: datetime, span_secs: float) -> str:
    if span_secs <= 3600:          # ≤1 h  → per minute
        return ts.strftime('%H:%M')
    elif span_secs <= 86400:       # ≤1 day → per hour
        return ts.strftime('%d %H:00')
    else:
        return ts.strftime('%m-%d')


def activity_histogram(records) -> list:
    stamps = [r.timestamp for r in records]
    if not stamps:
        return []
    span    = (max(stamps) - min(stamps)).total_seconds()
    buckets = Counter(_bucket_key(t, span) for t in stamps)
    return sorted(buckets.items())


def statistics(records, selected_producers=()) -> dict:
    scoped = [r for r in records if _in_producers(r, selected_producers)]
    in_scope = [p for p in producers()
                if not selected_producers or p in selected_producers]

    by_level:    Counter = Counter((r.producer, r.level) for r in scoped)
    by_producer: Counter = Counter(r.producer for r in scoped)

    buckets = []
    for p in in_scope:
        for lvl in producer_spec(p).levels:
            buckets.append((lvl, level_label(lvl), by_level[(p, lvl)]))

    return {
        'total':     len(scoped),
        'errors':    sum(1 for r in scoped if r.is_error),
        'buckets':   buckets,
        'producers': {p: by_producer[p] for p in in_scope},
        'histogram': activity_histogram(scoped),
    }


# Pass-throughs used by the presentation layer

def export_logs_to_string(records) -> str:
    return _export(records)


def clear_all_logs(subsystem) -> None:
    subsystem.clear_all_logs()
