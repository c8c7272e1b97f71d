#!/usr/bin/env python3
"""
logdeck.py — terminal viewer for an in-process LogSubsystem
Requires: urwid  →  pip install urwid

Usage:    logdeck --demo
          logdeck --config logdeck.json --capacity 500 --producer api

Embedding:
          sub = LogSubsystem(load_config())
          ... hand `sub` to your producers, then on the UI thread:
          run_viewer(sub)

Keys:
  /         focus search bar
  Enter     return to log view
  Esc       clear every filter, return to log view
  p         pause / resume logging
  o         toggle newest-first / oldest-first
  s         toggle stats panel
  f         open facet selector (press again to cycle class → source → file)
  x         clear source facet filters
  e         export the filtered logs to a .txt file
  c c       clear all stored logs (press twice)
  g / G     jump to top / bottom
  q         quit

Mouse:    click a producer pill to filter by producer
          click a stat pill to show only that bucket (click again to clear)
          click a facet pill to remove that facet value
"""

import argparse
import logging
import random
import re
import sys

import urwid

from logdeck_config import LoggerConfig, load_config
from logdeck_export import export_to_file
from logdeck_filters import FilterState
from logdeck_handler import install_handler
from logdeck_query import (
    FACET_KINDS, STAT_ERRORS, STAT_TOTAL,
    apply_filters, available_facet_values, clear_all_logs, statistics,
)
from logdeck_records import level_label, producer_spec, producers
from logdeck_store import LogSubsystem

# Palette
PALETTE = [
    # chrome
    ('header',   'white,bold',        'dark blue'),
    ('h_dim',    'light blue',        'dark blue'),
    ('live_on',  'light green,bold',  'dark blue'),
    ('live_off', 'yellow,bold',       'dark blue'),
    ('footer',   'black',             'light gray'),
    ('fk',       'dark blue,bold',    'light gray'),
    # search bar
    ('fl',       'dark cyan,bold',    'default'),
    ('fe',       'white',             'dark gray'),
    ('fe_f',     'white,bold',        'dark blue'),
    # selector overlay
    ('fc',       'light gray',        'default'),
    ('fc_f',     'black',             'light gray'),
    ('sel_box',  'white',             'dark blue'),
    ('sel_hdr',  'black,bold',        'dark cyan'),
    # pill row base
    ('st',       'light gray',        'dark gray'),
    ('badge',    'white,bold',        'dark magenta'),
    # count pills, normal
    ('st_e',     'light red',         'dark gray'),
    ('st_w',     'yellow',            'dark gray'),
    ('st_i',     'light green',       'dark gray'),
    ('st_d',     'dark cyan',         'dark gray'),
    ('st_n',     'white',             'dark gray'),
    ('st_p',     'light magenta',     'dark gray'),
    # count pills, active
    ('pill_e',   'dark gray,bold',    'light red'),
    ('pill_w',   'dark gray,bold',    'yellow'),
    ('pill_i',   'dark gray,bold',    'light green'),
    ('pill_d',   'white,bold',        'dark cyan'),
    ('pill_n',   'black,bold',        'white'),
    ('pill_p',   'white,bold',        'dark magenta'),
    # log row colours
    ('ln',       'light gray',        'default'),
    ('le',       'light red',         'default'),
    ('lw',       'yellow',            'default'),
    ('li',       'light green',       'default'),
    ('ld',       'dark cyan',         'default'),
    ('lts',      'dark gray',         'default'),
    ('lsrc',     'light magenta',     'default'),
    ('lno',      'dark gray',         'default'),
    ('hm',       'black',             'yellow'),
    # scrollbar
    ('scrollbar_thumb', 'dark cyan',   'default'),
    ('scrollbar_trough','dark gray',   'default'),
    # stats pane
    ('sp_border', 'dark cyan',          'default'),
    ('sp_hdr',    'black,bold',         'dark cyan'),
    ('sp_div',    'dark cyan',          'default'),
    ('sp_body',   'light gray',         'default'),
    ('sp_dim',    'dark gray',          'default'),
    # facet pills
    ('fpill_n',  'dark cyan',           'dark gray'),
    ('fpill_a',  'black,bold',          'dark cyan'),
]

# level/type -> colour suffix shared by row and pill attrs
_LEVEL_COLOUR = {
    'debug':         'd',
    'info':          'i',
    'warning':       'w',
    'error':         'e',
    'success':       'i',
    'redirect':      'd',
    'client_error':  'w',
    'server_error':  'e',
    'network_error': 'e',
    'pending':       'n',
    STAT_ERRORS:     'e',
    STAT_TOTAL:      'n',
}
_ROW_ATTR = {'e': 'le', 'w': 'lw', 'i': 'li', 'd': 'ld', 'n': 'ln'}

FACET_LABELS = {'class': 'Class', 'source': 'Source', 'file': 'File path'}

STATS_WIDTH = 44   # chars for the right-side pane (including border)
_HBAR_W     = 20   # chars available for histogram bars


def _hl(tokens: list, pattern: re.Pattern, attr: str, skip=frozenset()) -> list:
    # Highlight every match of pattern in a [(attr, text), ...] token list.
    out = []
    for a, text in tokens:
        if a in skip:
            out.append((a, text))
            continue
        pos = 0
        for m in pattern.finditer(text):
            if m.start() > pos:
                out.append((a, text[pos:m.start()]))
            out.append((attr, m.group(0)))
            pos = m.end()
        if pos < len(text):
            out.append((a, text[pos:]))
    return [(a, t) for a, t in out if t]


def make_markup(record, search_re=None, show_paths: bool = True) -> list:
    base = _ROW_ATTR[_LEVEL_COLOUR.get(record.level, 'n')]
    ts   = record.timestamp.strftime('%H:%M:%S.%f')[:-3]
    toks = [('lts', f'{ts} '), (base, f'{level_label(record.level):<13} ')]
    if record.source_name:
        toks.append(('lsrc', f'[{record.source_name}] '))
    toks.append((base, record.message.replace('\n', ' ⏎ ')))
    if show_paths and record.file_path:
        toks.append(('lno', f'  ← {record.file_path}'))
    if search_re:
        toks = _hl(toks, search_re, 'hm', skip={'lts'})
    return toks


# Lazy List Walker
class LazyListWalker(urwid.ListWalker):
    """
    ListWalker over the filtered records that builds urwid.Text rows only
    for what the ListBox is about to paint. An LRU cache bounds memory and
    is dropped on every reset().
    """
    CACHE_SIZE = 600

    def __init__(self):
        self._records: list = []
        self._fre           = None
        self._paths         = True
        self._focus         = 0
        self._cache: dict   = {}
        self._cache_order: list = []

    def reset(self, records, fre, show_paths):
        self._records = records
        self._fre     = fre
        self._paths   = show_paths
        self._focus   = max(0, min(self._focus, len(records) - 1))
        self._cache.clear()
        self._cache_order.clear()
        self._modified()

    def _build(self, pos):
        if pos in self._cache:
            return self._cache[pos]
        mu = make_markup(self._records[pos], self._fre, self._paths)
        w  = urwid.Text(mu, wrap='clip')
        if len(self._cache) >= self.CACHE_SIZE:
            evict = self._cache_order.pop(0)
            self._cache.pop(evict, None)
        self._cache[pos] = w
        self._cache_order.append(pos)
        return w

    # ListWalker protocol
    def __len__(self):
        return len(self._records)

    def __getitem__(self, pos):
        if not 0 <= pos < len(self._records):
            raise IndexError(pos)
        return self._build(pos)

    def positions(self, reverse=False):
        rng = range(len(self._records))
        return reversed(rng) if reverse else rng

    def get_focus(self):
        if not self._records:
            return None, None
        return self._build(self._focus), self._focus

    def set_focus(self, pos):
        if 0 <= pos < len(self._records):
            self._focus = pos
            self._modified()

    def get_next(self, pos):
        nxt = pos + 1
        if nxt >= len(self._records):
            return None, None
        return self._build(nxt), nxt

    def get_prev(self, pos):
        prv = pos - 1
        if prv < 0:
            return None, None
        return self._build(prv), prv

    # Scrolling protocol (for ScrollBar)
    def get_scrollpos(self, size=None, focus=False):
        return self._focus

    def rows_max(self, size=None, focus=False):
        return len(self._records)


# Widgets
class SearchEdit(urwid.Edit):
    # Edit that lets Enter/Esc bubble up to unhandled_input.
    def keypress(self, size, key):
        if key in ('enter', 'esc'):
            return key
        return super().keypress(size, key)


class BasePill(urwid.WidgetWrap):
    """
    Shared base for pill widgets (CountPill, FacetPill).
    Owns: SelectableIcon/AttrMap construction, selectable(), mouse routing.
    Subclasses implement: _redraw(), _on_click().
    """

    def __init__(self, initial_attr: str, focus_attr: str | None = None):
        self._icon = urwid.SelectableIcon('', 0)
        self._am   = urwid.AttrMap(self._icon, initial_attr, focus_attr)
        super().__init__(self._am)

    def selectable(self):
        return True

    def mouse_event(self, size, event, button, col, row, focus):
        if event == 'mouse press' and button in (1, 3):
            self._on_click()
            return True
        return False

    def keypress(self, size, key):
        if key in ('enter', ' '):
            self._on_click()
            return
        return key

    def _on_click(self): raise NotImplementedError
    def _redraw(self):   raise NotImplementedError


class CountPill(BasePill):
    # Labelled counter that toggles a filter: producers and stat buckets.
    signals = ['click']

    def __init__(self, key: str, label: str, colour: str):
        self.key     = key
        self._label  = label
        self._na     = f'st_{colour}'
        self._aa     = f'pill_{colour}'
        self._count  = 0
        self.active  = False
        super().__init__(self._na)
        self._redraw()

    def _redraw(self):
        mark = '▶' if self.active else ' '
        self._icon.set_text(f' {mark}{self._label} {self._count:,} ')
        self._am.set_attr_map({None: self._aa if self.active else self._na})

    def update(self, count: int, active: bool) -> None:
        self._count = count
        self.active = active
        self._redraw()

    def _on_click(self):
        urwid.emit_signal(self, 'click', self)


class FacetPill(BasePill):
    """
    Removable pill for one selected facet value:  ▶ Source:AuthService ×
    Click / Enter / Delete removes it.
    """
    signals = ['remove']

    def __init__(self, kind: str, value: str):
        self.kind  = kind
        self.value = value
        super().__init__('fpill_n', 'fpill_a')
        self._redraw()

    def _redraw(self):
        self._icon.set_text(f' ▶{FACET_LABELS[self.kind]}:{self.value[:24]} × ')

    def keypress(self, size, key):
        if key in ('delete', 'backspace'):
            key = 'enter'
        return super().keypress(size, key)

    def _on_click(self):
        urwid.emit_signal(self, 'remove', self)


# Stats Pane
def _bar(count: int, max_count: int, width: int = _HBAR_W, chars: str = '█░') -> str:
    if max_count == 0:
        return chars[1] * width
    filled = round(count / max_count * width)
    return chars[0] * filled + chars[1] * (width - filled)


def build_stats_pane(stats: dict, top_classes: dict, title_suffix: str = '') -> urwid.Widget:
    items = []
    first = True

    def _div():
        return urwid.AttrMap(urwid.Divider('─'), 'sp_div')

    def _hdr(text):
        return urwid.AttrMap(urwid.Text(f' {text} ', wrap='clip'), 'sp_hdr')

    def _row(text, attr='sp_body'):
        return urwid.AttrMap(urwid.Text(text, wrap='clip'), attr)

    def _section(header, rows):
        nonlocal first
        if not rows:
            return
        if not first:
            items.append(_div())
        first = False
        items.append(_hdr(header))
        items.extend(rows)

    buckets = [(label, count) for _key, label, count in stats.get('buckets', [])]
    if buckets:
        max_v = max(c for _, c in buckets)
        rows  = [_row(f' {label[:13]:<13} {_bar(count, max_v, width=16)} {count:>5}')
                 for label, count in buckets]
        rows.append(_row(f' {"errors":<13} {stats.get("errors", 0):>22}', 'sp_dim'))
        _section(f'Levels ({stats.get("total", 0):,})', rows)

    hist = stats.get('histogram', [])
    if hist:
        max_v = max(c for _, c in hist)
        rows  = [_row(f' {label:>8} {_bar(count, max_v, width=18)} {count:>5}')
                 for label, count in hist[-12:]]
        _section('Activity', rows)

    top = list(top_classes.items())[:8]
    if top:
        max_v = top[0][1]
        rows  = []
        for val, count in top:
            rows.append(_row(f' {_bar(count, max_v, width=10)} {count:>4}'))
            rows.append(_row(f'  {val[:STATS_WIDTH - 6]}'))
        _section('Top classes', rows)

    if not items:
        items.append(_row('  (no logs yet)', 'sp_dim'))

    listbox = urwid.ListBox(urwid.SimpleListWalker(items))
    lined   = urwid.LineBox(listbox, title=f' Stats{title_suffix} ', lline='│',
                             rline=' ', tline='─', bline='─',
                             tlcorner='┌', trcorner='─',
                             blcorner='└', brcorner='─')
    return urwid.AttrMap(lined, 'sp_border')


# Facet Selector Overlay
def make_facet_overlay(behind: urwid.Widget, kind: str, values: dict,
                       selected: set, on_toggle, focus_idx: int = 0) -> urwid.Overlay:
    items = [urwid.AttrMap(
        urwid.Text(f' {FACET_LABELS[kind]:<36} {"logs":>6}', wrap='clip'), 'sel_hdr')]
    buttons = []
    for val, count in values.items():
        mark = '✓' if val in selected else ' '
        btn  = urwid.Button(f'{mark} {val[:34]:<34} {count:>6,}')
        urwid.connect_signal(btn, 'click', lambda _b, v=val: on_toggle(v))
        buttons.append(urwid.AttrMap(btn, 'fc', 'fc_f'))
    if not buttons:
        items.append(urwid.AttrMap(
            urwid.Text(' (no values for the current producer filter)', align='center'),
            'sp_dim'))
    items += buttons
    items += [
        urwid.Divider('─'),
        urwid.Text([
            ('h_dim', '  ↑↓ '), ('st', 'navigate  '),
            ('fk', 'Enter'), ('st', ' toggle  '),
            ('fk', 'f'),     ('st', ' next facet  '),
            ('fk', 'Esc'),   ('st', ' close  '),
        ], align='center'),
    ]

    listbox = urwid.ListBox(urwid.SimpleListWalker(items))
    if buttons:
        listbox.focus_position = 1 + max(0, min(focus_idx, len(buttons) - 1))

    box = urwid.AttrMap(
        urwid.LineBox(listbox, title=f' ◉ logdeck — Filter by {FACET_LABELS[kind]} '),
        'sel_box',
    )
    height = min(max(len(items), 4) + 2, 24)
    return urwid.Overlay(
        box, behind,
        'center', ('relative', 60),
        'middle', height,
    )


# Main Application
class LogApp:
    def __init__(self, subsystem: LogSubsystem, config: LoggerConfig | None = None,
                 state: FilterState | None = None):
        self.sub    = subsystem
        self.config = config or subsystem.config
        self.state  = state or FilterState(default_producer=self.config.default_producer)

        self.records: list = []
        self.matched: list = []
        self.filter_re     = None
        self.show_stats    = False

        self._facet_kind    = FACET_KINDS[0]
        self._overlay       = None
        self._status        = ''
        self._confirm_clear = False

        self._loop_ref     = None
        self._tick_alarm   = None
        self._search_alarm = None
        self._on_tick      = None

        self._build_ui()
        self.state.add_listener(self._on_filter_change)
        self.sub.add_listener(self._on_subsystem_change)
        self.refresh()

    # Build
    def _build_ui(self):
        self.w_title = urwid.Text('', wrap='clip')

        self.w_edit = SearchEdit(caption='', edit_text=self.state.search_query)
        urwid.connect_signal(self.w_edit, 'postchange',
                             lambda *_: self._on_edit_change())
        self.w_search_cols = urwid.Columns([
            ('pack', urwid.Text(('fl', ' Search: '))),
            urwid.AttrMap(self.w_edit, 'fe', 'fe_f'),
        ], dividechars=0, focus_column=1)

        self.producer_pills = {}
        for name in producers():
            pill = CountPill(name, producer_spec(name).label, 'p')
            urwid.connect_signal(pill, 'click', self._on_producer_pill)
            self.producer_pills[name] = pill
        self.stat_pills: dict = {}

        self.w_badge = urwid.Text('')
        self._pill_cols   = urwid.Columns([], dividechars=0)
        self._pill_widget = urwid.AttrMap(self._pill_cols, 'st')

        self.w_header = urwid.Pile([
            urwid.AttrMap(self.w_title, 'header'),
            self.w_search_cols,
            self._pill_widget,
        ])

        self.walker     = LazyListWalker()
        self.listbox    = urwid.ListBox(self.walker)
        self._scrollbar = urwid.ScrollBar(self.listbox, side='right', width=1,
                                          thumb_char='┃', trough_char='│')

        self._body_cols = urwid.Columns([self._scrollbar], dividechars=0)
        self._stats_pane_widget = None

        self.w_footer = urwid.Text('', wrap='clip')
        self.frame = urwid.Frame(
            body       = self._body_cols,
            header     = self.w_header,
            footer     = urwid.AttrMap(self.w_footer, 'footer'),
            focus_part = 'body',
        )

    # Refresh
    def refresh(self) -> None:
        # Re-read the stores and re-run the query for the current filters.
        self.records = self.sub.get_unified_logs()
        self.matched = apply_filters(self.records, self.state)
        query = self.state.search_query
        self.filter_re = re.compile(re.escape(query), re.IGNORECASE) if query else None
        self.walker.reset(self.matched, self.filter_re, self.config.show_file_paths)
        self._refresh_pills()
        self._refresh_title()
        self._refresh_footer()
        if self.show_stats:
            self._show_stats_pane()

    def _refresh_title(self):
        counts = self.sub.counts()
        if self.sub.is_paused:
            live = ('live_off', '❚❚ PAUSED')
        elif not self.sub.storage_enabled:
            live = ('live_off', '○ STORAGE OFF')
        else:
            live = ('live_on', '● LIVE')
        self.w_title.set_text([
            ('header', ' ◉  logdeck  '),
            ('h_dim',  f'general {counts["general"]:,}  api {counts["api"]:,}'
                       f' ({counts["api_errors"]:,} errors)  '),
            ('h_dim',  '↓ newest first  ' if self.state.sort_newest_first
                       else '↑ oldest first  '),
            live,
        ])

    def _refresh_pills(self):
        stats = statistics(self.records, self.state.selected_producers)

        for name, pill in self.producer_pills.items():
            pill.update(stats['producers'].get(name, len(self.sub.store(name))),
                        name in self.state.selected_producers)

        wanted = [(STAT_TOTAL, 'Total', stats['total']),
                  (STAT_ERRORS, 'Errors', stats['errors'])]
        wanted += [(key, label, count) for key, label, count in stats['buckets']]
        if [k for k, _, _ in wanted] != list(self.stat_pills):
            self.stat_pills = {}
            for key, label, _count in wanted:
                pill = CountPill(key, label, _LEVEL_COLOUR.get(key, 'n'))
                urwid.connect_signal(pill, 'click', self._on_stat_pill)
                self.stat_pills[key] = pill
        for key, _label, count in wanted:
            self.stat_pills[key].update(count, key == self.state.stats_filter)

        facet_pills = []
        for kind, values in self._facet_sets():
            for val in sorted(values):
                fp = FacetPill(kind, val)
                urwid.connect_signal(fp, 'remove', self._on_facet_pill_remove)
                facet_pills.append(fp)

        n_active = self.state.get_active_filter_count()
        self.w_badge.set_text(f' ⚑{n_active} ')

        widgets = (list(self.producer_pills.values())
                   + [urwid.Text(' │ ')]
                   + list(self.stat_pills.values())
                   + facet_pills)
        if n_active:
            widgets.append(urwid.AttrMap(self.w_badge, 'badge'))
        self._pill_cols.contents = [(w, self._pill_cols.options('pack')) for w in widgets]

    def _refresh_footer(self):
        if self._confirm_clear:
            self.w_footer.set_text([
                ('fk', '  c'), ('footer', ' again: clear ALL stored logs   '),
                ('fk', 'any other key'), ('footer', ': cancel'),
            ])
            return
        n = len(self.records)
        m = len(self.matched)
        status = [('footer', f'  {self._status}')] if self._status else []
        self.w_footer.set_text([
            ('fk', '  q'),   ('footer', ':quit  '),
            ('fk', '/'),     ('footer', ':search  '),
            ('fk', 'p'),     ('footer', ':pause  '),
            ('fk', 'o'),     ('footer', ':order  '),
            ('fk', 's'),     ('footer', ':stats  '),
            ('fk', 'f'),     ('footer', ':facets  '),
            ('fk', 'x'),     ('footer', ':clear facets  '),
            ('fk', 'e'),     ('footer', ':export  '),
            ('fk', 'c'),     ('footer', ':clear logs  '),
            ('fk', 'Esc'),   ('footer', ':reset  '),
            ('footer', f'  {m:,} / {n:,} logs'),
            *status,
        ])

    def _facet_sets(self):
        return [('class',  self.state.selected_classes),
                ('source', self.state.selected_source_names),
                ('file',   self.state.selected_file_paths)]

    # Change notifications
    def _on_filter_change(self):
        self.refresh()

    def _on_subsystem_change(self):
        self.refresh()

    # Search
    def _on_edit_change(self):
        text = self.w_edit.get_edit_text()
        if self._loop_ref is None:
            self._apply_search(text)
            return
        if self._search_alarm is not None:
            self._loop_ref.remove_alarm(self._search_alarm)
        self._search_alarm = self._loop_ref.set_alarm_in(
            0.15, lambda _loop, _data: self._apply_search(text))

    def _apply_search(self, text: str):
        self._search_alarm = None
        if text != self.state.search_query and not self.state.disposed:
            self.state.update_search_query(text)

    def focus_search(self):
        self.frame.focus_position = 'header'
        self.w_header.focus_position = 1
        self.w_search_cols.focus_position = 1

    # Pills
    def _on_producer_pill(self, pill: CountPill):
        self.state.toggle_producer(pill.key)

    def _on_stat_pill(self, pill: CountPill):
        self.state.set_stats_filter(pill.key)

    def _on_facet_pill_remove(self, pill: FacetPill):
        self._toggle_facet(pill.kind, pill.value)

    def _toggle_facet(self, kind: str, value: str):
        if kind == 'class':
            self.state.toggle_class(value)
        elif kind == 'source':
            self.state.toggle_source_name(value)
        else:
            self.state.toggle_file_path(value)

    # Overlays
    def push_overlay(self, ov):
        self._overlay = ov
        if self._loop_ref is not None:
            self._loop_ref.widget = ov

    def pop_overlay(self):
        self._overlay = None
        if self._loop_ref is not None:
            self._loop_ref.widget = self.frame

    def open_facet_overlay(self, kind: str | None = None, focus_idx: int = 0):
        kind   = kind or self._facet_kind
        self._facet_kind = kind
        values = available_facet_values(self.records, kind, self.state.selected_producers)
        selected = dict(self._facet_sets())[kind]
        keys = list(values)

        def _toggle(val):
            self._toggle_facet(kind, val)
            self.open_facet_overlay(kind, keys.index(val))

        self.push_overlay(make_facet_overlay(self.frame, kind, values, selected,
                                             _toggle, focus_idx))

    def next_facet_kind(self) -> str:
        i = FACET_KINDS.index(self._facet_kind)
        return FACET_KINDS[(i + 1) % len(FACET_KINDS)]

    # Stats pane
    def toggle_stats(self):
        self.show_stats = not self.show_stats
        if self.show_stats:
            self._show_stats_pane()
        else:
            self._stats_pane_widget = None
            self._body_cols.contents = [
                (self._scrollbar, self._body_cols.options('weight', 1)),
            ]

    def _show_stats_pane(self):
        selected = self.state.selected_producers
        stats    = statistics(self.records, selected)
        top      = available_facet_values(self.records, 'class', selected)
        suffix   = f' ({"+".join(sorted(selected))})' if selected else ''
        pane     = build_stats_pane(stats, top, suffix)
        self._stats_pane_widget = pane
        self._body_cols.contents = [
            (self._scrollbar, self._body_cols.options('weight', 1)),
            (pane,            self._body_cols.options('given', STATS_WIDTH)),
        ]

    # Actions
    def toggle_pause(self):
        self.sub.set_paused(not self.sub.is_paused)
        self._status = 'logging paused' if self.sub.is_paused else 'logging resumed'
        self._refresh_footer()

    def export(self):
        if not self.matched:
            self._status = 'No logs to export'
        else:
            self._status = export_to_file(self.matched)
        self._refresh_footer()

    def request_clear(self):
        if self._confirm_clear:
            self._confirm_clear = False
            clear_all_logs(self.sub)
            self._status = 'all logs cleared'
        else:
            self._confirm_clear = True
        self._refresh_footer()

    def go_top(self):
        if len(self.walker):
            self.listbox.focus_position = 0

    def go_bottom(self):
        if len(self.walker):
            self.listbox.focus_position = len(self.walker) - 1

    # Input
    def handle_key(self, key) -> None:
        if not isinstance(key, str):         # unhandled mouse events
            return

        if self._overlay is not None:
            if key == 'esc':
                self.pop_overlay()
            elif key in ('f', 'F'):
                self.open_facet_overlay(self.next_facet_kind())
            return

        if self._confirm_clear and key not in ('c', 'C'):
            self._confirm_clear = False
            self._refresh_footer()

        if key in ('q', 'Q'):
            raise urwid.ExitMainLoop()
        elif key == '/':
            self.focus_search()
        elif key in ('esc', 'enter'):
            if self.frame.focus_position == 'header' and key == 'enter':
                self.frame.focus_position = 'body'
            elif key == 'esc':
                self.state.reset()
                self.w_edit.set_edit_text('')
                self.frame.focus_position = 'body'
        elif key in ('p', 'P'):
            self.toggle_pause()
        elif key in ('o', 'O'):
            self.state.toggle_sort_order()
        elif key in ('s', 'S'):
            self.toggle_stats()
        elif key in ('f', 'F'):
            self.open_facet_overlay()
        elif key in ('x', 'X'):
            self.state.clear_all_source_filters()
        elif key in ('e', 'E'):
            self.export()
        elif key in ('c', 'C'):
            self.request_clear()
        elif key == 'g':
            self.go_top()
        elif key == 'G':
            self.go_bottom()

    # Loop wiring
    def start(self, loop, on_tick=None) -> None:
        self._loop_ref = loop
        self._on_tick  = on_tick
        self._tick_alarm = loop.set_alarm_in(self.config.refresh_interval, self._tick)

    def _tick(self, loop, _data):
        # Periodic re-read: new appends become visible within one interval.
        if self._on_tick is not None:
            self._on_tick()
        self.refresh()
        self._tick_alarm = loop.set_alarm_in(self.config.refresh_interval, self._tick)

    def close(self) -> None:
        if self._loop_ref is not None and self._tick_alarm is not None:
            self._loop_ref.remove_alarm(self._tick_alarm)
            self._tick_alarm = None
        self.sub.remove_listener(self._on_subsystem_change)
        self.state.dispose()


# Demo traffic
class DemoFeed:
    # Synthetic general + api traffic so the viewer can be tried standalone.
    SOURCES   = ('AuthService', 'CartRepository', 'SyncWorker', 'ImageCache')
    MESSAGES  = {
        'debug':   ('cache lookup for key {n}', 'retry budget {n}', 'frame took {n} ms'),
        'info':    ('user {n} logged in', 'loaded {n} items', 'sync finished in {n} ms'),
        'warning': ('slow query ({n} ms)', 'cache miss for key {n}', 'token expires in {n} s'),
        'error':   ('failed to persist order {n}', 'decode error at byte {n}'),
    }
    ENDPOINTS = ('https://api.example.com/v1/users/{n}',
                 'https://api.example.com/v1/cart',
                 'https://api.example.com/v1/orders/{n}',
                 'https://cdn.example.com/img/{n}.png')
    STATUSES  = (200, 200, 200, 201, 204, 301, 304, 400, 401, 404, 500, 503, None)

    def __init__(self, subsystem: LogSubsystem, seed: int | None = None):
        self.sub = subsystem
        self.rng = random.Random(seed)

    def emit_one(self) -> None:
        rng = self.rng
        n   = rng.randint(1, 9999)
        if rng.random() < 0.6:
            level = rng.choices(('debug', 'info', 'warning', 'error'), (3, 5, 2, 1))[0]
            msg   = rng.choice(self.MESSAGES[level]).format(n=n)
            log   = self.sub.general.scoped(rng.choice(self.SOURCES)) \
                if rng.random() < 0.7 else self.sub.general
            if level == 'error':
                try:
                    raise RuntimeError(msg)
                except RuntimeError as exc:
                    log.error(msg, error=exc)
            else:
                getattr(log, level)(msg)
        else:
            status = rng.choice(self.STATUSES)
            method = rng.choice(('GET', 'GET', 'POST', 'PUT', 'DELETE'))
            body   = {'id': n, 'ok': status is not None and status < 400}
            self.sub.api.log_exchange(
                method, rng.choice(self.ENDPOINTS).format(n=n),
                status_code      = status,
                duration_ms      = rng.uniform(5, 1500),
                request_headers  = {'Accept': 'application/json'},
                request_body     = body if method in ('POST', 'PUT') else None,
                response_headers = {'Content-Type': 'application/json'} if status else None,
                response_body    = body if status else None,
                error            = None if status else 'connection reset by peer',
            )

    def tick(self) -> None:
        for _ in range(self.rng.randint(1, 3)):
            self.emit_one()


# Entry point
def run_viewer(subsystem: LogSubsystem, config: LoggerConfig | None = None,
               on_tick=None) -> None:
    app  = LogApp(subsystem, config)
    loop = urwid.MainLoop(
        app.frame,
        palette         = PALETTE,
        unhandled_input = app.handle_key,
        handle_mouse    = True,
    )
    app.start(loop, on_tick=on_tick)
    try:
        loop.run()
    finally:
        app.close()


def main(argv=None):
    ap = argparse.ArgumentParser(
        description='logdeck — in-memory log viewer',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__)
    ap.add_argument('-c', '--config', metavar='PATH', help='JSON config file')
    ap.add_argument('--capacity', type=int, metavar='N',
                    help='max records kept per producer')
    ap.add_argument('--no-circular', action='store_true',
                    help='stop storing once full instead of evicting the oldest')
    ap.add_argument('--producer', choices=producers(),
                    help='producer pre-selected in the filter bar')
    ap.add_argument('--demo', action='store_true',
                    help='generate synthetic general/api traffic')
    args = ap.parse_args(argv)

    if args.capacity is not None and args.capacity <= 0:
        ap.error('--capacity must be > 0')

    config = load_config(args.config, overrides={
        'max_log_entries':  args.capacity,
        'circular_buffer':  False if args.no_circular else None,
        'default_producer': args.producer,
    })
    sub = LogSubsystem(config)
    install_handler(sub, level=logging.INFO)   # keeps urwid's debug chatter out

    on_tick = None
    if args.demo:
        feed = DemoFeed(sub)
        for _ in range(40):
            feed.emit_one()
        on_tick = feed.tick

    try:
        run_viewer(sub, config, on_tick=on_tick)
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == '__main__':
    main()
