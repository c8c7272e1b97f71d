"""Headless checks of the urwid viewer: no MainLoop, widgets rendered directly."""

from __future__ import annotations

import pytest
import urwid

from logdeck import DemoFeed, FacetPill, LazyListWalker, LogApp, main, make_markup
from logdeck_records import API


def _screen_text(widget, size=(140, 30)) -> str:
    canvas = widget.render(size, focus=True)
    rows = [r.decode("utf-8", "replace") if isinstance(r, bytes) else r for r in canvas.text]
    return "\n".join(rows)


@pytest.fixture
def app(sub):
    sub.general.scoped("Auth").info("user logged in")
    sub.general.warning("cache miss for key 7")
    sub.api.log_exchange("GET", "https://x.test/users", status_code=500)
    viewer = LogApp(sub)
    yield viewer
    if not viewer.state.disposed:
        viewer.close()


def test_initial_render_shows_feed(app):
    assert len(app.walker) == 3
    text = _screen_text(app.frame)
    assert "user logged in" in text
    assert "x.test/users" in text


def test_markup_highlights_search_hits(make_record):
    import re

    rec = make_record("Cache miss", source_name="Repo")
    toks = make_markup(rec, re.compile("cache", re.IGNORECASE), show_paths=False)
    assert ("hm", "Cache") in toks
    assert ("lsrc", "[Repo] ") in toks


def test_walker_protocol(make_record):
    walker = LazyListWalker()
    assert walker.get_focus() == (None, None)
    walker.reset([make_record("a"), make_record("b")], None, True)
    assert len(walker) == 2
    assert walker.get_next(0)[1] == 1
    assert walker.get_next(1) == (None, None)
    assert walker.get_prev(0) == (None, None)
    with pytest.raises(IndexError):
        walker[2]
    assert list(walker.positions(reverse=True)) == [1, 0]


def test_search_edit_filters_immediately_without_loop(app):
    app.w_edit.set_edit_text("CACHE")
    assert app.state.search_query == "CACHE"
    assert [r.message for r in app.matched] == ["cache miss for key 7"]


def test_order_key_reverses(app):
    newest_first = list(app.matched)
    app.handle_key("o")
    assert app.matched == list(reversed(newest_first))


def test_pause_key_toggles_subsystem(app):
    app.handle_key("p")
    assert app.sub.is_paused
    assert "PAUSED" in _screen_text(app.frame)
    app.handle_key("p")
    assert not app.sub.is_paused


def test_stat_and_producer_pills(app):
    app.stat_pills["errors"]._on_click()
    assert app.state.stats_filter == "errors"
    assert len(app.matched) == 1
    app.stat_pills["errors"]._on_click()
    assert app.state.stats_filter is None

    app.producer_pills[API]._on_click()
    assert app.state.selected_producers == {API}
    assert all(r.producer == API for r in app.matched)


def test_facet_overlay_toggles_and_cycles(app):
    app.handle_key("f")
    assert app._overlay is not None
    assert "Filter by Class" in _screen_text(app._overlay)

    app._toggle_facet("class", "Auth")
    assert [r.message for r in app.matched] == ["user logged in"]
    pills = [w for w, _ in app._pill_cols.contents if isinstance(w, FacetPill)]
    assert [(p.kind, p.value) for p in pills] == [("class", "Auth")]

    app.handle_key("f")
    assert app._facet_kind == "source"
    app.handle_key("esc")
    assert app._overlay is None

    pills[0]._on_click()
    assert app.state.selected_classes == set()


def test_stats_pane_toggle(app):
    app.handle_key("s")
    assert len(app._body_cols.contents) == 2
    assert "Stats" in _screen_text(app.frame)
    app.handle_key("s")
    assert len(app._body_cols.contents) == 1


def test_clear_requires_two_presses(app):
    app.handle_key("c")
    assert len(app.records) == 3
    app.handle_key("x")
    app.handle_key("c")
    assert len(app.records) == 3
    app.handle_key("c")
    assert app.records == []
    assert app._status == "all logs cleared"


def test_export_key_writes_file(app, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    app.handle_key("e")
    assert app._status.startswith("exported -> ")
    assert len(list(tmp_path.iterdir())) == 1


def test_escape_resets_filters(app):
    app.w_edit.set_edit_text("user")
    app.state.toggle_producer("general")
    app.handle_key("esc")
    assert app.state.get_active_filter_count() == 0
    assert app.w_edit.get_edit_text() == ""
    assert len(app.matched) == 3


def test_quit_and_close(app):
    with pytest.raises(urwid.ExitMainLoop):
        app.handle_key("q")
    app.close()
    assert app.state.disposed


def test_demo_feed_produces_both_producers(sub):
    feed = DemoFeed(sub, seed=3)
    for _ in range(60):
        feed.emit_one()
    producers = {r.producer for r in sub.get_unified_logs()}
    assert producers == {"general", API}


def test_cli_rejects_bad_capacity():
    with pytest.raises(SystemExit):
        main(["--capacity", "0"])
