from __future__ import annotations

import pytest

from logdeck_filters import FilterState, FilterStateDisposedError


def test_default_producer_is_preselected():
    state = FilterState(default_producer="api")
    assert state.selected_producers == {"api"}
    assert FilterState().selected_producers == set()


def test_every_mutation_notifies_listeners_synchronously():
    state = FilterState()
    seen = []
    state.add_listener(lambda: seen.append(state.get_active_filter_count()))
    state.toggle_producer("general")
    state.toggle_class("Auth")
    state.update_search_query("x")
    assert seen == [1, 2, 3]


def test_toggle_twice_removes_value():
    state = FilterState()
    state.toggle_source_name("Auth")
    state.toggle_source_name("Auth")
    assert state.selected_source_names == set()


def test_toggling_value_absent_from_data_is_tolerated():
    state = FilterState()
    state.toggle_file_path("never/logged.py")
    assert state.selected_file_paths == {"never/logged.py"}


def test_sub_type_sets_drop_when_emptied():
    state = FilterState()
    state.toggle_sub_type("api", "server_error")
    assert state.snapshot().sub_types_for("api") == frozenset({"server_error"})
    state.toggle_sub_type("api", "server_error")
    assert state.selected_sub_types == {}
    assert state.snapshot().sub_types_for("api") == frozenset()


def test_clear_helpers():
    state = FilterState()
    state.toggle_class("A")
    state.toggle_source_name("B")
    state.toggle_file_path("c.py")
    state.clear_class_filters()
    assert state.selected_classes == set()
    state.clear_source_name_filters()
    assert state.selected_source_names == set()
    state.clear_file_path_filters()
    assert state.selected_file_paths == set()

    state.toggle_class("A")
    state.toggle_file_path("c.py")
    state.clear_all_source_filters()
    assert not state.snapshot().has_facet_filter


def test_stats_filter_same_key_clears():
    state = FilterState()
    state.set_stats_filter("errors")
    assert state.stats_filter == "errors"
    state.set_stats_filter("errors")
    assert state.stats_filter is None
    state.set_stats_filter("info")
    state.set_stats_filter(None)
    assert state.stats_filter is None


def test_active_filter_count():
    state = FilterState()
    assert state.get_active_filter_count() == 0
    state.toggle_producer("api")
    state.toggle_sub_type("api", "success")
    state.toggle_sub_type("api", "redirect")
    state.toggle_class("Auth")
    state.update_search_query("cache")
    state.set_stats_filter("errors")
    state.toggle_sort_order()
    assert state.get_active_filter_count() == 6


def test_reset_restores_defaults_and_sort_order():
    state = FilterState()
    state.toggle_producer("general")
    state.toggle_sort_order()
    state.update_search_query("x")
    state.reset()
    snap = state.snapshot()
    assert snap.selected_producers == frozenset()
    assert snap.sort_newest_first is True
    assert snap.search_query == ""
    assert state.get_active_filter_count() == 0


def test_snapshot_is_detached_from_later_changes():
    state = FilterState()
    state.toggle_class("A")
    snap = state.snapshot()
    state.toggle_class("B")
    assert snap.selected_classes == frozenset({"A"})


def test_removed_listener_is_silent():
    state = FilterState()
    calls = []
    cb = lambda: calls.append(1)  # noqa: E731
    state.add_listener(cb)
    state.remove_listener(cb)
    state.toggle_sort_order()
    assert calls == []


def test_use_after_dispose_fails_fast():
    state = FilterState()
    state.add_listener(lambda: None)
    state.dispose()
    assert state.disposed
    with pytest.raises(FilterStateDisposedError):
        state.toggle_producer("api")
    with pytest.raises(FilterStateDisposedError):
        state.add_listener(lambda: None)
    with pytest.raises(RuntimeError):
        state.reset()
