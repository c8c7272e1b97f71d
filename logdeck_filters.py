"""
logdeck_filters.py — observable filter state for one viewing session

FilterState holds every active criterion (producers, per-producer sub-types,
the three source facets, search text, sort order, tapped statistic) and
calls its listeners synchronously after each change. The query engine works
on an immutable FilterSnapshot taken from it.
"""

from dataclasses import dataclass


class FilterStateDisposedError(RuntimeError):
    # A FilterState was used after dispose(): a lifecycle bug in the caller.
    pass


@dataclass(frozen=True)
class FilterSnapshot:
    selected_producers:    frozenset = frozenset()
    selected_sub_types:    tuple = ()            # ((producer, frozenset), ...)
    selected_classes:      frozenset = frozenset()
    selected_source_names: frozenset = frozenset()
    selected_file_paths:   frozenset = frozenset()
    search_query:          str = ''
    sort_newest_first:     bool = True
    stats_filter:          str | None = None

    def sub_types_for(self, producer: str) -> frozenset:
        for name, types in self.selected_sub_types:
            if name == producer:
                return types
        return frozenset()

    @property
    def has_facet_filter(self) -> bool:
        return bool(self.selected_classes or self.selected_source_names
                    or self.selected_file_paths)


class FilterState:
    def __init__(self, default_producer: str | None = None):
        self.selected_producers: set    = set()
        self.selected_sub_types: dict   = {}
        self.selected_classes: set      = set()
        self.selected_source_names: set = set()
        self.selected_file_paths: set   = set()
        self.search_query               = ''
        self.sort_newest_first          = True
        self.stats_filter: str | None   = None
        self._listeners: list           = []
        self._disposed                  = False
        if default_producer:
            self.selected_producers.add(default_producer)

    # Listeners

    def add_listener(self, callback) -> None:
        self._check_alive()
        if callback not in self._listeners:
            self._listeners.append(callback)

    def remove_listener(self, callback) -> None:
        try:
            self._listeners.remove(callback)
        except ValueError:
            pass

    def dispose(self) -> None:
        self._listeners.clear()
        self._disposed = True

    @property
    def disposed(self) -> bool:
        return self._disposed

    def _check_alive(self) -> None:
        if self._disposed:
            raise FilterStateDisposedError('FilterState used after dispose()')

    def _changed(self) -> None:
        for cb in list(self._listeners):
            cb()

    # Producers / sub-types

    def toggle_producer(self, producer: str) -> None:
        self._check_alive()
        _toggle(self.selected_producers, producer)
        self._changed()

    def toggle_sub_type(self, producer: str, sub_type: str) -> None:
        self._check_alive()
        types = self.selected_sub_types.setdefault(producer, set())
        _toggle(types, sub_type)
        if not types:
            del self.selected_sub_types[producer]
        self._changed()

    # Source facets

    def toggle_class(self, value: str) -> None:
        self._check_alive()
        _toggle(self.selected_classes, value)
        self._changed()

    def toggle_source_name(self, value: str) -> None:
        self._check_alive()
        _toggle(self.selected_source_names, value)
        self._changed()

    def toggle_file_path(self, value: str) -> None:
        self._check_alive()
        _toggle(self.selected_file_paths, value)
        self._changed()

    def clear_class_filters(self) -> None:
        self._check_alive()
        self.selected_classes.clear()
        self._changed()

    def clear_source_name_filters(self) -> None:
        self._check_alive()
        self.selected_source_names.clear()
        self._changed()

    def clear_file_path_filters(self) -> None:
        self._check_alive()
        self.selected_file_paths.clear()
        self._changed()

    def clear_all_source_filters(self) -> None:
        self._check_alive()
        self.selected_classes.clear()
        self.selected_source_names.clear()
        self.selected_file_paths.clear()
        self._changed()

    # Search / sort / stats

    def update_search_query(self, text: str) -> None:
        self._check_alive()
        self.search_query = text or ''
        self._changed()

    def toggle_sort_order(self) -> None:
        self._check_alive()
        self.sort_newest_first = not self.sort_newest_first
        self._changed()

    def set_stats_filter(self, key: str | None) -> None:
        # Tapping the active statistic again clears it.
        self._check_alive()
        self.stats_filter = None if key is None or key == self.stats_filter else key
        self._changed()

    def reset(self) -> None:
        self._check_alive()
        self.selected_producers.clear()
        self.selected_sub_types.clear()
        self.selected_classes.clear()
        self.selected_source_names.clear()
        self.selected_file_paths.clear()
        self.search_query      = ''
        self.sort_newest_first = True
        self.stats_filter      = None
        self._changed()

    # Queries

    def get_active_filter_count(self) -> int:
        count  = len(self.selected_producers)
        count += sum(len(t) for t in self.selected_sub_types.values())
        count += len(self.selected_classes)
        count += len(self.selected_source_names)
        count += len(self.selected_file_paths)
        count += 1 if self.search_query else 0
        count += 1 if self.stats_filter is not None else 0
        return count

    def snapshot(self) -> FilterSnapshot:
        return FilterSnapshot(
            selected_producers    = frozenset(self.selected_producers),
            selected_sub_types    = tuple(sorted(
                (p, frozenset(t)) for p, t in self.selected_sub_types.items() if t)),
            selected_classes      = frozenset(self.selected_classes),
            selected_source_names = frozenset(self.selected_source_names),
            selected_file_paths   = frozenset(self.selected_file_paths),
            search_query          = self.search_query,
            sort_newest_first     = self.sort_newest_first,
            stats_filter          = self.stats_filter,
        )


def _toggle(values: set, value) -> None:
    if value in values:
        values.discard(value)
    else:
        values.add(value)
