"""View-scoped filter state.

Some filters (area, initiatives) apply to every view; others (stages,
assignees, cycle) only make sense on the views that declare them. Each view
keeps its own view-specific selections, so switching away and back restores
them. State is an immutable ViewFilterState value; every operation returns a
new one.
"""

import logging
from dataclasses import dataclass, field, fields, replace
from typing import Any, Iterable, Mapping

from delivery_roadmap.exceptions import ConfigurationError, UnknownViewError, ValidationError
from delivery_roadmap.models import FilterCriteria

logger = logging.getLogger(__name__)

COMMON = "common"
VIEW_SPECIFIC = "view-specific"

ROOT_VIEW = "root"
CYCLE_OVERVIEW_VIEW = "cycle-overview"
ROADMAP_VIEW = "roadmap"
DEFAULT_VIEWS = (ROOT_VIEW, CYCLE_OVERVIEW_VIEW, ROADMAP_VIEW)

_CRITERIA_KEYS = {f.name for f in fields(FilterCriteria)}
_LIST_KEYS = {"initiatives", "stages", "assignees"}
_STRING_KEYS = {"area", "cycle"}
_BOOL_KEYS = {"show_validation_errors"}


@dataclass(frozen=True)
class FilterCategory:
    """Registry entry: where a filter key may be used."""

    key: str
    scope: str  # "common" | "view-specific"
    views: tuple[str, ...] = ()
    description: str = ""


DEFAULT_FILTER_CATEGORIES = (
    FilterCategory("area", COMMON, (CYCLE_OVERVIEW_VIEW, ROADMAP_VIEW), "Filter by area/team"),
    FilterCategory("initiatives", COMMON, (CYCLE_OVERVIEW_VIEW, ROADMAP_VIEW), "Filter by initiatives"),
    FilterCategory("stages", VIEW_SPECIFIC, (CYCLE_OVERVIEW_VIEW,), "Filter by development stages"),
    FilterCategory("assignees", VIEW_SPECIFIC, (CYCLE_OVERVIEW_VIEW,), "Filter by assignees/team members"),
    FilterCategory("cycle", VIEW_SPECIFIC, (CYCLE_OVERVIEW_VIEW,), "Filter by specific cycle"),
    FilterCategory(
        "show_validation_errors",
        COMMON,
        (CYCLE_OVERVIEW_VIEW, ROADMAP_VIEW),
        "Show only items with validation errors",
    ),
)


class FilterRegistry:
    """Maps filter keys to the views they are valid in.

    Raises:
        UnknownViewError: At construction, if any category names a view that
            is not in ``views``.
        ConfigurationError: If a category scope is neither common nor
            view-specific.
    """

    def __init__(
        self,
        categories: Iterable[FilterCategory] = DEFAULT_FILTER_CATEGORIES,
        views: Iterable[str] = DEFAULT_VIEWS,
    ) -> None:
        self.categories = tuple(categories)
        self.views = tuple(views)

        declared = set(self.views)
        unknown = sorted({v for c in self.categories for v in c.views if v not in declared})
        if unknown:
            raise UnknownViewError(
                f"Filter categories reference undeclared views: {', '.join(unknown)}"
            )
        bad_scope = [c.key for c in self.categories if c.scope not in (COMMON, VIEW_SPECIFIC)]
        if bad_scope:
            raise ConfigurationError(
                f"Filter categories have unknown scope: {', '.join(bad_scope)}"
            )

        self._by_key = {c.key: c for c in self.categories}

    def has_view(self, view: str) -> bool:
        return view in self.views

    def is_common(self, key: str) -> bool:
        category = self._by_key.get(key)
        return category is not None and category.scope == COMMON

    def is_valid_for_view(self, key: str, view: str) -> bool:
        """Common keys are valid everywhere; view-specific keys only where declared."""
        category = self._by_key.get(key)
        if category is None or view not in self.views:
            return False
        return category.scope == COMMON or view in category.views

    def keys_for_view(self, view: str) -> list[str]:
        return [c.key for c in self.categories if self.is_valid_for_view(c.key, view)]


@dataclass(frozen=True)
class ViewFilterState:
    """Current view plus the common bucket and one bucket per view."""

    current_view: str
    common: Mapping[str, Any] = field(default_factory=dict)
    specific: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """JSON-serializable form, e.g. for a session cookie."""
        return {
            "current_view": self.current_view,
            "common": {k: _to_json(v) for k, v in self.common.items()},
            "specific": {
                view: {k: _to_json(v) for k, v in bucket.items()}
                for view, bucket in self.specific.items()
            },
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> "ViewFilterState":
        return cls(
            current_view=str(data.get("current_view", "")),
            common={k: _freeze(k, v) for k, v in (data.get("common") or {}).items()},
            specific={
                view: {k: _freeze(k, v) for k, v in (bucket or {}).items()}
                for view, bucket in (data.get("specific") or {}).items()
            },
        )


@dataclass(frozen=True)
class FilterUpdate:
    """Outcome of update_filter: the resulting state, and an error on rejection."""

    state: ViewFilterState
    error: ValidationError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _value_error(key: str, value: Any) -> str | None:
    """Describe why ``value`` has the wrong type for ``key``, or None if it is fine."""
    if value is None:
        return None
    if key in _STRING_KEYS and not isinstance(value, str):
        return f"Filter '{key}' expects a string"
    if key in _LIST_KEYS:
        if isinstance(value, str):
            return None
        if not isinstance(value, (list, tuple)) or not all(
            isinstance(v, (str, int, float)) and not isinstance(v, bool) for v in value
        ):
            return f"Filter '{key}' expects a list of ids"
    if key in _BOOL_KEYS and not isinstance(value, bool):
        return f"Filter '{key}' expects true or false"
    return None


def _freeze(key: str, value: Any) -> Any:
    if value is None:
        return None
    if key in _LIST_KEYS:
        if isinstance(value, str):
            return (value,)
        return tuple(str(v) for v in value)
    return value


def _to_json(value: Any) -> Any:
    return list(value) if isinstance(value, tuple) else value


class ViewFilterManager:
    """Operations over ViewFilterState for one registry.

    The manager itself holds no session state, so it can be shared freely; the
    caller owns the ViewFilterState and serializes concurrent updates.
    """

    def __init__(self, registry: FilterRegistry | None = None, default_view: str = CYCLE_OVERVIEW_VIEW) -> None:
        self.registry = registry or FilterRegistry()
        if not self.registry.has_view(default_view):
            raise UnknownViewError(f"Default view '{default_view}' is not declared")
        self.default_view = default_view

    def initial_state(self) -> ViewFilterState:
        return ViewFilterState(current_view=self.default_view)

    def switch_view(self, state: ViewFilterState, view: str) -> ViewFilterState:
        """Make ``view`` current; every view's selections are kept."""
        if not self.registry.has_view(view):
            raise UnknownViewError(f"View '{view}' is not declared")
        if not self.registry.keys_for_view(view):
            logger.warning("No filters configured for view: %s", view)
        return replace(state, current_view=view)

    def update_filter(self, state: ViewFilterState, key: str, value: Any) -> FilterUpdate:
        """Set a filter for the current view.

        Never raises for an invalid key or a value of the wrong type: the
        returned FilterUpdate carries a ValidationError and the unchanged state
        instead.
        """
        view = state.current_view
        if not self.registry.is_valid_for_view(key, view):
            return FilterUpdate(
                state=state,
                error=ValidationError(f"Filter '{key}' is not valid for view '{view}'"),
            )
        type_error = _value_error(key, value)
        if type_error:
            return FilterUpdate(state=state, error=ValidationError(type_error))

        frozen = _freeze(key, value)
        if self.registry.is_common(key):
            return FilterUpdate(state=replace(state, common={**state.common, key: frozen}))

        bucket = {**state.specific.get(view, {}), key: frozen}
        return FilterUpdate(state=replace(state, specific={**state.specific, view: bucket}))

    def get_active_filters(self, state: ViewFilterState) -> FilterCriteria:
        """Merge the common bucket with the current view's bucket."""
        merged = {**state.common, **state.specific.get(state.current_view, {})}
        values = {
            key: value
            for key, value in merged.items()
            if key in _CRITERIA_KEYS
            and value is not None
            and self.registry.is_valid_for_view(key, state.current_view)
        }
        return FilterCriteria(**values)

    def reset_view_filters(self, state: ViewFilterState, view: str) -> ViewFilterState:
        """Drop one view's view-specific selections."""
        if view not in state.specific:
            return state
        return replace(state, specific={k: v for k, v in state.specific.items() if k != view})

    def clear_filters(self, state: ViewFilterState) -> ViewFilterState:
        return ViewFilterState(current_view=state.current_view)
