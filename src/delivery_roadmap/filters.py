"""Cascading filter over nested initiative data.

Release items are matched first; roadmap items and initiatives are then pruned
from what survives. Pruned containers get their progress metrics re-derived
from the surviving children, untouched containers are shared with the input.
"""

import logging
from dataclasses import replace

from delivery_roadmap.models import (
    FilterCriteria,
    FilterResult,
    Initiative,
    NestedCycleData,
    ReleaseItem,
    RoadmapItem,
)
from delivery_roadmap.progress import aggregate_progress_metrics, compute_release_item_progress

logger = logging.getLogger(__name__)

ALL = "all"


def _value_constraint(value: str | None) -> str | None:
    """Return the constraining value, or None if the value means "everything"."""
    if value is None or value == "" or value == ALL:
        return None
    return value


def _list_constraint(values) -> frozenset[str] | None:
    """Return the constraining id set, or None if the list means "everything"."""
    if not values or ALL in values:
        return None
    return frozenset(str(v) for v in values)


class _Constraints:
    """FilterCriteria with sentinels resolved, built once per apply."""

    def __init__(self, criteria: FilterCriteria) -> None:
        area = _value_constraint(criteria.area)
        self.area = area.lower() if area is not None else None
        self.initiatives = _list_constraint(criteria.initiatives)
        self.stages = _list_constraint(criteria.stages)
        self.assignees = _list_constraint(criteria.assignees)
        self.cycle = _value_constraint(criteria.cycle)
        self.validation_errors_only = bool(criteria.show_validation_errors)

    def is_empty(self) -> bool:
        return (
            self.area is None
            and self.initiatives is None
            and self.stages is None
            and self.assignees is None
            and self.cycle is None
            and not self.validation_errors_only
        )


def _matches_area(item: ReleaseItem, area: str) -> bool:
    if item.area_ids is not None:
        return any(area_id.lower() == area for area_id in item.area_ids)
    return item.area.lower() == area


def _matches_assignee(item: ReleaseItem, assignees: frozenset[str]) -> bool:
    if item.assignee is None:
        return False
    return bool(item.assignee.identifiers() & assignees)


def _matches_cycle(item: ReleaseItem, cycle: str) -> bool:
    if item.cycle_id == cycle:
        return True
    return item.cycle is not None and item.cycle.id == cycle


def _release_item_passes(item: ReleaseItem, constraints: _Constraints) -> bool:
    if constraints.area is not None and not _matches_area(item, constraints.area):
        return False
    if constraints.stages is not None and item.stage not in constraints.stages:
        return False
    if constraints.assignees is not None and not _matches_assignee(item, constraints.assignees):
        return False
    if constraints.cycle is not None and not _matches_cycle(item, constraints.cycle):
        return False
    if constraints.validation_errors_only and not item.validations:
        return False
    return True


def _filter_roadmap_item(item: RoadmapItem, constraints: _Constraints) -> RoadmapItem | None:
    """Prune release items; None when the roadmap item should disappear."""
    passing = [ri for ri in item.release_items if _release_item_passes(ri, constraints)]

    if passing:
        if len(passing) == len(item.release_items):
            return item
        return replace(item, release_items=passing, metrics=compute_release_item_progress(passing))

    # Area-level match with no line-item detail stays visible, just empty.
    keep_empty = (
        constraints.area is not None and item.area.lower() == constraints.area
    ) or (constraints.validation_errors_only and bool(item.validations))
    if not keep_empty:
        return None
    if not item.release_items:
        return item
    return replace(item, release_items=[], metrics=compute_release_item_progress([]))


def _filter_initiative(initiative: Initiative, constraints: _Constraints) -> Initiative | None:
    if constraints.initiatives is not None and initiative.id not in constraints.initiatives:
        return None

    roadmap_items = []
    unchanged = True
    for item in initiative.roadmap_items:
        kept = _filter_roadmap_item(item, constraints)
        if kept is None:
            unchanged = False
            continue
        unchanged = unchanged and kept is item
        roadmap_items.append(kept)

    if not roadmap_items:
        return None
    if unchanged:
        return initiative
    return replace(
        initiative,
        roadmap_items=roadmap_items,
        metrics=aggregate_progress_metrics(ri.metrics for ri in roadmap_items),
    )


def _result(data: NestedCycleData, criteria: FilterCriteria) -> FilterResult:
    roadmap_items = [ri for init in data.initiatives for ri in init.roadmap_items]
    return FilterResult(
        data=data,
        applied_filters=criteria,
        total_initiatives=len(data.initiatives),
        total_roadmap_items=len(roadmap_items),
        total_release_items=sum(len(ri.release_items) for ri in roadmap_items),
    )


def apply_filters(data: NestedCycleData, criteria: FilterCriteria | None = None) -> FilterResult:
    """Apply filter criteria to nested cycle data.

    Args:
        data: Nested initiatives from build_nested_cycle_data
        criteria: Filter selection; unconstrained when None

    Returns:
        FilterResult with the pruned data and post-filter counts. The input is
        never modified; with no active constraint it is returned as-is.
    """
    criteria = criteria or FilterCriteria()
    constraints = _Constraints(criteria)
    if constraints.is_empty():
        return _result(data, criteria)

    initiatives = []
    for initiative in data.initiatives:
        kept = _filter_initiative(initiative, constraints)
        if kept is not None:
            initiatives.append(kept)

    result = _result(replace(data, initiatives=initiatives), criteria)
    logger.debug(
        "Filter %s kept %d/%d initiatives",
        criteria,
        result.total_initiatives,
        len(data.initiatives),
    )
    return result
