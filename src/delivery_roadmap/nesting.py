"""Flat cycle data extract to nested initiative hierarchy."""

import logging
from datetime import date
from typing import Any, Mapping

from delivery_roadmap.models import (
    Assignee,
    Cycle,
    CycleRef,
    Initiative,
    NestedCycleData,
    ReleaseItem,
    RoadmapItem,
)
from delivery_roadmap.progress import aggregate_progress_metrics, compute_release_item_progress

logger = logging.getLogger(__name__)

UNASSIGNED_INITIATIVE_ID = "unassigned"
UNASSIGNED_INITIATIVE_NAME = "Unassigned Initiative"
UNASSIGNED_OWNER = "Unassigned"


def _as_list(value: Any) -> list:
    """Missing or malformed collections count as empty."""
    return list(value) if isinstance(value, (list, tuple)) else []


def _as_str(value: Any) -> str:
    return "" if value is None else str(value)


def _parse_date(value: Any) -> date | None:
    """Parse an ISO-8601 date (or datetime) string to a date object."""
    if not value:
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except (ValueError, TypeError):
        return None


def _display_name(value: Any) -> str:
    """Collapse a string-or-object field (area, theme, team) to a display name."""
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        return _as_str(value.get("name") or value.get("id"))
    return ""


def _parse_cycle(raw: Mapping) -> Cycle:
    return Cycle(
        id=_as_str(raw.get("id")),
        name=_as_str(raw.get("name")),
        start=_parse_date(raw.get("start")),
        end=_parse_date(raw.get("end")),
        delivery=_parse_date(raw.get("delivery")),
        state=_as_str(raw.get("state")).lower(),
    )


def _parse_assignee(value: Any) -> Assignee | None:
    if isinstance(value, str) and value:
        return Assignee(id=value, display_name=value)
    if not isinstance(value, Mapping):
        return None
    assignee_id = value.get("id")
    account_id = value.get("accountId")
    if not assignee_id and not account_id:
        return None
    return Assignee(
        id=_as_str(assignee_id) or None,
        account_id=_as_str(account_id) or None,
        display_name=_as_str(value.get("displayName") or value.get("name")),
    )


def _parse_stage(value: Any) -> str:
    if isinstance(value, Mapping):
        return _as_str(value.get("id") or value.get("value") or value.get("name"))
    return _as_str(value)


def _parse_area_ids(value: Any) -> tuple[str, ...] | None:
    if not isinstance(value, (list, tuple)):
        return None
    return tuple(_as_str(area_id) for area_id in value if area_id)


def _cycle_link(raw: Mapping, sprint_id: Any = None) -> str | None:
    """Resolve the cycle id from a direct id or a nested cycle/sprint object."""
    if raw.get("cycleId"):
        return _as_str(raw["cycleId"])
    for key in ("cycle", "sprint"):
        nested = raw.get(key)
        if isinstance(nested, Mapping) and nested.get("id"):
            return _as_str(nested["id"])
    if sprint_id:
        return _as_str(sprint_id)
    return None


def _parse_release_item(
    raw: Mapping, cycle_names: dict[str, str], sprint_id: Any = None
) -> ReleaseItem:
    cycle_id = _cycle_link(raw, sprint_id)
    cycle = None
    if cycle_id:
        cycle = CycleRef(id=cycle_id, name=cycle_names.get(cycle_id, f"Cycle {cycle_id}"))

    return ReleaseItem(
        id=_as_str(raw.get("id")),
        ticket_id=_as_str(raw.get("ticketId") or raw.get("key") or raw.get("id")),
        name=_as_str(raw.get("name") or raw.get("summary")),
        area=_display_name(raw.get("area")),
        area_ids=_parse_area_ids(raw.get("areaIds")),
        stage=_parse_stage(raw.get("stage")),
        status=_as_str(raw.get("status")),
        effort=raw.get("effort"),
        assignee=_parse_assignee(raw.get("assignee")),
        cycle_id=cycle_id,
        cycle=cycle,
        validations=_as_list(raw.get("validations")),
        url=_as_str(raw.get("url")),
        roadmap_item_id=_as_str(raw.get("roadmapItemId")) or None,
    )


def _raw_release_items(raw_item: Mapping, release_items_by_parent: dict[str, list]) -> list:
    """Release items embedded in the roadmap item, or cross-referenced by id.

    Returns ``(raw_release_item, sprint_id)`` pairs.
    """
    embedded = raw_item.get("releaseItems")
    if isinstance(embedded, list):
        return [(ri, None) for ri in embedded if isinstance(ri, Mapping)]

    sprints = raw_item.get("sprints")
    if isinstance(sprints, list):
        pairs = []
        for sprint in sprints:
            if not isinstance(sprint, Mapping):
                continue
            sprint_id = sprint.get("sprintId") or sprint.get("id")
            for ri in _as_list(sprint.get("releaseItems")):
                if isinstance(ri, Mapping):
                    pairs.append((ri, sprint_id))
        return pairs

    return [(ri, None) for ri in release_items_by_parent.get(_as_str(raw_item.get("id")), [])]


def _primary_owner(release_items: list[ReleaseItem]) -> str:
    """Display name of the last release item's assignee."""
    if not release_items or release_items[-1].assignee is None:
        return UNASSIGNED_OWNER
    assignee = release_items[-1].assignee
    return assignee.display_name or assignee.account_id or assignee.id or UNASSIGNED_OWNER


def _build_roadmap_item(
    raw_item: Mapping,
    release_items_by_parent: dict[str, list],
    cycle_names: dict[str, str],
) -> RoadmapItem:
    item_id = _as_str(raw_item.get("id"))
    release_items = [
        _parse_release_item(ri, cycle_names, sprint_id)
        for ri, sprint_id in _raw_release_items(raw_item, release_items_by_parent)
    ]

    return RoadmapItem(
        id=item_id,
        name=_as_str(raw_item.get("summary") or raw_item.get("name")) or f"Roadmap Item {item_id}",
        area=_display_name(raw_item.get("area")),
        theme=_display_name(raw_item.get("theme")),
        team=_display_name(raw_item.get("team") or raw_item.get("owningTeam")),
        url=_as_str(raw_item.get("url")),
        owner=_primary_owner(release_items),
        labels=[_as_str(label) for label in _as_list(raw_item.get("labels"))],
        start_date=_parse_date(raw_item.get("startDate")),
        end_date=_parse_date(raw_item.get("endDate")),
        validations=_as_list(raw_item.get("validations")),
        release_items=release_items,
        metrics=compute_release_item_progress(release_items),
    )


def build_nested_cycle_data(raw: Mapping | None) -> NestedCycleData:
    """Group a flat cycle data extract into initiatives with progress metrics.

    Args:
        raw: RawCycleData mapping with ``cycles``, ``roadmapItems``, and
            optionally ``releaseItems``, ``initiatives``, ``areas``,
            ``assignees`` and ``stages``. Missing collections are empty.

    Returns:
        NestedCycleData with initiatives sorted by total weeks, largest first.
        Roadmap items without an initiative id land in the synthetic
        "unassigned" initiative.
    """
    raw = raw or {}
    cycles = [_parse_cycle(c) for c in _as_list(raw.get("cycles")) if isinstance(c, Mapping)]
    cycle_names = {c.id: c.name or f"Cycle {c.id}" for c in cycles}

    initiative_names: dict[str, str] = {}
    for init in _as_list(raw.get("initiatives")):
        if isinstance(init, Mapping) and init.get("id"):
            initiative_names[_as_str(init["id"])] = _as_str(init.get("name"))

    release_items_by_parent: dict[str, list] = {}
    for ri in _as_list(raw.get("releaseItems")):
        if isinstance(ri, Mapping) and ri.get("roadmapItemId"):
            release_items_by_parent.setdefault(_as_str(ri["roadmapItemId"]), []).append(ri)

    # dicts keep insertion order, which is the tie-break for the weeks sort
    grouped: dict[str, list[RoadmapItem]] = {}
    for raw_item in _as_list(raw.get("roadmapItems")):
        if not isinstance(raw_item, Mapping):
            continue
        initiative_id = _as_str(raw_item.get("initiativeId")) or UNASSIGNED_INITIATIVE_ID
        roadmap_item = _build_roadmap_item(raw_item, release_items_by_parent, cycle_names)
        grouped.setdefault(initiative_id, []).append(roadmap_item)

    initiatives: list[Initiative] = []
    for initiative_id, roadmap_items in grouped.items():
        if initiative_id == UNASSIGNED_INITIATIVE_ID:
            name = initiative_names.get(initiative_id) or UNASSIGNED_INITIATIVE_NAME
        else:
            name = initiative_names.get(initiative_id) or initiative_id
        initiatives.append(
            Initiative(
                id=initiative_id,
                name=name,
                roadmap_items=roadmap_items,
                metrics=aggregate_progress_metrics(ri.metrics for ri in roadmap_items),
            )
        )

    initiatives.sort(key=lambda init: init.metrics.weeks, reverse=True)

    logger.debug(
        "Nested %d initiatives, %d roadmap items, %d release items",
        len(initiatives),
        sum(len(init.roadmap_items) for init in initiatives),
        sum(len(ri.release_items) for init in initiatives for ri in init.roadmap_items),
    )
    return NestedCycleData(initiatives=initiatives, cycles=cycles)

