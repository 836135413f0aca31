"""Tests for the flat extract to nested hierarchy transform."""

from datetime import date

from delivery_roadmap.models import Assignee, CycleRef
from delivery_roadmap.nesting import (
    UNASSIGNED_INITIATIVE_ID,
    UNASSIGNED_INITIATIVE_NAME,
    build_nested_cycle_data,
)


def _make_release_item(item_id, status="todo", effort=1, **extra):
    return {"id": item_id, "status": status, "effort": effort, **extra}


def _make_roadmap_item(item_id, initiative_id=None, release_items=None, **extra):
    raw = {"id": item_id, "summary": f"Item {item_id}", **extra}
    if initiative_id is not None:
        raw["initiativeId"] = initiative_id
    if release_items is not None:
        raw["releaseItems"] = release_items
    return raw


class TestGrouping:
    """Tests for grouping roadmap items by initiative."""

    def test_groups_by_initiative_id(self):
        raw = {
            "initiatives": [{"id": "i1", "name": "One"}, {"id": "i2", "name": "Two"}],
            "roadmapItems": [
                _make_roadmap_item("RM-1", "i1", [_make_release_item("RI-1")]),
                _make_roadmap_item("RM-2", "i2", [_make_release_item("RI-2")]),
                _make_roadmap_item("RM-3", "i1", [_make_release_item("RI-3")]),
            ],
        }
        nested = build_nested_cycle_data(raw)

        by_id = {init.id: init for init in nested.initiatives}
        assert set(by_id) == {"i1", "i2"}
        assert [ri.id for ri in by_id["i1"].roadmap_items] == ["RM-1", "RM-3"]
        assert by_id["i1"].name == "One"
        assert by_id["i2"].name == "Two"

    def test_missing_initiative_goes_to_unassigned(self):
        raw = {
            "roadmapItems": [
                _make_roadmap_item("RM-1", None, []),
                _make_roadmap_item("RM-2", "", []),
                {**_make_roadmap_item("RM-3", None, []), "initiativeId": None},
            ],
        }
        nested = build_nested_cycle_data(raw)

        assert len(nested.initiatives) == 1
        unassigned = nested.initiatives[0]
        assert unassigned.id == UNASSIGNED_INITIATIVE_ID
        assert unassigned.name == UNASSIGNED_INITIATIVE_NAME
        assert len(unassigned.roadmap_items) == 3

    def test_unknown_initiative_name_falls_back_to_id(self):
        nested = build_nested_cycle_data({"roadmapItems": [_make_roadmap_item("RM-1", "i9", [])]})
        assert nested.initiatives[0].name == "i9"

    def test_sorted_by_weeks_descending_with_stable_ties(self):
        raw = {
            "roadmapItems": [
                _make_roadmap_item("RM-1", "small", [_make_release_item("a", effort=1)]),
                _make_roadmap_item("RM-2", "tie-a", [_make_release_item("b", effort=3)]),
                _make_roadmap_item("RM-3", "big", [_make_release_item("c", effort=8)]),
                _make_roadmap_item("RM-4", "tie-b", [_make_release_item("d", effort=3)]),
            ],
        }
        nested = build_nested_cycle_data(raw)
        assert [init.id for init in nested.initiatives] == ["big", "tie-a", "tie-b", "small"]

    def test_missing_collections_are_empty(self):
        nested = build_nested_cycle_data({})
        assert nested.initiatives == []
        assert nested.cycles == []

        nested = build_nested_cycle_data({"roadmapItems": None, "cycles": "oops"})
        assert nested.initiatives == []
        assert nested.cycles == []

        assert build_nested_cycle_data(None).initiatives == []

    def test_does_not_mutate_input(self):
        raw = {"roadmapItems": [_make_roadmap_item("RM-1", "i1", [_make_release_item("RI-1")])]}
        snapshot = repr(raw)
        build_nested_cycle_data(raw)
        assert repr(raw) == snapshot


class TestReleaseItemSources:
    """Tests for embedded and cross-referenced release items."""

    def test_cross_referenced_release_items(self):
        raw = {
            "roadmapItems": [_make_roadmap_item("RM-1", "i1")],
            "releaseItems": [
                _make_release_item("RI-1", roadmapItemId="RM-1"),
                _make_release_item("RI-2", roadmapItemId="RM-2"),
                _make_release_item("RI-3", roadmapItemId="RM-1"),
            ],
        }
        nested = build_nested_cycle_data(raw)
        item = nested.initiatives[0].roadmap_items[0]
        assert [ri.id for ri in item.release_items] == ["RI-1", "RI-3"]
        assert item.release_items[0].roadmap_item_id == "RM-1"

    def test_embedded_release_items_win_over_table(self):
        raw = {
            "roadmapItems": [_make_roadmap_item("RM-1", "i1", [_make_release_item("RI-9")])],
            "releaseItems": [_make_release_item("RI-1", roadmapItemId="RM-1")],
        }
        item = build_nested_cycle_data(raw).initiatives[0].roadmap_items[0]
        assert [ri.id for ri in item.release_items] == ["RI-9"]

    def test_sprint_embedded_release_items_link_cycle(self):
        raw = {
            "cycles": [{"id": "c7", "name": "Cycle 7"}],
            "roadmapItems": [
                _make_roadmap_item(
                    "RM-1",
                    "i1",
                    sprints=[{"sprintId": "c7", "releaseItems": [_make_release_item("RI-1")]}],
                ),
            ],
        }
        release_item = build_nested_cycle_data(raw).initiatives[0].roadmap_items[0].release_items[0]
        assert release_item.cycle_id == "c7"
        assert release_item.cycle == CycleRef(id="c7", name="Cycle 7")


class TestFieldNormalization:
    """Tests for optional field normalization."""

    def _single_item(self, **extra):
        raw = {"roadmapItems": [_make_roadmap_item("RM-1", "i1", [], **extra)]}
        return build_nested_cycle_data(raw).initiatives[0].roadmap_items[0]

    def test_string_area_kept(self):
        assert self._single_item(area="frontend").area == "frontend"

    def test_area_object_collapses_to_name(self):
        assert self._single_item(area={"id": "fe", "name": "Frontend"}).area == "Frontend"

    def test_missing_area_is_empty_string(self):
        assert self._single_item().area == ""

    def test_non_list_validations_become_empty(self):
        assert self._single_item(validations={"code": "x"}).validations == []
        assert self._single_item(validations="bad").validations == []
        assert self._single_item().validations == []

    def test_list_validations_kept(self):
        validations = [{"code": "missingEstimate"}]
        assert self._single_item(validations=validations).validations == validations

    def test_name_fallbacks(self):
        raw = {"roadmapItems": [{"id": "RM-5", "initiativeId": "i1", "name": "Named"},
                                {"id": "RM-6", "initiativeId": "i1"}]}
        items = build_nested_cycle_data(raw).initiatives[0].roadmap_items
        assert items[0].name == "Named"
        assert items[1].name == "Roadmap Item RM-6"

    def test_release_item_fields(self):
        raw = {
            "cycles": [{"id": "c1", "name": "Cycle 1", "start": "2024-01-01", "end": "2024-02-01",
                        "state": "Active"}],
            "roadmapItems": [
                _make_roadmap_item("RM-1", "i1", [
                    _make_release_item(
                        "RI-1",
                        effort="2",
                        ticketId="PLAT-1",
                        area={"id": "fe", "name": "Frontend"},
                        areaIds=["fe", "be"],
                        stage={"id": "s2", "name": "Build"},
                        assignee={"accountId": "acc-1", "displayName": "Ann"},
                        cycle={"id": "c1"},
                        validations=None,
                    ),
                ]),
            ],
        }
        nested = build_nested_cycle_data(raw)
        assert nested.cycles[0].start == date(2024, 1, 1)
        assert nested.cycles[0].state == "active"

        item = nested.initiatives[0].roadmap_items[0]
        ri = item.release_items[0]
        assert ri.ticket_id == "PLAT-1"
        assert ri.area == "Frontend"
        assert ri.area_ids == ("fe", "be")
        assert ri.stage == "s2"
        assert ri.effort == "2"
        assert ri.assignee == Assignee(id=None, account_id="acc-1", display_name="Ann")
        assert ri.cycle_id == "c1"
        assert ri.cycle == CycleRef(id="c1", name="Cycle 1")
        assert ri.validations == []
        assert item.owner == "Ann"

    def test_unknown_cycle_gets_placeholder_name(self):
        raw = {"roadmapItems": [_make_roadmap_item("RM-1", "i1", [_make_release_item("RI-1", cycleId="c9")])]}
        ri = build_nested_cycle_data(raw).initiatives[0].roadmap_items[0].release_items[0]
        assert ri.cycle == CycleRef(id="c9", name="Cycle c9")

    def test_owner_defaults_to_unassigned(self):
        assert self._single_item().owner == "Unassigned"


class TestProgressRollUp:
    """Tests for per-item and per-initiative metrics after nesting."""

    def test_metrics_roll_up(self):
        raw = {
            "roadmapItems": [
                _make_roadmap_item("RM-1", "i1", [
                    _make_release_item("a", "done", 2),
                    _make_release_item("b", "replanned", 5),
                ]),
                _make_roadmap_item("RM-2", "i1", [
                    _make_release_item("c", "todo", 8),
                ]),
            ],
        }
        initiative = build_nested_cycle_data(raw).initiatives[0]

        assert initiative.roadmap_items[0].metrics.weeks == 2
        assert initiative.roadmap_items[0].metrics.progress == 100
        assert initiative.roadmap_items[1].metrics.progress == 0
        assert initiative.metrics.weeks == 10
        assert initiative.metrics.release_items_count == 2
        assert initiative.metrics.progress == 20
