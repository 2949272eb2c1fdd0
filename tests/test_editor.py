"""Tests for command dispatch and multi-route stop facility replacement."""

from __future__ import annotations

import copy

import pytest

from tests.helpers import fids, stop
from transit_editor.core.config import EditorSettings
from transit_editor.core.errors import (
    InvalidOperation,
    MissingFacility,
    NotFound,
    RouteUnreachable,
    ScheduleEditError,
)
from transit_editor.editing.editor import ScheduleEditor
from transit_editor.graph.network import Network
from transit_editor.models.schedule import FacilityId, TransitRoute, TransitSchedule

DETOUR = ["A", "p1", "X", "p2", "B", "m2", "C"]


def route_state(schedule: TransitSchedule) -> dict[tuple[str, str], tuple[list, list[str]]]:
    return {
        (line.id, route.id): (copy.deepcopy(route.stops), list(route.link_ids))
        for line, route in schedule.iter_routes()
    }


class TestLookups:
    def test_get_transit_route(self, editor: ScheduleEditor, r1: TransitRoute) -> None:
        assert editor.get_transit_route("L1", "r1") is r1

    def test_unknown_line(self, editor: ScheduleEditor) -> None:
        with pytest.raises(NotFound, match="TransitLine LX not found"):
            editor.get_transit_route("LX", "r1")

    def test_unknown_route(self, editor: ScheduleEditor) -> None:
        with pytest.raises(NotFound) as exc_info:
            editor.get_transit_route("L1", "r9")
        assert exc_info.value.context == {"line_id": "L1", "route_id": "r9"}

    def test_routes_on_link(self, editor: ScheduleEditor) -> None:
        assert [r.id for r in editor.routes_on_link("m2")] == ["r1", "r2"]
        assert [r.id for r in editor.routes_on_link("m1")] == ["r1"]
        assert editor.routes_on_link("Z") == []

    def test_routers_inferred_when_not_given(self, schedule: TransitSchedule, network: Network) -> None:
        editor = ScheduleEditor(schedule, network)
        assert set(editor.routers) == {"bus"}


class TestReplaceStopFacility:
    def test_replace_in_route_preserves_order_and_offsets(
        self, editor: ScheduleEditor, r1: TransitRoute, r2: TransitRoute
    ) -> None:
        before = list(r1.stops)

        editor.replace_stop_facility_in_route(r1, "s2", "s2.link:X")

        assert fids(r1) == ["s1", "s2.link:X", "s3"]
        assert len(r1.stops) == len(before)
        assert r1.stops[0] == before[0] and r1.stops[2] == before[2]
        assert (r1.stops[1].arrival_offset, r1.stops[1].departure_offset) == (120.0, 150.0)
        assert r1.link_ids == DETOUR
        assert fids(r2) == ["s2", "s3"]

    def test_replace_every_occurrence_in_route(self, editor: ScheduleEditor) -> None:
        route = TransitRoute(id="loop", transport_mode="bus", stops=[stop("s1"), stop("s1")], link_ids=["A"])
        editor.schedule.lines["L3"].add_route(route)

        editor.replace_stop_facility_in_route(route, "s1", "s1.link:A")

        assert fids(route) == ["s1.link:A", "s1.link:A"]
        assert route.link_ids == ["A"]

    def test_replace_in_route_not_referencing(self, editor: ScheduleEditor, r3: TransitRoute) -> None:
        with pytest.raises(NotFound, match="not found in TransitRoute r3"):
            editor.replace_stop_facility_in_route(r3, "s2", "s2.link:X")
        assert fids(r3) == ["s3"]

    def test_replace_with_unknown_facility(self, editor: ScheduleEditor, r1: TransitRoute) -> None:
        with pytest.raises(NotFound):
            editor.replace_stop_facility_in_route(r1, "s2", "s2.link:nope")
        assert fids(r1) == ["s1", "s2", "s3"]

    def test_replace_everywhere(self, editor: ScheduleEditor, r1: TransitRoute, r2: TransitRoute, r3: TransitRoute) -> None:
        changed = editor.replace_stop_facility_everywhere("s2", "s2.link:X")

        assert [r.id for r in changed] == ["r1", "r2"]
        assert r1.link_ids == DETOUR
        assert fids(r2) == ["s2.link:X", "s3"]
        assert r2.link_ids == ["X", "p2", "B", "m2", "C"]
        assert r3.link_ids == ["C"]

    def test_replace_everywhere_is_all_or_nothing(self, editor: ScheduleEditor, schedule: TransitSchedule) -> None:
        """r3 alone could be refreshed onto Z, but r1 and r2 cannot reach Z."""
        before = route_state(schedule)

        with pytest.raises(RouteUnreachable):
            editor.replace_stop_facility_everywhere("s3", "s3.link:Z")

        assert route_state(schedule) == before

    def test_replace_everywhere_unused_facility(self, editor: ScheduleEditor, schedule: TransitSchedule) -> None:
        before = route_state(schedule)
        assert editor.replace_stop_facility_everywhere("s5", "s3") == []
        assert route_state(schedule) == before

    def test_replace_on_link(self, editor: ScheduleEditor, r1: TransitRoute, r2: TransitRoute) -> None:
        changed = editor.replace_stop_facility_on_link("m1", "s2", "s2.link:X")
        assert [r.id for r in changed] == ["r1"]
        assert fids(r2) == ["s2", "s3"]

    def test_lenient_replacement_keeps_disconnected_geometry(
        self, schedule: TransitSchedule, network: Network, r3: TransitRoute
    ) -> None:
        editor = ScheduleEditor(schedule, network, settings=EditorSettings(lenient_refresh=True))
        editor.replace_stop_facility_everywhere("s3", "s3.link:Z")

        assert schedule.lines["L1"].routes["r1"].link_ids == ["A", "m1", "B", "Z"]
        assert r3.link_ids == ["Z"]


class TestChangeRefLink:
    def test_global_change(self, editor: ScheduleEditor, r1: TransitRoute, r2: TransitRoute) -> None:
        editor.change_ref_link("s2", "X")

        assert fids(r1) == ["s1", "s2.link:X", "s3"]
        assert fids(r2) == ["s2.link:X", "s3"]
        assert r1.link_ids == DETOUR

    @pytest.mark.parametrize(("stop_id", "link_id"), [("stop7", "link42"), ("s2", "m1")])
    def test_missing_child_fails_without_changes(
        self, editor: ScheduleEditor, schedule: TransitSchedule, stop_id: str, link_id: str
    ) -> None:
        before = route_state(schedule)
        n_facilities = len(schedule.facilities)

        with pytest.raises(NotFound):
            editor.change_ref_link(stop_id, link_id)

        assert route_state(schedule) == before
        assert len(schedule.facilities) == n_facilities

    def test_in_route(self, editor: ScheduleEditor, r1: TransitRoute, r2: TransitRoute) -> None:
        editor.change_ref_link_in_route(r1, "s2", "X")

        assert fids(r1) == ["s1", "s2.link:X", "s3"]
        assert fids(r2) == ["s2", "s3"]

    def test_in_route_from_child_back_to_parent_link(self, editor: ScheduleEditor, r1: TransitRoute) -> None:
        """Going from s2.link:X back to link B resolves the child s2.link:B, which does not exist."""
        editor.change_ref_link_in_route(r1, "s2", "X")
        with pytest.raises(MissingFacility, match="s2.link:B"):
            editor.change_ref_link_in_route(r1, "s2", "B")
        assert r1.link_ids == DETOUR

    def test_in_route_without_that_stop(self, editor: ScheduleEditor, r3: TransitRoute) -> None:
        with pytest.raises(NotFound, match="No child facility for s2"):
            editor.change_ref_link_in_route(r3, "s2", "X")

    def test_on_link_only_touches_routes_on_that_link(
        self, editor: ScheduleEditor, r1: TransitRoute, r2: TransitRoute
    ) -> None:
        changed = editor.change_ref_link_on_link("m1", "s2", "X")

        assert [r.id for r in changed] == ["r1"]
        assert fids(r1) == ["s1", "s2.link:X", "s3"]
        assert fids(r2) == ["s2", "s3"]

    def test_on_link_covers_all_routes(self, editor: ScheduleEditor, r1: TransitRoute, r2: TransitRoute) -> None:
        changed = editor.change_ref_link_on_link("B", "s2", "X")
        assert [r.id for r in changed] == ["r1", "r2"]

    def test_on_link_without_matching_routes(self, editor: ScheduleEditor) -> None:
        with pytest.raises(NotFound, match="No TransitRoute on link m2 serves stop s5"):
            editor.change_ref_link_on_link("m2", "s5", "Z")

    def test_create_missing_child_facilities(
        self, schedule: TransitSchedule, network: Network, r1: TransitRoute
    ) -> None:
        editor = ScheduleEditor(schedule, network, settings=EditorSettings(create_missing_child_facilities=True))

        editor.change_ref_link_in_route(r1, "s2", "p1")

        child = schedule.facilities[FacilityId("s2", "p1")]
        assert child.name == "Market Square"
        assert child.coord == (2.5, 0.0)
        assert child.link_id == "p1"
        assert fids(r1) == ["s1", "s2.link:p1", "s3"]
        assert r1.link_ids == DETOUR

    def test_create_missing_child_requires_known_link(self, schedule: TransitSchedule, network: Network) -> None:
        editor = ScheduleEditor(schedule, network, settings=EditorSettings(create_missing_child_facilities=True))
        with pytest.raises(NotFound, match="Link link42 not found"):
            editor.change_ref_link("s2", "link42")
        assert FacilityId("s2", "link42") not in schedule.facilities


class TestApplyCommand:
    def test_reroute_via_link(self, editor: ScheduleEditor, r1: TransitRoute) -> None:
        assert editor.apply_command(["rerouteViaLink", "L1", "r1", "m1", "X"]) is True
        assert r1.link_ids == DETOUR

    def test_reroute_via_reference_link(self, editor: ScheduleEditor, r1: TransitRoute) -> None:
        with pytest.raises(InvalidOperation) as exc_info:
            editor.apply_command(["rerouteViaLink", "L1", "r1", "B", "X"])
        assert exc_info.value.context["line_id"] == "L1"
        assert exc_info.value.context["route_id"] == "r1"
        assert exc_info.value.context["link_id"] == "B"

    def test_unknown_line_context(self, editor: ScheduleEditor) -> None:
        with pytest.raises(NotFound, match="line_id=LX"):
            editor.apply_command(["rerouteViaLink", "LX", "r1", "m1", "X"])

    def test_change_ref_link_global(self, editor: ScheduleEditor, r2: TransitRoute) -> None:
        editor.apply_command(["changeRefLink", "s2", "X"])
        assert fids(r2) == ["s2.link:X", "s3"]

    def test_change_ref_link_single_route(self, editor: ScheduleEditor, r1: TransitRoute, r2: TransitRoute) -> None:
        editor.apply_command(["changeRefLink", "L1", "r1", "s2", "X"])
        assert fids(r1) == ["s1", "s2.link:X", "s3"]
        assert fids(r2) == ["s2", "s3"]

    def test_change_ref_link_all_routes_on_link(self, editor: ScheduleEditor, r1: TransitRoute, r2: TransitRoute) -> None:
        editor.apply_command(["changeRefLink", "allTransitRoutesOnLink", "m1", "s2", "X"])
        assert fids(r1) == ["s1", "s2.link:X", "s3"]
        assert fids(r2) == ["s2", "s3"]

    def test_change_ref_link_spec_example(self, editor: ScheduleEditor, schedule: TransitSchedule) -> None:
        before = route_state(schedule)
        with pytest.raises(NotFound):
            editor.apply_command(["changeRefLink", "stop7", "link42"])
        assert route_state(schedule) == before

    def test_replace_stop_facility_commands(self, editor: ScheduleEditor, r1: TransitRoute, r3: TransitRoute) -> None:
        editor.apply_command(["replaceStopFacility", "L3", "r3", "s3", "s3.link:Z"])
        assert fids(r3) == ["s3.link:Z"]
        assert r3.link_ids == ["Z"]

        editor.apply_command(["replaceStopFacility", "allTransitRoutesOnLink", "m1", "s2", "s2.link:X"])
        assert r1.link_ids == DETOUR

    def test_refresh_commands(self, editor: ScheduleEditor, r1: TransitRoute, r2: TransitRoute) -> None:
        r1.link_ids = ["A", "C"]
        r2.link_ids = []
        editor.apply_command(["refreshTransitRoute", "L1", "r1"])
        assert r1.link_ids == ["A", "m1", "B", "m2", "C"]
        assert r2.link_ids == []

        editor.apply_command(["refreshSchedule"])
        assert r2.link_ids == ["B", "m2", "C"]

    @pytest.mark.parametrize(
        "record",
        [[], [""], ["   "], ["// comment"], ["//rerouteViaLink", "L1", "r1", "m1", "X"]],
    )
    def test_comments_and_blank_records_are_skipped(
        self, editor: ScheduleEditor, schedule: TransitSchedule, record: list[str]
    ) -> None:
        before = route_state(schedule)
        assert editor.apply_command(record) is False
        assert route_state(schedule) == before

    def test_trailing_empty_fields_are_ignored(self, editor: ScheduleEditor, r1: TransitRoute) -> None:
        editor.apply_command(["rerouteViaLink", "L1", "r1", "m1", "X", "", ""])
        assert r1.link_ids == DETOUR

    def test_unknown_command(self, editor: ScheduleEditor) -> None:
        with pytest.raises(InvalidOperation, match='Invalid command "moveStop"'):
            editor.apply_command(["moveStop", "s1"])

    @pytest.mark.parametrize(
        "record",
        [
            ["rerouteViaLink", "L1", "r1", "m1"],
            ["changeRefLink", "s2"],
            ["changeRefLink", "L1", "r1", "s2"],
            ["refreshSchedule", "L1"],
        ],
    )
    def test_wrong_field_count(self, editor: ScheduleEditor, record: list[str]) -> None:
        with pytest.raises(InvalidOperation, match="takes"):
            editor.apply_command(record)


class TestRunCommands:
    def test_batch_continues_after_failure(self, editor: ScheduleEditor, r1: TransitRoute) -> None:
        report = editor.run_commands(
            [
                ["// reroute r1 around m1"],
                ["changeRefLink", "stop7", "link42"],
                ["rerouteViaLink", "L1", "r1", "m1", "X"],
            ]
        )

        assert report.applied == 1
        assert report.skipped == 1
        assert len(report.failures) == 1
        assert report.failures[0].record_no == 2
        assert isinstance(report.failures[0].error, NotFound)
        assert not report.ok
        assert r1.link_ids == DETOUR
        assert report.summary() == {"commands_applied": 1, "commands_skipped": 1, "commands_failed": 1}

    def test_stop_on_error(self, editor: ScheduleEditor, r1: TransitRoute) -> None:
        report = editor.run_commands(
            [["bogus"], ["rerouteViaLink", "L1", "r1", "m1", "X"]],
            stop_on_error=True,
        )
        assert report.applied == 0
        assert len(report.failures) == 1
        assert r1.link_ids == ["A", "m1", "B", "m2", "C"]

    def test_malformed_ids_fail_only_their_command(self, editor: ScheduleEditor, r1: TransitRoute) -> None:
        """Empty and parent-less ids are reported per command; later commands still run."""
        report = editor.run_commands(
            [
                ["changeRefLink", "L1", "r1", "", "X"],
                ["changeRefLink", ".link:A", "X"],
                ["replaceStopFacility", "s2", ".link:X"],
                ["rerouteViaLink", "L1", "r1", "m1", "X"],
            ]
        )

        assert report.applied == 1
        assert [f.record_no for f in report.failures] == [1, 2, 3]
        assert all(isinstance(f.error, InvalidOperation) for f in report.failures)
        assert r1.link_ids == DETOUR


class TestErrorContext:
    def test_multi_route_failure_names_the_line(self, editor: ScheduleEditor) -> None:
        with pytest.raises(RouteUnreachable) as exc_info:
            editor.replace_stop_facility_everywhere("s3", "s3.link:Z")
        assert exc_info.value.context["line_id"] == "L1"
        assert exc_info.value.context["route_id"] == "r1"

    def test_refresh_schedule_failure_names_the_line(self, editor: ScheduleEditor, r3: TransitRoute) -> None:
        r3.stops.append(stop("s4"))
        with pytest.raises(ScheduleEditError) as exc_info:
            editor.apply_command(["refreshSchedule"])
        assert exc_info.value.context["line_id"] == "L3"

    def test_refresh_route_failure_names_the_line(self, editor: ScheduleEditor, r3: TransitRoute) -> None:
        r3.stops.append(stop("s5"))
        with pytest.raises(RouteUnreachable, match="line_id=L3"):
            editor.refresh_route(r3)
        assert r3.link_ids == ["C"]

    @pytest.mark.parametrize(
        "record",
        [["rerouteViaLink", "L1", "", "m1", "X"], ["changeRefLink", "L1", "r1", "", "X"]],
    )
    def test_empty_field_is_invalid(self, editor: ScheduleEditor, record: list[str]) -> None:
        with pytest.raises(InvalidOperation, match="empty field"):
            editor.apply_command(record)
