"""Schedule editing via a fixed command vocabulary.

Commands (fields after the command name):
  rerouteViaLink       lineId; routeId; oldLinkId; newLinkId
  changeRefLink        stopId; newLinkId
  changeRefLink        lineId; routeId; parentStopId; newLinkId
  changeRefLink        allTransitRoutesOnLink; linkId; parentStopId; newLinkId
  replaceStopFacility  toReplaceId; replaceWithId
  replaceStopFacility  lineId; routeId; toReplaceId; replaceWithId
  replaceStopFacility  allTransitRoutesOnLink; linkId; toReplaceId; replaceWithId
  refreshTransitRoute  lineId; routeId
  refreshSchedule

Every command either completes or raises without modifying any route.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from transit_editor.core.config import (
    ALL_TRANSIT_ROUTES_ON_LINK,
    CHANGE_REF_LINK,
    REFRESH_SCHEDULE,
    REFRESH_TRANSIT_ROUTE,
    REPLACE_STOP_FACILITY,
    RR_VIA_LINK,
    EditorSettings,
)
from transit_editor.core.errors import InvalidOperation, MissingFacility, NotFound, ScheduleEditError
from transit_editor.editing.registry import StopFacilityRegistry
from transit_editor.editing.rewriter import RouteRewriter
from transit_editor.graph.network import Network
from transit_editor.graph.routing import Router, infer_routers
from transit_editor.models.schedule import (
    FacilityId,
    StopFacility,
    TransitRoute,
    TransitRouteStop,
    TransitSchedule,
)

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandFailure:
    record_no: int
    record: tuple[str, ...]
    error: ScheduleEditError


@dataclass
class EditReport:
    applied: int = 0
    skipped: int = 0
    failures: list[CommandFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def summary(self) -> dict[str, object]:
        return {
            "commands_applied": self.applied,
            "commands_skipped": self.skipped,
            "commands_failed": len(self.failures),
        }


class ScheduleEditor:
    """Applies edit commands to a schedule, keeping route link sequences consistent."""

    def __init__(
        self,
        schedule: TransitSchedule,
        network: Network,
        routers: Mapping[str, Router] | None = None,
        *,
        settings: EditorSettings | None = None,
    ) -> None:
        self.schedule = schedule
        self.network = network
        self.settings = settings or EditorSettings()
        self.routers = dict(routers) if routers is not None else infer_routers(schedule, network)
        self.registry = StopFacilityRegistry(schedule)
        self.rewriter = RouteRewriter(
            network,
            self.routers,
            self.registry,
            lenient_refresh=self.settings.lenient_refresh,
        )

    # lookups

    def get_transit_route(self, line_id: str, route_id: str) -> TransitRoute:
        line = self.schedule.lines.get(line_id)
        if line is None:
            raise NotFound(f"TransitLine {line_id} not found", line_id=line_id)
        route = line.routes.get(route_id)
        if route is None:
            raise NotFound(
                f"TransitRoute {route_id} not found in TransitLine {line_id}",
                line_id=line_id,
                route_id=route_id,
            )
        return route

    def routes_on_link(self, link_id: str) -> list[TransitRoute]:
        """All transit routes whose link sequence contains `link_id`."""
        return [route for _, route in self.schedule.iter_routes() if link_id in route.link_ids]

    def _line_id_of(self, route: TransitRoute) -> str | None:
        for line, r in self.schedule.iter_routes():
            if r is route:
                return line.id
        return None

    def _plan_refresh(self, route: TransitRoute, stops: Sequence[TransitRouteStop]) -> list[str]:
        try:
            return self.rewriter.plan_refresh(route, stops)
        except ScheduleEditError as e:
            line_id = self._line_id_of(route)
            if line_id is not None:
                e.context.setdefault("line_id", line_id)
            raise

    def routes_referencing(self, facility_id: FacilityId | str) -> list[TransitRoute]:
        fid = FacilityId.parse(facility_id)
        return [route for _, route in self.schedule.iter_routes() if route.references(fid)]

    # geometry edits

    def reroute_via_link(self, route: TransitRoute, old_link_id: str, new_link_id: str) -> bool:
        return self.rewriter.reroute_via_link(route, old_link_id, new_link_id)

    def refresh_route(self, route: TransitRoute) -> list[str]:
        route.link_ids = self._plan_refresh(route, route.stops)
        return route.link_ids

    def refresh_schedule(self) -> int:
        return self.rewriter.refresh_schedule(self.schedule)

    # stop facility replacement

    def _commit_replacements(
        self,
        routes: Iterable[TransitRoute],
        to_replace: FacilityId,
        replace_with: FacilityId,
    ) -> list[TransitRoute]:
        """Substitute the facility in every given route and refresh them, all or nothing."""
        planned = []
        for route in routes:
            stops = [
                s.with_facility(replace_with) if s.facility_id == to_replace else s for s in route.stops
            ]
            planned.append((route, stops, self._plan_refresh(route, stops)))

        for route, stops, link_ids in planned:
            route.stops = stops
            route.link_ids = link_ids
            LOGGER.info("TransitRoute %s: stop facility %s replaced by %s", route.id, to_replace, replace_with)
        return [route for route, _, _ in planned]

    def replace_stop_facility_in_route(
        self,
        route: TransitRoute,
        to_replace: FacilityId | StopFacility | str,
        replace_with: FacilityId | StopFacility | str,
    ) -> TransitRoute:
        """Replace a stop facility with another one in the given route. Both must exist."""
        old = self._resolve(to_replace)
        new = self._resolve(replace_with)
        if not route.references(old.id):
            raise NotFound(
                f"StopFacility {old.id} not found in TransitRoute {route.id}",
                route_id=route.id,
                facility_id=old.id,
            )
        self._commit_replacements([route], old.id, new.id)
        return route

    def replace_stop_facility_everywhere(
        self,
        to_replace: FacilityId | StopFacility | str,
        replace_with: FacilityId | StopFacility | str,
    ) -> list[TransitRoute]:
        """Replace a stop facility with another one in the whole schedule. Both must exist."""
        old = self._resolve(to_replace)
        new = self._resolve(replace_with)
        routes = self.routes_referencing(old.id)
        if not routes:
            LOGGER.warning("StopFacility %s is not used by any TransitRoute", old.id)
        return self._commit_replacements(routes, old.id, new.id)

    def replace_stop_facility_on_link(
        self,
        link_id: str,
        to_replace: FacilityId | StopFacility | str,
        replace_with: FacilityId | StopFacility | str,
    ) -> list[TransitRoute]:
        """Replace a stop facility in every route on `link_id` that uses it."""
        old = self._resolve(to_replace)
        new = self._resolve(replace_with)
        routes = [r for r in self.routes_on_link(link_id) if r.references(old.id)]
        if not routes:
            raise NotFound(
                f"No TransitRoute on link {link_id} uses StopFacility {old.id}",
                link_id=link_id,
                facility_id=old.id,
            )
        return self._commit_replacements(routes, old.id, new.id)

    # changing reference links

    def _child_for(self, current: StopFacility, new_link_id: str) -> StopFacility:
        try:
            return self.registry.get_or_create_child(current.id, new_link_id)
        except MissingFacility:
            if not self.settings.create_missing_child_facilities:
                raise
            self.network.link(new_link_id)
            return self.registry.add_child(current.id, new_link_id, name=current.name, coord=current.coord)

    def change_ref_link(self, stop_id: FacilityId | str, new_link_id: str) -> list[TransitRoute]:
        """Swap `stop_id` for its child on `new_link_id` in every route of the schedule."""
        current = self.registry.get(stop_id)
        child = self._child_for(current, new_link_id)
        return self.replace_stop_facility_everywhere(current.id, child.id)

    def change_ref_link_in_route(
        self,
        route: TransitRoute,
        parent_stop_id: FacilityId | str,
        new_link_id: str,
    ) -> TransitRoute:
        """Swap the route's child stop of `parent_stop_id` for the one on `new_link_id`."""
        current = self.registry.find_child_in_route(route, parent_stop_id)
        if current is None:
            raise NotFound(
                f"No child facility for {parent_stop_id} in TransitRoute {route.id}",
                route_id=route.id,
                facility_id=parent_stop_id,
            )
        child = self._child_for(current, new_link_id)
        return self.replace_stop_facility_in_route(route, current.id, child.id)

    def change_ref_link_on_link(
        self,
        link_id: str,
        parent_stop_id: FacilityId | str,
        new_link_id: str,
    ) -> list[TransitRoute]:
        """`change_ref_link_in_route` for every route on `link_id`, committed together."""
        self.network.link(link_id)
        by_current: dict[FacilityId, tuple[StopFacility, list[TransitRoute]]] = {}
        for route in self.routes_on_link(link_id):
            current = self.registry.find_child_in_route(route, parent_stop_id)
            if current is None:
                continue
            by_current.setdefault(current.id, (current, []))[1].append(route)
        if not by_current:
            raise NotFound(
                f"No TransitRoute on link {link_id} serves stop {parent_stop_id}",
                link_id=link_id,
                facility_id=parent_stop_id,
            )

        children = {fid: self._child_for(current, new_link_id) for fid, (current, _) in by_current.items()}
        planned = []
        for fid, (_, routes) in by_current.items():
            for route in routes:
                stops = [
                    s.with_facility(children[fid].id) if s.facility_id == fid else s for s in route.stops
                ]
                planned.append((route, stops, self._plan_refresh(route, stops)))
        for route, stops, link_ids in planned:
            route.stops = stops
            route.link_ids = link_ids
            LOGGER.info("TransitRoute %s: stop %s now referenced to link %s", route.id, parent_stop_id, new_link_id)
        return [route for route, _, _ in planned]

    def _resolve(self, facility: FacilityId | StopFacility | str) -> StopFacility:
        if isinstance(facility, StopFacility):
            facility = facility.id
        return self.registry.get(facility)

    # command dispatch

    def is_comment(self, record: Sequence[str]) -> bool:
        return bool(record) and str(record[0]).strip().startswith(self.settings.comment_prefix)

    def apply_command(self, record: Sequence[str]) -> bool:
        """Execute one command record. Returns False for comments/blank records."""
        cmd = [str(x).strip() for x in record]
        while cmd and cmd[-1] == "":
            cmd.pop()
        if not cmd or self.is_comment(cmd):
            return False

        name, args = cmd[0], cmd[1:]
        if "" in args:
            raise InvalidOperation(f"{name}: empty field in {args}", command=name)
        try:
            self._dispatch(name, args)
        except ScheduleEditError:
            raise
        except ValueError as e:
            raise InvalidOperation(f"{name}: malformed id in {args}: {e}", command=name) from e
        return True

    def _dispatch(self, name: str, args: list[str]) -> None:
        if name == RR_VIA_LINK:
            self._expect(name, args, 4)
            route = self.get_transit_route(args[0], args[1])
            try:
                self.reroute_via_link(route, args[2], args[3])
            except ScheduleEditError as e:
                e.context.setdefault("line_id", args[0])
                e.context.setdefault("route_id", args[1])
                raise
        elif name == CHANGE_REF_LINK:
            self._expect(name, args, 2, 4)
            if len(args) == 2:
                self.change_ref_link(args[0], args[1])
            elif args[0] == ALL_TRANSIT_ROUTES_ON_LINK:
                self.change_ref_link_on_link(args[1], args[2], args[3])
            else:
                self.change_ref_link_in_route(self.get_transit_route(args[0], args[1]), args[2], args[3])
        elif name == REPLACE_STOP_FACILITY:
            self._expect(name, args, 2, 4)
            if len(args) == 2:
                self.replace_stop_facility_everywhere(args[0], args[1])
            elif args[0] == ALL_TRANSIT_ROUTES_ON_LINK:
                self.replace_stop_facility_on_link(args[1], args[2], args[3])
            else:
                self.replace_stop_facility_in_route(self.get_transit_route(args[0], args[1]), args[2], args[3])
        elif name == REFRESH_TRANSIT_ROUTE:
            self._expect(name, args, 2)
            self.refresh_route(self.get_transit_route(args[0], args[1]))
        elif name == REFRESH_SCHEDULE:
            self._expect(name, args, 0)
            self.refresh_schedule()
        else:
            raise InvalidOperation(f'Invalid command "{name}"', command=name)

    @staticmethod
    def _expect(name: str, args: Sequence[str], *counts: int) -> None:
        if len(args) not in counts:
            expected = " or ".join(str(c) for c in counts)
            raise InvalidOperation(
                f"{name} takes {expected} fields, got {len(args)}: {list(args)}",
                command=name,
            )

    def run_commands(self, records: Iterable[Sequence[str]], *, stop_on_error: bool | None = None) -> EditReport:
        """Apply records in order; failures are logged and collected, not raised."""
        stop_on_error = self.settings.stop_on_error if stop_on_error is None else stop_on_error
        report = EditReport()
        for i, record in enumerate(records, start=1):
            try:
                applied = self.apply_command(record)
            except ScheduleEditError as e:
                LOGGER.error("Command %d %s failed: %s", i, list(record), e)
                report.failures.append(CommandFailure(record_no=i, record=tuple(record), error=e))
                if stop_on_error:
                    break
                continue
            if applied:
                report.applied += 1
            else:
                report.skipped += 1
        LOGGER.info(
            "Commands applied: %d, skipped: %d, failed: %d",
            report.applied,
            report.skipped,
            len(report.failures),
        )
        return report
