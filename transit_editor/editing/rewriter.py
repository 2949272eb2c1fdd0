"""Route geometry rewriting: segment splicing and full refresh from the stop sequence.

A route's link sequence must be a contiguous path that passes each stop's
governing link in travel order. The functions here compute new link sequences
and only assign them to the route once the whole sequence is known, so a
failed edit never leaves a partially rewritten route behind.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

from transit_editor.core.errors import (
    InvalidOperation,
    NotFound,
    OutOfRange,
    RouteUnreachable,
    ScheduleEditError,
    UnboundStop,
)
from transit_editor.editing.registry import StopFacilityRegistry
from transit_editor.graph.network import Network
from transit_editor.graph.routing import Router
from transit_editor.models.schedule import TransitRoute, TransitRouteStop, TransitSchedule

LOGGER = logging.getLogger(__name__)


class RouteRewriter:
    def __init__(
        self,
        network: Network,
        routers: Mapping[str, Router],
        registry: StopFacilityRegistry,
        *,
        lenient_refresh: bool = False,
    ) -> None:
        self.network = network
        self.routers = routers
        self.registry = registry
        self.lenient_refresh = lenient_refresh

    def router_for(self, route: TransitRoute) -> Router:
        router = self.routers.get(route.transport_mode)
        if router is None:
            raise NotFound(
                f"No router for transport mode {route.transport_mode!r}",
                route_id=route.id,
                mode=route.transport_mode,
            )
        return router

    def _bound_link(self, route: TransitRoute, stop: TransitRouteStop) -> str:
        link_id = self.registry.governing_link(stop.facility_id)
        if link_id is None:
            facility = self.registry.get(stop.facility_id)
            raise UnboundStop(
                f"stop facility {facility.name} ({facility.id}) is not referenced to a link",
                route_id=route.id,
                facility_id=facility.id,
            )
        return link_id

    def reference_links(self, route: TransitRoute) -> list[str | None]:
        """Governing link per stop, in stop order (None for unbound stops)."""
        return [self.registry.governing_link(s.facility_id) for s in route.stops]

    def stop_positions(self, route: TransitRoute, *, upto: int | None = None) -> list[int]:
        """Index in `route.link_ids` where each stop's governing link is passed.

        Consecutive stops on the same link share one position.
        """
        stops = route.stops if upto is None else route.stops[:upto]
        positions: list[int] = []
        start = 0
        for stop in stops:
            link_id = self._bound_link(route, stop)
            try:
                pos = route.link_ids.index(link_id, start)
            except ValueError:
                raise InvalidOperation(
                    f"route does not pass link {link_id} of stop {stop.facility_id} in travel order",
                    route_id=route.id,
                    facility_id=stop.facility_id,
                    link_id=link_id,
                ) from None
            positions.append(pos)
            start = pos
        return positions

    def reroute_via_link(self, route: TransitRoute, old_link_id: str, new_link_id: str) -> bool:
        """Reroute the section between two stops that passes `old_link_id` via `new_link_id`.

        Returns False (and leaves the route untouched) if the route does not use `old_link_id`.
        """
        self.network.link(new_link_id)
        ref_links = self.reference_links(route)
        if old_link_id in ref_links:
            raise InvalidOperation(
                "Link is referenced to a stop facility, rerouteViaLink cannot be performed. "
                "Use changeRefLink instead.",
                route_id=route.id,
                link_id=old_link_id,
            )

        next_stop = 0
        last_passed: int | None = None
        for link_id in route.link_ids:
            if link_id == old_link_id:
                if last_passed is None:
                    raise InvalidOperation(
                        "Link lies before the first stop of the route, no segment to reroute",
                        route_id=route.id,
                        link_id=old_link_id,
                    )
                self.rebuild_segment(route, last_passed, new_link_id)
                return True
            while next_stop < len(ref_links) and link_id == ref_links[next_stop]:
                last_passed = next_stop
                next_stop += 1

        LOGGER.info("Link %s not used by TransitRoute %s, nothing to reroute", old_link_id, route.id)
        return False

    def plan_segment(
        self,
        route: TransitRoute,
        from_stop: TransitRouteStop | int,
        via_link_id: str,
    ) -> list[str]:
        """New link sequence with the segment after `from_stop` routed through `via_link_id`."""
        idx = from_stop if isinstance(from_stop, int) else route.stop_index(from_stop)
        if idx < 0 or idx >= len(route.stops):
            raise OutOfRange(f"stop index {idx} outside route", route_id=route.id)
        if idx == len(route.stops) - 1:
            raise OutOfRange(
                "last stop of the route has no following segment",
                route_id=route.id,
                facility_id=route.stops[idx].facility_id,
            )

        cut_from = self.network.link(self._bound_link(route, route.stops[idx]))
        cut_to = self.network.link(self._bound_link(route, route.stops[idx + 1]))
        via = self.network.link(via_link_id)

        positions = self.stop_positions(route, upto=idx + 2)
        before = route.link_ids[: positions[idx] + 1]
        after = route.link_ids[positions[idx + 1] :]

        router = self.router_for(route)
        path1 = router.least_cost_path(cut_from.to_node, via.from_node)
        path2 = router.least_cost_path(via.to_node, cut_to.from_node)
        if path1 is None or path2 is None:
            missing = (cut_from.id, via.id) if path1 is None else (via.id, cut_to.id)
            raise RouteUnreachable(
                f"no path from link {missing[0]} to link {missing[1]}",
                route_id=route.id,
                link_id=via.id,
            )

        return [*before, *path1.link_ids, via.id, *path2.link_ids, *after]

    def rebuild_segment(
        self,
        route: TransitRoute,
        from_stop: TransitRouteStop | int,
        via_link_id: str,
    ) -> list[str]:
        """Reroute the section after `from_stop` via `via_link_id` (in place)."""
        new_links = self.plan_segment(route, from_stop, via_link_id)
        route.link_ids = new_links
        LOGGER.info("TransitRoute %s rerouted via link %s", route.id, via_link_id)
        return new_links

    def plan_refresh(
        self,
        route: TransitRoute,
        stops: Sequence[TransitRouteStop] | None = None,
        *,
        lenient: bool | None = None,
    ) -> list[str]:
        """Link sequence routed between the governing links of `stops` (default: the route's stops)."""
        stops = route.stops if stops is None else stops
        lenient = self.lenient_refresh if lenient is None else lenient
        if not stops:
            raise InvalidOperation("route has no stops", route_id=route.id)

        first = self._bound_link(route, stops[0])
        self.network.link(first)
        link_ids = [first]
        router: Router | None = None

        for current_stop, next_stop in zip(stops[:-1], stops[1:]):
            current_id = self._bound_link(route, current_stop)
            next_id = self._bound_link(route, next_stop)
            if next_id == current_id:
                continue
            current = self.network.link(current_id)
            nxt = self.network.link(next_id)

            router = router or self.router_for(route)
            path = router.least_cost_path(current.to_node, nxt.from_node)
            if path is None:
                if not lenient:
                    raise RouteUnreachable(
                        f"no path from link {current.id} to link {nxt.id}",
                        route_id=route.id,
                        facility_id=next_stop.facility_id,
                        link_id=nxt.id,
                    )
                LOGGER.warning(
                    "TransitRoute %s: no path from link %s to link %s, link sequence will be disconnected",
                    route.id,
                    current.id,
                    nxt.id,
                )
            else:
                link_ids.extend(path.link_ids)
            link_ids.append(nxt.id)

        return link_ids

    def refresh_route(self, route: TransitRoute, *, lenient: bool | None = None) -> list[str]:
        """Route between all referenced links of the stop facilities (in place)."""
        new_links = self.plan_refresh(route, lenient=lenient)
        route.link_ids = new_links
        LOGGER.debug("TransitRoute %s refreshed (%d links)", route.id, len(new_links))
        return new_links

    def refresh_schedule(self, schedule: TransitSchedule, *, lenient: bool | None = None) -> int:
        """Refresh every route; nothing is assigned unless all routes can be refreshed."""
        planned = []
        for line, route in schedule.iter_routes():
            try:
                planned.append((route, self.plan_refresh(route, lenient=lenient)))
            except ScheduleEditError as e:
                e.context.setdefault("line_id", line.id)
                raise
        for route, new_links in planned:
            route.link_ids = new_links
        LOGGER.info("Refreshed %d transit routes", len(planned))
        return len(planned)
