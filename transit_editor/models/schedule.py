"""Transit schedule data model.

Routes reference stop facilities by id; the facilities themselves live in the
schedule-wide table (`TransitSchedule.facilities`) and are resolved at use time.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field, replace

from transit_editor.core.config import CHILD_FACILITY_SUFFIX


@dataclass(frozen=True)
class FacilityId:
    """Two-tier stop facility identity.

    A parent id names a logical stop (`bound_link is None`); a child id names the
    same stop bound to one specific link. The text form of a child id is
    `"<parent>.link:<linkId>"`.
    """

    parent: str
    bound_link: str | None = None

    def __post_init__(self) -> None:
        if not self.parent:
            raise ValueError("FacilityId.parent must be a non-empty string")
        if CHILD_FACILITY_SUFFIX in self.parent:
            raise ValueError(f"FacilityId.parent must not contain {CHILD_FACILITY_SUFFIX!r}: {self.parent!r}")
        if self.bound_link == "":
            raise ValueError("FacilityId.bound_link must be None or a non-empty link id")

    @classmethod
    def parse(cls, value: str | FacilityId) -> FacilityId:
        """Parse the text form; the first separator occurrence splits parent from link."""
        if isinstance(value, FacilityId):
            return value
        s = str(value)
        parent, sep, link = s.partition(CHILD_FACILITY_SUFFIX)
        if not sep:
            return cls(parent=s)
        return cls(parent=parent, bound_link=link or None)

    @property
    def is_child(self) -> bool:
        return self.bound_link is not None

    def parent_id(self) -> FacilityId:
        return FacilityId(self.parent)

    def __str__(self) -> str:
        if self.bound_link is None:
            return self.parent
        return f"{self.parent}{CHILD_FACILITY_SUFFIX}{self.bound_link}"


@dataclass(frozen=True)
class StopFacility:
    id: FacilityId
    name: str
    coord: tuple[float, float]
    link_id: str | None = None  # governing link

    def __post_init__(self) -> None:
        if self.id.is_child and self.link_id != self.id.bound_link:
            raise ValueError(
                f"child facility {self.id} must be governed by link {self.id.bound_link!r}, "
                f"got {self.link_id!r}"
            )


@dataclass(frozen=True)
class TransitRouteStop:
    facility_id: FacilityId
    arrival_offset: float | None = None  # seconds after route departure
    departure_offset: float | None = None

    def with_facility(self, facility_id: FacilityId) -> TransitRouteStop:
        return replace(self, facility_id=facility_id)


@dataclass
class TransitRoute:
    id: str
    transport_mode: str
    stops: list[TransitRouteStop] = field(default_factory=list)
    link_ids: list[str] = field(default_factory=list)

    def facility_ids(self) -> list[FacilityId]:
        return [s.facility_id for s in self.stops]

    def references(self, facility_id: FacilityId) -> bool:
        return any(s.facility_id == facility_id for s in self.stops)

    def stop_index(self, stop: TransitRouteStop) -> int:
        """Position of `stop` in the stop sequence (identity first, then equality)."""
        for i, s in enumerate(self.stops):
            if s is stop:
                return i
        try:
            return self.stops.index(stop)
        except ValueError:
            raise ValueError(f"stop {stop.facility_id} is not part of route {self.id}") from None


@dataclass
class TransitLine:
    id: str
    routes: dict[str, TransitRoute] = field(default_factory=dict)

    def add_route(self, route: TransitRoute) -> None:
        if route.id in self.routes:
            raise ValueError(f"TransitLine {self.id} already has a route with id {route.id}")
        self.routes[route.id] = route


@dataclass
class TransitSchedule:
    lines: dict[str, TransitLine] = field(default_factory=dict)
    facilities: dict[FacilityId, StopFacility] = field(default_factory=dict)

    def add_line(self, line: TransitLine) -> None:
        if line.id in self.lines:
            raise ValueError(f"schedule already has a line with id {line.id}")
        self.lines[line.id] = line

    def add_facility(self, facility: StopFacility) -> None:
        if facility.id in self.facilities:
            raise ValueError(f"schedule already has a stop facility with id {facility.id}")
        self.facilities[facility.id] = facility

    def iter_routes(self) -> Iterator[tuple[TransitLine, TransitRoute]]:
        for line in self.lines.values():
            for route in line.routes.values():
                yield line, route

    def n_routes(self) -> int:
        return sum(len(line.routes) for line in self.lines.values())
