"""Stop facility identity: parent/child ids and child facility lookup."""

from __future__ import annotations

import logging

from transit_editor.core.errors import MissingFacility, NotFound
from transit_editor.models.schedule import FacilityId, StopFacility, TransitRoute, TransitSchedule

LOGGER = logging.getLogger(__name__)


def parent_id_of(facility_id: FacilityId | StopFacility | str) -> str:
    """Strip the child part of a facility id (no lookup)."""
    if isinstance(facility_id, StopFacility):
        facility_id = facility_id.id
    return FacilityId.parse(facility_id).parent


def child_id(parent_id: FacilityId | str, link_id: str) -> FacilityId:
    """Id of the child of `parent_id` bound to `link_id`. A child id is reduced to its parent first."""
    return FacilityId(parent=parent_id_of(parent_id), bound_link=str(link_id))


class StopFacilityRegistry:
    """Facility lookups against a schedule's facility table.

    The registry never deletes facilities. New child facilities are only added
    through `add_child`, where the caller supplies name and coordinate.
    """

    def __init__(self, schedule: TransitSchedule) -> None:
        self.schedule = schedule

    @property
    def facilities(self) -> dict[FacilityId, StopFacility]:
        return self.schedule.facilities

    parent_id_of = staticmethod(parent_id_of)
    child_id = staticmethod(child_id)

    def get(self, facility_id: FacilityId | str) -> StopFacility:
        fid = FacilityId.parse(facility_id)
        facility = self.facilities.get(fid)
        if facility is None:
            raise NotFound(f"StopFacility {fid} not found in schedule", facility_id=fid)
        return facility

    def __contains__(self, facility_id: object) -> bool:
        if not isinstance(facility_id, (FacilityId, str)):
            return False
        try:
            return FacilityId.parse(facility_id) in self.facilities
        except ValueError:
            return False

    def get_or_create_child(self, parent_id: FacilityId | str, link_id: str) -> StopFacility:
        """Return the child facility of `parent_id` bound to `link_id`.

        Raises `MissingFacility` if it is not registered; creating one needs a name and
        coordinate, see `add_child`.
        """
        cid = child_id(parent_id, link_id)
        facility = self.facilities.get(cid)
        if facility is None:
            LOGGER.warning("StopFacility %s not found in schedule, child facility is not created", cid)
            raise MissingFacility(
                f"StopFacility {cid} not found in schedule",
                facility_id=cid,
                link_id=link_id,
            )
        return facility

    def add_child(
        self,
        parent_id: FacilityId | str,
        link_id: str,
        *,
        name: str,
        coord: tuple[float, float],
    ) -> StopFacility:
        """Register the child of `parent_id` on `link_id`; an existing child is returned unchanged."""
        cid = child_id(parent_id, link_id)
        existing = self.facilities.get(cid)
        if existing is not None:
            return existing
        facility = StopFacility(id=cid, name=name, coord=coord, link_id=str(link_id))
        self.schedule.add_facility(facility)
        LOGGER.info("Created child stop facility %s", cid)
        return facility

    def children_of(self, parent_id: FacilityId | str) -> list[StopFacility]:
        """All registered facilities of one logical stop, parent (if registered) first."""
        parent = parent_id_of(parent_id)
        out = [f for f in self.facilities.values() if f.id.parent == parent]
        return sorted(out, key=lambda f: (f.id.is_child, f.id.bound_link or ""))

    def governing_link(self, facility_id: FacilityId) -> str | None:
        return self.get(facility_id).link_id

    def find_child_in_route(self, route: TransitRoute, parent_id: FacilityId | str) -> StopFacility | None:
        """First facility (travel order) in `route` that belongs to `parent_id`."""
        parent = parent_id_of(parent_id)
        for stop in route.stops:
            if stop.facility_id.parent == parent:
                return self.get(stop.facility_id)
        LOGGER.warning("No child facility for %s in TransitRoute %s found", parent, route.id)
        return None

