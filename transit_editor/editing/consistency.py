"""Route consistency QA: contiguity and stop coverage of every route's link sequence."""

from __future__ import annotations

import pandas as pd

from transit_editor.graph.network import Network
from transit_editor.models.schedule import TransitRoute, TransitSchedule
from transit_editor.models.schemas import ROUTE_CONSISTENCY
from transit_editor.models.validate import validate_df


def first_unserved_stop(route: TransitRoute, schedule: TransitSchedule) -> str | None:
    """First stop (travel order) whose governing link is not passed after the previous stop's."""
    start = 0
    for stop in route.stops:
        facility = schedule.facilities.get(stop.facility_id)
        if facility is None or facility.link_id is None:
            return str(stop.facility_id)
        try:
            start = route.link_ids.index(facility.link_id, start)
        except ValueError:
            return str(stop.facility_id)
    return None


def first_gap(route: TransitRoute, network: Network) -> str | None:
    unknown = [i for i in route.link_ids if not network.has_link(i)]
    if unknown:
        return f"unknown link {unknown[0]}"
    gap = network.first_gap(route.link_ids)
    return None if gap is None else f"{gap[0]}->{gap[1]}"


def route_consistency_table(schedule: TransitSchedule, network: Network) -> pd.DataFrame:
    """One row per route with contiguity and stop-coverage flags."""
    rows: list[dict[str, object]] = []
    for line, route in schedule.iter_routes():
        gap = first_gap(route, network)
        unserved = first_unserved_stop(route, schedule)
        rows.append(
            {
                "line_id": line.id,
                "route_id": route.id,
                "n_stops": len(route.stops),
                "n_links": len(route.link_ids),
                "is_contiguous": gap is None,
                "serves_stops": unserved is None,
                "first_gap": gap,
                "first_unserved_stop": unserved,
            }
        )
    df = pd.DataFrame(rows, columns=ROUTE_CONSISTENCY.ordered_columns())
    df = validate_df(df, ROUTE_CONSISTENCY)
    return df.sort_values(["line_id", "route_id"], kind="mergesort").reset_index(drop=True)
