"""Builders for a small bus network with one detour and one isolated link.

    n0 -A-> n1 -m1-> n2 -B-> n3 -m2-> n4 -C-> n5
             |        ^
            p1        p2
             v        |
             n6 -X-> n7

    n8 -Z-> n9 (unreachable from the rest)
    n1 -T-> n2 (rail only, shorter than m1)

Routes:
    L1/r1: s1@A, s2@B, s3@C  links [A, m1, B, m2, C]
    L2/r2: s2@B, s3@C        links [B, m2, C]
    L3/r3: s3@C              links [C]
"""

from __future__ import annotations

from transit_editor.graph.network import Link, Network, Node
from transit_editor.models.schedule import (
    FacilityId,
    StopFacility,
    TransitLine,
    TransitRoute,
    TransitRouteStop,
    TransitSchedule,
)

BUS = frozenset({"bus"})

LINKS = [
    ("A", "n0", "n1", 1.0, BUS),
    ("m1", "n1", "n2", 1.0, BUS),
    ("B", "n2", "n3", 1.0, BUS),
    ("m2", "n3", "n4", 1.0, BUS),
    ("C", "n4", "n5", 1.0, BUS),
    ("p1", "n1", "n6", 1.0, BUS),
    ("X", "n6", "n7", 1.0, BUS),
    ("p2", "n7", "n2", 1.0, BUS),
    ("Z", "n8", "n9", 1.0, BUS),
    ("T", "n1", "n2", 0.1, frozenset({"rail"})),
]

FACILITIES = [
    ("s1", "First Street", (0.5, 0.0), "A"),
    ("s1.link:A", "First Street", (0.5, 0.0), "A"),
    ("s2", "Market Square", (2.5, 0.0), "B"),
    ("s2.link:X", "Market Square", (1.5, 1.0), "X"),
    ("s3", "Harbour", (4.5, 0.0), "C"),
    ("s3.link:Z", "Harbour", (8.5, 0.0), "Z"),
    ("s4", "Depot", (9.0, 9.0), None),
    ("s5", "Island", (8.5, 0.0), "Z"),
]


def make_network() -> Network:
    nodes = [Node(id=f"n{i}", coord=(float(i), 0.0)) for i in range(10)]
    links = [Link(id=i, from_node=u, to_node=v, length=w, allowed_modes=m) for i, u, v, w, m in LINKS]
    return Network(nodes, links)


def stop(facility_id: str, arrival: float | None = None, departure: float | None = None) -> TransitRouteStop:
    return TransitRouteStop(
        facility_id=FacilityId.parse(facility_id),
        arrival_offset=arrival,
        departure_offset=departure,
    )


def fids(route: TransitRoute) -> list[str]:
    return [str(f) for f in route.facility_ids()]


def make_schedule() -> TransitSchedule:
    schedule = TransitSchedule()
    for fid, name, coord, link in FACILITIES:
        schedule.add_facility(StopFacility(id=FacilityId.parse(fid), name=name, coord=coord, link_id=link))

    l1 = TransitLine(id="L1")
    l1.add_route(
        TransitRoute(
            id="r1",
            transport_mode="bus",
            stops=[stop("s1", None, 0.0), stop("s2", 120.0, 150.0), stop("s3", 300.0, None)],
            link_ids=["A", "m1", "B", "m2", "C"],
        )
    )
    l2 = TransitLine(id="L2")
    l2.add_route(
        TransitRoute(id="r2", transport_mode="bus", stops=[stop("s2"), stop("s3")], link_ids=["B", "m2", "C"])
    )
    l3 = TransitLine(id="L3")
    l3.add_route(TransitRoute(id="r3", transport_mode="bus", stops=[stop("s3")], link_ids=["C"]))
    for line in (l1, l2, l3):
        schedule.add_line(line)
    return schedule


