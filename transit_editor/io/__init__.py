"""Lightweight I/O helpers.

This module centralises:
- validated CSV reads (`read_csv_validated`) at the table boundaries
- network and schedule table readers/writers (one CSV per table in a directory)
- the edit command file reader
"""

from __future__ import annotations

import csv
import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pandas as pd

from transit_editor.core.config import DEFAULT_DELIMITER
from transit_editor.graph.network import Network, build_network_from_tables
from transit_editor.models.schedule import (
    FacilityId,
    StopFacility,
    TransitLine,
    TransitRoute,
    TransitRouteStop,
    TransitSchedule,
)
from transit_editor.models.schemas import (
    LINKS,
    NODES,
    ROUTE_LINKS,
    ROUTE_STOPS,
    STOP_FACILITIES,
)
from transit_editor.models.validate import validate_df

LOGGER = logging.getLogger(__name__)

NODES_FILE = "nodes.csv"
LINKS_FILE = "links.csv"
STOP_FACILITIES_FILE = "stop_facilities.csv"
ROUTE_STOPS_FILE = "route_stops.csv"
ROUTE_LINKS_FILE = "route_links.csv"


def ensure_parent_dir(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def read_csv_validated(
    path: Path,
    *,
    dtype: dict[str, str],
    schema: Any,
    unique: tuple[str, ...] = (),
) -> pd.DataFrame:
    """Read a CSV and validate it against a schema-like object.

    We validate by *shape* (required attributes) rather than strict class identity.
    """
    required_attrs = ("name", "required_columns", "optional_columns", "dtypes", "non_null")
    missing = [a for a in required_attrs if not hasattr(schema, a)]
    if missing:
        raise TypeError(f"schema missing required attributes {missing}; got {type(schema)}")

    df = pd.read_csv(path, dtype=dtype, keep_default_na=False, na_values=[""])
    return validate_df(df, schema, unique=unique)


def write_csv(df: pd.DataFrame, path: Path) -> None:
    ensure_parent_dir(path)
    df.to_csv(path, index=False)


def read_command_file(
    path: Path,
    *,
    delimiter: str = DEFAULT_DELIMITER,
) -> Iterator[list[str]]:
    """Yield command records (lists of fields) from a delimiter-separated file.

    Blank lines are dropped here; comment records are left for the editor to skip.
    """
    with Path(path).open(encoding="utf-8", newline="") as f:
        for row in csv.reader(f, delimiter=delimiter):
            if not any(field.strip() for field in row):
                continue
            yield row


def load_network(directory: Path) -> Network:
    """Load `nodes.csv` + `links.csv` from `directory`."""
    directory = Path(directory)
    LOGGER.info("Loading network tables from %s", directory)
    nodes = read_csv_validated(
        directory / NODES_FILE, dtype={"node_id": "string"}, schema=NODES, unique=("node_id",)
    )
    links = read_csv_validated(
        directory / LINKS_FILE,
        dtype={"link_id": "string", "from_node": "string", "to_node": "string", "modes": "string"},
        schema=LINKS,
        unique=("link_id",),
    )
    return build_network_from_tables(nodes=nodes, links=links)


def _opt_float(v: Any) -> float | None:
    return None if pd.isna(v) else float(v)


def _opt_str(v: Any) -> str | None:
    return None if pd.isna(v) or str(v) == "" else str(v)


def schedule_from_tables(
    *,
    facilities: pd.DataFrame,
    route_stops: pd.DataFrame,
    route_links: pd.DataFrame,
) -> TransitSchedule:
    """Assemble a `TransitSchedule` from its three tables.

    Stops and links are ordered by `stop_index` / `link_index` within each route.
    """
    facilities = validate_df(facilities, STOP_FACILITIES, unique=("facility_id",))
    route_stops = validate_df(route_stops, ROUTE_STOPS, unique=("line_id", "route_id", "stop_index"))
    route_links = validate_df(route_links, ROUTE_LINKS, unique=("line_id", "route_id", "link_index"))

    schedule = TransitSchedule()
    for r in facilities.itertuples(index=False):
        fid = FacilityId.parse(str(r.facility_id))
        name = _opt_str(getattr(r, "name", None)) or str(fid)
        schedule.add_facility(
            StopFacility(
                id=fid,
                name=name,
                coord=(float(r.x), float(r.y)),
                link_id=_opt_str(getattr(r, "link_id", None)),
            )
        )

    unknown = sorted(
        set(route_stops["facility_id"].astype(str)) - {str(f) for f in schedule.facilities}
    )
    if unknown:
        raise ValueError(f"route_stops reference unknown facility_id(s): {len(unknown)} (e.g. {unknown[:10]})")

    links_by_route: dict[tuple[str, str], list[str]] = {}
    for (line_id, route_id), grp in route_links.sort_values(["link_index"], kind="mergesort").groupby(
        ["line_id", "route_id"], sort=True
    ):
        links_by_route[(str(line_id), str(route_id))] = grp["link_id"].astype(str).tolist()

    ordered = route_stops.sort_values(["stop_index"], kind="mergesort")
    for (line_id, route_id), grp in ordered.groupby(["line_id", "route_id"], sort=True):
        modes = sorted(set(grp["transport_mode"].astype(str)))
        if len(modes) != 1:
            raise ValueError(f"route {line_id}/{route_id} has several transport modes: {modes}")
        line = schedule.lines.get(str(line_id))
        if line is None:
            line = TransitLine(id=str(line_id))
            schedule.add_line(line)
        stops = [
            TransitRouteStop(
                facility_id=FacilityId.parse(str(s.facility_id)),
                arrival_offset=_opt_float(getattr(s, "arrival_offset", None)),
                departure_offset=_opt_float(getattr(s, "departure_offset", None)),
            )
            for s in grp.itertuples(index=False)
        ]
        line.add_route(
            TransitRoute(
                id=str(route_id),
                transport_mode=modes[0],
                stops=stops,
                link_ids=links_by_route.get((str(line_id), str(route_id)), []),
            )
        )

    LOGGER.info(
        "Schedule loaded: %d lines, %d routes, %d stop facilities",
        len(schedule.lines),
        schedule.n_routes(),
        len(schedule.facilities),
    )
    return schedule


def load_schedule(directory: Path) -> TransitSchedule:
    """Load `stop_facilities.csv`, `route_stops.csv` and `route_links.csv` from `directory`."""
    directory = Path(directory)
    LOGGER.info("Loading schedule tables from %s", directory)
    facilities = read_csv_validated(
        directory / STOP_FACILITIES_FILE,
        dtype={"facility_id": "string", "name": "string", "link_id": "string"},
        schema=STOP_FACILITIES,
    )
    route_stops = read_csv_validated(
        directory / ROUTE_STOPS_FILE,
        dtype={"line_id": "string", "route_id": "string", "transport_mode": "string", "facility_id": "string"},
        schema=ROUTE_STOPS,
    )
    route_links = read_csv_validated(
        directory / ROUTE_LINKS_FILE,
        dtype={"line_id": "string", "route_id": "string", "link_id": "string"},
        schema=ROUTE_LINKS,
    )
    return schedule_from_tables(facilities=facilities, route_stops=route_stops, route_links=route_links)


def schedule_to_tables(schedule: TransitSchedule) -> dict[str, pd.DataFrame]:
    """Inverse of `schedule_from_tables` (deterministic row order)."""
    fac_rows = [
        {
            "facility_id": str(f.id),
            "x": f.coord[0],
            "y": f.coord[1],
            "name": f.name,
            "link_id": f.link_id,
        }
        for f in sorted(schedule.facilities.values(), key=lambda f: str(f.id))
    ]
    stop_rows: list[dict[str, Any]] = []
    link_rows: list[dict[str, Any]] = []
    for line, route in schedule.iter_routes():
        for i, s in enumerate(route.stops):
            stop_rows.append(
                {
                    "line_id": line.id,
                    "route_id": route.id,
                    "transport_mode": route.transport_mode,
                    "stop_index": i,
                    "facility_id": str(s.facility_id),
                    "arrival_offset": s.arrival_offset,
                    "departure_offset": s.departure_offset,
                }
            )
        for i, link_id in enumerate(route.link_ids):
            link_rows.append({"line_id": line.id, "route_id": route.id, "link_index": i, "link_id": link_id})

    return {
        STOP_FACILITIES_FILE: validate_df(
            pd.DataFrame(fac_rows, columns=STOP_FACILITIES.ordered_columns()), STOP_FACILITIES
        ),
        ROUTE_STOPS_FILE: validate_df(
            pd.DataFrame(stop_rows, columns=ROUTE_STOPS.ordered_columns()), ROUTE_STOPS
        ),
        ROUTE_LINKS_FILE: validate_df(
            pd.DataFrame(link_rows, columns=ROUTE_LINKS.ordered_columns()), ROUTE_LINKS
        ),
    }


def write_schedule(schedule: TransitSchedule, directory: Path) -> list[Path]:
    """Write the schedule tables to `directory`; returns the written paths."""
    out: list[Path] = []
    for filename, df in schedule_to_tables(schedule).items():
        path = Path(directory) / filename
        write_csv(df, path)
        out.append(path)
    return out
