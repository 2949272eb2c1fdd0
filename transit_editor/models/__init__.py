"""Schedule data model and dataframe schema validators.

The model classes are plain dataclasses; table schemas are the contracts for
the CSV representation read and written by `transit_editor.io`.
"""

from __future__ import annotations

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
    ROUTE_CONSISTENCY,
    ROUTE_LINKS,
    ROUTE_STOPS,
    STOP_FACILITIES,
    TableSchema,
)
from transit_editor.models.validate import validate_df

__all__ = [
    "FacilityId",
    "StopFacility",
    "TransitRouteStop",
    "TransitRoute",
    "TransitLine",
    "TransitSchedule",
    "TableSchema",
    "validate_df",
    "NODES",
    "LINKS",
    "STOP_FACILITIES",
    "ROUTE_STOPS",
    "ROUTE_LINKS",
    "ROUTE_CONSISTENCY",
]
