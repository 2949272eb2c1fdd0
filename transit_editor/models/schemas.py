"""Schema definitions for network and schedule table contracts.

This module contains only:
- `TableSchema` (schema metadata container)
- concrete table schemas (`NODES`, `LINKS`, `STOP_FACILITIES`, ...)
"""

from __future__ import annotations

from collections.abc import Mapping

from pydantic import BaseModel, Field


class TableSchema(BaseModel):
    """A simple schema for a pandas DataFrame (column-level contract)."""

    name: str
    required_columns: tuple[str, ...] = Field(default_factory=tuple)
    optional_columns: tuple[str, ...] = Field(default_factory=tuple)
    # pandas dtype strings, e.g. "string", "Float64", "Int64"
    dtypes: Mapping[str, str] = Field(default_factory=dict)
    non_null: tuple[str, ...] = Field(default_factory=tuple)

    def allowed_columns(self) -> set[str]:
        return set(self.required_columns) | set(self.optional_columns)

    def ordered_columns(self) -> list[str]:
        return [*self.required_columns, *self.optional_columns]


NODES = TableSchema(
    name="nodes",
    required_columns=("node_id", "x", "y"),
    dtypes={
        "node_id": "string",
        "x": "Float64",
        "y": "Float64",
    },
    non_null=("node_id", "x", "y"),
)

LINKS = TableSchema(
    name="links",
    required_columns=("link_id", "from_node", "to_node", "modes"),
    optional_columns=("length",),
    dtypes={
        "link_id": "string",
        "from_node": "string",
        "to_node": "string",
        "modes": "string",
        "length": "Float64",
    },
    non_null=("link_id", "from_node", "to_node"),
)

STOP_FACILITIES = TableSchema(
    name="stop_facilities",
    required_columns=("facility_id", "x", "y"),
    optional_columns=("name", "link_id"),
    dtypes={
        "facility_id": "string",
        "name": "string",
        "x": "Float64",
        "y": "Float64",
        "link_id": "string",
    },
    non_null=("facility_id", "x", "y"),
)

ROUTE_STOPS = TableSchema(
    name="route_stops",
    required_columns=("line_id", "route_id", "transport_mode", "stop_index", "facility_id"),
    optional_columns=("arrival_offset", "departure_offset"),
    dtypes={
        "line_id": "string",
        "route_id": "string",
        "transport_mode": "string",
        "stop_index": "Int64",
        "facility_id": "string",
        "arrival_offset": "Float64",
        "departure_offset": "Float64",
    },
    non_null=("line_id", "route_id", "transport_mode", "stop_index", "facility_id"),
)

ROUTE_LINKS = TableSchema(
    name="route_links",
    required_columns=("line_id", "route_id", "link_index", "link_id"),
    dtypes={
        "line_id": "string",
        "route_id": "string",
        "link_index": "Int64",
        "link_id": "string",
    },
    non_null=("line_id", "route_id", "link_index", "link_id"),
)

ROUTE_CONSISTENCY = TableSchema(
    name="route_consistency",
    required_columns=("line_id", "route_id", "n_stops", "n_links", "is_contiguous", "serves_stops"),
    optional_columns=("first_gap", "first_unserved_stop"),
    dtypes={
        "line_id": "string",
        "route_id": "string",
        "n_stops": "Int64",
        "n_links": "Int64",
        "is_contiguous": "boolean",
        "serves_stops": "boolean",
        "first_gap": "string",
        "first_unserved_stop": "string",
    },
    non_null=("line_id", "route_id"),
)
