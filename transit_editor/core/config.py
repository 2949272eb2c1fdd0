"""Project configuration (paths, command vocabulary, editor settings)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import yaml
from pydantic import BaseModel

# Child stop facilities encode their governing link: "<parent>.link:<linkId>"
CHILD_FACILITY_SUFFIX: str = ".link:"

# Command file defaults
DEFAULT_DELIMITER: str = ";"
COMMENT_START: str = "//"

# Command vocabulary
RR_VIA_LINK: str = "rerouteViaLink"
CHANGE_REF_LINK: str = "changeRefLink"
REPLACE_STOP_FACILITY: str = "replaceStopFacility"
REFRESH_TRANSIT_ROUTE: str = "refreshTransitRoute"
REFRESH_SCHEDULE: str = "refreshSchedule"
ALL_TRANSIT_ROUTES_ON_LINK: str = "allTransitRoutesOnLink"

# Multi-valued table cells (e.g. allowed link modes) are joined with this
LIST_SEPARATOR: str = ";"


def project_root() -> Path:
    """Return repository root assuming this file lives in `<root>/transit_editor/core/config.py`."""
    return Path(__file__).resolve().parents[2]


@dataclass(frozen=True)
class Paths:
    root: Path
    config: Path
    data_raw: Path
    data_processed: Path

    # Input tables (network + schedule) and edit command files
    raw_network: Path
    raw_schedule: Path
    commands: Path

    # Edited schedule and QA outputs
    processed_schedule: Path
    processed_meta: Path

    transit_editor: Path
    scripts: Path
    tests: Path


def get_paths(root: Path | None = None) -> Paths:
    r = project_root() if root is None else Path(root).resolve()
    data_raw = r / "data" / "raw"
    data_processed = r / "data" / "processed"
    return Paths(
        root=r,
        config=r / "config",
        data_raw=data_raw,
        data_processed=data_processed,
        raw_network=data_raw / "network",
        raw_schedule=data_raw / "schedule",
        commands=r / "data" / "commands",
        processed_schedule=data_processed / "schedule",
        processed_meta=data_processed / "_meta",
        transit_editor=r / "transit_editor",
        scripts=r / "scripts",
        tests=r / "tests",
    )


class EditorSettings(BaseModel):
    """Options controlling command parsing and edit behaviour."""

    delimiter: str = DEFAULT_DELIMITER
    comment_prefix: str = COMMENT_START
    # Refresh appends only the next stop link when no path exists (disconnected geometry)
    lenient_refresh: bool = False
    # Copy name/coordinate from the replaced facility when a child facility is missing
    create_missing_child_facilities: bool = False
    stop_on_error: bool = False


def load_editor_settings(path: Path | None = None) -> EditorSettings:
    """Load editor settings from YAML (`config/editor_config.yaml` by default).

    A missing default file yields default settings; an explicit missing path is an error.
    """
    if path is None:
        path = get_paths().config / "editor_config.yaml"
        if not path.exists():
            return EditorSettings()
    raw = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    return EditorSettings(**raw.get("editor", {}))


def configure_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
