from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from transit_editor.core.config import Paths, get_paths
from transit_editor.graph.network import Network
from transit_editor.io import load_network, load_schedule
from transit_editor.models.schedule import TransitSchedule

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class EditDataset:
    """Network and schedule loaded for an edit run."""

    network: Network
    schedule: TransitSchedule

    # Summary metadata
    summary: dict[str, object]


def load_edit_dataset(
    paths: Paths | None = None,
    *,
    network_dir: Path | None = None,
    schedule_dir: Path | None = None,
) -> EditDataset:
    """Load network + schedule tables (defaults: `data/raw/network`, `data/raw/schedule`)."""
    if paths is None:
        paths = get_paths()
    network_dir = paths.raw_network if network_dir is None else Path(network_dir)
    schedule_dir = paths.raw_schedule if schedule_dir is None else Path(schedule_dir)

    network = load_network(network_dir)
    schedule = load_schedule(schedule_dir)

    n_child = sum(1 for f in schedule.facilities if f.is_child)
    summary: dict[str, object] = {
        "n_nodes": len(network.nodes),
        "n_links": len(network.links),
        "n_lines": len(schedule.lines),
        "n_routes": schedule.n_routes(),
        "n_facilities": len(schedule.facilities),
        "n_child_facilities": n_child,
        "transport_modes": sorted({r.transport_mode for _, r in schedule.iter_routes()}),
    }
    LOGGER.info(
        "Dataset loaded: %d links, %d routes on %d lines, %d stop facilities (%d children)",
        summary["n_links"],
        summary["n_routes"],
        summary["n_lines"],
        summary["n_facilities"],
        n_child,
    )
    return EditDataset(network=network, schedule=schedule, summary=summary)
