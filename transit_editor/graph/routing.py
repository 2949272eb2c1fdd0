"""Least-cost path search over the network, one router per set of network modes."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Protocol

import networkx as nx

from transit_editor.graph.network import Network
from transit_editor.models.schedule import TransitSchedule

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Path:
    """A node-to-node path. `link_ids` excludes any link at either end."""

    node_ids: tuple[str, ...]
    link_ids: tuple[str, ...]
    cost: float


class Router(Protocol):
    def least_cost_path(self, from_node: str, to_node: str) -> Path | None: ...


class ModeDependentRouter:
    """Dijkstra on the sub-network of links allowing at least one of `modes`.

    Parallel links between the same pair of nodes collapse to the shortest one
    (ties broken by link id) so that paths are deterministic.
    """

    def __init__(self, network: Network, modes: Iterable[str]) -> None:
        self.modes = frozenset(modes)
        self.graph = nx.DiGraph()
        self.graph.add_nodes_from(network.graph.nodes)

        for link in sorted(network.links.values(), key=lambda x: x.id):
            if not (link.allowed_modes & self.modes):
                continue
            u, v = link.from_node, link.to_node
            current = self.graph.get_edge_data(u, v)
            if current is not None and (current["length"], current["link_id"]) <= (link.length, link.id):
                continue
            self.graph.add_edge(u, v, length=float(link.length), link_id=link.id)

        LOGGER.debug(
            "Router for modes %s: %d routable links",
            sorted(self.modes),
            self.graph.number_of_edges(),
        )

    def least_cost_path(self, from_node: str, to_node: str) -> Path | None:
        if from_node == to_node:
            return Path(node_ids=(from_node,), link_ids=(), cost=0.0)
        try:
            cost, nodes = nx.single_source_dijkstra(
                self.graph, from_node, target=to_node, weight="length"
            )
        except (nx.NetworkXNoPath, nx.NodeNotFound):
            return None
        link_ids = tuple(self.graph[u][v]["link_id"] for u, v in zip(nodes[:-1], nodes[1:]))
        return Path(node_ids=tuple(nodes), link_ids=link_ids, cost=float(cost))


def infer_mode_assignments(schedule: TransitSchedule, network: Network) -> dict[str, frozenset[str]]:
    """Map each schedule transport mode to the network modes its routes actually use.

    Modes whose routes use no known links fall back to the transport mode itself.
    """
    used: dict[str, set[str]] = {}
    unknown = 0
    for _, route in schedule.iter_routes():
        modes = used.setdefault(route.transport_mode, set())
        for link_id in route.link_ids:
            if not network.has_link(link_id):
                unknown += 1
                continue
            modes |= network.link(link_id).allowed_modes
    if unknown:
        LOGGER.warning("%d route link references are not in the network (ignored for mode inference)", unknown)
    return {mode: frozenset(m) if m else frozenset({mode}) for mode, m in used.items()}


def infer_routers(schedule: TransitSchedule, network: Network) -> dict[str, Router]:
    """Build one router per distinct network-mode set and assign it to transport modes."""
    LOGGER.info("Inferring routers based on schedule transport modes and used network transport modes.")
    assignments = infer_mode_assignments(schedule, network)
    by_modes: dict[frozenset[str], ModeDependentRouter] = {}
    for network_modes in assignments.values():
        if network_modes not in by_modes:
            by_modes[network_modes] = ModeDependentRouter(network, network_modes)
    return {mode: by_modes[m] for mode, m in assignments.items()}


def routers_for_modes(network: Network, modes: Mapping[str, Iterable[str]]) -> dict[str, Router]:
    """Explicit assignment: transport mode -> allowed network modes."""
    by_modes: dict[frozenset[str], ModeDependentRouter] = {}
    out: dict[str, Router] = {}
    for mode, network_modes in modes.items():
        key = frozenset(network_modes)
        if key not in by_modes:
            by_modes[key] = ModeDependentRouter(network, key)
        out[mode] = by_modes[key]
    return out
