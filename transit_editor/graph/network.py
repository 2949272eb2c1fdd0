"""Read-only network view (nodes + directed links) backed by a NetworkX MultiDiGraph."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import networkx as nx
import numpy as np
import pandas as pd

from transit_editor.core.config import LIST_SEPARATOR
from transit_editor.core.errors import NotFound
from transit_editor.models.schemas import LINKS, NODES
from transit_editor.models.validate import validate_df

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Node:
    id: str
    coord: tuple[float, float]


@dataclass(frozen=True)
class Link:
    id: str
    from_node: str
    to_node: str
    length: float
    allowed_modes: frozenset[str]


class Network:
    """Nodes and links of the network. The editor only ever queries it."""

    def __init__(self, nodes: Iterable[Node], links: Iterable[Link]) -> None:
        self._nodes: dict[str, Node] = {}
        self._links: dict[str, Link] = {}
        self.graph = nx.MultiDiGraph()

        for n in nodes:
            if n.id in self._nodes:
                raise ValueError(f"duplicate node id {n.id!r}")
            self._nodes[n.id] = n
            self.graph.add_node(n.id, x=n.coord[0], y=n.coord[1])

        for link in links:
            if link.id in self._links:
                raise ValueError(f"duplicate link id {link.id!r}")
            unknown = [x for x in (link.from_node, link.to_node) if x not in self._nodes]
            if unknown:
                raise ValueError(f"link {link.id!r} references unknown node(s) {unknown}")
            self._links[link.id] = link
            self.graph.add_edge(
                link.from_node,
                link.to_node,
                key=link.id,
                length=float(link.length),
                modes=link.allowed_modes,
            )

    @property
    def nodes(self) -> dict[str, Node]:
        return self._nodes

    @property
    def links(self) -> dict[str, Link]:
        return self._links

    def node(self, node_id: str) -> Node:
        try:
            return self._nodes[str(node_id)]
        except KeyError:
            raise NotFound(f"Node {node_id} not found in network", node_id=node_id) from None

    def link(self, link_id: str) -> Link:
        try:
            return self._links[str(link_id)]
        except KeyError:
            raise NotFound(f"Link {link_id} not found in network", link_id=link_id) from None

    def has_link(self, link_id: str) -> bool:
        return str(link_id) in self._links

    def links_from_ids(self, link_ids: Iterable[str]) -> list[Link]:
        return [self.link(i) for i in link_ids]

    def first_gap(self, link_ids: Sequence[str]) -> tuple[str, str] | None:
        """Return the first adjacent pair (a, b) where a does not end at b's start node."""
        links = self.links_from_ids(link_ids)
        for a, b in zip(links[:-1], links[1:]):
            if a.to_node != b.from_node:
                return (a.id, b.id)
        return None

    def is_contiguous(self, link_ids: Sequence[str]) -> bool:
        return self.first_gap(link_ids) is None


def _split_modes(value: object) -> frozenset[str]:
    if value is None or pd.isna(value):
        return frozenset()
    return frozenset(p for p in str(value).split(LIST_SEPARATOR) if p)


def build_network_from_tables(*, nodes: pd.DataFrame, links: pd.DataFrame) -> Network:
    """Build a `Network` from node/link tables.

    Links without a length get the straight-line distance between their end nodes.
    """
    nodes = validate_df(nodes, NODES, unique=("node_id",))
    links = validate_df(links, LINKS, unique=("link_id",))

    node_objs = [
        Node(id=str(r.node_id), coord=(float(r.x), float(r.y)))
        for r in nodes.itertuples(index=False)
    ]
    xy = {n.id: n.coord for n in node_objs}

    bad = sorted(
        set(links.loc[~links["from_node"].isin(set(xy)), "from_node"].astype(str))
        | set(links.loc[~links["to_node"].isin(set(xy)), "to_node"].astype(str))
    )
    if bad:
        raise ValueError(f"links reference unknown node_id(s): {len(bad)} (e.g. {bad[:10]})")

    if "length" in links.columns:
        lengths = links["length"]
    else:
        lengths = pd.Series(pd.NA, index=links.index, dtype="Float64")
    missing_len = lengths.isna()
    if missing_len.any():
        src = np.array([xy[str(u)] for u in links.loc[missing_len, "from_node"]], dtype=float)
        dst = np.array([xy[str(v)] for v in links.loc[missing_len, "to_node"]], dtype=float)
        lengths = lengths.copy()
        lengths.loc[missing_len] = np.hypot(dst[:, 0] - src[:, 0], dst[:, 1] - src[:, 1])
        LOGGER.debug("Derived %d link lengths from node coordinates", int(missing_len.sum()))

    link_objs = [
        Link(
            id=str(r.link_id),
            from_node=str(r.from_node),
            to_node=str(r.to_node),
            length=float(length),
            allowed_modes=_split_modes(r.modes),
        )
        for r, length in zip(links.itertuples(index=False), lengths.to_numpy(), strict=True)
    ]
    network = Network(node_objs, link_objs)
    LOGGER.info(
        "Network built: %d nodes, %d links",
        network.graph.number_of_nodes(),
        network.graph.number_of_edges(),
    )
    return network
