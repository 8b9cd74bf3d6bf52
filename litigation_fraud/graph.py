"""Witness -> claimant relationship graph and cycle search."""
from __future__ import annotations

from dataclasses import dataclass, field

import networkx as nx

from litigation_fraud.ingest import WITNESS_COLUMNS, case_witnesses, normalize_name


@dataclass
class SearchState:
    """Traversal state for a single cycle search run."""

    visited: set[str] = field(default_factory=set)
    on_stack: set[str] = field(default_factory=set)
    path: list[str] = field(default_factory=list)

    def enter(self, name: str) -> None:
        self.visited.add(name)
        self.on_stack.add(name)
        self.path.append(name)

    def leave(self, name: str) -> None:
        # Stays in visited: each node is expanded at most once per search
        self.on_stack.discard(name)
        self.path.pop()


def build_relationship_graph(cases: list[dict]) -> nx.DiGraph:
    """Build the directed "testified for" graph for a case list.

    Nodes are canonical names, added on first reference in case-list order.
    An edge witness -> claimant carries the ids of every case realizing it in
    its "case_ids" attribute. Cases without an id, and later records reusing
    an id already seen, contribute nothing.
    """
    G = nx.DiGraph()
    seen_ids: set[str] = set()

    for case in cases:
        case_id = case.get("case_id")
        if not case_id or case_id in seen_ids:
            continue
        seen_ids.add(case_id)

        claimant = normalize_name(case.get("claimant"))
        if claimant:
            G.add_node(claimant)

        for witness in case_witnesses(case):
            G.add_node(witness)
            if not claimant or witness == claimant:
                continue
            if G.has_edge(witness, claimant):
                G[witness][claimant]["case_ids"].append(case_id)
            else:
                G.add_edge(witness, claimant, case_ids=[case_id])

    return G


def build_display_names(cases: list[dict]) -> dict[str, str]:
    """Map each canonical name to the first display form seen in the cases.

    The display form keeps the original casing with whitespace collapsed.
    """
    display: dict[str, str] = {}

    def remember(raw) -> None:
        key = normalize_name(raw)
        if key and key not in display:
            display[key] = " ".join(str(raw).split())

    for case in cases:
        remember(case.get("claimant"))
        for col in WITNESS_COLUMNS:
            for raw in case.get(col) or []:
                remember(raw)

    return display


def find_cycles(G: nx.DiGraph) -> list[list[str]]:
    """Find closed witness -> claimant cycles with at least three people.

    Depth-first search seeded from every node not yet visited, in node order.
    Reaching a claimant that is on the current path closes a cycle; each
    node is expanded at most once across the whole search, so this returns
    at least one representative cycle per strongly connected region rather
    than every simple cycle. Each edge is examined once, so no cycle is
    reported twice.

    Returns:
        Raw cycles as lists of canonical names whose last element repeats
        the first.
    """
    state = SearchState()
    cycles: list[list[str]] = []

    for u, v, label in nx.dfs_labeled_edges(G):
        if label == "forward":
            state.enter(v)
        elif label == "reverse":
            state.leave(v)
        elif label == "nontree" and v in state.on_stack:
            begin = state.path.index(v)
            cycle = state.path[begin:] + [v]
            # three distinct people plus the closing repeat
            if len(cycle) >= 4:
                cycles.append(cycle)

    return cycles
