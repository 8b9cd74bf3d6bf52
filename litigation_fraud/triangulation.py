"""Triangulation detection: testimony cycles A -> B -> C -> A.

Each accepted cycle is a ring of people where every member testified in a case
brought by the next one. Cycles are scored 0-100 and the findings are written
back onto the case and witness records.
"""
from __future__ import annotations

from typing import Optional

import networkx as nx

from litigation_fraud.graph import (
    build_display_names,
    build_relationship_graph,
    find_cycles,
)
from litigation_fraud.ingest import case_lawyers, index_cases, normalize_name


# Cycles scoring below this are discarded as noise
MIN_CONFIDENCE = 30

ARROW = " → "


def score_confidence(size: int, case_count: int, lawyer_count: int, court_count: int) -> int:
    """Heuristic 0-100 suspicion score for a detected cycle.

    Rings of three or four people score highest; very large rings are more
    likely coincidental. More supporting cases and more claimant-side lawyers
    raise the score, while spreading over more than two courts lowers it.
    """
    score = 30

    if size == 3:
        score += 20
    elif size == 4:
        score += 25
    else:
        score += 15

    score += min(case_count * 5, 25)
    score += min(lawyer_count * 3, 15)

    if court_count > 2:
        score -= 10

    return max(0, min(score, 100))


def render_path(names: list[str]) -> str:
    """Render a closed cycle as "A → B → C → A"."""
    if len(names) <= 1:
        return ""
    members = names[:-1]
    return ARROW.join(members + [members[0]])


def materialize_cycle(
    cycle: list[str],
    graph: nx.DiGraph,
    cases_by_id: dict[str, dict],
    display_names: Optional[dict[str, str]] = None,
) -> dict:
    """Recover the cases, lawyers and courts behind a raw cycle and score it.

    For each consecutive pair (person, next) every case on the edge
    person -> next is attached to the cycle.
    """
    display_names = display_names or {}
    case_ids: dict[str, None] = {}
    lawyers: dict[str, None] = {}
    courts: dict[str, None] = {}

    for person, following in zip(cycle, cycle[1:]):
        if not graph.has_edge(person, following):
            continue
        for case_id in graph[person][following]["case_ids"]:
            case = cases_by_id.get(case_id)
            if case is None:
                continue
            case_ids.setdefault(case_id, None)
            for lawyer in case_lawyers(case):
                lawyers.setdefault(lawyer, None)
            if case.get("court"):
                courts.setdefault(case["court"], None)

    size = len(cycle) - 1
    people = [display_names.get(name, name) for name in cycle[:-1]]

    return {
        "cycle": list(cycle),
        "people": people,
        "case_ids": list(case_ids),
        "lawyers": list(lawyers),
        "courts": list(courts),
        "path": render_path(people + people[:1]),
        "confidence": score_confidence(size, len(case_ids), len(lawyers), len(courts)),
        "size": size,
    }


def detect_triangulation(cases: list[dict]) -> dict:
    """Detect triangulation rings across a case list.

    Returns:
        Dict with detected flag, accepted matches and a summary of cycle
        count, largest cycle, involved people and affected case ids.
    """
    graph = build_relationship_graph(cases)
    cases_by_id = index_cases(cases)
    display_names = build_display_names(cases)

    raw_cycles = find_cycles(graph)

    matches = []
    for cycle in raw_cycles:
        if len(cycle) - 1 < 3:
            continue
        match = materialize_cycle(cycle, graph, cases_by_id, display_names)
        if match["confidence"] >= MIN_CONFIDENCE:
            matches.append(match)

    involved: dict[str, None] = {}
    affected: dict[str, None] = {}
    largest = 0
    for match in matches:
        for name in match["cycle"]:
            involved.setdefault(name, None)
        for case_id in match["case_ids"]:
            affected.setdefault(case_id, None)
        largest = max(largest, match["size"])

    print(f"  Triangulation: {len(graph)} people, {len(raw_cycles)} raw cycles, "
          f"{len(matches)} accepted")

    return {
        "detected": len(matches) > 0,
        "matches": matches,
        "summary": {
            "total_cycles": len(matches),
            "largest_cycle_size": largest,
            "involved_people": list(involved),
            "affected_case_ids": list(affected),
        },
    }


def update_case_flags(cases: list[dict], matches: list[dict]) -> list[dict]:
    """Mark every case referenced by an accepted cycle.

    Returns a new list; flagged cases are shallow copies with
    triangulation_confirmed, triangulation_diagram and triangulation_case_ids
    set, untouched cases are returned as-is.
    """
    by_case: dict[str, list[dict]] = {}
    for match in matches:
        for case_id in match["case_ids"]:
            by_case.setdefault(case_id, []).append(match)

    updated = []
    for case in cases:
        related = by_case.get(case.get("case_id"))
        if not related:
            updated.append(case)
            continue

        case_ids: dict[str, None] = {}
        for match in related:
            for case_id in match["case_ids"]:
                case_ids.setdefault(case_id, None)

        updated.append({
            **case,
            "triangulation_confirmed": True,
            "triangulation_diagram": "; ".join(m["path"] for m in related),
            "triangulation_case_ids": list(case_ids),
        })

    return updated


def update_witness_flags(witnesses: list[dict], matches: list[dict]) -> list[dict]:
    """Mark every witness who is a member of an accepted cycle.

    Witnesses are matched on the canonical form of their display name.
    """
    by_person: dict[str, list[dict]] = {}
    for match in matches:
        for name in match["cycle"][:-1]:
            by_person.setdefault(normalize_name(name), []).append(match)

    updated = []
    for witness in witnesses:
        involvements = by_person.get(normalize_name(witness.get("name")))
        if not involvements:
            updated.append(witness)
            continue

        case_ids: dict[str, None] = {}
        for match in involvements:
            for case_id in match["case_ids"]:
                case_ids.setdefault(case_id, None)

        updated.append({
            **witness,
            "participated_in_triangulation": True,
            "triangulation_case_ids": list(case_ids),
        })

    return updated
