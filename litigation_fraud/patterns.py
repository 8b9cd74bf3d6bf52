"""Reciprocal testimony, dual-role and borrowed-evidence detectors.

Direct exchange: A testified in a case brought by B and B testified in a case
brought by A. Dual role: a claimant who also appears as a witness elsewhere.
Borrowed evidence: a professional witness whose testimony recurs across many
cases.
"""
from __future__ import annotations

import math

from litigation_fraud.aggregates import bucket_geography, hearing_periods
from litigation_fraud.ingest import (
    WITNESS_COLUMNS,
    case_lawyers,
    case_witnesses,
    index_cases,
    normalize_name,
)

SIDE_CLAIMANT = "claimant_side"
SIDE_RESPONDENT = "respondent_side"
SIDE_UNSPECIFIED = "unspecified"

_SIDE_COLUMNS = [
    ("claimant_witnesses", SIDE_CLAIMANT),
    ("respondent_witnesses", SIDE_RESPONDENT),
]

_TIMELINE_ROLES = {
    SIDE_CLAIMANT: "witness_claimant_side",
    SIDE_RESPONDENT: "witness_respondent_side",
    SIDE_UNSPECIFIED: "witness_unspecified",
}

BORROWED_EVIDENCE_MIN_TESTIMONIES = 10  # strictly greater than
BORROWED_EVIDENCE_CRITICAL_TESTIMONIES = 20


def _unique(values) -> list:
    return list(dict.fromkeys(values))


def find_common_lawyers(case_ids: list[str], cases_by_id: dict[str, dict]) -> list[str]:
    """Canonical claimant-side lawyer names that appear in more than one of the cases."""
    counts: dict[str, int] = {}
    for case_id in _unique(case_ids):
        case = cases_by_id.get(case_id)
        if case is None:
            continue
        for lawyer in _unique(normalize_name(l) for l in case_lawyers(case)):
            counts[lawyer] = counts.get(lawyer, 0) + 1
    return [lawyer for lawyer, count in counts.items() if count > 1]


# --- Direct exchange ---------------------------------------------------------


def score_exchange_confidence(a_to_b: int, b_to_a: int, common_lawyers: int) -> int:
    score = 40
    if a_to_b > 1:
        score += 15
    if b_to_a > 1:
        score += 15
    score += min(common_lawyers * 10, 30)
    return min(score, 100)


def detect_direct_exchange(cases: list[dict]) -> dict:
    """Detect reciprocal testimony between pairs of witnesses.

    Pairs are reported once, ordered by the first appearance of each witness
    in the case list.
    """
    cases_by_id = index_cases(cases)

    # (witness, claimant) -> case ids, and first-seen rank of each witness
    edges: dict[tuple[str, str], list[str]] = {}
    rank: dict[str, int] = {}
    for case in cases_by_id.values():
        claimant = normalize_name(case.get("claimant"))
        witnesses = case_witnesses(case)
        for witness in witnesses:
            rank.setdefault(witness, len(rank))
        if not claimant:
            continue
        for witness in witnesses:
            if witness == claimant:
                continue
            edges.setdefault((witness, claimant), []).append(case["case_id"])

    pairs = set()
    for witness, claimant in edges:
        if (claimant, witness) in edges:
            pairs.add(tuple(sorted((witness, claimant), key=rank.get)))

    matches = []
    for a, b in sorted(pairs, key=lambda p: (rank[p[0]], rank[p[1]])):
        cases_a = edges[(a, b)]
        cases_b = edges[(b, a)]
        common = find_common_lawyers(cases_a + cases_b, cases_by_id)
        matches.append({
            "witness_a": a,
            "witness_b": b,
            "case_ids_a": list(cases_a),
            "case_ids_b": list(cases_b),
            "common_lawyers": common,
            "confidence": score_exchange_confidence(len(cases_a), len(cases_b), len(common)),
            "kind": "reciprocal",
        })

    involved = _unique(name for m in matches for name in (m["witness_a"], m["witness_b"]))
    affected = _unique(cid for m in matches for cid in m["case_ids_a"] + m["case_ids_b"])

    print(f"  Direct exchange: {len(matches)} reciprocal pairs")

    return {
        "detected": len(matches) > 0,
        "matches": matches,
        "summary": {
            "total_reciprocal": len(matches),
            "involved_witnesses": involved,
            "affected_case_ids": affected,
        },
    }


def update_exchange_case_flags(cases: list[dict], matches: list[dict]) -> list[dict]:
    """Set direct_exchange and its diagram on every case behind a reciprocal pair."""
    by_case: dict[str, list[dict]] = {}
    for match in matches:
        for case_id in _unique(match["case_ids_a"] + match["case_ids_b"]):
            by_case.setdefault(case_id, []).append(match)

    updated = []
    for case in cases:
        related = by_case.get(case.get("case_id"))
        if not related:
            updated.append(case)
            continue
        updated.append({
            **case,
            "direct_exchange": True,
            "direct_exchange_diagram": "; ".join(
                f"{m['witness_a']} ↔ {m['witness_b']}" for m in related
            ),
            "direct_exchange_case_ids": _unique(
                cid for m in related for cid in m["case_ids_a"] + m["case_ids_b"]
            ),
        })
    return updated


def update_exchange_witness_flags(witnesses: list[dict], matches: list[dict]) -> list[dict]:
    """Set participated_in_exchange on both witnesses of every reciprocal pair."""
    by_person: dict[str, list[dict]] = {}
    for match in matches:
        for name in (match["witness_a"], match["witness_b"]):
            by_person.setdefault(normalize_name(name), []).append(match)

    updated = []
    for witness in witnesses:
        involvements = by_person.get(normalize_name(witness.get("name")))
        if not involvements:
            updated.append(witness)
            continue
        updated.append({
            **witness,
            "participated_in_exchange": True,
            "exchange_case_ids": _unique(
                cid for m in involvements for cid in m["case_ids_a"] + m["case_ids_b"]
            ),
        })
    return updated


# --- Dual role ---------------------------------------------------------------


def _collect_roles(cases: list[dict]) -> dict[str, dict]:
    """Map each canonical person to their claimant and witness appearances."""
    roles: dict[str, dict] = {}

    def entry(name: str) -> dict:
        return roles.setdefault(name, {"claimant": [], "witness": []})

    for case in cases:
        case_id = case.get("case_id")
        if not case_id:
            continue
        date = case.get("hearing_date") or None

        claimant = normalize_name(case.get("claimant"))
        if claimant:
            entry(claimant)["claimant"].append({"case_id": case_id, "date": date})

        for col, side in _SIDE_COLUMNS:
            for raw in case.get(col) or []:
                name = normalize_name(raw)
                if name:
                    entry(name)["witness"].append({"case_id": case_id, "date": date, "side": side})

        for raw in case.get("all_witnesses") or []:
            name = normalize_name(raw)
            if not name:
                continue
            appearances = entry(name)["witness"]
            if not any(a["case_id"] == case_id for a in appearances):
                appearances.append({"case_id": case_id, "date": date, "side": SIDE_UNSPECIFIED})

    return roles


def classify_dual_role_risk(
    claimant_cases: int,
    witness_cases: int,
    respondent_side: bool,
    common_lawyers: int,
) -> str:
    score = 0
    if claimant_cases > 2:
        score += 2
    if witness_cases > 3:
        score += 2
    # Testifying for the opposing side is the stronger signal
    if respondent_side:
        score += 3
    if common_lawyers > 0:
        score += 4
    if common_lawyers > 2:
        score += 2

    if score >= 7:
        return "HIGH"
    if score >= 4:
        return "MEDIUM"
    return "LOW"


def score_dual_role_confidence(claimant_cases: int, witness_cases: int, common_lawyers: int) -> int:
    score = 40
    score += min(claimant_cases * 5, 20)
    score += min(witness_cases * 3, 15)
    score += min(common_lawyers * 8, 25)
    return min(score, 100)


def detect_dual_role(cases: list[dict]) -> dict:
    """Detect people who appear both as a claimant and as a witness."""
    cases_by_id = index_cases(cases)
    matches = []

    for name, roles in _collect_roles(cases).items():
        if not roles["claimant"] or not roles["witness"]:
            continue

        claimant_ids = _unique(r["case_id"] for r in roles["claimant"])
        witness_ids = _unique(r["case_id"] for r in roles["witness"])
        respondent_ids = _unique(
            r["case_id"] for r in roles["witness"] if r["side"] == SIDE_RESPONDENT
        )
        for_claimant = any(r["side"] == SIDE_CLAIMANT for r in roles["witness"])
        for_respondent = len(respondent_ids) > 0
        common = find_common_lawyers(claimant_ids + witness_ids, cases_by_id)

        timeline = [
            {"case_id": r["case_id"], "date": r["date"], "role": "claimant"}
            for r in roles["claimant"]
        ] + [
            {"case_id": r["case_id"], "date": r["date"], "role": _TIMELINE_ROLES[r["side"]]}
            for r in roles["witness"]
        ]
        # Undated entries go last
        timeline.sort(key=lambda t: (t["date"] is None, t["date"] or ""))

        matches.append({
            "name": name,
            "claimant_case_ids": claimant_ids,
            "witness_case_ids": witness_ids,
            "testified_for_claimant_side": for_claimant,
            "testified_for_respondent_side": for_respondent,
            "respondent_side_case_ids": respondent_ids,
            "risk": classify_dual_role_risk(
                len(claimant_ids), len(witness_ids), for_respondent, len(common)
            ),
            "confidence": score_dual_role_confidence(
                len(claimant_ids), len(witness_ids), len(common)
            ),
            "common_lawyers": common,
            "timeline": timeline,
        })

    risk_counts = {"HIGH": 0, "MEDIUM": 0, "LOW": 0}
    for match in matches:
        risk_counts[match["risk"]] += 1
    affected = _unique(
        cid for m in matches for cid in m["claimant_case_ids"] + m["witness_case_ids"]
    )

    print(f"  Dual role: {len(matches)} people appear as both claimant and witness")

    return {
        "detected": len(matches) > 0,
        "matches": matches,
        "summary": {
            "total_people": len(matches),
            "high_risk": risk_counts["HIGH"],
            "medium_risk": risk_counts["MEDIUM"],
            "low_risk": risk_counts["LOW"],
            "affected_case_ids": affected,
        },
    }


def update_dual_role_case_flags(cases: list[dict], matches: list[dict]) -> list[dict]:
    """Flag every case whose claimant also testified elsewhere."""
    by_name = {normalize_name(m["name"]): m for m in matches}

    updated = []
    for case in cases:
        match = by_name.get(normalize_name(case.get("claimant")))
        if match is None:
            updated.append(case)
            continue
        updated.append({
            **case,
            "claimant_was_witness": True,
            "claimant_testimony_count": len(match["witness_case_ids"]),
            "claimant_testimony_case_ids": list(match["witness_case_ids"]),
            "claimant_testified_for_respondent": match["testified_for_respondent_side"],
            "respondent_side_case_ids": list(match["respondent_side_case_ids"]),
        })
    return updated


def update_dual_role_witness_flags(witnesses: list[dict], matches: list[dict]) -> list[dict]:
    """Flag every witness who has also been a claimant."""
    by_name = {normalize_name(m["name"]): m for m in matches}

    updated = []
    for witness in witnesses:
        match = by_name.get(normalize_name(witness.get("name")))
        if match is None:
            updated.append(witness)
            continue
        updated.append({
            **witness,
            "was_claimant": True,
            "claimant_case_ids": list(match["claimant_case_ids"]),
            "testified_for_claimant_side": match["testified_for_claimant_side"],
            "testified_for_respondent_side": match["testified_for_respondent_side"],
            "testified_for_both_sides": (
                match["testified_for_claimant_side"] and match["testified_for_respondent_side"]
            ),
        })
    return updated


# --- Borrowed evidence -------------------------------------------------------


def find_recurring_lawyers(related: list[dict]) -> list[str]:
    """Canonical lawyer names present in at least 30% of the cases, never fewer than 2.

    Ordered by number of appearances, most frequent first.
    """
    counts: dict[str, int] = {}
    for case in related:
        for lawyer in case_lawyers(case):
            key = normalize_name(lawyer)
            counts[key] = counts.get(key, 0) + 1

    threshold = max(2, math.ceil(len(related) * 3 / 10))
    recurring = [(lawyer, count) for lawyer, count in counts.items() if count >= threshold]
    recurring.sort(key=lambda item: item[1], reverse=True)
    return [lawyer for lawyer, _ in recurring]


def _geographic_distribution(related: list[dict]) -> list[dict]:
    counts: dict[tuple[str, str], int] = {}
    for case in related:
        key = (bucket_geography(case.get("state")), bucket_geography(case.get("court")))
        counts[key] = counts.get(key, 0) + 1

    distribution = [
        {"state": state, "court": court, "count": count, "percentage": count / len(related) * 100}
        for (state, court), count in counts.items()
    ]
    distribution.sort(key=lambda d: d["count"], reverse=True)
    return distribution


def _state_concentration(related: list[dict]) -> float:
    counts: dict[str, int] = {}
    for case in related:
        state = bucket_geography(case.get("state"))
        counts[state] = counts.get(state, 0) + 1
    if not counts:
        return 0.0
    return max(counts.values()) / len(related) * 100


def is_timeline_suspicious(distribution: list[dict]) -> bool:
    """True when more than half of the dated testimonies fall in six months or fewer."""
    total = sum(item["count"] for item in distribution)
    if not total:
        return False

    accumulated = 0
    busiest = sorted(distribution, key=lambda item: item["count"], reverse=True)
    for months, item in enumerate(busiest, start=1):
        accumulated += item["count"]
        if accumulated / total > 0.5:
            return months <= 6
    return False


def classify_borrowed_evidence_risk(
    testimonies: int,
    recurring_lawyers: int,
    court_concentration: float,
    suspicious_timeline: bool,
) -> str:
    score = 0
    if testimonies > 30:
        score += 4
    elif testimonies > 20:
        score += 3
    elif testimonies > 15:
        score += 2
    else:
        score += 1

    if recurring_lawyers > 3:
        score += 3
    elif recurring_lawyers > 1:
        score += 2
    elif recurring_lawyers > 0:
        score += 1

    if court_concentration > 80:
        score += 2
    elif court_concentration > 60:
        score += 1

    if suspicious_timeline:
        score += 2

    if score >= 8:
        return "HIGH"
    if score >= 5:
        return "MEDIUM"
    return "LOW"


def score_borrowed_evidence_confidence(testimonies: int, recurring_lawyers: int) -> int:
    score = 50
    # 1.5 points per testimony, half points dropped
    score += min(testimonies * 3 // 2, 30)
    score += min(recurring_lawyers * 5, 20)
    return min(score, 100)


def detect_borrowed_evidence(cases: list[dict], witnesses: list[dict]) -> dict:
    """Detect professional witnesses whose testimony is reused across many cases.

    Every witness with more than BORROWED_EVIDENCE_MIN_TESTIMONIES testimonies
    is reported, with the lawyers, courts and months their cases share.
    """
    cases_by_id = index_cases(cases)
    periods = hearing_periods(cases)
    matches = []

    for witness in witnesses:
        count = int(witness.get("testimony_count") or 0)
        if count <= BORROWED_EVIDENCE_MIN_TESTIMONIES:
            continue

        case_ids = list(witness.get("case_ids") or [])
        wanted = set(case_ids)
        related = [case for case_id, case in cases_by_id.items() if case_id in wanted]

        lawyers = find_recurring_lawyers(related)
        geography = _geographic_distribution(related)
        court_concentration = max((g["percentage"] for g in geography), default=0.0)

        month_counts: dict[str, int] = {}
        for case in related:
            period = periods.get(case["case_id"])
            if period:
                month_counts[period] = month_counts.get(period, 0) + 1
        timeline = [{"period": p, "count": month_counts[p]} for p in sorted(month_counts)]
        suspicious = is_timeline_suspicious(timeline)

        matches.append({
            "name": witness.get("name"),
            "testimony_count": count,
            "case_ids": case_ids,
            "recurring_lawyers": lawyers,
            "court_concentration": court_concentration,
            "state_concentration": _state_concentration(related),
            "suspicious_timeline": suspicious,
            "alert": count > BORROWED_EVIDENCE_MIN_TESTIMONIES,
            "risk": classify_borrowed_evidence_risk(
                count, len(lawyers), court_concentration, suspicious
            ),
            "confidence": score_borrowed_evidence_confidence(count, len(lawyers)),
            "geographic_distribution": geography,
            "temporal_distribution": timeline,
        })

    total = sum(m["testimony_count"] for m in matches)
    affected = _unique(cid for m in matches for cid in m["case_ids"])

    print(f"  Borrowed evidence: {len(matches)} professional witnesses")

    return {
        "detected": len(matches) > 0,
        "matches": matches,
        "summary": {
            "total_professional_witnesses": len(matches),
            "mean_testimonies": int(total / len(matches) + 0.5) if matches else 0,
            "max_testimonies": max((m["testimony_count"] for m in matches), default=0),
            "critical_alerts": sum(
                1 for m in matches if m["testimony_count"] > BORROWED_EVIDENCE_CRITICAL_TESTIMONIES
            ),
            "affected_case_ids": affected,
        },
    }


def update_borrowed_evidence_case_flags(cases: list[dict], matches: list[dict]) -> list[dict]:
    """Flag every case in which a professional witness testified.

    Witnesses are found by canonical name in any of the three witness lists;
    borrowed_evidence_witnesses keeps the first display form of each.
    """
    names = {normalize_name(m["name"]) for m in matches} - {""}

    updated = []
    for case in cases:
        found: dict[str, str] = {}
        for col in WITNESS_COLUMNS:
            for raw in case.get(col) or []:
                key = normalize_name(raw)
                if key in names and key not in found:
                    found[key] = " ".join(str(raw).split())
        if not found:
            updated.append(case)
            continue
        updated.append({
            **case,
            "borrowed_evidence": True,
            "borrowed_evidence_witnesses": list(found.values()),
        })
    return updated


def update_borrowed_evidence_witness_flags(witnesses: list[dict], matches: list[dict]) -> list[dict]:
    """Mark every professional witness with its alert and risk level."""
    by_name = {normalize_name(m["name"]): m for m in matches}
    by_name.pop("", None)

    updated = []
    for witness in witnesses:
        match = by_name.get(normalize_name(witness.get("name")))
        if match is None:
            updated.append(witness)
            continue
        updated.append({
            **witness,
            "is_borrowed_evidence": match["alert"],
            "borrowed_evidence_risk": match["risk"],
        })
    return updated
