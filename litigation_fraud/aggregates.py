"""Organization-wide aggregate report over case and witness records.

Five independent rollups are assembled into one report: pattern counters,
professional witnesses, recurring lawyers, geographic concentration and the
month-by-month temporal trend.
"""
from __future__ import annotations

import polars as pl

from litigation_fraud.ingest import FLAG_COLUMNS, WITNESS_COLUMNS, case_lawyers, index_cases

UNKNOWN = "Unknown"

# Case flag -> pattern type name, in tie-break order
PATTERN_TYPES: dict[str, str] = {
    "triangulation_confirmed": "triangulation",
    "direct_exchange": "direct_exchange",
    "claimant_was_witness": "dual_role",
    "borrowed_evidence": "borrowed_evidence",
}

PROFESSIONAL_WITNESS_MIN_TESTIMONIES = 10  # strictly greater than
RECURRING_LAWYER_MIN_CASES = 5
RECURRING_LAWYER_MIN_PATTERNS = 2


def bucket_geography(value) -> str:
    """Missing or blank geography falls into the Unknown bucket."""
    if value is None or not str(value).strip():
        return UNKNOWN
    return str(value).strip()


def _patterns_of(case: dict) -> list[str]:
    return [name for flag, name in PATTERN_TYPES.items() if case.get(flag)]


def _first_max(counts: dict[str, int]) -> str:
    """Key with the highest count; ties keep the first key inserted."""
    if not counts:
        return UNKNOWN
    return max(counts, key=counts.get)


def cases_frame(cases: list[dict]) -> pl.DataFrame:
    """Project case records onto the columns the rollups need."""
    data = {
        "case_id": [str(c.get("case_id") or "") for c in cases],
        "state": [bucket_geography(c.get("state")) for c in cases],
        "court": [bucket_geography(c.get("court")) for c in cases],
        "hearing_date": [
            str(c["hearing_date"]) if c.get("hearing_date") else None for c in cases
        ],
    }
    for flag in FLAG_COLUMNS:
        data[flag] = [bool(c.get(flag)) for c in cases]

    schema = {
        "case_id": pl.Utf8,
        "state": pl.Utf8,
        "court": pl.Utf8,
        "hearing_date": pl.Utf8,
        **{flag: pl.Boolean for flag in FLAG_COLUMNS},
    }
    return pl.DataFrame(data, schema=schema)


def count_patterns(frame: pl.DataFrame) -> dict[str, int]:
    """Tally the four pattern flags across all cases."""
    totals = frame.select([
        pl.col(flag).cast(pl.Int64).sum().alias(flag) for flag in FLAG_COLUMNS
    ]).row(0, named=True)

    return {
        "cases_with_triangulation": int(totals["triangulation_confirmed"] or 0),
        "cases_with_direct_exchange": int(totals["direct_exchange"] or 0),
        "cases_with_dual_role": int(totals["claimant_was_witness"] or 0),
        "cases_with_borrowed_evidence": int(totals["borrowed_evidence"] or 0),
    }


def build_professional_witnesses(witnesses: list[dict], cases: list[dict]) -> list[dict]:
    """Witnesses with more than ten testimonies, ranked by testimony count.

    Risk is HIGH above 30 testimonies or 5 distinct lawyers, MEDIUM above 20
    testimonies or 2 lawyers, LOW otherwise.
    """
    cases_by_id = index_cases(cases)
    result = []

    for witness in witnesses:
        count = int(witness.get("testimony_count") or 0)
        if count <= PROFESSIONAL_WITNESS_MIN_TESTIMONIES:
            continue

        case_ids = list(witness.get("case_ids") or [])
        court_counts: dict[str, int] = {}
        lawyers: dict[str, None] = {}
        for case_id in case_ids:
            case = cases_by_id.get(case_id)
            if case is None:
                continue
            court = bucket_geography(case.get("court"))
            court_counts[court] = court_counts.get(court, 0) + 1
            for lawyer in case_lawyers(case):
                lawyers.setdefault(lawyer, None)

        if count > 30 or len(lawyers) > 5:
            risk = "HIGH"
        elif count > 20 or len(lawyers) > 2:
            risk = "MEDIUM"
        else:
            risk = "LOW"

        result.append({
            "name": witness.get("name"),
            "testimony_count": count,
            "case_ids": case_ids,
            "risk": risk,
            "top_court": _first_max(court_counts),
            "lawyers": list(lawyers),
        })

    result.sort(key=lambda w: w["testimony_count"], reverse=True)
    return result


def build_recurring_lawyers(cases: list[dict]) -> list[dict]:
    """Claimant-side lawyers with 5+ cases or 2+ distinct pattern types."""
    stats: dict[str, dict] = {}

    for case in cases:
        case_id = case.get("case_id")
        if not case_id:
            continue
        state = bucket_geography(case.get("state"))
        patterns = _patterns_of(case)
        witnesses = []
        for col in WITNESS_COLUMNS:
            witnesses.extend(str(w).strip() for w in case.get(col) or [] if w and str(w).strip())

        for lawyer in case_lawyers(case):
            entry = stats.setdefault(lawyer, {
                "cases": {},
                "witnesses": {},
                "patterns": set(),
                "states": {},
            })
            if case_id not in entry["cases"]:
                entry["cases"][case_id] = None
                entry["states"][state] = entry["states"].get(state, 0) + 1
            entry["patterns"].update(patterns)
            for witness in witnesses:
                entry["witnesses"].setdefault(witness, None)

    result = []
    for lawyer, entry in stats.items():
        if (len(entry["cases"]) < RECURRING_LAWYER_MIN_CASES
                and len(entry["patterns"]) < RECURRING_LAWYER_MIN_PATTERNS):
            continue
        result.append({
            "name": lawyer,
            "case_count": len(entry["cases"]),
            "associated_witnesses": list(entry["witnesses"]),
            "detected_patterns": [p for p in PATTERN_TYPES.values() if p in entry["patterns"]],
            "top_state": _first_max(entry["states"]),
        })

    result.sort(key=lambda l: l["case_count"], reverse=True)
    return result


def _dominant_patterns(row: dict) -> list[str]:
    """Top three pattern types by frequency; ties follow PATTERN_TYPES order."""
    counts = [(name, int(row[flag])) for flag, name in PATTERN_TYPES.items() if row[flag]]
    counts.sort(key=lambda item: item[1], reverse=True)
    return [name for name, _ in counts[:3]]


def _concentration_entry(state: str, court: str, row: dict) -> dict:
    total = int(row["total_cases"])
    suspicious = int(row["suspicious_cases"])
    return {
        "state": state,
        "court": court,
        "total_cases": total,
        "suspicious_cases": suspicious,
        "suspicious_percentage": suspicious / total * 100,
        "dominant_patterns": _dominant_patterns(row),
    }


def build_geographic_concentration(frame: pl.DataFrame) -> tuple[dict, dict]:
    """Suspicious-case concentration keyed by state and by "state|court".

    Returns:
        Tuple of (state_concentration, court_concentration).
    """
    flagged = frame.with_columns(
        pl.any_horizontal([pl.col(flag) for flag in FLAG_COLUMNS]).alias("suspicious")
    )
    aggs = [
        pl.len().cast(pl.Int64).alias("total_cases"),
        pl.col("suspicious").cast(pl.Int64).sum().alias("suspicious_cases"),
        *[pl.col(flag).cast(pl.Int64).sum().alias(flag) for flag in FLAG_COLUMNS],
    ]

    by_state = flagged.group_by("state", maintain_order=True).agg(
        aggs + [pl.col("court").n_unique().alias("court_count")]
    )
    by_court = flagged.group_by(["state", "court"], maintain_order=True).agg(aggs)

    state_concentration: dict[str, dict] = {}
    for row in by_state.iter_rows(named=True):
        if not row["total_cases"]:
            continue
        state_concentration[row["state"]] = _concentration_entry(
            row["state"], f"{row['court_count']} courts", row
        )

    court_concentration: dict[str, dict] = {}
    for row in by_court.iter_rows(named=True):
        if not row["total_cases"]:
            continue
        key = f"{row['state']}|{row['court']}"
        court_concentration[key] = _concentration_entry(row["state"], row["court"], row)

    return state_concentration, court_concentration


def _hearing_date(col: str) -> pl.Expr:
    """Parse a hearing date column, yielding null where unparseable.

    Accepts ISO dates and datetimes (date part taken) and DD/MM/YYYY.
    """
    return pl.coalesce([
        pl.col(col).str.slice(0, 10).str.strptime(pl.Date, "%Y-%m-%d", strict=False),
        pl.col(col).str.strptime(pl.Date, "%d/%m/%Y", strict=False),
    ])


def hearing_periods(cases: list[dict]) -> dict[str, str]:
    """Map case_id -> "YYYY-MM" for every case with a parseable hearing date."""
    dated = (
        cases_frame(cases)
        .with_columns(_hearing_date("hearing_date").alias("_date"))
        .filter(pl.col("_date").is_not_null() & (pl.col("case_id") != ""))
        .select(["case_id", pl.col("_date").dt.strftime("%Y-%m").alias("period")])
    )

    periods: dict[str, str] = {}
    for row in dated.iter_rows(named=True):
        periods.setdefault(row["case_id"], row["period"])
    return periods


def build_temporal_trend(frame: pl.DataFrame) -> list[dict]:
    """Monthly case and pattern counts with month-over-month growth.

    Cases without a parseable hearing date are left out. Growth is 0 for the
    first month and for any month following a month with no cases.
    """
    monthly = (
        frame
        .with_columns(_hearing_date("hearing_date").alias("_date"))
        .filter(pl.col("_date").is_not_null())
        .with_columns(pl.col("_date").dt.strftime("%Y-%m").alias("period"))
        .group_by("period")
        .agg([
            pl.len().cast(pl.Int64).alias("total_cases"),
            *[pl.col(flag).cast(pl.Int64).sum().alias(flag) for flag in FLAG_COLUMNS],
        ])
        .sort("period")
        .with_columns(pl.col("total_cases").shift(1).alias("prev_total"))
        .with_columns(
            pl.when(pl.col("prev_total") > 0)
            .then((pl.col("total_cases") - pl.col("prev_total")) / pl.col("prev_total") * 100)
            .otherwise(0.0)
            .alias("growth_percentage")
        )
    )

    trend = []
    for row in monthly.iter_rows(named=True):
        trend.append({
            "period": row["period"],
            "total_cases": int(row["total_cases"]),
            "triangulation": int(row["triangulation_confirmed"]),
            "direct_exchange": int(row["direct_exchange"]),
            "dual_role": int(row["claimant_was_witness"]),
            "borrowed_evidence": int(row["borrowed_evidence"]),
            "growth_percentage": float(row["growth_percentage"]),
        })
    return trend


def build_aggregate_report(org_id: str, cases: list[dict], witnesses: list[dict]) -> dict:
    """Compute the full aggregate report for one organization.

    The report is built from scratch on every call and never partially updated.
    """
    frame = cases_frame(cases)

    counters = count_patterns(frame)
    professionals = build_professional_witnesses(witnesses, cases)
    lawyers = build_recurring_lawyers(cases)
    state_concentration, court_concentration = build_geographic_concentration(frame)
    trend = build_temporal_trend(frame)

    print(f"  Aggregates: {len(cases)} cases, {len(professionals)} professional witnesses, "
          f"{len(lawyers)} recurring lawyers, {len(trend)} months")

    return {
        "org_id": org_id,
        "total_cases": len(cases),
        **counters,
        "professional_witnesses": professionals,
        "recurring_lawyers": lawyers,
        "state_concentration": state_concentration,
        "court_concentration": court_concentration,
        "temporal_trend": trend,
    }
