"""Data ingestion module - name canonicalization and record loading."""
import os
import re
from typing import Optional

import polars as pl


DATA_DIR = os.environ.get("LITIGATION_DATA_DIR", "data")

# Witness list columns on a case record, in merge order
WITNESS_COLUMNS = ["claimant_witnesses", "respondent_witnesses", "all_witnesses"]

# Pre-existing boolean pattern flags on a case record
FLAG_COLUMNS = [
    "triangulation_confirmed",
    "direct_exchange",
    "claimant_was_witness",
    "borrowed_evidence",
]

_WHITESPACE = re.compile(r"\s+")


def normalize_name(name: Optional[str]) -> str:
    """Normalize a display name into its comparison key.

    Case-folds, trims and collapses internal whitespace runs to a single space.
    None is treated as the empty string.
    """
    if not name:
        return ""
    return _WHITESPACE.sub(" ", str(name)).strip().lower()


def case_witnesses(case: dict) -> list[str]:
    """Return the canonical witness names of a case, merged and de-duplicated.

    Walks the claimant-side, respondent-side and union lists in that order;
    empty names are skipped and first-seen order is preserved.
    """
    seen: dict[str, None] = {}
    for col in WITNESS_COLUMNS:
        for raw in case.get(col) or []:
            name = normalize_name(raw)
            if name:
                seen.setdefault(name, None)
    return list(seen)


def case_lawyers(case: dict) -> list[str]:
    """Claimant-side lawyers of a case with blanks removed and names trimmed."""
    lawyers = []
    for raw in case.get("claimant_lawyers") or []:
        if raw and str(raw).strip():
            lawyers.append(str(raw).strip())
    return lawyers


def index_cases(cases: list[dict]) -> dict[str, dict]:
    """Build a case_id -> case lookup. Later duplicates do not replace earlier ones."""
    index: dict[str, dict] = {}
    for case in cases:
        case_id = case.get("case_id")
        if case_id and case_id not in index:
            index[case_id] = case
    return index


def _read_records(path: str) -> list[dict]:
    """Read a JSON record array or parquet file into a list of dicts."""
    if not os.path.exists(path):
        raise FileNotFoundError(f"Input data not found at {path}.")

    ext = os.path.splitext(path)[1].lower()
    if ext == ".json":
        df = pl.read_json(path)
    elif ext == ".parquet":
        df = pl.read_parquet(path)
    else:
        raise ValueError(f"Unsupported input format '{ext}' for {path} (expected .json or .parquet)")

    return df.to_dicts()


def _find_input(data_dir: str, stem: str) -> str:
    """Locate <stem>.json or <stem>.parquet inside data_dir."""
    for ext in (".json", ".parquet"):
        path = os.path.join(data_dir, stem + ext)
        if os.path.exists(path):
            return path
    raise FileNotFoundError(
        f"No {stem}.json or {stem}.parquet found in {data_dir}. "
        f"Set LITIGATION_DATA_DIR or pass --data-dir."
    )


def load_cases(data_dir: Optional[str] = None, path: Optional[str] = None) -> list[dict]:
    """Load case records.

    Returns:
        List of case dicts. List-valued columns missing from a record are
        normalized to empty lists; boolean flags default to False.
    """
    source = path or _find_input(data_dir or DATA_DIR, "cases")
    cases = []
    for row in _read_records(source):
        for col in WITNESS_COLUMNS + ["claimant_lawyers"]:
            row[col] = list(row.get(col) or [])
        for col in FLAG_COLUMNS:
            row[col] = bool(row.get(col))
        cases.append(row)

    print(f"Cases: {len(cases)} records from {source}")
    return cases


def load_witnesses(data_dir: Optional[str] = None, path: Optional[str] = None) -> list[dict]:
    """Load witness records. Missing testimony counts default to 0."""
    source = path or _find_input(data_dir or DATA_DIR, "witnesses")
    witnesses = []
    for row in _read_records(source):
        row["case_ids"] = list(row.get("case_ids") or [])
        row["testimony_count"] = int(row.get("testimony_count") or 0)
        witnesses.append(row)

    print(f"Witnesses: {len(witnesses)} records from {source}")
    return witnesses
