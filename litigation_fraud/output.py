"""Report assembly, JSON serialization and the aggregate publish boundary.

Detection results are collected into a single run report; the aggregate
report is handed to a persistence callable that either succeeds or raises.
"""
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Callable

from litigation_fraud import __version__


# Aggregate report fields sent to the persistence layer, in payload order
AGGREGATE_FIELDS: list[str] = [
    "total_cases",
    "cases_with_triangulation",
    "cases_with_direct_exchange",
    "cases_with_dual_role",
    "cases_with_borrowed_evidence",
    "professional_witnesses",
    "recurring_lawyers",
    "state_concentration",
    "court_concentration",
    "temporal_trend",
]

SaveFn = Callable[[str, dict], Any]


class PersistenceError(Exception):
    """Raised when the aggregate report could not be saved."""


def build_publish_payload(report: dict) -> dict:
    """Split an aggregate report into the org id and the data block to persist."""
    return {
        "org_id": report["org_id"],
        "data": {field: report.get(field) for field in AGGREGATE_FIELDS},
    }


def publish_aggregate_report(report: dict, save: SaveFn) -> None:
    """Hand an aggregate report to a persistence callable.

    Args:
        report: Aggregate report from build_aggregate_report().
        save: Callable taking (org_id, data). Anything it raises is treated
            as a persistence failure.

    Raises:
        PersistenceError: If the save call fails. The call is not retried.
    """
    payload = build_publish_payload(report)
    try:
        save(payload["org_id"], payload["data"])
    except Exception as e:
        raise PersistenceError(f"Failed to save aggregate report: {e}") from e
    print(f"Aggregates published for org {payload['org_id']}")


def json_file_saver(path: str) -> SaveFn:
    """Persistence callable that writes the aggregate payload to a JSON file."""
    def save(org_id: str, data: dict) -> None:
        with open(path, "w", encoding="utf-8") as f:
            json.dump({"org_id": org_id, **data}, f, indent=2, ensure_ascii=False,
                      default=_json_serializer)
    return save


def build_run_report(
    triangulation: dict,
    direct_exchange: dict,
    dual_role: dict,
    borrowed_evidence: dict,
    total_cases: int,
    total_witnesses: int,
) -> dict:
    """Assemble the detection results of one run into a single report."""
    return {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "tool_version": __version__,
        "total_cases_scanned": total_cases,
        "total_witnesses_scanned": total_witnesses,
        "pattern_counts": {
            "triangulation": triangulation["summary"]["total_cycles"],
            "direct_exchange": direct_exchange["summary"]["total_reciprocal"],
            "dual_role": dual_role["summary"]["total_people"],
            "borrowed_evidence": borrowed_evidence["summary"]["total_professional_witnesses"],
        },
        "triangulation": triangulation,
        "direct_exchange": direct_exchange,
        "dual_role": dual_role,
        "borrowed_evidence": borrowed_evidence,
    }


def write_report(report: dict, path: str) -> None:
    """Write a report dict to a JSON file."""
    with open(path, "w", encoding="utf-8") as f:
        json.dump(report, f, indent=2, ensure_ascii=False, default=_json_serializer)
    print(f"Report written to {path}")


def _json_serializer(obj: Any) -> Any:
    """Handle non-JSON-serializable types during report serialization.

    Converts date/datetime objects to ISO strings and polars scalars to
    native Python types.

    Raises:
        TypeError: If the object type is not recognized.
    """
    if hasattr(obj, "isoformat"):
        return obj.isoformat()
    if hasattr(obj, "item"):
        return obj.item()
    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")
