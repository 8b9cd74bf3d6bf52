"""Main orchestration module - runs the full litigation pattern pipeline.

Loads case and witness records, runs the four pattern detectors, writes their
flags back onto the records, builds the organization aggregate report and
publishes it.
"""
from __future__ import annotations

import argparse
import os
import sys
import time
import traceback

from litigation_fraud import __version__
from litigation_fraud.aggregates import build_aggregate_report
from litigation_fraud.ingest import DATA_DIR, load_cases, load_witnesses
from litigation_fraud.output import (
    PersistenceError,
    build_run_report,
    json_file_saver,
    publish_aggregate_report,
    write_report,
)
from litigation_fraud.patterns import (
    detect_borrowed_evidence,
    detect_direct_exchange,
    detect_dual_role,
    update_borrowed_evidence_case_flags,
    update_borrowed_evidence_witness_flags,
    update_dual_role_case_flags,
    update_dual_role_witness_flags,
    update_exchange_case_flags,
    update_exchange_witness_flags,
)
from litigation_fraud.triangulation import (
    detect_triangulation,
    update_case_flags,
    update_witness_flags,
)

ORG_ID = os.environ.get("LITIGATION_ORG_ID", "default")

_EMPTY_RESULTS = {
    "triangulation": {
        "detected": False, "matches": [],
        "summary": {"total_cycles": 0, "largest_cycle_size": 0,
                    "involved_people": [], "affected_case_ids": []},
    },
    "direct_exchange": {
        "detected": False, "matches": [],
        "summary": {"total_reciprocal": 0, "involved_witnesses": [], "affected_case_ids": []},
    },
    "dual_role": {
        "detected": False, "matches": [],
        "summary": {"total_people": 0, "high_risk": 0, "medium_risk": 0,
                    "low_risk": 0, "affected_case_ids": []},
    },
    "borrowed_evidence": {
        "detected": False, "matches": [],
        "summary": {"total_professional_witnesses": 0, "mean_testimonies": 0,
                    "max_testimonies": 0, "critical_alerts": 0, "affected_case_ids": []},
    },
}


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments for the pattern pipeline."""
    parser = argparse.ArgumentParser(
        description="Litigation Fraud Pattern Detection Engine"
    )
    parser.add_argument(
        "--data-dir", default=DATA_DIR,
        help="Directory containing cases.json/witnesses.json or .parquet (default: %(default)s)",
    )
    parser.add_argument(
        "--org-id", default=ORG_ID,
        help="Organization id stamped on the aggregate report (default: %(default)s)",
    )
    parser.add_argument(
        "--output", default="pattern_detections.json",
        help="Detection report output path (default: %(default)s)",
    )
    parser.add_argument(
        "--records-output", default="flagged_records.json",
        help="Flagged case and witness records output path (default: %(default)s)",
    )
    parser.add_argument(
        "--aggregates-output", default="pattern_aggregates.json",
        help="Aggregate report output path (default: %(default)s)",
    )
    return parser.parse_args(argv)


def run_detectors(cases: list[dict], witnesses: list[dict]) -> dict[str, dict]:
    """Run each detector with error isolation.

    A failing detector is reported and replaced by an empty result so the
    others still complete.
    """
    runners = [
        ("triangulation", lambda: detect_triangulation(cases)),
        ("direct_exchange", lambda: detect_direct_exchange(cases)),
        ("dual_role", lambda: detect_dual_role(cases)),
        ("borrowed_evidence", lambda: detect_borrowed_evidence(cases, witnesses)),
    ]

    results: dict[str, dict] = {}
    for name, runner in runners:
        t = time.time()
        print(f"\n  Running {name}...")
        try:
            results[name] = runner()
            print(f"  {name}: {len(results[name]['matches'])} matches in {time.time() - t:.1f}s")
        except Exception as e:
            print(f"  ERROR in {name}: {e}")
            traceback.print_exc()
            results[name] = _EMPTY_RESULTS[name]
    return results


def apply_flags(
    cases: list[dict],
    witnesses: list[dict],
    results: dict[str, dict],
) -> tuple[list[dict], list[dict]]:
    """Write every detector's findings back onto the case and witness records."""
    tri = results["triangulation"]["matches"]
    exchange = results["direct_exchange"]["matches"]
    dual = results["dual_role"]["matches"]
    borrowed = results["borrowed_evidence"]["matches"]

    cases = update_case_flags(cases, tri)
    cases = update_exchange_case_flags(cases, exchange)
    cases = update_dual_role_case_flags(cases, dual)
    cases = update_borrowed_evidence_case_flags(cases, borrowed)

    witnesses = update_witness_flags(witnesses, tri)
    witnesses = update_exchange_witness_flags(witnesses, exchange)
    witnesses = update_dual_role_witness_flags(witnesses, dual)
    witnesses = update_borrowed_evidence_witness_flags(witnesses, borrowed)

    return cases, witnesses


def main(argv: list[str] | None = None) -> None:
    """Run the full pipeline: load, detect, flag, aggregate, publish."""
    args = parse_args(argv)

    print("=" * 60)
    print(f"Litigation Fraud Pattern Detection Engine v{__version__}")
    print("=" * 60)
    start_time = time.time()

    print("\n[1/5] Loading records...")
    t = time.time()
    cases = load_cases(args.data_dir)
    witnesses = load_witnesses(args.data_dir)
    print(f"  Records loaded in {time.time() - t:.1f}s")

    print("\n[2/5] Running pattern detection...")
    results = run_detectors(cases, witnesses)

    print("\n[3/5] Writing flags onto records...")
    cases, witnesses = apply_flags(cases, witnesses, results)
    write_report({"cases": cases, "witnesses": witnesses}, args.records_output)

    print("\n[4/5] Building aggregates...")
    t = time.time()
    aggregates = build_aggregate_report(args.org_id, cases, witnesses)
    print(f"  Aggregates built in {time.time() - t:.1f}s")

    print("\n[5/5] Writing reports...")
    report = build_run_report(
        triangulation=results["triangulation"],
        direct_exchange=results["direct_exchange"],
        dual_role=results["dual_role"],
        borrowed_evidence=results["borrowed_evidence"],
        total_cases=len(cases),
        total_witnesses=len(witnesses),
    )
    write_report(report, args.output)

    try:
        publish_aggregate_report(aggregates, json_file_saver(args.aggregates_output))
    except PersistenceError as e:
        print(f"  ERROR: {e}")
        sys.exit(1)

    print(f"\nCompleted in {time.time() - start_time:.1f}s")
    print(f"Pattern counts: {report['pattern_counts']}")


if __name__ == "__main__":
    main()
