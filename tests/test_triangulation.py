"""Tests for triangulation scoring, detection and flag propagation."""
import copy

import pytest

from litigation_fraud.graph import build_relationship_graph
from litigation_fraud.ingest import index_cases, normalize_name
from litigation_fraud.triangulation import (
    MIN_CONFIDENCE,
    detect_triangulation,
    materialize_cycle,
    render_path,
    score_confidence,
    update_case_flags,
    update_witness_flags,
)
from tests.fixtures import make_case, make_square, make_triangle, make_witness


class TestScoreConfidence:
    """Tests for score_confidence()."""

    def test_triangle_three_cases_one_court(self):
        assert score_confidence(3, 3, 0, 1) == 65

    def test_square_bonus(self):
        assert score_confidence(4, 4, 0, 1) == 75

    def test_large_cycle_bonus_is_lower(self):
        assert score_confidence(5, 5, 0, 1) == 70
        assert score_confidence(9, 9, 0, 1) == 70

    def test_case_bonus_capped(self):
        assert score_confidence(3, 50, 0, 1) == 30 + 20 + 25

    def test_lawyer_bonus_capped(self):
        assert score_confidence(3, 0, 2, 1) == 30 + 20 + 6
        assert score_confidence(3, 0, 40, 1) == 30 + 20 + 15

    def test_dispersion_penalty_only_above_two_courts(self):
        assert score_confidence(3, 3, 0, 2) == 65
        assert score_confidence(3, 3, 0, 3) == 55

    @pytest.mark.parametrize("size,cases,lawyers,courts", [
        (3, 0, 0, 0), (3, 100, 100, 100), (4, 5, 5, 5), (12, 1, 0, 9),
    ])
    def test_always_within_bounds(self, size, cases, lawyers, courts):
        assert 0 <= score_confidence(size, cases, lawyers, courts) <= 100


class TestRenderPath:
    """Tests for render_path()."""

    def test_closed_arrow_notation(self):
        assert render_path(["a", "b", "c", "a"]) == "a → b → c → a"

    def test_degenerate_input(self):
        assert render_path([]) == ""
        assert render_path(["a"]) == ""


class TestMaterializeCycle:
    """Tests for materialize_cycle()."""

    def test_collects_cases_lawyers_and_courts(self):
        cases = make_triangle(
            courts=("Campinas", "Santos", "Campinas"),
            lawyers=[["Dr. Souza"], ["Dr. Souza", "Dr. Reis"], []],
        )
        graph = build_relationship_graph(cases)
        cycle = ["bruno costa", "carla dias", "ana lima", "bruno costa"]

        match = materialize_cycle(cycle, graph, index_cases(cases))

        assert set(match["case_ids"]) == {"C1", "C2", "C3"}
        assert match["lawyers"] == ["Dr. Souza", "Dr. Reis"]
        assert set(match["courts"]) == {"Campinas", "Santos"}
        assert match["size"] == 3
        assert match["confidence"] == 30 + 20 + 15 + 6

    def test_every_case_satisfies_adjacency(self):
        cases = make_square() + [make_case("X1", claimant="Z", witnesses=["A"])]
        graph = build_relationship_graph(cases)
        index = index_cases(cases)
        cycle = ["a", "b", "c", "d", "a"]

        match = materialize_cycle(cycle, graph, index)

        assert "X1" not in match["case_ids"]
        for case_id in match["case_ids"]:
            case = index[case_id]
            claimant = normalize_name(case["claimant"])
            position = cycle.index(claimant, 1)
            assert normalize_name(cycle[position - 1]) in {
                normalize_name(w) for w in case["claimant_witnesses"]
            }

    def test_path_uses_display_names(self):
        cases = make_triangle()
        graph = build_relationship_graph(cases)
        cycle = ["bruno costa", "carla dias", "ana lima", "bruno costa"]
        display = {"bruno costa": "Bruno Costa", "carla dias": "Carla Dias", "ana lima": "Ana Lima"}

        match = materialize_cycle(cycle, graph, index_cases(cases), display)

        assert match["path"] == "Bruno Costa → Carla Dias → Ana Lima → Bruno Costa"
        assert match["people"] == ["Bruno Costa", "Carla Dias", "Ana Lima"]
        assert match["cycle"] == cycle


class TestDetectTriangulation:
    """Tests for detect_triangulation()."""

    def test_simple_triangle_same_court(self):
        result = detect_triangulation(make_triangle())

        assert result["detected"] is True
        assert len(result["matches"]) == 1
        match = result["matches"][0]
        assert match["size"] == 3
        assert len(match["cycle"]) == 4
        assert len(match["case_ids"]) == 3
        assert match["confidence"] == 65

    def test_parallel_cases_join_one_ring(self):
        """A second case on the same witness -> claimant edge adds to the ring's cases."""
        cases = make_triangle() + [
            make_case("C4", claimant="Ana Lima", witnesses=["Carla Dias"]),
        ]
        result = detect_triangulation(cases)

        assert len(result["matches"]) == 1
        assert set(result["matches"][0]["case_ids"]) == {"C1", "C2", "C3", "C4"}

    def test_triangle_spread_over_courts_is_penalized(self):
        cases = make_triangle(courts=("Campinas", "Santos", "Sorocaba"))
        result = detect_triangulation(cases)

        assert result["matches"][0]["confidence"] == 55

    def test_summary(self):
        result = detect_triangulation(make_triangle() + make_square())
        summary = result["summary"]

        assert summary["total_cycles"] == 2
        assert summary["largest_cycle_size"] == 4
        assert set(summary["involved_people"]) == {
            "ana lima", "bruno costa", "carla dias", "a", "b", "c", "d",
        }
        assert set(summary["affected_case_ids"]) == {"C1", "C2", "C3", "Q1", "Q2", "Q3", "Q4"}

    def test_no_cycles(self):
        cases = [
            make_case("C1", claimant="Joao", witnesses=["Maria"]),
            make_case("C2", claimant="Pedro", witnesses=["Ana"]),
        ]
        result = detect_triangulation(cases)

        assert result["detected"] is False
        assert result["matches"] == []
        assert result["summary"]["largest_cycle_size"] == 0

    def test_empty_input(self):
        result = detect_triangulation([])
        assert result["detected"] is False
        assert result["summary"]["total_cycles"] == 0
        assert result["summary"]["involved_people"] == []

    def test_name_variants_close_the_ring(self):
        cases = make_triangle()
        cases[2]["claimant_witnesses"] = ["  CARLA   dias "]
        assert detect_triangulation(cases)["detected"] is True

    def test_accepted_matches_respect_invariants(self):
        result = detect_triangulation(make_triangle() + make_square())
        for match in result["matches"]:
            assert match["size"] >= 3
            assert 0 <= match["confidence"] <= 100
            assert match["confidence"] >= MIN_CONFIDENCE


class TestUpdateCaseFlags:
    """Tests for update_case_flags()."""

    def test_flags_cases_in_cycle(self):
        cases = make_triangle() + [make_case("C9", claimant="Outro")]
        matches = detect_triangulation(cases)["matches"]

        updated = update_case_flags(cases, matches)

        flagged = {c["case_id"]: c for c in updated if c.get("triangulation_confirmed")}
        assert set(flagged) == {"C1", "C2", "C3"}
        assert flagged["C1"]["triangulation_diagram"] == matches[0]["path"]
        assert set(flagged["C1"]["triangulation_case_ids"]) == {"C1", "C2", "C3"}

    def test_untouched_cases_returned_unchanged(self):
        cases = make_triangle() + [make_case("C9", claimant="Outro")]
        matches = detect_triangulation(cases)["matches"]

        updated = update_case_flags(cases, matches)

        assert updated[3] is cases[3]

    def test_does_not_mutate_input(self):
        cases = make_triangle()
        snapshot = copy.deepcopy(cases)
        update_case_flags(cases, detect_triangulation(cases)["matches"])
        assert cases == snapshot

    def test_multiple_cycles_joined_in_diagram(self):
        cases = make_triangle()
        first = detect_triangulation(cases)["matches"][0]
        second = dict(first, path="x → y → z → x", case_ids=["C1", "C7"])

        updated = update_case_flags(cases, [first, second])

        assert updated[0]["triangulation_diagram"] == f"{first['path']}; x → y → z → x"
        assert set(updated[0]["triangulation_case_ids"]) == {"C1", "C2", "C3", "C7"}
        assert updated[1]["triangulation_diagram"] == first["path"]

    def test_idempotent(self):
        cases = make_triangle() + [make_case("C9")]
        matches = detect_triangulation(cases)["matches"]

        once = update_case_flags(cases, matches)
        twice = update_case_flags(once, matches)

        assert twice == once


class TestUpdateWitnessFlags:
    """Tests for update_witness_flags()."""

    def test_flags_members_by_canonical_name(self):
        cases = make_triangle()
        matches = detect_triangulation(cases)["matches"]
        witnesses = [
            make_witness("ANA  LIMA", 1, ["C1"]),
            make_witness("Bruno Costa", 1, ["C2"]),
            make_witness("Someone Else", 4, ["C9"]),
        ]

        updated = update_witness_flags(witnesses, matches)

        assert updated[0]["participated_in_triangulation"] is True
        assert set(updated[0]["triangulation_case_ids"]) == {"C1", "C2", "C3"}
        assert updated[1]["participated_in_triangulation"] is True
        assert updated[2] is witnesses[2]
        assert "participated_in_triangulation" not in updated[2]

    def test_idempotent(self):
        cases = make_triangle()
        matches = detect_triangulation(cases)["matches"]
        witnesses = [make_witness("Carla Dias", 2, ["C3"])]

        once = update_witness_flags(witnesses, matches)
        assert update_witness_flags(once, matches) == once
