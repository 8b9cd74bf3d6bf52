"""Tests for the ingest module: name canonicalization, witness merging, loaders."""
import json

import pytest

from litigation_fraud.ingest import (
    case_lawyers,
    case_witnesses,
    index_cases,
    load_cases,
    load_witnesses,
    normalize_name,
)
from tests.fixtures import make_case


class TestNormalizeName:
    """Tests for normalize_name()."""

    def test_lowercases_and_trims(self):
        assert normalize_name("  Maria SANTOS ") == "maria santos"

    def test_collapses_internal_whitespace(self):
        assert normalize_name("Joao \t  da\nSilva") == "joao da silva"

    def test_empty_and_none(self):
        """Empty input is valid and maps to the empty key."""
        assert normalize_name("") == ""
        assert normalize_name("   ") == ""
        assert normalize_name(None) == ""

    def test_equal_keys_for_variants(self):
        assert normalize_name("PEDRO  Costa") == normalize_name("pedro costa")


class TestCaseWitnesses:
    """Tests for case_witnesses()."""

    def test_merges_three_lists_without_duplicates(self):
        case = make_case(
            "C1",
            witnesses=["Ana Lima", "Bruno"],
            respondent_witnesses=["Carla", "ana  lima"],
            all_witnesses=["Ana Lima", "Bruno", "Carla", "Davi"],
        )
        assert case_witnesses(case) == ["ana lima", "bruno", "carla", "davi"]

    def test_skips_empty_names(self):
        case = make_case("C1", witnesses=["", "  ", None, "Ana"])
        assert case_witnesses(case) == ["ana"]

    def test_missing_lists(self):
        assert case_witnesses({"case_id": "C1"}) == []


class TestCaseLawyers:
    """Tests for case_lawyers()."""

    def test_trims_and_drops_blanks(self):
        case = make_case("C1", lawyers=[" Dr. Souza ", "", None, "Dr. Lima"])
        assert case_lawyers(case) == ["Dr. Souza", "Dr. Lima"]

    def test_missing_lawyer_list(self):
        assert case_lawyers({"case_id": "C1", "claimant_lawyers": None}) == []


class TestIndexCases:
    """Tests for index_cases()."""

    def test_first_record_wins_on_duplicate_ids(self):
        first = make_case("C1", claimant="A")
        second = make_case("C1", claimant="B")
        index = index_cases([first, second, make_case("C2")])
        assert index["C1"] is first
        assert set(index) == {"C1", "C2"}

    def test_skips_cases_without_id(self):
        assert index_cases([{"claimant": "A"}]) == {}


class TestLoaders:
    """Tests for load_cases() and load_witnesses()."""

    def test_loads_cases_from_json(self, tmp_path):
        records = [
            {"case_id": "C1", "claimant": "Ana", "claimant_witnesses": ["Bruno"],
             "triangulation_confirmed": True},
            {"case_id": "C2", "claimant": "Bruno"},
        ]
        (tmp_path / "cases.json").write_text(json.dumps(records))

        cases = load_cases(str(tmp_path))

        assert len(cases) == 2
        assert cases[0]["claimant_witnesses"] == ["Bruno"]
        assert cases[0]["triangulation_confirmed"] is True
        assert cases[1]["claimant_witnesses"] == []
        assert cases[1]["claimant_lawyers"] == []
        assert cases[1]["direct_exchange"] is False

    def test_loads_witnesses_from_json(self, tmp_path):
        records = [
            {"name": "Bruno", "testimony_count": 12, "case_ids": ["C1", "C2"]},
            {"name": "Carla", "testimony_count": None, "case_ids": None},
        ]
        (tmp_path / "witnesses.json").write_text(json.dumps(records))

        witnesses = load_witnesses(str(tmp_path))

        assert witnesses[0]["testimony_count"] == 12
        assert witnesses[0]["case_ids"] == ["C1", "C2"]
        assert witnesses[1]["testimony_count"] == 0
        assert witnesses[1]["case_ids"] == []

    def test_missing_directory_input_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_cases(str(tmp_path))

    def test_unsupported_extension_raises(self, tmp_path):
        path = tmp_path / "cases.csv"
        path.write_text("case_id\nC1\n")
        with pytest.raises(ValueError):
            load_cases(path=str(path))
