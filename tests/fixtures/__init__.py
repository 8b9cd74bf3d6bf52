"""Synthetic case and witness record builders for the pattern detectors."""


def make_case(case_id: str, **fields) -> dict:
    """Create a synthetic case record.

    Accepted shorthands: claimant, witnesses (claimant-side list),
    respondent_witnesses, all_witnesses, lawyers, court, state, hearing_date,
    and any of the four boolean flags.
    """
    case = {
        "case_id": case_id,
        "claimant": "",
        "claimant_witnesses": [],
        "respondent_witnesses": [],
        "all_witnesses": [],
        "claimant_lawyers": [],
        "court": "Sao Paulo",
        "state": "SP",
        "hearing_date": "2023-06-15",
        "triangulation_confirmed": False,
        "direct_exchange": False,
        "claimant_was_witness": False,
        "borrowed_evidence": False,
    }
    if "witnesses" in fields:
        case["claimant_witnesses"] = list(fields.pop("witnesses"))
    if "lawyers" in fields:
        case["claimant_lawyers"] = list(fields.pop("lawyers"))
    case.update(fields)
    return case


def make_witness(name: str, testimony_count: int = 1, case_ids=None, **fields) -> dict:
    """Create a synthetic witness record."""
    witness = {
        "name": name,
        "testimony_count": testimony_count,
        "case_ids": list(case_ids or []),
    }
    witness.update(fields)
    return witness


def make_triangle(courts=("Sao Paulo", "Sao Paulo", "Sao Paulo"), lawyers=None) -> list[dict]:
    """Three cases forming the ring Ana -> Bruno -> Carla -> Ana.

    Ana testifies in Bruno's case, Bruno in Carla's, Carla in Ana's.
    """
    lawyers = lawyers or [[], [], []]
    return [
        make_case("C1", claimant="Bruno Costa", witnesses=["Ana Lima"],
                  court=courts[0], lawyers=lawyers[0]),
        make_case("C2", claimant="Carla Dias", witnesses=["Bruno Costa"],
                  court=courts[1], lawyers=lawyers[1]),
        make_case("C3", claimant="Ana Lima", witnesses=["Carla Dias"],
                  court=courts[2], lawyers=lawyers[2]),
    ]


def make_square() -> list[dict]:
    """Four cases forming the ring A -> B -> C -> D -> A."""
    return [
        make_case("Q1", claimant="B", witnesses=["A"]),
        make_case("Q2", claimant="C", witnesses=["B"]),
        make_case("Q3", claimant="D", witnesses=["C"]),
        make_case("Q4", claimant="A", witnesses=["D"]),
    ]
