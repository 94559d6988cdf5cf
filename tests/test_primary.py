from typing import List, Optional

from lycanstats.primary import adjusted_percentile, assign_primary_titles, claim_strength
from lycanstats.titles import PlayerTitleProfile, TitleInstance


def _title(
    tid: str, priority: int, percentile: Optional[float] = None, category: Optional[str] = None
) -> TitleInstance:
    return TitleInstance(
        id=tid,
        title=tid,
        emoji="",
        description="",
        priority=priority,
        type="basic",
        category=category,
        percentile=percentile,
    )


def _profile(name: str, titles: List[TitleInstance]) -> PlayerTitleProfile:
    return PlayerTitleProfile(player_id=name.lower(), player_name=name, games_played=30, titles=titles)


def test_claim_strength_formula() -> None:
    assert claim_strength(_title("t", 8, 90, "EXTREME_HIGH"), 1) == 8000 + 900 - 1
    assert adjusted_percentile(_title("t", 8, 5, "EXTREME_LOW")) == 95
    assert adjusted_percentile(_title("t", 10)) == 50


def test_contested_title_goes_to_stronger_claim() -> None:
    profiles = {
        "alice": _profile("Alice", [_title("winRate_extreme_high", 8, 95, "EXTREME_HIGH")]),
        "bob": _profile(
            "Bob",
            [
                _title("winRate_extreme_high", 8, 88, "EXTREME_HIGH"),
                _title("talking_high", 6, 70, "HIGH"),
            ],
        ),
    }
    assign_primary_titles(profiles)
    assert profiles["alice"].primary_title.id == "winRate_extreme_high"
    assert profiles["bob"].primary_title.id == "talking_high"
    assert profiles["bob"].primary_title.primary_owner is None
    assert profiles["bob"].titles[0].primary_owner == "Alice"


def test_extreme_low_outlier_competes_with_extreme_high() -> None:
    profiles = {
        "alice": _profile("Alice", [_title("survival_extreme_high", 8, 86, "EXTREME_HIGH")]),
        "bob": _profile(
            "Bob",
            [
                _title("survival_extreme_high", 8, 86, "EXTREME_HIGH"),
                _title("winRate_extreme_low", 8, 2, "EXTREME_LOW"),
            ],
        ),
    }
    assign_primary_titles(profiles)
    # Bob's 2nd-percentile title adjusts to 98 and outranks both 86s
    assert profiles["bob"].primary_title.id == "winRate_extreme_low"
    assert profiles["alice"].primary_title.id == "survival_extreme_high"


def test_exhausted_player_falls_back_to_duplicate_primary() -> None:
    profiles = {
        "alice": _profile("Alice", [_title("combo", 10, 80)]),
        "bob": _profile("Bob", [_title("combo", 10, 70)]),
        "carol": _profile("Carol", []),
    }
    assign_primary_titles(profiles)

    alice, bob, carol = profiles["alice"], profiles["bob"], profiles["carol"]
    assert alice.primary_title.id == "combo"
    assert alice.primary_title.primary_owner is None
    # Bob's only title was already claimed, so it is kept as a shared primary
    assert bob.primary_title.id == "combo"
    assert bob.primary_title.primary_owner == "Alice"
    assert bob.titles[0].primary_owner == "Alice"
    assert alice.titles[0].primary_owner is None
    assert carol.primary_title is None


def test_primaries_unique_when_alternatives_exist() -> None:
    profiles = {
        name.lower(): _profile(
            name,
            [_title("shared", 8, 90 - i, "EXTREME_HIGH"), _title(f"own_{name}", 4, 60, "ABOVE_AVERAGE")],
        )
        for i, name in enumerate(["Alice", "Bob", "Carol", "Dan"])
    }
    assign_primary_titles(profiles)
    primaries = [p.primary_title.id for p in profiles.values()]
    assert len(set(primaries)) == len(primaries) <= len(profiles)
    assert profiles["alice"].primary_title.id == "shared"


def test_resolution_is_deterministic() -> None:
    def build():
        return {
            "alice": _profile("Alice", [_title("x", 6, 70, "HIGH"), _title("y", 6, 70, "HIGH")]),
            "bob": _profile("Bob", [_title("x", 6, 70, "HIGH"), _title("y", 6, 70, "HIGH")]),
        }

    first, second = build(), build()
    assign_primary_titles(first)
    assign_primary_titles(second)
    assert {k: p.primary_title.id for k, p in first.items()} == {
        k: p.primary_title.id for k, p in second.items()
    }
    assert first["alice"].primary_title.id == "x"
    assert first["bob"].primary_title.id == "y"
