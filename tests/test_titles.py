from collections import Counter

import pytest

from lycanstats.aggregate import AggregatedPlayer, RoleFrequency
from lycanstats.catalog import Condition, catalog_from_json
from lycanstats.config import PERCENTILE_THRESHOLDS, TitleConfig
from lycanstats.percentiles import PercentileEntry, percentile_category
from lycanstats.titles import (
    ConditionResult,
    TitleInstance,
    build_player_titles,
    check_camp_balance,
    combination_percentile,
    condition_met,
    evaluate_condition,
    generate_basic_titles,
    generate_camp_assignment_titles,
    generate_camp_balance_titles,
    generate_combination_titles,
    generate_near_miss_titles,
    generate_role_titles,
    sort_and_dedupe,
)


def _text(title: str) -> dict:
    return {"title": title, "emoji": "*", "description": f"{title} description"}


def _rule(rule_id: str, priority: int, *conditions: dict) -> dict:
    return {
        "id": rule_id,
        "title": rule_id.title(),
        "emoji": "",
        "description": "",
        "priority": priority,
        "conditions": list(conditions),
    }


CATALOG = catalog_from_json(
    {
        "tiers": {
            "winRate": {
                "extremeHigh": _text("Unstoppable"),
                "high": _text("Winner"),
                "average": _text("Steady"),
                "low": _text("Loser"),
                "extremeLow": _text("Cursed"),
            },
            "talking": {"high": _text("Chatty"), "low": _text("Quiet")},
            "loot": {"high": _text("Harvester"), "low": _text("Idle")},
            "campBalance": {"balanced": _text("Balanced"), "specialist": _text("Specialist")},
            "campAssignment": {
                "villageois": _text("Villager"),
                "loup": _text("Wolf"),
                "solo": _text("Loner"),
            },
            "roleAssignment": {"chasseur": _text("Hunter"), "alchimiste": _text("Alchemist")},
        },
        "combinations": [
            _rule(
                "hyperactif",
                10,
                {"stat": "talking", "category": "HIGH"},
                {"stat": "loot", "category": "HIGH"},
            ),
            _rule(
                "triple",
                12,
                {"stat": "winRate", "category": "HIGH"},
                {"stat": "talking", "category": "HIGH"},
                {"stat": "loot", "category": "HIGH"},
            ),
            _rule("veteran", 9, {"stat": "gamesPlayed", "minValue": 100}),
            _rule("modest", 7, {"stat": "winRate", "category": "HIGH", "minCategory": "ABOVE_AVERAGE"}),
        ],
    }
)


def _entry(value: float, percentile: float) -> PercentileEntry:
    return PercentileEntry(value=value, percentile=percentile, category=percentile_category(percentile))


def _ids(titles) -> list:
    return [t.id for t in titles]


def test_basic_title_uses_category_tier_and_priority() -> None:
    titles = generate_basic_titles({"winRate": _entry(90, 90)}, CATALOG)
    assert len(titles) == 1
    title = titles[0]
    assert title.id == "winRate_extreme_high"
    assert title.title == "Unstoppable"
    assert title.priority == 8
    assert title.type == "basic"
    assert title.stat == "winRate"
    assert title.value == 90


def test_basic_title_falls_back_to_adjacent_tier() -> None:
    titles = generate_basic_titles({"talkingPer60Min": _entry(500, 95)}, CATALOG)
    assert _ids(titles) == ["talking_extreme_high"]
    assert titles[0].title == "Chatty"


def test_basic_titles_skip_unregistered_and_missing_tiers() -> None:
    percentiles = {"killRateLoup": _entry(2, 95), "talkingPer60Min": _entry(50, 50)}
    assert generate_basic_titles(percentiles, CATALOG) == []


def test_camp_balance() -> None:
    balanced = {
        "winRateVillageois": _entry(60, 50),
        "winRateLoup": _entry(35, 50),
        "winRateSolo": _entry(25, 50),
    }
    specialist = {"winRateVillageois": _entry(80, 90), "winRateLoup": _entry(20, 10)}
    single = {"winRateVillageois": _entry(80, 90)}

    assert check_camp_balance(balanced, "BALANCED")
    assert not check_camp_balance(balanced, "SPECIALIST")
    assert _ids(generate_camp_balance_titles(specialist, CATALOG)) == ["campBalance_specialist"]
    assert generate_camp_balance_titles(single, CATALOG) == []
    title = generate_camp_balance_titles(balanced, CATALOG)[0]
    assert title.priority == 6
    assert title.type == "campBalance"


def test_combination_requires_every_condition() -> None:
    percentiles = {"talkingPer60Min": _entry(300, 70), "lootPer60Min": _entry(40, 90)}
    titles = generate_combination_titles(percentiles, CATALOG)
    assert _ids(titles) == ["hyperactif"]
    assert titles[0].type == "combination"
    assert titles[0].percentile == 80
    assert [c.actual_percentile for c in titles[0].conditions] == [70, 90]


def test_min_category_accepts_above_average() -> None:
    strict = Condition(stat="winRate", category="HIGH")
    relaxed = Condition(stat="winRate", category="HIGH", min_category="ABOVE_AVERAGE")
    percentiles = {"winRate": _entry(55, 58)}
    assert not condition_met(strict, percentiles, CATALOG)
    assert condition_met(relaxed, percentiles, CATALOG)


def test_games_played_floor() -> None:
    assert "veteran" in _ids(generate_combination_titles({"gamesPlayed": _entry(120, 40)}, CATALOG))
    assert "veteran" not in _ids(generate_combination_titles({"gamesPlayed": _entry(80, 95)}, CATALOG))
    assert not condition_met(Condition(stat="loot", category="HIGH"), {}, CATALOG)


def test_combination_percentile_ignores_zero() -> None:
    conditions = [
        ConditionResult(stat="winRate", category="HIGH", actual_value=None, actual_percentile=0),
        ConditionResult(stat="loot", category="HIGH", actual_value=3, actual_percentile=60),
    ]
    assert combination_percentile(conditions) == 60
    assert combination_percentile(conditions[:1]) == 0


def test_camp_assignment_thresholds() -> None:
    stats = {"campVillageoisPercent": 80.0, "campLoupPercent": 44.0, "campSoloPercent": 20.0}
    titles = generate_camp_assignment_titles(stats, CATALOG)
    assert _ids(titles) == ["campAssignment_villageois", "campAssignment_solo"]
    assert all(t.priority == 3 for t in titles)
    assert titles[0].stat == "campVillageoisPercent"


def test_role_titles_need_count_and_share() -> None:
    frequency = RoleFrequency(games_played=20, roles=Counter({"Chasseur": 5, "Alchimiste": 2, "Loup": 10}))
    titles = generate_role_titles(frequency, CATALOG)
    assert _ids(titles) == ["role_chasseur"]
    assert titles[0].role_count == 5
    assert titles[0].role_percentage == 25
    assert titles[0].type == "role"


def test_role_titles_skipped_below_role_minimum() -> None:
    player = AggregatedPlayer(player_id="p", player_name="P", games_played=30)
    frequency = RoleFrequency(games_played=9, roles=Counter({"Chasseur": 9}))
    titles = build_player_titles(player, {}, frequency, CATALOG, TitleConfig())
    assert titles == []


def test_sort_and_dedupe_keeps_first_after_priority_sort() -> None:
    def title(tid: str, priority: int, title_text: str) -> TitleInstance:
        return TitleInstance(
            id=tid, title=title_text, emoji="", description="", priority=priority, type="basic"
        )

    result = sort_and_dedupe(
        [title("a", 3, "low a"), title("b", 6, "b"), title("a", 8, "high a"), title("c", 6, "c")]
    )
    assert _ids(result) == ["a", "b", "c"]
    assert result[0].title == "high a"


def test_player_titles_are_priority_sorted() -> None:
    player = AggregatedPlayer(
        player_id="p", player_name="P", games_played=30, stats={"campLoupPercent": 50.0}
    )
    percentiles = {
        "winRate": _entry(70, 90),
        "talkingPer60Min": _entry(300, 70),
        "lootPer60Min": _entry(40, 90),
    }
    titles = build_player_titles(player, percentiles, None, CATALOG, TitleConfig())
    assert [t.priority for t in titles] == sorted((t.priority for t in titles), reverse=True)
    assert _ids(titles)[0] == "triple"
    assert "campAssignment_loup" in _ids(titles)


@pytest.mark.parametrize("loot_percentile, expected", [(57, ["hyperactif"]), (53, [])])
def test_two_condition_near_miss_needs_small_gap(loot_percentile, expected) -> None:
    percentiles = {
        "talkingPer60Min": _entry(300, 70),
        "lootPer60Min": _entry(10, loot_percentile),
    }
    near = generate_near_miss_titles(percentiles, CATALOG, set(), PERCENTILE_THRESHOLDS)
    assert _ids(near) == expected


def test_near_miss_gap_reported() -> None:
    percentiles = {"talkingPer60Min": _entry(300, 70), "lootPer60Min": _entry(10, 57)}
    near = generate_near_miss_titles(percentiles, CATALOG, set(), PERCENTILE_THRESHOLDS)[0]
    assert near.met_conditions == 1
    assert near.total_conditions == 2
    unmet = [c for c in near.conditions if not c.met][0]
    assert unmet.stat == "loot"
    assert unmet.gap == 8


def test_three_condition_near_miss_ignores_gap() -> None:
    percentiles = {
        "winRate": _entry(70, 90),
        "talkingPer60Min": _entry(300, 70),
        "lootPer60Min": _entry(1, 20),
    }
    near = generate_near_miss_titles(percentiles, CATALOG, set(), PERCENTILE_THRESHOLDS)
    assert _ids(near) == ["triple"]


def test_earned_titles_are_not_near_misses() -> None:
    percentiles = {"talkingPer60Min": _entry(300, 70), "lootPer60Min": _entry(10, 60)}
    near = generate_near_miss_titles(percentiles, CATALOG, {"hyperactif"}, PERCENTILE_THRESHOLDS)
    assert near == []


def test_low_side_gap() -> None:
    condition = Condition(stat="talking", category="LOW")
    evaluation = evaluate_condition(
        condition, {"talkingPer60Min": _entry(10, 40)}, CATALOG, PERCENTILE_THRESHOLDS
    )
    assert not evaluation.met
    assert evaluation.gap == 5
    assert evaluation.current_category == "BELOW_AVERAGE"


def test_title_json_omits_unset_fields() -> None:
    title = generate_basic_titles({"winRate": _entry(90, 90)}, CATALOG)[0]
    data = title.to_json()
    assert data["category"] == "EXTREME_HIGH"
    assert "conditions" not in data
    assert "primaryOwner" not in data
