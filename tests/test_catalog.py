import json

import pytest

from lycanstats.catalog import catalog_from_json, load_catalog
from lycanstats.percentiles import ABOVE_AVERAGE, EXTREME_HIGH, EXTREME_LOW, LOW


def test_bundled_catalog_loads(bundled_catalog) -> None:
    assert "winRate" in bundled_catalog.families
    assert len(bundled_catalog.combinations) > 50
    legende = next(r for r in bundled_catalog.combinations if r.id == "legende")
    floor = next(c for c in legende.conditions if c.stat == "gamesPlayed")
    assert floor.category is None
    assert floor.min_value == 100


def test_registry_lookups(bundled_catalog) -> None:
    assert bundled_catalog.stat_for_condition("survival") == "survivalRate"
    assert bundled_catalog.stat_for_condition("winSeries") == "longestWinSeries"
    assert bundled_catalog.stat_for_condition("campBalance") == "campBalance"
    assert bundled_catalog.stat_for_condition("unknownAlias") == "unknownAlias"
    assert bundled_catalog.family_for_stat("potionsPer60Min").key == "potionUsage"
    assert bundled_catalog.family_for_stat("killRateLoup") is None


def test_tier_fallbacks(bundled_catalog) -> None:
    survival = bundled_catalog.families["survival"]
    assert survival.tier_for(EXTREME_HIGH) is survival.tiers["high"]
    assert survival.tier_for(EXTREME_LOW) is survival.tiers["low"]
    assert survival.tier_for(ABOVE_AVERAGE) is None
    zone = bundled_catalog.families["zoneFerme"]
    assert zone.tier_for(LOW) is None


def test_catalog_is_read_only(bundled_catalog) -> None:
    with pytest.raises(TypeError):
        bundled_catalog.families["new"] = None


def test_missing_tier_text_is_none() -> None:
    catalog = catalog_from_json({"tiers": {}, "combinations": []})
    assert catalog.text("campBalance", "balanced") is None


def test_definitions_path_override(tmp_path, monkeypatch) -> None:
    path = tmp_path / "defs.json"
    path.write_text(
        json.dumps(
            {
                "tiers": {"winRate": {"high": {"title": "Winner", "emoji": "W"}}},
                "combinations": [
                    {"id": "solo", "title": "Solo", "priority": 5, "conditions": [{"stat": "winRate", "category": "HIGH"}]}
                ],
            }
        ),
        encoding="utf-8",
    )
    monkeypatch.setenv("LYCANS_TITLE_DEFINITIONS", str(path))
    catalog = load_catalog()
    assert list(catalog.families) == ["winRate"]
    assert catalog.families["winRate"].tiers["high"].description == ""
    assert catalog.combinations[0].conditions[0].category == "HIGH"
