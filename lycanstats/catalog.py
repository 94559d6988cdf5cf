from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from .percentiles import (
    ABOVE_AVERAGE,
    AVERAGE,
    BELOW_AVERAGE,
    EXTREME_HIGH,
    EXTREME_LOW,
    HIGH,
    LOW,
)

# Tier keys tried in order for each percentile category.
TIER_FALLBACKS: Mapping[str, Tuple[str, ...]] = MappingProxyType(
    {
        EXTREME_HIGH: ("extremeHigh", "high"),
        HIGH: ("high",),
        ABOVE_AVERAGE: ("aboveAverage", "average"),
        AVERAGE: ("average",),
        BELOW_AVERAGE: ("belowAverage", "average"),
        LOW: ("low",),
        EXTREME_LOW: ("extremeLow", "low"),
    }
)

ROLE_TITLE_KEYS: Mapping[str, str] = MappingProxyType(
    {
        "Chasseur": "chasseur",
        "Alchimiste": "alchimiste",
        "Amoureux": "amoureux",
        "Agent": "agent",
        "Espion": "espion",
        "Idiot du Village": "idiot",
        "Chasseur de Prime": "chasseurDePrime",
        "Contrebandier": "contrebandier",
        "La Bête": "bete",
        "Vaudou": "vaudou",
        "Scientifique": "scientifique",
    }
)


@dataclass(frozen=True)
class TitleText:
    title: str
    emoji: str
    description: str


@dataclass(frozen=True)
class TitleFamily:
    key: str
    tiers: Mapping[str, TitleText]

    def tier_for(self, category: str) -> Optional[TitleText]:
        for tier in TIER_FALLBACKS.get(category, ()):
            if tier in self.tiers:
                return self.tiers[tier]
        return None


@dataclass(frozen=True)
class Condition:
    stat: str
    category: Optional[str] = None
    min_category: Optional[str] = None
    min_value: Optional[float] = None


@dataclass(frozen=True)
class CombinationRule:
    id: str
    title: str
    emoji: str
    description: str
    priority: int
    conditions: Tuple[Condition, ...]


@dataclass(frozen=True)
class RegistryEntry:
    stat_key: Optional[str]
    title_def_key: Optional[str]
    condition_alias: Optional[str]


STAT_REGISTRY: Tuple[RegistryEntry, ...] = (
    RegistryEntry("talkingPer60Min", "talking", "talking"),
    RegistryEntry("talkingOutsidePer60Min", "talkingOutsideMeeting", "talkingOutsideMeeting"),
    RegistryEntry("talkingDuringPer60Min", "talkingDuringMeeting", "talkingDuringMeeting"),
    RegistryEntry("killRate", "killRate", "killRate"),
    RegistryEntry("killRateVillageois", None, "killRateVillageois"),
    RegistryEntry("killRateLoup", None, "killRateLoup"),
    RegistryEntry("killRateSolo", None, "killRateSolo"),
    RegistryEntry("survivalRate", "survival", "survival"),
    RegistryEntry("survivalDay1Rate", "survivalDay1", "survivalDay1"),
    RegistryEntry("survivalRateVillageois", None, "survivalVillageois"),
    RegistryEntry("survivalRateLoup", None, "survivalLoup"),
    RegistryEntry("survivalRateSolo", None, "survivalSolo"),
    RegistryEntry("survivalDay1RateVillageois", None, "survivalDay1Villageois"),
    RegistryEntry("survivalDay1RateLoup", None, "survivalDay1Loup"),
    RegistryEntry("survivalDay1RateSolo", None, "survivalDay1Solo"),
    RegistryEntry("survivalAtMeetingVillageois", None, "survivalAtMeetingVillageois"),
    RegistryEntry("survivalAtMeetingLoup", None, "survivalAtMeetingLoup"),
    RegistryEntry("survivalAtMeetingSolo", None, "survivalAtMeetingSolo"),
    RegistryEntry("lootPer60Min", "loot", "loot"),
    RegistryEntry("lootVillageoisPer60Min", "lootVillageois", "lootVillageois"),
    RegistryEntry("lootLoupPer60Min", "lootLoup", "lootLoup"),
    RegistryEntry("votingAggressiveness", "votingAggressive", "votingAggressive"),
    RegistryEntry("votingFirst", "votingFirst", "votingFirst"),
    RegistryEntry("votingAccuracy", "votingAccuracy", "votingAccuracy"),
    RegistryEntry("hunterAccuracy", "hunterAccuracy", "hunterAccuracy"),
    RegistryEntry("hunterShotAccuracy", "hunterShotAccuracy", "hunterShotAccuracy"),
    RegistryEntry("winRate", "winRate", "winRate"),
    RegistryEntry("winRateVillageois", "winRateVillageois", "winRateVillageois"),
    RegistryEntry("winRateLoup", "winRateLoup", "winRateLoup"),
    RegistryEntry("winRateSolo", "winRateSolo", "winRateSolo"),
    RegistryEntry("longestWinSeries", "winSeries", "winSeries"),
    RegistryEntry("longestLossSeries", "lossSeries", "lossSeries"),
    RegistryEntry("gamesPlayed", "participation", "gamesPlayed"),
    RegistryEntry("zoneVillagePrincipal", "zoneVillagePrincipal", "zoneVillagePrincipal"),
    RegistryEntry("zoneFerme", "zoneFerme", "zoneFerme"),
    RegistryEntry("zoneVillagePecheur", "zoneVillagePecheur", "zoneVillagePecheur"),
    RegistryEntry("zoneRuines", "zoneRuines", "zoneRuines"),
    RegistryEntry("zoneResteCarte", "zoneResteCarte", "zoneResteCarte"),
    RegistryEntry("zoneDominantPercentage", "zoneDominantPercentage", "zoneDominantPercentage"),
    RegistryEntry("wolfTransformRate", "wolfTransformRate", "wolfTransformRate"),
    RegistryEntry("wolfUntransformRate", "wolfUntransformRate", "wolfUntransformRate"),
    RegistryEntry("potionsPer60Min", "potionUsage", "potionUsage"),
    RegistryEntry("campVillageoisPercent", None, None),
    RegistryEntry("campLoupPercent", None, None),
    RegistryEntry("campSoloPercent", None, "campSolo"),
    # Virtual: evaluated from the camp win rates, never a percentile entry
    RegistryEntry(None, None, "campBalance"),
)


@dataclass(frozen=True)
class TitleCatalog:
    families: Mapping[str, TitleFamily]
    combinations: Tuple[CombinationRule, ...]
    registry: Tuple[RegistryEntry, ...] = STAT_REGISTRY
    stat_to_family: Mapping[str, str] = field(init=False, repr=False)
    condition_to_stat: Mapping[str, str] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        stat_to_family = {
            e.stat_key: e.title_def_key for e in self.registry if e.stat_key and e.title_def_key
        }
        condition_to_stat = {
            e.condition_alias: e.stat_key or e.condition_alias
            for e in self.registry
            if e.condition_alias
        }
        object.__setattr__(self, "stat_to_family", MappingProxyType(stat_to_family))
        object.__setattr__(self, "condition_to_stat", MappingProxyType(condition_to_stat))

    def family_for_stat(self, stat_key: str) -> Optional[TitleFamily]:
        key = self.stat_to_family.get(stat_key)
        if key is None:
            return None
        return self.families.get(key)

    def stat_for_condition(self, alias: str) -> str:
        return self.condition_to_stat.get(alias, alias)

    def text(self, family: str, tier: str) -> Optional[TitleText]:
        found = self.families.get(family)
        if found is None:
            return None
        return found.tiers.get(tier)


def _title_text(value: Dict[str, Any]) -> TitleText:
    return TitleText(
        title=value["title"], emoji=value.get("emoji", ""), description=value.get("description", "")
    )


def _condition(value: Dict[str, Any]) -> Condition:
    min_value = value.get("minValue")
    return Condition(
        stat=value["stat"],
        category=value.get("category"),
        min_category=value.get("minCategory"),
        min_value=float(min_value) if min_value is not None else None,
    )


def catalog_from_json(data: Dict[str, Any]) -> TitleCatalog:
    families = {
        key: TitleFamily(
            key=key,
            tiers=MappingProxyType({tier: _title_text(text) for tier, text in tiers.items()}),
        )
        for key, tiers in (data.get("tiers") or {}).items()
    }
    combinations = tuple(
        CombinationRule(
            id=rule["id"],
            title=rule["title"],
            emoji=rule.get("emoji", ""),
            description=rule.get("description", ""),
            priority=int(rule.get("priority", 0)),
            conditions=tuple(_condition(c) for c in rule.get("conditions") or []),
        )
        for rule in data.get("combinations") or []
    )
    return TitleCatalog(families=MappingProxyType(families), combinations=combinations)


def _catalog_path() -> Path:
    # Allow override via env var; fall back to the bundled definitions
    override = os.environ.get("LYCANS_TITLE_DEFINITIONS")
    if override and Path(override).exists():
        return Path(override)
    return Path(__file__).with_name("title_definitions.json")


def load_catalog(path: Optional[Path] = None) -> TitleCatalog:
    source = path or _catalog_path()
    data = json.loads(source.read_text(encoding="utf-8"))
    return catalog_from_json(data)
