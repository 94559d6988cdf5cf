from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .aggregate import AggregatedPlayer, RoleFrequency
from .catalog import ROLE_TITLE_KEYS, CombinationRule, Condition, TitleCatalog, TitleText
from .config import TitleConfig
from .percentiles import (
    ABOVE_AVERAGE,
    AVERAGE,
    BELOW_AVERAGE,
    EXTREME_HIGH,
    EXTREME_LOW,
    HIGH,
    LOW,
    PercentileEntry,
    build_distributions,
    compute_percentiles,
    eligible_players,
)

logger = logging.getLogger(__name__)

Percentiles = Mapping[str, PercentileEntry]

BASIC_PRIORITY = {
    EXTREME_HIGH: 8,
    EXTREME_LOW: 8,
    HIGH: 6,
    LOW: 6,
    ABOVE_AVERAGE: 4,
    BELOW_AVERAGE: 4,
    AVERAGE: 3,
}
CAMP_BALANCE_PRIORITY = 6
CAMP_ASSIGNMENT_PRIORITY = 3
ROLE_PRIORITY = 3

BALANCED = "BALANCED"
SPECIALIST = "SPECIALIST"
EXPECTED_WIN_RATES = {"winRateVillageois": 52, "winRateLoup": 28, "winRateSolo": 20}
BALANCED_MAX_SPREAD = 10
SPECIALIST_MIN_SPREAD = 15

CAMP_ASSIGNMENT_THRESHOLDS = (
    ("villageois", "campVillageoisPercent", 75),
    ("loup", "campLoupPercent", 45),
    ("solo", "campSoloPercent", 20),
)
ROLE_MIN_COUNT = 5
ROLE_MIN_PERCENT = 12

NEAR_MISS_MAX_GAP = 10


@dataclass
class ConditionResult:
    stat: str
    category: Optional[str]
    actual_value: Optional[float]
    actual_percentile: float

    def to_json(self) -> Dict[str, Any]:
        return {
            "stat": self.stat,
            "category": self.category,
            "actualValue": self.actual_value,
            "actualPercentile": self.actual_percentile,
        }


@dataclass
class TitleInstance:
    id: str
    title: str
    emoji: str
    description: str
    priority: int
    type: str
    category: Optional[str] = None
    percentile: Optional[float] = None
    stat: Optional[str] = None
    value: Optional[float] = None
    conditions: Optional[List[ConditionResult]] = None
    role_count: Optional[int] = None
    role_percentage: Optional[float] = None
    primary_owner: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "emoji": self.emoji,
            "description": self.description,
            "priority": self.priority,
            "type": self.type,
        }
        optional = (
            ("category", self.category),
            ("percentile", self.percentile),
            ("stat", self.stat),
            ("value", self.value),
            ("roleCount", self.role_count),
            ("rolePercentage", self.role_percentage),
            ("primaryOwner", self.primary_owner),
        )
        for key, value in optional:
            if value is not None:
                out[key] = value
        if self.conditions is not None:
            out["conditions"] = [c.to_json() for c in self.conditions]
        return out


@dataclass
class ConditionEvaluation:
    stat: str
    required_category: Optional[str]
    met: bool
    current_value: Optional[float] = None
    current_percentile: Optional[float] = None
    current_category: Optional[str] = None
    # Percentile points still needed; None when the condition is not percentile based
    gap: Optional[float] = None

    def to_json(self) -> Dict[str, Any]:
        return {
            "stat": self.stat,
            "requiredCategory": self.required_category,
            "met": self.met,
            "currentValue": self.current_value,
            "currentPercentile": self.current_percentile,
            "currentCategory": self.current_category,
            "gap": self.gap,
        }


@dataclass
class NearMissTitle:
    id: str
    title: str
    emoji: str
    description: str
    priority: int
    met_conditions: int
    total_conditions: int
    conditions: List[ConditionEvaluation]

    @property
    def met_ratio(self) -> float:
        return self.met_conditions / self.total_conditions

    @property
    def max_gap(self) -> float:
        gaps = [c.gap if c.gap is not None else math.inf for c in self.conditions if not c.met]
        return max(gaps, default=0.0)

    def to_json(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "emoji": self.emoji,
            "description": self.description,
            "priority": self.priority,
            "metConditions": self.met_conditions,
            "totalConditions": self.total_conditions,
            "conditions": [c.to_json() for c in self.conditions],
        }


@dataclass
class PlayerTitleProfile:
    player_id: str
    player_name: str
    games_played: int
    titles: List[TitleInstance]
    near_miss_titles: List[NearMissTitle] = field(default_factory=list)
    primary_title: Optional[TitleInstance] = None
    percentiles: Dict[str, PercentileEntry] = field(default_factory=dict)
    stats: Dict[str, Optional[float]] = field(default_factory=dict)

    def to_json(self) -> Dict[str, Any]:
        return {
            "playerId": self.player_id,
            "playerName": self.player_name,
            "gamesPlayed": self.games_played,
            "titles": [t.to_json() for t in self.titles],
            "primaryTitle": self.primary_title.to_json() if self.primary_title else None,
            "nearMissTitles": [n.to_json() for n in self.near_miss_titles],
            "percentiles": {k: v.to_json() for k, v in self.percentiles.items()},
            "stats": dict(self.stats),
        }


# --- Builders ----------------------------------------------------------------


def make_basic_title(
    family_key: str, text: TitleText, stat: str, entry: PercentileEntry
) -> TitleInstance:
    return TitleInstance(
        id=f"{family_key}_{entry.category.lower()}",
        title=text.title,
        emoji=text.emoji,
        description=text.description,
        priority=BASIC_PRIORITY[entry.category],
        type="basic",
        category=entry.category,
        percentile=entry.percentile,
        stat=stat,
        value=entry.value,
    )


def make_camp_balance_title(kind: str, text: TitleText) -> TitleInstance:
    return TitleInstance(
        id=f"campBalance_{kind.lower()}",
        title=text.title,
        emoji=text.emoji,
        description=text.description,
        priority=CAMP_BALANCE_PRIORITY,
        type="campBalance",
        category=kind,
        stat="campBalance",
    )


def make_combination_title(
    rule: CombinationRule, conditions: List[ConditionResult], percentile: float
) -> TitleInstance:
    return TitleInstance(
        id=rule.id,
        title=rule.title,
        emoji=rule.emoji,
        description=rule.description,
        priority=rule.priority,
        type="combination",
        percentile=percentile,
        conditions=conditions,
    )


def make_camp_assignment_title(
    camp: str, text: TitleText, stat: str, value: float
) -> TitleInstance:
    return TitleInstance(
        id=f"campAssignment_{camp}",
        title=text.title,
        emoji=text.emoji,
        description=text.description,
        priority=CAMP_ASSIGNMENT_PRIORITY,
        type="campAssignment",
        stat=stat,
        value=value,
    )


def make_role_title(key: str, text: TitleText, count: int, percentage: float) -> TitleInstance:
    return TitleInstance(
        id=f"role_{key}",
        title=text.title,
        emoji=text.emoji,
        description=text.description,
        priority=ROLE_PRIORITY,
        type="role",
        role_count=count,
        role_percentage=percentage,
    )


# --- Families ----------------------------------------------------------------


def generate_basic_titles(percentiles: Percentiles, catalog: TitleCatalog) -> List[TitleInstance]:
    titles: List[TitleInstance] = []
    for stat, entry in percentiles.items():
        family = catalog.family_for_stat(stat)
        if family is None:
            continue
        text = family.tier_for(entry.category)
        if text is not None:
            titles.append(make_basic_title(family.key, text, stat, entry))
    return titles


def check_camp_balance(percentiles: Percentiles, kind: Optional[str]) -> bool:
    normalized = [
        percentiles[stat].value - expected
        for stat, expected in EXPECTED_WIN_RATES.items()
        if stat in percentiles and percentiles[stat].value is not None
    ]
    if len(normalized) < 2:
        return False
    spread = max(normalized) - min(normalized)
    if kind == BALANCED:
        return spread <= BALANCED_MAX_SPREAD
    if kind == SPECIALIST:
        return spread > SPECIALIST_MIN_SPREAD
    return False


def generate_camp_balance_titles(
    percentiles: Percentiles, catalog: TitleCatalog
) -> List[TitleInstance]:
    titles = []
    for kind in (BALANCED, SPECIALIST):
        text = catalog.text("campBalance", kind.lower())
        if text is not None and check_camp_balance(percentiles, kind):
            titles.append(make_camp_balance_title(kind, text))
    return titles


def category_matches(current: str, required: str, min_category: Optional[str]) -> bool:
    if required == HIGH:
        accepted = {HIGH, EXTREME_HIGH} | ({ABOVE_AVERAGE} if min_category else set())
        return current in accepted
    if required == LOW:
        accepted = {LOW, EXTREME_LOW} | ({BELOW_AVERAGE} if min_category else set())
        return current in accepted
    return current == required


def condition_met(
    condition: Condition, percentiles: Percentiles, catalog: TitleCatalog
) -> bool:
    if condition.stat == "campBalance":
        return check_camp_balance(percentiles, condition.category)
    entry = percentiles.get(catalog.stat_for_condition(condition.stat))
    if entry is None:
        if condition.stat == "gamesPlayed" and condition.min_value is not None:
            games = percentiles.get("gamesPlayed")
            return (games.value if games else 0) >= condition.min_value
        return False
    if condition.min_value is not None and entry.value < condition.min_value:
        return False
    if condition.category is None:
        # Floor-only condition
        return True
    if condition.category == BALANCED:
        return check_camp_balance(percentiles, BALANCED)
    return category_matches(entry.category, condition.category, condition.min_category)


def combination_percentile(conditions: List[ConditionResult]) -> float:
    # Zero percentiles are left out of the mean, so a genuine 0th percentile
    # and a missing entry are treated alike.
    valid = [c.actual_percentile for c in conditions if c.actual_percentile > 0]
    if not valid:
        return 0.0
    return sum(valid) / len(valid)


def _condition_results(
    rule: CombinationRule, percentiles: Percentiles, catalog: TitleCatalog
) -> List[ConditionResult]:
    results = []
    for condition in rule.conditions:
        entry = percentiles.get(catalog.stat_for_condition(condition.stat))
        results.append(
            ConditionResult(
                stat=condition.stat,
                category=condition.category,
                actual_value=entry.value if entry else None,
                actual_percentile=(entry.percentile if entry else None) or 0,
            )
        )
    return results


def generate_combination_titles(
    percentiles: Percentiles, catalog: TitleCatalog
) -> List[TitleInstance]:
    titles = []
    for rule in catalog.combinations:
        if rule.conditions and all(condition_met(c, percentiles, catalog) for c in rule.conditions):
            conditions = _condition_results(rule, percentiles, catalog)
            titles.append(make_combination_title(rule, conditions, combination_percentile(conditions)))
    return titles


def generate_camp_assignment_titles(
    stats: Mapping[str, Optional[float]], catalog: TitleCatalog
) -> List[TitleInstance]:
    titles = []
    for camp, stat, threshold in CAMP_ASSIGNMENT_THRESHOLDS:
        value = stats.get(stat)
        text = catalog.text("campAssignment", camp)
        if text is not None and value is not None and value >= threshold:
            titles.append(make_camp_assignment_title(camp, text, stat, value))
    return titles


def generate_role_titles(role_data: RoleFrequency, catalog: TitleCatalog) -> List[TitleInstance]:
    titles = []
    role_family = catalog.families.get("roleAssignment")
    if role_family is None or role_data.games_played == 0:
        return titles
    for role, count in role_data.roles.items():
        key = ROLE_TITLE_KEYS.get(role)
        if key is None or key not in role_family.tiers:
            continue
        percentage = count / role_data.games_played * 100
        if percentage >= ROLE_MIN_PERCENT and count >= ROLE_MIN_COUNT:
            titles.append(make_role_title(key, role_family.tiers[key], count, percentage))
    return titles


def sort_and_dedupe(titles: List[TitleInstance]) -> List[TitleInstance]:
    """Priority descending (stable), keeping the first instance of each id."""
    seen = set()
    result = []
    for title in sorted(titles, key=lambda t: -t.priority):
        if title.id in seen:
            continue
        seen.add(title.id)
        result.append(title)
    return result


# --- Near misses -------------------------------------------------------------


def _threshold_gap(
    required: str, min_category: Optional[str], percentile: float, thresholds: Mapping[str, float]
) -> Optional[float]:
    if required == HIGH:
        threshold = thresholds[ABOVE_AVERAGE] if min_category else thresholds[HIGH]
        gap = threshold - percentile
    elif required == EXTREME_HIGH:
        gap = thresholds[EXTREME_HIGH] - percentile
    elif required == LOW:
        threshold = thresholds[BELOW_AVERAGE] if min_category else thresholds[LOW]
        gap = percentile - threshold
    elif required == EXTREME_LOW:
        gap = percentile - thresholds[EXTREME_LOW]
    elif required == AVERAGE:
        gap = max(thresholds[BELOW_AVERAGE] - percentile, percentile - thresholds[ABOVE_AVERAGE])
    else:
        return None
    return max(gap, 0.0)


def evaluate_condition(
    condition: Condition,
    percentiles: Percentiles,
    catalog: TitleCatalog,
    thresholds: Mapping[str, float],
) -> ConditionEvaluation:
    met = condition_met(condition, percentiles, catalog)
    evaluation = ConditionEvaluation(
        stat=condition.stat, required_category=condition.category, met=met
    )
    entry = percentiles.get(catalog.stat_for_condition(condition.stat))
    if entry is not None and condition.stat != "campBalance":
        evaluation.current_value = entry.value
        evaluation.current_percentile = entry.percentile
        evaluation.current_category = entry.category
    if met:
        evaluation.gap = 0.0
        return evaluation
    if entry is None or condition.category is None or condition.stat == "campBalance":
        return evaluation
    if category_matches(entry.category, condition.category, condition.min_category):
        # The category holds; only a raw value floor failed
        return evaluation
    evaluation.gap = _threshold_gap(
        condition.category, condition.min_category, entry.percentile, thresholds
    )
    return evaluation


def _is_near_miss(evaluations: List[ConditionEvaluation]) -> bool:
    total = len(evaluations)
    unmet = [e for e in evaluations if not e.met]
    if total >= 3:
        return len(unmet) == 1
    if total == 2 and len(unmet) == 1:
        gap = unmet[0].gap
        return gap is not None and gap <= NEAR_MISS_MAX_GAP
    return False


def generate_near_miss_titles(
    percentiles: Percentiles,
    catalog: TitleCatalog,
    earned_ids: set,
    thresholds: Mapping[str, float],
) -> List[NearMissTitle]:
    near_misses = []
    for rule in catalog.combinations:
        if rule.id in earned_ids or not rule.conditions:
            continue
        evaluations = [evaluate_condition(c, percentiles, catalog, thresholds) for c in rule.conditions]
        if not _is_near_miss(evaluations):
            continue
        near_misses.append(
            NearMissTitle(
                id=rule.id,
                title=rule.title,
                emoji=rule.emoji,
                description=rule.description,
                priority=rule.priority,
                met_conditions=sum(1 for e in evaluations if e.met),
                total_conditions=len(evaluations),
                conditions=evaluations,
            )
        )
    near_misses.sort(key=lambda n: (-n.met_ratio, n.max_gap))
    return near_misses


# --- Per player --------------------------------------------------------------


def build_player_titles(
    player: AggregatedPlayer,
    percentiles: Percentiles,
    role_data: Optional[RoleFrequency],
    catalog: TitleCatalog,
    config: TitleConfig,
) -> List[TitleInstance]:
    titles = (
        generate_basic_titles(percentiles, catalog)
        + generate_camp_balance_titles(percentiles, catalog)
        + generate_combination_titles(percentiles, catalog)
        + generate_camp_assignment_titles(player.stats, catalog)
    )
    if role_data is not None and role_data.games_played >= config.min_role_games:
        titles += generate_role_titles(role_data, catalog)
    return sort_and_dedupe(titles)


def build_title_profiles(
    aggregated: Mapping[str, AggregatedPlayer],
    role_frequencies: Mapping[str, RoleFrequency],
    catalog: TitleCatalog,
    config: Optional[TitleConfig] = None,
) -> Dict[str, PlayerTitleProfile]:
    """Candidate titles and near misses for every player with enough games."""
    config = config or TitleConfig()
    eligible = eligible_players(aggregated, config.min_games)
    logger.info(f"{len(eligible)} players eligible for titles ({config.min_games}+ games)")

    distributions = build_distributions(eligible)
    profiles: Dict[str, PlayerTitleProfile] = {}
    for player in eligible:
        percentiles = compute_percentiles(player, distributions, config.thresholds)
        titles = build_player_titles(
            player, percentiles, role_frequencies.get(player.player_id), catalog, config
        )
        earned = {t.id for t in titles}
        profiles[player.player_id] = PlayerTitleProfile(
            player_id=player.player_id,
            player_name=player.player_name,
            games_played=player.games_played,
            titles=titles,
            near_miss_titles=generate_near_miss_titles(
                percentiles, catalog, earned, config.thresholds
            ),
            percentiles=percentiles,
            stats=dict(player.stats),
        )
    return profiles
