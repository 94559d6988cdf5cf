from __future__ import annotations

import math
from bisect import bisect_left
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .aggregate import AggregatedPlayer
from .config import PERCENTILE_THRESHOLDS

EXTREME_HIGH = "EXTREME_HIGH"
HIGH = "HIGH"
ABOVE_AVERAGE = "ABOVE_AVERAGE"
AVERAGE = "AVERAGE"
BELOW_AVERAGE = "BELOW_AVERAGE"
LOW = "LOW"
EXTREME_LOW = "EXTREME_LOW"

CATEGORIES = (EXTREME_LOW, LOW, BELOW_AVERAGE, AVERAGE, ABOVE_AVERAGE, HIGH, EXTREME_HIGH)
LOW_SIDE = (EXTREME_LOW, LOW, BELOW_AVERAGE)


@dataclass(frozen=True)
class PercentileEntry:
    value: float
    percentile: float
    category: str

    def to_json(self) -> Dict[str, object]:
        return {"value": self.value, "percentile": self.percentile, "category": self.category}


def _usable(value: Optional[float]) -> bool:
    if value is None or isinstance(value, bool):
        return False
    return not (isinstance(value, float) and math.isnan(value))


def calculate_percentile(value: float, distribution: Sequence[float]) -> float:
    """
    Percentile of ``value`` inside an ascending ``distribution``.

    The rank is the index of the first element >= value, scaled to 0..100.
    A value above every element ranks 100 and an empty distribution 50.
    """
    if not distribution:
        return 50.0
    index = bisect_left(distribution, value)
    if index == len(distribution):
        return 100.0
    return index / len(distribution) * 100


def percentile_category(
    percentile: float, thresholds: Mapping[str, float] = PERCENTILE_THRESHOLDS
) -> str:
    # High side first: 45 < p < 55 stays AVERAGE.
    if percentile >= thresholds[EXTREME_HIGH]:
        return EXTREME_HIGH
    if percentile >= thresholds[HIGH]:
        return HIGH
    if percentile >= thresholds[ABOVE_AVERAGE]:
        return ABOVE_AVERAGE
    if percentile <= thresholds[EXTREME_LOW]:
        return EXTREME_LOW
    if percentile <= thresholds[LOW]:
        return LOW
    if percentile <= thresholds[BELOW_AVERAGE]:
        return BELOW_AVERAGE
    return AVERAGE


def eligible_players(
    aggregated: Mapping[str, AggregatedPlayer], min_games: int
) -> List[AggregatedPlayer]:
    return [p for p in aggregated.values() if p.games_played >= min_games]


def build_distributions(players: Iterable[AggregatedPlayer]) -> Dict[str, Tuple[float, ...]]:
    """One ascending value tuple per stat, from the eligible players' non-null values."""
    collected: Dict[str, List[float]] = {}
    for player in players:
        for stat, value in player.stats.items():
            if _usable(value):
                collected.setdefault(stat, []).append(float(value))
    # sorted() is stable, so equal values keep player order
    return {stat: tuple(sorted(values)) for stat, values in collected.items()}


def compute_percentiles(
    player: AggregatedPlayer,
    distributions: Mapping[str, Sequence[float]],
    thresholds: Mapping[str, float] = PERCENTILE_THRESHOLDS,
) -> Dict[str, PercentileEntry]:
    entries: Dict[str, PercentileEntry] = {}
    for stat, value in player.stats.items():
        distribution = distributions.get(stat)
        if not _usable(value) or not distribution:
            continue
        percentile = calculate_percentile(float(value), distribution)
        entries[stat] = PercentileEntry(
            value=value,
            percentile=percentile,
            category=percentile_category(percentile, thresholds),
        )
    return entries
