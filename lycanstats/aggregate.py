from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from . import extractors as ex
from .models import Match
from .results import run_extractor, unwrap_or_none
from .roles import effective_role
from .zones import (
    ZONE_FERME,
    ZONE_RESTE_CARTE,
    ZONE_RUINES,
    ZONE_VILLAGE_PECHEUR,
    ZONE_VILLAGE_PRINCIPAL,
)

logger = logging.getLogger(__name__)

MIN_CAMP_GAMES = {"villageois": 5, "loup": 5, "solo": 3}
MIN_MEETINGS = {"villageois": 5, "loup": 5, "solo": 3}
MIN_VOTES_FOR_ACCURACY = 10
MIN_MEETINGS_WITH_VOTES = 5
MIN_GAMES_AS_HUNTER = 10
MIN_ZONE_POSITIONS = 10
MIN_WOLF_GAMES = 5
MIN_WOLF_NIGHTS = 5
MIN_POTION_GAMES = 5

CAMP_SUFFIX = {"villageois": "Villageois", "loup": "Loup", "solo": "Solo"}

ZONE_STAT_KEYS = {
    ZONE_VILLAGE_PRINCIPAL: "zoneVillagePrincipal",
    ZONE_FERME: "zoneFerme",
    ZONE_VILLAGE_PECHEUR: "zoneVillagePecheur",
    ZONE_RUINES: "zoneRuines",
    ZONE_RESTE_CARTE: "zoneResteCarte",
}

Stats = Dict[str, Optional[float]]


@dataclass
class AggregatedPlayer:
    player_id: str
    player_name: str
    games_played: int
    stats: Stats = field(default_factory=dict)

    def to_json(self) -> Dict[str, object]:
        return {
            "playerId": self.player_id,
            "playerName": self.player_name,
            "gamesPlayed": self.games_played,
            "stats": dict(self.stats),
        }


@dataclass
class RoleFrequency:
    games_played: int = 0
    roles: Counter = field(default_factory=Counter)


def _camp_gated(record: ex.CampRecord, camp: str) -> Optional[float]:
    if record.played > MIN_CAMP_GAMES[camp]:
        return record.win_rate
    return None


def _apply_results(agg: AggregatedPlayer, results: ex.PlayerResults) -> None:
    stats = agg.stats
    stats["winRate"] = results.win_percent
    stats["gamesPlayed"] = results.games_played
    for camp, suffix in CAMP_SUFFIX.items():
        stats[f"winRate{suffix}"] = _camp_gated(results.camps[camp], camp)
    total = sum(c.played for c in results.camps.values())
    if total > 0:
        for camp, suffix in CAMP_SUFFIX.items():
            stats[f"camp{suffix}Percent"] = results.camps[camp].played / total * 100


def _apply_talking(stats: Stats, talking: Optional[ex.TalkingStats]) -> None:
    stats["talkingPer60Min"] = talking.all_per_hour if talking else None
    stats["talkingOutsidePer60Min"] = talking.outside_per_hour if talking else None
    stats["talkingDuringPer60Min"] = talking.during_per_hour if talking else None


def _apply_voting(stats: Stats, voting: Optional[ex.VotingStats]) -> None:
    if voting is None:
        voting = ex.VotingStats()
    stats["votingAggressiveness"] = voting.behavior.aggressiveness
    stats["votingAccuracy"] = (
        voting.accuracy if voting.cast_votes >= MIN_VOTES_FOR_ACCURACY else None
    )
    stats["votingFirst"] = (
        voting.early_vote_rate
        if voting.meetings_with_votes >= MIN_MEETINGS_WITH_VOTES
        else None
    )
    for camp, suffix in CAMP_SUFFIX.items():
        enough = voting.meeting_participation[camp] >= MIN_MEETINGS[camp]
        stats[f"survivalAtMeeting{suffix}"] = (
            voting.survival_at_meetings(camp) if enough else None
        )


def _apply_hunter(stats: Stats, hunter: Optional[ex.HunterStats]) -> None:
    gated = hunter is None or hunter.games < MIN_GAMES_AS_HUNTER
    stats["hunterGames"] = None if gated else hunter.games
    stats["hunterAccuracy"] = None if gated else hunter.accuracy
    stats["hunterShotAccuracy"] = None if gated else hunter.shot_accuracy


def _apply_deaths(stats: Stats, games_played: int, deaths: Optional[ex.DeathStats]) -> None:
    # No death data for the player: the whole axis is unknown, not zero
    if deaths is None or games_played <= 0:
        for key in ("survivalRate", "survivalDay1Rate", "killRate"):
            stats[key] = None
        for suffix in CAMP_SUFFIX.values():
            stats[f"killRate{suffix}"] = None
            stats[f"survivalRate{suffix}"] = None
            stats[f"survivalDay1Rate{suffix}"] = None
        return
    stats["survivalRate"] = (games_played - deaths.deaths) / games_played * 100
    stats["survivalDay1Rate"] = (games_played - deaths.day_one_deaths) / games_played * 100
    stats["killRate"] = deaths.kills / games_played
    for camp, suffix in CAMP_SUFFIX.items():
        data = deaths.by_camp[camp]
        if data.games == 0:
            stats[f"killRate{suffix}"] = None
            stats[f"survivalRate{suffix}"] = None
            stats[f"survivalDay1Rate{suffix}"] = None
            continue
        stats[f"killRate{suffix}"] = data.kills / data.games
        stats[f"survivalRate{suffix}"] = (data.games - data.deaths) / data.games * 100
        stats[f"survivalDay1Rate{suffix}"] = (data.games - data.day_one_deaths) / data.games * 100


def _apply_series(stats: Stats, series: Optional[ex.SeriesStats]) -> None:
    stats["longestWinSeries"] = series.longest_wins if series else None
    stats["longestLossSeries"] = series.longest_losses if series else None


def _apply_loot(stats: Stats, loot: Optional[ex.LootStats]) -> None:
    stats["lootPer60Min"] = loot.per_hour if loot else None
    for camp, suffix in CAMP_SUFFIX.items():
        data = loot.by_camp[camp] if loot else None
        stats[f"loot{suffix}Per60Min"] = (
            data.per_hour if data is not None and data.games > MIN_CAMP_GAMES[camp] else None
        )


def _apply_zones(stats: Stats, zones: Optional[ex.ZoneStats]) -> None:
    if zones is None or zones.total < MIN_ZONE_POSITIONS:
        for key in ZONE_STAT_KEYS.values():
            stats[key] = None
        stats["zoneDominantPercentage"] = None
        stats["zoneTotalPositions"] = None
        return
    percentages = zones.percentages()
    for zone_name, key in ZONE_STAT_KEYS.items():
        stats[key] = percentages[zone_name]
    stats["zoneDominantPercentage"] = zones.dominant_percentage
    stats["zoneTotalPositions"] = zones.total


def _apply_wolf(stats: Stats, wolf: Optional[ex.WolfTransformStats]) -> None:
    gated = wolf is None or wolf.games_with_data < MIN_WOLF_GAMES or wolf.nights < MIN_WOLF_NIGHTS
    stats["wolfTransformRate"] = None if gated else wolf.transforms_per_night
    stats["wolfUntransformRate"] = None if gated else wolf.untransforms_per_night


def _apply_potions(stats: Stats, potions: Optional[ex.PotionStats]) -> None:
    gated = potions is None or potions.games_with_data < MIN_POTION_GAMES
    stats["potionsPer60Min"] = None if gated else potions.per_hour


def aggregate_player_stats(matches: List[Match]) -> Dict[str, AggregatedPlayer]:
    """
    Merge every domain extractor into one stat record per player.

    The result is a pure function of ``matches``. Stats below their sample
    gate, and every stat of an axis whose extractor was unavailable, are
    stored as None so "not applicable" stays distinct from zero.
    """
    logger.info(f"Computing statistics from {len(matches)} matches")

    results = unwrap_or_none(run_extractor("Player", ex.extract_player_results, matches)) or {}
    talking = unwrap_or_none(run_extractor("Talking", ex.extract_talking, matches)) or {}
    voting = unwrap_or_none(run_extractor("Voting", ex.extract_voting, matches)) or {}
    hunter = unwrap_or_none(run_extractor("Hunter", ex.extract_hunter, matches)) or {}
    deaths = unwrap_or_none(run_extractor("Death", ex.extract_deaths, matches)) or {}
    series = unwrap_or_none(run_extractor("Series", ex.extract_series, matches)) or {}
    loot = unwrap_or_none(run_extractor("Loot", ex.extract_loot, matches)) or {}
    zones = unwrap_or_none(run_extractor("Zone", ex.extract_zones, matches)) or {}
    wolf = unwrap_or_none(run_extractor("Wolf transform", ex.extract_wolf_transforms, matches)) or {}
    potions = unwrap_or_none(run_extractor("Potion", ex.extract_potions, matches)) or {}

    aggregated: Dict[str, AggregatedPlayer] = {}
    for player_id, player_results in results.items():
        agg = AggregatedPlayer(
            player_id=player_id,
            player_name=player_results.player_name,
            games_played=player_results.games_played,
        )
        _apply_results(agg, player_results)
        _apply_talking(agg.stats, talking.get(player_id))
        _apply_voting(agg.stats, voting.get(player_id))
        _apply_hunter(agg.stats, hunter.get(player_id))
        _apply_deaths(agg.stats, agg.games_played, deaths.get(player_id))
        _apply_series(agg.stats, series.get(player_id))
        _apply_loot(agg.stats, loot.get(player_id))
        _apply_zones(agg.stats, zones.get(player_id))
        _apply_wolf(agg.stats, wolf.get(player_id))
        _apply_potions(agg.stats, potions.get(player_id))
        aggregated[player_id] = agg
    return aggregated


def compute_role_frequencies(matches: List[Match]) -> Dict[str, RoleFrequency]:
    frequencies: Dict[str, RoleFrequency] = {}
    for match in matches:
        for player in match.players:
            freq = frequencies.setdefault(player.player_id, RoleFrequency())
            freq.games_played += 1
            role = effective_role(player)
            if role:
                freq.roles[role] += 1
    return frequencies
