"""
Domain extractors: one pure function per gameplay axis.

Every extractor takes the full list of matches of one dataset and returns
``Ok({player_id: shape})`` or ``Unavailable(reason)`` when the axis has no
data at all for that dataset.
"""

from __future__ import annotations

import math
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .models import Match, PlayerRecord, Vote, parse_timing, sort_key_start
from .results import ExtractorResult, Ok, Unavailable
from .roles import (
    CAMP_VILLAGEOIS,
    camp_key,
    final_camp,
    is_hunter,
    main_camp,
    player_camp,
)
from .zones import ALL_ZONE_NAMES, VILLAGE_MAP, village_zone_from_raw

SECONDS_PER_HOUR = 3600.0

HUNTER_DEATH_TYPES = {"BULLET", "BULLET_HUMAN", "BULLET_WOLF"}
NOT_A_DEATH = {"N/A", "SURVIVOR"}
NOT_A_KILL = {"VOTED", "STARVATION", "FALL", "BY_AVATAR_CHAIN", "SURVIVOR", "UNKNOWN", "N/A"}
WOLF_ROLE_NAMES = {"Loup", "Traître", "Louveteau"}

CAMP_KEYS = ("villageois", "loup", "solo")


def _per_hour(amount: float, seconds: float) -> float:
    if seconds <= 0:
        return 0.0
    return amount * SECONDS_PER_HOUR / seconds


def _rate(part: float, whole: float) -> Optional[float]:
    if whole <= 0:
        return None
    return part / whole * 100


# --- Results and camps -------------------------------------------------------


@dataclass
class CampRecord:
    played: int = 0
    won: int = 0

    @property
    def win_rate(self) -> Optional[float]:
        return _rate(self.won, self.played)


@dataclass
class PlayerResults:
    player_id: str
    player_name: str
    games_played: int = 0
    wins: int = 0
    camps: Dict[str, CampRecord] = field(
        default_factory=lambda: {key: CampRecord() for key in CAMP_KEYS}
    )

    @property
    def win_percent(self) -> float:
        if self.games_played == 0:
            return 0.0
        return round(self.wins / self.games_played * 100, 1)


def extract_player_results(matches: List[Match]) -> ExtractorResult[Dict[str, PlayerResults]]:
    players: Dict[str, PlayerResults] = {}
    for match in matches:
        for player in match.players:
            entry = players.setdefault(
                player.player_id, PlayerResults(player.player_id, player.username)
            )
            entry.player_name = player.username
            entry.games_played += 1
            camp = entry.camps[camp_key(player_camp(player))]
            camp.played += 1
            if player.victorious:
                entry.wins += 1
                camp.won += 1
    return Ok(players)


# --- Talking -----------------------------------------------------------------


@dataclass
class TalkingStats:
    games: int = 0
    seconds_outside: float = 0.0
    seconds_during: float = 0.0
    alive_seconds: float = 0.0

    @property
    def all_per_hour(self) -> float:
        return _per_hour(self.seconds_outside + self.seconds_during, self.alive_seconds)

    @property
    def outside_per_hour(self) -> float:
        return _per_hour(self.seconds_outside, self.alive_seconds)

    @property
    def during_per_hour(self) -> float:
        return _per_hour(self.seconds_during, self.alive_seconds)


def _match_has_talking(match: Match) -> bool:
    return any(
        (p.seconds_talked_outside or 0) > 0 or (p.seconds_talked_during or 0) > 0
        for p in match.players
    )


def extract_talking(matches: List[Match]) -> ExtractorResult[Dict[str, TalkingStats]]:
    with_data = [m for m in matches if _match_has_talking(m)]
    if not with_data:
        return Unavailable("no match carries talking time")
    stats: Dict[str, TalkingStats] = defaultdict(TalkingStats)
    for match in with_data:
        for player in match.players:
            alive = match.alive_seconds(player)
            if alive <= 0:
                continue
            entry = stats[player.player_id]
            entry.games += 1
            entry.seconds_outside += player.seconds_talked_outside or 0
            entry.seconds_during += player.seconds_talked_during or 0
            entry.alive_seconds += alive
    return Ok(dict(stats))


# --- Voting ------------------------------------------------------------------


@dataclass
class MeetingCounts:
    meetings: int = 0
    votes: int = 0
    skips: int = 0
    abstentions: int = 0

    @property
    def aggressiveness(self) -> Optional[float]:
        if self.meetings == 0:
            return None
        vote_rate = self.votes / self.meetings * 100
        skip_rate = self.skips / self.meetings * 100
        abstention_rate = self.abstentions / self.meetings * 100
        return vote_rate - skip_rate * 0.5 - abstention_rate * 0.7


@dataclass
class VotingStats:
    behavior: MeetingCounts = field(default_factory=MeetingCounts)
    by_camp: Dict[str, MeetingCounts] = field(
        default_factory=lambda: {key: MeetingCounts() for key in CAMP_KEYS}
    )
    cast_votes: int = 0
    votes_for_enemy: int = 0
    meetings_with_votes: int = 0
    early_votes: int = 0
    meeting_participation: Counter = field(default_factory=Counter)
    meeting_deaths: Counter = field(default_factory=Counter)

    @property
    def accuracy(self) -> Optional[float]:
        return _rate(self.votes_for_enemy, self.cast_votes)

    @property
    def early_vote_rate(self) -> Optional[float]:
        return _rate(self.early_votes, self.meetings_with_votes)

    def survival_at_meetings(self, camp: str) -> Optional[float]:
        attended = self.meeting_participation[camp]
        return _rate(attended - self.meeting_deaths[camp], attended)


def alive_at_meeting(player: PlayerRecord, meeting: int) -> bool:
    timing = parse_timing(player.death_timing)
    if timing is None:
        return True
    phase, number = timing
    if phase == "M":
        return meeting <= number
    if phase in ("N", "J"):
        return meeting < number
    return True


def extract_voting(matches: List[Match]) -> ExtractorResult[Dict[str, VotingStats]]:
    stats: Dict[str, VotingStats] = defaultdict(VotingStats)
    for match in matches:
        last_meeting = max((v.day for p in match.players for v in p.votes), default=0)
        for meeting in range(1, last_meeting + 1):
            ballots: Dict[str, Tuple[PlayerRecord, Vote]] = {}
            for p in match.players:
                for v in p.votes:
                    if v.day == meeting:
                        ballots.setdefault(p.player_id, (p, v))
            timed = sorted(
                (
                    (vote.date, voter)
                    for voter, vote in ballots.values()
                    if not vote.is_skip and vote.date is not None
                ),
                key=lambda item: item[0],
            )
            early_cut = math.ceil(len(timed) * 0.33)
            for index, (_, voter) in enumerate(timed):
                entry = stats[voter.player_id]
                entry.meetings_with_votes += 1
                if index < early_cut:
                    entry.early_votes += 1

            for player in match.players:
                if not alive_at_meeting(player, meeting):
                    continue
                entry = stats[player.player_id]
                camp = camp_key(final_camp(player))
                entry.meeting_participation[camp] += 1
                if player.death_timing == f"M{meeting}":
                    entry.meeting_deaths[camp] += 1

                counts = (entry.behavior, entry.by_camp[camp])
                ballot = ballots.get(player.player_id)
                if ballot is None:
                    for c in counts:
                        c.meetings += 1
                        c.abstentions += 1
                    continue
                vote = ballot[1]
                if vote.is_skip:
                    for c in counts:
                        c.meetings += 1
                        c.skips += 1
                    continue
                for c in counts:
                    c.meetings += 1
                    c.votes += 1
                entry.cast_votes += 1
                target = match.find_player(vote.target)
                if target is not None and final_camp(target) != final_camp(player):
                    entry.votes_for_enemy += 1
    return Ok(dict(stats))


# --- Hunter ------------------------------------------------------------------


@dataclass
class HunterStats:
    games: int = 0
    kills: int = 0
    good_kills: int = 0
    shots: int = 0

    @property
    def accuracy(self) -> Optional[float]:
        return _rate(self.good_kills, self.kills)

    @property
    def shot_accuracy(self) -> Optional[float]:
        if self.shots == 0:
            return None
        return min(self.kills / self.shots, 1.0) * 100


def _has_death_information(match: Match) -> bool:
    if not match.legacy_data:
        return True
    return match.legacy_data.get("deathInformationFilled") is True


def extract_hunter(matches: List[Match]) -> ExtractorResult[Dict[str, HunterStats]]:
    stats: Dict[str, HunterStats] = {}
    for match in matches:
        if not _has_death_information(match):
            continue
        hunters = set()
        for player in match.players:
            if not is_hunter(player):
                continue
            hunters.add(player.player_id)
            entry = stats.setdefault(player.player_id, HunterStats())
            entry.games += 1
            entry.shots += sum(
                1 for a in player.actions or [] if a.action_type == "HunterShoot"
            )
        for victim in match.players:
            if victim.death_type not in HUNTER_DEATH_TYPES:
                continue
            killer = match.find_player(victim.killer_name)
            if killer is None or killer.player_id not in hunters:
                continue
            entry = stats[killer.player_id]
            entry.kills += 1
            if main_camp(victim.main_role_initial) != CAMP_VILLAGEOIS:
                entry.good_kills += 1
    return Ok(stats)


# --- Deaths and kills --------------------------------------------------------


@dataclass
class CampDeaths:
    games: int = 0
    deaths: int = 0
    day_one_deaths: int = 0
    kills: int = 0


@dataclass
class DeathStats:
    games: int = 0
    deaths: int = 0
    day_one_deaths: int = 0
    kills: int = 0
    by_camp: Dict[str, CampDeaths] = field(
        default_factory=lambda: {key: CampDeaths() for key in CAMP_KEYS}
    )


def is_death(player: PlayerRecord) -> bool:
    return bool(player.death_type) and player.death_type not in NOT_A_DEATH


def is_kill(player: PlayerRecord) -> bool:
    return is_death(player) and bool(player.killer_name) and player.death_type not in NOT_A_KILL


def died_on_day_one(player: PlayerRecord) -> bool:
    timing = parse_timing(player.death_timing)
    return is_death(player) and timing is not None and timing[1] == 1


def extract_deaths(matches: List[Match]) -> ExtractorResult[Dict[str, DeathStats]]:
    if not matches:
        return Unavailable("no matches")
    stats: Dict[str, DeathStats] = defaultdict(DeathStats)
    for match in matches:
        for player in match.players:
            entry = stats[player.player_id]
            camp = entry.by_camp[camp_key(player_camp(player))]
            entry.games += 1
            camp.games += 1
            if is_death(player):
                entry.deaths += 1
                camp.deaths += 1
            if died_on_day_one(player):
                entry.day_one_deaths += 1
                camp.day_one_deaths += 1
        for victim in match.players:
            if not is_kill(victim):
                continue
            killer = match.find_player(victim.killer_name)
            if killer is None:
                continue
            entry = stats[killer.player_id]
            entry.kills += 1
            entry.by_camp[camp_key(player_camp(killer))].kills += 1
    return Ok(dict(stats))


# --- Loot --------------------------------------------------------------------


@dataclass
class CampLoot:
    games: int = 0
    loot: float = 0.0
    seconds: float = 0.0

    @property
    def per_hour(self) -> Optional[float]:
        if self.seconds <= 0:
            return None
        return _per_hour(self.loot, self.seconds)


@dataclass
class LootStats:
    games: int = 0
    loot: float = 0.0
    seconds: float = 0.0
    by_camp: Dict[str, CampLoot] = field(
        default_factory=lambda: {key: CampLoot() for key in CAMP_KEYS}
    )

    @property
    def per_hour(self) -> float:
        return _per_hour(self.loot, self.seconds)


def _match_has_loot(match: Match) -> bool:
    if match.harvest_done is not None:
        return True
    return any(p.total_collected_loot is not None for p in match.players)


def estimate_player_loot(match: Match, player: PlayerRecord) -> float:
    """Recorded loot, else the player's alive-time share of the match harvest."""
    if player.total_collected_loot is not None:
        return player.total_collected_loot
    harvest = match.harvest_done or 0.0
    if not match.players:
        return 0.0
    total_alive = sum(max(match.alive_seconds(p), 0.0) for p in match.players)
    alive = match.alive_seconds(player)
    if total_alive <= 0 or alive <= 0:
        return harvest / len(match.players)
    return alive / total_alive * harvest


def extract_loot(matches: List[Match]) -> ExtractorResult[Dict[str, LootStats]]:
    with_data = [m for m in matches if _match_has_loot(m)]
    if not with_data:
        return Unavailable("no match carries harvest data")
    stats: Dict[str, LootStats] = defaultdict(LootStats)
    for match in with_data:
        for player in match.players:
            alive = match.alive_seconds(player)
            if alive <= 0:
                continue
            loot = estimate_player_loot(match, player)
            entry = stats[player.player_id]
            camp = entry.by_camp[camp_key(player_camp(player))]
            for bucket in (entry, camp):
                bucket.games += 1
                bucket.loot += loot
                bucket.seconds += alive
    return Ok(dict(stats))


# --- Series ------------------------------------------------------------------


@dataclass
class SeriesStats:
    current_wins: int = 0
    current_losses: int = 0
    longest_wins: int = 0
    longest_losses: int = 0


def extract_series(matches: List[Match]) -> ExtractorResult[Dict[str, SeriesStats]]:
    stats: Dict[str, SeriesStats] = defaultdict(SeriesStats)
    for match in sorted(matches, key=sort_key_start):
        for player in match.players:
            entry = stats[player.player_id]
            if player.victorious:
                entry.current_wins += 1
                entry.current_losses = 0
                entry.longest_wins = max(entry.longest_wins, entry.current_wins)
            else:
                entry.current_losses += 1
                entry.current_wins = 0
                entry.longest_losses = max(entry.longest_losses, entry.current_losses)
    return Ok(dict(stats))


# --- Zones -------------------------------------------------------------------


@dataclass
class ZoneStats:
    counts: Counter = field(default_factory=Counter)

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    def percentages(self) -> Dict[str, float]:
        total = self.total
        if total == 0:
            return {name: 0.0 for name in ALL_ZONE_NAMES}
        return {name: self.counts[name] / total * 100 for name in ALL_ZONE_NAMES}

    @property
    def dominant_percentage(self) -> float:
        return max(self.percentages().values())


def extract_zones(matches: List[Match]) -> ExtractorResult[Dict[str, ZoneStats]]:
    village = [m for m in matches if m.map_name == VILLAGE_MAP]
    if not village:
        return Unavailable("no match played on the Village map")
    stats: Dict[str, ZoneStats] = defaultdict(ZoneStats)
    for match in village:
        for player in match.players:
            positions = [player.death_position] if player.death_position else []
            positions.extend(a.position for a in player.actions or [] if a.position)
            for pos in positions:
                stats[player.player_id].counts[village_zone_from_raw(pos.x, pos.z)] += 1
    return Ok(dict(stats))


# --- Wolf transformations ----------------------------------------------------


@dataclass
class WolfTransformStats:
    games_as_wolf: int = 0
    games_with_data: int = 0
    nights: int = 0
    transforms: int = 0
    untransforms: int = 0

    @property
    def transforms_per_night(self) -> float:
        return self.transforms / self.nights if self.nights else 0.0

    @property
    def untransforms_per_night(self) -> float:
        return self.untransforms / self.nights if self.nights else 0.0


def nights_as_wolf(death_timing: Optional[str], end_timing: Optional[str]) -> int:
    timing = parse_timing(death_timing or end_timing)
    if timing is None:
        return 0
    phase, number = timing
    if number < 1:
        return 0
    if phase == "N":
        return number
    if phase in ("J", "M"):
        return number - 1
    if phase == "U":
        return max(0, (number - 1) // 2)
    return 0


def extract_wolf_transforms(matches: List[Match]) -> ExtractorResult[Dict[str, WolfTransformStats]]:
    stats: Dict[str, WolfTransformStats] = defaultdict(WolfTransformStats)
    for match in matches:
        for player in match.players:
            if player.main_role_initial not in WOLF_ROLE_NAMES:
                continue
            nights = nights_as_wolf(player.death_timing, match.end_timing)
            if nights < 1:
                continue
            entry = stats[player.player_id]
            entry.games_as_wolf += 1
            if player.actions is None:
                continue
            entry.games_with_data += 1
            entry.nights += nights
            entry.transforms += sum(1 for a in player.actions if a.action_type == "Transform")
            entry.untransforms += sum(1 for a in player.actions if a.action_type == "Untransform")
    return Ok(dict(stats))


# --- Potions -----------------------------------------------------------------


@dataclass
class PotionStats:
    games_with_data: int = 0
    potions: int = 0
    alive_seconds: float = 0.0

    @property
    def per_hour(self) -> float:
        return _per_hour(self.potions, self.alive_seconds)


def extract_potions(matches: List[Match]) -> ExtractorResult[Dict[str, PotionStats]]:
    stats: Dict[str, PotionStats] = defaultdict(PotionStats)
    for match in matches:
        for player in match.players:
            if player.actions is None:
                continue
            alive = match.alive_seconds(player)
            if alive <= 0:
                continue
            entry = stats[player.player_id]
            entry.games_with_data += 1
            entry.alive_seconds += alive
            entry.potions += sum(1 for a in player.actions if a.action_type == "DrinkPotion")
    if not stats:
        return Unavailable("no match carries action data")
    return Ok(dict(stats))
