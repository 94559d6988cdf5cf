from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Set

from . import extractors as ex
from .models import Match, _iso_z, _now_utc, sort_key_start
from .results import run_extractor, unwrap_or_none
from .roles import camp_key, player_camp
from .storage import write_json_atomic

logger = logging.getLogger(__name__)

CACHE_VERSION = "2.0.0"
CACHE_FILENAME = "playerStatsCache.json"
DATASETS = ("allGames", "moddedGames")

Cache = Dict[str, Any]


def empty_dataset() -> Dict[str, Any]:
    return {
        "totalGames": 0,
        "playerStats": {},
        "seriesState": {},
        "mapStats": [],
        "deathStats": None,
        "hunterStats": [],
        "campStats": [],
        "votingStats": None,
    }


def create_empty_cache() -> Cache:
    cache: Cache = {
        "version": CACHE_VERSION,
        "lastUpdated": _iso_z(_now_utc()),
        "lastProcessedGameId": None,
    }
    for name in DATASETS:
        cache[name] = empty_dataset()
    return cache


def cache_path(data_dir: Path) -> Path:
    return Path(data_dir) / CACHE_FILENAME


def load_cache(data_dir: Path) -> Cache:
    """
    Read the cache from ``data_dir``.

    Never raises: a missing, unreadable or outdated file yields a fresh empty
    cache, which makes the next run a full recomputation.
    """
    path = cache_path(data_dir)
    if not path.exists():
        logger.info("No existing cache found, starting fresh")
        return create_empty_cache()
    try:
        cache = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning(f"Failed to load cache {path}: {exc}. Starting fresh")
        return create_empty_cache()

    if not isinstance(cache, dict) or cache.get("version") != CACHE_VERSION:
        found = cache.get("version") if isinstance(cache, dict) else None
        logger.warning(
            f"Cache version mismatch (found {found}, expected {CACHE_VERSION}), creating fresh cache"
        )
        return create_empty_cache()

    for name in DATASETS:
        if not isinstance(cache.get(name), dict):
            cache[name] = empty_dataset()
    logger.info(
        f"Loaded cache from {path.name}: "
        + ", ".join(
            f"{name} {cache[name].get('totalGames', 0)} games / "
            f"{len(cache[name].get('playerStats') or {})} players"
            for name in DATASETS
        )
    )
    return cache


def save_cache(data_dir: Path, cache: Cache) -> Path:
    cache["version"] = CACHE_VERSION
    cache["lastUpdated"] = _iso_z(_now_utc())
    path = cache_path(data_dir)
    write_json_atomic(path, cache)
    logger.info(f"Saved cache to {path}")
    return path


def detect_new_matches(matches: Iterable[Match], dataset: Dict[str, Any]) -> List[Match]:
    """
    Matches appended since the cached count was recorded.

    The source is append-only, so after sorting by start time the new
    matches are simply the trailing ``len(matches) - totalGames`` entries.
    """
    ordered = sorted(matches, key=sort_key_start)
    cached_count = int(dataset.get("totalGames") or 0)
    if len(ordered) <= cached_count:
        logger.info(f"No new games detected ({len(ordered)} games, cache has {cached_count})")
        return []
    new_matches = ordered[cached_count:]
    logger.info(
        f"Detected {len(new_matches)} new games (total: {len(ordered)}, cached: {cached_count})"
    )
    return new_matches


def affected_players(matches: Iterable[Match]) -> Set[str]:
    return {player.player_id for match in matches for player in match.players}


def ensure_player_in_cache(dataset: Dict[str, Any], player_id: str, player_name: str) -> None:
    stats = dataset.setdefault("playerStats", {})
    series = dataset.setdefault("seriesState", {})
    stats.setdefault(
        player_id,
        {"playerId": player_id, "playerName": player_name, "gamesPlayed": 0, "wins": 0, "camps": {}},
    )
    series.setdefault(player_id, {"playerId": player_id, "playerName": player_name})
    # Names can change between matches; keep the latest
    stats[player_id]["playerName"] = player_name
    series[player_id]["playerName"] = player_name


def refresh_dataset(dataset: Dict[str, Any], matches: List[Match]) -> bool:
    """
    Bring one dataset snapshot up to date with ``matches``.

    Only players who appear in newly detected matches are rewritten; the
    others already hold their final counters. The map, camp, death, hunter
    and voting summaries are recomputed over every match. Returns False
    when nothing new was found.
    """
    new_matches = detect_new_matches(matches, dataset)
    if not new_matches:
        return False

    results = unwrap_or_none(run_extractor("Player", ex.extract_player_results, matches)) or {}
    series = unwrap_or_none(run_extractor("Series", ex.extract_series, matches)) or {}
    for player_id in sorted(affected_players(new_matches)):
        record = results.get(player_id)
        if record is None:
            continue
        ensure_player_in_cache(dataset, player_id, record.player_name)
        dataset["playerStats"][player_id].update(
            gamesPlayed=record.games_played,
            wins=record.wins,
            camps={
                camp: {"played": data.played, "won": data.won}
                for camp, data in record.camps.items()
            },
        )
        state = series.get(player_id)
        if state is not None:
            dataset["seriesState"][player_id].update(
                currentWinSeries=state.current_wins,
                currentLossSeries=state.current_losses,
                longestWinSeries=state.longest_wins,
                longestLossSeries=state.longest_losses,
            )
    _refresh_summaries(dataset, matches, results)
    dataset["totalGames"] = len(matches)
    return True


# --- Dataset summaries -------------------------------------------------------


def _name(results: Dict[str, ex.PlayerResults], player_id: str) -> str:
    record = results.get(player_id)
    return record.player_name if record is not None else player_id


def summarize_maps(matches: List[Match]) -> List[Dict[str, Any]]:
    """Games and winning camps per map, most played first."""
    maps: Dict[str, Dict[str, Any]] = {}
    for match in matches:
        name = match.map_name or "Unknown"
        entry = maps.setdefault(
            name, {"mapName": name, "totalGames": 0, "wins": {key: 0 for key in ex.CAMP_KEYS}}
        )
        entry["totalGames"] += 1
        for camp in sorted({camp_key(player_camp(p)) for p in match.players if p.victorious}):
            entry["wins"][camp] += 1
    return sorted(maps.values(), key=lambda m: (-m["totalGames"], m["mapName"]))


def summarize_deaths(
    deaths: Dict[str, ex.DeathStats], results: Dict[str, ex.PlayerResults], matches: List[Match]
) -> Dict[str, Any]:
    by_type: Dict[str, int] = {}
    for match in matches:
        for player in match.players:
            if ex.is_death(player):
                by_type[player.death_type] = by_type.get(player.death_type, 0) + 1
    return {
        "totalDeaths": sum(by_type.values()),
        "deathsByType": dict(sorted(by_type.items())),
        "players": [
            {
                "playerId": player_id,
                "playerName": _name(results, player_id),
                "gamesPlayed": data.games,
                "deaths": data.deaths,
                "dayOneDeaths": data.day_one_deaths,
                "kills": data.kills,
            }
            for player_id, data in sorted(deaths.items())
        ],
    }


def summarize_hunters(
    hunters: Dict[str, ex.HunterStats], results: Dict[str, ex.PlayerResults]
) -> List[Dict[str, Any]]:
    return [
        {
            "playerId": player_id,
            "playerName": _name(results, player_id),
            "gamesPlayed": data.games,
            "kills": data.kills,
            "goodKills": data.good_kills,
            "shots": data.shots,
            "accuracy": data.accuracy,
            "shotAccuracy": data.shot_accuracy,
        }
        for player_id, data in sorted(hunters.items())
    ]


def summarize_camps(results: Dict[str, ex.PlayerResults]) -> List[Dict[str, Any]]:
    return [
        {
            "playerId": player_id,
            "playerName": record.player_name,
            "camps": {
                camp: {"played": data.played, "won": data.won, "winRate": data.win_rate}
                for camp, data in record.camps.items()
            },
        }
        for player_id, record in sorted(results.items())
    ]


def summarize_voting(
    voting: Dict[str, ex.VotingStats], results: Dict[str, ex.PlayerResults]
) -> Dict[str, Any]:
    return {
        player_id: {
            "playerName": _name(results, player_id),
            "meetings": data.behavior.meetings,
            "votes": data.behavior.votes,
            "skips": data.behavior.skips,
            "abstentions": data.behavior.abstentions,
            "aggressiveness": data.behavior.aggressiveness,
            "accuracy": data.accuracy,
            "earlyVoteRate": data.early_vote_rate,
        }
        for player_id, data in sorted(voting.items())
    }


def _refresh_summaries(
    dataset: Dict[str, Any], matches: List[Match], results: Dict[str, ex.PlayerResults]
) -> None:
    dataset["mapStats"] = summarize_maps(matches)
    dataset["campStats"] = summarize_camps(results)
    deaths = unwrap_or_none(run_extractor("Death", ex.extract_deaths, matches))
    dataset["deathStats"] = (
        summarize_deaths(deaths, results, matches) if deaths is not None else None
    )
    hunters = unwrap_or_none(run_extractor("Hunter", ex.extract_hunter, matches))
    dataset["hunterStats"] = summarize_hunters(hunters, results) if hunters is not None else []
    voting = unwrap_or_none(run_extractor("Voting", ex.extract_voting, matches))
    dataset["votingStats"] = summarize_voting(voting, results) if voting is not None else None
