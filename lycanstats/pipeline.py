from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from .aggregate import aggregate_player_stats, compute_role_frequencies
from .cache import load_cache, refresh_dataset, save_cache
from .catalog import TitleCatalog, load_catalog
from .config import GAME_LOG_FILENAME, TITLES_FILENAME, DataSource, TitleConfig
from .models import Match, _iso_z, _now_utc, matches_from_json, sort_key_start
from .primary import assign_primary_titles
from .storage import read_json, write_json_atomic
from .sync import resolve_source
from .titles import PlayerTitleProfile, build_title_profiles

logger = logging.getLogger(__name__)

TITLES_VERSION = "1.0.0"


class PipelineError(RuntimeError):
    pass


@dataclass
class TitleRun:
    profiles: Dict[str, PlayerTitleProfile]
    document: Dict[str, Any]
    output_path: Path


def completed_matches(matches: List[Match]) -> List[Match]:
    completed = [m for m in matches if m.end_date is not None]
    if len(completed) < len(matches):
        logger.warning(f"Skipping {len(matches) - len(completed)} games without a readable EndDate")
    return completed


def modded_matches(matches: List[Match]) -> List[Match]:
    return [m for m in matches if m.modded and m.end_date is not None]


def compute_title_profiles(
    matches: List[Match], catalog: TitleCatalog, config: TitleConfig
) -> Dict[str, PlayerTitleProfile]:
    """Aggregate, rank and title every player, then settle primary titles."""
    aggregated = aggregate_player_stats(matches)
    role_frequencies = compute_role_frequencies(matches)
    profiles = build_title_profiles(aggregated, role_frequencies, catalog, config)
    assign_primary_titles(profiles)
    return profiles


def build_titles_document(
    profiles: Dict[str, PlayerTitleProfile],
    source: DataSource,
    games_analyzed: int,
    config: TitleConfig,
    generated_at: datetime,
) -> Dict[str, Any]:
    return {
        "version": TITLES_VERSION,
        "generatedAt": _iso_z(generated_at),
        "teamName": source.name,
        "totalPlayers": len(profiles),
        "minGamesRequired": config.min_games,
        "moddedGamesAnalyzed": games_analyzed,
        "percentileThresholds": dict(config.thresholds),
        "players": {pid: profile.to_json() for pid, profile in profiles.items()},
    }


def load_game_log(data_dir: Path) -> List[Match]:
    path = Path(data_dir) / GAME_LOG_FILENAME
    if not path.exists():
        raise PipelineError(f"Game log not found: {path}. Run the sync first")
    try:
        game_log = read_json(path)
    except (OSError, ValueError) as exc:
        raise PipelineError(f"Failed to read {path}: {exc}") from exc
    if not isinstance(game_log, dict):
        raise PipelineError(f"Unexpected game log shape in {path}")
    return matches_from_json(game_log.get("GameStats") or [])


def update_stats_cache(data_dir: Path, matches: List[Match], modded: List[Match]) -> bool:
    cache = load_cache(data_dir)
    changed = False
    for name, dataset_matches in (("allGames", matches), ("moddedGames", modded)):
        if refresh_dataset(cache[name], dataset_matches):
            changed = True
    if not changed:
        logger.info("Stats cache already up to date")
        return False
    latest = sorted(matches, key=sort_key_start)
    cache["lastProcessedGameId"] = latest[-1].id if latest else None
    save_cache(data_dir, cache)
    return True


def generate_titles(
    source_key: str,
    base_dir: Path = Path("."),
    catalog: Optional[TitleCatalog] = None,
    config: Optional[TitleConfig] = None,
    now: Optional[datetime] = None,
) -> Optional[TitleRun]:
    """
    Build ``playerTitles.json`` for one data source from its game log.

    Only modded matches with an end date are analysed. Returns None when
    there is nothing to analyse, in which case no file is touched.
    """
    source = resolve_source(source_key)
    catalog = catalog or load_catalog()
    config = config or TitleConfig()
    data_dir = Path(base_dir) / source.output_dir
    logger.info(f"Generating titles for {source.name} from {data_dir}")

    matches = completed_matches(load_game_log(data_dir))
    modded = modded_matches(matches)
    logger.info(f"Total games: {len(matches)}, modded games: {len(modded)}")
    if not modded:
        logger.warning("No modded games found, skipping title generation")
        return None

    profiles = compute_title_profiles(modded, catalog, config)
    document = build_titles_document(profiles, source, len(modded), config, now or _now_utc())
    output_path = data_dir / TITLES_FILENAME
    write_json_atomic(output_path, document)

    total_titles = sum(len(p.titles) for p in profiles.values())
    logger.info(f"Generated {total_titles} titles for {len(profiles)} players -> {output_path}")

    update_stats_cache(data_dir, matches, modded)
    return TitleRun(profiles=profiles, document=document, output_path=output_path)
