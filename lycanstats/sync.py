from __future__ import annotations

import logging
import re
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from tqdm import tqdm

from .config import (
    DATA_SOURCES,
    GAME_LOG_FILENAME,
    INDEX_FILENAME,
    JOUEURS_FILENAME,
    DataSource,
    SyncConfig,
)
from .models import _iso_z, _now_utc, coalesce, parse_datetime
from .source_client import SessionFileClient
from .storage import read_json, write_json_atomic

logger = logging.getLogger(__name__)

FILE_DATE_RE = re.compile(r"-(\d{14})\.json$")
DEFAULT_COLOR = "Gris"
_EPOCH = datetime.min.replace(tzinfo=timezone.utc)

RawGame = Dict[str, Any]


class SyncError(RuntimeError):
    """A sync run cannot continue; nothing has been written."""


@dataclass
class MergeStats:
    new: int = 0
    updated: int = 0
    skipped: int = 0
    filtered: int = 0
    corrupted: int = 0
    total: int = 0

    def to_json(self) -> Dict[str, int]:
        return {
            "newGames": self.new,
            "updatedGames": self.updated,
            "skippedGames": self.skipped,
            "filteredGames": self.filtered,
            "corruptedGames": self.corrupted,
            "totalGames": self.total,
        }


@dataclass
class MergeResult:
    games: List[RawGame]
    stats: MergeStats


@dataclass
class SyncReport:
    source: str
    files_listed: int = 0
    files_skipped_old: int = 0
    files_fetched: int = 0
    fetch_failures: List[str] = field(default_factory=list)
    merge: Optional[MergeStats] = None
    written: bool = False


# --- Session files -----------------------------------------------------------


def parse_file_date(url: str) -> Optional[datetime]:
    """UTC timestamp encoded in a ``Prefix-YYYYMMDDHHMMSS.json`` file name."""
    filename = url.rsplit("/", 1)[-1]
    match = FILE_DATE_RE.search(filename)
    if not match:
        return None
    try:
        return datetime.strptime(match.group(1), "%Y%m%d%H%M%S").replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def filter_recent_session_files(
    urls: List[str], cutoff: datetime, full_sync: bool = False
) -> Tuple[List[str], int]:
    """Keep files dated at or after ``cutoff``; undated names are always kept."""
    if full_sync:
        return list(urls), 0
    kept: List[str] = []
    skipped = 0
    for url in urls:
        file_date = parse_file_date(url)
        if file_date is None:
            logger.warning(f"Could not parse date from {url.rsplit('/', 1)[-1]}, including file")
            kept.append(url)
        elif file_date >= cutoff:
            kept.append(url)
        else:
            skipped += 1
    return kept, skipped


# --- Merge -------------------------------------------------------------------


def _start_key(game: Mapping[str, Any]) -> datetime:
    return coalesce(parse_datetime(game.get("StartDate")), default=_EPOCH)


def is_recent_game(game: Mapping[str, Any], cutoff: datetime) -> bool:
    end = parse_datetime(game.get("EndDate"))
    return end is not None and end >= cutoff


def merge_with_incremental(
    existing: Mapping[str, RawGame],
    fresh_logs: List[Mapping[str, Any]],
    source: DataSource,
    cutoff: datetime,
    min_players: int,
) -> MergeResult:
    """
    Merge freshly fetched session logs into the existing games keyed by id.

    Unknown ids are added. Ids already present are replaced only when either
    copy ended at or after ``cutoff``, keeping the cached ``LegacyData``.
    Games without an end date count as corrupted, undersized games or ids
    outside ``source`` as filtered. Inputs are left untouched.
    """
    stats = MergeStats()
    games: Dict[str, RawGame] = dict(existing)
    recent_existing = {gid for gid, game in existing.items() if is_recent_game(game, cutoff)}
    if recent_existing:
        logger.info(f"Found {len(recent_existing)} recent games that may be updated")

    for log in fresh_logs:
        version = log.get("ModVersion")
        for fresh in log.get("GameStats") or []:
            game_id = fresh.get("Id")
            if not fresh.get("EndDate"):
                stats.corrupted += 1
                continue
            if len(fresh.get("PlayerStats") or []) < min_players or not source.accepts(game_id):
                stats.filtered += 1
                continue

            cached = existing.get(game_id)
            if cached is None:
                games[game_id] = {**fresh, "Version": version, "Modded": True}
                stats.new += 1
            elif is_recent_game(fresh, cutoff) or game_id in recent_existing:
                updated = {**fresh, "Version": version, "Modded": True}
                legacy = coalesce(cached.get("LegacyData") or None, fresh.get("LegacyData"))
                if legacy is not None:
                    updated["LegacyData"] = legacy
                games[game_id] = updated
                stats.updated += 1
            else:
                stats.skipped += 1

    ordered = sorted(games.values(), key=_start_key)
    stats.total = len(ordered)
    return MergeResult(games=ordered, stats=stats)


# --- Derived files -----------------------------------------------------------


def load_existing_game_log(data_dir: Path) -> Optional[Dict[str, Any]]:
    path = Path(data_dir) / GAME_LOG_FILENAME
    if not path.exists():
        logger.info(f"No existing {GAME_LOG_FILENAME} found, will perform full sync")
        return None
    try:
        game_log = read_json(path)
    except (OSError, ValueError) as exc:
        logger.warning(f"Failed to load existing {GAME_LOG_FILENAME}: {exc}. Will perform full sync")
        return None
    if not isinstance(game_log, dict):
        logger.warning(f"Ignoring malformed {GAME_LOG_FILENAME}")
        return None
    logger.info(f"Loaded existing {GAME_LOG_FILENAME} with {game_log.get('TotalRecords', 0)} games")
    return game_log


def build_game_log(
    source: DataSource,
    merged: MergeResult,
    previous: Optional[Mapping[str, Any]],
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    previous_sources = (previous or {}).get("Sources") or {}
    legacy = coalesce(previous_sources.get("Legacy") or None, default=0)
    return {
        "ModVersion": source.mod_version_label,
        "TotalRecords": merged.stats.total,
        "Sources": {
            "Legacy": legacy,
            "AWS": merged.stats.total - legacy,
            "Merged": coalesce(previous_sources.get("Merged") or None, default=0),
        },
        "LastSync": _iso_z(now or _now_utc()),
        "GameStats": merged.games,
    }


def build_joueurs(games: List[Mapping[str, Any]]) -> Dict[str, Any]:
    """Player directory keyed by ID: latest username, most common colour."""
    names: Dict[str, str] = {}
    colors: Dict[str, Counter] = {}
    for game in games:
        for player in game.get("PlayerStats") or []:
            username = player.get("Username")
            player_id = coalesce(player.get("ID") or None, player.get("Id") or None)
            if not username or not player_id:
                continue
            names[player_id] = username
            counter = colors.setdefault(player_id, Counter())
            if player.get("Color"):
                counter[player["Color"]] += 1

    players = [
        {
            "Joueur": username,
            "ID": player_id,
            "Image": None,
            "Twitch": None,
            "Youtube": None,
            "Couleur": colors[player_id].most_common(1)[0][0] if colors[player_id] else DEFAULT_COLOR,
        }
        for player_id, username in names.items()
    ]
    players.sort(key=lambda p: p["Joueur"])
    return {
        "TotalRecords": len(players),
        "Players": players,
        "description": "Player data extracted from game logs. Social media links not available.",
    }


def placeholder_joueurs() -> Dict[str, Any]:
    return {
        "TotalRecords": 0,
        "Players": [],
        "description": "Player data not available in AWS-only sync mode",
    }


def build_index(files_fetched: int, total_games: int, description: str) -> Dict[str, Any]:
    return {
        "sources": {
            "legacy": "Not available (AWS-only sync)",
            "aws": f"{files_fetched} files from S3 bucket",
            "unified": "gameLog.json (AWS sources only)",
        },
        "description": description,
        "totalGames": total_games,
    }


# --- Run ---------------------------------------------------------------------


def resolve_source(key: str) -> DataSource:
    source = DATA_SOURCES.get(key)
    if source is None:
        available = ", ".join(DATA_SOURCES)
        raise SyncError(f"Unknown data source: {key}. Available sources: {available}")
    return source


def fetch_game_logs(
    client: SessionFileClient, urls: List[str], delay_s: float, report: SyncReport
) -> List[Dict[str, Any]]:
    logs: List[Dict[str, Any]] = []
    for url in tqdm(urls, desc="Fetching session files", unit="file"):
        try:
            logs.append(client.fetch_game_log(url))
        except RuntimeError as exc:
            logger.warning(f"Failed to fetch game log {url}: {exc}")
            report.fetch_failures.append(url)
            continue
        if delay_s > 0:
            time.sleep(delay_s)
    return logs


def sync_data_source(
    source_key: str,
    config: SyncConfig,
    base_dir: Path = Path("."),
    full_sync: bool = False,
    client: Optional[SessionFileClient] = None,
    now: Optional[datetime] = None,
) -> SyncReport:
    """
    Fetch recent session files for ``source_key`` and merge them into its
    ``gameLog.json``, then refresh ``joueurs.json`` and ``index.json``.

    Raises SyncError before writing anything when the run cannot proceed.
    """
    source = resolve_source(source_key)
    if not config.stats_list_url:
        raise SyncError("STATS_LIST_URL environment variable not found")

    now = now or _now_utc()
    data_dir = Path(base_dir) / source.output_dir
    report = SyncReport(source=source.key)
    logger.info(f"Starting {source.name} data sync into {data_dir}")
    logger.info(f"Sync mode: {'FULL (forced)' if full_sync else 'INCREMENTAL'}")

    previous = None if full_sync else load_existing_game_log(data_dir)
    existing: Dict[str, RawGame] = {
        game["Id"]: game for game in (previous or {}).get("GameStats") or [] if game.get("Id")
    }
    game_cutoff = now - config.recent_window
    file_cutoff = now - config.file_age_window
    if existing:
        logger.info(
            f"Incremental sync: skip sessions older than {_iso_z(file_cutoff)}, "
            f"refresh games newer than {_iso_z(game_cutoff)}"
        )

    client = client or SessionFileClient(timeout_s=config.timeout_s, retries=config.retries)
    try:
        urls = client.fetch_stats_list(config.stats_list_url)
    except RuntimeError as exc:
        raise SyncError(f"Failed to fetch stats list: {exc}") from exc
    report.files_listed = len(urls)
    if not urls:
        raise SyncError("No game log files found in the stats list")

    urls, report.files_skipped_old = filter_recent_session_files(urls, file_cutoff, full_sync)
    if report.files_skipped_old:
        logger.info(
            f"File-level filtering: skipping {report.files_skipped_old} old session files "
            f"({len(urls)}/{report.files_listed} will be fetched)"
        )
    if not urls:
        logger.info(f"No recent session files to fetch, {source.name} data is up to date")
        return report

    logs = fetch_game_logs(client, urls, config.request_delay_s, report)
    report.files_fetched = len(logs)
    if not logs:
        raise SyncError("Failed to fetch any game log files")
    logger.info(f"Fetched {len(logs)} game log files ({len(report.fetch_failures)} failed)")

    merged = merge_with_incremental(existing, logs, source, game_cutoff, config.min_players)
    report.merge = merged.stats

    game_log = build_game_log(source, merged, previous, now)
    write_json_atomic(data_dir / GAME_LOG_FILENAME, game_log)
    joueurs = build_joueurs(merged.games) if source.generate_joueurs else placeholder_joueurs()
    write_json_atomic(data_dir / JOUEURS_FILENAME, joueurs)
    write_json_atomic(
        data_dir / INDEX_FILENAME,
        build_index(report.files_fetched, game_log["TotalRecords"], source.index_description),
    )
    report.written = True

    s = merged.stats
    logger.info(
        f"{source.name} sync complete: {s.new} new, {s.updated} updated, {s.skipped} unchanged, "
        f"{s.filtered} filtered, {s.corrupted} corrupted, {s.total} total"
    )
    return report
