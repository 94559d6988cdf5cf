from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta
from types import MappingProxyType
from typing import Mapping, Optional


LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

GAME_LOG_FILENAME = "gameLog.json"
JOUEURS_FILENAME = "joueurs.json"
INDEX_FILENAME = "index.json"
TITLES_FILENAME = "playerTitles.json"

RECENT_GAMES_WINDOW = timedelta(hours=6)
FILE_AGE_WINDOW = timedelta(days=7)
MIN_PLAYERS = 8
DEFAULT_REQUEST_DELAY_S = 0.5
DEFAULT_TIMEOUT_S = 30

MIN_GAMES_FOR_TITLES = 25
MIN_GAMES_FOR_ROLE_TITLES = 10

PERCENTILE_THRESHOLDS: Mapping[str, float] = MappingProxyType(
    {
        "EXTREME_HIGH": 85,
        "HIGH": 65,
        "ABOVE_AVERAGE": 55,
        "BELOW_AVERAGE": 45,
        "LOW": 35,
        "EXTREME_LOW": 15,
    }
)


@dataclass(frozen=True)
class DataSource:
    key: str
    name: str
    output_dir: str
    id_prefix: Optional[str]
    mod_version_label: str
    index_description: str
    generate_joueurs: bool = True

    def accepts(self, game_id: str) -> bool:
        if not self.id_prefix:
            return True
        return str(game_id or "").startswith(self.id_prefix)


DATA_SOURCES: Mapping[str, DataSource] = MappingProxyType(
    {
        "main": DataSource(
            key="main",
            name="Main Team",
            output_dir="data",
            id_prefix="Ponce-",
            mod_version_label="Multiple AWS Versions",
            index_description=(
                "Game logs from AWS S3 bucket only. Updated periodically via GitHub Actions."
            ),
        ),
        "discord": DataSource(
            key="discord",
            name="Discord Team",
            output_dir="data/discord",
            id_prefix="Nales-",
            mod_version_label="Discord Team - Multiple AWS Versions",
            index_description=(
                "Game logs from AWS S3 bucket for Discord Team. "
                "Updated periodically via GitHub Actions."
            ),
        ),
    }
)


@dataclass(frozen=True)
class SyncConfig:
    stats_list_url: Optional[str]
    recent_window: timedelta = RECENT_GAMES_WINDOW
    file_age_window: timedelta = FILE_AGE_WINDOW
    min_players: int = MIN_PLAYERS
    request_delay_s: float = DEFAULT_REQUEST_DELAY_S
    timeout_s: int = DEFAULT_TIMEOUT_S
    retries: int = 3


@dataclass(frozen=True)
class TitleConfig:
    min_games: int = MIN_GAMES_FOR_TITLES
    min_role_games: int = MIN_GAMES_FOR_ROLE_TITLES
    thresholds: Mapping[str, float] = field(default_factory=lambda: PERCENTILE_THRESHOLDS)


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def sync_config_from_env() -> SyncConfig:
    return SyncConfig(
        stats_list_url=os.environ.get("STATS_LIST_URL") or None,
        request_delay_s=_env_float("LYCANS_REQUEST_DELAY", DEFAULT_REQUEST_DELAY_S),
        timeout_s=int(_env_float("LYCANS_HTTP_TIMEOUT", DEFAULT_TIMEOUT_S)),
    )
