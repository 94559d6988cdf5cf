from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from lycanstats.models import Match, match_from_json

START = datetime(2025, 1, 1, 20, 0, tzinfo=timezone.utc)


def iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def raw_player(
    name: str,
    role: str = "Villageois",
    victorious: bool = False,
    player_id: Optional[str] = None,
    **extra: Any,
) -> Dict[str, Any]:
    value: Dict[str, Any] = {
        "ID": player_id or f"id-{name}",
        "Username": name,
        "Color": "Rouge",
        "MainRoleInitial": role,
        "Victorious": victorious,
        "DeathType": "N/A",
        "Votes": [],
    }
    value.update(extra)
    return value


def filler_players(count: int, prefix: str = "filler") -> List[Dict[str, Any]]:
    return [raw_player(f"{prefix}{i}") for i in range(count)]


def raw_game(
    game_id: str,
    players: List[Dict[str, Any]],
    start: datetime = START,
    minutes: int = 30,
    ended: bool = True,
    map_name: str = "Château",
    **extra: Any,
) -> Dict[str, Any]:
    value: Dict[str, Any] = {
        "Id": game_id,
        "StartDate": iso(start),
        "MapName": map_name,
        "Modded": True,
        "PlayerStats": players,
    }
    if ended:
        value["EndDate"] = iso(start + timedelta(minutes=minutes))
    value.update(extra)
    return value


def build_match(game_id: str, players: List[Dict[str, Any]], **kwargs: Any) -> Match:
    return match_from_json(raw_game(game_id, players, **kwargs))
