from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple, TypeVar

T = TypeVar("T")

# fromisoformat before 3.11 only takes 3 or 6 fraction digits
_FRACTION_RE = re.compile(r"\.(\d+)(?=[+-]\d{2}:\d{2}$|$)")


def coalesce(*candidates: Optional[T], default: Optional[T] = None) -> Optional[T]:
    """
    Return the first candidate that is not None, else ``default``.

    Candidates are resolved strictly left to right, so callers list them in
    the order of precedence they want (fresh value, cached value, fallback).
    Falsy values such as 0, "" or False are kept; only None is skipped.
    """
    for value in candidates:
        if value is not None:
            return value
    return default


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _iso_z(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_datetime(value: Any) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_timing(value: Optional[str]) -> Optional[Tuple[str, int]]:
    """Split a timing code such as ``N5`` into its phase letter and number."""
    if not value or len(value) < 2:
        return None
    phase = value[0].upper()
    try:
        number = int(value[1:])
    except ValueError:
        return None
    return phase, number


def _safe_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _safe_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


@dataclass(frozen=True)
class Position:
    x: float
    y: float
    z: float


@dataclass(frozen=True)
class RoleChange:
    new_role: str
    date: Optional[datetime]


@dataclass(frozen=True)
class Vote:
    day: int
    target: Optional[str]
    date: Optional[datetime]

    @property
    def is_skip(self) -> bool:
        return self.target == "Passé"


@dataclass(frozen=True)
class Action:
    action_type: Optional[str]
    action_name: Optional[str]
    target: Optional[str]
    timing: Optional[str]
    date: Optional[datetime]
    position: Optional[Position]


@dataclass
class PlayerRecord:
    player_id: str
    username: str
    color: Optional[str]
    main_role_initial: Optional[str]
    role_changes: List[RoleChange]
    power: Optional[str]
    secondary_role: Optional[str]
    death_date: Optional[datetime]
    death_timing: Optional[str]
    death_position: Optional[Position]
    death_type: Optional[str]
    killer_name: Optional[str]
    victorious: bool
    votes: List[Vote]
    seconds_talked_outside: Optional[float]
    seconds_talked_during: Optional[float]
    total_collected_loot: Optional[float]
    # None when the match log carries no action data for this player
    actions: Optional[List[Action]]

    @property
    def final_role(self) -> Optional[str]:
        if self.role_changes:
            return self.role_changes[-1].new_role
        return self.main_role_initial

    @property
    def has_talking_data(self) -> bool:
        return self.seconds_talked_outside is not None or self.seconds_talked_during is not None


@dataclass
class Match:
    id: str
    displayed_id: Optional[str]
    start_date: Optional[datetime]
    end_date: Optional[datetime]
    map_name: Optional[str]
    harvest_goal: Optional[float]
    harvest_done: Optional[float]
    end_timing: Optional[str]
    version: Optional[str]
    modded: bool
    legacy_data: Optional[Dict[str, Any]]
    players: List[PlayerRecord]
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    def player_end(self, player: PlayerRecord) -> Optional[datetime]:
        return coalesce(player.death_date, self.end_date)

    def alive_seconds(self, player: PlayerRecord) -> float:
        """Seconds between match start and the player's death or the match end."""
        end = self.player_end(player)
        if self.start_date is None or end is None:
            return 0.0
        return max((end - self.start_date).total_seconds(), 0.0)

    def find_player(self, username: Optional[str]) -> Optional[PlayerRecord]:
        if not username:
            return None
        for player in self.players:
            if player.username == username:
                return player
        return None


def _position_from_json(value: Any) -> Optional[Position]:
    if not isinstance(value, dict):
        return None
    x = _safe_float(value.get("x"))
    z = _safe_float(value.get("z"))
    if x is None or z is None:
        return None
    return Position(x=x, y=_safe_float(value.get("y")) or 0.0, z=z)


def _action_from_json(value: Dict[str, Any]) -> Action:
    return Action(
        action_type=value.get("ActionType"),
        action_name=value.get("ActionName"),
        target=value.get("ActionTarget"),
        timing=value.get("Timing"),
        date=parse_datetime(value.get("Date")),
        position=_position_from_json(value.get("Position")),
    )


def player_from_json(value: Dict[str, Any]) -> PlayerRecord:
    username = value.get("Username") or ""
    actions_raw = value.get("Actions")
    return PlayerRecord(
        player_id=str(coalesce(value.get("ID") or None, username, default="")),
        username=username,
        color=value.get("Color"),
        main_role_initial=value.get("MainRoleInitial"),
        role_changes=[
            RoleChange(
                new_role=change.get("NewMainRole"),
                date=parse_datetime(change.get("RoleChangeDateIrl")),
            )
            for change in value.get("MainRoleChanges") or []
            if change.get("NewMainRole")
        ],
        power=value.get("Power") or None,
        secondary_role=value.get("SecondaryRole") or None,
        death_date=parse_datetime(value.get("DeathDateIrl")),
        death_timing=value.get("DeathTiming") or None,
        death_position=_position_from_json(value.get("DeathPosition")),
        death_type=value.get("DeathType") or None,
        killer_name=value.get("KillerName") or None,
        victorious=bool(value.get("Victorious")),
        votes=[
            Vote(
                day=_safe_int(vote.get("Day")),
                target=vote.get("Target"),
                date=parse_datetime(vote.get("Date")),
            )
            for vote in value.get("Votes") or []
        ],
        seconds_talked_outside=_safe_float(value.get("SecondsTalkedOutsideMeeting")),
        seconds_talked_during=_safe_float(value.get("SecondsTalkedDuringMeeting")),
        total_collected_loot=_safe_float(value.get("TotalCollectedLoot")),
        actions=[_action_from_json(a) for a in actions_raw] if isinstance(actions_raw, list) else None,
    )


def match_from_json(value: Dict[str, Any]) -> Match:
    return Match(
        id=str(value.get("Id") or ""),
        displayed_id=value.get("DisplayedId"),
        start_date=parse_datetime(value.get("StartDate")),
        end_date=parse_datetime(value.get("EndDate")),
        map_name=value.get("MapName"),
        harvest_goal=_safe_float(value.get("HarvestGoal")),
        harvest_done=_safe_float(value.get("HarvestDone")),
        end_timing=value.get("EndTiming") or None,
        version=value.get("Version"),
        modded=bool(value.get("Modded")),
        legacy_data=value.get("LegacyData"),
        players=[player_from_json(p) for p in value.get("PlayerStats") or []],
        raw=value,
    )


def matches_from_json(values: Iterable[Dict[str, Any]]) -> List[Match]:
    return [match_from_json(v) for v in values]


def sort_key_start(match: Match) -> datetime:
    return coalesce(match.start_date, default=datetime.min.replace(tzinfo=timezone.utc))
