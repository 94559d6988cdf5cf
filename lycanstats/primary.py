from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Dict, List, Mapping

from .percentiles import LOW_SIDE
from .titles import PlayerTitleProfile, TitleInstance

logger = logging.getLogger(__name__)

NEUTRAL_PERCENTILE = 50


@dataclass
class TitleClaim:
    player_id: str
    title: TitleInstance
    title_index: int
    strength: float


def adjusted_percentile(title: TitleInstance) -> float:
    """Distance from the low end, so extreme-low titles claim as strongly as extreme-high ones."""
    percentile = title.percentile if title.percentile is not None else NEUTRAL_PERCENTILE
    if title.category in LOW_SIDE:
        return 100 - percentile
    return percentile


def claim_strength(title: TitleInstance, title_index: int) -> float:
    return title.priority * 1000 + adjusted_percentile(title) * 10 - title_index


def collect_claims(profiles: Mapping[str, PlayerTitleProfile]) -> List[TitleClaim]:
    claims = [
        TitleClaim(
            player_id=player_id,
            title=title,
            title_index=index,
            strength=claim_strength(title, index),
        )
        for player_id, profile in profiles.items()
        for index, title in enumerate(profile.titles)
    ]
    # sort() is stable: equal strengths keep player then title order
    claims.sort(key=lambda c: -c.strength)
    return claims


def assign_primary_titles(profiles: Mapping[str, PlayerTitleProfile]) -> None:
    """
    Pick one primary title per player, preferring titles nobody else holds.

    Claims are granted strongest first; a player whose candidates were all
    taken falls back to their own top title. Every title whose id is owned
    by another player is annotated with that owner's name. Profiles are
    updated in place.
    """
    owners: Dict[str, str] = {}
    assigned: Dict[str, TitleInstance] = {}

    for claim in collect_claims(profiles):
        if claim.player_id in assigned or claim.title.id in owners:
            continue
        assigned[claim.player_id] = claim.title
        owners[claim.title.id] = profiles[claim.player_id].player_name

    for player_id, profile in profiles.items():
        if player_id not in assigned and profile.titles:
            assigned[player_id] = profile.titles[0]

    for player_id, profile in profiles.items():
        profile.titles = [_annotate_owner(t, owners, profile.player_name) for t in profile.titles]
        primary = assigned.get(player_id)
        profile.primary_title = (
            None if primary is None else _annotate_owner(primary, owners, profile.player_name)
        )

    _log_uniqueness(profiles)


def _annotate_owner(title: TitleInstance, owners: Dict[str, str], player_name: str) -> TitleInstance:
    owner = owners.get(title.id)
    if owner is None or owner == player_name:
        return title
    return replace(title, primary_owner=owner)


def _log_uniqueness(profiles: Mapping[str, PlayerTitleProfile]) -> None:
    primaries = [p.primary_title.id for p in profiles.values() if p.primary_title is not None]
    if not primaries:
        return
    unique = len(set(primaries))
    pct = round(unique / len(primaries) * 100)
    logger.info(f"Primary titles: {unique}/{len(primaries)} unique ({pct}%)")
