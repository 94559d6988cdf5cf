from __future__ import annotations

from typing import Optional

from .models import PlayerRecord

CAMP_VILLAGEOIS = "Villageois"
CAMP_LOUP = "Loup"
CAMP_SOLO = "Solo"

VILLAGEOIS_ROLES = {"Villageois", "Villageois Élite", "Chasseur", "Alchimiste"}
WOLF_ROLES = {"Loup", "Traître", "Louveteau"}
LOVER_ROLES = {"Amoureux Loup", "Amoureux Villageois"}


def main_camp(role: Optional[str]) -> str:
    """Villageois, Loup or Solo for a role name; a missing role is a plain villager."""
    if role is None or role in VILLAGEOIS_ROLES:
        return CAMP_VILLAGEOIS
    if role in WOLF_ROLES:
        return CAMP_LOUP
    return CAMP_SOLO


def camp_key(camp: str) -> str:
    return {CAMP_VILLAGEOIS: "villageois", CAMP_LOUP: "loup"}.get(camp, "solo")


def player_camp(player: PlayerRecord) -> str:
    return main_camp(player.main_role_initial)


def final_camp(player: PlayerRecord) -> str:
    return main_camp(player.final_role)


def is_wolf(player: PlayerRecord) -> bool:
    return player.main_role_initial in WOLF_ROLES or player.final_role in WOLF_ROLES


def is_hunter(player: PlayerRecord) -> bool:
    return player.main_role_initial == "Chasseur" or player.final_role == "Chasseur"


def effective_role(player: PlayerRecord) -> Optional[str]:
    role = player.main_role_initial
    if role in LOVER_ROLES:
        role = "Amoureux"
    return player.power or role
