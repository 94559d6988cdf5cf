from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

VILLAGE_MAP = "Village"

VILLAGE_OFFSET_X = 166.35
VILLAGE_OFFSET_Z = 176.22
VILLAGE_SCALE = 5.45

ZONE_VILLAGE_PRINCIPAL = "Village Principal"
ZONE_FERME = "Ferme"
ZONE_VILLAGE_PECHEUR = "Village Pêcheur"
ZONE_RUINES = "Ruines"
ZONE_RESTE_CARTE = "Reste de la Carte"


@dataclass(frozen=True)
class Zone:
    name: str
    z_range: Tuple[float, float]
    x_range: Tuple[float, float]

    def contains(self, x: float, z: float) -> bool:
        return self.z_range[0] <= z <= self.z_range[1] and self.x_range[0] <= x <= self.x_range[1]


# Checked in order; the first match wins.
VILLAGE_ZONES: Tuple[Zone, ...] = (
    Zone(ZONE_VILLAGE_PRINCIPAL, (-250, 100), (-450, -120)),
    Zone(ZONE_FERME, (-550, -250), (-150, 150)),
    Zone(ZONE_VILLAGE_PECHEUR, (150, 500), (-320, 80)),
    Zone(ZONE_RUINES, (-220, 200), (100, 450)),
)

ALL_ZONE_NAMES: Tuple[str, ...] = tuple(z.name for z in VILLAGE_ZONES) + (ZONE_RESTE_CARTE,)


def adjust_village_coordinates(raw_x: float, raw_z: float) -> Tuple[float, float]:
    x = (raw_x - VILLAGE_OFFSET_X) * VILLAGE_SCALE
    z = -(raw_z - VILLAGE_OFFSET_Z) * VILLAGE_SCALE
    return x, z


def village_zone(x: float, z: float) -> str:
    for zone in VILLAGE_ZONES:
        if zone.contains(x, z):
            return zone.name
    return ZONE_RESTE_CARTE


def village_zone_from_raw(raw_x: float, raw_z: float) -> str:
    return village_zone(*adjust_village_coordinates(raw_x, raw_z))
