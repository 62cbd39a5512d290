"""Per-country conventions of the map extract admin_level tag."""
from typing import Dict, Optional
from geomerge.core.config import DEFAULT_PLACE_LEVEL

# admin_level of a municipality, when it differs from the default
PLACE_LEVELS: Dict[str, int] = {
    "AT": 8,
    "BE": 8,
    "BR": 8,
    "CH": 8,
    "DE": 8,
    "ES": 8,
    "FR": 8,
    "GB": 10,
    "IT": 8,
    "JP": 7,
    "NL": 8,
    "PL": 7,
    "RU": 8,
    "US": 8,
}

# Highest admin_level a sub-place can have
MAX_SUB_PLACE_LEVEL = 10

# admin_level 2 is the country
MIN_ADMINISTRATIVE_LEVEL = 3


def _parse_level(level) -> Optional[int]:
    if level is None:
        return None
    if isinstance(level, int):
        return level
    level = str(level).strip()
    return int(level) if level.isdecimal() else None


class AdmLevelPolicy:
    """Default administrative level policy, driven by PLACE_LEVELS."""

    def __init__(self, place_levels: Optional[Dict[str, int]] = None, default_place_level: int = DEFAULT_PLACE_LEVEL):
        self.place_levels = dict(PLACE_LEVELS if place_levels is None else place_levels)
        self.default_place_level = default_place_level

    def place_level(self, country_code: Optional[str]) -> int:
        if country_code is None:
            return self.default_place_level
        return self.place_levels.get(country_code.upper(), self.default_place_level)

    def is_place_level(self, country_code: Optional[str], level) -> bool:
        level = _parse_level(level)
        return level is not None and level == self.place_level(country_code)

    def is_sub_place_level(self, country_code: Optional[str], level) -> bool:
        level = _parse_level(level)
        return level is not None and self.place_level(country_code) < level <= MAX_SUB_PLACE_LEVEL

    def should_be_imported_as_administrative(self, country_code: Optional[str], level: int) -> bool:
        return MIN_ADMINISTRATIVE_LEVEL <= level < self.place_level(country_code)
