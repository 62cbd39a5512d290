"""Decide if a map-extract row is a place, a sub-place or a point of interest."""
from typing import Optional
from geomerge.core.interfaces import AdmLevelPolicy
from geomerge.core.models import FeatureKind
from geomerge.core.normalization import contains_digit

SUB_PLACE_TAGS = frozenset({"neighbourhood", "quarter", "isolated_dwelling", "suburb", "city_block", "borough"})
PLACE_TAGS = frozenset({"city", "village", "town", "hamlet"})
POI_TAG = "locality"


class FeatureClassifier:
    """Classify rows from their place tag, name and admin level."""

    def __init__(self, policy: AdmLevelPolicy):
        self.policy = policy

    def is_poi(self, tag: Optional[str], country_code: Optional[str], adm_level: Optional[str]) -> bool:
        return (tag or "").lower() == POI_TAG and not self.policy.is_place_level(country_code, adm_level)

    def is_sub_place(self, tag: Optional[str], country_code: Optional[str], adm_level: Optional[str]) -> bool:
        tag = (tag or "").lower()
        if tag in PLACE_TAGS:
            return False
        return tag in SUB_PLACE_TAGS or self.policy.is_sub_place_level(country_code, adm_level)

    def classify(self, name: Optional[str], tag: Optional[str], country_code: Optional[str], adm_level: Optional[str]) -> FeatureKind:
        """
        Classify a row. The point of interest check comes first.

        Args:
            name: Name of the row
            tag: Place tag (city, suburb, locality...)
            country_code: ISO country code
            adm_level: Raw admin_level tag

        Returns:
            FeatureKind.POI, FeatureKind.SUB_PLACE or FeatureKind.PLACE
        """
        if self.is_poi(tag, country_code, adm_level):
            return FeatureKind.POI
        if contains_digit(name) or self.is_sub_place(tag, country_code, adm_level):
            return FeatureKind.SUB_PLACE
        return FeatureKind.PLACE
