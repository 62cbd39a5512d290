"""Default municipality detector."""
from typing import Optional
from geomerge.core.models import Source

MUNICIPALITY_TAGS = frozenset({"city", "town", "village", "municipality"})
RELATION_ONLY_TAGS = frozenset({"hamlet"})
RELATION = "R"


class DefaultMunicipalityDetector:
    """A place is a municipality if its tag says so.

    A hamlet only counts when it has boundaries (comes from a relation).
    """

    def is_municipality(self, country_code: Optional[str], tag: Optional[str], source_kind: Optional[str], provenance: Source) -> bool:
        tag = (tag or "").strip().lower()
        if tag in MUNICIPALITY_TAGS:
            return True
        if tag in RELATION_ONLY_TAGS:
            return (source_kind or "").strip().upper() == RELATION
        return False
