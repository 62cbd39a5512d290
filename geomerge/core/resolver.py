"""Find the existing record that represents the same entity as a row."""
from typing import Optional, List, Iterable, Callable
from shapely.geometry import Point
from shapely.geometry.base import BaseGeometry
from geomerge.core.config import CANDIDATE_SCORE_THRESHOLD, NAME_MATCH_THRESHOLD, SEARCH_RESULT_LIMIT
from geomerge.core.errors import ClassificationAmbiguity
from geomerge.core.fuzzy import is_same_name, is_same_alternate_names
from geomerge.core.interfaces import SearchService
from geomerge.core.models import CandidateMatch, FeatureKind
from geomerge.core.spatial import is_valid_shape, shape_contains
from geomerge.utils.logging import log_structured, log_error

ONLY_PLACE = (FeatureKind.PLACE,)
PLACE_AND_SUB_PLACE = (FeatureKind.PLACE, FeatureKind.SUB_PLACE)
ONLY_ADM = (FeatureKind.ADM,)


class CandidateResolver:
    """
    Resolve a row to a candidate returned by the search service.

    Searches on one placetype (or with no preferred target) return the
    first matching candidate not yet merged and not a municipality. A
    sub-place search over places and sub-places only looks at the top
    result and prefers a sub-place to merge into; a lone unmerged place on
    top is returned as a deletion candidate.
    """

    def __init__(
        self,
        search_service: SearchService,
        score_threshold: float = CANDIDATE_SCORE_THRESHOLD,
        name_threshold: float = NAME_MATCH_THRESHOLD,
        limit: int = SEARCH_RESULT_LIMIT,
        on_ambiguity: Optional[Callable[[ClassificationAmbiguity], None]] = None
    ):
        self.search_service = search_service
        self.score_threshold = score_threshold
        self.name_threshold = name_threshold
        self.limit = limit
        self.on_ambiguity = on_ambiguity

    def _search(self, name: str, location: Optional[Point], placetypes: Iterable[FeatureKind], country_code: Optional[str]) -> List[CandidateMatch]:
        try:
            return self.search_service.search(name, location, placetypes, country_code, limit=self.limit) or []
        except Exception as e:
            log_error(e, {
                "module": "resolver",
                "function": "_search",
                "name": name,
                "country_code": country_code,
            })
            return []

    def is_same(self, candidate: CandidateMatch, name: str, shape: Optional[BaseGeometry]) -> bool:
        """
        Check if a candidate is the same entity as the row.

        The names must match, or the search score be high enough (Munchen
        and Munich), or one of its alternate names match. When the row has a
        valid shape the candidate must also lie inside it.
        """
        if candidate is None:
            return False
        equivalent = (
            is_same_name(name, candidate.name, self.name_threshold)
            or candidate.score > self.score_threshold
            or is_same_alternate_names(name, candidate.alternate_names, self.name_threshold)
        )
        if not equivalent:
            return False
        if not is_valid_shape(shape):
            return True
        if candidate.lon is None or candidate.lat is None:
            log_structured("error", "No coordinates for candidate", feature_id=candidate.feature_id, name=name)
            return False
        try:
            return shape_contains(shape, candidate.lon, candidate.lat)
        except Exception as e:
            log_error(e, {
                "module": "resolver",
                "function": "is_same",
                "name": name,
                "feature_id": candidate.feature_id,
            })
            return False

    def resolve(
        self,
        location: Optional[Point],
        name: Optional[str],
        country_code: Optional[str],
        placetypes: Iterable[FeatureKind],
        shape: Optional[BaseGeometry] = None,
        preferred_target: Optional[FeatureKind] = None
    ) -> Optional[CandidateMatch]:
        """
        Find the candidate a row should be merged into (or should delete).

        Args:
            location: Point of the row
            name: Name of the row
            country_code: Country to restrict the search to
            placetypes: Placetypes to search
            shape: Optional shape of the row
            preferred_target: Placetype to merge into when two are searched

        Returns:
            CandidateMatch or None
        """
        if location is None or name is None or not name.strip():
            return None
        placetypes = tuple(placetypes)
        results = [r for r in self._search(name, location, placetypes, country_code) if r is not None]
        if not results:
            return None
        if len(placetypes) == 1 or preferred_target is None:
            return self._first_not_merged(results, name, shape)
        return self._resolve_with_target(results, name, shape, preferred_target)

    def _first_not_merged(self, results: List[CandidateMatch], name: str, shape: Optional[BaseGeometry]) -> Optional[CandidateMatch]:
        for candidate in results:
            if not self.is_same(candidate, name, shape):
                continue
            if candidate.merged:
                # Already reconciled with the map extract, not a deletion target
                continue
            if not candidate.municipality:
                return candidate
        return None

    def _first_not_merged_of_type(self, results: List[CandidateMatch], target: FeatureKind) -> Optional[CandidateMatch]:
        for candidate in results:
            if not candidate.merged and candidate.placetype == target:
                return candidate
        return None

    def _resolve_with_target(
        self,
        results: List[CandidateMatch],
        name: str,
        shape: Optional[BaseGeometry],
        target: FeatureKind
    ) -> Optional[CandidateMatch]:
        first = results[0]
        if first.placetype == target:
            return None if first.merged else first
        if first.placetype != FeatureKind.PLACE:
            return None
        found = self._first_not_merged_of_type(results[1:], target)
        if found is None:
            # A lone place the gazetteer misclassified, unless already merged
            return None if first.merged else first
        if first.merged:
            return found
        log_structured(
            "warning",
            "Ambiguous candidates: first is a place, then a sub-place",
            name=name,
            place=first.name,
            place_feature_id=first.feature_id,
            sub_place=found.name,
            sub_place_feature_id=found.feature_id,
        )
        if self.on_ambiguity is not None:
            self.on_ambiguity(ClassificationAmbiguity(first, found))
        return found

    def get_adm(self, name: Optional[str], country_code: Optional[str]) -> Optional[CandidateMatch]:
        """First administrative record whose name matches."""
        if name is None or not name.strip():
            return None
        results = self._search(name, None, ONLY_ADM, country_code)
        for candidate in results:
            if candidate is not None and candidate.feature_id is not None:
                return candidate
        return None
