"""Contracts of the capabilities the reconciliation engine consumes."""
from typing import Protocol, Optional, List, Iterable
from shapely.geometry import Point
from geomerge.core.models import GeoFeature, FeatureKind, CandidateMatch, AdmRecord, Source


class IdGenerator(Protocol):
    """Hands out feature identifiers that never collide across workers."""

    def next_id(self) -> int:
        ...

    def sync(self) -> None:
        ...


class FeatureStore(Protocol):
    """Keyed persistent store of features and administrative records."""

    def get_by_feature_id(self, kind: FeatureKind, feature_id: int) -> Optional[GeoFeature]:
        ...

    def get_adm(self, feature_id: int) -> Optional[AdmRecord]:
        ...

    def save(self, feature: GeoFeature) -> None:
        ...

    def remove(self, feature: GeoFeature) -> None:
        ...

    def flush(self) -> None:
        ...

    def optimize(self) -> None:
        ...


class SearchService(Protocol):
    """Name and proximity search over existing records."""

    def search(
        self,
        name: str,
        location: Optional[Point],
        placetypes: Iterable[FeatureKind],
        country_code: Optional[str],
        limit: int = 1
    ) -> List[CandidateMatch]:
        ...


class MunicipalityDetector(Protocol):

    def is_municipality(self, country_code: Optional[str], tag: Optional[str], source_kind: Optional[str], provenance: Source) -> bool:
        ...


class LabelGenerator(Protocol):

    def label(self, feature: GeoFeature) -> Optional[str]:
        ...

    def qualified_name(self, feature: GeoFeature) -> Optional[str]:
        ...

    def alternate_labels(self, feature: GeoFeature) -> List[str]:
        ...


class AdmLevelPolicy(Protocol):
    """Per-country conventions for the admin_level tag."""

    def is_place_level(self, country_code: Optional[str], level: Optional[str]) -> bool:
        ...

    def is_sub_place_level(self, country_code: Optional[str], level: Optional[str]) -> bool:
        ...

    def should_be_imported_as_administrative(self, country_code: Optional[str], level: int) -> bool:
        ...
