"""Data models for reconciled features."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, Any
from shapely.geometry import Point
from shapely.geometry.base import BaseGeometry
from geomerge.core.config import ADM_LEVEL_COUNT


class FeatureKind(str, Enum):
    """Semantic type of a feature, also used as search placetype."""
    PLACE = "Place"
    SUB_PLACE = "SubPlace"
    POI = "PointOfInterest"
    ADM = "Adm"


class Source(str, Enum):
    """Provenance of a feature."""
    GAZETTEER = "GAZETTEER"
    MAP_EXTRACT = "MAP_EXTRACT"
    BOTH = "BOTH"


class RowOutcome(str, Enum):
    """Terminal state of one processed input row."""
    CREATED = "created"
    UPDATED = "updated"
    DEMOTED_AND_RECREATED = "demoted-and-recreated"
    DELETED_SUPERSEDED = "deleted-superseded"
    SKIPPED = "skipped"


@dataclass
class AlternateName:
    """Alternate name of a feature, unique per (name, language)."""
    name: str
    language: Optional[str] = None
    source: Source = Source.MAP_EXTRACT
    country_code: Optional[str] = None

    @property
    def key(self):
        return (self.name, self.language)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "language": self.language,
            "source": self.source.value,
            "country_code": self.country_code,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AlternateName":
        return cls(
            name=data["name"],
            language=data.get("language"),
            source=Source(data.get("source", Source.MAP_EXTRACT.value)),
            country_code=data.get("country_code"),
        )


@dataclass
class AdmDescriptor:
    """One entry of an is-in-administrative-hierarchy blob."""
    name: Optional[str]
    level: int
    external_id: int = 0


@dataclass
class AdmRecord:
    """Administrative record a feature can be attached to."""
    feature_id: int
    name: str
    country_code: Optional[str] = None
    level: int = 1
    adm_names: List[Optional[str]] = field(default_factory=lambda: [None] * ADM_LEVEL_COUNT)

    def adm_name(self, level: int) -> Optional[str]:
        return self.adm_names[level - 1]


@dataclass
class GeoFeature:
    """
    A place, sub-place or point of interest.

    The `kind` discriminator selects the variant; `municipality` only has a
    meaning for places.
    """
    feature_id: int
    kind: FeatureKind
    name: str
    country_code: Optional[str] = None
    location: Optional[Point] = None
    admin_centre_location: Optional[Point] = None
    shape: Optional[BaseGeometry] = None
    ascii_name: Optional[str] = None
    population: Optional[int] = None
    elevation: Optional[int] = None
    gtopo30: Optional[int] = None
    timezone: Optional[str] = None
    source: Source = Source.MAP_EXTRACT
    map_extract_id: Optional[int] = None
    adm_names: List[Optional[str]] = field(default_factory=lambda: [None] * ADM_LEVEL_COUNT)
    adm: Optional[AdmRecord] = None
    zip_codes: List[str] = field(default_factory=list)
    zip_code: Optional[str] = None
    alternate_names: List[AlternateName] = field(default_factory=list)
    amenity: Optional[str] = None
    municipality: bool = False
    label: Optional[str] = None
    fully_qualified_name: Optional[str] = None
    alternate_labels: List[str] = field(default_factory=list)

    def set_map_extract_id(self, map_extract_id: int) -> bool:
        """Set the map-extract id unless one is already set. First writer wins."""
        if self.map_extract_id is not None:
            return False
        self.map_extract_id = map_extract_id
        return True

    def adm_name(self, level: int) -> Optional[str]:
        return self.adm_names[level - 1]

    def set_adm_name(self, level: int, name: Optional[str]):
        if not 1 <= level <= ADM_LEVEL_COUNT:
            raise ValueError(f"Administrative level out of range: {level}")
        self.adm_names[level - 1] = name

    def add_zip_code(self, zip_code: str) -> bool:
        """Add a postal code, ignoring one already present."""
        if zip_code in self.zip_codes:
            return False
        self.zip_codes.append(zip_code)
        return True

    def has_alternate_name(self, name: str, language: Optional[str]) -> bool:
        return any(an.key == (name, language) for an in self.alternate_names)

    def add_alternate_name(self, alternate_name: AlternateName) -> bool:
        """Add an alternate name unless (name, language) is already present."""
        if self.has_alternate_name(alternate_name.name, alternate_name.language):
            return False
        self.alternate_names.append(alternate_name)
        return True

    def transfer_secondary_attributes(self, other: "GeoFeature"):
        """Copy gazetteer attributes of a superseded feature. Population is reset."""
        self.population = 0
        self.elevation = other.elevation
        self.gtopo30 = other.gtopo30
        self.timezone = other.timezone
        self.ascii_name = other.ascii_name


@dataclass
class CandidateMatch:
    """Existing record returned by the search service."""
    placetype: FeatureKind
    feature_id: int
    name: Optional[str] = None
    map_extract_id: Optional[int] = None
    municipality: bool = False
    alternate_names: List[str] = field(default_factory=list)
    score: float = 0.0
    lon: Optional[float] = None
    lat: Optional[float] = None

    @property
    def merged(self) -> bool:
        """A candidate carrying a map-extract id has already been reconciled."""
        return self.map_extract_id is not None


@dataclass
class RunSummary:
    """Counters and warnings of one reconciliation run."""
    processed: int = 0
    created: int = 0
    updated: int = 0
    deleted: int = 0
    skipped: int = 0
    ambiguous: int = 0
    warnings: List[str] = field(default_factory=list)

    def record(self, outcome: RowOutcome):
        self.processed += 1
        if outcome == RowOutcome.SKIPPED:
            self.skipped += 1
        elif outcome == RowOutcome.UPDATED:
            self.updated += 1
        else:
            self.created += 1
            if outcome in (RowOutcome.DEMOTED_AND_RECREATED, RowOutcome.DELETED_SUPERSEDED):
                self.deleted += 1

    def warn(self, message: str):
        self.warnings.append(message)

    def merge(self, other: "RunSummary"):
        self.processed += other.processed
        self.created += other.created
        self.updated += other.updated
        self.deleted += other.deleted
        self.skipped += other.skipped
        self.ambiguous += other.ambiguous
        self.warnings.extend(other.warnings)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "processed": self.processed,
            "created": self.created,
            "updated": self.updated,
            "deleted": self.deleted,
            "skipped": self.skipped,
            "ambiguous": self.ambiguous,
            "warnings": len(self.warnings),
        }
