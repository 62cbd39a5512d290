"""DuckDB storage layer: feature store, search service and id generator."""
import json
import math
import threading
from pathlib import Path
from typing import List, Dict, Optional, Any, Iterable
import duckdb
from rapidfuzz import fuzz
from shapely.geometry import Point
from geomerge.core.config import (
    ADM_LEVEL_COUNT,
    DUCKDB_PATH,
    NAME_MAX_LENGTH,
    SEARCH_MIN_SCORE,
    SEARCH_RADIUS_DEGREES,
)
from geomerge.core.errors import ExternalServiceError, PersistenceConflict
from geomerge.core.models import AdmRecord, AlternateName, CandidateMatch, FeatureKind, GeoFeature, Source
from geomerge.core.normalization import normalize_text
from geomerge.core.spatial import from_hex_wkb, to_hex_wkb
from geomerge.utils.logging import log_structured

ADM_NAME_COLUMNS = [f"adm{level}_name" for level in range(1, ADM_LEVEL_COUNT + 1)]

FEATURE_COLUMNS = [
    "feature_id", "kind", "name", "ascii_name", "country_code", "lon", "lat",
    "admin_centre_wkb", "shape_wkb", "population", "elevation", "gtopo30", "timezone",
    "source", "map_extract_id", *ADM_NAME_COLUMNS, "adm_feature_id", "zip_codes",
    "zip_code", "alternate_names", "amenity", "municipality", "label",
    "fully_qualified_name", "alternate_labels",
]

ADM_COLUMNS = ["feature_id", "name", "country_code", "level", *ADM_NAME_COLUMNS, "alternate_names"]


class DuckDBStore:
    """
    DuckDB storage manager for reconciled features.

    Writes are buffered and only reach the database on flush(). Searches
    see pending writes too, but report the merged and municipality flags
    indexed by the last optimize(), like a search index refreshed once a
    run is over.
    """

    def __init__(self, db_path: Optional[Path] = None):
        """
        Initialize DuckDB connection.

        Args:
            db_path: Path to DuckDB database file (":memory:" for a transient one)
        """
        self.db_path = db_path or DUCKDB_PATH
        if str(self.db_path) != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = duckdb.connect(str(self.db_path))
        self._pending: Dict[int, GeoFeature] = {}
        self._removed: set = set()
        self._init_schema()

    def _init_schema(self):
        """Initialize database schema."""
        adm_name_ddl = ",\n".join(f"{column} VARCHAR" for column in ADM_NAME_COLUMNS)
        self.conn.execute(f"""
            CREATE TABLE IF NOT EXISTS features (
                feature_id BIGINT PRIMARY KEY,
                kind VARCHAR NOT NULL,
                name VARCHAR NOT NULL,
                ascii_name VARCHAR,
                country_code VARCHAR,
                lon DOUBLE,
                lat DOUBLE,
                admin_centre_wkb VARCHAR,
                shape_wkb VARCHAR,
                population BIGINT,
                elevation INTEGER,
                gtopo30 INTEGER,
                timezone VARCHAR,
                source VARCHAR,
                map_extract_id BIGINT,
                {adm_name_ddl},
                adm_feature_id BIGINT,
                zip_codes TEXT,
                zip_code VARCHAR,
                alternate_names TEXT,
                amenity VARCHAR,
                municipality BOOLEAN DEFAULT FALSE,
                label VARCHAR,
                fully_qualified_name VARCHAR,
                alternate_labels TEXT,
                indexed_map_extract_id BIGINT,
                indexed_municipality BOOLEAN DEFAULT FALSE
            )
        """)
        self.conn.execute(f"""
            CREATE TABLE IF NOT EXISTS adms (
                feature_id BIGINT PRIMARY KEY,
                name VARCHAR NOT NULL,
                country_code VARCHAR,
                level INTEGER,
                {adm_name_ddl},
                alternate_names TEXT
            )
        """)

    # Feature store

    def get_by_feature_id(self, kind: FeatureKind, feature_id: int) -> Optional[GeoFeature]:
        """Get a feature of the given kind, pending writes included."""
        if feature_id in self._removed:
            return None
        pending = self._pending.get(feature_id)
        if pending is not None:
            return pending if pending.kind == kind else None
        row = self.conn.execute(
            f"SELECT {', '.join(FEATURE_COLUMNS)} FROM features WHERE feature_id = ? AND kind = ?",
            [feature_id, kind.value]
        ).fetchone()
        if not row:
            return None
        return self._feature_from_row(dict(zip(FEATURE_COLUMNS, row)))

    def save(self, feature: GeoFeature):
        """
        Buffer a feature until the next flush.

        Raises:
            PersistenceConflict: if the feature violates a constraint
        """
        if feature.feature_id is None:
            raise PersistenceConflict("Feature has no id")
        if not feature.name or len(feature.name) > NAME_MAX_LENGTH:
            raise PersistenceConflict(f"Invalid name for feature {feature.feature_id}: {feature.name!r}")
        self._removed.discard(feature.feature_id)
        self._pending[feature.feature_id] = feature

    def remove(self, feature: GeoFeature):
        self._pending.pop(feature.feature_id, None)
        self._removed.add(feature.feature_id)

    def flush(self):
        """
        Write buffered changes in one transaction.

        Raises:
            PersistenceConflict: if the database rejects the batch
        """
        if not self._pending and not self._removed:
            return
        rows = [self._feature_to_row(feature) for feature in self._pending.values()]
        placeholders = ", ".join("?" for _ in FEATURE_COLUMNS)
        # Indexed flags are left as they are until optimize()
        updates = ", ".join(f"{column} = EXCLUDED.{column}" for column in FEATURE_COLUMNS[1:])
        try:
            self.conn.execute("BEGIN TRANSACTION")
            for feature_id in self._removed:
                self.conn.execute("DELETE FROM features WHERE feature_id = ?", [feature_id])
            if rows:
                self.conn.executemany(
                    f"INSERT INTO features ({', '.join(FEATURE_COLUMNS)}) VALUES ({placeholders}) "
                    f"ON CONFLICT (feature_id) DO UPDATE SET {updates}",
                    rows
                )
            self.conn.execute("COMMIT")
        except duckdb.Error as e:
            self.conn.execute("ROLLBACK")
            raise PersistenceConflict(f"Can not flush {len(rows)} features: {e}") from e
        finally:
            self._pending.clear()
            self._removed.clear()

    def optimize(self):
        """Refresh the indexed flags and checkpoint the database once a run is over."""
        self.conn.execute(
            "UPDATE features SET indexed_map_extract_id = map_extract_id, indexed_municipality = municipality"
        )
        self.conn.execute("CHECKPOINT")

    def count(self, kind: Optional[FeatureKind] = None) -> int:
        if kind is None:
            return self.conn.execute("SELECT COUNT(*) FROM features").fetchone()[0]
        return self.conn.execute("SELECT COUNT(*) FROM features WHERE kind = ?", [kind.value]).fetchone()[0]

    # Administrative records

    def save_adm(self, adm: AdmRecord):
        placeholders = ", ".join("?" for _ in ADM_COLUMNS)
        try:
            self.conn.execute(
                f"INSERT OR REPLACE INTO adms ({', '.join(ADM_COLUMNS)}) VALUES ({placeholders})",
                [adm.feature_id, adm.name, adm.country_code, adm.level, *adm.adm_names, json.dumps([])]
            )
        except duckdb.ConstraintException as e:
            raise PersistenceConflict(f"Can not save adm {adm.feature_id}: {e}") from e

    def get_adm(self, feature_id: int) -> Optional[AdmRecord]:
        row = self.conn.execute(
            f"SELECT {', '.join(ADM_COLUMNS)} FROM adms WHERE feature_id = ?", [feature_id]
        ).fetchone()
        if not row:
            return None
        data = dict(zip(ADM_COLUMNS, row))
        return AdmRecord(
            feature_id=data["feature_id"],
            name=data["name"],
            country_code=data["country_code"],
            level=data["level"],
            adm_names=[data[column] for column in ADM_NAME_COLUMNS],
        )

    # Search service

    def search(
        self,
        name: str,
        location: Optional[Point],
        placetypes: Iterable[FeatureKind],
        country_code: Optional[str],
        limit: int = 1
    ) -> List[CandidateMatch]:
        """
        Search records by name, around a location.

        Pending writes are searched along with flushed rows and removed
        records are left out. The merged and municipality flags of each
        candidate are the indexed ones, refreshed by optimize().

        Args:
            name: Name to search
            location: Optional point, closer records rank first on equal score
            placetypes: Kinds to search (FeatureKind.ADM searches the adms table)
            country_code: Optional country restriction
            limit: Maximum results

        Returns:
            Candidates sorted by descending score

        Raises:
            ExternalServiceError: if the database query fails
        """
        placetypes = list(placetypes)
        try:
            rows = []
            if FeatureKind.ADM in placetypes:
                rows.extend(self._adm_search_rows(country_code))
            kinds = [kind.value for kind in placetypes if kind != FeatureKind.ADM]
            if kinds:
                rows.extend(self._feature_search_rows(kinds, location, country_code))
                rows.extend(self._pending_search_rows(kinds, location, country_code))
        except duckdb.Error as e:
            raise ExternalServiceError(f"Search failed for {name}: {e}") from e

        normalized_query = normalize_text(name)
        results = []
        for row in rows:
            names = [row["name"]] + row["alternate_names"]
            score = max(fuzz.WRatio(normalized_query, normalize_text(n)) for n in names if n)
            if score < SEARCH_MIN_SCORE:
                continue
            distance = 0.0
            if location is not None and row["lon"] is not None and row["lat"] is not None:
                distance = math.hypot(location.x - row["lon"], location.y - row["lat"])
            results.append((score, distance, row))

        results.sort(key=lambda x: (-x[0], x[1]))
        return [
            CandidateMatch(
                placetype=FeatureKind(row["kind"]),
                feature_id=row["feature_id"],
                name=row["name"],
                map_extract_id=row["map_extract_id"],
                municipality=bool(row["municipality"]),
                alternate_names=row["alternate_names"],
                score=score,
                lon=row["lon"],
                lat=row["lat"],
            )
            for score, _, row in results[:limit]
        ]

    def _feature_search_rows(self, kinds: List[str], location: Optional[Point], country_code: Optional[str]) -> List[Dict[str, Any]]:
        query = f"""
            SELECT feature_id, kind, name, indexed_map_extract_id, indexed_municipality, alternate_names, lon, lat
            FROM features
            WHERE kind IN ({', '.join('?' for _ in kinds)})
        """
        params: List[Any] = list(kinds)
        if country_code:
            query += " AND country_code = ?"
            params.append(country_code)
        if location is not None:
            query += " AND lon BETWEEN ? AND ? AND lat BETWEEN ? AND ?"
            params.extend([
                location.x - SEARCH_RADIUS_DEGREES, location.x + SEARCH_RADIUS_DEGREES,
                location.y - SEARCH_RADIUS_DEGREES, location.y + SEARCH_RADIUS_DEGREES,
            ])
        rows = []
        for feature_id, kind, name, map_extract_id, municipality, alternate_names, lon, lat in self.conn.execute(query, params).fetchall():
            # Pending versions replace their flushed rows
            if feature_id in self._pending or feature_id in self._removed:
                continue
            rows.append({
                "feature_id": feature_id,
                "kind": kind,
                "name": name,
                "map_extract_id": map_extract_id,
                "municipality": municipality,
                "alternate_names": [an["name"] for an in json.loads(alternate_names or "[]")],
                "lon": lon,
                "lat": lat,
            })
        return rows

    def _pending_search_rows(self, kinds: List[str], location: Optional[Point], country_code: Optional[str]) -> List[Dict[str, Any]]:
        matching = []
        for feature in self._pending.values():
            if feature.kind.value not in kinds:
                continue
            if country_code and feature.country_code != country_code:
                continue
            if location is not None and (
                feature.location is None
                or abs(feature.location.x - location.x) > SEARCH_RADIUS_DEGREES
                or abs(feature.location.y - location.y) > SEARCH_RADIUS_DEGREES
            ):
                continue
            matching.append(feature)
        if not matching:
            return []

        # Records never indexed are neither merged nor municipal yet
        indexed = {}
        ids = [feature.feature_id for feature in matching]
        for feature_id, map_extract_id, municipality in self.conn.execute(
            f"SELECT feature_id, indexed_map_extract_id, indexed_municipality FROM features "
            f"WHERE feature_id IN ({', '.join('?' for _ in ids)})",
            ids
        ).fetchall():
            indexed[feature_id] = (map_extract_id, municipality)

        rows = []
        for feature in matching:
            map_extract_id, municipality = indexed.get(feature.feature_id, (None, False))
            rows.append({
                "feature_id": feature.feature_id,
                "kind": feature.kind.value,
                "name": feature.name,
                "map_extract_id": map_extract_id,
                "municipality": municipality,
                "alternate_names": [an.name for an in feature.alternate_names],
                "lon": feature.location.x if feature.location is not None else None,
                "lat": feature.location.y if feature.location is not None else None,
            })
        return rows

    def _adm_search_rows(self, country_code: Optional[str]) -> List[Dict[str, Any]]:
        query = "SELECT feature_id, name, alternate_names FROM adms"
        params = []
        if country_code:
            query += " WHERE country_code = ?"
            params.append(country_code)
        return [
            {
                "feature_id": feature_id,
                "kind": FeatureKind.ADM.value,
                "name": name,
                "map_extract_id": None,
                "municipality": False,
                "alternate_names": json.loads(alternate_names or "[]"),
                "lon": None,
                "lat": None,
            }
            for feature_id, name, alternate_names in self.conn.execute(query, params).fetchall()
        ]

    def max_feature_id(self) -> int:
        row = self.conn.execute("""
            SELECT GREATEST(
                COALESCE((SELECT MAX(feature_id) FROM features), 0),
                COALESCE((SELECT MAX(feature_id) FROM adms), 0)
            )
        """).fetchone()
        pending_max = max(self._pending.keys(), default=0)
        return max(row[0] or 0, pending_max)

    # Serialization

    def _feature_to_row(self, feature: GeoFeature) -> List[Any]:
        return [
            feature.feature_id,
            feature.kind.value,
            feature.name,
            feature.ascii_name,
            feature.country_code,
            feature.location.x if feature.location is not None else None,
            feature.location.y if feature.location is not None else None,
            to_hex_wkb(feature.admin_centre_location),
            to_hex_wkb(feature.shape),
            feature.population,
            feature.elevation,
            feature.gtopo30,
            feature.timezone,
            feature.source.value,
            feature.map_extract_id,
            *feature.adm_names,
            feature.adm.feature_id if feature.adm is not None else None,
            json.dumps(feature.zip_codes),
            feature.zip_code,
            json.dumps([an.to_dict() for an in feature.alternate_names]),
            feature.amenity,
            feature.municipality,
            feature.label,
            feature.fully_qualified_name,
            json.dumps(feature.alternate_labels),
        ]

    def _feature_from_row(self, data: Dict[str, Any]) -> GeoFeature:
        location = None
        if data["lon"] is not None and data["lat"] is not None:
            location = Point(data["lon"], data["lat"])
        adm = self.get_adm(data["adm_feature_id"]) if data["adm_feature_id"] is not None else None
        return GeoFeature(
            feature_id=data["feature_id"],
            kind=FeatureKind(data["kind"]),
            name=data["name"],
            ascii_name=data["ascii_name"],
            country_code=data["country_code"],
            location=location,
            admin_centre_location=from_hex_wkb(data["admin_centre_wkb"]),
            shape=from_hex_wkb(data["shape_wkb"]),
            population=data["population"],
            elevation=data["elevation"],
            gtopo30=data["gtopo30"],
            timezone=data["timezone"],
            source=Source(data["source"]) if data["source"] else Source.GAZETTEER,
            map_extract_id=data["map_extract_id"],
            adm_names=[data[column] for column in ADM_NAME_COLUMNS],
            adm=adm,
            zip_codes=json.loads(data["zip_codes"] or "[]"),
            zip_code=data["zip_code"],
            alternate_names=[AlternateName.from_dict(an) for an in json.loads(data["alternate_names"] or "[]")],
            amenity=data["amenity"],
            municipality=bool(data["municipality"]),
            label=data["label"],
            fully_qualified_name=data["fully_qualified_name"],
            alternate_labels=json.loads(data["alternate_labels"] or "[]"),
        )

    def close(self):
        """Close database connection."""
        self.conn.close()


class DuckDBIdGenerator:
    """Feature ids following the highest id already stored."""

    def __init__(self, store: DuckDBStore):
        self.store = store
        self._next = 1
        self._lock = threading.Lock()

    def sync(self):
        with self._lock:
            self._next = max(self._next, self.store.max_feature_id() + 1)
        log_structured("info", "Id generator synced", next_id=self._next)

    def next_id(self) -> int:
        with self._lock:
            feature_id = self._next
            self._next += 1
            return feature_id
