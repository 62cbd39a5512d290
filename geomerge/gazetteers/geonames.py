"""GeoNames gazetteer loader seeding the store from local export files."""
import pandas as pd
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple, Union
from shapely.geometry import Point
from geomerge.core.config import ADM_LEVEL_COUNT
from geomerge.core.errors import PersistenceConflict
from geomerge.core.models import AdmRecord, AlternateName, FeatureKind, GeoFeature, Source
from geomerge.utils.logging import log_structured, log_error

# GeoNames TSV format
GEONAMES_COLUMNS = [
    "geonameid", "name", "asciiname", "alternatenames", "latitude", "longitude",
    "feature_class", "feature_code", "country_code", "cc2", "admin1", "admin2",
    "admin3", "admin4", "population", "elevation", "dem", "timezone", "modification_date"
]

ADM_FEATURE_CODES = {f"ADM{level}": level for level in range(1, ADM_LEVEL_COUNT + 1)}
SUB_PLACE_FEATURE_CODES = frozenset({"PPLX"})
ADMIN_CODE_COLUMNS = ["admin1", "admin2", "admin3", "admin4"]
# GeoNames uses -9999 for unknown DEM elevation
NO_DATA = -9999


def _int_or_none(value) -> Optional[int]:
    if pd.isna(value) or value == "":
        return None
    try:
        value = int(float(value))
    except (TypeError, ValueError):
        return None
    return None if value == NO_DATA else value


def _str_or_none(value) -> Optional[str]:
    if pd.isna(value):
        return None
    value = str(value).strip()
    return value or None


class GeoNamesLoader:
    """Read a GeoNames export and turn it into gazetteer records."""

    def __init__(self, data_path: Path, country_codes: Optional[List[str]] = None):
        """
        Initialize GeoNames loader.

        Args:
            data_path: Path to GeoNames TSV file (allCountries.txt or XX.txt)
            country_codes: Optional countries to keep
        """
        self.data_path = Path(data_path)
        self.country_codes = [cc.upper() for cc in country_codes] if country_codes else None
        self.df: Optional[pd.DataFrame] = None

    def load(self) -> pd.DataFrame:
        """Load populated places and administrative divisions."""
        if not self.data_path.exists():
            raise FileNotFoundError(f"GeoNames file not found: {self.data_path}")

        df = pd.read_csv(
            self.data_path,
            sep="\t",
            header=None,
            names=GEONAMES_COLUMNS,
            dtype={column: str for column in ["country_code", "cc2", *ADMIN_CODE_COLUMNS]},
            keep_default_na=False,
            na_values=[""],
            quoting=3,
            low_memory=False
        )
        if self.country_codes:
            df = df[df["country_code"].isin(self.country_codes)]
        is_place = df["feature_class"] == "P"
        is_adm = (df["feature_class"] == "A") & df["feature_code"].isin(list(ADM_FEATURE_CODES))
        self.df = df[is_place | is_adm].reset_index(drop=True)
        log_structured("info", "GeoNames file loaded", file=str(self.data_path), rows=len(self.df))
        return self.df

    def _adm_name_index(self) -> Dict[Tuple, str]:
        """Names of administrative divisions keyed by (country, admin codes...)."""
        index = {}
        adms = self.df[self.df["feature_code"].isin(list(ADM_FEATURE_CODES))]
        for _, row in adms.iterrows():
            level = ADM_FEATURE_CODES[row["feature_code"]]
            codes = tuple(_str_or_none(row[column]) for column in ADMIN_CODE_COLUMNS[:min(level, 4)])
            if None in codes:
                continue
            index[(row["country_code"], level) + codes] = row["name"]
        return index

    @staticmethod
    def _adm_names(row, index: Dict[Tuple, str], max_level: int) -> List[Optional[str]]:
        names: List[Optional[str]] = [None] * ADM_LEVEL_COUNT
        codes = []
        for level, column in enumerate(ADMIN_CODE_COLUMNS[:max_level], start=1):
            code = _str_or_none(row[column])
            if code is None:
                break
            codes.append(code)
            names[level - 1] = index.get((row["country_code"], level) + tuple(codes))
        return names

    def iter_records(self) -> Iterator[Union[GeoFeature, AdmRecord]]:
        """
        Yield gazetteer records.

        Returns:
            Iterator of AdmRecord (ADM1..ADM5) and GeoFeature (places, PPLX
            sub-places), GAZETTEER sourced and without map-extract id
        """
        if self.df is None:
            self.load()
        index = self._adm_name_index()
        for _, row in self.df.iterrows():
            try:
                if row["feature_class"] == "A":
                    level = ADM_FEATURE_CODES[row["feature_code"]]
                    yield AdmRecord(
                        feature_id=int(row["geonameid"]),
                        name=row["name"],
                        country_code=_str_or_none(row["country_code"]),
                        level=level,
                        adm_names=self._adm_names(row, index, min(level, 4)),
                    )
                else:
                    yield self._feature(row, index)
            except (KeyError, TypeError, ValueError) as e:
                log_error(e, {
                    "module": "geonames",
                    "function": "iter_records",
                    "geonameid": row.get("geonameid"),
                })

    def _feature(self, row, index: Dict[Tuple, str]) -> GeoFeature:
        feature_code = _str_or_none(row["feature_code"])
        kind = FeatureKind.SUB_PLACE if feature_code in SUB_PLACE_FEATURE_CODES else FeatureKind.PLACE
        country_code = _str_or_none(row["country_code"])
        feature = GeoFeature(
            feature_id=int(row["geonameid"]),
            kind=kind,
            name=row["name"],
            country_code=country_code,
            location=Point(float(row["longitude"]), float(row["latitude"])),
            ascii_name=_str_or_none(row["asciiname"]),
            population=_int_or_none(row["population"]) or 0,
            elevation=_int_or_none(row["elevation"]),
            gtopo30=_int_or_none(row["dem"]),
            timezone=_str_or_none(row["timezone"]),
            source=Source.GAZETTEER,
            adm_names=self._adm_names(row, index, 4),
        )
        for name in (_str_or_none(row["alternatenames"]) or "").split(","):
            name = name.strip()
            if name and name != feature.name:
                feature.add_alternate_name(AlternateName(name, None, Source.GAZETTEER, country_code))
        return feature

    def ingest(self, store) -> Dict[str, int]:
        """
        Seed a store with every record of the file.

        Args:
            store: DuckDBStore to fill

        Returns:
            Counts of ingested records per kind
        """
        counts = {"adm": 0, FeatureKind.PLACE.value: 0, FeatureKind.SUB_PLACE.value: 0}
        for record in self.iter_records():
            try:
                if isinstance(record, AdmRecord):
                    store.save_adm(record)
                    counts["adm"] += 1
                else:
                    store.save(record)
                    counts[record.kind.value] += 1
            except PersistenceConflict as e:
                log_error(e, {"module": "geonames", "function": "ingest", "feature_id": record.feature_id})
        store.flush()
        log_structured("info", "GeoNames records ingested", file=str(self.data_path), **counts)
        return counts
