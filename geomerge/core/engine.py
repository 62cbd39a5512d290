"""Reconciliation engine: merge map-extract rows into gazetteer records."""
from pathlib import Path
from typing import Callable, Iterable, Optional, Tuple
from geomerge.core.adm_linker import AdmHierarchyLinker
from geomerge.core.adm_path import parse_is_in_adm, populate_adm_names
from geomerge.core.alternate_names import populate_alternate_names
from geomerge.core.classifier import FeatureClassifier, POI_TAG
from geomerge.core.config import BATCH_SIZE
from geomerge.core.errors import ClassificationAmbiguity, RowParseError, PersistenceConflict
from geomerge.core.interfaces import (
    AdmLevelPolicy,
    FeatureStore,
    IdGenerator,
    LabelGenerator,
    MunicipalityDetector,
    SearchService,
)
from geomerge.core.models import CandidateMatch, FeatureKind, GeoFeature, RowOutcome, RunSummary, Source
from geomerge.core.resolver import CandidateResolver, ONLY_PLACE, PLACE_AND_SUB_PLACE
from geomerge.core import rows
from geomerge.core.rows import InputRow, dump_fields, parse_population, parse_row
from geomerge.core.spatial import is_linear
from geomerge.core.zipcodes import best_zip_code, split_zip_codes
from geomerge.utils.logging import log_structured, log_error
from geomerge.utils.timing import Timer


class ReconciliationEngine:
    """
    Process map-extract rows one by one, in input order.

    Each row is classified, resolved against the existing records, merged
    into (or replaces) the matching record, enriched and saved. A failing
    row is logged and skipped, it never stops the run.

    Rows coming from relations must precede the node rows of the same
    entity: a record that already carries a map-extract id keeps its name
    and location.
    """

    def __init__(
        self,
        store: FeatureStore,
        search_service: SearchService,
        id_generator: IdGenerator,
        municipality_detector: MunicipalityDetector,
        label_generator: LabelGenerator,
        policy: AdmLevelPolicy,
        resolver: Optional[CandidateResolver] = None,
        batch_size: int = BATCH_SIZE
    ):
        """
        Initialize the engine.

        Args:
            store: Persistent store of features
            search_service: Search over existing records
            id_generator: Source of new feature ids
            municipality_detector: Decides if a place is a municipality
            label_generator: Builds labels and qualified names
            policy: Per-country administrative level conventions
            resolver: Candidate resolver (built on search_service if None)
            batch_size: Number of rows between two store flushes
        """
        self.store = store
        self.id_generator = id_generator
        self.municipality_detector = municipality_detector
        self.label_generator = label_generator
        self.policy = policy
        self.batch_size = batch_size
        self.summary = RunSummary()
        self.resolver = resolver or CandidateResolver(search_service)
        if self.resolver.on_ambiguity is None:
            self.resolver.on_ambiguity = self._record_ambiguity
        self.classifier = FeatureClassifier(policy)
        self.linker = AdmHierarchyLinker(self.resolver, store)
        self._rows_since_flush = 0

    # Run lifecycle

    def setup(self):
        log_structured("info", "Sync id generator")
        self.id_generator.sync()

    def tear_down(self):
        """Flush the last batch and let the store refresh its search index."""
        self._flush()
        try:
            self.store.optimize()
        except Exception as e:
            log_error(e, {"module": "engine", "function": "tear_down"})

    def process_lines(self, lines: Iterable[str]) -> RunSummary:
        """Process rows in order. Blank lines and # comments are ignored."""
        for line in lines:
            if not line.strip() or line.startswith("#"):
                continue
            self.process_line(line)
        return self.summary

    def process_file(
        self,
        path: Path,
        progress: Optional[Callable[[Iterable[str]], Iterable[str]]] = None
    ) -> RunSummary:
        """
        Run a whole map-extract file: setup, every row, tear down.

        Args:
            path: Map-extract file, one tab separated row per line
            progress: Optional wrapper of the line iterator (a progress bar)

        Returns:
            The summary of the run
        """
        with Timer(f"reconcile {Path(path).name}") as timer:
            self.setup()
            with open(path, "r", encoding="utf-8") as f:
                self.process_lines(progress(f) if progress else f)
            self.tear_down()
            timer.count = self.summary.processed
        log_structured("info", "File reconciled", file=str(path), **self.summary.to_dict())
        return self.summary

    def process_line(self, line: str) -> RowOutcome:
        """
        Process one row.

        Returns:
            The outcome of the row
        """
        try:
            row = parse_row(line)
        except RowParseError as e:
            log_structured("warning", "Row skipped", reason=str(e), row=dump_fields(e.fields or []))
            self.summary.warn(f"skipped row: {e}")
            outcome = RowOutcome.SKIPPED
        else:
            outcome = self.process_row(row)
        self.summary.record(outcome)
        self._rows_since_flush += 1
        if self._rows_since_flush >= self.batch_size:
            self._flush()
        return outcome

    def _flush(self):
        self._rows_since_flush = 0
        try:
            self.store.flush()
        except PersistenceConflict as e:
            log_error(e, {"module": "engine", "function": "flush"})
            self.summary.warn(f"batch not saved: {e}")

    def process_row(self, row: InputRow) -> RowOutcome:
        """Reconcile a decoded row and save the result."""
        try:
            feature, outcome = self.reconcile(row)
            self.populate(feature, row)
            self.store.save(feature)
            return outcome
        except PersistenceConflict as e:
            log_error(e, {"module": "engine", "function": "process_row", "row": dump_fields(row.fields)})
            self.summary.warn(f"can not save {row.name}: {e}")
        except Exception as e:
            log_error(e, {"module": "engine", "function": "process_row", "row": dump_fields(row.fields)})
            self.summary.warn(f"can not process {row.name}: {e}")
        return RowOutcome.SKIPPED

    # Decision

    def reconcile(self, row: InputRow) -> Tuple[GeoFeature, RowOutcome]:
        """Classify a row and find, create or replace the record it describes."""
        kind = self.classifier.classify(row.name, row.place_tag, row.country_code, row.raw_admin_level)
        if kind == FeatureKind.POI:
            return self._reconcile_poi(row)
        if kind == FeatureKind.SUB_PLACE:
            return self._reconcile_sub_place(row)
        return self._reconcile_place(row)

    def _reconcile_poi(self, row: InputRow) -> Tuple[GeoFeature, RowOutcome]:
        candidate = self.resolver.resolve(
            row.location, row.name, row.country_code, PLACE_AND_SUB_PLACE, row.shape, None
        )
        existing = self._get_existing(candidate)
        if existing is None:
            return self._new_feature(FeatureKind.POI, row), RowOutcome.CREATED
        if existing.map_extract_id is not None or existing.municipality:
            log_structured(
                "info",
                "Point of interest kept apart from a reconciled record",
                name=row.name,
                feature_id=existing.feature_id,
                existing_map_extract_id=existing.map_extract_id,
            )
            return self._new_feature(FeatureKind.POI, row), RowOutcome.CREATED
        if not existing.population:
            log_structured(
                "warning",
                "Row is a point of interest, removing the misclassified record",
                name=row.name,
                map_extract_id=row.field(rows.MAP_EXTRACT_ID),
                removed_name=existing.name,
                removed_feature_id=existing.feature_id,
                removed_kind=existing.kind.value,
            )
            self.store.remove(existing)
            poi = self._new_feature(FeatureKind.POI, row)
            poi.transfer_secondary_attributes(existing)
            return poi, RowOutcome.DEMOTED_AND_RECREATED
        message = (
            f"'{row.name}' is a point of interest but {existing.kind.value} "
            f"{existing.feature_id} has a population of {existing.population}, it is kept"
        )
        log_structured("warning", message, name=row.name, feature_id=existing.feature_id)
        self.summary.warn(message)
        existing.source = Source.BOTH
        return existing, RowOutcome.UPDATED

    def _reconcile_sub_place(self, row: InputRow) -> Tuple[GeoFeature, RowOutcome]:
        candidate = self.resolver.resolve(
            row.location, row.name, row.country_code, PLACE_AND_SUB_PLACE, row.shape, FeatureKind.SUB_PLACE
        )
        if candidate is None:
            log_structured("info", "Sub-place not in datastore, creating it", name=row.name)
            return self._new_feature(FeatureKind.SUB_PLACE, row), RowOutcome.CREATED

        if candidate.placetype == FeatureKind.SUB_PLACE:
            existing = self._get_existing(candidate)
            if existing is None:
                return self._new_feature(FeatureKind.SUB_PLACE, row), RowOutcome.CREATED
            existing.source = Source.BOTH
            if existing.map_extract_id is None:
                # A name set by an earlier relation row is kept
                existing.name = row.name
            existing.country_code = row.country_code
            if row.admin_centre_location is not None:
                existing.admin_centre_location = row.admin_centre_location
            if row.location is not None:
                existing.location = row.location
            return existing, RowOutcome.UPDATED

        sub_place = self._new_feature(FeatureKind.SUB_PLACE, row)
        if candidate.placetype == FeatureKind.PLACE and not candidate.merged and not candidate.municipality:
            # Indexed flags may lag behind the stored record
            place = self._get_existing(candidate)
            if place is not None and place.map_extract_id is None and not place.municipality:
                log_structured(
                    "warning",
                    "Row is a sub-place, removing the place",
                    name=row.name,
                    map_extract_id=row.field(rows.MAP_EXTRACT_ID),
                    removed_name=place.name,
                    removed_feature_id=place.feature_id,
                )
                self.store.remove(place)
                sub_place.transfer_secondary_attributes(place)
                return sub_place, RowOutcome.DELETED_SUPERSEDED
        # The place is a municipality or already merged: both are kept
        return sub_place, RowOutcome.CREATED

    def _reconcile_place(self, row: InputRow) -> Tuple[GeoFeature, RowOutcome]:
        candidate = self.resolver.resolve(
            row.location, row.name, row.country_code, ONLY_PLACE, row.shape, None
        )
        place = self._get_existing(candidate)
        if place is None:
            place = self._new_feature(FeatureKind.PLACE, row)
            outcome = RowOutcome.CREATED
        else:
            place.source = Source.BOTH
            if place.map_extract_id is None:
                place.name = row.name
                if row.location is not None:
                    place.location = row.location
            place.country_code = row.country_code
            if row.admin_centre_location is not None:
                place.admin_centre_location = row.admin_centre_location
            outcome = RowOutcome.UPDATED

        # A node row after its relation must not unset the flag
        if not place.municipality:
            place.municipality = self.municipality_detector.is_municipality(
                row.country_code, row.place_tag, row.geometry_source, Source.MAP_EXTRACT
            )
        if (row.place_tag or "").lower() == POI_TAG:
            place.municipality = False
        return place, outcome

    # Enrichment

    def populate(self, feature: GeoFeature, row: InputRow) -> GeoFeature:
        """Copy the remaining row fields onto the resolved feature."""
        population = row.field(rows.POPULATION)
        if population is not None and feature.kind != FeatureKind.SUB_PLACE:
            try:
                feature.population = parse_population(population)
            except ValueError:
                log_structured("error", "Can not parse population", population=population, map_extract_id=row.field(rows.MAP_EXTRACT_ID))

        for index in (rows.POSTAL_CODE, rows.SUBDIVISION_POSTAL_CODE):
            for zip_code in split_zip_codes(row.field(index)):
                feature.add_zip_code(zip_code)
        if feature.zip_codes:
            feature.zip_code = best_zip_code(feature.zip_codes)

        if row.place_tag is not None:
            feature.amenity = row.place_tag
        if row.shape is not None:
            feature.shape = row.shape

        map_extract_id = row.field(rows.MAP_EXTRACT_ID)
        if feature.map_extract_id is None and map_extract_id is not None:
            try:
                feature.set_map_extract_id(int(map_extract_id.strip()))
            except ValueError:
                log_structured("error", "Can not parse map-extract id", map_extract_id=map_extract_id)

        adm_level = 0
        if row.raw_admin_level is not None:
            try:
                adm_level = int(row.raw_admin_level.strip())
            except ValueError:
                log_structured("error", "Can not parse admin level", admin_level=row.raw_admin_level, map_extract_id=map_extract_id)

        alternate_names = row.field(rows.ALTERNATE_NAMES)
        if alternate_names is not None:
            populate_alternate_names(feature, alternate_names.strip(), linear=is_linear(row.shape))

        self._link_adm(feature, row, adm_level)

        feature.alternate_labels = self.label_generator.alternate_labels(feature)
        feature.label = self.label_generator.label(feature)
        feature.fully_qualified_name = self.label_generator.qualified_name(feature)
        return feature

    def _link_adm(self, feature: GeoFeature, row: InputRow, adm_level: int):
        is_in_adm = row.field(rows.IS_IN_ADM)
        if is_in_adm is not None:
            descriptors = parse_is_in_adm(is_in_adm)
            populate_adm_names(feature, adm_level, descriptors, self.policy)
            if feature.adm is None:
                self.linker.link(feature, descriptors)
        elif row.field(rows.IS_IN) is not None and feature.adm is None:
            self.linker.link_from_is_in(feature, row.field(rows.IS_IN))

    # Helpers

    def _get_existing(self, candidate: Optional[CandidateMatch]) -> Optional[GeoFeature]:
        if candidate is None:
            return None
        return self.store.get_by_feature_id(candidate.placetype, candidate.feature_id)

    def _new_feature(self, kind: FeatureKind, row: InputRow) -> GeoFeature:
        return GeoFeature(
            feature_id=self.id_generator.next_id(),
            kind=kind,
            name=row.name,
            country_code=row.country_code,
            location=row.location,
            admin_centre_location=row.admin_centre_location,
            source=Source.MAP_EXTRACT,
        )

    def _record_ambiguity(self, ambiguity: ClassificationAmbiguity):
        self.summary.ambiguous += 1
        self.summary.warn(f"ambiguous: {ambiguity}")
