"""Attach an administrative parent to a feature."""
from typing import List, Optional
from geomerge.core.adm_path import populate_adm_names_from_adm
from geomerge.core.interfaces import FeatureStore
from geomerge.core.models import AdmDescriptor, AdmRecord, GeoFeature
from geomerge.core.resolver import CandidateResolver
from geomerge.utils.logging import log_structured


class AdmHierarchyLinker:
    """Find the nearest existing administrative record of a feature."""

    def __init__(self, resolver: CandidateResolver, store: FeatureStore):
        self.resolver = resolver
        self.store = store

    def find_adm(self, name: Optional[str], country_code: Optional[str]) -> Optional[AdmRecord]:
        candidate = self.resolver.get_adm(name, country_code)
        if candidate is None:
            return None
        return self.store.get_adm(candidate.feature_id)

    def link(self, feature: GeoFeature, descriptors: List[AdmDescriptor]) -> Optional[AdmRecord]:
        """
        Walk the hierarchy from the most local level and attach the first
        administrative record found.

        Args:
            feature: Feature to link
            descriptors: Descriptors sorted by ascending level (left untouched)

        Returns:
            The attached record or None
        """
        if feature is None or not descriptors:
            return None
        for descriptor in reversed(descriptors):
            if descriptor.name is None:
                continue
            adm = self.find_adm(descriptor.name, feature.country_code)
            if adm is not None:
                feature.adm = adm
                return adm
        log_structured("debug", "No administrative parent found", feature_id=feature.feature_id, name=feature.name)
        return None

    def link_from_is_in(self, feature: GeoFeature, is_in: Optional[str]) -> Optional[AdmRecord]:
        """Fallback on the unstructured is_in name, copying the parent names."""
        if feature is None or is_in is None or not is_in.strip():
            return None
        adm = self.find_adm(is_in.strip(), feature.country_code)
        if adm is not None:
            feature.adm = adm
            populate_adm_names_from_adm(feature, adm)
        return adm
