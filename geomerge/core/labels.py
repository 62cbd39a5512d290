"""Default display label generator."""
from typing import List, Optional
from geomerge.core.models import GeoFeature


class DefaultLabelGenerator:

    def _local_adm_names(self, feature: GeoFeature) -> List[str]:
        """Administrative names, most local first, without duplicates."""
        names = []
        for name in reversed(feature.adm_names):
            if name and name not in names:
                names.append(name)
        return names

    def _suffix(self, feature: GeoFeature) -> List[str]:
        parts = []
        adm_names = self._local_adm_names(feature)
        if adm_names:
            parts.append(adm_names[0])
        if feature.country_code:
            parts.append(feature.country_code)
        return parts

    def label(self, feature: GeoFeature) -> Optional[str]:
        """Name followed by the most local administrative name and the country."""
        if not feature.name:
            return None
        return ", ".join([feature.name] + [p for p in self._suffix(feature) if p != feature.name])

    def qualified_name(self, feature: GeoFeature) -> Optional[str]:
        """Name, every administrative name, postal code and country."""
        if not feature.name:
            return None
        parts = [feature.name]
        for name in self._local_adm_names(feature):
            if name != feature.name:
                parts.append(name)
        if feature.zip_code:
            parts.append(feature.zip_code)
        if feature.country_code:
            parts.append(feature.country_code)
        return ", ".join(parts)

    def alternate_labels(self, feature: GeoFeature) -> List[str]:
        labels = []
        suffix = self._suffix(feature)
        for alternate_name in feature.alternate_names:
            label = ", ".join([alternate_name.name] + suffix)
            if label not in labels:
                labels.append(label)
        return labels
