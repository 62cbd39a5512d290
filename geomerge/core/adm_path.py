"""Is-in-administrative-hierarchy parsing and administrative name slots."""
from typing import List, Optional
from geomerge.core.config import ADM_LEVEL_COUNT
from geomerge.core.interfaces import AdmLevelPolicy
from geomerge.core.models import AdmDescriptor, AdmRecord, GeoFeature
from geomerge.utils.logging import log_structured

HIERARCHY_SEPARATOR = "___"


def parse_is_in_adm(blob: Optional[str]) -> List[AdmDescriptor]:
    """
    Parse an is-in-administrative-hierarchy blob.

    The blob is a flat list of ``name___level___id`` triples joined with
    ``___``. A triple with a non numeric level is skipped, a non numeric
    id is replaced by 0.

    Args:
        blob: Is-in-adm field

    Returns:
        Descriptors sorted by ascending level
    """
    descriptors = []
    if blob is None or not blob.strip():
        return descriptors
    tokens = blob.strip().split(HIERARCHY_SEPARATOR)
    for i in range(0, len(tokens), 3):
        triple = tokens[i:i + 3] + [""] * (3 - len(tokens[i:i + 3]))
        name, level_str, id_str = (token.strip() for token in triple)
        if not level_str.isdecimal():
            log_structured("warning", "Wrong adm level in is-in-adm", triple=i // 3, adm_level=level_str, blob=blob)
            continue
        external_id = 0
        if id_str.isdecimal():
            external_id = int(id_str)
        else:
            log_structured("warning", "Wrong external id in is-in-adm", triple=i // 3, external_id=id_str, blob=blob)
        descriptors.append(AdmDescriptor(level=int(level_str), name=name or None, external_id=external_id))
    descriptors.sort(key=lambda descriptor: descriptor.level)
    return descriptors


def populate_adm_names(
    feature: GeoFeature,
    current_level: int,
    descriptors: List[AdmDescriptor],
    policy: Optional[AdmLevelPolicy] = None
) -> GeoFeature:
    """
    Fill the administrative name slots of a feature, most global first.

    Only descriptors above the feature level are used (all of them when the
    level of the feature is unknown). Consecutive duplicated names and
    levels the country does not consider administrative are skipped.
    """
    if feature is None or not descriptors:
        return feature
    slot = 1
    last_name = ""
    for descriptor in descriptors:
        if slot > ADM_LEVEL_COUNT:
            break
        if current_level != 0 and descriptor.level >= current_level:
            continue
        if descriptor.name is None or descriptor.name.lower() == last_name.lower():
            continue
        if policy is not None and not policy.should_be_imported_as_administrative(feature.country_code, descriptor.level):
            continue
        feature.set_adm_name(slot, descriptor.name)
        slot += 1
        last_name = descriptor.name
    return feature


def populate_adm_names_from_adm(feature: GeoFeature, adm: Optional[AdmRecord]) -> GeoFeature:
    """Copy the administrative names of an administrative record."""
    if feature is None or adm is None:
        return feature
    slot = 1
    last_name = ""
    for level in range(1, ADM_LEVEL_COUNT + 1):
        name = adm.adm_name(level)
        if name is None or name.lower() == last_name.lower():
            continue
        feature.set_adm_name(slot, name)
        slot += 1
        last_name = name
    return feature
