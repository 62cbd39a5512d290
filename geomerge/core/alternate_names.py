"""Alternate names grammar.

The map extract packs every name tag of a feature in one field::

    "{""name:fr===Springfield (fr)"",""alt_name===Springfield Town""}"
    _name===Springfield,"fr_name"===Springfield (fr)

A segment is ``key===value``. The key holds ``name`` with an optional
prefix (``alt_``, ``old_``, two letter language) and an optional
``:lang`` suffix. Segments are separated by ``___``, quotes, braces or a
comma followed by the next key. A value may itself hold several names
separated by ``;``, ``|``, ``,`` or ``:``.
"""
import re
import string
from typing import List, Optional, Tuple
from geomerge.core.config import ALTERNATE_NAME_MAX_LENGTH, LANGUAGE_MAX_LENGTH
from geomerge.core.decompounder import Decompounder
from geomerge.core.models import AlternateName, GeoFeature, Source
from geomerge.utils.logging import log_structured

SEGMENT_MARKER = "==="
PIECE_SEPARATOR = "___"
KEY_CHARS = frozenset(string.ascii_letters + string.digits + "_:-")
VALUE_SEPARATORS = re.compile(r"[;|,:]")
VALUE_STRIP_CHARS = " \t,\"'{}"

UNWANTED_TAG_MARKERS = (
    "source",
    "fixme",
    "prefix",
    "suffix",
    "postfix",
    "remove",
    "erroneous",
    "pronunciation",
    "systemname",
    "wikidata",
    "note",
)

decompounder = Decompounder()


def is_unwanted_alternate_name(tag: Optional[str]) -> bool:
    """A tag that is empty or that describes something else than a name."""
    if tag is None:
        return True
    tag = tag.lower().strip()
    if not tag:
        return True
    return any(marker in tag for marker in UNWANTED_TAG_MARKERS)


def unescape(blob: str) -> str:
    """Remove the CSV quoting of the blob ("" is an escaped quote)."""
    blob = blob.strip()
    if len(blob) >= 2 and blob.startswith('"') and blob.endswith('"'):
        blob = blob[1:-1]
    return blob.replace('""', '"')


def _key_start(piece: str, marker: int) -> Tuple[int, int]:
    """
    Scan backwards from a ``===`` marker.

    Returns:
        (start of the key, start of the segment including its opening quote)
    """
    end = marker
    if end > 0 and piece[end - 1] == '"':
        end -= 1
    start = end
    while start > 0 and piece[start - 1] in KEY_CHARS:
        start -= 1
    segment_start = start
    if segment_start > 0 and piece[segment_start - 1] == '"':
        segment_start -= 1
    return start, segment_start


def tokenize(blob: str) -> List[Tuple[str, str]]:
    """
    Split a blob into raw (key, value) segments.

    Args:
        blob: Alternate names field as found in the map extract

    Returns:
        List of (key, value) tuples in blob order. Key may be empty when
        the segment is malformed.
    """
    segments = []
    if not blob:
        return segments
    for piece in unescape(blob).split(PIECE_SEPARATOR):
        markers = [m.start() for m in re.finditer(re.escape(SEGMENT_MARKER), piece)]
        bounds = [_key_start(piece, marker) for marker in markers]
        for i, marker in enumerate(markers):
            key_start, _ = bounds[i]
            key_end = marker - 1 if marker > 0 and piece[marker - 1] == '"' else marker
            key = piece[key_start:key_end]
            value_end = bounds[i + 1][1] if i + 1 < len(markers) else len(piece)
            value = piece[marker + len(SEGMENT_MARKER):value_end]
            segments.append((key, value.strip(VALUE_STRIP_CHARS)))
    return segments


def parse_key(key: str) -> Optional[Tuple[str, Optional[str]]]:
    """
    Extract the language of a name key.

    ``name`` and ``alt_name`` have no language, ``name:fr``,
    ``alt_name:fr`` and ``fr_name`` are french.

    Returns:
        (key, language) or None if the key is not a name key
    """
    lowered = key.lower()
    index = lowered.find("name")
    if index < 0:
        return None
    prefix = lowered[:index].strip("_:")
    suffix = lowered[index + len("name"):]
    language = None
    if suffix.startswith(":"):
        language = suffix[1:].strip() or None
    elif not suffix and len(prefix) == 2 and prefix.isalpha():
        language = prefix
    return key, language


def parse_alternate_names(blob: Optional[str]) -> List[Tuple[Optional[str], str]]:
    """
    Parse an alternate names blob.

    Args:
        blob: Alternate names field

    Returns:
        List of (language or None, raw value) pairs, unwanted tags removed
    """
    pairs = []
    if blob is None:
        return pairs
    for i, (key, value) in enumerate(tokenize(blob)):
        if not key:
            log_structured("warning", "Malformed alternate name segment", segment=i, blob=blob)
            continue
        if is_unwanted_alternate_name(key):
            log_structured("debug", "Not an alternate name we want", tag=key, blob=blob)
            continue
        parsed = parse_key(key)
        if parsed is None:
            log_structured("warning", "Alternate name segment without name key", segment=i, tag=key, blob=blob)
            continue
        if not value:
            continue
        pairs.append((parsed[1], value))
    return pairs


def split_names(value: str) -> List[str]:
    """Split a raw value in trimmed, non empty names."""
    return [name.strip() for name in VALUE_SEPARATORS.split(value) if name.strip()]


def _add_decompounded(feature: GeoFeature, name: str, language: str) -> bool:
    other_format = decompounder.get_other_format(name)
    if other_format is None:
        return False
    return feature.add_alternate_name(
        AlternateName(other_format, language, Source.MAP_EXTRACT, feature.country_code)
    )


def populate_alternate_names(feature: GeoFeature, blob: Optional[str], linear: bool = False) -> GeoFeature:
    """
    Attach the alternate names of a blob to a feature.

    Names already present for the same language are skipped. For a linear
    (street like) German feature the decompounded form of the names is
    added too.

    Args:
        feature: Feature to update
        blob: Alternate names field
        linear: True if the feature geometry is a way

    Returns:
        The updated feature
    """
    if feature is None:
        return feature
    for language, value in parse_alternate_names(blob):
        if language is not None and len(language) > LANGUAGE_MAX_LENGTH:
            log_structured("info", "Language code too long, name kept without language", language=language)
            language = None
        for name in split_names(value):
            if len(name) > ALTERNATE_NAME_MAX_LENGTH:
                continue
            feature.add_alternate_name(AlternateName(name, language, Source.MAP_EXTRACT, feature.country_code))
            if linear and language == "de":
                _add_decompounded(feature, name, language)
    if linear and feature.country_code == "DE":
        _add_decompounded(feature, feature.name, "de")
    return feature
