"""Decoding of map-extract rows.

A row is tab separated, with the columns::

    0 geometry source (N|W|R)      8 population
    1 map-extract id               9 location (hex EWKB point)
    2 admin centre node id        10 admin centre location (hex EWKB point)
    3 name                        11 shape (hex EWKB)
    4 country code                12 place tag
    5 postal code                 13 is_in
    6 subdivision postal code     14 is_in_adm
    7 admin level                 15 alternate names
"""
import re
from dataclasses import dataclass
from typing import List, Optional
from shapely.geometry import Point
from shapely.geometry.base import BaseGeometry
from geomerge.core.config import NAME_MAX_LENGTH, NUMBER_OF_COLUMNS
from geomerge.core.errors import RowParseError
from geomerge.core.normalization import is_empty
from geomerge.core.spatial import geometry_from_hex_ewkb, point_from_hex_ewkb
from geomerge.utils.logging import log_structured

GEOMETRY_SOURCE = 0
MAP_EXTRACT_ID = 1
ADMIN_CENTRE_NODE_ID = 2
NAME = 3
COUNTRY_CODE = 4
POSTAL_CODE = 5
SUBDIVISION_POSTAL_CODE = 6
ADMIN_LEVEL = 7
POPULATION = 8
LOCATION = 9
ADMIN_CENTRE_LOCATION = 10
SHAPE = 11
PLACE_TAG = 12
IS_IN = 13
IS_IN_ADM = 14
ALTERNATE_NAMES = 15

POPULATION_SEPARATORS = re.compile(r"[\s,]")


@dataclass
class InputRow:
    """A decoded map-extract row. Optional text fields are None when empty."""
    fields: List[str]
    name: str
    country_code: Optional[str] = None
    location: Optional[Point] = None
    admin_centre_location: Optional[Point] = None
    shape: Optional[BaseGeometry] = None

    def field(self, index: int) -> Optional[str]:
        value = self.fields[index]
        return None if is_empty(value) else value

    @property
    def geometry_source(self) -> Optional[str]:
        return self.field(GEOMETRY_SOURCE)

    @property
    def place_tag(self) -> Optional[str]:
        return self.field(PLACE_TAG)

    @property
    def raw_admin_level(self) -> Optional[str]:
        return self.field(ADMIN_LEVEL)


def dump_fields(fields: List[str]) -> str:
    """Human readable row for the logs, without the useless shape."""
    return "[" + "".join(
        ("THE_SHAPE" if i == SHAPE else str(value)) + ";" for i, value in enumerate(fields)
    ) + "]"


def split_line(line: str) -> List[str]:
    return line.rstrip("\r\n").split("\t")


def parse_row(line: str) -> InputRow:
    """
    Decode a row.

    Raises:
        RowParseError: wrong number of columns, no name or unparsable location
    """
    fields = split_line(line)
    if len(fields) != NUMBER_OF_COLUMNS:
        raise RowParseError(
            f"Wrong number of columns: expected {NUMBER_OF_COLUMNS}, got {len(fields)}", fields
        )
    if is_empty(fields[NAME]):
        raise RowParseError("Row has no name", fields)
    name = fields[NAME].strip()
    if len(name) > NAME_MAX_LENGTH:
        log_structured("warning", "Name is too long, truncated", name=name)
        name = name[:NAME_MAX_LENGTH - 1]

    row = InputRow(fields=fields, name=name)
    if not is_empty(fields[COUNTRY_CODE]):
        row.country_code = fields[COUNTRY_CODE].strip().upper()

    if not is_empty(fields[LOCATION]):
        try:
            row.location = point_from_hex_ewkb(fields[LOCATION])
        except ValueError as e:
            raise RowParseError(f"Can not parse location: {e}", fields) from e

    if not is_empty(fields[SHAPE]):
        try:
            row.shape = geometry_from_hex_ewkb(fields[SHAPE])
        except ValueError as e:
            log_structured("warning", "Can not parse shape", map_extract_id=fields[MAP_EXTRACT_ID], error=str(e))

    if not is_empty(fields[ADMIN_CENTRE_LOCATION]):
        try:
            row.admin_centre_location = point_from_hex_ewkb(fields[ADMIN_CENTRE_LOCATION])
        except ValueError as e:
            log_structured("warning", "Can not parse admin centre location", map_extract_id=fields[MAP_EXTRACT_ID], error=str(e))
    return row


def parse_population(value: str) -> int:
    """
    Parse a population, thousands separators removed.

    Raises:
        ValueError: if something else than digits remains
    """
    digits = POPULATION_SEPARATORS.sub("", value)
    if not digits.isdecimal():
        raise ValueError(f"Can not parse population {value!r}")
    return int(digits)
