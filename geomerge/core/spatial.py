"""Geometry helpers: hex EWKB decoding and containment checks."""
from typing import Optional
from shapely import wkb
from shapely.errors import ShapelyError
from shapely.geometry import Point
from shapely.geometry.base import BaseGeometry

LINEAR_GEOMETRY_TYPES = ("LineString", "MultiLineString", "LinearRing")


def geometry_from_hex_ewkb(hex_ewkb: str) -> BaseGeometry:
    """
    Decode a hex encoded (E)WKB string.
    
    Raises:
        ValueError: if the string is not a valid geometry
    """
    if hex_ewkb is None or not hex_ewkb.strip():
        raise ValueError("Empty geometry")
    try:
        return wkb.loads(hex_ewkb.strip(), hex=True)
    except (ShapelyError, TypeError) as e:
        raise ValueError(f"Can not decode geometry {hex_ewkb[:40]}: {e}") from e


def point_from_hex_ewkb(hex_ewkb: str) -> Point:
    """Decode a hex (E)WKB string that must hold a point."""
    geometry = geometry_from_hex_ewkb(hex_ewkb)
    if geometry.geom_type != "Point":
        raise ValueError(f"Expected a Point, got {geometry.geom_type}")
    return geometry


def is_valid_shape(shape: Optional[BaseGeometry]) -> bool:
    return shape is not None and not shape.is_empty and shape.is_valid


def shape_contains(shape: BaseGeometry, lon: float, lat: float) -> bool:
    """Check if a coordinate lies inside a shape."""
    return shape.contains(Point(lon, lat))


def is_linear(shape: Optional[BaseGeometry]) -> bool:
    """A street-like (way) geometry."""
    return shape is not None and shape.geom_type in LINEAR_GEOMETRY_TYPES


def to_hex_wkb(geometry: Optional[BaseGeometry]) -> Optional[str]:
    if geometry is None:
        return None
    return wkb.dumps(geometry, hex=True)


def from_hex_wkb(hex_wkb: Optional[str]) -> Optional[BaseGeometry]:
    if not hex_wkb:
        return None
    return wkb.loads(hex_wkb, hex=True)
