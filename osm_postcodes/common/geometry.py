"""Polygon assembly for boundary relations.

Coordinates come in as (lat, lon) pairs and are handed to shapely as
(x=lon, y=lat).
"""

from __future__ import annotations

from typing import Iterable, Sequence

from shapely.geometry import LineString, MultiPoint, Polygon
from shapely.geometry.base import BaseGeometry
from shapely.ops import linemerge, unary_union

Coordinate = tuple[float, float]


def _line(chain: Sequence[Coordinate]) -> LineString:
    return LineString([(lon, lat) for lat, lon in chain])


def close_rings(chains: Iterable[Sequence[Coordinate]]) -> tuple[list[Polygon], int]:
    """Merge way chains end to end into closed rings.

    Chains may arrive in any order and direction. Returns one polygon per
    closed ring and the number of merged lines that stayed open.
    """
    lines = [_line(chain) for chain in chains if len(chain) >= 2]
    if not lines:
        return [], 0
    merged = linemerge(lines)
    parts = list(merged.geoms) if hasattr(merged, "geoms") else [merged]

    rings: list[Polygon] = []
    open_chains = 0
    for part in parts:
        if part.is_empty:
            continue
        if part.is_closed and len(part.coords) >= 4:
            rings.append(Polygon(part.coords))
        else:
            open_chains += 1
    return rings, open_chains


def region_shape(outers: Sequence[Polygon], inners: Sequence[Polygon]) -> BaseGeometry:
    """Union of outer rings, each with the inner rings it encloses cut out.

    An inner ring belongs to the smallest outer ring containing it, so an
    island inside a hole stays part of the region.
    """
    ordered = sorted(outers, key=lambda polygon: polygon.area)
    holes: dict[int, list] = {index: [] for index in range(len(ordered))}
    for inner in inners:
        for index, outer in enumerate(ordered):
            if outer.contains(inner):
                holes[index].append(inner.exterior.coords)
                break
    polygons = [Polygon(outer.exterior.coords, holes[index]) for index, outer in enumerate(ordered)]
    shape = unary_union(polygons)
    if not shape.is_valid:
        shape = shape.buffer(0)
    return shape


def extent(coordinates: Iterable[Coordinate]) -> BaseGeometry | None:
    """Bounding box of whatever coordinates are known, or None."""
    points = [(lon, lat) for lat, lon in coordinates]
    if not points:
        return None
    return MultiPoint(points).envelope
