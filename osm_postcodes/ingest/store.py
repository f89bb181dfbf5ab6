"""Arena of point coordinates and way node lists keyed by OSM id."""

from __future__ import annotations

from array import array
from typing import Callable, Iterable

from osm_postcodes.common.errors import StructuralParseError
from osm_postcodes.common.models import PointEntity, WayEntity


class EntityStore:
    """Bounded-memory index of points and ways for a single run.

    Only coordinates are kept for points and only node ids for ways; tags
    are consumed by the resolvers as entities stream past. ``retain_way``
    lets a previous scan decide which ways are worth keeping at all.
    """

    def __init__(self, retain_way: Callable[[int], bool] | None = None):
        self._points: dict[int, tuple[float, float]] = {}
        self._ways: dict[int, array] = {}
        self._retain_way = retain_way
        self.sealed = False
        self.released = False
        self.ways_dropped = 0

    @property
    def point_count(self) -> int:
        return len(self._points)

    @property
    def way_count(self) -> int:
        return len(self._ways)

    def _assert_open(self, entity: str) -> None:
        if self.sealed:
            raise StructuralParseError("entity appears after relations started", entity=entity)

    def record_point(self, point_id: int, lat: float, lon: float, tags: dict[str, str] | None = None) -> None:
        self._assert_open(f"node/{point_id}")
        self._points[point_id] = (lat, lon)

    def record_way(self, way_id: int, point_ids: Iterable[int], tags: dict[str, str] | None = None) -> bool:
        self._assert_open(f"way/{way_id}")
        if self._retain_way is not None and not self._retain_way(way_id):
            self.ways_dropped += 1
            return False
        self._ways[way_id] = array("q", point_ids)
        return True

    def lookup_point(self, point_id: int) -> PointEntity | None:
        coordinate = self._points.get(point_id)
        if coordinate is None:
            return None
        return PointEntity(point_id, coordinate[0], coordinate[1])

    def lookup_way(self, way_id: int) -> WayEntity | None:
        refs = self._ways.get(way_id)
        if refs is None:
            return None
        return WayEntity(way_id, tuple(refs))

    def coordinates(self, point_ids: Iterable[int]) -> list[tuple[float, float]]:
        """Known coordinates for ``point_ids`` in order; unknown ids are skipped."""
        points = self._points
        return [points[ref] for ref in point_ids if ref in points]

    def centroid(self, point_ids: Iterable[int]) -> tuple[float, float] | None:
        # Each distinct point counts once, so a closed ring's repeated first node does not skew the mean.
        coordinates = self.coordinates(dict.fromkeys(point_ids))
        if not coordinates:
            return None
        lat = sum(c[0] for c in coordinates) / len(coordinates)
        lon = sum(c[1] for c in coordinates) / len(coordinates)
        return lat, lon

    def resolve_way_centroid(self, way: WayEntity | int) -> tuple[float, float] | None:
        """Arithmetic mean of the way's points; an approximation, not a polygon centroid."""
        if isinstance(way, int):
            resolved = self.lookup_way(way)
            if resolved is None:
                return None
            way = resolved
        return self.centroid(way.refs)

    def seal(self) -> None:
        """Mark the end of phase 1. No more points or ways may be recorded."""
        self.sealed = True

    def release(self) -> None:
        self._points.clear()
        self._ways.clear()
        self.released = True
