"""Administrative boundary reconstruction and point containment."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from shapely.geometry import Point
from shapely.geometry.base import BaseGeometry
from shapely.strtree import STRtree

from osm_postcodes.common.constants import (
    DEFAULT_PROVINCE_LEVELS,
    PROVINCE_OUTSIDE,
    PROVINCE_RESOLVED,
    PROVINCE_UNRESOLVED,
    REGION_NAME_KEYS,
)
from osm_postcodes.common.geometry import close_rings, extent, region_shape
from osm_postcodes.common.logging import get_logger, log_event
from osm_postcodes.common.models import RELATION, WAY, RelationEntity
from osm_postcodes.ingest.store import EntityStore

OUTER_ROLES = ("outer", "")
INNER_ROLES = ("inner",)


@dataclass(frozen=True)
class BoundaryRegion:
    relation_id: int
    name: str
    level: int
    member_ids: frozenset[int]
    shape: BaseGeometry | None = None
    extent: BaseGeometry | None = None
    closed: bool = True

    @property
    def member_count(self) -> int:
        return len(self.member_ids)

    def contains(self, lat: float, lon: float) -> bool:
        if not self.closed or self.shape is None:
            return False
        return self.shape.intersects(Point(lon, lat))


@dataclass(frozen=True)
class BoundaryMatch:
    region: BoundaryRegion | None
    status: str

    @property
    def province(self) -> str:
        return self.region.name if self.region is not None else ""


def _region_name(tags: dict[str, str]) -> str | None:
    for key in REGION_NAME_KEYS:
        value = (tags.get(key) or "").strip()
        if value:
            return value
    return None


@dataclass
class BoundaryResolver:
    """Builds province regions from boundary relations and answers containment queries."""

    levels: tuple[int, ...] = DEFAULT_PROVINCE_LEVELS
    logger: logging.Logger = field(default_factory=get_logger)
    regions: list[BoundaryRegion] = field(default_factory=list, init=False)
    broken_regions: list[BoundaryRegion] = field(default_factory=list, init=False)
    stats: dict[str, int] = field(
        default_factory=lambda: {"resolved": 0, "unresolved": 0, "outside": 0}, init=False
    )
    _pending: list[tuple[RelationEntity, str, int]] = field(default_factory=list, init=False, repr=False)
    _regions_index: STRtree | None = field(default=None, init=False, repr=False)
    _broken_index: STRtree | None = field(default=None, init=False, repr=False)

    def classify(self, relation: RelationEntity) -> tuple[str, int] | None:
        """(name, level) when ``relation`` is a province boundary this resolver uses."""
        tags = relation.tags
        if tags.get("boundary") != "administrative" and tags.get("type") != "boundary":
            return None
        name = _region_name(tags)
        if name is None:
            return None
        raw_level = tags.get("admin_level")
        if raw_level is None:
            # A bare province tag without admin_level still names a province.
            if "province" in tags:
                return name, max(self.levels)
            return None
        try:
            level = int(raw_level.strip())
        except ValueError:
            return None
        if level not in self.levels:
            return None
        return name, level

    def member_way_ids(self, relation: RelationEntity) -> list[int]:
        return relation.member_ids(WAY, OUTER_ROLES + INNER_ROLES)

    def add_relation(self, relation: RelationEntity) -> bool:
        classified = self.classify(relation)
        if classified is None:
            return False
        name, level = classified
        self._pending.append((relation, name, level))
        return True

    def _build_region(self, relation: RelationEntity, name: str, level: int, store: EntityStore) -> BoundaryRegion:
        member_ids = frozenset(member.ref for member in relation.members if member.kind in (WAY, RELATION))
        open_chains = 0
        known: list[tuple[float, float]] = []
        rings: dict[tuple[str, ...], list] = {}

        for roles in (OUTER_ROLES, INNER_ROLES):
            chains = []
            for way_id in relation.member_ids(WAY, roles):
                way = store.lookup_way(way_id)
                if way is None:
                    open_chains += 1
                    continue
                coordinates = store.coordinates(way.refs)
                known.extend(coordinates)
                if len(coordinates) != len(way.refs):
                    open_chains += 1
                    continue
                chains.append(coordinates)
            rings[roles], unclosed = close_rings(chains)
            open_chains += unclosed

        outers = rings[OUTER_ROLES]
        closed = open_chains == 0 and bool(outers)
        return BoundaryRegion(
            relation_id=relation.id,
            name=name,
            level=level,
            member_ids=member_ids,
            shape=region_shape(outers, rings[INNER_ROLES]) if closed else None,
            extent=extent(known),
            closed=closed,
        )

    def build(self, store: EntityStore) -> None:
        for relation, name, level in self._pending:
            region = self._build_region(relation, name, level, store)
            if region.closed:
                self.regions.append(region)
            else:
                self.broken_regions.append(region)
                log_event(
                    self.logger,
                    f"boundary {name!r} could not be closed; points inside its extent stay unresolved",
                    level=logging.WARNING,
                    stage="boundaries",
                    event="BOUNDARY_OPEN",
                    status="warning",
                    error_code=PROVINCE_UNRESOLVED,
                    entity=f"relation/{relation.id}",
                )
        self._pending.clear()
        self._regions_index = STRtree([region.shape for region in self.regions]) if self.regions else None
        extents = [region for region in self.broken_regions if region.extent is not None]
        self._broken_index = STRtree([region.extent for region in extents]) if extents else None
        log_event(
            self.logger,
            "boundaries built",
            stage="boundaries",
            event="BOUNDARIES_BUILT",
            status="ok",
            rows_in=len(self.regions) + len(self.broken_regions),
            rows_out=len(self.regions),
        )

    def locate(self, lat: float, lon: float) -> BoundaryMatch:
        point = Point(lon, lat)
        if self._regions_index is not None:
            hits = self._regions_index.query(point, predicate="intersects")
            if len(hits):
                containing = [self.regions[index] for index in hits]
                best = max(containing, key=lambda region: (region.level, region.member_count))
                self.stats["resolved"] += 1
                return BoundaryMatch(best, PROVINCE_RESOLVED)
        if self._broken_index is not None and len(self._broken_index.query(point, predicate="intersects")):
            self.stats["unresolved"] += 1
            return BoundaryMatch(None, PROVINCE_UNRESOLVED)
        self.stats["outside"] += 1
        return BoundaryMatch(None, PROVINCE_OUTSIDE)
