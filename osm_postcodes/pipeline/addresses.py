"""Resolve address-bearing entities into flat address records."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterator

from osm_postcodes.common.constants import (
    CITY_KEYS,
    COUNTRY_KEYS,
    HOUSE_NUMBER_KEYS,
    POSTCODE_KEYS,
    PROVINCE_OUTSIDE,
    PROVINCE_UNRESOLVED,
    STREET_KEYS,
)
from osm_postcodes.common.logging import get_logger, log_event
from osm_postcodes.common.models import NODE, WAY, AddressRecord, PointEntity, RelationEntity, WayEntity
from osm_postcodes.ingest.store import EntityStore
from osm_postcodes.pipeline.boundaries import OUTER_ROLES, BoundaryResolver

ADDRESS_KEYS = frozenset(POSTCODE_KEYS + CITY_KEYS + STREET_KEYS + HOUSE_NUMBER_KEYS + COUNTRY_KEYS)
STREET_RELATION_TYPES = ("associatedStreet", "street")
STREET_MEMBER_ROLES = ("house", "addr:houselink", "")
AREA_RELATION_TYPES = ("multipolygon", "building")


def has_address_tags(tags: dict[str, str]) -> bool:
    return any(key in ADDRESS_KEYS for key in tags)


def _first(tags: dict[str, str], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = tags.get(key)
        if value is not None and value.strip():
            return value.strip()
    return None


def _address_tags(tags: dict[str, str]) -> dict[str, str]:
    return {key: value for key, value in tags.items() if key in ADDRESS_KEYS}


@dataclass
class _Candidate:
    source: str
    tags: dict[str, str]
    coordinate: tuple[float, float] | None = None
    outer_way_ids: tuple[int, ...] = ()


@dataclass
class AddressResolver:
    """Collects address candidates during ingest and resolves them once boundaries exist.

    Tags missing on an entity are inherited from an enclosing
    ``associatedStreet`` relation: its ``name`` becomes the street, and its
    own address tags fill any remaining gaps.
    """

    country: str
    logger: logging.Logger = field(default_factory=get_logger)
    stats: dict[str, int] = field(
        default_factory=lambda: {
            "candidates": 0,
            "resolved": 0,
            "skipped_no_postcode": 0,
            "skipped_incomplete": 0,
            "skipped_no_coordinate": 0,
            "province_unresolved": 0,
            "province_outside": 0,
        },
        init=False,
    )
    _candidates: list[_Candidate] = field(default_factory=list, init=False, repr=False)
    _inherited: dict[str, dict[str, str]] = field(default_factory=dict, init=False, repr=False)

    def _add(self, candidate: _Candidate) -> None:
        self._candidates.append(candidate)
        self.stats["candidates"] += 1

    def observe_point(self, point: PointEntity) -> None:
        if has_address_tags(point.tags):
            self._add(_Candidate(point.ref, _address_tags(point.tags), (point.lat, point.lon)))

    def observe_way(self, way: WayEntity, store: EntityStore) -> None:
        if has_address_tags(way.tags):
            # Points precede ways, so the centroid is final here and the way need not be kept.
            self._add(_Candidate(way.ref, _address_tags(way.tags), store.resolve_way_centroid(way)))

    def area_way_ids(self, relation: RelationEntity) -> list[int]:
        """Outer ways whose geometry an address-tagged area relation needs."""
        tags = relation.tags
        if "boundary" in tags or tags.get("type") not in AREA_RELATION_TYPES or not has_address_tags(tags):
            return []
        return relation.member_ids(WAY, OUTER_ROLES)

    def observe_relation(self, relation: RelationEntity) -> None:
        tags = relation.tags
        if tags.get("type") in STREET_RELATION_TYPES:
            inherited = _address_tags(tags)
            name = (tags.get("name") or "").strip()
            if name:
                inherited.setdefault("addr:street", name)
            if not inherited:
                return
            for member in relation.members:
                if member.kind in (NODE, WAY) and member.role in STREET_MEMBER_ROLES:
                    self._inherited.setdefault(f"{member.kind}/{member.ref}", inherited)
            return

        outer_way_ids = self.area_way_ids(relation)
        if outer_way_ids:
            self._add(_Candidate(relation.ref, _address_tags(tags), None, tuple(outer_way_ids)))

    def _coordinate(self, candidate: _Candidate, store: EntityStore) -> tuple[float, float] | None:
        if candidate.coordinate is not None or not candidate.outer_way_ids:
            return candidate.coordinate
        refs: list[int] = []
        for way_id in candidate.outer_way_ids:
            way = store.lookup_way(way_id)
            if way is not None:
                refs.extend(way.refs)
        return store.centroid(refs)

    def resolve(self, boundaries: BoundaryResolver, store: EntityStore) -> Iterator[AddressRecord]:
        candidates, self._candidates = self._candidates, []
        for candidate in candidates:
            tags = dict(self._inherited.get(candidate.source, {}))
            tags.update(candidate.tags)

            postcode = _first(tags, POSTCODE_KEYS)
            if postcode is None:
                self.stats["skipped_no_postcode"] += 1
                continue
            street = _first(tags, STREET_KEYS)
            house_number = _first(tags, HOUSE_NUMBER_KEYS)
            city = _first(tags, CITY_KEYS)
            if street is None and house_number is None and city is None:
                self.stats["skipped_incomplete"] += 1
                continue

            coordinate = self._coordinate(candidate, store)
            if coordinate is None:
                self.stats["skipped_no_coordinate"] += 1
                continue
            lat, lon = coordinate

            match = boundaries.locate(lat, lon)
            if match.status == PROVINCE_UNRESOLVED:
                self.stats["province_unresolved"] += 1
                log_event(
                    self.logger,
                    "province unresolved",
                    level=logging.DEBUG,
                    stage="addresses",
                    event=PROVINCE_UNRESOLVED,
                    status="warning",
                    entity=candidate.source,
                )
            elif match.status == PROVINCE_OUTSIDE:
                self.stats["province_outside"] += 1

            country = _first(tags, COUNTRY_KEYS)
            self.stats["resolved"] += 1
            yield AddressRecord(
                lat=lat,
                lon=lon,
                city=city,
                country=(country or self.country).upper(),
                postcode=postcode,
                province=match.province,
                street=street,
                house_number=house_number,
                source=candidate.source,
                province_status=match.status,
            )

        self._inherited.clear()
