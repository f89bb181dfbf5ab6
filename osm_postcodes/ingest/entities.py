"""Fold tokenizer events into point, way and relation entities."""

from __future__ import annotations

from typing import Iterator, Union

from osm_postcodes.common.errors import StructuralParseError
from osm_postcodes.common.models import (
    NODE,
    WAY,
    PointEntity,
    RelationEntity,
    RelationMember,
    WayEntity,
)
from osm_postcodes.ingest.tokenizer import EntityClose, EntityOpen, Member, NodeRef, OsmTokenizer, Tag

Entity = Union[PointEntity, WayEntity, RelationEntity]


def _coordinate(attributes: dict[str, str], name: str, offset: int, entity: str) -> float:
    raw = attributes.get(name)
    if raw is None:
        raise StructuralParseError(f"node without {name}", offset=offset, entity=entity)
    try:
        value = float(raw)
    except ValueError:
        raise StructuralParseError(f"non-numeric {name}: {raw!r}", offset=offset, entity=entity) from None
    limit = 90.0 if name == "lat" else 180.0
    if not -limit <= value <= limit:
        raise StructuralParseError(f"{name} out of range: {value}", offset=offset, entity=entity)
    return value


def iter_entities(tokenizer: OsmTokenizer) -> Iterator[Entity]:
    """Yield one entity per open/close pair, in document order."""
    opened: EntityOpen | None = None
    tags: dict[str, str] = {}
    refs: list[int] = []
    members: list[RelationMember] = []

    for event in tokenizer.events():
        if isinstance(event, EntityOpen):
            opened = event
            tags = {}
            refs = []
            members = []
        elif isinstance(event, Tag):
            tags[event.key] = event.value
        elif isinstance(event, NodeRef):
            refs.append(event.ref)
        elif isinstance(event, Member):
            members.append(RelationMember(event.ref, event.kind, event.role))
        elif isinstance(event, EntityClose) and opened is not None:
            entity_ref = f"{opened.kind}/{opened.id}"
            if opened.kind == NODE:
                yield PointEntity(
                    id=opened.id,
                    lat=_coordinate(opened.attributes, "lat", tokenizer.offset, entity_ref),
                    lon=_coordinate(opened.attributes, "lon", tokenizer.offset, entity_ref),
                    tags=tags,
                )
            elif opened.kind == WAY:
                yield WayEntity(id=opened.id, refs=tuple(refs), tags=tags)
            else:
                yield RelationEntity(id=opened.id, members=tuple(members), tags=tags)
            opened = None
