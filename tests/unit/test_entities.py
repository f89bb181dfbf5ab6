import io

import pytest

from osm_postcodes.common.errors import StructuralParseError
from osm_postcodes.common.models import PointEntity, RelationEntity, RelationMember, WayEntity
from osm_postcodes.ingest.entities import iter_entities
from osm_postcodes.ingest.tokenizer import OsmTokenizer
from tests.osm_builders import document, node, relation, way


def _entities(data: bytes) -> list:
    return list(iter_entities(OsmTokenizer(io.BytesIO(data))))


def test_entities_are_assembled_with_tags_refs_and_members():
    data = document(
        node(1, 51.56, 5.07, addr_postcode="5038LX"),
        node(2, 51.0, 5.0),
        way(10, [1, 2, 1], building="yes"),
        relation(20, [("way", 10, "outer"), ("node", 1, "label")], type="multipolygon"),
    )

    entities = _entities(data)

    assert entities[0] == PointEntity(1, 51.56, 5.07, {"addr:postcode": "5038LX"})
    assert entities[1] == PointEntity(2, 51.0, 5.0, {})
    assert entities[2] == WayEntity(10, (1, 2, 1), {"building": "yes"})
    assert entities[2].closed
    assert entities[3] == RelationEntity(
        20,
        (RelationMember(10, "way", "outer"), RelationMember(1, "node", "label")),
        {"type": "multipolygon"},
    )


def test_node_without_coordinates_raises():
    with pytest.raises(StructuralParseError) as excinfo:
        _entities(b"<osm><node id='3' lat='51.0'/></osm>")

    assert excinfo.value.entity == "node/3"


def test_node_with_out_of_range_latitude_raises():
    with pytest.raises(StructuralParseError):
        _entities(b"<osm><node id='3' lat='91.0' lon='0'/></osm>")
