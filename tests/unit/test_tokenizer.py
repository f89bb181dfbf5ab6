import gzip
import io

import pytest

from osm_postcodes.common.errors import StructuralParseError
from osm_postcodes.ingest.tokenizer import EntityClose, EntityOpen, Member, NodeRef, OsmTokenizer, Tag, iter_events
from tests.osm_builders import document, node, relation, way


def test_events_follow_document_order_and_nest():
    data = document(
        node(1, 51.5, 5.0, addr_postcode="5038LX"),
        way(2, [1, 1]),
        relation(3, [("way", 2, "outer")], type="boundary"),
    )

    events = list(iter_events(io.BytesIO(data)))

    assert events[0] == EntityOpen("node", 1, {"id": "1", "lat": "51.5", "lon": "5.0"})
    assert events[1] == Tag("addr:postcode", "5038LX")
    assert events[2] == EntityClose("node", 1)
    assert events[3:7] == [EntityOpen("way", 2, {"id": "2"}), NodeRef(1), NodeRef(1), EntityClose("way", 2)]
    assert events[8] == Member("way", 2, "outer")
    assert events[-1] == EntityClose("relation", 3)


def test_small_chunks_give_same_events_as_one_chunk():
    data = document(*(node(i, 50.0 + i / 100, 4.0, addr_street=f"Street {i}") for i in range(1, 40)))

    whole = list(iter_events(io.BytesIO(data), chunk_size=len(data) + 1))
    chunked = list(iter_events(io.BytesIO(data), chunk_size=7))

    assert whole == chunked


def test_attribute_order_is_irrelevant():
    data = b'<osm><node lon="5.0" lat="51.0" id="9" version="2"><tag v="x" k="addr:city"/></node></osm>'

    events = list(iter_events(io.BytesIO(data)))

    assert events[0].id == 9
    assert events[1] == Tag("addr:city", "x")


def test_unknown_elements_are_skipped_and_counted():
    data = (
        b"<osm><bounds minlat='1' minlon='1' maxlat='2' maxlon='2'/>"
        b"<changeset id='5'><tag k='a' v='b'/></changeset>"
        b"<node id='1' lat='1.5' lon='1.5'><history/><tag k='name' v='n'/></node></osm>"
    )
    tokenizer = OsmTokenizer(io.BytesIO(data))

    events = list(tokenizer.events())

    assert [type(e) for e in events] == [EntityOpen, Tag, EntityClose]
    assert tokenizer.unrecognized == 1
    assert tokenizer.unrecognized_kinds == {"changeset": 1}


def test_non_numeric_id_raises_with_offset():
    data = b"<osm><node id='abc' lat='1' lon='1'/></osm>"

    with pytest.raises(StructuralParseError) as excinfo:
        list(iter_events(io.BytesIO(data)))

    assert excinfo.value.offset == len(data)
    assert "non-numeric" in str(excinfo.value)


def test_unterminated_document_raises():
    data = b"<osm><node id='1' lat='1' lon='1'><tag k='a' v='b'/>"

    with pytest.raises(StructuralParseError) as excinfo:
        list(iter_events(io.BytesIO(data)))

    assert excinfo.value.offset == len(data)


def test_attribute_without_value_is_malformed():
    data = b"<osm><node id='1' lat='1' lon='1' visible></node></osm>"

    with pytest.raises(StructuralParseError):
        list(iter_events(io.BytesIO(data)))


def test_tag_without_value_raises_with_entity():
    data = b"<osm><node id='7' lat='1' lon='1'><tag k='addr:city'/></node></osm>"

    with pytest.raises(StructuralParseError) as excinfo:
        list(iter_events(io.BytesIO(data)))

    assert excinfo.value.entity == "node/7"


def test_events_before_fault_are_delivered():
    data = b"<osm><node id='1' lat='1' lon='1'/><node id='2' lat='1' lon='1'><broken</osm>"
    seen = []

    with pytest.raises(StructuralParseError):
        for event in iter_events(io.BytesIO(data), chunk_size=len(data)):
            seen.append(event)

    assert EntityClose("node", 1) in seen


def test_truncated_compressed_input_raises_structural_error():
    payload = gzip.compress(document(*(node(n, 1.0, 1.0, addr_postcode="1000AA") for n in range(1, 200))))
    truncated = gzip.GzipFile(fileobj=io.BytesIO(payload[: len(payload) // 2]))

    with pytest.raises(StructuralParseError, match="input stream unreadable") as excinfo:
        list(iter_events(truncated, chunk_size=64))

    assert excinfo.value.offset is not None
