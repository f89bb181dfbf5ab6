"""
Incremental OSM XML tokenizer.

The input is fed to ``xml.etree.ElementTree.XMLPullParser`` in fixed-size
chunks, so memory stays proportional to one entity rather than the whole
document. Completed elements are detached from the root as soon as their
close event has been emitted.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
import zlib
from dataclasses import dataclass
from typing import BinaryIO, Iterator, Union

from osm_postcodes.common.constants import DEFAULT_CHUNK_SIZE
from osm_postcodes.common.errors import StructuralParseError
from osm_postcodes.common.models import ENTITY_KINDS, RELATION, WAY

STRUCTURAL_ELEMENTS = frozenset({"osm", "osmChange", "bounds", "bound", "note", "meta"})

_ROOT_DEPTH = 1
_ENTITY_DEPTH = 2
_CHILD_DEPTH = 3


@dataclass(frozen=True)
class EntityOpen:
    kind: str
    id: int
    attributes: dict[str, str]


@dataclass(frozen=True)
class Tag:
    key: str
    value: str


@dataclass(frozen=True)
class NodeRef:
    ref: int


@dataclass(frozen=True)
class Member:
    kind: str
    ref: int
    role: str


@dataclass(frozen=True)
class EntityClose:
    kind: str
    id: int


Event = Union[EntityOpen, Tag, NodeRef, Member, EntityClose]


def _parse_int(value: str | None, what: str, offset: int, entity: str | None) -> int:
    if value is None:
        raise StructuralParseError(f"missing {what}", offset=offset, entity=entity)
    try:
        return int(value)
    except ValueError:
        raise StructuralParseError(f"non-numeric {what}: {value!r}", offset=offset, entity=entity) from None


class OsmTokenizer:
    """Turns an OSM XML byte stream into a forward-only sequence of events.

    ``offset`` is the number of bytes consumed when the last event (or
    error) was produced. ``unrecognized`` counts top-level elements that
    are neither entities nor known structural elements.
    """

    def __init__(self, stream: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self._stream = stream
        self._chunk_size = chunk_size
        self.offset = 0
        self.unrecognized = 0
        self.unrecognized_kinds: dict[str, int] = {}

    def _position_error(self, exc: ET.ParseError) -> StructuralParseError:
        line, column = getattr(exc, "position", (None, None))
        message = f"malformed XML: {exc}"
        if line is not None:
            message = f"malformed XML at line {line}, column {column}: {exc}"
        return StructuralParseError(message, offset=self.offset)

    def _drain(self, parser: ET.XMLPullParser) -> Iterator[tuple[str, ET.Element]]:
        # read_events() re-raises a parse error only after the events that preceded it.
        try:
            yield from parser.read_events()
        except ET.ParseError as exc:
            raise self._position_error(exc) from None

    def _read(self) -> bytes:
        try:
            return self._stream.read(self._chunk_size)
        except (EOFError, OSError, zlib.error) as exc:
            # Truncated or corrupt compressed input surfaces here, not in the XML parser.
            raise StructuralParseError(f"input stream unreadable: {exc}", offset=self.offset) from exc

    def _raw_events(self, parser: ET.XMLPullParser) -> Iterator[tuple[str, ET.Element]]:
        while True:
            chunk = self._read()
            if not chunk:
                break
            self.offset += len(chunk)
            try:
                parser.feed(chunk)
            except ET.ParseError as exc:
                raise self._position_error(exc) from None
            yield from self._drain(parser)
        try:
            parser.close()
        except ET.ParseError as exc:
            yield from self._drain(parser)
            raise self._position_error(exc) from None
        yield from self._drain(parser)

    def events(self) -> Iterator[Event]:
        parser = ET.XMLPullParser(events=("start", "end"))
        root: ET.Element | None = None
        depth = 0
        current: tuple[str, int] | None = None

        for event, elem in self._raw_events(parser):
            if event == "start":
                depth += 1
                if depth == _ROOT_DEPTH:
                    root = elem
                elif depth == _ENTITY_DEPTH:
                    if elem.tag in ENTITY_KINDS:
                        entity_id = _parse_int(elem.get("id"), f"{elem.tag} id", self.offset, None)
                        current = (elem.tag, entity_id)
                        yield EntityOpen(elem.tag, entity_id, dict(elem.attrib))
                    elif elem.tag not in STRUCTURAL_ELEMENTS:
                        self.unrecognized += 1
                        self.unrecognized_kinds[elem.tag] = self.unrecognized_kinds.get(elem.tag, 0) + 1
                elif depth == _CHILD_DEPTH and current is not None:
                    child = self._child_event(elem, current)
                    if child is not None:
                        yield child
                continue

            if depth == _ENTITY_DEPTH:
                if current is not None and elem.tag == current[0]:
                    yield EntityClose(*current)
                    current = None
                if root is not None:
                    root.remove(elem)
            depth -= 1

        if current is not None:
            raise StructuralParseError("unterminated entity", offset=self.offset, entity=f"{current[0]}/{current[1]}")

    def _child_event(self, elem: ET.Element, current: tuple[str, int]) -> Event | None:
        entity = f"{current[0]}/{current[1]}"
        if elem.tag == "tag":
            key = elem.get("k")
            value = elem.get("v")
            if key is None or value is None:
                raise StructuralParseError("tag without key or value", offset=self.offset, entity=entity)
            return Tag(key, value)
        if elem.tag == "nd" and current[0] == WAY:
            return NodeRef(_parse_int(elem.get("ref"), "nd ref", self.offset, entity))
        if elem.tag == "member" and current[0] == RELATION:
            kind = elem.get("type")
            if kind not in ENTITY_KINDS:
                return None
            ref = _parse_int(elem.get("ref"), "member ref", self.offset, entity)
            return Member(kind, ref, elem.get("role") or "")
        return None


def iter_events(stream: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[Event]:
    return OsmTokenizer(stream, chunk_size=chunk_size).events()


