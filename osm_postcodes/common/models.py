"""Data models used across the pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field

from osm_postcodes.common.constants import OUTPUT_COLUMNS, PROVINCE_RESOLVED

NODE = "node"
WAY = "way"
RELATION = "relation"
ENTITY_KINDS = (NODE, WAY, RELATION)


@dataclass(frozen=True)
class PointEntity:
    id: int
    lat: float
    lon: float
    tags: dict[str, str] = field(default_factory=dict)

    @property
    def ref(self) -> str:
        return f"node/{self.id}"


@dataclass(frozen=True)
class WayEntity:
    id: int
    refs: tuple[int, ...]
    tags: dict[str, str] = field(default_factory=dict)

    @property
    def closed(self) -> bool:
        return len(self.refs) > 2 and self.refs[0] == self.refs[-1]

    @property
    def ref(self) -> str:
        return f"way/{self.id}"


@dataclass(frozen=True)
class RelationMember:
    ref: int
    kind: str
    role: str = ""


@dataclass(frozen=True)
class RelationEntity:
    id: int
    members: tuple[RelationMember, ...]
    tags: dict[str, str] = field(default_factory=dict)

    @property
    def ref(self) -> str:
        return f"relation/{self.id}"

    def member_ids(self, kind: str, roles: tuple[str, ...] | None = None) -> list[int]:
        return [
            member.ref
            for member in self.members
            if member.kind == kind and (roles is None or member.role in roles)
        ]


@dataclass(frozen=True)
class AddressRecord:
    """A resolved address row. ``source`` and ``province_status`` are not persisted."""

    lat: float
    lon: float
    city: str | None
    country: str
    postcode: str
    province: str
    street: str | None
    house_number: str | None
    source: str | None = None
    province_status: str = PROVINCE_RESOLVED

    @property
    def group_key(self) -> tuple[str, str]:
        return (self.country, self.postcode)

    @property
    def row_key(self) -> tuple[str, str, str | None]:
        return (self.country, self.postcode, self.house_number)

    def to_row(self) -> tuple:
        return tuple(getattr(self, column) for column in OUTPUT_COLUMNS)
