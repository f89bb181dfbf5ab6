"""Deduplicate resolved address records per (country, postcode)."""

from __future__ import annotations

from typing import Iterable, Iterator

from osm_postcodes.common.models import AddressRecord


class RecordAggregator:
    """First-write-wins filter keyed on (country, postcode, house_number).

    Each group keeps every distinct house number once plus at most one
    street-level row (``house_number is None``). Later duplicates are
    dropped, never averaged. Only the keys are held, so accepted records
    can stream straight on to the writer.
    """

    def __init__(self) -> None:
        self._seen: set[tuple[str, str, str | None]] = set()
        self._groups: set[tuple[str, str]] = set()
        self.duplicates = 0

    def add(self, record: AddressRecord) -> bool:
        key = record.row_key
        if key in self._seen:
            self.duplicates += 1
            return False
        self._seen.add(key)
        self._groups.add(record.group_key)
        return True

    def filter(self, records: Iterable[AddressRecord]) -> Iterator[AddressRecord]:
        return (record for record in records if self.add(record))

    @property
    def stats(self) -> dict[str, int]:
        return {
            "rows_in": len(self._seen) + self.duplicates,
            "rows_out": len(self._seen),
            "duplicates": self.duplicates,
            "postcode_groups": len(self._groups),
        }


def aggregate(records: Iterable[AddressRecord]) -> list[AddressRecord]:
    return list(RecordAggregator().filter(records))
