"""Immutable in-memory zip code table."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from zipfill.lookup.models import Location
from zipfill.lookup.normalize import is_valid_zip

logger = logging.getLogger(__name__)


def dedupe_locations(locations: Iterable[Location]) -> tuple[Location, ...]:
    """Drop repeated (city, state) pairs, keeping the first occurrence."""
    seen: set[tuple[str, str]] = set()
    unique: list[Location] = []
    for location in locations:
        key = location.dedup_key()
        if key in seen:
            continue
        seen.add(key)
        unique.append(location)
    return tuple(unique)


class LookupTable:
    """Ordered code sequence plus an index from code to its locations.

    Every key is a 5-digit string and every entry holds at least one
    location. Nothing mutates the table after construction.
    """

    def __init__(self, entries: Iterable[tuple[str, Iterable[Location]]]) -> None:
        codes: list[str] = []
        index: dict[str, tuple[Location, ...]] = {}
        for code, locations in entries:
            if not is_valid_zip(code):
                raise ValueError(f"Invalid zip code key: {code!r}")
            resolved = dedupe_locations(locations)
            if not resolved:
                logger.warning("Skipping zip %s with no locations", code)
                continue
            if code in index:
                index[code] = dedupe_locations(index[code] + resolved)
                continue
            codes.append(code)
            index[code] = resolved
        self._codes = tuple(codes)
        self._index = index

    @classmethod
    def from_artifact(cls, data: Mapping[str, Any]) -> LookupTable:
        """Build from the JSON artifact.

        Values may be a single location object or an array of them; both are
        turned into a sequence here so nothing downstream sees the difference.
        """
        if not isinstance(data, Mapping):
            raise ValueError("Lookup artifact must be a JSON object")

        def entries() -> Iterator[tuple[str, list[Location]]]:
            for code, value in data.items():
                records = value if isinstance(value, list) else [value]
                yield code, [Location.model_validate(record) for record in records]

        return cls(entries())

    def get(self, code: str) -> tuple[Location, ...] | None:
        return self._index.get(code)

    def codes(self) -> tuple[str, ...]:
        return self._codes

    def states(self) -> list[str]:
        """Distinct state codes, sorted."""
        return sorted({loc.state for locs in self._index.values() for loc in locs})

    def multi_city_count(self) -> int:
        return sum(1 for locs in self._index.values() if len(locs) > 1)

    def __contains__(self, code: object) -> bool:
        return code in self._index

    def __len__(self) -> int:
        return len(self._codes)

    def __iter__(self) -> Iterator[str]:
        return iter(self._codes)
