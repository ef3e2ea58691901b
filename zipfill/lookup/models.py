"""Location records and the lookup result views built from them."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, computed_field


class Location(BaseModel):
    model_config = ConfigDict(frozen=True)

    city: str
    state: str  # two-letter code
    county: str = ""

    def dedup_key(self) -> tuple[str, str]:
        """County is not part of the identity of a location."""
        return (self.city, self.state)


class LookupResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    zip: str
    locations: tuple[Location, ...]

    @computed_field(alias="hasMultiple")
    @property
    def has_multiple(self) -> bool:
        return len(self.locations) > 1

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class LookupFailure(BaseModel):
    """Per-code error descriptor returned inside batch results."""

    model_config = ConfigDict(frozen=True)

    error: str
    zip: Any = None

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")
