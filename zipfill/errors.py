"""Error taxonomy shared by the lookup service and the HTTP gateway."""

from __future__ import annotations

from typing import Any


class ZipFillError(Exception):
    """Base class. Subclasses set the HTTP status they surface as."""

    status_code = 500

    def __init__(self, message: str, zip: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.zip = zip

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"error": self.message}
        if self.zip is not None:
            payload["zip"] = self.zip
        return payload


class ValidationError(ZipFillError):
    """Malformed or missing input."""

    status_code = 400


class NotFoundError(ZipFillError):
    """Well-formed code with no matching record. A normal negative result."""

    status_code = 404


class CapacityError(ZipFillError):
    """Batch larger than the allowed maximum. Rejected without partial work."""

    status_code = 400


class DataLoadError(ZipFillError):
    """The lookup artifact could not be fetched or parsed."""

    status_code = 503
