"""Zip code lookup: normalization, the in-memory table and the service around it."""

from zipfill.lookup.models import Location, LookupFailure, LookupResult
from zipfill.lookup.normalize import is_valid_zip, normalize_zip
from zipfill.lookup.service import MAX_BATCH_SIZE, LookupService
from zipfill.lookup.table import LookupTable

__all__ = [
    "Location",
    "LookupFailure",
    "LookupResult",
    "LookupService",
    "LookupTable",
    "MAX_BATCH_SIZE",
    "is_valid_zip",
    "normalize_zip",
]
