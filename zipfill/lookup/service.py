"""Lookup service: loads the zip artifact once and answers lookups from memory."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Union

import httpx

from zipfill.errors import CapacityError, DataLoadError, NotFoundError, ValidationError
from zipfill.lookup.models import LookupFailure, LookupResult
from zipfill.lookup.normalize import normalize_zip
from zipfill.lookup.table import LookupTable

if TYPE_CHECKING:
    from zipfill.binding import BindOptions

logger = logging.getLogger(__name__)

# A mapping of pre-bundled data, a filesystem path or an http(s) URL.
DataSource = Union[Mapping[str, Any], str, Path]

MAX_BATCH_SIZE = 100


class LookupService:
    """Owns one immutable :class:`LookupTable` for the life of the process.

    ``load()`` is idempotent and concurrent first calls share a single
    in-flight load. Lookups never touch disk or network.
    """

    def __init__(
        self,
        default_source: DataSource | None = None,
        states_path: str | Path | None = None,
        timeout: float = 10.0,
        batch_limit: int = MAX_BATCH_SIZE,
    ) -> None:
        self._default_source = default_source
        self._states_path = Path(states_path) if states_path else None
        self._timeout = timeout
        self._batch_limit = batch_limit
        self._table: LookupTable | None = None
        self._states: list[str] = []
        self._load_task: asyncio.Future | None = None

    # -- Lifecycle --

    @property
    def loaded(self) -> bool:
        return self._table is not None

    async def load(self, source: DataSource | None = None) -> LookupService:
        """Load the artifact once. Later calls return immediately.

        Raises DataLoadError on fetch or parse failure and leaves the service
        unloaded so the call can be retried. Cancelling one caller does not
        stop the load; the others still get its outcome.
        """
        if self._table is not None:
            return self
        if self._load_task is None:
            task = asyncio.ensure_future(self._load(source))
            task.add_done_callback(self._load_finished)
            self._load_task = task
        # A cancelled waiter must not cancel the load the others are sharing
        await asyncio.shield(self._load_task)
        return self

    def _load_finished(self, task: asyncio.Future) -> None:
        if task.cancelled() or task.exception() is not None:
            if self._load_task is task:
                self._load_task = None

    async def _load(self, source: DataSource | None) -> None:
        if source is None:
            source = self._default_source
        try:
            data = await self._fetch(source)
            table = LookupTable.from_artifact(data)
            states = await self._read_states(table)
        except (OSError, ValueError, httpx.HTTPError) as e:
            logger.exception("Failed to load zip data from %s", _describe(source))
            raise DataLoadError(f"Failed to load zip data: {e}") from e

        self._table = table
        self._states = states
        logger.info(
            "Loaded %d zip codes (%d multi-city) from %s",
            len(table), table.multi_city_count(), _describe(source),
        )

    async def _fetch(self, source: DataSource | None) -> Any:
        if source is None:
            raise DataLoadError("No zip data source configured")
        if isinstance(source, Mapping):
            return source
        if isinstance(source, str) and source.startswith(("http://", "https://")):
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.get(source)
                resp.raise_for_status()
                return resp.json()
        text = await asyncio.to_thread(Path(source).read_text, encoding="utf-8")
        return json.loads(text)

    async def _read_states(self, table: LookupTable) -> list[str]:
        if self._states_path and self._states_path.exists():
            text = await asyncio.to_thread(self._states_path.read_text, encoding="utf-8")
            states = json.loads(text)
            if not isinstance(states, list):
                raise ValueError(f"{self._states_path} must contain a JSON array")
            return [str(s) for s in states]
        return table.states()

    # -- Queries --

    @property
    def states(self) -> list[str]:
        return list(self._states)

    @property
    def size(self) -> int:
        return len(self._table) if self._table is not None else 0

    def find(self, code: Any) -> LookupResult:
        """Resolve ``code`` or raise.

        ValidationError for a malformed code, NotFoundError for an absent one,
        DataLoadError when nothing has been loaded yet.
        """
        if self._table is None:
            raise DataLoadError("Zip data not loaded")
        normalized = normalize_zip(code)
        if normalized is None:
            raise ValidationError("Invalid zip code format", zip=code)
        locations = self._table.get(normalized)
        if locations is None:
            raise NotFoundError("Zip code not found", zip=normalized)
        return LookupResult(zip=normalized, locations=locations)

    def lookup(self, code: Any) -> LookupResult | None:
        """Resolve ``code``, returning None when not loaded, invalid or absent."""
        if self._table is None:
            logger.warning("Zip data not loaded. Call load() first.")
            return None
        try:
            return self.find(code)
        except (ValidationError, NotFoundError):
            return None

    def batch(self, codes: Any) -> list[LookupResult | LookupFailure]:
        """Resolve each code in order. Misses become ``{error, zip}`` entries."""
        if isinstance(codes, (str, bytes)) or not isinstance(codes, Sequence):
            raise ValidationError("Missing or invalid zips array")
        if len(codes) > self._batch_limit:
            raise CapacityError(f"Maximum {self._batch_limit} zips per request")

        results: list[LookupResult | LookupFailure] = []
        for code in codes:
            try:
                results.append(self.find(code))
            except (ValidationError, NotFoundError) as e:
                results.append(LookupFailure(error=e.message, zip=e.zip))
        return results

    def bind(self, options: BindOptions) -> Callable[[], None]:
        """Wire form fields to this service. Returns a function that detaches them."""
        from zipfill.binding import bind

        return bind(self, options)


def _describe(source: DataSource | None) -> str:
    if isinstance(source, Mapping):
        return "in-memory data"
    return str(source)
