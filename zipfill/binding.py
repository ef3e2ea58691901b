"""Form auto-fill binding for the embeddable client.

Fields are modelled as :class:`FormField` objects (a value, visibility,
optional choices and event listeners) so any UI toolkit can adapt its widgets
to them. Typing a 5-character code into the zip field fills city, state and
county; codes shared by several cities populate a selection field instead.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional

from zipfill.errors import ValidationError
from zipfill.lookup.models import Location, LookupResult
from zipfill.lookup.normalize import ZIP_LENGTH

if TYPE_CHECKING:
    from zipfill.lookup.service import LookupService

logger = logging.getLogger(__name__)

Handler = Callable[["FormField"], None]

SELECT_PLACEHOLDER = "Select city..."


class FormField:
    """An observable form control.

    ``options`` holds ``(value, label)`` pairs when the field is a choice
    field, and is None for free-text fields.
    """

    def __init__(
        self,
        value: str = "",
        options: list[tuple[str, str]] | None = None,
        visible: bool = True,
    ) -> None:
        self.value = value
        self.options = options
        self.visible = visible
        self._listeners: dict[str, list[Handler]] = defaultdict(list)

    @property
    def is_choice(self) -> bool:
        return self.options is not None

    def on(self, event: str, handler: Handler) -> None:
        self._listeners[event].append(handler)

    def off(self, event: str, handler: Handler) -> None:
        if handler in self._listeners[event]:
            self._listeners[event].remove(handler)

    def emit(self, event: str) -> None:
        for handler in list(self._listeners[event]):
            handler(self)

    def set_value(self, value: str, *events: str) -> None:
        self.value = value
        for event in events:
            self.emit(event)

    def listener_count(self, event: str) -> int:
        return len(self._listeners[event])


@dataclass
class BindOptions:
    zip_input: Optional[FormField]
    city_input: Optional[FormField] = None
    state_input: Optional[FormField] = None
    county_input: Optional[FormField] = None
    city_select: Optional[FormField] = None
    on_lookup: Optional[Callable[[Optional[LookupResult]], None]] = None
    on_multiple: Optional[Callable[[tuple[Location, ...]], None]] = None
    on_not_found: Optional[Callable[[str], None]] = None


class FormBinding:
    def __init__(self, service: LookupService, options: BindOptions) -> None:
        self._service = service
        self._opts = options
        self._select_handler: Handler | None = None

    def attach(self) -> None:
        self._opts.zip_input.on("input", self._handle_input)
        self._opts.zip_input.on("change", self._handle_input)

    def detach(self) -> None:
        self._opts.zip_input.off("input", self._handle_input)
        self._opts.zip_input.off("change", self._handle_input)
        self._clear_select_handler()

    def _handle_input(self, field: FormField) -> None:
        opts = self._opts
        code = field.value.strip()

        # Only look up complete codes
        if len(code) != ZIP_LENGTH:
            if opts.city_select:
                opts.city_select.visible = False
            return

        result = self._service.lookup(code)
        if opts.on_lookup:
            opts.on_lookup(result)

        if result is None:
            if opts.on_not_found:
                opts.on_not_found(code)
            return

        locations = result.locations
        if result.has_multiple:
            if opts.city_select:
                self._populate_select(locations)
                opts.city_select.visible = True
                if opts.city_input:
                    opts.city_input.visible = False
            elif opts.on_multiple:
                opts.on_multiple(locations)
            else:
                self._fill(locations[0], opts.city_input)
        else:
            if opts.city_select:
                opts.city_select.visible = False
                if opts.city_input:
                    opts.city_input.visible = True
            self._fill(locations[0], opts.city_input)

    def _fill(self, location: Location, city: FormField | None) -> None:
        opts = self._opts
        if city:
            city.set_value(location.city, "input")
        state = opts.state_input
        if state:
            if state.is_choice:
                match = next(
                    (value for value, label in state.options if location.state in (value, label)),
                    None,
                )
                if match is not None:
                    state.value = match
            else:
                state.value = location.state
            state.emit("input")
            state.emit("change")
        if opts.county_input:
            opts.county_input.set_value(location.county, "input")

    def _populate_select(self, locations: tuple[Location, ...]) -> None:
        select = self._opts.city_select
        select.options = [("", SELECT_PLACEHOLDER)] + [
            (str(i), f"{loc.city}, {loc.state}") for i, loc in enumerate(locations)
        ]
        select.value = ""

        def handle_change(field: FormField) -> None:
            if not field.value.isdigit():
                return
            idx = int(field.value)
            if idx < len(locations):
                self._fill(locations[idx], None)
                if self._opts.city_input:
                    self._opts.city_input.value = locations[idx].city

        # One change handler at a time, tied to the latest lookup
        self._clear_select_handler()
        self._select_handler = handle_change
        select.on("change", handle_change)

    def _clear_select_handler(self) -> None:
        if self._select_handler and self._opts.city_select:
            self._opts.city_select.off("change", self._select_handler)
        self._select_handler = None


def bind(service: LookupService, options: BindOptions) -> Callable[[], None]:
    """Attach auto-fill behaviour to the given fields. Returns the unbind function."""
    if options.zip_input is None:
        logger.error("zip_input not provided")
        raise ValidationError("zip_input is required")
    binding = FormBinding(service, options)
    binding.attach()
    return binding.detach
