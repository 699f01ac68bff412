"""Address search and meter-identifier (ESIID) disambiguation.

Address search is debounced and generation-stamped: every call to
:meth:`AddressSearch.search` bumps a counter, and a response is applied
only if its generation is still the latest when it arrives.  Stale
responses are dropped, never merged.

Meter resolution turns a candidate list into one of three outcomes:

``NOT_FOUND``
    No active candidate.  The user must try a different address.
``CONFIRMED``
    A single active match (or a unit-number match among several), so no
    user action is needed.
``AMBIGUOUS``
    Several candidates.  The user selects an active one and then
    confirms explicitly; inactive candidates are listed but cannot be
    selected.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import re
import time
from collections.abc import Awaitable, Iterable
from dataclasses import dataclass, replace
from typing import TypeVar

from movein.errors import ValidationError
from movein.gateway.base import AddressLookup
from movein.gateway.ercot import unit_digits
from movein.models import AddressSuggestion, MeterCandidate

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 3
DEBOUNCE_SECONDS = 0.3
MAX_SUGGESTIONS = 10
MIN_LOADING_SECONDS = 1.5

_APT_PATTERN = re.compile(r"APT\s*(\d+)", re.IGNORECASE)

T = TypeVar("T")


async def hold_minimum(awaitable: Awaitable[T], min_seconds: float) -> T:
    """Await *awaitable* but take at least *min_seconds* overall.

    Applies to failures too, so a loading indicator never flashes.
    """
    started = time.monotonic()
    try:
        return await awaitable
    finally:
        remaining = min_seconds - (time.monotonic() - started)
        if remaining > 0:
            await asyncio.sleep(remaining)


# ---------------------------------------------------------------------------
# Address search
# ---------------------------------------------------------------------------


def filter_suggestions(
    rows: Iterable[AddressSuggestion],
    limit: int = MAX_SUGGESTIONS,
) -> list[AddressSuggestion]:
    """Keep active residential rows, drop street+city+zip duplicates, cap at *limit*."""
    seen: set[tuple[str, str, str]] = set()
    kept: list[AddressSuggestion] = []
    for row in rows:
        if row.status.strip().lower() != "active":
            continue
        if row.premise_type.strip().lower() != "residential":
            continue
        key = (row.address.strip().lower(), row.city.strip().lower(), row.zip_code.strip())
        if key in seen:
            continue
        seen.add(key)
        kept.append(row)
        if len(kept) >= limit:
            break
    return kept


class AddressSearch:
    """Debounced, generation-stamped address autocomplete.

    Args:
        lookup: The address-search collaborator.
        debounce_seconds: Quiet period before a query is sent.
    """

    def __init__(self, lookup: AddressLookup, *, debounce_seconds: float = DEBOUNCE_SECONDS) -> None:
        self._lookup = lookup
        self._debounce = debounce_seconds
        self._generation = 0
        self.query = ""
        self.results: list[AddressSuggestion] = []

    @property
    def generation(self) -> int:
        return self._generation

    async def search(self, query: str) -> list[AddressSuggestion] | None:
        """Run a search for *query*.

        Returns the applied results, or ``None`` when a newer query
        superseded this one before its response arrived.
        """
        self._generation += 1
        generation = self._generation
        self.query = query

        if len(query.strip()) < MIN_QUERY_LENGTH:
            self.results = []
            return self.results

        if self._debounce > 0:
            await asyncio.sleep(self._debounce)
        if generation != self._generation:
            return None

        rows = await asyncio.to_thread(self._lookup.search_addresses, query.strip())
        if generation != self._generation:
            logger.debug("Dropping stale address results for %r (generation %d)", query, generation)
            return None

        self.results = filter_suggestions(rows)
        return self.results

    def clear(self) -> None:
        self._generation += 1
        self.query = ""
        self.results = []


# ---------------------------------------------------------------------------
# Meter resolution
# ---------------------------------------------------------------------------


class ResolutionOutcome(enum.Enum):
    NOT_FOUND = "not_found"
    CONFIRMED = "confirmed"
    AMBIGUOUS = "ambiguous"


@dataclass(frozen=True)
class MeterResolution:
    """Disambiguation state for one address."""

    outcome: ResolutionOutcome
    candidates: tuple[MeterCandidate, ...] = ()
    selected: MeterCandidate | None = None
    confirmed: bool = False

    @property
    def confirmed_esiid(self) -> str | None:
        if self.confirmed and self.selected is not None:
            return self.selected.esiid
        return None

    @property
    def needs_user_action(self) -> bool:
        return self.outcome is ResolutionOutcome.AMBIGUOUS and not self.confirmed

    def to_dict(self) -> dict[str, object]:
        return {
            "outcome": self.outcome.value,
            "candidates": [c.to_dict() for c in self.candidates],
            "selected": self.selected.esiid if self.selected else None,
            "confirmed": self.confirmed,
        }


def _candidate_unit(candidate: MeterCandidate) -> str | None:
    match = _APT_PATTERN.search(candidate.address) or _APT_PATTERN.search(candidate.address_overflow)
    return match.group(1) if match else None


def resolve_candidates(
    candidates: Iterable[MeterCandidate],
    unit: str | None = None,
) -> MeterResolution:
    """Classify a meter search result.

    :param candidates: Rows returned by the meter search.
    :param unit: Unit the user typed, if any; used to auto-pick among
        several candidates whose address carries ``APT <digits>``.
    """
    rows = tuple(candidates)
    active = [c for c in rows if c.is_serviceable]
    if not active:
        return MeterResolution(ResolutionOutcome.NOT_FOUND, candidates=rows)

    if len(rows) == 1:
        return MeterResolution(ResolutionOutcome.CONFIRMED, candidates=rows, selected=rows[0], confirmed=True)

    wanted = unit_digits(unit)
    if wanted:
        for candidate in active:
            if _candidate_unit(candidate) == wanted:
                return MeterResolution(
                    ResolutionOutcome.CONFIRMED,
                    candidates=rows,
                    selected=candidate,
                    confirmed=True,
                )

    return MeterResolution(ResolutionOutcome.AMBIGUOUS, candidates=rows)


def preconfirmed(esiid: str, suggestion: AddressSuggestion) -> MeterResolution:
    """Resolution for an address that already carried its meter identifier."""
    street = suggestion.address
    digits = unit_digits(suggestion.unit)
    if digits:
        street = f"{street} APT {digits}"
    candidate = MeterCandidate(
        esiid=esiid,
        address=street.upper(),
        city=suggestion.city.upper(),
        state=suggestion.state,
        zip_code=suggestion.zip_code,
        premise_type="Residential",
        status="Active",
    )
    return MeterResolution(ResolutionOutcome.CONFIRMED, candidates=(candidate,), selected=candidate, confirmed=True)


def select_candidate(resolution: MeterResolution, esiid: str) -> MeterResolution:
    """Pick one candidate; selection alone never confirms.

    :raises ValidationError: If the id is unknown or the candidate is inactive or non-residential.
    """
    for candidate in resolution.candidates:
        if candidate.esiid == esiid:
            if not candidate.is_serviceable:
                raise ValidationError({"esiid": "That meter is not an active residential meter. Choose another address."})
            return replace(resolution, selected=candidate, confirmed=False)
    raise ValidationError({"esiid": "Choose one of the listed addresses."})


def confirm_selection(resolution: MeterResolution) -> MeterResolution:
    """Explicit confirmation of the selected candidate.

    :raises ValidationError: If nothing is selected.
    """
    if resolution.selected is None:
        raise ValidationError({"esiid": "Select your address before continuing."})
    return replace(resolution, confirmed=True)
