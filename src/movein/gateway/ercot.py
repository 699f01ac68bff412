"""ERCOT address and meter lookup adapter.

Implements :class:`~movein.gateway.base.AddressLookup` against the ERCOT
lookup API:

1. Address search → ``GET /api/addresses?query=...``
2. ESIID search   → ``GET /api/esiids?address=...&zip_code=...``
3. Usage profile  → ``GET /api/esiids/{esiid}/profile``

Units are folded into the street line as ``APT <digits>`` because the
ESIID registry stores apartments on the address itself.

Environment variables
---------------------
``MOVEIN_ERCOT_API_URL``
    Base URL of the lookup API (defaults to production).
"""

from __future__ import annotations

import logging
import os
import re
from typing import Any
from urllib.parse import quote as url_quote

from movein.errors import UpstreamError
from movein.gateway.base import AddressLookup
from movein.gateway.http import HttpClient
from movein.models import AddressSuggestion, MeterCandidate, UsageProfile

logger = logging.getLogger(__name__)

_DEFAULT_BASE_URL = "https://ercot.api.comparepower.com"


def unit_digits(unit: str | None) -> str | None:
    """``"Apt 1214"`` → ``"1214"``; ``None`` when there are no digits."""
    if not unit:
        return None
    digits = re.sub(r"\D", "", unit)
    return digits or None


def meter_search_line(street: str, unit: str | None = None) -> str:
    digits = unit_digits(unit)
    return f"{street} APT {digits}" if digits else street


def _rows(payload: Any) -> list[dict[str, Any]]:
    if isinstance(payload, list):
        return [r for r in payload if isinstance(r, dict)]
    if isinstance(payload, dict):
        rows = payload.get("results", payload.get("data", []))
        if isinstance(rows, list):
            return [r for r in rows if isinstance(r, dict)]
    return []


class ErcotLookup(AddressLookup):
    """Concrete :class:`AddressLookup` backed by the ERCOT lookup API.

    Args:
        base_url: Base URL.  Falls back to ``MOVEIN_ERCOT_API_URL``.
        timeout: Per-request timeout in seconds.
    """

    def __init__(self, base_url: str | None = None, timeout: float = 30) -> None:
        self._http = HttpClient(
            base_url or os.environ.get("MOVEIN_ERCOT_API_URL", _DEFAULT_BASE_URL),
            "ERCOT lookup",
            timeout=timeout,
        )

    def __repr__(self) -> str:
        return f"<ErcotLookup base_url={self._http.base_url!r}>"

    def search_addresses(self, query: str) -> list[AddressSuggestion]:
        payload = self._http.request("GET", "/api/addresses", params={"query": query})
        return [AddressSuggestion.from_dict(r) for r in _rows(payload)]

    def search_meters(
        self,
        street: str,
        zip_code: str,
        unit: str | None = None,
    ) -> list[MeterCandidate]:
        params = {"address": meter_search_line(street, unit)}
        if zip_code:
            params["zip_code"] = zip_code
        payload = self._http.request("GET", "/api/esiids", params=params)
        candidates = [MeterCandidate.from_dict(r) for r in _rows(payload)]
        logger.debug("ESIID search for %s %s returned %d rows", params["address"], zip_code, len(candidates))
        return [c for c in candidates if c.esiid]

    def get_usage_profile(self, esiid: str) -> UsageProfile:
        path = f"/api/esiids/{url_quote(esiid, safe='')}/profile"
        payload = self._http.request("GET", path)
        if not isinstance(payload, dict):
            raise UpstreamError(f"Usage profile for {esiid} is not an object", code="INVALID_RESPONSE")
        try:
            return UsageProfile.from_dict(payload)
        except ValueError as exc:
            raise UpstreamError(f"Malformed usage profile for {esiid}: {exc}", code="INVALID_RESPONSE") from exc
