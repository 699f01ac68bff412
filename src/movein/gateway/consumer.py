"""Consumer API adapter (session, catalog, cart, checkout).

Implements :class:`~movein.gateway.base.ConsumerApi`:

1. Session id     → ``POST /users/generate-id``
2. Plan catalog   → ``GET /services/{service}/plans?zipCode=...``
3. Cart           → ``POST /cart/plans``, ``DELETE /cart/plans/{planId}``
4. Checkout steps → ``GET /checkout/steps``
5. Submit         → ``POST /checkout/complete`` (multipart: ``data`` + files)
6. Order lookup   → ``GET /orders/lookup``

Session-bound calls carry the session token in the ``x-user-id`` header.

Catalog fetches retry rate-limit (HTTP 429) responses only: three
attempts in total, waiting 1s, 2s, then 4s after each rate-limited
response.  Any other failure status is raised immediately.

Environment variables
---------------------
``MOVEIN_CONSUMER_API_URL``
    Base URL of the consumer API.
"""

from __future__ import annotations

import json
import logging
import os
import time
from collections.abc import Sequence
from typing import Any
from urllib.parse import quote as url_quote

from movein.errors import RateLimitError, SessionError, UpstreamError
from movein.gateway.base import CheckoutFile, CheckoutReceipt, ConsumerApi
from movein.gateway.http import HttpClient
from movein.models import ProviderStep, ServicePlan, ServiceType

logger = logging.getLogger(__name__)

_DEFAULT_BASE_URL = "https://consumer-api.2tion.example/api/v1"
_RATE_LIMIT_DELAYS: tuple[float, ...] = (1.0, 2.0, 4.0)
_SESSION_HEADER = "x-user-id"


class ConsumerApiClient(ConsumerApi):
    """Concrete :class:`ConsumerApi` over HTTP.

    Args:
        base_url: Base URL.  Falls back to ``MOVEIN_CONSUMER_API_URL``.
        timeout: Per-request timeout in seconds.
        retry_delays: Waits applied after each rate-limited catalog
            response; its length is the attempt budget.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = 30,
        *,
        retry_delays: Sequence[float] = _RATE_LIMIT_DELAYS,
    ) -> None:
        self._http = HttpClient(
            base_url or os.environ.get("MOVEIN_CONSUMER_API_URL", _DEFAULT_BASE_URL),
            "consumer API",
            timeout=timeout,
        )
        if not retry_delays:
            raise ValueError("retry_delays must allow at least one attempt")
        self._retry_delays = tuple(retry_delays)

    def __repr__(self) -> str:
        return f"<ConsumerApiClient base_url={self._http.base_url!r}>"

    @staticmethod
    def _session_headers(session_id: str) -> dict[str, str]:
        if not session_id:
            raise SessionError("Session id required for this request", code="SESSION_MISSING")
        return {_SESSION_HEADER: session_id}

    # -- session --------------------------------------------------------------

    def generate_session_id(self) -> str:
        try:
            payload = self._http.request("POST", "/users/generate-id")
        except UpstreamError as exc:
            raise SessionError(f"Failed to generate session id: {exc}", code=exc.code) from exc
        session_id = payload.get("userId") if isinstance(payload, dict) else None
        if not session_id:
            raise SessionError("Session id response missing userId", code="INVALID_RESPONSE")
        return str(session_id)

    # -- catalog --------------------------------------------------------------

    def list_plans(
        self,
        service: ServiceType,
        zip_code: str,
        usage: Sequence[float] | None = None,
    ) -> list[ServicePlan]:
        path = f"/services/{service.value}/plans"
        params: dict[str, Any] = {"zipCode": zip_code}
        if usage is not None and service is ServiceType.ELECTRICITY:
            params["electricityUsage"] = ",".join(f"{v:g}" for v in usage)

        attempts = len(self._retry_delays)
        for attempt, delay in enumerate(self._retry_delays, start=1):
            response = self._http.send("GET", path, params=params)
            if response.status_code == 429:
                logger.warning(
                    "Rate limited fetching %s plans (attempt %d/%d), waiting %.0fs",
                    service.value,
                    attempt,
                    attempts,
                    delay,
                )
                time.sleep(delay)
                continue
            payload = self._http.parse(response, "GET", path)
            rows = payload if isinstance(payload, list) else payload.get("plans", [])
            return [ServicePlan.from_dict(r, service) for r in rows if isinstance(r, dict)]

        raise RateLimitError(
            f"Rate limited fetching {service.value} plans after {attempts} attempts",
            attempts=attempts,
        )

    # -- cart -----------------------------------------------------------------

    def add_to_cart(self, session_id: str, plan_id: str) -> None:
        self._http.request(
            "POST",
            "/cart/plans",
            json={"planId": plan_id},
            headers=self._session_headers(session_id),
        )

    def remove_from_cart(self, session_id: str, plan_id: str) -> None:
        self._http.request(
            "DELETE",
            f"/cart/plans/{url_quote(plan_id, safe='')}",
            headers=self._session_headers(session_id),
        )

    # -- checkout -------------------------------------------------------------

    def get_checkout_steps(self, session_id: str) -> list[ProviderStep]:
        payload = self._http.request("GET", "/checkout/steps", headers=self._session_headers(session_id))
        rows = payload if isinstance(payload, list) else payload.get("steps", [])
        return [ProviderStep.from_dict(r) for r in rows if isinstance(r, dict)]

    def complete_checkout(
        self,
        session_id: str,
        data: dict[str, Any],
        files: Sequence[CheckoutFile] = (),
    ) -> CheckoutReceipt:
        multipart = {f.field_name: (f.file_name, f.content, f.content_type) for f in files}
        payload = self._http.request(
            "POST",
            "/checkout/complete",
            data={"data": json.dumps(data)},
            files=multipart or None,
            headers=self._session_headers(session_id),
        )
        if not isinstance(payload, dict):
            raise UpstreamError("Checkout response is not an object", code="INVALID_RESPONSE")
        return CheckoutReceipt.from_dict(payload)

    def get_order_status(self, confirmation_id: str, last_name: str, zip_code: str) -> dict[str, Any]:
        payload = self._http.request(
            "GET",
            "/orders/lookup",
            params={"confirmationId": confirmation_id, "lastName": last_name, "zip": zip_code},
        )
        return payload if isinstance(payload, dict) else {"result": payload}
