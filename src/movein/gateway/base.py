"""Abstract collaborator interfaces for the checkout flow.

The flow controller never speaks HTTP itself.  It talks to two
collaborators, each implemented by an adapter in this package:

- :class:`AddressLookup` (address search, ESIID search, usage profile)
- :class:`ConsumerApi` (session identity, plan catalog, cart, checkout
  schema, checkout submission, order status)

Adapters are synchronous, like every other remote adapter here; the
controller runs them off the event loop so flow state is still only
mutated from one place.

Workflow::

    1. search_addresses(query)              → [AddressSuggestion]
    2. search_meters(street, zip, unit)     → [MeterCandidate]
    3. get_usage_profile(esiid)             → UsageProfile
    4. list_plans(service, zip, usage)      → [ServicePlan]
    5. get_checkout_steps(session_id)       → [ProviderStep]
    6. complete_checkout(session_id, ...)   → CheckoutReceipt
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
from typing import Any

from movein.models import (
    AddressSuggestion,
    MeterCandidate,
    ProviderStep,
    ServicePlan,
    ServiceType,
    UsageProfile,
)


@dataclass(frozen=True)
class CheckoutFile:
    """A file attached to a checkout submission."""

    field_name: str  # dlFile, rentFile, ownFile
    file_name: str
    content: bytes = field(repr=False)
    content_type: str = "application/octet-stream"


@dataclass
class CheckoutReceipt:
    """What the checkout endpoint returned on success."""

    confirmation_id: str | None = None
    order_number: str | None = None
    status: str = ""
    deposit_required: bool = False
    deposit_amount: float | None = None
    deposit_reason: str | None = None
    deposit_service_name: str | None = None
    deposit_vendor_name: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CheckoutReceipt:
        amount = data.get("depositAmount")
        return cls(
            confirmation_id=data.get("confirmationId") or None,
            order_number=data.get("orderNumber") or None,
            status=str(data.get("status", "")),
            deposit_required=bool(data.get("depositRequired", False)),
            deposit_amount=float(amount) if amount is not None else None,
            deposit_reason=data.get("depositReason"),
            deposit_service_name=data.get("depositServiceName"),
            deposit_vendor_name=data.get("depositVendorName"),
            raw=dict(data),
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("raw", None)
        return data


class AddressLookup(ABC):
    """Address and meter-identifier (ESIID) lookup service."""

    @abstractmethod
    def search_addresses(self, query: str) -> list[AddressSuggestion]:
        """Return address suggestions for free text.

        Raises:
            UpstreamError: If the service fails.
        """

    @abstractmethod
    def search_meters(
        self,
        street: str,
        zip_code: str,
        unit: str | None = None,
    ) -> list[MeterCandidate]:
        """Return meter candidates for a street address.

        An empty list is a valid answer; the caller decides what zero
        matches means.

        Raises:
            UpstreamError: If the service fails.
        """

    @abstractmethod
    def get_usage_profile(self, esiid: str) -> UsageProfile:
        """Return the 12-month usage profile for a meter.

        Raises:
            UpstreamError: If the service fails or the profile is malformed.
        """


class ConsumerApi(ABC):
    """Provider catalog and checkout service."""

    @abstractmethod
    def generate_session_id(self) -> str:
        """Create a fresh opaque session token.

        Raises:
            SessionError: If no token could be produced.
        """

    @abstractmethod
    def list_plans(
        self,
        service: ServiceType,
        zip_code: str,
        usage: Sequence[float] | None = None,
    ) -> list[ServicePlan]:
        """Return the catalog for *service* at *zip_code*.

        Raises:
            RateLimitError: If rate-limit responses persist after retries.
            UpstreamError: On any other failure.
        """

    @abstractmethod
    def add_to_cart(self, session_id: str, plan_id: str) -> None:
        """Add a plan to the provider-side cart."""

    @abstractmethod
    def remove_from_cart(self, session_id: str, plan_id: str) -> None:
        """Remove a plan from the provider-side cart."""

    @abstractmethod
    def get_checkout_steps(self, session_id: str) -> list[ProviderStep]:
        """Return the ordered provider steps (questions and documents)."""

    @abstractmethod
    def complete_checkout(
        self,
        session_id: str,
        data: dict[str, Any],
        files: Sequence[CheckoutFile] = (),
    ) -> CheckoutReceipt:
        """Submit the aggregated order.

        Raises:
            UpstreamError: If the submission is rejected or fails.
        """

    @abstractmethod
    def get_order_status(self, confirmation_id: str, last_name: str, zip_code: str) -> dict[str, Any]:
        """Look up an existing order."""
