"""Shared fixtures for the movein test suite.

Provides in-memory collaborators (address lookup and consumer API) that
record their calls, sample catalog payloads, and a flow configuration
with every delay set to zero so async tests never really wait.
"""

from __future__ import annotations

from typing import Any

import pytest

from movein.config import FlowConfig
from movein.errors import UpstreamError
from movein.gateway.base import AddressLookup, CheckoutReceipt, ConsumerApi
from movein.models import (
    DEFAULT_USAGE,
    AddressSuggestion,
    MeterCandidate,
    ProviderStep,
    ServicePlan,
    ServiceType,
    UsageProfile,
)

# ---------------------------------------------------------------------------
# Catalog payloads (raw wire records)
# ---------------------------------------------------------------------------

ELECTRICITY_RECORDS: list[dict[str, Any]] = [
    {"id": "e-fixed-12", "vendorName": "Lone Star Power", "name": "Fixed 12", "kWh1000": 11.2, "mPrice": 0, "term": 12},
    {"id": "e-cheap", "vendorName": "Budget Energy", "name": "Saver 24", "kWh1000": 9.0, "mPrice": 0, "term": 24},
    {"id": "e-green", "vendorName": "Sunny Grid", "name": "Solar 100", "kWh1000": 8.5, "mPrice": 5, "renewable": True},
    {"id": "e-basic", "vendorName": "Lone Star Power", "name": "Basic", "kWh1000": 10.0, "mPrice": 9.95, "term": 6},
    {"id": "e-premium", "vendorName": "Premier Electric", "name": "Premium", "kWh1000": 14.0, "mPrice": 0, "term": 36},
]

WATER_RECORDS: list[dict[str, Any]] = [
    {"id": "w-city", "vendorName": "City Water", "name": "Residential", "uPrice": 45},
]

INTERNET_RECORDS: list[dict[str, Any]] = [
    {"id": "i-fiber", "vendorName": "FiberCo", "name": "Gig", "mPrice": 70},
    {"id": "i-cable", "vendorName": "CableNet", "name": "300", "price": 50},
]

CHECKOUT_STEPS: list[dict[str, Any]] = [
    {
        "VendorId": "v-1",
        "VendorName": "Budget Energy",
        "LeadTime": 2,
        "IsDLUpload": True,
        "AppQuestions": [
            {"id": "ssn", "question": "Social Security number", "type": "ssn", "required": True},
            {"id": "prev_address", "question": "Previous address", "type": "text", "required": False},
        ],
    },
]


def make_plans(service: ServiceType, records: list[dict[str, Any]]) -> list[ServicePlan]:
    return [ServicePlan.from_dict(r, service) for r in records]


CATALOG: dict[ServiceType, list[ServicePlan]] = {
    ServiceType.ELECTRICITY: make_plans(ServiceType.ELECTRICITY, ELECTRICITY_RECORDS),
    ServiceType.WATER: make_plans(ServiceType.WATER, WATER_RECORDS),
    ServiceType.INTERNET: make_plans(ServiceType.INTERNET, INTERNET_RECORDS),
}


def suggestion(**overrides: Any) -> AddressSuggestion:
    data: dict[str, Any] = {
        "address": "123 Main St",
        "city": "Dallas",
        "state": "TX",
        "zip_code": "75205",
        "formatted": "123 Main St, Dallas, TX 75205",
    }
    data.update(overrides)
    return AddressSuggestion(**data)


def candidate(
    esiid: str, address: str = "123 MAIN ST", status: str = "Active", premise_type: str = "Residential"
) -> MeterCandidate:
    return MeterCandidate(
        esiid=esiid,
        address=address,
        city="DALLAS",
        state="TX",
        zip_code="75205",
        premise_type=premise_type,
        status=status,
    )


# ---------------------------------------------------------------------------
# Fake collaborators
# ---------------------------------------------------------------------------


class FakeLookup(AddressLookup):
    """Address lookup that serves canned data and records calls."""

    def __init__(self) -> None:
        self.suggestions: list[AddressSuggestion] = []
        self.meters: list[MeterCandidate] = [candidate("1000001")]
        self.profile: UsageProfile | Exception = UsageProfile(usage=DEFAULT_USAGE, home_age=20, square_footage=1800, found_home_details=True)
        self.meter_error: Exception | None = None
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    def search_addresses(self, query: str) -> list[AddressSuggestion]:
        self.calls.append(("search_addresses", (query,)))
        return list(self.suggestions)

    def search_meters(self, street: str, zip_code: str, unit: str | None = None) -> list[MeterCandidate]:
        self.calls.append(("search_meters", (street, zip_code, unit)))
        if self.meter_error is not None:
            raise self.meter_error
        return list(self.meters)

    def get_usage_profile(self, esiid: str) -> UsageProfile:
        self.calls.append(("get_usage_profile", (esiid,)))
        if isinstance(self.profile, Exception):
            raise self.profile
        return self.profile


class FakeConsumer(ConsumerApi):
    """Consumer API that serves :data:`CATALOG` and records calls."""

    def __init__(self) -> None:
        self.catalog: dict[ServiceType, list[ServicePlan]] = {k: list(v) for k, v in CATALOG.items()}
        self.catalog_errors: dict[ServiceType, Exception] = {}
        self.steps: list[ProviderStep] = [ProviderStep.from_dict(s) for s in CHECKOUT_STEPS]
        self.receipt: CheckoutReceipt | Exception = CheckoutReceipt(confirmation_id="CONF-123")
        self.cart_error: Exception | None = None
        self.session_counter = 0
        self.cart: list[str] = []
        self.submissions: list[tuple[str, dict[str, Any], list[Any]]] = []
        self.calls: list[str] = []

    def generate_session_id(self) -> str:
        self.calls.append("generate_session_id")
        self.session_counter += 1
        return f"session-{self.session_counter}"

    def list_plans(self, service, zip_code, usage=None):
        self.calls.append(f"list_plans:{service.value}")
        if service in self.catalog_errors:
            raise self.catalog_errors[service]
        return list(self.catalog.get(service, []))

    def add_to_cart(self, session_id: str, plan_id: str) -> None:
        self.calls.append(f"add_to_cart:{plan_id}")
        if self.cart_error is not None:
            raise self.cart_error
        self.cart.append(plan_id)

    def remove_from_cart(self, session_id: str, plan_id: str) -> None:
        self.calls.append(f"remove_from_cart:{plan_id}")
        if self.cart_error is not None:
            raise self.cart_error
        if plan_id in self.cart:
            self.cart.remove(plan_id)

    def get_checkout_steps(self, session_id: str) -> list[ProviderStep]:
        self.calls.append("get_checkout_steps")
        return list(self.steps)

    def complete_checkout(self, session_id, data, files=()):
        self.calls.append("complete_checkout")
        self.submissions.append((session_id, data, list(files)))
        if isinstance(self.receipt, Exception):
            raise self.receipt
        return self.receipt

    def get_order_status(self, confirmation_id, last_name, zip_code):
        self.calls.append("get_order_status")
        return {"confirmationId": confirmation_id, "status": "processing"}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def fast_config() -> FlowConfig:
    """Flow config with every delay disabled."""
    return FlowConfig(debounce_seconds=0, min_loading_seconds=0)


@pytest.fixture()
def lookup() -> FakeLookup:
    return FakeLookup()


@pytest.fixture()
def consumer() -> FakeConsumer:
    return FakeConsumer()


@pytest.fixture()
def upstream_error() -> UpstreamError:
    return UpstreamError("service unavailable", code="HTTP_503", status=503)


@pytest.fixture(autouse=True)
def _clean_movein_env(monkeypatch):
    """Keep developer environment variables out of every test."""
    for name in (
        "MOVEIN_CONSUMER_API_URL",
        "MOVEIN_ERCOT_API_URL",
        "MOVEIN_HTTP_TIMEOUT",
        "MOVEIN_DEBOUNCE_SECONDS",
        "MOVEIN_MIN_LOADING_SECONDS",
        "MOVEIN_ELIGIBILITY_PATH",
        "MOVEIN_DEFAULT_ZIP",
        "MOVEIN_LOG_DIR",
        "MOVEIN_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
