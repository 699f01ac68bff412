"""Data types shared by the checkout flow.

The flow controller owns every instance of these types; engines and
gateways only produce fresh values.  Wire-format parsing lives in the
``from_dict`` constructors so the HTTP adapters stay thin.
"""

from __future__ import annotations

import enum
from dataclasses import asdict, dataclass, field
from typing import Any

DEFAULT_USAGE: tuple[int, ...] = (900, 850, 900, 1000, 1200, 1400, 1500, 1500, 1300, 1100, 950, 900)

DOCUMENT_ID = "id"
DOCUMENT_PROOF_OF_RESIDENCE = "proof_of_residence"


class ServiceType(enum.Enum):
    """Utility services offered in the checkout."""

    WATER = "water"
    ELECTRICITY = "electricity"
    INTERNET = "internet"


class DwellingType(enum.Enum):
    SINGLE_FAMILY = "single_family"
    TOWNHOUSE = "townhouse"
    MULTI_UNIT = "multi_unit"
    APARTMENT = "apartment"
    UNKNOWN = "unknown"


class OwnershipStatus(enum.Enum):
    OWNER = "owner"
    RENTER = "renter"
    UNKNOWN = "unknown"


class WaterEligibility(enum.Enum):
    """Whether water service applies to the dwelling."""

    REQUIRED = "required"
    OPTIONAL = "optional"
    NOT_APPLICABLE = "not_applicable"


class PlanBadge(enum.Enum):
    BEST_VALUE = "best_value"
    GREEN = "green"


class QuestionType(enum.Enum):
    TEXT = "text"
    SELECT = "select"
    DATE = "date"
    SSN = "ssn"


class DocumentStatus(enum.Enum):
    UPLOADING = "uploading"
    UPLOADED = "uploaded"
    ERROR = "error"


class ServiceOrderStatus(enum.Enum):
    """Per-service state inside an order confirmation."""

    PROCESSING = "processing"
    CONFIRMED = "confirmed"
    FAILED = "failed"


def _to_float(value: Any, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _to_int(value: Any, default: int = 0) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


# ---------------------------------------------------------------------------
# Address + meter identifiers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Address:
    """A service address.  Replaced wholesale on edit, never patched."""

    street: str
    city: str
    state: str
    zip: str
    formatted: str = ""
    unit: str | None = None
    esiid: str | None = None

    def display(self) -> str:
        if self.formatted:
            return self.formatted
        unit = f", {self.unit}" if self.unit else ""
        return f"{self.street}{unit}, {self.city}, {self.state} {self.zip}"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class AddressSuggestion:
    """One row returned by the address-search collaborator."""

    address: str
    city: str
    state: str
    zip_code: str
    formatted: str = ""
    esiid: str | None = None
    premise_type: str = "Residential"
    status: str = "Active"
    unit: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AddressSuggestion:
        return cls(
            address=str(data.get("address", "")).strip(),
            city=str(data.get("city", "")).strip(),
            state=str(data.get("state", "")).strip(),
            zip_code=str(data.get("zipCode", data.get("zip_code", ""))).strip(),
            formatted=str(data.get("formatted", "")).strip(),
            esiid=data.get("esiid") or None,
            premise_type=str(data.get("premiseType", data.get("premise_type", "Residential"))),
            status=str(data.get("status", "Active")),
            unit=data.get("unit") or None,
        )

    def to_address(self) -> Address:
        formatted = self.formatted
        if self.unit:
            formatted = f"{self.address}, {self.unit}, {self.city}, {self.state} {self.zip_code}"
        return Address(
            street=self.address,
            city=self.city,
            state=self.state,
            zip=self.zip_code,
            formatted=formatted,
            unit=self.unit,
            esiid=self.esiid,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class MeterCandidate:
    """An ESIID record that may correspond to the typed address."""

    esiid: str
    address: str
    city: str = ""
    state: str = ""
    zip_code: str = ""
    premise_type: str = "Residential"
    status: str = "Active"
    address_overflow: str = ""
    power_region: str = ""
    duns: str = ""

    @property
    def is_active(self) -> bool:
        return self.status.strip().lower() == "active"

    @property
    def is_residential(self) -> bool:
        return self.premise_type.strip().lower() == "residential"

    @property
    def is_serviceable(self) -> bool:
        """Active residential meters are the only ones a move-in can claim."""
        return self.is_active and self.is_residential

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MeterCandidate:
        return cls(
            esiid=str(data.get("esiid") or data.get("ESIID") or data.get("_id") or ""),
            address=str(data.get("address", "")),
            city=str(data.get("city", "")),
            state=str(data.get("state", "")),
            zip_code=str(data.get("zip_code", data.get("zipCode", ""))),
            premise_type=str(data.get("premise_type", data.get("premiseType", "Residential"))),
            status=str(data.get("status", "Active")),
            address_overflow=str(data.get("address_overflow", "")),
            power_region=str(data.get("power_region", "")),
            duns=str(data.get("duns", "")),
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["is_active"] = self.is_active
        data["is_serviceable"] = self.is_serviceable
        return data


# ---------------------------------------------------------------------------
# Usage
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UsageProfile:
    """Twelve monthly kWh values, January first."""

    usage: tuple[float, ...]
    home_age: int = 0
    square_footage: int = 0
    found_home_details: bool = False
    user_adjusted: bool = False

    def __post_init__(self) -> None:
        if len(self.usage) != 12:
            raise ValueError(f"Usage profile needs 12 monthly values, got {len(self.usage)}")
        if any(v < 0 for v in self.usage):
            raise ValueError("Usage values must be non-negative")

    @property
    def annual_kwh(self) -> float:
        return sum(self.usage)

    @classmethod
    def default(cls) -> UsageProfile:
        return cls(usage=DEFAULT_USAGE)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UsageProfile:
        return cls(
            usage=tuple(_to_float(v) for v in data.get("usage", [])),
            home_age=_to_int(data.get("home_age")),
            square_footage=_to_int(data.get("square_footage")),
            found_home_details=bool(data.get("found_home_details", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["usage"] = list(self.usage)
        data["annual_kwh"] = self.annual_kwh
        return data


@dataclass(frozen=True)
class HomeDetails:
    square_footage: int
    home_age: int
    year_built: int
    annual_kwh: float
    found_details: bool

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RateSchedule:
    """Price descriptor for a plan.

    ``rate_per_kwh_cents`` is in hundredths of a dollar (9 means 9 cents).
    ``monthly_fee`` is a flat dollar amount billed every month.
    """

    rate_per_kwh_cents: float = 0.0
    monthly_fee: float = 0.0
    contract_months: int = 0
    cancellation_fee: float = 0.0
    renewable_percent: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ServicePlan:
    """A catalog plan.  Cost fields are derived and recomputed on usage change."""

    id: str
    provider: str
    name: str
    service_type: ServiceType
    rate: RateSchedule = field(default_factory=RateSchedule)
    features: tuple[str, ...] = ()
    lead_time_days: int | None = None
    vendor_phone: str = ""
    vendor_url: str = ""
    short_description: str = ""
    annual_cost: float | None = None
    monthly_estimate: float | None = None
    badge: PlanBadge | None = None

    @property
    def is_green(self) -> bool:
        return self.rate.renewable_percent >= 100

    @property
    def contract_label(self) -> str:
        months = self.rate.contract_months
        return f"{months} month contract" if months > 0 else "No contract"

    @classmethod
    def from_dict(cls, data: dict[str, Any], service_type: ServiceType) -> ServicePlan:
        """Build a plan from a raw catalog record.

        Electricity records price energy via ``kWh1000`` (cents per kWh)
        plus ``mPrice``; water and internet records carry a flat monthly
        price in the first non-zero of ``uPrice``, ``mPrice``, ``price``.
        """
        renewable_percent = _to_float(data.get("renewablePercent"))
        if not renewable_percent and data.get("renewable"):
            renewable_percent = 100.0

        if service_type is ServiceType.ELECTRICITY:
            per_kwh = _to_float(data.get("kWh1000"))
            monthly_fee = _to_float(data.get("mPrice"))
        else:
            per_kwh = 0.0
            monthly_fee = next(
                (p for p in (_to_float(data.get(k)) for k in ("uPrice", "mPrice", "price")) if p > 0),
                0.0,
            )

        features = tuple(
            str(data[k]) for k in (f"bulletPoint{i}" for i in range(1, 6)) if data.get(k)
        )
        lead_time = data.get("leadTime")
        return cls(
            id=str(data.get("id", "")),
            provider=str(data.get("vendorName", "")),
            name=str(data.get("name", "")),
            service_type=service_type,
            rate=RateSchedule(
                rate_per_kwh_cents=per_kwh,
                monthly_fee=monthly_fee,
                contract_months=_to_int(data.get("term")),
                cancellation_fee=_to_float(data.get("cancellationFee")),
                renewable_percent=renewable_percent,
            ),
            features=features,
            lead_time_days=_to_int(lead_time) if lead_time is not None else None,
            vendor_phone=str(data.get("vendorPhone") or data.get("callCenterPhone") or ""),
            vendor_url=str(data.get("vendorUrl") or ""),
            short_description=str(data.get("shortDescription") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["service_type"] = self.service_type.value
        data["badge"] = self.badge.value if self.badge else None
        data["features"] = list(self.features)
        return data


@dataclass
class ServiceAvailability:
    """Catalog snapshot for one service at the current address."""

    available: bool
    plans: list[ServicePlan] = field(default_factory=list)

    @property
    def provider_count(self) -> int:
        return len({p.provider for p in self.plans})

    def to_dict(self) -> dict[str, Any]:
        return {
            "available": self.available,
            "provider_count": self.provider_count,
            "plans": [p.to_dict() for p in self.plans],
        }


# ---------------------------------------------------------------------------
# Profile, checkout schema, documents
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UserProfile:
    first_name: str
    last_name: str
    email: str
    phone: str
    sms_opt_in: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class CheckoutQuestion:
    """A provider-defined dynamic field."""

    id: str
    prompt: str
    type: QuestionType = QuestionType.TEXT
    required: bool = False
    options: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CheckoutQuestion:
        raw_type = str(data.get("type", "text")).lower()
        try:
            qtype = QuestionType(raw_type)
        except ValueError:
            qtype = QuestionType.TEXT
        return cls(
            id=str(data.get("id", "")),
            prompt=str(data.get("question", data.get("prompt", ""))),
            type=qtype,
            required=bool(data.get("required", False)),
            options=tuple(str(o) for o in data.get("options") or ()),
        )


@dataclass(frozen=True)
class ProviderStep:
    """One provider's block of the checkout schema."""

    vendor_id: str | None
    vendor_name: str | None
    questions: tuple[CheckoutQuestion, ...] = ()
    documents: tuple[tuple[str, bool], ...] = ()
    lead_time_days: int = 0
    is_step_one: bool = False
    requires_id_upload: bool = False
    requires_lease_upload: bool = False
    requires_own_upload: bool = False
    terms_url: str = ""
    efl_url: str = ""
    yrac_url: str = ""
    consent_text: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProviderStep:
        return cls(
            vendor_id=data.get("VendorId"),
            vendor_name=data.get("VendorName"),
            questions=tuple(CheckoutQuestion.from_dict(q) for q in data.get("AppQuestions") or ()),
            documents=tuple(
                (str(d.get("name", "")), bool(d.get("required", False)))
                for d in data.get("DocumentList") or ()
            ),
            lead_time_days=_to_int(data.get("LeadTime")),
            is_step_one=bool(data.get("IsStepOne", False)),
            requires_id_upload=bool(data.get("IsDLUpload", False)),
            requires_lease_upload=bool(data.get("IsLeaseUpload", False)),
            requires_own_upload=bool(data.get("IsOwnUpload", False)),
            terms_url=str(data.get("TermsUrl") or ""),
            efl_url=str(data.get("EflUrl") or ""),
            yrac_url=str(data.get("YracUrl") or ""),
            consent_text=str(data.get("ConsentText") or ""),
        )

    def required_documents(self) -> set[str]:
        """Requirement keys whose upload must be in ``uploaded`` status."""
        keys = {name for name, required in self.documents if required and name}
        if self.requires_id_upload:
            keys.add(DOCUMENT_ID)
        if self.requires_lease_upload or self.requires_own_upload:
            keys.add(DOCUMENT_PROOF_OF_RESIDENCE)
        return keys


@dataclass(frozen=True)
class UploadedDocument:
    """A user-supplied file held until checkout submission."""

    id: str
    name: str
    size: int
    content_type: str = "application/octet-stream"
    status: DocumentStatus = DocumentStatus.UPLOADING
    content: bytes | None = field(default=None, repr=False)
    error_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "size": self.size,
            "content_type": self.content_type,
            "status": self.status.value,
            "error_message": self.error_message,
        }


# ---------------------------------------------------------------------------
# Confirmation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ServiceOrderLine:
    service_type: ServiceType
    provider: str
    plan: str
    status: ServiceOrderStatus = ServiceOrderStatus.PROCESSING

    def to_dict(self) -> dict[str, Any]:
        return {
            "service_type": self.service_type.value,
            "provider": self.provider,
            "plan": self.plan,
            "status": self.status.value,
        }


@dataclass(frozen=True)
class OrderConfirmation:
    """Outcome of one successful submission.  Never mutated after creation."""

    order_id: str
    address: Address
    move_in_date: str
    services: tuple[ServiceOrderLine, ...]
    created_at: float
    deposit_required: bool = False
    deposit_amount: float | None = None
    deposit_reason: str | None = None
    deposit_service_name: str | None = None
    deposit_vendor_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "address": self.address.to_dict(),
            "move_in_date": self.move_in_date,
            "services": [s.to_dict() for s in self.services],
            "created_at": self.created_at,
            "deposit_required": self.deposit_required,
            "deposit_amount": self.deposit_amount,
            "deposit_reason": self.deposit_reason,
            "deposit_service_name": self.deposit_service_name,
            "deposit_vendor_name": self.deposit_vendor_name,
        }
