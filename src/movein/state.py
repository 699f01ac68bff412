"""Flow state container.

:class:`FlowState` is the single mutable store for one checkout session.
The controller owns it and hands out deep copies through
:meth:`FlowState.snapshot`, so a view can never mutate the live store.
"""

from __future__ import annotations

import copy
import datetime
import enum
from dataclasses import dataclass, field
from typing import Any

from movein.eligibility import EligibilityDecision, EligibilityVerdict, start_decision
from movein.models import (
    Address,
    HomeDetails,
    OrderConfirmation,
    ProviderStep,
    ServiceAvailability,
    ServicePlan,
    ServiceType,
    UploadedDocument,
    UsageProfile,
    UserProfile,
)
from movein.resolution import MeterResolution
from movein.validation import default_move_in_date


class Step(enum.IntEnum):
    """Wizard steps, in order."""

    ADDRESS = 1
    SERVICES = 2
    PROFILE = 3
    REVIEW = 4
    CONFIRMATION = 5


FIRST_STEP = Step.ADDRESS
LAST_STEP = Step.CONFIRMATION


def _default_selected_services() -> dict[ServiceType, bool]:
    return {
        ServiceType.WATER: True,
        ServiceType.ELECTRICITY: False,
        ServiceType.INTERNET: False,
    }


@dataclass
class FlowState:
    step: Step = FIRST_STEP
    session_id: str | None = None

    # Step 1: address and resolution
    address: Address | None = None
    address_query: str = ""
    move_in_date: str = ""
    meter: MeterResolution | None = None
    resolution_error: str | None = None
    usage_profile: UsageProfile | None = None
    home_details: HomeDetails | None = None
    availability_checked: bool = False

    # Step 2: services and plans
    availability: dict[ServiceType, ServiceAvailability] = field(default_factory=dict)
    ranked_plans: dict[ServiceType, list[ServicePlan]] = field(default_factory=dict)
    selected_services: dict[ServiceType, bool] = field(default_factory=_default_selected_services)
    selected_plans: dict[ServiceType, ServicePlan] = field(default_factory=dict)
    show_all_plans: dict[ServiceType, bool] = field(default_factory=dict)
    eligibility: EligibilityDecision = field(default_factory=start_decision)

    # Steps 3 and 4: profile and provider checkout
    profile: UserProfile | None = None
    checkout_steps: list[ProviderStep] = field(default_factory=list)
    answers: dict[str, str] = field(default_factory=dict)
    documents: dict[str, UploadedDocument] = field(default_factory=dict)
    terms_accepted: bool = False

    # Step 5
    confirmation: OrderConfirmation | None = None

    loading: bool = False
    last_error: str | None = None
    last_error_code: str | None = None

    @property
    def verdict(self) -> EligibilityVerdict:
        return self.eligibility.verdict()

    @property
    def confirmed_esiid(self) -> str | None:
        if self.meter is None:
            return None
        return self.meter.confirmed_esiid

    def clear_address_derived(self) -> None:
        """Drop everything computed from the current address, in one step."""
        self.meter = None
        self.resolution_error = None
        self.usage_profile = None
        self.home_details = None
        self.availability_checked = False
        self.availability = {}
        self.ranked_plans = {}

    def snapshot(self) -> FlowState:
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        verdict = self.verdict
        return {
            "step": int(self.step),
            "step_name": self.step.name.lower(),
            "session_id": self.session_id,
            "address": self.address.to_dict() if self.address else None,
            "move_in_date": self.move_in_date,
            "meter": self.meter.to_dict() if self.meter else None,
            "resolution_error": self.resolution_error,
            "usage_profile": self.usage_profile.to_dict() if self.usage_profile else None,
            "home_details": self.home_details.to_dict() if self.home_details else None,
            "availability_checked": self.availability_checked,
            "availability": {s.value: a.to_dict() for s, a in self.availability.items()},
            "selected_services": {s.value: v for s, v in self.selected_services.items()},
            "selected_plans": {s.value: p.to_dict() for s, p in self.selected_plans.items()},
            "eligibility_path": self.eligibility.path,
            "water": verdict.to_dict(),
            "profile": self.profile.to_dict() if self.profile else None,
            "answers": dict(self.answers),
            "documents": {k: d.to_dict() for k, d in self.documents.items()},
            "terms_accepted": self.terms_accepted,
            "confirmation": self.confirmation.to_dict() if self.confirmation else None,
            "loading": self.loading,
            "last_error": self.last_error,
            "last_error_code": self.last_error_code,
        }


def initial_state(
    eligibility_path: str = "dwelling",
    *,
    today: datetime.date | None = None,
) -> FlowState:
    """The snapshot every new (or reset) session starts from."""
    return FlowState(
        move_in_date=default_move_in_date(today).isoformat(),
        eligibility=start_decision(eligibility_path),
    )
