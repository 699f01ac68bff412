"""Water-service eligibility rules.

Two question paths exist and a session uses exactly one of them, chosen
when the session starts:

``dwelling`` (default)
    Dwelling type plus ownership status, per the table below.

    ==============================  =========  ======================
    Dwelling type                   Ownership  Eligibility
    ==============================  =========  ======================
    single_family, townhouse        any        required
    multi_unit                      owner      required
    multi_unit                      renter     not_applicable
    multi_unit                      unknown    ask ownership
    apartment                       any        not_applicable
    unknown                         any        ask dwelling type
    ==============================  =========  ======================

``legacy``
    A direct "is water billed separately?" question, with a rent/own
    follow-up only when the answer is "not sure".

Either path may be overridden: ``not_applicable`` plus ``override=True``
behaves as ``optional`` for display and selection while the stored
classification stays ``not_applicable``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from typing import Union

from movein.models import DwellingType, OwnershipStatus, WaterEligibility

PATH_DWELLING = "dwelling"
PATH_LEGACY = "legacy"
ELIGIBILITY_PATHS = (PATH_DWELLING, PATH_LEGACY)


class PendingQuestion(enum.Enum):
    """The question that must be answered before a verdict exists."""

    DWELLING_TYPE = "dwelling_type"
    OWNERSHIP = "ownership"
    WATER_BILLING = "water_billing"


class WaterAnswer(enum.Enum):
    """Answers to the legacy "is water billed separately?" question."""

    YES_SEPARATE = "yes_separate"
    NO_INCLUDED = "no_included"
    NOT_SURE = "not_sure"


@dataclass(frozen=True)
class EligibilityVerdict:
    """Outcome of one evaluation.

    Exactly one of ``eligibility`` and ``pending`` is set.
    """

    eligibility: WaterEligibility | None = None
    pending: PendingQuestion | None = None
    override: bool = False

    @property
    def is_blocking(self) -> bool:
        return self.pending is not None

    @property
    def effective(self) -> WaterEligibility | None:
        """Eligibility as seen by display and selection logic."""
        if self.eligibility is WaterEligibility.NOT_APPLICABLE and self.override:
            return WaterEligibility.OPTIONAL
        return self.eligibility

    @property
    def water_visible(self) -> bool:
        return self.effective in (WaterEligibility.REQUIRED, WaterEligibility.OPTIONAL)

    @property
    def water_locked(self) -> bool:
        """Water is selected and cannot be removed."""
        return self.effective is WaterEligibility.REQUIRED

    @property
    def handled_by_property(self) -> bool:
        """Show the "water is handled by your property" notice."""
        return self.effective is WaterEligibility.NOT_APPLICABLE

    def to_dict(self) -> dict[str, object]:
        return {
            "eligibility": self.eligibility.value if self.eligibility else None,
            "effective": self.effective.value if self.effective else None,
            "pending": self.pending.value if self.pending else None,
            "override": self.override,
            "water_visible": self.water_visible,
            "water_locked": self.water_locked,
        }


def evaluate_water_eligibility(
    dwelling: DwellingType,
    ownership: OwnershipStatus = OwnershipStatus.UNKNOWN,
    override: bool = False,
) -> EligibilityVerdict:
    """Apply the dwelling-type table to one (dwelling, ownership) pair."""
    if dwelling in (DwellingType.SINGLE_FAMILY, DwellingType.TOWNHOUSE):
        return EligibilityVerdict(WaterEligibility.REQUIRED, override=override)
    if dwelling is DwellingType.MULTI_UNIT:
        if ownership is OwnershipStatus.OWNER:
            return EligibilityVerdict(WaterEligibility.REQUIRED, override=override)
        if ownership is OwnershipStatus.RENTER:
            return EligibilityVerdict(WaterEligibility.NOT_APPLICABLE, override=override)
        return EligibilityVerdict(pending=PendingQuestion.OWNERSHIP, override=override)
    if dwelling is DwellingType.APARTMENT:
        return EligibilityVerdict(WaterEligibility.NOT_APPLICABLE, override=override)
    return EligibilityVerdict(pending=PendingQuestion.DWELLING_TYPE, override=override)


def evaluate_legacy_answers(
    answer: WaterAnswer | None,
    ownership: OwnershipStatus = OwnershipStatus.UNKNOWN,
    override: bool = False,
) -> EligibilityVerdict:
    """Apply the legacy water-billing question and its rent/own follow-up."""
    if answer is None:
        return EligibilityVerdict(pending=PendingQuestion.WATER_BILLING, override=override)
    if answer is WaterAnswer.YES_SEPARATE:
        return EligibilityVerdict(WaterEligibility.REQUIRED, override=override)
    if answer is WaterAnswer.NO_INCLUDED:
        return EligibilityVerdict(WaterEligibility.NOT_APPLICABLE, override=override)
    if ownership is OwnershipStatus.OWNER:
        return EligibilityVerdict(WaterEligibility.REQUIRED, override=override)
    if ownership is OwnershipStatus.RENTER:
        return EligibilityVerdict(WaterEligibility.NOT_APPLICABLE, override=override)
    return EligibilityVerdict(pending=PendingQuestion.OWNERSHIP, override=override)


# ---------------------------------------------------------------------------
# Tagged decision state
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DwellingDecision:
    dwelling_type: DwellingType = DwellingType.UNKNOWN
    ownership: OwnershipStatus = OwnershipStatus.UNKNOWN
    override: bool = False

    path = PATH_DWELLING

    def verdict(self) -> EligibilityVerdict:
        return evaluate_water_eligibility(self.dwelling_type, self.ownership, self.override)


@dataclass(frozen=True)
class LegacyDecision:
    water_answer: WaterAnswer | None = None
    ownership: OwnershipStatus = OwnershipStatus.UNKNOWN
    override: bool = False

    path = PATH_LEGACY

    def verdict(self) -> EligibilityVerdict:
        return evaluate_legacy_answers(self.water_answer, self.ownership, self.override)


EligibilityDecision = Union[DwellingDecision, LegacyDecision]


def start_decision(path: str = PATH_DWELLING) -> EligibilityDecision:
    """Create the empty decision for a new session.

    :raises ValueError: If *path* is not a known question path.
    """
    if path == PATH_DWELLING:
        return DwellingDecision()
    if path == PATH_LEGACY:
        return LegacyDecision()
    raise ValueError(f"Unknown eligibility path {path!r}. Expected one of: {', '.join(ELIGIBILITY_PATHS)}")


def with_override(decision: EligibilityDecision, override: bool) -> EligibilityDecision:
    return replace(decision, override=override)
