"""Tests for movein.eligibility -- water-service decision rules.

Covers:
- The dwelling-type table is total and mutually exclusive
- Override semantics (display only, classification unchanged)
- The legacy water-billing question path
- Tagged decision variants and start-of-session selection
"""

from __future__ import annotations

import itertools

import pytest

from movein.eligibility import (
    DwellingDecision,
    EligibilityVerdict,
    LegacyDecision,
    PendingQuestion,
    WaterAnswer,
    evaluate_legacy_answers,
    evaluate_water_eligibility,
    start_decision,
    with_override,
)
from movein.models import DwellingType, OwnershipStatus, WaterEligibility

EXPECTED = {
    (DwellingType.SINGLE_FAMILY, OwnershipStatus.OWNER): WaterEligibility.REQUIRED,
    (DwellingType.SINGLE_FAMILY, OwnershipStatus.RENTER): WaterEligibility.REQUIRED,
    (DwellingType.SINGLE_FAMILY, OwnershipStatus.UNKNOWN): WaterEligibility.REQUIRED,
    (DwellingType.TOWNHOUSE, OwnershipStatus.OWNER): WaterEligibility.REQUIRED,
    (DwellingType.TOWNHOUSE, OwnershipStatus.RENTER): WaterEligibility.REQUIRED,
    (DwellingType.TOWNHOUSE, OwnershipStatus.UNKNOWN): WaterEligibility.REQUIRED,
    (DwellingType.MULTI_UNIT, OwnershipStatus.OWNER): WaterEligibility.REQUIRED,
    (DwellingType.MULTI_UNIT, OwnershipStatus.RENTER): WaterEligibility.NOT_APPLICABLE,
    (DwellingType.MULTI_UNIT, OwnershipStatus.UNKNOWN): PendingQuestion.OWNERSHIP,
    (DwellingType.APARTMENT, OwnershipStatus.OWNER): WaterEligibility.NOT_APPLICABLE,
    (DwellingType.APARTMENT, OwnershipStatus.RENTER): WaterEligibility.NOT_APPLICABLE,
    (DwellingType.APARTMENT, OwnershipStatus.UNKNOWN): WaterEligibility.NOT_APPLICABLE,
    (DwellingType.UNKNOWN, OwnershipStatus.OWNER): PendingQuestion.DWELLING_TYPE,
    (DwellingType.UNKNOWN, OwnershipStatus.RENTER): PendingQuestion.DWELLING_TYPE,
    (DwellingType.UNKNOWN, OwnershipStatus.UNKNOWN): PendingQuestion.DWELLING_TYPE,
}


class TestDwellingTable:
    @pytest.mark.parametrize(("dwelling", "ownership"), list(itertools.product(DwellingType, OwnershipStatus)))
    def test_every_pair_has_exactly_one_outcome(self, dwelling, ownership):
        verdict = evaluate_water_eligibility(dwelling, ownership)
        assert (verdict.eligibility is None) != (verdict.pending is None)
        outcome = verdict.eligibility or verdict.pending
        assert outcome is EXPECTED[(dwelling, ownership)]

    def test_table_covers_every_pair(self):
        assert set(EXPECTED) == set(itertools.product(DwellingType, OwnershipStatus))

    def test_optional_never_stored(self):
        for dwelling, ownership in itertools.product(DwellingType, OwnershipStatus):
            for override in (False, True):
                verdict = evaluate_water_eligibility(dwelling, ownership, override)
                assert verdict.eligibility is not WaterEligibility.OPTIONAL

    def test_blocking_verdict(self):
        verdict = evaluate_water_eligibility(DwellingType.MULTI_UNIT)
        assert verdict.is_blocking
        assert verdict.effective is None
        assert not verdict.water_visible


class TestOverride:
    def test_apartment_is_hidden_without_override(self):
        verdict = evaluate_water_eligibility(DwellingType.APARTMENT, OwnershipStatus.RENTER)
        assert verdict.eligibility is WaterEligibility.NOT_APPLICABLE
        assert not verdict.water_visible
        assert not verdict.water_locked
        assert verdict.handled_by_property

    def test_override_behaves_as_optional(self):
        verdict = evaluate_water_eligibility(DwellingType.APARTMENT, OwnershipStatus.RENTER, override=True)
        assert verdict.eligibility is WaterEligibility.NOT_APPLICABLE
        assert verdict.effective is WaterEligibility.OPTIONAL
        assert verdict.water_visible
        assert not verdict.water_locked
        assert not verdict.handled_by_property

    def test_override_has_no_effect_on_required(self):
        verdict = evaluate_water_eligibility(DwellingType.SINGLE_FAMILY, override=True)
        assert verdict.effective is WaterEligibility.REQUIRED
        assert verdict.water_locked

    def test_toggling_override_off_reverts(self):
        decision = DwellingDecision(DwellingType.APARTMENT, OwnershipStatus.RENTER)
        on = with_override(decision, True)
        off = with_override(on, False)
        assert on.verdict().water_visible
        assert off.verdict().handled_by_property
        assert off == decision

    def test_to_dict(self):
        data = EligibilityVerdict(WaterEligibility.NOT_APPLICABLE, override=True).to_dict()
        assert data["eligibility"] == "not_applicable"
        assert data["effective"] == "optional"
        assert data["water_visible"] is True


class TestLegacyAnswers:
    def test_unanswered_is_pending(self):
        assert evaluate_legacy_answers(None).pending is PendingQuestion.WATER_BILLING

    def test_billed_separately(self):
        assert evaluate_legacy_answers(WaterAnswer.YES_SEPARATE).eligibility is WaterEligibility.REQUIRED

    def test_included_in_rent(self):
        assert evaluate_legacy_answers(WaterAnswer.NO_INCLUDED).eligibility is WaterEligibility.NOT_APPLICABLE

    def test_not_sure_asks_ownership(self):
        verdict = evaluate_legacy_answers(WaterAnswer.NOT_SURE)
        assert verdict.pending is PendingQuestion.OWNERSHIP

    @pytest.mark.parametrize(
        ("ownership", "expected"),
        [
            (OwnershipStatus.OWNER, WaterEligibility.REQUIRED),
            (OwnershipStatus.RENTER, WaterEligibility.NOT_APPLICABLE),
        ],
    )
    def test_not_sure_follow_up(self, ownership, expected):
        assert evaluate_legacy_answers(WaterAnswer.NOT_SURE, ownership).eligibility is expected

    def test_follow_up_ignored_for_direct_answers(self):
        verdict = evaluate_legacy_answers(WaterAnswer.NO_INCLUDED, OwnershipStatus.OWNER)
        assert verdict.eligibility is WaterEligibility.NOT_APPLICABLE


class TestDecisions:
    def test_default_path_is_dwelling(self):
        decision = start_decision()
        assert isinstance(decision, DwellingDecision)
        assert decision.path == "dwelling"
        assert decision.verdict().pending is PendingQuestion.DWELLING_TYPE

    def test_legacy_path(self):
        decision = start_decision("legacy")
        assert isinstance(decision, LegacyDecision)
        assert decision.verdict().pending is PendingQuestion.WATER_BILLING

    def test_unknown_path(self):
        with pytest.raises(ValueError, match="Unknown eligibility path"):
            start_decision("both")

    def test_override_keeps_variant(self):
        decision = with_override(LegacyDecision(WaterAnswer.NO_INCLUDED), True)
        assert isinstance(decision, LegacyDecision)
        assert decision.verdict().water_visible
