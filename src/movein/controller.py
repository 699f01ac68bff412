"""Flow controller: the checkout state machine.

:class:`FlowController` owns one :class:`~movein.state.FlowState` and is
the only thing that mutates it.  Views read through :meth:`snapshot` and
re-render when :attr:`EventType.STATE_CHANGED` fires.

Synchronous operations commit immediately.  Asynchronous ones (address
resolution, catalog fetches, cart sync, submission) suspend only at
network boundaries and apply their results in one block once every
awaited call has returned, so a view never observes a half-applied
transition.  Blocking gateway calls run in worker threads via
:func:`asyncio.to_thread`; the flow itself stays on one event loop.

Water selection policy:

- ``required``: water is shown, locked on, and its best-value plan is
  pre-selected
- ``optional`` (``not_applicable`` with override): water is shown and the
  user may pick a plan; nothing is pre-selected
- ``not_applicable``: water is hidden and any water plan is dropped
- pending question: nothing changes until the question is answered
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import mimetypes
import uuid
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from movein import pricing, resolution, submission, validation
from movein.config import FlowConfig
from movein.eligibility import (
    DwellingDecision,
    EligibilityDecision,
    LegacyDecision,
    WaterAnswer,
    with_override,
)
from movein.errors import MoveInError, NotFoundError, UpstreamError, ValidationError
from movein.events import Event, EventBus, EventType
from movein.gateway.base import AddressLookup, ConsumerApi
from movein.models import (
    Address,
    AddressSuggestion,
    DocumentStatus,
    DwellingType,
    OrderConfirmation,
    OwnershipStatus,
    ProviderStep,
    ServiceAvailability,
    ServicePlan,
    ServiceType,
    UploadedDocument,
    UsageProfile,
    UserProfile,
)
from movein.resolution import AddressSearch, MeterResolution, ResolutionOutcome
from movein.state import FIRST_STEP, LAST_STEP, FlowState, Step, initial_state

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SOURCE = "controller"


class FlowController:
    """State machine for one checkout session.

    Args:
        lookup: Address, meter, and usage collaborator.
        consumer: Session, catalog, cart, and checkout collaborator.
        config: Flow settings; delays and the eligibility path come from here.
        bus: Event bus.  A private one is created when omitted.
    """

    def __init__(
        self,
        lookup: AddressLookup,
        consumer: ConsumerApi,
        *,
        config: FlowConfig | None = None,
        bus: EventBus | None = None,
    ) -> None:
        self._lookup = lookup
        self._consumer = consumer
        self._config = config or FlowConfig()
        self._bus = bus or EventBus()
        self._state = initial_state(self._config.eligibility_path)
        self._search = AddressSearch(lookup, debounce_seconds=self._config.debounce_seconds)
        self._address_generation = 0
        self._in_flight = 0

    # -- subscribe / snapshot -------------------------------------------------

    @property
    def bus(self) -> EventBus:
        return self._bus

    def subscribe(self, handler: Callable[[Event], None]) -> None:
        """Call *handler* after every committed state change."""
        self._bus.subscribe(EventType.STATE_CHANGED, handler)

    def unsubscribe(self, handler: Callable[[Event], None]) -> None:
        self._bus.unsubscribe(EventType.STATE_CHANGED, handler)

    def snapshot(self) -> FlowState:
        """A deep copy of the current state."""
        return self._state.snapshot()

    def _commit(self, reason: str, **data: Any) -> None:
        self._bus.publish(EventType.STATE_CHANGED, {"reason": reason, **data}, source=_SOURCE)

    def _publish(self, event_type: EventType, **data: Any) -> None:
        self._bus.publish(event_type, data, source=_SOURCE)

    def _record_failure(self, operation: str, exc: MoveInError) -> None:
        logger.warning("%s failed [%s]: %s", operation, exc.code, exc)
        self._state.last_error = str(exc)
        self._state.last_error_code = exc.code
        self._publish(EventType.UPSTREAM_FAILED, operation=operation, code=exc.code, message=str(exc))

    async def _timed(self, awaitable: Awaitable[T]) -> T:
        """Run *awaitable* under the loading flag for at least the minimum duration.

        Overlapping operations share the flag; it drops once the last one finishes.
        """
        self._in_flight += 1
        self._state.loading = True
        self._commit("loading")
        try:
            return await resolution.hold_minimum(awaitable, self._config.min_loading_seconds)
        finally:
            self._in_flight -= 1
            self._state.loading = self._in_flight > 0

    # -- navigation -----------------------------------------------------------

    def step_errors(self, step: Step | None = None) -> dict[str, str]:
        """What blocks leaving *step* (default: the current step)."""
        state = self._state
        step = state.step if step is None else step
        errors: dict[str, str] = {}
        if step is Step.ADDRESS:
            if state.address is None:
                errors["address"] = "Enter your service address"
            elif not (state.confirmed_esiid or state.address.esiid):
                errors["esiid"] = "Confirm which meter belongs to your address"
            errors.update(validation.validate_move_in_date(state.move_in_date))
        elif step is Step.SERVICES:
            verdict = state.verdict
            if verdict.is_blocking:
                errors["eligibility"] = "Answer the water question to continue"
            plans = self._order_plans()
            if not plans:
                errors["plans"] = "Choose at least one service plan"
            for service, selected in state.selected_services.items():
                if service is ServiceType.WATER:
                    if verdict.water_locked and self._water_offered() and service not in plans:
                        errors["water"] = "Choose a water plan"
                elif selected and service not in plans:
                    errors[service.value] = f"Choose a {service.value} plan"
        elif step is Step.PROFILE:
            if state.profile is None:
                errors["profile"] = "Tell us about yourself"
        elif step is Step.REVIEW:
            if state.confirmation is None:
                errors["order"] = "Place your order to continue"
        return errors

    def advance(self) -> Step:
        """Move forward one step.  No-op on the last step.

        :raises ValidationError: If the current step is incomplete.
        """
        state = self._state
        if state.step >= LAST_STEP:
            return state.step
        errors = self.step_errors()
        if errors:
            raise ValidationError(errors)
        state.step = Step(state.step + 1)
        self._publish(EventType.STEP_CHANGED, step=int(state.step))
        self._commit("advance")
        return state.step

    def retreat(self) -> Step:
        """Move back one step.  No-op on the first step."""
        state = self._state
        if state.step <= FIRST_STEP:
            return state.step
        state.step = Step(state.step - 1)
        self._publish(EventType.STEP_CHANGED, step=int(state.step))
        self._commit("retreat")
        return state.step

    def jump_to(self, step: int) -> Step:
        """Go back to an earlier step, e.g. from an "edit" link on review.

        :raises ValueError: If *step* is not a wizard step.
        :raises ValidationError: If *step* has not been reached yet.
        """
        target = Step(step)
        if target > self._state.step:
            raise ValidationError({"step": "Finish the current step first"})
        if target is not self._state.step:
            self._state.step = target
            self._publish(EventType.STEP_CHANGED, step=int(target))
            self._commit("jump")
        return target

    def reset(self) -> None:
        """Return to the initial snapshot."""
        self._address_generation += 1
        self._search.clear()
        self._state = initial_state(self._config.eligibility_path)
        self._publish(EventType.FLOW_RESET)
        self._commit("reset")

    # -- session --------------------------------------------------------------

    async def ensure_session(self) -> str:
        """Return the session id, generating a new one if absent."""
        if not self._state.session_id:
            session_id = await asyncio.to_thread(self._consumer.generate_session_id)
            self._state.session_id = session_id
            logger.info("Generated new checkout session")
            self._commit("session")
        return self._state.session_id

    # -- step 1: address ------------------------------------------------------

    def set_address(self, address: Address | None) -> None:
        """Replace the address and drop everything derived from the old one."""
        self._address_generation += 1
        state = self._state
        state.address = address
        state.clear_address_derived()
        state.last_error = None
        state.last_error_code = None
        self._apply_water_policy()
        self._publish(EventType.ADDRESS_CHANGED, address=address.to_dict() if address else None)
        self._commit("address")

    def set_move_in_date(self, value: str) -> None:
        """:raises ValidationError: If *value* is not within the allowed window."""
        errors = validation.validate_move_in_date(value)
        if errors:
            raise ValidationError(errors)
        self._state.move_in_date = value.strip()
        self._commit("move_in_date")

    async def search_addresses(self, query: str) -> list[AddressSuggestion] | None:
        """Debounced autocomplete.  ``None`` means a newer query superseded this one."""
        self._state.address_query = query
        results = await self._search.search(query)
        if results is not None:
            self._commit("address_suggestions", count=len(results))
        return results

    @property
    def suggestions(self) -> list[AddressSuggestion]:
        return list(self._search.results)

    async def choose_address(self, suggestion: AddressSuggestion, unit: str | None = None) -> MeterResolution:
        """Select a suggestion and resolve its meter.

        A suggestion that already carries an ESIID is confirmed at once;
        otherwise the meter search and availability check run
        concurrently.

        :raises NotFoundError: If no active meter matches the address.
        :raises UpstreamError: If the meter search fails.
        """
        if unit is not None and unit.strip():
            suggestion = dataclasses.replace(suggestion, unit=unit.strip())
        self.set_address(suggestion.to_address())
        generation = self._address_generation
        try:
            return await self._timed(self._resolve(suggestion, generation))
        finally:
            self._commit("address_resolved")

    async def _resolve(self, suggestion: AddressSuggestion, generation: int) -> MeterResolution:
        address = self._state.address
        if suggestion.esiid:
            meter = resolution.preconfirmed(suggestion.esiid, suggestion)
            profile_result, catalogs = await asyncio.gather(
                self._fetch_usage(suggestion.esiid),
                self._fetch_catalogs(address.zip),
            )
            if generation == self._address_generation:
                self._apply_catalogs(catalogs)
                self._apply_confirmed(meter, profile_result)
            return meter

        try:
            candidates, catalogs = await asyncio.gather(
                asyncio.to_thread(self._lookup.search_meters, address.street, address.zip, address.unit),
                self._fetch_catalogs(address.zip),
            )
        except UpstreamError as exc:
            if generation == self._address_generation:
                self._record_failure("meter search", exc)
            raise
        if generation != self._address_generation:
            logger.debug("Dropping stale meter search for %s", address.display())
            return resolution.resolve_candidates(candidates, address.unit)

        meter = resolution.resolve_candidates(candidates, address.unit)
        state = self._state
        if meter.outcome is ResolutionOutcome.NOT_FOUND:
            state.address = None
            state.clear_address_derived()
            state.meter = meter
            state.resolution_error = (
                "We couldn't find electric service at this address. Check the address and try again."
            )
            self._publish(EventType.ADDRESS_NOT_FOUND, query=state.address_query)
            raise NotFoundError(state.resolution_error, code="ESIID_NOT_FOUND")

        if meter.outcome is ResolutionOutcome.AMBIGUOUS:
            state.meter = meter
            self._apply_catalogs(catalogs)
            self._publish(EventType.METER_AMBIGUOUS, count=len(meter.candidates))
            return meter

        profile = await self._fetch_usage(meter.confirmed_esiid)
        if generation != self._address_generation:
            return meter
        self._apply_catalogs(catalogs)
        self._apply_confirmed(meter, profile)
        return meter

    def select_meter(self, esiid: str) -> None:
        """Pick one of several candidates.  Confirmation is a separate step.

        :raises ValidationError: If nothing is awaiting disambiguation, or the candidate is inactive.
        """
        meter = self._state.meter
        if meter is None or meter.outcome is not ResolutionOutcome.AMBIGUOUS:
            raise ValidationError({"esiid": "There is nothing to choose between"})
        self._state.meter = resolution.select_candidate(meter, esiid)
        self._commit("meter_selected", esiid=esiid)

    async def confirm_meter(self) -> MeterResolution:
        """Confirm the selected candidate and load its usage profile.

        :raises ValidationError: If no candidate is selected.
        """
        meter = self._state.meter
        if meter is None:
            raise ValidationError({"esiid": "Select your address before continuing."})
        confirmed = resolution.confirm_selection(meter)
        generation = self._address_generation
        try:
            profile = await self._timed(self._fetch_usage(confirmed.confirmed_esiid))
            if generation == self._address_generation:
                self._apply_confirmed(confirmed, profile)
        finally:
            self._commit("meter_confirmed")
        return confirmed

    def _apply_confirmed(self, meter: MeterResolution, profile: UsageProfile | None) -> None:
        esiid = meter.confirmed_esiid
        state = self._state
        state.meter = meter
        if state.address is not None:
            state.address = dataclasses.replace(state.address, esiid=esiid)
        self._apply_usage(profile)
        self._publish(EventType.METER_CONFIRMED, esiid=esiid)

    async def _fetch_usage(self, esiid: str) -> UsageProfile | None:
        try:
            return await asyncio.to_thread(self._lookup.get_usage_profile, esiid)
        except UpstreamError as exc:
            logger.warning("Usage lookup failed for meter [%s], using default profile: %s", exc.code, exc)
            return None

    def _apply_usage(self, profile: UsageProfile | None) -> None:
        state = self._state
        state.usage_profile = profile or UsageProfile.default()
        state.home_details = pricing.home_details(state.usage_profile)
        self._rerank()

    # -- step 2: catalogs -----------------------------------------------------

    async def _fetch_catalog(self, service: ServiceType, zip_code: str) -> ServiceAvailability:
        usage = self._state.usage_profile.usage if self._state.usage_profile else None
        try:
            plans = await asyncio.to_thread(self._consumer.list_plans, service, zip_code, usage)
        except UpstreamError as exc:
            self._record_failure(f"{service.value} catalog", exc)
            return ServiceAvailability(available=False)
        return ServiceAvailability(available=bool(plans), plans=plans)

    async def _fetch_catalogs(self, zip_code: str) -> dict[ServiceType, ServiceAvailability]:
        services = list(ServiceType)
        results = await asyncio.gather(*(self._fetch_catalog(s, zip_code) for s in services))
        return dict(zip(services, results))

    def _apply_catalogs(self, catalogs: dict[ServiceType, ServiceAvailability]) -> None:
        state = self._state
        state.availability = catalogs
        state.availability_checked = True
        self._rerank()
        self._publish(
            EventType.AVAILABILITY_CHECKED,
            available={s.value: a.available for s, a in catalogs.items()},
        )

    async def check_availability(self) -> dict[ServiceType, ServiceAvailability]:
        """Fetch every service catalog for the current address.

        A failing catalog degrades to an unavailable service; the others
        are still applied.

        :raises ValidationError: If no address is set.
        """
        address = self._state.address
        if address is None:
            raise ValidationError({"address": "Enter your service address"})
        generation = self._address_generation
        try:
            catalogs = await self._timed(self._fetch_catalogs(address.zip))
            if generation == self._address_generation:
                self._apply_catalogs(catalogs)
        finally:
            self._commit("availability")
        return catalogs

    def _rerank(self) -> None:
        """Re-price every catalog and keep selections whose id survived."""
        state = self._state
        usage = (state.usage_profile or UsageProfile.default()).usage
        state.ranked_plans = {
            service: pricing.rank_plans(availability.plans, usage)
            for service, availability in state.availability.items()
        }
        for service, plan in list(state.selected_plans.items()):
            refreshed = pricing.reconcile_selection(plan.id, state.ranked_plans.get(service, ()))
            if refreshed is None:
                del state.selected_plans[service]
                self._publish(EventType.PLAN_SELECTION_CLEARED, service=service.value, plan_id=plan.id)
            else:
                state.selected_plans[service] = refreshed
        self._apply_water_policy()
        self._publish(EventType.PLANS_RANKED, services=[s.value for s in state.ranked_plans])

    def _apply_water_policy(self) -> None:
        state = self._state
        verdict = state.verdict
        if verdict.is_blocking:
            return
        if not verdict.water_visible:
            state.selected_plans.pop(ServiceType.WATER, None)
        elif verdict.water_locked and self._water_offered() and ServiceType.WATER not in state.selected_plans:
            plan = pricing.best_value_plan(state.ranked_plans.get(ServiceType.WATER, ()))
            if plan is not None:
                state.selected_plans[ServiceType.WATER] = plan

    def _water_offered(self) -> bool:
        availability = self._state.availability.get(ServiceType.WATER)
        return availability is not None and availability.available

    def _order_plans(self) -> dict[ServiceType, ServicePlan]:
        """Plans that would be ordered right now."""
        state = self._state
        verdict = state.verdict
        plans: dict[ServiceType, ServicePlan] = {}
        for service, plan in state.selected_plans.items():
            if service is ServiceType.WATER:
                if verdict.water_visible:
                    plans[service] = plan
            elif state.selected_services.get(service):
                plans[service] = plan
        return plans

    def ranked_plans(self, service: ServiceType) -> list[ServicePlan]:
        return list(self._state.ranked_plans.get(service, ()))

    def visible_plans(self, service: ServiceType) -> list[ServicePlan]:
        return pricing.visible_plans(
            self._state.ranked_plans.get(service, ()),
            show_all=self._state.show_all_plans.get(service, False),
        )

    def show_all_plans(self, service: ServiceType, show_all: bool = True) -> None:
        self._state.show_all_plans[service] = show_all
        self._commit("show_all_plans", service=service.value)

    # -- step 2: eligibility --------------------------------------------------

    def _set_decision(self, decision: EligibilityDecision, reason: str) -> None:
        self._state.eligibility = decision
        self._apply_water_policy()
        self._commit(reason, water=self._state.verdict.to_dict())

    def set_dwelling_type(self, dwelling: DwellingType) -> None:
        """:raises ValueError: If this session uses the legacy water question."""
        decision = self._state.eligibility
        if not isinstance(decision, DwellingDecision):
            raise ValueError("This session asks the water billing question instead of dwelling type")
        self._set_decision(dataclasses.replace(decision, dwelling_type=dwelling), "dwelling_type")

    def set_water_answer(self, answer: WaterAnswer) -> None:
        """:raises ValueError: If this session uses the dwelling-type question."""
        decision = self._state.eligibility
        if not isinstance(decision, LegacyDecision):
            raise ValueError("This session asks for dwelling type instead of the water billing question")
        self._set_decision(dataclasses.replace(decision, water_answer=answer), "water_answer")

    def set_ownership(self, ownership: OwnershipStatus) -> None:
        decision = dataclasses.replace(self._state.eligibility, ownership=ownership)
        self._set_decision(decision, "ownership")

    def set_water_override(self, override: bool) -> None:
        self._set_decision(with_override(self._state.eligibility, override), "water_override")

    # -- step 2: services and plans -------------------------------------------

    async def _sync_cart(self, add: ServicePlan | None = None, remove: ServicePlan | None = None) -> None:
        """Mirror a local selection change into the provider cart.

        Failures are logged; the local selection stands.
        """
        try:
            session_id = await self.ensure_session()
            if remove is not None:
                await asyncio.to_thread(self._consumer.remove_from_cart, session_id, remove.id)
            if add is not None:
                await asyncio.to_thread(self._consumer.add_to_cart, session_id, add.id)
        except MoveInError as exc:
            logger.warning("Cart sync failed [%s]: %s", exc.code, exc)

    async def toggle_service(self, service: ServiceType, selected: bool | None = None) -> bool:
        """Select or deselect electricity or internet.

        Selecting pre-selects the best-value plan; deselecting clears it.

        :raises ValidationError: For water, which follows eligibility instead.
        """
        if service is ServiceType.WATER:
            raise ValidationError({"water": "Water service follows your dwelling answers"})
        state = self._state
        new_value = not state.selected_services.get(service, False) if selected is None else selected
        state.selected_services[service] = new_value
        added: ServicePlan | None = None
        removed: ServicePlan | None = None
        if not new_value:
            removed = state.selected_plans.pop(service, None)
        elif service not in state.selected_plans:
            added = pricing.best_value_plan(state.ranked_plans.get(service, ()))
            if added is not None:
                state.selected_plans[service] = added
        self._commit("service_toggled", service=service.value, selected=new_value)
        if added is not None or removed is not None:
            await self._sync_cart(add=added, remove=removed)
        return new_value

    async def select_plan(self, service: ServiceType, plan_id: str) -> ServicePlan:
        """Choose a plan by id from the full ranked list.

        :raises ValidationError: If the plan is unknown or water is not offered.
        """
        state = self._state
        if service is ServiceType.WATER and not state.verdict.water_visible:
            raise ValidationError({"water": "Water service is handled by your property"})
        plan = pricing.reconcile_selection(plan_id, state.ranked_plans.get(service, ()))
        if plan is None:
            raise ValidationError({service.value: "Choose one of the listed plans"})
        previous = state.selected_plans.get(service)
        state.selected_plans[service] = plan
        if service is not ServiceType.WATER:
            state.selected_services[service] = True
        self._commit("plan_selected", service=service.value, plan_id=plan_id)
        if previous is None or previous.id != plan.id:
            await self._sync_cart(add=plan, remove=previous)
        return plan

    def set_monthly_usage(self, monthly_kwh: float) -> UsageProfile:
        """Replace the usage profile from an average monthly figure and re-rank.

        The figure is snapped to the slider step.

        :raises ValidationError: If it falls outside the slider bounds.
        """
        snapped = round(monthly_kwh / pricing.USAGE_STEP) * pricing.USAGE_STEP
        try:
            profile = pricing.adjusted_profile(snapped, self._state.usage_profile)
        except ValueError as exc:
            raise ValidationError({"usage": str(exc)}) from exc
        state = self._state
        state.usage_profile = profile
        state.home_details = pricing.home_details(profile)
        self._rerank()
        self._commit("usage", monthly_kwh=snapped)
        return profile

    def set_usage_preset(self, preset: str) -> UsageProfile:
        """:raises ValidationError: If *preset* is not a known preset name."""
        if preset not in pricing.USAGE_PRESETS:
            raise ValidationError({"usage": f"Choose one of: {', '.join(pricing.USAGE_PRESETS)}"})
        return self.set_monthly_usage(pricing.USAGE_PRESETS[preset])

    # -- step 3: profile ------------------------------------------------------

    def set_profile(self, profile: UserProfile) -> UserProfile:
        """:raises ValidationError: Listing every invalid field."""
        errors = validation.validate_profile(profile)
        if errors:
            raise ValidationError(errors)
        normalized = validation.normalize_profile(profile)
        self._state.profile = normalized
        self._commit("profile")
        return normalized

    # -- step 4: provider checkout --------------------------------------------

    async def load_checkout_steps(self) -> list[ProviderStep]:
        """Fetch the provider question schema for the current cart."""
        session_id = await self.ensure_session()
        try:
            steps = await self._timed(asyncio.to_thread(self._consumer.get_checkout_steps, session_id))
        except UpstreamError as exc:
            self._record_failure("checkout schema", exc)
            self._commit("checkout_steps_failed")
            raise
        self._state.checkout_steps = steps
        self._commit("checkout_steps", count=len(steps))
        return steps

    def set_answer(self, question_id: str, value: str) -> None:
        self._state.answers[question_id] = value
        self._commit("answer", question_id=question_id)

    def upload_document(
        self,
        requirement: str,
        name: str,
        content: bytes,
        content_type: str | None = None,
    ) -> UploadedDocument:
        """Attach a file to a document requirement.

        Unacceptable files are kept with ``error`` status so the view can
        show why.
        """
        content_type = content_type or mimetypes.guess_type(name)[0] or "application/octet-stream"
        document = UploadedDocument(
            id=uuid.uuid4().hex,
            name=name,
            size=len(content),
            content_type=content_type,
            status=DocumentStatus.UPLOADING,
        )
        state = self._state
        state.documents[requirement] = document
        self._commit("document_uploading", requirement=requirement)

        problem = validation.upload_problem(name, len(content))
        if problem:
            document = dataclasses.replace(document, status=DocumentStatus.ERROR, error_message=problem)
        else:
            document = dataclasses.replace(document, status=DocumentStatus.UPLOADED, content=content)
        state.documents[requirement] = document
        self._commit("document_uploaded", requirement=requirement, status=document.status.value)
        return document

    def remove_document(self, requirement: str) -> None:
        if self._state.documents.pop(requirement, None) is not None:
            self._commit("document_removed", requirement=requirement)

    def accept_terms(self, accepted: bool = True) -> None:
        self._state.terms_accepted = accepted
        self._commit("terms", accepted=accepted)

    # -- submission -----------------------------------------------------------

    def _draft(self) -> submission.SubmissionDraft:
        state = self._state
        return submission.SubmissionDraft(
            address=state.address,
            move_in_date=state.move_in_date,
            profile=state.profile,
            selected_plans=self._order_plans(),
            answers=dict(state.answers),
            documents=dict(state.documents),
            steps=list(state.checkout_steps),
            terms_accepted=state.terms_accepted,
            ownership=state.eligibility.ownership,
        )

    async def submit_order(self) -> OrderConfirmation:
        """Place the order and advance to the confirmation step.

        Every precondition is checked before any network call.  On
        failure all entered data stays as it was.

        :raises ValidationError: If a precondition fails.
        :raises PartialFailure: If submission failed with documents attached.
        :raises UpstreamError: If submission failed otherwise.
        """
        draft = self._draft()
        submission.validate_draft(draft)
        session_id = await self.ensure_session()
        self._publish(EventType.ORDER_SUBMITTED, services=[s.value for s in draft.selected_plans])
        state = self._state
        try:
            confirmation = await self._timed(
                asyncio.to_thread(submission.submit_order, self._consumer, session_id, draft)
            )
        except UpstreamError as exc:
            self._record_failure("order submission", exc)
            self._publish(
                EventType.ORDER_FAILED,
                code=exc.code,
                message=str(exc),
                documents={k: d.to_dict() for k, d in state.documents.items()},
            )
            self._commit("order_failed")
            raise

        state.confirmation = confirmation
        state.last_error = None
        state.last_error_code = None
        state.step = Step.CONFIRMATION
        self._publish(
            EventType.ORDER_CONFIRMED,
            confirmation=confirmation.to_dict(),
            profile=state.profile.to_dict() if state.profile else None,
            plans={s.value: p.to_dict() for s, p in draft.selected_plans.items()},
        )
        self._publish(EventType.STEP_CHANGED, step=int(state.step))
        self._commit("order_confirmed", order_id=confirmation.order_id)
        return confirmation

    async def order_status(self, confirmation_id: str, last_name: str, zip_code: str) -> dict[str, Any]:
        return await asyncio.to_thread(self._consumer.get_order_status, confirmation_id, last_name, zip_code)
