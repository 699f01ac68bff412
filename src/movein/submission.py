"""Order submission: validate, aggregate, submit, confirm.

Nothing is sent unless every precondition holds:

- terms of service accepted
- every required provider question answered (type-aware, SSNs checked)
- every required document in ``uploaded`` status

A successful submission yields one new :class:`OrderConfirmation` whose
service lines all start as ``processing``.  A failed one raises and
leaves every input untouched; when files were attached the error is a
:class:`PartialFailure` carrying the document references so the user can
retry without re-uploading.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from movein import validation
from movein.errors import PartialFailure, UpstreamError, ValidationError
from movein.gateway.base import CheckoutFile, CheckoutReceipt, ConsumerApi
from movein.models import (
    DOCUMENT_ID,
    DOCUMENT_PROOF_OF_RESIDENCE,
    Address,
    CheckoutQuestion,
    DocumentStatus,
    OrderConfirmation,
    OwnershipStatus,
    ProviderStep,
    ServiceOrderLine,
    ServicePlan,
    ServiceType,
    UploadedDocument,
    UserProfile,
)

logger = logging.getLogger(__name__)

ORDER_ID_PREFIX = "2TION"


def generate_order_id() -> str:
    return f"{ORDER_ID_PREFIX}-{uuid.uuid4().hex[:12].upper()}"


def required_questions(steps: Iterable[ProviderStep]) -> list[CheckoutQuestion]:
    """All provider questions in schema order, de-duplicated by id."""
    seen: set[str] = set()
    questions: list[CheckoutQuestion] = []
    for step in steps:
        for question in step.questions:
            if question.id in seen:
                continue
            seen.add(question.id)
            questions.append(question)
    return questions


def required_documents(steps: Iterable[ProviderStep]) -> set[str]:
    keys: set[str] = set()
    for step in steps:
        keys |= step.required_documents()
    return keys


@dataclass
class SubmissionDraft:
    """Everything the pipeline needs, gathered from flow state."""

    address: Address | None
    move_in_date: str | None
    profile: UserProfile | None
    selected_plans: Mapping[ServiceType, ServicePlan]
    answers: Mapping[str, str]
    documents: Mapping[str, UploadedDocument]
    steps: Sequence[ProviderStep] = ()
    terms_accepted: bool = False
    ownership: OwnershipStatus = OwnershipStatus.UNKNOWN
    extra: dict[str, Any] = field(default_factory=dict)


def validate_draft(draft: SubmissionDraft) -> None:
    """Check every precondition.

    :raises ValidationError: Listing every failing field.
    """
    errors: dict[str, str] = {}
    if not draft.terms_accepted:
        errors["terms"] = "Accept the Terms of Service to place your order"
    if draft.address is None:
        errors["address"] = "Enter your service address"
    if not draft.move_in_date:
        errors["move_in_date"] = "Choose your move-in date"
    if draft.profile is None:
        errors["profile"] = "Tell us about yourself"
    if not draft.selected_plans:
        errors["plans"] = "Choose at least one service plan"
    errors.update(validation.validate_answers(required_questions(draft.steps), draft.answers))
    errors.update(validation.validate_documents(required_documents(draft.steps), draft.documents))
    if errors:
        raise ValidationError(errors)


def build_payload(draft: SubmissionDraft) -> dict[str, Any]:
    """The JSON part of the checkout request."""
    profile = draft.profile
    address = draft.address
    return {
        "serviceStartDateSelection": draft.move_in_date,
        "appFields": dict(draft.answers),
        "profile": {
            "firstName": profile.first_name,
            "lastName": profile.last_name,
            "emailAddress": profile.email,
            "phoneNumber": profile.phone,
            "smsOptIn": profile.sms_opt_in,
        }
        if profile
        else None,
        "address": {
            "address": address.street,
            "unit": address.unit,
            "city": address.city,
            "state": address.state,
            "zip": address.zip,
            "esiid": address.esiid,
        }
        if address
        else None,
        "plans": [
            {"serviceType": service.value, "planId": plan.id, "vendorName": plan.provider}
            for service, plan in draft.selected_plans.items()
        ],
    }


def build_files(
    documents: Mapping[str, UploadedDocument],
    ownership: OwnershipStatus = OwnershipStatus.UNKNOWN,
) -> list[CheckoutFile]:
    """Map uploaded documents onto the multipart field names."""
    files: list[CheckoutFile] = []
    for key, document in documents.items():
        if document.status is not DocumentStatus.UPLOADED or document.content is None:
            continue
        if key == DOCUMENT_ID:
            field_name = "dlFile"
        elif key == DOCUMENT_PROOF_OF_RESIDENCE:
            field_name = "ownFile" if ownership is OwnershipStatus.OWNER else "rentFile"
        else:
            field_name = key
        files.append(CheckoutFile(field_name, document.name, document.content, document.content_type))
    return files


def build_confirmation(
    receipt: CheckoutReceipt,
    draft: SubmissionDraft,
) -> OrderConfirmation:
    lines = tuple(
        ServiceOrderLine(service_type=service, provider=plan.provider, plan=plan.name)
        for service, plan in draft.selected_plans.items()
    )
    return OrderConfirmation(
        order_id=receipt.confirmation_id or receipt.order_number or generate_order_id(),
        address=draft.address,
        move_in_date=draft.move_in_date,
        services=lines,
        created_at=time.time(),
        deposit_required=receipt.deposit_required,
        deposit_amount=receipt.deposit_amount,
        deposit_reason=receipt.deposit_reason,
        deposit_service_name=receipt.deposit_service_name,
        deposit_vendor_name=receipt.deposit_vendor_name,
    )


def submit_order(api: ConsumerApi, session_id: str, draft: SubmissionDraft) -> OrderConfirmation:
    """Validate *draft*, send it, and return a fresh confirmation.

    :raises ValidationError: Before any network call, if a precondition fails.
    :raises PartialFailure: If the submission failed with documents attached.
    :raises UpstreamError: If the submission failed without documents.
    """
    validate_draft(draft)
    payload = build_payload(draft)
    files = build_files(draft.documents, draft.ownership)
    try:
        receipt = api.complete_checkout(session_id, payload, files)
    except UpstreamError as exc:
        logger.warning("Checkout submission failed [%s]: %s", exc.code, exc)
        if files:
            raise PartialFailure(
                f"Order submission failed: {exc}",
                documents={k: d.to_dict() for k, d in draft.documents.items()},
                code=exc.code,
                status=exc.status,
            ) from exc
        raise
    confirmation = build_confirmation(receipt, draft)
    logger.info("Order %s submitted with %d service(s)", confirmation.order_id, len(confirmation.services))
    return confirmation
