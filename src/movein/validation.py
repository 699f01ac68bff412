"""Field-level validation for user-entered data.

Each ``validate_*`` function returns a ``{field: message}`` dict (empty
when valid) so callers can collect several problems before raising a
single :class:`~movein.errors.ValidationError`.  Messages are written
for the end user.
"""

from __future__ import annotations

import datetime
import os
import re
from collections.abc import Iterable, Mapping

from movein.models import CheckoutQuestion, DocumentStatus, QuestionType, UploadedDocument, UserProfile

MAX_MOVE_IN_DAYS = 90
DEFAULT_MOVE_IN_OFFSET_DAYS = 14
MAX_UPLOAD_BYTES = 10 * 1024 * 1024
ALLOWED_UPLOAD_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".pdf"})

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Structurally invalid SSNs: area 000/666/9xx, group 00, serial 0000,
# and well-known advertising numbers.
_SSN_DENY_LIST = frozenset({"078051120", "219099999", "123456789"})


def digits_only(value: str) -> str:
    return re.sub(r"\D", "", value or "")


def format_phone(value: str) -> str:
    """``5551234567`` → ``(555) 123-4567``; partial input is formatted progressively."""
    numbers = digits_only(value)[:10]
    if len(numbers) <= 3:
        return numbers
    if len(numbers) <= 6:
        return f"({numbers[:3]}) {numbers[3:]}"
    return f"({numbers[:3]}) {numbers[3:6]}-{numbers[6:]}"


def is_valid_ssn(value: str) -> bool:
    """Exactly nine digits, excluding structurally invalid patterns."""
    digits = digits_only(value)
    if len(digits) != 9 or len(value.replace("-", "").replace(" ", "")) != 9:
        return False
    area, group, serial = digits[:3], digits[3:5], digits[5:]
    if area in ("000", "666") or area.startswith("9"):
        return False
    if group == "00" or serial == "0000":
        return False
    return digits not in _SSN_DENY_LIST


def default_move_in_date(today: datetime.date | None = None) -> datetime.date:
    return (today or datetime.date.today()) + datetime.timedelta(days=DEFAULT_MOVE_IN_OFFSET_DAYS)


def parse_date(value: str) -> datetime.date | None:
    try:
        return datetime.date.fromisoformat(value.strip())
    except (AttributeError, ValueError):
        return None


def validate_move_in_date(value: str | None, *, today: datetime.date | None = None) -> dict[str, str]:
    if not value:
        return {"move_in_date": "Choose your move-in date"}
    parsed = parse_date(value)
    if parsed is None:
        return {"move_in_date": "Enter the date as YYYY-MM-DD"}
    today = today or datetime.date.today()
    if parsed < today:
        return {"move_in_date": "Choose a date that's today or later"}
    if parsed > today + datetime.timedelta(days=MAX_MOVE_IN_DAYS):
        return {"move_in_date": f"Choose a date within the next {MAX_MOVE_IN_DAYS} days"}
    return {}


def validate_profile(profile: UserProfile) -> dict[str, str]:
    errors: dict[str, str] = {}
    if not profile.first_name.strip():
        errors["first_name"] = "Enter your first name"
    if not profile.last_name.strip():
        errors["last_name"] = "Enter your last name"
    if not profile.email.strip():
        errors["email"] = "Enter your email address"
    elif not _EMAIL_RE.match(profile.email.strip()):
        errors["email"] = "Enter a valid email address like name@example.com"
    if not profile.phone.strip():
        errors["phone"] = "Enter your phone number"
    elif len(digits_only(profile.phone)) != 10:
        errors["phone"] = "Enter a 10-digit phone number"
    return errors


def normalize_profile(profile: UserProfile) -> UserProfile:
    return UserProfile(
        first_name=profile.first_name.strip(),
        last_name=profile.last_name.strip(),
        email=profile.email.strip().lower(),
        phone=format_phone(profile.phone),
        sms_opt_in=profile.sms_opt_in,
    )


def validate_answer(question: CheckoutQuestion, answer: str | None) -> str | None:
    """Return a message when *answer* does not satisfy *question*, else ``None``."""
    value = (answer or "").strip()
    if not value:
        return "This field is required" if question.required else None
    if question.type is QuestionType.SSN and not is_valid_ssn(value):
        return "Enter a valid 9-digit Social Security number"
    if question.type is QuestionType.DATE and parse_date(value) is None:
        return "Enter the date as YYYY-MM-DD"
    if question.type is QuestionType.SELECT and question.options and value not in question.options:
        return "Choose one of the listed options"
    return None


def validate_answers(
    questions: Iterable[CheckoutQuestion],
    answers: Mapping[str, str],
) -> dict[str, str]:
    errors: dict[str, str] = {}
    for question in questions:
        message = validate_answer(question, answers.get(question.id))
        if message:
            errors[question.id] = message
    return errors


def validate_documents(
    required: Iterable[str],
    documents: Mapping[str, UploadedDocument],
) -> dict[str, str]:
    errors: dict[str, str] = {}
    for key in sorted(required):
        document = documents.get(key)
        if document is None or document.status is not DocumentStatus.UPLOADED:
            errors[key] = "Upload this document before placing your order"
    return errors


def upload_problem(name: str, size: int) -> str | None:
    """Why a file cannot be accepted, or ``None``."""
    extension = os.path.splitext(name)[1].lower()
    if extension not in ALLOWED_UPLOAD_EXTENSIONS:
        return "Accepted formats: JPG, PNG, PDF"
    if size > MAX_UPLOAD_BYTES:
        return "Files must be 10 MB or smaller"
    if size <= 0:
        return "The file is empty"
    return None
