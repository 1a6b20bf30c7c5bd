"""Field validators for the checkout form.

Every validator is a pure function returning a :class:`ValidationResult`;
the message is only populated when the value is rejected.
"""

import re
from dataclasses import dataclass
from datetime import datetime

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]{2,}$")
_NON_DIGITS = re.compile(r"[^0-9]")

CARD_MIN_DIGITS = 12
CARD_MAX_DIGITS = 19


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    message: str = ""

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(True)

    @classmethod
    def fail(cls, message: str) -> "ValidationResult":
        return cls(False, message)


def numeric_only(value: str | None) -> str:
    return _NON_DIGITS.sub("", value or "")


def validate_required(value: str | None) -> ValidationResult:
    if (value or "").strip():
        return ValidationResult.ok()
    return ValidationResult.fail("Required field")


def validate_email(value: str | None) -> ValidationResult:
    if not value:
        return ValidationResult.fail("Email is required")
    if _EMAIL_PATTERN.fullmatch(value):
        return ValidationResult.ok()
    return ValidationResult.fail("Invalid email format")


def luhn_checksum_valid(digits: str) -> bool:
    """Weighted mod-10 check, doubling every second digit from the right."""

    total = 0
    for position, char in enumerate(reversed(digits)):
        digit = int(char)
        if position % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def validate_card_number(value: str | None) -> ValidationResult:
    digits = numeric_only(value)
    if not CARD_MIN_DIGITS <= len(digits) <= CARD_MAX_DIGITS:
        return ValidationResult.fail(f"Card number must be {CARD_MIN_DIGITS}-{CARD_MAX_DIGITS} digits")
    if luhn_checksum_valid(digits):
        return ValidationResult.ok()
    return ValidationResult.fail("Invalid card number")


def _parse_int(value: str | None) -> int | None:
    try:
        return int((value or "").strip())
    except ValueError:
        return None


def validate_expiry(month: str | None, year: str | None, now: datetime | None = None) -> ValidationResult:
    """Accept a card through the last day of its printed MM/YY month."""

    parsed_month = _parse_int(month)
    parsed_year = _parse_int(year)
    if parsed_month is None or parsed_year is None or not 0 <= parsed_year <= 99:
        return ValidationResult.fail("Enter MM/YY")
    if not 1 <= parsed_month <= 12:
        return ValidationResult.fail("Invalid month")
    full_year = 2000 + parsed_year
    if parsed_month == 12:
        expires = datetime(full_year + 1, 1, 1)
    else:
        expires = datetime(full_year, parsed_month + 1, 1)
    if expires > (now or datetime.now()):
        return ValidationResult.ok()
    return ValidationResult.fail("Card is expired")


def validate_cvv(value: str | None) -> ValidationResult:
    if len(numeric_only(value)) in (3, 4):
        return ValidationResult.ok()
    return ValidationResult.fail("3 or 4 digits")
