"""Form fields, input masks and the binder that keeps them validated."""

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Iterable

from checkout.client.address_assist import PlaceResolved
from checkout.client.validators import (
    CARD_MAX_DIGITS,
    ValidationResult,
    numeric_only,
    validate_card_number,
    validate_cvv,
    validate_email,
    validate_expiry,
    validate_required,
)

CHECKOUT_FIELDS = (
    "firstName",
    "lastName",
    "emailAddress",
    "phoneNumber",
    "country",
    "address1",
    "address2",
    "city",
    "state",
    "postalCode",
    "cardNumber",
    "cardMonth",
    "cardYear",
    "cardSecurityCode",
    "product1_id",
    "latitude",
    "longitude",
)

Validator = Callable[[str], ValidationResult]
Mask = Callable[[str], str]

_CARD_GROUP = re.compile(r"(\d{4})(?=\d)")


class FieldState(str, Enum):
    VALID = "valid"
    INVALID = "invalid"
    UNKNOWN = "unknown"


@dataclass
class FormField:
    id: str
    value: str = ""
    state: FieldState = FieldState.UNKNOWN

    @property
    def css_class(self) -> str:
        return "" if self.state is FieldState.UNKNOWN else self.state.value


class Form:
    """Field values and error slots of one checkout page."""

    def __init__(self, field_ids: Iterable[str] = CHECKOUT_FIELDS) -> None:
        self.fields = {field_id: FormField(field_id) for field_id in field_ids}
        self.error_slots: dict[str, str] = {}

    def field(self, field_id: str) -> FormField:
        return self.fields[field_id]

    def value(self, field_id: str) -> str:
        return self.fields[field_id].value

    def set_value(self, field_id: str, value: str) -> None:
        self.fields[field_id].value = value

    def error(self, slot: str) -> str:
        return self.error_slots.get(slot, "")


@dataclass(frozen=True)
class FieldBinding:
    field_id: str
    validator: Validator
    error_slot: str


def mask_card_number(raw: str) -> str:
    digits = numeric_only(raw)[:CARD_MAX_DIGITS]
    return _CARD_GROUP.sub(r"\1 ", digits)


def digits_capped(length: int) -> Mask:
    def mask(raw: str) -> str:
        return numeric_only(raw)[:length]

    return mask


CHECKOUT_MASKS: dict[str, Mask] = {
    "cardNumber": mask_card_number,
    "cardMonth": digits_capped(2),
    "cardYear": digits_capped(2),
    "cardSecurityCode": digits_capped(4),
}


def build_checkout_bindings(form: Form, now: Callable[[], datetime] | None = None) -> list[FieldBinding]:
    """Bindings for every validated checkout field.

    Month and year each validate against the other's live value.
    """

    clock = now or datetime.now
    return [
        FieldBinding("emailAddress", validate_email, "emailError"),
        FieldBinding("firstName", validate_required, "firstNameError"),
        FieldBinding("lastName", validate_required, "lastNameError"),
        FieldBinding("country", validate_required, "countryError"),
        FieldBinding("address1", validate_required, "address1Error"),
        FieldBinding("city", validate_required, "cityError"),
        FieldBinding("state", validate_required, "stateError"),
        FieldBinding("postalCode", validate_required, "postalCodeError"),
        FieldBinding("cardNumber", validate_card_number, "cardNumberError"),
        FieldBinding(
            "cardMonth",
            lambda value: validate_expiry(value, form.value("cardYear"), clock()),
            "cardMonthError",
        ),
        FieldBinding(
            "cardYear",
            lambda value: validate_expiry(form.value("cardMonth"), value, clock()),
            "cardYearError",
        ),
        FieldBinding("cardSecurityCode", validate_cvv, "cardSecurityCodeError"),
    ]


class FieldBinder:
    """Applies masks and live validation feedback as the visitor types."""

    def __init__(
        self,
        form: Form,
        bindings: Iterable[FieldBinding],
        masks: dict[str, Mask] | None = None,
    ) -> None:
        self.form = form
        self.bindings = {binding.field_id: binding for binding in bindings}
        self.masks = CHECKOUT_MASKS if masks is None else masks

    def handle_input(self, field_id: str, raw: str) -> ValidationResult | None:
        mask = self.masks.get(field_id)
        self.form.set_value(field_id, mask(raw) if mask else raw)
        return self.validate_field(field_id)

    def handle_blur(self, field_id: str) -> ValidationResult | None:
        return self.validate_field(field_id)

    def validate_field(self, field_id: str) -> ValidationResult | None:
        binding = self.bindings.get(field_id)
        if binding is None:
            return None
        result = binding.validator(self.form.value(field_id))
        self._render(binding, result)
        return result

    def validate_all(self) -> bool:
        """Run every binding so each error slot reflects the current values."""

        results = [self.validate_field(field_id) for field_id in self.bindings]
        return all(result.valid for result in results if result is not None)

    def apply_place(self, place: PlaceResolved) -> None:
        touched = []
        for field_id, value in (
            ("city", place.city),
            ("state", place.state),
            ("postalCode", place.postal_code),
            ("address1", place.street),
        ):
            if value:
                self.form.set_value(field_id, value)
                touched.append(field_id)
        if place.lat is not None and place.lng is not None:
            self.form.set_value("latitude", str(place.lat))
            self.form.set_value("longitude", str(place.lng))
        for field_id in touched:
            self.validate_field(field_id)

    def _render(self, binding: FieldBinding, result: ValidationResult) -> None:
        field = self.form.field(binding.field_id)
        field.state = FieldState.VALID if result.valid else FieldState.INVALID
        self.form.error_slots[binding.error_slot] = "" if result.valid else (result.message or "Invalid field")
