"""Checkout submission: validate, assemble the order, post it, report in a modal."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable
from urllib.parse import urlencode

import httpx

from checkout.client.fields import FieldBinder, Form
from checkout.client.validators import numeric_only
from checkout.models import SUCCESS

logger = logging.getLogger(__name__)

PAY_SOURCE = "CREDITCARD"
BILL_SHIP_SAME = "YES"

_TRIMMED_FIELDS = (
    "firstName",
    "lastName",
    "postalCode",
    "emailAddress",
    "phoneNumber",
    "address1",
    "cardMonth",
    "cardYear",
    "cardSecurityCode",
    "city",
    "state",
)


class SubmissionState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    SUBMITTING = "submitting"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class Success:
    order_id: str


@dataclass(frozen=True)
class Failure:
    message: str


SubmissionOutcome = Success | Failure


class Modal:
    """Reusable outcome dialog with an optional navigation on close."""

    def __init__(self, navigate: Callable[[str], None]) -> None:
        self._navigate = navigate
        self.visible = False
        self.message = ""
        self.is_error = False
        self.close_target: str | None = None

    def open(self, message: str, is_error: bool = False, close_target: str | None = None) -> None:
        self.message = message
        self.is_error = is_error
        self.close_target = None
        if close_target:
            self.close_target = close_target
        self.visible = True

    def close(self) -> None:
        self.visible = False
        if self.close_target:
            self._navigate(self.close_target)


def build_order_payload(form: Form, ip_address: str) -> dict[str, Any]:
    payload: dict[str, Any] = {field_id: form.value(field_id).strip() for field_id in _TRIMMED_FIELDS}
    payload.update(
        {
            "paySource": PAY_SOURCE,
            "cardNumber": numeric_only(form.value("cardNumber")),
            "country": form.value("country"),
            "ipAddress": ip_address,
            "product1_id": form.value("product1_id"),
            "billShipSame": BILL_SHIP_SAME,
        }
    )
    for optional in ("address2", "latitude", "longitude"):
        value = form.value(optional).strip()
        if value:
            payload[optional] = value
    return payload


def thank_you_location(path: str, order_id: str, email: str) -> str:
    return f"{path}?{urlencode({'orderId': order_id, 'email': email})}"


class SubmissionController:
    """Drives one checkout attempt at a time from submit to modal outcome."""

    def __init__(
        self,
        form: Form,
        binder: FieldBinder,
        backend: Any,
        modal: Modal,
        thank_you_path: str = "/thankyou.html",
    ) -> None:
        self.form = form
        self.binder = binder
        self.backend = backend
        self.modal = modal
        self.thank_you_path = thank_you_path
        self.state = SubmissionState.IDLE

    @property
    def in_flight(self) -> bool:
        return self.state in (SubmissionState.VALIDATING, SubmissionState.SUBMITTING)

    async def submit(self) -> SubmissionOutcome | None:
        """Returns the outcome, or None when nothing was sent."""

        if self.in_flight:
            logger.info("Ignoring submit while a checkout is in flight")
            return None

        self.state = SubmissionState.VALIDATING
        if not self.binder.validate_all():
            self.state = SubmissionState.IDLE
            return None

        self.state = SubmissionState.SUBMITTING
        try:
            outcome = await self._send()
            self.state = SubmissionState.SUCCESS if isinstance(outcome, Success) else SubmissionState.FAILURE
            self._present(outcome)
        finally:
            self.state = SubmissionState.IDLE
        return outcome

    async def _send(self) -> SubmissionOutcome:
        email = self.form.value("emailAddress").strip()
        try:
            ip_address = await self.backend.lookup_ip()
            payload = build_order_payload(self.form, ip_address)
            data = await self.backend.submit_order(payload)
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
            logger.warning("Checkout request failed", extra={"error": str(exc)})
            return Failure(str(exc) or "Something went wrong")

        if isinstance(data, dict) and data.get("result") == SUCCESS:
            message = data.get("message")
            order_id = message.get("orderId") if isinstance(message, dict) else None
            logger.info("Checkout succeeded", extra={"order_id": order_id, "lead_email": email})
            return Success(str(order_id) if order_id is not None else "")

        message = data.get("message") if isinstance(data, dict) else None
        return Failure(message if isinstance(message, str) and message else "Payment failed")

    def _present(self, outcome: SubmissionOutcome) -> None:
        if isinstance(outcome, Success):
            email = self.form.value("emailAddress").strip()
            self.modal.open(
                f"Transaction successful. Your order ID is {outcome.order_id}",
                close_target=thank_you_location(self.thank_you_path, outcome.order_id, email),
            )
        else:
            self.modal.open(outcome.message, is_error=True)
