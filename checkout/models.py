from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

SUCCESS = "SUCCESS"
ERROR = "ERROR"


class LeadRequest(BaseModel):
    """Partial lead captured before payment; `leadId` switches create to update."""

    model_config = ConfigDict(str_strip_whitespace=True, coerce_numbers_to_str=True, extra="ignore")

    leadId: str | None = None
    firstName: str | None = None
    lastName: str | None = None
    emailAddress: str | None = None
    product1_id: str | None = None


class CheckoutRequest(BaseModel):
    """Order import payload forwarded verbatim to the order-management API."""

    model_config = ConfigDict(coerce_numbers_to_str=True, extra="ignore")

    firstName: str | None = None
    lastName: str | None = None
    postalCode: str | None = None
    emailAddress: str | None = None
    phoneNumber: str | None = None
    address1: str | None = None
    paySource: str | None = None
    cardNumber: str | None = None
    cardMonth: str | None = None
    cardYear: str | None = None
    cardSecurityCode: str | None = None
    city: str | None = None
    country: str | None = None
    ipAddress: str | None = None
    state: str | None = None
    product1_id: str | None = None
    billShipSame: str | None = None
    address2: str | None = None
    latitude: str | None = None
    longitude: str | None = None


class Country(BaseModel):
    model_config = ConfigDict(extra="allow")

    countryCode: str
    countryName: str


class CountriesMessage(BaseModel):
    countries: list[dict[str, Any]] = Field(default_factory=list)


class ProductsMessage(BaseModel):
    products: list[dict[str, Any]] = Field(default_factory=list)


class MapsKeyMessage(BaseModel):
    key: str
    mapId: str | None = None


class LeadMessage(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    orderId: str | None = None


class OrderConfirmation(BaseModel):
    """Projection of the upstream order import result returned to the page."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    orderId: str | None = None
    dateCreated: str | None = None
    orderType: str | None = None
    orderStatus: str | None = None


class ConfigMessage(BaseModel):
    campaignId: str
    googleMapsApiKey: Literal["present", "missing"]


class SuccessResponse(BaseModel):
    """Successful response envelope shared by every `/api` endpoint."""

    result: Literal["SUCCESS"] = SUCCESS
    message: Any


class ErrorResponse(BaseModel):
    """Error response envelope to keep errors consistent."""

    result: Literal["ERROR"] = ERROR
    message: Any
    details: Any | None = None
