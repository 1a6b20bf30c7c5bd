import logging
from typing import Any

import httpx

from checkout.config import Settings
from checkout.models import SUCCESS, CheckoutRequest, LeadRequest, OrderConfirmation

logger = logging.getLogger(__name__)


class UpstreamError(Exception):
    """Raised when the order-management API fails or rejects a request."""

    def __init__(self, message: Any, status_code: int = 500) -> None:
        super().__init__(message if isinstance(message, str) else "Upstream request failed")
        self.message = message
        self.status_code = status_code


def _error_text(data: dict[str, Any], fallback: str) -> str:
    message = data.get("message")
    return message if isinstance(message, str) else fallback


class CheckoutChampClient:
    """Thin async client for the CheckoutChamp order-management API."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None) -> None:
        self._settings = settings
        self._http = http_client or httpx.AsyncClient(timeout=settings.upstream_timeout_seconds)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _post(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        """POST a form-encoded payload with the campaign credentials merged in."""

        url = f"{self._settings.checkoutchamp_base_url.rstrip('/')}{path}"
        payload = {**self._settings.upstream_credentials, **params}
        payload = {key: value for key, value in payload.items() if value is not None}
        try:
            response = await self._http.post(
                url,
                data=payload,
                timeout=self._settings.upstream_timeout_seconds,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            body: Any
            try:
                body = exc.response.json()
            except ValueError:
                body = exc.response.text or str(exc)
            logger.warning(
                "Upstream returned an error status",
                extra={"upstream_path": path, "status_code": exc.response.status_code},
            )
            raise UpstreamError(body) from exc
        except httpx.HTTPError as exc:
            logger.warning("Upstream request failed", extra={"upstream_path": path, "error": str(exc)})
            raise UpstreamError(str(exc) or exc.__class__.__name__) from exc
        except ValueError as exc:
            logger.warning("Upstream returned malformed JSON", extra={"upstream_path": path})
            raise UpstreamError("Malformed upstream response") from exc
        if not isinstance(data, dict):
            raise UpstreamError("Malformed upstream response")
        return data

    async def query_countries(self) -> list[dict[str, Any]]:
        data = await self._post("/campaign/query/", {})
        campaign_id = str(self._settings.checkoutchamp_campaign_id)
        message = data.get("message") or {}
        campaigns = message.get("data") if isinstance(message, dict) else None
        campaign = campaigns.get(campaign_id) if isinstance(campaigns, dict) else None
        countries = campaign.get("countries") if isinstance(campaign, dict) else None
        return countries or []

    async def query_products(self) -> list[dict[str, Any]]:
        data = await self._post("/product/query/", {"productType": "OFFER"})
        message = data.get("message") or {}
        products = message.get("data") if isinstance(message, dict) else None
        return products or []

    async def sync_partial_lead(self, lead: LeadRequest) -> str | None:
        """Create a partial lead, or update the existing one when `leadId` is set.

        Returns the identifier the page should keep for subsequent syncs.
        """

        fields = lead.model_dump(exclude={"leadId"})
        if lead.leadId:
            data = await self._post("/order/update/", {"orderId": lead.leadId, **fields})
            if data.get("result") == SUCCESS:
                logger.info("Updated partial lead", extra={"lead_id": lead.leadId})
                return lead.leadId
            raise UpstreamError(_error_text(data, "Failed to update partial lead"), status_code=400)

        data = await self._post("/leads/import/", fields)
        if data.get("result") == SUCCESS:
            message = data.get("message") or {}
            lead_id = message.get("orderId") if isinstance(message, dict) else None
            logger.info("Created partial lead", extra={"lead_id": lead_id})
            return str(lead_id) if lead_id is not None else None
        raise UpstreamError(_error_text(data, "Failed to create partial lead"), status_code=400)

    async def import_order(self, order: CheckoutRequest) -> OrderConfirmation:
        data = await self._post("/order/import/", order.model_dump())
        if data.get("result") == SUCCESS:
            message = data.get("message") or {}
            confirmation = OrderConfirmation.model_validate(message if isinstance(message, dict) else {})
            logger.info(
                "Imported order",
                extra={"order_id": confirmation.orderId, "order_status": confirmation.orderStatus},
            )
            return confirmation
        raise UpstreamError(_error_text(data, "Unknown error"), status_code=400)
