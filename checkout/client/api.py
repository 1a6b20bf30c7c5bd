from dataclasses import dataclass
from typing import Any

import httpx

from checkout.client.config import ClientSettings
from checkout.models import SUCCESS, Country


@dataclass(frozen=True)
class MapsKey:
    key: str
    map_id: str | None = None


class BackendClient:
    """Calls the checkout proxy's `/api` endpoints on behalf of the form."""

    def __init__(self, settings: ClientSettings, http_client: httpx.AsyncClient | None = None) -> None:
        self._settings = settings
        self._http = http_client or httpx.AsyncClient(base_url=settings.backend_url)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _get_json(self, url: str) -> dict[str, Any]:
        response = await self._http.get(url)
        return response.json()

    async def _post_json(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        response = await self._http.post(url, json=payload)
        return response.json()

    async def fetch_countries(self) -> list[Country]:
        data = await self._get_json("/api/countries")
        countries = (data.get("message") or {}).get("countries") or []
        return [Country.model_validate(country) for country in countries]

    async def fetch_maps_key(self) -> MapsKey | None:
        data = await self._get_json("/api/maps-key")
        message = data.get("message")
        if data.get("result") != SUCCESS or not isinstance(message, dict) or not message.get("key"):
            return None
        return MapsKey(key=message["key"], map_id=message.get("mapId"))

    async def sync_lead(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._post_json("/api/lead", payload)

    async def submit_order(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._post_json("/api/checkout", payload)

    async def lookup_ip(self) -> str:
        """Resolve the visitor's public address through the IP lookup service."""

        response = await self._http.get(self._settings.ip_lookup_url)
        return response.json()["ip"]
