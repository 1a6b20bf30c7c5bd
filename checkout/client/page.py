import logging
from datetime import datetime
from typing import Callable
from urllib.parse import parse_qs

import httpx

from checkout.client.address_assist import AddressAssistContext, ProviderLoader, setup_address_assist
from checkout.client.api import BackendClient
from checkout.client.config import ClientSettings, get_client_settings
from checkout.client.fields import FieldBinder, Form, build_checkout_bindings
from checkout.client.lead_sync import LEAD_FIELDS, LeadSyncScheduler, MemorySessionStorage, SessionStorage
from checkout.client.submission import Modal, SubmissionController, SubmissionOutcome

logger = logging.getLogger(__name__)

COUNTRY_PLACEHOLDER = ("", "Select country")


class CheckoutPage:
    """Headless checkout page: the host forwards UI events and renders this state."""

    def __init__(
        self,
        backend: BackendClient,
        storage: SessionStorage | None = None,
        navigate: Callable[[str], None] | None = None,
        maps_loader: ProviderLoader | None = None,
        settings: ClientSettings | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self.settings = settings or get_client_settings()
        self.backend = backend
        self.form = Form()
        self.binder = FieldBinder(self.form, build_checkout_bindings(self.form, now))
        self.lead_sync = LeadSyncScheduler(
            self.form,
            backend,
            storage if storage is not None else MemorySessionStorage(),
            delay=self.settings.lead_debounce_seconds,
            storage_key=self.settings.lead_storage_key,
        )
        self.modal = Modal(navigate or self._go)
        self.submission = SubmissionController(
            self.form,
            self.binder,
            backend,
            self.modal,
            thank_you_path=self.settings.thank_you_path,
        )
        self.maps_loader = maps_loader
        self.country_options: list[tuple[str, str]] = []
        self.address_assist: AddressAssistContext | None = None
        self.location: str | None = None

    def _go(self, url: str) -> None:
        self.location = url

    async def load(self, query_string: str = "") -> None:
        """Prefill the product, load country options, then enable address assist."""

        product_ids = parse_qs(query_string.lstrip("?")).get("productId")
        if product_ids:
            self.form.set_value("product1_id", product_ids[0])

        try:
            countries = await self.backend.fetch_countries()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Could not load countries", extra={"error": str(exc)})
            self.country_options = [COUNTRY_PLACEHOLDER]
            return

        self.country_options = [(country.countryCode, country.countryName) for country in countries]
        if self.country_options and not self.form.value("country"):
            self.form.set_value("country", self.country_options[0][0])

        if self.maps_loader is None:
            return
        try:
            self.address_assist = await setup_address_assist(
                self.backend,
                self.maps_loader,
                self.form.value("country") or None,
                self.binder.apply_place,
                context=self.address_assist,
            )
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Address assist unavailable", extra={"error": str(exc)})

    def on_input(self, field_id: str, raw: str) -> None:
        self.binder.handle_input(field_id, raw)
        if field_id in LEAD_FIELDS:
            self.lead_sync.schedule()

    def on_blur(self, field_id: str) -> None:
        self.binder.handle_blur(field_id)
        if field_id in LEAD_FIELDS:
            self.lead_sync.schedule()

    def on_country_change(self, country_code: str) -> None:
        self.binder.handle_input("country", country_code)
        if self.address_assist is not None and self.address_assist.assist is not None:
            self.address_assist.assist.set_country(country_code or None)

    async def submit(self) -> SubmissionOutcome | None:
        return await self.submission.submit()

    def close_modal(self) -> None:
        self.modal.close()

    async def aclose(self) -> None:
        await self.lead_sync.aclose()
        if self.address_assist is not None:
            self.address_assist.close()
