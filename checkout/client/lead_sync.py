"""Debounced partial-lead capture.

A partial lead is created as soon as the visitor has typed enough to be
identified, then updated on later edits using the id the backend returned.
"""

import asyncio
import logging
from typing import Any, Protocol

from checkout.client.fields import Form
from checkout.client.validators import validate_email
from checkout.models import SUCCESS

logger = logging.getLogger(__name__)

LEAD_FIELDS = ("firstName", "lastName", "emailAddress", "product1_id")


class SessionStorage(Protocol):
    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...


class MemorySessionStorage:
    """Session storage living as long as the controller process."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value


def minimum_lead_fields(form: Form) -> dict[str, str]:
    return {
        "firstName": form.value("firstName").strip(),
        "lastName": form.value("lastName").strip(),
        "emailAddress": form.value("emailAddress").strip(),
        "product1_id": form.value("product1_id"),
    }


def lead_fields_complete(fields: dict[str, str]) -> bool:
    return bool(
        fields["firstName"]
        and fields["lastName"]
        and fields["product1_id"]
        and validate_email(fields["emailAddress"]).valid
    )


class LeadSyncScheduler:
    """Keeps at most one pending sync; each schedule() restarts the quiet period."""

    def __init__(
        self,
        form: Form,
        backend: Any,
        storage: SessionStorage,
        delay: float = 0.5,
        storage_key: str = "partialLeadId",
    ) -> None:
        self.form = form
        self.backend = backend
        self.storage = storage
        self.delay = delay
        self.storage_key = storage_key
        self._timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def schedule(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.delay, self._fire)

    def _fire(self) -> None:
        self._timer = None
        task = asyncio.get_running_loop().create_task(self.sync_now())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def sync_now(self) -> None:
        fields = minimum_lead_fields(self.form)
        if not lead_fields_complete(fields):
            return
        payload: dict[str, Any] = dict(fields)
        lead_id = self.storage.get_item(self.storage_key)
        if lead_id:
            payload["leadId"] = lead_id
        try:
            data = await self.backend.sync_lead(payload)
        except Exception as exc:
            logger.debug("Partial lead sync failed", extra={"error": str(exc)})
            return
        if not isinstance(data, dict) or data.get("result") != SUCCESS:
            logger.debug("Partial lead sync rejected")
            return
        message = data.get("message")
        new_id = message.get("orderId") if isinstance(message, dict) else None
        if new_id:
            self.storage.set_item(self.storage_key, str(new_id))

    async def aclose(self) -> None:
        """Cancel the pending timer and wait for syncs already in flight."""

        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
