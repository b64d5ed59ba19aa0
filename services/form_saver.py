"""
Explicit save and periodic auto-save of the builder's document.

Both paths go through one ``asyncio.Lock`` so at most one save request is in
flight per store; the last response applied always belongs to the last request
sent. The first save creates the form, later saves update it in place so the
share link stays the same.
"""

import asyncio
import logging
from typing import Optional

import httpx

from services.builder_store import BuilderStore
from services.gateway_client import FormsGatewayClient, GatewayError
from utils.config import AUTOSAVE_INTERVAL_SECONDS

logger = logging.getLogger("formbuilder.autosave")


class FormSaver:
    def __init__(
        self,
        store: BuilderStore,
        gateway: FormsGatewayClient,
        interval: float = AUTOSAVE_INTERVAL_SECONDS,
    ):
        self.store = store
        self.gateway = gateway
        self.interval = interval
        self.last_saved_revision: Optional[int] = None
        self.last_error: Optional[str] = None
        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None

    @property
    def is_dirty(self) -> bool:
        return self.last_saved_revision != self.store.state.revision

    async def save(self) -> bool:
        """Persist the current document. Returns True on success; failures are logged and leave the store as is."""
        async with self._lock:
            state = self.store.state
            document = state.document
            try:
                if document.id:
                    result = await self.gateway.update_form(document.id, document)
                else:
                    result = await self.gateway.create_form(document)
            except (httpx.HTTPError, GatewayError) as e:
                self.last_error = str(e)
                logger.warning("save failed: %s", e)
                return False

            self.last_error = None
            # Edits made while the request was in flight stay dirty
            edited = self.store.state.revision != state.revision
            if result["id"] != document.id or result["shareId"] != document.share_id:
                self.store.set_identifiers(result["id"], result["shareId"])
            self.last_saved_revision = state.revision if edited else self.store.state.revision
            logger.info("form saved id=%s share_id=%s", result["id"], result["shareId"])
            return True

    async def autosave_once(self) -> bool:
        """Save only when the document has fields and changed since the last successful save."""
        if not self.store.document.has_fields() or not self.is_dirty:
            return False
        return await self.save()

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self.autosave_once()

    def start_autosave(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
