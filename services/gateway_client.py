"""
HTTP clients used by the builder to talk to the API.

``FormsGatewayClient`` covers form persistence and public submissions,
``AuthGatewayClient`` the session probe the builder uses to decide whether to
redirect to login. Both share one ``httpx.AsyncClient`` so the session cookie
issued at login is sent on later calls.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from models.form import FormDocument
from utils.config import BACKEND_URL

logger = logging.getLogger("formbuilder.gateway")

FORM_UNAVAILABLE_MESSAGE = "This form link is invalid or has been removed."


class GatewayError(Exception):
    """The API answered, but not with what the caller asked for."""

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class FormNotFoundError(GatewayError):
    def __init__(self, message: str = FORM_UNAVAILABLE_MESSAGE):
        super().__init__(message, status_code=404)


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _raise_for_status(response: httpx.Response) -> None:
    if response.status_code >= 400:
        payload = _json_or_none(response)
        detail = payload.get("detail") if isinstance(payload, dict) else None
        message = detail if isinstance(detail, str) else f"request failed with status {response.status_code}"
        raise GatewayError(message, status_code=response.status_code, payload=payload)


def build_http_client(base_url: str = BACKEND_URL, **kwargs: Any) -> httpx.AsyncClient:
    kwargs.setdefault("timeout", 15.0)
    return httpx.AsyncClient(base_url=base_url, **kwargs)


class FormsGatewayClient:
    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def create_form(self, document: FormDocument) -> Dict[str, str]:
        """POST a new form; returns {"id", "shareId"}"""
        response = await self.client.post(
            "/api/form/create",
            json={"title": document.title, "steps": document.steps_payload()},
        )
        _raise_for_status(response)
        data = response.json()
        return {"id": data["id"], "shareId": data["shareId"]}

    async def update_form(self, form_id: str, document: FormDocument) -> Dict[str, str]:
        response = await self.client.put(
            f"/api/form/{form_id}",
            json={"title": document.title, "steps": document.steps_payload()},
        )
        if response.status_code == 404:
            raise FormNotFoundError()
        _raise_for_status(response)
        data = response.json()
        return {"id": data["id"], "shareId": data["shareId"]}

    async def _fetch(self, path: str) -> FormDocument:
        response = await self.client.get(path)
        if response.status_code == 404:
            raise FormNotFoundError()
        _raise_for_status(response)
        data = _json_or_none(response)
        if not isinstance(data, dict):
            raise FormNotFoundError()
        try:
            return FormDocument.model_validate(data)
        except ValueError as e:
            # Never hand a partial document to a page
            logger.warning("unreadable form document from %s: %s", path, e)
            raise FormNotFoundError() from e

    async def fetch_by_id(self, form_id: str) -> FormDocument:
        return await self._fetch(f"/api/form/{form_id}")

    async def fetch_by_share_id(self, share_id: str) -> FormDocument:
        return await self._fetch(f"/api/form/share/{share_id}")

    async def submit_response(self, share_id: str, step_key: str, values: Dict[str, Any]) -> Dict[str, Any]:
        """POST a completed submission; returns {"success", "id"}"""
        response = await self.client.post(
            "/api/formres/add",
            json={"shareId": share_id, "steps": {step_key: values}},
        )
        if response.status_code == 404:
            raise FormNotFoundError()
        _raise_for_status(response)
        return response.json()


class AuthGatewayClient:
    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def is_authenticated(self) -> bool:
        """True when the session cookie is present and valid. Network errors count as signed out."""
        try:
            response = await self.client.get("/api/auth/isAuthenticated")
        except httpx.HTTPError as e:
            logger.warning("auth probe failed: %s", e)
            return False
        data = _json_or_none(response)
        return bool(response.status_code == 200 and isinstance(data, dict) and data.get("success"))
