# File: apiwizard/client.py
"""
NexaFlow APIWizard - Service Client
====================================
Thin async adapter over ``httpx.AsyncClient`` for the four admin-service
operations the workflow needs:

    GET    schema        /{service}/_schema
    POST   preview       /system/service/{service}/preview
    POST   generate      /system/service/{service}/generate
    DELETE relationship  /{service}/_schema/{table}/_related/{relationship}

URL templates, auth headers and timeouts come from ``WizardSettings``.
Transport failures and error statuses are mapped onto ``apiwizard.errors``;
the client itself never retries.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from apiwizard.errors import RequestTimeoutError, ServerError, TransportError
from apiwizard.settings import WizardSettings

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiwizard.client")


def _error_message(response: httpx.Response) -> str:
    """Pull a readable message out of an error body."""
    try:
        body: Any = response.json()
    except ValueError:
        text: str = response.text.strip()
        return text[:200] or response.reason_phrase
    if isinstance(body, dict):
        error: Any = body.get("error", body)
        if isinstance(error, dict):
            return str(error.get("message") or error)
        return str(error)
    return str(body)


class ServiceClient:
    """
    Async client for one admin service host.

    Usage:
        async with ServiceClient(settings) as client:
            payload = await client.get_schema("mysql_db")

    Pass ``client`` to reuse an existing ``httpx.AsyncClient`` (it is then
    not closed by ``aclose``), or ``transport`` to route requests through
    e.g. ``httpx.ASGITransport`` in tests.
    """

    def __init__(
        self,
        settings: WizardSettings,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings: WizardSettings = settings
        self._owns_client: bool = client is None
        self._client: httpx.AsyncClient = client or httpx.AsyncClient(
            base_url=settings.base_url,
            headers=settings.headers(),
            timeout=httpx.Timeout(settings.request_timeout),
            transport=transport,
        )

    async def __aenter__(self) -> "ServiceClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # -- Transport ----------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        extra: Dict[str, Any] = {}
        if timeout is not None:
            extra["timeout"] = httpx.Timeout(timeout)
        try:
            response: httpx.Response = await self._client.request(
                method, path, json=json, **extra
            )
        except httpx.TimeoutException as exc:
            raise RequestTimeoutError(f"{method} {path} timed out: {exc}") from exc
        except httpx.TransportError as exc:
            raise TransportError(f"{method} {path} failed: {exc}") from exc

        if response.status_code >= 400:
            message: str = _error_message(response)
            logger.info("%s %s → %d: %s", method, path, response.status_code, message)
            raise ServerError(response.status_code, message, payload=response.text)

        logger.debug("%s %s → %d", method, path, response.status_code)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ServerError(
                response.status_code, f"Invalid JSON from {method} {path}"
            ) from exc

    # -- Operations ---------------------------------------------------------

    async def get_schema(self, service_id: str) -> Any:
        """Raw schema payload; see ``apiwizard.schema.parse_schema_response``."""
        path: str = self.settings.schema_path.format(service=service_id)
        return await self._request("GET", path)

    async def post_preview(self, service_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Preview document, unwrapped from a ``data`` envelope if present."""
        path: str = self.settings.preview_path.format(service=service_id)
        body: Any = await self._request("POST", path, json=payload)
        if isinstance(body, dict) and isinstance(body.get("data"), dict):
            body = body["data"]
        if not isinstance(body, dict):
            raise ServerError(200, "Preview response is not a JSON object")
        return body

    async def post_generate(self, service_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        path: str = self.settings.generate_path.format(service=service_id)
        body: Any = await self._request(
            "POST", path, json=payload, timeout=self.settings.generation_timeout
        )
        if isinstance(body, dict) and isinstance(body.get("data"), dict):
            body = body["data"]
        if not isinstance(body, dict):
            raise ServerError(200, "Generation response is not a JSON object")
        return body

    async def delete_relationship(
        self, service_id: str, table_name: str, relationship: str
    ) -> None:
        path: str = self.settings.relationship_path.format(
            service=service_id, table=table_name, relationship=relationship
        )
        await self._request("DELETE", path)

    def __repr__(self) -> str:
        return f"<ServiceClient {self.settings.base_url}>"
