"""HTTP delivery of log records to the ingestion endpoint."""

import logging
from typing import Optional

import httpx

from mobile_logger.models import LogRecord

logger = logging.getLogger(__name__)


class DeliveryError(Exception):
    """Raised when the ingestion endpoint did not accept a payload."""


class HttpTransport:
    """POSTs records to ``<endpoint>/logs`` as JSON.

    Transport errors, timeouts, non-2xx statuses and non-JSON responses are
    all reported as ``DeliveryError``.
    """

    def __init__(
        self,
        logs_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._logs_url = logs_url
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _get_client(self) -> httpx.AsyncClient:
        if self._closed:
            raise DeliveryError("transport is closed")
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                headers={"Content-Type": "application/json"},
            )
        return self._client

    async def _post(self, payload) -> dict:
        client = self._get_client()
        try:
            response = await client.post(self._logs_url, json=payload, timeout=self._timeout)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise DeliveryError(f"timed out after {self._timeout}s") from exc
        except httpx.HTTPStatusError as exc:
            raise DeliveryError(f"HTTP error! status: {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise DeliveryError(f"transport error: {exc}") from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise DeliveryError("malformed response body") from exc
        if not isinstance(body, dict):
            raise DeliveryError("malformed response body")
        if body.get("success") is False:
            raise DeliveryError(f"endpoint rejected payload: {body.get('errors') or body}")
        return body

    async def send_batch(self, records: list[LogRecord]) -> dict:
        return await self._post([record.to_dict() for record in records])

    async def send_one(self, record: LogRecord) -> dict:
        return await self._post(record.to_dict())

    async def aclose(self) -> None:
        """Close the client if this transport created it; later sends raise ``DeliveryError``."""
        self._closed = True
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
