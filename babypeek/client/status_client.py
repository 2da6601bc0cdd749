"""
Async client for GET /api/status/{job_id}.
401/404 -> SessionExpired; anything else unexpected -> StatusUnavailable.
"""
import logging

import httpx
from pydantic import ValidationError

from babypeek.client.errors import SessionExpired, StatusUnavailable
from babypeek.schemas.jobs import StatusOut

logger = logging.getLogger(__name__)

SESSION_HEADER = "X-Session-Token"


class StatusClient:
    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def get_status(self, job_id: str, session_credential: str | None) -> StatusOut:
        if not session_credential:
            raise SessionExpired("no credential stored")
        try:
            response = await self.client.get(
                f"/api/status/{job_id}",
                headers={SESSION_HEADER: session_credential},
            )
        except httpx.HTTPError as e:
            logger.info("status_check_transport_error", extra={"job_id": job_id, "error": type(e).__name__})
            raise StatusUnavailable(str(e)) from e

        if response.status_code in (401, 404):
            raise SessionExpired(f"status {response.status_code}")
        if response.status_code != 200:
            raise StatusUnavailable(f"unexpected status {response.status_code}")
        try:
            return StatusOut.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise StatusUnavailable("malformed status response") from e
