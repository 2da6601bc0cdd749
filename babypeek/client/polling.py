"""
Processing-view poller: GET status until the job is terminal.

Transient failures back off (capped); an expired session clears the record and
stops. Responses arriving after cancel() are dropped.
"""
import asyncio
import logging
from typing import Awaitable, Callable

from babypeek.client.errors import SessionExpired, StatusUnavailable
from babypeek.client.session_store import SessionStore
from babypeek.client.status_client import StatusClient
from babypeek.schemas.jobs import StatusOut

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = ("completed", "failed")

Sleep = Callable[[float], Awaitable[None]]
OnUpdate = Callable[[StatusOut], None]


class StatusPoller:
    def __init__(
        self,
        client: StatusClient,
        store: SessionStore,
        job_id: str,
        session_credential: str,
        interval: float = 2.0,
        max_interval: float = 30.0,
        backoff_factor: float = 2.0,
        sleep: Sleep = asyncio.sleep,
        on_update: OnUpdate | None = None,
    ) -> None:
        self.client = client
        self.store = store
        self.job_id = job_id
        self.session_credential = session_credential
        self.interval = interval
        self.max_interval = max_interval
        self.backoff_factor = backoff_factor
        self.sleep = sleep
        self.on_update = on_update
        self.last_status: StatusOut | None = None
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    async def run(self) -> StatusOut | None:
        """
        Returns the terminal status, or None when cancelled or the session expired.
        """
        delay = self.interval
        while not self._cancelled:
            try:
                status = await self.client.get_status(self.job_id, self.session_credential)
            except SessionExpired:
                if self._cancelled:
                    return None
                self.store.clear(self.job_id)
                logger.info("status_poll_session_expired", extra={"job_id": self.job_id})
                return None
            except StatusUnavailable as e:
                if self._cancelled:
                    return None
                delay = min(delay * self.backoff_factor, self.max_interval)
                logger.info(
                    "status_poll_unavailable",
                    extra={"job_id": self.job_id, "error": str(e), "delay_seconds": delay},
                )
                await self.sleep(delay)
                continue

            if self._cancelled:
                return None
            delay = self.interval
            self.last_status = status
            self.store.update_status(self.job_id, status.status, status.result_id)
            if self.on_update is not None:
                self.on_update(status)
            if status.status in TERMINAL_STATUSES:
                return status
            await self.sleep(delay)
        return None
