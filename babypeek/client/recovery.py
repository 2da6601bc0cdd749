"""
Session recovery: what to do when a client lands somewhere with a stale session.

States: no_session -> checking -> (show_prompt | resumed | no_session),
show_prompt -> (resumed | no_session | dismissed).

- completed on the server: navigate straight to the result, no prompt,
  clear the record once navigation succeeded
- pending / processing / failed: offer resume, start fresh or dismiss
- session expired: clear the record silently
- status check failed: no actionable session, keep the record for later

One `resolved` flag per mount guards navigation and clearing, checks of the
same mount never overlap, and a response is applied only while it is still
relevant (same mount, same current job, not resolved). A new mount always
checks, even while a check of the previous mount is still in flight.
"""
import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable

from babypeek.client.errors import SessionExpired, StatusUnavailable
from babypeek.client.session_store import SessionRecord, SessionStore
from babypeek.client.status_client import StatusClient

logger = logging.getLogger(__name__)

Navigate = Callable[[str], Awaitable[None]]

PROCESSING_ROUTE = "/processing/{job_id}"
RESULT_ROUTE = "/result/{result_id}"
# views that already track a job themselves
JOB_ROUTE_PREFIXES = ("/processing/", "/result/")


class RecoveryState(str, Enum):
    NO_SESSION = "no_session"
    CHECKING = "checking"
    SHOW_PROMPT = "show_prompt"
    DISMISSED = "dismissed"
    RESUMED = "resumed"


class RecoveryController:
    def __init__(self, store: SessionStore, status_client: StatusClient, navigate: Navigate) -> None:
        self.store = store
        self.status_client = status_client
        self.navigate = navigate
        self.state = RecoveryState.NO_SESSION
        self.prompt_record: SessionRecord | None = None
        self.current_path = "/"
        self._mount_id = 0
        self._resolved = False
        self._dismissed = False
        self._in_flight_mount: int | None = None
        self._tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def mount(self, current_path: str) -> RecoveryState:
        """New mount: fresh flags, one authoritative check."""
        self._mount_id += 1
        self._resolved = False
        self._dismissed = False
        self.prompt_record = None
        self.state = RecoveryState.NO_SESSION
        self.current_path = current_path
        await self._check(silent=False)
        return self.state

    def on_visible(self) -> asyncio.Task:
        """Fire-and-forget revalidation when the app comes back to the foreground."""
        task = asyncio.get_running_loop().create_task(self._check(silent=True))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def on_route_change(self, current_path: str) -> asyncio.Task:
        self.current_path = current_path
        return self.on_visible()

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    async def resume(self) -> bool:
        """Go to the processing view of the prompted job. The record stays."""
        record = self.prompt_record
        if record is None or self._resolved:
            return False
        self._resolved = True
        self.state = RecoveryState.RESUMED
        self.prompt_record = None
        await self.navigate(PROCESSING_ROUTE.format(job_id=record.job_id))
        return True

    def start_fresh(self) -> bool:
        """Discard the stale job: clear the record, hide the prompt."""
        record = self.prompt_record
        if record is None or self._resolved:
            return False
        self._resolved = True
        self.store.clear(record.job_id)
        self.prompt_record = None
        self.state = RecoveryState.NO_SESSION
        logger.info("session_recovery_start_fresh", extra={"job_id": record.job_id})
        return True

    def dismiss(self) -> None:
        """Hide the prompt for this mount; the record is kept for a future mount."""
        self._dismissed = True
        if self.state == RecoveryState.SHOW_PROMPT:
            self.state = RecoveryState.DISMISSED

    # ------------------------------------------------------------------
    # Check
    # ------------------------------------------------------------------

    async def _check(self, silent: bool) -> None:
        if self._in_flight_mount == self._mount_id or self._resolved:
            return
        record = self.store.current()
        if record is None:
            if not silent:
                self.state = RecoveryState.NO_SESSION
            return
        if self.current_path.startswith(JOB_ROUTE_PREFIXES):
            if not silent:
                self.state = RecoveryState.NO_SESSION
            return

        mount_id = self._mount_id
        job_id = record.job_id
        self._in_flight_mount = mount_id
        if not silent:
            self.state = RecoveryState.CHECKING
        try:
            status = await self.status_client.get_status(job_id, record.session_credential)
        except SessionExpired:
            if self._still_relevant(mount_id, job_id):
                self.store.clear(job_id)
                self.prompt_record = None
                self.state = RecoveryState.NO_SESSION
                logger.info("session_recovery_expired", extra={"job_id": job_id})
            else:
                self._settle_stale(mount_id)
            return
        except StatusUnavailable:
            # record kept: the next mount or foreground event checks again
            self._settle_stale(mount_id)
            return
        finally:
            if self._in_flight_mount == mount_id:
                self._in_flight_mount = None

        if not self._still_relevant(mount_id, job_id):
            logger.info("session_recovery_stale_response", extra={"job_id": job_id})
            self._settle_stale(mount_id)
            return

        record = self.store.update_status(job_id, status.status, status.result_id) or record
        if status.status == "completed":
            await self._open_result(record, status.result_id)
        elif self._dismissed:
            self.state = RecoveryState.DISMISSED
        else:
            self.prompt_record = record
            self.state = RecoveryState.SHOW_PROMPT

    async def _open_result(self, record: SessionRecord, result_id: str | None) -> None:
        self._resolved = True
        self.prompt_record = None
        self.state = RecoveryState.RESUMED
        path = RESULT_ROUTE.format(result_id=result_id or record.job_id)
        try:
            await self.navigate(path)
        except Exception:
            # record kept so a later mount can redirect again
            logger.exception("session_recovery_navigation_failed", extra={"job_id": record.job_id})
            self._resolved = False
            self.state = RecoveryState.NO_SESSION
            return
        self.store.clear(record.job_id)
        logger.info("session_recovery_redirect", extra={"job_id": record.job_id, "result_id": result_id})

    def _settle_stale(self, mount_id: int) -> None:
        if mount_id == self._mount_id and self.state == RecoveryState.CHECKING:
            self.state = RecoveryState.NO_SESSION

    def _still_relevant(self, mount_id: int, job_id: str) -> bool:
        if self._resolved or mount_id != self._mount_id:
            return False
        current = self.store.current()
        return current is not None and current.job_id == job_id
