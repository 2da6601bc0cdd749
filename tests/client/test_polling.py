import pytest

from babypeek.client.errors import SessionExpired, StatusUnavailable
from babypeek.client.polling import StatusPoller
from babypeek.client.session_store import MemoryKeyValueStore, SessionStore
from babypeek.schemas.jobs import StatusOut


def _status(status, progress=0, result_id=None):
    return StatusOut(status=status, stage=None, progress=progress, result_id=result_id)


class ScriptedClient:
    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)

    async def get_status(self, job_id, credential):
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def store():
    s = SessionStore(MemoryKeyValueStore())
    s.create("job-1", "tok")
    return s


def _poller(client, store, sleeps, **kwargs):
    async def sleep(delay):
        sleeps.append(delay)

    return StatusPoller(client, store, "job-1", "tok", interval=2.0, max_interval=10.0, sleep=sleep, **kwargs)


class TestStatusPoller:
    @pytest.mark.asyncio
    async def test_polls_until_terminal(self, store):
        sleeps, updates = [], []
        client = ScriptedClient(
            _status("processing", 20),
            _status("processing", 55),
            _status("completed", 100, "res-1"),
        )
        final = await _poller(client, store, sleeps, on_update=updates.append).run()
        assert final.status == "completed"
        assert [u.progress for u in updates] == [20, 55, 100]
        assert sleeps == [2.0, 2.0]
        assert store.get("job-1").last_known_result_id == "res-1"

    @pytest.mark.asyncio
    async def test_backoff_capped_and_reset(self, store):
        sleeps = []
        client = ScriptedClient(
            StatusUnavailable("x"),
            StatusUnavailable("x"),
            StatusUnavailable("x"),
            _status("processing"),
            _status("failed"),
        )
        final = await _poller(client, store, sleeps).run()
        assert final.status == "failed"
        assert sleeps == [4.0, 8.0, 10.0, 2.0]

    @pytest.mark.asyncio
    async def test_expired_session_clears_record(self, store):
        final = await _poller(ScriptedClient(SessionExpired("401")), store, []).run()
        assert final is None
        assert store.get("job-1") is None

    @pytest.mark.asyncio
    async def test_cancel_drops_late_response(self, store):
        updates = []
        poller = None

        class CancellingClient:
            async def get_status(self, job_id, credential):
                poller.cancel()
                return _status("completed", 100, "res-1")

        poller = _poller(CancellingClient(), store, [], on_update=updates.append)
        assert await poller.run() is None
        assert updates == []
        assert store.get("job-1").last_known_status == "pending"
