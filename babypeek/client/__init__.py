from babypeek.client.errors import ClientError, SessionExpired, StatusUnavailable
from babypeek.client.polling import StatusPoller
from babypeek.client.recovery import RecoveryController, RecoveryState
from babypeek.client.session_store import (
    KeyValueStore,
    MemoryKeyValueStore,
    RedisKeyValueStore,
    SessionRecord,
    SessionStore,
)
from babypeek.client.status_client import StatusClient

__all__ = [
    "ClientError",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "RecoveryController",
    "RecoveryState",
    "RedisKeyValueStore",
    "SessionExpired",
    "SessionRecord",
    "SessionStore",
    "StatusClient",
    "StatusPoller",
    "StatusUnavailable",
]
