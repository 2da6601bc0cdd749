class ClientError(Exception):
    pass


class SessionExpired(ClientError):
    """Server rejected the stored credential (or the job is gone). The record is useless."""


class StatusUnavailable(ClientError):
    """Transport failure or unexpected response. The record may still be valid."""
