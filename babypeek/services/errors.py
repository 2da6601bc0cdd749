"""
Service-layer errors. Routes translate them to HTTPException with a
{"code", "message"} detail.
"""


class ServiceError(Exception):
    code = "ERROR"
    status_code = 400
    default_message = "Request failed."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def detail(self) -> dict:
        return {"code": self.code, "message": self.message}


class SessionExpired(ServiceError):
    """Wrong or missing credential and unknown job look the same to the caller."""

    code = "SESSION_EXPIRED"
    status_code = 401
    default_message = "Your session has expired. Please start a new upload."


class NotFound(ServiceError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Not found."


class ValidationFailed(ServiceError):
    code = "VALIDATION_FAILED"
    status_code = 422
    default_message = "Invalid request."


class Conflict(ServiceError):
    code = "CONFLICT"
    status_code = 409
    default_message = "Request conflicts with the current state."


class PurchaseRequired(ServiceError):
    code = "PURCHASE_REQUIRED"
    status_code = 403
    default_message = "Purchase required to download the HD photo."


class DownloadExpired(ServiceError):
    code = "DOWNLOAD_EXPIRED"
    status_code = 410
    default_message = "Download expired. Downloads are available for 30 days after purchase."

    def __init__(self, expired_at, message: str | None = None) -> None:
        super().__init__(message)
        self.expired_at = expired_at

    def detail(self) -> dict:
        return {**super().detail(), "expired_at": self.expired_at.isoformat()}
