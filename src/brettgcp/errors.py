"""
Exceptions raised by the service wrappers.
Everything coming back from the API client as a googleapiclient HttpError is
translated into one of these based on the HTTP status, keeping the original
as __cause__.  The status/reason/message from the JSON error body are pulled
out so callers don't have to dig through the raw content.
"""
import json

from googleapiclient.errors import HttpError


class GoogleCloudError(Exception):
    """Base for all errors reported by a Google Cloud service."""

    def __init__(self, message: str = "", status_code: int|None = None,
                 reason: str|None = None, details: list|None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.reason = reason
        self.details = details if details is not None else []

    def __str__(self) -> str:
        if self.status_code:
            return f"{self.status_code} {self.message}"
        return self.message


class InvalidArgumentError(GoogleCloudError):
    pass

class UnauthenticatedError(GoogleCloudError):
    pass

class PermissionDeniedError(GoogleCloudError):
    pass

class NotFoundError(GoogleCloudError):
    pass

class AlreadyExistsError(GoogleCloudError):
    pass

class FailedPreconditionError(GoogleCloudError):
    pass

class ResourceExhaustedError(GoogleCloudError):
    pass

class CanceledError(GoogleCloudError):
    pass

class InternalError(GoogleCloudError):
    pass

class UnimplementedError(GoogleCloudError):
    pass

class UnavailableError(GoogleCloudError):
    pass

class DeadlineExceededError(GoogleCloudError):
    pass


_STATUS_ERRORS = {
    400: InvalidArgumentError,
    401: UnauthenticatedError,
    403: PermissionDeniedError,
    404: NotFoundError,
    409: AlreadyExistsError,
    412: FailedPreconditionError,
    429: ResourceExhaustedError,
    499: CanceledError,
    500: InternalError,
    501: UnimplementedError,
    503: UnavailableError,
    504: DeadlineExceededError,
}


def error_class(status_code: int|None) -> type[GoogleCloudError]:
    return _STATUS_ERRORS.get(status_code, GoogleCloudError)


def from_http_error(err: HttpError) -> GoogleCloudError:
    """
    Map an HttpError onto the matching GoogleCloudError subclass.
    The body is usually {"error": {"code", "message", "status", "errors": [{"reason"}]}}
    but older endpoints can return plain text so fall back to whatever is there.
    """
    status = getattr(err.resp, "status", None)
    status = int(status) if status is not None else None
    message = ""
    reason = None
    details = []
    content = err.content.decode("utf-8", "replace") if isinstance(err.content, bytes) else str(err.content or "")
    try:
        body = json.loads(content) if content else {}
    except ValueError:
        body = {}
    error = body.get("error", {}) if isinstance(body, dict) else {}
    if isinstance(error, dict):
        message = error.get("message", "")
        reason = error.get("status", None)
        details = error.get("errors", []) or error.get("details", [])
        if details and isinstance(details[0], dict) and details[0].get("reason"):
            reason = details[0]["reason"]
    elif isinstance(error, str):
        message = error
    if not message:
        message = content or getattr(err.resp, "reason", "") or "unknown error"
    return error_class(status)(message, status_code=status, reason=reason, details=details)


# google.rpc.Code values as carried in the Status of per-item and operation errors
_RPC_CODE_STATUS = {
    1: 499,
    3: 400,
    4: 504,
    5: 404,
    6: 409,
    7: 403,
    8: 429,
    9: 412,
    12: 501,
    13: 500,
    14: 503,
    16: 401,
}


def from_status(status: dict) -> GoogleCloudError:
    """
    Map a google.rpc.Status {"code", "message", "details"}, as found inside an
    otherwise successful response, onto a GoogleCloudError.
    """
    http_status = _RPC_CODE_STATUS.get(status.get("code"))
    return error_class(http_status)(status.get("message", "unknown error"), status_code=http_status,
                                    details=status.get("details", []))
