from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from .errors import ErrorKind
from .response import HttpResponse


@dataclass(frozen=True, slots=True)
class Reply:
    """Result of a REST call.

    `value` is the three-way contract callers rely on:
    - the decoded JSON body on success,
    - the HTTP status code (int) when the status is not 2xx or the body is not JSON,
    - None when no connection could be established.

    `error` says which of those cases applies, so callers can branch on it
    instead of inspecting the value's type.
    """

    payload: Any = None
    status: Optional[int] = None
    error: Optional[ErrorKind] = None

    @staticmethod
    def success(payload: Any, status: int) -> "Reply":
        return Reply(payload=payload, status=status)

    @staticmethod
    def from_status(status: int, error: ErrorKind = ErrorKind.HTTP_STATUS) -> "Reply":
        return Reply(status=status, error=error)

    @staticmethod
    def null() -> "Reply":
        return Reply(error=ErrorKind.CONNECT)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def is_null(self) -> bool:
        return self.error is ErrorKind.CONNECT

    @property
    def value(self) -> Any:
        if self.error is None:
            return self.payload
        if self.error is ErrorKind.CONNECT:
            return None
        return self.status


@dataclass(frozen=True, slots=True)
class RawReply:
    """Reply plus the response it was built from.

    `response` is None when the reply is the connection-absent null reply.
    """

    reply: Reply
    response: Optional[HttpResponse] = None


def reply_from_response(response: HttpResponse) -> Reply:
    """Map an HTTP response onto a Reply.

    A 2xx body that is not valid UTF-8 JSON yields the status code, never an exception.
    """

    if not response.ok:
        return Reply.from_status(response.status)
    try:
        payload = response.json()
    except (ValueError, RecursionError):
        return Reply.from_status(response.status, ErrorKind.INVALID_JSON)
    return Reply.success(payload, response.status)
