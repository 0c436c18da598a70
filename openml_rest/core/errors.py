from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Failure classes a caller may need to tell apart.

    CONNECT and HTTP_STATUS and INVALID_JSON are reported through a Reply.
    PROTOCOL and USAGE are raised as exceptions carrying the same kind.
    """

    CONNECT = "connect"
    HTTP_STATUS = "http_status"
    PROTOCOL = "protocol"
    INVALID_JSON = "invalid_json"
    USAGE = "usage"


class OpenMLClientError(Exception):
    """
    Base exception for all client failures.
    """

    kind: ErrorKind = ErrorKind.PROTOCOL


class ProtocolError(OpenMLClientError):
    """
    Raised when the in-flight request cannot be completed on the wire.

    The connection drops its transport before this propagates, so the next
    call starts from a fresh socket.
    """

    kind = ErrorKind.PROTOCOL


class MalformedResponseError(ProtocolError):
    """
    Raised for a bad status line, header line, length, or chunk size.
    """


class IncompleteResponseError(ProtocolError):
    """
    Raised when the stream ends before the response is complete.
    """


class TransportError(ProtocolError):
    """
    Raised when the transport fails to write or read.
    """


class UsageError(OpenMLClientError, ValueError):
    """
    Raised for caller mistakes detected before anything is sent.
    """

    kind = ErrorKind.USAGE


class ParameterNameError(UsageError):
    """
    Raised for a file-upload parameter name that cannot be parsed.
    """


class BoundaryCollisionError(UsageError):
    """
    Raised when no multipart boundary could be found that is absent from the content.
    """
