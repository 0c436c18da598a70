"""Synchronized client for the OpenML JSON REST API.

One Connection serializes every caller onto a single persistent HTTP/1.1
connection and answers each call with a Reply.

Security notes:
- Treat server responses as untrusted input.
- The API key is a secret; it is sent as a request parameter and never logged.
"""

from .__about__ import __version__  # noqa: F401
from .config import ConnectionConfig  # noqa: F401
from .connection import Connection  # noqa: F401
from .core.errors import (  # noqa: F401
    BoundaryCollisionError,
    ErrorKind,
    IncompleteResponseError,
    MalformedResponseError,
    OpenMLClientError,
    ParameterNameError,
    ProtocolError,
    TransportError,
    UsageError,
)
from .core.params import ParameterList, UploadField  # noqa: F401
from .core.reply import RawReply, Reply  # noqa: F401
from .core.response import HttpHeaders, HttpResponse, read_response  # noqa: F401
from .core.transport import SocketTransport, Transport  # noqa: F401
