from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .errors import IncompleteResponseError, MalformedResponseError
from .transport import Transport

MAX_LINE_BYTES = 64 * 1024

_STATUS_LINE = re.compile(rb"^HTTP/(\d)\.(\d) (\d{3})(?: (.*))?$")
_CHUNK_SIZE = re.compile(rb"^[0-9A-Fa-f]+$")


class HttpHeaders:
    """Case-insensitive, multi-valued header mapping.

    Every received header line is retained in arrival order.
    `get` returns the last value for a name, `get_all` returns all of them.
    """

    __slots__ = ("_items",)

    def __init__(self, items: Optional[List[Tuple[str, str]]] = None):
        self._items: List[Tuple[str, str]] = list(items or [])

    def add(self, name: str, value: str) -> None:
        self._items.append((name, value))

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        wanted = name.lower()
        for n, v in reversed(self._items):
            if n.lower() == wanted:
                return v
        return default

    def get_all(self, name: str) -> List[str]:
        wanted = name.lower()
        return [v for n, v in self._items if n.lower() == wanted]

    def items(self) -> List[Tuple[str, str]]:
        return list(self._items)

    def to_dict(self) -> Dict[str, str]:
        """Flatten to a plain dict (last value wins, names as received)."""

        out: Dict[str, str] = {}
        seen: Dict[str, str] = {}
        for n, v in self._items:
            key = seen.setdefault(n.lower(), n)
            out[key] = v
        return out

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get(name) is not None

    def __getitem__(self, name: str) -> str:
        value = self.get(name)
        if value is None:
            raise KeyError(name)
        return value

    def __iter__(self) -> Iterator[str]:
        return iter(n for n, _ in self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"HttpHeaders({self._items!r})"


@dataclass(frozen=True, slots=True)
class HttpResponse:
    """HTTP response as read off the wire.

    Security notes:
    - Treat `body` as untrusted.
    """

    status: int
    headers: HttpHeaders = field(default_factory=HttpHeaders)
    body: bytes = b""
    reason: str = ""
    version: str = "HTTP/1.1"

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def keep_alive(self) -> bool:
        tokens = [
            t.strip().lower()
            for value in self.headers.get_all("Connection")
            for t in value.split(",")
        ]
        if "close" in tokens:
            return False
        if self.version == "HTTP/1.0":
            return "keep-alive" in tokens
        return True

    def json(self) -> Any:
        """Decode body as JSON."""

        return json.loads(self.body.decode("utf-8", errors="strict"))


class ReaderState(str, Enum):
    AWAITING_STATUS_LINE = "awaiting_status_line"
    AWAITING_HEADERS = "awaiting_headers"
    AWAITING_BODY = "awaiting_body"
    COMPLETE = "complete"


class ResponseReader:
    """Assemble one HTTP/1.1 response from a transport and a shared read buffer.

    The buffer belongs to the caller (the connection). Bytes are consumed from its
    front as the response is parsed and replenished from `transport.read()` when
    more are needed. Anything received past the end of the response is left in the
    buffer for the next read.

    Body framing, in order:
    1. No body for 1xx, 204 and 304.
    2. Content-Length, if present.
    3. Chunked transfer encoding.
    4. Everything until the transport reports end-of-stream.
    """

    def __init__(self, transport: Transport, buffer: bytearray):
        self._transport = transport
        self._buffer = buffer
        self.state = ReaderState.AWAITING_STATUS_LINE
        self.reached_eof = False

    def read_response(self) -> HttpResponse:
        while True:
            response = self._read_one()
            if not 100 <= response.status < 200 or response.status == 101:
                return response

    def _read_one(self) -> HttpResponse:
        self.state = ReaderState.AWAITING_STATUS_LINE
        version, status, reason = self._read_status_line()

        self.state = ReaderState.AWAITING_HEADERS
        headers = self._read_headers()

        self.state = ReaderState.AWAITING_BODY
        body = self._read_body(status, headers)

        self.state = ReaderState.COMPLETE
        return HttpResponse(status=status, headers=headers, body=body, reason=reason, version=version)

    # --- framing ---

    def _read_status_line(self) -> Tuple[str, int, str]:
        line = b""
        while not line:
            line = self._read_line()
        m = _STATUS_LINE.match(line)
        if m is None:
            raise MalformedResponseError(f"malformed status line: {line[:80]!r}")
        major, minor, code, reason = m.groups()
        version = f"HTTP/{major.decode()}.{minor.decode()}"
        return version, int(code), (reason or b"").decode("latin-1").strip()

    def _read_headers(self) -> HttpHeaders:
        headers = HttpHeaders()
        while True:
            line = self._read_line()
            if not line:
                return headers
            name, sep, value = line.partition(b":")
            if not sep or not name.strip():
                raise MalformedResponseError(f"malformed header line: {line[:80]!r}")
            headers.add(name.strip().decode("latin-1"), value.strip().decode("latin-1"))

    def _read_body(self, status: int, headers: HttpHeaders) -> bytes:
        if 100 <= status < 200 or status in (204, 304):
            return b""

        length = headers.get("Content-Length")
        if length is not None:
            try:
                size = int(length.strip())
            except ValueError:
                raise MalformedResponseError(f"invalid Content-Length: {length!r}") from None
            if size < 0:
                raise MalformedResponseError(f"invalid Content-Length: {length!r}")
            return self._read_exact(size)

        encodings = [
            t.strip().lower()
            for value in headers.get_all("Transfer-Encoding")
            for t in value.split(",")
            if t.strip()
        ]
        if encodings and encodings[-1] == "chunked":
            return self._read_chunked()

        return self._read_to_eof()

    def _read_chunked(self) -> bytes:
        out = bytearray()
        while True:
            size_line = self._read_line().split(b";", 1)[0].strip()
            if not _CHUNK_SIZE.match(size_line):
                raise MalformedResponseError(f"invalid chunk size: {size_line[:40]!r}")
            size = int(size_line, 16)
            if size == 0:
                # Trailer fields are read and dropped.
                while self._read_line():
                    pass
                return bytes(out)
            out += self._read_exact(size)
            if self._read_exact(2) != b"\r\n":
                raise MalformedResponseError("chunk data not followed by CRLF")

    # --- buffer primitives ---

    def _fill(self) -> bool:
        """Append one transport read to the buffer. Returns False at end-of-stream."""

        data = self._transport.read()
        if not data:
            self.reached_eof = True
            return False
        self._buffer += data
        return True

    def _read_line(self) -> bytes:
        start = 0
        while True:
            idx = self._buffer.find(b"\n", start)
            if idx >= 0:
                line = bytes(self._buffer[:idx])
                del self._buffer[: idx + 1]
                if len(line) > MAX_LINE_BYTES:
                    raise MalformedResponseError("response line too long")
                return line[:-1] if line.endswith(b"\r") else line
            if len(self._buffer) > MAX_LINE_BYTES:
                raise MalformedResponseError("response line too long")
            start = len(self._buffer)
            if not self._fill():
                raise IncompleteResponseError(f"stream ended while {self.state.value}")

    def _read_exact(self, size: int) -> bytes:
        while len(self._buffer) < size:
            if not self._fill():
                raise IncompleteResponseError(
                    f"stream ended while {self.state.value} "
                    f"({len(self._buffer)} of {size} bytes received)"
                )
        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        return data

    def _read_to_eof(self) -> bytes:
        while self._fill():
            pass
        data = bytes(self._buffer)
        del self._buffer[:]
        return data


def read_response(transport: Transport, buffer: bytearray) -> HttpResponse:
    """Read one complete response; see ResponseReader."""

    return ResponseReader(transport, buffer).read_response()
