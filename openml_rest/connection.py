from __future__ import annotations

import logging
import re
import time
from threading import Lock
from typing import Any, Callable, Iterable, List, Mapping, Optional, Tuple, Union
from urllib.parse import quote

from openml_rest.__about__ import __version__
from openml_rest.config import (
    DEFAULT_HOST,
    DEFAULT_PLAIN_PORT,
    DEFAULT_PREFIX,
    DEFAULT_TLS_PORT,
    TEST_HOST,
    ConnectionConfig,
)
from openml_rest.core.encoding import encode_parameters, encode_query
from openml_rest.core.errors import ProtocolError, TransportError, UsageError
from openml_rest.core.params import ParameterList
from openml_rest.core.reply import RawReply, Reply, reply_from_response
from openml_rest.core.response import ResponseReader
from openml_rest.core.transport import SocketTransport, Transport

log = logging.getLogger("openml_rest.connection")

API_KEY_PARAM = "api_key"
USER_AGENT = f"openml-rest/{__version__}"

_STRAY_PERCENT = re.compile(r"%(?![0-9A-Fa-f]{2})")

Parameters = Union[ParameterList, Mapping[str, Any], Iterable[Tuple[str, Any]], None]


def _normalize_prefix(prefix: str) -> str:
    prefix = (prefix or "").strip().rstrip("/")
    if prefix and not prefix.startswith("/"):
        prefix = "/" + prefix
    return prefix


class Connection:
    """Client for the JSON endpoint of the OpenML REST API.

    One Connection owns one transport and one read buffer. Calls from any number
    of threads are serialized by a lock held from connect to JSON decode, so
    requests never share the socket and never see each other's bytes.

    Every call returns a Reply (see openml_rest.core.reply):
    - decoded JSON on a 2xx status,
    - the status code on any other status, or on a 2xx body that is not JSON,
    - the null reply if the transport could not connect.

    Framing and I/O failures raise ProtocolError, caller mistakes raise UsageError.
    Nothing is retried.

    Security notes:
    - The API key travels as a request parameter. It is never logged.
    - The default transport verifies TLS certificates.
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: Optional[int] = None,
        prefix: str = DEFAULT_PREFIX,
        *,
        api_key: Optional[str] = None,
        tls: bool = True,
        timeout: Optional[float] = None,
        transport: Optional[Transport] = None,
        boundary_factory: Optional[Callable[[], str]] = None,
    ):
        self._host = host
        self._port = int(port) if port is not None else (DEFAULT_TLS_PORT if tls else DEFAULT_PLAIN_PORT)
        self._prefix = _normalize_prefix(prefix)
        self._key = api_key or ""
        self._transport: Transport = (
            transport if transport is not None else SocketTransport(tls=tls, timeout=timeout)
        )
        self._boundary_factory = boundary_factory
        self._buffer = bytearray()
        self._lock = Lock()

    @staticmethod
    def from_config(cfg: ConnectionConfig, *, transport: Optional[Transport] = None) -> "Connection":
        return Connection(
            cfg.host,
            cfg.port,
            cfg.prefix,
            api_key=cfg.api_key,
            tls=cfg.tls,
            timeout=cfg.timeout_seconds,
            transport=transport,
        )

    # --- endpoint and credential ---

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        return self._port

    @property
    def prefix(self) -> str:
        return self._prefix

    @property
    def key(self) -> str:
        """The API key, or "" when none is set."""

        return self._key

    def set_key(self, api_key: Optional[str]) -> None:
        self._key = api_key or ""

    def enable_test_mode(
        self, host: str = TEST_HOST, port: int = DEFAULT_TLS_PORT, prefix: str = DEFAULT_PREFIX
    ) -> None:
        """Redirect all traffic to a test server.

        Waits for any in-flight request, then drops the current transport so the
        next call connects to the new endpoint.
        """

        with self._lock:
            self._host = host
            self._port = int(port)
            self._prefix = _normalize_prefix(prefix)
            self._drop_transport()
        log.info("openml_test_mode", extra={"host": host, "port": port})

    # --- REST calls ---

    def get(self, request: str, parameters: Parameters = None) -> Reply:
        """Send a GET request with URL-encoded parameters.

        Args:
          request: REST path below the prefix, e.g. "/data/list"
          parameters: ordered (name, value) pairs sent in the query string
        """

        return self._call("GET", request, parameters).reply

    def post(self, request: str, parameters: Parameters = None) -> Reply:
        """Send a POST request with parameters as form data.

        A parameter named "name|mime-type" or "name|mime-type|filename" is a file
        upload whose value is the file content. Any upload switches the body to
        multipart/form-data; otherwise it is form-urlencoded.
        """

        return self._call("POST", request, parameters).reply

    def delete(self, request: str, parameters: Parameters = None) -> Reply:
        """Send a DELETE request with URL-encoded parameters."""

        return self._call("DELETE", request, parameters).reply

    def get_with_response(self, request: str, parameters: Parameters = None) -> RawReply:
        """GET that also hands back the full HttpResponse (headers included).

        Intended for collaborators such as a file cache that need response
        metadata in addition to the reply.
        """

        return self._call("GET", request, parameters)

    def close(self) -> None:
        with self._lock:
            self._drop_transport()

    # --- internals ---

    def _call(self, method: str, request: str, parameters: Parameters) -> RawReply:
        params = ParameterList.coerce(parameters)
        with self._lock:
            if self._key and not params.has(API_KEY_PARAM):
                params.add(API_KEY_PARAM, self._key)
            path, wire = self._build_request(method, request, params)

            if not self._ensure_connected():
                log.warning(
                    "openml_connect_failed",
                    extra={"host": self._host, "port": self._port, "method": method, "path": path},
                )
                return RawReply(reply=Reply.null())

            start = time.monotonic()
            reader = ResponseReader(self._transport, self._buffer)
            try:
                if not self._transport.write(wire):
                    raise TransportError(f"failed to send {method} request")
                response = reader.read_response()
            except ProtocolError as e:
                log.warning(
                    "openml_protocol_error",
                    extra={"method": method, "path": path, "state": reader.state.value, "error": str(e)},
                )
                self._drop_transport()
                raise

            if reader.reached_eof or not response.keep_alive:
                self._drop_transport()

            reply = reply_from_response(response)
            log.info(
                "openml_request",
                extra={
                    "method": method,
                    "path": path,
                    "status_code": response.status,
                    "reply_error": reply.error.value if reply.error else None,
                    "duration_ms": int((time.monotonic() - start) * 1000),
                },
            )
            return RawReply(reply=reply, response=response)

    def _ensure_connected(self) -> bool:
        if self._transport.is_open:
            return True
        self._buffer.clear()
        return self._transport.connect(self._host, self._port)

    def _drop_transport(self) -> None:
        self._transport.close()
        self._buffer.clear()

    def _host_header(self) -> str:
        if self._port in (DEFAULT_TLS_PORT, DEFAULT_PLAIN_PORT):
            return self._host
        return f"{self._host}:{self._port}"

    def _build_request(self, method: str, request: str, params: ParameterList) -> Tuple[str, bytes]:
        """Return (path, request bytes). The path excludes the query string."""

        if not request.startswith("/"):
            request = "/" + request
        path = self._prefix + request
        if any(ch.isspace() or ord(ch) < 0x20 or ord(ch) == 0x7F for ch in path):
            raise UsageError(f"request path contains whitespace or control characters: {request!r}")
        if "?" in path or "#" in path:
            raise UsageError(f"request path must not contain '?' or '#': {request!r}")
        if _STRAY_PERCENT.search(path):
            raise UsageError(f"request path contains a '%' that is not a percent-escape: {request!r}")
        path = quote(path, safe="/:@!$&'()*+,;=%")

        headers: List[Tuple[str, str]] = [
            ("Host", self._host_header()),
            ("User-Agent", USER_AGENT),
            ("Accept", "application/json"),
            ("Connection", "keep-alive"),
        ]
        target = path
        body = b""
        if method == "POST":
            encoded = encode_parameters(params, True, boundary_factory=self._boundary_factory)
            body = encoded.body
            headers.append(("Content-Type", encoded.content_type))
            headers.append(("Content-Length", str(len(body))))
        else:
            query = encode_query(params)
            if query:
                target = f"{path}?{query}"

        head = f"{method} {target} HTTP/1.1\r\n"
        head += "".join(f"{name}: {value}\r\n" for name, value in headers)
        head += "\r\n"
        return path, head.encode("ascii") + body

    # --- lifecycle ---

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __copy__(self):
        raise TypeError("Connection objects cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError("Connection objects cannot be copied")

    def __repr__(self) -> str:
        return f"Connection(host={self._host!r}, port={self._port}, prefix={self._prefix!r})"
