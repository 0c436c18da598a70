from __future__ import annotations

import logging
import socket
import ssl
from typing import Optional, Protocol, runtime_checkable

from .errors import TransportError

log = logging.getLogger("openml_rest.transport")

READ_CHUNK_BYTES = 64 * 1024


@runtime_checkable
class Transport(Protocol):
    """Byte-stream channel used by a Connection.

    Contract
    - connect() returns False instead of raising when the peer is unreachable.
    - write() returns False when the bytes could not be sent.
    - read() blocks until data arrives and returns b"" at end-of-stream.
    """

    @property
    def is_open(self) -> bool: ...

    def connect(self, host: str, port: int) -> bool: ...

    def write(self, data: bytes) -> bool: ...

    def read(self) -> bytes: ...

    def close(self) -> None: ...


class SocketTransport:
    """Transport over a TCP socket, optionally wrapped in TLS.

    Security notes:
    - Uses ssl.create_default_context() unless a context is supplied
      (certificate and hostname verification ON).
    - timeout=None keeps the socket blocking: a silent peer blocks the caller.
    """

    def __init__(
        self,
        *,
        tls: bool = True,
        timeout: Optional[float] = None,
        ssl_context: Optional[ssl.SSLContext] = None,
    ):
        self.tls = bool(tls)
        self.timeout = timeout
        self._ssl_context = ssl_context
        self._sock: Optional[socket.socket] = None

    @property
    def is_open(self) -> bool:
        return self._sock is not None

    def connect(self, host: str, port: int) -> bool:
        self.close()
        try:
            sock = socket.create_connection((host, int(port)), timeout=self.timeout)
        except OSError as e:
            log.warning("transport_connect_failed", extra={"host": host, "port": port, "error": str(e)})
            return False
        if self.tls:
            ctx = self._ssl_context or ssl.create_default_context()
            try:
                sock = ctx.wrap_socket(sock, server_hostname=host)
            except (OSError, ssl.SSLError) as e:
                sock.close()
                log.warning("transport_tls_failed", extra={"host": host, "port": port, "error": str(e)})
                return False
        self._sock = sock
        log.debug("transport_connected", extra={"host": host, "port": port, "tls": self.tls})
        return True

    def write(self, data: bytes) -> bool:
        if self._sock is None:
            return False
        try:
            self._sock.sendall(data)
        except OSError as e:
            log.warning("transport_write_failed", extra={"error": str(e)})
            return False
        return True

    def read(self) -> bytes:
        if self._sock is None:
            return b""
        try:
            return self._sock.recv(READ_CHUNK_BYTES)
        except socket.timeout as e:
            raise TransportError(f"read timed out after {self.timeout}s") from e
        except OSError as e:
            raise TransportError(f"read failed: {e}") from e

    def close(self) -> None:
        sock, self._sock = self._sock, None
        if sock is None:
            return
        try:
            sock.close()
        except OSError:
            log.debug("transport_close_failed", exc_info=True)
