from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_HOST = "www.openml.org"
TEST_HOST = "test.openml.org"
DEFAULT_PREFIX = "/api/v1/json"
DEFAULT_TLS_PORT = 443
DEFAULT_PLAIN_PORT = 80

_TRUTHY = {"1", "true", "TRUE", "yes", "YES"}


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except Exception:
        return default


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except Exception:
        return default


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    return raw in _TRUTHY


@dataclass(frozen=True, slots=True)
class ConnectionConfig:
    """Endpoint and credential settings for a Connection.

    Security notes:
    - api_key is a secret. It is sent as a request parameter and never logged.
    - timeout_seconds=None means reads block until the server answers or closes.
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_TLS_PORT
    prefix: str = DEFAULT_PREFIX
    api_key: Optional[str] = None
    tls: bool = True
    timeout_seconds: Optional[float] = None

    @staticmethod
    def from_env() -> "ConnectionConfig":
        """Create a config from environment variables.

        - OPENML_HOST (default www.openml.org)
        - OPENML_PORT (default 443 with TLS, 80 without)
        - OPENML_PREFIX (default /api/v1/json)
        - OPENML_API_KEY (default unset)
        - OPENML_TLS (default 1)
        - OPENML_TIMEOUT_SEC (default unset)
        - OPENML_TEST_MODE (1 points the default host at test.openml.org)

        """

        tls = _env_flag("OPENML_TLS", True)
        test_mode = _env_flag("OPENML_TEST_MODE", False)
        host = os.environ.get("OPENML_HOST", "").strip() or (TEST_HOST if test_mode else DEFAULT_HOST)
        port = _env_int("OPENML_PORT", DEFAULT_TLS_PORT if tls else DEFAULT_PLAIN_PORT)
        prefix = os.environ.get("OPENML_PREFIX", DEFAULT_PREFIX).strip()
        api_key = os.environ.get("OPENML_API_KEY", "").strip() or None
        timeout = _env_float("OPENML_TIMEOUT_SEC", None)
        if timeout is not None and timeout <= 0:
            timeout = None
        return ConnectionConfig(
            host=host,
            port=int(port),
            prefix=prefix,
            api_key=api_key,
            tls=tls,
            timeout_seconds=timeout,
        )
