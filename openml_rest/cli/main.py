from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import List, Optional, Tuple

from openml_rest.__about__ import __version__
from openml_rest.config import DEFAULT_PLAIN_PORT, DEFAULT_PREFIX, TEST_HOST, ConnectionConfig
from openml_rest.connection import Connection
from openml_rest.core.errors import OpenMLClientError
from openml_rest.core.params import ParameterList, UploadField
from openml_rest.core.reply import Reply


def _print_json(obj: object) -> None:
    """Print JSON to stdout."""
    print(json.dumps(obj, indent=2, sort_keys=True, default=str))


def parse_param(raw: str) -> Tuple[str, str]:
    """Split a `name=value` command-line parameter on the first '='."""

    name, sep, value = raw.partition("=")
    if not sep or not name:
        raise argparse.ArgumentTypeError(f"expected name=value, got {raw!r}")
    return name, value


def parse_file_param(raw: str) -> Tuple[str, str]:
    """Split `name|mime[|filename]=@path` into (upload name, local path)."""

    name, sep, value = raw.partition("=")
    if not sep or not value.startswith("@") or len(value) < 2:
        raise argparse.ArgumentTypeError(f"expected 'name|mime[|filename]=@path', got {raw!r}")
    try:
        UploadField.parse(name)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e
    return name, value[1:]


def _read_file_bounded(path: str, max_bytes: int) -> bytes:
    """Read file bytes up to a maximum."""

    st = os.stat(path)
    if st.st_size > max_bytes:
        raise ValueError(f"file too large for client upload cap: {st.st_size} > {max_bytes}")
    with open(path, "rb") as f:
        data = f.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise ValueError("file too large for client upload cap")
    return data


def _config_from_args(args: argparse.Namespace) -> ConnectionConfig:
    """Environment first, then explicit flags."""

    cfg = ConnectionConfig.from_env()
    tls = cfg.tls and not args.no_tls
    host = args.host or (TEST_HOST if args.test_server else cfg.host)
    port = args.port
    if port is None:
        explicit = bool(os.environ.get("OPENML_PORT", "").strip())
        port = cfg.port if explicit or tls == cfg.tls else DEFAULT_PLAIN_PORT
    return ConnectionConfig(
        host=host,
        port=int(port),
        prefix=args.prefix if args.prefix is not None else cfg.prefix,
        api_key=args.api_key or cfg.api_key,
        tls=tls,
        timeout_seconds=args.timeout if args.timeout is not None else cfg.timeout_seconds,
    )


def _build_parameters(args: argparse.Namespace) -> ParameterList:
    params = ParameterList(args.param or [])
    for name, path in getattr(args, "file", None) or []:
        params.add(name, _read_file_bounded(path, args.max_upload_bytes))
    return params


def _emit(reply: Reply) -> int:
    _print_json(reply.value)
    if reply.ok:
        return 0
    detail = f"status {reply.status}" if reply.status is not None else "no connection"
    print(f"error: {reply.error.value} ({detail})", file=sys.stderr)
    return 2


def _run(args: argparse.Namespace, method: str) -> int:
    cfg = _config_from_args(args)
    try:
        params = _build_parameters(args)
        with Connection.from_config(cfg) as conn:
            if method == "GET" and getattr(args, "include_headers", False):
                raw = conn.get_with_response(args.path, params)
                if raw.response is not None:
                    _print_json(
                        {
                            "status": raw.response.status,
                            "reason": raw.response.reason,
                            "headers": raw.response.headers.items(),
                        }
                    )
                return _emit(raw.reply)
            if method == "GET":
                return _emit(conn.get(args.path, params))
            if method == "POST":
                return _emit(conn.post(args.path, params))
            return _emit(conn.delete(args.path, params))
    except (OpenMLClientError, OSError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2


def cmd_get(args: argparse.Namespace) -> int:
    """Send GET and print the reply."""
    return _run(args, "GET")


def cmd_post(args: argparse.Namespace) -> int:
    """Send POST (form or multipart) and print the reply."""
    return _run(args, "POST")


def cmd_delete(args: argparse.Namespace) -> int:
    """Send DELETE and print the reply."""
    return _run(args, "DELETE")


def cmd_serve_stub(args: argparse.Namespace) -> int:
    """Run the local stub API.

    Security notes:
    - Bind to 127.0.0.1 by default (safer than 0.0.0.0).

    """

    try:
        import uvicorn
    except Exception as e:
        print(f"error: uvicorn is required to serve the stub API: {e}", file=sys.stderr)
        return 2

    from openml_rest.testing.stub_server import create_app

    host = args.bind_host or args.host or "127.0.0.1"
    port = args.bind_port if args.bind_port is not None else args.port
    prefix = args.stub_prefix if args.stub_prefix is not None else args.prefix
    app = create_app(prefix=DEFAULT_PREFIX if prefix is None else prefix, api_key=args.require_key)
    uvicorn.run(app, host=host, port=8080 if port is None else int(port), log_level=args.stub_log_level)
    return 0


def _add_request_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("path", help="REST path below the prefix, e.g. /data/list")
    p.add_argument(
        "-p",
        "--param",
        action="append",
        type=parse_param,
        default=None,
        help="Parameter name=value (repeatable, order preserved)",
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="openml-rest", description="OpenML JSON REST client")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--host", default=None, help="API host (default: OPENML_HOST or www.openml.org)")
    p.add_argument("--port", type=int, default=None, help="API port (default: 443, 80 with --no-tls)")
    p.add_argument("--prefix", default=None, help="URL prefix (default: /api/v1/json)")
    p.add_argument("--api-key", default=None, help="API key (default: OPENML_API_KEY)")
    p.add_argument("--no-tls", action="store_true", help="Use plain HTTP")
    p.add_argument("--test-server", action="store_true", help="Talk to test.openml.org")
    p.add_argument("--timeout", type=float, default=None, help="Socket timeout in seconds")
    p.add_argument(
        "--log-level",
        default=os.environ.get("OPENML_LOG_LEVEL", "WARNING"),
        help="Python logging level",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    g = sub.add_parser("get", help="Send a GET request")
    _add_request_args(g)
    g.add_argument("--include-headers", action="store_true", help="Also print status and headers")
    g.set_defaults(func=cmd_get)

    d = sub.add_parser("delete", help="Send a DELETE request")
    _add_request_args(d)
    d.set_defaults(func=cmd_delete)

    po = sub.add_parser("post", help="Send a POST request (form data or file upload)")
    _add_request_args(po)
    po.add_argument(
        "-f",
        "--file",
        action="append",
        type=parse_file_param,
        default=None,
        help="File upload 'name|mime[|filename]=@path' (repeatable)",
    )
    po.add_argument(
        "--max-upload-bytes", type=int, default=25 * 1024 * 1024, help="Client-side upload cap"
    )
    po.set_defaults(func=cmd_post)

    sv = sub.add_parser("serve-stub", help="Run the local OpenML stub API")
    sv.add_argument("--host", dest="bind_host", default=None, help="Bind host (default: --host or 127.0.0.1)")
    sv.add_argument("--port", dest="bind_port", type=int, default=None, help="Bind port (default: --port or 8080)")
    sv.add_argument("--prefix", dest="stub_prefix", default=None, help="URL prefix served by the stub")
    sv.add_argument("--require-key", default=None, help="Reject /echo calls without this api_key")
    sv.add_argument("--log-level", dest="stub_log_level", default="info", help="Uvicorn log level")
    sv.set_defaults(func=cmd_serve_stub)

    return p


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=str(getattr(args, "log_level", "WARNING")).upper())
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
