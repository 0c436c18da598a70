from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple
from urllib.parse import quote

from .errors import BoundaryCollisionError
from .params import ParameterList, ParamValue, UploadField, is_upload_name

FORM_URLENCODED = "application/x-www-form-urlencoded"
MULTIPART_FORM_DATA = "multipart/form-data"

MAX_BOUNDARY_ATTEMPTS = 8

CRLF = b"\r\n"


@dataclass(frozen=True, slots=True)
class EncodedBody:
    """Wire form of a parameter list."""

    content_type: str
    body: bytes


def _default_boundary() -> str:
    return "----openml-" + uuid.uuid4().hex


def _percent(text: str) -> str:
    # Only RFC 3986 unreserved characters stay literal.
    return quote(text, safe="", encoding="utf-8")


def encode_query(parameters: ParameterList) -> str:
    """URL-encode parameters as `name=value&...` in input order."""

    pairs: List[str] = []
    for name, value in parameters:
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        pairs.append(f"{_percent(name)}={_percent(value)}")
    return "&".join(pairs)


def _quote_header_value(text: str) -> str:
    return text.replace('"', "%22").replace("\r", "%0D").replace("\n", "%0A")


def _as_bytes(value: ParamValue) -> bytes:
    return value if isinstance(value, bytes) else value.encode("utf-8")


def _part_headers(name: str) -> bytes:
    if is_upload_name(name):
        upload = UploadField.parse(name)
        lines = [
            f'Content-Disposition: form-data; name="{upload.field}"; filename="{upload.filename}"',
            f"Content-Type: {upload.mime_type}",
        ]
    else:
        lines = [f'Content-Disposition: form-data; name="{_quote_header_value(name)}"']
    return "\r\n".join(lines).encode("utf-8")


def encode_multipart(
    parameters: ParameterList, *, boundary_factory: Optional[Callable[[], str]] = None
) -> Tuple[bytes, str]:
    """Encode multipart/form-data, one part per parameter.

    The boundary is checked against every part's content and regenerated on a hit.

    Raises
    - BoundaryCollisionError: if MAX_BOUNDARY_ATTEMPTS boundaries all collide.
    - ParameterNameError: for a malformed upload name.
    """

    factory = boundary_factory or _default_boundary
    parts: List[Tuple[bytes, bytes]] = [
        (_part_headers(name), _as_bytes(value)) for name, value in parameters
    ]

    for _ in range(MAX_BOUNDARY_ATTEMPTS):
        boundary = factory()
        marker = boundary.encode("ascii")
        if any(marker in headers or marker in content for headers, content in parts):
            continue
        break
    else:
        raise BoundaryCollisionError(
            f"multipart boundary collided with part content {MAX_BOUNDARY_ATTEMPTS} times"
        )

    delimiter = b"--" + marker
    chunks: List[bytes] = []
    for headers, content in parts:
        chunks.append(delimiter + CRLF)
        chunks.append(headers + CRLF + CRLF)
        chunks.append(content)
        chunks.append(CRLF)
    chunks.append(delimiter + b"--" + CRLF)
    return b"".join(chunks), boundary


def encode_parameters(
    parameters: ParameterList,
    for_upload: bool,
    *,
    boundary_factory: Optional[Callable[[], str]] = None,
) -> EncodedBody:
    """Encode parameters for a query string (`for_upload=False`) or a POST body.

    A POST body switches to multipart/form-data as soon as one parameter name
    marks a file upload; otherwise it is form-urlencoded.
    """

    if for_upload and parameters.has_uploads():
        body, boundary = encode_multipart(parameters, boundary_factory=boundary_factory)
        return EncodedBody(content_type=f"{MULTIPART_FORM_DATA}; boundary={boundary}", body=body)
    return EncodedBody(content_type=FORM_URLENCODED, body=encode_query(parameters).encode("ascii"))
