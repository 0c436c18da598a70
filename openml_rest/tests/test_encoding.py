from __future__ import annotations

from urllib.parse import parse_qsl

import pytest

from openml_rest.core.encoding import (
    FORM_URLENCODED,
    MAX_BOUNDARY_ATTEMPTS,
    encode_multipart,
    encode_parameters,
    encode_query,
)
from openml_rest.core.errors import BoundaryCollisionError, ErrorKind
from openml_rest.core.params import ParameterList


def _fixed(*boundaries):
    seq = list(boundaries)

    def factory():
        return seq.pop(0) if len(seq) > 1 else seq[0]

    return factory


def test_query_preserves_input_order():
    params = ParameterList([("z", "1"), ("a", "2"), ("m", "3"), ("a", "4")])

    assert encode_query(params) == "z=1&a=2&m=3&a=4"


def test_query_round_trips_reserved_and_non_ascii_characters():
    pairs = [
        ("q", "a&b=c"),
        ("name with space", "x y"),
        ("plus", "1+1"),
        ("unicode", "Müller – 東京"),
        ("slash", "/data/list"),
        ("empty", ""),
    ]
    query = encode_query(ParameterList(pairs))

    assert " " not in query
    assert parse_qsl(query, keep_blank_values=True) == pairs


def test_query_leaves_unreserved_characters_alone():
    assert encode_query(ParameterList([("a-b_c.d~e", "AZaz09-_.~")])) == "a-b_c.d~e=AZaz09-_.~"
    assert encode_query(ParameterList([("pipe|name", "v")])) == "pipe%7Cname=v"


def test_post_without_uploads_is_form_urlencoded():
    params = ParameterList([("task_id", "1"), ("flow", "a b")])

    encoded = encode_parameters(params, True)

    assert encoded.content_type == FORM_URLENCODED
    assert encoded.body == b"task_id=1&flow=a%20b"
    assert encode_parameters(params, False).body == encoded.body


def test_multipart_file_part_with_explicit_filename():
    params = ParameterList([("file|text/plain|hello.txt", "hi")])

    encoded = encode_parameters(params, True, boundary_factory=_fixed("BOUNDARY"))

    assert encoded.content_type == "multipart/form-data; boundary=BOUNDARY"
    assert encoded.body == (
        b"--BOUNDARY\r\n"
        b'Content-Disposition: form-data; name="file"; filename="hello.txt"\r\n'
        b"Content-Type: text/plain\r\n"
        b"\r\n"
        b"hi\r\n"
        b"--BOUNDARY--\r\n"
    )


def test_multipart_file_part_defaults_filename_to_field_name():
    body, _ = encode_multipart(
        ParameterList([("file|text/plain", "hi")]), boundary_factory=_fixed("B")
    )

    assert b'Content-Disposition: form-data; name="file"; filename="file"\r\n' in body
    assert b"Content-Type: text/plain\r\n" in body


def test_multipart_mixes_plain_and_file_parts_in_order():
    params = ParameterList(
        [
            ("description|text/xml|d.xml", "<run/>"),
            ("api_key", "k"),
            ("predictions|text/plain", b"\x00raw"),
        ]
    )

    body, boundary = encode_multipart(params, boundary_factory=_fixed("XYZ"))
    parts = body.split(b"--XYZ")

    assert boundary == "XYZ"
    assert parts[0] == b""
    assert parts[-1] == b"--\r\n"
    assert b'name="description"; filename="d.xml"' in parts[1]
    assert parts[2] == b'\r\nContent-Disposition: form-data; name="api_key"\r\n\r\nk\r\n'
    assert parts[3].endswith(b"\r\n\r\n\x00raw\r\n")


def test_multipart_regenerates_boundary_on_collision():
    params = ParameterList([("file|text/plain", "contains --AAA inside")])

    body, boundary = encode_multipart(params, boundary_factory=_fixed("AAA", "BBB"))

    assert boundary == "BBB"
    assert body.startswith(b"--BBB\r\n")


def test_multipart_collision_on_every_attempt_is_an_error():
    calls = []

    def factory():
        calls.append(1)
        return "SAME"

    params = ParameterList([("file|text/plain", "xxSAMExx")])

    with pytest.raises(BoundaryCollisionError) as excinfo:
        encode_multipart(params, boundary_factory=factory)

    assert len(calls) == MAX_BOUNDARY_ATTEMPTS
    assert excinfo.value.kind is ErrorKind.USAGE


def test_multipart_escapes_quotes_and_newlines_in_plain_field_names():
    body, _ = encode_multipart(
        ParameterList([('fi"le\r\nX: 1', "x"), ("file|text/plain", "y")]), boundary_factory=_fixed("B")
    )

    assert b'name="fi%22le%0D%0AX: 1"\r\n' in body


def test_default_boundary_is_random_and_announced():
    params = ParameterList([("file|text/plain", "hi")])

    first = encode_parameters(params, True)
    second = encode_parameters(params, True)

    assert first.content_type != second.content_type
    boundary = first.content_type.split("boundary=", 1)[1]
    assert first.body.startswith(f"--{boundary}\r\n".encode())
