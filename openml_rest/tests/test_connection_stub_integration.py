from __future__ import annotations

import threading

import pytest

from openml_rest.connection import Connection
from openml_rest.core.errors import ErrorKind
from openml_rest.core.params import ParameterList
from openml_rest.testing.stub_server import AUTH_FAILED_STATUS, StubServer


@pytest.fixture(scope="module")
def stub():
    with StubServer(api_key="secret") as server:
        yield server


@pytest.fixture
def conn(stub):
    with Connection(stub.host, stub.port, stub.prefix, api_key="secret", tls=False, timeout=10) as c:
        yield c


def test_get_over_real_socket_keeps_order_and_reserved_characters(conn):
    pairs = [("b", "2"), ("q", "a&b=c d"), ("u", "Zürich"), ("b", "1")]

    reply = conn.get("/echo", pairs)

    assert reply.ok is True
    assert reply.value["method"] == "GET"
    assert reply.value["query"] == [list(p) for p in pairs] + [["api_key", "secret"]]


def test_delete_over_real_socket(conn):
    reply = conn.delete("/echo", [("id", "7")])

    assert reply.value["method"] == "DELETE"
    assert reply.value["query"][0] == ["id", "7"]


def test_post_form_and_multipart_are_parsed_by_server(conn):
    form = conn.post("/echo", [("task_id", "1"), ("name", "x y")])
    assert form.value["fields"] == [["task_id", "1"], ["name", "x y"], ["api_key", "secret"]]
    assert form.value["content_type"] == "application/x-www-form-urlencoded"

    params = ParameterList([("flow_id", "5")])
    params.add_file("description", "text/xml", "<run/>", filename="run.xml")
    params.add_file("predictions", "text/plain", b"row1\nrow2\n")
    upload = conn.post("/echo", params)

    assert upload.ok is True
    assert upload.value["order"] == ["flow_id", "description", "predictions", "api_key"]
    files = {f["name"]: f for f in upload.value["files"]}
    assert files["description"]["filename"] == "run.xml"
    assert files["description"]["content_type"] == "text/xml"
    assert files["description"]["content"] == "<run/>"
    assert files["predictions"]["filename"] == "predictions"
    assert files["predictions"]["content"] == "row1\nrow2\n"


def test_error_status_and_non_json_and_chunked(conn):
    missing = conn.get("/status/404")
    assert missing.value == 404
    assert missing.error is ErrorKind.HTTP_STATUS

    text = conn.get("/text")
    assert text.value == 200
    assert text.error is ErrorKind.INVALID_JSON

    streamed = conn.get("/stream", [("n", "4")])
    assert streamed.value == {"items": [{"id": i} for i in range(4)]}


def test_wrong_key_is_reported_as_status(stub):
    with Connection(stub.host, stub.port, stub.prefix, api_key="nope", tls=False, timeout=10) as c:
        assert c.get("/echo").value == AUTH_FAILED_STATUS


def test_concurrent_callers_share_one_connection(conn):
    results = {}

    def worker(i: int) -> None:
        results[i] = conn.get("/echo", [("i", str(i))]).value["query"][0]

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(10)]
    for th in threads:
        th.start()
    for th in threads:
        th.join()

    assert results == {i: ["i", str(i)] for i in range(10)}


def test_unreachable_host_returns_null_reply():
    # Start and stop a server to get a port nobody listens on.
    with StubServer() as other:
        port = other.port
    with Connection("127.0.0.1", port, "/api/v1/json", tls=False, timeout=2) as c:
        reply = c.get("/echo")

    assert reply.is_null is True
    assert reply.value is None
