from __future__ import annotations

import json
import threading

from openml_rest.connection import Connection
from openml_rest.testing.transport import ScriptedTransport, http_response


def _echo_call_id(request: bytes) -> bytes:
    """Answer with the call id found in the form body of the request."""

    body = request.partition(b"\r\n\r\n")[2].decode("ascii")
    call_id = dict(pair.split("=", 1) for pair in body.split("&"))["call"]
    return http_response(200, json.dumps({"call": call_id}).encode("ascii"))


def test_concurrent_posts_never_interleave_on_the_wire():
    n_threads = 8
    per_thread = 5
    total = n_threads * per_thread

    # Small reads and a slow write widen the window for interleaving.
    t = ScriptedTransport([_echo_call_id] * total, read_size=7, write_delay=0.002)
    conn = Connection("api.example.org", 443, "/api/v1/json", transport=t)

    results = {}
    errors = []
    barrier = threading.Barrier(n_threads)

    def worker(idx: int) -> None:
        try:
            barrier.wait()
            for j in range(per_thread):
                call_id = f"t{idx}-{j}"
                reply = conn.post("/run", [("call", call_id), ("pad", "x" * 64)])
                results[call_id] = reply.value
        except Exception as e:  # surfaced through the assertion below
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(i,), name=f"worker-{i}") for i in range(n_threads)]
    for th in threads:
        th.start()
    for th in threads:
        th.join()

    assert errors == []
    # Each caller got the reply to its own request.
    assert results == {cid: {"call": cid} for cid in results}
    assert len(results) == total

    # Per logical call: one write, then only reads by that same thread, before the next write.
    io_events = [e for e in t.events if e.kind in ("write", "read")]
    current = None
    writes = 0
    for event in io_events:
        if event.kind == "write":
            writes += 1
            current = event.thread
        else:
            assert event.thread == current
    assert writes == total
    assert len(t.connects) == 1
