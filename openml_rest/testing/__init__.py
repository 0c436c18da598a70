"""Test helpers: an in-memory scripted transport and a local stub API.

The stub server lives in `openml_rest.testing.stub_server` and is imported
explicitly so the client itself never loads FastAPI.
"""

from .transport import ScriptedTransport, TransportEvent, http_response  # noqa: F401
