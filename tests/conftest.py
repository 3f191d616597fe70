"""
Shared pytest fixtures for the Pacy test suite.

Provides:
    - app: Flask application (session-scoped, in-memory SQLite, local stub models)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - fake_gateway: scripted model gateway installed on the app
    - sse_events: parser for text/event-stream bodies
"""

import json

import pytest

from pacy import create_app
from pacy.ai import stub_responses
from pacy.models import db as _db


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Model gateway double ─────────────────────────────────────────────────


class ScriptedGateway:
    """
    Stands in for ModelGateway.

    ``script[agent]`` may be a string (always returned), a list (consumed in
    order, then the stub responses take over), or a callable receiving the
    last user message.  An Exception instance in a list, or raised by a
    callable, is raised from the call.  Every call is recorded.
    """

    available_providers = ["local"]
    use_local_stub = True
    base_delay = 0.0

    def __init__(self):
        self.script = {}
        self.calls = []
        self.sleeps = []

    def sleep(self, seconds):
        self.sleeps.append(seconds)

    def _reply(self, agent_name, user_msg):
        entry = self.script.get(agent_name)
        if isinstance(entry, list) and entry:
            reply = entry.pop(0)
        elif callable(entry):
            reply = entry(user_msg)
        elif isinstance(entry, str):
            reply = entry
        else:
            reply = stub_responses.respond(agent_name, user_msg)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def complete(self, agent_name, system_prompt, messages, *, batch=False,
                 temperature=None, max_tokens=None):
        user_msg = next((m["content"] for m in reversed(messages) if m["role"] == "user"), "")
        self.calls.append({
            "agent": agent_name,
            "system": system_prompt,
            "prompt": user_msg,
            "messages": list(messages),
            "batch": batch,
        })
        content = self._reply(agent_name, user_msg)
        return {
            "content": content,
            "model": "scripted",
            "provider": "local",
            "usage": {"input_tokens": 0, "output_tokens": 0, "total_tokens": 0, "cost_usd": 0.0},
            "latency_ms": 0,
        }

    def stream(self, agent_name, system_prompt, messages, on_chunk, **kwargs):
        result = self.complete(agent_name, system_prompt, messages, **kwargs)
        on_chunk(result["content"])
        return result

    def calls_for(self, agent_name):
        return [c for c in self.calls if c["agent"] == agent_name]


@pytest.fixture()
def fake_gateway(app):
    """Install a ScriptedGateway as the app's model gateway for one test."""
    gateway = ScriptedGateway()
    app._pacy_gateway = gateway
    yield gateway
    del app._pacy_gateway


# ── SSE ──────────────────────────────────────────────────────────────────


def _parse_sse(response):
    events = []
    for frame in response.get_data(as_text=True).split("\n\n"):
        frame = frame.strip()
        if frame.startswith("data: "):
            events.append(json.loads(frame[len("data: "):]))
    return events


@pytest.fixture()
def sse_events():
    """Return a function that decodes a streamed response into event dicts."""
    return _parse_sse
