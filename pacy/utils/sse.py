"""Server-Sent Events framing helpers."""

import json

from flask import Response, stream_with_context

TERMINAL_TYPES = ("complete", "done", "error")


def format_event(payload: dict) -> str:
    """One ``data: <json>`` frame."""
    return f"data: {json.dumps(payload, ensure_ascii=False, default=str)}\n\n"


def sse_response(events) -> Response:
    """
    Wrap an iterable of event dicts in a ``text/event-stream`` response.

    The iterable is consumed lazily inside the request context.
    """
    def generate():
        for event in events:
            yield format_event(event)

    return Response(
        stream_with_context(generate()),
        mimetype="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
