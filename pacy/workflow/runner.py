"""
Background execution for streamed phases.

A phase runs in a daemon thread inside its own app context (and therefore
its own DB session).  Progress lines and text chunks are pushed onto a
queue which the SSE response drains.  If the client disconnects the thread
keeps running and its results are still persisted.
"""

import logging
import queue
import threading

from flask import current_app

from pacy.models import db

logger = logging.getLogger(__name__)

_FINISHED = object()


def progress_event(message: str) -> dict:
    return {"type": "progress", "message": message}


def error_event(exc: Exception) -> dict:
    return {"type": "error", "message": str(exc), "error_kind": type(exc).__name__}


def stream_work(work, *, name: str = "phase", finish: str = "complete"):
    """
    Run ``work(emit)`` in the background and yield the events it produces.

    Args:
        work: Callable receiving ``emit(event_dict)``; its return value
              becomes the ``complete`` event's ``result``.
        name: Used for the thread name and log lines.
        finish: ``"complete"`` to end with ``{type: complete, result}``,
                ``"done"`` to end with ``{type: done}``.

    Yields:
        Event dicts, ending with exactly one terminal event.
    """
    app = current_app._get_current_object()
    events: queue.Queue = queue.Queue()

    def target():
        try:
            with app.app_context():
                try:
                    result = work(events.put)
                except Exception as exc:
                    logger.exception("Streamed %s failed", name)
                    events.put(error_event(exc))
                else:
                    if finish == "done":
                        events.put({"type": "done"})
                    else:
                        events.put({"type": "complete", "result": result})
        finally:
            # Signalled after the app context (and its DB session) is torn down
            events.put(_FINISHED)

    thread = threading.Thread(target=target, name=f"pacy-{name}", daemon=True)
    thread.start()
    logger.info("Streaming %s on thread %s", name, thread.name)

    while True:
        event = events.get()
        if event is _FINISHED:
            # Rows this request loaded may have been changed by the worker
            db.session.expire_all()
            return
        yield event


def stream_phase(phase, *args, name: str = "phase", **kwargs):
    """Run ``phase(*args, on_progress=..., **kwargs)`` and stream its progress lines."""
    def work(emit):
        return phase(*args, on_progress=lambda message: emit(progress_event(message)), **kwargs)
    return stream_work(work, name=name)
