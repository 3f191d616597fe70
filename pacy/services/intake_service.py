"""
Intake service: brief extraction, company onboarding and the interview chat.

These calls run single agents outside any project, so no WorkflowStep rows
are written.
"""

import logging
import uuid
from urllib.parse import urlparse

from pacy.ai import get_agent_registry, get_conversation_store, get_gateway
from pacy.ai import parsers
from pacy.core.exceptions import ValidationError
from pacy.workflow import prompts

logger = logging.getLogger(__name__)

INTERVIEW_AGENT = "brief-interviewer"


def _invoke(agent_name: str, prompt: str, *, batch: bool = True) -> str:
    return get_agent_registry().invoke(get_gateway(), agent_name, prompt, batch=batch)


# ── Brief parsing ────────────────────────────────────────────────────────


def parse_brief(text: str) -> dict:
    """Extract brief fields from free text.  Raises ``ParseError`` on malformed output."""
    if not text or not text.strip():
        raise ValidationError("text is required", {"text": "missing"})
    raw = _invoke("brief-analyst", prompts.render(prompts.PARSE_BRIEF, text=text))
    return parsers.parse_brief(raw).data


# ── Company onboarding ───────────────────────────────────────────────────


def normalise_url(url: str) -> str:
    url = (url or "").strip()
    if not url:
        raise ValidationError("url is required", {"url": "missing"})
    if not urlparse(url).scheme:
        url = f"https://{url}"
    elif url.startswith("http://"):
        url = "https://" + url[len("http://"):]
    if not urlparse(url).netloc:
        raise ValidationError("url is not valid", {"url": url})
    return url


def analyze_company(url: str) -> dict:
    """
    Build a company profile for ``url``.

    Returns the parsed profile.  An ``{"error": ...}`` answer from the agent
    is returned as-is for the caller to map to a 400; unparseable output
    raises ``ParseError``.
    """
    url = normalise_url(url)
    logger.info("Analysing company at %s", url)
    raw = _invoke("company-researcher", prompts.render(prompts.ANALYZE_COMPANY, url=url))
    profile = parsers.parse_company_profile(raw).data
    profile.setdefault("url", url)
    return profile


# ── Interview chat ───────────────────────────────────────────────────────


def interview_key(session_id: str) -> str:
    return f"interview:{session_id}"


def _company_block(company_context) -> str:
    if not company_context:
        return ""
    if isinstance(company_context, dict):
        name = company_context.get("company_name") or company_context.get("name") or ""
        summary = company_context.get("description") or ""
        return f"\nThe client works at {name}. {summary}".rstrip()
    return f"\nCompany context: {company_context}"


def interview_turn(session_id: str | None, message: str | None, company_context, emit) -> dict:
    """
    Run one interview exchange, pushing SSE events through ``emit``.

    Events: ``session`` (id of the conversation), ``text`` chunks and,
    when the interviewer closes with a brief block, ``complete``.
    """
    session_id = session_id or uuid.uuid4().hex
    key = interview_key(session_id)
    store = get_conversation_store()
    gateway = get_gateway()
    agent = get_agent_registry().get(INTERVIEW_AGENT)
    emit({"type": "session", "session_id": session_id})

    with store.lock(key):
        history = store.history(key)
        if message and message.strip():
            user_text = message
        elif not history:
            user_text = prompts.render(
                prompts.INTERVIEW_START, company_block=_company_block(company_context),
            )
        else:
            raise ValidationError("message is required")

        messages = history + [{"role": "user", "content": user_text}]
        result = gateway.stream(
            INTERVIEW_AGENT, agent.prompt, messages,
            lambda chunk: emit({"type": "text", "content": chunk}),
        )
        store.append(key, "user", user_text)
        store.append(key, "assistant", result["content"])

    brief = parsers.detect_interview_complete(result["content"])
    if brief is not None:
        logger.info("Interview %s produced a complete brief", session_id)
        emit({"type": "complete", "session_id": session_id, "brief": brief})
    return {"session_id": session_id, "brief": brief}


def get_interview(session_id: str) -> dict | None:
    store = get_conversation_store()
    key = interview_key(session_id)
    if not store.exists(key):
        return None
    return {"session_id": session_id, "messages": store.turns(key)}


def delete_interview(session_id: str) -> int:
    return get_conversation_store().delete(interview_key(session_id))
