"""
Interview Blueprint: conversational intake that ends in a structured brief.

Endpoints:
    POST   /api/v1/interview/chat             — Streamed turn (session | text | complete | done | error)
    GET    /api/v1/interview/session/<sid>    — Conversation so far
    DELETE /api/v1/interview/session/<sid>    — Forget the conversation
"""

import logging

from flask import Blueprint, jsonify, request

from pacy import limiter
from pacy.ai import get_conversation_store
from pacy.core.exceptions import NotFoundError, ValidationError
from pacy.services import intake_service
from pacy.utils.helpers import request_json, str_field
from pacy.utils.sse import sse_response
from pacy.workflow.runner import stream_work

logger = logging.getLogger(__name__)

interview_bp = Blueprint("interview", __name__, url_prefix="/api/v1/interview")


@interview_bp.route("/chat", methods=["POST"])
@limiter.shared_limit("30/minute", scope="ai_generate")
def chat():
    """
    One interview exchange.

    Without ``session_id`` a new conversation starts; an empty ``message``
    is only allowed then, and asks the interviewer to open the conversation.
    """
    data = request_json(request)
    session_id = str_field(data, "session_id") or None
    message = str_field(data, "message")
    company_context = data.get("company_context")

    has_history = bool(session_id) and get_conversation_store().exists(
        intake_service.interview_key(session_id)
    )
    if not message.strip() and has_history:
        raise ValidationError("message is required", {"message": "missing"})

    def work(emit):
        return intake_service.interview_turn(session_id, message, company_context, emit)

    return sse_response(stream_work(work, name="interview", finish="done"))


@interview_bp.route("/session/<string:session_id>", methods=["GET"])
def get_session(session_id):
    conversation = intake_service.get_interview(session_id)
    if conversation is None:
        raise NotFoundError("Interview session", session_id)
    return jsonify(conversation), 200


@interview_bp.route("/session/<string:session_id>", methods=["DELETE"])
def delete_session(session_id):
    deleted = intake_service.delete_interview(session_id)
    return jsonify({"deleted": deleted}), 200
