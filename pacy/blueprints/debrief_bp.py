"""
Debrief Q&A Blueprint: chat about a project's debrief and the sources behind it.

Endpoints:
    POST   /api/v1/debrief/<pid>/chat       — Streamed answer (text | done | error)
    DELETE /api/v1/debrief/<pid>/session    — Forget the conversation
    GET    /api/v1/debrief/<pid>/sources    — Source material + research URLs
"""

import logging

from flask import Blueprint, jsonify, request

from pacy import limiter
from pacy.ai import get_conversation_store
from pacy.core.exceptions import ValidationError
from pacy.services import project_service
from pacy.utils.helpers import request_json, str_field
from pacy.utils.sse import sse_response
from pacy.workflow.debrief import DebriefWorkflow
from pacy.workflow.runner import stream_work

logger = logging.getLogger(__name__)

debrief_bp = Blueprint("debrief", __name__, url_prefix="/api/v1/debrief")


@debrief_bp.route("/<int:project_id>/chat", methods=["POST"])
@limiter.shared_limit("30/minute", scope="ai_generate")
def chat(project_id):
    project_service.get_project(project_id)
    message = str_field(request_json(request), "message")
    if not message or not message.strip():
        raise ValidationError("message is required", {"message": "missing"})

    def work(emit):
        workflow = DebriefWorkflow()
        return workflow.chat(
            project_id, message, get_conversation_store(),
            lambda chunk: emit({"type": "text", "content": chunk}),
        )

    return sse_response(stream_work(work, name=f"debrief-chat-{project_id}", finish="done"))


@debrief_bp.route("/<int:project_id>/session", methods=["DELETE"])
def delete_session(project_id):
    deleted = get_conversation_store().delete(f"debrief:{project_id}")
    return jsonify({"deleted": deleted}), 200


@debrief_bp.route("/<int:project_id>/sources", methods=["GET"])
def sources(project_id):
    return jsonify(DebriefWorkflow().sources(project_id)), 200
