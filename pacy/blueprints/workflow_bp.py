"""
Workflow Blueprint: streamed generation phases plus approval and progress endpoints.

Streamed (text/event-stream; events progress | complete | error):
    GET  /api/v1/workflow/projects/<pid>/research
    GET  /api/v1/workflow/projects/<pid>/debrief
    POST /api/v1/workflow/projects/<pid>/debrief/regenerate
    GET  /api/v1/workflow/projects/<pid>/design?pipeline=&feedback=
    GET  /api/v1/workflow/sessions/<sid>/article
    GET  /api/v1/workflow/sessions/<sid>/video
    GET  /api/v1/workflow/sessions/<sid>/quiz?num_questions=
    GET  /api/v1/workflow/sessions/<sid>/test-session
    GET  /api/v1/workflow/chapters/<cid>/articles/batch
    GET  /api/v1/workflow/chapters/<cid>/batch-complete
    GET  /api/v1/workflow/projects/<pid>/articles/batch-all
    GET  /api/v1/workflow/projects/<pid>/videos/batch
    GET  /api/v1/workflow/projects/<pid>/quizzes/batch?num_questions=

JSON:
    POST /api/v1/workflow/projects/<pid>/debrief/feedback
    POST /api/v1/workflow/projects/<pid>/debrief/approve
    POST /api/v1/workflow/projects/<pid>/approve-matrix
    POST /api/v1/workflow/projects/<pid>/complete
    GET  /api/v1/workflow/projects/<pid>/progress
    GET  /api/v1/workflow/agents

Every streamed route resolves its target before the stream opens, so a
missing project/session/chapter is a plain JSON 404.
"""

import logging

from flask import Blueprint, jsonify, request

from pacy import limiter
from pacy.ai import get_agent_registry
from pacy.core.exceptions import NotFoundError, ValidationError
from pacy.models import db
from pacy.models.content import Chapter, Session
from pacy.services import project_service
from pacy.utils.helpers import db_commit_or_error, int_arg, request_json, str_field
from pacy.utils.sse import sse_response
from pacy.workflow import get_pipeline
from pacy.workflow.debrief import DebriefWorkflow
from pacy.workflow.runner import stream_phase
from pacy.workflow.status import require_transition

logger = logging.getLogger(__name__)

workflow_bp = Blueprint("workflow", __name__, url_prefix="/api/v1/workflow")

ai_limit = limiter.shared_limit("30/minute", scope="ai_generate")


# ── Helpers ──────────────────────────────────────────────────────────────────


def _session_or_404(session_id: int) -> Session:
    session = db.session.get(Session, session_id)
    if not session:
        raise NotFoundError("Session", session_id)
    return session


def _chapter_or_404(chapter_id: int) -> Chapter:
    chapter = db.session.get(Chapter, chapter_id)
    if not chapter:
        raise NotFoundError("Chapter", chapter_id)
    return chapter


def _pipeline():
    return get_pipeline(request.args.get("pipeline"))


# ═════════════════════════════════════════════════════════════════════════════
# RESEARCH & DEBRIEF
# ═════════════════════════════════════════════════════════════════════════════

@workflow_bp.route("/projects/<int:project_id>/research", methods=["GET"])
@ai_limit
def research(project_id):
    project_service.get_project(project_id)
    return sse_response(stream_phase(
        DebriefWorkflow().execute_research, project_id, name=f"research-{project_id}",
    ))


@workflow_bp.route("/projects/<int:project_id>/debrief", methods=["GET"])
@ai_limit
def debrief(project_id):
    project = project_service.get_project(project_id)
    require_transition(project, "create_debrief")
    return sse_response(stream_phase(
        DebriefWorkflow().generate_debrief, project_id, name=f"debrief-{project_id}",
    ))


@workflow_bp.route("/projects/<int:project_id>/debrief/regenerate", methods=["POST"])
@ai_limit
def regenerate_debrief(project_id):
    project = project_service.get_project(project_id)
    require_transition(project, "create_debrief")
    feedback = str_field(request_json(request), "feedback")
    if not feedback.strip():
        raise ValidationError("feedback is required", {"feedback": "missing"})
    return sse_response(stream_phase(
        DebriefWorkflow().regenerate_debrief, project_id, feedback,
        name=f"debrief-regenerate-{project_id}",
    ))


@workflow_bp.route("/projects/<int:project_id>/debrief/feedback", methods=["POST"])
@ai_limit
def debrief_feedback(project_id):
    """Record feedback and return a short acknowledgment; the debrief itself is not changed."""
    project_service.get_project(project_id)
    feedback = str_field(request_json(request), "feedback")
    return jsonify(DebriefWorkflow().handle_feedback(project_id, feedback)), 200


@workflow_bp.route("/projects/<int:project_id>/debrief/approve", methods=["POST"])
def approve_debrief(project_id):
    data = request_json(request)
    return jsonify(DebriefWorkflow().approve_debrief(project_id, data.get("alternative_id"))), 200


# ═════════════════════════════════════════════════════════════════════════════
# PROGRAM DESIGN & APPROVAL
# ═════════════════════════════════════════════════════════════════════════════

@workflow_bp.route("/projects/<int:project_id>/design", methods=["GET"])
@ai_limit
def design(project_id):
    project = project_service.get_project(project_id)
    require_transition(project, "create_program_matrix")
    pipeline = _pipeline()
    feedback = request.args.get("feedback") or None
    return sse_response(stream_phase(
        pipeline.design_program, project_id, feedback, name=f"design-{project_id}",
    ))


@workflow_bp.route("/projects/<int:project_id>/approve-matrix", methods=["POST"])
def approve_matrix(project_id):
    project = project_service.get_project(project_id)
    result = project_service.approve_matrix(project)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(result), 200


@workflow_bp.route("/projects/<int:project_id>/complete", methods=["POST"])
def complete_project(project_id):
    project = project_service.get_project(project_id)
    result = project_service.complete_project(project)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(result), 200


# ═════════════════════════════════════════════════════════════════════════════
# SESSION CONTENT
# ═════════════════════════════════════════════════════════════════════════════

@workflow_bp.route("/sessions/<int:session_id>/article", methods=["GET"])
@ai_limit
def create_article(session_id):
    _session_or_404(session_id)
    return sse_response(stream_phase(
        _pipeline().create_article, session_id, name=f"article-{session_id}",
    ))


@workflow_bp.route("/sessions/<int:session_id>/video", methods=["GET"])
@ai_limit
def create_video(session_id):
    session = _session_or_404(session_id)
    if session.article is None:
        raise ValidationError("Session has no article yet", {"session_id": session_id})
    return sse_response(stream_phase(
        _pipeline().create_video, session_id, name=f"video-{session_id}",
    ))


@workflow_bp.route("/sessions/<int:session_id>/quiz", methods=["GET"])
@ai_limit
def create_quiz(session_id):
    session = _session_or_404(session_id)
    if session.article is None:
        raise ValidationError("Session has no article yet", {"session_id": session_id})
    num_questions = int_arg(request.args.get("num_questions"), "num_questions")
    return sse_response(stream_phase(
        _pipeline().create_quiz, session_id, num_questions, name=f"quiz-{session_id}",
    ))


@workflow_bp.route("/sessions/<int:session_id>/test-session", methods=["GET"])
@ai_limit
def test_session(session_id):
    """Article, video and quiz for a single session to validate quality before batching."""
    _session_or_404(session_id)
    return sse_response(stream_phase(
        _pipeline().complete_session, session_id, name=f"test-session-{session_id}",
    ))


# ═════════════════════════════════════════════════════════════════════════════
# BATCHES
# ═════════════════════════════════════════════════════════════════════════════

@workflow_bp.route("/chapters/<int:chapter_id>/articles/batch", methods=["GET"])
@ai_limit
def batch_chapter_articles(chapter_id):
    _chapter_or_404(chapter_id)
    return sse_response(stream_phase(
        _pipeline().batch_chapter_articles, chapter_id, name=f"batch-chapter-{chapter_id}",
    ))


@workflow_bp.route("/chapters/<int:chapter_id>/batch-complete", methods=["GET"])
@ai_limit
def batch_complete_chapter(chapter_id):
    _chapter_or_404(chapter_id)
    return sse_response(stream_phase(
        _pipeline().complete_chapter, chapter_id, name=f"complete-chapter-{chapter_id}",
    ))


@workflow_bp.route("/projects/<int:project_id>/articles/batch-all", methods=["GET"])
@ai_limit
def batch_all_articles(project_id):
    project_service.get_project(project_id)
    return sse_response(stream_phase(
        _pipeline().batch_articles, project_id, name=f"batch-articles-{project_id}",
    ))


@workflow_bp.route("/projects/<int:project_id>/videos/batch", methods=["GET"])
@ai_limit
def batch_videos(project_id):
    project_service.get_project(project_id)
    return sse_response(stream_phase(
        _pipeline().batch_videos, project_id, name=f"batch-videos-{project_id}",
    ))


@workflow_bp.route("/projects/<int:project_id>/quizzes/batch", methods=["GET"])
@ai_limit
def batch_quizzes(project_id):
    project_service.get_project(project_id)
    num_questions = int_arg(request.args.get("num_questions"), "num_questions")
    return sse_response(stream_phase(
        _pipeline().batch_quizzes, project_id, num_questions, name=f"batch-quizzes-{project_id}",
    ))


# ═════════════════════════════════════════════════════════════════════════════
# STATUS
# ═════════════════════════════════════════════════════════════════════════════

@workflow_bp.route("/projects/<int:project_id>/progress", methods=["GET"])
def progress(project_id):
    project = project_service.get_project(project_id)
    return jsonify(project_service.progress(project)), 200


@workflow_bp.route("/agents", methods=["GET"])
def list_agents():
    agents = get_agent_registry().list_agents()
    return jsonify({"agents": [a.to_dict() for a in agents], "count": len(agents)}), 200
