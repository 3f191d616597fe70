"""
Content Blueprint: chapter/session structure and review of generated deliverables.

Endpoints:
    GET    /api/v1/content/projects/<pid>/chapters      — Chapters with sessions
    POST   /api/v1/content/projects/<pid>/chapters      — Create chapter
    POST   /api/v1/content/chapters/<cid>/sessions      — Create session
    GET    /api/v1/content/sessions/<sid>               — Session with deliverables
    GET    /api/v1/content/sessions/<sid>/article       — Session article
    GET    /api/v1/content/projects/<pid>/matrix        — Matrix + structure

    PATCH  /api/v1/content/<type>/<id>                  — Edit article|video text
    PATCH  /api/v1/content/quizzes/<id>/questions       — Replace quiz questions
    POST   /api/v1/content/feedback/<type>/<id>         — Free-text feedback
    POST   /api/v1/content/articles/<id>/approve        — Approve article
    POST   /api/v1/content/articles/<id>/revise         — Request revision
    POST   /api/v1/content/videos/<id>/approve          — Approve video script
    POST   /api/v1/content/quizzes/<id>/approve         — Approve quiz
"""

import logging

from flask import Blueprint, jsonify, request

from pacy.services import content_service
from pacy.utils.helpers import db_commit_or_error, request_json, str_field

logger = logging.getLogger(__name__)

content_bp = Blueprint("content", __name__, url_prefix="/api/v1/content")


# ── Structure ────────────────────────────────────────────────────────────────


@content_bp.route("/projects/<int:project_id>/chapters", methods=["GET"])
def list_chapters(project_id):
    chapters = content_service.list_chapters(project_id)
    return jsonify([c.to_dict(include_sessions=True) for c in chapters]), 200


@content_bp.route("/projects/<int:project_id>/chapters", methods=["POST"])
def create_chapter(project_id):
    chapter = content_service.create_chapter(project_id, request_json(request))
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(chapter.to_dict()), 201


@content_bp.route("/chapters/<int:chapter_id>/sessions", methods=["POST"])
def create_session(chapter_id):
    session = content_service.create_session(chapter_id, request_json(request))
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(session.to_dict()), 201


@content_bp.route("/sessions/<int:session_id>", methods=["GET"])
def get_session(session_id):
    session = content_service.get_session(session_id)
    return jsonify(content_service.session_detail(session)), 200


@content_bp.route("/sessions/<int:session_id>/article", methods=["GET"])
def get_session_article(session_id):
    return jsonify(content_service.session_article(session_id).to_dict()), 200


@content_bp.route("/projects/<int:project_id>/matrix", methods=["GET"])
def get_matrix(project_id):
    return jsonify(content_service.matrix_view(project_id)), 200


# ── Review ───────────────────────────────────────────────────────────────────


@content_bp.route("/<string:content_type>/<int:content_id>", methods=["PATCH"])
def update_content(content_type, content_id):
    """Direct edit of an article or video script; word count is recomputed."""
    obj = content_service.update_content(content_type, content_id, request_json(request))
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(obj.to_dict()), 200


@content_bp.route("/quizzes/<int:quiz_id>/questions", methods=["PATCH"])
def replace_quiz_questions(quiz_id):
    data = request_json(request)
    quiz = content_service.replace_quiz_questions(quiz_id, data.get("questions"))
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(quiz.to_dict()), 200


@content_bp.route("/feedback/<string:content_type>/<int:content_id>", methods=["POST"])
def add_feedback(content_type, content_id):
    data = request_json(request)
    obj = content_service.add_feedback(content_type, content_id, str_field(data, "feedback"))
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(obj.to_dict()), 200


def _approve(content_type, content_id):
    obj = content_service.approve(content_type, content_id)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(obj.to_dict()), 200


@content_bp.route("/articles/<int:article_id>/approve", methods=["POST"])
def approve_article(article_id):
    return _approve("article", article_id)


@content_bp.route("/articles/<int:article_id>/revise", methods=["POST"])
def revise_article(article_id):
    data = request_json(request)
    article = content_service.request_revision(article_id, str_field(data, "feedback", None))
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(article.to_dict()), 200


@content_bp.route("/videos/<int:video_id>/approve", methods=["POST"])
def approve_video(video_id):
    return _approve("video", video_id)


@content_bp.route("/quizzes/<int:quiz_id>/approve", methods=["POST"])
def approve_quiz(quiz_id):
    return _approve("quiz", quiz_id)
