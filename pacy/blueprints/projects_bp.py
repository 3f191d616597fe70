"""
Projects Blueprint: CRUD for training projects and their source material,
brief parsing and Markdown export.

Endpoints:
    GET    /api/v1/projects                        — List all
    POST   /api/v1/projects                        — Create
    GET    /api/v1/projects/<id>                   — Detail (+ matrix, materials, chapters)
    PUT    /api/v1/projects/<id>                   — Update brief
    DELETE /api/v1/projects/<id>                   — Delete (cascade)

    GET    /api/v1/projects/<id>/materials         — List source material
    POST   /api/v1/projects/<id>/materials         — Register source material
    DELETE /api/v1/projects/materials/<mid>        — Remove source material

    POST   /api/v1/projects/parse-brief            — Extract brief fields from text
    GET    /api/v1/projects/<id>/export            — Markdown download
"""

import logging

from flask import Blueprint, Response, jsonify, request

from pacy import limiter
from pacy.services import export_service, intake_service, project_service
from pacy.utils.helpers import db_commit_or_error, request_json, str_field

logger = logging.getLogger(__name__)

projects_bp = Blueprint("projects", __name__, url_prefix="/api/v1/projects")


# ═════════════════════════════════════════════════════════════════════════════
# PROJECTS
# ═════════════════════════════════════════════════════════════════════════════

@projects_bp.route("", methods=["GET"])
def list_projects():
    return jsonify([p.to_dict() for p in project_service.list_projects()]), 200


@projects_bp.route("", methods=["POST"])
def create_project():
    project = project_service.create_project(request_json(request))
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(project.to_dict()), 201


@projects_bp.route("/<int:project_id>", methods=["GET"])
def get_project(project_id):
    project = project_service.get_project(project_id)
    return jsonify(project.to_dict(include_children=True)), 200


@projects_bp.route("/<int:project_id>", methods=["PUT"])
def update_project(project_id):
    project = project_service.get_project(project_id)
    project_service.update_project(project, request_json(request))
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(project.to_dict()), 200


@projects_bp.route("/<int:project_id>", methods=["DELETE"])
def delete_project(project_id):
    """Delete a project with its matrix, chapters, content and step log."""
    project = project_service.get_project(project_id)
    name = project.name
    project_service.delete_project(project)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"message": f"Project '{name}' deleted"}), 200


# ═════════════════════════════════════════════════════════════════════════════
# SOURCE MATERIAL
# ═════════════════════════════════════════════════════════════════════════════

@projects_bp.route("/<int:project_id>/materials", methods=["GET"])
def list_materials(project_id):
    project = project_service.get_project(project_id)
    return jsonify([m.to_dict() for m in project.materials]), 200


@projects_bp.route("/<int:project_id>/materials", methods=["POST"])
def add_material(project_id):
    project = project_service.get_project(project_id)
    material = project_service.add_material(project, request_json(request))
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(material.to_dict()), 201


@projects_bp.route("/materials/<int:material_id>", methods=["DELETE"])
def delete_material(material_id):
    project_service.delete_material(material_id)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"message": "Material deleted"}), 200


# ═════════════════════════════════════════════════════════════════════════════
# BRIEF PARSING & EXPORT
# ═════════════════════════════════════════════════════════════════════════════

@projects_bp.route("/parse-brief", methods=["POST"])
@limiter.shared_limit("30/minute", scope="ai_generate")
def parse_brief():
    """Extract brief fields from pasted text.  Malformed model output → 500 with raw_response."""
    data = request_json(request)
    return jsonify(intake_service.parse_brief(str_field(data, "text"))), 200


@projects_bp.route("/<int:project_id>/export", methods=["GET"])
def export_project(project_id):
    project = project_service.get_project(project_id)
    body = export_service.export_markdown(project)
    filename = export_service.export_filename(project)
    return Response(
        body,
        mimetype="text/markdown",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
