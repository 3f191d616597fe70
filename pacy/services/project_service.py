"""Project service layer: projects, source material, approvals and progress.

Transaction policy: functions use flush() for ID generation, never commit().
The calling route handler is responsible for db.session.commit().
"""

import logging
from datetime import datetime, timezone

from flask import current_app

from pacy.core.exceptions import NotFoundError, ValidationError
from pacy.models import db
from pacy.models.content import Article, Chapter, Quiz, Session, VideoScript
from pacy.models.project import Project, SourceMaterial
from pacy.models.workflow import WorkflowStep
from pacy.workflow.checkpoint import record_user_step
from pacy.workflow.status import advance, require_transition

logger = logging.getLogger(__name__)

DELIVERABLES = ("articles", "articles_videos", "quiz", "full_program")
TEXT_FIELDS = (
    "learning_objectives", "target_audience", "desired_outcomes",
    "constraints", "particular_angle", "language",
)


def _int_field(data, key, *, minimum=1, maximum=None):
    value = data.get(key)
    if value is None or value == "":
        return None
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be an integer", {key: value})
    if value < minimum or (maximum is not None and value > maximum):
        raise ValidationError(f"{key} is out of range", {key: value})
    return value


def _apply_fields(project: Project, data: dict):
    for field in TEXT_FIELDS:
        if field in data:
            setattr(project, field, data[field])
    if "deliverables" in data:
        if data["deliverables"] not in DELIVERABLES:
            raise ValidationError(
                "Invalid deliverables", {"deliverables": data["deliverables"], "allowed": list(DELIVERABLES)},
            )
        project.deliverables = data["deliverables"]
    if "strict_fidelity" in data:
        project.strict_fidelity = bool(data["strict_fidelity"])
    if "quiz_questions" in data:
        project.quiz_questions = _int_field(data, "quiz_questions", maximum=20) or 3
    if "num_chapters" in data:
        project.num_chapters = _int_field(data, "num_chapters", maximum=20)
    if "company_context" in data:
        project.company_context = data["company_context"]


# ── Projects ─────────────────────────────────────────────────────────────


def list_projects() -> list[Project]:
    return Project.query.order_by(Project.created_at.desc(), Project.id.desc()).all()


def get_project(project_id: int) -> Project:
    project = db.session.get(Project, project_id)
    if not project:
        raise NotFoundError("Project", project_id)
    return project


def create_project(data: dict) -> Project:
    name = str(data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required", {"name": "missing"})
    project = Project(name=name)
    _apply_fields(project, data)
    db.session.add(project)
    db.session.flush()
    logger.info("Project %s created: %s", project.id, project.name)
    return project


def update_project(project: Project, data: dict) -> Project:
    """Update brief fields.  Status only changes through the workflow."""
    if "name" in data:
        name = str(data.get("name") or "").strip()
        if not name:
            raise ValidationError("name cannot be empty", {"name": "empty"})
        project.name = name
    _apply_fields(project, data)
    db.session.flush()
    return project


def delete_project(project: Project):
    logger.info("Deleting project %s with all children", project.id)
    db.session.delete(project)
    db.session.flush()


# ── Source material ──────────────────────────────────────────────────────


def add_material(project: Project, data: dict) -> SourceMaterial:
    filename = str(data.get("filename") or "").strip()
    if not filename:
        raise ValidationError("filename is required", {"filename": "missing"})
    category = data.get("category", "context")
    if category not in SourceMaterial.CATEGORIES:
        raise ValidationError(
            "Invalid category", {"category": category, "allowed": list(SourceMaterial.CATEGORIES)},
        )
    size = _int_field(data, "file_size", minimum=0)
    max_size = current_app.config.get("MAX_FILE_SIZE", 52428800)
    if size is not None and size > max_size:
        raise ValidationError(f"File exceeds maximum size of {max_size} bytes", {"file_size": size})

    material = SourceMaterial(
        project_id=project.id,
        filename=filename,
        file_type=data.get("file_type"),
        file_size=size,
        category=category,
        content=data.get("content"),
    )
    db.session.add(material)
    db.session.flush()
    return material


def delete_material(material_id: int):
    material = db.session.get(SourceMaterial, material_id)
    if not material:
        raise NotFoundError("SourceMaterial", material_id)
    db.session.delete(material)
    db.session.flush()


# ── Approvals ────────────────────────────────────────────────────────────


def approve_matrix(project: Project) -> dict:
    """Approve the latest program matrix; unlocks content creation."""
    require_transition(project, "approve_matrix")
    matrix = project.matrix
    if matrix is None:
        raise ValidationError("Project has no program matrix to approve")
    matrix.approved = True
    matrix.approved_at = datetime.now(timezone.utc)
    record_user_step(project.id, "program_design", "approve_matrix", {"matrix_id": matrix.id})
    advance(project, "approve_matrix")
    db.session.flush()
    return {"status": project.status, "matrix": matrix.to_dict()}


def complete_project(project: Project) -> dict:
    require_transition(project, "complete_project")
    record_user_step(project.id, "completed", "complete_project")
    advance(project, "complete_project")
    db.session.flush()
    return {"status": project.status}


# ── Progress ─────────────────────────────────────────────────────────────


def _count(model, project_id: int) -> int:
    return (
        db.session.query(db.func.count(model.id))
        .join(Session, model.session_id == Session.id)
        .join(Chapter, Session.chapter_id == Chapter.id)
        .filter(Chapter.project_id == project_id)
        .scalar()
    )


def progress(project: Project) -> dict:
    steps = project.steps.order_by(WorkflowStep.id.asc()).all()
    by_status = {"completed": 0, "running": 0, "failed": 0}
    for step in steps:
        if step.status in by_status:
            by_status[step.status] += 1

    session_total = (
        db.session.query(db.func.count(Session.id))
        .join(Chapter).filter(Chapter.project_id == project.id).scalar()
    )
    return {
        "project_id": project.id,
        "status": project.status,
        "steps": [s.to_dict(include_result=False) for s in steps],
        "counts": {"total": len(steps), **by_status},
        "deliverables": {
            "chapters": project.chapters.count(),
            "sessions": session_total,
            "articles": _count(Article, project.id),
            "approved_articles": (
                db.session.query(db.func.count(Article.id))
                .join(Session, Article.session_id == Session.id)
                .join(Chapter, Session.chapter_id == Chapter.id)
                .filter(Chapter.project_id == project.id, Article.approved.is_(True))
                .scalar()
            ),
            "videos": _count(VideoScript, project.id),
            "quizzes": _count(Quiz, project.id),
        },
    }
