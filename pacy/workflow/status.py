"""
Project status machine.

The status column is the single source of truth for where a project is in
its lifecycle.  It only changes through ``advance``, driven by the name of
the step that just completed; the WorkflowStep log is kept for audit.
"""

import logging
from enum import Enum

from pacy.core.exceptions import ConflictError

logger = logging.getLogger(__name__)


class ProjectStatus(str, Enum):
    INFORMATION_GATHERING = "information_gathering"
    PROGRAM_DESIGN = "program_design"
    DEBRIEF_REVIEW = "debrief_review"
    MATRIX_CREATION = "matrix_creation"
    ARTICLE_CREATION = "article_creation"
    VIDEO_CREATION = "video_creation"
    QUIZ_CREATION = "quiz_creation"
    COMPLETED = "completed"


S = ProjectStatus

# (current status, completed step name) → next status
TRANSITIONS: dict[tuple[ProjectStatus, str], ProjectStatus] = {
    (S.INFORMATION_GATHERING, "create_debrief"): S.DEBRIEF_REVIEW,
    (S.DEBRIEF_REVIEW, "create_debrief"): S.DEBRIEF_REVIEW,
    (S.DEBRIEF_REVIEW, "approve_debrief"): S.MATRIX_CREATION,
    (S.INFORMATION_GATHERING, "create_program_matrix"): S.PROGRAM_DESIGN,
    (S.MATRIX_CREATION, "create_program_matrix"): S.PROGRAM_DESIGN,
    (S.PROGRAM_DESIGN, "create_program_matrix"): S.PROGRAM_DESIGN,
    (S.PROGRAM_DESIGN, "approve_matrix"): S.ARTICLE_CREATION,
    (S.ARTICLE_CREATION, "batch_videos"): S.VIDEO_CREATION,
    (S.VIDEO_CREATION, "batch_quizzes"): S.QUIZ_CREATION,
    (S.ARTICLE_CREATION, "complete_project"): S.COMPLETED,
    (S.VIDEO_CREATION, "complete_project"): S.COMPLETED,
    (S.QUIZ_CREATION, "complete_project"): S.COMPLETED,
}


def next_status(current: str, step_name: str) -> ProjectStatus | None:
    try:
        status = ProjectStatus(current)
    except ValueError:
        return None
    return TRANSITIONS.get((status, step_name))


def can_transition(current: str, step_name: str) -> bool:
    return next_status(current, step_name) is not None


def require_transition(project, step_name: str):
    """Raise ConflictError when ``step_name`` is not allowed from the current status."""
    if not can_transition(project.status, step_name):
        raise ConflictError("Project", "status", f"{project.status} (cannot {step_name})")


def advance(project, step_name: str) -> bool:
    """
    Apply the transition for ``step_name`` if one exists.

    Returns True when the status changed.  The caller commits.
    """
    target = next_status(project.status, step_name)
    if target is None or target.value == project.status:
        return False
    logger.info("Project %s status %s → %s (%s)", project.id, project.status, target.value, step_name)
    project.status = target.value
    return True
