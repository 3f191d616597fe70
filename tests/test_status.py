"""
Project status machine tests.

Covers:
    - Transition table lookups
    - advance() only moves on a known transition
    - require_transition() raises ConflictError
"""

import pytest

from pacy.core.exceptions import ConflictError
from pacy.models import db
from pacy.models.project import Project
from pacy.workflow.status import ProjectStatus, advance, can_transition, next_status, require_transition


def _make_project(status="information_gathering"):
    project = Project(name="Status test", status=status)
    db.session.add(project)
    db.session.commit()
    return project


class TestTransitions:
    @pytest.mark.parametrize("current,step,expected", [
        ("information_gathering", "create_debrief", ProjectStatus.DEBRIEF_REVIEW),
        ("debrief_review", "approve_debrief", ProjectStatus.MATRIX_CREATION),
        ("information_gathering", "create_program_matrix", ProjectStatus.PROGRAM_DESIGN),
        ("matrix_creation", "create_program_matrix", ProjectStatus.PROGRAM_DESIGN),
        ("program_design", "approve_matrix", ProjectStatus.ARTICLE_CREATION),
        ("article_creation", "batch_videos", ProjectStatus.VIDEO_CREATION),
        ("video_creation", "batch_quizzes", ProjectStatus.QUIZ_CREATION),
        ("quiz_creation", "complete_project", ProjectStatus.COMPLETED),
    ])
    def test_next_status(self, current, step, expected):
        assert next_status(current, step) is expected

    def test_unknown_transitions(self):
        assert next_status("information_gathering", "approve_matrix") is None
        assert next_status("debrief_review", "create_program_matrix") is None
        assert next_status("not-a-status", "create_debrief") is None
        assert can_transition("completed", "create_debrief") is False


class TestAdvance:
    def test_advance_changes_status(self):
        project = _make_project()
        assert advance(project, "create_debrief") is True
        assert project.status == "debrief_review"

    def test_self_transition_reports_no_change(self):
        project = _make_project("program_design")
        assert advance(project, "create_program_matrix") is False
        assert project.status == "program_design"

    def test_unrelated_step_leaves_status(self):
        project = _make_project("article_creation")
        assert advance(project, "write_article_3") is False
        assert project.status == "article_creation"

    def test_require_transition_raises(self):
        project = _make_project("debrief_review")
        with pytest.raises(ConflictError):
            require_transition(project, "create_program_matrix")
        require_transition(project, "approve_debrief")
