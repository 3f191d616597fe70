"""
Workflow audit log and chat conversation storage.

WorkflowStep rows are append-only: one row per agent invocation or user
approval, never updated after completion and never deleted except with
their project.
"""

from datetime import datetime, timezone

from pacy.models import db


def _utcnow():
    return datetime.now(timezone.utc)


class WorkflowStep(db.Model):
    __tablename__ = "workflow_steps"

    STATUSES = ("pending", "running", "completed", "failed")

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    phase = db.Column(db.String(40), nullable=False)
    step_name = db.Column(db.String(100), nullable=False, index=True)
    agent_name = db.Column(db.String(80), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="pending")
    result = db.Column(db.Text, nullable=True, comment="Raw model output or JSON payload")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self, include_result=True):
        d = {
            "id": self.id,
            "project_id": self.project_id,
            "phase": self.phase,
            "step_name": self.step_name,
            "agent_name": self.agent_name,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
        if include_result:
            d["result"] = self.result
        return d

    def __repr__(self):
        return f"<WorkflowStep {self.id}: {self.step_name} [{self.status}]>"


class ConversationTurn(db.Model):
    """One message of a keyed chat conversation (interview intake, debrief Q&A)."""

    __tablename__ = "conversation_turns"

    id = db.Column(db.Integer, primary_key=True)
    conversation_key = db.Column(db.String(120), nullable=False, index=True)
    role = db.Column(db.String(20), nullable=False, comment="user | assistant")
    content = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self):
        return {
            "role": self.role,
            "content": self.content,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
