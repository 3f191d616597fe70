"""
Step checkpointing shared by every pipeline.

Each agent invocation is bracketed by a WorkflowStep row:

    running   — committed before the model is called
    completed — committed with the raw result once the model answers

On an unrecoverable failure the row is left as it was and the exception
propagates to the caller.  Rows are never updated after completion and
never reused: calling the same step twice creates two rows.
"""

import json
import logging
from datetime import datetime, timezone

from pacy.ai import get_agent_registry, get_gateway
from pacy.models import db
from pacy.models.workflow import WorkflowStep

logger = logging.getLogger(__name__)


class StepRecorder:
    """Runs agents with before/after checkpoints for one project."""

    def __init__(self, gateway=None, registry=None):
        self.gateway = gateway or get_gateway()
        self.registry = registry or get_agent_registry()

    def start(self, project_id: int, phase: str, step_name: str, agent_name: str) -> WorkflowStep:
        step = WorkflowStep(
            project_id=project_id,
            phase=phase,
            step_name=step_name,
            agent_name=agent_name,
            status="running",
        )
        db.session.add(step)
        db.session.commit()
        logger.info("Step %s started (project=%s agent=%s)", step_name, project_id, agent_name)
        return step

    @staticmethod
    def complete(step: WorkflowStep, result: str) -> WorkflowStep:
        step.status = "completed"
        step.result = result
        step.completed_at = datetime.now(timezone.utc)
        db.session.commit()
        logger.info("Step %s completed (id=%s)", step.step_name, step.id)
        return step

    def invoke(self, step: WorkflowStep, prompt: str, *, context=None, on_progress=None,
               batch=False, max_tokens=None) -> str:
        """Call the step's agent; on failure the step stays ``running`` and the error propagates."""
        step_id, step_name = step.id, step.step_name
        try:
            return self.registry.invoke(
                self.gateway, step.agent_name, prompt, context, on_progress,
                batch=batch, max_tokens=max_tokens,
            )
        except Exception:
            logger.exception("Step %s failed (id=%s)", step_name, step_id)
            db.session.rollback()
            raise

    def run(
        self,
        project_id: int,
        phase: str,
        step_name: str,
        agent_name: str,
        prompt: str,
        *,
        context: dict | None = None,
        on_progress=None,
        batch: bool = False,
        max_tokens: int | None = None,
    ) -> str:
        """Checkpoint, invoke ``agent_name`` and return its raw text."""
        step = self.start(project_id, phase, step_name, agent_name)
        text = self.invoke(
            step, prompt, context=context, on_progress=on_progress,
            batch=batch, max_tokens=max_tokens,
        )
        self.complete(step, text)
        return text


def record_user_step(project_id: int, phase: str, step_name: str, payload=None) -> WorkflowStep:
    """Append a completed step authored by the user (approvals, feedback)."""
    if payload is not None and not isinstance(payload, str):
        payload = json.dumps(payload, ensure_ascii=False, default=str)
    step = WorkflowStep(
        project_id=project_id,
        phase=phase,
        step_name=step_name,
        agent_name="user",
        status="completed",
        result=payload,
        completed_at=datetime.now(timezone.utc),
    )
    db.session.add(step)
    return step


def latest_step(project_id: int, step_name: str, status: str | None = "completed") -> WorkflowStep | None:
    q = WorkflowStep.query.filter_by(project_id=project_id, step_name=step_name)
    if status:
        q = q.filter_by(status=status)
    return q.order_by(WorkflowStep.id.desc()).first()


def latest_result(project_id: int, step_name: str) -> str | None:
    step = latest_step(project_id, step_name)
    return step.result if step else None
