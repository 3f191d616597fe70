"""
Debrief workflow: research, self-validation, debrief alternatives,
feedback and approval.

    research ──► validate_research ──► deepen_research (at most once)
        │
        ▼
    create_debrief ──► debrief_feedback / create_debrief (regenerate)
        │
        ▼
    approve_debrief (user)  →  status matrix_creation

The research and validation steps are completed only after the optional
deepening call, so their stored results are the final research text and
the final validation object.
"""

import json
import logging
import re

from pacy.ai.parsers import parse_debrief, parse_validation
from pacy.core.exceptions import AuthError, NotFoundError, ValidationError
from pacy.models import db
from pacy.models.project import Project
from pacy.workflow import prompts
from pacy.workflow.checkpoint import StepRecorder, latest_result, record_user_step
from pacy.workflow.status import advance, require_transition

logger = logging.getLogger(__name__)

FLAGGED_SEVERITIES = ("critical", "important")
DEEPENED_HEADER = "\n\n## Deepened research\n\n"
ACK_ATTEMPTS = 2
MAX_SOURCE_URLS = 10

_URL_RE = re.compile(r"https?://[^\s)\]>\"'|]+")


def _noop(_message):
    pass


class DebriefWorkflow:
    """Research and debrief phase for one project at a time."""

    def __init__(self, recorder=None):
        self.recorder = recorder or StepRecorder()

    @staticmethod
    def _get_project(project_id: int) -> Project:
        project = db.session.get(Project, project_id)
        if not project:
            raise NotFoundError("Project", project_id)
        return project

    # ── Research ─────────────────────────────────────────────────────────

    def execute_research(self, project_id: int, on_progress=None) -> dict:
        on_progress = on_progress or _noop
        project = self._get_project(project_id)
        recorder = self.recorder
        on_progress("Starting research phase")

        research_step = recorder.start(project.id, "research", "research", "research-director")
        research = recorder.invoke(
            research_step,
            prompts.render(
                prompts.RESEARCH,
                brief=prompts.brief_block(project),
                materials=prompts.materials_block(project.materials.all(), project.strict_fidelity),
            ),
            context={"project": project.to_dict()},
            on_progress=on_progress,
        )

        on_progress("Validating research quality")
        validation_step = recorder.start(project.id, "research", "validate_research", "research-director")
        raw_validation = recorder.invoke(
            validation_step,
            prompts.render(
                prompts.VALIDATE_RESEARCH,
                project_name=project.name,
                learning_objectives=prompts.or_default(project.learning_objectives),
                research=research,
            ),
            on_progress=on_progress,
        )
        validation = parse_validation(raw_validation).data

        flagged = [g for g in validation["gaps"] if g["severity"] in FLAGGED_SEVERITIES]
        deepened = False
        if flagged or validation["alternative_viewpoints"]:
            on_progress(
                f"Deepening research: {len(flagged)} gaps, "
                f"{len(validation['alternative_viewpoints'])} alternative viewpoints"
            )
            deepening = recorder.run(
                project.id, "research", "deepen_research", "research-director",
                prompts.render(
                    prompts.DEEPEN_RESEARCH,
                    project_name=project.name,
                    gaps="\n".join(f"- [{g['severity']}] {g['topic']}" for g in flagged) or "None",
                    viewpoints="\n".join(f"- {v}" for v in validation["alternative_viewpoints"]) or "None",
                    research=research,
                ),
                on_progress=on_progress,
            )
            research = research + DEEPENED_HEADER + deepening
            for gap in flagged:
                gap["resolved"] = True
            deepened = True
        else:
            on_progress("Research validated, no deepening needed")

        recorder.complete(validation_step, json.dumps(validation, ensure_ascii=False))
        recorder.complete(research_step, research)
        on_progress("Research complete")
        return {"research": research, "validation": validation, "deepened": deepened}

    # ── Debrief ──────────────────────────────────────────────────────────

    def _store_debrief(self, project: Project, prompt: str, on_progress) -> dict:
        step = self.recorder.start(project.id, "debrief", "create_debrief", "content-architect")
        text = self.recorder.invoke(
            step, prompt, context={"project": project.to_dict()}, on_progress=on_progress,
        )
        parsed = parse_debrief(text)
        debrief = dict(parsed.data, degraded=parsed.degraded)
        if parsed.degraded:
            on_progress("Debrief output was not structured; using fallback alternatives")
        self.recorder.complete(step, json.dumps(debrief, ensure_ascii=False))

        advance(project, "create_debrief")
        db.session.commit()
        return debrief

    def generate_debrief(self, project_id: int, on_progress=None) -> dict:
        on_progress = on_progress or _noop
        project = self._get_project(project_id)
        require_transition(project, "create_debrief")

        research = latest_result(project.id, "research")
        if not research:
            research = self.execute_research(project.id, on_progress)["research"]

        on_progress("Creating debrief with alternatives")
        debrief = self._store_debrief(
            project,
            prompts.render(
                prompts.DEBRIEF,
                brief=prompts.brief_block(project),
                research=research,
                materials=prompts.materials_block(project.materials.all(), project.strict_fidelity),
            ),
            on_progress,
        )
        on_progress("Debrief ready for review")
        return {"debrief": debrief, "status": project.status}

    def current_debrief(self, project_id: int) -> dict | None:
        raw = latest_result(project_id, "create_debrief")
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            return parse_debrief(raw).data

    def handle_feedback(self, project_id: int, feedback: str) -> dict:
        """Record feedback and return a short acknowledgment; stored content is untouched."""
        if not feedback or not feedback.strip():
            raise ValidationError("feedback is required")
        project = self._get_project(project_id)
        record_user_step(project.id, "debrief", "debrief_feedback", {"feedback": feedback})
        db.session.commit()

        prompt = prompts.render(
            prompts.DEBRIEF_FEEDBACK_ACK,
            project_name=project.name, feedback=feedback, language=project.language,
        )
        for attempt in range(1, ACK_ATTEMPTS + 1):
            try:
                ack = self.recorder.run(
                    project.id, "debrief", "debrief_feedback_ack", "content-architect",
                    prompt, batch=True,
                )
                return {"acknowledgment": ack.strip()}
            except AuthError:
                raise
            except Exception as exc:
                if attempt == ACK_ATTEMPTS:
                    raise
                logger.warning("Feedback acknowledgment failed (attempt %d): %s", attempt, exc)

    def regenerate_debrief(self, project_id: int, feedback: str, on_progress=None) -> dict:
        on_progress = on_progress or _noop
        if not feedback or not feedback.strip():
            raise ValidationError("feedback is required")
        project = self._get_project(project_id)
        require_transition(project, "create_debrief")

        previous = latest_result(project.id, "create_debrief")
        if not previous:
            raise ValidationError("No debrief to regenerate; create the debrief first")

        on_progress("Regenerating debrief from feedback")
        debrief = self._store_debrief(
            project,
            prompts.render(
                prompts.REGENERATE_DEBRIEF,
                brief=prompts.brief_block(project),
                previous_debrief=previous,
                feedback=feedback,
                research=latest_result(project.id, "research") or "Not available",
            ),
            on_progress,
        )
        on_progress("Updated debrief ready for review")
        return {"debrief": debrief, "status": project.status}

    def approve_debrief(self, project_id: int, alternative_id: str | None = None) -> dict:
        project = self._get_project(project_id)
        require_transition(project, "approve_debrief")

        debrief = self.current_debrief(project.id) or {}
        options = debrief.get("alternatives") or []
        chosen = None
        if alternative_id:
            chosen = next((a for a in options if str(a.get("id")) == str(alternative_id)), None)
            if chosen is None:
                raise ValidationError(
                    f"Unknown alternative '{alternative_id}'",
                    {"available": [a.get("id") for a in options]},
                )
        else:
            chosen = next((a for a in options if a.get("recommended")), options[0] if options else None)

        record_user_step(project.id, "debrief", "approve_debrief", {
            "alternative_id": chosen.get("id") if chosen else None,
            "title": chosen.get("title") if chosen else None,
            "description": chosen.get("description") if chosen else None,
        })
        advance(project, "approve_debrief")
        db.session.commit()
        logger.info("Debrief approved for project %s (alternative=%s)", project.id, alternative_id)
        return {"status": project.status, "approved_alternative": chosen}

    # ── Q&A ──────────────────────────────────────────────────────────────

    def chat_system_prompt(self, project: Project) -> str:
        agent = self.recorder.registry.get("content-architect")
        debrief = self.current_debrief(project.id)
        context = prompts.render(
            prompts.DEBRIEF_CHAT_CONTEXT,
            project_name=project.name,
            brief=prompts.brief_block(project),
            debrief=json.dumps(debrief, ensure_ascii=False, indent=2) if debrief else "No debrief yet.",
            language=project.language,
        )
        return f"{agent.prompt}\n\n{context}"

    def chat(self, project_id: int, message: str, store, on_chunk) -> str:
        """Stream one answer about the debrief; history lives in ``store`` under ``debrief:<id>``."""
        if not message or not message.strip():
            raise ValidationError("message is required")
        project = self._get_project(project_id)
        key = f"debrief:{project.id}"
        system_prompt = self.chat_system_prompt(project)

        with store.lock(key):
            messages = store.history(key)
            messages.append({"role": "user", "content": message})
            result = self.recorder.gateway.stream(
                "content-architect", system_prompt, messages, on_chunk, batch=True,
            )
            store.append(key, "user", message)
            store.append(key, "assistant", result["content"])
        return result["content"]

    def sources(self, project_id: int) -> dict:
        project = self._get_project(project_id)
        research = latest_result(project.id, "research") or ""
        urls = []
        for url in _URL_RE.findall(research):
            url = url.rstrip(".,;:")
            if url not in urls:
                urls.append(url)
            if len(urls) >= MAX_SOURCE_URLS:
                break
        return {
            "materials": [m.to_dict() for m in project.materials],
            "research_urls": urls,
        }
