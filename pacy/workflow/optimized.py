"""
Optimized pipeline: one combined design call to the content architect.

Research, source analysis, architecture and the matrix table are produced
by a single ``create_program_matrix`` step.  Article writing additionally
gets previous-session context and applies fact-check corrections.
"""

import logging

from pacy.workflow import prompts
from pacy.workflow.pipeline import Pipeline, _noop

logger = logging.getLogger(__name__)


class OptimizedPipeline(Pipeline):
    name = "optimized"
    uses_session_context = True
    applies_fact_check_corrections = True

    def _feedback_block(self, project, feedback: str | None) -> str:
        if not feedback:
            return ""
        previous = project.matrix
        if previous is not None and previous.full_text:
            logger.info("Regenerating matrix for project %s from feedback", project.id)
            return prompts.render(
                prompts.MATRIX_FEEDBACK, previous_matrix=previous.full_text, feedback=feedback,
            )
        return f"CLIENT FEEDBACK (must be implemented in the matrix):\n{feedback}"

    def design_program(self, project_id: int, feedback: str | None = None, on_progress=None) -> dict:
        on_progress = on_progress or _noop
        project = self._get_project(project_id)
        on_progress("Starting optimized program design")

        materials = project.materials.all()
        activities = ""
        if project.wants("quiz"):
            activities = "5. Interactive activities: suggest one activity per chapter."

        matrix_text = self.recorder.run(
            project.id, "program_design", "create_program_matrix", "content-architect",
            prompts.render(
                prompts.CREATE_MATRIX,
                project_name=project.name,
                brief=prompts.brief_block(project) + f"\n\nDELIVERABLES: {project.deliverables}",
                approved_direction=self._approved_direction(project.id),
                design_inputs=prompts.materials_block(materials, project.strict_fidelity),
                feedback_block=self._feedback_block(project, feedback),
                num_chapters=str(project.num_chapters) if project.num_chapters else "3-4",
                activities_block=activities,
                language=project.language,
            ),
            context={"project": project.to_dict()},
            on_progress=on_progress,
        )

        result = self._save_matrix(project, matrix_text, on_progress)
        on_progress("Program design complete. Review and approve the matrix.")
        return result
