"""
Full pipeline: every specialist agent runs as its own checkpointed step.

    research_topic → analyze_sources (when materials exist)
    → design_architecture → instructional_design → suggest_activities
    → create_program_matrix
"""

import logging

from pacy.workflow import prompts
from pacy.workflow.pipeline import Pipeline, _noop

logger = logging.getLogger(__name__)

PHASE = "program_design"


def _chapters_hint(project) -> str:
    return str(project.num_chapters) if project.num_chapters else "3-4"


class FullPipeline(Pipeline):
    name = "full"

    def design_program(self, project_id: int, feedback: str | None = None, on_progress=None) -> dict:
        on_progress = on_progress or _noop
        project = self._get_project(project_id)
        brief = prompts.brief_block(project)
        direction = self._approved_direction(project.id)
        materials = project.materials.all()
        run = self.recorder.run

        on_progress("Starting full program design")

        research = run(
            project.id, PHASE, "research_topic", "research-director",
            prompts.render(prompts.RESEARCH_TOPIC, brief=brief, approved_direction=direction),
            on_progress=on_progress,
        )

        source_analysis = "No source material provided."
        if materials:
            details = "\n".join(
                f"- {m.filename} ({m.category}): {(m.content or '')[:500]}" for m in materials
            )
            source_analysis = run(
                project.id, PHASE, "analyze_sources", "source-analyst",
                prompts.render(
                    prompts.ANALYZE_SOURCES,
                    brief=brief, material_details=details, research=research,
                ),
                on_progress=on_progress,
            )

        architecture = run(
            project.id, PHASE, "design_architecture", "topic-expert",
            prompts.render(
                prompts.DESIGN_ARCHITECTURE,
                project_name=project.name,
                research=research,
                source_analysis=source_analysis,
                num_chapters=_chapters_hint(project),
            ),
            on_progress=on_progress,
        )

        journey = run(
            project.id, PHASE, "instructional_design", "instructional-designer",
            prompts.render(
                prompts.INSTRUCTIONAL_DESIGN,
                target_audience=prompts.or_default(project.target_audience),
                architecture=architecture,
            ),
            on_progress=on_progress,
        )

        activities = run(
            project.id, PHASE, "suggest_activities", "assessment-designer",
            prompts.render(prompts.SUGGEST_ACTIVITIES, instructional_design=journey),
            on_progress=on_progress,
        )

        design_inputs = (
            f"RESEARCH:\n{research}\n\n"
            f"SOURCE ANALYSIS:\n{source_analysis}\n\n"
            f"ARCHITECTURE:\n{architecture}\n\n"
            f"LEARNING JOURNEY:\n{journey}\n\n"
            f"ACTIVITIES:\n{activities}"
        )
        feedback_block = ""
        if feedback:
            previous = project.matrix
            feedback_block = prompts.render(
                prompts.MATRIX_FEEDBACK,
                previous_matrix=previous.full_text if previous else "None",
                feedback=feedback,
            )

        matrix_text = run(
            project.id, PHASE, "create_program_matrix", "content-architect",
            prompts.render(
                prompts.CREATE_MATRIX,
                project_name=project.name,
                brief=brief,
                approved_direction=direction,
                design_inputs=design_inputs,
                feedback_block=feedback_block,
                num_chapters=_chapters_hint(project),
                activities_block="",
                language=project.language,
            ),
            on_progress=on_progress,
        )

        result = self._save_matrix(project, matrix_text, on_progress)
        on_progress("Program design complete. Review and approve the matrix.")
        return result
