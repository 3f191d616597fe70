"""
Pacy Training Content Generator
Workflow module.

Submodules:
    - status: explicit project status machine
    - checkpoint: WorkflowStep bookkeeping around each agent call
    - prompts: phase prompt templates
    - pipeline / full / optimized: alternative program-design strategies
    - debrief: research, validation and debrief approval
    - runner: background execution for streamed phases
"""

from flask import current_app

from pacy.core.exceptions import ValidationError


def get_pipeline(name: str | None = None, **kwargs):
    """Return a pipeline instance by name (``full`` or ``optimized``)."""
    from pacy.workflow.full import FullPipeline
    from pacy.workflow.optimized import OptimizedPipeline

    pipelines = {"full": FullPipeline, "optimized": OptimizedPipeline}
    name = name or current_app.config.get("DEFAULT_PIPELINE", "optimized")
    if name not in pipelines:
        raise ValidationError(
            f"Unknown pipeline '{name}'", {"available": sorted(pipelines)},
        )
    return pipelines[name](**kwargs)
