"""
Pacy Training Content Generator
Agent → model configuration.

Every agent is routed to one of three tiers:
    thinking — program design, research, compliance review   (best quality)
    fast     — article writing, fact-checking, interviews     (balanced)
    cheap    — narration, quizzes, formatting, batch writing  (cheapest)

A ``<agent>-batch`` entry, when present, is used for bulk operations;
otherwise the agent's own entry applies.  Unregistered agents resolve to
``default``.

Tier model ids can be overridden per deployment:
    PACY_MODEL_THINKING, PACY_MODEL_FAST, PACY_MODEL_CHEAP
"""

import logging
import os

logger = logging.getLogger(__name__)

MODELS = {
    "thinking": os.getenv("PACY_MODEL_THINKING", "claude-opus-4-5-20251101"),
    "fast": os.getenv("PACY_MODEL_FAST", "claude-sonnet-4-5-20250929"),
    "cheap": os.getenv("PACY_MODEL_CHEAP", "claude-haiku-4-5-20251001"),
}

# Provider name for each model prefix
_MODEL_PROVIDER = {
    "claude": "anthropic",
    "gpt": "openai",
    "o1": "openai",
    "o3": "openai",
    "o4": "openai",
    "gemini": "gemini",
    "local": "local",
}


def provider_for_model(model: str) -> str:
    for prefix, provider in _MODEL_PROVIDER.items():
        if model.startswith(prefix):
            return provider
    return "local"


def _entry(tier: str, max_tokens: int) -> dict:
    model = MODELS[tier]
    return {"provider": provider_for_model(model), "model": model, "max_tokens": max_tokens}


AGENT_MODELS: dict[str, dict] = {
    # Thinking tier
    "content-architect": _entry("thinking", 16384),
    "research-director": _entry("thinking", 16384),
    "content-quality-agent": _entry("thinking", 8192),
    "hist-compliance-editor": _entry("thinking", 8192),
    # Fast tier
    "article-writer": _entry("fast", 6000),
    "fact-checker": _entry("fast", 2048),
    "source-analyst": _entry("fast", 4096),
    "brief-interviewer": _entry("fast", 1024),
    "brief-analyst": _entry("fast", 2048),
    "topic-expert": _entry("fast", 4096),
    "instructional-designer": _entry("fast", 4096),
    # Cheap tier
    "article-writer-batch": _entry("cheap", 4096),
    "video-narrator": _entry("cheap", 1024),
    "assessment-designer": _entry("cheap", 2048),
    "ai-exercise-designer": _entry("cheap", 2048),
    "program-matrix-formatter": _entry("cheap", 1024),
    "company-researcher": _entry("cheap", 2048),
    # Fallback for agents without an explicit entry
    "default": _entry("fast", 4096),
}


def get_model_config(agent_name: str) -> dict:
    """Return {provider, model, max_tokens} for an agent (``default`` if unregistered)."""
    config = AGENT_MODELS.get(agent_name)
    if config is None:
        logger.debug("No model config for agent '%s', using default", agent_name)
        config = AGENT_MODELS["default"]
    return dict(config)


def get_batch_model_config(agent_name: str) -> dict:
    """Return the ``<agent>-batch`` config if registered, else the normal one."""
    batch = AGENT_MODELS.get(f"{agent_name}-batch")
    if batch is not None:
        return dict(batch)
    return get_model_config(agent_name)


# ── Pricing (USD per 1M tokens) ──────────────────────────────────────────

TOKEN_COSTS = {
    "claude-opus-4-5-20251101":    {"input": 5.00, "output": 25.00},
    "claude-sonnet-4-5-20250929":  {"input": 3.00, "output": 15.00},
    "claude-haiku-4-5-20251001":   {"input": 1.00, "output": 5.00},
    "gpt-4o":                      {"input": 2.50, "output": 10.00},
    "gpt-4o-mini":                 {"input": 0.15, "output": 0.60},
    "gpt-5":                       {"input": 1.25, "output": 10.00},
    "o1":                          {"input": 15.00, "output": 60.00},
    "gemini-2.5-flash":            {"input": 0.30, "output": 2.50},
    "gemini-2.5-pro":              {"input": 1.25, "output": 10.00},
}


def calculate_cost(model: str, input_tokens: int, output_tokens: int) -> float:
    """Calculate USD cost for a given model + token counts."""
    costs = TOKEN_COSTS.get(model, {"input": 0.0, "output": 0.0})
    return (input_tokens * costs["input"] + output_tokens * costs["output"]) / 1_000_000
