"""
Pacy Training Content Generator
AI module.

Submodules:
    - gateway: Model Gateway (provider routing, family-aware requests, retry)
    - model_config: agent → model configuration and pricing
    - agent_registry: markdown agent definitions
    - parsers: per-phase structured-output parsers
    - conversation: keyed chat conversation store

Lazy singletons are stored on the Flask app so each test app gets its own.
"""

from flask import current_app


def get_gateway():
    from pacy.ai.gateway import ModelGateway
    if not hasattr(current_app, "_pacy_gateway"):
        current_app._pacy_gateway = ModelGateway(current_app.config)
    return current_app._pacy_gateway


def get_agent_registry():
    from pacy.ai.agent_registry import AgentRegistry
    if not hasattr(current_app, "_pacy_agents"):
        current_app._pacy_agents = AgentRegistry(current_app.config.get("AGENTS_DIR"))
    return current_app._pacy_agents


def get_conversation_store():
    from pacy.ai.conversation import ConversationStore
    if not hasattr(current_app, "_pacy_conversations"):
        current_app._pacy_conversations = ConversationStore(
            ttl_seconds=current_app.config.get("CONVERSATION_TTL_SECONDS", 21600),
        )
    return current_app._pacy_conversations
