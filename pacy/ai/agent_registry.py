"""
Pacy Training Content Generator
Agent Registry.

Agents are markdown files in ``pacy/ai/agents/`` with a YAML header:

    ---
    name: fact-checker
    description: Verifies claims and citations
    model: fast
    tools: Read, WebSearch
    ---
    You are a meticulous fact-checker...

Files whose header is missing or has no ``name`` are skipped.  Model routing
for each agent lives in ``pacy.ai.model_config``.

Usage:
    from pacy.ai.agent_registry import AgentRegistry
    registry = AgentRegistry()
    text = registry.invoke(gateway, "fact-checker", "Check this article...", context={...})
"""

import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from pacy.ai.model_config import get_model_config
from pacy.core.exceptions import NotFoundError

logger = logging.getLogger(__name__)

_DEFAULT_AGENTS_DIR = os.path.join(os.path.dirname(__file__), "agents")

_FRONTMATTER_RE = re.compile(r"\A---\s*\n(.*?)\n---\s*\n(.*)\Z", re.DOTALL)


@dataclass
class AgentDefinition:
    """A named system prompt plus the metadata from its header."""
    name: str
    description: str = ""
    prompt: str = ""
    model: str = ""
    tools: list = field(default_factory=list)

    def to_dict(self) -> dict:
        config = get_model_config(self.name)
        return {
            "name": self.name,
            "description": self.description,
            "tools": self.tools,
            "model": config["model"],
            "provider": config["provider"],
            "max_tokens": config["max_tokens"],
            "prompt_preview": self.prompt[:200],
        }


def _parse_tools(value) -> list:
    if isinstance(value, list):
        return [str(t).strip() for t in value if str(t).strip()]
    if isinstance(value, str):
        return [t.strip() for t in value.split(",") if t.strip()]
    return []


def parse_agent_file(text: str, source: str = "") -> AgentDefinition | None:
    """Parse one agent definition; returns None for malformed files."""
    match = _FRONTMATTER_RE.match(text)
    if not match:
        logger.warning("Agent file %s has no header block, skipped", source)
        return None

    try:
        header = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as e:
        logger.warning("Agent file %s has an invalid header, skipped: %s", source, e)
        return None
    if not isinstance(header, dict) or not header.get("name"):
        logger.warning("Agent file %s has no name, skipped", source)
        return None

    return AgentDefinition(
        name=str(header["name"]).strip(),
        description=str(header.get("description") or "").strip(),
        prompt=match.group(2).strip(),
        model=str(header.get("model") or ""),
        tools=_parse_tools(header.get("tools")),
    )


class AgentRegistry:
    """Loads agent definitions once and resolves names to prompts."""

    def __init__(self, agents_dir: str | None = None):
        self._agents_dir = agents_dir or _DEFAULT_AGENTS_DIR
        self._agents: dict[str, AgentDefinition] = {}
        self._load_from_dir()

    def _load_from_dir(self):
        agents_path = Path(self._agents_dir)
        if not agents_path.exists():
            logger.warning("Agents directory not found: %s", self._agents_dir)
            return

        for md_file in sorted(agents_path.glob("*.md")):
            agent = parse_agent_file(md_file.read_text(encoding="utf-8"), md_file.name)
            if agent is None:
                continue
            self._agents[agent.name] = agent
            logger.debug("Loaded agent: %s from %s", agent.name, md_file.name)

        logger.info("Agent registry loaded %d agents from %s", len(self._agents), self._agents_dir)

    def register(self, agent: AgentDefinition):
        self._agents[agent.name] = agent

    def get(self, name: str) -> AgentDefinition:
        agent = self._agents.get(name)
        if agent is None:
            raise NotFoundError(resource="Agent", resource_id=name)
        return agent

    def list_agents(self) -> list[AgentDefinition]:
        return [self._agents[n] for n in sorted(self._agents)]

    def __contains__(self, name: str) -> bool:
        return name in self._agents

    @staticmethod
    def build_prompt(prompt: str, context: dict | None = None) -> str:
        """Prefix the task with a JSON context block when context is given."""
        if not context:
            return prompt
        context_json = json.dumps(context, indent=2, ensure_ascii=False, default=str)
        return f"CONTEXT:\n{context_json}\n\nTASK:\n{prompt}"

    def invoke(
        self,
        gateway,
        name: str,
        prompt: str,
        context: dict | None = None,
        on_progress=None,
        *,
        batch: bool = False,
        max_tokens: int | None = None,
        history: list | None = None,
    ) -> str:
        """
        Run one agent through the gateway and return its text.

        Args:
            gateway: ModelGateway (or anything with the same ``complete``).
            name: Agent name; unknown names raise NotFoundError.
            prompt: The task text.
            context: Optional dict serialised ahead of the task.
            on_progress: Optional callable(str) receiving progress lines.
            batch: Use the agent's batch model configuration.
            max_tokens: Override the configured token budget.
            history: Earlier conversation turns placed before the task.
        """
        agent = self.get(name)
        if on_progress:
            on_progress(f"Invoking {name}...")

        messages = list(history or [])
        messages.append({"role": "user", "content": self.build_prompt(prompt, context)})
        result = gateway.complete(
            name, agent.prompt, messages, batch=batch, max_tokens=max_tokens,
        )

        if on_progress:
            on_progress(f"{name} completed")
        return result["content"]
