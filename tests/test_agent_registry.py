"""
Agent registry tests.

Covers:
    - Header parsing (tools as string/list, missing header, missing name)
    - Loading the bundled agent definitions
    - invoke(): context block, history, batch flag, progress lines
    - GET /api/v1/workflow/agents
"""

import pytest

from pacy.ai.agent_registry import AgentDefinition, AgentRegistry, parse_agent_file
from pacy.core.exceptions import NotFoundError

BUNDLED = {
    "article-writer", "assessment-designer", "brief-analyst", "brief-interviewer",
    "company-researcher", "content-architect", "fact-checker", "hist-compliance-editor",
    "instructional-designer", "research-director", "source-analyst", "topic-expert",
    "video-narrator",
}


class RecordingGateway:
    def __init__(self, reply="done"):
        self.reply = reply
        self.calls = []

    def complete(self, agent_name, system_prompt, messages, **kwargs):
        self.calls.append({"agent": agent_name, "system": system_prompt,
                           "messages": messages, **kwargs})
        return {"content": self.reply}


class TestParseAgentFile:
    def test_header_and_body(self):
        agent = parse_agent_file(
            "---\nname: tester\ndescription: Tests things\nmodel: fast\ntools: Read, WebSearch\n---\nYou test.\n",
        )
        assert agent.name == "tester"
        assert agent.description == "Tests things"
        assert agent.tools == ["Read", "WebSearch"]
        assert agent.prompt == "You test."

    def test_tools_as_yaml_list(self):
        agent = parse_agent_file("---\nname: x\ntools:\n  - Read\n  - Write\n---\nBody\n")
        assert agent.tools == ["Read", "Write"]

    def test_missing_header_skipped(self):
        assert parse_agent_file("You are an agent without a header.") is None

    def test_missing_name_skipped(self):
        assert parse_agent_file("---\ndescription: nameless\n---\nBody\n") is None

    def test_invalid_yaml_skipped(self):
        assert parse_agent_file("---\nname: [unclosed\n---\nBody\n") is None


class TestAgentRegistry:
    def test_loads_bundled_agents(self):
        registry = AgentRegistry()
        names = {a.name for a in registry.list_agents()}
        assert names == BUNDLED
        assert "fact-checker" in registry

    def test_directory_loading_skips_malformed(self, tmp_path):
        (tmp_path / "good.md").write_text("---\nname: good\n---\nPrompt\n", encoding="utf-8")
        (tmp_path / "bad.md").write_text("no header", encoding="utf-8")
        registry = AgentRegistry(str(tmp_path))
        assert [a.name for a in registry.list_agents()] == ["good"]

    def test_missing_directory_is_empty(self, tmp_path):
        assert AgentRegistry(str(tmp_path / "nope")).list_agents() == []

    def test_unknown_agent(self):
        with pytest.raises(NotFoundError):
            AgentRegistry().get("ghost-writer")

    def test_build_prompt(self):
        assert AgentRegistry.build_prompt("Do it") == "Do it"
        prompt = AgentRegistry.build_prompt("Do it", {"topic": "Safety"})
        assert prompt.startswith("CONTEXT:\n{")
        assert prompt.endswith("TASK:\nDo it")
        assert '"topic": "Safety"' in prompt


class TestInvoke:
    def test_invoke_passes_system_prompt_context_and_history(self, tmp_path):
        registry = AgentRegistry(str(tmp_path))
        registry.register(AgentDefinition(name="tester", prompt="You test."))
        gw = RecordingGateway("result text")
        progress = []
        history = [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}]

        text = registry.invoke(gw, "tester", "Check", {"k": 1}, progress.append,
                               batch=True, max_tokens=50, history=history)

        assert text == "result text"
        call = gw.calls[0]
        assert call["system"] == "You test."
        assert call["batch"] is True
        assert call["max_tokens"] == 50
        assert call["messages"][:2] == history
        assert call["messages"][-1]["content"].startswith("CONTEXT:")
        assert progress == ["Invoking tester...", "tester completed"]
        assert len(history) == 2

    def test_invoke_unknown_agent_makes_no_call(self, tmp_path):
        gw = RecordingGateway()
        with pytest.raises(NotFoundError):
            AgentRegistry(str(tmp_path)).invoke(gw, "ghost", "x")
        assert gw.calls == []


class TestAgentsEndpoint:
    def test_list_agents(self, client):
        res = client.get("/api/v1/workflow/agents")
        assert res.status_code == 200
        data = res.get_json()
        assert data["count"] == len(BUNDLED)
        by_name = {a["name"]: a for a in data["agents"]}
        assert by_name["article-writer"]["max_tokens"] == 6000
        assert "prompt_preview" in by_name["fact-checker"]
