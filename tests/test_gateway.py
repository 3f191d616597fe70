"""
Model gateway tests.

Covers:
    - Family detection and per-family request shaping
    - Error classification (auth / transient / other)
    - Retry with exponential backoff; auth errors never retried
    - Streaming: single-chunk fallback, no retry after first chunk
    - Local stub routing and cost accounting
"""

import pytest

from pacy.ai import gateway as gateway_module
from pacy.ai.gateway import (
    ANTHROPIC,
    GEMINI,
    LOCAL,
    OPENAI_CHAT,
    OPENAI_NEXT,
    OPENAI_REASONING,
    LLMProvider,
    ModelGateway,
    build_request,
    classify_error,
    family_for_model,
)
from pacy.ai.model_config import calculate_cost, get_batch_model_config, get_model_config
from pacy.core.exceptions import AuthError, TransientProviderError

SETTINGS = {"LLM_MAX_RETRIES": 3, "LLM_RETRY_BASE_DELAY": 1.0, "LLM_USE_LOCAL_STUB": False}
MESSAGES = [{"role": "user", "content": "Write the thing"}]


class FakeAPIError(Exception):
    def __init__(self, message, status_code):
        super().__init__(message)
        self.status_code = status_code


class ScriptedProvider(LLMProvider):
    """Provider that raises queued errors before answering."""

    def __init__(self, errors=None, content="ok", chunks=None):
        self.errors = list(errors or [])
        self.content = content
        self.chunks = chunks
        self.calls = []

    def _answer(self, params):
        return {"content": self.content, "input_tokens": 10, "output_tokens": 20,
                "model": params["model"]}

    def complete(self, params, **context):
        self.calls.append(("complete", params))
        if self.errors:
            raise self.errors.pop(0)
        return self._answer(params)

    def stream(self, params, on_chunk, **context):
        self.calls.append(("stream", params))
        for chunk in self.chunks or []:
            on_chunk(chunk)
        if self.errors:
            raise self.errors.pop(0)
        return self._answer(params)


def _gateway(provider, **settings):
    sleeps = []
    gw = ModelGateway({**SETTINGS, **settings}, providers={"anthropic": provider},
                      sleep=sleeps.append)
    return gw, sleeps


# ═════════════════════════════════════════════════════════════════════════════
# FAMILIES & REQUEST SHAPING
# ═════════════════════════════════════════════════════════════════════════════

class TestModelFamilies:
    @pytest.mark.parametrize("model,family", [
        ("claude-sonnet-4-5-20250929", ANTHROPIC),
        ("gpt-5-mini", OPENAI_NEXT),
        ("gpt-4o", OPENAI_CHAT),
        ("o1-preview", OPENAI_REASONING),
        ("o3-mini", OPENAI_REASONING),
        ("o4-mini", OPENAI_REASONING),
        ("gemini-2.5-pro", GEMINI),
        ("local-stub", LOCAL),
    ])
    def test_family_for_model(self, model, family):
        assert family_for_model(model) is family

    def test_anthropic_system_goes_to_parameter(self):
        params = build_request("claude-opus-4-5-20251101", "Be terse.", MESSAGES, max_tokens=100)
        assert params["system"] == "Be terse."
        assert params["messages"] == MESSAGES
        assert params["max_tokens"] == 100
        assert params["temperature"] == 0.7

    def test_gpt5_uses_completion_tokens_without_temperature(self):
        params = build_request("gpt-5", "sys", MESSAGES, max_tokens=500, temperature=0.2)
        assert params["max_completion_tokens"] == 500
        assert "max_tokens" not in params
        assert "temperature" not in params
        assert params["messages"][0] == {"role": "system", "content": "sys"}

    def test_reasoning_models_use_developer_role_and_default_budget(self):
        params = build_request("o3-mini", "sys", MESSAGES)
        assert params["messages"][0]["role"] == "developer"
        assert params["max_completion_tokens"] == 16384
        assert "temperature" not in params

    def test_gemini_system_instruction(self):
        params = build_request("gemini-2.5-flash", "sys", MESSAGES, max_tokens=256)
        assert params["system_instruction"] == "sys"
        assert params["max_output_tokens"] == 256
        assert all(m["role"] != "system" for m in params["messages"])

    def test_system_turns_are_folded_into_system_prompt(self):
        messages = [{"role": "system", "content": "extra rules"}] + MESSAGES
        params = build_request("claude-haiku-4-5-20251001", "base", messages)
        assert params["system"] == "base\n\nextra rules"
        assert params["messages"] == MESSAGES


# ═════════════════════════════════════════════════════════════════════════════
# ERROR CLASSIFICATION
# ═════════════════════════════════════════════════════════════════════════════

class TestClassifyError:
    def test_401_is_auth_and_names_credential(self):
        err = classify_error(FakeAPIError("bad key", 401), "anthropic")
        assert isinstance(err, AuthError)
        assert "ANTHROPIC_API_KEY" in str(err)

    @pytest.mark.parametrize("status", [429, 500, 503, 529])
    def test_rate_limit_and_5xx_are_transient(self, status):
        err = classify_error(FakeAPIError("busy", status), "openai")
        assert isinstance(err, TransientProviderError)
        assert err.status_code == status

    def test_timeout_message_is_transient(self):
        assert isinstance(classify_error(RuntimeError("ETIMEDOUT while reading")), TransientProviderError)

    def test_connection_error_is_transient(self):
        assert isinstance(classify_error(ConnectionError("reset")), TransientProviderError)

    def test_other_errors_pass_through(self):
        exc = FakeAPIError("bad request", 400)
        assert classify_error(exc) is exc


# ═════════════════════════════════════════════════════════════════════════════
# RETRY POLICY
# ═════════════════════════════════════════════════════════════════════════════

class TestRetry:
    def test_transient_errors_retry_with_exponential_backoff(self):
        provider = ScriptedProvider(errors=[FakeAPIError("overloaded", 529), FakeAPIError("rate", 429)])
        gw, sleeps = _gateway(provider)
        result = gw.complete("fact-checker", "sys", MESSAGES)
        assert result["content"] == "ok"
        assert result["provider"] == "anthropic"
        assert sleeps == [1.0, 2.0]
        assert len(provider.calls) == 3

    def test_gives_up_after_max_retries(self):
        provider = ScriptedProvider(errors=[FakeAPIError("down", 503)] * 5)
        gw, sleeps = _gateway(provider, LLM_MAX_RETRIES=2)
        with pytest.raises(TransientProviderError):
            gw.complete("fact-checker", "sys", MESSAGES)
        assert sleeps == [1.0, 2.0]
        assert len(provider.calls) == 3

    def test_auth_error_is_not_retried(self):
        provider = ScriptedProvider(errors=[FakeAPIError("invalid x-api-key", 401)])
        gw, sleeps = _gateway(provider)
        with pytest.raises(AuthError) as exc_info:
            gw.complete("fact-checker", "sys", MESSAGES)
        assert exc_info.value.provider == "anthropic"
        assert sleeps == []
        assert len(provider.calls) == 1

    def test_unclassified_error_is_raised_once(self):
        provider = ScriptedProvider(errors=[ValueError("schema mismatch")])
        gw, sleeps = _gateway(provider)
        with pytest.raises(ValueError):
            gw.complete("fact-checker", "sys", MESSAGES)
        assert sleeps == []

    def test_usage_and_cost_on_result(self):
        provider = ScriptedProvider()
        gw, _ = _gateway(provider)
        result = gw.complete("video-narrator", "sys", MESSAGES)
        usage = result["usage"]
        assert usage["input_tokens"] == 10
        assert usage["output_tokens"] == 20
        assert usage["total_tokens"] == 30
        assert usage["cost_usd"] == calculate_cost(result["model"], 10, 20)


# ═════════════════════════════════════════════════════════════════════════════
# STREAMING
# ═════════════════════════════════════════════════════════════════════════════

class TestStreaming:
    def test_stream_forwards_chunks(self):
        provider = ScriptedProvider(chunks=["Hel", "lo"], content="Hello")
        gw, _ = _gateway(provider)
        seen = []
        result = gw.stream("brief-interviewer", "sys", MESSAGES, seen.append)
        assert seen == ["Hel", "lo"]
        assert result["content"] == "Hello"

    def test_no_retry_after_first_chunk(self):
        provider = ScriptedProvider(chunks=["partial"], errors=[FakeAPIError("reset", 503)])
        gw, sleeps = _gateway(provider)
        with pytest.raises(TransientProviderError):
            gw.stream("brief-interviewer", "sys", MESSAGES, lambda _: None)
        assert sleeps == []
        assert len(provider.calls) == 1

    def test_retry_before_first_chunk(self):
        provider = ScriptedProvider(errors=[FakeAPIError("busy", 429)], content="done")
        gw, sleeps = _gateway(provider)
        result = gw.stream("brief-interviewer", "sys", MESSAGES, lambda _: None)
        assert result["content"] == "done"
        assert sleeps == [1.0]

    def test_non_streaming_family_emits_single_chunk(self, monkeypatch):
        monkeypatch.setattr(gateway_module, "get_model_config", lambda name: {
            "provider": "openai", "model": "o3-mini", "max_tokens": None,
        })
        provider = ScriptedProvider(content="whole answer")
        gw = ModelGateway(SETTINGS, providers={"openai": provider}, sleep=lambda s: None)
        seen = []
        gw.stream("content-architect", "sys", MESSAGES, seen.append)
        assert seen == ["whole answer"]
        kind, params = provider.calls[0]
        assert kind == "complete"
        assert params["messages"][0]["role"] == "developer"


# ═════════════════════════════════════════════════════════════════════════════
# ROUTING & CONFIG
# ═════════════════════════════════════════════════════════════════════════════

class TestRouting:
    def test_missing_provider_falls_back_to_local_stub(self):
        gw = ModelGateway({"LLM_USE_LOCAL_STUB": False})
        assert gw.available_providers == ["local"]
        result = gw.complete("fact-checker", "sys", MESSAGES)
        assert result["provider"] == "local"
        assert result["model"] == "local-stub"
        assert "FACT CHECK SUMMARY" in result["content"]

    def test_local_stub_flag_overrides_configured_provider(self):
        provider = ScriptedProvider()
        gw = ModelGateway({"LLM_USE_LOCAL_STUB": True}, providers={"anthropic": provider})
        result = gw.complete("fact-checker", "sys", MESSAGES)
        assert result["provider"] == "local"
        assert provider.calls == []

    def test_quick_completion_returns_text(self):
        gw = ModelGateway({"LLM_USE_LOCAL_STUB": True})
        assert gw.quick_completion("Say hello") == "Acknowledged."

    def test_api_key_registers_provider(self):
        gw = ModelGateway({"ANTHROPIC_API_KEY": "sk-test"})
        assert "anthropic" in gw.available_providers

    def test_batch_config_for_article_writer(self):
        assert get_batch_model_config("article-writer")["max_tokens"] == 4096
        assert get_batch_model_config("fact-checker") == get_model_config("fact-checker")

    def test_unknown_agent_uses_default(self):
        assert get_model_config("no-such-agent") == get_model_config("default")

    def test_calculate_cost(self):
        assert calculate_cost("claude-haiku-4-5-20251001", 1_000_000, 1_000_000) == pytest.approx(6.0)
        assert calculate_cost("unknown-model", 1000, 1000) == 0.0
