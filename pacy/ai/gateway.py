"""
Pacy Training Content Generator
Model Gateway.

Provider-agnostic completion interface with:
    - Multi-provider support (Anthropic Claude, OpenAI, Gemini, local stub)
    - Per-model-family request shaping (token parameter name, temperature
      support, system-instruction placement, streaming support)
    - Retry with exponential backoff for transient errors only
    - Immediate failure on authentication errors
    - Token & cost accounting on every result

Usage:
    from pacy.ai.gateway import ModelGateway
    gw = ModelGateway()
    result = gw.complete("fact-checker", system_prompt, [{"role": "user", "content": "..."}])
    result["content"], result["usage"]["total_tokens"]
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass

from pacy.ai.model_config import (
    calculate_cost,
    get_batch_model_config,
    get_model_config,
)
from pacy.core.exceptions import AuthError, TransientProviderError

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7
REASONING_DEFAULT_MAX_TOKENS = 16384
LOCAL_STUB_MODEL = "local-stub"

_CREDENTIAL_ENV = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "gemini": "GEMINI_API_KEY",
}


# ── Model families ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ModelFamily:
    """Request-shape contract shared by a group of model ids."""
    name: str
    token_param: str
    supports_temperature: bool
    system_role: str          # "system_param" | "system" | "developer" | "system_instruction"
    supports_streaming: bool


ANTHROPIC = ModelFamily("anthropic", "max_tokens", True, "system_param", True)
OPENAI_CHAT = ModelFamily("openai-chat", "max_tokens", True, "system", True)
OPENAI_NEXT = ModelFamily("openai-next", "max_completion_tokens", False, "system", True)
OPENAI_REASONING = ModelFamily("openai-reasoning", "max_completion_tokens", False, "developer", False)
GEMINI = ModelFamily("gemini", "max_output_tokens", True, "system_instruction", True)
LOCAL = ModelFamily("local", "max_tokens", True, "system", True)

# Ordered: first matching prefix wins
_FAMILY_PREFIXES = (
    ("claude", ANTHROPIC),
    ("gpt-5", OPENAI_NEXT),
    ("gpt-", OPENAI_CHAT),
    ("o1", OPENAI_REASONING),
    ("o3", OPENAI_REASONING),
    ("o4", OPENAI_REASONING),
    ("gemini", GEMINI),
)


def family_for_model(model: str) -> ModelFamily:
    for prefix, family in _FAMILY_PREFIXES:
        if model.startswith(prefix):
            return family
    return LOCAL


def build_request(
    model: str,
    system_prompt: str,
    messages: list,
    *,
    max_tokens: int | None = None,
    temperature: float | None = None,
) -> dict:
    """
    Shape provider kwargs for ``model`` according to its family.

    System-role turns inside ``messages`` are folded into the system prompt
    so every family receives exactly one system instruction.

    Returns:
        dict ready to be passed to the provider (``model``, ``messages`` and
        the family's token/temperature/system keys).
    """
    family = family_for_model(model)

    system_parts = [system_prompt] if system_prompt else []
    turns = []
    for m in messages:
        if m["role"] == "system":
            system_parts.append(m["content"])
        else:
            turns.append({"role": m["role"], "content": m["content"]})
    system_text = "\n\n".join(p for p in system_parts if p)

    if max_tokens is None and family is OPENAI_REASONING:
        max_tokens = REASONING_DEFAULT_MAX_TOKENS

    params = {"model": model}
    if family.system_role == "system_param":
        if system_text:
            params["system"] = system_text
        params["messages"] = turns
    elif family.system_role == "system_instruction":
        if system_text:
            params["system_instruction"] = system_text
        params["messages"] = turns
    else:
        prefix = [{"role": family.system_role, "content": system_text}] if system_text else []
        params["messages"] = prefix + turns

    params[family.token_param] = max_tokens or 4096
    if family.supports_temperature:
        params["temperature"] = DEFAULT_TEMPERATURE if temperature is None else temperature
    return params


# ── Error classification ─────────────────────────────────────────────────────

_AUTH_HINTS = ("api key", "api_key", "authentication", "unauthorized", "permission denied")
_TRANSIENT_HINTS = (
    "rate_limit", "rate limit", "too many requests", "overloaded",
    "timeout", "timed out", "etimedout", "econnreset", "connection reset",
)


def _status_of(exc) -> int | None:
    for attr in ("status_code", "status", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def classify_error(exc: Exception, provider: str = "") -> Exception:
    """
    Map a provider/SDK exception onto the gateway's error taxonomy.

    Returns an ``AuthError``, a ``TransientProviderError`` or ``exc`` itself
    for anything else.
    """
    if isinstance(exc, (AuthError, TransientProviderError)):
        return exc

    status = _status_of(exc)
    message = str(exc)
    lower = message.lower()

    if status in (401, 403) or any(h in lower for h in _AUTH_HINTS):
        env_var = _CREDENTIAL_ENV.get(provider, "provider API key")
        return AuthError(
            f"API authentication failed: {message}. Please check your {env_var}.",
            provider=provider,
        )

    if status is not None and (status == 429 or status >= 500):
        return TransientProviderError(message, status_code=status)
    if isinstance(exc, (TimeoutError, ConnectionError)):
        return TransientProviderError(message, status_code=status)
    name = type(exc).__name__
    if "Timeout" in name or "Connection" in name or "RateLimit" in name:
        return TransientProviderError(message, status_code=status)
    if any(h in lower for h in _TRANSIENT_HINTS):
        return TransientProviderError(message, status_code=status)
    return exc


# ── Provider Abstract Base ────────────────────────────────────────────────────

class LLMProvider(ABC):
    """Abstract interface for model providers.

    ``params`` is the output of :func:`build_request`.  Both methods return
    ``{content, input_tokens, output_tokens, model}``.
    """

    @abstractmethod
    def complete(self, params: dict, **context) -> dict:
        ...

    @abstractmethod
    def stream(self, params: dict, on_chunk, **context) -> dict:
        ...


# ── Anthropic Provider ────────────────────────────────────────────────────────

class AnthropicProvider(LLMProvider):
    """Claude API (Anthropic) provider."""

    def __init__(self, api_key: str, timeout: float = 120.0):
        self.api_key = api_key
        self.timeout = timeout
        self._client = None

    def _get_client(self):
        if self._client is None:
            import anthropic
            # SDK-level retries are disabled; the gateway owns the retry policy
            self._client = anthropic.Anthropic(
                api_key=self.api_key, timeout=self.timeout, max_retries=0,
            )
        return self._client

    def complete(self, params: dict, **context) -> dict:
        response = self._get_client().messages.create(**params)
        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        return {
            "content": text,
            "input_tokens": response.usage.input_tokens,
            "output_tokens": response.usage.output_tokens,
            "model": getattr(response, "model", params["model"]),
        }

    def stream(self, params: dict, on_chunk, **context) -> dict:
        parts = []
        with self._get_client().messages.stream(**params) as stream:
            for text in stream.text_stream:
                parts.append(text)
                on_chunk(text)
            final = stream.get_final_message()
        return {
            "content": "".join(parts),
            "input_tokens": final.usage.input_tokens,
            "output_tokens": final.usage.output_tokens,
            "model": getattr(final, "model", params["model"]),
        }


# ── OpenAI Provider ───────────────────────────────────────────────────────────

class OpenAIProvider(LLMProvider):
    """OpenAI chat-completions provider (GPT-4/5 and o-series reasoning models)."""

    def __init__(self, api_key: str, timeout: float = 120.0):
        self.api_key = api_key
        self.timeout = timeout
        self._client = None

    def _get_client(self):
        if self._client is None:
            import openai
            self._client = openai.OpenAI(
                api_key=self.api_key, timeout=self.timeout, max_retries=0,
            )
        return self._client

    def complete(self, params: dict, **context) -> dict:
        response = self._get_client().chat.completions.create(**params)
        choice = response.choices[0]
        usage = response.usage
        return {
            "content": choice.message.content or "",
            "input_tokens": usage.prompt_tokens if usage else 0,
            "output_tokens": usage.completion_tokens if usage else 0,
            "model": response.model or params["model"],
        }

    def stream(self, params: dict, on_chunk, **context) -> dict:
        response = self._get_client().chat.completions.create(
            **params, stream=True, stream_options={"include_usage": True},
        )
        parts = []
        input_tokens = output_tokens = 0
        model = params["model"]
        for chunk in response:
            if chunk.choices:
                delta = chunk.choices[0].delta.content
                if delta:
                    parts.append(delta)
                    on_chunk(delta)
            if getattr(chunk, "usage", None):
                input_tokens = chunk.usage.prompt_tokens
                output_tokens = chunk.usage.completion_tokens
            model = getattr(chunk, "model", None) or model
        return {
            "content": "".join(parts),
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "model": model,
        }


# ── Google Gemini Provider ───────────────────────────────────────────────────

class GeminiProvider(LLMProvider):
    """Google Gemini API provider (google-genai SDK)."""

    def __init__(self, api_key: str, timeout: float = 120.0):
        self.api_key = api_key
        self.timeout = timeout
        self._client = None

    def _get_client(self):
        if self._client is None:
            from google import genai
            from google.genai import types
            self._client = genai.Client(
                api_key=self.api_key,
                http_options=types.HttpOptions(timeout=int(self.timeout * 1000)),
            )
        return self._client

    @staticmethod
    def _request(params: dict) -> tuple[list, object]:
        from google.genai import types

        contents = []
        for m in params["messages"]:
            # Gemini uses "user" and "model" roles
            role = "model" if m["role"] == "assistant" else "user"
            contents.append(types.Content(role=role, parts=[types.Part(text=m["content"])]))

        config = types.GenerateContentConfig(
            temperature=params.get("temperature"),
            max_output_tokens=params.get("max_output_tokens"),
        )
        if params.get("system_instruction"):
            config.system_instruction = params["system_instruction"]
        return contents, config

    @staticmethod
    def _usage(metadata) -> tuple[int, int]:
        prompt_tokens = getattr(metadata, "prompt_token_count", 0) or 0
        completion_tokens = getattr(metadata, "candidates_token_count", 0) or 0
        return prompt_tokens, completion_tokens

    def complete(self, params: dict, **context) -> dict:
        contents, config = self._request(params)
        response = self._get_client().models.generate_content(
            model=params["model"], contents=contents, config=config,
        )
        input_tokens, output_tokens = self._usage(response.usage_metadata)
        return {
            "content": response.text or "",
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "model": params["model"],
        }

    def stream(self, params: dict, on_chunk, **context) -> dict:
        contents, config = self._request(params)
        parts = []
        metadata = None
        for chunk in self._get_client().models.generate_content_stream(
            model=params["model"], contents=contents, config=config,
        ):
            if chunk.text:
                parts.append(chunk.text)
                on_chunk(chunk.text)
            metadata = chunk.usage_metadata or metadata
        input_tokens, output_tokens = self._usage(metadata)
        return {
            "content": "".join(parts),
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "model": params["model"],
        }


# ── Local Stub Provider (for dev/test without API keys) ──────────────────────

class LocalStubProvider(LLMProvider):
    """
    Local stub that returns deterministic, well-formed responses so the whole
    workflow can be exercised without an API key.
    """

    def complete(self, params: dict, **context) -> dict:
        user_msg = ""
        for m in reversed(params.get("messages", [])):
            if m["role"] == "user":
                user_msg = m["content"]
                break
        content = self._generate_stub_response(context.get("agent_name", ""), user_msg)
        return {
            "content": content,
            "input_tokens": len(user_msg.split()) * 2,  # rough estimate
            "output_tokens": len(content.split()) * 2,
            "model": LOCAL_STUB_MODEL,
        }

    def stream(self, params: dict, on_chunk, **context) -> dict:
        result = self.complete(params, **context)
        words = result["content"].split(" ")
        for i in range(0, len(words), 8):
            on_chunk(" ".join(words[i:i + 8]) + (" " if i + 8 < len(words) else ""))
        return result

    @staticmethod
    def _generate_stub_response(agent_name: str, user_msg: str) -> str:
        from pacy.ai import stub_responses
        return stub_responses.respond(agent_name, user_msg)


# ── Model Gateway (Main Interface) ───────────────────────────────────────────

class ModelGateway:
    """
    Central gateway for all model calls.

    Usage:
        gw = ModelGateway(app.config)
        result = gw.complete("article-writer", system_prompt, messages)
        result = gw.stream("brief-interviewer", system_prompt, messages, on_chunk=print)
    """

    PROVIDER_CLASSES = {
        "anthropic": AnthropicProvider,
        "openai": OpenAIProvider,
        "gemini": GeminiProvider,
    }

    def __init__(self, settings=None, *, providers: dict | None = None, sleep=None):
        """
        Args:
            settings: Mapping with LLM_* and *_API_KEY keys (usually app.config).
            providers: Explicit provider instances by name (overrides settings).
            sleep: Callable(seconds) used between retries (tests inject a recorder).
        """
        settings = settings or {}
        self.max_retries = int(settings.get("LLM_MAX_RETRIES", 3))
        self.base_delay = float(settings.get("LLM_RETRY_BASE_DELAY", 1.0))
        self.timeout = float(settings.get("LLM_TIMEOUT_SECONDS", 120))
        self.use_local_stub = bool(settings.get("LLM_USE_LOCAL_STUB", False))
        self.sleep = sleep or time.sleep

        self._providers: dict[str, LLMProvider] = {"local": LocalStubProvider()}
        if providers is not None:
            self._providers.update(providers)
        else:
            self._init_providers(settings)

    def _init_providers(self, settings):
        """Register real providers whose API keys are configured."""
        for name, cls in self.PROVIDER_CLASSES.items():
            api_key = settings.get(_CREDENTIAL_ENV[name], "")
            if api_key:
                self._providers[name] = cls(api_key, timeout=self.timeout)

    @property
    def available_providers(self) -> list[str]:
        return sorted(self._providers)

    def _resolve(self, agent_name: str, batch: bool) -> tuple[LLMProvider, str, str, dict]:
        """Return (provider, provider_name, model, config) for an agent."""
        config = get_batch_model_config(agent_name) if batch else get_model_config(agent_name)
        provider_name = config["provider"]

        if self.use_local_stub or provider_name not in self._providers:
            if not self.use_local_stub:
                logger.warning(
                    "Provider '%s' not available (no API key?). Falling back to local stub for agent '%s'.",
                    provider_name, agent_name,
                )
            return self._providers["local"], "local", LOCAL_STUB_MODEL, config
        return self._providers[provider_name], provider_name, config["model"], config

    def _call_with_retry(self, call, provider_name: str, agent_name: str, can_retry=None):
        """
        Run ``call`` retrying transient failures with exponential backoff.

        Delay before retry n (0-based) is ``base_delay * 2**n``.  Auth errors
        and unclassified errors are raised on first occurrence.
        """
        attempt = 0
        while True:
            try:
                return call()
            except Exception as exc:
                err = classify_error(exc, provider_name)
                if isinstance(err, AuthError):
                    logger.error("Authentication failed for %s (agent=%s)", provider_name, agent_name)
                    if err is exc:
                        raise
                    raise err from exc
                if not isinstance(err, TransientProviderError):
                    raise
                if attempt >= self.max_retries or (can_retry is not None and not can_retry()):
                    logger.error(
                        "Model call failed after %d attempt(s) (agent=%s): %s",
                        attempt + 1, agent_name, err,
                    )
                    if err is exc:
                        raise
                    raise err from exc

                delay = self.base_delay * (2 ** attempt)
                logger.warning(
                    "Transient error from %s (agent=%s), attempt %d/%d, retrying in %.1fs: %s",
                    provider_name, agent_name, attempt + 1, self.max_retries + 1, delay, err,
                )
                self.sleep(delay)
                attempt += 1

    def _finish(self, raw: dict, provider_name: str, agent_name: str, started: float) -> dict:
        latency_ms = int((time.time() - started) * 1000)
        input_tokens = raw.get("input_tokens", 0) or 0
        output_tokens = raw.get("output_tokens", 0) or 0
        cost = calculate_cost(raw["model"], input_tokens, output_tokens)
        logger.info(
            "Model call ok: agent=%s provider=%s model=%s tokens=%d/%d latency=%dms",
            agent_name, provider_name, raw["model"], input_tokens, output_tokens, latency_ms,
        )
        return {
            "content": raw["content"],
            "model": raw["model"],
            "provider": provider_name,
            "usage": {
                "input_tokens": input_tokens,
                "output_tokens": output_tokens,
                "total_tokens": input_tokens + output_tokens,
                "cost_usd": cost,
            },
            "latency_ms": latency_ms,
        }

    def complete(
        self,
        agent_name: str,
        system_prompt: str,
        messages: list,
        *,
        batch: bool = False,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> dict:
        """
        Send a non-streaming completion request for ``agent_name``.

        Returns:
            dict: {content, model, provider, usage{input_tokens, output_tokens,
                   total_tokens, cost_usd}, latency_ms}
        """
        provider, provider_name, model, config = self._resolve(agent_name, batch)
        params = build_request(
            model, system_prompt, messages,
            max_tokens=max_tokens or config.get("max_tokens"),
            temperature=temperature,
        )
        started = time.time()
        raw = self._call_with_retry(
            lambda: provider.complete(params, agent_name=agent_name),
            provider_name, agent_name,
        )
        return self._finish(raw, provider_name, agent_name, started)

    def stream(
        self,
        agent_name: str,
        system_prompt: str,
        messages: list,
        on_chunk,
        *,
        batch: bool = False,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> dict:
        """
        Streaming variant of :meth:`complete`; calls ``on_chunk(text)`` per delta.

        Families without streaming support make one non-streaming call and
        emit the full text as a single chunk.  A failure after the first
        chunk has been emitted is not retried.
        """
        provider, provider_name, model, config = self._resolve(agent_name, batch)
        if not family_for_model(model).supports_streaming:
            result = self.complete(
                agent_name, system_prompt, messages,
                batch=batch, temperature=temperature, max_tokens=max_tokens,
            )
            if result["content"]:
                on_chunk(result["content"])
            return result

        params = build_request(
            model, system_prompt, messages,
            max_tokens=max_tokens or config.get("max_tokens"),
            temperature=temperature,
        )
        emitted = []

        def _emit(text):
            emitted.append(text)
            on_chunk(text)

        started = time.time()
        raw = self._call_with_retry(
            lambda: provider.stream(params, _emit, agent_name=agent_name),
            provider_name, agent_name,
            can_retry=lambda: not emitted,
        )
        return self._finish(raw, provider_name, agent_name, started)

    def quick_completion(self, prompt: str, agent_name: str = "default") -> str:
        """One-shot user prompt without a system prompt; returns text only."""
        result = self.complete(agent_name, "", [{"role": "user", "content": prompt}])
        return result["content"]
