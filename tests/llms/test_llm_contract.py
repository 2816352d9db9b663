from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, Mapping

import pytest
from pydantic import BaseModel

from conduit.llms import factory
from conduit.llms.clients import ChatCompletionsClientBase
from conduit.llms.clients.adapters.mistral import MistralAIClient
from conduit.llms.clients.adapters.openai import OpenAIClient, OpenAIResponsesClient
from conduit.llms.config import LLMConfig
from conduit.llms.errors import (
    LLMCapabilityError,
    LLMConfigurationError,
    LLMEmptyResponseError,
    LLMInvalidResponseError,
    LLMServiceUnavailableError,
)
from conduit.llms.factory import (
    available_llm_adapters,
    create_llm,
    create_llm_from_env,
    register_llm_adapter,
)
from conduit.llms.llm import LLM
from conduit.llms.observability import LLMLifecycleEvent
from conduit.llms.types import (
    ChatRequest,
    EmbeddingRequest,
    LLMCapabilities,
    Message,
)


TOOLS = [{"type": "function", "function": {"name": "lookup", "parameters": {"type": "object"}}}]


def run_async(coro):
    return asyncio.run(coro)


class Out(BaseModel):
    value: int


def completion(text: str | None = "ok") -> dict[str, Any]:
    return {
        "id": "cmpl-1",
        "model": "demo",
        "choices": [
            {"index": 0, "message": {"role": "assistant", "content": text}, "finish_reason": "stop"}
        ],
        "usage": {"prompt_tokens": 1, "completion_tokens": 1},
    }


class ScriptedTransport:
    """Replays queued bodies (or raises queued exceptions) per call."""

    def __init__(self, bodies: list[Any] | None = None, chunks: list[dict] | None = None) -> None:
        self.bodies = list(bodies or [])
        self.chunks = list(chunks or [])
        self.sent: list[tuple[str, dict]] = []

    async def send(self, path: str, payload: Mapping[str, Any]) -> dict[str, Any] | None:
        self.sent.append((path, dict(payload)))
        body = self.bodies.pop(0)
        if isinstance(body, Exception):
            raise body
        return body

    async def stream(self, path: str, payload: Mapping[str, Any]) -> AsyncIterator[dict[str, Any]]:
        self.sent.append((path, dict(payload)))
        for chunk in self.chunks:
            yield chunk


class DummyLLM(ChatCompletionsClientBase):
    def __init__(
        self,
        transport: ScriptedTransport,
        *,
        capabilities: LLMCapabilities | None = None,
        config: LLMConfig | None = None,
        observers=None,
    ) -> None:
        super().__init__(
            config=config or LLMConfig(default_model="demo"),
            observers=observers,
            transport=transport,
            sleep=self._no_sleep,
        )
        self._caps = capabilities

    @staticmethod
    async def _no_sleep(delay: float) -> None:
        return None

    @property
    def provider_id(self) -> str:
        return "dummy"

    @property
    def capabilities(self) -> LLMCapabilities:
        return self._caps or super().capabilities


def hi() -> list[Message]:
    return [Message(role="user", content="hi")]


def test_chat_returns_canonical_response_with_request_id():
    transport = ScriptedTransport([completion("hello")])
    llm = DummyLLM(transport)

    out = run_async(llm.chat(ChatRequest(messages=hi())))

    assert out.text == "hello"
    assert out.request_id.startswith("dummy-")
    assert transport.sent[0][0] == "/chat/completions"


def test_chat_fills_model_when_provider_omits_it():
    body = completion()
    del body["model"]
    llm = DummyLLM(ScriptedTransport([body]))

    out = run_async(llm.chat(ChatRequest(messages=hi(), model="other")))

    assert out.model == "other"


def test_structured_output_is_validated_from_text():
    transport = ScriptedTransport([completion('```json\n{"value": 7}\n```')])
    llm = DummyLLM(transport)

    out = run_async(llm.chat(ChatRequest(messages=hi()), response_model=Out))

    assert out.structured_response == {"value": 7}
    response_format = transport.sent[0][1]["response_format"]
    assert response_format["type"] == "json_schema"
    assert response_format["json_schema"]["name"] == "Out"


def test_structured_output_rejects_invalid_json():
    llm = DummyLLM(ScriptedTransport([completion("not json")]))

    with pytest.raises(LLMInvalidResponseError):
        run_async(llm.chat(ChatRequest(messages=hi()), response_model=Out))


def test_empty_result_is_none_by_default():
    llm = DummyLLM(ScriptedTransport([None, {}]))

    assert run_async(llm.chat(ChatRequest(messages=hi()))) is None
    assert run_async(llm.embed(EmbeddingRequest(text="a", model="e"))) is None


def test_empty_result_can_be_an_error():
    llm = DummyLLM(
        ScriptedTransport([None]),
        config=LLMConfig(default_model="demo", empty_response_as_error=True),
    )

    with pytest.raises(LLMEmptyResponseError):
        run_async(llm.chat(ChatRequest(messages=hi())))


def test_empty_stream_is_none():
    llm = DummyLLM(ScriptedTransport(chunks=[]))

    assert run_async(llm.chat(ChatRequest(messages=hi()), on_delta=lambda d: None)) is None


def test_capability_errors():
    llm = DummyLLM(
        ScriptedTransport(),
        capabilities=LLMCapabilities(chat=True, streaming=False, embeddings=False),
    )

    with pytest.raises(LLMCapabilityError):
        run_async(llm.embed(EmbeddingRequest(text="a", model="e")))
    with pytest.raises(LLMCapabilityError):
        run_async(llm.chat(ChatRequest(messages=hi()), on_delta=lambda d: None))
    with pytest.raises(LLMCapabilityError):
        run_async(llm.chat(ChatRequest(messages=hi()), response_model=Out))
    with pytest.raises(LLMCapabilityError, match="tool_calling"):
        run_async(llm.chat(ChatRequest(messages=hi(), tools=TOOLS)))


def test_sync_wrappers():
    llm = DummyLLM(
        ScriptedTransport([completion("sync"), {"data": [{"index": 0, "embedding": [0.5]}]}])
    )

    assert llm.chat_sync(ChatRequest(messages=hi())).text == "sync"
    assert llm.embed_sync(EmbeddingRequest(text="a", model="e")).embedding == [0.5]


def test_sync_wrapper_refuses_running_loop():
    llm = DummyLLM(ScriptedTransport([completion()]))

    async def inside_loop():
        return llm.chat_sync(ChatRequest(messages=hi()))

    with pytest.raises(RuntimeError, match="running event loop"):
        run_async(inside_loop())


def test_observers_receive_lifecycle_events():
    events: list[LLMLifecycleEvent] = []

    async def async_observer(event: LLMLifecycleEvent) -> None:
        events.append(event)

    def broken_observer(event: LLMLifecycleEvent) -> None:
        raise RuntimeError("observer bug")

    llm = DummyLLM(
        ScriptedTransport(
            [LLMServiceUnavailableError("down", status_code=503), completion("after retry")]
        ),
        config=LLMConfig(default_model="demo", max_retries=1),
        observers=[broken_observer, async_observer],
    )

    out = run_async(llm.chat(ChatRequest(messages=hi())))

    assert out.text == "after retry"
    assert [e.event_type for e in events] == ["request_start", "retry", "request_success"]
    assert {e.request_id for e in events} == {out.request_id}
    assert all(e.provider_id == "dummy" and e.model == "demo" for e in events)
    assert events[1].status_code == 503
    assert events[1].error_class == "LLMServiceUnavailableError"
    assert events[2].usage.prompt_tokens == 1


def test_observer_sees_request_error():
    events: list[LLMLifecycleEvent] = []
    llm = DummyLLM(
        ScriptedTransport([LLMServiceUnavailableError("down", status_code=503)]),
        observers=[events.append],
    )

    with pytest.raises(LLMServiceUnavailableError):
        run_async(llm.chat(ChatRequest(messages=hi())))

    assert [e.event_type for e in events] == ["request_start", "request_error"]


def test_create_llm_builtin_adapters():
    assert isinstance(create_llm("openai", config=LLMConfig()), OpenAIClient)
    assert isinstance(
        create_llm("openai", config=LLMConfig(use_responses_api=True)),
        OpenAIResponsesClient,
    )
    assert isinstance(create_llm("openai_responses", config=LLMConfig()), OpenAIResponsesClient)

    llm = create_llm(config=LLMConfig(adapter="MISTRAL"))
    assert isinstance(llm, MistralAIClient)
    assert llm.config.adapter == "mistral"


def test_create_llm_unknown_adapter():
    with pytest.raises(LLMConfigurationError, match="Unknown LLM adapter"):
        create_llm("nope", config=LLMConfig())


def test_register_custom_adapter(monkeypatch):
    monkeypatch.setattr(factory, "_REGISTRY", {})
    seen: dict[str, Any] = {}

    def build(**kwargs):
        seen.update(kwargs)
        return DummyLLM(ScriptedTransport(), config=kwargs["config"])

    register_llm_adapter("Dummy", build)

    assert "dummy" in available_llm_adapters()
    llm = create_llm("dummy", config=LLMConfig())
    assert isinstance(llm, DummyLLM)
    assert seen["config"].adapter == "dummy"

    with pytest.raises(LLMConfigurationError):
        register_llm_adapter("dummy", build)
    with pytest.raises(LLMConfigurationError):
        register_llm_adapter("openai", build)
    with pytest.raises(LLMConfigurationError):
        register_llm_adapter("  ", build)

    register_llm_adapter("openai", build, overwrite=True)
    assert isinstance(create_llm("openai", config=LLMConfig()), DummyLLM)


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("CONDUIT_LLM_ADAPTER", "mistral")
    monkeypatch.setenv("CONDUIT_LLM_MODEL", "mistral-small-latest")
    monkeypatch.setenv("CONDUIT_LLM_MAX_RETRIES", "2")
    monkeypatch.setenv("CONDUIT_LLM_IGNORED_PARAMS", "user, stop")
    monkeypatch.setenv("CONDUIT_EMBED_DIMENSIONS", "256")
    monkeypatch.setenv("CONDUIT_EMPTY_RESPONSE_AS_ERROR", "true")

    cfg = LLMConfig.from_env()

    assert cfg.adapter == "mistral"
    assert cfg.default_model == "mistral-small-latest"
    assert cfg.max_retries == 2
    assert cfg.ignored_params == ("user", "stop")
    assert cfg.default_dimensions == 256
    assert cfg.empty_response_as_error is True
    assert cfg.reasoning_model_prefixes == ("o1", "o3")


def test_from_env_on_base_class_uses_factory(monkeypatch):
    monkeypatch.setenv("CONDUIT_LLM_ADAPTER", "mistral")
    monkeypatch.delenv("CONDUIT_LLM_MODEL", raising=False)

    llm = LLM.from_env()
    direct = OpenAIClient.from_env()

    assert isinstance(llm, MistralAIClient)
    assert llm.parameters.default_for("model") == "mistral-large-latest"
    assert isinstance(direct, OpenAIClient)
    assert isinstance(create_llm_from_env(), MistralAIClient)
