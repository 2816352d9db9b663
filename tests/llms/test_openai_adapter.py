from __future__ import annotations

import asyncio
import json
import logging

import httpx
import pytest

from conduit.llms.clients.adapters.openai import OpenAIClient
from conduit.llms.config import LLMConfig
from conduit.llms.errors import LLMServerError, LLMTimeoutError, LLMValidationError
from conduit.llms.types import ChatRequest, EmbeddingRequest, Message, ToolCall


def run_async(coro):
    return asyncio.run(coro)


def sse(*events) -> bytes:
    lines = [f"data: {json.dumps(e)}\n\n" for e in events]
    lines.append("data: [DONE]\n\n")
    return "".join(lines).encode()


class FakeOpenAI:
    """Records requests and replays queued httpx responses."""

    def __init__(self, responses: list[httpx.Response]) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=httpx.MockTransport(self.handler),
            base_url="https://api.test/v1",
        )

    @property
    def payloads(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests]


def completion(text: str = "hello", **extra) -> httpx.Response:
    body = {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "created": 1_700_000_000,
        "model": "gpt-4o-mini",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": text},
                "finish_reason": "stop",
            }
        ],
        "usage": {"prompt_tokens": 3, "completion_tokens": 1, "total_tokens": 4},
    }
    body.update(extra)
    return httpx.Response(200, json=body)


def make_client(fake: FakeOpenAI, **config) -> OpenAIClient:
    delays: list[float] = []

    async def sleep(delay: float) -> None:
        delays.append(delay)

    llm = OpenAIClient(config=LLMConfig(**config), http_client=fake.client(), sleep=sleep)
    llm.delays = delays  # type: ignore[attr-defined]
    return llm


def hi() -> list[Message]:
    return [Message(role="user", content="hi")]


def test_chat_sends_defaults_and_parses_response():
    fake = FakeOpenAI([completion("hello there")])
    llm = make_client(fake)

    resp = run_async(llm.chat(ChatRequest(messages=hi())))

    assert fake.requests[0].url.path == "/v1/chat/completions"
    assert fake.payloads[0] == {
        "messages": [{"role": "user", "content": "hi"}],
        "model": "gpt-4o-mini",
        "n": 1,
    }
    assert resp.text == "hello there"
    assert resp.finish_reason == "stop"
    assert resp.id == "chatcmpl-1"
    assert resp.usage.total_tokens == 4
    assert resp.request_id.startswith("openai-")


def test_reasoning_model_payload_end_to_end(caplog):
    caplog.set_level(logging.INFO, logger="conduit.llms")
    fake = FakeOpenAI([completion("ok", model="o3")])
    llm = make_client(fake)

    run_async(llm.chat(ChatRequest(messages=hi(), model="o3", temperature=0.2)))

    payload = fake.payloads[0]
    assert payload["temperature"] == 1
    assert payload["model"] == "o3"
    assert "parallel_tool_calls" not in payload
    assert any(
        r.levelno == logging.INFO and "Forcing temperature=1" in r.getMessage()
        for r in caplog.records
    )


def test_validation_failure_never_touches_transport():
    fake = FakeOpenAI([])
    llm = make_client(fake)

    with pytest.raises(LLMValidationError):
        run_async(llm.chat(ChatRequest(messages=[])))

    assert fake.requests == []


def test_configured_defaults_and_ignores_apply():
    fake = FakeOpenAI([completion()])
    llm = make_client(
        fake,
        default_model="gpt-4.1",
        parameter_defaults={"temperature": 0.4, "max_tokens": 64},
        ignored_params=("user",),
    )

    run_async(llm.chat(ChatRequest(messages=hi(), user="u-1", max_tokens=10)))

    payload = fake.payloads[0]
    assert payload["model"] == "gpt-4.1"
    assert payload["temperature"] == 0.4
    assert payload["max_tokens"] == 10
    assert "user" not in payload


def test_messages_and_tools_are_mapped_to_wire_shape():
    fake = FakeOpenAI(
        [
            httpx.Response(
                200,
                json={
                    "id": "chatcmpl-2",
                    "model": "gpt-4o-mini",
                    "choices": [
                        {
                            "index": 0,
                            "message": {
                                "role": "assistant",
                                "content": None,
                                "tool_calls": [
                                    {
                                        "id": "call_9",
                                        "type": "function",
                                        "function": {"name": "lookup", "arguments": '{"q":"x"}'},
                                    }
                                ],
                            },
                            "finish_reason": "tool_calls",
                        }
                    ],
                },
            )
        ]
    )
    llm = make_client(fake)
    tools = [{"type": "function", "function": {"name": "lookup", "parameters": {"type": "object"}}}]
    messages = [
        Message(role="system", content="be brief"),
        Message.build("user", "see", image_url="https://img.test/a.png"),
        Message.build("assistant", tool_calls=[ToolCall(id="call_1", name="lookup", arguments="{}")]),
        Message(role="tool", content="result", tool_call_id="call_1"),
    ]

    resp = run_async(
        llm.chat(ChatRequest(messages=messages, tools=tools, tool_choice="required"))
    )

    payload = fake.payloads[0]
    assert payload["messages"] == [
        {"role": "system", "content": "be brief"},
        {
            "role": "user",
            "content": [
                {"type": "text", "text": "see"},
                {"type": "image_url", "image_url": {"url": "https://img.test/a.png"}},
            ],
        },
        {
            "role": "assistant",
            "content": None,
            "tool_calls": [
                {"id": "call_1", "type": "function", "function": {"name": "lookup", "arguments": "{}"}}
            ],
        },
        {"role": "tool", "content": "result", "tool_call_id": "call_1"},
    ]
    assert payload["tools"] == tools
    assert payload["tool_choice"] == "required"
    assert resp.text is None
    assert resp.finish_reason == "tool_calls"
    assert resp.tool_calls[0].parsed_arguments() == {"q": "x"}


def test_streaming_reassembles_text_and_usage():
    fake = FakeOpenAI(
        [
            httpx.Response(
                200,
                headers={"content-type": "text/event-stream"},
                content=sse(
                    {"id": "c1", "object": "chat.completion.chunk", "created": 5, "model": "gpt-4o-mini",
                     "choices": [{"index": 0, "delta": {"role": "assistant", "content": "Hel"}}]},
                    {"id": "c1", "choices": [{"index": 0, "delta": {"content": "lo"}}]},
                    {"id": "c1", "choices": [{"index": 0, "delta": {}, "finish_reason": "stop"}]},
                    {"id": "c1", "choices": [],
                     "usage": {"prompt_tokens": 2, "completion_tokens": 2, "total_tokens": 4}},
                ),
            )
        ]
    )
    llm = make_client(fake)
    seen = []

    resp = run_async(llm.chat(ChatRequest(messages=hi()), on_delta=seen.append))

    payload = fake.payloads[0]
    assert payload["stream"] is True
    assert payload["stream_options"] == {"include_usage": True}
    assert [d.content for d in seen] == ["Hel", "lo", None, None]
    assert resp.text == "Hello"
    assert resp.finish_reason == "stop"
    assert resp.model == "gpt-4o-mini"
    assert resp.usage.total_tokens == 4


def test_streaming_tool_call_fragments():
    fake = FakeOpenAI(
        [
            httpx.Response(
                200,
                content=sse(
                    {"choices": [{"index": 0, "delta": {"tool_calls": [
                        {"index": 0, "id": "c1", "type": "function", "function": {"name": "f", "arguments": ""}}
                    ]}}]},
                    {"choices": [{"index": 0, "delta": {"tool_calls": [
                        {"index": 0, "function": {"arguments": '{"a":'}}
                    ]}}]},
                    {"choices": [{"index": 0, "delta": {"tool_calls": [
                        {"index": 0, "function": {"arguments": "1}"}}
                    ]}, "finish_reason": "tool_calls"}]},
                ),
            )
        ]
    )
    llm = make_client(fake)

    async def on_delta(delta):
        await asyncio.sleep(0)

    resp = run_async(llm.chat(ChatRequest(messages=hi()), on_delta=on_delta))

    assert resp.text is None
    assert [(c.id, c.name, c.arguments) for c in resp.tool_calls] == [("c1", "f", '{"a":1}')]


def test_server_errors_are_retried_with_backoff():
    fake = FakeOpenAI(
        [
            httpx.Response(500, json={"error": {"message": "oops"}}),
            httpx.Response(500, json={"error": {"message": "oops"}}),
            completion("finally"),
        ]
    )
    llm = make_client(fake, max_retries=2, backoff_base_s=0.5)

    resp = run_async(llm.chat(ChatRequest(messages=hi())))

    assert resp.text == "finally"
    assert len(fake.requests) == 3
    assert llm.delays == [0.5, 1.0]


def test_server_errors_exhaust_attempts():
    fake = FakeOpenAI([httpx.Response(500, text="down") for _ in range(3)])
    llm = make_client(fake, max_retries=2, backoff_base_s=0.5, api_key="sk-test")

    with pytest.raises(LLMServerError) as exc:
        run_async(llm.chat(ChatRequest(messages=hi())))

    assert llm.delays == [0.5, 1.0]
    assert "POST https://api.test/v1/chat/completions" in exc.value.diagnostic
    assert "sk-test" not in exc.value.diagnostic


def test_streaming_error_body_is_read_into_diagnostic():
    fake = FakeOpenAI([httpx.Response(503, json={"error": {"message": "overloaded"}})])
    llm = make_client(fake)

    with pytest.raises(LLMServerError) as exc:
        run_async(llm.chat(ChatRequest(messages=hi()), on_delta=lambda d: None))

    assert "overloaded" in exc.value.diagnostic


def test_stream_is_not_retried_after_deltas_reached_the_caller():
    class BrokenStream(httpx.AsyncByteStream):
        async def __aiter__(self):
            yield b'data: {"choices": [{"index": 0, "delta": {"content": "par"}}]}\n\n'
            raise httpx.ReadTimeout("stalled mid-stream")

    fake = FakeOpenAI([httpx.Response(200, stream=BrokenStream()), completion()])
    llm = make_client(fake, max_retries=3)
    seen = []

    with pytest.raises(LLMTimeoutError):
        run_async(llm.chat(ChatRequest(messages=hi()), on_delta=seen.append))

    assert [d.content for d in seen] == ["par"]
    assert len(fake.requests) == 1
    assert llm.delays == []


def test_embeddings_inject_dimensions():
    fake = FakeOpenAI(
        [
            httpx.Response(
                200,
                json={
                    "model": "text-embedding-3-large",
                    "data": [{"index": 0, "embedding": [0.1, 0.2]}],
                    "usage": {"prompt_tokens": 2, "total_tokens": 2},
                },
            )
        ]
    )
    llm = make_client(fake)

    resp = run_async(llm.embed(EmbeddingRequest(text="hello", model="text-embedding-3-large")))

    assert fake.requests[0].url.path == "/v1/embeddings"
    assert fake.payloads[0] == {"input": "hello", "model": "text-embedding-3-large", "dimensions": 3072}
    assert resp.embedding == [0.1, 0.2]
    assert resp.usage.prompt_tokens == 2


def test_ada_embeddings_omit_dimensions():
    fake = FakeOpenAI([httpx.Response(200, json={"data": [{"embedding": [1.0]}]})])
    llm = make_client(fake, embedding_model="text-embedding-ada-002")

    run_async(llm.embed(EmbeddingRequest(text="hello")))

    assert fake.payloads[0] == {"input": "hello", "model": "text-embedding-ada-002"}


class CallbackFailure(Exception):
    pass


def test_callback_exception_reaches_caller_unchanged():
    fake = FakeOpenAI(
        [httpx.Response(200, content=sse({"choices": [{"index": 0, "delta": {"content": "x"}}]}))]
    )
    llm = make_client(fake, max_retries=2)

    def on_delta(delta):
        raise CallbackFailure("caller bug")

    with pytest.raises(CallbackFailure, match="caller bug"):
        run_async(llm.chat(ChatRequest(messages=hi()), on_delta=on_delta))

    assert len(fake.requests) == 1
    assert llm.delays == []


def test_injected_client_without_base_url_uses_configured_base_url():
    fake = FakeOpenAI([completion(), completion()])
    bare = httpx.AsyncClient(transport=httpx.MockTransport(fake.handler))

    configured = OpenAIClient(
        config=LLMConfig(api_base_url="https://gateway.test/v1/"), http_client=bare
    )
    run_async(configured.chat(ChatRequest(messages=hi())))

    default = OpenAIClient(config=LLMConfig(), http_client=bare)
    run_async(default.chat(ChatRequest(messages=hi())))

    assert str(fake.requests[0].url) == "https://gateway.test/v1/chat/completions"
    assert str(fake.requests[1].url) == "https://api.openai.com/v1/chat/completions"


def test_injected_client_without_base_url_streams_to_configured_base_url():
    fake = FakeOpenAI(
        [httpx.Response(200, content=sse({"choices": [{"index": 0, "delta": {"content": "ok"}}]}))]
    )
    bare = httpx.AsyncClient(transport=httpx.MockTransport(fake.handler))
    llm = OpenAIClient(config=LLMConfig(api_base_url="https://gateway.test/v1"), http_client=bare)

    resp = run_async(llm.chat(ChatRequest(messages=hi()), on_delta=lambda d: None))

    assert resp.text == "ok"
    assert str(fake.requests[0].url) == "https://gateway.test/v1/chat/completions"
