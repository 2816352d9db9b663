from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.
"""

import inspect
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any, Awaitable, Callable, ClassVar, Iterable, cast

import httpx
from pydantic import BaseModel

from .classify import in_band_error
from .config import LLMConfig
from .errors import LLMCapabilityError, LLMEmptyResponseError
from .normalizer import PART_TYPES, TOOL_CHOICES, EmbeddingRules, RequestNormalizer
from .observability import LLMLifecycleEvent, LLMObserver, notify_observers
from .parameters import ChatParameters, ProviderConfig
from .retry import RetryEngine, RetryPolicy, SleepFn
from .streaming import StreamAggregator
from .structured import parse_and_validate_json, response_format_for
from .transport import HttpxTransport, Transport
from .types import (
    ROLES,
    ChatRequest,
    DeltaEvent,
    EmbeddingRequest,
    LLMCapabilities,
    LLMResponse,
    Usage,
)
from .utils import run_sync

logger = logging.getLogger(__name__)

DeltaCallback = Callable[[DeltaEvent], None | Awaitable[None]]


class LLM(ABC):
    """
    Base class for provider-agnostic LLM interactions.

    Public methods define one stable client contract:
      - chat/chat_sync (streaming when `on_delta` is given)
      - embed/embed_sync

    Concrete adapters declare their wire conventions through class attributes
    and the payload/parse hooks; normalization, retry, aggregation and
    observer dispatch live here.
    """

    PROVIDER_CONFIG: ClassVar[ProviderConfig] = ProviderConfig()
    DEFAULT_BASE_URL: ClassVar[str | None] = None
    CHAT_PATH: ClassVar[str] = "/chat/completions"
    EMBEDDINGS_PATH: ClassVar[str] = "/embeddings"
    DEFAULT_EMBEDDING_MODEL: ClassVar[str | None] = None
    EMBEDDING_RULES: ClassVar[EmbeddingRules] = EmbeddingRules()
    ALLOWED_ROLES: ClassVar[tuple[str, ...]] = ROLES
    SUPPORTED_PART_TYPES: ClassVar[frozenset[str]] = PART_TYPES
    ALLOWED_TOOL_CHOICES: ClassVar[frozenset[str]] = TOOL_CHOICES
    USES_RESPONSES_API: ClassVar[bool] = False
    IGNORED_PARAM_LOG_LEVEL: ClassVar[int] = logging.INFO

    def __init__(
        self,
        *,
        config: LLMConfig | None = None,
        observers: Iterable[LLMObserver] | None = None,
        transport: Transport | None = None,
        http_client: httpx.AsyncClient | None = None,
        sleep: SleepFn | None = None,
    ) -> None:
        """
        Create an adapter client.

        `transport` replaces the HTTP layer entirely; otherwise requests go
        through `http_client` (or a client created from the config). `sleep`
        is the backoff sleep, `asyncio.sleep` when not given.
        """
        self.config = config or LLMConfig.from_env()
        self._observers = list(observers or [])

        defaults = dict(self.config.parameter_defaults)
        if self.config.default_model:
            defaults["model"] = self.config.default_model
        provider_config = self.PROVIDER_CONFIG.with_overrides(
            defaults=defaults,
            ignored=self.config.ignored_params,
        )
        self.parameters = ChatParameters.from_provider_config(provider_config)

        self.normalizer = RequestNormalizer(
            self.parameters,
            provider_id=self.provider_id,
            allowed_roles=self.ALLOWED_ROLES,
            supported_part_types=self.SUPPORTED_PART_TYPES,
            allowed_tool_choices=self.ALLOWED_TOOL_CHOICES,
            use_responses_api=self.USES_RESPONSES_API,
            reasoning_model_prefixes=self.config.reasoning_model_prefixes,
            embedding_rules=self.EMBEDDING_RULES,
            default_embedding_model=self.config.embedding_model or self.DEFAULT_EMBEDDING_MODEL,
            default_dimensions=self.config.default_dimensions,
            ignored_log_level=self.IGNORED_PARAM_LOG_LEVEL,
        )

        self.retry = RetryEngine(
            RetryPolicy(
                max_attempts=self.config.max_retries,
                base_backoff_s=self.config.backoff_base_s,
                jitter_s=self.config.backoff_jitter_s,
            ),
            sleep=sleep,
            emit=self._emit_lifecycle_event,
        )

        self.transport: Transport = transport or HttpxTransport(
            http_client,
            base_url=self.config.api_base_url or self.DEFAULT_BASE_URL,
            api_key=self.config.api_key,
            timeout_s=self.config.timeout_s,
        )

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Stable provider id (e.g. 'openai', 'mistral')."""

    @property
    @abstractmethod
    def capabilities(self) -> LLMCapabilities:
        """Capability flags for the concrete adapter."""

    @classmethod
    def from_env(cls, *, observers: Iterable[LLMObserver] | None = None) -> "LLM":
        """
        Build an LLM client from environment configuration.

        If called on the abstract base class, this delegates to the adapter
        factory (`CONDUIT_LLM_ADAPTER`).
        """
        if cls is LLM:
            from .factory import create_llm_from_env

            return create_llm_from_env(observers=observers)

        return cls(config=LLMConfig.from_env(), observers=observers)

    async def chat(
        self,
        req: ChatRequest,
        *,
        on_delta: DeltaCallback | None = None,
        response_model: type[BaseModel] | None = None,
    ) -> LLMResponse | None:
        """
        Run one chat call and return the canonical response.

        With `on_delta` the call streams: every parsed delta is handed to the
        callback as it arrives and the returned response is reassembled from
        them. Returns None for an empty provider result unless the config
        treats that as an error.
        """
        self._ensure_capability("chat", self.capabilities.chat)
        if on_delta is not None:
            self._ensure_capability("streaming", self.capabilities.streaming)
        if req.tools:
            self._ensure_capability("tool_calling", self.capabilities.tool_calling)
        if response_model is not None:
            self._ensure_capability("structured_output", self.capabilities.structured_output)
            if req.response_format is None:
                req = replace(req, response_format=response_format_for(response_model))

        params = self.normalizer.normalize_chat(req)
        request_id = self._new_request_id()
        model = params["model"]

        if on_delta is None:
            response = await self._chat_once(params, request_id=request_id)
        else:
            response = await self._chat_streamed(params, on_delta, request_id=request_id)

        if response is None:
            return self._empty_result("chat", request_id)

        response = replace(response, request_id=request_id)
        if response.model is None:
            response = replace(response, model=model)

        if response_model is not None:
            parsed = parse_and_validate_json(response.text, response_model)
            response = replace(response, structured_response=parsed.model_dump(mode="json"))

        return response

    def chat_sync(
        self,
        req: ChatRequest,
        *,
        on_delta: DeltaCallback | None = None,
        response_model: type[BaseModel] | None = None,
    ) -> LLMResponse | None:
        """Synchronous wrapper for `chat`."""
        return run_sync(self.chat(req, on_delta=on_delta, response_model=response_model))

    async def embed(self, req: EmbeddingRequest) -> LLMResponse | None:
        """Run one embedding call; `LLMResponse.embeddings` carries the vectors."""
        self._ensure_capability("embeddings", self.capabilities.embeddings)

        params = self.normalizer.normalize_embedding(req)
        payload = self.build_embedding_payload(params)
        request_id = self._new_request_id()

        async def _call() -> LLMResponse | None:
            raw = await self.transport.send(self.EMBEDDINGS_PATH, payload)
            return self._parse_or_none(raw, self.parse_embedding_response)

        logger.debug(
            "Sending embedding request %s to %s (model=%s)",
            request_id,
            self.provider_id,
            params["model"],
        )
        response = await self.retry.execute(_call, request_id=request_id, model=params["model"])
        if response is None:
            return self._empty_result("embedding", request_id)
        return replace(response, request_id=request_id)

    def embed_sync(self, req: EmbeddingRequest) -> LLMResponse | None:
        """Synchronous wrapper for `embed`."""
        return run_sync(self.embed(req))

    async def _chat_once(self, params: dict[str, Any], *, request_id: str) -> LLMResponse | None:
        payload = self.build_chat_payload(params, stream=False)

        async def _call() -> LLMResponse | None:
            raw = await self.transport.send(self.CHAT_PATH, payload)
            return self._parse_or_none(raw, self.parse_chat_response)

        logger.debug(
            "Sending chat request %s to %s (model=%s)",
            request_id,
            self.provider_id,
            params["model"],
        )
        return await self.retry.execute(_call, request_id=request_id, model=params["model"])

    async def _chat_streamed(
        self,
        params: dict[str, Any],
        on_delta: DeltaCallback,
        *,
        request_id: str,
    ) -> LLMResponse | None:
        payload = self.build_chat_payload(params, stream=True)
        emitted = False

        async def _call() -> LLMResponse | None:
            nonlocal emitted
            aggregator = StreamAggregator()
            async for chunk in self.transport.stream(self.CHAT_PATH, payload):
                error = in_band_error(chunk)
                if error is not None:
                    raise error

                delta = self.parse_delta(chunk)
                if delta is None:
                    continue

                aggregator.add(delta)
                emitted = True
                result = on_delta(delta)
                if inspect.isawaitable(result):
                    await cast(Awaitable[Any], result)
            return aggregator.finalize()

        logger.debug(
            "Streaming chat request %s to %s (model=%s)",
            request_id,
            self.provider_id,
            params["model"],
        )
        # Once a delta reached the caller a retry would replay it.
        return await self.retry.execute(
            _call,
            request_id=request_id,
            model=params["model"],
            can_retry=lambda: not emitted,
        )

    def _parse_or_none(
        self,
        raw: dict[str, Any] | None,
        parse: Callable[[dict[str, Any]], LLMResponse],
    ) -> LLMResponse | None:
        if not raw:
            return None
        error = in_band_error(raw)
        if error is not None:
            raise error
        return parse(raw)

    def _empty_result(self, operation: str, request_id: str) -> None:
        if self.config.empty_response_as_error:
            raise LLMEmptyResponseError(
                f"Provider '{self.provider_id}' returned no {operation} response "
                f"for request {request_id}"
            )
        logger.info(
            "Provider %s returned no %s response for request %s",
            self.provider_id,
            operation,
            request_id,
        )
        return None

    def _ensure_capability(self, capability: str, enabled: bool) -> None:
        if not enabled:
            raise LLMCapabilityError(
                f"Provider '{self.provider_id}' does not support capability '{capability}'"
            )

    def _new_request_id(self) -> str:
        return f"{self.provider_id}-{uuid.uuid4().hex}"

    async def _emit_lifecycle_event(
        self,
        *,
        event_type: str,
        request_id: str,
        model: str | None,
        attempt: int | None = None,
        latency_ms: float | None = None,
        usage: Usage | None = None,
        error: Exception | None = None,
    ) -> None:
        """Emit one lifecycle event to observers, swallowing observer failures."""
        if not self._observers:
            return

        event = LLMLifecycleEvent(
            event_type=cast(Any, event_type),
            request_id=request_id,
            provider_id=self.provider_id,
            model=model,
            attempt=attempt,
            latency_ms=latency_ms,
            usage=usage,
            error_class=type(error).__name__ if error is not None else None,
            error_message=str(error) if error is not None else None,
            status_code=getattr(error, "status_code", None),
        )
        await notify_observers(self._observers, event)

    def build_embedding_payload(self, params: dict[str, Any]) -> dict[str, Any]:
        """OpenAI-compatible embedding payload; adapters override as needed."""
        return dict(params)

    def parse_embedding_response(self, raw: dict[str, Any]) -> LLMResponse:
        """Parse an OpenAI-compatible `{"data": [{"embedding": [...]}]}` body."""
        from .clients.shared.normalization import extract_embeddings, extract_usage

        model = raw.get("model")
        return LLMResponse(
            model=model if isinstance(model, str) else None,
            embeddings=extract_embeddings(raw),
            usage=extract_usage(raw),
            raw=raw,
        )

    @abstractmethod
    def build_chat_payload(self, params: dict[str, Any], *, stream: bool) -> dict[str, Any]:
        """Provider wire payload for normalized chat parameters."""

    @abstractmethod
    def parse_chat_response(self, raw: dict[str, Any]) -> LLMResponse:
        """Canonical response from a provider chat body."""

    @abstractmethod
    def parse_delta(self, chunk: dict[str, Any]) -> DeltaEvent | None:
        """One streamed event as a `DeltaEvent`; None for events to skip."""
