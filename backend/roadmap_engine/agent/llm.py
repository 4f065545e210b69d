"""LLM gateway: chat model construction and JSON calls with bounded retries."""

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Protocol, TypeVar

from langchain_core.messages import BaseMessage, HumanMessage
from langchain_openai import ChatOpenAI
from pydantic import BaseModel, ValidationError

from roadmap_engine.agent.llm_json import LLMJSONError, parse_json_object
from roadmap_engine.core.config import Settings, get_settings
from roadmap_engine.core.errors import GenerationError
from roadmap_engine.core.logging import get_logger

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

JSON_ONLY_REMINDER = (
    "Important: respond with a single valid JSON object only. "
    "Do not add explanations or any text outside the JSON."
)


# ============================================================================
# Model capabilities
# ============================================================================


@dataclass(frozen=True)
class ModelCapabilities:
    """Request-shape differences between chat models.

    Reasoning models reject a custom temperature and take their output budget
    as ``max_completion_tokens``; everything else accepts both classic knobs.
    """

    supports_temperature: bool = True
    token_param: str = "max_tokens"


DEFAULT_CAPABILITIES = ModelCapabilities()

_REASONING = ModelCapabilities(supports_temperature=False, token_param="max_completion_tokens")

MODEL_CAPABILITIES: dict[str, ModelCapabilities] = {
    "gpt-5": _REASONING,
    "gpt-5-mini": _REASONING,
    "gpt-5-nano": _REASONING,
    "o1": _REASONING,
    "o3": _REASONING,
    "o3-mini": _REASONING,
    "o4-mini": _REASONING,
    "gpt-4o": DEFAULT_CAPABILITIES,
    "gpt-4o-mini": DEFAULT_CAPABILITIES,
    "gpt-4.1": DEFAULT_CAPABILITIES,
    "gpt-4.1-mini": DEFAULT_CAPABILITIES,
}


def get_model_capabilities(model: str) -> ModelCapabilities:
    """Look up a model by exact id, then by the longest known prefix.

    Dated snapshots such as ``gpt-5-mini-2025-08-07`` resolve to their family.
    Unknown models get ``DEFAULT_CAPABILITIES``.
    """
    if model in MODEL_CAPABILITIES:
        return MODEL_CAPABILITIES[model]
    prefixes = [name for name in MODEL_CAPABILITIES if model.startswith(f"{name}-")]
    if prefixes:
        return MODEL_CAPABILITIES[max(prefixes, key=len)]
    return DEFAULT_CAPABILITIES


# ============================================================================
# Call configuration
# ============================================================================


@dataclass(frozen=True)
class LLMCallConfig:
    model: str
    temperature: float | None = None
    max_tokens: int | None = None
    timeout: float | None = None

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> "LLMCallConfig":
        values: dict[str, Any] = {
            "model": settings.LLM_MODEL,
            "temperature": settings.LLM_TEMPERATURE,
            "max_tokens": settings.LLM_MAX_TOKENS,
            "timeout": settings.LLM_TIMEOUT_SECONDS,
        }
        values.update(overrides)
        return cls(**values)


@dataclass(frozen=True)
class TokenUsage:
    """Tokens and calls spent by one gateway request (all attempts)."""

    tokens_in: int = 0
    tokens_out: int = 0
    calls: int = 0

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            tokens_in=self.tokens_in + other.tokens_in,
            tokens_out=self.tokens_out + other.tokens_out,
            calls=self.calls + other.calls,
        )


def build_chat_kwargs(config: LLMCallConfig, settings: Settings) -> dict[str, Any]:
    """ChatOpenAI constructor arguments for ``config``, shaped by model capabilities."""
    capabilities = get_model_capabilities(config.model)
    kwargs: dict[str, Any] = {
        "model": config.model,
        # Transport errors propagate; only malformed JSON is retried, by the gateway
        "max_retries": 0,
    }
    if config.timeout is not None:
        kwargs["timeout"] = config.timeout
    if config.temperature is not None and capabilities.supports_temperature:
        kwargs["temperature"] = config.temperature
    if config.max_tokens is not None:
        kwargs[capabilities.token_param] = config.max_tokens
    if settings.LLM_API_KEY:
        kwargs["api_key"] = settings.LLM_API_KEY
    if settings.LLM_API_BASE_URL:
        kwargs["base_url"] = settings.LLM_API_BASE_URL
    return kwargs


def build_attempt_messages(messages: Sequence[BaseMessage], attempt: int) -> list[BaseMessage]:
    """Messages to send on ``attempt`` (0-based), without touching ``messages``.

    Retries carry one JSON-only reminder appended to the last human message;
    if the conversation does not end with one, the reminder is its own message.
    """
    attempt_messages = list(messages)
    if attempt == 0:
        return attempt_messages

    last = attempt_messages[-1] if attempt_messages else None
    if isinstance(last, HumanMessage) and isinstance(last.content, str):
        attempt_messages[-1] = HumanMessage(content=f"{last.content}\n\n{JSON_ONLY_REMINDER}")
    else:
        attempt_messages.append(HumanMessage(content=JSON_ONLY_REMINDER))
    return attempt_messages


def _reply_text(reply: Any) -> str:
    content = getattr(reply, "content", reply)
    if isinstance(content, list):
        return "".join(
            part.get("text", "") if isinstance(part, dict) else str(part) for part in content
        )
    return str(content or "")


def _reply_usage(reply: Any) -> TokenUsage:
    metadata = getattr(reply, "usage_metadata", None) or {}
    return TokenUsage(
        tokens_in=int(metadata.get("input_tokens", 0)),
        tokens_out=int(metadata.get("output_tokens", 0)),
        calls=1,
    )


# ============================================================================
# Gateway
# ============================================================================


class ChatModel(Protocol):
    async def ainvoke(self, input: list[BaseMessage], **kwargs: Any) -> Any: ...


class LLMGateway:
    """Sends chat requests and returns replies parsed into a pydantic schema."""

    def __init__(
        self,
        settings: Settings | None = None,
        chat_factory: Callable[[LLMCallConfig], ChatModel] | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._chat_factory = chat_factory or self._openai_chat

    def _openai_chat(self, config: LLMCallConfig) -> ChatModel:
        return ChatOpenAI(**build_chat_kwargs(config, self.settings))

    def default_config(self, **overrides: Any) -> LLMCallConfig:
        return LLMCallConfig.from_settings(self.settings, **overrides)

    async def call_for_json(
        self,
        messages: Sequence[BaseMessage],
        schema: type[ModelT],
        config: LLMCallConfig | None = None,
        max_retries: int | None = None,
    ) -> tuple[ModelT, TokenUsage]:
        """Call the model and validate its JSON reply against ``schema``.

        Unparseable or schema-invalid replies are retried up to ``max_retries``
        extra times. Transport failures and timeouts are not retried.

        Raises:
            GenerationError: On transport failure, timeout, or when every
                attempt produced invalid JSON.
        """
        config = config or self.default_config()
        retries = self.settings.LLM_JSON_MAX_RETRIES if max_retries is None else max_retries
        chat = self._chat_factory(config)
        usage = TokenUsage()
        last_error: Exception | None = None

        for attempt in range(retries + 1):
            attempt_messages = build_attempt_messages(messages, attempt)
            try:
                reply = await asyncio.wait_for(chat.ainvoke(attempt_messages), timeout=config.timeout)
            except asyncio.TimeoutError as exc:
                logger.error("LLM call timed out", model=config.model, timeout=config.timeout)
                raise GenerationError(f"LLM call timed out after {config.timeout}s") from exc
            except Exception as exc:
                logger.error("LLM call failed", model=config.model, error=str(exc))
                raise GenerationError(f"LLM call failed: {exc}") from exc

            usage = usage + _reply_usage(reply)
            try:
                parsed = schema.model_validate(parse_json_object(_reply_text(reply)))
            except (LLMJSONError, ValidationError) as exc:
                last_error = exc
                logger.warning(
                    "LLM JSON attempt failed",
                    model=config.model,
                    attempt=attempt + 1,
                    max_attempts=retries + 1,
                    error=str(exc)[:300],
                )
                continue

            logger.info(
                "LLM JSON call succeeded",
                model=config.model,
                attempts=attempt + 1,
                tokens_in=usage.tokens_in,
                tokens_out=usage.tokens_out,
            )
            return parsed, usage

        raise GenerationError(
            f"LLM did not return valid JSON after {retries + 1} attempts: {last_error}"
        )


@lru_cache
def get_llm_gateway() -> LLMGateway:
    """Get the process-wide gateway configured from settings."""
    settings = get_settings()
    logger.info("Initializing LLM gateway", model=settings.LLM_MODEL)
    return LLMGateway(settings)
