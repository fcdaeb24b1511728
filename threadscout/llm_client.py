"""OpenAI-compatible chat client (OpenRouter by default) for rewriting, summarizing and answering."""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, AsyncIterator

from threadscout.config import settings
from threadscout.errors import GenerationError
from threadscout.services import logger as log_service


@dataclass
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0


def _usage_from(raw: Any) -> Usage:
    if not raw:
        return Usage()
    return Usage(
        input_tokens=getattr(raw, "prompt_tokens", 0) or 0,
        output_tokens=getattr(raw, "completion_tokens", 0) or 0,
    )


class LLMClient:
    def __init__(self, openai_client: Any, *, model: str | None = None):
        self._client = openai_client
        self.model = model or get_model()

    @staticmethod
    def _temperature_for_model(model: str) -> int:
        # Some OpenAI GPT-5-compatible gateways reject temperature=0.
        lowered = (model or "").lower()
        if "gpt-5" in lowered:
            return 1
        return 0

    @staticmethod
    def _to_openai_messages(system: str, messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
        openai_messages: list[dict[str, Any]] = []
        if system:
            openai_messages.append({"role": "system", "content": system})
        for message in messages:
            openai_messages.append({"role": message["role"], "content": str(message["content"])})
        return openai_messages

    async def complete(
        self,
        messages: list[dict[str, Any]],
        *,
        system: str = "",
        model: str | None = None,
        max_tokens: int | None = None,
        caller: str = "llm",
    ) -> str:
        model_name = model or self.model
        started = time.monotonic()
        try:
            response = await self._client.chat.completions.create(
                model=model_name,
                messages=self._to_openai_messages(system, messages),
                max_tokens=max_tokens or settings.llm_max_tokens,
                temperature=self._temperature_for_model(model_name),
            )
        except Exception as exc:
            log_service.log_llm_call(
                model=model_name,
                caller=caller,
                duration_ms=int((time.monotonic() - started) * 1000),
                status="error",
                error=str(exc),
            )
            raise GenerationError(f"{caller} call failed: {exc}") from exc

        usage = _usage_from(getattr(response, "usage", None))
        log_service.log_llm_call(
            model=model_name,
            caller=caller,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        return response.choices[0].message.content or ""

    async def stream(
        self,
        messages: list[dict[str, Any]],
        *,
        system: str = "",
        model: str | None = None,
        max_tokens: int | None = None,
        caller: str = "llm",
    ) -> AsyncIterator[str]:
        """Yield text deltas as they arrive."""
        model_name = model or self.model
        started = time.monotonic()
        usage = Usage()
        stream = None
        try:
            stream = await self._client.chat.completions.create(
                model=model_name,
                messages=self._to_openai_messages(system, messages),
                max_tokens=max_tokens or settings.llm_max_tokens,
                temperature=self._temperature_for_model(model_name),
                stream=True,
                stream_options={"include_usage": True},
            )
            async for chunk in stream:
                if getattr(chunk, "usage", None):
                    usage = _usage_from(chunk.usage)
                choices = getattr(chunk, "choices", None) or []
                if not choices:
                    continue
                delta = getattr(choices[0], "delta", None)
                text = getattr(delta, "content", None) if delta else None
                if text:
                    yield text
        except Exception as exc:
            log_service.log_llm_call(
                model=model_name,
                caller=caller,
                duration_ms=int((time.monotonic() - started) * 1000),
                status="error",
                error=str(exc),
            )
            raise GenerationError(f"{caller} stream failed: {exc}") from exc
        finally:
            if stream is not None and hasattr(stream, "close"):
                await stream.close()

        log_service.log_llm_call(
            model=model_name,
            caller=caller,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            duration_ms=int((time.monotonic() - started) * 1000),
        )


def get_model() -> str:
    """Get the active model id."""
    if settings.openrouter_model:
        return settings.openrouter_model
    return settings.default_model


def get_client() -> LLMClient:
    from openai import AsyncOpenAI

    base_url = settings.openrouter_base_url.strip() or "https://openrouter.ai/api/v1"
    openai_client = AsyncOpenAI(
        api_key=settings.openrouter_api_key,
        base_url=base_url,
    )
    return LLMClient(openai_client)


_client: LLMClient | None = None


def client() -> LLMClient:
    """Get or create the shared LLM client."""
    global _client
    if _client is None:
        _client = get_client()
    return _client
