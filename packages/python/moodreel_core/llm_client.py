"""
LLM client: an async wrapper around the OpenAI Chat Completions API, plus
the `complete` contract the mood analyzer and curator build on.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional, Protocol

from openai import AsyncOpenAI, OpenAIError

from .config import CHAT_COMPLETION_MODEL
from .errors import CompletionError

log = logging.getLogger(__name__)


class CompletionService(Protocol):
    async def complete(
        self,
        *,
        system: str,
        user: str,
        temperature: float = 0.7,
        model: Optional[str] = None,
    ) -> dict[str, Any]: ...


def parse_json_content(raw: str | None) -> dict[str, Any] | list[Any]:
    """Parse a JSON completion, tolerating markdown fences."""
    text = (raw or "").strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[-1].rsplit("```", 1)[0].strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        log.warning("LLM returned non-JSON: %s", text[:200])
        raise CompletionError("completion returned non-JSON content") from e


class LlmClient:
    """
    Thin wrapper around OpenAI's chat completion API.

    One instance per process; the API lifespan creates it and hands it to
    whatever needs completions. Retries are left to the OpenAI transport
    (`max_retries`).
    """

    def __init__(
        self,
        model: str = CHAT_COMPLETION_MODEL,
        timeout: float | None = 30.0,
        api_key: str | None = None,
        max_retries: int = 2,
        client: AsyncOpenAI | None = None,
    ) -> None:
        if client is None:
            client_kwargs: dict = {"timeout": timeout, "max_retries": max_retries}
            if api_key is not None:
                client_kwargs["api_key"] = api_key
            client = AsyncOpenAI(**client_kwargs)

        self._async_client = client
        self._default_model = model

    # ── Async: non-streaming ──────────────────────────────────────────

    async def chat(
        self,
        *,
        messages: list[dict[str, Any]],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        extra_args: Optional[dict[str, Any]] = None,
    ):
        """
        Call the OpenAI chat completion endpoint.

        Returns the raw OpenAI response object.
        """
        kwargs: dict[str, Any] = dict(
            model=model or self._default_model,
            messages=messages,
            temperature=temperature,
        )

        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens

        if extra_args:
            kwargs.update(extra_args)

        resp = await self._async_client.chat.completions.create(**kwargs)
        return resp

    # ── Async: structured JSON ────────────────────────────────────────

    async def complete(
        self,
        *,
        system: str,
        user: str,
        temperature: float = 0.7,
        model: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Ask for a JSON object and return it parsed.

        Raises CompletionError when the service is unreachable or the
        content is not a JSON object.
        """
        messages = [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ]
        try:
            resp = await self.chat(
                messages=messages,
                model=model,
                temperature=temperature,
                extra_args={"response_format": {"type": "json_object"}},
            )
        except OpenAIError as e:
            raise CompletionError(f"completion request failed: {e}") from e

        choices = getattr(resp, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content:
            raise CompletionError("completion returned no content")

        data = parse_json_content(content)
        if not isinstance(data, dict):
            raise CompletionError("completion returned a non-object JSON value")
        return data
