"""DeepSeek provider — OpenAI-compatible chat completions over HTTP."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from collections.abc import Iterator
from typing import Any

import requests

from .errors import StreamParseError, TransportError
from .provider import (
    ChatRequest,
    ChatResponse,
    LLMProvider,
    ProviderCapabilities,
    StreamListener,
    TokenUsage,
)

logger = logging.getLogger(__name__)

_DEFAULT_MODEL = "deepseek-chat"
_DEFAULT_BASE_URL = "https://api.deepseek.com"
_DEFAULT_TIMEOUT = 60.0
_DEFAULT_TEMPERATURE = 0.7
_DEFAULT_MAX_TOKENS = 1000

_SSE_PREFIX = "data: "
_SSE_DONE = "[DONE]"


def is_done_line(line: str) -> bool:
    return line.strip() == _SSE_PREFIX + _SSE_DONE


def parse_sse_line(line: str) -> str | None:
    """Extract the content delta from one server-sent-event line.

    Returns ``None`` for keep-alives, comments and deltas without text.
    Raises :class:`StreamParseError` when a ``data:`` payload is not valid JSON
    or lacks the expected ``choices`` structure.
    """
    if not line.startswith(_SSE_PREFIX):
        return None
    payload = line[len(_SSE_PREFIX) :].strip()
    if not payload or payload == _SSE_DONE:
        return None
    try:
        parsed = json.loads(payload)
        choices = parsed["choices"]
    except (json.JSONDecodeError, KeyError, TypeError) as exc:
        msg = f"malformed stream fragment: {payload[:80]!r}"
        raise StreamParseError(msg) from exc
    if not choices:
        return None
    delta = choices[0].get("delta") or {}
    content = delta.get("content")
    return content or None


class DeepSeekProvider(LLMProvider):
    """LLM provider for the DeepSeek ``/chat/completions`` endpoint.

    Configuration via environment variables:
        - ``RHAPSODY_API_KEY``: bearer credential
        - ``RHAPSODY_MODEL``: model name (default ``deepseek-chat``)
        - ``RHAPSODY_BASE_URL``: API root (default ``https://api.deepseek.com``)
        - ``RHAPSODY_LLM_TIMEOUT_SEC``: request timeout in seconds (default 60)
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self._api_key = api_key if api_key is not None else os.environ.get("RHAPSODY_API_KEY", "")
        self._model = model or os.environ.get("RHAPSODY_MODEL", _DEFAULT_MODEL)
        root = base_url or os.environ.get("RHAPSODY_BASE_URL", _DEFAULT_BASE_URL)
        self._url = f"{root.rstrip('/')}/chat/completions"
        self._timeout = timeout or float(
            os.environ.get("RHAPSODY_LLM_TIMEOUT_SEC", str(_DEFAULT_TIMEOUT))
        )

    def name(self) -> str:
        return "deepseek"

    @property
    def model(self) -> str:
        """Return the configured model name."""
        return self._model

    @property
    def api_key(self) -> str:
        return self._api_key

    def capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(streaming=True)

    async def chat(self, request: ChatRequest) -> ChatResponse:
        """Send a non-streaming completion request."""
        payload = self._build_payload(request, stream=False)
        response = await asyncio.to_thread(self._post, payload, False)
        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            msg = "unexpected completion payload"
            raise TransportError(msg, status_code=response.status_code) from exc
        finally:
            response.close()
        return ChatResponse(content=content, usage=self._parse_usage(data))

    async def stream_chat(self, request: ChatRequest, listener: StreamListener) -> None:
        """Stream a completion, delivering each content delta to *listener*."""
        payload = self._build_payload(request, stream=True)
        try:
            response = await asyncio.to_thread(self._post, payload, True)
        except TransportError as exc:
            listener.on_error(exc)
            return

        lines: Iterator[str] = response.iter_lines(decode_unicode=True)
        try:
            while True:
                line = await asyncio.to_thread(next, lines, None)
                if line is None or is_done_line(line):
                    break
                try:
                    text = parse_sse_line(line)
                except StreamParseError as exc:
                    logger.warning("Skipping stream fragment: %s", exc)
                    continue
                if text:
                    listener.on_chunk(text)
        except requests.RequestException as exc:
            listener.on_error(TransportError(f"stream interrupted: {exc}"))
            return
        finally:
            response.close()
        listener.on_complete()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _build_payload(self, request: ChatRequest, stream: bool) -> dict[str, Any]:
        return {
            "model": request.model or self._model,
            "messages": [{"role": str(m.role), "content": m.content} for m in request.messages],
            "temperature": (
                request.temperature if request.temperature is not None else _DEFAULT_TEMPERATURE
            ),
            "max_tokens": request.max_tokens or _DEFAULT_MAX_TOKENS,
            "stream": stream,
        }

    def _post(self, payload: dict[str, Any], stream: bool) -> requests.Response:
        if not self._api_key:
            msg = "no DeepSeek API key configured (set RHAPSODY_API_KEY)"
            raise TransportError(msg, status_code=401)
        try:
            response = requests.post(
                self._url,
                json=payload,
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=self._timeout,
                stream=stream,
            )
        except requests.RequestException as exc:
            msg = f"request to {self._url} failed: {exc}"
            raise TransportError(msg) from exc
        if not response.ok:
            status = response.status_code
            response.close()
            msg = f"API error: {status}"
            raise TransportError(msg, status_code=status)
        return response

    @staticmethod
    def _parse_usage(data: dict[str, Any]) -> TokenUsage | None:
        usage = data.get("usage")
        if not usage:
            return None
        return TokenUsage(
            prompt_tokens=usage.get("prompt_tokens", 0),
            completion_tokens=usage.get("completion_tokens", 0),
        )
