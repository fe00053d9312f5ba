"""
OpenAI-compatible LLM Provider.
Talks to any chat/completions endpoint (OpenAI or a gateway that proxies
Gemini and Claude models behind the same wire format).
"""

import httpx
import json
import logging
import time
from typing import Optional, List, Dict, Any, AsyncGenerator

from .base import LLMProvider, LLMMessage, LLMResponse

logger = logging.getLogger(__name__)

# Request fields forwarded from a session's model config
_PASSTHROUGH_PARAMS = ("top_p", "presence_penalty", "frequency_penalty")


class OpenAIProvider(LLMProvider):
    """
    Provider for OpenAI-style chat/completions APIs.
    Streaming uses server-sent events ("data: {json}" ... "data: [DONE]").
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-3.5-turbo",
        base_url: str = "https://api.openai.com/v1",
        default_temperature: float = 0.5,
        timeout: float = 120.0,
        log_calls: bool = True,
    ):
        super().__init__(api_key, model, base_url, default_temperature)
        self.timeout = timeout
        self.log_calls = log_calls

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _build_payload(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float],
        max_tokens: Optional[int],
        stream: bool,
        kwargs: Dict[str, Any],
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": kwargs.get("model") or self.model,
            "messages": self._format_messages(messages),
            "temperature": temperature if temperature is not None else self.default_temperature,
            "stream": stream,
        }
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        for name in _PASSTHROUGH_PARAMS:
            if kwargs.get(name) is not None:
                payload[name] = kwargs[name]
        return payload

    def _log_request(self, kind: str, payload: Dict[str, Any], messages: List[LLMMessage]) -> None:
        if not logger.isEnabledFor(logging.DEBUG):
            return
        message_summary = f"{len(messages)} messages"
        if messages:
            first_msg = str(messages[0].content)[:200] if messages[0].content else ""
            message_summary += f", first: {first_msg}"
        logger.debug(
            f"LLM API {kind} starting: model={payload['model']}, "
            f"temperature={payload['temperature']}, {message_summary}"
        )

    def _log_completed(self, kind: str, model: str, usage: Dict[str, Any], start_time: float, **fields) -> None:
        if not self.log_calls:
            return
        logger.info(
            f"LLM API {kind} completed",
            extra={"extra_fields": {
                "model": model,
                "prompt_tokens": usage.get("prompt_tokens", 0),
                "completion_tokens": usage.get("completion_tokens", 0),
                "total_tokens": usage.get("total_tokens", 0),
                "duration_ms": round((time.time() - start_time) * 1000, 2),
                **fields,
            }}
        )

    def _log_failed(self, kind: str, model: Optional[str], start_time: float, error: Exception) -> None:
        logger.error(
            f"LLM API {kind} failed: {error}",
            exc_info=True,
            extra={"extra_fields": {
                "model": model,
                "duration_ms": round((time.time() - start_time) * 1000, 2),
                "error": str(error),
            }}
        )

    async def chat_completion(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> LLMResponse:
        """Send a non-streaming request to the Chat Completions endpoint."""
        start_time = time.time()
        url = f"{self.base_url}/chat/completions"
        payload = self._build_payload(messages, temperature, max_tokens, False, kwargs)
        self._log_request("call", payload, messages)

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(url, json=payload, headers=self._get_headers())
                resp.raise_for_status()
                data = resp.json()

            choice = data["choices"][0]
            usage = data.get("usage", {})
            self._log_completed("call", data.get("model", payload["model"]), usage, start_time)

            return LLMResponse(
                content=choice["message"].get("content") or "",
                model=data.get("model", payload["model"]),
                usage=usage,
                raw=data,
            )
        except Exception as e:
            self._log_failed("call", payload.get("model"), start_time, e)
            raise

    async def chat_completion_stream(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> AsyncGenerator[str, None]:
        """Stream chat completion chunks from the Chat Completions endpoint."""
        start_time = time.time()
        url = f"{self.base_url}/chat/completions"
        payload = self._build_payload(messages, temperature, max_tokens, True, kwargs)
        self._log_request("stream", payload, messages)

        accumulated_length = 0
        usage_data: Dict[str, Any] = {}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                async with client.stream('POST', url, json=payload, headers=self._get_headers()) as response:
                    response.raise_for_status()

                    async for line in response.aiter_lines():
                        if not line or not line.startswith("data: "):
                            continue

                        data_str = line[6:].strip()
                        if data_str == "[DONE]":
                            break

                        try:
                            chunk = json.loads(data_str)
                        except json.JSONDecodeError:
                            # Skip malformed chunks
                            continue

                        choices = chunk.get("choices") or []
                        if choices:
                            content = choices[0].get("delta", {}).get("content")
                            if content:
                                accumulated_length += len(content)
                                yield content

                        if chunk.get("usage"):
                            usage_data = chunk["usage"]

            self._log_completed(
                "stream", payload["model"], usage_data, start_time, content_length=accumulated_length
            )
        except Exception as e:
            self._log_failed("stream", payload.get("model"), start_time, e)
            raise
