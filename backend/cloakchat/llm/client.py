"""
Model Client - Runs one model request as a cancellable task.

A request produces zero or more partial results (streaming only) followed by
exactly one terminal result: finished, error or aborted. Callers either pass
callbacks or await `ChatTask.wait()`.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from ..errors import GenerationAborted
from ..models.message import ChatMessage
from .base import LLMMessage, LLMProvider

logger = logging.getLogger(__name__)

Callback = Callable[..., Union[None, Awaitable[None]]]


class ChatStatus(str, Enum):
    FINISHED = "finished"
    ERROR = "error"
    ABORTED = "aborted"


@dataclass
class ChatResult:
    """Terminal outcome of a request."""
    status: ChatStatus
    text: str = ""
    error: Optional[BaseException] = None


@dataclass
class ChatRequest:
    """Messages plus the model configuration to send them with."""
    messages: List[ChatMessage]
    config: Dict[str, Any] = field(default_factory=dict)
    stream: bool = True


@dataclass
class ChatCallbacks:
    on_update: Optional[Callback] = None  # receives the text accumulated so far
    on_finish: Optional[Callback] = None  # receives the final text
    on_error: Optional[Callback] = None  # receives the exception
    on_controller: Optional[Callback] = None  # receives the ChatTask


async def _invoke(callback: Optional[Callback], *args) -> None:
    if callback is None:
        return
    try:
        result = callback(*args)
        if inspect.isawaitable(result):
            await result
    except Exception:
        logger.exception("Chat callback raised")


class ChatTask:
    """Handle on an in-flight model request."""

    def __init__(self, provider: LLMProvider, request: ChatRequest, callbacks: ChatCallbacks):
        self.provider = provider
        self.request = request
        self.callbacks = callbacks
        self._task: Optional[asyncio.Task] = None
        self._abort_requested = False
        self._terminal_sent = False

    def start(self) -> "ChatTask":
        self._task = asyncio.get_running_loop().create_task(self._run())
        self._task.add_done_callback(self._on_done)
        return self

    def add_done_callback(self, callback: Callable[["ChatTask"], None]) -> None:
        """Call `callback(self)` once the request has reached a terminal state."""
        if self._task is None:
            raise RuntimeError("ChatTask was never started")
        self._task.add_done_callback(lambda _: callback(self))

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()

    def cancel(self) -> None:
        """Abort the request; `on_error` receives a GenerationAborted."""
        if self._task is None or self._task.done():
            return
        self._abort_requested = True
        self._task.cancel()

    async def wait(self) -> ChatResult:
        """Wait for the terminal result."""
        if self._task is None:
            raise RuntimeError("ChatTask was never started")
        try:
            return await asyncio.shield(self._task)
        except asyncio.CancelledError:
            if self._task.cancelled():
                return ChatResult(ChatStatus.ABORTED, error=GenerationAborted())
            raise

    def _on_done(self, task: asyncio.Task) -> None:
        # Cancelled before the coroutine got to run: report the abort here.
        if task.cancelled() and not self._terminal_sent:
            self._terminal_sent = True
            asyncio.get_running_loop().create_task(
                _invoke(self.callbacks.on_error, GenerationAborted())
            )

    async def _run(self) -> ChatResult:
        params = dict(self.request.config)
        model = params.pop("model", None)
        temperature = params.pop("temperature", None)
        max_tokens = params.pop("max_tokens", None)
        messages = [LLMMessage.from_chat_message(m) for m in self.request.messages]
        text = ""

        try:
            if self.request.stream:
                async for chunk in self.provider.chat_completion_stream(
                    messages, temperature=temperature, max_tokens=max_tokens,
                    model=model, **params
                ):
                    text += chunk
                    await _invoke(self.callbacks.on_update, text)
            else:
                response = await self.provider.chat_completion(
                    messages, temperature=temperature, max_tokens=max_tokens,
                    model=model, **params
                )
                text = response.content
        except asyncio.CancelledError:
            if not self._abort_requested:
                raise
            error = GenerationAborted()
            self._terminal_sent = True
            await _invoke(self.callbacks.on_error, error)
            return ChatResult(ChatStatus.ABORTED, text, error)
        except Exception as e:
            self._terminal_sent = True
            await _invoke(self.callbacks.on_error, e)
            return ChatResult(ChatStatus.ERROR, text, e)

        self._terminal_sent = True
        await _invoke(self.callbacks.on_finish, text)
        return ChatResult(ChatStatus.FINISHED, text)


class ModelClient:
    """Issues chat requests against one provider."""

    def __init__(self, provider: LLMProvider):
        self.provider = provider

    def chat(self, request: ChatRequest, callbacks: Optional[ChatCallbacks] = None) -> ChatTask:
        """
        Start a request and return its handle.

        `on_controller` is called with the handle before this returns, so the
        caller can register it for cancellation.
        """
        callbacks = callbacks or ChatCallbacks()
        task = ChatTask(self.provider, request, callbacks).start()
        if callbacks.on_controller is not None:
            try:
                callbacks.on_controller(task)
            except Exception:
                logger.exception("on_controller callback raised")
        return task
