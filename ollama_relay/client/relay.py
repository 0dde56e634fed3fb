"""
Stream Relay Client
===================

Caller-side adapter that sends chat requests through the gateway and
rebuilds the assistant's reply from the server-sent-event stream.

Results are delivered through callbacks rather than a return value:

- ``on_controller(controller)``: abort handle, before any network I/O
- ``on_update(text, delta)``: paced partial text, many times
- ``on_error(error)``: failures, including an empty stream
- ``on_finish(text)``: final text, exactly once and always last

In streaming mode two tasks share one ``StreamState``: the ingestion task
appends received deltas to ``remain_text`` and the pacing task moves about
1/60th of that backlog into ``response_text`` every frame. Both run on the
same event loop, so the state needs no locking.
"""

import asyncio
import json
import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

import httpx

from ..config import RelayClientSettings
from ..constants import (
    ACCESS_CODE_PREFIX,
    DONE_SENTINEL,
    EVENT_STREAM_CONTENT_TYPE,
    OLLAMA_ROUTE_PREFIX,
    PACING_DIVISOR,
    OllamaPath,
    ServiceProvider,
    UNAUTHORIZED_NOTICE,
)
from ..models import ChatMessage, ChatRequestPayload, LLMModel, LLMUsage
from ..utils.format import pretty_object
from .sse import ServerSentEvent, aiter_sse

logger = logging.getLogger(__name__)

# Moderation results are only logged for this provider
MODERATION_PROVIDER = ServiceProvider.AZURE


# ============================================================================
# Errors
# ============================================================================

class ChatAbortedError(Exception):
    """The chat request was aborted before a response arrived."""


class EmptyResponseError(Exception):
    """The stream ended without any assistant text."""


# ============================================================================
# Call Types
# ============================================================================

@dataclass
class LLMConfig:
    model: str
    stream: bool = True


@dataclass
class ChatOptions:
    """One chat call: conversation, model config and result callbacks."""
    messages: List[Union[ChatMessage, Dict[str, Any]]]
    config: LLMConfig
    on_finish: Callable[[str], None]
    on_update: Optional[Callable[[str, str], None]] = None
    on_error: Optional[Callable[[BaseException], None]] = None
    on_controller: Optional[Callable[["ChatController"], None]] = None


@dataclass
class StreamState:
    """Mutable state of one in-flight streaming call."""
    response_text: str = ""
    remain_text: str = ""
    finished: bool = False


class ChatController:
    """
    Abort handle for one chat call.

    ``abort()`` runs the registered abort callbacks once and cancels the
    bound network task. Callbacks registered after an abort run immediately.
    """

    def __init__(self):
        self._aborted = False
        self._callbacks: List[Callable[[], None]] = []
        self._task: Optional[asyncio.Future] = None

    @property
    def aborted(self) -> bool:
        return self._aborted

    def on_abort(self, callback: Callable[[], None]) -> None:
        if self._aborted:
            callback()
        else:
            self._callbacks.append(callback)

    def bind(self, task: asyncio.Future) -> None:
        self._task = task
        if self._aborted:
            task.cancel()

    def abort(self) -> None:
        if self._aborted:
            return
        self._aborted = True
        for callback in self._callbacks:
            callback()
        if self._task is not None and not self._task.done():
            self._task.cancel()


def pacing_slice_size(backlog: int) -> int:
    """
    Number of characters to reveal this frame for a backlog of ``backlog``.

    ``max(1, round(backlog / 60))`` with halves rounded up.

    Example:
        >>> pacing_slice_size(600)
        10
    """
    return max(1, math.floor(backlog / PACING_DIVISOR + 0.5))


# ============================================================================
# Client
# ============================================================================

class OllamaRelayClient:
    """
    Chat adapter for an Ollama server reached through the gateway.

    Each call opens its own HTTP client; connections are not shared between
    calls.

    Args:
        settings: Client settings (defaults to ``RELAY_*`` environment)
        session_token: Session JWT sent when no access code is configured
        provider: Service tag controlling provider-specific logging
        transport: Optional httpx transport (used by tests)
    """

    def __init__(
        self,
        settings: Optional[RelayClientSettings] = None,
        *,
        session_token: Optional[str] = None,
        provider: ServiceProvider = ServiceProvider.OLLAMA,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or RelayClientSettings()
        self.session_token = session_token
        self.provider = provider
        self._transport = transport

    def path(self, path: OllamaPath) -> str:
        base_url = self.settings.GATEWAY_URL.rstrip("/")
        return f"{base_url}{OLLAMA_ROUTE_PREFIX}/{path.value}"

    def extract_message(self, res: Any) -> str:
        """Message text of a non-streaming response, or '' when absent."""
        if not isinstance(res, dict):
            return ""

        message = res.get("message")
        if isinstance(message, dict):
            return message.get("content") or ""

        choices = res.get("choices")
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            return (choices[0].get("message") or {}).get("content") or ""

        return ""

    def _headers(self, stream: bool) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": EVENT_STREAM_CONTENT_TYPE if stream else "application/json",
        }
        if self.settings.ACCESS_CODE:
            headers["Authorization"] = f"Bearer {ACCESS_CODE_PREFIX}{self.settings.ACCESS_CODE}"
        elif self.session_token:
            headers["Authorization"] = f"Bearer {self.session_token}"
        return headers

    def _http_client(self) -> httpx.AsyncClient:
        # No read timeout: the stream runs until completion or abort
        return httpx.AsyncClient(
            transport=self._transport,
            timeout=httpx.Timeout(None),
        )

    @staticmethod
    def _emit_update(options: ChatOptions, text: str, delta: str) -> None:
        if options.on_update:
            options.on_update(text, delta)

    @staticmethod
    def _emit_error(options: ChatOptions, error: BaseException) -> None:
        if options.on_error:
            options.on_error(error)

    # ------------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------------

    async def chat(self, options: ChatOptions) -> None:
        """
        Send one chat request; results arrive through ``options`` callbacks.

        Never raises for request failures; they are reported to ``on_error``.
        """
        timeout_handle: Optional[asyncio.TimerHandle] = None
        try:
            chat_path = self.path(OllamaPath.OPENAI_COMPATIBLE_CHAT_PATH)
            controller = ChatController()
            should_stream = bool(options.config.stream)
            payload = ChatRequestPayload(
                messages=options.messages,
                model=options.config.model,
                stream=should_stream,
            )
            if options.on_controller:
                options.on_controller(controller)

            timeout_handle = asyncio.get_running_loop().call_later(
                self.settings.REQUEST_TIMEOUT_SECONDS,
                controller.abort,
            )

            async with self._http_client() as client:
                if should_stream:
                    await self._stream_chat(
                        client, chat_path, payload, options, controller, timeout_handle
                    )
                else:
                    await self._single_chat(
                        client, chat_path, payload, options, controller, timeout_handle
                    )
        except Exception as e:
            logger.error(f"[Request] failed to make a chat request: {e}", exc_info=True)
            self._emit_error(options, e)
        finally:
            if timeout_handle is not None:
                timeout_handle.cancel()

    async def _single_chat(
        self,
        client: httpx.AsyncClient,
        chat_path: str,
        payload: ChatRequestPayload,
        options: ChatOptions,
        controller: ChatController,
        timeout_handle: asyncio.TimerHandle,
    ) -> None:
        request_task = asyncio.ensure_future(
            client.post(
                chat_path,
                json=payload.model_dump(exclude_none=True),
                headers=self._headers(stream=False),
            )
        )
        controller.bind(request_task)
        try:
            res = await request_task
        except asyncio.CancelledError:
            if controller.aborted:
                raise ChatAbortedError("chat request aborted") from None
            raise
        finally:
            timeout_handle.cancel()

        res_json = res.json()
        options.on_finish(self.extract_message(res_json))

    async def _stream_chat(
        self,
        client: httpx.AsyncClient,
        chat_path: str,
        payload: ChatRequestPayload,
        options: ChatOptions,
        controller: ChatController,
        timeout_handle: asyncio.TimerHandle,
    ) -> None:
        state = StreamState()

        def finish() -> None:
            if state.finished:
                return
            state.finished = True

            if state.remain_text:
                delta = state.remain_text
                state.response_text += delta
                state.remain_text = ""
                self._emit_update(options, state.response_text, delta)

            if not state.response_text:
                self._emit_error(options, EmptyResponseError("empty response from server"))

            options.on_finish(state.response_text)

        controller.on_abort(finish)

        pacer = asyncio.create_task(
            self._animate_response_text(state, controller, options)
        )
        ingest = asyncio.create_task(
            self._consume_stream(
                client, chat_path, payload, state, options, timeout_handle, finish
            )
        )
        controller.bind(ingest)

        try:
            await ingest
        except asyncio.CancelledError:
            if not controller.aborted:
                raise
        except httpx.TransportError:
            # Already reported to on_error by the ingestion task
            pass
        except Exception as e:
            logger.error(f"[Request] stream failed: {e}", exc_info=True)
            self._emit_error(options, e)
        finally:
            finish()
            pacer.cancel()
            await asyncio.gather(pacer, return_exceptions=True)

    async def _animate_response_text(
        self,
        state: StreamState,
        controller: ChatController,
        options: ChatOptions,
    ) -> None:
        try:
            while not state.finished and not controller.aborted:
                if state.remain_text:
                    fetch_count = pacing_slice_size(len(state.remain_text))
                    fetch_text = state.remain_text[:fetch_count]
                    state.response_text += fetch_text
                    state.remain_text = state.remain_text[fetch_count:]
                    self._emit_update(options, state.response_text, fetch_text)

                await asyncio.sleep(self.settings.FRAME_INTERVAL_SECONDS)
        except Exception as e:
            logger.error(f"[Response Animation] update callback failed: {e}", exc_info=True)
            self._emit_error(options, e)
            return

        logger.debug("[Response Animation] finished")

    async def _consume_stream(
        self,
        client: httpx.AsyncClient,
        chat_path: str,
        payload: ChatRequestPayload,
        state: StreamState,
        options: ChatOptions,
        timeout_handle: asyncio.TimerHandle,
        finish: Callable[[], None],
    ) -> None:
        try:
            async with client.stream(
                "POST",
                chat_path,
                json=payload.model_dump(exclude_none=True),
                headers=self._headers(stream=True),
            ) as res:
                timeout_handle.cancel()
                content_type = res.headers.get("content-type", "")
                logger.info(f"[Ollama] request response content type: {content_type}")

                if content_type.startswith("text/plain"):
                    await res.aread()
                    state.response_text = res.text
                    return finish()

                if (
                    not res.is_success
                    or not content_type.startswith(EVENT_STREAM_CONTENT_TYPE)
                    or res.status_code != 200
                ):
                    state.response_text = await self._describe_failed_response(
                        res, state.response_text
                    )
                    return finish()

                async for event in aiter_sse(res):
                    if event.data == DONE_SENTINEL or state.finished:
                        return finish()
                    self._ingest_event(event, state)

            finish()
        except httpx.TransportError as e:
            logger.error(f"[Request] stream transport error: {e}")
            self._emit_error(options, e)
            raise

    async def _describe_failed_response(self, res: httpx.Response, response_text: str) -> str:
        response_texts = [response_text] if response_text else []

        await res.aread()
        extra_info = res.text
        try:
            extra_info = pretty_object(res.json())
        except ValueError:
            pass

        if res.status_code == 401:
            response_texts.append(UNAUTHORIZED_NOTICE)

        if extra_info:
            response_texts.append(extra_info)

        return "\n\n".join(response_texts)

    def _ingest_event(self, event: ServerSentEvent, state: StreamState) -> None:
        text = event.data
        try:
            data = json.loads(text)
            choices = data.get("choices") or []
            if not isinstance(choices, list):
                raise TypeError(f"choices is {type(choices).__name__}, expected list")
            delta = (choices[0].get("delta") or {}).get("content") if choices else None
            if delta is not None and not isinstance(delta, str):
                raise TypeError(f"delta content is {type(delta).__name__}, expected str")
            text_moderation = data.get("prompt_filter_results")
        except (ValueError, TypeError, AttributeError, IndexError, KeyError):
            logger.error(f"[Request] parse error {text!r}")
            return

        if delta:
            state.remain_text += delta

        if text_moderation and self.provider == MODERATION_PROVIDER:
            content_filter_results = (
                text_moderation[0].get("content_filter_results")
                if isinstance(text_moderation, list) and isinstance(text_moderation[0], dict)
                else None
            )
            logger.info(
                f"[{MODERATION_PROVIDER.value}] [Text Moderation] flagged categories result: "
                f"{content_filter_results}"
            )

    # ------------------------------------------------------------------------
    # Stubs
    # ------------------------------------------------------------------------

    async def usage(self) -> LLMUsage:
        """Ollama has no usage endpoint; always zero."""
        try:
            return LLMUsage(used=0, total=0)
        except Exception as e:
            logger.error(f"Error calling Ollama usage API: {e}")
            return LLMUsage(used=0, total=0)

    async def models(self) -> List[LLMModel]:
        """Model listing is not exposed through this adapter."""
        try:
            return []
        except Exception as e:
            logger.error(f"Error calling Ollama models API: {e}")
            return []
