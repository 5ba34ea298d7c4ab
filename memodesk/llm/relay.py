"""Streaming relay to an OpenAI-compatible chat completions endpoint.

One call makes exactly one HTTP request. Response bytes are reassembled
into server-sent event lines, each event's text delta is forwarded to the
listener as soon as it is decoded, and the full text is returned once the
server closes the stream. Failures are raised, never retried.
"""

from typing import TYPE_CHECKING, Optional, Sequence

import httpx

from .base import ChatResponse, ChatTurn, RelaySettings, StreamChunk, StreamListener
from .errors import (
    ConfigurationError,
    RelayError,
    RemoteError,
    TransportReadError,
    TransportSendError,
)
from .sse import DONE_SENTINEL, LineReassembler, decode_delta, parse_event_line

if TYPE_CHECKING:
    from ..abort_controller import AbortController
    from ..logging import ConversationLogger

EMPTY_RESPONSE_PLACEHOLDER = "(The model returned an empty response.)"


class _StreamAccumulator:
    """Per-call state: collected deltas and the listener they go to."""

    def __init__(self, listener: Optional[StreamListener], reasoning_enabled: bool, logger=None):
        self.listener = listener
        self.reasoning_enabled = reasoning_enabled
        self.logger = logger
        self.content: list[str] = []
        self.reasoning: list[str] = []

    def _emit(self, chunk: StreamChunk) -> None:
        if self.listener is not None:
            self.listener(chunk)

    def handle_line(self, line: str) -> None:
        payload = parse_event_line(line)
        if payload is None or payload == DONE_SENTINEL:
            return

        delta = decode_delta(payload)
        if delta is None:
            if self.logger:
                self.logger.log_stream_event("skipped", payload)
            return

        if delta.content:
            self.content.append(delta.content)
            self._emit(StreamChunk(content=delta.content))
        if delta.reasoning and self.reasoning_enabled:
            self.reasoning.append(delta.reasoning)
            self._emit(StreamChunk(content="", reasoning=delta.reasoning))

    def finish(self) -> ChatResponse:
        self._emit(StreamChunk(content="", is_done=True))
        return ChatResponse(content="".join(self.content), reasoning="".join(self.reasoning))


class ChatRelay:
    """Sends a conversation and streams the reply back.

    Works with any endpoint speaking the OpenAI chat completions
    streaming format (OpenAI, OpenRouter, Ollama's /v1, vLLM, ...).
    """

    def __init__(
        self,
        settings: RelaySettings,
        transport: Optional[httpx.BaseTransport] = None,
        logger: Optional["ConversationLogger"] = None,
    ):
        self.settings = settings
        self.transport = transport
        self.logger = logger

    def chat(
        self,
        history: Sequence[ChatTurn],
        message: str,
        listener: Optional[StreamListener] = None,
        abort: Optional["AbortController"] = None,
    ) -> str:
        """Append a user turn to history, stream the reply, return its text.

        An empty reply is returned as EMPTY_RESPONSE_PLACEHOLDER.
        """
        turns = list(history) + [ChatTurn("user", message)]
        response = self.complete(turns, listener=listener, abort=abort)
        return response.content or EMPTY_RESPONSE_PLACEHOLDER

    def complete(
        self,
        messages: Sequence[ChatTurn],
        listener: Optional[StreamListener] = None,
        abort: Optional["AbortController"] = None,
    ) -> ChatResponse:
        """Stream a completion for messages.

        Raises:
            ConfigurationError: No API key configured (nothing is sent)
            TransportSendError: The request could not be sent
            RemoteError: Non-2xx response; carries the response body
            TransportReadError: The stream broke mid-flight
            StreamCancelledError: abort was requested
        """
        try:
            response = self._complete(messages, listener, abort)
        except RelayError as e:
            if self.logger:
                self.logger.log_error(str(e))
            raise
        if self.logger:
            self.logger.log_model_response(response.content, response.reasoning, model=self.settings.model)
        return response

    def _complete(self, messages, listener, abort) -> ChatResponse:
        settings = self.settings
        if not settings.api_key:
            raise ConfigurationError("API key is not configured")
        if abort is not None:
            abort.check()

        payload = {
            "model": settings.model,
            "messages": [turn.to_dict() for turn in messages],
            "stream": True,
        }
        headers = {
            "Authorization": f"Bearer {settings.api_key}",
            "Content-Type": "application/json",
        }
        if self.logger:
            self.logger.log_request(settings.endpoint, settings.model, list(messages))

        with httpx.Client(timeout=settings.timeout, transport=self.transport) as client:
            try:
                request = client.build_request("POST", settings.endpoint, json=payload, headers=headers)
                response = client.send(request, stream=True)
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                raise TransportSendError(f"Request to {settings.endpoint} failed: {e}") from e

            # Closing the response from the aborting thread unblocks a stalled read
            if abort is not None:
                abort.add_callback(response.close)
            try:
                if not response.is_success:
                    raise RemoteError(response.status_code, self._read_error_body(response))
                return self._consume(response, listener, abort)
            finally:
                if abort is not None:
                    abort.remove_callback(response.close)
                response.close()

    def _read_error_body(self, response: httpx.Response) -> str:
        try:
            response.read()
        except httpx.HTTPError:
            return ""
        return response.text

    def _consume(self, response: httpx.Response, listener, abort) -> ChatResponse:
        accumulator = _StreamAccumulator(listener, self.settings.reasoning_enabled, self.logger)
        reassembler = LineReassembler()

        try:
            for chunk in response.iter_bytes():
                if abort is not None:
                    abort.check()
                for line in reassembler.feed(chunk):
                    accumulator.handle_line(line)
        except (httpx.HTTPError, httpx.StreamError) as e:
            if abort is not None:
                abort.check()
            raise TransportReadError(f"Stream interrupted: {e}") from e

        # A read cut short by abort can end without an error
        if abort is not None:
            abort.check()

        tail = reassembler.flush()
        if tail is not None:
            accumulator.handle_line(tail)
        return accumulator.finish()
