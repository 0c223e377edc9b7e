"""
Chat streaming.

This module turns a stream of Gemini chunks into a single growing assistant
message, and holds the ChatSession that owns the conversation.
"""

import json
import logging
import uuid
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Protocol

from update_tracker.models import ChatMessage

logger = logging.getLogger(__name__)

ERROR_REPLY = "Sorry, something went wrong."


def iter_sse_chunks(lines: Iterable[Any]) -> Iterator[Dict[str, Any]]:
    """
    Parses server-sent-event lines into JSON chunks.

    Only "data: " lines carry a payload; each is decoded on its own and a
    malformed one is logged and skipped. The stream ends when lines run out.
    """
    for raw in lines:
        line = raw.decode("utf-8") if isinstance(raw, bytes) else raw
        if not line or not line.startswith("data: "):
            continue
        payload = line[len("data: "):].strip()
        if not payload:
            continue
        try:
            yield json.loads(payload)
        except (json.JSONDecodeError, ValueError) as e:
            logger.error("Error parsing stream chunk %r: %s", payload, e)


def chunk_text(chunk: Any) -> str:
    """Returns a chunk's text increment; SDK objects and dicts are both accepted."""
    if isinstance(chunk, dict):
        text = chunk.get("text")
    else:
        text = getattr(chunk, "text", None)
    return text if isinstance(text, str) else ""


def consume_stream(
    chunks: Iterable[Any], on_update: Optional[Callable[[str], None]] = None
) -> str:
    """Accumulates chunk texts, publishing the running buffer after each chunk."""
    buffer = ""
    for chunk in chunks:
        buffer += chunk_text(chunk)
        if on_update:
            on_update(buffer)
    return buffer


class ChatHandle(Protocol):
    def send_message_stream(self, message: str) -> Iterable[Any]:
        """Yields the chunks of the reply to message."""


class ChatBackend(Protocol):
    def open_chat(self) -> ChatHandle:
        """Starts a conversation with an empty history."""

    def get_complex_response(self, prompt: str) -> str:
        """Returns a single non-streamed reply using the thinking model."""


def _message(role: str, text: str) -> ChatMessage:
    return ChatMessage(id=uuid.uuid4().hex, role=role, text=text)


class ChatSession:
    """
    One conversation with the assistant.

    The caller creates it on first use, keeps it for the lifetime of the UI
    session and calls close() on teardown.
    """

    def __init__(self, backend: ChatBackend):
        self.backend = backend
        self.messages: List[ChatMessage] = []
        self.closed = False
        self._chat: Optional[ChatHandle] = None

    def _handle(self) -> ChatHandle:
        if self._chat is None:
            self._chat = self.backend.open_chat()
        return self._chat

    def send(
        self,
        text: str,
        on_update: Optional[Callable[[ChatMessage], None]] = None,
        thinking: bool = False,
    ) -> Optional[ChatMessage]:
        """Sends a user message and returns the assistant's reply message."""
        if self.closed:
            raise RuntimeError("Chat session is closed.")
        if not text.strip():
            return None

        self.messages.append(_message("user", text))

        if thinking:
            reply = _message("assistant", self.backend.get_complex_response(text))
            self.messages.append(reply)
            return reply

        reply = _message("assistant", "")
        self.messages.append(reply)

        def publish(buffer: str) -> None:
            reply["text"] = buffer
            if on_update:
                on_update(reply)

        try:
            consume_stream(self._handle().send_message_stream(text), publish)
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error("Streaming chat failed: %s", e)
            publish(ERROR_REPLY)
        return reply

    def close(self) -> None:
        self.messages = []
        self._chat = None
        self.closed = True
