"""
Client side of the Gemini relay.

RelayLLMService behaves like LLMService but sends every request to the relay
server, so the dashboard never needs the Gemini API key.
"""

import logging
from typing import Any, Dict, Iterator

import requests

from update_tracker.exceptions import TrackerError
from update_tracker.services.chat import iter_sse_chunks
from update_tracker.services.llm import LLMService

logger = logging.getLogger(__name__)


class RelayChat:
    """Chat handle backed by the relay's streaming endpoint."""

    def __init__(self, relay: "RelayLLMService"):
        self.relay = relay

    def send_message_stream(self, message: str) -> Iterator[Dict[str, Any]]:
        return self.relay.stream_chat(message)


class RelayLLMService(LLMService):
    """LLMService whose transport is the relay instead of the Gemini SDK."""

    def __init__(self, relay_url: str, timeout: float = 10, **kwargs: Any):
        super().__init__(api_key=None, **kwargs)
        self.relay_url = relay_url.rstrip("/")
        self.timeout = timeout

    def generate_content(
        self, model: str, contents: str, config: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Posts a generateContent request and returns the relayed response."""
        resp = requests.post(
            f"{self.relay_url}/api/gemini-proxy",
            json={
                "endpoint": "generateContent",
                "params": {"model": model, "contents": contents, "config": config},
            },
            timeout=self.timeout,
        )
        if not resp.ok:
            try:
                message = resp.json().get("error")
            except ValueError:
                message = None
            raise TrackerError(message or "Request to proxy failed")
        return resp.json()

    def _generate(self, model: str, contents: str, config: Dict[str, Any]) -> str:
        return self.generate_content(model, contents, config).get("text") or ""

    def stream_chat(self, message: str) -> Iterator[Dict[str, Any]]:
        """Yields the chunks relayed by the streaming chat endpoint."""
        with requests.post(
            f"{self.relay_url}/api/gemini-chat-stream",
            json={"message": message},
            stream=True,
            timeout=self.timeout,
        ) as resp:
            resp.raise_for_status()
            yield from iter_sse_chunks(resp.iter_lines(decode_unicode=True))

    def open_chat(self) -> RelayChat:
        return RelayChat(self)
