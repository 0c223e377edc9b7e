"""Unit tests for the relay client."""

import unittest
from unittest.mock import MagicMock, patch

from update_tracker.exceptions import TrackerError
from update_tracker.services.chat import ChatSession
from update_tracker.services.relay_client import RelayLLMService


def _response(payload=None, ok=True, lines=None):
    resp = MagicMock()
    resp.ok = ok
    resp.json.return_value = payload
    resp.iter_lines.return_value = iter(lines or [])
    resp.__enter__.return_value = resp
    return resp


class TestRelayLLMService(unittest.TestCase):
    def setUp(self):
        self.service = RelayLLMService("http://relay:3001/")

    @patch("update_tracker.services.relay_client.requests.post")
    def test_generate_goes_through_proxy(self, mock_post):
        mock_post.return_value = _response({"text": '["AI"]'})

        self.assertEqual(self.service.generate_tags("https://x.io"), ["Ai"])

        args, kwargs = mock_post.call_args
        self.assertEqual(args[0], "http://relay:3001/api/gemini-proxy")
        self.assertEqual(kwargs["json"]["endpoint"], "generateContent")
        self.assertEqual(kwargs["json"]["params"]["model"], "gemini-2.5-flash")
        self.assertEqual(kwargs["timeout"], 10)

    @patch("update_tracker.services.relay_client.requests.post")
    def test_proxy_error_surfaces_message(self, mock_post):
        mock_post.return_value = _response({"error": "Failed to get response from AI."}, ok=False)
        with self.assertRaises(TrackerError) as ctx:
            self.service.generate_content("m", "c", {})
        self.assertEqual(str(ctx.exception), "Failed to get response from AI.")

    @patch("update_tracker.services.relay_client.requests.post")
    def test_proxy_error_is_lenient_for_news(self, mock_post):
        mock_post.return_value = _response({}, ok=False)
        self.assertEqual(self.service.fetch_and_summarize_news("https://x.io"), [])

    @patch("update_tracker.services.relay_client.requests.post")
    def test_stream_chat_through_session(self, mock_post):
        mock_post.return_value = _response(
            lines=['data: {"text": "Hi"}', "", "data: oops", 'data: {"text": "!"}', ""]
        )
        session = ChatSession(self.service)

        reply = session.send("hello")

        self.assertEqual(reply["text"], "Hi!")
        args, kwargs = mock_post.call_args
        self.assertEqual(args[0], "http://relay:3001/api/gemini-chat-stream")
        self.assertEqual(kwargs["json"], {"message": "hello"})
        self.assertTrue(kwargs["stream"])


if __name__ == "__main__":
    unittest.main()
