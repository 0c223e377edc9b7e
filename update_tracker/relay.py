"""
Gemini relay server.

Keeps the Gemini API key on the server: the dashboard posts its requests here
and the relay forwards them, streaming chat replies back as server-sent events.
"""

import json
import logging
from typing import Any, Dict, Iterator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse
from google import genai

from update_tracker import config

logger = logging.getLogger(__name__)

CONFIG = config.load_config()
CHAT_MODEL: str = CONFIG["models"]["flash"]
PORT = 3001

app = FastAPI(title="Update Tracker Gemini Relay", version="1.0.0")

_client: Optional[genai.Client] = None


def get_client() -> genai.Client:
    """Creates the Gemini client on first use."""
    global _client  # pylint: disable=global-statement
    if _client is None:
        if not config.GEMINI_API_KEY:
            raise RuntimeError("GEMINI_KEY environment variable not set.")
        _client = genai.Client(api_key=config.GEMINI_API_KEY)
    return _client


def _to_json(response: Any) -> Dict[str, Any]:
    """Serializes an SDK response, exposing its text at the top level."""
    payload = response.model_dump(mode="json", exclude_none=True)
    payload["text"] = response.text
    return payload


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "gemini-relay"}


# Generic proxy for non-streaming calls
@app.post("/api/gemini-proxy")
def gemini_proxy(body: Dict[str, Any]):
    endpoint = body.get("endpoint")
    params = body.get("params")
    if not endpoint or not params:
        return JSONResponse(
            status_code=400,
            content={"error": "Missing endpoint or params in request body."},
        )
    if endpoint != "generateContent":
        return JSONResponse(status_code=400, content={"error": "Unsupported endpoint."})

    try:
        result = get_client().models.generate_content(
            model=params.get("model"),
            contents=params.get("contents"),
            config=params.get("config"),
        )
        return _to_json(result)
    except Exception as e:  # pylint: disable=broad-exception-caught
        logger.error("Error proxying to Gemini: %s", e)
        return JSONResponse(
            status_code=500, content={"error": "Failed to get response from AI."}
        )


@app.post("/api/gemini-chat-stream")
async def gemini_chat_stream(request: Request):
    body = await request.json()
    message = body.get("message") if isinstance(body, dict) else None
    if not message:
        return JSONResponse(
            status_code=400, content={"error": "Missing message in request body."}
        )

    def _event_stream() -> Iterator[str]:
        # SSE format: data: {JSON_STRING}\n\n
        try:
            chat = get_client().chats.create(model=CHAT_MODEL, history=[])
            for chunk in chat.send_message_stream(message):
                yield f"data: {json.dumps(_to_json(chunk))}\n\n"
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error("Error streaming chat: %s", e)

    headers = {"Cache-Control": "no-cache", "Connection": "keep-alive"}
    return StreamingResponse(_event_stream(), media_type="text/event-stream", headers=headers)


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info("Relay listening on port %d", PORT)
    uvicorn.run(app, host="0.0.0.0", port=PORT)
