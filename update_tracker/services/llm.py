"""
LLM Service Module.

This module provides the LLMService class, which interfaces with the Google Gemini API
to summarize news sites, suggest tags for them, search for YouTube videos and answer
chat messages.
"""

import logging
from typing import Any, Dict, List, Optional

from google import genai

from update_tracker.exceptions import TrackerError
from update_tracker.models import NewsArticle, YouTubeVideo
from update_tracker.parsers.json_array import extract_json_array
from update_tracker.parsers.mappers import map_news_article, map_tag, map_video

logger = logging.getLogger(__name__)

FLASH_MODEL = "gemini-2.5-flash"
PRO_MODEL = "gemini-2.5-pro"
THINKING_BUDGET = 32768

SORT_OPTIONS = ("relevance", "date")
TIME_FRAMES = {
    "any": "any time",
    "day": "the last 24 hours",
    "week": "the last week",
    "month": "the last month",
    "year": "the last year",
}

SEARCH_TOOLS: Dict[str, Any] = {"tools": [{"google_search": {}}]}

COMPLEX_ERROR_REPLY = "Sorry, I encountered an error while processing your complex request."


class LLMService:
    """
    Service for interacting with the Google Gemini API.

    Every call that expects structured data asks for a JSON array and runs the
    answer through extract_json_array with the mapper for that call site.
    """

    _NEWS_PROMPT = """
        Analyze the website {url} and find the latest news articles from the last two weeks.
        Respond with a valid JSON array of objects. Each object must represent a news article and have these exact keys: "title" (string), "summary" (string), and "link" (string).

        Example response format:
        [
          {{
            "title": "Example News Title",
            "summary": "A brief summary of the example news article.",
            "link": "https://example.com/news/article1"
          }}
        ]

        If you cannot find any recent news articles or cannot access the content, respond with an empty JSON array: [].
        Your entire response should be ONLY the JSON array. Do not include any other text, explanations, or markdown formatting.
        """

    _TAGS_PROMPT = """
        Analyze the content of the website at this URL: {url}.
        Based on its main topics, generate a list of 3 to 5 relevant one-word or two-word tags.
        These tags should categorize the website's content (e.g., "Technology", "AI", "Open Source", "Cybersecurity", "Developer Tools").
        Respond with a valid JSON array of strings.

        Example response format:
        ["Technology", "Developer Tools", "Networking", "Security"]

        Your entire response should be ONLY the JSON array. Do not include any other text, explanations, or markdown formatting.
        If you cannot analyze the URL, return an empty JSON array: [].
        """

    _VIDEO_PROMPT = """
        You are an expert YouTube video search assistant, designed to find relevant videos using Google Search. Your task is to construct a search query and return a structured JSON response.

        Instructions:
        1. Analyze Tags & Construct Search Query: Create a Google Search query to find YouTube videos where the primary topics are related to "{tag_list}". Prioritize videos where these terms appear prominently in the title or description. The query should look like this: ({tag_query}) site:youtube.com
        2. Filter and Sort:
           - Sort by: {sort_by} (If sorting by date, prioritize the newest videos first).
           - Published within: {time_frame}.
        3. Pagination: Return page {page} of the results. Assume {per_page} videos per page. Do your best to find {per_page} unique videos for the requested page.
        4. Format Output: Respond with a valid JSON array of objects. Each object must represent a unique YouTube video and have these exact keys:
           - "id": string (the unique YouTube video ID)
           - "title": string
           - "channelTitle": string
           - "publishedAt": string (the publication date in ISO 8601 format)
           - "url": string (the full "https://www.youtube.com/watch?v=..." URL)
           - "description": string (a brief, 1-2 sentence summary of the video)

        Example of a single object in the array:
        {{
          "id": "dQw4w9WgXcQ",
          "title": "Example Video Title",
          "channelTitle": "Example Channel",
          "publishedAt": "2023-10-26T10:00:00Z",
          "url": "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
          "description": "A short summary of what the video is about."
        }}

        Important:
        - If no videos are found for the given criteria, respond with an empty JSON array: [].
        - Your entire response must be ONLY the JSON array. Do not include any other text, explanations, or markdown formatting.
        """

    def __init__(
        self,
        api_key: Optional[str] = None,
        flash_model: str = FLASH_MODEL,
        pro_model: str = PRO_MODEL,
        thinking_budget: int = THINKING_BUDGET,
    ):
        self.flash_model = flash_model
        self.pro_model = pro_model
        self.thinking_budget = thinking_budget
        self.client: Optional[genai.Client] = None
        if api_key:
            try:
                self.client = genai.Client(api_key=api_key)
            except Exception as e:  # pylint: disable=broad-exception-caught
                logger.error("Failed to initialize Gemini client: %s", e)
                self.client = None

    @property
    def thinking_config(self) -> Dict[str, Any]:
        return {"thinking_config": {"thinking_budget": self.thinking_budget}}

    def _generate(self, model: str, contents: str, config: Dict[str, Any]) -> str:
        """Runs generate_content and returns the response text."""
        if not self.client:
            raise TrackerError("Gemini client not initialized.")
        response = self.client.models.generate_content(
            model=model, contents=contents, config=config
        )
        return response.text or ""

    def fetch_and_summarize_news(self, url: str) -> List[NewsArticle]:
        """Asks Gemini for the latest articles of a site; errors yield []."""
        try:
            text = self._generate(
                self.flash_model, self._NEWS_PROMPT.format(url=url), SEARCH_TOOLS
            )
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error("Error fetching news from Gemini for %s: %s", url, e)
            return []
        return extract_json_array(text, map_news_article)

    def generate_tags(self, url: str) -> List[str]:
        """Suggests normalized topic tags for a site; errors yield []."""
        try:
            text = self._generate(
                self.flash_model, self._TAGS_PROMPT.format(url=url), SEARCH_TOOLS
            )
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error("Error generating tags with Gemini for %s: %s", url, e)
            return []
        return extract_json_array(text, map_tag)

    def search_videos(
        self,
        tags: List[str],
        sort_by: str = "date",
        time_frame: str = "week",
        page: int = 1,
        per_page: int = 20,
    ) -> List[YouTubeVideo]:
        """
        Searches YouTube through Gemini with Google Search grounding.

        Unlike the other calls this one is strict: an unusable answer raises
        ExtractionError so it is not mistaken for "no videos found".
        """
        if not tags:
            return []
        if sort_by not in SORT_OPTIONS:
            raise ValueError(f"Unsupported sort order: {sort_by}")
        if time_frame not in TIME_FRAMES:
            raise ValueError(f"Unsupported time frame: {time_frame}")

        prompt = self._VIDEO_PROMPT.format(
            tag_list=", ".join(tags),
            tag_query=" OR ".join(tags),
            sort_by=sort_by,
            time_frame=TIME_FRAMES[time_frame],
            page=page,
            per_page=per_page,
        )
        logger.info("Asking Gemini for videos (tags=%s, page %d)...", tags, page)
        try:
            text = self._generate(
                self.pro_model, prompt, {**SEARCH_TOOLS, **self.thinking_config}
            )
            return extract_json_array(text, map_video, strict=True)
        except TrackerError:
            raise
        except Exception as e:
            logger.error("Error fetching YouTube videos from Gemini: %s", e)
            raise TrackerError("Failed to fetch YouTube videos. Please try again.") from e

    def get_complex_response(self, prompt: str) -> str:
        """Answers with the pro model and a thinking budget."""
        try:
            return self._generate(self.pro_model, prompt, self.thinking_config)
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error("Error getting complex response: %s", e)
            return COMPLEX_ERROR_REPLY

    def open_chat(self) -> Any:
        """Starts a chat with an empty history on the flash model."""
        if not self.client:
            raise TrackerError("Gemini client not initialized.")
        return self.client.chats.create(model=self.flash_model, history=[])
