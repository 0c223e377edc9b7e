"""
Configuration for the Update Tracker.

Settings come from config.json next to this module; secrets and deployment
switches come from environment variables.
"""

import json
import logging
import os
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)

DEFAULTS: Dict[str, Any] = {
    "models": {"flash": "gemini-2.5-flash", "pro": "gemini-2.5-pro"},
    "poll_interval_seconds": 3600,
    "news_refresh_interval_seconds": 3600,
    "thinking_budget": 32768,
    "videos_per_page": 20,
    "state_file": "dashboard_state.json",
    "github_api_base": "https://api.github.com",
    "request_timeout_seconds": 10,
}


def load_config(config_filename: str = "config.json") -> Dict[str, Any]:
    """Loads configuration from a JSON file, layered over the defaults."""
    # Build absolute path relative to this module
    base_dir = os.path.dirname(os.path.abspath(__file__))
    config_path = os.path.join(base_dir, config_filename)

    config = dict(DEFAULTS)
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config.update(json.load(f))
    except FileNotFoundError:
        logger.warning("Config file not found at %s. Using defaults.", config_path)
    return config


# Env Vars
GEMINI_API_KEY: Optional[str] = os.environ.get("GEMINI_KEY")
RELAY_URL: Optional[str] = os.environ.get("RELAY_URL")
GITHUB_TOKEN: Optional[str] = os.environ.get("GITHUB_TOKEN")
GCP_PROJECT_ID: Optional[str] = os.environ.get("GCP_PROJECT_ID")
