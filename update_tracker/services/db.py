"""
Storage service for the dashboard's persisted collections.

Each collection (repositories, news sources, video tags) is a JSON array
stored under its own key and overwritten wholesale on every change. State is
kept in Google Firestore when a project is configured, otherwise in a local
JSON file.
"""

import json
import logging
import os
import threading
from typing import Any, List, Optional, Protocol

from google.cloud import firestore  # type: ignore

logger = logging.getLogger(__name__)

REPOSITORIES_KEY = "repositories"
NEWS_SOURCES_KEY = "newsSources"
YOUTUBE_TAGS_KEY = "youtubeTags"


class StateStore(Protocol):
    """Key-value store holding one JSON array per key."""

    def load(self, key: str, default: Optional[List[Any]] = None) -> List[Any]:
        """Returns the stored array, or default when the key is absent."""

    def save(self, key: str, items: List[Any]) -> None:
        """Overwrites the array stored under key."""


class JsonFileStore:
    """Stores every key in a single JSON file."""

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()

    def _read(self) -> dict:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning("State file %s is corrupt, starting empty: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def load(self, key: str, default: Optional[List[Any]] = None) -> List[Any]:
        with self._lock:
            value = self._read().get(key)
        if isinstance(value, list):
            return value
        return list(default or [])

    def save(self, key: str, items: List[Any]) -> None:
        with self._lock:
            data = self._read()
            data[key] = items
            tmp_path = f"{self.path}.tmp"
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)


class FirestoreStore:
    """Stores each key as one document of the dashboard_state collection."""

    def __init__(self, project_id: str, collection: str = "dashboard_state"):
        self.db = firestore.Client(project=project_id)
        self.collection = self.db.collection(collection)
        logger.info("Connected to Firestore for dashboard state.")

    def load(self, key: str, default: Optional[List[Any]] = None) -> List[Any]:
        snap = self.collection.document(key).get()
        if snap.exists:
            value = (snap.to_dict() or {}).get("items")
            if isinstance(value, list):
                return value
        return list(default or [])

    def save(self, key: str, items: List[Any]) -> None:
        self.collection.document(key).set({"items": items})


def create_store(project_id: Optional[str], state_file: str) -> StateStore:
    """Uses Firestore when a project is configured, otherwise the JSON file."""
    if not project_id:
        logger.warning("GCP_PROJECT_ID not set. Storing state in %s.", state_file)
        return JsonFileStore(state_file)

    try:
        return FirestoreStore(project_id)
    except Exception as e:  # pylint: disable=broad-exception-caught
        logger.warning("Firestore connection failed, using %s: %s", state_file, e)
        return JsonFileStore(state_file)
