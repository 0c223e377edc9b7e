"""
Exceptions raised by the Update Tracker.

Each carries a message that can be shown to the user as-is.
"""


class TrackerError(Exception):
    """Base class for errors scoped to a single dashboard operation."""


class InvalidUrlError(TrackerError):
    """The URL entered by the user could not be parsed."""


class DuplicateEntityError(TrackerError):
    """The repository, news source or tag is already tracked."""


class GitHubError(TrackerError):
    """GitHub was unreachable or answered with a non-2xx status."""


class ExtractionError(TrackerError):
    """The AI response did not contain a usable JSON array."""

    def __init__(self, message: str = "The AI returned an invalid response. Please try again."):
        super().__init__(message)
