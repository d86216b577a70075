"""Domain-specific exceptions for the article evaluator.

These exceptions allow the runner and API layers to distinguish between
different failure modes and report them with a short title plus a longer
description.  ``recoverable`` tells callers whether a retry can help or
whether settings need fixing first.
"""

from __future__ import annotations


class EvaluationError(Exception):
    """Base class for user-visible evaluation failures."""

    default_title = "Evaluation failed"
    recoverable = True

    def __init__(self, description: str, title: str | None = None) -> None:
        self.title = title or self.default_title
        self.description = description
        super().__init__(description)

    def to_dict(self) -> dict[str, object]:
        return {
            "type": type(self).__name__,
            "title": self.title,
            "description": self.description,
            "recoverable": self.recoverable,
        }


class ConfigurationError(EvaluationError):
    """The run cannot start: nothing selected, no content, or incomplete settings.

    Raised before anything is queued.  Not recoverable by retrying; the
    caller has to change its input or connection settings.
    """

    default_title = "Configuration required"
    recoverable = False


class ScoringError(EvaluationError):
    """A single rubric could not be scored by the external endpoint."""

    default_title = "Scoring failed"


class NetworkError(ScoringError):
    """Transport failure or non-2xx response from the completion endpoint."""

    default_title = "Scoring service unreachable"

    def __init__(self, description: str, status_code: int | None = None, url: str = "") -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(description)


class EmptyResponseError(ScoringError):
    """The endpoint answered but carried no text content."""

    default_title = "Empty scoring response"


class MalformedResultError(ScoringError):
    """No JSON object could be located or parsed in the model's text.

    Carries a truncated copy of the raw text for logging.
    """

    default_title = "Unreadable scoring result"

    def __init__(self, description: str, raw_text: str = "") -> None:
        self.raw_text = raw_text[:500]
        super().__init__(description)


class QueueStateError(ValueError):
    """An illegal queue-item status transition was requested."""

    def __init__(self, item_id: str, current: str, requested: str) -> None:
        self.item_id = item_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Queue item '{item_id}' cannot move from '{current}' to '{requested}'"
        )
