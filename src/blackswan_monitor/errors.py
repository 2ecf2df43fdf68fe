"""Error taxonomy for the analysis pipeline.

Cycle-fatal errors (InsufficientData, UpstreamError, ParseError, ValidationError)
propagate to the cycle orchestrator, which turns them into a failed outcome.
FeedUnavailable and StorageError are absorbed where they happen and recorded
as status instead.
"""

from typing import Dict, Optional


class BlackSwanError(Exception):
    """Base exception for all pipeline errors."""

    def __init__(self, message: str, details: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class FeedUnavailable(BlackSwanError):
    """A source's push channel reported an error; its cached document was cleared."""


class InsufficientData(BlackSwanError):
    """No source had usable data when the snapshot was taken."""


class UpstreamError(BlackSwanError):
    """The reasoning endpoint could not produce a completion."""


class ParseError(BlackSwanError):
    """No structured block could be extracted from the model's text."""


class ValidationError(BlackSwanError):
    """The extracted object is missing a required field or has a value out of range."""


class StorageError(BlackSwanError):
    """The result store could not persist an analysis."""
