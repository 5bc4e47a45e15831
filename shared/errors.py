"""Error taxonomy of the bookmark index.

Provider clients raise these instead of bare exceptions so that callers can
tell retryable conditions (rate limits, outages) from permanent ones (no page
text) without string matching.
"""

import re

_RETRY_HINT_PATTERN = re.compile(r"retry in (\d+(?:\.\d+)?)", re.IGNORECASE)


class BookmarkIndexError(Exception):
    """Base class of all bookmark index errors."""


class NotInitializedError(BookmarkIndexError):
    """A backend was used before it was booted. Retry later."""


class EmptyQueryError(BookmarkIndexError):
    """The search query was empty or whitespace only."""


class ProviderUnavailableError(BookmarkIndexError):
    """The embedding, summary or vector backend failed to answer."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NetworkFailureError(ProviderUnavailableError):
    """The backend could not be reached at all."""


class ProviderParseError(ProviderUnavailableError):
    """The backend answered with a payload we could not interpret."""


class EmptyResponseError(ProviderUnavailableError):
    """The summary backend answered without any text."""


class RateLimitedError(BookmarkIndexError):
    """The backend rejected the request because a quota was exhausted.

    Attributes:
        retry_after: Seconds the provider asked us to wait, if it said so.
    """

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class PageTextUnavailableError(BookmarkIndexError):
    """No text could be extracted for a page. Skip it, do not retry."""


class SearchUnavailableError(BookmarkIndexError):
    """Generic search failure shown to users; the specific cause is chained."""


class ReindexInProgressError(BookmarkIndexError):
    """A full reindex is already running; rebuild and clear must wait for it."""


def parse_retry_hint(message: str | None, retry_after_header: str | None = None) -> float | None:
    """Extract a retry delay in seconds from a Retry-After header or provider message.

    Args:
        message (str | None): The provider's error message (e.g. "... Please retry in 12.5s.").
        retry_after_header (str | None): The raw Retry-After header value.

    Returns:
        float | None: The delay in seconds, or None when no hint is present.
    """
    if retry_after_header:
        try:
            return float(retry_after_header.strip())
        except ValueError:
            pass  # HTTP-date form, fall through to the message
    if message:
        match = _RETRY_HINT_PATTERN.search(message)
        if match:
            return float(match.group(1))
    return None
