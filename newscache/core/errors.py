"""Error taxonomy shared by the fetch client, the store and the repository.

Every error raised to callers of :class:`~newscache.services.repository.ArticleRepository`
derives from :class:`NewsCacheError`. Remote failures are :class:`FetchError`
subclasses that carry a ``kind`` string and a user-facing ``message``;
persistence failures are :class:`StorageError`. None of them are retried by
the library.
"""
from __future__ import annotations

from typing import Optional

class NewsCacheError(Exception):
    kind = "unknown"
    message = "An unexpected error occurred."

    def __init__(self, message: Optional[str] = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)

class FetchError(NewsCacheError):
    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

class Unauthorized(FetchError):
    kind = "unauthorized"
    message = "Invalid API key. Please check your configuration."

class RateLimited(FetchError):
    """Upstream answered 429, or the local daily budget is spent.

    Both surface as the same kind; ``origin`` tells them apart.
    """

    kind = "rate_limited"
    message = "Rate limit hit. Please retry later."
    origin = "upstream"

class BudgetExhausted(RateLimited):
    # Raised before any network call is attempted
    origin = "local"

class BadRequest(FetchError):
    kind = "bad_request"
    message = "Invalid request. Please check your search terms."

class ServerError(FetchError):
    kind = "server_error"
    message = "Server error. Please try again later."

class DecodingError(FetchError):
    kind = "decoding_error"
    message = "Failed to process response from server."

class UnknownError(FetchError):
    kind = "unknown"

class StorageError(NewsCacheError):
    kind = "storage_error"
    message = "Failed to read or write the local article cache."

# Everything load_feed/search can raise, usable directly in an except clause
SyncError = (FetchError, StorageError)
