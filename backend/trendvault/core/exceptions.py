"""Error taxonomy for the fetch/dedup/trending pipeline

Each error carries the HTTP status the API layer responds with and whether
the caller may simply retry. Handlers in ``trendvault.main`` turn them into
``{"success": false, "message": ...}`` responses.
"""
from typing import Optional


class TrendVaultError(Exception):
    """Base class for errors surfaced to API callers"""

    status_code = 500
    default_message = "Request failed"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None,
                 retryable: bool = False):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        self.retryable = retryable
        super().__init__(self.message)


class InvalidUrlError(TrendVaultError):
    """Submitted input is malformed; the user can correct it"""

    status_code = 400
    default_message = "Please enter a valid Twitter/X URL"


class ExtractionError(TrendVaultError):
    """The external extractor reported failure or could not be reached"""

    status_code = 502
    default_message = "Failed to fetch video. Please try again."


class UpstreamFetchError(TrendVaultError):
    """Video bytes could not be downloaded from the extractor-provided URL"""

    status_code = 502
    default_message = "Failed to download video"


class StorageWriteError(TrendVaultError):
    """Blob or metadata write failed"""

    status_code = 500
    default_message = "Failed to store video"


class AlreadyStoredError(TrendVaultError):
    """Metadata insert lost a race against a concurrent store of the same post"""

    status_code = 409
    default_message = "Video was stored by a concurrent request"

    def __init__(self, existing, message: Optional[str] = None):
        super().__init__(message)
        self.existing = existing
