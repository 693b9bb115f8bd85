"""
exceptions.py - Error taxonomy for the scraping engine.

Every fatal error carries the URL it came from and the selector or
context that failed, so a log line is enough to find the broken page.
"""

from typing import Optional


class ScraperError(Exception):
    """Base class for scraping errors."""

    def __init__(self, message: str, url: Optional[str] = None, context: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.url = url
        self.context = context

    def __str__(self):
        parts = [self.message]
        if self.url:
            parts.append(f"url={self.url}")
        if self.context:
            parts.append(f"context={self.context}")
        return " | ".join(parts)


class TransientNetworkError(ScraperError):
    """A single attempt failed (timeout, transport error, non-2xx). Retried locally."""

    def __init__(self, message: str, url: Optional[str] = None, context: Optional[str] = None,
                 status: Optional[int] = None):
        super().__init__(message, url, context)
        self.status = status


class NavigationFailure(ScraperError):
    """Retries exhausted for a page load or HTTP fetch."""


class ExtractionError(ScraperError):
    """A structurally required field (id, link, date, club, result) could not be read."""


class InterceptorCorrelationFailure(ScraperError):
    """Captured quick-select payloads do not line up with the UI actions that fired them."""

    def __init__(self, message: str, url: Optional[str] = None, context: Optional[str] = None,
                 index: Optional[int] = None):
        super().__init__(message, url, context)
        self.index = index


class ReconciliationNotFound(ScraperError):
    """Search pages were exhausted without an exact competition id match."""

    def __init__(self, message: str, url: Optional[str] = None, context: Optional[str] = None,
                 competition_id: Optional[str] = None):
        super().__init__(message, url, context)
        self.competition_id = competition_id
