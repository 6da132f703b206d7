"""Error definitions and policy helpers for the sitelocale translator."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


class ErrorCategory(Enum):
    """Categorises page/locale-local problems reported to the caller."""

    MISSING_INPUT = auto()
    NO_TRANSLATIONS = auto()
    UNMATCHED_FRAGMENT = auto()
    MALFORMED_MARKUP = auto()
    FILE_IO = auto()
    OTHER = auto()


class SiteLocaleError(Exception):
    """Base exception for all custom errors."""


class AbortRequested(SiteLocaleError):
    """Raised when the user elects to abort processing."""


class NonInteractiveAbort(SiteLocaleError):
    """Raised when non-interactive policy dictates termination."""


class OverwriteRefusedError(SiteLocaleError):
    """Raised when attempting to overwrite an output without consent."""


class ConfigurationError(SiteLocaleError):
    """Raised when the configuration cannot be loaded or validated."""


class ContentSourceError(SiteLocaleError):
    """Raised when an export directory cannot be used as a content source."""


@dataclass
class ErrorRecord:
    """Stores context for a handled error."""

    category: ErrorCategory
    message: str
    details: Optional[str] = None
    page: Optional[str] = None
    locale: Optional[str] = None


class ErrorTracker:
    """Tracks consecutive and aggregate errors to satisfy policy rules."""

    CONSECUTIVE_LIMIT = 3
    TOTAL_LIMIT = 10

    def __init__(
        self,
        consecutive_limit: Optional[int] = None,
        total_limit: Optional[int] = None,
    ) -> None:
        self.consecutive_limit = consecutive_limit or self.CONSECUTIVE_LIMIT
        self.total_limit = total_limit or self.TOTAL_LIMIT
        self.last_category: Optional[ErrorCategory] = None
        self.consecutive: int = 0
        self.total: int = 0

    def register(self, category: ErrorCategory) -> tuple[int, int, bool]:
        """Register a new error and return counters."""

        if self.last_category == category:
            self.consecutive += 1
        else:
            self.last_category = category
            self.consecutive = 1

        self.total += 1

        threshold_reached = (
            self.consecutive >= self.consecutive_limit
            or self.total >= self.total_limit
        )

        return self.consecutive, self.total, threshold_reached

    def reset_consecutive(self) -> None:
        """Reset the consecutive counter after successful work."""

        self.consecutive = 0
        self.last_category = None
