"""Error handling policy implementation."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from .errors import (
    AbortRequested,
    ErrorCategory,
    ErrorRecord,
    ErrorTracker,
    NonInteractiveAbort,
)

logger = logging.getLogger(__name__)

Prompt = Callable[[str], str]


class ErrorPolicy:
    """Collects page/locale-local problems and decides when a run must stop."""

    def __init__(
        self,
        *,
        interactive: bool,
        consecutive_limit: Optional[int] = None,
        total_limit: Optional[int] = None,
        prompt: Prompt = input,
    ) -> None:
        self.interactive = interactive
        self.records: List[ErrorRecord] = []
        self.notices: List[ErrorRecord] = []
        self.tracker = ErrorTracker(consecutive_limit, total_limit)
        self.prompt = prompt

    def record_success(self) -> None:
        """Reset consecutive counters after successful work."""

        self.tracker.reset_consecutive()

    def note(
        self,
        category: ErrorCategory,
        message: str,
        *,
        page: Optional[str] = None,
        locale: Optional[str] = None,
    ) -> None:
        """Record a non-fatal signal that never counts toward the thresholds."""

        self.notices.append(
            ErrorRecord(category=category, message=message, page=page, locale=locale)
        )
        logger.info(message)

    def handle_error(
        self,
        category: ErrorCategory,
        message: str,
        details: Optional[str] = None,
        *,
        page: Optional[str] = None,
        locale: Optional[str] = None,
    ) -> str:
        """Handle an error and decide whether to continue, retry, or abort."""

        self.records.append(
            ErrorRecord(
                category=category,
                message=message,
                details=details,
                page=page,
                locale=locale,
            )
        )
        consecutive, total, threshold = self.tracker.register(category)

        logger.error(message)

        if not threshold:
            return "continue"

        prompt = (
            f"Repeated errors detected ({consecutive} times). Continue, retry, or abort?"
            if consecutive >= self.tracker.consecutive_limit
            else f"{total} errors encountered. Continue, retry, or abort?"
        )

        if not self.interactive:
            raise NonInteractiveAbort(
                "Error threshold exceeded in non-interactive mode. Stopping safely."
            )

        while True:
            response = self.prompt(f"{prompt} ").strip().lower()
            if response in {"continue", "c"}:
                return "continue"
            if response in {"retry", "r"}:
                return "retry"
            if response in {"abort", "a"}:
                raise AbortRequested("Abort requested by user.")
            print("Please respond with Continue, Retry, or Abort (c/r/a).")
