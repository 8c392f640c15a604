"""Interface for presenting report output to the user.

Defines the contract for displaying information, errors, warnings, tables
and JSON payloads, allowing different UI implementations.
"""

import abc
from typing import Any, Optional, Sequence

from metquery.domain.models.common import JSONDocument
from metquery.domain.models.payment import CallResult, RunSummary


class UserInterface(abc.ABC):
    """Abstract Base Class for report output."""

    @abc.abstractmethod
    def display_heading(self, title: str, **kwargs: Any) -> None:
        """Displays a section heading."""
        pass

    @abc.abstractmethod
    def display_output(self, output: str, **kwargs: Any) -> None:
        """Displays a plain line of report output."""
        pass

    @abc.abstractmethod
    def display_json(self, data: JSONDocument, title: Optional[str] = None) -> None:
        """Pretty prints a JSON payload."""
        pass

    @abc.abstractmethod
    def display_table(self, columns: Sequence[str], rows: Sequence[Sequence[Any]], title: Optional[str] = None) -> None:
        """Displays rows as a table."""
        pass

    @abc.abstractmethod
    def display_payment(self, result: CallResult) -> None:
        """Displays the cost and settlement of one paid call."""
        pass

    @abc.abstractmethod
    def display_summary(self, summary: RunSummary, title: str = "COST SUMMARY") -> None:
        """Displays the end-of-run cost summary."""
        pass

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message to the user (standard error)."""
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message to the user."""
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message to the user."""
        pass
