"""Exceptions raised by the consolidation pipeline."""

from typing import Optional


class ConsolidatorError(Exception):
    """Base class for all consolidator errors."""


class ConfigurationError(ConsolidatorError):
    """Invalid settings, missing credentials or an unsupported provider."""


class NoInputError(ConsolidatorError):
    """No CSV files were found in the input directory."""


class InputError(ConsolidatorError):
    """An input CSV file could not be read, decoded or parsed."""


class OutputError(ConsolidatorError):
    """The consolidated knowledge base could not be written."""


class MergeError(ConsolidatorError):
    """A single group could not be merged by the backend."""


class MergeResponseError(MergeError):
    """The backend answered, but not with a usable merged record."""


class BackendRequestError(MergeError):
    """Transport failure or non-success status from the merge backend."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class BudgetExceededWarning(UserWarning):
    """The per-run limit on external calls has been reached."""
