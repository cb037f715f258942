"""
Error hierarchy for the resampling core.

Configuration problems are raised before any split is processed; problems
inside a split abort the whole run (see SplitFailed). Unseen categorical
levels are handled by the transform steps and are never an error.
"""

from __future__ import annotations


class ResampleError(Exception):
    """Base class for all errors raised by this package."""


class InvalidConfiguration(ResampleError, ValueError):
    """Bad splitter, model, metric or pipeline configuration."""


class UnknownColumn(InvalidConfiguration, KeyError):
    """A step, formula or splitter references a column absent from the data."""

    def __init__(self, column: str, where: str = "dataset") -> None:
        self.column = column
        self.where = where
        super().__init__(f"Column '{column}' not found in {where}")

    def __str__(self) -> str:
        # KeyError repr-quotes its message otherwise
        return self.args[0]


class DegenerateColumn(ResampleError, ValueError):
    """Input that cannot support the requested operation (e.g. zero variance)."""


class FitError(ResampleError, RuntimeError):
    """The underlying model could not be fit on the design matrix."""


class LengthMismatch(ResampleError, ValueError):
    """Truths and predictions have different (or zero) lengths."""


class SplitFailed(ResampleError, RuntimeError):
    """A single split failed; the run is aborted with no partial report."""

    def __init__(self, split_id: str, cause: BaseException) -> None:
        self.split_id = split_id
        self.cause = cause
        super().__init__(f"Split '{split_id}' failed: {type(cause).__name__}: {cause}")


class ResampleAborted(ResampleError, RuntimeError):
    """The run was cancelled between splits."""
