"""Resampling orchestrator, grid tuning and final holdout fit."""

from resampling.experiments.resample_runner import (
    ComparisonResult,
    ResampleReport,
    SplitResult,
    compare,
    run,
    summarize,
)
from resampling.experiments.tuning import (
    LastFitResult,
    TuneResult,
    last_fit,
    make_grid,
    tune_grid,
)

__all__ = [
    "ComparisonResult",
    "LastFitResult",
    "ResampleReport",
    "SplitResult",
    "TuneResult",
    "compare",
    "last_fit",
    "make_grid",
    "run",
    "summarize",
    "tune_grid",
]
