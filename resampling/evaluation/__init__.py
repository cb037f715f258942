"""Metrics and comparison of resampled configurations."""

from resampling.evaluation.bayesian_eval import bayesian_compare
from resampling.evaluation.comparison import (
    PairedTestResult,
    compare_summary,
    paired_differences,
    paired_t_test,
)
from resampling.evaluation.metrics import (
    CLASSIFICATION_METRICS,
    REGRESSION_METRICS,
    compute,
    compute_metrics,
    is_lower_better,
    validate_metric_names,
)

__all__ = [
    "CLASSIFICATION_METRICS",
    "REGRESSION_METRICS",
    "PairedTestResult",
    "bayesian_compare",
    "compare_summary",
    "compute",
    "compute_metrics",
    "is_lower_better",
    "paired_differences",
    "paired_t_test",
    "validate_metric_names",
]
