"""
Frequentist comparison of configurations resampled over the same splits.

Per-split metrics of two configurations are paired by split_id, so the
between-split variation (which is usually much larger than the
between-model variation) cancels out of the differences.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any, Dict

import numpy as np
import pandas as pd
from scipy import stats

from resampling.errors import InvalidConfiguration

if TYPE_CHECKING:
    from resampling.experiments.resample_runner import ComparisonResult, ResampleReport


@dataclass
class PairedTestResult:
    """Paired t-test of ``report_a - report_b`` on one metric."""

    metric: str
    mean_difference: float
    t_statistic: float
    p_value: float
    ci_lower: float
    ci_upper: float
    n: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def paired_differences(
    report_a: ResampleReport,
    report_b: ResampleReport,
    metric: str,
) -> pd.Series:
    """Per-split ``a - b`` differences aligned on split_id.

    Raises:
        InvalidConfiguration: The reports were not built on the same splits.
    """
    a = report_a.values(metric)
    b = report_b.values(metric)
    if list(a.index) != list(b.index):
        raise InvalidConfiguration(
            f"Reports '{report_a.config_name}' and '{report_b.config_name}' "
            "were not resampled on the same splits"
        )
    return (a - b).rename(metric)


def paired_t_test(
    report_a: ResampleReport,
    report_b: ResampleReport,
    metric: str,
    confidence: float = 0.95,
) -> PairedTestResult:
    """Paired t-test on per-split metric values.

    Args:
        report_a: First configuration.
        report_b: Second configuration, resampled on the same splits.
        metric: Metric to compare.
        confidence: Level of the interval on the mean difference.

    Returns:
        PairedTestResult for ``a - b``.
    """
    diffs = paired_differences(report_a, report_b, metric).dropna()
    n = len(diffs)
    if n < 2:
        raise InvalidConfiguration(f"Paired t-test needs at least 2 splits, got {n}")

    a = report_a.values(metric).loc[diffs.index].to_numpy()
    b = report_b.values(metric).loc[diffs.index].to_numpy()
    t_stat, p_value = stats.ttest_rel(a, b)

    mean_diff = float(diffs.mean())
    std_err = float(diffs.std(ddof=1)) / np.sqrt(n)
    margin = stats.t.ppf(0.5 + confidence / 2, df=n - 1) * std_err

    return PairedTestResult(
        metric=metric.lower(),
        mean_difference=mean_diff,
        t_statistic=float(t_stat),
        p_value=float(p_value),
        ci_lower=mean_diff - margin,
        ci_upper=mean_diff + margin,
        n=n,
    )


def compare_summary(comparison: ComparisonResult, metric: str) -> pd.DataFrame:
    """One row per configuration: mean, std, n and std_err of `metric`."""
    summary = comparison.summary()
    rows = summary[summary["metric"] == metric.lower()]
    if rows.empty:
        raise InvalidConfiguration(f"Metric '{metric}' not in comparison")
    return rows.drop(columns="metric").set_index("config")
