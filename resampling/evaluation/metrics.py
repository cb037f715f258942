"""
Standard evaluation metrics for resampled models.

Implements:
- rmse: Root mean squared error
- rsq: Coefficient of determination as squared Pearson correlation
- rsq_trad: Traditional R^2 (1 - SSE/SST)
- mae: Mean absolute error
- accuracy, kap: Accuracy and Cohen's kappa for categorical outcomes
- confusion_matrix: Flattened counts, one entry per (truth, pred) pair
"""

from __future__ import annotations

from typing import Dict, List, Sequence

import numpy as np
from sklearn.metrics import (
    accuracy_score,
    cohen_kappa_score,
    confusion_matrix,
    mean_absolute_error,
    mean_squared_error,
    r2_score,
)

from resampling.errors import InvalidConfiguration, LengthMismatch


REGRESSION_METRICS = ("rmse", "rsq", "rsq_trad", "mae")
CLASSIFICATION_METRICS = ("accuracy", "kap", "confusion_matrix")

# Direction used when ranking candidates
LOWER_IS_BETTER = frozenset({"rmse", "mae"})


def compute_rmse(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """Compute root mean squared error. Lower is better."""
    return float(np.sqrt(mean_squared_error(y_true, y_pred)))


def compute_rsq(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """Compute R^2 as the squared correlation between truth and prediction.

    Always in [0, 1]. Undefined (NaN) when either input is constant.
    """
    if np.std(y_true) == 0 or np.std(y_pred) == 0:
        return float("nan")
    r = np.corrcoef(y_true, y_pred)[0, 1]
    return float(r ** 2)


def compute_rsq_trad(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """Compute traditional R^2; can be negative for poor models."""
    return float(r2_score(y_true, y_pred))


def compute_mae(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """Compute mean absolute error. Lower is better."""
    return float(mean_absolute_error(y_true, y_pred))


def compute_confusion(y_true: np.ndarray, y_pred: np.ndarray) -> Dict[str, float]:
    """Confusion matrix counts keyed ``cm_{truth}_{pred}``.

    Labels are the sorted union of observed truths and predictions.
    """
    labels = sorted(set(y_true.tolist()) | set(y_pred.tolist()), key=str)
    cm = confusion_matrix(y_true, y_pred, labels=labels)
    return {
        f"cm_{t}_{p}": float(cm[i, j])
        for i, t in enumerate(labels)
        for j, p in enumerate(labels)
    }


def validate_metric_names(metrics: Sequence[str]) -> List[str]:
    """Lower-case and check metric names before any work is done."""
    supported = REGRESSION_METRICS + CLASSIFICATION_METRICS
    names = [m.lower() for m in metrics]
    if not names:
        raise InvalidConfiguration("At least one metric is required")
    for m, name in zip(metrics, names):
        if name not in supported:
            raise InvalidConfiguration(f"Unknown metric: {m}. Supported: {list(supported)}")
    return names


def _as_numeric(values: np.ndarray, label: str) -> np.ndarray:
    try:
        return values.astype(float)
    except (TypeError, ValueError) as e:
        raise InvalidConfiguration(
            f"Regression metrics need numeric {label}; got dtype {values.dtype}"
        ) from e


def compute_metrics(
    y_true: Sequence,
    y_pred: Sequence,
    metrics: Sequence[str],
) -> Dict[str, float]:
    """Compute multiple evaluation metrics.

    Args:
        y_true: Observed values (numeric, or labels for classification metrics).
        y_pred: Predicted values, aligned with y_true.
        metrics: Metric names (case-insensitive).

    Returns:
        Dictionary mapping metric name to value. "confusion_matrix" expands
        to one ``cm_{truth}_{pred}`` entry per cell.

    Raises:
        LengthMismatch: Inputs differ in length or are empty.
        InvalidConfiguration: Unknown metric name.
    """
    names = validate_metric_names(metrics)

    y_true = np.asarray(y_true)
    y_pred = np.asarray(y_pred)
    if y_true.shape[0] != y_pred.shape[0]:
        raise LengthMismatch(
            f"truths and predictions differ in length: {len(y_true)} != {len(y_pred)}"
        )
    if y_true.shape[0] == 0:
        raise LengthMismatch("Cannot compute metrics on empty inputs")

    results: Dict[str, float] = {}
    for name in names:
        if name in REGRESSION_METRICS:
            t = _as_numeric(y_true, "truths")
            p = _as_numeric(y_pred, "predictions")
            metric_funcs = {
                "rmse": compute_rmse,
                "rsq": compute_rsq,
                "rsq_trad": compute_rsq_trad,
                "mae": compute_mae,
            }
            results[name] = metric_funcs[name](t, p)
        elif name == "accuracy":
            results[name] = float(accuracy_score(y_true, y_pred))
        elif name == "kap":
            results[name] = float(cohen_kappa_score(y_true, y_pred))
        else:
            results.update(compute_confusion(y_true, y_pred))

    return results


def compute(metric_names: Sequence[str], truths: Sequence, predictions: Sequence) -> Dict[str, float]:
    """Evaluator entry point: ``compute(metric_names, truths, predictions)``."""
    return compute_metrics(truths, predictions, metric_names)


def is_lower_better(metric: str) -> bool:
    return metric.lower() in LOWER_IS_BETTER
