"""
Grid tuning over resamples and the final holdout fit.

Every candidate in a grid is resampled on the same splits, so candidate
metrics are directly comparable. After a candidate is chosen, last_fit
refits it on the full analysis partition of the initial split and scores
it once on the untouched test partition.
"""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pandas as pd

from resampling.config import ModelSpec, ResampleConfig
from resampling.data.formula import Formula
from resampling.data.splitters import Split
from resampling.errors import InvalidConfiguration, ResampleAborted
from resampling.evaluation.metrics import is_lower_better, validate_metric_names
from resampling.experiments.resample_runner import (
    ModelLike,
    ResampleReport,
    _model_frame,
    fit_split,
    resolve_formula,
    resolve_model,
    run,
)
from resampling.models import build_model
from resampling.models.base import FittedModel
from resampling.preprocessing.feature_pipeline import FeaturePipeline, FittedPipeline


def make_grid(**param_values: Iterable[Any]) -> List[Dict[str, Any]]:
    """Cartesian product of parameter values.

    >>> make_grid(penalty=[0.1, 1.0], mixture=[0.5])
    [{'penalty': 0.1, 'mixture': 0.5}, {'penalty': 1.0, 'mixture': 0.5}]
    """
    names = list(param_values)
    values = [list(v) for v in param_values.values()]
    return [dict(zip(names, combo)) for combo in itertools.product(*values)]


def _candidate_id(i: int, width: int) -> str:
    return f"Candidate{i:0{width}d}"


@dataclass
class TuneResult:
    """Resampling reports for each grid candidate."""

    family: str
    candidates: List[Dict[str, Any]]
    reports: List[ResampleReport]

    def collect_metrics(self) -> pd.DataFrame:
        """One row per (candidate, metric) with the candidate's parameters."""
        frames = []
        for params, report in zip(self.candidates, self.reports):
            frame = report.summary.copy()
            frame.insert(0, ".config", report.config_name)
            for j, (name, value) in enumerate(params.items(), start=1):
                frame.insert(j, name, value)
            frames.append(frame)
        return pd.concat(frames, ignore_index=True)

    def _metric_rows(self, metric: str) -> pd.DataFrame:
        metrics = self.collect_metrics()
        rows = metrics[metrics["metric"] == metric.lower()]
        if rows.empty:
            raise InvalidConfiguration(f"Metric '{metric}' was not computed during tuning")
        return rows

    def show_best(self, metric: str, n: int = 5) -> pd.DataFrame:
        """Top `n` candidates ordered best first."""
        rows = self._metric_rows(metric)
        ascending = is_lower_better(metric)
        return rows.sort_values("mean", ascending=ascending, kind="stable").head(n).reset_index(drop=True)

    def select_best(self, metric: str) -> Dict[str, Any]:
        """Parameters of the candidate with the best mean."""
        best = self.show_best(metric, n=1).iloc[0]
        return self._params_for(best[".config"])

    def select_by_one_std_err(self, metric: str, order_by: str) -> Dict[str, Any]:
        """Simplest candidate whose mean is within one std_err of the best.

        Args:
            metric: Metric to rank on.
            order_by: Parameter ordering candidates from simplest to most
                complex. Prefix with "-" to sort descending (e.g. "-penalty"
                since a larger penalty gives a simpler model).
        """
        descending = order_by.startswith("-")
        param = order_by.lstrip("-")
        rows = self._metric_rows(metric)
        if param not in rows.columns:
            raise InvalidConfiguration(f"Unknown tuning parameter: '{param}'")

        best = self.show_best(metric, n=1).iloc[0]
        if is_lower_better(metric):
            within = rows[rows["mean"] <= best["mean"] + best["std_err"]]
        else:
            within = rows[rows["mean"] >= best["mean"] - best["std_err"]]

        simplest = within.sort_values(param, ascending=not descending, kind="stable").iloc[0]
        return self._params_for(simplest[".config"])

    def _params_for(self, config_id: str) -> Dict[str, Any]:
        for params, report in zip(self.candidates, self.reports):
            if report.config_name == config_id:
                return dict(params)
        raise KeyError(config_id)


def tune_grid(
    dataset: pd.DataFrame,
    splits: Sequence[Split],
    pipeline: FeaturePipeline,
    family: str,
    grid: Sequence[Dict[str, Any]],
    metric_names: Sequence[str],
    *,
    formula: Formula | str | None = None,
    config: Optional[ResampleConfig] = None,
    cancel: Optional[threading.Event] = None,
) -> TuneResult:
    """Resample every candidate of `grid` on the same splits.

    Args:
        dataset: Training data.
        splits: Resamples shared by all candidates.
        pipeline: Unfitted feature pipeline.
        family: Model family name.
        grid: List of parameter dicts (see make_grid).
        metric_names: Metrics to compute.
        formula: Optional formula; defaults to ``outcome ~ .``.
        config: Orchestrator settings.
        cancel: Event checked before every split.

    Returns:
        TuneResult with one ResampleReport per candidate.
    """
    config = config or ResampleConfig()
    if not grid:
        raise InvalidConfiguration("Tuning grid is empty")
    if not splits:
        raise InvalidConfiguration("No splits to tune over")

    # Every candidate is validated before the first split is fitted
    validate_metric_names(metric_names)
    _model_frame(dataset, resolve_formula(formula, pipeline))
    specs = [ModelSpec(family=family, params=dict(params)) for params in grid]
    for spec in specs:
        build_model(spec)

    width = max(2, len(str(len(grid))))
    indexed = list(enumerate(specs, start=1))
    if config.show_progress:
        from tqdm import tqdm
        indexed = tqdm(indexed, desc=f"Tuning {family}")

    # Splits run in parallel inside each candidate; only one bar is shown
    inner = config.model_copy(update={"show_progress": False})
    reports = []
    for i, spec in indexed:
        if cancel is not None and cancel.is_set():
            raise ResampleAborted("Tuning cancelled")
        reports.append(run(
            dataset, None, pipeline, spec, metric_names,
            formula=formula, config=inner, splits=splits, cancel=cancel,
            name=_candidate_id(i, width),
        ))

    return TuneResult(family=family, candidates=[dict(p) for p in grid], reports=reports)


@dataclass
class LastFitResult:
    """Final fit on the analysis rows of a holdout split, scored on its test rows."""

    metrics: Dict[str, float]
    predictions: pd.DataFrame
    fitted_pipeline: FittedPipeline
    fitted_model: FittedModel
    split: Split

    def metrics_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {"metric": list(self.metrics), "value": list(self.metrics.values())}
        )


def last_fit(
    dataset: pd.DataFrame,
    holdout_split: Split | Sequence[Split],
    pipeline: FeaturePipeline,
    model_spec: ModelLike,
    metric_names: Sequence[str],
    *,
    formula: Formula | str | None = None,
) -> LastFitResult:
    """Fit on the training partition of an initial split and evaluate on its test partition."""
    if not isinstance(holdout_split, Split):
        holdout_split = list(holdout_split)
        if len(holdout_split) != 1:
            raise InvalidConfiguration(
                f"last_fit needs exactly one split, got {len(holdout_split)}"
            )
        holdout_split = holdout_split[0]

    metric_names = validate_metric_names(metric_names)
    formula = resolve_formula(formula, pipeline)
    model_frame = _model_frame(dataset, formula)
    adapter = resolve_model(model_spec)

    result, fitted_pipeline, fitted_model = fit_split(
        holdout_split, model_frame, pipeline, adapter, formula.outcome, metric_names,
    )
    return LastFitResult(
        metrics=result.metrics,
        predictions=result.predictions,
        fitted_pipeline=fitted_pipeline,
        fitted_model=fitted_model,
        split=holdout_split,
    )
