"""
Resampling orchestrator.

For each split:
- Fit the feature pipeline on the analysis partition
- Transform analysis (training mode) and assessment (new-data mode)
- Fit the model on transformed analysis data
- Predict the transformed assessment data
- Compute metrics against assessment truths

Splits share nothing but the read-only dataset, so they may run on
parallel threads. Per-split rows are kept in splitter order keyed by
split_id; aggregates are derived only once every split has succeeded.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from resampling.config import ModelSpec, ResampleConfig, SplitterConfig
from resampling.data.formula import Formula, as_formula
from resampling.data.splitters import Split, make_splits
from resampling.errors import (
    InvalidConfiguration,
    ResampleAborted,
    ResampleError,
    SplitFailed,
)
from resampling.evaluation.metrics import compute_metrics, validate_metric_names
from resampling.models import build_model
from resampling.models.base import FittedModel, ModelAdapter
from resampling.preprocessing.feature_pipeline import FeaturePipeline, FittedPipeline

ModelLike = Union[ModelSpec, ModelAdapter, str]


@dataclass
class SplitResult:
    """Metrics (and optionally predictions) for one split."""

    split_id: str
    metrics: Dict[str, float]
    n_analysis: int
    n_assessment: int
    predictions: Optional[pd.DataFrame] = None


def summarize(split_results: Sequence[SplitResult]) -> pd.DataFrame:
    """Aggregate per-split metrics into mean / std / n / std_err per metric.

    NaN values (e.g. rsq on a constant prediction) are left out of the
    aggregate for that metric and reduce its n.
    """
    names: List[str] = []
    for result in split_results:
        names.extend(m for m in result.metrics if m not in names)

    rows = []
    for name in names:
        values = np.array([r.metrics.get(name, np.nan) for r in split_results], dtype=float)
        values = values[~np.isnan(values)]
        n = len(values)
        mean = float(values.mean()) if n else float("nan")
        std = float(values.std(ddof=1)) if n > 1 else 0.0
        rows.append({
            "metric": name,
            "mean": mean,
            "std": std,
            "n": n,
            "std_err": std / np.sqrt(n) if n else float("nan"),
        })
    return pd.DataFrame(rows, columns=["metric", "mean", "std", "n", "std_err"])


@dataclass
class ResampleReport:
    """Per-split metric results plus aggregates for one configuration."""

    config_name: str
    split_results: List[SplitResult]
    summary: pd.DataFrame = field(default=None)

    def __post_init__(self) -> None:
        if self.summary is None:
            self.summary = summarize(self.split_results)

    @property
    def split_ids(self) -> List[str]:
        return [r.split_id for r in self.split_results]

    def metrics_frame(self) -> pd.DataFrame:
        """Long format: one row per (split_id, metric)."""
        rows = [
            {"config": self.config_name, "split_id": r.split_id, "metric": m, "value": v}
            for r in self.split_results
            for m, v in r.metrics.items()
        ]
        return pd.DataFrame(rows, columns=["config", "split_id", "metric", "value"])

    def values(self, metric: str) -> pd.Series:
        """Per-split values of one metric, indexed by split_id."""
        metric = metric.lower()
        if not self.split_results or metric not in self.split_results[0].metrics:
            raise InvalidConfiguration(f"Metric '{metric}' not in report '{self.config_name}'")
        return pd.Series(
            [r.metrics[metric] for r in self.split_results],
            index=pd.Index(self.split_ids, name="split_id"),
            name=self.config_name,
        )

    def mean(self, metric: str) -> float:
        row = self.summary.loc[self.summary["metric"] == metric.lower(), "mean"]
        if row.empty:
            raise InvalidConfiguration(f"Metric '{metric}' not in report '{self.config_name}'")
        return float(row.iloc[0])

    def predictions_frame(self) -> pd.DataFrame:
        """Out-of-sample predictions of every split, stacked."""
        frames = [r.predictions for r in self.split_results if r.predictions is not None]
        if not frames:
            return pd.DataFrame(columns=[".row", "split_id", "truth", "pred"])
        return pd.concat(frames, ignore_index=True)


def resolve_formula(formula: Formula | str | None, pipeline: FeaturePipeline) -> Formula:
    """Formula given explicitly, or ``outcome ~ .`` from the pipeline's outcome.

    Also rejects pipelines whose skip-marked outcome steps cannot be inverted.
    """
    if formula is not None:
        formula = as_formula(formula)
    elif pipeline.outcome is None:
        raise InvalidConfiguration("Pass a formula or build the pipeline with an outcome")
    else:
        formula = Formula(pipeline.outcome)
    pipeline.check_outcome_steps(formula.outcome)
    return formula


def resolve_model(model: ModelLike) -> ModelAdapter:
    if isinstance(model, ModelAdapter):
        return model
    return build_model(model)


def _model_frame(df: pd.DataFrame, formula: Formula) -> pd.DataFrame:
    """Outcome plus predictor columns named by the formula (validated)."""
    predictors = formula.predictor_names(df)
    return df[[formula.outcome] + predictors]


def fit_split(
    split: Split,
    df: pd.DataFrame,
    pipeline: FeaturePipeline,
    adapter: ModelAdapter,
    outcome: str,
    metric_names: Sequence[str],
    keep_predictions: bool = True,
) -> Tuple[SplitResult, FittedPipeline, FittedModel]:
    """Run pipeline, model and evaluator on one split.

    Args:
        split: Analysis/assessment indices.
        df: Model frame (outcome + raw predictors), read only.
        pipeline: Unfitted feature pipeline.
        adapter: Model family adapter.
        outcome: Outcome column name.
        metric_names: Validated metric names.
        keep_predictions: Attach the per-row prediction table.

    Returns:
        (SplitResult, fitted pipeline, fitted model) for this split only.
    """
    analysis = split.analysis_data(df)
    assessment = split.assessment_data(df)

    fitted_pipeline = pipeline.fit(analysis, outcome=outcome)
    train = fitted_pipeline.training_data()
    test = fitted_pipeline.apply(assessment, new_data=True)

    fitted_model = adapter.fit(Formula(outcome), train)
    preds = adapter.predict(fitted_model, test)
    if fitted_pipeline.outcome_is_skipped(outcome):
        # Model learned a transformed outcome that new data never sees
        preds = fitted_pipeline.invert_outcome(preds, outcome)

    truths = test[outcome].to_numpy()
    metrics = compute_metrics(truths, preds, metric_names)

    predictions = None
    if keep_predictions:
        predictions = pd.DataFrame({
            ".row": split.assessment,
            "split_id": split.split_id,
            "truth": truths,
            "pred": preds,
        })

    result = SplitResult(
        split_id=split.split_id,
        metrics=metrics,
        n_analysis=split.n_analysis,
        n_assessment=split.n_assessment,
        predictions=predictions,
    )
    return result, fitted_pipeline, fitted_model


def _run_splits(
    splits: Sequence[Split],
    df: pd.DataFrame,
    pipeline: FeaturePipeline,
    adapter: ModelAdapter,
    outcome: str,
    metric_names: Sequence[str],
    config: ResampleConfig,
    cancel: Optional[threading.Event],
    desc: str,
) -> List[SplitResult]:
    def run_one(split: Split) -> SplitResult:
        if cancel is not None and cancel.is_set():
            raise ResampleAborted(f"Run cancelled before split '{split.split_id}'")
        try:
            result, _, _ = fit_split(
                split, df, pipeline, adapter, outcome, metric_names,
                keep_predictions=config.keep_predictions,
            )
        except ResampleAborted:
            raise
        except (ResampleError, ValueError, ArithmeticError, np.linalg.LinAlgError) as e:
            raise SplitFailed(split.split_id, e) from e
        return result

    if config.n_jobs == 1:
        iterator = splits
        if config.show_progress:
            from tqdm import tqdm
            iterator = tqdm(splits, desc=desc)
        return [run_one(split) for split in iterator]

    # Parallel returns results in input order whatever the completion order
    return Parallel(n_jobs=config.n_jobs, prefer="threads")(
        delayed(run_one)(split) for split in splits
    )


def run(
    dataset: pd.DataFrame,
    splitter_config: Optional[SplitterConfig],
    pipeline: FeaturePipeline,
    model_spec: ModelLike,
    metric_names: Sequence[str],
    *,
    formula: Formula | str | None = None,
    config: Optional[ResampleConfig] = None,
    splits: Optional[Sequence[Split]] = None,
    cancel: Optional[threading.Event] = None,
    name: str = "model",
) -> ResampleReport:
    """Resample one pipeline/model configuration.

    Args:
        dataset: Source data (never modified).
        splitter_config: How to create splits. Ignored when `splits` is given.
        pipeline: Unfitted feature pipeline.
        model_spec: ModelSpec, family name or adapter.
        metric_names: Metrics to compute on each assessment partition.
        formula: Outcome and raw predictors. Defaults to ``outcome ~ .``
            using the pipeline's outcome.
        config: Orchestrator settings (parallelism, progress, predictions).
        splits: Pre-built splits to reuse (for paired comparisons).
        cancel: Event checked before each split; if set the run is aborted.
        name: Label for this configuration in the report.

    Returns:
        ResampleReport with split results in splitter order.

    Raises:
        InvalidConfiguration: Before any split is processed.
        SplitFailed: A split failed; no partial report is produced.
        ResampleAborted: `cancel` was set.
    """
    config = config or ResampleConfig()
    if config.n_jobs == 0:
        raise InvalidConfiguration("n_jobs must be non-zero")

    # Fail fast: everything below is checked before any split runs
    metric_names = validate_metric_names(metric_names)
    formula = resolve_formula(formula, pipeline)
    model_frame = _model_frame(dataset, formula)
    adapter = resolve_model(model_spec)

    if splits is None:
        if splitter_config is None:
            raise InvalidConfiguration("Provide either splitter_config or splits")
        splits = make_splits(dataset, splitter_config)
    if not splits:
        raise InvalidConfiguration("No splits to evaluate")

    results = _run_splits(
        splits, model_frame, pipeline, adapter, formula.outcome,
        metric_names, config, cancel, desc=f"Resampling {name}",
    )
    return ResampleReport(config_name=name, split_results=list(results))


@dataclass
class ComparisonResult:
    """Reports for several configurations evaluated on identical splits."""

    reports: Dict[str, ResampleReport]
    splits: List[Split]

    @property
    def split_ids(self) -> List[str]:
        return [s.split_id for s in self.splits]

    def paired_values(self, metric: str) -> pd.DataFrame:
        """Wide frame: rows are split_ids, columns are configurations."""
        return pd.concat(
            [report.values(metric) for report in self.reports.values()], axis=1
        )

    def summary(self) -> pd.DataFrame:
        frames = []
        for name, report in self.reports.items():
            frame = report.summary.copy()
            frame.insert(0, "config", name)
            frames.append(frame)
        return pd.concat(frames, ignore_index=True)


def compare(
    dataset: pd.DataFrame,
    splitter_config: Optional[SplitterConfig],
    configurations: Mapping[str, Tuple[FeaturePipeline, ModelLike]],
    metric_names: Sequence[str],
    *,
    formula: Formula | str | None = None,
    config: Optional[ResampleConfig] = None,
    splits: Optional[Sequence[Split]] = None,
    cancel: Optional[threading.Event] = None,
) -> ComparisonResult:
    """Resample several configurations over the same Split objects.

    Splits are generated once, so every report carries identical split_ids
    and per-split metrics can be compared pairwise.
    """
    if len(configurations) < 1:
        raise InvalidConfiguration("At least one configuration is required")

    # Validate every configuration before any split is processed
    validate_metric_names(metric_names)
    for name, (pipeline, model) in configurations.items():
        _model_frame(dataset, resolve_formula(formula, pipeline))
        resolve_model(model)

    if splits is None:
        if splitter_config is None:
            raise InvalidConfiguration("Provide either splitter_config or splits")
        splits = make_splits(dataset, splitter_config)
    splits = list(splits)

    reports = {
        name: run(
            dataset, None, pipeline, model, metric_names,
            formula=formula, config=config, splits=splits, cancel=cancel, name=name,
        )
        for name, (pipeline, model) in configurations.items()
    }
    return ComparisonResult(reports=reports, splits=splits)
