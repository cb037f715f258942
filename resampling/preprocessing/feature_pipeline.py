"""
Declarative fit-then-apply feature pipeline.

A FeaturePipeline is an ordered list of unfitted steps. Fitting it on an
analysis partition returns a FittedPipeline holding per-split copies of the
steps, so the same FeaturePipeline can be fitted on every split (and from
several threads) without sharing learned state.
"""

from __future__ import annotations

import copy
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from resampling.errors import InvalidConfiguration, UnknownColumn
from resampling.preprocessing.steps import TransformStep


def _named_columns(step: TransformStep) -> List[str]:
    """Columns a step was explicitly configured with (`column` or `columns`)."""
    named = []
    column = getattr(step, "column", None)
    if column is not None:
        named.append(column)
    columns = getattr(step, "columns", None)
    if columns is not None:
        named.extend(columns)
    return named


def _transforms(step: TransformStep, column: Optional[str]) -> bool:
    return column is not None and column in _named_columns(step)


class FittedPipeline:
    """Pipeline whose steps have learned their parameters from analysis data."""

    def __init__(
        self,
        steps: List[TransformStep],
        outcome: Optional[str],
        training_data: pd.DataFrame,
    ) -> None:
        self.steps = steps
        self.outcome = outcome
        self._training_data = training_data

    def apply(self, df: pd.DataFrame, new_data: bool = True) -> pd.DataFrame:
        """Run every step's apply in order.

        Args:
            df: Data to transform (not modified).
            new_data: If True, steps marked `skip` are not replayed.
                Pass False only when re-preparing the analysis data.

        Returns:
            Transformed copy of `df`.
        """
        out = df.copy()
        for step in self.steps:
            if new_data and step.skip:
                continue
            out = step.apply(out)
        return out

    def training_data(self) -> pd.DataFrame:
        """Transformed analysis data produced while fitting."""
        return self._training_data.copy()

    @property
    def feature_names(self) -> List[str]:
        """Columns of the transformed analysis data, excluding the outcome."""
        return [c for c in self._training_data.columns if c != self.outcome]

    def outcome_is_skipped(self, column: Optional[str] = None) -> bool:
        """Whether a skip-marked step transforms `column` (default: outcome)."""
        column = column or self.outcome
        return any(step.skip and _transforms(step, column) for step in self.steps)

    def invert_outcome(self, values: np.ndarray, column: Optional[str] = None) -> np.ndarray:
        """Undo skip-marked invertible steps on `column` (default: outcome).

        Predictions from a model trained on the transformed outcome are
        mapped back to the scale of new data, which never saw those steps.
        """
        column = column or self.outcome
        result = np.asarray(values, dtype=float)
        for step in reversed(self.steps):
            if step.skip and _transforms(step, column) and hasattr(step, "inverse"):
                result = step.inverse(result)
        return result

    def __repr__(self) -> str:
        return f"FittedPipeline({self.steps!r})"


class FeaturePipeline:
    """Ordered sequence of transform steps (a "recipe").

    Example:
        >>> pipe = FeaturePipeline(
        ...     [CollapseRareCategories(["Neighborhood"], threshold=0.05),
        ...      OneHotEncode(),
        ...      DropZeroVariance(),
        ...      CenterScale()],
        ...     outcome="Sale_Price",
        ... )
        >>> fitted = pipe.fit(analysis_df)
        >>> X_new = fitted.apply(assessment_df)
    """

    def __init__(
        self,
        steps: Sequence[TransformStep] | None = None,
        outcome: str | None = None,
    ) -> None:
        """Initialize pipeline.

        Args:
            steps: Unfitted steps, applied in order.
            outcome: Outcome column; excluded from default column selections.
        """
        self.steps: List[TransformStep] = list(steps or [])
        self.outcome = outcome

    def add(self, step: TransformStep) -> "FeaturePipeline":
        """Return a new pipeline with `step` appended."""
        return FeaturePipeline(self.steps + [step], self.outcome)

    def with_outcome(self, outcome: str) -> "FeaturePipeline":
        return FeaturePipeline(self.steps, outcome)

    def check_outcome_steps(self, outcome: str | None = None) -> None:
        """Reject skip-marked steps on the outcome that cannot be undone.

        The model learns the transformed outcome while assessment truths stay
        on the raw scale, so predictions must be mapped back through
        `inverse`.

        Raises:
            InvalidConfiguration: A skip-marked step names the outcome and has
                no `inverse`.
        """
        outcome = outcome or self.outcome
        for step in self.steps:
            if step.skip and _transforms(step, outcome) and not hasattr(step, "inverse"):
                raise InvalidConfiguration(
                    f"Step '{step.name}' is marked skip and transforms the outcome "
                    f"'{outcome}' but cannot be inverted"
                )

    def fit(self, df: pd.DataFrame, outcome: str | None = None) -> FittedPipeline:
        """Fit steps in order on analysis data.

        Step i is fit on the output of steps 0..i-1 (already fitted and
        applied, including skip-marked ones), so later steps see earlier
        transformations.

        Args:
            df: Analysis partition.
            outcome: Overrides the pipeline's outcome column.

        Returns:
            FittedPipeline with independent copies of the steps.
        """
        outcome = outcome or self.outcome
        if outcome is not None and outcome not in df.columns:
            raise UnknownColumn(outcome, "dataset (pipeline outcome)")
        self.check_outcome_steps(outcome)

        current = df.copy()
        fitted: List[TransformStep] = []
        for step in self.steps:
            step = copy.deepcopy(step)
            step.fit(current, outcome=outcome)
            current = step.apply(current)
            fitted.append(step)

        return FittedPipeline(fitted, outcome, current)

    def __len__(self) -> int:
        return len(self.steps)

    def __repr__(self) -> str:
        names = ", ".join(step.name for step in self.steps)
        return f"FeaturePipeline([{names}], outcome={self.outcome!r})"


def fit(pipeline: FeaturePipeline, df: pd.DataFrame, outcome: str | None = None) -> FittedPipeline:
    """Fit a pipeline on analysis data."""
    return pipeline.fit(df, outcome)


def apply(fitted: FittedPipeline, df: pd.DataFrame, new_data: bool = True) -> pd.DataFrame:
    """Apply a fitted pipeline to any data."""
    return fitted.apply(df, new_data=new_data)
