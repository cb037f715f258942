"""
Uniform fit/predict contract over external regression libraries.

Every model family implements `fit(formula, df) -> FittedModel` and
`predict(fitted, df) -> np.ndarray`. Model internals stay in scikit-learn /
xgboost; this layer only builds a checked numeric design matrix and wraps
library failures as FitError.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar, List, Optional, Tuple, Type

import numpy as np
import pandas as pd
from pydantic import BaseModel

from resampling.data.formula import Formula, as_formula
from resampling.errors import FitError, UnknownColumn


def design_matrix(
    df: pd.DataFrame,
    features: List[str],
    outcome: Optional[str] = None,
) -> Tuple[np.ndarray, Optional[np.ndarray]]:
    """Build float design matrix (and outcome vector) from a dataframe.

    Raises:
        UnknownColumn: A feature or the outcome is absent.
        FitError: Non-numeric predictors or missing values remain.
    """
    for col in features:
        if col not in df.columns:
            raise UnknownColumn(col, "dataset (model predictors)")
    if not features:
        raise FitError("Design matrix has no predictor columns")

    categorical = [
        c for c in features
        if not (pd.api.types.is_numeric_dtype(df[c]) or pd.api.types.is_bool_dtype(df[c]))
    ]
    if categorical:
        raise FitError(
            f"Unresolved categorical predictors {categorical}; encode them before fitting"
        )

    X = df[features].to_numpy(dtype=float)
    if np.isnan(X).any():
        bad = [c for c in features if df[c].isna().any()]
        raise FitError(f"Predictors contain missing values: {bad}")

    y = None
    if outcome is not None:
        if outcome not in df.columns:
            raise UnknownColumn(outcome, "dataset (model outcome)")
        if not pd.api.types.is_numeric_dtype(df[outcome]):
            raise FitError(f"Outcome '{outcome}' must be numeric for regression")
        y = df[outcome].to_numpy(dtype=float)
        if np.isnan(y).any():
            raise FitError(f"Outcome '{outcome}' contains missing values")

    return X, y


def check_full_rank(X: np.ndarray) -> None:
    """Raise FitError if [1, X] is rank-deficient."""
    design = np.column_stack([np.ones(len(X)), X])
    rank = np.linalg.matrix_rank(design)
    if rank < design.shape[1]:
        raise FitError(
            f"Design matrix is rank-deficient (rank {rank} < {design.shape[1]} columns "
            f"including intercept, {design.shape[0]} rows)"
        )


def continuous_positions(X: np.ndarray, min_unique: int) -> List[int]:
    """Column positions with at least `min_unique` distinct values."""
    return [j for j in range(X.shape[1]) if len(np.unique(X[:, j])) >= min_unique]


@dataclass
class FittedModel:
    """Opaque handle to a fitted estimator plus the formula it was trained on."""

    family: str
    formula: Formula
    estimator: Any
    feature_names: List[str]
    n_obs: int

    def predict(self, df: pd.DataFrame) -> np.ndarray:
        """Predict in the row order of `df`."""
        X, _ = design_matrix(df, self.feature_names)
        return np.asarray(self.estimator.predict(X), dtype=float).ravel()


class ModelAdapter(ABC):
    """Base class for model families.

    Subclasses set `family`, `config_cls` and build the estimator.
    """

    family: ClassVar[str] = "base"
    config_cls: ClassVar[Type[BaseModel]]
    requires_full_rank: ClassVar[bool] = False

    def __init__(self, cfg: BaseModel | None = None) -> None:
        self.cfg = cfg if cfg is not None else self.config_cls()

    @abstractmethod
    def _make_estimator(self, X: np.ndarray, features: List[str]) -> Any:
        """Create an unfitted estimator for design matrix X."""

    def _rank_design(self, estimator: Any, X: np.ndarray) -> np.ndarray:
        """Matrix whose rank is checked for unpenalized families."""
        return X

    def fit(self, formula: Formula | str, df: pd.DataFrame) -> FittedModel:
        """Fit the model on `df` according to `formula`.

        Args:
            formula: Formula or formula string, e.g. "Sale_Price ~ .".
            df: Transformed analysis data (not modified).

        Returns:
            FittedModel handle.

        Raises:
            FitError: Missing values, unencoded categoricals, rank deficiency
                or a failure inside the underlying library.
        """
        formula = as_formula(formula)
        features = formula.predictor_names(df)
        X, y = design_matrix(df, features, formula.outcome)

        estimator = self._make_estimator(X, features)
        try:
            estimator.fit(X, y)
        except (ValueError, np.linalg.LinAlgError) as e:
            raise FitError(f"{self.family} fit failed: {e}") from e

        if self.requires_full_rank:
            check_full_rank(self._rank_design(estimator, X))

        return FittedModel(
            family=self.family,
            formula=formula,
            estimator=estimator,
            feature_names=features,
            n_obs=len(y),
        )

    def predict(self, fitted: FittedModel, df: pd.DataFrame) -> np.ndarray:
        """Predictions aligned to the row order of `df`."""
        if fitted is None:
            raise RuntimeError("Model has not been fitted. Call fit() first.")
        return fitted.predict(df)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.cfg!r})"
