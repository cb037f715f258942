"""
Spline-based regression families.

SplineRegressionModel: B-spline basis on continuous predictors followed by
least squares.

MARSModel: multivariate adaptive regression splines built from library
parts. Degree-1 B-splines at quantile knots span the same space as MARS
hinge pairs; optional pairwise products give interaction terms, and
least-angle regression adds terms forward until `num_terms` are retained.
"""

from __future__ import annotations

from typing import List

import numpy as np
from sklearn.compose import ColumnTransformer
from sklearn.linear_model import Lars, LinearRegression
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import PolynomialFeatures, SplineTransformer, StandardScaler

from resampling.config import MARSConfig, SplineConfig
from resampling.errors import UnknownColumn
from resampling.models.base import ModelAdapter, continuous_positions


def _basis_step(transformer: SplineTransformer, positions: List[int]):
    """Expand `positions` with `transformer`, pass the rest through."""
    if not positions:
        return "passthrough"
    return ColumnTransformer(
        [("basis", transformer, positions)],
        remainder="passthrough",
    )


class SplineRegressionModel(ModelAdapter):
    """Additive spline regression fit by least squares."""

    family = "spline"
    config_cls = SplineConfig
    requires_full_rank = True

    def _positions(self, X: np.ndarray, features: List[str]) -> List[int]:
        if self.cfg.columns is None:
            # Indicators and near-constant columns cannot carry quantile knots
            return continuous_positions(X, self.cfg.n_knots + 1)
        for col in self.cfg.columns:
            if col not in features:
                raise UnknownColumn(col, "model predictors (spline columns)")
        return [features.index(col) for col in self.cfg.columns]

    def _make_estimator(self, X: np.ndarray, features: List[str]) -> Pipeline:
        spline = SplineTransformer(
            n_knots=self.cfg.n_knots,
            degree=self.cfg.degree,
            knots="quantile",
            extrapolation="linear",
            include_bias=False,
        )
        return Pipeline([
            ("basis", _basis_step(spline, self._positions(X, features))),
            ("ols", LinearRegression()),
        ])

    def _rank_design(self, estimator: Pipeline, X: np.ndarray) -> np.ndarray:
        return estimator[:-1].transform(X)


class MARSModel(ModelAdapter):
    """Multivariate adaptive regression splines.

    Tuning parameters follow the workshop: `num_terms` (retained terms) and
    `prod_degree` (1 = additive, 2 = pairwise interactions).
    """

    family = "mars"
    config_cls = MARSConfig

    def _make_estimator(self, X: np.ndarray, features: List[str]) -> Pipeline:
        hinges = SplineTransformer(
            n_knots=self.cfg.n_knots,
            degree=1,
            knots="quantile",
            extrapolation="linear",
            include_bias=False,
        )
        steps = [("hinges", _basis_step(hinges, continuous_positions(X, self.cfg.n_knots + 1)))]
        if self.cfg.prod_degree > 1:
            steps.append((
                "interactions",
                PolynomialFeatures(
                    degree=self.cfg.prod_degree,
                    interaction_only=True,
                    include_bias=False,
                ),
            ))
        steps.extend([
            ("scale", StandardScaler()),
            ("forward", Lars(n_nonzero_coefs=self.cfg.num_terms)),
        ])
        return Pipeline(steps)

    @staticmethod
    def retained_terms(estimator: Pipeline) -> int:
        """Number of basis terms with non-zero coefficients."""
        return int(np.count_nonzero(estimator.named_steps["forward"].coef_))
