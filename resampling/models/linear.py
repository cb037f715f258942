"""
Linear model families: ordinary least squares and elastic net.
"""

from __future__ import annotations

from typing import List

import numpy as np
from sklearn.linear_model import ElasticNet, LinearRegression

from resampling.config import ElasticNetConfig, LinearConfig
from resampling.models.base import ModelAdapter


class LinearRegressionModel(ModelAdapter):
    """Unpenalized least squares; rejects rank-deficient designs."""

    family = "linear"
    config_cls = LinearConfig
    requires_full_rank = True

    def _make_estimator(self, X: np.ndarray, features: List[str]) -> LinearRegression:
        return LinearRegression(fit_intercept=self.cfg.fit_intercept)


class ElasticNetModel(ModelAdapter):
    """L1 + L2 penalized regression.

    Predictors should be centered and scaled (CenterScale) beforehand so the
    penalty treats them equally.
    """

    family = "elastic_net"
    config_cls = ElasticNetConfig

    def _make_estimator(self, X: np.ndarray, features: List[str]) -> ElasticNet:
        return ElasticNet(
            alpha=self.cfg.penalty,
            l1_ratio=self.cfg.mixture,
            max_iter=self.cfg.max_iter,
            tol=self.cfg.tol,
        )
