"""
XGBoost model wrapper for regression.

Provides boosted trees through the same fit/predict contract as the linear
and spline families, with optional early stopping on a slice of the
analysis data.
"""

from __future__ import annotations

from typing import List

import numpy as np
import xgboost as xgb
from sklearn.model_selection import train_test_split

from resampling.config import XGBoostConfig
from resampling.models.base import ModelAdapter


class _EarlyStoppingRegressor:
    """XGBRegressor that holds out part of the training data for early stopping."""

    def __init__(self, cfg: XGBoostConfig) -> None:
        self.cfg = cfg
        self._model: xgb.XGBRegressor | None = None

    def fit(self, X: np.ndarray, y: np.ndarray) -> "_EarlyStoppingRegressor":
        """Train the model, splitting off a validation slice when possible.

        Args:
            X: Feature matrix of shape (n_samples, n_features).
            y: Numeric outcome of shape (n_samples,).
        """
        self._model = xgb.XGBRegressor(
            n_estimators=self.cfg.n_estimators,
            max_depth=self.cfg.max_depth,
            learning_rate=self.cfg.learning_rate,
            subsample=self.cfg.subsample,
            colsample_bytree=self.cfg.colsample_bytree,
            random_state=self.cfg.random_seed,
            objective="reg:squarederror",
            early_stopping_rounds=self.cfg.early_stopping_rounds,
            n_jobs=1,  # splits are already parallel
        )

        if (
            self.cfg.early_stopping_rounds is not None
            and len(X) > 50
            and self.cfg.validation_fraction > 0
        ):
            X_train, X_val, y_train, y_val = train_test_split(
                X, y,
                test_size=self.cfg.validation_fraction,
                random_state=self.cfg.random_seed,
            )
            self._model.fit(X_train, y_train, eval_set=[(X_val, y_val)], verbose=False)
        else:
            # Not enough data for split, train without early stopping
            self._model.set_params(early_stopping_rounds=None)
            self._model.fit(X, y)
        return self

    def predict(self, X: np.ndarray) -> np.ndarray:
        """Return predictions for each row.

        Raises:
            RuntimeError: If model has not been fitted.
        """
        if self._model is None:
            raise RuntimeError("Model has not been fitted. Call fit() first.")
        return self._model.predict(X)


class XGBoostModel(ModelAdapter):
    """Gradient-boosted regression trees."""

    family = "boosted_tree"
    config_cls = XGBoostConfig

    def _make_estimator(self, X: np.ndarray, features: List[str]) -> _EarlyStoppingRegressor:
        return _EarlyStoppingRegressor(self.cfg)
