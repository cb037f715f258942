"""Model families behind a uniform fit/predict contract."""

from __future__ import annotations

from typing import Any, Dict, Type

from pydantic import ValidationError

from resampling.config import ModelSpec
from resampling.errors import InvalidConfiguration
from resampling.models.base import FittedModel, ModelAdapter
from resampling.models.linear import ElasticNetModel, LinearRegressionModel
from resampling.models.splines import MARSModel, SplineRegressionModel
from resampling.models.xgboost_model import XGBoostModel

MODEL_FAMILIES: Dict[str, Type[ModelAdapter]] = {
    LinearRegressionModel.family: LinearRegressionModel,
    ElasticNetModel.family: ElasticNetModel,
    SplineRegressionModel.family: SplineRegressionModel,
    MARSModel.family: MARSModel,
    XGBoostModel.family: XGBoostModel,
}


def build_model(spec: ModelSpec | str, **params: Any) -> ModelAdapter:
    """Build a model adapter from a spec (or a family name plus parameters).

    Raises:
        InvalidConfiguration: Unknown family or invalid tuning parameters.
    """
    if isinstance(spec, str):
        spec = ModelSpec(family=spec, params=params)

    adapter_cls = MODEL_FAMILIES.get(spec.family)
    if adapter_cls is None:
        raise InvalidConfiguration(
            f"Unknown model family: '{spec.family}'. Supported: {sorted(MODEL_FAMILIES)}"
        )

    try:
        cfg = adapter_cls.config_cls(**spec.params)
    except ValidationError as e:
        raise InvalidConfiguration(f"Invalid parameters for '{spec.family}': {e}") from e

    return adapter_cls(cfg)


__all__ = [
    "MODEL_FAMILIES",
    "build_model",
    "FittedModel",
    "ModelAdapter",
    "ModelSpec",
    "ElasticNetModel",
    "LinearRegressionModel",
    "MARSModel",
    "SplineRegressionModel",
    "XGBoostModel",
]
