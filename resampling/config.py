"""
Configuration management using pydantic.

All config classes use pydantic for validation and YAML loading.
Config files are stored in configs/ directory.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, TypeVar

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from resampling.errors import InvalidConfiguration


# Base path for config files
CONFIGS_DIR = Path(__file__).parent.parent / "configs"

CfgT = TypeVar("CfgT", bound=BaseModel)


def load_yaml(path: Path | str) -> dict[str, Any]:
    """Load a YAML file and return as dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def build_config(cls: type[CfgT], data: dict[str, Any]) -> CfgT:
    """Construct a config, reporting validation failures as InvalidConfiguration."""
    try:
        return cls(**data)
    except ValidationError as e:
        raise InvalidConfiguration(f"Invalid {cls.__name__}: {e}") from e


def with_seed(cfg: CfgT, seed: int) -> CfgT:
    """Create a new config instance with updated random seed."""
    if "random_seed" not in type(cfg).model_fields:
        raise InvalidConfiguration(f"{type(cfg).__name__} has no random_seed to override")
    return build_config(type(cfg), {**cfg.model_dump(), "random_seed": seed})


class SplitterConfig(BaseModel):
    """Configuration for resampling splits.

    Defaults follow the workshop: 10-fold cross-validation,
    a 75/25 initial split and quartile strata for numeric columns.
    """

    strategy: str = "v-fold-cross-validation"
    count: int = 10  # folds, bootstrap resamples or Monte Carlo resamples
    repeats: int = 1
    prop: float = 0.75  # analysis fraction for holdout / Monte Carlo
    strata: Optional[str] = None
    breaks: int = 4  # quantile bins for numeric strata
    pool: float = 0.10  # strata smaller than this fraction are pooled
    random_seed: int = 42

    @classmethod
    def from_yaml(cls, path: Path | str | None = None) -> SplitterConfig:
        """Load config from YAML file.

        Args:
            path: Path to YAML file. If None, uses configs/splitter.yaml.
        """
        if path is None:
            path = CONFIGS_DIR / "splitter.yaml"
        return build_config(cls, load_yaml(path))


class LinearConfig(BaseModel):
    """Ordinary least squares has no tuning parameters."""

    model_config = ConfigDict(extra="forbid")

    fit_intercept: bool = True


class ElasticNetConfig(BaseModel):
    """Configuration for elastic net regression.

    `penalty` is the total regularization strength (sklearn `alpha`),
    `mixture` the L1 proportion (sklearn `l1_ratio`): 1 is the lasso,
    0 is ridge.
    """

    model_config = ConfigDict(extra="forbid")

    penalty: float = Field(default=0.01, ge=0.0)
    mixture: float = Field(default=0.5, ge=0.0, le=1.0)
    max_iter: int = 10000
    tol: float = 1e-4

    @classmethod
    def from_yaml(cls, path: Path | str | None = None) -> ElasticNetConfig:
        """Load config from YAML file.

        Args:
            path: Path to YAML file. If None, uses configs/model_elastic_net.yaml.
        """
        if path is None:
            path = CONFIGS_DIR / "model_elastic_net.yaml"
        return build_config(cls, load_yaml(path))


class SplineConfig(BaseModel):
    """Configuration for spline-basis linear regression."""

    model_config = ConfigDict(extra="forbid")

    n_knots: int = Field(default=5, ge=2)
    degree: int = Field(default=3, ge=1)
    columns: Optional[List[str]] = None  # None: every continuous predictor


class MARSConfig(BaseModel):
    """Configuration for multivariate adaptive regression splines.

    `num_terms` is the number of retained basis terms and `prod_degree`
    the maximum interaction degree (1 = additive model).
    """

    model_config = ConfigDict(extra="forbid")

    num_terms: int = Field(default=10, ge=1)
    prod_degree: int = Field(default=1, ge=1, le=2)
    n_knots: int = Field(default=10, ge=2)  # candidate hinge locations per predictor

    @classmethod
    def from_yaml(cls, path: Path | str | None = None) -> MARSConfig:
        """Load config from YAML file.

        Args:
            path: Path to YAML file. If None, uses configs/model_mars.yaml.
        """
        if path is None:
            path = CONFIGS_DIR / "model_mars.yaml"
        return build_config(cls, load_yaml(path))


class XGBoostConfig(BaseModel):
    """Configuration for XGBoost regression."""

    model_config = ConfigDict(extra="forbid")

    n_estimators: int = 200
    max_depth: int = 3
    learning_rate: float = 0.1
    subsample: float = 0.8
    colsample_bytree: float = 0.8
    early_stopping_rounds: Optional[int] = None
    validation_fraction: float = 0.2  # Fraction of analysis data for early stopping
    random_seed: int = 42

    @classmethod
    def from_yaml(cls, path: Path | str | None = None) -> XGBoostConfig:
        """Load config from YAML file.

        Args:
            path: Path to YAML file. If None, uses configs/model_xgboost.yaml.
        """
        if path is None:
            path = CONFIGS_DIR / "model_xgboost.yaml"
        return build_config(cls, load_yaml(path))


class ModelSpec(BaseModel):
    """A model family plus its tuning parameters."""

    family: str = "linear"
    params: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_yaml(cls, path: Path | str) -> ModelSpec:
        """Load a model spec from YAML file."""
        return build_config(cls, load_yaml(path))


class ResampleConfig(BaseModel):
    """Configuration for the resampling orchestrator."""

    n_jobs: int = 1
    show_progress: bool = False
    keep_predictions: bool = True


class BayesianCompareConfig(BaseModel):
    """Configuration for Bayesian comparison of resampled metrics."""

    n_samples: int = 10000  # posterior draws
    rope: float = 0.0  # practical equivalence half-width, in metric units
    credible_mass: float = 0.90
    random_seed: int = 42

    @classmethod
    def from_yaml(cls, path: Path | str | None = None) -> BayesianCompareConfig:
        """Load config from YAML file.

        Args:
            path: Path to YAML file. If None, uses configs/bayesian_compare.yaml.
        """
        if path is None:
            path = CONFIGS_DIR / "bayesian_compare.yaml"
        return build_config(cls, load_yaml(path))


class SyntheticHousingConfig(BaseModel):
    """Configuration for the synthetic housing dataset."""

    random_seed: int = 42
    n_samples: int = 2000
    n_neighborhoods: int = 12
    rare_neighborhoods: int = 3  # levels drawn with very low probability
    noise_sd: float = 0.08  # on the log10 price scale

    @classmethod
    def from_yaml(cls, path: Path | str | None = None) -> SyntheticHousingConfig:
        """Load config from YAML file.

        Args:
            path: Path to YAML file. If None, uses configs/synthetic_housing.yaml.
        """
        if path is None:
            path = CONFIGS_DIR / "synthetic_housing.yaml"
        return build_config(cls, load_yaml(path))


class ExperimentConfig(BaseModel):
    """Configuration for scripted experiments."""

    formula: str = "Sale_Price ~ ."
    metrics: List[str] = Field(default_factory=lambda: ["rmse", "rsq"])
    output_dir: str = "experiments"

    @classmethod
    def from_yaml(cls, path: Path | str | None = None) -> "ExperimentConfig":
        """Load config from YAML file.

        Args:
            path: Path to YAML file. If None, uses configs/experiment.yaml.
        """
        if path is None:
            path = CONFIGS_DIR / "experiment.yaml"
        return build_config(cls, load_yaml(path))
