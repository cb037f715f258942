import numpy as np
import pandas as pd
import pytest

from resampling.config import SyntheticHousingConfig
from resampling.io.synthetic_generator import HousingGenerator
from resampling.preprocessing import (
    CenterScale,
    FeaturePipeline,
    LogTransform,
    OneHotEncode,
)


@pytest.fixture(scope="session")
def seed():
    return 42


@pytest.fixture
def tiny_df(seed):
    """
    Small deterministic regression frame.
    Includes:
      - y: positive numeric outcome, linear in x1/x2 plus a group effect
      - x1, x2: numeric predictors
      - group: categorical predictor with three levels
    """
    rng = np.random.default_rng(seed)
    n = 100

    x1 = rng.normal(0.0, 1.0, size=n)
    x2 = rng.uniform(0.0, 10.0, size=n)
    group = np.array(["a", "b", "c"], dtype=object)[np.arange(n) % 3]
    effect = pd.Series(group).map({"a": 0.0, "b": 3.0, "c": -2.0}).to_numpy()

    return pd.DataFrame({
        "y": 100.0 + 10.0 * x1 + 5.0 * x2 + effect + rng.normal(0.0, 1.0, size=n),
        "x1": x1,
        "x2": x2,
        "group": group,
    })


@pytest.fixture
def linear_pipeline():
    """Dummy-encode categoricals, then standardize predictors."""
    return FeaturePipeline([OneHotEncode(drop_first=True), CenterScale()], outcome="y")


@pytest.fixture
def log_outcome_pipeline():
    """Same as linear_pipeline but the model learns log10(y)."""
    return FeaturePipeline(
        [LogTransform("y", base=10, skip=True), OneHotEncode(drop_first=True), CenterScale()],
        outcome="y",
    )


@pytest.fixture
def housing_df(seed):
    cfg = SyntheticHousingConfig(random_seed=seed, n_samples=400)
    return HousingGenerator(cfg).generate()


@pytest.fixture
def write_yaml(tmp_path):
    import yaml
    def _write(cfg, name="temp.yaml"):
        p = tmp_path / name
        with open(p, "w") as f:
            yaml.safe_dump(cfg, f, default_flow_style=False)
        return str(p)
    return _write
