import numpy as np
import pandas as pd
import pytest

from resampling.config import ModelSpec
from resampling.errors import FitError, InvalidConfiguration, UnknownColumn
from resampling.models import MODEL_FAMILIES, build_model
from resampling.models.splines import MARSModel


@pytest.fixture
def line_df(seed):
    rng = np.random.default_rng(seed)
    x = rng.uniform(0.0, 10.0, size=60)
    return pd.DataFrame({"y": 1.0 + 2.0 * x, "x": x})


@pytest.fixture
def curve_df(seed):
    rng = np.random.default_rng(seed)
    x = rng.uniform(0.0, 6.0, size=200)
    return pd.DataFrame({"y": np.sin(x) + rng.normal(0.0, 0.05, size=200), "x": x})


def _rmse(a, b):
    return float(np.sqrt(np.mean((np.asarray(a) - np.asarray(b)) ** 2)))


def test_linear_recovers_exact_line(line_df):
    model = build_model("linear")
    fitted = model.fit("y ~ x", line_df)

    preds = model.predict(fitted, pd.DataFrame({"x": [0.0, 5.0]}))
    np.testing.assert_allclose(preds, [1.0, 11.0], atol=1e-8)
    assert fitted.family == "linear"
    assert fitted.n_obs == 60


def test_predictions_follow_row_order(line_df):
    model = build_model("linear")
    fitted = model.fit("y ~ .", line_df)
    reversed_df = line_df.iloc[::-1]
    np.testing.assert_allclose(
        model.predict(fitted, reversed_df), model.predict(fitted, line_df)[::-1]
    )


def test_linear_rejects_rank_deficient_design(line_df):
    df = line_df.assign(x_copy=line_df["x"] * 2.0)
    with pytest.raises(FitError, match="rank-deficient"):
        build_model("linear").fit("y ~ .", df)


def test_elastic_net_tolerates_collinear_columns(line_df):
    df = line_df.assign(x_copy=line_df["x"] * 2.0)
    model = build_model("elastic_net", penalty=0.001, mixture=0.5)
    fitted = model.fit("y ~ .", df)
    assert _rmse(model.predict(fitted, df), df["y"]) < 0.5


def test_unencoded_categorical_raises(line_df):
    df = line_df.assign(c=["a", "b"] * 30)
    with pytest.raises(FitError, match="categorical"):
        build_model("linear").fit("y ~ .", df)


def test_missing_values_raise(line_df):
    df = line_df.copy()
    df.loc[3, "x"] = np.nan
    with pytest.raises(FitError, match="missing"):
        build_model("linear").fit("y ~ x", df)


def test_formula_column_must_exist(line_df):
    with pytest.raises(UnknownColumn):
        build_model("linear").fit("y ~ z", line_df)


def test_spline_beats_linear_on_curve(curve_df):
    linear = build_model("linear")
    spline = build_model("spline", n_knots=6)

    lin_fit = linear.fit("y ~ x", curve_df)
    spl_fit = spline.fit("y ~ x", curve_df)

    lin_rmse = _rmse(linear.predict(lin_fit, curve_df), curve_df["y"])
    spl_rmse = _rmse(spline.predict(spl_fit, curve_df), curve_df["y"])
    assert spl_rmse < 0.2
    assert spl_rmse < lin_rmse / 2


def test_spline_unknown_column_raises(curve_df):
    with pytest.raises(UnknownColumn):
        build_model("spline", columns=["z"]).fit("y ~ x", curve_df)


def test_mars_respects_num_terms(curve_df):
    model = build_model(ModelSpec(family="mars", params={"num_terms": 4, "n_knots": 8}))
    fitted = model.fit("y ~ x", curve_df)

    assert MARSModel.retained_terms(fitted.estimator) <= 4
    preds = model.predict(fitted, curve_df)
    assert preds.shape == (len(curve_df),)
    assert _rmse(preds, curve_df["y"]) < _rmse(np.full(len(curve_df), curve_df["y"].mean()), curve_df["y"])


def test_mars_with_interactions(tiny_df):
    df = tiny_df.drop(columns="group")
    model = build_model("mars", num_terms=6, prod_degree=2)
    fitted = model.fit("y ~ .", df)
    assert np.isfinite(model.predict(fitted, df)).all()


def test_boosted_tree_fits(line_df):
    model = build_model("boosted_tree", n_estimators=30, max_depth=2)
    fitted = model.fit("y ~ x", line_df)
    preds = model.predict(fitted, line_df)

    assert preds.shape == (60,)
    assert np.corrcoef(preds, line_df["y"])[0, 1] > 0.9


def test_boosted_tree_early_stopping(tiny_df):
    df = tiny_df.drop(columns="group")
    model = build_model("boosted_tree", n_estimators=50, early_stopping_rounds=5)
    fitted = model.fit("y ~ .", df)
    assert np.isfinite(model.predict(fitted, df)).all()


def test_unknown_family():
    with pytest.raises(InvalidConfiguration, match="Unknown model family"):
        build_model("random_forest")


@pytest.mark.parametrize("family,params", [
    ("elastic_net", {"mixture": 2.0}),
    ("elastic_net", {"penalty": -1.0}),
    ("mars", {"prod_degree": 3}),
    ("linear", {"penalty": 0.1}),
])
def test_invalid_parameters(family, params):
    with pytest.raises(InvalidConfiguration):
        build_model(ModelSpec(family=family, params=params))


def test_predict_without_fit_raises(line_df):
    with pytest.raises(RuntimeError, match="not been fitted"):
        build_model("linear").predict(None, line_df)


def test_every_family_registered():
    assert set(MODEL_FAMILIES) == {"linear", "elastic_net", "spline", "mars", "boosted_tree"}
