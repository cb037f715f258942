import math
import threading

import numpy as np
import pandas as pd
import pytest

from resampling.config import ModelSpec, ResampleConfig, SplitterConfig
from resampling.data.splitters import BOOTSTRAP, HOLDOUT, VFOLD, make_splits
from resampling.errors import (
    FitError,
    InvalidConfiguration,
    ResampleAborted,
    SplitFailed,
    UnknownColumn,
)
from resampling.experiments.resample_runner import (
    ResampleReport,
    SplitResult,
    compare,
    run,
    summarize,
)
from resampling.preprocessing import CenterScale, FeaturePipeline, OneHotEncode


@pytest.fixture
def vfold_cfg(seed):
    return SplitterConfig(strategy=VFOLD, count=10, random_seed=seed)


def test_run_reports_every_split_in_order(tiny_df, vfold_cfg, linear_pipeline):
    report = run(tiny_df, vfold_cfg, linear_pipeline, "linear", ["rmse", "rsq"])

    assert report.split_ids == [f"Fold{i:02d}" for i in range(1, 11)]
    assert set(report.summary["metric"]) == {"rmse", "rsq"}
    assert (report.summary["n"] == 10).all()
    for r in report.split_results:
        assert r.n_analysis == 90
        assert r.n_assessment == 10


def test_summary_aggregates_per_split_values(tiny_df, vfold_cfg, linear_pipeline):
    report = run(tiny_df, vfold_cfg, linear_pipeline, "linear", ["rmse"])
    values = report.values("rmse")
    row = report.summary.set_index("metric").loc["rmse"]

    assert row["mean"] == pytest.approx(values.mean())
    assert row["std"] == pytest.approx(values.std(ddof=1))
    assert row["std_err"] == pytest.approx(values.std(ddof=1) / math.sqrt(10))
    # Noise sd is 1, so a correct model is close to it
    assert 0.5 < row["mean"] < 1.5


def test_predictions_cover_every_row_once(tiny_df, vfold_cfg, linear_pipeline):
    report = run(tiny_df, vfold_cfg, linear_pipeline, "linear", ["rmse"])
    preds = report.predictions_frame()

    assert sorted(preds[".row"].tolist()) == list(range(len(tiny_df)))
    np.testing.assert_allclose(
        preds.sort_values(".row")["truth"].to_numpy(), tiny_df["y"].to_numpy()
    )


def test_keep_predictions_false(tiny_df, vfold_cfg, linear_pipeline):
    report = run(
        tiny_df, vfold_cfg, linear_pipeline, "linear", ["rmse"],
        config=ResampleConfig(keep_predictions=False),
    )
    assert report.predictions_frame().empty


def test_skipped_log_outcome_scored_on_raw_scale(tiny_df, vfold_cfg, log_outcome_pipeline):
    report = run(tiny_df, vfold_cfg, log_outcome_pipeline, "linear", ["rmse"])
    preds = report.predictions_frame().sort_values(".row")

    np.testing.assert_allclose(preds["truth"].to_numpy(), tiny_df["y"].to_numpy())
    # Predictions were mapped back from log10 to the outcome scale
    assert preds["pred"].between(30.0, 300.0).all()
    assert report.mean("rmse") < 8.0


def test_different_models_on_same_splits_share_split_ids(tiny_df, vfold_cfg, linear_pipeline):
    splits = make_splits(tiny_df, vfold_cfg)
    a = run(tiny_df, None, linear_pipeline, "linear", ["rmse"], splits=splits)
    b = run(
        tiny_df, None, linear_pipeline, ModelSpec(family="elastic_net", params={"penalty": 0.1}),
        ["rmse"], splits=splits,
    )
    assert a.split_ids == b.split_ids


def test_run_is_deterministic(tiny_df, vfold_cfg, linear_pipeline):
    a = run(tiny_df, vfold_cfg, linear_pipeline, "linear", ["rmse"])
    b = run(tiny_df, vfold_cfg, linear_pipeline, "linear", ["rmse"])
    pd.testing.assert_frame_equal(a.metrics_frame(), b.metrics_frame())


def test_parallel_matches_sequential(tiny_df, vfold_cfg, linear_pipeline):
    seq = run(tiny_df, vfold_cfg, linear_pipeline, "linear", ["rmse", "mae"])
    par = run(
        tiny_df, vfold_cfg, linear_pipeline, "linear", ["rmse", "mae"],
        config=ResampleConfig(n_jobs=4),
    )
    assert par.split_ids == seq.split_ids
    pd.testing.assert_frame_equal(par.metrics_frame(), seq.metrics_frame())


def test_bootstrap_run(tiny_df, seed, linear_pipeline):
    cfg = SplitterConfig(strategy=BOOTSTRAP, count=5, random_seed=seed)
    report = run(tiny_df, cfg, linear_pipeline, "linear", ["rmse"])
    assert report.split_ids == [f"Bootstrap{i:02d}" for i in range(1, 6)]


def test_single_holdout_has_zero_std(tiny_df, seed, linear_pipeline):
    cfg = SplitterConfig(strategy=HOLDOUT, prop=0.75, random_seed=seed)
    report = run(tiny_df, cfg, linear_pipeline, "linear", ["rmse"])
    row = report.summary.iloc[0]
    assert row["n"] == 1
    assert row["std"] == 0.0


def test_formula_restricts_predictors(tiny_df, vfold_cfg):
    pipe = FeaturePipeline([CenterScale()], outcome="y")
    report = run(tiny_df, vfold_cfg, pipe, "linear", ["rmse"], formula="y ~ x1")
    # x2 carries most of the signal, so leaving it out hurts
    assert report.mean("rmse") > 5.0


def test_failed_split_aborts_run(tiny_df, vfold_cfg):
    df = tiny_df.copy()
    df.loc[0, "x1"] = np.nan
    pipe = FeaturePipeline([OneHotEncode(drop_first=True)], outcome="y")

    with pytest.raises(SplitFailed) as excinfo:
        run(df, vfold_cfg, pipe, "linear", ["rmse"])
    assert excinfo.value.split_id.startswith("Fold")
    assert isinstance(excinfo.value.cause, FitError)


def test_cancel_aborts_run(tiny_df, vfold_cfg, linear_pipeline):
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(ResampleAborted):
        run(tiny_df, vfold_cfg, linear_pipeline, "linear", ["rmse"], cancel=cancel)


def test_invalid_metric_fails_fast(tiny_df, vfold_cfg, linear_pipeline):
    with pytest.raises(InvalidConfiguration):
        run(tiny_df, vfold_cfg, linear_pipeline, "linear", ["auc"])


def test_unknown_formula_column(tiny_df, vfold_cfg, linear_pipeline):
    with pytest.raises(UnknownColumn):
        run(tiny_df, vfold_cfg, linear_pipeline, "linear", ["rmse"], formula="y ~ x9")


def test_missing_formula_and_outcome(tiny_df, vfold_cfg):
    with pytest.raises(InvalidConfiguration):
        run(tiny_df, vfold_cfg, FeaturePipeline([CenterScale()]), "linear", ["rmse"])


def test_skipped_non_invertible_outcome_step_fails_fast(tiny_df, vfold_cfg):
    pipe = FeaturePipeline(
        [CenterScale(["y"], skip=True), OneHotEncode(drop_first=True)], outcome="y"
    )
    # Rejected before any split, not wrapped in SplitFailed
    with pytest.raises(InvalidConfiguration, match="cannot be inverted"):
        run(tiny_df, vfold_cfg, pipe, "linear", ["rmse"])


def test_requires_splits_or_config(tiny_df, linear_pipeline):
    with pytest.raises(InvalidConfiguration):
        run(tiny_df, None, linear_pipeline, "linear", ["rmse"])


def test_compare_uses_identical_splits(tiny_df, vfold_cfg, linear_pipeline):
    result = compare(
        tiny_df,
        vfold_cfg,
        {
            "ols": (linear_pipeline, "linear"),
            "enet": (linear_pipeline, ModelSpec(family="elastic_net", params={"penalty": 0.5})),
        },
        ["rmse"],
    )

    assert list(result.reports) == ["ols", "enet"]
    assert result.reports["ols"].split_ids == result.reports["enet"].split_ids == result.split_ids
    paired = result.paired_values("rmse")
    assert paired.shape == (10, 2)
    assert list(paired.columns) == ["ols", "enet"]


def test_compare_validates_all_configurations_first(tiny_df, vfold_cfg, linear_pipeline):
    with pytest.raises(InvalidConfiguration):
        compare(
            tiny_df, vfold_cfg,
            {"ok": (linear_pipeline, "linear"), "bad": (linear_pipeline, "nonexistent")},
            ["rmse"],
        )


def test_summarize_skips_nan_values():
    results = [
        SplitResult("Fold1", {"rsq": 0.5}, 9, 1),
        SplitResult("Fold2", {"rsq": float("nan")}, 9, 1),
        SplitResult("Fold3", {"rsq": 0.7}, 9, 1),
    ]
    row = summarize(results).iloc[0]
    assert row["n"] == 2
    assert row["mean"] == pytest.approx(0.6)


def test_report_values_unknown_metric():
    report = ResampleReport("m", [SplitResult("Fold1", {"rmse": 1.0}, 9, 1)])
    with pytest.raises(InvalidConfiguration):
        report.values("mae")
