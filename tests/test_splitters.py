import numpy as np
import pandas as pd
import pytest

from resampling.config import SplitterConfig
from resampling.data.splitters import (
    BOOTSTRAP,
    HOLDOUT,
    MONTE_CARLO,
    REPEATED_VFOLD,
    VFOLD,
    make_splits,
    make_strata,
    split,
)
from resampling.errors import InvalidConfiguration, UnknownColumn


def _assert_partition(splits, n):
    assessed = np.concatenate([s.assessment for s in splits])
    assert sorted(assessed.tolist()) == list(range(n))
    for s in splits:
        assert set(s.analysis).isdisjoint(set(s.assessment))
        assert s.n_analysis + s.n_assessment == n


def test_vfold_100_rows_10_folds(tiny_df, seed):
    splits = make_splits(tiny_df, SplitterConfig(strategy=VFOLD, count=10, random_seed=seed))

    assert len(splits) == 10
    for s in splits:
        assert s.n_assessment == 10
        assert s.n_analysis == 90
    _assert_partition(splits, len(tiny_df))


def test_vfold_split_ids_are_zero_padded(tiny_df):
    splits = split(tiny_df, VFOLD, count=10)
    assert [s.split_id for s in splits] == [f"Fold{i:02d}" for i in range(1, 11)]


def test_same_seed_gives_same_splits(tiny_df, seed):
    cfg = SplitterConfig(strategy=VFOLD, count=5, random_seed=seed)
    first = make_splits(tiny_df, cfg)
    second = make_splits(tiny_df, cfg)

    for a, b in zip(first, second):
        assert a.split_id == b.split_id
        np.testing.assert_array_equal(a.assessment, b.assessment)


def test_different_seed_gives_different_splits(tiny_df):
    a = make_splits(tiny_df, SplitterConfig(strategy=VFOLD, count=5, random_seed=1))
    b = make_splits(tiny_df, SplitterConfig(strategy=VFOLD, count=5, random_seed=2))
    assert any(not np.array_equal(x.assessment, y.assessment) for x, y in zip(a, b))


def test_stratified_vfold_still_partitions_rows(tiny_df, seed):
    splits = make_splits(
        tiny_df, SplitterConfig(strategy=VFOLD, count=10, strata="y", random_seed=seed)
    )
    assert len(splits) == 10
    _assert_partition(splits, len(tiny_df))


def test_stratified_vfold_balances_each_fold(tiny_df, seed):
    k = 5
    splits = make_splits(
        tiny_df, SplitterConfig(strategy=VFOLD, count=k, strata="group", random_seed=seed)
    )
    totals = tiny_df["group"].value_counts()

    for s in splits:
        fold_counts = s.assessment_data(tiny_df)["group"].value_counts()
        for level, total in totals.items():
            assert abs(fold_counts.get(level, 0) - total / k) <= 1


def test_repeated_vfold_ids_and_counts(tiny_df, seed):
    splits = make_splits(
        tiny_df, SplitterConfig(strategy=REPEATED_VFOLD, count=5, repeats=3, random_seed=seed)
    )
    assert len(splits) == 15
    assert splits[0].split_id == "Repeat1_Fold01"
    assert splits[-1].split_id == "Repeat3_Fold05"
    for r in (1, 2, 3):
        _assert_partition([s for s in splits if s.repeat == r], len(tiny_df))


def test_bootstrap_assessment_is_out_of_bag(tiny_df, seed):
    splits = make_splits(tiny_df, SplitterConfig(strategy=BOOTSTRAP, count=5, random_seed=seed))

    assert [s.split_id for s in splits] == [f"Bootstrap{i:02d}" for i in range(1, 6)]
    for s in splits:
        assert s.n_analysis == len(tiny_df)
        expected_oob = np.setdiff1d(np.arange(len(tiny_df)), s.analysis)
        np.testing.assert_array_equal(s.assessment, expected_oob)


def test_stratified_bootstrap_keeps_stratum_sizes(tiny_df, seed):
    splits = make_splits(
        tiny_df,
        SplitterConfig(strategy=BOOTSTRAP, count=3, strata="group", random_seed=seed),
    )
    original = tiny_df["group"].value_counts().sort_index()
    for s in splits:
        drawn = s.analysis_data(tiny_df)["group"].value_counts().sort_index()
        pd.testing.assert_series_equal(drawn, original)


def test_monte_carlo_sizes(tiny_df, seed):
    splits = make_splits(
        tiny_df, SplitterConfig(strategy=MONTE_CARLO, count=4, prop=0.75, random_seed=seed)
    )
    assert [s.split_id for s in splits] == ["Resample01", "Resample02", "Resample03", "Resample04"]
    for s in splits:
        assert s.n_analysis == 75
        assert s.n_assessment == 25


def test_holdout_is_single_split(tiny_df, seed):
    splits = make_splits(tiny_df, SplitterConfig(strategy=HOLDOUT, prop=0.8, random_seed=seed))
    assert len(splits) == 1
    assert splits[0].split_id == "Holdout"
    assert splits[0].n_analysis == 80
    assert splits[0].n_assessment == 20

    analysis, assessment = set(splits[0].analysis), set(splits[0].assessment)
    assert analysis.isdisjoint(assessment)
    assert sorted(analysis | assessment) == list(range(len(tiny_df)))


def test_split_data_accessors_reset_index(tiny_df):
    s = split(tiny_df, VFOLD, count=4)[0]
    assessment = s.assessment_data(tiny_df)
    assert list(assessment.index) == list(range(s.n_assessment))
    np.testing.assert_array_equal(assessment["y"].to_numpy(), tiny_df["y"].to_numpy()[s.assessment])


def test_unknown_strata_column(tiny_df):
    cfg = SplitterConfig(strategy=VFOLD, count=5, strata="missing")
    with pytest.raises(UnknownColumn):
        make_splits(tiny_df, cfg)
    # Also a configuration error
    with pytest.raises(InvalidConfiguration):
        make_splits(tiny_df, cfg)


@pytest.mark.parametrize("cfg", [
    SplitterConfig(strategy="jackknife"),
    SplitterConfig(strategy=VFOLD, count=1),
    SplitterConfig(strategy=VFOLD, count=101),
    SplitterConfig(strategy=REPEATED_VFOLD, count=5, repeats=0),
    SplitterConfig(strategy=HOLDOUT, prop=1.0),
    SplitterConfig(strategy=BOOTSTRAP, count=0),
])
def test_invalid_configurations_rejected(tiny_df, cfg):
    with pytest.raises(InvalidConfiguration):
        make_splits(tiny_df, cfg)


def test_make_strata_pools_small_levels():
    df = pd.DataFrame({"level": ["a"] * 60 + ["b"] * 35 + ["c"] * 5})
    strata = make_strata(df, "level", pool=0.10)

    assert len(np.unique(strata)) == 2
    # "c" is merged into its neighbour "b"
    assert len(set(strata[60:])) == 1


def test_make_strata_numeric_uses_quantile_bins(tiny_df):
    strata = make_strata(tiny_df, "x2", breaks=4)
    counts = np.bincount(strata)
    assert len(counts) == 4
    assert counts.min() >= 20


def test_small_data_gets_fewer_bins():
    df = pd.DataFrame({"v": np.arange(30, dtype=float)})
    # 30 rows support only a single ~20-row bin
    assert len(np.unique(make_strata(df, "v", breaks=4))) == 1


def test_split_rejects_badly_typed_arguments(tiny_df):
    with pytest.raises(InvalidConfiguration):
        split(tiny_df, VFOLD, count="ten")


def test_collapsed_strata_warns_and_splits_unstratified():
    df = pd.DataFrame({"v": np.arange(30, dtype=float)})
    with pytest.warns(UserWarning, match="not stratified"):
        splits = split(df, VFOLD, count=3, strata="v")
    _assert_partition(splits, len(df))
