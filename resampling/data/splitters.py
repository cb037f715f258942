"""
Splitting utilities for creating resamples.

Implements:
- Simple holdout (initial train/test split)
- V-fold and repeated v-fold cross-validation
- Bootstrap resamples (assessment = out-of-bag rows)
- Monte Carlo cross-validation

All strategies can be stratified on a column: numeric columns are binned
into quantile groups, categorical columns use their levels, and strata that
are too small are pooled with a neighbour before folding.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import List, Optional

import numpy as np
import pandas as pd
from sklearn.model_selection import (
    KFold,
    RepeatedKFold,
    RepeatedStratifiedKFold,
    ShuffleSplit,
    StratifiedKFold,
    StratifiedShuffleSplit,
    train_test_split,
)

from resampling.config import SplitterConfig, build_config
from resampling.errors import InvalidConfiguration, UnknownColumn


HOLDOUT = "simple-holdout"
VFOLD = "v-fold-cross-validation"
BOOTSTRAP = "bootstrap"
REPEATED_VFOLD = "repeated-cross-validation"
MONTE_CARLO = "monte-carlo"

STRATEGIES = (HOLDOUT, VFOLD, BOOTSTRAP, REPEATED_VFOLD, MONTE_CARLO)


@dataclass(frozen=True, eq=False)
class Split:
    """A single analysis/assessment partition.

    Stores positional indices rather than data so the same Split objects
    can be reused across every compared configuration.
    """

    split_id: str
    analysis: np.ndarray    # Row positions used for fitting
    assessment: np.ndarray  # Row positions held out for evaluation
    repeat: int = 1
    fold: int = 1

    @property
    def n_analysis(self) -> int:
        return len(self.analysis)

    @property
    def n_assessment(self) -> int:
        return len(self.assessment)

    def analysis_data(self, df: pd.DataFrame) -> pd.DataFrame:
        """Rows of the analysis partition (index reset)."""
        return df.iloc[self.analysis].reset_index(drop=True)

    def assessment_data(self, df: pd.DataFrame) -> pd.DataFrame:
        """Rows of the assessment partition (index reset)."""
        return df.iloc[self.assessment].reset_index(drop=True)

    def __repr__(self) -> str:
        return (
            f"Split({self.split_id!r}, analysis={self.n_analysis}, "
            f"assessment={self.n_assessment})"
        )


def _pool_small_strata(codes: np.ndarray, order: List[int], pool: float) -> np.ndarray:
    """Merge strata below `pool` proportion into an adjacent stratum."""
    n = len(codes)
    groups = [[k] for k in order]
    counts = [int((codes == k).sum()) for k in order]

    while len(groups) > 1:
        smallest = int(np.argmin(counts))
        if counts[smallest] / n >= pool:
            break
        target = smallest - 1 if smallest > 0 else 1
        groups[target].extend(groups[smallest])
        counts[target] += counts[smallest]
        del groups[smallest]
        del counts[smallest]

    mapping = {k: gi for gi, group in enumerate(groups) for k in group}
    return np.array([mapping[k] for k in codes], dtype=int)


def make_strata(
    df: pd.DataFrame,
    column: str,
    breaks: int = 4,
    pool: float = 0.10,
) -> np.ndarray:
    """Assign each row to a stratum of `column`.

    Args:
        df: Input dataframe.
        column: Stratification column.
        breaks: Number of quantile bins for numeric columns.
        pool: Strata with a smaller share of rows are pooled.

    Returns:
        Integer stratum label per row.
    """
    if column not in df.columns:
        raise UnknownColumn(column, "dataset (strata)")

    values = df[column]
    if pd.api.types.is_numeric_dtype(values) and not pd.api.types.is_bool_dtype(values):
        # Keep at least ~20 rows per bin, as quantiles of tiny bins are noise
        n_bins = max(1, min(breaks, len(values) // 20))
        binned = pd.qcut(values, q=n_bins, labels=False, duplicates="drop")
        codes = binned.fillna(-1).astype(int).to_numpy()
        order = sorted(set(codes.tolist()))
    else:
        codes, _ = pd.factorize(values.astype("object").fillna("<missing>"))
        counts = np.bincount(codes)
        order = [int(k) for k in np.argsort(-counts, kind="stable")]

    return _pool_small_strata(codes, order, pool)


def _validate(cfg: SplitterConfig, n_rows: int) -> None:
    """Fail fast on bad splitter parameters."""
    if cfg.strategy not in STRATEGIES:
        raise InvalidConfiguration(
            f"Unknown strategy: {cfg.strategy}. Supported: {list(STRATEGIES)}"
        )
    if cfg.strategy in (VFOLD, REPEATED_VFOLD):
        if cfg.count < 2:
            raise InvalidConfiguration(
                f"Cross-validation needs count >= 2, got {cfg.count}"
            )
        if cfg.count > n_rows:
            raise InvalidConfiguration(
                f"Cannot make {cfg.count} folds from {n_rows} rows"
            )
    if cfg.strategy in (BOOTSTRAP, MONTE_CARLO) and cfg.count < 1:
        raise InvalidConfiguration(f"count must be >= 1, got {cfg.count}")
    if cfg.repeats < 1:
        raise InvalidConfiguration(f"repeats must be >= 1, got {cfg.repeats}")
    if cfg.strategy in (HOLDOUT, MONTE_CARLO) and not 0.0 < cfg.prop < 1.0:
        raise InvalidConfiguration(f"prop must be in (0, 1), got {cfg.prop}")
    if cfg.breaks < 1:
        raise InvalidConfiguration(f"breaks must be >= 1, got {cfg.breaks}")
    if n_rows < 2:
        raise InvalidConfiguration(f"Need at least 2 rows to resample, got {n_rows}")


def _id_width(count: int) -> int:
    return max(2, len(str(count)))


def _holdout(n: int, cfg: SplitterConfig, strata: Optional[np.ndarray]) -> List[Split]:
    analysis, assessment = train_test_split(
        np.arange(n),
        train_size=cfg.prop,
        random_state=cfg.random_seed,
        stratify=strata,
    )
    return [Split("Holdout", np.sort(analysis), np.sort(assessment))]


def _vfold(n: int, cfg: SplitterConfig, strata: Optional[np.ndarray]) -> List[Split]:
    width = _id_width(cfg.count)
    if strata is None:
        cv = KFold(n_splits=cfg.count, shuffle=True, random_state=cfg.random_seed)
        folds = cv.split(np.arange(n))
    else:
        cv = StratifiedKFold(n_splits=cfg.count, shuffle=True, random_state=cfg.random_seed)
        folds = cv.split(np.zeros(n), strata)

    return [
        Split(f"Fold{i + 1:0{width}d}", train_idx, val_idx, repeat=1, fold=i + 1)
        for i, (train_idx, val_idx) in enumerate(folds)
    ]


def _repeated_vfold(n: int, cfg: SplitterConfig, strata: Optional[np.ndarray]) -> List[Split]:
    width = _id_width(cfg.count)
    if strata is None:
        cv = RepeatedKFold(
            n_splits=cfg.count, n_repeats=cfg.repeats, random_state=cfg.random_seed
        )
        folds = cv.split(np.arange(n))
    else:
        cv = RepeatedStratifiedKFold(
            n_splits=cfg.count, n_repeats=cfg.repeats, random_state=cfg.random_seed
        )
        folds = cv.split(np.zeros(n), strata)

    splits = []
    for i, (train_idx, val_idx) in enumerate(folds):
        repeat, fold = i // cfg.count + 1, i % cfg.count + 1
        splits.append(
            Split(f"Repeat{repeat}_Fold{fold:0{width}d}", train_idx, val_idx, repeat, fold)
        )
    return splits


def _bootstrap(n: int, cfg: SplitterConfig, strata: Optional[np.ndarray]) -> List[Split]:
    rng = np.random.default_rng(cfg.random_seed)
    width = _id_width(cfg.count)
    all_rows = np.arange(n)

    splits = []
    for b in range(cfg.count):
        if strata is None:
            drawn = rng.integers(0, n, size=n)
        else:
            # Resample within each stratum so stratum sizes are preserved
            drawn = np.concatenate([
                rng.choice(members, size=len(members), replace=True)
                for members in (all_rows[strata == s] for s in np.unique(strata))
            ])
        out_of_bag = np.setdiff1d(all_rows, drawn)
        splits.append(Split(f"Bootstrap{b + 1:0{width}d}", drawn, out_of_bag, fold=b + 1))
    return splits


def _monte_carlo(n: int, cfg: SplitterConfig, strata: Optional[np.ndarray]) -> List[Split]:
    width = _id_width(cfg.count)
    if strata is None:
        cv = ShuffleSplit(n_splits=cfg.count, train_size=cfg.prop, random_state=cfg.random_seed)
        folds = cv.split(np.arange(n))
    else:
        cv = StratifiedShuffleSplit(
            n_splits=cfg.count, train_size=cfg.prop, random_state=cfg.random_seed
        )
        folds = cv.split(np.zeros(n), strata)

    return [
        Split(f"Resample{i + 1:0{width}d}", np.sort(train_idx), np.sort(val_idx), fold=i + 1)
        for i, (train_idx, val_idx) in enumerate(folds)
    ]


_BUILDERS = {
    HOLDOUT: _holdout,
    VFOLD: _vfold,
    REPEATED_VFOLD: _repeated_vfold,
    BOOTSTRAP: _bootstrap,
    MONTE_CARLO: _monte_carlo,
}


def make_splits(df: pd.DataFrame, cfg: SplitterConfig) -> List[Split]:
    """Create resamples of a dataset according to a splitter config.

    Args:
        df: Input dataframe (read only).
        cfg: Splitter configuration, including the random seed.

    Returns:
        List of Split objects in deterministic order.

    Raises:
        InvalidConfiguration: Bad strategy, count, repeats or prop.
        UnknownColumn: `cfg.strata` is not a column of `df`.
    """
    n = len(df)
    _validate(cfg, n)

    strata = None
    if cfg.strata is not None:
        strata = make_strata(df, cfg.strata, cfg.breaks, cfg.pool)
        if len(np.unique(strata)) < 2:
            warnings.warn(
                f"Strata '{cfg.strata}' collapsed to a single group "
                f"({n} rows); splits are not stratified"
            )
            strata = None

    try:
        return _BUILDERS[cfg.strategy](n, cfg, strata)
    except ValueError as e:
        # sklearn rejects e.g. more folds than members of every stratum
        raise InvalidConfiguration(f"Cannot build {cfg.strategy} splits: {e}") from e


def split(
    df: pd.DataFrame,
    strategy: str,
    count: int = 10,
    strata: Optional[str] = None,
    *,
    repeats: int = 1,
    prop: float = 0.75,
    breaks: int = 4,
    random_seed: int = 42,
) -> List[Split]:
    """Functional form of make_splits.

    Example:
        >>> folds = split(df, "v-fold-cross-validation", count=10, random_seed=42)
    """
    cfg = build_config(SplitterConfig, {
        "strategy": strategy,
        "count": count,
        "repeats": repeats,
        "prop": prop,
        "strata": strata,
        "breaks": breaks,
        "random_seed": random_seed,
    })
    return make_splits(df, cfg)
