"""
Declarative feature-transformation steps.

Each step learns its parameters in `fit` (from the analysis partition only)
and replays them in `apply` on any dataframe. Learned attributes end in an
underscore. Steps never modify their input frame.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from sklearn.preprocessing import SplineTransformer

from resampling.errors import DegenerateColumn, InvalidConfiguration, UnknownColumn


def _is_numeric(values: pd.Series) -> bool:
    return pd.api.types.is_numeric_dtype(values) and not pd.api.types.is_bool_dtype(values)


def _require(df: pd.DataFrame, columns: Sequence[str], step: str) -> None:
    for col in columns:
        if col not in df.columns:
            raise UnknownColumn(col, f"dataset (step '{step}')")


class TransformStep(ABC):
    """Base class for pipeline steps.

    Attributes:
        name: Tag identifying the step variant.
        skip: If True, the step only runs while preparing the analysis data
            at fit time and is never replayed on new data.
    """

    name: str = "step"

    def __init__(self, skip: bool = False) -> None:
        self.skip = skip
        self._fitted = False

    @abstractmethod
    def _fit(self, df: pd.DataFrame, outcome: Optional[str]) -> None:
        """Learn parameters from the (already transformed) analysis data."""

    @abstractmethod
    def _apply(self, df: pd.DataFrame) -> pd.DataFrame:
        """Transform a copy of `df` using learned parameters."""

    def fit(self, df: pd.DataFrame, outcome: Optional[str] = None) -> "TransformStep":
        """Fit step on analysis data.

        Args:
            df: Analysis data as output by the preceding steps.
            outcome: Outcome column, excluded from default column selections.

        Returns:
            Self for chaining.
        """
        self._fit(df, outcome)
        self._fitted = True
        return self

    def apply(self, df: pd.DataFrame) -> pd.DataFrame:
        """Apply learned parameters to any dataframe."""
        if not self._fitted:
            raise RuntimeError(f"Step '{self.name}' not fitted. Call fit() first.")
        return self._apply(df.copy())

    @staticmethod
    def _predictors(df: pd.DataFrame, outcome: Optional[str]) -> List[str]:
        return [c for c in df.columns if c != outcome]

    def __repr__(self) -> str:
        flag = ", skip=True" if self.skip else ""
        return f"{type(self).__name__}({self.name}{flag})"


class CollapseRareCategories(TransformStep):
    """Pool infrequent categorical levels into a catch-all level.

    A level is kept when its fit-time relative frequency is >= threshold.
    At apply time, dropped levels, levels never seen at fit time and missing
    values all map to `other`.
    """

    name = "collapse-rare-categories"

    def __init__(
        self,
        columns: Sequence[str],
        threshold: float = 0.05,
        other: str = "other",
        skip: bool = False,
    ) -> None:
        super().__init__(skip)
        if not 0.0 <= threshold <= 1.0:
            raise InvalidConfiguration(f"threshold must be in [0, 1], got {threshold}")
        self.columns = list(columns)
        self.threshold = threshold
        self.other = other
        self.levels_: Dict[str, List] = {}

    def _fit(self, df: pd.DataFrame, outcome: Optional[str]) -> None:
        _require(df, self.columns, self.name)
        n = len(df)
        for col in self.columns:
            freq = df[col].value_counts(dropna=True) / max(n, 1)
            self.levels_[col] = [lvl for lvl, p in freq.items() if p >= self.threshold]

    def _apply(self, df: pd.DataFrame) -> pd.DataFrame:
        _require(df, self.columns, self.name)
        for col in self.columns:
            values = df[col].astype("object")
            df[col] = values.where(values.isin(self.levels_[col]), self.other)
        return df


class OneHotEncode(TransformStep):
    """Expand categorical columns into 0/1 indicator columns.

    Indicators are created for each level observed at fit time, so levels
    that are absent (or unseen) at apply time yield all-zero rows.
    """

    name = "one-hot-encode"

    def __init__(
        self,
        columns: Optional[Sequence[str]] = None,
        drop_first: bool = False,
        prefix_sep: str = "_",
        skip: bool = False,
    ) -> None:
        super().__init__(skip)
        self.columns = list(columns) if columns is not None else None
        self.drop_first = drop_first
        self.prefix_sep = prefix_sep
        self.levels_: Dict[str, List] = {}

    def _fit(self, df: pd.DataFrame, outcome: Optional[str]) -> None:
        if self.columns is None:
            columns = [c for c in self._predictors(df, outcome) if not _is_numeric(df[c])]
        else:
            _require(df, self.columns, self.name)
            columns = self.columns

        for col in columns:
            levels = sorted(df[col].dropna().unique().tolist(), key=str)
            self.levels_[col] = levels[1:] if self.drop_first else levels

    def indicator_names(self, column: str) -> List[str]:
        return [f"{column}{self.prefix_sep}{lvl}" for lvl in self.levels_[column]]

    def _apply(self, df: pd.DataFrame) -> pd.DataFrame:
        _require(df, list(self.levels_), self.name)
        indicators = {}
        for col, levels in self.levels_.items():
            for lvl, new_col in zip(levels, self.indicator_names(col)):
                indicators[new_col] = (df[col] == lvl).astype(float).to_numpy()

        df = df.drop(columns=list(self.levels_))
        return pd.concat([df, pd.DataFrame(indicators, index=df.index)], axis=1)


class DropZeroVariance(TransformStep):
    """Remove columns whose fit-time values are constant."""

    name = "drop-zero-variance"

    def __init__(self, columns: Optional[Sequence[str]] = None, skip: bool = False) -> None:
        super().__init__(skip)
        self.columns = list(columns) if columns is not None else None
        self.removed_: List[str] = []

    def _fit(self, df: pd.DataFrame, outcome: Optional[str]) -> None:
        if self.columns is None:
            candidates = self._predictors(df, outcome)
        else:
            _require(df, self.columns, self.name)
            candidates = self.columns
        self.removed_ = [c for c in candidates if df[c].nunique(dropna=False) <= 1]

    def _apply(self, df: pd.DataFrame) -> pd.DataFrame:
        _require(df, self.removed_, self.name)
        return df.drop(columns=self.removed_)


class CenterScale(TransformStep):
    """Standardize numeric columns with fit-time mean and standard deviation.

    Uses the sample standard deviation (ddof=1). A column with zero
    standard deviation cannot be scaled and raises DegenerateColumn.
    """

    name = "center-scale"

    def __init__(self, columns: Optional[Sequence[str]] = None, skip: bool = False) -> None:
        super().__init__(skip)
        self.columns = list(columns) if columns is not None else None
        self.means_: Dict[str, float] = {}
        self.sds_: Dict[str, float] = {}

    def _fit(self, df: pd.DataFrame, outcome: Optional[str]) -> None:
        if self.columns is None:
            columns = [c for c in self._predictors(df, outcome) if _is_numeric(df[c])]
        else:
            _require(df, self.columns, self.name)
            columns = self.columns

        for col in columns:
            if not _is_numeric(df[col]):
                raise InvalidConfiguration(f"center-scale needs a numeric column, '{col}' is not")
            values = df[col].astype(float)
            sd = float(values.std(ddof=1))
            if not np.isfinite(sd) or sd == 0.0:
                raise DegenerateColumn(
                    f"Column '{col}' has zero standard deviation; cannot scale"
                )
            self.means_[col] = float(values.mean())
            self.sds_[col] = sd

    def _apply(self, df: pd.DataFrame) -> pd.DataFrame:
        _require(df, list(self.means_), self.name)
        for col, mean in self.means_.items():
            df[col] = (df[col].astype(float) - mean) / self.sds_[col]
        return df


class BasisExpansion(TransformStep):
    """Replace a numeric column with a spline basis.

    Knots are placed at quantiles of the fit-time distribution. With
    `natural=True` the basis is extrapolated linearly beyond the boundary
    knots, which approximates a natural spline.
    """

    name = "basis-expansion"

    def __init__(
        self,
        column: str,
        n_knots: int = 5,
        degree: int = 3,
        natural: bool = False,
        skip: bool = False,
    ) -> None:
        super().__init__(skip)
        self.column = column
        self.n_knots = n_knots
        self.degree = degree
        self.natural = natural
        self.spline_: Optional[SplineTransformer] = None

    @property
    def basis_names(self) -> List[str]:
        if self.spline_ is None:
            raise RuntimeError("Step not fitted.")
        n_out = self.spline_.n_features_out_
        return [f"{self.column}_bs_{k + 1:02d}" for k in range(n_out)]

    def _fit(self, df: pd.DataFrame, outcome: Optional[str]) -> None:
        _require(df, [self.column], self.name)
        values = df[[self.column]].astype(float)
        if values.isna().any().any():
            raise DegenerateColumn(f"Column '{self.column}' has missing values; cannot fit basis")

        self.spline_ = SplineTransformer(
            n_knots=self.n_knots,
            degree=self.degree,
            knots="quantile",
            extrapolation="linear" if self.natural else "continue",
            include_bias=False,
        )
        try:
            self.spline_.fit(values.to_numpy())
        except ValueError as e:
            # Too few distinct values for the requested quantile knots
            raise DegenerateColumn(f"Cannot place knots on '{self.column}': {e}") from e

    def _apply(self, df: pd.DataFrame) -> pd.DataFrame:
        _require(df, [self.column], self.name)
        basis = self.spline_.transform(df[[self.column]].astype(float).to_numpy())
        expanded = pd.DataFrame(basis, columns=self.basis_names, index=df.index)
        df = df.drop(columns=[self.column])
        return pd.concat([df, expanded], axis=1)


class LogTransform(TransformStep):
    """Log-transform a column: ``log_base(x + offset)``.

    Typically used on the outcome with ``skip=True`` so the model is fit on
    the log scale while new data (which may lack the outcome) is left alone.
    """

    name = "log-transform"

    def __init__(
        self,
        column: str,
        base: float = 10.0,
        offset: float = 0.0,
        skip: bool = False,
    ) -> None:
        super().__init__(skip)
        if base <= 0 or base == 1:
            raise InvalidConfiguration(f"log base must be positive and != 1, got {base}")
        self.column = column
        self.base = base
        self.offset = offset

    def _check_positive(self, values: pd.Series) -> None:
        if (values.astype(float) + self.offset <= 0).any():
            raise DegenerateColumn(
                f"Column '{self.column}' has values <= 0 after offset {self.offset}"
            )

    def _fit(self, df: pd.DataFrame, outcome: Optional[str]) -> None:
        _require(df, [self.column], self.name)
        self._check_positive(df[self.column])

    def _apply(self, df: pd.DataFrame) -> pd.DataFrame:
        _require(df, [self.column], self.name)
        self._check_positive(df[self.column])
        df[self.column] = np.log(df[self.column].astype(float) + self.offset) / np.log(self.base)
        return df

    def inverse(self, values: np.ndarray) -> np.ndarray:
        """Map transformed values back to the original scale."""
        return np.power(self.base, np.asarray(values, dtype=float)) - self.offset


class ImputeMedian(TransformStep):
    """Fill missing numeric values with the fit-time median."""

    name = "impute-median"

    def __init__(self, columns: Optional[Sequence[str]] = None, skip: bool = False) -> None:
        super().__init__(skip)
        self.columns = list(columns) if columns is not None else None
        self.medians_: Dict[str, float] = {}

    def _fit(self, df: pd.DataFrame, outcome: Optional[str]) -> None:
        if self.columns is None:
            columns = [c for c in self._predictors(df, outcome) if _is_numeric(df[c])]
        else:
            _require(df, self.columns, self.name)
            columns = self.columns
        for col in columns:
            median = df[col].median()
            if pd.isna(median):
                raise DegenerateColumn(f"Column '{col}' is entirely missing; cannot impute")
            self.medians_[col] = float(median)

    def _apply(self, df: pd.DataFrame) -> pd.DataFrame:
        _require(df, list(self.medians_), self.name)
        return df.fillna(value=self.medians_)


class ImputeMode(TransformStep):
    """Fill missing categorical values with the fit-time most frequent level."""

    name = "impute-mode"

    def __init__(self, columns: Optional[Sequence[str]] = None, skip: bool = False) -> None:
        super().__init__(skip)
        self.columns = list(columns) if columns is not None else None
        self.modes_: Dict[str, object] = {}

    def _fit(self, df: pd.DataFrame, outcome: Optional[str]) -> None:
        if self.columns is None:
            columns = [c for c in self._predictors(df, outcome) if not _is_numeric(df[c])]
        else:
            _require(df, self.columns, self.name)
            columns = self.columns
        for col in columns:
            counts = df[col].value_counts(dropna=True)
            if counts.empty:
                raise DegenerateColumn(f"Column '{col}' is entirely missing; cannot impute")
            self.modes_[col] = counts.index[0]

    def _apply(self, df: pd.DataFrame) -> pd.DataFrame:
        _require(df, list(self.modes_), self.name)
        for col, mode in self.modes_.items():
            df[col] = df[col].astype("object").where(df[col].notna(), mode)
        return df


class Interact(TransformStep):
    """Add product terms between two columns (or indicator column groups).

    A name that is not a column is treated as a prefix of indicator columns
    created by OneHotEncode, e.g. ``Interact("Bldg_Type", "Gr_Liv_Area")``.
    """

    name = "interact"

    def __init__(self, left: str, right: str, sep: str = "_x_", skip: bool = False) -> None:
        super().__init__(skip)
        self.left = left
        self.right = right
        self.sep = sep
        self.pairs_: List[Tuple[str, str]] = []

    @staticmethod
    def _resolve(df: pd.DataFrame, term: str) -> List[str]:
        if term in df.columns:
            return [term]
        matches = [c for c in df.columns if c.startswith(f"{term}_")]
        if not matches:
            raise UnknownColumn(term, "dataset (step 'interact')")
        return matches

    def _fit(self, df: pd.DataFrame, outcome: Optional[str]) -> None:
        lefts = self._resolve(df, self.left)
        rights = self._resolve(df, self.right)
        for col in lefts + rights:
            if not _is_numeric(df[col]):
                raise InvalidConfiguration(
                    f"interact needs numeric columns; encode '{col}' first"
                )
        self.pairs_ = [(a, b) for a in lefts for b in rights]

    def _apply(self, df: pd.DataFrame) -> pd.DataFrame:
        _require(df, sorted({c for pair in self.pairs_ for c in pair}), self.name)
        products = {
            f"{a}{self.sep}{b}": (df[a].astype(float) * df[b].astype(float)).to_numpy()
            for a, b in self.pairs_
        }
        return pd.concat([df, pd.DataFrame(products, index=df.index)], axis=1)
