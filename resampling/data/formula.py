"""
Model formulas of the form ``outcome ~ predictors``.

Supports the subset used in the workshop notebooks:
- ``y ~ .``           all other columns
- ``y ~ a + b``       named columns
- ``y ~ . - a - b``   all other columns except the named ones
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

import pandas as pd

from resampling.errors import InvalidConfiguration, UnknownColumn


@dataclass(frozen=True)
class Formula:
    """Outcome column plus the predictor columns it is modelled on.

    Attributes:
        outcome: Name of the outcome column.
        predictors: Predictor names, or None for "all other columns".
        exclude: Columns removed from the dot expansion.
    """

    outcome: str
    predictors: Optional[Tuple[str, ...]] = None
    exclude: Tuple[str, ...] = ()

    @classmethod
    def parse(cls, text: str) -> Formula:
        """Parse a formula string such as ``"Sale_Price ~ . - Longitude"``."""
        if text.count("~") != 1:
            raise InvalidConfiguration(f"Formula must contain exactly one '~': {text!r}")

        lhs, rhs = (part.strip() for part in text.split("~"))
        if not lhs or not rhs:
            raise InvalidConfiguration(f"Formula needs an outcome and predictors: {text!r}")

        # Split on top-level +/- keeping the sign of each term
        terms: List[Tuple[str, str]] = []
        sign, token = "+", ""
        for ch in rhs:
            if ch in "+-":
                if token.strip():
                    terms.append((sign, token.strip()))
                sign, token = ch, ""
            else:
                token += ch
        if token.strip():
            terms.append((sign, token.strip()))

        included = [t for s, t in terms if s == "+"]
        excluded = tuple(t for s, t in terms if s == "-")

        if "." in included:
            if len(included) > 1:
                raise InvalidConfiguration(
                    f"Cannot combine '.' with named predictors: {text!r}"
                )
            return cls(outcome=lhs, predictors=None, exclude=excluded)

        if excluded:
            raise InvalidConfiguration(f"Term removal requires '.': {text!r}")
        return cls(outcome=lhs, predictors=tuple(included))

    def predictor_names(self, df: pd.DataFrame) -> List[str]:
        """Resolve predictor column names against a dataframe.

        Raises:
            UnknownColumn: If the outcome, a predictor or an excluded term is missing.
        """
        if self.outcome not in df.columns:
            raise UnknownColumn(self.outcome, "dataset (formula outcome)")

        if self.predictors is None:
            for col in self.exclude:
                if col not in df.columns:
                    raise UnknownColumn(col, "dataset (formula exclusion)")
            return [
                c for c in df.columns
                if c != self.outcome and c not in self.exclude
            ]

        for col in self.predictors:
            if col not in df.columns:
                raise UnknownColumn(col, "dataset (formula predictor)")
        return list(self.predictors)

    def __str__(self) -> str:
        if self.predictors is None:
            rhs = " - ".join(["."] + list(self.exclude))
        else:
            rhs = " + ".join(self.predictors)
        return f"{self.outcome} ~ {rhs}"


def as_formula(formula: Formula | str) -> Formula:
    """Accept either a Formula or its string form."""
    if isinstance(formula, Formula):
        return formula
    return Formula.parse(formula)
