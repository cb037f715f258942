"""
Data contracts and resampling.

This module provides:
- Formula: outcome ~ predictors specification
- Split: one analysis/assessment partition (indices only)
- make_splits / split: holdout, v-fold, repeated v-fold, bootstrap and
  Monte Carlo resamples, optionally stratified
"""

from resampling.data.formula import Formula, as_formula
from resampling.data.splitters import (
    STRATEGIES,
    Split,
    make_splits,
    make_strata,
    split,
)

__all__ = [
    "Formula",
    "as_formula",
    "STRATEGIES",
    "Split",
    "make_splits",
    "make_strata",
    "split",
]
