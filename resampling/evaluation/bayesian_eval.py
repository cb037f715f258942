"""
Bayesian comparison of resampled configurations.

Per-split metric differences relative to a reference configuration are
modelled as Student-t with a non-informative prior, so the posterior of
the mean difference is a scaled t:

    mu | d ~ mean(d) + sd(d) / sqrt(n) * t_{n-1}

Posterior draws are obtained by Monte Carlo sampling. For each contrast
the result reports the probability that the difference lies above the
region of practical equivalence (ROPE), below it, or inside it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Mapping

import numpy as np

from resampling.config import BayesianCompareConfig
from resampling.errors import InvalidConfiguration
from resampling.evaluation.comparison import paired_differences

if TYPE_CHECKING:
    from resampling.experiments.resample_runner import ResampleReport


def _posterior_draws(values: np.ndarray, n_samples: int, rng: np.random.Generator) -> np.ndarray:
    """Monte Carlo draws from the scaled-t posterior of the mean of `values`."""
    n = len(values)
    scale = values.std(ddof=1) / np.sqrt(n)
    return values.mean() + scale * rng.standard_t(n - 1, size=n_samples)


def _summarize_draws(draws: np.ndarray, credible_mass: float) -> Dict[str, float]:
    tail = (1.0 - credible_mass) / 2 * 100
    lower, upper = np.percentile(draws, [tail, 100 - tail])
    return {
        "mean": float(draws.mean()),
        "std": float(draws.std()),
        "lower": float(lower),
        "upper": float(upper),
    }


def bayesian_compare(
    reports: Mapping[str, ResampleReport],
    metric: str,
    cfg: BayesianCompareConfig | None = None,
) -> dict[str, Any]:
    """Posterior comparison of every configuration against the first one.

    Args:
        reports: Reports resampled on identical splits; the first entry
            is the reference.
        metric: Metric to compare.
        cfg: Sampling settings. Defaults to BayesianCompareConfig().

    Returns:
        Dictionary:
        {
            "metric": ...,
            "reference": <first config name>,
            "posteriors": {name: {"mean", "std", "lower", "upper"}, ...},
            "contrasts": {
                "<name> vs <reference>": {
                    "mean", "std", "lower", "upper",
                    "p_greater", "p_less", "p_equivalent",
                },
                ...
            },
            "n_splits": ...,
            "n_samples": ...,
        }
    """
    if cfg is None:
        cfg = BayesianCompareConfig()
    if len(reports) < 2:
        raise InvalidConfiguration("Bayesian comparison needs at least 2 configurations")
    if cfg.rope < 0:
        raise InvalidConfiguration(f"rope must be non-negative, got {cfg.rope}")

    rng = np.random.default_rng(cfg.random_seed)
    names = list(reports)
    reference = names[0]

    posteriors: dict[str, dict[str, float]] = {}
    for name in names:
        values = reports[name].values(metric).dropna().to_numpy()
        if len(values) < 2:
            raise InvalidConfiguration(
                f"'{name}' has {len(values)} usable splits for '{metric}'; need at least 2"
            )
        posteriors[name] = _summarize_draws(
            _posterior_draws(values, cfg.n_samples, rng), cfg.credible_mass
        )

    contrasts: dict[str, dict[str, float]] = {}
    n_splits = 0
    for name in names[1:]:
        diffs = paired_differences(reports[name], reports[reference], metric).dropna().to_numpy()
        n_splits = len(diffs)
        if n_splits < 2:
            raise InvalidConfiguration(f"Need at least 2 paired splits, got {n_splits}")

        draws = _posterior_draws(diffs, cfg.n_samples, rng)
        contrast = _summarize_draws(draws, cfg.credible_mass)
        contrast["p_greater"] = float(np.mean(draws > cfg.rope))
        contrast["p_less"] = float(np.mean(draws < -cfg.rope))
        contrast["p_equivalent"] = float(np.mean(np.abs(draws) <= cfg.rope))
        contrasts[f"{name} vs {reference}"] = contrast

    return {
        "metric": metric.lower(),
        "reference": reference,
        "posteriors": posteriors,
        "contrasts": contrasts,
        "n_splits": n_splits,
        "n_samples": cfg.n_samples,
    }
