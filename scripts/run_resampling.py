#!/usr/bin/env python
"""
Resample one model configuration on the synthetic housing data.

Steps:
- Generate the housing data and take a stratified initial split
- Build 10-fold (or configured) resamples of the training set
- Fit the feature pipeline and model on each analysis partition
- Report per-split and aggregated metrics

Usage:
    python scripts/run_resampling.py
    python scripts/run_resampling.py --family elastic_net --penalty 0.001
    python scripts/run_resampling.py --strategy bootstrap --count 25 --n-jobs 4

Results saved to experiments/run_{timestamp}/.
"""

from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from resampling.config import (
    ExperimentConfig,
    ModelSpec,
    ResampleConfig,
    SplitterConfig,
    SyntheticHousingConfig,
)
from resampling.data.splitters import HOLDOUT, make_splits
from resampling.experiments.resample_runner import run
from resampling.io.synthetic_generator import HousingGenerator
from resampling.preprocessing import (
    CenterScale,
    CollapseRareCategories,
    DropZeroVariance,
    FeaturePipeline,
    LogTransform,
    OneHotEncode,
)


def housing_pipeline(outcome: str = "Sale_Price") -> FeaturePipeline:
    """Log outcome (fit time only), pool rare neighborhoods, dummies, scale."""
    return FeaturePipeline(
        [
            LogTransform(outcome, base=10, skip=True),
            CollapseRareCategories(["Neighborhood"], threshold=0.01),
            OneHotEncode(drop_first=True),
            DropZeroVariance(),
            CenterScale(),
        ],
        outcome=outcome,
    )


def main():
    parser = argparse.ArgumentParser(description="Resample a model on synthetic housing data")
    parser.add_argument("--family", type=str, default="linear", help="Model family")
    parser.add_argument("--penalty", type=float, help="Elastic net penalty")
    parser.add_argument("--mixture", type=float, help="Elastic net mixture")
    parser.add_argument("--num-terms", type=int, help="MARS retained terms")
    parser.add_argument("--strategy", type=str, help="Splitter strategy (overrides config)")
    parser.add_argument("--count", type=int, help="Folds or resamples (overrides config)")
    parser.add_argument("--seed", type=int, help="Random seed (overrides config)")
    parser.add_argument("--n-jobs", type=int, default=1, help="Parallel split workers")
    parser.add_argument("--name", type=str, default="", help="Optional run name suffix")
    args = parser.parse_args()

    data_cfg = SyntheticHousingConfig.from_yaml()
    split_cfg = SplitterConfig.from_yaml()
    exp_cfg = ExperimentConfig.from_yaml()

    overrides = {
        k: v for k, v in {
            "strategy": args.strategy, "count": args.count, "random_seed": args.seed,
        }.items() if v is not None
    }
    split_cfg = SplitterConfig(**{**split_cfg.model_dump(), **overrides})

    params = {
        k: v for k, v in {
            "penalty": args.penalty, "mixture": args.mixture, "num_terms": args.num_terms,
        }.items() if v is not None
    }
    model_spec = ModelSpec(family=args.family, params=params)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    run_name = f"run_{timestamp}"
    if args.name:
        run_name += f"_{args.name}"
    run_dir = PROJECT_ROOT / exp_cfg.output_dir / run_name
    run_dir.mkdir(parents=True, exist_ok=True)

    print("=" * 60)
    print("Resampling")
    print("=" * 60)
    print(f"  Output: {run_dir}")
    print(f"  Model: {model_spec.family} {model_spec.params}")
    print(f"  Splitter: {split_cfg.strategy} (count={split_cfg.count}, strata={split_cfg.strata})")
    print(f"  Metrics: {exp_cfg.metrics}")
    print("=" * 60)

    housing = HousingGenerator(data_cfg).generate()

    # Initial split: resample the training portion only
    initial_cfg = SplitterConfig(
        strategy=HOLDOUT, prop=0.8, strata=split_cfg.strata, random_seed=split_cfg.random_seed
    )
    initial = make_splits(housing, initial_cfg)[0]
    train = initial.analysis_data(housing)
    print(f"\nTraining rows: {initial.n_analysis}, test rows held back: {initial.n_assessment}")

    report = run(
        train,
        split_cfg,
        housing_pipeline(),
        model_spec,
        exp_cfg.metrics,
        formula=exp_cfg.formula,
        config=ResampleConfig(n_jobs=args.n_jobs, show_progress=True),
        name=model_spec.family,
    )

    print("\nSummary:")
    print(report.summary.to_string(index=False))

    report.metrics_frame().to_csv(run_dir / "metrics.csv", index=False)
    report.summary.to_csv(run_dir / "summary.csv", index=False)
    report.predictions_frame().to_csv(run_dir / "predictions.csv", index=False)
    with open(run_dir / "config.json", "w") as f:
        json.dump({
            "data": data_cfg.model_dump(),
            "splitter": split_cfg.model_dump(),
            "model": model_spec.model_dump(),
            "experiment": exp_cfg.model_dump(),
        }, f, indent=2)

    print(f"\nResults saved to {run_dir}")


if __name__ == "__main__":
    main()
