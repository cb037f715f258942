#!/usr/bin/env python
"""
Tune an elastic net over a penalty/mixture grid, then fit the chosen
candidate on the full training set and score it on the test set.

Usage:
    python scripts/tune_elastic_net.py
    python scripts/tune_elastic_net.py --levels 10 --select one-std-err

Results saved to experiments/tune_{timestamp}/.
"""

from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import numpy as np

from resampling.config import (
    ExperimentConfig,
    ModelSpec,
    ResampleConfig,
    SplitterConfig,
    SyntheticHousingConfig,
)
from resampling.data.splitters import HOLDOUT, make_splits
from resampling.experiments.tuning import last_fit, make_grid, tune_grid
from resampling.io.synthetic_generator import HousingGenerator
from resampling.preprocessing import (
    CenterScale,
    CollapseRareCategories,
    DropZeroVariance,
    FeaturePipeline,
    Interact,
    LogTransform,
    OneHotEncode,
)

OUTCOME = "Sale_Price"


def main():
    parser = argparse.ArgumentParser(description="Tune elastic net penalty and mixture")
    parser.add_argument("--levels", type=int, default=6, help="Penalty values on a log grid")
    parser.add_argument(
        "--select", choices=["best", "one-std-err"], default="best",
        help="Candidate selection rule",
    )
    parser.add_argument("--seed", type=int, help="Random seed (overrides config)")
    parser.add_argument("--n-jobs", type=int, default=1, help="Parallel split workers")
    args = parser.parse_args()

    data_cfg = SyntheticHousingConfig.from_yaml()
    split_cfg = SplitterConfig.from_yaml()
    exp_cfg = ExperimentConfig.from_yaml()
    if args.seed is not None:
        split_cfg = SplitterConfig(**{**split_cfg.model_dump(), "random_seed": args.seed})

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    run_dir = PROJECT_ROOT / exp_cfg.output_dir / f"tune_{timestamp}"
    run_dir.mkdir(parents=True, exist_ok=True)

    grid = make_grid(
        penalty=np.round(np.logspace(-4, -1, args.levels), 6).tolist(),
        mixture=[0.0, 0.5, 1.0],
    )

    print("=" * 60)
    print("Elastic net tuning")
    print("=" * 60)
    print(f"  Output: {run_dir}")
    print(f"  Candidates: {len(grid)}")
    print(f"  Splitter: {split_cfg.strategy} (count={split_cfg.count})")
    print("=" * 60)

    housing = HousingGenerator(data_cfg).generate()
    initial = make_splits(housing, SplitterConfig(
        strategy=HOLDOUT, prop=0.8, strata=split_cfg.strata, random_seed=split_cfg.random_seed,
    ))[0]
    train = initial.analysis_data(housing)
    folds = make_splits(train, split_cfg)

    pipeline = FeaturePipeline(
        [
            LogTransform(OUTCOME, base=10, skip=True),
            CollapseRareCategories(["Neighborhood"], threshold=0.01),
            OneHotEncode(drop_first=True),
            Interact("Bldg_Type", "Gr_Liv_Area"),
            DropZeroVariance(),
            CenterScale(),
        ],
        outcome=OUTCOME,
    )

    result = tune_grid(
        train, folds, pipeline, "elastic_net", grid, exp_cfg.metrics,
        config=ResampleConfig(n_jobs=args.n_jobs, show_progress=True),
    )

    print("\nTop candidates by rmse:")
    print(result.show_best("rmse", n=5).to_string(index=False))

    if args.select == "best":
        params = result.select_best("rmse")
    else:
        params = result.select_by_one_std_err("rmse", order_by="-penalty")
    print(f"\nSelected: {params}")

    final = last_fit(housing, initial, pipeline, ModelSpec(family="elastic_net", params=params),
                     exp_cfg.metrics)
    print("\nTest set:")
    for name, value in final.metrics.items():
        print(f"  {name}: {value:.5f}")

    result.collect_metrics().to_csv(run_dir / "tuning.csv", index=False)
    final.predictions.to_csv(run_dir / "predictions.csv", index=False)
    final.metrics_frame().to_csv(run_dir / "test_metrics.csv", index=False)
    with open(run_dir / "config.json", "w") as f:
        json.dump({
            "data": data_cfg.model_dump(),
            "splitter": split_cfg.model_dump(),
            "selection": args.select,
            "selected": params,
        }, f, indent=2)

    print(f"\nResults saved to {run_dir}")


if __name__ == "__main__":
    main()
