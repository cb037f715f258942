"""Preprocessing module for feature pipelines."""

from resampling.preprocessing.feature_pipeline import FeaturePipeline, FittedPipeline
from resampling.preprocessing.steps import (
    BasisExpansion,
    CenterScale,
    CollapseRareCategories,
    DropZeroVariance,
    ImputeMedian,
    ImputeMode,
    Interact,
    LogTransform,
    OneHotEncode,
    TransformStep,
)

__all__ = [
    "FeaturePipeline",
    "FittedPipeline",
    "TransformStep",
    "BasisExpansion",
    "CenterScale",
    "CollapseRareCategories",
    "DropZeroVariance",
    "ImputeMedian",
    "ImputeMode",
    "Interact",
    "LogTransform",
    "OneHotEncode",
]
