"""Resampling, preprocessing recipes and model evaluation for tabular regression."""

__version__ = "0.1.0"
