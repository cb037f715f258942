"""
Synthetic housing data in the shape of the Ames housing dataset.

Each house belongs to a neighborhood with its own location and price
level. A few neighborhoods are drawn with very low probability so that
rare-level handling is exercised. The outcome is generated on the log10
scale:

    log10(Sale_Price) = base + neighborhood effect + bldg type effect
                        + b1 * log10(Gr_Liv_Area) + f(Year_Built)
                        + b2 * log10(Lot_Area) + noise

with a nonlinear (piecewise) age effect, so spline and MARS families have
something to find that a plain linear model misses.
"""

from __future__ import annotations

import numpy as np
import pandas as pd

from resampling.config import SyntheticHousingConfig

NEIGHBORHOODS = [
    "North_Ames", "College_Creek", "Old_Town", "Edwards", "Somerset",
    "Northridge_Heights", "Gilbert", "Sawyer", "Northwest_Ames",
    "Sawyer_West", "Mitchell", "Brookside", "Crawford", "Iowa_DOT_and_Rail_Road",
    "Timberland", "Northridge", "Stone_Brook", "South_and_West_of_Iowa_State_University",
    "Clear_Creek", "Meadow_Village", "Briardale", "Bloomington_Heights",
    "Veenker", "Northpark_Villa", "Blueste", "Greens", "Green_Hills", "Landmark",
]

BLDG_TYPES = ["OneFam", "TwnhsE", "Duplex", "Twnhs", "TwoFmCon"]
BLDG_TYPE_PROBS = np.array([0.83, 0.08, 0.04, 0.03, 0.02])
BLDG_TYPE_EFFECT = np.array([0.0, -0.02, -0.08, -0.06, -0.07])

# Rough bounding box of Ames, Iowa
LONGITUDE_RANGE = (-93.69, -93.58)
LATITUDE_RANGE = (41.99, 42.06)


class HousingGenerator:
    """
    Generates an Ames-style housing frame.

    Neighborhood parameters (center, price level, typical size) are drawn
    once at init, so successive calls to generate() sample from the same
    population.
    """

    def __init__(self, cfg: SyntheticHousingConfig | None = None):
        self.cfg = cfg or SyntheticHousingConfig()
        if not 1 <= self.cfg.n_neighborhoods <= len(NEIGHBORHOODS):
            raise ValueError(
                f"n_neighborhoods must be in [1, {len(NEIGHBORHOODS)}], "
                f"got {self.cfg.n_neighborhoods}"
            )
        if not 0 <= self.cfg.rare_neighborhoods < self.cfg.n_neighborhoods:
            raise ValueError("rare_neighborhoods must be smaller than n_neighborhoods")

        self.rng = np.random.default_rng(self.cfg.random_seed)
        self.neighborhoods = NEIGHBORHOODS[: self.cfg.n_neighborhoods]
        self._probs = self._neighborhood_probs()
        self._centers = self._neighborhood_centers()
        self._effects = self.rng.normal(0.0, 0.08, size=len(self.neighborhoods))
        self._size_shift = self.rng.normal(0.0, 0.05, size=len(self.neighborhoods))

    def _neighborhood_probs(self) -> np.ndarray:
        """Common levels share most of the mass; rare levels get ~0.5% each."""
        n = self.cfg.n_neighborhoods
        n_rare = self.cfg.rare_neighborhoods
        weights = self.rng.uniform(0.5, 1.5, size=n - n_rare)
        weights = weights / weights.sum() * (1.0 - 0.005 * n_rare)
        return np.concatenate([weights, np.full(n_rare, 0.005)])

    def _neighborhood_centers(self) -> np.ndarray:
        n = self.cfg.n_neighborhoods
        lon = self.rng.uniform(*LONGITUDE_RANGE, size=n)
        lat = self.rng.uniform(*LATITUDE_RANGE, size=n)
        return np.column_stack([lon, lat])

    @staticmethod
    def _age_effect(year_built: np.ndarray) -> np.ndarray:
        """Flat for old houses, rising steeply after 1950 and faster after 1990."""
        after_1950 = np.maximum(year_built - 1950, 0)
        after_1990 = np.maximum(year_built - 1990, 0)
        return 0.002 * after_1950 + 0.004 * after_1990

    def generate(self, n_samples: int | None = None) -> pd.DataFrame:
        """
        Generate a housing frame.

        Args:
            n_samples: Number of houses. Defaults to cfg.n_samples.

        Returns:
            DataFrame with Gr_Liv_Area, Year_Built, Lot_Area, Longitude,
            Latitude, Neighborhood, Bldg_Type and Sale_Price.
        """
        n = self.cfg.n_samples if n_samples is None else n_samples
        if n < 1:
            raise ValueError(f"n_samples must be positive, got {n}")
        rng = self.rng

        hood = rng.choice(len(self.neighborhoods), size=n, p=self._probs)
        bldg = rng.choice(len(BLDG_TYPES), size=n, p=BLDG_TYPE_PROBS)

        log_area = rng.normal(3.17, 0.10, size=n) + self._size_shift[hood]
        gr_liv_area = np.round(10 ** log_area).astype(int)
        year_built = np.clip(np.round(rng.normal(1972, 28, size=n)), 1872, 2010).astype(int)
        lot_area = np.round(10 ** rng.normal(3.97, 0.15, size=n)).astype(int)

        longitude = self._centers[hood, 0] + rng.normal(0.0, 0.004, size=n)
        latitude = self._centers[hood, 1] + rng.normal(0.0, 0.003, size=n)

        log_price = (
            2.4
            + 0.75 * np.log10(gr_liv_area)
            + 0.12 * np.log10(lot_area)
            + self._age_effect(year_built)
            + self._effects[hood]
            + BLDG_TYPE_EFFECT[bldg]
            + rng.normal(0.0, self.cfg.noise_sd, size=n)
        )

        return pd.DataFrame({
            "Gr_Liv_Area": gr_liv_area,
            "Year_Built": year_built,
            "Lot_Area": lot_area,
            "Longitude": np.round(longitude, 6),
            "Latitude": np.round(latitude, 6),
            "Neighborhood": np.array(self.neighborhoods, dtype=object)[hood],
            "Bldg_Type": np.array(BLDG_TYPES, dtype=object)[bldg],
            "Sale_Price": np.round(10 ** log_price).astype(int),
        })
