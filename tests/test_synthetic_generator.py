import pandas as pd

from resampling.config import SyntheticHousingConfig
from resampling.io.synthetic_generator import HousingGenerator


EXPECTED_COLUMNS = [
    "Gr_Liv_Area", "Year_Built", "Lot_Area", "Longitude", "Latitude",
    "Neighborhood", "Bldg_Type", "Sale_Price",
]


def test_columns_and_size(housing_df):
    assert list(housing_df.columns) == EXPECTED_COLUMNS
    assert len(housing_df) == 400
    assert (housing_df["Sale_Price"] > 0).all()
    assert housing_df.notna().all().all()


def test_same_seed_same_data(seed):
    cfg = SyntheticHousingConfig(random_seed=seed, n_samples=100)
    pd.testing.assert_frame_equal(
        HousingGenerator(cfg).generate(), HousingGenerator(cfg).generate()
    )


def test_rare_neighborhoods_are_rare():
    cfg = SyntheticHousingConfig(n_samples=5000, n_neighborhoods=10, rare_neighborhoods=2)
    gen = HousingGenerator(cfg)
    freq = gen.generate()["Neighborhood"].value_counts(normalize=True)

    for level in gen.neighborhoods[-2:]:
        assert freq.get(level, 0.0) < 0.02
    assert freq.max() > 0.05
