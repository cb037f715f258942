from resampling.io.synthetic_generator import HousingGenerator

__all__ = ["HousingGenerator"]
