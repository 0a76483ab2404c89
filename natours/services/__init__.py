"""Service layer package."""

from .api_features import APIFeatures
from .tour_service import TourService

__all__ = [
    "APIFeatures",
    "TourService",
]
