"""Models module exporting all database models."""

from .tour import Difficulty, Tour, TourStartDate

__all__ = [
    "Difficulty",
    "Tour",
    "TourStartDate",
]
