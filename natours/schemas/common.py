"""Common Pydantic schemas: the response envelopes shared by every endpoint."""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class ErrorEnvelope(BaseModel):
    """Error response; ``error`` and ``stack`` are only present in development."""

    status: Literal["fail", "error"] = Field(..., description="fail for 4xx, error for 5xx")
    message: str = Field(..., description="Human-readable explanation")
    error: Optional[Dict[str, Any]] = Field(None, description="Error kind and detail")
    stack: Optional[str] = Field(None, description="Traceback")


class TourData(BaseModel):
    tour: Dict[str, Any]


class TourEnvelope(BaseModel):
    """Single tour response."""

    status: Literal["success"] = "success"
    data: TourData


class ToursData(BaseModel):
    tours: List[Dict[str, Any]]


class TourListEnvelope(BaseModel):
    """List response; ``results`` is the number of tours on this page."""

    status: Literal["success"] = "success"
    results: int = Field(..., ge=0)
    data: ToursData


class TourStat(BaseModel):
    """One difficulty group of the stats report."""

    difficulty: str
    num_tours: int = Field(..., alias="numTours")
    num_ratings: float = Field(..., alias="numRatings")
    avg_rating: float = Field(..., alias="avgRating")
    avg_price: float = Field(..., alias="avgPrice")
    min_price: float = Field(..., alias="minPrice")
    max_price: float = Field(..., alias="maxPrice")

    model_config = {"populate_by_name": True}


class StatsData(BaseModel):
    stats: List[TourStat]


class StatsEnvelope(BaseModel):
    status: Literal["success"] = "success"
    data: StatsData


class MonthlyPlanEntry(BaseModel):
    """Tour starts within one calendar month."""

    month: int = Field(..., ge=1, le=12)
    num_tour_starts: int = Field(..., alias="numTourStarts")
    tours: List[str]

    model_config = {"populate_by_name": True}


class PlanData(BaseModel):
    plan: List[MonthlyPlanEntry]


class PlanEnvelope(BaseModel):
    """Monthly plan response; ``total`` is the number of months returned."""

    status: Literal["success"] = "success"
    total: int = Field(..., ge=0)
    data: PlanData
