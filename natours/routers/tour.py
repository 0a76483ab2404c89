"""Tour router: catalog CRUD, the top-5 alias and the two reports."""

import logging
from typing import Any, Mapping

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.database import get_db
from ..core.exceptions import CastError
from ..core.observability import metrics_collector
from ..schemas.common import (
    ErrorEnvelope,
    PlanEnvelope,
    StatsEnvelope,
    TourEnvelope,
    TourListEnvelope,
)
from ..schemas.tour import TourCreate, TourUpdate, serialize_tour
from ..services.api_features import normalize_query_string
from ..services.tour_service import TourService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/tours",
    tags=["tours"],
    responses={
        400: {"model": ErrorEnvelope},
        404: {"model": ErrorEnvelope},
    },
)

# Query overrides for GET /tours/top-5-cheap
TOP_TOURS_QUERY = {
    "limit": "5",
    "sort": "-ratingsAverage,price",
    "fields": "name,price,ratingsAverage,summary,difficulty",
}


def list_query(request: Request) -> dict[str, Any]:
    """The request's query string as a plain mapping."""
    return normalize_query_string(request.query_params)


def top_tours_query(request: Request) -> dict[str, Any]:
    """The request's query string with the top-5 limit, sort and fields forced."""
    query = normalize_query_string(request.query_params)
    query.update(TOP_TOURS_QUERY)
    return query


def _tour_response(tour, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    envelope = TourEnvelope(data={"tour": serialize_tour(tour)})
    return JSONResponse(status_code=status_code, content=envelope.model_dump())


async def _list_response(db: AsyncSession, query: Mapping[str, Any], endpoint: str) -> JSONResponse:
    tour_service = TourService(db)
    tours, projection = await tour_service.list_tours(
        query, default_limit=settings.default_page_limit
    )
    metrics_collector.record_query(endpoint)

    envelope = TourListEnvelope(
        results=len(tours),
        data={"tours": [serialize_tour(tour, projection) for tour in tours]},
    )
    return JSONResponse(status_code=200, content=envelope.model_dump())


@router.get("/top-5-cheap", response_model=TourListEnvelope)
async def get_top_tours(
    query: dict = Depends(top_tours_query),
    db: AsyncSession = Depends(get_db),
) -> JSONResponse:
    """The five best rated tours, cheapest first among equal ratings."""
    return await _list_response(db, query, "top-5-cheap")


@router.get("/tour-stats", response_model=StatsEnvelope)
async def get_tour_stats(db: AsyncSession = Depends(get_db)) -> JSONResponse:
    """Per-difficulty statistics of well rated tours."""
    stats = await TourService(db).get_tour_stats()
    metrics_collector.record_query("tour-stats")

    envelope = StatsEnvelope(data={"stats": stats})
    return JSONResponse(status_code=200, content=envelope.model_dump(by_alias=True))


@router.get("/monthly-plan/{year}", response_model=PlanEnvelope)
async def get_monthly_plan(year: str, db: AsyncSession = Depends(get_db)) -> JSONResponse:
    """Tour starts per month, busiest month first."""
    try:
        year_number = int(year)
    except ValueError:
        raise CastError("year", year)
    if not 1 <= year_number <= 9998:
        raise CastError("year", year)

    plan = await TourService(db).get_monthly_plan(
        year_number, strict_year=settings.monthly_plan_strict_year
    )
    metrics_collector.record_query("monthly-plan")

    envelope = PlanEnvelope(total=len(plan), data={"plan": plan})
    return JSONResponse(status_code=200, content=envelope.model_dump(by_alias=True))


@router.get("", response_model=TourListEnvelope)
async def get_all_tours(
    query: dict = Depends(list_query),
    db: AsyncSession = Depends(get_db),
) -> JSONResponse:
    """
    List tours.

    Any tour field can be used as a filter (``?difficulty=easy``,
    ``?price[lt]=1000``); ``sort``, ``fields``, ``page`` and ``limit``
    shape the result.
    """
    return await _list_response(db, query, "list")


@router.post("", response_model=TourEnvelope, status_code=status.HTTP_201_CREATED)
async def create_tour(request: TourCreate, db: AsyncSession = Depends(get_db)) -> JSONResponse:
    """Create a new tour."""
    tour = await TourService(db).create_tour(request)
    return _tour_response(tour, status_code=status.HTTP_201_CREATED)


@router.get("/{tour_id}", response_model=TourEnvelope)
async def get_tour(tour_id: str, db: AsyncSession = Depends(get_db)) -> JSONResponse:
    """Fetch one tour by ID."""
    tour = await TourService(db).get_tour_or_raise(tour_id)
    metrics_collector.record_query("get")
    return _tour_response(tour)


@router.patch("/{tour_id}", response_model=TourEnvelope)
async def update_tour(
    tour_id: str,
    request: TourUpdate,
    db: AsyncSession = Depends(get_db),
) -> JSONResponse:
    """Partially update a tour; the result is validated like a new tour."""
    tour = await TourService(db).update_tour(tour_id, request)
    return _tour_response(tour)


@router.delete("/{tour_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tour(tour_id: str, db: AsyncSession = Depends(get_db)) -> Response:
    """Delete a tour."""
    await TourService(db).delete_tour(tour_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
