"""Tour service for catalog operations."""

import logging
from typing import Any, Mapping, Optional
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import (
    CastError,
    DuplicateFieldError,
    NotFoundError,
    ValidationError,
    describe_validation_errors,
)
from ..core.observability import metrics_collector
from ..models.tour import Tour, TourStartDate
from ..schemas.common import MonthlyPlanEntry, TourStat
from ..schemas.tour import TourCreate, TourUpdate
from .api_features import DEFAULT_LIMIT, APIFeatures
from .reports import (
    DEFAULT_MIN_RATING,
    MAX_PLAN_MONTHS,
    monthly_plan_statement,
    split_tour_names,
    tour_stats_statement,
)

logger = logging.getLogger(__name__)


def parse_tour_id(value: str) -> UUID:
    """
    Parse a tour identifier from a path segment.

    Raises:
        CastError: If the value is not a UUID
    """
    try:
        return UUID(value)
    except (TypeError, ValueError):
        raise CastError("id", value)


def _start_dates(values) -> list[TourStartDate]:
    return [TourStartDate(position=i, starts_at=value) for i, value in enumerate(values)]


class TourService:
    """Service for tour-related operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_tours(
        self,
        query_string: Optional[Mapping[str, Any]],
        default_limit: int = DEFAULT_LIMIT,
    ) -> tuple[list[Tour], tuple[str, ...]]:
        """
        List tours matching a query string.

        Args:
            query_string: Filter, ``sort``, ``fields``, ``page`` and ``limit`` parameters
            default_limit: Page size when ``limit`` is absent or invalid

        Returns:
            The tours of the requested page and the projected field names

        Raises:
            NotFoundError: If an explicitly requested page lies beyond the matches
            BadQueryError: If the query string names an unknown field or operator
            CastError: If a filter value does not fit its field
        """
        features = APIFeatures.build(query_string, default_limit=default_limit)
        tours = await self.fetch(features)
        return tours, features.projection

    async def fetch(self, features: APIFeatures) -> list[Tour]:
        """Execute a composed list query."""
        if features.page_requested:
            total = await self.db.scalar(features.count_statement)
            if features.skip >= total:
                logger.info(
                    "Requested page beyond matching tours",
                    extra={"skip": features.skip, "total": total},
                )
                raise NotFoundError(detail="This page does not exist")

        result = await self.db.execute(features.statement)
        tours = list(result.scalars().all())

        logger.debug(
            "Tour list query completed",
            extra={
                "filters": [repr(condition) for condition in features.filters],
                "results": len(tours),
                "skip": features.skip,
                "limit": features.limit,
            },
        )
        return tours

    async def get_tour_by_id(self, tour_id: UUID) -> Optional[Tour]:
        """
        Get tour by ID.

        Args:
            tour_id: Tour ID to search for

        Returns:
            Tour if found, None otherwise
        """
        stmt = select(Tour).where(Tour.id == tour_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_tour_by_name(self, name: str) -> Optional[Tour]:
        stmt = select(Tour).where(Tour.name == name)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_tour_or_raise(self, tour_id: str) -> Tour:
        """
        Get tour by its path identifier or raise.

        Raises:
            CastError: If the identifier is malformed
            NotFoundError: If no tour has this identifier
        """
        tour = await self.get_tour_by_id(parse_tour_id(tour_id))
        if not tour:
            logger.warning("Tour not found", extra={"tour_id": tour_id})
            raise NotFoundError(resource_type="tour", resource_id=tour_id)
        return tour

    async def _ensure_name_available(self, name: str, exclude_id: Optional[UUID] = None) -> None:
        existing = await self.get_tour_by_name(name)
        if existing and existing.id != exclude_id:
            logger.warning(
                "Tour name already taken",
                extra={"tour_name": name, "existing_tour_id": str(existing.id)},
            )
            raise DuplicateFieldError("name", name)

    async def _commit(self, name: str) -> None:
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.error(
                "Tour write rejected by a database constraint",
                extra={"tour_name": name, "error": str(e.orig)},
            )
            if await self.get_tour_by_name(name):
                raise DuplicateFieldError("name", name)
            raise ValidationError(detail=f"Invalid input data. {e.orig}")

    async def create_tour(self, request: TourCreate) -> Tour:
        """
        Create a new tour.

        Args:
            request: Validated tour data

        Returns:
            Created tour entity

        Raises:
            DuplicateFieldError: If a tour with the same name already exists
        """
        await self._ensure_name_available(request.name)

        tour = Tour(
            **request.model_dump(exclude={"start_dates"}),
            start_dates=_start_dates(request.start_dates),
        )
        self.db.add(tour)
        await self._commit(tour.name)

        metrics_collector.record_tour_created()
        logger.info(
            "Tour created successfully",
            extra={"tour_id": str(tour.id), "tour_name": tour.name},
        )
        return tour

    def _current_values(self, tour: Tour) -> dict[str, Any]:
        values = {
            name: getattr(tour, name)
            for name in TourCreate.model_fields
            if name != "start_dates"
        }
        values["start_dates"] = [start.starts_at for start in tour.start_dates]
        return values

    async def update_tour(self, tour_id: str, request: TourUpdate) -> Tour:
        """
        Apply a partial update and re-validate the whole tour.

        The patch is merged into the stored values and the result must pass
        the same constraints as a new tour, so e.g. lowering ``price`` below
        an existing ``priceDiscount`` is rejected.

        Raises:
            CastError: If the identifier is malformed
            NotFoundError: If no tour has this identifier
            ValidationError: If the merged tour violates a constraint
            DuplicateFieldError: If the new name belongs to another tour
        """
        tour = await self.get_tour_or_raise(tour_id)
        patch = request.model_dump(exclude_unset=True)

        try:
            merged = TourCreate.model_validate({**self._current_values(tour), **patch})
        except PydanticValidationError as e:
            raise ValidationError(describe_validation_errors(e.errors()))

        if "name" in patch and merged.name != tour.name:
            await self._ensure_name_available(merged.name, exclude_id=tour.id)

        for name, value in merged.model_dump(exclude={"start_dates"}).items():
            setattr(tour, name, value)
        if "start_dates" in patch:
            tour.start_dates = _start_dates(merged.start_dates)
        tour.version += 1
        await self._commit(tour.name)

        metrics_collector.record_tour_updated()
        logger.info(
            "Tour updated successfully",
            extra={"tour_id": str(tour.id), "updated_fields": sorted(patch)},
        )
        return tour

    async def delete_tour(self, tour_id: str) -> None:
        """
        Delete a tour and its start dates.

        Raises:
            CastError: If the identifier is malformed
            NotFoundError: If no tour has this identifier
        """
        tour = await self.get_tour_or_raise(tour_id)
        await self.db.delete(tour)
        await self.db.commit()

        metrics_collector.record_tour_deleted()
        logger.info("Tour deleted", extra={"tour_id": tour_id})

    async def get_tour_stats(self, min_rating: float = DEFAULT_MIN_RATING) -> list[TourStat]:
        """Per-difficulty statistics for tours rated at least ``min_rating``."""
        result = await self.db.execute(tour_stats_statement(min_rating))
        return [TourStat.model_validate(dict(row)) for row in result.mappings()]

    async def get_monthly_plan(
        self,
        year: int,
        strict_year: bool = False,
        limit: int = MAX_PLAN_MONTHS,
    ) -> list[MonthlyPlanEntry]:
        """Tour starts per calendar month, busiest month first."""
        result = await self.db.execute(
            monthly_plan_statement(year, limit=limit, strict_year=strict_year)
        )
        return [
            MonthlyPlanEntry(
                month=row["month"],
                num_tour_starts=row["numTourStarts"],
                tours=split_tour_names(row["tours"]),
            )
            for row in result.mappings()
        ]
