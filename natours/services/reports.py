"""Fixed aggregation queries over the tour catalog."""

from datetime import datetime, timezone

from sqlalchemy import Integer, Select, String, cast, extract, func, select

from ..models.tour import Tour, TourStartDate

# Separates tour names inside one aggregated month row
NAME_SEPARATOR = "\x1f"

DEFAULT_MIN_RATING = 4.5
MAX_PLAN_MONTHS = 12


def tour_stats_statement(min_rating: float = DEFAULT_MIN_RATING) -> Select:
    """
    Statistics per difficulty for tours rated at least ``min_rating``.

    One row per upper-cased difficulty with ``numTours``, ``numRatings``,
    ``avgRating``, ``avgPrice``, ``minPrice`` and ``maxPrice``, cheapest
    average price first.
    """
    difficulty = func.upper(Tour.difficulty, type_=String)
    avg_price = func.avg(Tour.price).label("avgPrice")
    return (
        select(
            difficulty.label("difficulty"),
            func.count(Tour.id).label("numTours"),
            func.sum(Tour.ratings_quantity).label("numRatings"),
            func.avg(Tour.ratings_average).label("avgRating"),
            avg_price,
            func.min(Tour.price).label("minPrice"),
            func.max(Tour.price).label("maxPrice"),
        )
        .where(Tour.ratings_average >= min_rating)
        .group_by(difficulty)
        .order_by(avg_price.asc())
    )


def monthly_plan_bounds(year: int, strict_year: bool = False) -> tuple[datetime | None, datetime, bool]:
    """
    Date window for the monthly plan as ``(lower, upper, upper_inclusive)``.

    By default only the upper bound ``<= {year}-12-31T00:00Z`` applies, so
    earlier years are counted too; this is the catalog's historical
    behavior. ``strict_year`` restricts the window to the calendar year.
    """
    if strict_year:
        return (
            datetime(year, 1, 1, tzinfo=timezone.utc),
            datetime(year + 1, 1, 1, tzinfo=timezone.utc),
            False,
        )
    return None, datetime(year, 12, 31, tzinfo=timezone.utc), True


def monthly_plan_statement(
    year: int,
    limit: int = MAX_PLAN_MONTHS,
    strict_year: bool = False,
) -> Select:
    """
    Tour starts grouped by calendar month.

    Each start date of each tour counts once. Rows carry ``month``,
    ``numTourStarts`` and ``tours`` (names joined by :data:`NAME_SEPARATOR`),
    busiest month first, at most ``limit`` rows.
    """
    lower, upper, upper_inclusive = monthly_plan_bounds(year, strict_year)
    starts_at = TourStartDate.starts_at
    conditions = [starts_at <= upper if upper_inclusive else starts_at < upper]
    if lower is not None:
        conditions.insert(0, starts_at >= lower)

    month = cast(extract("month", starts_at), Integer)
    num_starts = func.count(TourStartDate.id).label("numTourStarts")
    return (
        select(
            month.label("month"),
            num_starts,
            func.aggregate_strings(Tour.name, NAME_SEPARATOR).label("tours"),
        )
        .select_from(TourStartDate)
        .join(Tour, Tour.id == TourStartDate.tour_id)
        .where(*conditions)
        .group_by(month)
        .order_by(num_starts.desc(), month.asc())
        .limit(limit)
    )


def split_tour_names(aggregated: str | None) -> list[str]:
    """Split an aggregated ``tours`` value back into sorted names."""
    if not aggregated:
        return []
    return sorted(aggregated.split(NAME_SEPARATOR))
