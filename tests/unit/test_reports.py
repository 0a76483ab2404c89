"""Unit tests for the stats and monthly plan reports."""

from datetime import datetime, timezone

import pytest

from natours.services.reports import NAME_SEPARATOR, monthly_plan_bounds, split_tour_names
from natours.services.tour_service import TourService


def test_default_plan_bounds_only_cap_the_year():
    lower, upper, inclusive = monthly_plan_bounds(2021)

    assert lower is None
    assert upper == datetime(2021, 12, 31, tzinfo=timezone.utc)
    assert inclusive


def test_strict_plan_bounds_cover_the_calendar_year():
    lower, upper, inclusive = monthly_plan_bounds(2021, strict_year=True)

    assert lower == datetime(2021, 1, 1, tzinfo=timezone.utc)
    assert upper == datetime(2022, 1, 1, tzinfo=timezone.utc)
    assert not inclusive


def test_split_tour_names():
    assert split_tour_names(NAME_SEPARATOR.join(["b", "a", "c"])) == ["a", "b", "c"]
    assert split_tour_names(None) == []


@pytest.mark.asyncio
async def test_tour_stats(test_session, catalog):
    stats = await TourService(test_session).get_tour_stats()

    assert [stat.difficulty for stat in stats] == ["MEDIUM", "EASY", "DIFFICULT"]

    easy = stats[1]
    assert easy.num_tours == 2
    assert easy.num_ratings == 91
    assert easy.avg_rating == pytest.approx(4.65)
    assert easy.avg_price == pytest.approx(797)
    assert easy.min_price == 397
    assert easy.max_price == 1197

    # The 3.9-rated medium tour is left out
    medium = stats[0]
    assert medium.num_tours == 1
    assert medium.avg_price == pytest.approx(497)


@pytest.mark.asyncio
async def test_tour_stats_empty_catalog(test_session):
    assert await TourService(test_session).get_tour_stats() == []


@pytest.mark.asyncio
async def test_monthly_plan(test_session, catalog):
    plan = await TourService(test_session).get_monthly_plan(2021)

    assert [(entry.month, entry.num_tour_starts) for entry in plan] == [(7, 3), (4, 1), (8, 1)]
    assert plan[0].tours == ["The City Wanderer", "The Forest Hiker", "The Sea Explorer"]


@pytest.mark.asyncio
async def test_monthly_plan_counts_earlier_years(test_session, catalog):
    plan = await TourService(test_session).get_monthly_plan(2022)

    assert [(entry.month, entry.num_tour_starts) for entry in plan] == [
        (7, 3),
        (1, 1),
        (4, 1),
        (8, 1),
    ]


@pytest.mark.asyncio
async def test_monthly_plan_strict_year(test_session, catalog):
    plan = await TourService(test_session).get_monthly_plan(2022, strict_year=True)

    assert len(plan) == 1
    assert plan[0].month == 1
    assert plan[0].tours == ["The Snow Adventurer"]


@pytest.mark.asyncio
async def test_monthly_plan_limit(test_session, catalog):
    plan = await TourService(test_session).get_monthly_plan(2022, limit=2)

    assert [entry.month for entry in plan] == [7, 1]
