"""Unit tests for tour service."""

from datetime import datetime, timezone
from uuid import uuid4

import pytest
from pydantic import ValidationError as PydanticValidationError

from natours.core.exceptions import CastError, DuplicateFieldError, NotFoundError, ValidationError
from natours.models.tour import Difficulty
from natours.schemas.tour import TourCreate, TourUpdate, serialize_tour
from natours.services.tour_service import TourService, parse_tour_id


@pytest.mark.asyncio
async def test_create_tour(test_session, sample_tour_data):
    """Test creating a tour."""
    service = TourService(test_session)

    tour = await service.create_tour(TourCreate.model_validate(sample_tour_data))

    assert tour.id is not None
    assert tour.name == sample_tour_data["name"]
    assert tour.difficulty is Difficulty.EASY
    assert [start.starts_at for start in tour.start_dates] == [
        datetime(2021, 4, 25, 9, tzinfo=timezone.utc),
        datetime(2021, 7, 20, 9, tzinfo=timezone.utc),
    ]
    assert tour.version == 0


@pytest.mark.asyncio
async def test_create_tour_defaults(test_session, sample_tour_data):
    """Omitted ratings fall back to their defaults."""
    del sample_tour_data["ratingsAverage"]
    del sample_tour_data["ratingsQuantity"]
    service = TourService(test_session)

    tour = await service.create_tour(TourCreate.model_validate(sample_tour_data))

    assert tour.ratings_average == 4.5
    assert tour.ratings_quantity == 0
    assert tour.created_at is not None


@pytest.mark.asyncio
async def test_created_tour_round_trips(test_session, sample_tour_data):
    """A fetched tour renders the values it was created with."""
    service = TourService(test_session)
    created = await service.create_tour(TourCreate.model_validate(sample_tour_data))

    fetched = await service.get_tour_or_raise(str(created.id))
    data = serialize_tour(fetched)

    for key, value in sample_tour_data.items():
        assert data[key] == value
    assert data["durationWeeks"] == pytest.approx(5 / 7)
    assert data["createdAt"].endswith("Z")


@pytest.mark.asyncio
async def test_create_tour_duplicate_name(test_session, sample_tour_data):
    """Test creating a tour with a taken name raises error."""
    service = TourService(test_session)
    await service.create_tour(TourCreate.model_validate(sample_tour_data))

    with pytest.raises(DuplicateFieldError) as exc_info:
        await service.create_tour(TourCreate.model_validate(sample_tour_data))

    assert exc_info.value.status_code == 400
    assert exc_info.value.message == (
        "Duplicate field value: The Forest Hiker. Please use another value!"
    )


@pytest.mark.parametrize(
    "overrides",
    [
        {"name": "Too short"},
        {"name": "A" * 41},
        {"difficulty": "extreme"},
        {"ratingsAverage": 5.5},
        {"ratingsAverage": 0.5},
        {"priceDiscount": 397},
        {"summary": "   "},
        {"price": None},
    ],
)
def test_create_request_validation(sample_tour_data, overrides):
    """Schema constraints reject invalid tours."""
    sample_tour_data.update(overrides)

    with pytest.raises(PydanticValidationError):
        TourCreate.model_validate(sample_tour_data)


def test_discount_message(sample_tour_data):
    sample_tour_data["priceDiscount"] = 500

    with pytest.raises(PydanticValidationError) as exc_info:
        TourCreate.model_validate(sample_tour_data)

    assert "Discount price (500.0) should be below regular price" in str(exc_info.value)


@pytest.mark.asyncio
async def test_get_tour_not_found(test_session):
    service = TourService(test_session)

    with pytest.raises(NotFoundError):
        await service.get_tour_or_raise(str(uuid4()))


def test_parse_tour_id_rejects_malformed_ids():
    with pytest.raises(CastError) as exc_info:
        parse_tour_id("not-a-uuid")

    assert exc_info.value.message == "Invalid id: not-a-uuid."


@pytest.mark.asyncio
async def test_update_tour(test_session, sample_tour_data):
    """A patch changes only the fields it names."""
    service = TourService(test_session)
    tour = await service.create_tour(TourCreate.model_validate(sample_tour_data))

    updated = await service.update_tour(
        str(tour.id), TourUpdate.model_validate({"price": 450, "difficulty": "medium"})
    )

    assert updated.price == 450
    assert updated.difficulty is Difficulty.MEDIUM
    assert updated.name == sample_tour_data["name"]
    assert len(updated.start_dates) == 2
    assert updated.version == 1


@pytest.mark.asyncio
async def test_update_tour_replaces_start_dates(test_session, sample_tour_data):
    service = TourService(test_session)
    tour = await service.create_tour(TourCreate.model_validate(sample_tour_data))

    updated = await service.update_tour(
        str(tour.id), TourUpdate.model_validate({"startDates": ["2023-05-01T08:00:00Z"]})
    )

    assert [start.starts_at for start in updated.start_dates] == [
        datetime(2023, 5, 1, 8, tzinfo=timezone.utc)
    ]


@pytest.mark.asyncio
async def test_update_tour_revalidates_merged_values(test_session, sample_tour_data):
    """Lowering the price below the stored discount is rejected."""
    sample_tour_data["priceDiscount"] = 300
    service = TourService(test_session)
    tour = await service.create_tour(TourCreate.model_validate(sample_tour_data))

    with pytest.raises(ValidationError) as exc_info:
        await service.update_tour(str(tour.id), TourUpdate.model_validate({"price": 250}))

    assert exc_info.value.status_code == 400
    assert "Discount price" in exc_info.value.message


@pytest.mark.asyncio
async def test_update_tour_rejects_invalid_difficulty(test_session, sample_tour_data):
    service = TourService(test_session)
    tour = await service.create_tour(TourCreate.model_validate(sample_tour_data))

    with pytest.raises(ValidationError):
        await service.update_tour(str(tour.id), TourUpdate.model_validate({"difficulty": "extreme"}))


@pytest.mark.asyncio
async def test_update_tour_to_taken_name(test_session, catalog):
    service = TourService(test_session)

    with pytest.raises(DuplicateFieldError):
        await service.update_tour(
            str(catalog[0].id), TourUpdate.model_validate({"name": catalog[1].name})
        )


@pytest.mark.asyncio
async def test_delete_tour(test_session, sample_tour_data):
    """Test deleting a tour."""
    service = TourService(test_session)
    tour = await service.create_tour(TourCreate.model_validate(sample_tour_data))

    await service.delete_tour(str(tour.id))

    assert await service.get_tour_by_id(tour.id) is None
    with pytest.raises(NotFoundError):
        await service.delete_tour(str(tour.id))


@pytest.mark.asyncio
async def test_list_tours_page_beyond_results(test_session, catalog):
    service = TourService(test_session)

    with pytest.raises(NotFoundError) as exc_info:
        await service.list_tours({"page": "4", "limit": "2"})

    assert exc_info.value.message == "This page does not exist"


@pytest.mark.asyncio
async def test_list_tours_last_partial_page(test_session, catalog):
    service = TourService(test_session)

    tours, projection = await service.list_tours({"page": "3", "limit": "2", "sort": "price"})

    assert [tour.name for tour in tours] == ["The Star Gazer"]
    assert "createdAt" not in projection
