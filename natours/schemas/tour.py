"""Tour-related Pydantic schemas and the wire representation of a tour."""

import enum
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from ..models.tour import Difficulty, Tour, TourStartDate

__all__ = [
    "ALL_FIELDS",
    "DEFAULT_LIST_FIELDS",
    "TOUR_FIELDS",
    "FieldKind",
    "FieldSpec",
    "TourCreate",
    "TourUpdate",
    "as_utc",
    "serialize_tour",
]


class FieldKind(str, enum.Enum):
    """How a wire field is stored, compared and rendered."""

    UUID = "uuid"
    STRING = "string"
    NUMBER = "number"
    DATETIME = "datetime"
    STRING_LIST = "string_list"
    DATETIME_LIST = "datetime_list"


@dataclass(frozen=True)
class FieldSpec:
    """A camelCase API field and the model attribute behind it."""

    attribute: str
    kind: FieldKind
    listed_by_default: bool = True

    @property
    def is_list(self) -> bool:
        return self.kind in (FieldKind.STRING_LIST, FieldKind.DATETIME_LIST)


# Wire name -> model attribute, in response order
TOUR_FIELDS: dict[str, FieldSpec] = {
    "id": FieldSpec("id", FieldKind.UUID),
    "name": FieldSpec("name", FieldKind.STRING),
    "duration": FieldSpec("duration", FieldKind.NUMBER),
    "maxGroupSize": FieldSpec("max_group_size", FieldKind.NUMBER),
    "difficulty": FieldSpec("difficulty", FieldKind.STRING),
    "ratingsAverage": FieldSpec("ratings_average", FieldKind.NUMBER),
    "ratingsQuantity": FieldSpec("ratings_quantity", FieldKind.NUMBER),
    "price": FieldSpec("price", FieldKind.NUMBER),
    "priceDiscount": FieldSpec("price_discount", FieldKind.NUMBER),
    "summary": FieldSpec("summary", FieldKind.STRING),
    "description": FieldSpec("description", FieldKind.STRING),
    "imageCover": FieldSpec("image_cover", FieldKind.STRING),
    "images": FieldSpec("images", FieldKind.STRING_LIST),
    "startDates": FieldSpec("start_dates", FieldKind.DATETIME_LIST),
    "createdAt": FieldSpec("created_at", FieldKind.DATETIME, listed_by_default=False),
}

# Every field; single-tour responses use this
ALL_FIELDS: tuple[str, ...] = tuple(TOUR_FIELDS)

# List responses hide createdAt unless it is asked for
DEFAULT_LIST_FIELDS: tuple[str, ...] = tuple(
    name for name, spec in TOUR_FIELDS.items() if spec.listed_by_default
)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class TourCreate(BaseModel):
    """Request schema for creating a tour; also validates merged updates."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    name: str = Field(..., min_length=10, max_length=40, description="Unique tour name")
    duration: float = Field(..., description="Duration in days")
    max_group_size: float = Field(..., description="Maximum group size")
    difficulty: Difficulty = Field(..., description="Difficulty is either: easy, medium, difficult")
    ratings_average: float = Field(4.5, ge=1, le=5, description="Average rating")
    ratings_quantity: float = Field(0, description="Number of ratings")
    price: float = Field(..., description="Tour price")
    price_discount: Optional[float] = Field(None, description="Discount, lower than price")
    summary: str = Field(..., min_length=1, description="Short summary")
    description: Optional[str] = Field(None, description="Long description")
    image_cover: str = Field(..., min_length=1, description="Cover image file name")
    images: list[str] = Field(default_factory=list, description="Image file names")
    start_dates: list[datetime] = Field(default_factory=list, description="Scheduled departures")

    @field_validator("start_dates")
    @classmethod
    def normalize_start_dates(cls, v: list[datetime]) -> list[datetime]:
        return [as_utc(value) for value in v]

    @model_validator(mode="after")
    def check_price_discount(self) -> "TourCreate":
        if self.price_discount is not None and self.price_discount >= self.price:
            raise ValueError(
                f"Discount price ({self.price_discount}) should be below regular price"
            )
        return self


class TourUpdate(BaseModel):
    """
    Request schema for a partial update.

    Only types are checked here; the merged record is validated with
    :class:`TourCreate` by the service.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    name: Optional[str] = None
    duration: Optional[float] = None
    max_group_size: Optional[float] = None
    difficulty: Optional[str] = None
    ratings_average: Optional[float] = None
    ratings_quantity: Optional[float] = None
    price: Optional[float] = None
    price_discount: Optional[float] = None
    summary: Optional[str] = None
    description: Optional[str] = None
    image_cover: Optional[str] = None
    images: Optional[list[str]] = None
    start_dates: Optional[list[datetime]] = None


def _json_value(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, TourStartDate):
        value = value.starts_at
    if isinstance(value, datetime):
        return as_utc(value).isoformat().replace("+00:00", "Z")
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, (list, tuple)):
        return [_json_value(item) for item in value]
    return value


def serialize_tour(tour: Tour, fields: Iterable[str] = ALL_FIELDS) -> dict[str, Any]:
    """
    Render a tour as its camelCase wire form.

    Only the requested fields are read from the instance, so a tour loaded
    with a projection never triggers a lazy load. ``durationWeeks`` is added
    whenever ``duration`` is part of the output.
    """
    data: dict[str, Any] = {}
    for name in fields:
        data[name] = _json_value(getattr(tour, TOUR_FIELDS[name].attribute))
    if "duration" in data:
        data["durationWeeks"] = tour.duration_weeks
    return data
