"""Tour model definition."""

import enum
from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Difficulty(str, enum.Enum):
    """Difficulty levels a tour can be rated at."""

    EASY = "easy"
    MEDIUM = "medium"
    DIFFICULT = "difficult"


class Tour(Base):
    """Tour entity representing one catalog offering."""

    __tablename__ = "tours"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Tour information
    name: Mapped[str] = mapped_column(String(40), nullable=False, unique=True)
    duration: Mapped[float] = mapped_column(Float, nullable=False)
    max_group_size: Mapped[float] = mapped_column(Float, nullable=False)
    difficulty: Mapped[Difficulty] = mapped_column(
        Enum(Difficulty, values_callable=lambda e: [m.value for m in e], native_enum=False, length=16),
        nullable=False,
    )
    ratings_average: Mapped[float] = mapped_column(Float, nullable=False, default=4.5)
    ratings_quantity: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    price_discount: Mapped[float | None] = mapped_column(Float, nullable=True)
    summary: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_cover: Mapped[str] = mapped_column(String(255), nullable=False)
    images: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, index=True
    )

    # Revision counter, bumped on each update; never exposed
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Constraints
    __table_args__ = (
        CheckConstraint("ratings_average >= 1 AND ratings_average <= 5", name="ck_tour_ratings_average_range"),
        CheckConstraint(
            "price_discount IS NULL OR price_discount < price",
            name="ck_tour_price_discount_below_price",
        ),
    )

    # Relationships
    start_dates: Mapped[list["TourStartDate"]] = relationship(
        "TourStartDate",
        back_populates="tour",
        cascade="all, delete-orphan",
        order_by="TourStartDate.position",
        lazy="selectin",
    )

    @property
    def duration_weeks(self) -> float:
        return self.duration / 7

    def __repr__(self) -> str:
        return f"<Tour(id={self.id}, name='{self.name}', difficulty='{self.difficulty}')>"


class TourStartDate(Base):
    """One scheduled departure of a tour; a tour's start dates keep their submitted order."""

    __tablename__ = "tour_start_dates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tour_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tours.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    tour: Mapped["Tour"] = relationship("Tour", back_populates="start_dates")

    def __repr__(self) -> str:
        return f"<TourStartDate(tour_id={self.tour_id}, starts_at={self.starts_at})>"
