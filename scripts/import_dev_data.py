#!/usr/bin/env python3
"""Load or wipe development tours.

Usage::

    python scripts/import_dev_data.py --import [--file dev-data/tours-simple.json]
    python scripts/import_dev_data.py --delete
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import delete

from natours.core.database import async_session_factory, close_db, init_db
from natours.core.exceptions import AppError
from natours.models import Tour, TourStartDate
from natours.schemas.tour import TourCreate
from natours.services.tour_service import TourService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEFAULT_DATA_FILE = Path(__file__).resolve().parent.parent / "dev-data" / "tours-simple.json"


def load_tours(path: Path) -> list[TourCreate]:
    """Read and validate a JSON array of tours."""
    with path.open(encoding="utf-8") as f:
        records = json.load(f)
    return [TourCreate.model_validate(record) for record in records]


async def import_tours(path: Path) -> int:
    """Create every tour in ``path``; returns the number created."""
    tours = load_tours(path)
    async with async_session_factory() as db:
        service = TourService(db)
        for request in tours:
            await service.create_tour(request)
    logger.info(f"Imported {len(tours)} tours from {path}")
    return len(tours)


async def delete_tours() -> None:
    """Remove every tour and start date."""
    async with async_session_factory() as db:
        await db.execute(delete(TourStartDate))
        result = await db.execute(delete(Tour))
        await db.commit()
        logger.info(f"Deleted {result.rowcount} tours")


async def run(args: argparse.Namespace) -> None:
    await init_db()
    try:
        if args.delete:
            await delete_tours()
        else:
            await import_tours(args.file)
    finally:
        await close_db()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Load or delete development tour data")
    action = parser.add_mutually_exclusive_group(required=True)
    action.add_argument("--import", dest="load", action="store_true", help="import tours from a JSON file")
    action.add_argument("--delete", action="store_true", help="delete all tours")
    parser.add_argument("--file", type=Path, default=DEFAULT_DATA_FILE, help="JSON array of tours")
    args = parser.parse_args(argv)

    try:
        asyncio.run(run(args))
    except (OSError, json.JSONDecodeError, PydanticValidationError, AppError) as e:
        logger.error(f"Dev data command failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
