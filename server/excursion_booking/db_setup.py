"""Database setup: run migrations and optionally load a demo catalogue."""

import argparse
import asyncio
import logging
from datetime import time, timedelta
from pathlib import Path
from uuid import uuid4

from alembic import command
from alembic.config import Config
from sqlalchemy import func, select

from .core.database import async_session_factory, close_db
from .models import AvailabilitySlot, Excursion, ExcursionCategory, Guide, Profile, UserRole
from .services.availability_service import business_today

logger = logging.getLogger(__name__)

DB_DIR = Path(__file__).resolve().parent.parent / "db"


def run_migrations(revision: str = "head") -> None:
    """Upgrade the configured database to ``revision``."""
    alembic_cfg = Config(str(DB_DIR / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(DB_DIR / "alembic"))

    logger.info("Running database migrations", extra={"revision": revision})
    command.upgrade(alembic_cfg, revision)
    logger.info("Database migrations completed")


async def create_sample_data() -> None:
    """Create a demo guide with one excursion and weekly slots, unless a catalogue exists."""
    async with async_session_factory() as db:
        existing = await db.execute(select(func.count(Excursion.id)))
        if existing.scalar_one() > 0:
            logger.info("Sample data already exists, skipping")
            return

        profile = Profile(
            id=uuid4(),
            email="guide.demo@myowntour.com",
            first_name="Démo",
            last_name="Guide",
            role=UserRole.GUIDE,
        )
        db.add(profile)
        guide = Guide(user_id=profile.id, company_name="Madinina Découverte", city="Fort-de-France", is_verified=True)
        db.add(guide)
        await db.flush()

        excursion = Excursion(
            guide_id=guide.id,
            title="Randonnée à la Montagne Pelée",
            description="Ascension guidée du volcan par le sentier de l'Aileron.",
            category=ExcursionCategory.HIKING,
            duration_hours=5.0,
            max_participants=12,
            price_per_person=6500,
            currency="EUR",
            meeting_point="Parking de l'Aileron, Morne-Rouge",
            difficulty_level=4,
        )
        db.add(excursion)
        await db.flush()

        first_day = business_today() + timedelta(days=7)
        for week in range(5):
            db.add(AvailabilitySlot(
                excursion_id=excursion.id,
                date=first_day + timedelta(weeks=week),
                start_time=time(7, 30),
                max_participants=12,
                is_available=True,
                is_closed=False,
                available_spots=12,
            ))

        await db.commit()
        logger.info("Sample data created", extra={"excursion_id": str(excursion.id)})


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Set up the excursion booking database.")
    parser.add_argument("--revision", default="head", help="Alembic revision to upgrade to")
    parser.add_argument("--sample-data", action="store_true", help="Load a demo guide, excursion and slots")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)

    run_migrations(args.revision)

    if args.sample_data:
        async def seed() -> None:
            try:
                await create_sample_data()
            finally:
                await close_db()

        asyncio.run(seed())


if __name__ == "__main__":
    main()
