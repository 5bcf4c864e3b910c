"""
Seed a demo user and repository into an empty database.

Runs at startup when SEED_DEMO_DATA is enabled, or by hand:

Usage:
    python -m app.tasks.seed_demo
"""

import asyncio
import logging
import uuid as uuid_pkg

from sqlalchemy.orm import sessionmaker

from app.core.database import async_session_maker
from app.domain.repository_operations import repository_ops
from app.domain.user_operations import user_ops
from app.services.history.service import history_service

logger = logging.getLogger(__name__)

DEMO_USER_ID = uuid_pkg.uuid5(uuid_pkg.NAMESPACE_DNS, "alex.demo.codehub")
DEMO_USERNAME = "alex"
DEMO_REPOSITORY = "hello-world"
DEMO_DESCRIPTION = "My first CodeHub repo"
DEMO_STARS = 3
DEMO_FILES = {"README.md": "# Hello CodeHub\n\nThis is a sample repository.\n"}


async def seed_demo_data(session_maker: sessionmaker = async_session_maker) -> bool:
    """
    Create the demo user and repository if the database has no users.

    Returns True when data was created.
    """
    async with session_maker() as db:
        if await user_ops.count(db) > 0:
            logger.debug("Users already exist, skipping demo seed")
            return False

        user = await user_ops.create(
            db,
            obj_in={"id": DEMO_USER_ID, "username": DEMO_USERNAME, "display_name": "Alex"},
        )
        repo = await history_service.create_repository(
            db,
            owner_id=user.id,
            name=DEMO_REPOSITORY,
            description=DEMO_DESCRIPTION,
            files=DEMO_FILES,
        )
        await repository_ops.update(db, db_obj=repo, obj_in={"stars_count": DEMO_STARS})
        await db.commit()

    logger.info(f"Seeded demo user '{DEMO_USERNAME}' with repository '{DEMO_REPOSITORY}'")
    return True


def main() -> None:
    """Run the seed."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    asyncio.run(seed_demo_data())


if __name__ == "__main__":
    main()
