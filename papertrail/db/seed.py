"""Database seed helpers."""

from sqlmodel import select

from papertrail.config.logger import app_logger
from papertrail.config.settings import settings
from papertrail.db.db import db_session
from papertrail.models.user import User
from papertrail.utils.passwords import hash_password


async def ensure_seed_admin_user() -> None:
    """Create the configured seed user if it doesn't exist."""
    try:
        async with db_session() as session:
            result = await session.execute(
                select(User).where(User.email == settings.SEED_ADMIN_EMAIL)
            )
            if result.scalar_one_or_none():
                app_logger.info("Seed admin user already exists: {}", settings.SEED_ADMIN_EMAIL)
                return

            session.add(
                User(
                    email=settings.SEED_ADMIN_EMAIL,
                    username="admin",
                    full_name="Seed Admin",
                    hashed_password=hash_password(settings.SEED_ADMIN_PASSWORD),
                )
            )
            await session.commit()
            app_logger.info("Seeded default admin user: {}", settings.SEED_ADMIN_EMAIL)

    except Exception as e:
        app_logger.warning(f"Failed to seed admin user (this is OK on first run): {e}")
