"""Plan and generation-credit checks for a Clerk user."""

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from sitegen.core.config import get_settings
from sitegen.db.models.user_settings import UserSettings

logger = structlog.get_logger(__name__)

FREE_PLAN = "free"


async def get_or_create_user_settings(session: AsyncSession, clerk_user_id: str) -> UserSettings:
    """Load the user's settings row, creating it with the default plan on first use.

    Race-safe: a concurrent insert for the same user is absorbed by the
    unique constraint and the existing row is returned.
    """
    result = await session.execute(select(UserSettings).where(UserSettings.clerk_user_id == clerk_user_id))
    user_settings = result.scalar_one_or_none()
    if user_settings is not None:
        return user_settings

    settings = get_settings()
    user_settings = UserSettings(
        clerk_user_id=clerk_user_id,
        plan=settings.default_plan,
        generation_credits=settings.default_generation_credits,
    )
    session.add(user_settings)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        result = await session.execute(select(UserSettings).where(UserSettings.clerk_user_id == clerk_user_id))
        return result.scalar_one()

    logger.info("user_settings_provisioned", clerk_user_id=clerk_user_id, plan=user_settings.plan)
    return user_settings


def can_generate(user_settings: UserSettings) -> bool:
    """Paid plan with at least one credit left."""
    return user_settings.plan != FREE_PLAN and user_settings.generation_credits > 0


async def consume_generation_credit(session: AsyncSession, clerk_user_id: str) -> bool:
    """Atomically take one credit. Returns False if the user had none left.

    A conditional UPDATE, so concurrent generations across instances can never
    drive the balance below zero. Runs inside the caller's transaction.
    """
    result = await session.execute(
        update(UserSettings)
        .where(UserSettings.clerk_user_id == clerk_user_id)
        .where(UserSettings.generation_credits > 0)
        .values(generation_credits=UserSettings.generation_credits - 1)
    )
    return result.rowcount == 1
