import uuid
from collections.abc import AsyncGenerator

from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from expoflow.common.exceptions import NotFoundError, PermissionDeniedError
from expoflow.common.security import decode_token
from expoflow.config import settings
from expoflow.core.quote.schemas import PricingConfig, QuoteMargins
from expoflow.core.task_directory import TaskDirectory
from expoflow.db.models.user import User
from expoflow.db.session import async_session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_current_user(
    authorization: str = Header(..., description="Bearer <token>"),
    db: AsyncSession = Depends(get_db),
) -> User:
    if not authorization.startswith("Bearer "):
        raise PermissionDeniedError("Invalid authorization header format")

    token = authorization[len("Bearer "):]
    try:
        payload = decode_token(token)
    except ValueError:
        raise PermissionDeniedError("Invalid or expired token")

    if payload.get("type") != "access":
        raise PermissionDeniedError("Invalid token type")

    user_id = payload.get("sub")
    if not user_id:
        raise PermissionDeniedError("Invalid token payload")

    try:
        user_uuid = uuid.UUID(user_id)
    except ValueError:
        raise PermissionDeniedError("Invalid token payload")

    result = await db.execute(
        select(User).where(User.id == user_uuid, User.is_deleted.is_(False))
    )
    user = result.scalar_one_or_none()

    if not user:
        raise NotFoundError("User")
    if not user.is_active:
        raise PermissionDeniedError("User account is inactive")

    return user


async def get_task_directory(db: AsyncSession = Depends(get_db)) -> TaskDirectory:
    return TaskDirectory(db)


def get_pricing_config() -> PricingConfig:
    return PricingConfig(
        margins=QuoteMargins(
            materials=settings.DEFAULT_MARGIN_MATERIALS,
            labour=settings.DEFAULT_MARGIN_LABOUR,
            expenses=settings.DEFAULT_MARGIN_EXPENSES,
            logistics=settings.DEFAULT_MARGIN_LOGISTICS,
        ),
        vat_enabled=settings.DEFAULT_VAT_ENABLED,
        vat_percentage=settings.DEFAULT_VAT_PERCENTAGE,
    )
