"""FastAPI dependencies for database, authentication, and services."""

from typing import AsyncGenerator, Optional
from uuid import UUID

import jwt
from fastapi import Depends, Header, Request
from jwt import PyJWTError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.profile import Guide, TourOperator, UserRole
from ..schemas.auth import CurrentUser
from ..services.account_service import AccountService
from ..services.booking_service import BookingService
from ..services.cart_service import CartService
from ..services.change_feed import ChangeFeed
from ..services.email_client import EmailClient
from ..services.notification_service import NotificationService
from ..services.sync_service import AvailabilitySyncService
from .config import settings
from .database import get_async_session
from .exceptions import AuthenticationError, AuthorizationError


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Database dependency that provides async database sessions.

    Yields:
        AsyncSession: Database session
    """
    async for session in get_async_session():
        yield session


def decode_token(token: str) -> CurrentUser:
    """
    Verify a bearer token and read the caller's identity from its claims.

    Raises:
        AuthenticationError: If the token is invalid, expired or has no usable subject
    """
    try:
        payload = jwt.decode(token, settings.bearer_token_secret, algorithms=["HS256"])
    except PyJWTError as e:
        raise AuthenticationError(f"Token validation failed: {e}")

    subject = payload.get("sub")
    try:
        user_id = UUID(str(subject))
    except ValueError:
        raise AuthenticationError("Invalid token payload")

    roles = payload.get("roles") or []
    if isinstance(roles, str):
        roles = [roles]

    return CurrentUser(
        id=user_id,
        email=payload.get("email"),
        first_name=payload.get("first_name"),
        last_name=payload.get("last_name"),
        roles=[str(role) for role in roles],
    )


async def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization")
) -> CurrentUser:
    """
    Authentication dependency that validates Bearer tokens.

    Raises:
        AuthenticationError: If the header is missing or the token is invalid
    """
    if not authorization:
        raise AuthenticationError("Authorization header missing")

    try:
        scheme, token = authorization.split()
    except ValueError:
        raise AuthenticationError("Invalid authorization header format")

    if scheme.lower() != "bearer":
        raise AuthenticationError("Invalid authentication scheme")

    return decode_token(token)


def require_roles(*roles: UserRole):
    """Dependency factory admitting callers holding one of ``roles``; admins always pass."""

    async def checker(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not user.has_role(*roles):
            raise AuthorizationError(
                "You do not have permission to perform this action",
                required_roles=[role.value for role in roles],
            )
        return user

    return checker


def get_change_feed(request: Request) -> ChangeFeed:
    return request.app.state.change_feed


def get_sync_service(request: Request) -> AvailabilitySyncService:
    return request.app.state.sync_service


def get_email_client(request: Request) -> EmailClient:
    return request.app.state.email_client


def get_account_service(
    db: AsyncSession = Depends(get_db),
    email_client: EmailClient = Depends(get_email_client),
) -> AccountService:
    return AccountService(db, email_client)


def get_notification_service(
    db: AsyncSession = Depends(get_db),
    email_client: EmailClient = Depends(get_email_client),
) -> NotificationService:
    return NotificationService(db, email_client)


def get_booking_service(
    db: AsyncSession = Depends(get_db),
    feed: ChangeFeed = Depends(get_change_feed),
    email_client: EmailClient = Depends(get_email_client),
) -> BookingService:
    return BookingService(db, feed=feed, notifier=NotificationService(db, email_client))


def get_cart_service(
    db: AsyncSession = Depends(get_db),
    booking_service: BookingService = Depends(get_booking_service),
) -> CartService:
    return CartService(db, booking_service)


async def get_acting_guide_id(
    user: CurrentUser = Depends(require_roles(UserRole.GUIDE)),
    accounts: AccountService = Depends(get_account_service),
) -> Optional[UUID]:
    """
    Guide account the caller acts as; None for administrators, who act on any guide's behalf.

    Raises:
        AuthorizationError: If the caller has the guide role but no guide account
    """
    if UserRole.ADMIN.value in user.roles:
        return None
    guide: Guide = await accounts.get_guide_for_user_or_raise(user.id)
    return guide.id


async def get_current_tour_operator(
    user: CurrentUser = Depends(require_roles(UserRole.TOUR_OPERATOR)),
    accounts: AccountService = Depends(get_account_service),
) -> TourOperator:
    """
    Raises:
        AuthorizationError: If the caller has no tour operator account
    """
    return await accounts.get_tour_operator_for_user_or_raise(user.id)


RequiredAuth = Depends(get_current_user)
DatabaseSession = Depends(get_db)
