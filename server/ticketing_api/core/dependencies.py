"""FastAPI dependencies for database, authentication, and shared services."""

from datetime import datetime
from typing import TYPE_CHECKING, Optional
from uuid import UUID

import jwt
from fastapi import Depends, Header, Request
from jwt import PyJWTError

from .config import settings
from .database import get_db
from .exceptions import AuthenticationError, AuthorizationError

if TYPE_CHECKING:
    from ..realtime.hold_table import HoldTable
    from ..realtime.notifier import RoomNotifier
    from ..services.payment_gateway import PaymentGateway

ADMIN_ROLE = "ADMIN"


def decode_access_token(token: str) -> dict:
    """
    Validate a bearer token and return the user claims.

    Raises:
        AuthenticationError: If the token is invalid or expired
    """
    try:
        payload = jwt.decode(token, settings.bearer_token_secret, algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError(detail="Token has expired")
    except PyJWTError as e:
        raise AuthenticationError(detail=f"Token validation failed: {e}")

    user_id = payload.get("sub")
    if user_id is None:
        raise AuthenticationError(detail="Invalid token payload")

    return {
        "user_id": str(user_id),
        "email": payload.get("email"),
        "roles": payload.get("roles", []),
    }


def create_access_token(user_id: str, roles: Optional[list[str]] = None, email: Optional[str] = None,
                        expires_at: Optional[datetime] = None) -> str:
    """Issue a token the API accepts. Used by the bootstrap script and tests."""
    claims: dict = {"sub": str(user_id), "roles": roles or []}
    if email:
        claims["email"] = email
    if expires_at:
        claims["exp"] = int(expires_at.timestamp())
    return jwt.encode(claims, settings.bearer_token_secret, algorithm="HS256")


async def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization")
) -> dict:
    """
    Authentication dependency that validates Bearer tokens.

    Returns:
        dict: ``user_id``, ``email`` and ``roles`` from the validated token

    Raises:
        AuthenticationError: If the header is missing or the token is invalid
    """
    if not authorization:
        raise AuthenticationError(detail="Authorization header missing")

    try:
        scheme, token = authorization.split()
    except ValueError:
        raise AuthenticationError(detail="Invalid authorization header format")
    if scheme.lower() != "bearer":
        raise AuthenticationError(detail="Invalid authentication scheme")

    return decode_access_token(token)


def is_admin(user: dict) -> bool:
    return ADMIN_ROLE in user.get("roles", [])


def user_uuid(user: dict) -> UUID:
    """Account id of the authenticated user."""
    try:
        return UUID(user["user_id"])
    except (KeyError, ValueError):
        raise AuthenticationError(detail="Token subject is not a valid user id")


async def require_admin(user: dict = Depends(get_current_user)) -> dict:
    """Authorization dependency for administrative endpoints."""
    if not is_admin(user):
        raise AuthorizationError(
            detail="Administrator role required",
            required_permissions=[ADMIN_ROLE],
        )
    return user


def get_notifier(request: Request) -> "RoomNotifier":
    return request.app.state.notifier


def get_hold_table(request: Request) -> "HoldTable":
    return request.app.state.hold_table


def get_payment_gateway(request: Request) -> "PaymentGateway":
    return request.app.state.payment_gateway


RequiredAuth = Depends(get_current_user)
AdminAuth = Depends(require_admin)
DatabaseSession = Depends(get_db)
HoldTableDependency = Depends(get_hold_table)
NotifierDependency = Depends(get_notifier)
PaymentGatewayDependency = Depends(get_payment_gateway)
