"""FastAPI dependencies"""

from typing import Annotated
import uuid

from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from invoicechain.db.session import get_db
from invoicechain.db.models.user import User, UserRole
from invoicechain.core.security import (
    Actor,
    decode_access_token,
    require_admin,
    require_buyer,
    require_financier,
    require_supplier,
)
from invoicechain.core.exceptions import AuthenticationError


def get_current_user_id(
    authorization: Annotated[str | None, Header()] = None,
) -> str:
    """Get current user ID from JWT token."""
    if not authorization:
        raise AuthenticationError("Authorization header required")

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AuthenticationError("Invalid authorization header format")

    payload = decode_access_token(parts[1])
    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token payload")
    return user_id


async def get_current_actor(
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Actor:
    """Resolve the token subject to an active user and its role."""
    try:
        uid = uuid.UUID(user_id)
    except ValueError:
        raise AuthenticationError("Invalid token subject")

    result = await db.execute(select(User).where(User.id == uid))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        raise AuthenticationError("User not found or inactive")

    return Actor(id=user.id, role=UserRole(user.role))


def _guard(check):
    async def dependency(actor: Annotated[Actor, Depends(get_current_actor)]) -> Actor:
        return check(actor)

    return dependency


# Type aliases for dependencies
DBSession = Annotated[AsyncSession, Depends(get_db)]
CurrentActor = Annotated[Actor, Depends(get_current_actor)]
AdminActor = Annotated[Actor, Depends(_guard(require_admin))]
SupplierActor = Annotated[Actor, Depends(_guard(require_supplier))]
BuyerActor = Annotated[Actor, Depends(_guard(require_buyer))]
FinancierActor = Annotated[Actor, Depends(_guard(require_financier))]
