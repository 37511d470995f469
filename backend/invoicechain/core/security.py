"""Security utilities - JWT tokens and role guards

The role gate is a set of plain predicates over an explicit ``Actor``.
Services receive the actor as an argument; nothing reads ambient session
state.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any
import uuid

from jose import JWTError, jwt

from invoicechain.config import settings
from invoicechain.core.exceptions import AuthenticationError, AuthorizationError
from invoicechain.db.models.user import UserRole


@dataclass(frozen=True)
class Actor:
    """Authenticated caller identity and role."""

    id: uuid.UUID
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.JWT_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and validate a JWT access token."""
    try:
        return jwt.decode(
            token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM]
        )
    except JWTError as e:
        raise AuthenticationError(f"Invalid token: {str(e)}")


def _require_role(actor: Actor | None, role: UserRole, label: str) -> Actor:
    if actor is None:
        raise AuthenticationError()
    if actor.role != role and not actor.is_admin:
        raise AuthorizationError(f"{label} access required")
    return actor


def require_admin(actor: Actor | None) -> Actor:
    if actor is None:
        raise AuthenticationError()
    if not actor.is_admin:
        raise AuthorizationError("Admin access required")
    return actor


def require_supplier(actor: Actor | None) -> Actor:
    return _require_role(actor, UserRole.SUPPLIER, "Supplier")


def require_buyer(actor: Actor | None) -> Actor:
    return _require_role(actor, UserRole.BUYER, "Buyer")


def require_financier(actor: Actor | None) -> Actor:
    return _require_role(actor, UserRole.FINANCIER, "Financier")
