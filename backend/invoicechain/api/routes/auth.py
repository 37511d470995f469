"""Auth routes: login by email (no registration or passwords for demo)"""

from pydantic import BaseModel
from fastapi import APIRouter
from sqlalchemy import select

from invoicechain.api.dependencies import DBSession, CurrentActor
from invoicechain.core.exceptions import AuthorizationError, NotFoundError
from invoicechain.core.logging import log
from invoicechain.core.security import create_access_token
from invoicechain.db.models.user import User

router = APIRouter()


class LoginRequest(BaseModel):
    email: str


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str
    name: str
    role: str


class UserResponse(BaseModel):
    id: str
    email: str
    name: str
    role: str
    company_name: str | None
    country: str | None

    model_config = {"from_attributes": True}


@router.post("/login", response_model=LoginResponse)
async def login(request: LoginRequest, db: DBSession):
    """Issue a bearer token for an existing user."""
    result = await db.execute(
        select(User).where(User.email == request.email.strip().lower())
    )
    user = result.scalar_one_or_none()

    if not user:
        raise NotFoundError("User")

    if not user.is_active:
        raise AuthorizationError("Account is deactivated.")

    token = create_access_token(data={"sub": str(user.id)})
    log.info("User logged in", user_id=str(user.id), role=user.role)

    return LoginResponse(
        access_token=token,
        user_id=str(user.id),
        name=user.name,
        role=user.role,
    )


@router.get("/me", response_model=UserResponse)
async def get_me(actor: CurrentActor, db: DBSession):
    """Get current user profile."""
    user = await db.get(User, actor.id)
    if not user:
        raise NotFoundError("User")

    return UserResponse(
        id=str(user.id),
        email=user.email,
        name=user.name,
        role=user.role,
        company_name=user.company_name,
        country=user.country,
    )
