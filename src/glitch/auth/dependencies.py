"""FastAPI authentication dependencies."""

from __future__ import annotations

import jwt
from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from glitch.auth.provider import AuthProvider
from glitch.database import get_session
from glitch.db.models import User
from glitch.users.service import get_user_by_id

_bearer = HTTPBearer()


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Security(_bearer),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> User:
    """
    Verify the bearer token with the app's AuthProvider and return the User.

    Raises 401 if the token is invalid or the user no longer exists.
    """
    provider: AuthProvider = request.app.state.auth_provider
    try:
        user_id = provider.authenticate(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e

    user = await get_user_by_id(db, user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return user
