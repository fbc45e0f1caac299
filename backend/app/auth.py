"""Request authentication.

Bearer tokens are Supabase-issued JWTs signed with the project's JWT secret.
`AuthorizedUser` resolves the caller; `AdminUser` additionally requires an
admin profile.
"""

from typing import Annotated, Optional

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from app.libs.config import get_settings
from app.libs.database import get_db_connection
from app.libs.log import log
from app.libs.models import UserRole

bearer_scheme = HTTPBearer(auto_error=False)


class User(BaseModel):
    """Authenticated caller"""
    sub: str
    email: Optional[str] = None


def decode_token(token: str) -> User:
    """Verify a JWT and return its subject. Raises jwt.InvalidTokenError."""
    settings = get_settings()
    payload = jwt.decode(
        token,
        settings.JWT_SECRET,
        algorithms=[settings.JWT_ALGORITHM],
        audience=settings.JWT_AUDIENCE,
    )
    if not payload.get("sub"):
        raise jwt.InvalidTokenError("Token has no subject")
    return User(sub=payload["sub"], email=payload.get("email"))


async def get_authorized_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> User:
    if credentials is None:
        raise HTTPException(status_code=401, detail="No authorization header")
    try:
        return decode_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        log("AUTH", f"Rejected token: {e}")
        raise HTTPException(status_code=401, detail="Unauthorized")


AuthorizedUser = Annotated[User, Depends(get_authorized_user)]


async def get_admin_user(user: AuthorizedUser) -> User:
    conn = await get_db_connection()
    try:
        role = await conn.fetchval("SELECT role FROM profiles WHERE id = $1", user.sub)
    finally:
        await conn.close()

    if role != UserRole.ADMIN.value:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


AdminUser = Annotated[User, Depends(get_admin_user)]
