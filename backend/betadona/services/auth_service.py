import logging
import secrets
from datetime import timedelta

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerifyMismatchError
from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt.exceptions import InvalidTokenError as JWTError

import betadona.database as _db
from betadona.config import settings
from betadona.utils import utcnow

logger = logging.getLogger("betadona.auth")
ph = PasswordHasher()

ALGORITHM = "HS256"

_bearer = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return ph.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    try:
        return ph.verify(hashed, password)
    except (VerifyMismatchError, InvalidHashError):
        return False


def create_access_token(user_id: str) -> str:
    expire = utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {
        "sub": user_id,
        "exp": expire,
        "type": "access",
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=ALGORITHM)


def decode_jwt(token: str) -> dict:
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[ALGORITHM])


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> dict:
    """FastAPI dependency: resolve the profile behind the bearer token."""
    if credentials is None or not credentials.credentials:
        raise _unauthorized("You must be signed in to do this.")

    try:
        payload = decode_jwt(credentials.credentials)
    except JWTError:
        raise _unauthorized("Invalid token.")

    if payload.get("type") != "access" or not payload.get("sub"):
        raise _unauthorized("Invalid token.")

    try:
        user_oid = ObjectId(payload["sub"])
    except (InvalidId, TypeError):
        raise _unauthorized("Invalid token.")

    profile = await _db.db.profiles.find_one({"_id": user_oid})
    if not profile:
        raise _unauthorized("User not found.")
    return profile


async def get_admin_user(user: dict = Depends(get_current_user)) -> dict:
    """FastAPI dependency: requires an authenticated admin profile."""
    if not user.get("is_admin"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admins only.",
        )
    return user
