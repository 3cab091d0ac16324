import logging

from fastapi import APIRouter, Depends, status

from betadona.models.profile import (
    ProfileCreate,
    ProfileLogin,
    ProfileResponse,
    TokenResponse,
    profile_to_response,
)
from betadona.services import profile_service
from betadona.services.auth_service import create_access_token, get_current_user

logger = logging.getLogger("betadona.auth")
router = APIRouter(prefix="/api", tags=["auth"])


@router.post("/auth/register", status_code=status.HTTP_201_CREATED, response_model=TokenResponse)
async def register(body: ProfileCreate):
    """Sign up: creates the profile with a fresh weekly allowance."""
    profile = await profile_service.create_profile(body.username, body.password, body.league_id)
    return TokenResponse(access_token=create_access_token(str(profile["_id"])))


@router.post("/auth/login", response_model=TokenResponse)
async def login(body: ProfileLogin):
    profile = await profile_service.authenticate(body.username, body.password)
    logger.info("Login: user=%s", profile["_id"])
    return TokenResponse(access_token=create_access_token(str(profile["_id"])))


@router.get("/profile/me", response_model=ProfileResponse)
async def me(user=Depends(get_current_user)):
    """Allowance and score of the signed-in player."""
    return profile_to_response(user)
