"""Seller profile endpoints."""

from fastapi import APIRouter, Depends
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.stores_service.dependencies import get_profile
from services.stores_service.models import Profile
from services.stores_service.schemas import ProfileResponse, ProfileUpdate
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.get("/me", response_model=ProfileResponse)
async def get_my_profile(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    profile = await get_profile(db, current_user)
    if profile is None:
        # Seeded from the signup metadata until the seller edits it
        return ProfileResponse(
            id=current_user.user_id,
            first_name=current_user.first_name,
            last_name=current_user.last_name,
        )
    return profile


@router.patch("/me", response_model=ProfileResponse)
async def update_my_profile(
    payload: ProfileUpdate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    profile = await get_profile(db, current_user)
    if profile is None:
        profile = Profile(
            id=current_user.user_id,
            first_name=current_user.first_name,
            last_name=current_user.last_name,
        )
        db.add(profile)

    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(profile, field, value)
    await db.commit()
    await db.refresh(profile)
    return profile
