from fastapi import APIRouter, Depends, Query

from api.dependencies import get_dog_profile_service
from application.dtos.payments import DogProfile
from application.services.dog_profile_service import DogProfileService
from core.response import success_response


router = APIRouter(prefix="/dog-profiles", tags=["Dog Profiles"])


@router.get("")
async def get_dog_profile(
    email: str = Query(..., min_length=1),
    service: DogProfileService = Depends(get_dog_profile_service),
):
    profile = await service.get(email)
    return success_response(data=profile.model_dump())


@router.post("")
async def save_dog_profile(
    payload: DogProfile,
    service: DogProfileService = Depends(get_dog_profile_service),
):
    profile = await service.save(payload)
    return success_response(data={"profile": profile.model_dump()}, message="Profile saved")
