from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from ..db import get_db
from ..dependencies.auth import get_current_identity
from ..dependencies.services import get_services
from ..models import Identity
from ..schemas.auth import AuthResponse, CompleteProfileRequest, UpdateProfileRequest, UserResponse
from ..services.container import AuthServices

router = APIRouter(prefix="/v1/users", tags=["users"])


@router.get("/me", response_model=UserResponse)
def get_me(identity: Identity = Depends(get_current_identity)):
    return UserResponse.from_identity(identity)


@router.patch("/me", response_model=UserResponse)
def update_me(
    payload: UpdateProfileRequest,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    services: AuthServices = Depends(get_services),
):
    updated = services.profile.update_profile(
        db,
        identity.id,
        name=payload.name,
        occupation=payload.occupation,
        bio=payload.bio,
        profile_image_url=payload.profile_image_url,
    )
    return UserResponse.from_identity(updated)


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
def delete_me(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    services: AuthServices = Depends(get_services),
):
    services.profile.delete_account(db, identity.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/me/complete-profile", response_model=AuthResponse)
def complete_profile(
    payload: CompleteProfileRequest,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    services: AuthServices = Depends(get_services),
):
    """Set name and optional email, occupation and bio; returns a fresh token."""
    result = services.profile.complete_profile(
        db,
        identity.id,
        payload.name,
        email=payload.email,
        occupation=payload.occupation,
        bio=payload.bio,
    )
    return AuthResponse(
        access_token=result.access_token,
        user=UserResponse.from_identity(result.identity),
        requires_profile_completion=False,
    )
