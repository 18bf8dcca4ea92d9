"""Profile endpoints: read and update the authenticated user's profile."""
import logging
import posixpath

from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from certmint.api.deps import get_context, get_db
from certmint.api.models import UpdateProfileRequest, UpdateProfileResponse, UserResponse
from certmint.auth.backend import WalletPrincipal, require_auth
from certmint.auth.users import UserStore
from certmint.context import ServiceContext
from certmint.core.exceptions import NotFoundError, ValidationError

log = logging.getLogger(__name__)
router = APIRouter(prefix="/api/profile", tags=["profile"])

PHOTO_CONTENT_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}


def photo_content_type(file_name: str) -> str:
    ext = posixpath.splitext(file_name.lower())[1]
    return PHOTO_CONTENT_TYPES.get(ext, "application/octet-stream")


@router.get("", response_model=UserResponse)
def get_profile(
    principal: WalletPrincipal = Depends(require_auth),
    db: Session = Depends(get_db),
) -> UserResponse:
    user = UserStore(db).get(principal.user_id)
    if user is None:
        raise NotFoundError("Profile not found")
    return UserResponse.model_validate(user)


@router.put("", response_model=UpdateProfileResponse)
def update_profile(
    body: UpdateProfileRequest,
    principal: WalletPrincipal = Depends(require_auth),
    db: Session = Depends(get_db),
    context: ServiceContext = Depends(get_context),
) -> UpdateProfileResponse:
    """Update display name and/or email.

    With photoFileName, also returns a presigned PUT for the profile photo
    and records its public URL.
    """
    if body.full_name is None and body.email is None and not body.photo_file_name:
        raise ValidationError("No fields to update")

    store = UserStore(db)
    user = store.get(principal.user_id)
    if user is None:
        raise NotFoundError("Profile not found")

    upload_url = public_url = None
    if body.photo_file_name:
        if "/" in body.photo_file_name or "\\" in body.photo_file_name:
            raise ValidationError("Validation error: photoFileName must be a plain file name")
        key = f"profiles/{user.id}/{body.photo_file_name}"
        upload_url = context.documents.presign(
            "PUT", key, photo_content_type(body.photo_file_name)
        ).url
        public_url = context.documents.url_for(key)

    try:
        user = store.update_profile(
            user,
            full_name=body.full_name,
            email=body.email,
            profile_photo_url=public_url,
        )
    except IntegrityError:
        db.rollback()
        raise ValidationError("Email is already in use")

    log.info(f"Profile updated for {user.id}", extra={"user_id": user.id})
    return UpdateProfileResponse(
        user=UserResponse.model_validate(user),
        upload_url=upload_url,
        public_url=public_url,
    )
