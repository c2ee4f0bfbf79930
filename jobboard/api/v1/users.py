# jobboard/api/v1/users.py
from beanie import PydanticObjectId
from fastapi import APIRouter, Depends, HTTPException

from jobboard.api.v1.auth import get_current_user
from jobboard.api.v1.schemas import MessageOut, ProfileUpdate
from jobboard.db.documents import User, UserType, get_profile
from jobboard.db.encoding import to_json

router = APIRouter(prefix="/api/user", tags=["users"])

PROFILE_FIELDS = {
    UserType.RECRUITER: {"company_name", "contact_number", "bio"},
    UserType.APPLICANT: {"name", "education", "skills", "resume", "profile"},
}


async def _profile_out(user: User) -> dict:
    profile = await get_profile(user.id, user.type)
    if profile is None:
        raise HTTPException(status_code=404, detail="User does not exist")
    out = to_json(profile)
    out["email"] = user.email
    out["type"] = user.type.value
    return out


@router.get("")
async def read_me(user: User = Depends(get_current_user)):
    return await _profile_out(user)


@router.get("/{user_id}")
async def read_user(user_id: PydanticObjectId, _: User = Depends(get_current_user)):
    user = await User.get(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User does not exist")
    return await _profile_out(user)


@router.put("", response_model=MessageOut)
async def update_me(payload: ProfileUpdate, user: User = Depends(get_current_user)):
    profile = await get_profile(user.id, user.type)
    if profile is None:
        raise HTTPException(status_code=404, detail="User does not exist")

    changes = payload.model_dump(exclude_unset=True)
    foreign = set(changes) - PROFILE_FIELDS[user.type]
    if foreign:
        raise HTTPException(
            status_code=400,
            detail=f"Fields not available for {user.type.value}s: {', '.join(sorted(foreign))}",
        )
    # nested models are set from the validated payload, not the dumped dicts
    for field in changes:
        setattr(profile, field, getattr(payload, field))
    await profile.save()
    return {"message": "User information updated successfully"}
