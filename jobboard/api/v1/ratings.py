# jobboard/api/v1/ratings.py
from beanie import PydanticObjectId
from fastapi import APIRouter, Depends, HTTPException, Query

from jobboard.api.v1.auth import get_current_user
from jobboard.api.v1.schemas import MessageOut, RatingIn, RatingOut
from jobboard.db.documents import User, UserType
from jobboard.services import ratings

router = APIRouter(prefix="/api/rating", tags=["ratings"])


@router.put("", response_model=MessageOut)
async def rate(payload: RatingIn, user: User = Depends(get_current_user)):
    if user.type == UserType.RECRUITER:
        if payload.applicant_id is None:
            raise HTTPException(status_code=400, detail="Recruiters rate applicants: applicant_id is required")
        message = await ratings.rate_applicant(user, payload.applicant_id, payload.rating)
    else:
        if payload.job_id is None:
            raise HTTPException(status_code=400, detail="Applicants rate jobs: job_id is required")
        message = await ratings.rate_job(user, payload.job_id, payload.rating)
    return {"message": message}


@router.get("", response_model=RatingOut)
async def read_rating(receiver_id: PydanticObjectId = Query(alias="id"), user: User = Depends(get_current_user)):
    return {"rating": await ratings.my_rating(user, receiver_id)}
