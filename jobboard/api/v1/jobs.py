# jobboard/api/v1/jobs.py
import logging
from typing import List, Optional

from beanie import PydanticObjectId
from fastapi import APIRouter, Depends, HTTPException, Query

from jobboard.api.v1.auth import get_current_user, require_recruiter
from jobboard.api.v1.schemas import JobCreate, JobUpdate, MessageOut
from jobboard.db.documents import Job, JobType, RecruiterProfile, User
from jobboard.db.encoding import to_json
from jobboard.repositories import listings
from jobboard.services import lifecycle, plans

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/jobs", tags=["jobs"])


@router.post("", status_code=201)
async def create_job(payload: JobCreate, user: User = Depends(require_recruiter)):
    quota = await plans.quota_for(user)
    if quota is not None:
        posted = await Job.find({"user_id": user.id}).count()
        if posted >= quota:
            raise HTTPException(
                status_code=400,
                detail=f"Your plan allows {quota} job postings. Upgrade your plan to post more.",
            )

    job = Job(user_id=user.id, **payload.model_dump())
    await job.insert()
    logger.info("Recruiter %s posted job %s", user.id, job.id)
    return {"message": "Job added successfully to the database", "id": str(job.id)}


@router.get("")
async def list_jobs(
    myjobs: bool = False,
    q: Optional[str] = None,
    job_type: Optional[List[JobType]] = Query(default=None, alias="jobType"),
    salary_min: Optional[int] = Query(default=None, alias="salaryMin"),
    salary_max: Optional[int] = Query(default=None, alias="salaryMax"),
    duration: Optional[int] = None,
    asc: Optional[List[str]] = Query(default=None),
    desc: Optional[List[str]] = Query(default=None),
    user: User = Depends(get_current_user),
):
    match = listings.build_job_filter(
        user,
        myjobs=myjobs,
        q=q,
        job_types=job_type,
        salary_min=salary_min,
        salary_max=salary_max,
        duration=duration,
    )
    sort = listings.build_sort(asc, desc, listings.JOB_SORT_FIELDS)
    return await listings.list_jobs(match, sort)


@router.get("/{job_id}")
async def get_job(job_id: PydanticObjectId, user: User = Depends(get_current_user)):
    job = await Job.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job does not exist")
    out = to_json(job)
    recruiter = await RecruiterProfile.find_one({"user_id": job.user_id})
    out["recruiter"] = to_json(recruiter) if recruiter else None
    return out


@router.put("/{job_id}", response_model=MessageOut)
async def update_job(job_id: PydanticObjectId, payload: JobUpdate, user: User = Depends(require_recruiter)):
    job = await Job.find_one({"_id": job_id, "user_id": user.id})
    if job is None:
        raise HTTPException(status_code=404, detail="Job does not exist")
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        return {"message": "Job details updated successfully"}

    # model validators run on the merged record; raises ValidationError -> 400
    merged = Job.model_validate({**job.model_dump(exclude={"id", "revision_id"}), **changes})
    update = {field: getattr(merged, field) for field in changes}

    # accepted_candidates can move concurrently, so the bound is re-checked in the filter
    res = await Job.get_motor_collection().update_one(
        {"_id": job.id, "accepted_candidates": {"$lte": merged.max_positions}},
        {"$set": update},
    )
    if res.matched_count != 1:
        raise HTTPException(status_code=400, detail="max_positions cannot be lower than accepted candidates")
    return {"message": "Job details updated successfully"}


@router.delete("/{job_id}", response_model=MessageOut)
async def delete_job(job_id: PydanticObjectId, user: User = Depends(require_recruiter)):
    closed = await lifecycle.delete_job(user, job_id)
    if closed:
        return {"message": f"Job deleted successfully, {closed} applications closed"}
    return {"message": "Job deleted successfully"}
