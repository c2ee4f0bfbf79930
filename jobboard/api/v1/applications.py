# jobboard/api/v1/applications.py
from typing import List, Optional

from beanie import PydanticObjectId
from fastapi import APIRouter, Depends, HTTPException, Query

from jobboard.api.v1.auth import get_current_user, require_applicant, require_recruiter
from jobboard.api.v1.schemas import ApplyIn, MessageOut, StatusUpdate
from jobboard.db.documents import Application, ApplicationStatus, Job, User, UserType
from jobboard.db.encoding import to_json
from jobboard.repositories import listings
from jobboard.services import lifecycle

router = APIRouter(prefix="/api", tags=["applications"])


@router.post("/jobs/{job_id}/applications", status_code=201, response_model=MessageOut)
async def apply_for_job(job_id: PydanticObjectId, payload: ApplyIn, user: User = Depends(require_applicant)):
    await lifecycle.apply(user, job_id, payload.sop)
    return {"message": "Job application successful"}


@router.get("/jobs/{job_id}/applications")
async def job_applications(
    job_id: PydanticObjectId,
    status: Optional[ApplicationStatus] = None,
    user: User = Depends(require_recruiter),
):
    job = await Job.find_one({"_id": job_id, "user_id": user.id})
    if job is None:
        raise HTTPException(status_code=404, detail="Job does not exist")
    query = {"job_id": job.id}
    if status is not None:
        query["status"] = status.value
    return to_json(await Application.find(query).to_list())


@router.get("/applications")
async def my_applications(user: User = Depends(get_current_user)):
    return await listings.list_user_applications(user)


@router.put("/applications/{application_id}", response_model=MessageOut)
async def update_application(
    application_id: PydanticObjectId,
    payload: StatusUpdate,
    user: User = Depends(get_current_user),
):
    if user.type == UserType.RECRUITER:
        message = await lifecycle.recruiter_update(user, application_id, payload.status, payload.date_of_joining)
    else:
        message = await lifecycle.applicant_update(user, application_id, payload.status)
    return {"message": message}


@router.get("/applicants")
async def applicants(
    job_id: Optional[PydanticObjectId] = Query(default=None, alias="jobId"),
    status: Optional[List[ApplicationStatus]] = Query(default=None),
    asc: Optional[List[str]] = Query(default=None),
    desc: Optional[List[str]] = Query(default=None),
    user: User = Depends(require_recruiter),
):
    sort = listings.build_sort(asc, desc, listings.APPLICANT_SORT_FIELDS)
    rows = await listings.list_applicants(user, job_id=job_id, statuses=status, sort=sort)
    if not rows:
        raise HTTPException(status_code=404, detail="No applicants found")
    return rows
