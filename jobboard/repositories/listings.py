# jobboard/repositories/listings.py
"""
Aggregation queries behind the list endpoints: jobs joined with their
recruiter, applications joined with applicant profile / job / recruiter.
Results are plain JSON-ready dicts.
"""
import re
from typing import Any, Dict, Iterable, List, Optional

from beanie import PydanticObjectId
from fastapi import HTTPException

from jobboard.db.documents import (
    ApplicantProfile,
    Application,
    ApplicationStatus,
    Job,
    JobType,
    RecruiterProfile,
    User,
    UserType,
)
from jobboard.db.encoding import to_json

JOB_SORT_FIELDS = {"salary", "duration", "rating", "date_of_posting", "deadline", "title", "max_applicants"}
APPLICANT_SORT_FIELDS = {
    "_id",
    "date_of_application",
    "applicant.name",
    "applicant.rating",
    "job.title",
}


def _lookup(collection: str, local_field: str, foreign_field: str, as_: str) -> List[Dict[str, Any]]:
    return [
        {"$lookup": {"from": collection, "localField": local_field, "foreignField": foreign_field, "as": as_}},
        {"$unwind": f"${as_}"},
    ]


def build_sort(asc: Iterable[str], desc: Iterable[str], allowed: set) -> Dict[str, int]:
    """Repeated ?asc= / ?desc= fields into a $sort spec; unknown fields are rejected."""
    sort: Dict[str, int] = {}
    for direction, fields in ((1, asc or ()), (-1, desc or ())):
        for field in fields:
            if field not in allowed:
                raise HTTPException(status_code=400, detail=f"Cannot sort by '{field}'")
            sort[field] = direction
    return sort


def build_job_filter(
    user: User,
    myjobs: bool = False,
    q: Optional[str] = None,
    job_types: Optional[List[JobType]] = None,
    salary_min: Optional[int] = None,
    salary_max: Optional[int] = None,
    duration: Optional[int] = None,
) -> Dict[str, Any]:
    match: Dict[str, Any] = {}
    if myjobs and user.type == UserType.RECRUITER:
        match["user_id"] = user.id
    if q:
        match["title"] = {"$regex": re.escape(q), "$options": "i"}
    if job_types:
        match["job_type"] = {"$in": [JobType(t).value for t in job_types]}
    salary: Dict[str, int] = {}
    if salary_min is not None:
        salary["$gte"] = salary_min
    if salary_max is not None:
        salary["$lte"] = salary_max
    if salary:
        match["salary"] = salary
    if duration is not None:
        match["duration"] = {"$lt": duration}
    return match


async def list_jobs(match: Dict[str, Any], sort: Dict[str, int]) -> List[Dict[str, Any]]:
    pipeline: List[Dict[str, Any]] = [{"$match": match}]
    pipeline += _lookup(RecruiterProfile.get_collection_name(), "user_id", "user_id", "recruiter")
    if sort:
        pipeline.append({"$sort": sort})
    rows = await Job.aggregate(pipeline).to_list()
    return to_json(rows)


async def list_user_applications(user: User) -> List[Dict[str, Any]]:
    """Every application of an applicant, or on a recruiter's jobs, newest first."""
    owner_field = "recruiter_id" if user.type == UserType.RECRUITER else "user_id"
    pipeline: List[Dict[str, Any]] = [{"$match": {owner_field: user.id}}]
    pipeline += _lookup(ApplicantProfile.get_collection_name(), "user_id", "user_id", "applicant")
    pipeline += _lookup(Job.get_collection_name(), "job_id", "_id", "job")
    pipeline += _lookup(RecruiterProfile.get_collection_name(), "recruiter_id", "user_id", "recruiter")
    pipeline.append({"$sort": {"date_of_application": -1}})
    rows = await Application.aggregate(pipeline).to_list()
    return to_json(rows)


async def list_applicants(
    recruiter: User,
    job_id: Optional[PydanticObjectId] = None,
    statuses: Optional[List[ApplicationStatus]] = None,
    sort: Optional[Dict[str, int]] = None,
) -> List[Dict[str, Any]]:
    match: Dict[str, Any] = {"recruiter_id": recruiter.id}
    if job_id is not None:
        match["job_id"] = job_id
    if statuses:
        match["status"] = {"$in": [ApplicationStatus(s).value for s in statuses]}
    pipeline: List[Dict[str, Any]] = [{"$match": match}]
    pipeline += _lookup(ApplicantProfile.get_collection_name(), "user_id", "user_id", "applicant")
    pipeline += _lookup(Job.get_collection_name(), "job_id", "_id", "job")
    pipeline.append({"$sort": sort or {"_id": 1}})
    rows = await Application.aggregate(pipeline).to_list()
    return to_json(rows)
