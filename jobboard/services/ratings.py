# jobboard/services/ratings.py
import logging
from typing import Optional

from fastapi import HTTPException

from jobboard.db.documents import (
    ApplicantProfile,
    Application,
    Job,
    Rating,
    RatingCategory,
    User,
    UserType,
)
from jobboard.services.lifecycle import WORKED_STATUSES

logger = logging.getLogger(__name__)


async def average_rating(category: RatingCategory, receiver_id) -> Optional[float]:
    """Mean of every rating a receiver got in ``category``; None when unrated."""
    pipeline = [
        {"$match": {"receiver_id": receiver_id, "category": RatingCategory(category).value}},
        {"$group": {"_id": None, "average": {"$avg": "$rating"}}},
    ]
    rows = await Rating.aggregate(pipeline).to_list()
    if not rows:
        return None
    return rows[0]["average"]


async def _upsert(category: RatingCategory, sender_id, receiver_id, value: float, may_create) -> bool:
    """
    Store the sender's rating of the receiver. ``may_create`` is an awaitable
    factory checked only for a first rating. Returns True if a new rating was created.
    """
    rating = await Rating.find_one({
        "sender_id": sender_id,
        "receiver_id": receiver_id,
        "category": RatingCategory(category).value,
    })
    if rating is not None:
        rating.rating = value
        await rating.save()
        return False
    await may_create()
    await Rating(category=category, receiver_id=receiver_id, sender_id=sender_id, rating=value).insert()
    return True


async def rate_applicant(recruiter: User, applicant_id, value: float) -> str:
    profile = await ApplicantProfile.find_one({"user_id": applicant_id})
    if profile is None:
        raise HTTPException(status_code=404, detail="Applicant does not exist")

    async def worked_together():
        count = await Application.find({
            "user_id": applicant_id,
            "recruiter_id": recruiter.id,
            "status": {"$in": [s.value for s in WORKED_STATUSES]},
        }).count()
        if not count:
            raise HTTPException(
                status_code=400,
                detail="Applicant didn't work under you. Hence you cannot give a rating.",
            )

    created = await _upsert(RatingCategory.APPLICANT, recruiter.id, applicant_id, value, worked_together)
    profile.rating = await average_rating(RatingCategory.APPLICANT, applicant_id)
    await profile.save()
    logger.info("Recruiter %s rated applicant %s (avg now %.2f)", recruiter.id, applicant_id, profile.rating)
    return "Rating added successfully" if created else "Rating updated successfully"


async def rate_job(applicant: User, job_id, value: float) -> str:
    job = await Job.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job does not exist")

    async def worked_on_job():
        count = await Application.find({
            "user_id": applicant.id,
            "job_id": job.id,
            "status": {"$in": [s.value for s in WORKED_STATUSES]},
        }).count()
        if not count:
            raise HTTPException(
                status_code=400,
                detail="You haven't worked for this job. Hence you cannot give a rating.",
            )

    created = await _upsert(RatingCategory.JOB, applicant.id, job.id, value, worked_on_job)
    average = await average_rating(RatingCategory.JOB, job.id)
    # rating only; a full save would re-run the job's capacity validation
    await Job.get_motor_collection().update_one({"_id": job.id}, {"$set": {"rating": average}})
    logger.info("Applicant %s rated job %s (avg now %.2f)", applicant.id, job.id, average)
    return "Rating added successfully" if created else "Rating updated successfully"


async def my_rating(user: User, receiver_id) -> float:
    """The caller's own rating of a job (applicants) or an applicant (recruiters); -1 if none."""
    category = RatingCategory.APPLICANT if user.type == UserType.RECRUITER else RatingCategory.JOB
    rating = await Rating.find_one({
        "sender_id": user.id,
        "receiver_id": receiver_id,
        "category": category.value,
    })
    return -1 if rating is None else rating.rating
