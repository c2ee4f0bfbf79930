"""
Application lifecycle.

Legal status changes are listed per role in RECRUITER_TRANSITIONS and
APPLICANT_TRANSITIONS. Every write is conditional on the status the caller
saw (compare-and-set), and accepting reserves a seat on the job with a
conditional $inc on Job.accepted_candidates, so concurrent requests can never
push a job past max_positions.
"""
import logging
from datetime import datetime
from typing import Dict, FrozenSet, Optional

from fastapi import HTTPException

from jobboard.db.documents import (
    Application,
    ApplicationStatus,
    Job,
    RecruiterProfile,
    User,
    UserType,
    naive_utc,
)
from jobboard.services import email_templates, mailer, plans

logger = logging.getLogger(__name__)

S = ApplicationStatus

RECRUITER_TRANSITIONS: Dict[ApplicationStatus, FrozenSet[ApplicationStatus]] = {
    S.APPLIED: frozenset({S.SHORTLISTED, S.ACCEPTED, S.REJECTED, S.DELETED}),
    S.SHORTLISTED: frozenset({S.ACCEPTED, S.REJECTED, S.DELETED}),
    S.ACCEPTED: frozenset({S.FINISHED, S.CANCELLED}),
}

APPLICANT_TRANSITIONS: Dict[ApplicationStatus, FrozenSet[ApplicationStatus]] = {
    S.APPLIED: frozenset({S.CANCELLED}),
    S.SHORTLISTED: frozenset({S.CANCELLED}),
    S.ACCEPTED: frozenset({S.CANCELLED}),
}

TRANSITIONS = {
    UserType.RECRUITER: RECRUITER_TRANSITIONS,
    UserType.APPLICANT: APPLICANT_TRANSITIONS,
}

# statuses that still occupy a slot on the job / count against the applicant
ACTIVE_STATUSES = (S.APPLIED, S.SHORTLISTED, S.ACCEPTED)
# an existing application in one of these blocks re-applying
BLOCKING_STATUSES = (S.APPLIED, S.SHORTLISTED, S.REJECTED, S.FINISHED)
# ratings require having worked together
WORKED_STATUSES = (S.ACCEPTED, S.FINISHED)


def _values(statuses) -> list:
    return [s.value for s in statuses]


def can_transition(role: UserType, current: ApplicationStatus, target: ApplicationStatus) -> bool:
    return ApplicationStatus(target) in TRANSITIONS[UserType(role)].get(ApplicationStatus(current), frozenset())


def check_transition(role: UserType, current: ApplicationStatus, target: ApplicationStatus) -> None:
    if not can_transition(role, current, target):
        raise HTTPException(
            status_code=400,
            detail=f"Application cannot move from {ApplicationStatus(current).value} to {ApplicationStatus(target).value}",
        )


async def reserve_position(job: Job) -> bool:
    """Take one seat on the job if one is free. Atomic on the server side."""
    res = await Job.get_motor_collection().update_one(
        {"_id": job.id, "accepted_candidates": {"$lt": job.max_positions}},
        {"$inc": {"accepted_candidates": 1}},
    )
    return res.modified_count == 1


async def release_position(job_id) -> None:
    await Job.get_motor_collection().update_one(
        {"_id": job_id, "accepted_candidates": {"$gt": 0}},
        {"$inc": {"accepted_candidates": -1}},
    )


async def _compare_and_set(application: Application, target: ApplicationStatus, extra: Optional[dict] = None) -> bool:
    update = {"status": ApplicationStatus(target).value}
    update.update(extra or {})
    res = await Application.get_motor_collection().update_one(
        {"_id": application.id, "status": ApplicationStatus(application.status).value},
        {"$set": update},
    )
    return res.modified_count == 1


async def cancel_other_pending(application: Application) -> int:
    """Once a candidate is accepted somewhere, their other open applications are withdrawn."""
    res = await Application.get_motor_collection().update_many(
        {
            "_id": {"$ne": application.id},
            "user_id": application.user_id,
            "status": S.APPLIED.value,
        },
        {"$set": {"status": S.CANCELLED.value}},
    )
    return res.modified_count


async def notify_applicant(applicant_id, job: Job, status: ApplicationStatus, date_of_joining: Optional[datetime] = None) -> bool:
    applicant = await User.get(applicant_id)
    recruiter = await RecruiterProfile.find_one({"user_id": job.user_id})
    if applicant is None or recruiter is None:
        logger.warning("Skipping status e-mail for application of %s on job %s: missing user data", applicant_id, job.id)
        return False
    subject, html = email_templates.status_email(status, job.title, recruiter.company_name, date_of_joining)
    sent = await mailer.send_email(applicant.email, subject, html)
    if not sent:
        logger.warning("Status e-mail (%s) to %s was not sent", ApplicationStatus(status).value, applicant.email)
    return sent


async def apply(user: User, job_id, sop: Optional[str]) -> Application:
    """Create an application after the duplicate, capacity and quota checks."""
    existing = await Application.find_one({
        "user_id": user.id,
        "job_id": job_id,
        "status": {"$in": _values(BLOCKING_STATUSES)},
    })
    if existing is not None:
        raise HTTPException(status_code=400, detail="You have already applied for this job")

    job = await Job.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job does not exist")

    active_on_job = await Application.find({"job_id": job.id, "status": {"$in": _values(ACTIVE_STATUSES)}}).count()
    if active_on_job >= job.max_applicants:
        raise HTTPException(status_code=400, detail="Application limit reached")

    quota = await plans.quota_for(user)
    if quota is not None:
        mine_active = await Application.find({"user_id": user.id, "status": {"$in": _values(ACTIVE_STATUSES)}}).count()
        if mine_active >= quota:
            raise HTTPException(
                status_code=400,
                detail=f"You have {quota} active applications. Hence you cannot apply.",
            )

    accepted = await Application.find({"user_id": user.id, "status": S.ACCEPTED.value}).count()
    if accepted:
        raise HTTPException(status_code=400, detail="You already have an accepted job. Hence you cannot apply.")

    application = Application(
        user_id=user.id,
        recruiter_id=job.user_id,
        job_id=job.id,
        status=S.APPLIED,
        sop=sop,
    )
    await application.insert()
    logger.info("User %s applied to job %s", user.id, job.id)
    return application


async def recruiter_update(user: User, application_id, target: ApplicationStatus, date_of_joining: Optional[datetime] = None) -> str:
    target = ApplicationStatus(target)
    application = await Application.find_one({"_id": application_id, "recruiter_id": user.id})
    if application is None:
        raise HTTPException(status_code=404, detail="Application not found")
    check_transition(UserType.RECRUITER, application.status, target)

    job = await Job.find_one({"_id": application.job_id, "user_id": user.id})
    if job is None:
        raise HTTPException(status_code=404, detail="Job does not exist")

    reserved = False
    if target == S.ACCEPTED:
        accepted_elsewhere = await Application.find({
            "_id": {"$ne": application.id},
            "user_id": application.user_id,
            "status": S.ACCEPTED.value,
        }).count()
        if accepted_elsewhere:
            raise HTTPException(status_code=400, detail="This applicant has already accepted another job")
        reserved = await reserve_position(job)
        if not reserved:
            raise HTTPException(status_code=400, detail="All positions for this job are already filled")

    extra = {"date_of_joining": naive_utc(date_of_joining)} if target == S.ACCEPTED else None
    if not await _compare_and_set(application, target, extra):
        if reserved:
            await release_position(job.id)
        raise HTTPException(status_code=409, detail="Application status was changed by another request")

    if application.status == S.ACCEPTED:
        await release_position(job.id)
    if target == S.ACCEPTED:
        cancelled = await cancel_other_pending(application)
        if cancelled:
            logger.info("Cancelled %s other pending applications of user %s", cancelled, application.user_id)

    logger.info("Application %s: %s -> %s", application.id, ApplicationStatus(application.status).value, target.value)
    await notify_applicant(application.user_id, job, target, date_of_joining)
    return f"Application {target.value} successfully"


async def applicant_update(user: User, application_id, target: ApplicationStatus) -> str:
    target = ApplicationStatus(target)
    application = await Application.find_one({"_id": application_id, "user_id": user.id})
    if application is None:
        raise HTTPException(status_code=404, detail="Application not found")
    if target != S.CANCELLED:
        raise HTTPException(status_code=403, detail="You don't have permissions to update job status")
    check_transition(UserType.APPLICANT, application.status, target)

    if not await _compare_and_set(application, target):
        raise HTTPException(status_code=409, detail="Application status was changed by another request")
    if application.status == S.ACCEPTED:
        await release_position(application.job_id)

    logger.info("Applicant %s cancelled application %s", user.id, application.id)
    return f"Application {target.value} successfully"


async def delete_job(user: User, job_id) -> int:
    """
    Delete an owned job. Open applications on it move to 'deleted' and their
    applicants are told. Returns how many applications were closed.
    """
    job = await Job.find_one({"_id": job_id, "user_id": user.id})
    if job is None:
        raise HTTPException(status_code=404, detail="Job does not exist")

    open_apps = await Application.find({"job_id": job.id, "status": {"$in": _values(ACTIVE_STATUSES)}}).to_list()
    closed = 0
    for application in open_apps:
        if await _compare_and_set(application, S.DELETED):
            closed += 1
            await notify_applicant(application.user_id, job, S.DELETED)
    await job.delete()
    logger.info("Job %s deleted by %s (%s applications closed)", job.id, user.id, closed)
    return closed
