# tests/test_ratings.py
import pytest

from jobboard.db.documents import (
    ApplicantProfile,
    Application,
    ApplicationStatus,
    Job,
    Rating,
    UserType,
)


async def _worked_together(applicant_user, owner, job, status=ApplicationStatus.ACCEPTED):
    application = Application(user_id=applicant_user.id, recruiter_id=owner.id, job_id=job.id, status=status)
    await application.insert()
    return application


@pytest.mark.asyncio
async def test_recruiter_rates_applicant_and_average(client, recruiter, applicant, make_user, make_job):
    owner, headers = recruiter
    applicant_user, _ = applicant
    await _worked_together(applicant_user, owner, await make_job(owner))

    r = await client.put("/api/rating", json={"applicant_id": str(applicant_user.id), "rating": 4}, headers=headers)
    assert r.status_code == 200
    assert r.json()["message"] == "Rating added successfully"

    other, other_headers = await make_user(UserType.RECRUITER, company_name="Globex")
    await _worked_together(applicant_user, other, await make_job(other), status=ApplicationStatus.FINISHED)
    r = await client.put("/api/rating", json={"applicant_id": str(applicant_user.id), "rating": 2}, headers=other_headers)
    assert r.status_code == 200

    profile = await ApplicantProfile.find_one({"user_id": applicant_user.id})
    assert profile.rating == pytest.approx(3.0)

    # second rating from the same recruiter replaces the first
    r = await client.put("/api/rating", json={"applicant_id": str(applicant_user.id), "rating": 5}, headers=headers)
    assert r.json()["message"] == "Rating updated successfully"
    assert await Rating.find_all().count() == 2
    profile = await ApplicantProfile.find_one({"user_id": applicant_user.id})
    assert profile.rating == pytest.approx(3.5)

    r = await client.get("/api/rating", params={"id": str(applicant_user.id)}, headers=headers)
    assert r.json() == {"rating": 5}


@pytest.mark.asyncio
async def test_rating_requires_working_together(client, recruiter, applicant, make_job):
    owner, headers = recruiter
    applicant_user, applicant_headers = applicant
    job = await make_job(owner)
    await _worked_together(applicant_user, owner, job, status=ApplicationStatus.APPLIED)

    r = await client.put("/api/rating", json={"applicant_id": str(applicant_user.id), "rating": 4}, headers=headers)
    assert r.status_code == 400
    r = await client.put("/api/rating", json={"job_id": str(job.id), "rating": 4}, headers=applicant_headers)
    assert r.status_code == 400
    assert await Rating.find_all().count() == 0


@pytest.mark.asyncio
async def test_applicant_rates_job(client, recruiter, applicant, make_job):
    owner, _ = recruiter
    applicant_user, headers = applicant
    job = await make_job(owner)
    await _worked_together(applicant_user, owner, job)

    r = await client.put("/api/rating", json={"job_id": str(job.id), "rating": 4.5}, headers=headers)
    assert r.status_code == 200
    assert (await Job.get(job.id)).rating == pytest.approx(4.5)

    r = await client.get("/api/rating", params={"id": str(job.id)}, headers=headers)
    assert r.json() == {"rating": 4.5}


@pytest.mark.asyncio
async def test_rating_request_validation(client, recruiter, applicant, make_job):
    owner, headers = recruiter
    applicant_user, applicant_headers = applicant
    job = await make_job(owner)

    # out of range
    r = await client.put("/api/rating", json={"applicant_id": str(applicant_user.id), "rating": 6}, headers=headers)
    assert r.status_code == 422
    # recruiters rate applicants, not jobs
    r = await client.put("/api/rating", json={"job_id": str(job.id), "rating": 3}, headers=headers)
    assert r.status_code == 400
    r = await client.put("/api/rating", json={"applicant_id": str(applicant_user.id), "rating": 3}, headers=applicant_headers)
    assert r.status_code == 400
    # unknown applicant
    r = await client.put("/api/rating", json={"applicant_id": "64b7f0c2a1b2c3d4e5f60718", "rating": 3}, headers=headers)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_unrated_returns_minus_one(client, recruiter, applicant):
    _, headers = recruiter
    applicant_user, _ = applicant
    r = await client.get("/api/rating", params={"id": str(applicant_user.id)}, headers=headers)
    assert r.status_code == 200
    assert r.json() == {"rating": -1}
