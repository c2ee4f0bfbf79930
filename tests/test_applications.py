# tests/test_applications.py
import pytest

from jobboard.db.documents import Application, ApplicationStatus, Job, UserType
from jobboard.services import lifecycle


async def _apply(client, headers, job, sop="I like this job"):
    return await client.post(f"/api/jobs/{job.id}/applications", json={"sop": sop}, headers=headers)


@pytest.mark.asyncio
async def test_apply_and_duplicate(client, recruiter, applicant, make_job):
    owner, _ = recruiter
    applicant_user, headers = applicant
    job = await make_job(owner)

    r = await _apply(client, headers, job)
    assert r.status_code == 201
    application = await Application.find_one({"user_id": applicant_user.id})
    assert application.status == ApplicationStatus.APPLIED
    assert application.recruiter_id == owner.id

    r = await _apply(client, headers, job)
    assert r.status_code == 400
    assert r.json()["detail"] == "You have already applied for this job"


@pytest.mark.asyncio
async def test_reapply_after_cancel_is_allowed(client, recruiter, applicant, make_job):
    owner, _ = recruiter
    _, headers = applicant
    job = await make_job(owner)
    await _apply(client, headers, job)
    application = await Application.find_one({"job_id": job.id})

    r = await client.put(f"/api/applications/{application.id}", json={"status": "cancelled"}, headers=headers)
    assert r.status_code == 200
    r = await _apply(client, headers, job)
    assert r.status_code == 201


@pytest.mark.asyncio
async def test_apply_to_missing_job(client, applicant):
    _, headers = applicant
    r = await client.post("/api/jobs/64b7f0c2a1b2c3d4e5f60718/applications", json={}, headers=headers)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_recruiter_cannot_apply(client, recruiter, make_job):
    owner, headers = recruiter
    job = await make_job(owner)
    r = await _apply(client, headers, job)
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_job_applicant_capacity(client, recruiter, make_user, make_job):
    owner, _ = recruiter
    job = await make_job(owner, max_applicants=1, max_positions=1)
    _, first = await make_user(UserType.APPLICANT)
    _, second = await make_user(UserType.APPLICANT)

    assert (await _apply(client, first, job)).status_code == 201
    r = await _apply(client, second, job)
    assert r.status_code == 400
    assert r.json()["detail"] == "Application limit reached"


@pytest.mark.asyncio
async def test_free_applicant_active_application_limit(client, make_user, applicant, make_job):
    _, headers = applicant
    jobs = []
    for i in range(11):
        owner, _ = await make_user(UserType.RECRUITER, company_name=f"Company {i}")
        jobs.append(await make_job(owner, title=f"Job {i}"))

    for job in jobs[:10]:
        assert (await _apply(client, headers, job)).status_code == 201
    r = await _apply(client, headers, jobs[10])
    assert r.status_code == 400
    assert "10 active applications" in r.json()["detail"]


@pytest.mark.asyncio
async def test_sop_word_limit(client, recruiter, applicant, make_job):
    owner, _ = recruiter
    _, headers = applicant
    job = await make_job(owner)
    r = await _apply(client, headers, job, sop="word " * 251)
    assert r.status_code == 400
    assert await Application.find_all().count() == 0


@pytest.mark.asyncio
async def test_recruiter_lists_job_applications(client, recruiter, applicant, make_user, make_job):
    owner, headers = recruiter
    _, applicant_headers = applicant
    job = await make_job(owner)
    await _apply(client, applicant_headers, job)

    r = await client.get(f"/api/jobs/{job.id}/applications", headers=headers)
    assert r.status_code == 200
    assert len(r.json()) == 1
    assert r.json()[0]["status"] == "applied"

    r = await client.get(f"/api/jobs/{job.id}/applications", params={"status": "accepted"}, headers=headers)
    assert r.json() == []

    _, other_headers = await make_user(UserType.RECRUITER, company_name="Globex")
    r = await client.get(f"/api/jobs/{job.id}/applications", headers=other_headers)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_my_applications_joined(client, recruiter, applicant, make_job):
    owner, recruiter_headers = recruiter
    _, headers = applicant
    job = await make_job(owner)
    await _apply(client, headers, job)

    for h in (headers, recruiter_headers):
        r = await client.get("/api/applications", headers=h)
        assert r.status_code == 200
        rows = r.json()
        assert len(rows) == 1
        assert rows[0]["job"]["title"] == "Backend Engineer"
        assert rows[0]["applicant"]["name"] == "Ada"
        assert rows[0]["recruiter"]["company_name"] == "Acme"


@pytest.mark.asyncio
async def test_applicants_listing(client, recruiter, make_user, make_job):
    owner, headers = recruiter

    r = await client.get("/api/applicants", headers=headers)
    assert r.status_code == 404

    job = await make_job(owner)
    names = ["Zoe", "Bob"]
    for name in names:
        user, h = await make_user(UserType.APPLICANT, name=name)
        await _apply(client, h, job)

    r = await client.get("/api/applicants", params={"jobId": str(job.id)}, headers=headers)
    assert [row["applicant"]["name"] for row in r.json()] == ["Zoe", "Bob"]

    r = await client.get("/api/applicants", params={"asc": "applicant.name"}, headers=headers)
    assert [row["applicant"]["name"] for row in r.json()] == ["Bob", "Zoe"]

    r = await client.get("/api/applicants", params={"status": ["shortlisted"]}, headers=headers)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_recruiter_transition_sends_mail(client, recruiter, applicant, make_job, outbox):
    owner, headers = recruiter
    _, applicant_headers = applicant
    job = await make_job(owner)
    await _apply(client, applicant_headers, job)
    application = await Application.find_one({"job_id": job.id})

    r = await client.put(f"/api/applications/{application.id}", json={"status": "shortlisted"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["message"] == "Application shortlisted successfully"
    assert outbox[-1]["to"] == "ada@example.com"
    assert "shortlisted" in outbox[-1]["subject"]


@pytest.mark.asyncio
async def test_accept_fills_positions(client, recruiter, make_user, make_job):
    owner, headers = recruiter
    job = await make_job(owner, max_applicants=3, max_positions=1)
    applications = []
    for _ in range(2):
        user, h = await make_user(UserType.APPLICANT)
        await _apply(client, h, job)
        applications.append(await Application.find_one({"user_id": user.id}))

    r = await client.put(
        f"/api/applications/{applications[0].id}",
        json={"status": "accepted", "date_of_joining": "2026-11-01T00:00:00Z"},
        headers=headers,
    )
    assert r.status_code == 200
    assert (await Job.get(job.id)).accepted_candidates == 1
    accepted = await Application.get(applications[0].id)
    assert accepted.date_of_joining is not None

    r = await client.put(f"/api/applications/{applications[1].id}", json={"status": "accepted"}, headers=headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "All positions for this job are already filled"
    assert (await Application.get(applications[1].id)).status == ApplicationStatus.APPLIED

    # cancelling the accepted candidate frees the seat
    r = await client.put(f"/api/applications/{applications[0].id}", json={"status": "cancelled"}, headers=headers)
    assert r.status_code == 200
    assert (await Job.get(job.id)).accepted_candidates == 0
    r = await client.put(f"/api/applications/{applications[1].id}", json={"status": "accepted"}, headers=headers)
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_accept_cancels_other_pending_applications(client, make_user, applicant, make_job):
    applicant_user, headers = applicant
    first_owner, first_headers = await make_user(UserType.RECRUITER, company_name="Acme")
    second_owner, _ = await make_user(UserType.RECRUITER, company_name="Globex")
    first_job = await make_job(first_owner)
    second_job = await make_job(second_owner)
    await _apply(client, headers, first_job)
    await _apply(client, headers, second_job)

    first = await Application.find_one({"job_id": first_job.id})
    r = await client.put(f"/api/applications/{first.id}", json={"status": "accepted"}, headers=first_headers)
    assert r.status_code == 200

    second = await Application.find_one({"job_id": second_job.id})
    assert second.status == ApplicationStatus.CANCELLED

    # an accepted applicant cannot apply elsewhere
    third_owner, _ = await make_user(UserType.RECRUITER, company_name="Initech")
    r = await _apply(client, headers, await make_job(third_owner))
    assert r.status_code == 400
    assert "accepted job" in r.json()["detail"]


@pytest.mark.asyncio
async def test_illegal_transitions(client, recruiter, applicant, make_job):
    owner, headers = recruiter
    _, applicant_headers = applicant
    job = await make_job(owner)
    await _apply(client, applicant_headers, job)
    application = await Application.find_one({"job_id": job.id})

    # finishing needs an accepted application
    r = await client.put(f"/api/applications/{application.id}", json={"status": "finished"}, headers=headers)
    assert r.status_code == 400

    # applicants may only cancel
    r = await client.put(f"/api/applications/{application.id}", json={"status": "accepted"}, headers=applicant_headers)
    assert r.status_code == 403

    r = await client.put(f"/api/applications/{application.id}", json={"status": "rejected"}, headers=headers)
    assert r.status_code == 200
    # rejected is final
    r = await client.put(f"/api/applications/{application.id}", json={"status": "cancelled"}, headers=applicant_headers)
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_other_recruiter_cannot_update_application(client, recruiter, applicant, make_user, make_job):
    owner, _ = recruiter
    _, applicant_headers = applicant
    job = await make_job(owner)
    await _apply(client, applicant_headers, job)
    application = await Application.find_one({"job_id": job.id})

    _, other_headers = await make_user(UserType.RECRUITER, company_name="Globex")
    r = await client.put(f"/api/applications/{application.id}", json={"status": "rejected"}, headers=other_headers)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_shortlisted_elsewhere_cannot_be_accepted_twice(client, make_user, applicant, make_job):
    _, headers = applicant
    first_owner, first_headers = await make_user(UserType.RECRUITER, company_name="Acme")
    second_owner, second_headers = await make_user(UserType.RECRUITER, company_name="Globex")
    first_job = await make_job(first_owner)
    second_job = await make_job(second_owner)
    await _apply(client, headers, first_job)
    await _apply(client, headers, second_job)
    first = await Application.find_one({"job_id": first_job.id})
    second = await Application.find_one({"job_id": second_job.id})

    r = await client.put(f"/api/applications/{second.id}", json={"status": "shortlisted"}, headers=second_headers)
    assert r.status_code == 200
    r = await client.put(f"/api/applications/{first.id}", json={"status": "accepted"}, headers=first_headers)
    assert r.status_code == 200
    # shortlisted applications are not withdrawn by the accept
    assert (await Application.get(second.id)).status == ApplicationStatus.SHORTLISTED

    r = await client.put(f"/api/applications/{second.id}", json={"status": "accepted"}, headers=second_headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "This applicant has already accepted another job"
    assert (await Application.get(second.id)).status == ApplicationStatus.SHORTLISTED
    assert (await Job.get(second_job.id)).accepted_candidates == 0
    assert await Application.find({"status": "accepted"}).count() == 1


@pytest.mark.asyncio
async def test_accept_loses_to_concurrent_status_change(client, recruiter, applicant, make_job, outbox, monkeypatch):
    owner, headers = recruiter
    _, applicant_headers = applicant
    job = await make_job(owner, max_positions=1)
    await _apply(client, applicant_headers, job)
    application = await Application.find_one({"job_id": job.id})

    reserve_position = lifecycle.reserve_position

    async def reserve_then_reject_elsewhere(job_doc):
        reserved = await reserve_position(job_doc)
        # another request rejects the application after it was read
        await Application.get_motor_collection().update_one(
            {"_id": application.id}, {"$set": {"status": ApplicationStatus.REJECTED.value}}
        )
        return reserved

    monkeypatch.setattr(lifecycle, "reserve_position", reserve_then_reject_elsewhere)
    sent_before = len(outbox)

    r = await client.put(f"/api/applications/{application.id}", json={"status": "accepted"}, headers=headers)
    assert r.status_code == 409
    assert r.json()["detail"] == "Application status was changed by another request"

    stored = await Application.get(application.id)
    assert stored.status == ApplicationStatus.REJECTED
    assert stored.date_of_joining is None
    # the reserved seat was handed back
    assert (await Job.get(job.id)).accepted_candidates == 0
    assert len(outbox) == sent_before
