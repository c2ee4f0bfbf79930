# tests/conftest.py
import uuid

import pytest
from beanie import init_beanie
from httpx import AsyncClient, ASGITransport
from mongomock_motor import AsyncMongoMockClient

from jobboard.core.security import create_access_token, hash_password
from jobboard.db.documents import (
    DOCUMENT_MODELS,
    ApplicantProfile,
    Job,
    JobType,
    RecruiterProfile,
    User,
    UserType,
)
from jobboard.main import app
from jobboard.services import mailer


@pytest.fixture(autouse=True)
async def test_db():
    """Fresh in-memory Mongo database per test, with Beanie initialised on it."""
    client = AsyncMongoMockClient()
    db = client[f"jobboard_test_{uuid.uuid4().hex[:8]}"]
    await init_beanie(database=db, document_models=DOCUMENT_MODELS)
    yield db


@pytest.fixture(autouse=True)
def outbox(monkeypatch):
    """Capture outgoing e-mails instead of talking to SMTP / Redis."""
    sent = []

    async def fake_send_email(to, subject, html):
        sent.append({"to": to, "subject": subject, "html": html})
        return True

    monkeypatch.setattr(mailer, "send_email", fake_send_email)
    return sent


@pytest.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}


@pytest.fixture
def make_user():
    """Create a verified user with a profile; returns (user, auth headers)."""
    async def _make(user_type: UserType, email: str = None, **profile):
        user = User(
            email=email or f"{user_type.value}-{uuid.uuid4().hex[:6]}@example.com",
            password=hash_password("password123"),
            type=user_type,
            is_verified=True,
        )
        await user.insert()
        if user_type == UserType.RECRUITER:
            await RecruiterProfile(user_id=user.id, company_name=profile.pop("company_name", "Acme"), **profile).insert()
        else:
            await ApplicantProfile(user_id=user.id, name=profile.pop("name", "Ada"), **profile).insert()
        return user, auth_headers(user)
    return _make


@pytest.fixture
async def recruiter(make_user):
    return await make_user(UserType.RECRUITER, email="hr@acme.com", company_name="Acme")


@pytest.fixture
async def applicant(make_user):
    return await make_user(UserType.APPLICANT, email="ada@example.com", name="Ada")


@pytest.fixture
def make_job():
    async def _make(owner: User, **fields):
        data = {
            "title": "Backend Engineer",
            "max_applicants": 5,
            "max_positions": 2,
            "job_type": JobType.FULL_TIME,
            "duration": 6,
            "salary": 50000,
        }
        data.update(fields)
        job = Job(user_id=owner.id, **data)
        await job.insert()
        return job
    return _make
