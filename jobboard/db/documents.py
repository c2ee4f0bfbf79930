"""Beanie document models for the job board collections.

Every document keeps a reference to the owning user as ``user_id``; profiles
are 1:1 with a User, applications and ratings point at users and jobs by id.
Timestamps are naive UTC, the same way Mongo hands them back.
"""
import re
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from beanie import Document, Indexed, PydanticObjectId
from pydantic import BaseModel, Field, field_validator, model_validator

PHONE_RE = re.compile(r"\+\d{1,3}\d{10}")
MAX_SOP_WORDS = 250


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class UserType(str, Enum):
    RECRUITER = "recruiter"
    APPLICANT = "applicant"


class ApplicationStatus(str, Enum):
    APPLIED = "applied"
    SHORTLISTED = "shortlisted"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    DELETED = "deleted"
    CANCELLED = "cancelled"
    FINISHED = "finished"


class JobType(str, Enum):
    FULL_TIME = "Full Time"
    PART_TIME = "Part Time"
    WORK_FROM_HOME = "Work From Home"


class RatingCategory(str, Enum):
    JOB = "job"
    APPLICANT = "applicant"


class PlanTier(str, Enum):
    FREE = "Free"
    MONTHLY = "Monthly"
    QUARTERLY = "Quarterly"
    YEARLY = "Yearly"


class PaymentStatus(str, Enum):
    PENDING = "Pending"
    PAID = "Paid"
    FAILED = "Failed"
    EXPIRED = "Expired"


class User(Document):
    email: Indexed(str, unique=True)
    password: str
    type: UserType
    verification_token: Optional[str] = None
    is_verified: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "users"


class RecruiterProfile(Document):
    user_id: PydanticObjectId
    company_name: str
    contact_number: Optional[str] = None
    bio: Optional[str] = None
    premium: bool = False

    @field_validator("contact_number")
    @classmethod
    def _phone(cls, v):
        if v and not PHONE_RE.fullmatch(v):
            raise ValueError("Phone number is invalid!")
        return v

    class Settings:
        name = "recruiter_profiles"
        validate_on_save = True


class Education(BaseModel):
    institution_name: str
    start_year: int = Field(ge=1930)
    end_year: Optional[int] = None

    @model_validator(mode="after")
    def _years(self):
        if self.end_year is not None and self.end_year < self.start_year:
            raise ValueError("End year should be greater than or equal to start year")
        return self


class ApplicantProfile(Document):
    user_id: PydanticObjectId
    name: str
    education: List[Education] = Field(default_factory=list)
    skills: List[str] = Field(default_factory=list)
    rating: float = Field(default=-1.0, ge=-1.0, le=5.0)
    resume: Optional[str] = None
    profile: Optional[str] = None
    premium: bool = False

    class Settings:
        name = "applicant_profiles"
        validate_on_save = True


class Job(Document):
    user_id: PydanticObjectId
    title: str
    max_applicants: int = Field(ge=1)
    max_positions: int = Field(ge=1)
    # positions taken; moved only by atomic $inc updates
    accepted_candidates: int = Field(default=0, ge=0)
    date_of_posting: datetime = Field(default_factory=datetime.utcnow)
    deadline: Optional[datetime] = None
    skillsets: List[str] = Field(default_factory=list)
    job_type: JobType
    # months, 0 means indefinite
    duration: int = Field(default=0, ge=0)
    salary: int = Field(default=0, ge=0)
    rating: float = Field(default=-1.0, ge=-1.0, le=5.0)

    @field_validator("deadline", "date_of_posting")
    @classmethod
    def _to_naive(cls, v):
        return naive_utc(v)

    @model_validator(mode="after")
    def _limits(self):
        if self.max_positions > self.max_applicants:
            raise ValueError("max_positions cannot exceed max_applicants")
        if self.accepted_candidates > self.max_positions:
            raise ValueError("max_positions cannot be lower than accepted candidates")
        if self.deadline is not None and self.deadline <= self.date_of_posting:
            raise ValueError("deadline should be after the date of posting")
        return self

    class Settings:
        name = "jobs"
        validate_on_save = True


class Application(Document):
    user_id: PydanticObjectId
    recruiter_id: PydanticObjectId
    job_id: PydanticObjectId
    status: ApplicationStatus = ApplicationStatus.APPLIED
    date_of_application: datetime = Field(default_factory=datetime.utcnow)
    date_of_joining: Optional[datetime] = None
    sop: Optional[str] = None

    @field_validator("date_of_joining")
    @classmethod
    def _to_naive(cls, v):
        return naive_utc(v)

    @field_validator("sop")
    @classmethod
    def _sop_words(cls, v):
        if v and len(v.split()) > MAX_SOP_WORDS:
            raise ValueError(f"Statement of purpose should not be greater than {MAX_SOP_WORDS} words")
        return v

    class Settings:
        name = "applications"


class Rating(Document):
    category: RatingCategory
    receiver_id: PydanticObjectId
    sender_id: PydanticObjectId
    rating: float = Field(ge=0.0, le=5.0)

    class Settings:
        name = "ratings"
        validate_on_save = True


class Plan(Document):
    user_id: PydanticObjectId
    user_type: UserType
    order_id: Optional[str] = None
    plan: PlanTier = PlanTier.FREE
    amount: int = 0
    expireon: Optional[datetime] = None
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_id: str = ""
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "plans"


DOCUMENT_MODELS = [User, RecruiterProfile, ApplicantProfile, Job, Application, Rating, Plan]

PROFILE_MODELS = {
    UserType.RECRUITER: RecruiterProfile,
    UserType.APPLICANT: ApplicantProfile,
}


async def get_profile(user_id, user_type: UserType):
    """Return the recruiter or applicant profile belonging to ``user_id``."""
    model = PROFILE_MODELS[UserType(user_type)]
    return await model.find_one({"user_id": user_id})
