# jobboard/api/v1/schemas.py
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field, model_validator
from typing import List, Optional

from beanie import PydanticObjectId

from jobboard.db.documents import (
    ApplicationStatus,
    Education,
    JobType,
    PaymentStatus,
    PlanTier,
    UserType,
)


class MessageOut(BaseModel):
    message: str


# auth

class SignupIn(BaseModel):
    email: EmailStr
    password: str
    type: UserType
    # recruiter profile
    company_name: Optional[str] = None
    contact_number: Optional[str] = None
    bio: Optional[str] = None
    # applicant profile
    name: Optional[str] = None
    education: List[Education] = Field(default_factory=list)
    skills: List[str] = Field(default_factory=list)
    resume: Optional[str] = None
    profile: Optional[str] = None


class LoginIn(BaseModel):
    email: EmailStr
    password: str


class TokenOut(BaseModel):
    token: str
    type: UserType


# jobs

class JobCreate(BaseModel):
    title: str
    max_applicants: int
    max_positions: int
    deadline: Optional[datetime] = None
    skillsets: List[str] = Field(default_factory=list)
    job_type: JobType
    duration: int = 0
    salary: int = 0


class JobUpdate(BaseModel):
    max_applicants: Optional[int] = None
    max_positions: Optional[int] = None
    deadline: Optional[datetime] = None


# users

class ProfileUpdate(BaseModel):
    company_name: Optional[str] = None
    contact_number: Optional[str] = None
    bio: Optional[str] = None
    name: Optional[str] = None
    education: Optional[List[Education]] = None
    skills: Optional[List[str]] = None
    resume: Optional[str] = None
    profile: Optional[str] = None


# applications

class ApplyIn(BaseModel):
    sop: Optional[str] = None


class StatusUpdate(BaseModel):
    status: ApplicationStatus
    date_of_joining: Optional[datetime] = None


# ratings

class RatingIn(BaseModel):
    rating: float = Field(ge=0, le=5)
    applicant_id: Optional[PydanticObjectId] = None
    job_id: Optional[PydanticObjectId] = None

    @model_validator(mode="after")
    def _one_receiver(self):
        if (self.applicant_id is None) == (self.job_id is None):
            raise ValueError("exactly one of applicant_id or job_id is required")
        return self


class RatingOut(BaseModel):
    rating: float


# plans

class PurchaseIn(BaseModel):
    plan: PlanTier


class OrderOut(BaseModel):
    order_id: str
    order_amount: int


class VerifyPaymentIn(BaseModel):
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str


class UpdatePlanIn(BaseModel):
    plan: PlanTier
    payment_status: PaymentStatus
    payment_id: str = ""
    order_id: Optional[str] = None


class UpdatePremiumIn(BaseModel):
    user_id: PydanticObjectId
    user_type: UserType
    payment_status: PaymentStatus


# uploads

class UploadOut(BaseModel):
    message: str
    url: str
