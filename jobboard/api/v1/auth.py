# jobboard/api/v1/auth.py
import logging

from fastapi import APIRouter, HTTPException, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from bson.errors import InvalidId
from jose import JWTError
from pydantic import ValidationError

from jobboard.api.v1.schemas import LoginIn, MessageOut, SignupIn, TokenOut
from jobboard.core.config import settings
from jobboard.core.security import (
    VERIFY_PURPOSE,
    create_access_token,
    create_verification_token,
    decode_token,
    hash_password,
    verify_password,
)
from jobboard.db.documents import ApplicantProfile, RecruiterProfile, User, UserType
from jobboard.services import email_templates, mailer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _build_profile(user: User, payload: SignupIn):
    if user.type == UserType.RECRUITER:
        if not payload.company_name:
            raise HTTPException(status_code=400, detail="company_name is required for recruiters")
        return RecruiterProfile(
            user_id=user.id,
            company_name=payload.company_name,
            contact_number=payload.contact_number,
            bio=payload.bio,
        )
    if not payload.name:
        raise HTTPException(status_code=400, detail="name is required for applicants")
    return ApplicantProfile(
        user_id=user.id,
        name=payload.name,
        education=payload.education,
        skills=payload.skills,
        resume=payload.resume,
        profile=payload.profile,
    )


@router.post("/signup", status_code=201, response_model=MessageOut)
async def signup(payload: SignupIn):
    if len(payload.password) < settings.MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters.",
        )
    if await User.find_one({"email": payload.email}):
        raise HTTPException(
            status_code=400,
            detail="The email address you have entered is already associated with another account.",
        )

    token = create_verification_token(payload.email)
    user = User(
        email=payload.email,
        password=hash_password(payload.password),
        type=payload.type,
        verification_token=token,
    )
    # validate the profile before anything is written
    profile = _build_profile(user, payload)
    await user.insert()
    profile.user_id = user.id
    try:
        await profile.insert()
    except Exception:
        await user.delete()
        raise

    display_name = payload.company_name if user.type == UserType.RECRUITER else payload.name
    subject, html = email_templates.welcome_email(display_name, token)
    if not await mailer.send_email(user.email, subject, html):
        logger.warning("Verification e-mail to %s could not be sent", user.email)
    logger.info("New %s signed up: %s", user.type.value, user.email)
    return {"message": "User registered. Verification email sent."}


@router.get("/verify/{token}", response_model=MessageOut)
async def verify_email(token: str):
    try:
        claims = decode_token(token)
    except JWTError:
        raise HTTPException(status_code=400, detail="Invalid or expired verification link")
    if claims.get("purpose") != VERIFY_PURPOSE:
        raise HTTPException(status_code=400, detail="Invalid or expired verification link")

    user = await User.find_one({"email": claims.get("email")})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if user.is_verified:
        return {"message": "Email already verified"}
    if user.verification_token != token:
        raise HTTPException(status_code=404, detail="Token mismatch")

    user.is_verified = True
    user.verification_token = None
    await user.save()
    return {"message": "Email verified successfully"}


@router.post("/login", response_model=TokenOut)
async def login(payload: LoginIn):
    user = await User.find_one({"email": payload.email})
    if not user or not verify_password(payload.password, user.password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not user.is_verified:
        raise HTTPException(
            status_code=401,
            detail="Please verify yourself by the verification email sent to you.",
        )
    return {"token": create_access_token(str(user.id)), "type": user.type}


# Dependencies: current user and role capabilities
security = HTTPBearer()

async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)) -> User:
    try:
        claims = decode_token(credentials.credentials)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    sub = claims.get("sub")
    if not sub:
        raise HTTPException(status_code=401, detail="Invalid token")
    try:
        user = await User.get(sub)
    except (ValidationError, InvalidId):
        # sub is not an ObjectId
        raise HTTPException(status_code=401, detail="Invalid token")
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user


def require_role(role: UserType, detail: str):
    async def _dependency(user: User = Depends(get_current_user)) -> User:
        if user.type != role:
            raise HTTPException(status_code=401, detail=detail)
        return user
    return _dependency


require_recruiter = require_role(UserType.RECRUITER, "Only recruiters can do this")
require_applicant = require_role(UserType.APPLICANT, "Only applicants can do this")
