# jobboard/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from jobboard.api.v1.applications import router as applications_router
from jobboard.api.v1.auth import router as auth_router
from jobboard.api.v1.jobs import router as jobs_router
from jobboard.api.v1.plans import router as plans_router
from jobboard.api.v1.ratings import router as ratings_router
from jobboard.api.v1.uploads import router as uploads_router
from jobboard.api.v1.users import router as users_router
from jobboard.core.config import settings
from jobboard.db.mongo import close_db, init_db

logger = logging.getLogger(__name__)

app = FastAPI(title="Job Board API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.ALLOWED_ORIGINS.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(jobs_router)
app.include_router(applications_router)
app.include_router(users_router)
app.include_router(ratings_router)
app.include_router(plans_router)
app.include_router(uploads_router)


@app.exception_handler(ValidationError)
async def document_validation_error(request: Request, exc: ValidationError):
    # raised when building/saving documents, after request parsing succeeded
    return JSONResponse(
        status_code=400,
        content={"detail": exc.errors(include_url=False, include_context=False, include_input=False)},
    )


@app.on_event("startup")
async def startup_event():
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    await init_db()


@app.on_event("shutdown")
async def shutdown_event():
    close_db()
