"""
HTML e-mail rendering.

Templates live in jobboard/templates/email and extend base.html.
Each builder returns a (subject, html) pair ready for mailer.send_email.
"""
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple

from jinja2 import Environment, FileSystemLoader, select_autoescape

from jobboard.core.config import settings
from jobboard.db.documents import ApplicationStatus

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
)

STATUS_SUBJECTS = {
    ApplicationStatus.ACCEPTED: 'Your application for "{job}" at "{company}" has been accepted',
    ApplicationStatus.SHORTLISTED: 'You are shortlisted for "{job}" application at "{company}".',
    ApplicationStatus.REJECTED: 'Your application for "{job}" at "{company}" has been rejected',
    ApplicationStatus.FINISHED: 'Job "{job}" at "{company}" has been completed',
    ApplicationStatus.CANCELLED: 'Job "{job}" at "{company}" has been cancelled',
    ApplicationStatus.DELETED: '"{company}" has deleted the Job',
}


def _link(path: str) -> str:
    return f"{settings.HOST.rstrip('/')}/{path.lstrip('/')}"


def render(template_name: str, **context) -> str:
    template = _env.get_template(template_name)
    return template.render(brand=settings.MAIL_FROM_NAME, **context)


def welcome_email(name: str, verification_token: str) -> Tuple[str, str]:
    html = render(
        "welcome.html",
        name=name,
        verification_link=_link(f"verify/{verification_token}"),
    )
    return "Email Verification", html


def status_email(
    status: ApplicationStatus,
    job_title: str,
    company_name: str,
    date_of_joining: Optional[datetime] = None,
) -> Tuple[str, str]:
    """Subject and body for an application status change. Raises KeyError for 'applied'."""
    status = ApplicationStatus(status)
    subject = STATUS_SUBJECTS[status].format(job=job_title, company=company_name)
    html = render(
        f"application_{status.value}.html",
        job_title=job_title,
        company_name=company_name,
        date_of_joining=date_of_joining,
        applications_url=_link("applications"),
        jobs_url=_link("home"),
    )
    return subject, html
