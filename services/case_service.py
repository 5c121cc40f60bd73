import logging
import math
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import Settings
from core.errors import ErrorKind, Ok, Result, err
from core.rate_limit import RateLimiter
from core.security import is_valid_email, normalize_email
from crud import case_crud
from models.case import Case
from schemas.case_schema import CaseReport

logger = logging.getLogger(__name__)

SEARCH_FIELDS = ("name", "email", "phone", "company", "actions", "all")
SEARCH_EXAMPLES = {
    "name": "/search?filter=name&value=John",
    "email": "/search?filter=email&value=john@scammer.com",
    "phone": "/search?filter=phone&value=+1234567890",
    "company": "/search?filter=company&value=Microsoft",
    "actions": "/search?filter=actions&value=Tech Support",
    "all": "/search?filter=all&value=scammer",
}
MIN_DESCRIPTION = 20
MAX_PAGE_SIZE = 50
DEFAULT_PAGE_SIZE = 10


@dataclass(frozen=True)
class Page:
    items: list
    page: int
    size: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.size) if self.size else 0


def clamp_page(page: int, size: int) -> tuple[int, int]:
    if size > MAX_PAGE_SIZE:
        size = MAX_PAGE_SIZE
    if size < 1:
        size = DEFAULT_PAGE_SIZE
    return max(page, 0), size


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def case_fields(report: CaseReport) -> dict:
    email = _clean(report.email)
    return {
        "name": _clean(report.name),
        "email": email.lower() if email else None,
        "phone": _clean(report.phone),
        "company": _clean(report.company),
        "actions": _clean(report.actions),
        "description": _clean(report.description),
    }


def validation_errors(report: CaseReport) -> list[str]:
    fields = case_fields(report)
    errors = []
    if not (fields["name"] or fields["email"] or fields["phone"]):
        errors.append("At least one contact method (name, email, or phone) is required")
    if not fields["actions"]:
        errors.append("Scam type is required")
    if not fields["description"] or len(fields["description"]) < MIN_DESCRIPTION:
        errors.append(f"Description must be at least {MIN_DESCRIPTION} characters long")
    if not _clean(report.reporter_name):
        errors.append("Reporter name is required")
    reporter_email = normalize_email(report.reporter_email)
    if not reporter_email:
        errors.append("Reporter email is required")
    elif not is_valid_email(reporter_email):
        errors.append("Invalid reporter email format")
    if fields["email"] and not is_valid_email(fields["email"]):
        errors.append("Invalid scammer email format")
    return errors


class CaseService:
    def __init__(self, settings: Settings, limiter: RateLimiter) -> None:
        self.settings = settings
        self.limiter = limiter

    def _check_submission_limits(self, email: str, ip: str):
        s = self.settings
        wait = self.limiter.retry_after(f"submit:email:{email}", timedelta(minutes=s.SUBMISSION_COOLDOWN_MINUTES))
        if wait:
            return err(
                ErrorKind.RATE_LIMITED,
                f"Please wait {s.SUBMISSION_COOLDOWN_MINUTES} minutes between case submissions",
                retry_after=wait,
            )
        if self.limiter.daily_count(f"submit:email:{email}") >= s.MAX_SUBMISSIONS_PER_EMAIL_PER_DAY:
            return err(ErrorKind.RATE_LIMITED, "Daily submission limit reached for this email address")
        if self.limiter.daily_count(f"submit:ip:{ip}") >= s.MAX_SUBMISSIONS_PER_IP_PER_DAY:
            return err(ErrorKind.RATE_LIMITED, "Too many submissions from this IP address. Please try again later.")
        return None

    def validate(self, db: Session, report: CaseReport) -> list[str]:
        errors = validation_errors(report)
        if not errors:
            f = case_fields(report)
            if case_crud.find_duplicate(db, f["email"], f["phone"], f["name"], f["company"]):
                errors.append("A similar case may already exist in the database")
        return errors

    def submit(self, db: Session, report: CaseReport, verified_email: str, ip: str) -> Result[Case]:
        verified_email = normalize_email(verified_email)
        if normalize_email(report.reporter_email) != verified_email:
            return err(ErrorKind.INVALID_INPUT, "Reporter email does not match verified email")

        errors = validation_errors(report)
        if errors:
            return err(ErrorKind.INVALID_INPUT, errors[0], errors=errors)

        limited = self._check_submission_limits(verified_email, ip)
        if limited:
            return limited

        fields = case_fields(report)
        try:
            if case_crud.find_duplicate(db, fields["email"], fields["phone"], fields["name"], fields["company"]):
                return err(ErrorKind.DUPLICATE_CASE, "A similar case already exists in our database")
            case = case_crud.create_case(db, fields, reported_by=verified_email)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Failed to store case submission")
            return err(ErrorKind.UNAVAILABLE, "Case submission is temporarily unavailable. Please try again later.")

        self.limiter.record(f"submit:email:{verified_email}")
        self.limiter.record(f"submit:ip:{ip}")
        logger.info("Case %s submitted", case.id)
        return Ok(case)

    def update(self, db: Session, case_id: int, report: CaseReport) -> Result[Case]:
        fields = case_fields(report)
        if not (fields["name"] or fields["email"] or fields["phone"]):
            return err(ErrorKind.INVALID_INPUT, "At least one contact method (name, email, or phone) is required")
        if fields["email"] and not is_valid_email(fields["email"]):
            return err(ErrorKind.INVALID_INPUT, "Invalid scammer email format")
        case = case_crud.update_case(db, case_id, fields)
        if not case:
            return err(ErrorKind.NOT_FOUND, "Case not found", caseId=case_id)
        return Ok(case)

    def delete(self, db: Session, case_id: int) -> Result[int]:
        if not case_crud.delete_case(db, case_id):
            return err(ErrorKind.NOT_FOUND, "Case not found", caseId=case_id)
        logger.info("Case %s deleted", case_id)
        return Ok(case_id)

    def recent(self, db: Session, page: int, size: int) -> Page:
        page, size = clamp_page(page, size)
        items, total = case_crud.list_recent(db, page, size)
        return Page(items=items, page=page, size=size, total=total)

    def search(self, db: Session, field: str, value: str, page: int, size: int) -> Result[Page]:
        field = (field or "").strip().lower()
        if field not in SEARCH_FIELDS:
            return err(
                ErrorKind.INVALID_INPUT,
                f"Unsupported filter: {field}. Supported filters: {', '.join(SEARCH_FIELDS)}",
            )
        value = (value or "").strip()
        if not value:
            return err(ErrorKind.INVALID_INPUT, "Search value cannot be empty")
        if field == "email" and not is_valid_email(value.lower()):
            return err(ErrorKind.INVALID_INPUT, f"Invalid email format: {value}")
        page, size = clamp_page(page, size)
        items, total = case_crud.search_cases(db, field, value, page, size)
        return Ok(Page(items=items, page=page, size=size, total=total))

    def categories(self, db: Session) -> list[str]:
        return case_crud.list_actions(db)
