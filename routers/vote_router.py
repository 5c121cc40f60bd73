from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from core.auth import client_ip, get_optional_verified_email, require_admin
from core.config import settings
from core.database import get_db
from core.dependencies import get_vote_service
from core.errors import ErrorKind, ServiceError, err, http_error, unwrap
from core.retry import retry_read
from core.security import normalize_email
from crud.case_crud import get_case
from schemas.case_schema import CasePage
from schemas.vote_schema import ResetVotesResponse, VerdictResponse, VerdictSummary, VoteRequest, VoteResponse
from services.vote_service import VoteService, email_identity, ip_identity, parse_choice

router = APIRouter(prefix=f"{settings.API_PREFIX}/case", tags=["Votes"])
cases_router = APIRouter(prefix=f"{settings.API_PREFIX}/cases", tags=["Votes"])


@router.post("/{case_id}/vote", response_model=VoteResponse, response_model_by_alias=True)
def cast_vote(
    case_id: int,
    payload: VoteRequest,
    request: Request,
    db: Session = Depends(get_db),
    verified_email: Optional[str] = Depends(get_optional_verified_email),
    votes: VoteService = Depends(get_vote_service),
):
    """
    Cast a guilty / not_guilty vote. A bearer token from /verification/verify
    votes as the verified email; without one the vote is keyed on the client IP.
    """
    body_email = normalize_email(payload.email) if payload.email else None
    if verified_email:
        if body_email and body_email != verified_email:
            raise http_error(
                ServiceError(ErrorKind.INVALID_INPUT, "Email in request does not match verified email")
            )
        identity = email_identity(verified_email)
    elif body_email:
        raise http_error(
            ServiceError(
                ErrorKind.VERIFICATION_REQUIRED,
                "Email verification required. Please verify your email address to vote.",
                extra={"requiresVerification": True},
            )
        )
    else:
        identity = ip_identity(client_ip(request))

    case = unwrap(votes.cast_vote(db, case_id, payload.vote, identity, verified_email is not None))
    return VoteResponse(
        case_id=case_id,
        vote=parse_choice(payload.vote),
        verification_method="email" if verified_email else "ip",
        verdict=VerdictSummary.from_case(case),
    )


@router.get("/{case_id}/verdict", response_model=VerdictResponse, response_model_by_alias=True)
def read_verdict(case_id: int, db: Session = Depends(get_db)):
    case = retry_read(lambda: get_case(db, case_id), db=db)
    if not case:
        unwrap(err(ErrorKind.NOT_FOUND, "Case not found", caseId=case_id))
    return VerdictResponse(case_id=case_id, verdict=VerdictSummary.from_case(case))


@router.post(
    "/{case_id}/reset-votes",
    response_model=ResetVotesResponse,
    response_model_by_alias=True,
    dependencies=[Depends(require_admin)],
)
def reset_votes(case_id: int, db: Session = Depends(get_db), votes: VoteService = Depends(get_vote_service)):
    case = unwrap(votes.reset_votes(db, case_id))
    return ResetVotesResponse(case_id=case_id, verdict=VerdictSummary.from_case(case))


@cases_router.get("/top-voted", response_model=CasePage, response_model_by_alias=True)
def top_voted(page: int = 0, size: int = 10, db: Session = Depends(get_db), votes: VoteService = Depends(get_vote_service)):
    result = retry_read(lambda: votes.top_voted(db, page, size), db=db)
    return CasePage.from_page(result, message="Cases with most votes (highest community engagement)")


@cases_router.get("/needs-votes", response_model=CasePage, response_model_by_alias=True)
def needs_votes(page: int = 0, size: int = 10, db: Session = Depends(get_db), votes: VoteService = Depends(get_vote_service)):
    result = retry_read(lambda: votes.needs_votes(db, page, size), db=db)
    return CasePage.from_page(result, message="Cases that need more community votes")
