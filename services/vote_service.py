"""
Vote ledger: at most one vote per (voter identity, case) and the case tally.

Voter identities are "email:<addr>" for verified voters and "ip:<addr>" for
the anonymous fallback. Both share one ledger table and one duplicate check;
the unique index on (voter_identity, case_id) settles concurrent duplicates.
"""

import logging
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from core.errors import ErrorKind, Ok, Result, err
from crud import case_crud, vote_crud
from models.case import Case
from models.vote import VoteChoice
from services.case_service import Page, clamp_page

logger = logging.getLogger(__name__)

EMAIL_PREFIX = "email:"
IP_PREFIX = "ip:"
# Cases below this many votes are listed as needing community input
NEEDS_VOTES_THRESHOLD = 5


def email_identity(email: str) -> str:
    return EMAIL_PREFIX + email.strip().lower()


def ip_identity(ip: str) -> str:
    return IP_PREFIX + (ip or "unknown")


def parse_choice(value) -> VoteChoice | None:
    if isinstance(value, VoteChoice):
        return value
    try:
        return VoteChoice(str(value).strip().lower())
    except ValueError:
        return None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VoteService:
    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self.clock = clock

    def cast_vote(
        self,
        db: Session,
        case_id: int,
        choice,
        voter_identity: str,
        is_email_verified: bool,
    ) -> Result[Case]:
        parsed = parse_choice(choice)
        if parsed is None:
            return err(ErrorKind.INVALID_INPUT, "Invalid vote. Must be 'guilty' or 'not_guilty'")

        try:
            recorded = vote_crud.record_vote(db, case_id, voter_identity, parsed, self.clock())
        except IntegrityError:
            if is_email_verified:
                message = "You have already voted on this case with this email address."
            else:
                message = "This IP address has already voted on this case."
            return err(ErrorKind.DUPLICATE_VOTE, message)
        except SQLAlchemyError:
            logger.exception("Failed to record vote on case %s", case_id)
            return err(ErrorKind.UNAVAILABLE, "Voting is temporarily unavailable. Please try again later.")

        if not recorded:
            return err(ErrorKind.NOT_FOUND, "Case not found", caseId=case_id)

        case = case_crud.get_case(db, case_id)
        logger.info(
            "Vote %s recorded on case %s via %s",
            parsed.value,
            case_id,
            "email" if is_email_verified else "ip",
        )
        return Ok(case)

    def reset_votes(self, db: Session, case_id: int) -> Result[Case]:
        try:
            case = case_crud.get_case(db, case_id)
            if not case:
                return err(ErrorKind.NOT_FOUND, "Case not found", caseId=case_id)
            case_crud.reset_tallies(db, case)
            removed = vote_crud.delete_votes_for_case(db, case_id)
            db.commit()
            db.refresh(case)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Failed to reset votes on case %s", case_id)
            return err(ErrorKind.UNAVAILABLE, "Voting is temporarily unavailable. Please try again later.")
        logger.info("Reset votes on case %s (%d ledger rows removed)", case_id, removed)
        return Ok(case)

    def has_voted(self, db: Session, voter_identity: str, case_id: int) -> bool:
        return vote_crud.has_voted(db, voter_identity, case_id)

    def top_voted(self, db: Session, page: int, size: int) -> Page:
        page, size = clamp_page(page, size)
        items, total = case_crud.list_top_voted(db, page, size)
        return Page(items=items, page=page, size=size, total=total)

    def needs_votes(self, db: Session, page: int, size: int) -> Page:
        page, size = clamp_page(page, size)
        items, total = case_crud.list_needing_votes(db, NEEDS_VOTES_THRESHOLD, page, size)
        return Page(items=items, page=page, size=size, total=total)
