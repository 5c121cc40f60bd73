from datetime import datetime

from sqlalchemy import update
from sqlalchemy.orm import Session

from models.case import Case
from models.vote import Vote, VoteChoice


def has_voted(db: Session, voter_identity: str, case_id: int) -> bool:
    return (
        db.query(Vote.id)
        .filter(Vote.voter_identity == voter_identity, Vote.case_id == case_id)
        .first()
        is not None
    )


def record_vote(db: Session, case_id: int, voter_identity: str, choice: VoteChoice, now: datetime) -> bool:
    """Increment the case tally and insert the ledger row in one transaction.

    The tally UPDATE runs first so the row lock is taken before the insert.
    Returns False when the case does not exist. An IntegrityError from the
    unique (voter_identity, case_id) index propagates after rollback, leaving
    the tally untouched.
    """
    if choice == VoteChoice.GUILTY:
        deltas = {"guilty_votes": Case.guilty_votes + 1, "verdict_score": Case.verdict_score + 1}
    else:
        deltas = {"not_guilty_votes": Case.not_guilty_votes + 1, "verdict_score": Case.verdict_score - 1}

    try:
        res = db.execute(
            update(Case)
            .where(Case.id == case_id)
            .values(total_votes=Case.total_votes + 1, last_voted_at=now, **deltas)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount == 0:
            db.rollback()
            return False
        db.add(Vote(voter_identity=voter_identity, case_id=case_id, choice=choice, cast_at=now))
        db.flush()
        db.commit()
    except Exception:
        db.rollback()
        raise
    return True


def delete_votes_for_case(db: Session, case_id: int) -> int:
    return db.query(Vote).filter(Vote.case_id == case_id).delete(synchronize_session=False)
