from datetime import datetime

from sqlalchemy import desc, func, update
from sqlalchemy.orm import Session

from models.verification import VerificationCode


def _active(db: Session, email_hash: str, now: datetime):
    return db.query(VerificationCode).filter(
        VerificationCode.email_hash == email_hash,
        VerificationCode.expires_at > now,
        VerificationCode.verified.is_(False),
    )


def save_code(db: Session, code: VerificationCode):
    db.add(code)
    db.commit()
    db.refresh(code)
    return code


def replace_active(db: Session, code: VerificationCode, now: datetime):
    """Drop every active code for the hash and store ``code`` in one transaction."""
    try:
        _active(db, code.email_hash, now).delete(synchronize_session=False)
        db.add(code)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(code)
    return code


def find_active(db: Session, email_hash: str, now: datetime):
    """Newest code for ``email_hash`` that is unexpired and not yet verified."""
    return (
        _active(db, email_hash, now)
        .order_by(desc(VerificationCode.created_at), desc(VerificationCode.id))
        .first()
    )


def has_expired_code(db: Session, email_hash: str, now: datetime) -> bool:
    return (
        db.query(VerificationCode.id)
        .filter(
            VerificationCode.email_hash == email_hash,
            VerificationCode.expires_at <= now,
            VerificationCode.verified.is_(False),
        )
        .first()
        is not None
    )


def claim_attempt(db: Session, code_id: int) -> int | None:
    """Spend one guess on a code before it is compared.

    Returns the attempt count after the increment, or None when the code has
    no attempts left (or is gone). The guarded UPDATE makes concurrent guesses
    queue on the row, so no more than ``max_attempts`` are ever granted.
    """
    try:
        res = db.execute(
            update(VerificationCode)
            .where(
                VerificationCode.id == code_id,
                VerificationCode.verified.is_(False),
                VerificationCode.attempts < VerificationCode.max_attempts,
            )
            .values(attempts=VerificationCode.attempts + 1)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount == 0:
            db.rollback()
            return None
        attempts = db.query(VerificationCode.attempts).filter(VerificationCode.id == code_id).scalar()
        db.commit()
    except Exception:
        db.rollback()
        raise
    return attempts


def mark_verified(db: Session, code_id: int, email_hash: str, now: datetime) -> bool:
    """Redeem a code once. Other active codes for the same hash are retired with it."""
    try:
        res = db.execute(
            update(VerificationCode)
            .where(VerificationCode.id == code_id, VerificationCode.verified.is_(False))
            .values(verified=True, verified_at=now)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount == 0:
            db.rollback()
            return False
        _active(db, email_hash, now).filter(VerificationCode.id != code_id).delete(synchronize_session=False)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return True


def delete_expired(db: Session, email_hash: str, now: datetime) -> int:
    n = (
        db.query(VerificationCode)
        .filter(VerificationCode.email_hash == email_hash, VerificationCode.expires_at <= now)
        .delete(synchronize_session=False)
    )
    db.commit()
    return n


def delete_active(db: Session, email_hash: str, now: datetime) -> int:
    n = _active(db, email_hash, now).delete(synchronize_session=False)
    db.commit()
    return n


def delete_code(db: Session, code_id: int) -> None:
    db.query(VerificationCode).filter(VerificationCode.id == code_id).delete(synchronize_session=False)
    db.commit()


def count_recent_by_email_hash(db: Session, email_hash: str, since: datetime) -> int:
    return (
        db.query(func.count(VerificationCode.id))
        .filter(VerificationCode.email_hash == email_hash, VerificationCode.created_at > since)
        .scalar()
    )


def count_recent_by_ip(db: Session, ip_address: str, since: datetime) -> int:
    return (
        db.query(func.count(VerificationCode.id))
        .filter(VerificationCode.ip_address == ip_address, VerificationCode.created_at > since)
        .scalar()
    )
