"""
Email verification: one-time code issuance, redemption and token checks.

Flow:
    request_code()  -> stores a 6-digit code for sha256(email) and mails it
    verify_code()   -> redeems the code and returns a signed token
    is_token_valid() / email_of() -> stateless checks used by other routes

Limits:
    * one issuance per email and per IP within RATE_LIMIT_MINUTES
    * MAX_ATTEMPTS guesses per code, claimed atomically before comparing;
      after that the code is dead
    * IP_MAX_VERIFY_ATTEMPTS failed redemptions per IP across all emails
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import Settings
from core.errors import ErrorKind, Ok, Result, err
from core.mailer import MailDeliveryError, Mailer
from core.rate_limit import RateLimiter
from core.security import (
    CODE_PATTERN,
    InvalidTokenError,
    TokenSigner,
    codes_match,
    generate_code,
    hash_email,
    is_valid_email,
    normalize_email,
)
from crud import verification_crud
from models.verification import VerificationCode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CodeIssued:
    expires_in: int


@dataclass(frozen=True)
class CodeVerified:
    token: str
    email: str
    expires_in: int


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


class VerificationService:
    def __init__(
        self,
        settings: Settings,
        mailer: Mailer,
        limiter: RateLimiter,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.settings = settings
        self.mailer = mailer
        self.limiter = limiter
        self.clock = clock
        self.signer = TokenSigner(
            settings.JWT_SECRET,
            timedelta(hours=settings.TOKEN_EXPIRY_HOURS),
            algorithm=settings.JWT_ALGORITHM,
            clock=clock,
        )

    @property
    def cooldown(self) -> timedelta:
        return timedelta(minutes=self.settings.RATE_LIMIT_MINUTES)

    @property
    def ip_attempt_window(self) -> timedelta:
        return timedelta(minutes=self.settings.IP_ATTEMPT_WINDOW_MINUTES)

    def request_code(self, db: Session, email: str, source_ip: str) -> Result[CodeIssued]:
        email = normalize_email(email)
        if not is_valid_email(email):
            return err(ErrorKind.INVALID_INPUT, "Invalid email address format")

        wait = self.limiter.retry_after(f"code:email:{email}", self.cooldown)
        if wait:
            return err(
                ErrorKind.RATE_LIMITED,
                f"Too many requests for this email. Please wait {self.settings.RATE_LIMIT_MINUTES} "
                "minute(s) before requesting another code.",
                retry_after=wait,
            )
        wait = self.limiter.retry_after(f"code:ip:{source_ip}", self.cooldown)
        if wait:
            return err(
                ErrorKind.RATE_LIMITED,
                f"Too many requests from this IP. Please wait {self.settings.RATE_LIMIT_MINUTES} "
                "minute(s) before requesting another code.",
                retry_after=wait,
            )

        email_hash = hash_email(email)
        now = self.clock()
        try:
            verification_crud.delete_expired(db, email_hash, now)
            # Two requests racing past the cooldown can still both insert. find_active
            # only ever returns the newest, and redeeming or exhausting a code retires
            # its siblings, so at most one code per email can be spent.
            code = verification_crud.replace_active(
                db,
                VerificationCode(
                    email_hash=email_hash,
                    code=generate_code(),
                    created_at=now,
                    expires_at=now + timedelta(minutes=self.settings.CODE_EXPIRY_MINUTES),
                    attempts=0,
                    max_attempts=self.settings.MAX_ATTEMPTS,
                    verified=False,
                    ip_address=source_ip,
                ),
                now,
            )
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Failed to store verification code")
            return err(ErrorKind.UNAVAILABLE, "Verification service temporarily unavailable. Please try again later.")

        try:
            self.mailer.send_code(email, code.code)
        except MailDeliveryError:
            # Remove the undelivered code so no partial state survives
            try:
                verification_crud.delete_code(db, code.id)
            except SQLAlchemyError:
                db.rollback()
                logger.exception("Failed to remove undelivered verification code")
            return err(ErrorKind.UNAVAILABLE, "Email service temporarily unavailable. Please try again later.")

        self.limiter.record(f"code:email:{email}")
        self.limiter.record(f"code:ip:{source_ip}")
        logger.info("Verification code issued for %s...", email_hash[:12])
        return Ok(CodeIssued(expires_in=self.settings.CODE_EXPIRY_MINUTES * 60))

    def verify_code(self, db: Session, email: str, code: str, source_ip: str) -> Result[CodeVerified]:
        email = normalize_email(email)
        ip_key = f"verify:ip:{source_ip}"

        if self.limiter.failures(ip_key, self.ip_attempt_window) >= self.settings.IP_MAX_VERIFY_ATTEMPTS:
            return err(
                ErrorKind.RATE_LIMITED,
                "Too many verification attempts from this IP. Please try again later.",
                retry_after=int(self.ip_attempt_window.total_seconds()),
            )
        if not is_valid_email(email):
            return err(ErrorKind.INVALID_INPUT, "Invalid email address format")
        if not CODE_PATTERN.match(code or ""):
            return err(ErrorKind.INVALID_INPUT, "Verification code must be 6 digits")

        email_hash = hash_email(email)
        now = self.clock()
        try:
            record = verification_crud.find_active(db, email_hash, now)
            if record is None:
                self.limiter.add_failure(ip_key)
                if verification_crud.has_expired_code(db, email_hash, now):
                    verification_crud.delete_expired(db, email_hash, now)
                    return err(ErrorKind.EXPIRED, "Verification code has expired. Please request a new code.")
                return err(
                    ErrorKind.NOT_FOUND,
                    "Verification code has expired or does not exist. Please request a new code.",
                )

            code_id, stored_code, max_attempts = record.id, record.code, record.max_attempts
            if _as_utc(record.expires_at) <= now:
                verification_crud.delete_code(db, code_id)
                self.limiter.add_failure(ip_key)
                return err(ErrorKind.EXPIRED, "Verification code has expired. Please request a new code.")

            # The guess is paid for before the comparison
            attempts = verification_crud.claim_attempt(db, code_id)
            if attempts is None:
                verification_crud.delete_active(db, email_hash, now)
                self.limiter.add_failure(ip_key)
                logger.info("Verification code for %s... exhausted its attempts", email_hash[:12])
                return err(
                    ErrorKind.TOO_MANY_ATTEMPTS,
                    "Too many failed attempts. Please request a new verification code.",
                )

            if not codes_match(stored_code, code):
                self.limiter.add_failure(ip_key)
                remaining = max_attempts - attempts
                return err(
                    ErrorKind.INVALID_CODE,
                    f"Invalid verification code. {remaining} attempts remaining.",
                    remainingAttempts=remaining,
                )

            if not verification_crud.mark_verified(db, code_id, email_hash, now):
                self.limiter.add_failure(ip_key)
                return err(
                    ErrorKind.NOT_FOUND,
                    "Verification code has expired or does not exist. Please request a new code.",
                )
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Verification store failure")
            return err(ErrorKind.UNAVAILABLE, "Verification service temporarily unavailable. Please try again later.")

        self.limiter.clear_failures(ip_key)
        logger.info("Email verified for %s...", email_hash[:12])
        return Ok(
            CodeVerified(
                token=self.signer.issue(email),
                email=email,
                expires_in=self.signer.lifetime_seconds,
            )
        )

    def is_token_valid(self, token: str) -> bool:
        return self.signer.is_valid(token)

    def email_of(self, token: str) -> Result[str]:
        try:
            return Ok(self.signer.email_of(token))
        except InvalidTokenError as exc:
            return err(ErrorKind.INVALID_TOKEN, str(exc))

    def is_mail_healthy(self) -> bool:
        return self.mailer.is_healthy()
