import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.auth import extract_bearer_token, client_ip
from core.config import settings
from core.database import get_db
from core.dependencies import get_verification_service
from core.errors import Ok, unwrap
from schemas.verification_schema import (
    HealthResponse,
    VerificationRequest,
    VerificationRequestResponse,
    VerificationStatusResponse,
    VerificationTokenResponse,
    VerificationVerify,
)
from services.verification_service import VerificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix=f"{settings.API_PREFIX}/verification", tags=["Verification"])


@router.post("/request", response_model=VerificationRequestResponse, response_model_by_alias=True)
def request_code(
    payload: VerificationRequest,
    request: Request,
    db: Session = Depends(get_db),
    verification: VerificationService = Depends(get_verification_service),
):
    issued = unwrap(verification.request_code(db, payload.email, client_ip(request)))
    return VerificationRequestResponse(expires_in=issued.expires_in)


@router.post("/resend", response_model=VerificationRequestResponse, response_model_by_alias=True)
def resend_code(
    payload: VerificationRequest,
    request: Request,
    db: Session = Depends(get_db),
    verification: VerificationService = Depends(get_verification_service),
):
    """Same policy as /request; the cooldown applies to both."""
    return request_code(payload, request, db, verification)


@router.post("/verify", response_model=VerificationTokenResponse, response_model_by_alias=True)
def verify_code(
    payload: VerificationVerify,
    request: Request,
    db: Session = Depends(get_db),
    verification: VerificationService = Depends(get_verification_service),
):
    verified = unwrap(verification.verify_code(db, payload.email, payload.code, client_ip(request)))
    return VerificationTokenResponse(
        token=verified.token,
        email=verified.email,
        expires_in=verified.expires_in,
    )


@router.get("/status", response_model=VerificationStatusResponse)
def status(
    authorization: Optional[str] = Header(None),
    verification: VerificationService = Depends(get_verification_service),
):
    token = extract_bearer_token(authorization)
    if not token or not verification.is_token_valid(token):
        return VerificationStatusResponse(verified=False)
    result = verification.email_of(token)
    if not isinstance(result, Ok):
        return VerificationStatusResponse(verified=False)
    return VerificationStatusResponse(verified=True, email=result.value)


@router.get("/health", response_model=HealthResponse, response_model_by_alias=True)
def health(
    db: Session = Depends(get_db),
    verification: VerificationService = Depends(get_verification_service),
):
    mail_ok = verification.is_mail_healthy()
    try:
        db.execute(text("SELECT 1"))
        store_ok = True
    except SQLAlchemyError:
        logger.exception("Store health check failed")
        store_ok = False
    return HealthResponse(
        status="UP" if mail_ok and store_ok else "DEGRADED",
        email_service="UP" if mail_ok else "DOWN",
        store="UP" if store_ok else "DOWN",
    )
