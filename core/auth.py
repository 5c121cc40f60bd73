import hmac
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status

from core.config import settings
from core.dependencies import get_verification_service
from core.errors import ErrorKind, ServiceError, http_error, unwrap
from services.verification_service import VerificationService


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


def client_ip(request: Request) -> str:
    # ProxyHeadersMiddleware has already applied X-Forwarded-For
    return request.client.host if request.client else "unknown"


def get_optional_verified_email(
    authorization: Optional[str] = Header(None),
    verification: VerificationService = Depends(get_verification_service),
) -> Optional[str]:
    """Email proven by the bearer token, or None when no token was sent.

    A token that is present but invalid or expired is rejected.
    """
    token = extract_bearer_token(authorization)
    if not token:
        return None
    if not verification.is_token_valid(token):
        raise http_error(
            ServiceError(
                ErrorKind.INVALID_TOKEN,
                "Invalid or expired verification token. Please verify your email again.",
            )
        )
    return unwrap(verification.email_of(token))


def get_verified_email(email: Optional[str] = Depends(get_optional_verified_email)) -> str:
    if not email:
        raise http_error(
            ServiceError(
                ErrorKind.VERIFICATION_REQUIRED,
                "Email verification required. Please verify your email address.",
                extra={"requiresVerification": True},
            )
        )
    return email


def require_admin(x_admin_key: Optional[str] = Header(None)):
    expected = settings.ADMIN_API_KEY
    if not expected:
        return
    if not x_admin_key or not hmac.compare_digest(x_admin_key, expected):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"kind": ErrorKind.FORBIDDEN.value, "message": "Admin key required"},
        )
