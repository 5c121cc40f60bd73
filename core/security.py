import hashlib
import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable

import jwt

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
CODE_PATTERN = re.compile(r"^\d{6}$")
TOKEN_PURPOSE = "email_verification"


class InvalidTokenError(Exception):
    pass


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def is_valid_email(email: str) -> bool:
    return bool(email) and EMAIL_PATTERN.match(email) is not None


def hash_email(email: str) -> str:
    return hashlib.sha256(normalize_email(email).encode("utf-8")).hexdigest()


def generate_code() -> str:
    """Uniform over 000000-999999; leading zeros are kept."""
    return f"{secrets.randbelow(1_000_000):06d}"


def codes_match(expected: str, submitted: str) -> bool:
    return secrets.compare_digest(expected.encode("utf-8"), (submitted or "").encode("utf-8"))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenSigner:
    """Signs and checks stateless email-verification tokens (HS256 JWT)."""

    def __init__(
        self,
        secret: str,
        lifetime: timedelta,
        algorithm: str = "HS256",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._secret = secret
        self._lifetime = lifetime
        self._algorithm = algorithm
        self._clock = clock

    @property
    def lifetime_seconds(self) -> int:
        return int(self._lifetime.total_seconds())

    def issue(self, email: str) -> str:
        now = self._clock()
        payload = {
            "sub": normalize_email(email),
            "iat": int(now.timestamp()),
            "exp": int((now + self._lifetime).timestamp()),
            "type": TOKEN_PURPOSE,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def decode(self, token: str) -> dict:
        # Expiry is checked against our own clock below
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"verify_exp": False, "verify_iat": False, "require": ["sub", "exp"]},
            )
        except jwt.PyJWTError as exc:
            raise InvalidTokenError("Invalid verification token") from exc
        if claims.get("type") != TOKEN_PURPOSE:
            raise InvalidTokenError("Token was not issued for email verification")
        if int(claims["exp"]) <= int(self._clock().timestamp()):
            raise InvalidTokenError("Verification token has expired")
        return claims

    def is_valid(self, token: str) -> bool:
        try:
            self.decode(token)
        except InvalidTokenError:
            return False
        return True

    def email_of(self, token: str) -> str:
        return self.decode(token)["sub"]
