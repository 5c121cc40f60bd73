from sqlalchemy import Column, Integer, String, DateTime, Boolean, Index
from models.base import Base, TimestampMixin


class VerificationCode(Base, TimestampMixin):
    __tablename__ = "verification_codes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # SHA-256 of the normalized email; the raw address is never stored
    email_hash = Column(String(64), nullable=False)
    code = Column(String(6), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    attempts = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False, default=5)
    verified = Column(Boolean, nullable=False, default=False)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    ip_address = Column(String(45), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<VerificationCode id={self.id} email_hash={self.email_hash[:8]}... "
            f"attempts={self.attempts}/{self.max_attempts} verified={self.verified}>"
        )


Index("idx_verification_email_hash", VerificationCode.email_hash)
Index("idx_verification_expires_at", VerificationCode.expires_at)
Index("idx_verification_ip", VerificationCode.ip_address)
