from core.config import settings
from core.mailer import build_mailer
from core.rate_limit import RateLimiter
from services.case_service import CaseService
from services.verification_service import VerificationService
from services.vote_service import VoteService

# Process-wide singletons; tests swap them through app.dependency_overrides
rate_limiter = RateLimiter()
verification_service = VerificationService(settings, build_mailer(settings), rate_limiter)
vote_service = VoteService()
case_service = CaseService(settings, rate_limiter)


def get_verification_service() -> VerificationService:
    return verification_service


def get_vote_service() -> VoteService:
    return vote_service


def get_case_service() -> CaseService:
    return case_service
