import threading
from datetime import timedelta

from core.config import settings
from core.errors import Err, ErrorKind, Ok
from core.rate_limit import RateLimiter
from core.security import hash_email
from crud import verification_crud
from models.verification import VerificationCode
from services.verification_service import VerificationService
from conftest import RecordingMailer, other_code

IP = "203.0.113.7"


def _active_codes(db, email):
    return db.query(VerificationCode).filter(
        VerificationCode.email_hash == hash_email(email),
        VerificationCode.verified.is_(False),
    ).all()


def test_request_code_stores_one_active_code(db, verification, mailer, clock):
    result = verification.request_code(db, "A@B.com", IP)

    assert isinstance(result, Ok)
    assert result.value.expires_in == 600
    assert len(_active_codes(db, "a@b.com")) == 1
    stored = verification_crud.find_active(db, hash_email("a@b.com"), clock())
    assert stored.code == mailer.last_code("a@b.com")
    assert stored.attempts == 0
    assert stored.ip_address == IP


def test_request_code_rejects_bad_email(db, verification, mailer):
    result = verification.request_code(db, "not-an-email", IP)

    assert isinstance(result, Err)
    assert result.kind == ErrorKind.INVALID_INPUT
    assert mailer.sent == []


def test_second_request_within_cooldown_is_rate_limited(db, verification, clock):
    assert isinstance(verification.request_code(db, "a@b.com", IP), Ok)

    again = verification.request_code(db, "a@b.com", "198.51.100.1")
    assert isinstance(again, Err)
    assert again.kind == ErrorKind.RATE_LIMITED
    assert again.error.retry_after == 60

    clock.advance(minutes=1)
    assert isinstance(verification.request_code(db, "a@b.com", "198.51.100.1"), Ok)
    # The newer code replaced the older one
    assert len(_active_codes(db, "a@b.com")) == 1


def test_same_ip_cannot_request_for_another_email_within_cooldown(db, verification):
    assert isinstance(verification.request_code(db, "a@b.com", IP), Ok)

    other = verification.request_code(db, "c@d.com", IP)
    assert isinstance(other, Err)
    assert other.kind == ErrorKind.RATE_LIMITED


def test_mail_failure_leaves_no_code_and_no_cooldown(db, verification, mailer):
    mailer.fail = True
    result = verification.request_code(db, "a@b.com", IP)

    assert isinstance(result, Err)
    assert result.kind == ErrorKind.UNAVAILABLE
    assert _active_codes(db, "a@b.com") == []

    mailer.fail = False
    assert isinstance(verification.request_code(db, "a@b.com", IP), Ok)


def test_verify_correct_code_returns_token(db, verification, mailer):
    verification.request_code(db, "a@b.com", IP)
    code = mailer.last_code()

    result = verification.verify_code(db, "a@b.com", code, IP)

    assert isinstance(result, Ok)
    assert result.value.email == "a@b.com"
    assert result.value.expires_in == 24 * 3600
    assert verification.is_token_valid(result.value.token)
    assert verification.email_of(result.value.token).value == "a@b.com"
    # A verified code is no longer active
    assert _active_codes(db, "a@b.com") == []


def test_verified_code_cannot_be_reused(db, verification, mailer):
    verification.request_code(db, "a@b.com", IP)
    code = mailer.last_code()
    assert isinstance(verification.verify_code(db, "a@b.com", code, IP), Ok)

    again = verification.verify_code(db, "a@b.com", code, IP)
    assert isinstance(again, Err)
    assert again.kind == ErrorKind.NOT_FOUND


def test_wrong_code_reports_remaining_attempts(db, verification, mailer):
    verification.request_code(db, "a@b.com", IP)
    wrong = other_code(mailer.last_code())

    result = verification.verify_code(db, "a@b.com", wrong, IP)

    assert isinstance(result, Err)
    assert result.kind == ErrorKind.INVALID_CODE
    assert result.error.extra["remainingAttempts"] == 4


def test_five_wrong_guesses_kill_the_code(db, verification, mailer):
    verification.request_code(db, "a@b.com", IP)
    code = mailer.last_code()

    for expected_remaining in (4, 3, 2, 1, 0):
        r = verification.verify_code(db, "a@b.com", other_code(code), IP)
        assert r.kind == ErrorKind.INVALID_CODE
        assert r.error.extra["remainingAttempts"] == expected_remaining

    sixth = verification.verify_code(db, "a@b.com", code, IP)
    assert isinstance(sixth, Err)
    assert sixth.kind == ErrorKind.TOO_MANY_ATTEMPTS
    assert _active_codes(db, "a@b.com") == []


def test_expired_code_never_verifies(db, verification, mailer, clock):
    verification.request_code(db, "a@b.com", IP)
    code = mailer.last_code()

    clock.advance(minutes=10)
    assert verification_crud.find_active(db, hash_email("a@b.com"), clock()) is None

    result = verification.verify_code(db, "a@b.com", code, IP)
    assert isinstance(result, Err)
    assert result.kind == ErrorKind.EXPIRED


def test_unknown_email_is_not_found(db, verification):
    result = verification.verify_code(db, "nobody@example.com", "123456", IP)
    assert result.kind == ErrorKind.NOT_FOUND


def test_ip_attempt_cap_blocks_before_lookup(db, verification, mailer):
    for i in range(10):
        r = verification.verify_code(db, f"user{i}@example.com", "123456", IP)
        assert r.kind == ErrorKind.NOT_FOUND

    # Even a valid code for a fresh email is refused from this IP
    verification.request_code(db, "fresh@example.com", "198.51.100.9")
    code = mailer.last_code("fresh@example.com")
    blocked = verification.verify_code(db, "fresh@example.com", code, IP)
    assert blocked.kind == ErrorKind.RATE_LIMITED

    # Other IPs are unaffected
    assert isinstance(verification.verify_code(db, "fresh@example.com", code, "198.51.100.9"), Ok)


def test_successful_verify_clears_ip_failures(db, verification, mailer, limiter):
    verification.request_code(db, "a@b.com", IP)
    code = mailer.last_code()
    verification.verify_code(db, "a@b.com", other_code(code), IP)
    verification.verify_code(db, "a@b.com", code, IP)

    assert limiter.failures(f"verify:ip:{IP}", verification.ip_attempt_window) == 0


def test_token_expires_after_lifetime(db, verification, mailer, clock):
    verification.request_code(db, "a@b.com", IP)
    token = verification.verify_code(db, "a@b.com", mailer.last_code(), IP).value.token

    clock.advance(hours=24)
    assert not verification.is_token_valid(token)
    assert verification.email_of(token).kind == ErrorKind.INVALID_TOKEN


def test_email_of_rejects_garbage(verification):
    assert verification.email_of("garbage").kind == ErrorKind.INVALID_TOKEN


def test_correct_code_on_last_attempt_still_verifies(db, verification, mailer):
    verification.request_code(db, "a@b.com", IP)
    code = mailer.last_code()
    for _ in range(4):
        verification.verify_code(db, "a@b.com", other_code(code), IP)

    assert isinstance(verification.verify_code(db, "a@b.com", code, IP), Ok)


def _stored_code(email, code, created_at, ip=IP):
    return VerificationCode(
        email_hash=hash_email(email),
        code=code,
        created_at=created_at,
        expires_at=created_at + timedelta(minutes=10),
        attempts=0,
        max_attempts=5,
        verified=False,
        ip_address=ip,
    )


def test_redeeming_a_code_retires_leftover_siblings(db, verification, clock):
    now = clock()
    verification_crud.save_code(db, _stored_code("a@b.com", "111111", now - timedelta(minutes=1)))
    verification_crud.save_code(db, _stored_code("a@b.com", "222222", now))

    assert isinstance(verification.verify_code(db, "a@b.com", "222222", IP), Ok)

    assert _active_codes(db, "a@b.com") == []
    assert verification.verify_code(db, "a@b.com", "111111", IP).kind == ErrorKind.NOT_FOUND


def test_exhausting_a_code_retires_leftover_siblings(db, verification, clock):
    now = clock()
    verification_crud.save_code(db, _stored_code("a@b.com", "111111", now - timedelta(minutes=1)))
    verification_crud.save_code(db, _stored_code("a@b.com", "222222", now))
    for _ in range(5):
        verification.verify_code(db, "a@b.com", "333333", IP)

    assert verification.verify_code(db, "a@b.com", "222222", IP).kind == ErrorKind.TOO_MANY_ATTEMPTS
    assert _active_codes(db, "a@b.com") == []


def test_recent_counts_exclude_the_since_boundary(db, clock):
    since = clock() - timedelta(minutes=5)
    for offset in (-1, 0, 1, 2):
        verification_crud.save_code(
            db, _stored_code("a@b.com", "123456", since + timedelta(seconds=offset), ip="198.51.100.4")
        )
    verification_crud.save_code(db, _stored_code("c@d.com", "123456", since + timedelta(seconds=1)))

    assert verification_crud.count_recent_by_email_hash(db, hash_email("a@b.com"), since) == 2
    assert verification_crud.count_recent_by_ip(db, "198.51.100.4", since) == 2
    assert verification_crud.count_recent_by_ip(db, IP, since) == 1
    assert verification_crud.count_recent_by_ip(db, "192.0.2.1", since) == 0


def test_concurrent_wrong_guesses_respect_attempt_cap(file_sessions):
    mailer = RecordingMailer(settings)
    service = VerificationService(settings, mailer, RateLimiter())
    with file_sessions() as s:
        assert isinstance(service.request_code(s, "a@b.com", IP), Ok)
    code = mailer.last_code()
    wrong = other_code(code)

    n = 12
    barrier = threading.Barrier(n)
    results = [None] * n

    def worker(i):
        session = file_sessions()
        try:
            barrier.wait()
            results[i] = service.verify_code(session, "a@b.com", wrong, f"10.0.0.{i + 1}")
        finally:
            session.close()

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(n)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    kinds = [r.kind for r in results]
    assert kinds.count(ErrorKind.INVALID_CODE) == 5
    assert set(kinds) <= {ErrorKind.INVALID_CODE, ErrorKind.TOO_MANY_ATTEMPTS, ErrorKind.NOT_FOUND}
    assert ErrorKind.TOO_MANY_ATTEMPTS in kinds

    # The real code is dead once the guesses are spent
    with file_sessions() as s:
        late = service.verify_code(s, "a@b.com", code, "10.0.1.1")
    assert late.kind in (ErrorKind.TOO_MANY_ATTEMPTS, ErrorKind.NOT_FOUND)
