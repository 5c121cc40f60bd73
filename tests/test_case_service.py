from core.errors import Err, ErrorKind, Ok
from schemas.case_schema import CaseReport

REPORTER = "reporter@example.com"
IP = "198.51.100.20"


def report(**overrides):
    data = {
        "name": "John Scammer",
        "email": "John@Scam.example",
        "phone": None,
        "company": "Fake Corp",
        "actions": "phishing",
        "description": "Sent fake invoices asking for wire transfers.",
        "reporterName": "Jane",
        "reporterEmail": REPORTER,
    }
    data.update(overrides)
    return CaseReport(**data)


def test_submit_creates_case_with_zero_tally(db, cases):
    result = cases.submit(db, report(), REPORTER, IP)

    assert isinstance(result, Ok)
    c = result.value
    assert c.reported_by == REPORTER
    assert c.email == "john@scam.example"
    assert (c.verdict_score, c.total_votes, c.guilty_votes, c.not_guilty_votes) == (0, 0, 0, 0)


def test_reporter_email_must_match_verified_email(db, cases):
    result = cases.submit(db, report(), "someone-else@example.com", IP)
    assert result.kind == ErrorKind.INVALID_INPUT


def test_validation_errors(db, cases):
    bad = report(name=None, email=None, phone=None, description="too short")
    result = cases.submit(db, bad, REPORTER, IP)

    assert isinstance(result, Err)
    assert result.kind == ErrorKind.INVALID_INPUT
    errors = result.error.extra["errors"]
    assert any("contact method" in e for e in errors)
    assert any("Description" in e for e in errors)


def test_duplicate_case_detected(db, cases, clock):
    assert isinstance(cases.submit(db, report(), REPORTER, IP), Ok)
    clock.advance(minutes=6)

    dup = cases.submit(db, report(name="Different Name", company=None), REPORTER, IP)
    assert dup.kind == ErrorKind.DUPLICATE_CASE


def test_submission_cooldown(db, cases, clock):
    assert isinstance(cases.submit(db, report(), REPORTER, IP), Ok)

    second = cases.submit(db, report(name="Second", email=None, phone="+15550000"), REPORTER, IP)
    assert second.kind == ErrorKind.RATE_LIMITED
    assert second.error.retry_after == 300

    clock.advance(minutes=5)
    assert isinstance(cases.submit(db, report(name="Second", email=None, phone="+15550000"), REPORTER, IP), Ok)


def test_daily_ip_limit(db, cases, clock):
    for i in range(3):
        r = cases.submit(
            db,
            report(name=f"Actor {i}", email=None, reporterEmail=f"r{i}@example.com"),
            f"r{i}@example.com",
            IP,
        )
        assert isinstance(r, Ok)

    fourth = cases.submit(db, report(name="Actor 4", email=None, reporterEmail="r4@example.com"), "r4@example.com", IP)
    assert fourth.kind == ErrorKind.RATE_LIMITED


def test_validate_reports_possible_duplicate(db, cases):
    cases.submit(db, report(), REPORTER, IP)

    errors = cases.validate(db, report(name="Someone", company=None))
    assert errors == ["A similar case may already exist in the database"]
    assert cases.validate(db, report(name="Fresh", email="fresh@example.com", company=None)) == []


def test_search_and_pagination(db, cases, make_case):
    for i in range(12):
        make_case(name=f"Alpha {i}", company=f"Co {i}")
    make_case(name="Beta", company="Other", email="beta@example.com")

    page = cases.search(db, "name", "alpha", 1, 5).value
    assert page.total == 12
    assert page.total_pages == 3
    assert len(page.items) == 5

    by_email = cases.search(db, "email", "BETA@example.com", 0, 10).value
    assert [c.name for c in by_email.items] == ["Beta"]

    assert cases.search(db, "all", "other", 0, 10).value.total == 1


def test_search_rejects_bad_filter_and_blank_value(db, cases):
    assert cases.search(db, "colour", "x", 0, 10).kind == ErrorKind.INVALID_INPUT
    assert cases.search(db, "name", "   ", 0, 10).kind == ErrorKind.INVALID_INPUT
    assert cases.search(db, "email", "nope", 0, 10).kind == ErrorKind.INVALID_INPUT


def test_recent_clamps_page_size(db, cases, make_case):
    make_case()
    page = cases.recent(db, 0, 500)
    assert page.size == 50
    assert cases.recent(db, 0, 0).size == 10


def test_update_and_delete(db, cases, make_case):
    c = make_case()

    updated = cases.update(db, c.id, report(name="Renamed"))
    assert updated.value.name == "Renamed"

    assert isinstance(cases.delete(db, c.id), Ok)
    assert cases.delete(db, c.id).kind == ErrorKind.NOT_FOUND
    assert cases.update(db, c.id, report()).kind == ErrorKind.NOT_FOUND


def test_categories_are_distinct_and_sorted(db, cases, make_case):
    make_case(name="A", actions="phishing")
    make_case(name="B", company="B Co", actions="crypto scam")
    make_case(name="C", company="C Co", actions="phishing")
    make_case(name="D", company="D Co", actions=None)

    assert cases.categories(db) == ["crypto scam", "phishing"]
