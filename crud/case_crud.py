from sqlalchemy import desc, func, or_
from sqlalchemy.orm import Session

from models.case import Case
from models.vote import Vote


def get_case(db: Session, case_id: int):
    return db.query(Case).filter(Case.id == case_id).first()


def create_case(db: Session, fields: dict, reported_by: str):
    c = Case(
        **fields,
        reported_by=reported_by,
        verdict_score=0,
        total_votes=0,
        guilty_votes=0,
        not_guilty_votes=0,
    )
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


def update_case(db: Session, case_id: int, fields: dict):
    c = get_case(db, case_id)
    if not c:
        return None
    for k, v in fields.items():
        setattr(c, k, v)
    db.commit()
    db.refresh(c)
    return c


def delete_case(db: Session, case_id: int) -> bool:
    c = get_case(db, case_id)
    if not c:
        return False
    db.query(Vote).filter(Vote.case_id == case_id).delete(synchronize_session=False)
    db.delete(c)
    db.commit()
    return True


def _page(q, page: int, size: int, *order_by):
    total = q.order_by(None).count()
    order_by = order_by or (desc(Case.created_at), desc(Case.id))
    items = q.order_by(*order_by).offset(page * size).limit(size).all()
    return items, total


def list_recent(db: Session, page: int = 0, size: int = 10):
    return _page(db.query(Case), page, size)


def list_top_voted(db: Session, page: int = 0, size: int = 10):
    """Cases with at least one vote, most votes first."""
    q = db.query(Case).filter(Case.total_votes > 0)
    return _page(q, page, size, desc(Case.total_votes), desc(Case.created_at), desc(Case.id))


def list_needing_votes(db: Session, threshold: int, page: int = 0, size: int = 10):
    """Cases with fewer than ``threshold`` votes, newest first."""
    return _page(db.query(Case).filter(Case.total_votes < threshold), page, size)


def list_actions(db: Session) -> list[str]:
    rows = db.query(Case.actions).filter(Case.actions.isnot(None)).distinct().order_by(Case.actions).all()
    return [r[0] for r in rows]


def search_cases(db: Session, field: str, value: str, page: int = 0, size: int = 10):
    q = db.query(Case)
    needle = f"%{value.lower()}%"
    if field == "name":
        q = q.filter(func.lower(Case.name).like(needle))
    elif field == "company":
        q = q.filter(func.lower(Case.company).like(needle))
    elif field == "actions":
        q = q.filter(func.lower(Case.actions).like(needle))
    elif field == "email":
        q = q.filter(func.lower(Case.email) == value.lower())
    elif field == "phone":
        q = q.filter(Case.phone == value)
    elif field == "all":
        q = q.filter(
            or_(
                func.lower(Case.name).like(needle),
                func.lower(Case.email).like(needle),
                Case.phone.like(f"%{value}%"),
                func.lower(Case.company).like(needle),
                func.lower(Case.actions).like(needle),
                func.lower(Case.description).like(needle),
            )
        )
    else:
        raise ValueError(f"Unsupported search field: {field}")
    return _page(q, page, size)


def find_duplicate(db: Session, email: str | None, phone: str | None, name: str | None, company: str | None):
    """An existing case with the same email, the same phone, or the same name+company."""
    if email:
        c = db.query(Case).filter(func.lower(Case.email) == email.lower()).first()
        if c:
            return c
    if phone:
        c = db.query(Case).filter(Case.phone == phone).first()
        if c:
            return c
    if name and company:
        c = (
            db.query(Case)
            .filter(func.lower(Case.name) == name.lower(), func.lower(Case.company) == company.lower())
            .first()
        )
        if c:
            return c
    return None


def reset_tallies(db: Session, case: Case) -> None:
    """Zero the tally columns. The caller commits."""
    case.verdict_score = 0
    case.total_votes = 0
    case.guilty_votes = 0
    case.not_guilty_votes = 0
    case.last_voted_at = None
