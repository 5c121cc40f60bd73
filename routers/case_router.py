from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from core.auth import client_ip, get_verified_email, require_admin
from core.config import settings
from core.database import get_db
from core.dependencies import get_case_service
from core.errors import ErrorKind, err, unwrap
from core.retry import retry_read
from crud.case_crud import get_case
from schemas.case_schema import (
    CaseDeleteResponse,
    CasePage,
    CaseReport,
    CaseResponse,
    CaseSubmitResponse,
    CaseUpdateResponse,
    CaseValidationResponse,
    CategoriesResponse,
    SearchFiltersResponse,
)
from services.case_service import SEARCH_EXAMPLES, SEARCH_FIELDS, CaseService


router = APIRouter(prefix=f"{settings.API_PREFIX}/case", tags=["Cases"])
search_router = APIRouter(prefix=settings.API_PREFIX, tags=["Search"])


@router.post("/submit", response_model=CaseSubmitResponse, response_model_by_alias=True, status_code=201)
def submit(
    payload: CaseReport,
    request: Request,
    db: Session = Depends(get_db),
    verified_email: str = Depends(get_verified_email),
    cases: CaseService = Depends(get_case_service),
):
    case = unwrap(cases.submit(db, payload, verified_email, client_ip(request)))
    return CaseSubmitResponse(
        case_id=case.id,
        submitted_by=verified_email,
        case=CaseResponse.from_case(case),
    )


@router.post("/validate", response_model=CaseValidationResponse)
def validate(payload: CaseReport, db: Session = Depends(get_db), cases: CaseService = Depends(get_case_service)):
    errors = cases.validate(db, payload)
    return CaseValidationResponse(
        valid=not errors,
        errors=errors,
        message=None if errors else "Case data is valid and ready for submission",
    )


@router.get("/recent", response_model=CasePage, response_model_by_alias=True)
def recent(page: int = 0, size: int = 10, db: Session = Depends(get_db), cases: CaseService = Depends(get_case_service)):
    result = retry_read(lambda: cases.recent(db, page, size), db=db)
    return CasePage.from_page(result, message="Recent case submissions")


@router.get("/{case_id}", response_model=CaseResponse, response_model_by_alias=True)
def read_one(case_id: int, db: Session = Depends(get_db)):
    case = retry_read(lambda: get_case(db, case_id), db=db)
    if not case:
        unwrap(err(ErrorKind.NOT_FOUND, "Case not found", caseId=case_id))
    return CaseResponse.from_case(case)


@router.put(
    "/{case_id}",
    response_model=CaseUpdateResponse,
    response_model_by_alias=True,
    dependencies=[Depends(require_admin)],
)
def update(case_id: int, payload: CaseReport, db: Session = Depends(get_db), cases: CaseService = Depends(get_case_service)):
    case = unwrap(cases.update(db, case_id, payload))
    return CaseUpdateResponse(case=CaseResponse.from_case(case))


@router.delete("/{case_id}", response_model=CaseDeleteResponse, dependencies=[Depends(require_admin)])
def delete(case_id: int, db: Session = Depends(get_db), cases: CaseService = Depends(get_case_service)):
    deleted_id = unwrap(cases.delete(db, case_id))
    return CaseDeleteResponse(id=deleted_id)


@search_router.get("/search", response_model=CasePage, response_model_by_alias=True)
def search(
    filter: str,
    value: str,
    page: int = 0,
    size: int = 10,
    db: Session = Depends(get_db),
    cases: CaseService = Depends(get_case_service),
):
    result = unwrap(retry_read(lambda: cases.search(db, filter, value, page, size), db=db))
    return CasePage.from_page(result, message=f"Cases matching {filter}")


@search_router.get("/search/filters", response_model=SearchFiltersResponse, response_model_by_alias=True)
def search_filters():
    return SearchFiltersResponse(
        supported_filters=list(SEARCH_FIELDS),
        examples={k: f"{settings.API_PREFIX}{v}" for k, v in SEARCH_EXAMPLES.items()},
    )


@search_router.get("/categories", response_model=CategoriesResponse)
def categories(db: Session = Depends(get_db), cases: CaseService = Depends(get_case_service)):
    actions = retry_read(lambda: cases.categories(db), db=db)
    return CategoriesResponse(actions=actions, count=len(actions))
