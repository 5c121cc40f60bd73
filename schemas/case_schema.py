from datetime import datetime
from pydantic import BaseModel, Field

from schemas.vote_schema import VerdictSummary


class CaseReport(BaseModel):
    """Client payload for submitting or updating a case."""
    name: str | None = Field(default=None, max_length=255)
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=50)
    company: str | None = Field(default=None, max_length=255)
    actions: str | None = Field(default=None, max_length=300)
    description: str | None = Field(default=None, max_length=2000)
    reporter_name: str | None = Field(default=None, alias="reporterName", max_length=100)
    reporter_email: str | None = Field(default=None, alias="reporterEmail", max_length=255)

    model_config = {"populate_by_name": True}


class CaseResponse(BaseModel):
    id: int
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    company: str | None = None
    actions: str | None = None
    description: str | None = None
    reported_by: str | None = Field(default=None, alias="reportedBy")
    verdict_score: int = Field(alias="verdictScore")
    total_votes: int = Field(alias="totalVotes")
    guilty_votes: int = Field(alias="guiltyVotes")
    not_guilty_votes: int = Field(alias="notGuiltyVotes")
    created_at: datetime | None = Field(default=None, alias="createdAt")
    last_voted_at: datetime | None = Field(default=None, alias="lastVotedAt")
    verdict_summary: VerdictSummary | None = Field(default=None, alias="verdictSummary")

    model_config = {"from_attributes": True, "populate_by_name": True}

    @classmethod
    def from_case(cls, case) -> "CaseResponse":
        resp = cls.model_validate(case)
        resp.verdict_summary = VerdictSummary.from_case(case)
        return resp


class CaseSubmitResponse(BaseModel):
    success: bool = True
    message: str = "Case submitted successfully"
    case_id: int = Field(alias="caseId")
    submitted_by: str = Field(alias="submittedBy")
    case: CaseResponse

    model_config = {"populate_by_name": True}


class CaseUpdateResponse(BaseModel):
    success: bool = True
    message: str = "Case updated successfully"
    case: CaseResponse


class CaseDeleteResponse(BaseModel):
    success: bool = True
    message: str = "Case deleted successfully"
    id: int


class CaseValidationResponse(BaseModel):
    valid: bool
    errors: list[str]
    message: str | None = None


class PaginationInfo(BaseModel):
    current_page: int = Field(alias="currentPage")
    page_size: int = Field(alias="pageSize")
    total_pages: int = Field(alias="totalPages")
    total_elements: int = Field(alias="totalElements")
    has_next: bool = Field(alias="hasNext")
    has_previous: bool = Field(alias="hasPrevious")

    model_config = {"populate_by_name": True}


class CasePage(BaseModel):
    results: list[CaseResponse]
    pagination: PaginationInfo
    message: str | None = None

    @classmethod
    def from_page(cls, page, message: str | None = None) -> "CasePage":
        return cls(
            results=[CaseResponse.from_case(c) for c in page.items],
            pagination=PaginationInfo(
                current_page=page.page,
                page_size=page.size,
                total_pages=page.total_pages,
                total_elements=page.total,
                has_next=(page.page + 1) < page.total_pages,
                has_previous=page.page > 0,
            ),
            message=message,
        )


class CategoriesResponse(BaseModel):
    actions: list[str]
    count: int


class SearchFiltersResponse(BaseModel):
    supported_filters: list[str] = Field(alias="supportedFilters")
    examples: dict[str, str]

    model_config = {"populate_by_name": True}
