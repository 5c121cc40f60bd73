from pydantic import BaseModel, Field

from models.vote import VoteChoice


class VoteRequest(BaseModel):
    vote: str = Field(max_length=20)
    email: str | None = None


class VerdictSummary(BaseModel):
    status: str
    score: int
    total_votes: int = Field(alias="totalVotes")
    guilty_votes: int = Field(alias="guiltyVotes")
    not_guilty_votes: int = Field(alias="notGuiltyVotes")
    confidence: float

    model_config = {"populate_by_name": True}

    @classmethod
    def from_case(cls, case) -> "VerdictSummary":
        return cls(
            status=case.verdict_status,
            score=case.verdict_score,
            total_votes=case.total_votes,
            guilty_votes=case.guilty_votes,
            not_guilty_votes=case.not_guilty_votes,
            confidence=case.verdict_confidence,
        )


class VoteResponse(BaseModel):
    success: bool = True
    message: str = "Vote cast successfully"
    case_id: int = Field(alias="caseId")
    vote: VoteChoice
    verification_method: str = Field(alias="verificationMethod")
    verdict: VerdictSummary

    model_config = {"populate_by_name": True}


class VerdictResponse(BaseModel):
    case_id: int = Field(alias="caseId")
    verdict: VerdictSummary

    model_config = {"populate_by_name": True}


class ResetVotesResponse(VerdictResponse):
    success: bool = True
    message: str = "All votes reset for case"
