from pydantic import BaseModel, Field


class VerificationRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)


class VerificationVerify(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    code: str = Field(pattern=r"^\d{6}$")


class VerificationRequestResponse(BaseModel):
    success: bool = True
    message: str = "Verification code sent successfully"
    expires_in: int = Field(alias="expiresIn")

    model_config = {"populate_by_name": True}


class VerificationTokenResponse(BaseModel):
    success: bool = True
    message: str = "Email verified successfully"
    token: str
    email: str
    expires_in: int = Field(alias="expiresIn")

    model_config = {"populate_by_name": True}


class VerificationStatusResponse(BaseModel):
    verified: bool
    email: str | None = None


class HealthResponse(BaseModel):
    status: str
    email_service: str = Field(alias="emailService")
    store: str

    model_config = {"populate_by_name": True}
