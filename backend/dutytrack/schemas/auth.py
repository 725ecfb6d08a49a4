from pydantic import BaseModel, Field

from dutytrack.schemas.attendance import CAMEL_CONFIG


class LoginRequest(BaseModel):
    email: str
    password: str


class RegisterRequest(BaseModel):
    model_config = CAMEL_CONFIG

    email: str
    password: str
    full_name: str | None = None
    company_name: str = Field(..., min_length=1, max_length=255)


class TokenResponse(BaseModel):
    model_config = CAMEL_CONFIG

    access_token: str
    token_type: str = "bearer"
    role: str
