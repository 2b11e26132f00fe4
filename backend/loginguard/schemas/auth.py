from pydantic import BaseModel, EmailStr, Field


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=1024)


class LoginData(BaseModel):
    email: str


class LoginResponse(BaseModel):
    success: bool = True
    data: LoginData
