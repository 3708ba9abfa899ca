from datetime import datetime

from pydantic import BaseModel, EmailStr, Field


class RegisterRequest(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    last_name: str = Field(default="", max_length=100, alias="lastName")
    email: EmailStr
    password: str = Field(min_length=6, max_length=72)

    class Config:
        populate_by_name = True


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=72)


class UserOut(BaseModel):
    id: int
    name: str
    last_name: str
    email: str
    role: str
    created_at: datetime

    class Config:
        from_attributes = True


class AuthOut(BaseModel):
    success: bool = True
    message: str
    user: UserOut
    token: str
