from pydantic import BaseModel, EmailStr, Field

from securesign.schemas.common import IDModel, Timestamped


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RegisterRequest(BaseModel):
    full_name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=8)


class UserRead(IDModel, Timestamped):
    email: str
    full_name: str
    is_active: bool
