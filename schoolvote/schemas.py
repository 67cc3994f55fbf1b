from pydantic import BaseModel, EmailStr, Field
from typing import Dict, List, Literal, Optional


class UserBase(BaseModel):
    username: str = Field(..., min_length=3)
    fullName: str = Field(..., min_length=1)
    email: Optional[EmailStr] = None
    role: Literal["admin", "officer", "viewer"] = "officer"


class UserCreate(UserBase):
    password: str = Field(..., min_length=6)


class UserOut(UserBase):
    id: str
    permissions: Dict[str, List[str]] = Field(default_factory=dict)


class LoginRequest(BaseModel):
    username: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut
