"""
User schemas
"""
from datetime import datetime
from typing import Optional
from pydantic import EmailStr, Field, field_validator

from marketplace.schemas.base import CamelModel


class AddressFields(CamelModel):
    first_name: Optional[str] = Field(None, max_length=50)
    last_name: Optional[str] = Field(None, max_length=50)
    street: Optional[str] = Field(None, max_length=100)
    zip_code: Optional[str] = Field(None, max_length=20)
    city: Optional[str] = Field(None, max_length=100)
    country: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)


class UserCreate(AddressFields):
    email: EmailStr
    username: str = Field(..., min_length=3, max_length=20)
    password: str = Field(..., min_length=7, max_length=128)

    @field_validator("username")
    @classmethod
    def username_is_simple(cls, v: str) -> str:
        v = v.strip()
        if not v.replace("_", "").replace("-", "").isalnum():
            raise ValueError("Username may only contain letters, digits, '-' and '_'")
        return v


class UserLogin(CamelModel):
    email: EmailStr
    password: str


class AdminChange(CamelModel):
    email: EmailStr


class UserUpdate(AddressFields):
    email: Optional[EmailStr] = None
    username: Optional[str] = Field(None, min_length=3, max_length=20)
    password: Optional[str] = Field(None, min_length=7, max_length=128)


class UserResponse(AddressFields):
    id: int
    email: str
    username: str
    status: str
    is_admin: bool = False
    created_at: Optional[datetime] = None


class PublicUserResponse(CamelModel):
    username: str
    created_at: Optional[datetime] = None


class Token(CamelModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse
    is_different: bool = False


class UserMeResponse(UserResponse):
    is_different: bool = False
