"""User schemas used for registration and responses."""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr


class UserCreate(BaseModel):
    email: EmailStr
    password: str
    full_name: Optional[str] = None
    # Staff roles (admin, agent) are provisioned out of band
    role: Literal["tenant", "landlord"] = "tenant"


class UserRead(BaseModel):
    id: int
    email: EmailStr
    full_name: Optional[str] = None
    role: str

    model_config = ConfigDict(from_attributes=True)


class UserSummary(BaseModel):
    id: int
    email: str
    full_name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
