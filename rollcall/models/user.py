"""Accounts: teachers run roll calls, students are marked."""
from datetime import datetime
from enum import Enum

from beanie import Document, Indexed
from pydantic import BaseModel, EmailStr, Field


class UserRole(str, Enum):
    TEACHER = "teacher"
    STUDENT = "student"


class User(Document):
    """User document for both teachers and students."""

    name: str
    email: Indexed(EmailStr, unique=True)
    hashed_password: str
    role: UserRole
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "users"
        use_state_management = True


class UserCreate(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=6)
    role: UserRole


class UserLogin(BaseModel):
    email: EmailStr
    password: str


def user_to_dict(user: User) -> dict:
    return {
        "_id": str(user.id),
        "name": user.name,
        "email": user.email,
        "role": user.role.value,
    }
