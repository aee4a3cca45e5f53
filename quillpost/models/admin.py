"""Administrator, dashboard and email-compose models."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, field_validator

from quillpost.models.post import as_utc
from quillpost.models.subscriber import Subscriber


class Administrator(BaseModel):
    """Stored administrator credential. Never returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    password_hash: str


class LoginRequest(BaseModel):
    email: str
    password: str


class PostRow(BaseModel):
    """Post metadata for the admin dashboard (no body)."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    slug: str
    created_at: datetime
    updated_at: datetime | None = None

    @field_validator("created_at", "updated_at")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        return as_utc(v)


class AdminDashboard(BaseModel):
    posts: list[PostRow]
    subscribers: list[Subscriber]


class BroadcastRequest(BaseModel):
    """Admin broadcast compose form. Blank fields are rejected by the router."""

    subject: str = ""
    message: str = ""


class BroadcastResponse(BaseModel):
    status: str
    recipients: int


class EmailTestRequest(BaseModel):
    to: EmailStr


class EmailTestResponse(BaseModel):
    sent: bool
    provider: str | None = None
