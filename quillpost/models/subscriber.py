"""Email subscriber models."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, field_validator

from quillpost.models.post import as_utc


class Subscriber(BaseModel):
    """A stored email subscription."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class SubscribeRequest(BaseModel):
    """Visitor subscription form."""

    email: EmailStr

    @field_validator("email", mode="before")
    @classmethod
    def normalize(cls, v: object) -> object:
        return v.strip().lower() if isinstance(v, str) else v


class SubscribeResponse(BaseModel):
    """Identical shape for new and repeat subscriptions."""

    status: str  # subscribed, already_subscribed
    message: str
