"""Post and comment data models."""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator

ANONYMOUS_AUTHOR = "Anonymous"


def as_utc(dt: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on round-trip; stored values are always UTC.
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


class Post(BaseModel):
    """A stored post with its raw body."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    slug: str
    content: str
    created_at: datetime
    updated_at: datetime | None = None

    @field_validator("created_at", "updated_at")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        return as_utc(v)


class PostSummary(BaseModel):
    """Post metadata plus a short excerpt for the public listing."""

    id: int
    title: str
    slug: str
    excerpt: str
    created_at: datetime
    updated_at: datetime | None = None


class PostIndex(BaseModel):
    """Public post listing."""

    posts: list[PostSummary]
    total: int


class Comment(BaseModel):
    """A visitor comment on a post."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    post_id: int
    author: str
    body: str
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class CommentCreate(BaseModel):
    """Comment form submission."""

    author: str = Field(ANONYMOUS_AUTHOR, max_length=100, validate_default=True)
    body: str = Field("", max_length=5000)

    @field_validator("author")
    @classmethod
    def default_author(cls, v: str) -> str:
        return v.strip() or ANONYMOUS_AUTHOR

    @field_validator("body")
    @classmethod
    def strip_body(cls, v: str) -> str:
        return v.strip()


class PostDetail(BaseModel):
    """A single post rendered for display, with its comments."""

    post: Post
    html: str
    comments: list[Comment]
