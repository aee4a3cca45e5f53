"""SQL persistence for posts, comments, subscribers and administrators.

One ``BlogStore`` is created per process (see ``quillpost.main.lifespan``)
and handed to routers through ``get_store``. SQLite is the default backend;
the store relies on its UNIQUE constraints for slug and email uniqueness.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from fastapi import Request
from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    create_engine,
    delete,
    event,
    func,
    select,
    text,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, relationship, sessionmaker

from quillpost.models.admin import Administrator
from quillpost.models.post import Comment, Post
from quillpost.models.subscriber import Subscriber
from quillpost.services.errors import SlugConflictError, StoreError

logger = logging.getLogger(__name__)

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AdminRecord(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class PostRecord(Base):
    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String, nullable=False)
    slug = Column(String, unique=True, nullable=False, index=True)
    content = Column(Text, nullable=False)
    created_at = Column(
        DateTime(timezone=True), default=_utcnow, nullable=False, index=True
    )
    updated_at = Column(DateTime(timezone=True), nullable=True)

    comments = relationship(
        "CommentRecord", back_populates="post", cascade="all, delete-orphan"
    )


class CommentRecord(Base):
    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(
        Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    author = Column(String, nullable=False)
    body = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    post = relationship("PostRecord", back_populates="comments")


class SubscriberRecord(Base):
    __tablename__ = "subscribers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String, unique=True, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class BlogStore:
    """CRUD over the blog's tables with an explicit init/close lifecycle."""

    def __init__(self, database_url: str) -> None:
        self.database_url = database_url
        self._engine: Engine | None = None
        self._sessions: sessionmaker[Session] | None = None

    def init(self) -> None:
        """Open the engine and create missing tables."""
        url = make_url(self.database_url)
        connect_args = {}
        if url.get_backend_name() == "sqlite":
            connect_args["check_same_thread"] = False
            if url.database and url.database != ":memory:":
                Path(url.database).parent.mkdir(parents=True, exist_ok=True)

        self._engine = create_engine(url, connect_args=connect_args)
        if url.get_backend_name() == "sqlite":
            event.listen(self._engine, "connect", _enable_sqlite_foreign_keys)

        Base.metadata.create_all(self._engine)
        self._sessions = sessionmaker(bind=self._engine, expire_on_commit=False)
        logger.info("Store initialised at %s", url.render_as_string(hide_password=True))

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        self._sessions = None

    @contextmanager
    def _session(self) -> Iterator[Session]:
        """Yield a session that commits on success and rolls back on error.

        Integrity errors propagate unchanged so callers can map them to
        conflicts; any other SQLAlchemy error becomes ``StoreError``.
        """
        if self._sessions is None:
            raise StoreError("Store is not initialised")
        session = self._sessions()
        try:
            yield session
            session.commit()
        except IntegrityError:
            session.rollback()
            raise
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError(str(e)) from e
        finally:
            session.close()

    def ping(self) -> bool:
        """Lightweight connectivity check for the health endpoint."""
        try:
            with self._session() as session:
                session.execute(text("SELECT 1"))
            return True
        except StoreError:
            return False

    # Posts

    def list_posts(self) -> list[Post]:
        """All posts, newest first."""
        with self._session() as session:
            rows = session.scalars(
                select(PostRecord).order_by(
                    PostRecord.created_at.desc(), PostRecord.id.desc()
                )
            )
            return [Post.model_validate(r) for r in rows]

    def get_post(self, post_id: int) -> Post | None:
        with self._session() as session:
            record = session.get(PostRecord, post_id)
            return Post.model_validate(record) if record else None

    def get_post_by_slug(self, slug: str) -> Post | None:
        with self._session() as session:
            record = session.scalars(
                select(PostRecord).where(PostRecord.slug == slug)
            ).first()
            return Post.model_validate(record) if record else None

    def create_post(self, title: str, slug: str, content: str) -> Post:
        """Insert a post. Raises ``SlugConflictError`` if the slug is taken."""
        try:
            with self._session() as session:
                record = PostRecord(title=title, slug=slug, content=content)
                session.add(record)
                session.flush()
                return Post.model_validate(record)
        except IntegrityError as e:
            raise SlugConflictError(slug) from e

    def update_post(
        self, post_id: int, title: str, slug: str, content: str
    ) -> Post | None:
        """Overwrite a post's title, slug and body.

        Returns None if the post does not exist; raises ``SlugConflictError``
        if another post already owns *slug*.
        """
        try:
            with self._session() as session:
                record = session.get(PostRecord, post_id)
                if record is None:
                    return None
                record.title = title
                record.slug = slug
                record.content = content
                record.updated_at = _utcnow()
                session.flush()
                return Post.model_validate(record)
        except IntegrityError as e:
            raise SlugConflictError(slug) from e

    def delete_post(self, post_id: int) -> bool:
        """Delete a post and its comments. Returns False if it did not exist."""
        with self._session() as session:
            record = session.get(PostRecord, post_id)
            if record is None:
                return False
            session.delete(record)
            return True

    def delete_all_posts(self) -> int:
        """Remove every post and comment. Returns the number of posts removed."""
        with self._session() as session:
            session.execute(delete(CommentRecord))
            result = session.execute(delete(PostRecord))
            return result.rowcount or 0

    # Comments

    def list_comments(self, post_id: int) -> list[Comment]:
        """Comments for a post, newest first."""
        with self._session() as session:
            rows = session.scalars(
                select(CommentRecord)
                .where(CommentRecord.post_id == post_id)
                .order_by(CommentRecord.created_at.desc(), CommentRecord.id.desc())
            )
            return [Comment.model_validate(r) for r in rows]

    def add_comment(self, post_id: int, author: str, body: str) -> Comment:
        with self._session() as session:
            record = CommentRecord(post_id=post_id, author=author, body=body)
            session.add(record)
            session.flush()
            return Comment.model_validate(record)

    # Subscribers

    def add_subscriber(self, email: str) -> tuple[Subscriber, bool]:
        """Subscribe *email*. Returns ``(subscriber, created)``.

        An existing subscription is returned unchanged with ``created=False``.
        """
        email = email.strip().lower()
        existing = self._get_subscriber_by_email(email)
        if existing is not None:
            return existing, False
        try:
            with self._session() as session:
                record = SubscriberRecord(email=email)
                session.add(record)
                session.flush()
                return Subscriber.model_validate(record), True
        except IntegrityError:
            # Lost a race with a concurrent subscribe for the same address
            existing = self._get_subscriber_by_email(email)
            if existing is None:
                raise StoreError(f"Could not subscribe {email}")
            return existing, False

    def _get_subscriber_by_email(self, email: str) -> Subscriber | None:
        with self._session() as session:
            record = session.scalars(
                select(SubscriberRecord).where(SubscriberRecord.email == email)
            ).first()
            return Subscriber.model_validate(record) if record else None

    def list_subscribers(self) -> list[Subscriber]:
        with self._session() as session:
            rows = session.scalars(
                select(SubscriberRecord).order_by(
                    SubscriberRecord.created_at.desc(), SubscriberRecord.id.desc()
                )
            )
            return [Subscriber.model_validate(r) for r in rows]

    def subscriber_emails(self) -> list[str]:
        with self._session() as session:
            return list(session.scalars(select(SubscriberRecord.email)))

    def delete_subscriber(self, subscriber_id: int) -> bool:
        with self._session() as session:
            record = session.get(SubscriberRecord, subscriber_id)
            if record is None:
                return False
            session.delete(record)
            return True

    # Administrators

    def count_admins(self) -> int:
        with self._session() as session:
            return session.scalar(select(func.count()).select_from(AdminRecord)) or 0

    def get_admin(self, admin_id: int) -> Administrator | None:
        with self._session() as session:
            record = session.get(AdminRecord, admin_id)
            return Administrator.model_validate(record) if record else None

    def get_admin_by_email(self, email: str) -> Administrator | None:
        with self._session() as session:
            record = session.scalars(
                select(AdminRecord).where(AdminRecord.email == email.strip().lower())
            ).first()
            return Administrator.model_validate(record) if record else None

    def save_admin(self, email: str, password_hash: str) -> tuple[Administrator, bool]:
        """Create an administrator, or reset the password of an existing one.

        Returns ``(admin, created)``.
        """
        email = email.strip().lower()
        with self._session() as session:
            record = session.scalars(
                select(AdminRecord).where(AdminRecord.email == email)
            ).first()
            created = record is None
            if created:
                record = AdminRecord(email=email, password_hash=password_hash)
                session.add(record)
            else:
                record.password_hash = password_hash
            session.flush()
            return Administrator.model_validate(record), created


def get_store(request: Request) -> BlogStore:
    """FastAPI dependency returning the store opened by the app lifespan."""
    return request.app.state.store
