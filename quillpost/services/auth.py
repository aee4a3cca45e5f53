"""Administrator authentication: bcrypt credentials behind a session flag."""

import logging

import bcrypt
from fastapi import Depends, HTTPException, Request

from quillpost.config import DEFAULT_SESSION_SECRET, Settings, get_settings
from quillpost.models.admin import Administrator
from quillpost.services.store import BlogStore, get_store

logger = logging.getLogger(__name__)

SESSION_KEY = "admin_id"
BCRYPT_ROUNDS = 10
# bcrypt only looks at the first 72 bytes of a password
_BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    return bcrypt.hashpw(
        _password_bytes(password), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    ).decode("ascii")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(password), password_hash.encode("ascii"))
    except ValueError:
        # Malformed stored hash
        return False


def authenticate(store: BlogStore, email: str, password: str) -> Administrator | None:
    """Return the administrator matching the credentials, or None."""
    admin = store.get_admin_by_email(email)
    if admin is None or not verify_password(password, admin.password_hash):
        return None
    return admin


def _wants_json(request: Request) -> bool:
    return request.url.path.startswith("/api") or "application/json" in request.headers.get(
        "accept", ""
    )


def require_admin(
    request: Request, store: BlogStore = Depends(get_store)
) -> Administrator:
    """Dependency gating admin routes.

    API and JSON callers get a 401; browser navigations are redirected to
    the login page.
    """
    admin_id = request.session.get(SESSION_KEY)
    admin = store.get_admin(admin_id) if isinstance(admin_id, int) else None
    if admin is not None:
        return admin

    if _wants_json(request):
        raise HTTPException(status_code=401, detail="Unauthorized")
    raise HTTPException(status_code=303, headers={"Location": "/login"})


def ensure_default_admin(store: BlogStore) -> None:
    """Seed one administrator from settings when the table is empty."""
    if store.count_admins() > 0:
        return
    settings = get_settings()
    if not settings.admin_email or not settings.admin_password:
        logger.warning(
            "No administrator exists and ADMIN_PASSWORD is not set; "
            "run scripts.create_admin to add one"
        )
        return
    store.save_admin(settings.admin_email, hash_password(settings.admin_password))
    logger.info("Seeded default administrator %s", settings.admin_email)


def check_session_secret(settings: Settings) -> None:
    """Refuse to run production with the placeholder session secret."""
    if settings.session_secret and settings.session_secret != DEFAULT_SESSION_SECRET:
        return
    if settings.environment == "production":
        raise RuntimeError("SESSION_SECRET must be set in production")
    logger.warning("SESSION_SECRET is not set; using an insecure development secret")
