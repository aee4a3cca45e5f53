"""Administrator login, logout and identity endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from quillpost.models.admin import LoginRequest
from quillpost.services.auth import SESSION_KEY, authenticate
from quillpost.services.store import BlogStore, get_store

router = APIRouter(tags=["auth"])
logger = logging.getLogger(__name__)


@router.post("/login")
async def login(
    credentials: LoginRequest,
    request: Request,
    store: BlogStore = Depends(get_store),
):
    """Check credentials and mark the session as an administrator session."""
    admin = authenticate(store, credentials.email, credentials.password)
    if admin is None:
        logger.warning("Failed login for %s", credentials.email)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    request.session[SESSION_KEY] = admin.id
    logger.info("Administrator %s logged in", admin.email)
    return {"ok": True}


@router.post("/logout")
async def logout(request: Request):
    request.session.clear()
    return {"ok": True}


@router.get("/me")
async def whoami(request: Request, store: BlogStore = Depends(get_store)):
    """Report whether the current session belongs to an administrator."""
    admin_id = request.session.get(SESSION_KEY)
    is_admin = isinstance(admin_id, int) and store.get_admin(admin_id) is not None
    return {"is_admin": is_admin}
