"""Browser entry points for the single-page client.

The built client is served from ``client_dist`` when it exists; otherwise
the browser is sent to the client's dev server. Admin pages require an
administrator session and send everyone else to ``/login``.
"""

from pathlib import Path

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse, RedirectResponse, Response

from quillpost.config import get_settings
from quillpost.services.auth import require_admin

router = APIRouter(tags=["pages"], include_in_schema=False)


def client_page(dev_path: str) -> Response:
    settings = get_settings()
    index = Path(settings.client_dist) / "index.html"
    if index.is_file():
        return FileResponse(index, media_type="text/html")
    return RedirectResponse(
        f"{settings.client_dev_url.rstrip('/')}{dev_path}", status_code=302
    )


@router.get("/login")
async def login_page():
    return client_page("/login")


@router.get("/admin", dependencies=[Depends(require_admin)])
async def admin_home():
    return RedirectResponse("/admin/posts", status_code=302)


@router.get("/admin/posts", dependencies=[Depends(require_admin)])
async def admin_posts_page():
    return client_page("/admin")
