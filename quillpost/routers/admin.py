"""Administrator endpoints for posts, subscribers and email.

Every route here requires an administrator session (see ``require_admin``).
"""

import logging

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    File,
    Form,
    HTTPException,
    Request,
    UploadFile,
)

from quillpost.config import get_settings
from quillpost.models.admin import (
    AdminDashboard,
    BroadcastRequest,
    BroadcastResponse,
    EmailTestRequest,
    EmailTestResponse,
    PostRow,
)
from quillpost.models.post import Post
from quillpost.services.auth import require_admin
from quillpost.services.errors import SlugConflictError, UploadRejected
from quillpost.services.mailer import NotificationDispatcher, get_dispatcher
from quillpost.services.slug import slug_for_title
from quillpost.services.store import BlogStore, get_store
from quillpost.services.uploads import clear_uploads, discard_images, save_images

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)]
)


def public_base_url(request: Request) -> str:
    """Configured public origin, else the origin the request came in on."""
    configured = get_settings().public_base_url
    return (configured or str(request.base_url)).rstrip("/")


def append_image_urls(content: str, urls: list[str]) -> str:
    """Append one URL per line after a blank line so each renders as an image."""
    if not urls:
        return content
    return content + "\n\n" + "\n".join(urls)


async def _stored_images(images: list[UploadFile], base_url: str) -> list[str]:
    try:
        return await save_images(images, base_url)
    except UploadRejected as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


@router.get("", response_model=AdminDashboard)
async def dashboard(store: BlogStore = Depends(get_store)):
    """All posts (without bodies) and all subscribers."""
    posts = [PostRow(**p.model_dump(exclude={"content"})) for p in store.list_posts()]
    return AdminDashboard(posts=posts, subscribers=store.list_subscribers())


@router.get("/posts/{post_id}", response_model=Post)
async def get_post_for_edit(post_id: int, store: BlogStore = Depends(get_store)):
    post = store.get_post(post_id)
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    return post


@router.post("/posts", response_model=Post, status_code=201)
async def create_post(
    request: Request,
    background_tasks: BackgroundTasks,
    title: str = Form(""),
    content: str = Form(""),
    images: list[UploadFile] = File(default=[]),
    store: BlogStore = Depends(get_store),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Publish a post and notify subscribers once the response is sent.

    Uploaded images are stored and their URLs appended to the body.
    """
    title = title.strip()
    content = content.strip()
    if not title or not content:
        raise HTTPException(status_code=400, detail="Title and content required")

    slug = slug_for_title(title)
    if store.get_post_by_slug(slug):
        raise HTTPException(status_code=409, detail="Title already used")

    base_url = public_base_url(request)
    urls = await _stored_images(images, base_url)
    try:
        post = store.create_post(title, slug, append_image_urls(content, urls))
    except SlugConflictError:
        await discard_images(urls)
        raise HTTPException(status_code=409, detail="Title already used")

    logger.info("Created post %s (%d images)", post.slug, len(urls))
    background_tasks.add_task(
        dispatcher.notify_new_post,
        post,
        f"{base_url}/post/{post.slug}",
        store.subscriber_emails(),
    )
    return post


@router.put("/posts/{post_id}", response_model=Post)
async def update_post(
    post_id: int,
    request: Request,
    title: str = Form(""),
    content: str = Form(""),
    images: list[UploadFile] = File(default=[]),
    store: BlogStore = Depends(get_store),
):
    """Replace a post's title and body. The slug follows the new title."""
    if store.get_post(post_id) is None:
        raise HTTPException(status_code=404, detail="Post not found")

    title = title.strip()
    content = content.strip()
    if not title or not content:
        raise HTTPException(status_code=400, detail="Title and content required")

    slug = slug_for_title(title)
    owner = store.get_post_by_slug(slug)
    if owner and owner.id != post_id:
        raise HTTPException(status_code=409, detail="Title already used")

    urls = await _stored_images(images, public_base_url(request))
    try:
        post = store.update_post(
            post_id, title, slug, append_image_urls(content, urls)
        )
    except SlugConflictError:
        await discard_images(urls)
        raise HTTPException(status_code=409, detail="Title already used")
    if post is None:
        await discard_images(urls)
        raise HTTPException(status_code=404, detail="Post not found")

    logger.info("Updated post %d (%s)", post.id, post.slug)
    return post


@router.delete("/posts/{post_id}")
async def delete_post(post_id: int, store: BlogStore = Depends(get_store)):
    """Delete a post and its comments. Unknown IDs are a no-op."""
    deleted = store.delete_post(post_id)
    if deleted:
        logger.info("Deleted post %d", post_id)
    return {"deleted": deleted}


@router.delete("/subscribers/{subscriber_id}")
async def delete_subscriber(subscriber_id: int, store: BlogStore = Depends(get_store)):
    deleted = store.delete_subscriber(subscriber_id)
    if deleted:
        logger.info("Deleted subscriber %d", subscriber_id)
    return {"deleted": deleted}


@router.post("/broadcast", response_model=BroadcastResponse, status_code=202)
async def broadcast(
    compose: BroadcastRequest,
    background_tasks: BackgroundTasks,
    store: BlogStore = Depends(get_store),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Queue a message to every subscriber.

    The response returns as soon as the batch is scheduled; per-recipient
    results are logged when it settles.
    """
    subject = compose.subject.strip()
    message = compose.message.strip()
    if not subject or not message:
        raise HTTPException(status_code=400, detail="Subject and message required")

    recipients = store.subscriber_emails()
    background_tasks.add_task(dispatcher.broadcast, subject, message, recipients)
    return BroadcastResponse(status="queued", recipients=len(recipients))


@router.post("/email-test", response_model=EmailTestResponse)
async def email_test(
    payload: EmailTestRequest,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Send one test email and report whether any provider accepted it."""
    outcome = await dispatcher.send_test(payload.to)
    return EmailTestResponse(sent=outcome.success, provider=outcome.provider)


@router.post("/wipe")
async def wipe_site(store: BlogStore = Depends(get_store)):
    """Delete every post, comment and uploaded image.

    Subscribers and administrators are kept.
    """
    posts_deleted = store.delete_all_posts()
    uploads_deleted = await clear_uploads()
    logger.warning(
        "Site wiped: %d posts and %d uploads deleted", posts_deleted, uploads_deleted
    )
    return {"posts_deleted": posts_deleted, "uploads_deleted": uploads_deleted}
