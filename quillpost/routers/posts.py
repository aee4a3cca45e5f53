"""Public post endpoints: listing, single post with comments, commenting."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Path

from quillpost.models.post import Comment, CommentCreate, PostDetail, PostIndex, PostSummary
from quillpost.services.renderer import excerpt, render_content_to_html
from quillpost.services.store import BlogStore, get_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/posts", tags=["posts"])


@router.get("", response_model=PostIndex)
async def list_posts(store: BlogStore = Depends(get_store)):
    """Get all posts, newest first, with a short excerpt of each body."""
    posts = [
        PostSummary(
            id=p.id,
            title=p.title,
            slug=p.slug,
            excerpt=excerpt(p.content),
            created_at=p.created_at,
            updated_at=p.updated_at,
        )
        for p in store.list_posts()
    ]
    return PostIndex(posts=posts, total=len(posts))


@router.get("/{slug}", response_model=PostDetail)
async def get_post(
    slug: str = Path(..., max_length=200),
    store: BlogStore = Depends(get_store),
):
    """Get a single post with its rendered body and comments."""
    post = store.get_post_by_slug(slug)
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    return PostDetail(
        post=post,
        html=render_content_to_html(post.content),
        comments=store.list_comments(post.id),
    )


@router.post("/{slug}/comments", response_model=Comment, status_code=201)
async def add_comment(
    comment: CommentCreate,
    slug: str = Path(..., max_length=200),
    store: BlogStore = Depends(get_store),
):
    """Add a visitor comment. A blank author is stored as "Anonymous"."""
    post = store.get_post_by_slug(slug)
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    if not comment.body:
        raise HTTPException(status_code=400, detail="Comment body is required")

    created = store.add_comment(post.id, comment.author, comment.body)
    logger.info("Comment %d added to %s by %s", created.id, slug, comment.author)
    return created
