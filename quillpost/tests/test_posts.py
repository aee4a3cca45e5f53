"""Tests for the public post and comment endpoints."""

from quillpost.models.post import CommentCreate


async def test_list_posts_empty(client):
    response = await client.get("/api/posts")
    assert response.status_code == 200
    assert response.json() == {"posts": [], "total": 0}


async def test_list_posts_newest_first_with_excerpt(client, store):
    store.create_post("Older", "older", "short body")
    store.create_post("Newer", "newer", "x" * 500)

    data = (await client.get("/api/posts")).json()

    assert data["total"] == 2
    assert [p["slug"] for p in data["posts"]] == ["newer", "older"]
    assert len(data["posts"][0]["excerpt"]) == 240
    assert "content" not in data["posts"][0]


async def test_get_post_renders_body(client, store):
    store.create_post(
        "Pictures", "pictures", "Intro <b>text</b>\nhttps://cdn.example.com/a.png"
    )

    response = await client.get("/api/posts/pictures")

    assert response.status_code == 200
    data = response.json()
    assert data["post"]["title"] == "Pictures"
    assert data["post"]["content"].startswith("Intro <b>")
    assert data["html"] == (
        "<p>Intro &lt;b&gt;text&lt;/b&gt;</p>\n"
        '<div class="post-image"><img src="https://cdn.example.com/a.png" '
        'alt="image" loading="lazy"/></div>'
    )
    assert data["comments"] == []


async def test_get_unknown_post_404(client):
    response = await client.get("/api/posts/missing")
    assert response.status_code == 404
    assert response.json()["detail"] == "Post not found"


async def test_add_comment(client, store):
    store.create_post("Hello", "hello", "body")

    response = await client.post(
        "/api/posts/hello/comments", json={"author": "  Ann ", "body": " Nice post "}
    )

    assert response.status_code == 201
    comment = response.json()
    assert comment["author"] == "Ann"
    assert comment["body"] == "Nice post"

    detail = (await client.get("/api/posts/hello")).json()
    assert [c["body"] for c in detail["comments"]] == ["Nice post"]


async def test_blank_author_becomes_anonymous(client, store):
    store.create_post("Hello", "hello", "body")
    response = await client.post(
        "/api/posts/hello/comments", json={"author": "   ", "body": "hi"}
    )
    assert response.json()["author"] == "Anonymous"

    response = await client.post("/api/posts/hello/comments", json={"body": "hi again"})
    assert response.json()["author"] == "Anonymous"


async def test_comments_listed_newest_first(client, store):
    store.create_post("Hello", "hello", "body")
    for text in ("first", "second"):
        await client.post("/api/posts/hello/comments", json={"body": text})

    detail = (await client.get("/api/posts/hello")).json()
    assert [c["body"] for c in detail["comments"]] == ["second", "first"]


async def test_empty_comment_rejected(client, store):
    store.create_post("Hello", "hello", "body")
    response = await client.post(
        "/api/posts/hello/comments", json={"author": "Ann", "body": "   "}
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Comment body is required"
    assert store.list_comments(store.get_post_by_slug("hello").id) == []


async def test_comment_on_unknown_post_404(client):
    response = await client.post("/api/posts/missing/comments", json={"body": "hi"})
    assert response.status_code == 404


async def test_overlong_comment_rejected(client, store):
    store.create_post("Hello", "hello", "body")
    response = await client.post(
        "/api/posts/hello/comments", json={"body": "x" * 5001}
    )
    assert response.status_code == 422


def test_comment_model_defaults_author_when_missing():
    assert CommentCreate(body="hi").author == "Anonymous"
    assert CommentCreate(author="  ", body="hi").author == "Anonymous"
    assert CommentCreate(author=" Ann ", body="hi").author == "Ann"
