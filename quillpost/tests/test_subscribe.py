"""Tests for the subscription endpoint and the welcome email."""


async def test_subscribe_creates_record_and_welcomes(client, store, fake_provider):
    response = await client.post("/api/subscribe", json={"email": "Reader@Example.com"})

    assert response.status_code == 200
    assert response.json()["status"] == "subscribed"
    assert [s.email for s in store.list_subscribers()] == ["reader@example.com"]

    assert len(fake_provider.sent) == 1
    welcome = fake_provider.sent[0]
    assert welcome.to == "reader@example.com"
    assert welcome.subject == "Welcome to quillpost"
    assert welcome.sender == "blog@example.com"


async def test_subscribe_twice_is_idempotent(client, store, fake_provider):
    first = await client.post("/api/subscribe", json={"email": "reader@example.com"})
    second = await client.post("/api/subscribe", json={"email": " READER@example.com "})

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["status"] == "already_subscribed"
    assert len(store.list_subscribers()) == 1
    # Only the first subscription is welcomed
    assert len(fake_provider.sent) == 1


async def test_invalid_email_rejected(client, store):
    response = await client.post("/api/subscribe", json={"email": "not-an-email"})
    assert response.status_code == 422
    assert store.list_subscribers() == []


async def test_welcome_failure_does_not_fail_subscription(client, store, fake_provider):
    fake_provider.fail_for.add("reader@example.com")

    response = await client.post("/api/subscribe", json={"email": "reader@example.com"})

    assert response.status_code == 200
    assert response.json()["status"] == "subscribed"
    assert len(store.list_subscribers()) == 1
    assert fake_provider.sent == []
