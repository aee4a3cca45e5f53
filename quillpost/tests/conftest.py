"""Shared fixtures for quillpost tests."""

import sys

import pytest
from httpx import ASGITransport, AsyncClient

from quillpost.services.errors import DeliveryError
from quillpost.services.mailer import MailMessage, NotificationDispatcher

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin123"  # noqa: S105


class FakeProvider:
    """Email provider that records messages instead of sending them.

    Recipients listed in ``fail_for`` raise ``DeliveryError``.
    """

    def __init__(self, name: str = "fake", fail_for: set[str] | None = None) -> None:
        self.name = name
        self.fail_for = fail_for or set()
        self.sent: list[MailMessage] = []

    async def send(self, message: MailMessage) -> str:
        if message.to in self.fail_for:
            raise DeliveryError(f"{self.name} rejected {message.to}")
        self.sent.append(message)
        return f"{self.name}-{len(self.sent)}"


@pytest.fixture(autouse=True)
def _reset_global_state():
    """Reset all module-level singletons and caches between tests."""
    yield

    # 1. Settings LRU cache
    from quillpost.config import get_settings

    get_settings.cache_clear()

    # 2. Upload blob container singleton
    import quillpost.services.uploads as uploads_mod

    uploads_mod._container_client = None

    # 3. HTTP client singleton
    import quillpost.services.http_client as http_mod

    http_mod._client = None

    # 4. Health check cache (only if the app module was imported)
    main_mod = sys.modules.get("quillpost.main")
    if main_mod is not None:
        main_mod._health_cache = None


@pytest.fixture
def mock_settings(monkeypatch, tmp_path):
    """Provide a Settings object with safe test defaults."""
    from quillpost.config import Settings, get_settings

    test_settings = Settings(
        database_url=f"sqlite:///{tmp_path / 'test.sqlite'}",
        session_secret="test-secret",  # noqa: S106
        admin_email=ADMIN_EMAIL,
        admin_password=ADMIN_PASSWORD,
        mail_from="blog@example.com",
        resend_api_key="",
        smtp_host="",
        smtp_user="",
        smtp_pass="",
        upload_dir=str(tmp_path / "uploads"),
        azure_storage_account="",
        public_base_url="",
        client_dist=str(tmp_path / "client" / "dist"),
        client_dev_url="http://localhost:5173",
    )

    get_settings.cache_clear()
    monkeypatch.setattr("quillpost.config.get_settings", lambda: test_settings)

    # Patch get_settings in modules that import it directly
    # (from quillpost.config import get_settings creates a local binding that
    # the quillpost.config monkeypatch above does not affect)
    for mod_path in [
        "quillpost.services.auth",
        "quillpost.services.uploads",
        "quillpost.routers.admin",
        "quillpost.routers.pages",
    ]:
        monkeypatch.setattr(f"{mod_path}.get_settings", lambda: test_settings)

    return test_settings


@pytest.fixture
def store(mock_settings):
    """A fresh SQLite store in the test's temporary directory."""
    from quillpost.services.store import BlogStore

    blog_store = BlogStore(mock_settings.database_url)
    blog_store.init()
    yield blog_store
    blog_store.close()


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def app(store, fake_provider):
    """The FastAPI app wired to the test store and a recording provider."""
    from quillpost.main import app as fastapi_app
    from quillpost.services.auth import ensure_default_admin

    ensure_default_admin(store)
    fastapi_app.state.store = store
    fastapi_app.state.dispatcher = NotificationDispatcher(
        [fake_provider], sender="blog@example.com", site_name="quillpost"
    )
    yield fastapi_app
    del fastapi_app.state.store
    del fastapi_app.state.dispatcher


@pytest.fixture
async def client(app):
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as http_client:
        yield http_client


@pytest.fixture
async def admin_client(client):
    """A client holding an administrator session."""
    response = await client.post(
        "/api/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD}
    )
    assert response.status_code == 200
    return client
