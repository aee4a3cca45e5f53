"""Application configuration via environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings

DEFAULT_SESSION_SECRET = "change-me"  # noqa: S105


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # App
    debug: bool = False
    environment: str = "development"
    site_name: str = "quillpost"
    # Absolute origin used in emailed links and upload URLs; derived from the
    # request when empty.
    public_base_url: str = ""

    # Single-page client: built bundle, else the dev server
    client_dist: str = "client/dist"
    client_dev_url: str = "http://localhost:5173"

    # CORS
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://localhost:8000",
    ]

    # Persistence
    database_url: str = "sqlite:///data/quillpost.sqlite"

    # Sessions
    session_secret: str = DEFAULT_SESSION_SECRET
    session_max_age: int = 60 * 60 * 24

    # Administrator seeded on first start when none exists
    admin_email: str = "admin@example.com"
    admin_password: str = ""

    # Email: HTTPS provider first, SMTP relay second
    mail_from: str = ""
    resend_api_key: str = ""
    resend_api_url: str = "https://api.resend.com/emails"
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_pass: str = ""
    smtp_secure: bool = False
    smtp_require_tls: bool = False
    smtp_timeout_ms: int = 15000

    # Image uploads
    upload_dir: str = "data/uploads"
    upload_max_bytes: int = 5 * 1024 * 1024
    upload_max_files: int = 8

    # Azure Blob Storage for uploads (local directory when account is empty)
    azure_storage_account: str = ""
    azure_storage_container: str = "uploads"
    managed_identity_client_id: str = ""

    model_config = {"env_file": ".env", "extra": "ignore"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
