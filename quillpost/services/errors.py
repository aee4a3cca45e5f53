"""Domain exceptions raised by services and translated by routers."""


class StoreError(Exception):
    """Persistence failure that is not a known constraint violation."""


class SlugConflictError(StoreError):
    """Another post already uses this slug."""

    def __init__(self, slug: str) -> None:
        super().__init__(f"Slug already in use: {slug!r}")
        self.slug = slug


class DeliveryError(Exception):
    """An email provider could not deliver a message."""


class UploadRejected(ValueError):
    """An uploaded file failed validation (type, size, or count)."""
