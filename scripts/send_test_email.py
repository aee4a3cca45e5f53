"""Send one email through the configured providers.

Usage:
    python -m scripts.send_test_email <to> [subject] [body]

Exits 0 when a provider accepted the message, 2 when none did.
"""

import asyncio
import sys

from quillpost.config import get_settings
from quillpost.middleware import configure_logging
from quillpost.services.http_client import close_shared_client
from quillpost.services.mailer import build_dispatcher


async def main(argv: list[str]) -> int:
    if not argv:
        print(
            "Usage: python -m scripts.send_test_email <to> [subject] [body]",
            file=sys.stderr,
        )
        return 1

    settings = get_settings()
    to = argv[0]
    subject = argv[1] if len(argv) > 1 else f"{settings.site_name} test email"
    body = argv[2] if len(argv) > 2 else f"This is a test email from {settings.site_name}."

    dispatcher = build_dispatcher(settings)
    try:
        outcome = await dispatcher.send_test(to, subject=subject, body=body)
    finally:
        await close_shared_client()

    if not outcome.success:
        print(f"Send failed: {outcome.error}", file=sys.stderr)
        return 2
    print(f"Sent via {outcome.provider} (id={outcome.message_id})")
    return 0


if __name__ == "__main__":
    configure_logging()
    sys.exit(asyncio.run(main(sys.argv[1:])))
