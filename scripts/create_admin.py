"""Create an administrator, or reset the password of an existing one.

Usage:
    python -m scripts.create_admin <email> <password>
"""

import sys

from quillpost.config import get_settings
from quillpost.middleware import configure_logging
from quillpost.services.auth import hash_password
from quillpost.services.store import BlogStore


def main(argv: list[str]) -> int:
    email = (argv[0] if argv else "").strip().lower()
    password = (argv[1] if len(argv) > 1 else "").strip()
    if not email or not password:
        print("Usage: python -m scripts.create_admin <email> <password>", file=sys.stderr)
        return 1

    store = BlogStore(get_settings().database_url)
    store.init()
    try:
        _, created = store.save_admin(email, hash_password(password))
    finally:
        store.close()

    if created:
        print(f"Admin created: {email}")
    else:
        print(f"User already exists. Password updated for: {email}")
    return 0


if __name__ == "__main__":
    configure_logging()
    sys.exit(main(sys.argv[1:]))
