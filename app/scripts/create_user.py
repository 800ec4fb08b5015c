"""
Create a user (e.g. first admin). Run from project root:
  python -m app.scripts.create_user USERNAME EMAIL PASSWORD [role]
Example:
  python -m app.scripts.create_user admin admin@example.com 'your-secure-passw0rd' admin
"""
import argparse
import logging
import sys

from app.core.config import get_settings
from app.core.database import SessionLocal
from app.core.errors import AuthServiceError
from app.models.user import ADMIN_ROLE, DEFAULT_ROLE
from app.services.users import UserAdminService

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)


def main() -> int:
    parser = argparse.ArgumentParser(description="Create a Warden user under the registration rules.")
    parser.add_argument("username", help="Username (1-255 chars)")
    parser.add_argument("email", help="Email address")
    parser.add_argument("password", help="Password (8-128 chars, at least one letter and one digit)")
    parser.add_argument("role", nargs="?", default=DEFAULT_ROLE, choices=[DEFAULT_ROLE, ADMIN_ROLE])
    args = parser.parse_args()

    settings = get_settings()
    db = SessionLocal()
    try:
        user = UserAdminService(db, settings).create_user(
            args.username, args.email, args.password, roles=[DEFAULT_ROLE, args.role]
        )
        print(f"Created user '{user.username}' ({user.id}) with role '{args.role}'.")
        return 0
    except AuthServiceError as e:
        print(e.message, file=sys.stderr)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
