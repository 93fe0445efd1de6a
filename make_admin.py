"""
Give an existing user the admin role.

Usage: python make_admin.py your-email@example.com
"""
import argparse
import logging
import sys

from database import client, db, Store
from errors import NotFoundError
from users import promote_to_admin


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Give an existing user the admin role.")
    parser.add_argument("email", help="email address of the user to promote")
    args = parser.parse_args(argv)

    if db is None:
        print("DATABASE_URL is not set", file=sys.stderr)
        return 2

    try:
        changed = promote_to_admin(Store(db), args.email)
    except NotFoundError:
        print(f"User not found with email: {args.email}")
        return 1
    finally:
        client.close()

    print(f"Successfully made admin: {args.email}" if changed else f"User is already an admin: {args.email}")
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    sys.exit(main())
