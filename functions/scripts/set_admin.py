"""
Grant admin rights to an existing user by email.

Uses the same database and identity backends as the API (see
backend.config), so with the default settings it talks to Firebase with
the application default credentials. Unlike the `set_admin` callable it
does not refuse when an admin already exists, since running it requires
project credentials.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from firebase_admin import initialize_app
from firebase_functions import https_fn

from actions.users import grant_admin
from backend.config import get_settings
from backend.dependencies import get_clients

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Grant admin rights by email")
    parser.add_argument("email", help="Email of the user to promote")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only look the user up, do not change claims or profile",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")

    settings = get_settings()
    if "firebase" in (settings.auth_backend, settings.storage_backend) or (
        settings.db_backend == "firestore"
    ):
        initialize_app()

    clients = get_clients()
    email = args.email.strip()
    if args.dry_run:
        uid = clients.auth.get_uid_by_email(email)
        if uid is None:
            logger.error("No user with email %s", email)
            return 1
        logger.info("Would grant admin to %s (uid %s)", email, uid)
        return 0

    try:
        uid = grant_admin(clients, email)
    except https_fn.HttpsError as e:
        logger.error("%s", e.message)
        return 1
    logger.info("Granted admin to %s (uid %s)", email, uid)
    return 0


if __name__ == "__main__":
    sys.exit(main())
