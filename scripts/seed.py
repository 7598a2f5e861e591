"""
Seed the admin account and default plans. Run once per deploy, after migrations.

Usage:
    ADMIN_PASSWORD=... python -m scripts.seed
    python -m scripts.seed --username ops --email ops@cartaovidah.com --password ...
"""
import argparse
import asyncio
import logging
import os
import sys

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger(__name__)


async def seed(username: str, password: str, email: str) -> None:
    from vidah.database import async_session_factory, dispose_engine
    from vidah.services.seed import seed_defaults

    try:
        async with async_session_factory() as db:
            summary = await seed_defaults(db, username=username, password=password, email=email)
    finally:
        await dispose_engine()

    logger.info(
        "Seed complete: admin_created=%s plans_created=%d",
        summary["admin_created"], summary["plans_created"],
    )


def main() -> None:
    from vidah.services.seed import DEFAULT_ADMIN_EMAIL, DEFAULT_ADMIN_USERNAME

    parser = argparse.ArgumentParser(description="Seed admin user and default plans")
    parser.add_argument("--username", default=os.environ.get("ADMIN_USERNAME", DEFAULT_ADMIN_USERNAME))
    parser.add_argument("--email", default=os.environ.get("ADMIN_EMAIL", DEFAULT_ADMIN_EMAIL))
    parser.add_argument(
        "--password",
        default=os.environ.get("ADMIN_PASSWORD", ""),
        help="Admin password (defaults to $ADMIN_PASSWORD)",
    )
    args = parser.parse_args()

    if not args.password:
        logger.error("No admin password: pass --password or set ADMIN_PASSWORD")
        sys.exit(1)

    asyncio.run(seed(args.username, args.password, args.email))


if __name__ == "__main__":
    main()
