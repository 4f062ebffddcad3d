"""Ask a running persistence API to import its legacy JSON file.

Usage:
    python -m calorie_chat.migrate [--base-url http://localhost:3001]
"""

import argparse
import asyncio
import logging

import httpx

from calorie_chat.adapters.http_snapshot_client import HttpxSnapshotClient
from calorie_chat.app_logging import configure_logging
from calorie_chat.config import Settings
from calorie_chat.domain.errors import SyncError

logger = logging.getLogger("calorie_chat.migrate")

EXPECTED_BACKEND = "SQLite"


async def run_migration(client: HttpxSnapshotClient) -> int:
    """Check service health, trigger the import and report. Returns an exit code."""
    try:
        health = await client.health()
    except SyncError as exc:
        logger.error("Error connecting to persistence server: %s", exc)
        logger.error("Make sure the persistence API is running.")
        return 1
    if health.get("status") != "OK":
        logger.error("Server health check failed: %s", health)
        return 1
    if health.get("database") != EXPECTED_BACKEND:
        logger.warning(
            "The server does not appear to be using %s (reports %s)",
            EXPECTED_BACKEND,
            health.get("database"),
        )
    logger.info("Server is healthy and ready for migration.")

    try:
        response = await client.migrate_legacy()
    except SyncError as exc:
        logger.error("Error during migration process: %s", exc)
        return 1

    if response.status_code == httpx.codes.NOT_FOUND:
        logger.info(
            "No JSON file found for migration. "
            "If this is a fresh install, this is normal."
        )
        return 0
    try:
        body = response.json()
    except ValueError:
        body = {"raw": response.text}
    if response.is_success and body.get("success"):
        logger.info(
            "Migration completed. The original JSON file was backed up to %s",
            body.get("backupFile"),
        )
        return 0
    logger.error("Migration failed (%s): %s", response.status_code, body)
    return 1


def main(argv: list[str] | None = None) -> int:
    """Entry point for the migration command."""
    parser = argparse.ArgumentParser(
        description="Migrate legacy CalorieChat JSON data into the SQLite store."
    )
    parser.add_argument(
        "--base-url",
        default=None,
        help="Persistence API base URL (defaults to API_BASE_URL setting)",
    )
    args = parser.parse_args(argv)
    settings = Settings()
    configure_logging(settings.log_level)

    base_url = args.base_url or settings.api_base_url

    async def _run() -> int:
        client = HttpxSnapshotClient.create(base_url)
        try:
            return await run_migration(client)
        finally:
            await client.close()

    return asyncio.run(_run())


if __name__ == "__main__":
    raise SystemExit(main())
