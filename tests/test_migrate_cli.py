"""Tests for the legacy migration command."""

import asyncio

import httpx

from calorie_chat.adapters.http_snapshot_client import HttpxSnapshotClient
from calorie_chat.migrate import run_migration


def _client(
    migrate_response: httpx.Response, database: str = "SQLite"
) -> tuple[HttpxSnapshotClient, list[str]]:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        if request.url.path == "/api/health":
            return httpx.Response(200, json={"status": "OK", "database": database})
        return migrate_response

    client = HttpxSnapshotClient(
        base_url="http://localhost:3001",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    return client, calls


def test_successful_migration_exits_zero() -> None:
    client, calls = _client(
        httpx.Response(
            200,
            json={
                "success": True,
                "message": "Migration from JSON to SQLite completed successfully",
                "backupFile": "/app/data/calorieChat.json.bak.1700000000000",
            },
        )
    )

    assert asyncio.run(run_migration(client)) == 0
    assert calls == ["/api/health", "/api/migrate-json"]


def test_nothing_to_migrate_exits_zero() -> None:
    client, _ = _client(
        httpx.Response(404, json={"message": "No JSON file found to migrate"})
    )

    assert asyncio.run(run_migration(client)) == 0


def test_failed_migration_exits_one() -> None:
    client, _ = _client(
        httpx.Response(500, json={"error": "Migration failed", "details": "locked"})
    )

    assert asyncio.run(run_migration(client)) == 1


def test_other_backend_still_migrates() -> None:
    client, calls = _client(httpx.Response(200, json={"success": True}), "JSON")

    assert asyncio.run(run_migration(client)) == 0
    assert calls[-1] == "/api/migrate-json"


def test_unreachable_server_exits_one() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = HttpxSnapshotClient(
        base_url="http://localhost:3001",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )

    assert asyncio.run(run_migration(client)) == 1
