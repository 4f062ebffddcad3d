"""HTTP client for the snapshot persistence API."""

from dataclasses import dataclass

import httpx
from pydantic import ValidationError

from calorie_chat.domain.errors import SnapshotNotFoundError, SyncError
from calorie_chat.domain.snapshot import AppSnapshot
from calorie_chat.services.sync import SnapshotClient

LOAD_PATH = "/api/load-data"
SAVE_PATH = "/api/save-data"
HEALTH_PATH = "/api/health"
MIGRATE_PATH = "/api/migrate-json"


@dataclass
class HttpxSnapshotClient(SnapshotClient):
    """HTTPX-backed persistence API client."""

    base_url: str
    http_client: httpx.AsyncClient
    timeout: float = 10.0

    @classmethod
    def create(cls, base_url: str, timeout: float = 10.0) -> "HttpxSnapshotClient":
        """Create a client with a managed httpx session."""
        return cls(
            base_url=base_url.rstrip("/"),
            http_client=httpx.AsyncClient(),
            timeout=timeout,
        )

    async def load(self) -> AppSnapshot:
        """Fetch the stored snapshot."""
        response = await self._request("GET", LOAD_PATH)
        if response.status_code == httpx.codes.NOT_FOUND:
            raise SnapshotNotFoundError("No saved data found")
        _raise_for_status(response)
        try:
            return AppSnapshot.from_wire(response.json())
        except (ValueError, ValidationError) as exc:
            raise SyncError(f"Malformed snapshot from {LOAD_PATH}: {exc}") from exc

    async def save(self, snapshot: AppSnapshot) -> None:
        """Send the full snapshot."""
        response = await self._request("POST", SAVE_PATH, json=snapshot.to_wire())
        _raise_for_status(response)

    async def health(self) -> dict[str, object]:
        """Return the service health document."""
        response = await self._request("GET", HEALTH_PATH)
        _raise_for_status(response)
        return response.json()

    async def migrate_legacy(self) -> httpx.Response:
        """Ask the service to import its legacy JSON file.

        The raw response is returned so callers can tell 404 (nothing to do)
        from real failures.
        """
        return await self._request("POST", MIGRATE_PATH)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _request(
        self, method: str, path: str, json: object | None = None
    ) -> httpx.Response:
        try:
            return await self.http_client.request(
                method, f"{self.base_url}{path}", json=json, timeout=self.timeout
            )
        except httpx.HTTPError as exc:
            raise SyncError(f"{method} {path} failed: {exc}") from exc


def _raise_for_status(response: httpx.Response) -> None:
    if response.is_success:
        return
    raise SyncError(
        f"{response.request.method} {response.request.url.path} "
        f"returned {response.status_code}"
    )
