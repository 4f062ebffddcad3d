"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from calorie_chat.app_logging import configure_logging
from calorie_chat.containers import AppContainer
from calorie_chat.domain.errors import (
    BackupRenameError,
    InvalidSnapshotError,
    LegacyFileNotFoundError,
    SnapshotStoreError,
)


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # A store that cannot be opened is fatal; let the error stop startup.
        app.state.container.snapshot_service.repository.init_schema()
        logger.info(
            "Persistence API ready",
            extra={"database": str(app.state.container.settings.database_path)},
        )
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept"],
    )

    @app.get("/api/health")
    async def health(request: Request) -> dict[str, str]:
        """Health check reporting the storage backend."""
        state_container: AppContainer = request.app.state.container
        return {
            "status": "OK",
            "database": state_container.snapshot_service.backend_name,
        }

    @app.get("/api/load-data")
    async def load_data(request: Request) -> JSONResponse:
        """Return the full stored snapshot."""
        state_container: AppContainer = request.app.state.container
        try:
            snapshot = await run_in_threadpool(state_container.snapshot_service.load)
        except SnapshotStoreError as exc:
            logger.exception("Error fetching data")
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"error": "Failed to fetch data", "details": str(exc)},
            )
        return JSONResponse(content=snapshot.to_wire())

    @app.post("/api/save-data")
    async def save_data(request: Request) -> JSONResponse:
        """Replace the stored state with the posted snapshot."""
        state_container: AppContainer = request.app.state.container
        try:
            payload = await request.json()
        except ValueError:
            payload = None
        try:
            await run_in_threadpool(state_container.snapshot_service.save, payload)
        except InvalidSnapshotError as exc:
            logger.warning("Invalid data received for saving: %s", exc)
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={
                    "error": "Invalid data provided. Expected state object.",
                    "details": str(exc),
                },
            )
        except SnapshotStoreError as exc:
            logger.exception("Error saving data to database")
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"error": "Failed to save data", "details": str(exc)},
            )
        return JSONResponse(content={"success": True})

    @app.post("/api/migrate-json")
    async def migrate_json(request: Request) -> JSONResponse:
        """Import the legacy JSON file once and back it up."""
        state_container: AppContainer = request.app.state.container
        try:
            result = await run_in_threadpool(state_container.legacy_import_service.run)
        except LegacyFileNotFoundError:
            return JSONResponse(
                status_code=status.HTTP_404_NOT_FOUND,
                content={"message": "No JSON file found to migrate"},
            )
        except InvalidSnapshotError as exc:
            logger.warning("Legacy JSON file rejected: %s", exc)
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"error": "Invalid JSON data format", "details": str(exc)},
            )
        except BackupRenameError as exc:
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error": "Data imported but the legacy file could not be renamed",
                    "details": str(exc),
                    "imported": True,
                },
            )
        except SnapshotStoreError as exc:
            logger.exception("Error during migration")
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"error": "Migration failed", "details": str(exc)},
            )
        return JSONResponse(
            content={
                "success": True,
                "message": "Migration from JSON to SQLite completed successfully",
                "backupFile": str(result.backup_file),
                "stats": result.stats.as_dict(),
            }
        )

    return app
