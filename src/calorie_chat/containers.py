"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from calorie_chat.adapters.file_snapshot_cache import FileSnapshotCache
from calorie_chat.adapters.http_snapshot_client import HttpxSnapshotClient
from calorie_chat.adapters.openai_nutrition_client import OpenAINutritionClient
from calorie_chat.adapters.sqlalchemy_snapshot_repository import (
    SqlAlchemySnapshotRepository,
)
from calorie_chat.config import Settings
from calorie_chat.services.chat import ChatAssistant
from calorie_chat.services.legacy_import import LegacyImportService
from calorie_chat.services.nutrition import NutritionEstimator
from calorie_chat.services.snapshots import SnapshotService
from calorie_chat.services.state_store import StateStore
from calorie_chat.services.sync import SyncCoordinator


@dataclass
class AppContainer:
    """Holds server-side dependencies."""

    settings: Settings
    snapshot_service: SnapshotService
    legacy_import_service: LegacyImportService
    close_resources: Callable[[], Awaitable[None]]


@dataclass
class ClientContainer:
    """Holds the client-side state store, its sync coordinator and the chat."""

    settings: Settings
    store: StateStore
    sync: SyncCoordinator
    chat: ChatAssistant | None
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default server dependency container."""
    resolved_settings = settings or Settings()
    repository = SqlAlchemySnapshotRepository.create(resolved_settings.database_path)
    snapshot_service = SnapshotService(repository)
    legacy_import_service = LegacyImportService(
        snapshot_service=snapshot_service,
        legacy_path=resolved_settings.legacy_path,
    )

    async def close_resources() -> None:
        repository.engine.dispose()

    return AppContainer(
        settings=resolved_settings,
        snapshot_service=snapshot_service,
        legacy_import_service=legacy_import_service,
        close_resources=close_resources,
    )


def build_client_container(settings: Settings | None = None) -> ClientContainer:
    """Create a client-side store synchronised with the persistence API."""
    resolved_settings = settings or Settings()
    http_client = HttpxSnapshotClient.create(
        resolved_settings.api_base_url,
        timeout=resolved_settings.request_timeout_seconds,
    )
    store = StateStore()
    sync = SyncCoordinator(
        store=store,
        client=http_client,
        cache=FileSnapshotCache(resolved_settings.cache_path),
        autosave_delay=resolved_settings.autosave_delay_seconds,
    )
    openai_client = None
    chat = None
    if resolved_settings.openai_api_key:
        openai_client = OpenAINutritionClient.create(resolved_settings.openai_api_key)
        chat = ChatAssistant(
            store=store,
            estimator=NutritionEstimator(
                client=openai_client, model=resolved_settings.openai_model
            ),
        )

    async def close_resources() -> None:
        await sync.flush()
        await sync.close()
        await http_client.close()
        if openai_client is not None:
            await openai_client.close()

    return ClientContainer(
        settings=resolved_settings,
        store=store,
        sync=sync,
        chat=chat,
        close_resources=close_resources,
    )
