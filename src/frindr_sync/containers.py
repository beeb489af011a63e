"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from frindr_sync.adapters.api_client import ApiClient, HttpxApiClient
from frindr_sync.adapters.file_store import JsonFileLocalStore
from frindr_sync.config import Settings
from frindr_sync.domain.sync import SyncState
from frindr_sync.services.family_members import FamilyMemberService
from frindr_sync.services.images import ImageService
from frindr_sync.services.meals import MealService
from frindr_sync.services.persistence import LocalStore
from frindr_sync.services.sync import SyncCoordinator


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    store: LocalStore
    api_client: ApiClient
    image_service: ImageService
    meal_service: MealService
    family_member_service: FamilyMemberService
    sync_coordinator: SyncCoordinator
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    store = JsonFileLocalStore.create(resolved_settings.cache_dir)
    api_client = HttpxApiClient.create(
        base_url=resolved_settings.api_base_url,
        token=resolved_settings.api_token,
        timeout=resolved_settings.request_timeout_seconds,
        reachability_timeout=resolved_settings.reachability_timeout_seconds,
    )
    image_service = ImageService(
        api_client=api_client,
        max_size_kb=resolved_settings.image_max_size_kb,
    )
    meal_service = MealService(store, api_client, image_service)
    family_member_service = FamilyMemberService(store, api_client)
    sync_coordinator = SyncCoordinator(
        store=store,
        api_client=api_client,
        meal_service=meal_service,
        family_member_service=family_member_service,
    )

    async def close_resources() -> None:
        await meal_service.flush()
        await family_member_service.flush()
        await api_client.close()

    return AppContainer(
        settings=resolved_settings,
        store=store,
        api_client=api_client,
        image_service=image_service,
        meal_service=meal_service,
        family_member_service=family_member_service,
        sync_coordinator=sync_coordinator,
        close_resources=close_resources,
    )


async def bootstrap(container: AppContainer) -> SyncState:
    """Launch-time start: load caches, count the queue, run one sync pass."""
    await container.meal_service.load_from_cache()
    await container.family_member_service.load_from_cache()
    await container.sync_coordinator.refresh_pending_count()
    return await container.sync_coordinator.sync_all()
