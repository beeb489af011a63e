"""FastAPI control surface for the sync engine."""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from frindr_sync.adapters.wire_models import FamilyMemberDTO, MealDTO
from frindr_sync.app_logging import configure_logging
from frindr_sync.containers import AppContainer, bootstrap
from frindr_sync.domain.models import FamilyMember, Meal
from frindr_sync.domain.sync import SyncState


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state_container: AppContainer = app.state.container
        await bootstrap(state_container)
        sync_task: asyncio.Task[None] | None = None
        interval = state_container.settings.sync_interval_seconds
        if interval > 0:
            sync_task = asyncio.create_task(
                state_container.sync_coordinator.run_periodic(interval)
            )
            logger.info("Background sync every %s seconds", interval)
        yield
        if sync_task is not None:
            sync_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sync_task
        await state_container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/sync/status")
    async def sync_status(request: Request) -> dict[str, object]:
        """Return the current sync state."""
        state_container: AppContainer = request.app.state.container
        return _state_payload(state_container.sync_coordinator.status)

    @app.post("/sync")
    async def trigger_sync(request: Request) -> dict[str, object]:
        """Run a sync pass and return the resulting state."""
        state_container: AppContainer = request.app.state.container
        state = await state_container.sync_coordinator.sync_all()
        return _state_payload(state)

    @app.get("/meals")
    async def list_meals(request: Request) -> dict[str, object]:
        """Return cached meals."""
        state_container: AppContainer = request.app.state.container
        return {
            "meals": [_meal_payload(meal) for meal in state_container.meal_service.items]
        }

    @app.get("/family-members")
    async def list_family_members(request: Request) -> dict[str, object]:
        """Return cached family members."""
        state_container: AppContainer = request.app.state.container
        return {
            "familyMembers": [
                _member_payload(member)
                for member in state_container.family_member_service.items
            ]
        }

    return app


def _state_payload(state: SyncState) -> dict[str, object]:
    return {
        "status": state.phase.value,
        "message": state.message,
        "pendingCount": state.pending_count,
        "lastSyncedAt": state.last_synced_at.isoformat()
        if state.last_synced_at
        else None,
    }


def _meal_payload(meal: Meal) -> dict[str, object]:
    payload = MealDTO.from_meal(meal).to_wire()
    payload["syncStatus"] = meal.sync_status.value
    payload["hasLocalImage"] = meal.image_data is not None
    return payload


def _member_payload(member: FamilyMember) -> dict[str, object]:
    payload = FamilyMemberDTO.from_family_member(member).to_wire()
    payload["syncStatus"] = member.sync_status.value
    return payload
