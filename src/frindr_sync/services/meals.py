"""Meal service with local caching and remote sync."""

import asyncio
import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from uuid import UUID

from frindr_sync.adapters.api_client import (
    ApiClient,
    ApiError,
    Endpoint,
    HttpMethod,
)
from frindr_sync.adapters.wire_models import (
    CreateMealRequest,
    MealDTO,
    RecordEatenRequest,
)
from frindr_sync.domain.models import ItemSyncStatus, Meal
from frindr_sync.domain.mutations import MutationKind, PendingMutation, TargetKind
from frindr_sync.services.entities import EntityService
from frindr_sync.services.images import ImageService
from frindr_sync.services.persistence import LocalStore

_logger = logging.getLogger(__name__)


class MealService(EntityService[Meal]):
    """Owns the cached meal collection."""

    entity_type = Meal
    target_kind = TargetKind.MEAL

    def __init__(
        self, store: LocalStore, api_client: ApiClient, image_service: ImageService
    ) -> None:
        super().__init__(store, api_client)
        self.image_service = image_service

    async def create(self, entity: Meal, image_data: bytes | None = None) -> Meal:
        """Add a meal locally, upload its photo if any, then create it remotely."""
        if image_data is not None:
            entity = entity.model_copy(update={"image_data": image_data})
        return await super().create(entity, image_data)

    async def record_eaten(self, meal_id: UUID, member_ids: Iterable[UUID]) -> Meal:
        """Count a meal as eaten by the given family members.

        The local tally is kept whatever the remote outcome. When the network
        is down the event is queued; other failures are raised.
        """
        meal = self._require(meal_id)
        members = list(dict.fromkeys(member_ids))
        now = datetime.now(tz=UTC)
        eaten = meal.model_copy(
            update={
                "last_eaten": now,
                "times_eaten": meal.times_eaten + 1,
                "eaten_by": list(dict.fromkeys([*meal.eaten_by, *members])),
                "last_modified": now,
            }
        )
        self._replace(meal_id, eaten)

        request = RecordEatenRequest(
            family_member_ids=[str(member_id) for member_id in members]
        )
        if meal.sync_status is not ItemSyncStatus.SYNCED:
            await self._queue_eaten(eaten, request)
            return eaten
        try:
            remote = await self._post_eaten(meal_id, request)
        except ApiError as exc:
            if exc.is_network_error:
                await self._queue_eaten(eaten, request)
                return eaten
            raise
        return await self._acknowledge(meal_id, remote)

    def local_image(self, meal_id: UUID) -> bytes | None:
        """Return the not-yet-uploaded photo of a meal, if stored."""
        return self.store.load_image(meal_id)

    async def fetch_from_remote(self) -> list[Meal]:
        """Return all meals known to the server."""
        remote: list[MealDTO] = await self.api_client.request(
            Endpoint.meals(), HttpMethod.GET, response_model=list[MealDTO]
        )
        return [dto.to_meal() for dto in remote]

    def _load_cached(self) -> list[Meal]:
        meals = self.store.load_meals()
        return [self._with_local_image(meal) for meal in meals]

    def _with_local_image(self, meal: Meal) -> Meal:
        if meal.image_url or meal.sync_status is ItemSyncStatus.SYNCED:
            return meal
        image_data = self.store.load_image(meal.id)
        if image_data is None:
            return meal
        return meal.model_copy(update={"image_data": image_data})

    def _save_cached(self, items: list[Meal]) -> None:
        self.store.save_meals(items)

    async def _remote_create(self, entity: Meal, image_data: bytes | None) -> Meal:
        if image_data is None:
            return await self._post_meal(entity)
        upload = await self.image_service.upload_image(image_data, entity.id)
        try:
            return await self._post_meal(
                entity.model_copy(update={"image_url": upload.url, "image_data": None})
            )
        except ApiError:
            await self._discard_upload(upload.key)
            raise

    async def _post_meal(self, meal: Meal) -> Meal:
        created: MealDTO = await self.api_client.request(
            Endpoint.meals(),
            HttpMethod.POST,
            CreateMealRequest.from_meal(meal),
            response_model=MealDTO,
        )
        return created.to_meal()

    async def _discard_upload(self, key: str) -> None:
        try:
            await self.image_service.delete_image(key)
        except ApiError as exc:
            _logger.warning("Failed to delete orphaned image %s: %s", key, exc)

    def _rebase_queued(self, entity: Meal) -> Meal:
        # A snapshot queued before the photo upload has no image_url yet.
        current = self.get(entity.id)
        if entity.image_url is None and current is not None and current.image_url:
            return entity.model_copy(update={"image_url": current.image_url})
        return entity

    async def _remote_update(self, entity: Meal) -> Meal:
        updated: MealDTO = await self.api_client.request(
            Endpoint.meal(entity.id),
            HttpMethod.PUT,
            MealDTO.from_meal(entity),
            response_model=MealDTO,
        )
        return updated.to_meal()

    async def _remote_delete(self, entity_id: UUID) -> None:
        await self.api_client.request_no_content(
            Endpoint.meal(entity_id), HttpMethod.DELETE
        )

    async def _replay_related(self, mutation: PendingMutation) -> None:
        if mutation.target is not TargetKind.MEAL_EATEN:
            await super()._replay_related(mutation)
            return
        request = RecordEatenRequest.model_validate_json(mutation.payload)
        remote = await self._post_eaten(mutation.entity_id, request)
        await self._acknowledge(mutation.entity_id, remote)

    async def _store_local_image(
        self, entity_id: UUID, image_data: bytes | None
    ) -> None:
        if image_data is not None:
            await asyncio.to_thread(self.store.save_image, entity_id, image_data)

    async def _queued_image(self, mutation: PendingMutation) -> bytes | None:
        if mutation.image_blob_key is None:
            return None
        image_data = await asyncio.to_thread(self.store.load_image, mutation.entity_id)
        if image_data is None:
            _logger.warning("Queued image for meal %s is missing", mutation.entity_id)
        return image_data

    async def _after_acknowledged(self, entity: Meal) -> None:
        if entity.image_url:
            await asyncio.to_thread(self.store.delete_image, entity.id)

    async def _after_removed(self, entity_id: UUID) -> None:
        await asyncio.to_thread(self.store.delete_image, entity_id)

    async def _post_eaten(self, meal_id: UUID, request: RecordEatenRequest) -> Meal:
        remote: MealDTO = await self.api_client.request(
            Endpoint.meal_eaten(meal_id),
            HttpMethod.POST,
            request,
            response_model=MealDTO,
        )
        return remote.to_meal()

    async def _queue_eaten(self, meal: Meal, request: RecordEatenRequest) -> None:
        await self._queue(
            MutationKind.UPDATE,
            meal,
            target=TargetKind.MEAL_EATEN,
            payload=request.model_dump_json(by_alias=True),
        )
