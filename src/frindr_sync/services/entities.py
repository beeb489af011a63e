"""Offline-first behaviour shared by the cached entity services.

Every mutation is applied to the in-memory collection first and persisted in
the background. The remote call follows; its outcome decides what happens to
the optimistic change:

* success: the local entity is replaced by the server's canonical form;
* network unavailable: the change stands and a pending mutation is queued;
* any other failure: the previous local state is restored and the error is
  raised to the caller.
"""

import asyncio
import logging
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import ClassVar, Generic, TypeVar
from uuid import UUID

from frindr_sync.adapters.api_client import ApiClient, ApiError, NotFound
from frindr_sync.domain.models import ItemSyncStatus, SyncedEntity
from frindr_sync.domain.mutations import MutationKind, PendingMutation, TargetKind
from frindr_sync.services.observable import Observable
from frindr_sync.services.persistence import (
    LocalStore,
    LocalStoreError,
    SerializedWriter,
)

_logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT", bound=SyncedEntity)

QueueListener = Callable[[PendingMutation], None]


class UnknownEntityError(LookupError):
    """Raised when an operation names an entity that is not cached locally."""

    def __init__(self, entity_id: UUID) -> None:
        super().__init__(f"Unknown entity {entity_id}")
        self.entity_id = entity_id


class DuplicateEntityError(ValueError):
    """Raised when a created entity reuses the id of a cached one."""

    def __init__(self, entity_id: UUID) -> None:
        super().__init__(f"Entity {entity_id} already exists")
        self.entity_id = entity_id


class EntityService(Generic[EntityT]):
    """Owns one cached collection and keeps it in step with the remote API."""

    entity_type: ClassVar[type[SyncedEntity]]
    target_kind: ClassVar[TargetKind]

    def __init__(self, store: LocalStore, api_client: ApiClient) -> None:
        self.store = store
        self.api_client = api_client
        self.observable: Observable[tuple[EntityT, ...]] = Observable(())
        self.is_loading = False
        self._writer: SerializedWriter[list[EntityT]] = SerializedWriter(
            self._save_cached, name=self.target_kind.value
        )
        self._queue_listeners: list[QueueListener] = []

    @property
    def items(self) -> tuple[EntityT, ...]:
        return self.observable.value

    def get(self, entity_id: UUID) -> EntityT | None:
        for item in self.items:
            if item.id == entity_id:
                return item
        return None

    def add_queue_listener(self, listener: QueueListener) -> None:
        """Register a callback invoked after a mutation is queued."""
        self._queue_listeners.append(listener)

    async def flush(self) -> None:
        """Wait for background writes of this collection."""
        await self._writer.flush()

    async def load_from_cache(self) -> None:
        """Replace the in-memory collection with the cached one.

        A missing or unreadable cache is logged and leaves the collection as is.
        """
        self.is_loading = True
        try:
            cached = await asyncio.to_thread(self._load_cached)
        except LocalStoreError:
            _logger.exception("Failed to load %s cache", self.target_kind.value)
            return
        finally:
            self.is_loading = False
        self.observable.set(tuple(cached))

    async def create(self, entity: EntityT, image_data: bytes | None = None) -> EntityT:
        """Add an entity locally, then create it remotely."""
        if self.get(entity.id) is not None:
            raise DuplicateEntityError(entity.id)
        pending = entity.model_copy(
            update={
                "sync_status": ItemSyncStatus.PENDING_CREATE,
                "last_modified": _now(),
            }
        )
        self._publish([*self._without(pending.id), pending])
        try:
            await self._store_local_image(pending.id, image_data)
        except LocalStoreError:
            self._publish(self._without(pending.id))
            raise

        try:
            created = await self._remote_create(pending, image_data)
        except ApiError as exc:
            if exc.is_network_error:
                await self._queue(
                    MutationKind.CREATE,
                    pending,
                    image_blob_key=str(pending.id) if image_data is not None else None,
                )
                return pending
            await self._remove_local(pending.id)
            raise

        return await self._acknowledge(pending.id, created)

    async def update(self, entity: EntityT) -> EntityT:
        """Apply an edit locally, then send it remotely."""
        previous = self._require(entity.id)
        pending = entity.model_copy(
            update={
                "sync_status": ItemSyncStatus.PENDING_UPDATE,
                "last_modified": _now(),
            }
        )
        if previous.sync_status is not ItemSyncStatus.SYNCED:
            # Earlier changes are still queued; the edit follows them.
            pending = pending.model_copy(
                update={"sync_status": previous.sync_status}
            )
            self._replace(entity.id, pending)
            await self._queue(MutationKind.UPDATE, pending)
            return pending

        self._replace(entity.id, pending)
        try:
            updated = await self._remote_update(pending)
        except ApiError as exc:
            if exc.is_network_error:
                await self._queue(MutationKind.UPDATE, pending)
                return pending
            self._replace(entity.id, previous)
            raise

        return await self._acknowledge(entity.id, updated)

    async def delete(self, entity_id: UUID) -> None:
        """Mark an entity for deletion, then delete it remotely."""
        current = self._require(entity_id)
        if current.sync_status is ItemSyncStatus.PENDING_DELETE:
            return
        marked = current.model_copy(
            update={"sync_status": ItemSyncStatus.PENDING_DELETE}
        )
        self._replace(entity_id, marked)
        if current.sync_status is not ItemSyncStatus.SYNCED:
            await self._queue(MutationKind.DELETE, marked)
            return

        try:
            await self._remote_delete(entity_id)
        except ApiError as exc:
            if exc.is_network_error:
                await self._queue(MutationKind.DELETE, marked)
                return
            self._replace(
                entity_id,
                current.model_copy(update={"sync_status": ItemSyncStatus.SYNCED}),
            )
            raise

        await self._remove_local(entity_id)

    async def fetch_from_remote(self) -> list[EntityT]:
        """Return the authoritative remote collection."""
        raise NotImplementedError

    async def merge_remote(self, remote: Iterable[EntityT]) -> None:
        """Merge an authoritative collection into the cache, remote wins.

        Remote entities replace local ones and are marked synced. Local-only
        entities survive only while they carry an unacknowledged mutation.
        """
        merged = [
            entity.model_copy(update={"sync_status": ItemSyncStatus.SYNCED})
            for entity in remote
        ]
        remote_ids = {entity.id for entity in merged}
        merged.extend(
            entity
            for entity in self.items
            if entity.id not in remote_ids
            and entity.sync_status is not ItemSyncStatus.SYNCED
        )
        self._publish(merged)
        await self.flush()

    async def replay(self, mutation: PendingMutation) -> None:
        """Send a queued mutation and apply the server's answer locally."""
        if mutation.target is not self.target_kind:
            await self._replay_related(mutation)
            return

        entity = self.entity_type.model_validate_json(mutation.payload)
        if mutation.kind is MutationKind.CREATE:
            image_data = await self._queued_image(mutation)
            created = await self._remote_create(entity, image_data)
            await self._acknowledge(mutation.entity_id, created)
        elif mutation.kind is MutationKind.UPDATE:
            updated = await self._remote_update(self._rebase_queued(entity))
            await self._acknowledge(mutation.entity_id, updated)
        else:
            try:
                await self._remote_delete(mutation.entity_id)
            except NotFound:
                _logger.info(
                    "%s %s already deleted remotely",
                    self.target_kind.value,
                    mutation.entity_id,
                )
            await self._remove_local(mutation.entity_id)

    async def discard(self, mutation: PendingMutation) -> None:
        """Restore a consistent local state for a mutation that was dropped."""
        if mutation.target is self.target_kind and mutation.kind is MutationKind.CREATE:
            await self._remove_local(mutation.entity_id)
            return
        current = self.get(mutation.entity_id)
        if current is not None and current.sync_status is not ItemSyncStatus.SYNCED:
            self._replace(
                current.id,
                current.model_copy(update={"sync_status": ItemSyncStatus.SYNCED}),
            )

    def mark_pending(self, entity_id: UUID) -> None:
        """Flag a synced entity that still has queued mutations."""
        current = self.get(entity_id)
        if current is not None and current.sync_status is ItemSyncStatus.SYNCED:
            self._replace(
                entity_id,
                current.model_copy(
                    update={"sync_status": ItemSyncStatus.PENDING_UPDATE}
                ),
            )

    def _load_cached(self) -> list[EntityT]:
        raise NotImplementedError

    def _save_cached(self, items: list[EntityT]) -> None:
        raise NotImplementedError

    async def _remote_create(
        self, entity: EntityT, image_data: bytes | None
    ) -> EntityT:
        raise NotImplementedError

    async def _remote_update(self, entity: EntityT) -> EntityT:
        raise NotImplementedError

    async def _remote_delete(self, entity_id: UUID) -> None:
        raise NotImplementedError

    async def _replay_related(self, mutation: PendingMutation) -> None:
        raise ValueError(f"Cannot replay {mutation.target} mutations")

    def _rebase_queued(self, entity: EntityT) -> EntityT:
        """Fill server-assigned fields a queued snapshot predates."""
        return entity

    async def _store_local_image(self, entity_id: UUID, image_data: bytes | None) -> None:
        return None

    async def _queued_image(self, mutation: PendingMutation) -> bytes | None:
        return None

    async def _after_acknowledged(self, entity: EntityT) -> None:
        return None

    async def _after_removed(self, entity_id: UUID) -> None:
        return None

    async def _acknowledge(self, entity_id: UUID, remote: EntityT) -> EntityT:
        synced = remote.model_copy(update={"sync_status": ItemSyncStatus.SYNCED})
        current = self.get(entity_id)
        if current is not None and current.sync_status is ItemSyncStatus.PENDING_DELETE:
            synced = synced.model_copy(
                update={"sync_status": ItemSyncStatus.PENDING_DELETE}
            )
        self._replace(entity_id, synced)
        await self._after_acknowledged(synced)
        return synced

    async def _queue(
        self,
        kind: MutationKind,
        entity: EntityT,
        *,
        target: TargetKind | None = None,
        payload: str | None = None,
        image_blob_key: str | None = None,
    ) -> PendingMutation:
        mutation = PendingMutation(
            kind=kind,
            target=target or self.target_kind,
            entity_id=entity.id,
            payload=payload if payload is not None else entity.model_dump_json(),
            image_blob_key=image_blob_key,
        )
        await asyncio.to_thread(self.store.append_pending_mutation, mutation)
        _logger.info(
            "Queued %s %s for %s %s",
            mutation.target.value,
            mutation.kind.value,
            self.target_kind.value,
            entity.id,
        )
        self.mark_pending(entity.id)
        for listener in list(self._queue_listeners):
            listener(mutation)
        return mutation

    async def _remove_local(self, entity_id: UUID) -> None:
        self._publish(self._without(entity_id))
        await self._after_removed(entity_id)

    def _require(self, entity_id: UUID) -> EntityT:
        entity = self.get(entity_id)
        if entity is None:
            raise UnknownEntityError(entity_id)
        return entity

    def _replace(self, entity_id: UUID, entity: EntityT) -> None:
        items = list(self.items)
        for index, item in enumerate(items):
            if item.id == entity_id:
                items[index] = entity
                self._publish(items)
                return

    def _without(self, entity_id: UUID) -> list[EntityT]:
        return [item for item in self.items if item.id != entity_id]

    def _publish(self, items: list[EntityT]) -> None:
        self.observable.set(tuple(items))
        self._writer.schedule(list(items))


def _now() -> datetime:
    return datetime.now(tz=UTC)
