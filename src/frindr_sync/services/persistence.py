"""Local store interface and ordered background persistence."""

import asyncio
import logging
from collections.abc import Callable
from typing import Generic, Protocol, TypeVar
from uuid import UUID

from frindr_sync.domain.models import FamilyMember, Meal
from frindr_sync.domain.mutations import PendingMutation

_logger = logging.getLogger(__name__)

SnapshotT = TypeVar("SnapshotT")


class LocalStoreError(Exception):
    """Raised when the local store cannot read or write a resource."""


class LocalStore(Protocol):
    """Durable storage for cached collections, the mutation queue and images.

    Collections are read and written whole. Reading a missing collection
    returns an empty list.
    """

    def load_meals(self) -> list[Meal]:
        """Return cached meals."""

    def save_meals(self, meals: list[Meal]) -> None:
        """Replace cached meals."""

    def load_family_members(self) -> list[FamilyMember]:
        """Return cached family members."""

    def save_family_members(self, members: list[FamilyMember]) -> None:
        """Replace cached family members."""

    def load_pending_mutations(self) -> list[PendingMutation]:
        """Return queued mutations in creation order."""

    def save_pending_mutations(self, mutations: list[PendingMutation]) -> None:
        """Replace the mutation queue."""

    def append_pending_mutation(self, mutation: PendingMutation) -> None:
        """Append a mutation to the end of the queue."""

    def remove_pending_mutation(self, mutation_id: UUID) -> None:
        """Remove a mutation from the queue if present."""

    def save_image(self, entity_id: UUID, data: bytes) -> None:
        """Store image bytes for an entity."""

    def load_image(self, entity_id: UUID) -> bytes | None:
        """Return stored image bytes, if any."""

    def delete_image(self, entity_id: UUID) -> None:
        """Delete stored image bytes; missing images are ignored."""


class SerializedWriter(Generic[SnapshotT]):
    """Persists snapshots in the background, one at a time, in call order.

    ``schedule`` returns immediately. Each write runs on a worker thread
    while holding a lock, so writes to the same resource never interleave
    and the last scheduled snapshot is the one left on disk.
    """

    def __init__(self, write: Callable[[SnapshotT], None], name: str) -> None:
        self._write = write
        self._name = name
        self._pending: set[asyncio.Task[None]] = set()
        self._lock: asyncio.Lock | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def pending(self) -> int:
        return len(self._pending)

    def schedule(self, snapshot: SnapshotT) -> "asyncio.Task[None]":
        """Queue a snapshot for writing."""
        lock = self._lock_for_running_loop()
        task = asyncio.get_running_loop().create_task(self._run(lock, snapshot))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def flush(self) -> None:
        """Wait until every scheduled write has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def _run(self, lock: asyncio.Lock, snapshot: SnapshotT) -> None:
        async with lock:
            try:
                await asyncio.to_thread(self._write, snapshot)
            except Exception:
                _logger.exception("Failed to persist %s", self._name)

    def _lock_for_running_loop(self) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        if self._lock is None or self._loop is not loop:
            self._lock = asyncio.Lock()
            self._loop = loop
            self._pending = set()
        return self._lock
