"""Coordinates sync passes between the local cache and the remote API."""

import asyncio
import logging
from dataclasses import replace
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID

from frindr_sync.adapters.api_client import ApiClient, ApiError
from frindr_sync.domain.mutations import PendingMutation, TargetKind
from frindr_sync.domain.sync import SyncPhase, SyncState
from frindr_sync.services.family_members import FamilyMemberService
from frindr_sync.services.meals import MealService
from frindr_sync.services.observable import Observable
from frindr_sync.services.persistence import LocalStore, LocalStoreError

_logger = logging.getLogger(__name__)


class ReplayTarget(Protocol):
    """Service able to replay queued mutations of the kinds it owns."""

    async def replay(self, mutation: PendingMutation) -> None:
        """Send a queued mutation and apply the server's answer locally."""

    async def discard(self, mutation: PendingMutation) -> None:
        """Restore local state for a mutation dropped as unrecoverable."""

    def mark_pending(self, entity_id: UUID) -> None:
        """Flag an entity that still has queued mutations."""


class SyncCoordinator:
    """Drains the offline queue, then merges authoritative remote state.

    Only one pass runs at a time; asking for a pass while one is running
    does nothing. Outcomes never raise: they land in ``state``.
    """

    def __init__(
        self,
        store: LocalStore,
        api_client: ApiClient,
        meal_service: MealService,
        family_member_service: FamilyMemberService,
    ) -> None:
        self.store = store
        self.api_client = api_client
        self.meal_service = meal_service
        self.family_member_service = family_member_service
        self.state: Observable[SyncState] = Observable(SyncState())
        self._targets: dict[TargetKind, ReplayTarget] = {
            TargetKind.MEAL: meal_service,
            TargetKind.MEAL_EATEN: meal_service,
            TargetKind.FAMILY_MEMBER: family_member_service,
            TargetKind.FAVORITE: family_member_service,
        }
        meal_service.add_queue_listener(self._on_mutation_queued)
        family_member_service.add_queue_listener(self._on_mutation_queued)

    @property
    def status(self) -> SyncState:
        return self.state.value

    async def sync_all(self) -> SyncState:
        """Run one full pass and return the resulting state."""
        if self.status.phase is SyncPhase.SYNCING:
            _logger.info("Sync already in progress")
            return self.status
        self._update(phase=SyncPhase.SYNCING, message=None)

        try:
            await self.process_pending_mutations()
            remote_meals = await self.meal_service.fetch_from_remote()
            remote_members = await self.family_member_service.fetch_from_remote()
            await self.meal_service.merge_remote(remote_meals)
            await self.family_member_service.merge_remote(remote_members)
        except ApiError as exc:
            if exc.is_network_error:
                _logger.info("Sync stopped, network unavailable: %s", exc)
                self._update(phase=SyncPhase.OFFLINE)
            else:
                _logger.warning("Sync failed: %s", exc)
                self._update(phase=SyncPhase.ERROR, message=str(exc))
        except Exception as exc:
            _logger.exception("Sync failed")
            self._update(phase=SyncPhase.ERROR, message=str(exc) or type(exc).__name__)
        else:
            self._update(
                phase=SyncPhase.IDLE,
                message=None,
                last_synced_at=datetime.now(tz=UTC),
            )
            _logger.info("Sync completed")
        return self.status

    async def process_pending_mutations(self) -> None:
        """Replay queued mutations in creation order.

        A network failure stops the drain and is raised; the failed mutation
        and everything after it stay queued. Any other failure drops the
        mutation.
        """
        mutations = await asyncio.to_thread(self.store.load_pending_mutations)
        self._update(pending_count=len(mutations))

        for index, mutation in enumerate(mutations):
            target = self._targets.get(mutation.target)
            if target is None:
                _logger.warning(
                    "Dropping mutation %s with unknown target %s",
                    mutation.id,
                    mutation.target,
                )
            else:
                try:
                    await target.replay(mutation)
                except ApiError as exc:
                    if exc.is_network_error:
                        raise
                    _logger.warning(
                        "Dropping unrecoverable %s %s mutation %s: %s",
                        mutation.target.value,
                        mutation.kind.value,
                        mutation.id,
                        exc,
                    )
                    await target.discard(mutation)
                except ValueError as exc:
                    _logger.warning(
                        "Dropping undecodable mutation %s: %s", mutation.id, exc
                    )
                    await target.discard(mutation)

            await asyncio.to_thread(self.store.remove_pending_mutation, mutation.id)
            self._update(pending_count=max(self.status.pending_count - 1, 0))
            if target is not None and any(
                later.entity_id == mutation.entity_id
                for later in mutations[index + 1 :]
            ):
                target.mark_pending(mutation.entity_id)

    async def refresh_pending_count(self) -> int:
        """Recompute the visible number of queued mutations."""
        try:
            mutations = await asyncio.to_thread(self.store.load_pending_mutations)
        except LocalStoreError:
            _logger.exception("Failed to read pending mutations")
            count = 0
        else:
            count = len(mutations)
        self._update(pending_count=count)
        return count

    async def run_periodic(self, interval_seconds: float) -> None:
        """Sync every ``interval_seconds`` until cancelled.

        When the health probe fails the pass is skipped and the state is
        set to offline.
        """
        while True:
            if await self.api_client.is_reachable():
                await self.sync_all()
            elif self.status.phase is not SyncPhase.SYNCING:
                self._update(phase=SyncPhase.OFFLINE)
            await asyncio.sleep(interval_seconds)

    def _on_mutation_queued(self, mutation: PendingMutation) -> None:
        self._update(pending_count=self.status.pending_count + 1)

    def _update(self, **changes: object) -> None:
        self.state.set(replace(self.status, **changes))
