"""Family member service with local caching and remote sync."""

from datetime import UTC, datetime
from uuid import UUID

from frindr_sync.adapters.api_client import ApiError, Endpoint, HttpMethod
from frindr_sync.adapters.wire_models import (
    CreateFamilyMemberRequest,
    FamilyMemberDTO,
)
from frindr_sync.domain.models import FamilyMember, ItemSyncStatus
from frindr_sync.domain.mutations import (
    FavoriteChange,
    MutationKind,
    PendingMutation,
    TargetKind,
)
from frindr_sync.services.entities import EntityService


class FamilyMemberService(EntityService[FamilyMember]):
    """Owns the cached family member collection."""

    entity_type = FamilyMember
    target_kind = TargetKind.FAMILY_MEMBER

    async def add_favorite(self, member_id: UUID, meal_id: UUID) -> FamilyMember:
        """Mark a meal as one of a member's favorites."""
        member = self._require(member_id)
        updated = member
        if meal_id not in member.favorite_meal_ids:
            updated = member.model_copy(
                update={
                    "favorite_meal_ids": [*member.favorite_meal_ids, meal_id],
                    "last_modified": _now(),
                }
            )
            self._replace(member_id, updated)
        return await self._sync_favorite(member, updated, meal_id, MutationKind.CREATE)

    async def remove_favorite(self, member_id: UUID, meal_id: UUID) -> FamilyMember:
        """Remove a meal from a member's favorites."""
        member = self._require(member_id)
        updated = member.model_copy(
            update={
                "favorite_meal_ids": [
                    favorite
                    for favorite in member.favorite_meal_ids
                    if favorite != meal_id
                ],
                "last_modified": _now(),
            }
        )
        self._replace(member_id, updated)
        return await self._sync_favorite(member, updated, meal_id, MutationKind.DELETE)

    async def fetch_from_remote(self) -> list[FamilyMember]:
        """Return all family members known to the server."""
        remote: list[FamilyMemberDTO] = await self.api_client.request(
            Endpoint.family_members(),
            HttpMethod.GET,
            response_model=list[FamilyMemberDTO],
        )
        return [dto.to_family_member() for dto in remote]

    def _load_cached(self) -> list[FamilyMember]:
        return self.store.load_family_members()

    def _save_cached(self, items: list[FamilyMember]) -> None:
        self.store.save_family_members(items)

    async def _remote_create(
        self, entity: FamilyMember, image_data: bytes | None
    ) -> FamilyMember:
        created: FamilyMemberDTO = await self.api_client.request(
            Endpoint.family_members(),
            HttpMethod.POST,
            CreateFamilyMemberRequest.from_family_member(entity),
            response_model=FamilyMemberDTO,
        )
        return created.to_family_member()

    async def _remote_update(self, entity: FamilyMember) -> FamilyMember:
        updated: FamilyMemberDTO = await self.api_client.request(
            Endpoint.family_member(entity.id),
            HttpMethod.PUT,
            FamilyMemberDTO.from_family_member(entity),
            response_model=FamilyMemberDTO,
        )
        return updated.to_family_member()

    async def _remote_delete(self, entity_id: UUID) -> None:
        await self.api_client.request_no_content(
            Endpoint.family_member(entity_id), HttpMethod.DELETE
        )

    async def _replay_related(self, mutation: PendingMutation) -> None:
        if mutation.target is not TargetKind.FAVORITE:
            await super()._replay_related(mutation)
            return
        change = FavoriteChange.model_validate_json(mutation.payload)
        await self._send_favorite(mutation.entity_id, change.meal_id, mutation.kind)
        current = self.get(mutation.entity_id)
        if current is not None and current.sync_status is ItemSyncStatus.PENDING_UPDATE:
            self._replace(
                current.id,
                current.model_copy(update={"sync_status": ItemSyncStatus.SYNCED}),
            )

    async def _sync_favorite(
        self,
        previous: FamilyMember,
        updated: FamilyMember,
        meal_id: UUID,
        kind: MutationKind,
    ) -> FamilyMember:
        if previous.sync_status is not ItemSyncStatus.SYNCED:
            await self._queue_favorite(updated, meal_id, kind)
            return self._require(updated.id)
        try:
            await self._send_favorite(previous.id, meal_id, kind)
        except ApiError as exc:
            if exc.is_network_error:
                await self._queue_favorite(updated, meal_id, kind)
                return self._require(updated.id)
            self._replace(previous.id, previous)
            raise
        return updated

    async def _send_favorite(
        self, member_id: UUID, meal_id: UUID, kind: MutationKind
    ) -> None:
        method = HttpMethod.DELETE if kind is MutationKind.DELETE else HttpMethod.POST
        await self.api_client.request_no_content(
            Endpoint.favorite(member_id, meal_id), method
        )

    async def _queue_favorite(
        self, member: FamilyMember, meal_id: UUID, kind: MutationKind
    ) -> None:
        await self._queue(
            kind,
            member,
            target=TargetKind.FAVORITE,
            payload=FavoriteChange(meal_id=meal_id).model_dump_json(),
        )


def _now() -> datetime:
    return datetime.now(tz=UTC)
