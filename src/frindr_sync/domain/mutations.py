"""Domain models for the offline mutation queue."""

from datetime import UTC, datetime
from enum import StrEnum
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class MutationKind(StrEnum):
    """Kind of change recorded in the queue."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class TargetKind(StrEnum):
    """What a queued mutation applies to."""

    MEAL = "meal"
    FAMILY_MEMBER = "familyMember"
    MEAL_EATEN = "mealEaten"
    FAVORITE = "favorite"


class PendingMutation(BaseModel):
    """A mutation that could not reach the remote service.

    ``payload`` is the JSON snapshot taken when the mutation was queued:
    the full entity for meal and family-member mutations, the request body
    for eaten and favorite mutations.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    kind: MutationKind
    target: TargetKind
    entity_id: UUID
    payload: str
    image_blob_key: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))


class FavoriteChange(BaseModel):
    """Payload of a queued favorite add or remove."""

    meal_id: UUID
