"""Domain models for cached meals and family members."""

from datetime import UTC, datetime
from enum import StrEnum
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class ItemSyncStatus(StrEnum):
    """Synchronization state of a single cached entity."""

    SYNCED = "synced"
    PENDING_CREATE = "pending-create"
    PENDING_UPDATE = "pending-update"
    PENDING_DELETE = "pending-delete"


class PrepTime(StrEnum):
    """Preparation time category, valued by its wire name."""

    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"
    VERY_LONG = "veryLong"

    @property
    def display_time(self) -> str:
        return _DISPLAY_TIMES[self]

    @classmethod
    def from_wire(cls, value: str) -> "PrepTime":
        """Parse a wire value, falling back to medium for unknown categories."""
        try:
            return cls(value)
        except ValueError:
            return cls.MEDIUM


_DISPLAY_TIMES = {
    PrepTime.SHORT: "15-30 min",
    PrepTime.MEDIUM: "30-60 min",
    PrepTime.LONG: "1-2 hrs",
    PrepTime.VERY_LONG: "2+ hrs",
}


class RGBAColor(BaseModel):
    """Exact display color with channels in the 0-1 range."""

    model_config = ConfigDict(frozen=True)

    red: float = Field(ge=0.0, le=1.0)
    green: float = Field(ge=0.0, le=1.0)
    blue: float = Field(ge=0.0, le=1.0)
    opacity: float = Field(default=1.0, ge=0.0, le=1.0)


class SyncedEntity(BaseModel):
    """Fields shared by every entity kept in the offline cache."""

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    last_modified: datetime = Field(default_factory=_utcnow)
    sync_status: ItemSyncStatus = ItemSyncStatus.PENDING_CREATE


class Meal(SyncedEntity):
    """A meal the family cooks.

    ``image_data`` holds a not-yet-uploaded photo. It is never serialized:
    the bytes live in the local blob store keyed by meal id until an upload
    produces ``image_url``.
    """

    name: str
    cuisine_type: str
    prep_time: PrepTime = PrepTime.MEDIUM
    image_data: bytes | None = Field(default=None, exclude=True, repr=False)
    image_url: str | None = None
    last_eaten: datetime | None = None
    times_eaten: int = Field(default=0, ge=0)
    eaten_by: list[UUID] = Field(default_factory=list)
    created_date: datetime = Field(default_factory=_utcnow)
    notes: str | None = None

    @field_validator("eaten_by")
    @classmethod
    def _unique_eaten_by(cls, value: list[UUID]) -> list[UUID]:
        return list(dict.fromkeys(value))


class FamilyMember(SyncedEntity):
    """A family member with their tastes and favorite meals."""

    name: str
    role: str
    age: int = Field(ge=0)
    icon: str
    gradient_colors: list[RGBAColor] = Field(default_factory=list)
    activities: list[str] = Field(default_factory=list)
    preferences: str = ""
    favorite_meal_ids: list[UUID] = Field(default_factory=list)
    allergens: list[str] = Field(default_factory=list)
    favorite_drinks: list[str] = Field(default_factory=list)

    @field_validator("favorite_meal_ids")
    @classmethod
    def _unique_favorites(cls, value: list[UUID]) -> list[UUID]:
        return list(dict.fromkeys(value))
