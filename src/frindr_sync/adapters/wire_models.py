"""Pydantic models for the remote REST payloads."""

from datetime import UTC, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from frindr_sync.domain.models import (
    FamilyMember,
    ItemSyncStatus,
    Meal,
    PrepTime,
    RGBAColor,
)


class WireModel(BaseModel):
    """Base model using camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, object]:
        """Return the JSON-ready payload with wire key names."""
        return self.model_dump(mode="json", by_alias=True)


class MealDTO(WireModel):
    """Meal payload."""

    id: UUID
    name: str
    cuisine_type: str
    prep_time: str
    image_url: str | None = None
    last_eaten: datetime | None = None
    times_eaten: int = 0
    eaten_by: list[str] = Field(default_factory=list)
    created_date: datetime
    notes: str | None = None

    def to_meal(self) -> Meal:
        """Map to a synced domain meal."""
        return Meal(
            id=self.id,
            name=self.name,
            cuisine_type=self.cuisine_type,
            prep_time=PrepTime.from_wire(self.prep_time),
            image_url=self.image_url,
            last_eaten=self.last_eaten,
            times_eaten=max(self.times_eaten, 0),
            eaten_by=_parse_uuids(self.eaten_by),
            created_date=self.created_date,
            notes=self.notes,
            last_modified=datetime.now(tz=UTC),
            sync_status=ItemSyncStatus.SYNCED,
        )

    @classmethod
    def from_meal(cls, meal: Meal) -> "MealDTO":
        return cls(
            id=meal.id,
            name=meal.name,
            cuisine_type=meal.cuisine_type,
            prep_time=meal.prep_time.value,
            image_url=meal.image_url,
            last_eaten=meal.last_eaten,
            times_eaten=meal.times_eaten,
            eaten_by=[str(member_id) for member_id in meal.eaten_by],
            created_date=meal.created_date,
            notes=meal.notes,
        )


class CreateMealRequest(WireModel):
    """Body of ``POST meals``; carries the client-generated id."""

    id: UUID
    name: str
    cuisine_type: str
    prep_time: str
    image_url: str | None = None
    notes: str | None = None

    @classmethod
    def from_meal(cls, meal: Meal) -> "CreateMealRequest":
        return cls(
            id=meal.id,
            name=meal.name,
            cuisine_type=meal.cuisine_type,
            prep_time=meal.prep_time.value,
            image_url=meal.image_url,
            notes=meal.notes,
        )


class RecordEatenRequest(WireModel):
    """Body of ``POST meals/{id}/eaten``."""

    family_member_ids: list[str]


class FamilyMemberDTO(WireModel):
    """Family member payload."""

    id: UUID
    name: str
    role: str
    age: int
    icon: str
    gradient_colors: list[RGBAColor] = Field(default_factory=list)
    activities: list[str] = Field(default_factory=list)
    preferences: str = ""
    favorite_meal_ids: list[str] = Field(default_factory=list)
    allergens: list[str] = Field(default_factory=list)
    favorite_drinks: list[str] = Field(default_factory=list)

    def to_family_member(self) -> FamilyMember:
        """Map to a synced domain family member."""
        return FamilyMember(
            id=self.id,
            name=self.name,
            role=self.role,
            age=self.age,
            icon=self.icon,
            gradient_colors=self.gradient_colors,
            activities=self.activities,
            preferences=self.preferences,
            favorite_meal_ids=_parse_uuids(self.favorite_meal_ids),
            allergens=self.allergens,
            favorite_drinks=self.favorite_drinks,
            last_modified=datetime.now(tz=UTC),
            sync_status=ItemSyncStatus.SYNCED,
        )

    @classmethod
    def from_family_member(cls, member: FamilyMember) -> "FamilyMemberDTO":
        return cls(
            id=member.id,
            name=member.name,
            role=member.role,
            age=member.age,
            icon=member.icon,
            gradient_colors=member.gradient_colors,
            activities=member.activities,
            preferences=member.preferences,
            favorite_meal_ids=[str(meal_id) for meal_id in member.favorite_meal_ids],
            allergens=member.allergens,
            favorite_drinks=member.favorite_drinks,
        )


class CreateFamilyMemberRequest(WireModel):
    """Body of ``POST family-members``."""

    id: UUID
    name: str
    role: str
    age: int
    icon: str
    gradient_colors: list[RGBAColor] = Field(default_factory=list)
    activities: list[str] = Field(default_factory=list)
    preferences: str = ""
    allergens: list[str] = Field(default_factory=list)
    favorite_drinks: list[str] = Field(default_factory=list)

    @classmethod
    def from_family_member(cls, member: FamilyMember) -> "CreateFamilyMemberRequest":
        return cls(
            id=member.id,
            name=member.name,
            role=member.role,
            age=member.age,
            icon=member.icon,
            gradient_colors=member.gradient_colors,
            activities=member.activities,
            preferences=member.preferences,
            allergens=member.allergens,
            favorite_drinks=member.favorite_drinks,
        )


class ImageUploadResponse(WireModel):
    """Response of ``POST images/upload``."""

    url: str
    key: str


def _parse_uuids(values: list[str]) -> list[UUID]:
    parsed: list[UUID] = []
    for value in values:
        try:
            parsed.append(UUID(value))
        except ValueError:
            continue
    return parsed
