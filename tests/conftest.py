"""Shared test fixtures."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID

import pytest
from pydantic import BaseModel, TypeAdapter

from frindr_sync.adapters.api_client import (
    ApiClient,
    ApiError,
    Endpoint,
    HttpMethod,
    NetworkUnavailable,
    NotFound,
)
from frindr_sync.adapters.wire_models import (
    FamilyMemberDTO,
    ImageUploadResponse,
    MealDTO,
)
from frindr_sync.config import Settings
from frindr_sync.containers import AppContainer
from frindr_sync.domain.models import FamilyMember, Meal, PrepTime, RGBAColor
from frindr_sync.domain.mutations import PendingMutation
from frindr_sync.services.family_members import FamilyMemberService
from frindr_sync.services.images import ImageService
from frindr_sync.services.meals import MealService
from frindr_sync.services.persistence import LocalStore, LocalStoreError
from frindr_sync.services.sync import SyncCoordinator


def make_meal(**overrides: object) -> Meal:
    values: dict[str, object] = {
        "name": "Pasta",
        "cuisine_type": "Italian",
        "prep_time": PrepTime.SHORT,
        "created_date": datetime(2026, 1, 17, 12, 0, tzinfo=UTC),
    }
    values.update(overrides)
    return Meal(**values)


def make_member(**overrides: object) -> FamilyMember:
    values: dict[str, object] = {
        "name": "Ada",
        "role": "Daughter",
        "age": 9,
        "icon": "figure.child",
        "gradient_colors": [RGBAColor(red=1.0, green=0.75, blue=0.8, opacity=1.0)],
        "activities": ["Swimming"],
        "preferences": "No mushrooms",
        "allergens": ["Peanuts"],
        "favorite_drinks": ["Milk"],
    }
    values.update(overrides)
    return FamilyMember(**values)


@dataclass
class InMemoryLocalStore(LocalStore):
    """In-memory local store for tests."""

    meals: list[Meal] = field(default_factory=list)
    family_members: list[FamilyMember] = field(default_factory=list)
    pending_mutations: list[PendingMutation] = field(default_factory=list)
    images: dict[UUID, bytes] = field(default_factory=dict)
    fail_image_writes: bool = False
    fail_reads: bool = False

    def load_meals(self) -> list[Meal]:
        if self.fail_reads:
            raise LocalStoreError("Failed to read meals.json")
        return list(self.meals)

    def save_meals(self, meals: list[Meal]) -> None:
        self.meals = list(meals)

    def load_family_members(self) -> list[FamilyMember]:
        if self.fail_reads:
            raise LocalStoreError("Failed to read familyMembers.json")
        return list(self.family_members)

    def save_family_members(self, members: list[FamilyMember]) -> None:
        self.family_members = list(members)

    def load_pending_mutations(self) -> list[PendingMutation]:
        if self.fail_reads:
            raise LocalStoreError("Failed to read pendingMutations.json")
        return list(self.pending_mutations)

    def save_pending_mutations(self, mutations: list[PendingMutation]) -> None:
        self.pending_mutations = list(mutations)

    def append_pending_mutation(self, mutation: PendingMutation) -> None:
        self.pending_mutations.append(mutation)

    def remove_pending_mutation(self, mutation_id: UUID) -> None:
        self.pending_mutations = [
            mutation for mutation in self.pending_mutations if mutation.id != mutation_id
        ]

    def save_image(self, entity_id: UUID, data: bytes) -> None:
        if self.fail_image_writes:
            raise LocalStoreError("Failed to write image")
        self.images[entity_id] = data

    def load_image(self, entity_id: UUID) -> bytes | None:
        return self.images.get(entity_id)

    def delete_image(self, entity_id: UUID) -> None:
        self.images.pop(entity_id, None)


@dataclass
class FakeApiClient(ApiClient):
    """In-memory stand-in for the remote REST service.

    Stores wire payloads keyed by id. ``offline`` makes every call fail as
    network unavailable; ``failures`` maps ``"METHOD path"`` to the error that
    call should raise.
    """

    meals: dict[str, dict[str, object]] = field(default_factory=dict)
    members: dict[str, dict[str, object]] = field(default_factory=dict)
    uploads: list[tuple[str, bytes]] = field(default_factory=list)
    deleted_images: list[str] = field(default_factory=list)
    calls: list[str] = field(default_factory=list)
    failures: dict[str, ApiError] = field(default_factory=dict)
    offline: bool = False

    def seed_meal(self, meal: Meal) -> None:
        self.meals[str(meal.id)] = MealDTO.from_meal(meal).to_wire()

    def seed_member(self, member: FamilyMember) -> None:
        self.members[str(member.id)] = FamilyMemberDTO.from_family_member(
            member
        ).to_wire()

    async def request(
        self,
        endpoint: Endpoint,
        method: HttpMethod,
        body: BaseModel | None = None,
        *,
        response_model: object,
    ) -> object:
        payload = self._handle(endpoint, method, body)
        return TypeAdapter(response_model).validate_python(payload)

    async def request_no_content(
        self, endpoint: Endpoint, method: HttpMethod, body: BaseModel | None = None
    ) -> None:
        self._handle(endpoint, method, body)

    async def upload_image(
        self, data: bytes, filename: str = "image.jpg"
    ) -> ImageUploadResponse:
        self._check(HttpMethod.POST, Endpoint.image_upload())
        self.uploads.append((filename, data))
        return ImageUploadResponse(url=f"https://images.test/{filename}", key=filename)

    async def is_reachable(self) -> bool:
        return not self.offline

    def _check(self, method: HttpMethod, endpoint: Endpoint) -> None:
        call = f"{method.value} {endpoint.path}"
        self.calls.append(call)
        if self.offline:
            raise NetworkUnavailable
        failure = self.failures.get(call)
        if failure is not None:
            raise failure

    def _handle(
        self, endpoint: Endpoint, method: HttpMethod, body: BaseModel | None
    ) -> object:
        self._check(method, endpoint)
        wire = body.model_dump(mode="json", by_alias=True) if body else None
        resource, *rest = endpoint.path.split("/")
        if resource == "meals":
            return self._meals(method, rest, wire)
        if resource == "family-members":
            return self._members(method, rest, wire)
        if resource == "images" and method is HttpMethod.DELETE:
            self.deleted_images.append(rest[0])
            return None
        raise NotFound

    def _meals(
        self, method: HttpMethod, rest: list[str], wire: dict[str, object] | None
    ) -> object:
        if not rest:
            if method is HttpMethod.GET:
                return list(self.meals.values())
            meal = {
                **(wire or {}),
                "timesEaten": 0,
                "eatenBy": [],
                "lastEaten": None,
                "createdDate": _now_iso(),
            }
            self.meals[str(meal["id"])] = meal
            return meal
        meal_id = rest[0]
        if meal_id not in self.meals:
            raise NotFound
        if len(rest) == 2 and rest[1] == "eaten":
            meal = dict(self.meals[meal_id])
            eaten_by = list(meal.get("eatenBy") or [])
            for member_id in (wire or {}).get("familyMemberIds", []):
                if member_id not in eaten_by:
                    eaten_by.append(member_id)
            meal.update(
                timesEaten=int(meal.get("timesEaten") or 0) + 1,
                lastEaten=_now_iso(),
                eatenBy=eaten_by,
            )
            self.meals[meal_id] = meal
            return meal
        if method is HttpMethod.PUT:
            self.meals[meal_id] = dict(wire or {})
            return self.meals[meal_id]
        if method is HttpMethod.DELETE:
            self.meals.pop(meal_id)
            return None
        return self.meals[meal_id]

    def _members(
        self, method: HttpMethod, rest: list[str], wire: dict[str, object] | None
    ) -> object:
        if not rest:
            if method is HttpMethod.GET:
                return list(self.members.values())
            member = {**(wire or {}), "favoriteMealIds": []}
            self.members[str(member["id"])] = member
            return member
        member_id = rest[0]
        if member_id not in self.members:
            raise NotFound
        if len(rest) == 3 and rest[1] == "favorites":
            member = dict(self.members[member_id])
            favorites = [fav for fav in member["favoriteMealIds"] if fav != rest[2]]
            if method is HttpMethod.POST:
                favorites.append(rest[2])
            member["favoriteMealIds"] = favorites
            self.members[member_id] = member
            return None
        if method is HttpMethod.PUT:
            self.members[member_id] = dict(wire or {})
            return self.members[member_id]
        if method is HttpMethod.DELETE:
            self.members.pop(member_id)
            return None
        return self.members[member_id]


def _now_iso() -> str:
    return datetime.now(tz=UTC).isoformat()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        api_token="test-token",
        api_base_url="https://api.test",
        cache_dir=tmp_path / "frindr",
        sync_interval_seconds=0,
    )


@pytest.fixture
def store() -> InMemoryLocalStore:
    return InMemoryLocalStore()


@pytest.fixture
def api_client() -> FakeApiClient:
    return FakeApiClient()


@pytest.fixture
def image_service(api_client: FakeApiClient) -> ImageService:
    return ImageService(api_client=api_client, compress=lambda data, _limit: data)


@pytest.fixture
def meal_service(
    store: InMemoryLocalStore,
    api_client: FakeApiClient,
    image_service: ImageService,
) -> MealService:
    return MealService(store, api_client, image_service)


@pytest.fixture
def family_member_service(
    store: InMemoryLocalStore, api_client: FakeApiClient
) -> FamilyMemberService:
    return FamilyMemberService(store, api_client)


@pytest.fixture
def coordinator(
    store: InMemoryLocalStore,
    api_client: FakeApiClient,
    meal_service: MealService,
    family_member_service: FamilyMemberService,
) -> SyncCoordinator:
    return SyncCoordinator(
        store=store,
        api_client=api_client,
        meal_service=meal_service,
        family_member_service=family_member_service,
    )


@pytest.fixture
def container(
    settings: Settings,
    store: InMemoryLocalStore,
    api_client: FakeApiClient,
    image_service: ImageService,
    meal_service: MealService,
    family_member_service: FamilyMemberService,
    coordinator: SyncCoordinator,
) -> AppContainer:
    async def close_resources() -> None:
        await meal_service.flush()
        await family_member_service.flush()

    return AppContainer(
        settings=settings,
        store=store,
        api_client=api_client,
        image_service=image_service,
        meal_service=meal_service,
        family_member_service=family_member_service,
        sync_coordinator=coordinator,
        close_resources=close_resources,
    )
