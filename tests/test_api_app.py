"""Tests for the FastAPI control surface."""

from fastapi.testclient import TestClient

from frindr_sync.api.app import create_app
from frindr_sync.domain.models import ItemSyncStatus
from tests.conftest import FakeApiClient, InMemoryLocalStore, make_meal, make_member


def test_health(container) -> None:
    with TestClient(create_app(container)) as client:
        response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_startup_syncs_and_reports_status(
    container, api_client: FakeApiClient
) -> None:
    api_client.seed_meal(make_meal(name="Ramen", sync_status=ItemSyncStatus.SYNCED))

    with TestClient(create_app(container)) as client:
        response = client.get("/sync/status")

    payload = response.json()
    assert payload["status"] == "idle"
    assert payload["pendingCount"] == 0
    assert payload["lastSyncedAt"] is not None


def test_manual_sync_reports_offline(container, api_client: FakeApiClient) -> None:
    with TestClient(create_app(container)) as client:
        api_client.offline = True
        response = client.post("/sync")

    assert response.status_code == 200
    assert response.json()["status"] == "offline"


def test_lists_cached_entities_with_sync_status(
    container, store: InMemoryLocalStore, api_client: FakeApiClient
) -> None:
    meal = make_meal()
    member = make_member()
    store.meals.append(meal)
    store.images[meal.id] = b"photo"
    store.family_members.append(member)
    api_client.offline = True

    with TestClient(create_app(container)) as client:
        meals = client.get("/meals").json()["meals"]
        members = client.get("/family-members").json()["familyMembers"]

    assert [item["id"] for item in meals] == [str(meal.id)]
    assert meals[0]["syncStatus"] == "pending-create"
    assert meals[0]["hasLocalImage"] is True
    assert meals[0]["prepTime"] == "short"
    assert [item["name"] for item in members] == ["Ada"]
    assert members[0]["syncStatus"] == "pending-create"
