"""JSON file implementation of the local offline store."""

import os
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import TypeVar
from uuid import UUID

from pydantic import TypeAdapter, ValidationError

from frindr_sync.domain.models import FamilyMember, Meal
from frindr_sync.domain.mutations import PendingMutation
from frindr_sync.services.persistence import LocalStore, LocalStoreError

MEALS_FILE = "meals.json"
FAMILY_MEMBERS_FILE = "familyMembers.json"
PENDING_MUTATIONS_FILE = "pendingMutations.json"

_MEALS = TypeAdapter(list[Meal])
_FAMILY_MEMBERS = TypeAdapter(list[FamilyMember])
_PENDING_MUTATIONS = TypeAdapter(list[PendingMutation])

ItemT = TypeVar("ItemT")


@dataclass
class JsonFileLocalStore(LocalStore):
    """Stores each collection as one JSON array and images as loose files.

    Layout under ``root``::

        cache/meals.json
        cache/familyMembers.json
        cache/pendingMutations.json
        cache/images/<entity-id>.jpg

    Documents are replaced atomically, so a reader sees either the previous
    or the new array.
    """

    root: Path
    _lock: threading.RLock = field(
        default_factory=threading.RLock, init=False, repr=False
    )

    @classmethod
    def create(cls, root: Path | str) -> "JsonFileLocalStore":
        """Create a store and make sure its directories exist."""
        store = cls(root=Path(root))
        store.ensure_directories()
        return store

    @property
    def cache_dir(self) -> Path:
        return self.root / "cache"

    @property
    def images_dir(self) -> Path:
        return self.cache_dir / "images"

    def ensure_directories(self) -> None:
        try:
            self.images_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise LocalStoreError(f"Cannot create cache at {self.root}") from exc

    def load_meals(self) -> list[Meal]:
        return self._read(MEALS_FILE, _MEALS)

    def save_meals(self, meals: list[Meal]) -> None:
        self._write(MEALS_FILE, _MEALS, meals)

    def load_family_members(self) -> list[FamilyMember]:
        return self._read(FAMILY_MEMBERS_FILE, _FAMILY_MEMBERS)

    def save_family_members(self, members: list[FamilyMember]) -> None:
        self._write(FAMILY_MEMBERS_FILE, _FAMILY_MEMBERS, members)

    def load_pending_mutations(self) -> list[PendingMutation]:
        return self._read(PENDING_MUTATIONS_FILE, _PENDING_MUTATIONS)

    def save_pending_mutations(self, mutations: list[PendingMutation]) -> None:
        self._write(PENDING_MUTATIONS_FILE, _PENDING_MUTATIONS, mutations)

    def append_pending_mutation(self, mutation: PendingMutation) -> None:
        with self._lock:
            mutations = self.load_pending_mutations()
            mutations.append(mutation)
            self.save_pending_mutations(mutations)

    def remove_pending_mutation(self, mutation_id: UUID) -> None:
        with self._lock:
            mutations = [
                mutation
                for mutation in self.load_pending_mutations()
                if mutation.id != mutation_id
            ]
            self.save_pending_mutations(mutations)

    def save_image(self, entity_id: UUID, data: bytes) -> None:
        with self._lock:
            self.ensure_directories()
            _atomic_write(self._image_path(entity_id), data)

    def load_image(self, entity_id: UUID) -> bytes | None:
        path = self._image_path(entity_id)
        with self._lock:
            if not path.exists():
                return None
            try:
                return path.read_bytes()
            except OSError as exc:
                raise LocalStoreError(f"Failed to read image {entity_id}") from exc

    def delete_image(self, entity_id: UUID) -> None:
        with self._lock:
            try:
                self._image_path(entity_id).unlink(missing_ok=True)
            except OSError as exc:
                raise LocalStoreError(f"Failed to delete image {entity_id}") from exc

    def clear_all(self) -> None:
        """Remove every cached document and image."""
        with self._lock:
            for name in (MEALS_FILE, FAMILY_MEMBERS_FILE, PENDING_MUTATIONS_FILE):
                (self.cache_dir / name).unlink(missing_ok=True)
            if self.images_dir.exists():
                for path in self.images_dir.iterdir():
                    path.unlink(missing_ok=True)

    def _image_path(self, entity_id: UUID) -> Path:
        return self.images_dir / f"{entity_id}.jpg"

    def _read(self, name: str, adapter: TypeAdapter[list[ItemT]]) -> list[ItemT]:
        path = self.cache_dir / name
        with self._lock:
            if not path.exists():
                return []
            try:
                return adapter.validate_json(path.read_bytes())
            except (OSError, ValidationError) as exc:
                raise LocalStoreError(f"Failed to read {name}") from exc

    def _write(
        self, name: str, adapter: TypeAdapter[list[ItemT]], items: list[ItemT]
    ) -> None:
        data = adapter.dump_json(items, indent=2)
        with self._lock:
            self.ensure_directories()
            _atomic_write(self.cache_dir / name, data)


def _atomic_write(path: Path, data: bytes) -> None:
    """Write to a sibling temp file, then rename it over ``path``."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except OSError as exc:
        Path(tmp_name).unlink(missing_ok=True)
        raise LocalStoreError(f"Failed to write {path.name}") from exc
