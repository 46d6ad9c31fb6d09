from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Dict, Generic, Optional, Type, TypeVar
from uuid import uuid4

from pydantic import BaseModel, ValidationError

from models.records import ForecastRecord, Reading, User
from services.errors import StoreError
from settings import get_settings

ModelT = TypeVar("ModelT", bound=BaseModel)
Predicate = Callable[[ModelT], bool]


class DocumentCollection(Generic[ModelT]):
    """In-process document collection with optional JSON persistence.

    Documents are keyed by a generated id and returned as deep copies, so
    callers can never mutate stored state in place.
    """

    def __init__(
        self,
        name: str,
        model: Type[ModelT],
        persistence_path: Optional[Path] = None,
    ) -> None:
        self.name = name
        self.model = model
        self.persistence_path = persistence_path
        self._documents: Dict[str, ModelT] = {}
        self._lock = Lock()
        if persistence_path:
            try:
                persistence_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise StoreError(
                    f"Cannot prepare storage for collection {name!r}: {exc}"
                ) from exc
            self._load_from_disk()

    def insert(self, document: ModelT) -> str:
        doc_id = str(uuid4())
        with self._lock:
            self._documents[doc_id] = document.model_copy(deep=True)
            self._persist()
        return doc_id

    def find_one(self, **filters: Any) -> Optional[ModelT]:
        with self._lock:
            for document in self._documents.values():
                if _matches(document, filters):
                    return document.model_copy(deep=True)
        return None

    def find(
        self, predicate: Optional[Predicate] = None, **filters: Any
    ) -> list[ModelT]:
        with self._lock:
            return [
                document.model_copy(deep=True)
                for document in self._documents.values()
                if _matches(document, filters)
                and (predicate is None or predicate(document))
            ]

    def scan(self) -> list[ModelT]:
        """Return deep copies of every stored document."""

        return self.find()

    def update_one(self, changes: Dict[str, Any], **filters: Any) -> Optional[ModelT]:
        """Apply ``changes`` to the first matching document and return the new version.

        Raises ``ValueError`` when the changed document no longer validates.
        """
        with self._lock:
            for doc_id, document in self._documents.items():
                if not _matches(document, filters):
                    continue
                updated = self._revalidate(document, changes)
                self._documents[doc_id] = updated
                self._persist()
                return updated.model_copy(deep=True)
        return None

    def upsert(self, document: ModelT, **filters: Any) -> ModelT:
        """Replace the first document matching ``filters`` or insert a new one."""
        with self._lock:
            target_id = next(
                (
                    doc_id
                    for doc_id, existing in self._documents.items()
                    if _matches(existing, filters)
                ),
                None,
            )
            if target_id is None:
                target_id = str(uuid4())
            self._documents[target_id] = document.model_copy(deep=True)
            self._persist()
            return document.model_copy(deep=True)

    def delete_many(self, predicate: Predicate) -> int:
        with self._lock:
            doomed = [
                doc_id
                for doc_id, document in self._documents.items()
                if predicate(document)
            ]
            for doc_id in doomed:
                del self._documents[doc_id]
            if doomed:
                self._persist()
        return len(doomed)

    def count(self) -> int:
        with self._lock:
            return len(self._documents)

    def _revalidate(self, document: ModelT, changes: Dict[str, Any]) -> ModelT:
        payload = document.model_dump()
        payload.update(changes)
        try:
            return self.model.model_validate(payload)
        except ValidationError as exc:
            raise ValueError(str(exc)) from exc

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = {
            doc_id: document.model_dump(mode="json")
            for doc_id, document in self._documents.items()
        }
        staging = self.persistence_path.with_name(f".{self.persistence_path.name}.tmp")
        try:
            staging.write_text(json.dumps(payload, indent=2, sort_keys=True))
            # Readers only ever see the old file or the complete new one.
            os.replace(staging, self.persistence_path)
        except OSError as exc:
            raise StoreError(
                f"Failed to persist collection {self.name!r}: {exc}"
            ) from exc

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
            for doc_id, payload in data.items():
                self._documents[doc_id] = self.model.model_validate(payload)
        except (OSError, json.JSONDecodeError, AttributeError, ValidationError) as exc:
            raise StoreError(
                f"Collection {self.name!r} could not be loaded from "
                f"{self.persistence_path}: {exc}"
            ) from exc


def _matches(document: BaseModel, filters: Dict[str, Any]) -> bool:
    return all(getattr(document, key, None) == value for key, value in filters.items())


def _build(name: str, model: Type[ModelT], path: Optional[str]) -> DocumentCollection[ModelT]:
    persistence = Path(path) if path else None
    return DocumentCollection(name=name, model=model, persistence_path=persistence)


@lru_cache
def build_readings_collection(path: Optional[str] = None) -> DocumentCollection[Reading]:
    settings = get_settings()
    location = settings.readings_persistence_path if path is None else path
    return _build("epa_monitors_data", Reading, location)


@lru_cache
def build_users_collection(path: Optional[str] = None) -> DocumentCollection[User]:
    settings = get_settings()
    location = settings.users_persistence_path if path is None else path
    return _build("users", User, location)


@lru_cache
def build_forecasts_collection(
    path: Optional[str] = None,
) -> DocumentCollection[ForecastRecord]:
    settings = get_settings()
    location = settings.forecasts_persistence_path if path is None else path
    return _build("air_quality_forecasts", ForecastRecord, location)
