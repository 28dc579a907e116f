"""
Database abstraction for the Firebase Realtime Database and an in-memory
test implementation.
"""

from __future__ import annotations

import copy
import itertools
import logging
import time
from typing import Optional, Protocol

import firebase_admin
from firebase_admin import credentials, db, exceptions

from estate_backend.config import ConfigurationError, FirebaseConfig

logger = logging.getLogger(__name__)

FIREBASE_APP_NAME = "estate-backend"


class DatabaseError(RuntimeError):
    """Raised when the document database rejects or fails an operation."""


class InvalidKeyError(DatabaseError):
    """Raised for keys the database cannot address (e.g. containing . # $ [ ])."""


class PropertyDbClient(Protocol):
    """Key-value operations the API needs from the document database."""

    def push(self, data: dict) -> str:
        ...

    def get(self, key: str) -> Optional[dict]:
        ...

    def update(self, key: str, data: dict) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def scan(self) -> list[tuple[str, dict]]:
        ...


class InMemoryPropertyDb:
    """Simple in-memory collection for development and tests."""

    def __init__(self):
        self.records: dict[str, dict] = {}
        self._counter = itertools.count()

    def _next_key(self) -> str:
        # Millisecond prefix plus a sequence keeps keys sortable in push order.
        return f"-{int(time.time() * 1000):013d}{next(self._counter):06d}"

    def push(self, data: dict) -> str:
        key = self._next_key()
        self.records[key] = copy.deepcopy(data)
        return key

    def get(self, key: str) -> Optional[dict]:
        record = self.records.get(key)
        return copy.deepcopy(record) if record is not None else None

    def update(self, key: str, data: dict) -> None:
        self.records.setdefault(key, {}).update(copy.deepcopy(data))

    def delete(self, key: str) -> None:
        self.records.pop(key, None)

    def scan(self) -> list[tuple[str, dict]]:
        return [
            (key, copy.deepcopy(self.records[key])) for key in sorted(self.records)
        ]


class FirebasePropertyDb:
    """
    Realtime Database client storing records under a single collection path.
    """

    def __init__(self, config: FirebaseConfig, path: str = "properties"):
        self.path = path
        try:
            self._app = firebase_admin.get_app(FIREBASE_APP_NAME)
        except ValueError:
            try:
                certificate = credentials.Certificate(config.service_account)
            except ValueError as exc:
                raise ConfigurationError("Firebase service account is invalid.") from exc
            self._app = firebase_admin.initialize_app(
                certificate,
                {"databaseURL": config.database_url},
                name=FIREBASE_APP_NAME,
            )

    def _ref(self, key: Optional[str] = None):
        path = f"{self.path}/{key}" if key else self.path
        try:
            return db.reference(path, app=self._app)
        except ValueError as exc:
            raise InvalidKeyError(f"invalid key {key!r}") from exc

    def push(self, data: dict) -> str:
        try:
            return self._ref().push(data).key
        except exceptions.FirebaseError as exc:
            raise DatabaseError(f"push to {self.path} failed") from exc

    def get(self, key: str) -> Optional[dict]:
        try:
            ref = self._ref(key)
        except InvalidKeyError:
            # No record can live under an unaddressable key.
            return None
        try:
            return ref.get()
        except exceptions.FirebaseError as exc:
            raise DatabaseError(f"read of {self.path}/{key} failed") from exc

    def update(self, key: str, data: dict) -> None:
        try:
            self._ref(key).update(data)
        except exceptions.FirebaseError as exc:
            raise DatabaseError(f"update of {self.path}/{key} failed") from exc

    def delete(self, key: str) -> None:
        try:
            self._ref(key).delete()
        except exceptions.FirebaseError as exc:
            raise DatabaseError(f"delete of {self.path}/{key} failed") from exc

    def scan(self) -> list[tuple[str, dict]]:
        try:
            snapshot = self._ref().order_by_key().get()
        except exceptions.FirebaseError as exc:
            raise DatabaseError(f"scan of {self.path} failed") from exc
        if not snapshot:
            return []
        return list(snapshot.items())
