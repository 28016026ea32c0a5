"""
Single-file local record store.

Keeps the three keyed collections (users, appointments, reviews) and the
"current session user" pointer in one JSON document:

    {"schema_version": 1, "current_user_id": ..., "users": [...],
     "appointments": [...], "reviews": [...]}

Every write replaces the whole document atomically (temporary file + os.replace);
a failed write leaves the in-memory records as they were before it.
"""
from __future__ import annotations

import json
import logging
import os
import re
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

from pydantic import ValidationError

from ..errors import StoreCorruptionError, StoreWriteError
from ..schemas import Appointment, Review, UserProfile
from .repository import (
    InMemoryAppointmentRepository,
    InMemoryReviewRepository,
    InMemoryUserRepository,
    Repositories,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

DEMO_USER = UserProfile(
    id="u_demo",
    name="Amira Ahmed",
    email="user@demo.com",
    health_interests=["Skincare", "Nutrition"],
)

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _snake_case(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def _snake_record(record: dict[str, Any]) -> dict[str, Any]:
    return {_snake_case(key): value for key, value in record.items()}


def upgrade_document(document: dict[str, Any]) -> dict[str, Any]:
    version = document.get("schema_version", 0)
    if not isinstance(version, int) or version > SCHEMA_VERSION:
        raise StoreCorruptionError(f"Unsupported records schema version {version!r}")
    if version == 0:
        # Unversioned documents use the browser layout with camelCase keys.
        current = document.get("current_user_id") or document.get("currentUserId")
        document = {
            "schema_version": SCHEMA_VERSION,
            "current_user_id": current,
            "users": [_snake_record(row) for row in document.get("users", [])],
            "appointments": [_snake_record(row) for row in document.get("appointments", [])],
            "reviews": [_snake_record(row) for row in document.get("reviews", [])],
        }
    return document


class LocalRecordStore:
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.lock = threading.RLock()
        self.users: dict[str, UserProfile] = {}
        self.appointments: dict[str, Appointment] = {}
        self.reviews: list[Review] = []
        self.current_user_id: Optional[str] = None
        self.load()

    def load(self) -> None:
        with self.lock:
            if not self.path.exists():
                self._replace([DEMO_USER.model_copy(deep=True)], [], [], None)
                return
            try:
                document = json.loads(self.path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as exc:
                logger.error("Could not read records file %s: %s", self.path, exc)
                raise StoreCorruptionError(f"Unreadable records file {self.path}") from exc
            if not isinstance(document, dict):
                raise StoreCorruptionError(f"Records file {self.path} is not a JSON object")
            document = upgrade_document(document)
            try:
                users = [UserProfile(**row) for row in document.get("users", [])]
                appointments = [Appointment(**row) for row in document.get("appointments", [])]
                reviews = [Review(**row) for row in document.get("reviews", [])]
            except (TypeError, ValidationError) as exc:
                logger.error("Invalid record in %s: %s", self.path, exc)
                raise StoreCorruptionError(f"Invalid record in {self.path}") from exc
            self._replace(users, appointments, reviews, document.get("current_user_id"))

    def _replace(
        self,
        users: list[UserProfile],
        appointments: list[Appointment],
        reviews: list[Review],
        current_user_id: Optional[str],
    ) -> None:
        # Repositories share these containers, so they are refilled in place.
        self.users.clear()
        self.users.update({user.id: user for user in users})
        self.appointments.clear()
        self.appointments.update({appointment.id: appointment for appointment in appointments})
        self.reviews[:] = reviews
        self.current_user_id = current_user_id

    def to_document(self) -> dict[str, Any]:
        return {
            "schema_version": SCHEMA_VERSION,
            "current_user_id": self.current_user_id,
            "users": [user.model_dump(mode="json") for user in self.users.values()],
            "appointments": [
                appointment.model_dump(mode="json") for appointment in self.appointments.values()
            ],
            "reviews": [review.model_dump(mode="json") for review in self.reviews],
        }

    def flush(self) -> None:
        with self.lock:
            tmp_path = self.path.with_name(self.path.name + ".tmp")
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                tmp_path.write_text(
                    json.dumps(self.to_document(), ensure_ascii=False, indent=2),
                    encoding="utf-8",
                )
                os.replace(tmp_path, self.path)
            except OSError as exc:
                logger.error("Could not write records file %s: %s", self.path, exc)
                raise StoreWriteError(f"Could not write records file {self.path}") from exc

    @contextmanager
    def writing(self) -> Iterator[None]:
        """Apply in-memory changes and persist them, or roll all of them back."""
        with self.lock:
            users = list(self.users.values())
            appointments = list(self.appointments.values())
            reviews = list(self.reviews)
            current_user_id = self.current_user_id
            try:
                yield
                self.flush()
            except Exception:
                self._replace(users, appointments, reviews, current_user_id)
                raise


class LocalAppointmentRepository(InMemoryAppointmentRepository):
    def __init__(self, records: LocalRecordStore) -> None:
        super().__init__(store=records.appointments)
        self.records = records

    def create(self, appointment: Appointment) -> Appointment:
        with self.records.writing():
            super().create(appointment)
        return appointment

    def update(self, appointment: Appointment) -> Appointment:
        with self.records.writing():
            super().update(appointment)
        return appointment


class LocalUserRepository(InMemoryUserRepository):
    def __init__(self, records: LocalRecordStore) -> None:
        super().__init__(store=records.users)
        self.records = records

    def save(self, user: UserProfile) -> UserProfile:
        with self.records.writing():
            super().save(user)
        return user

    def get_current_user_id(self) -> Optional[str]:
        return self.records.current_user_id

    def set_current_user_id(self, user_id: Optional[str]) -> None:
        with self.records.writing():
            self.records.current_user_id = user_id


class LocalReviewRepository(InMemoryReviewRepository):
    def __init__(self, records: LocalRecordStore) -> None:
        super().__init__(store=records.reviews)
        self.records = records

    def add(self, review: Review) -> Review:
        with self.records.writing():
            super().add(review)
        return review


def build_local_repositories(path: str | Path) -> Repositories:
    records = LocalRecordStore(path)
    return Repositories(
        appointments=LocalAppointmentRepository(records),
        users=LocalUserRepository(records),
        reviews=LocalReviewRepository(records),
    )
