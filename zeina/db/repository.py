from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol

from ..schemas import Appointment, Review, UserProfile


class AppointmentRepository(Protocol):
    def create(self, appointment: Appointment) -> Appointment:
        ...

    def get(self, appointment_id: str) -> Optional[Appointment]:
        ...

    def list_by_user(self, user_id: str) -> list[Appointment]:
        ...

    def list_by_expert(self, expert_id: str) -> list[Appointment]:
        ...

    def update(self, appointment: Appointment) -> Appointment:
        ...


class UserRepository(Protocol):
    def get(self, user_id: str) -> Optional[UserProfile]:
        ...

    def save(self, user: UserProfile) -> UserProfile:
        ...

    def get_current_user_id(self) -> Optional[str]:
        ...

    def set_current_user_id(self, user_id: Optional[str]) -> None:
        ...


class ReviewRepository(Protocol):
    def add(self, review: Review) -> Review:
        ...

    def list_by_item(self, item_id: str) -> list[Review]:
        ...


@dataclass
class InMemoryAppointmentRepository:
    store: dict[str, Appointment] = field(default_factory=dict)

    def create(self, appointment: Appointment) -> Appointment:
        self.store[appointment.id] = appointment.model_copy(deep=True)
        return appointment

    def get(self, appointment_id: str) -> Optional[Appointment]:
        appointment = self.store.get(appointment_id)
        return appointment.model_copy(deep=True) if appointment else None

    def list_by_user(self, user_id: str) -> list[Appointment]:
        return [
            appointment.model_copy(deep=True)
            for appointment in self.store.values()
            if appointment.user_id == user_id
        ]

    def list_by_expert(self, expert_id: str) -> list[Appointment]:
        return [
            appointment.model_copy(deep=True)
            for appointment in self.store.values()
            if appointment.expert_id == expert_id
        ]

    def update(self, appointment: Appointment) -> Appointment:
        self.store[appointment.id] = appointment.model_copy(deep=True)
        return appointment


@dataclass
class InMemoryUserRepository:
    store: dict[str, UserProfile] = field(default_factory=dict)
    current_user_id: Optional[str] = None

    def get(self, user_id: str) -> Optional[UserProfile]:
        user = self.store.get(user_id)
        return user.model_copy(deep=True) if user else None

    def save(self, user: UserProfile) -> UserProfile:
        self.store[user.id] = user.model_copy(deep=True)
        return user

    def get_current_user_id(self) -> Optional[str]:
        return self.current_user_id

    def set_current_user_id(self, user_id: Optional[str]) -> None:
        self.current_user_id = user_id


@dataclass
class InMemoryReviewRepository:
    store: list[Review] = field(default_factory=list)

    def add(self, review: Review) -> Review:
        self.store.append(review.model_copy(deep=True))
        return review

    def list_by_item(self, item_id: str) -> list[Review]:
        return [review.model_copy(deep=True) for review in self.store if review.item_id == item_id]


class SupabaseAppointmentRepository:
    def __init__(self, client) -> None:
        self.client = client

    def create(self, appointment: Appointment) -> Appointment:
        payload = appointment.model_dump(mode="json")
        self.client.table("appointments").insert(payload).execute()
        return appointment

    def get(self, appointment_id: str) -> Optional[Appointment]:
        response = (
            self.client.table("appointments")
            .select("*")
            .eq("id", appointment_id)
            .limit(1)
            .execute()
        )
        rows = response.data or []
        return Appointment(**rows[0]) if rows else None

    def list_by_user(self, user_id: str) -> list[Appointment]:
        response = (
            self.client.table("appointments")
            .select("*")
            .eq("user_id", user_id)
            .order("created_at")
            .execute()
        )
        return [Appointment(**row) for row in response.data or []]

    def list_by_expert(self, expert_id: str) -> list[Appointment]:
        response = (
            self.client.table("appointments")
            .select("*")
            .eq("expert_id", expert_id)
            .order("created_at")
            .execute()
        )
        return [Appointment(**row) for row in response.data or []]

    def update(self, appointment: Appointment) -> Appointment:
        payload = appointment.model_dump(mode="json")
        self.client.table("appointments").update(payload).eq("id", appointment.id).execute()
        return appointment


class SupabaseUserRepository:
    def __init__(self, client) -> None:
        self.client = client
        self.current_user_id: Optional[str] = None

    def get(self, user_id: str) -> Optional[UserProfile]:
        response = self.client.table("users").select("*").eq("id", user_id).limit(1).execute()
        rows = response.data or []
        return UserProfile(**rows[0]) if rows else None

    def save(self, user: UserProfile) -> UserProfile:
        self.client.table("users").upsert(user.model_dump(mode="json")).execute()
        return user

    def get_current_user_id(self) -> Optional[str]:
        return self.current_user_id

    def set_current_user_id(self, user_id: Optional[str]) -> None:
        self.current_user_id = user_id


class SupabaseReviewRepository:
    def __init__(self, client) -> None:
        self.client = client

    def add(self, review: Review) -> Review:
        self.client.table("reviews").insert(review.model_dump(mode="json")).execute()
        return review

    def list_by_item(self, item_id: str) -> list[Review]:
        response = self.client.table("reviews").select("*").eq("item_id", item_id).execute()
        return [Review(**row) for row in response.data or []]


@dataclass
class Repositories:
    appointments: AppointmentRepository
    users: UserRepository
    reviews: ReviewRepository


def build_memory_repositories() -> Repositories:
    return Repositories(
        appointments=InMemoryAppointmentRepository(),
        users=InMemoryUserRepository(),
        reviews=InMemoryReviewRepository(),
    )


def build_repositories(settings) -> Repositories:
    backend = settings.storage_backend.lower()
    if backend == "memory":
        return build_memory_repositories()
    if backend == "local":
        from .local import build_local_repositories

        return build_local_repositories(settings.records_path)
    if backend != "supabase":
        raise ValueError(f"Unknown storage backend {settings.storage_backend!r}.")
    if not settings.supabase_url or not settings.supabase_key:
        raise ValueError("Missing Supabase configuration (SUPABASE_URL/SUPABASE_KEY).")

    from supabase import create_client

    client = create_client(settings.supabase_url, settings.supabase_key)
    return Repositories(
        appointments=SupabaseAppointmentRepository(client),
        users=SupabaseUserRepository(client),
        reviews=SupabaseReviewRepository(client),
    )
