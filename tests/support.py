from datetime import datetime, timedelta, timezone

from db import DocumentStore
from models import USERS


class FakeClock:
    """Returns a strictly increasing time on every call."""

    def __init__(self, start=datetime(2024, 1, 1, tzinfo=timezone.utc), step_seconds=60):
        self.current = start
        self.step = timedelta(seconds=step_seconds)

    def __call__(self):
        self.current = self.current + self.step
        return self.current


def add_user(store: DocumentStore, name: str, role: str = "recipient") -> str:
    """Store a minimal user document and return its id."""
    ref = store.collection(USERS).add(
        {
            "role": role,
            "name": name,
            "email": f"{name.lower()}@example.com",
            "phone": "555-0100",
            "identity_document": "ID-1",
            "address": "Rua A, 1",
            "city": "Porto",
            "state": "PT",
            "zip_code": "4000-001",
            "password_hash": "not-a-real-hash",
            "created_at": datetime(2023, 1, 1, tzinfo=timezone.utc),
        }
    )
    return ref.id


def donation_fields(**overrides) -> dict:
    fields = {
        "title": "Winter coat",
        "description": "Size M, barely used",
        "category": "clothing",
        "location": "Near the station",
        "city": "Porto",
        "state": "PT",
    }
    fields.update(overrides)
    return fields
