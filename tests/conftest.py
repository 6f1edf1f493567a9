from __future__ import annotations

import pytest

from access.guard import OwnershipGuard
from audit.service import AuditRecorder
from auth.actors import Role
from lifecycle.manager import LifecycleManager
from resources.catalog import CATALOG
from resources.service import ResourceService

from fakes import InMemoryStore


@pytest.fixture(autouse=True)
def jwt_env(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    monkeypatch.setenv("JWT_ALG", "HS256")
    monkeypatch.delenv("JWT_ISSUER", raising=False)


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def guard(store) -> OwnershipGuard:
    return OwnershipGuard(store, CATALOG)


@pytest.fixture
def lifecycle(store) -> LifecycleManager:
    return LifecycleManager(store, clock=lambda: store.now)


@pytest.fixture
def service(store, guard, lifecycle) -> ResourceService:
    return ResourceService(
        catalog=CATALOG,
        store=store,
        guard=guard,
        lifecycle=lifecycle,
        audit=AuditRecorder(store),
        clock=lambda: store.now,
    )


@pytest.fixture
def patient(store):
    return store.add_actor(Role.PATIENT)


@pytest.fixture
def other_patient(store):
    return store.add_actor(Role.PATIENT)


@pytest.fixture
def doctor(store):
    return store.add_actor(Role.MEDICAL_DOCTOR)


@pytest.fixture
def recruiter(store):
    return store.add_actor(Role.RECRUITER)


@pytest.fixture
def applicant(store):
    return store.add_actor(Role.APPLICANT)


@pytest.fixture
def member(store):
    return store.add_actor(Role.MEMBER)


@pytest.fixture
def system_admin(store):
    return store.add_actor(Role.SYSTEM_ADMIN)


@pytest.fixture
def appointment(store, patient, doctor):
    return store.add(
        "healthcare_platform_appointments",
        patient_id=patient.id,
        provider_id=doctor.id,
        status="scheduled",
        title="Follow-up",
    )
