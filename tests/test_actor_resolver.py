from __future__ import annotations

import asyncio
from uuid import uuid4

import jwt
import pytest

from auth import security
from auth.actors import Role
from auth.service import ActorResolver
from core.errors import Forbidden, Unauthenticated


class TestActorResolver:
    def test_resolves_live_actor(self, store):
        actor = store.add_actor(Role.PATIENT)
        token = security.build_access_token(actor_id=actor.id, role=Role.PATIENT)

        resolved = asyncio.run(ActorResolver(store).resolve(token))

        assert resolved == actor

    def test_legacy_recruiter_role_name_is_accepted(self, store):
        actor = store.add_actor(Role.RECRUITER)
        token = jwt.encode(
            {"sub": str(actor.id), "role": "hrRecruiter", "type": "access", "exp": security.now_epoch_s() + 60},
            "test-secret",
            algorithm="HS256",
        )

        resolved = asyncio.run(ActorResolver(store).resolve(token))

        assert resolved.role is Role.RECRUITER

    def test_expired_token_is_unauthenticated(self, store):
        actor = store.add_actor(Role.PATIENT)
        token = security.build_access_token(actor_id=actor.id, role=Role.PATIENT, expires_in_s=-30)

        with pytest.raises(Unauthenticated, match="expired"):
            asyncio.run(ActorResolver(store).resolve(token))

    def test_bad_signature_is_unauthenticated(self, store):
        actor = store.add_actor(Role.PATIENT)
        token = jwt.encode(
            {"sub": str(actor.id), "role": "patient", "type": "access", "exp": security.now_epoch_s() + 60},
            "someone-else",
            algorithm="HS256",
        )

        with pytest.raises(Unauthenticated, match="Invalid access token."):
            asyncio.run(ActorResolver(store).resolve(token))

    def test_refresh_token_is_rejected(self, store):
        actor = store.add_actor(Role.PATIENT)
        token = jwt.encode(
            {"sub": str(actor.id), "role": "patient", "type": "refresh", "exp": security.now_epoch_s() + 60},
            "test-secret",
            algorithm="HS256",
        )

        with pytest.raises(Unauthenticated, match="not an access token"):
            asyncio.run(ActorResolver(store).resolve(token))

    def test_unknown_role_is_unauthenticated(self, store):
        token = jwt.encode(
            {"sub": str(uuid4()), "role": "janitor", "type": "access", "exp": security.now_epoch_s() + 60},
            "test-secret",
            algorithm="HS256",
        )

        with pytest.raises(Unauthenticated, match="role"):
            asyncio.run(ActorResolver(store).resolve(token))

    def test_removed_account_is_forbidden(self, store):
        actor = store.add_actor(Role.MEDICAL_DOCTOR)
        token = security.build_access_token(actor_id=actor.id, role=Role.MEDICAL_DOCTOR)
        store.accounts.clear()

        with pytest.raises(Forbidden, match="not active"):
            asyncio.run(ActorResolver(store).resolve(token))

    def test_account_in_other_role_table_does_not_count(self, store):
        actor = store.add_actor(Role.PATIENT)
        token = security.build_access_token(actor_id=actor.id, role=Role.MEDICAL_DOCTOR)

        with pytest.raises(Forbidden):
            asyncio.run(ActorResolver(store).resolve(token))
