from __future__ import annotations

import asyncio
from datetime import timedelta
from uuid import uuid4

import pytest

from access.policy import Action
from core.errors import Conflict, NotFound
from lifecycle.manager import HARD, SOFT
from resources.catalog import CATALOG

APPOINTMENTS = CATALOG.get("appointments")
CODING_TESTS = CATALOG.get("coding_tests")
JOB_POSTING_STATES = CATALOG.get("job_posting_states")
WAITLISTS = CATALOG.get("appointment_waitlists")
STORY_PAGES = CATALOG.get("story_pages")


class TestMutability:
    def test_reads_are_always_allowed(self, lifecycle):
        decision = lifecycle.check_mutable(APPOINTMENTS, {"status": "completed"}, Action.READ)

        assert decision.allow

    def test_terminal_status_blocks_update(self, lifecycle):
        with pytest.raises(Conflict, match="completed appointment"):
            lifecycle.ensure_mutable(APPOINTMENTS, {"status": "completed", "deleted_at": None}, Action.UPDATE)

    def test_deleted_row_blocks_everything(self, lifecycle, store):
        row = {"status": "scheduled", "deleted_at": store.now}

        with pytest.raises(Conflict, match="already deleted"):
            lifecycle.ensure_mutable(APPOINTMENTS, row, Action.DELETE)

    def test_closed_coding_test_is_locked(self, lifecycle, store):
        row = {"closed_at": store.now, "expiration_at": None, "deleted_at": None}

        with pytest.raises(Conflict, match="closed coding test"):
            lifecycle.ensure_mutable(CODING_TESTS, row, Action.UPDATE)

    def test_expired_coding_test_is_locked(self, lifecycle, store):
        row = {"closed_at": None, "expiration_at": store.now - timedelta(minutes=1), "deleted_at": None}

        with pytest.raises(Conflict, match="has expired"):
            lifecycle.ensure_mutable(CODING_TESTS, row, Action.UPDATE)

    def test_future_expiry_is_mutable(self, lifecycle, store):
        row = {"closed_at": None, "expiration_at": store.now + timedelta(days=1), "deleted_at": None}

        assert lifecycle.check_mutable(CODING_TESTS, row, Action.UPDATE).allow


class TestDelete:
    def test_soft_delete_keeps_row(self, lifecycle, store, appointment):
        outcome = asyncio.run(lifecycle.delete(APPOINTMENTS, appointment))

        assert outcome.mode == SOFT
        assert outcome.row["deleted_at"] == store.now
        assert store.row(APPOINTMENTS.table, appointment["id"]) is not None

    def test_delete_twice_conflicts(self, lifecycle, store, appointment):
        asyncio.run(lifecycle.delete(APPOINTMENTS, appointment))
        deleted = store.row(APPOINTMENTS.table, appointment["id"])

        with pytest.raises(Conflict, match="already deleted"):
            asyncio.run(lifecycle.delete(APPOINTMENTS, deleted))

    def test_hard_delete_without_retention_column(self, lifecycle, store, patient, appointment):
        entry = store.add(WAITLISTS.table, appointment_id=appointment["id"], patient_id=patient.id, status="waiting")

        outcome = asyncio.run(lifecycle.delete(WAITLISTS, entry))

        assert outcome.mode == HARD
        assert store.row(WAITLISTS.table, entry["id"]) is None

    def test_referenced_state_is_not_deleted(self, lifecycle, store, recruiter):
        state = store.add(JOB_POSTING_STATES.table, state_code="open", label="Open")
        store.add("ats_recruitment_job_postings", hr_recruiter_id=recruiter.id, job_posting_state_id=state["id"])

        with pytest.raises(Conflict, match="still referenced by job postings"):
            asyncio.run(lifecycle.delete(JOB_POSTING_STATES, state))

        assert store.row(JOB_POSTING_STATES.table, state["id"])["deleted_at"] is None
        assert store.mutations == []

    def test_deleted_references_do_not_block(self, lifecycle, store, recruiter):
        state = store.add(JOB_POSTING_STATES.table, state_code="draft", label="Draft")
        store.add(
            "ats_recruitment_job_postings",
            hr_recruiter_id=recruiter.id,
            job_posting_state_id=state["id"],
            deleted_at=store.now,
        )

        outcome = asyncio.run(lifecycle.delete(JOB_POSTING_STATES, state))

        assert outcome.mode == SOFT


class TestConditionalWrites:
    def test_stale_read_is_explained(self, lifecycle, store, appointment):
        # Another writer completed the appointment after our read.
        store.tables[APPOINTMENTS.table][appointment["id"]]["status"] = "completed"

        with pytest.raises(Conflict, match="completed appointment"):
            asyncio.run(lifecycle.update(APPOINTMENTS, appointment, {"title": "Moved"}))

        assert store.row(APPOINTMENTS.table, appointment["id"])["title"] == "Follow-up"

    def test_vanished_row_is_not_found(self, lifecycle, store, appointment):
        del store.tables[APPOINTMENTS.table][appointment["id"]]

        with pytest.raises(NotFound):
            asyncio.run(lifecycle.update(APPOINTMENTS, appointment, {"title": "Moved"}))

    def test_update_refreshes_updated_at(self, lifecycle, store, appointment):
        store.now = store.now + timedelta(hours=1)

        updated = asyncio.run(lifecycle.update(APPOINTMENTS, appointment, {"title": "Moved"}))

        assert updated["title"] == "Moved"
        assert updated["updated_at"] == store.now


class TestUniqueness:
    def test_duplicate_create_conflicts(self, lifecycle, store):
        story_id = uuid4()
        store.add(STORY_PAGES.table, story_id=story_id, page_number=1)

        with pytest.raises(Conflict, match=r"\(story_id, page_number\)"):
            asyncio.run(
                lifecycle.create(
                    STORY_PAGES,
                    {"id": uuid4(), "story_id": story_id, "page_number": 1},
                )
            )

    def test_update_into_taken_slot_conflicts(self, lifecycle, store):
        story_id = uuid4()
        store.add(STORY_PAGES.table, story_id=story_id, page_number=1)
        second = store.add(STORY_PAGES.table, story_id=story_id, page_number=2)

        with pytest.raises(Conflict):
            asyncio.run(lifecycle.update(STORY_PAGES, second, {"page_number": 1}))

    def test_update_untouched_tuple_is_not_checked(self, lifecycle, store):
        story_id = uuid4()
        page = store.add(STORY_PAGES.table, story_id=story_id, page_number=1)

        updated = asyncio.run(lifecycle.update(STORY_PAGES, page, {"text": "Once upon a time"}))

        assert updated["text"] == "Once upon a time"

    def test_lost_insert_race_is_conflict(self, lifecycle, store):
        story_id = uuid4()
        store.unique[STORY_PAGES.table].append(("story_id", "page_number"))
        store.add(STORY_PAGES.table, story_id=story_id, page_number=3)
        # The pre-check misses the row, as when a concurrent insert lands after it.
        values = {"id": uuid4(), "story_id": story_id, "page_number": 3}

        async def racing_exists(*args, **kwargs):
            return False

        store.record_exists = racing_exists

        with pytest.raises(Conflict, match="already exists"):
            asyncio.run(lifecycle.create(STORY_PAGES, values))
