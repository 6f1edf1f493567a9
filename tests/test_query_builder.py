from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest

from core.errors import ValidationFailed
from listing.builder import (
    DEFAULT_LIMIT,
    MAX_LIMIT,
    ListingSpec,
    Page,
    QueryBuilder,
    page_count,
)

from fakes import later

SPEC = ListingSpec(
    filter_fields=frozenset({"status", "patient_id"}),
    range_fields=frozenset({"created_at", "start_time"}),
    sort_fields=frozenset({"created_at", "updated_at", "start_time"}),
)


@pytest.fixture
def builder() -> QueryBuilder:
    return QueryBuilder(SPEC)


class TestPaging:
    @pytest.mark.parametrize("limit", [0, -5, None, "abc"])
    def test_non_positive_or_missing_limit_uses_default(self, builder, limit):
        assert builder.build({}, limit=limit).limit == DEFAULT_LIMIT

    def test_limit_is_clamped(self, builder):
        assert builder.build({}, limit=10_000).limit == MAX_LIMIT

    def test_page_defaults_to_first(self, builder):
        query = builder.build({}, page=0)

        assert query.page == 1
        assert query.offset == 0

    def test_offset_follows_page(self, builder):
        assert builder.build({}, page=3, limit=10).offset == 20

    def test_page_count(self):
        assert page_count(0, 20) == 0
        assert page_count(20, 20) == 1
        assert page_count(21, 20) == 2


class TestSorting:
    def test_unknown_sort_falls_back(self, builder):
        query = builder.build({}, sort="password_hash", order="asc")

        assert query.sort_field == "created_at"
        assert query.sort_order == "asc"

    def test_unknown_order_is_descending(self, builder):
        assert builder.build({}, sort="start_time", order="sideways").sort_order == "desc"

    def test_prefixed_sort(self, builder):
        query = builder.build({}, sort="+start_time")

        assert (query.sort_field, query.sort_order) == ("start_time", "asc")


class TestFilters:
    def test_only_whitelisted_equality_filters(self, builder):
        query = builder.build({"status": "scheduled", "provider_id": "x", "deleted_at": None})

        assert query.filters == {"status": "scheduled"}

    def test_range_needs_bounds(self, builder):
        query = builder.build(
            {
                "created_at": {"gte": later(0), "lte": later(60)},
                "start_time": "2024-03-01",
            }
        )

        assert len(query.ranges) == 1
        assert query.ranges[0].field == "created_at"
        assert query.ranges[0].gte == later(0)

    def test_iso_text_bounds_are_parsed(self, builder):
        query = builder.build({"start_time": {"gte": "2024-03-01T09:00:00Z"}})

        assert query.ranges[0].gte == later(0)

    @pytest.mark.parametrize("bound", ["gte", "lte"])
    def test_unparsable_bound_is_rejected(self, builder, bound):
        with pytest.raises(ValidationFailed, match=f"start_time.{bound} must be an ISO-8601 timestamp"):
            builder.build({"start_time": {bound: "not-a-date"}})

    def test_scope_overrides_caller_values(self, builder):
        mine, theirs = uuid4(), uuid4()

        query = builder.build({"patient_id": theirs}, scope={"patient_id": mine})

        assert query.filters["patient_id"] == mine

    def test_scope_applies_to_non_whitelisted_columns(self, builder):
        parent = uuid4()

        query = builder.build({}, scope={"appointment_id": parent})

        assert query.filters == {"appointment_id": parent}


class TestPagingOverStore:
    def test_pages_cover_every_row_once(self, builder, store):
        table = "healthcare_platform_appointments"
        # Shared timestamps force the id tie-break.
        for index in range(45):
            store.add(table, status="scheduled", start_time=later(index // 10))

        seen = []
        pages = None
        for page in range(1, 4):
            query = builder.build({}, sort="start_time", page=page, limit=20)
            rows, total = asyncio.run(store.fetch_page(table, query))
            result = Page.build(rows, total, query)
            pages = result.pages
            seen.extend(row["id"] for row in result.data)

        assert pages == 3
        assert len(seen) == 45
        assert len(set(seen)) == 45

    def test_page_shape(self, builder):
        query = builder.build({}, page=2, limit=10)

        page = Page.build([], 25, query).to_dict()

        assert page == {"pagination": {"current": 2, "limit": 10, "records": 25, "pages": 3}, "data": []}
