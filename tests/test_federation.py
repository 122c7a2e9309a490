"""Tests for federated queries across both stores."""

import pytest

from docbridge.loaders.memory_loader import InMemoryLoader
from docbridge.models.record import JoinStrategy
from docbridge.services.federation import FederatedQueryService


class UnavailableLoader(InMemoryLoader):
    def read_documents(self, collection, filters=None, limit=None):
        raise ConnectionError("document store unavailable")


@pytest.fixture
def stats_loader(memory_loader):
    memory_loader.write_documents("country_stats", [
        {"_id": "a", "country_id": 1, "visits": 120},
        {"_id": "b", "country_id": 3, "visits": 7},
    ])
    return memory_loader


class TestFederatedQuery:
    def test_inner_join(self, geo_extractor, stats_loader):
        service = FederatedQueryService(geo_extractor, stats_loader)
        result = service.query("city", "country_stats", join_key="country_id")

        assert result.success
        assert len(result.relational_rows) == 3
        assert len(result.documents) == 2
        assert [r.source_a["name"] for r in result.joined] == ["Santiago", "Valparaiso"]
        assert all(r.source_b["visits"] == 120 for r in result.joined)
        assert result.join_strategy == JoinStrategy.INNER
        assert result.execution_time >= 0

    def test_full_join(self, geo_extractor, stats_loader):
        result = FederatedQueryService(geo_extractor, stats_loader).query(
            "city", "country_stats", join_key="country_id", strategy="full"
        )

        assert len(result.joined) == 4
        assert result.joined[-1].source_a is None
        assert result.joined[-1].source_b["country_id"] == 3

    def test_without_join_key(self, geo_extractor, stats_loader):
        result = FederatedQueryService(geo_extractor, stats_loader).query("city", "country_stats")

        assert result.joined == []
        data = result.to_dict()
        assert "joined" not in data
        assert data["relational"]["count"] == 3
        assert data["document"]["count"] == 2

    def test_filters_and_limit(self, geo_extractor, stats_loader):
        service = FederatedQueryService(geo_extractor, stats_loader)

        filtered = service.query("city", "country_stats", table_filters={"country_id": 1})
        assert [r["name"] for r in filtered.relational_rows] == ["Santiago", "Valparaiso"]

        limited = service.query("city", "country_stats", join_key="country_id", strategy="left", limit=1)
        assert len(limited.relational_rows) == 1
        assert len(limited.documents) == 1
        assert len(limited.joined) == 1

    def test_store_failure_is_reported(self, geo_extractor):
        result = FederatedQueryService(geo_extractor, UnavailableLoader()).query(
            "city", "country_stats", join_key="country_id"
        )

        assert not result.success
        assert result.joined == []
        assert len(result.relational_rows) == 3
        assert "document store unavailable" in result.errors[0]

    def test_invalid_strategy_is_reported(self, geo_extractor, stats_loader):
        result = FederatedQueryService(geo_extractor, stats_loader).query(
            "city", "country_stats", join_key="country_id", strategy="sideways"
        )

        assert not result.success
        assert result.relational_rows == []
