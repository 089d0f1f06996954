"""
Tests for parallel endpoint detail extraction.
"""
import json

import pytest

from docspec.core.errors import OracleError
from docspec.scraper.extraction import DetailExtractor, dedupe_endpoints
from docspec.scraper.models import Endpoint, EndpointDescriptor
from fakes import FakeOracle, FetcherFactory


def descriptor(n, detail=True):
    return EndpointDescriptor(
        method="GET",
        path=f"/items/{n}",
        display_name=f"Item {n}",
        detail_location=f"https://docs.test/items/{n}" if detail else None,
    )


def detail_answer(user_prompt):
    path = next(line.split()[-1] for line in user_prompt.splitlines() if line.startswith("ENDPOINT:"))
    return json.dumps({
        "method": "GET",
        "path": path,
        "summary": f"Fetch {path}",
        "description": "Returns one item.",
        "parameters": [
            {"name": "id", "type": "integer", "required": True, "in": "path", "description": "Item id"},
            {"type": "string"},
        ],
        "requestExample": {"language": "bash", "code": f"curl https://api.test{path}"},
        "responseExample": {"language": "json", "code": {"id": 1}},
        "tags": ["items"],
    })


def pages_for(count):
    return {f"https://docs.test/items/{n}": f"<html><body><p>Item {n} docs</p></body></html>" for n in range(count)}


class TestDetailExtractor:

    @pytest.mark.asyncio
    async def test_extracts_every_descriptor(self):
        oracle = FakeOracle(extraction=json.dumps({"summary": "Fetch", "description": "Returns one item."}))
        factory = FetcherFactory(pages_for(3))
        extractor = DetailExtractor(oracle, fetcher_factory=factory, rendering_hint="http")

        result = await extractor.extract_all([descriptor(n) for n in range(3)])

        assert result.success_count == 3
        assert result.failure_count == 0
        assert sorted(e.path for e in result.endpoints) == ["/items/0", "/items/1", "/items/2"]
        assert all(hint == "http" for _, hint in factory.requests)

    @pytest.mark.asyncio
    async def test_failures_are_skipped_and_counted(self):
        oracle = FakeOracle(extraction='{"summary": "ok"}')
        pages = pages_for(6)
        pages["https://docs.test/items/1"] = None
        pages["https://docs.test/items/4"] = None
        extractor = DetailExtractor(oracle, fetcher_factory=FetcherFactory(pages))

        result = await extractor.extract_all([descriptor(n) for n in range(6)])

        assert result.success_count == 4
        assert result.failure_count == 2
        assert len(result.endpoints) == 4
        assert {e.path for e in result.endpoints} == {"/items/0", "/items/2", "/items/3", "/items/5"}

    @pytest.mark.asyncio
    async def test_oracle_failure_is_skipped(self):
        oracle = FakeOracle(extraction=OracleError("DSPC-3002", status=500))
        extractor = DetailExtractor(oracle, fetcher_factory=FetcherFactory(pages_for(2)))

        result = await extractor.extract_all([descriptor(0), descriptor(1)])

        assert result.endpoints == []
        assert result.failure_count == 2

    @pytest.mark.asyncio
    async def test_fallback_to_basic(self):
        oracle = FakeOracle(extraction="not json")
        extractor = DetailExtractor(
            oracle, fetcher_factory=FetcherFactory(pages_for(2)), fallback_to_basic=True,
        )

        result = await extractor.extract_all([descriptor(0), descriptor(1)])

        assert result.success_count == 2
        assert result.failure_count == 0
        assert {e.summary for e in result.endpoints} == {"Item 0", "Item 1"}

    @pytest.mark.asyncio
    async def test_at_most_five_in_flight(self):
        oracle = FakeOracle(delay=0.02, extraction='{"summary": "ok"}')
        extractor = DetailExtractor(oracle, fetcher_factory=FetcherFactory(pages_for(12)), max_workers=20)

        result = await extractor.extract_all([descriptor(n) for n in range(12)])

        assert result.success_count == 12
        assert oracle.max_in_flight <= 5
        assert oracle.max_in_flight > 1

    @pytest.mark.asyncio
    async def test_descriptor_without_page_needs_no_oracle(self):
        oracle = FakeOracle()
        factory = FetcherFactory({})
        extractor = DetailExtractor(oracle, fetcher_factory=factory)

        result = await extractor.extract_all([descriptor(7, detail=False)])

        assert oracle.calls == []
        assert factory.requests == []
        endpoint = result.endpoints[0]
        assert endpoint.key == ("GET", "/items/7")
        assert endpoint.summary == "Item 7"
        assert endpoint.parameters == ()

    @pytest.mark.asyncio
    async def test_payload_mapping(self):
        oracle = FakeOracle(extraction=detail_answer)
        extractor = DetailExtractor(oracle, fetcher_factory=FetcherFactory(pages_for(1)))

        endpoint = await extractor.extract_one(descriptor(0))

        assert endpoint.summary == "Fetch /items/0"
        assert endpoint.description == "Returns one item."
        assert len(endpoint.parameters) == 1
        param = endpoint.parameters[0]
        assert (param.name, param.type, param.required, param.location) == ("id", "integer", True, "path")
        assert endpoint.request_example.language == "bash"
        assert json.loads(endpoint.response_example.code) == {"id": 1}
        assert endpoint.tags == frozenset({"items"})

    @pytest.mark.asyncio
    async def test_page_text_reaches_prompt(self):
        oracle = FakeOracle(extraction='{"summary": "ok"}')
        extractor = DetailExtractor(oracle, fetcher_factory=FetcherFactory(pages_for(1)))

        await extractor.extract_one(descriptor(0))

        prompt = oracle.calls[0].user_prompt
        assert "Item 0 docs" in prompt
        assert "<p>" not in prompt

    @pytest.mark.asyncio
    async def test_list_payload_uses_first_entry(self):
        oracle = FakeOracle(extraction='[{"summary": "first"}, {"summary": "second"}]')
        extractor = DetailExtractor(oracle, fetcher_factory=FetcherFactory(pages_for(1)))

        endpoint = await extractor.extract_one(descriptor(0))

        assert endpoint.summary == "first"

    @pytest.mark.asyncio
    async def test_empty_input(self):
        result = await DetailExtractor(FakeOracle()).extract_all([])
        assert result.endpoints == []
        assert result.success_count == result.failure_count == 0


class TestDedupeEndpoints:

    def test_last_record_wins_at_first_position(self):
        endpoints = [
            Endpoint("GET", "/a", summary="old"),
            Endpoint("POST", "/a"),
            Endpoint("get", "/a", summary="new"),
        ]
        deduped = dedupe_endpoints(endpoints)
        assert [e.key for e in deduped] == [("GET", "/a"), ("POST", "/a")]
        assert deduped[0].summary == "new"
