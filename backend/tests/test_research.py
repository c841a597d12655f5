"""
Tests for research.py and the connectors - concurrent searches with
partial-failure semantics.
"""
import asyncio
import time

import pytest
from tenacity import wait_none

from boost.schemas.runs import RunInput
from boost.services.connectors import ConnectorRunner
from boost.services.connectors import tavily as tavily_module
from boost.services.connectors.base import BaseConnector, ConnectorError, ConnectorResult
from boost.services.connectors.tavily import MAX_EXTRACT_CHARS, TavilyConnector
from boost.services.research import (
    build_competitor_query,
    build_research_plan,
    extract_category,
    format_research_for_prompt,
    run_research,
)

from tests.fixtures.boost_fixtures import run_input_data


class FakeSearch(BaseConnector):
    """Returns one hit per query; queries containing `fail_on` raise."""

    name = "fake"

    def __init__(self, fail_on=None):
        self.fail_on = fail_on
        self.queries = []

    async def fetch(self, **params):
        query = params.get("query", "")
        self.queries.append(query)
        if self.fail_on and self.fail_on in query:
            raise ConnectorError("upstream 500")
        return ConnectorResult(
            {
                "results": [
                    {
                        "title": f"Hit for {query[:20]}",
                        "url": "https://www.reddit.com/r/freelance/comments/abc",
                        "content": "Designers complain about chasing invoices.",
                    }
                ]
            }
        )


class FakeTavilyClient:
    def __init__(self, search_response=None, extract_response=None, delay=0.0):
        self.search_response = search_response or {}
        self.extract_response = extract_response or {}
        self.delay = delay
        self.calls = []

    def search(self, **kwargs):
        self.calls.append(("search", kwargs))
        if self.delay:
            time.sleep(self.delay)
        return self.search_response

    def extract(self, **kwargs):
        self.calls.append(("extract", kwargs))
        return self.extract_response


class FlakyTavilyClient(FakeTavilyClient):
    """Raises `error` on the first `failures` calls, then behaves."""

    def __init__(self, failures=1, error=ConnectionError("connection reset"), **kwargs):
        super().__init__(**kwargs)
        self.failures = failures
        self.error = error

    def _maybe_fail(self):
        if self.failures:
            self.failures -= 1
            raise self.error

    def search(self, **kwargs):
        self.calls.append(("search", kwargs))
        self._maybe_fail()
        return self.search_response

    def extract(self, **kwargs):
        self.calls.append(("extract", kwargs))
        self._maybe_fail()
        return self.extract_response


@pytest.fixture
def no_retry_wait(monkeypatch):
    monkeypatch.setattr(TavilyConnector._call.retry, "wait", wait_none())


@pytest.fixture
def no_cache(monkeypatch):
    async def cached_get(key, set_value=None, ttl=None):
        return set_value

    monkeypatch.setattr(tavily_module, "cached_get", cached_get)


def _input(**overrides) -> RunInput:
    return RunInput.model_validate(run_input_data(**overrides))


class TestQueries:
    def test_category_is_first_sentence(self):
        assert extract_category(_input().product_description) == "Invoice automation for freelance designers"

    def test_category_capped(self):
        assert len(extract_category("word " * 40)) == 80

    def test_competitor_query_uses_domains(self):
        assert build_competitor_query(_input()) == (
            "bonsai.com OR honeybook.com growth strategy marketing tactics"
        )

    def test_competitor_query_without_competitors(self):
        query = build_competitor_query(_input(competitor_urls=[]))
        assert query == "Invoice automation for freelance designers competitors analysis growth strategy"

    def test_plan_has_four_searches(self):
        plan = build_research_plan(_input())
        assert [s["name"] for s in plan] == ["competitors", "market_trends", "growth_tactics", "reddit"]
        assert plan[3]["params"]["query"].startswith("site:reddit.com")


class TestRunResearch:
    """Tests for run_research over a fake connector."""

    def test_all_searches_succeed(self):
        fake = FakeSearch()
        research = run_research(_input(), runner=ConnectorRunner({"tavily": fake}))

        assert len(fake.queries) == 4
        assert research["errors"] == []
        assert len(research["competitor_insights"]) == 1
        assert research["reddit_discussions"][0]["subreddit"] == "freelance"
        assert "research_completed_at" in research

    def test_one_failure_is_recorded(self):
        research = run_research(_input(), runner=ConnectorRunner({"tavily": FakeSearch(fail_on="market trends")}))

        assert research["market_trends"] == []
        assert len(research["errors"]) == 1
        assert research["errors"][0].startswith("market_trends:")
        assert len(research["growth_tactics"]) == 1

    def test_unknown_connector_is_an_error(self):
        runner = ConnectorRunner({"tavily": FakeSearch()})
        results, errors = runner.execute_plan(
            [{"name": "mystery", "connector": "nope", "params": {}}]
        )
        assert results == {"mystery": {}}
        assert "No connector registered" in errors[0]


class TestFormatResearch:
    def test_empty(self):
        assert format_research_for_prompt(None) == "No external research is available for this run."

    def test_sections_rendered(self):
        research = run_research(_input(), runner=ConnectorRunner({"tavily": FakeSearch()}))
        text = format_research_for_prompt(research)
        assert "### Competitor Intelligence" in text
        assert "### Community Discussions (Reddit)" in text
        assert "r/freelance" in text


class TestTavilyConnector:
    """Tests for TavilyConnector with a stub SDK client."""

    def test_search_normalises(self, no_cache):
        client = FakeTavilyClient(
            search_response={
                "results": [
                    {"title": "Bonsai", "url": "https://bonsai.com", "content": "x" * 5000, "score": 0.9},
                    {"title": "No url", "content": "dropped"},
                ]
            }
        )
        results = asyncio.run(TavilyConnector(client=client).search("invoice tools", max_results=3))

        assert len(results) == 1
        assert results[0]["url"] == "https://bonsai.com"
        assert len(results[0]["content"]) == MAX_EXTRACT_CHARS
        assert client.calls[0] == (
            "search",
            {"query": "invoice tools", "search_depth": "advanced", "max_results": 3},
        )

    def test_cached_results_skip_the_client(self, monkeypatch):
        async def cached_get(key, set_value=None, ttl=None):
            return [{"title": "cached", "url": "https://c.example", "content": "", "score": None}]

        monkeypatch.setattr(tavily_module, "cached_get", cached_get)
        client = FakeTavilyClient()
        results = asyncio.run(TavilyConnector(client=client).search("anything"))
        assert results[0]["title"] == "cached"
        assert client.calls == []

    def test_extract_truncates(self):
        client = FakeTavilyClient(extract_response={"results": [{"raw_content": "y" * 5000}]})
        content = asyncio.run(TavilyConnector(client=client).extract("https://invoicely.example"))
        assert content.endswith("[Content truncated]")
        assert content.startswith("y" * MAX_EXTRACT_CHARS)

    def test_extract_empty(self):
        client = FakeTavilyClient(extract_response={"results": []})
        assert asyncio.run(TavilyConnector(client=client).extract("https://x.example")) is None

    def test_fetch_dispatches_modes(self, no_cache):
        client = FakeTavilyClient(
            search_response={"results": [{"title": "t", "url": "https://t.example", "content": "c"}]},
            extract_response={"results": [{"raw_content": "page text"}]},
        )
        connector = TavilyConnector(client=client)
        assert asyncio.run(connector.fetch(mode="extract", url="https://t.example")) == {"content": "page text"}
        assert asyncio.run(connector.fetch(query="  ")) == {"results": []}
        assert len(asyncio.run(connector.fetch(query="invoices"))["results"]) == 1

    def test_search_retries_transient_errors(self, no_cache, no_retry_wait):
        client = FlakyTavilyClient(
            search_response={"results": [{"title": "t", "url": "https://t.example", "content": "c"}]},
        )
        results = asyncio.run(TavilyConnector(client=client).search("invoice tools"))
        assert [r["url"] for r in results] == ["https://t.example"]
        assert [name for name, _ in client.calls] == ["search", "search"]

    def test_extract_retries_transient_errors(self, no_retry_wait):
        client = FlakyTavilyClient(extract_response={"results": [{"raw_content": "page text"}]})
        assert asyncio.run(TavilyConnector(client=client).extract("https://t.example")) == "page text"
        assert len(client.calls) == 2

    def test_gives_up_after_three_attempts(self, no_cache, no_retry_wait):
        client = FlakyTavilyClient(failures=5)
        with pytest.raises(ConnectionError):
            asyncio.run(TavilyConnector(client=client).search("invoice tools"))
        assert len(client.calls) == 3

    def test_connector_errors_are_not_retried(self, no_cache, no_retry_wait):
        client = FlakyTavilyClient(failures=5, error=ConnectorError("quota exceeded"))
        with pytest.raises(ConnectorError):
            asyncio.run(TavilyConnector(client=client).search("invoice tools"))
        assert len(client.calls) == 1

    def test_missing_key_is_not_retried(self, no_cache, monkeypatch):
        monkeypatch.setattr(tavily_module.settings, "TAVILY_API_KEY", None)
        with pytest.raises(ConnectorError):
            asyncio.run(TavilyConnector().fetch(query="invoices"))

    def test_timeout(self, no_cache, monkeypatch):
        monkeypatch.setattr(tavily_module.settings, "SEARCH_TIMEOUT_SECONDS", 0.05)
        client = FakeTavilyClient(search_response={"results": []}, delay=0.3)
        with pytest.raises(ConnectorError):
            asyncio.run(TavilyConnector(client=client).search("slow"))
