from __future__ import annotations

import unittest
from typing import Any

from postcard.config_schema import SearchConfig
from postcard.errors import SearchQueryError
from postcard.search import ApifyGoogleSearch, search_hit_from_item


class _FakeDatasetClient:
    def __init__(self, items: list[dict[str, Any]]) -> None:
        self._items = items
        self.calls: list[dict[str, Any]] = []

    def iterate_items(self, *, limit: int | None = None, clean: bool | None = None) -> Any:
        self.calls.append({"limit": limit, "clean": clean})
        yield from self._items


class _FakeActorClient:
    def __init__(self, run_result: dict[str, Any] | None) -> None:
        self._run_result = run_result
        self.calls: list[dict[str, Any]] = []

    def call(self, *, run_input: Any = None, timeout_secs: int | None = None) -> Any:
        self.calls.append({"run_input": run_input, "timeout_secs": timeout_secs})
        return self._run_result


class _FakeApifyClient:
    def __init__(self, *, run_result: dict[str, Any] | None, items: list[dict[str, Any]]) -> None:
        self.actor_ids: list[str] = []
        self.dataset_ids: list[str] = []
        self._actor_client = _FakeActorClient(run_result)
        self._dataset_client = _FakeDatasetClient(items)

    def actor(self, actor_id: str) -> _FakeActorClient:
        self.actor_ids.append(actor_id)
        return self._actor_client

    def dataset(self, dataset_id: str) -> _FakeDatasetClient:
        self.dataset_ids.append(dataset_id)
        return self._dataset_client


_SERP_PAGE = {
    "searchQuery": {"term": "q"},
    "organicResults": [
        {"title": "Post on X", "url": "https://x.com/a/status/1", "description": "hello"},
        {"title": "Dup", "url": "https://X.com/a/status/1", "description": "dup"},
        {"title": "FTP", "url": "ftp://example.com/file"},
        {"title": "Reddit", "link": "https://reddit.com/r/a/1", "snippet": "thread"},
    ],
}


class TestApifyGoogleSearch(unittest.TestCase):
    def test_search_builds_input_and_normalizes_hits(self) -> None:
        fake = _FakeApifyClient(
            run_result={"id": "run_1", "defaultDatasetId": "ds_1"},
            items=[_SERP_PAGE],
        )
        cfg = SearchConfig(results_per_query=5, timeout_secs=45, country_code="us")
        search = ApifyGoogleSearch("x", search_cfg=cfg, client=fake)  # type: ignore[arg-type]

        hits = search.search("  @jane big news  ")

        self.assertEqual([h.url for h in hits], ["https://x.com/a/status/1", "https://reddit.com/r/a/1"])
        self.assertEqual(hits[0].snippet, "hello")
        self.assertEqual(hits[1].snippet, "thread")
        self.assertEqual(fake.actor_ids, ["apify/google-search-scraper"])
        self.assertEqual(fake.dataset_ids, ["ds_1"])

        call = fake._actor_client.calls[0]
        self.assertEqual(call["timeout_secs"], 45)
        self.assertEqual(
            call["run_input"],
            {
                "queries": "@jane big news",
                "maxPagesPerQuery": 1,
                "resultsPerPage": 5,
                "saveHtml": False,
                "countryCode": "us",
            },
        )

    def test_results_are_capped(self) -> None:
        page = {
            "organicResults": [{"url": f"https://example.com/{i}"} for i in range(10)],
        }
        fake = _FakeApifyClient(run_result={"id": "r", "defaultDatasetId": "d"}, items=[page])
        search = ApifyGoogleSearch(
            "x", search_cfg=SearchConfig(results_per_query=3), client=fake  # type: ignore[arg-type]
        )
        self.assertEqual(len(search.search("q")), 3)

    def test_failed_run_raises_search_error(self) -> None:
        fake = _FakeApifyClient(run_result=None, items=[])
        search = ApifyGoogleSearch("x", search_cfg=SearchConfig(), client=fake)  # type: ignore[arg-type]
        with self.assertRaises(SearchQueryError):
            search.search("q")

    def test_missing_dataset_raises_search_error(self) -> None:
        fake = _FakeApifyClient(run_result={"id": "r"}, items=[])
        search = ApifyGoogleSearch("x", search_cfg=SearchConfig(), client=fake)  # type: ignore[arg-type]
        with self.assertRaises(SearchQueryError):
            search.search("q")

    def test_blank_query_is_rejected(self) -> None:
        fake = _FakeApifyClient(run_result=None, items=[])
        search = ApifyGoogleSearch("x", search_cfg=SearchConfig(), client=fake)  # type: ignore[arg-type]
        with self.assertRaises(SearchQueryError):
            search.search("   ")
        self.assertEqual(fake.actor_ids, [])


class TestSearchHitFromItem(unittest.TestCase):
    def test_requires_http_url(self) -> None:
        self.assertIsNone(search_hit_from_item({"title": "no url"}))
        self.assertIsNone(search_hit_from_item({"url": "javascript:void(0)"}))

    def test_blank_fields_become_none(self) -> None:
        hit = search_hit_from_item({"url": "https://a.example", "title": "  ", "description": ""})
        assert hit is not None
        self.assertIsNone(hit.title)
        self.assertIsNone(hit.snippet)


if __name__ == "__main__":
    unittest.main()
