from __future__ import annotations

from typing import Any, Iterable, Mapping, Protocol

from apify_client import ApifyClient

from .config_schema import SearchConfig
from .errors import SearchQueryError
from .models import SearchHit
from .retry import OnRetryFn, RetryConfig, SleepFn, apify_retry_policy, call_with_retries

_DEFAULT_APIFY_RETRY = RetryConfig(
    max_attempts=4,
    base_delay_seconds=0.5,
    max_delay_seconds=20.0,
    jitter_ratio=0.0,
    retry_after_cap_seconds=0.0,
)


class WebSearch(Protocol):
    def search(self, query: str) -> list[SearchHit]: ...


def _coerce_str(value: Any) -> str | None:
    if isinstance(value, str):
        s = value.strip()
        return s if s else None
    return None


def search_hit_from_item(item: Mapping[str, Any]) -> SearchHit | None:
    """
    Best-effort normalization of one organic result; tolerates the field
    variations seen across Google SERP scrapers. Returns None without a URL.
    """
    url = _coerce_str(item.get("url")) or _coerce_str(item.get("link"))
    if not url or not url.lower().startswith(("http://", "https://")):
        return None

    return SearchHit(
        url=url,
        title=_coerce_str(item.get("title")),
        snippet=(
            _coerce_str(item.get("description"))
            or _coerce_str(item.get("snippet"))
            or _coerce_str(item.get("text"))
        ),
    )


def search_hits_from_dataset(items: Iterable[Mapping[str, Any]], *, limit: int) -> list[SearchHit]:
    hits: list[SearchHit] = []
    seen: set[str] = set()

    for page in items:
        organic = page.get("organicResults")
        if not isinstance(organic, list):
            continue
        for raw in organic:
            if not isinstance(raw, Mapping):
                continue
            hit = search_hit_from_item(raw)
            if hit is None:
                continue
            key = hit.url.casefold()
            if key in seen:
                continue
            seen.add(key)
            hits.append(hit)
            if len(hits) >= limit:
                return hits

    return hits


class ApifyGoogleSearch:
    """
    Web search backed by Apify's maintained Google Search Results Scraper Actor.

    One Actor run per query; organic results come back in rank order.
    """

    def __init__(
        self,
        token: str,
        *,
        search_cfg: SearchConfig,
        client: ApifyClient | None = None,
        retry: RetryConfig | None = None,
        on_retry: OnRetryFn | None = None,
        sleep_fn: SleepFn | None = None,
    ) -> None:
        self._cfg = search_cfg
        self._retry = retry or _DEFAULT_APIFY_RETRY
        self._on_retry = on_retry
        self._sleep_fn = sleep_fn
        # Client-level retries are off so our policy applies uniformly.
        self._client = client if client is not None else ApifyClient(token=token, max_retries=0)

    def _run_input(self, query: str) -> dict[str, Any]:
        run_input: dict[str, Any] = {
            "queries": query,
            "maxPagesPerQuery": 1,
            "resultsPerPage": self._cfg.results_per_query,
            "saveHtml": False,
        }
        if self._cfg.country_code:
            run_input["countryCode"] = self._cfg.country_code
        return run_input

    def search(self, query: str) -> list[SearchHit]:
        q = (query or "").strip()
        if not q:
            raise SearchQueryError("search query must be non-empty")

        actor = self._cfg.actor
        run_input = self._run_input(q)

        def _do_call() -> Any:
            return self._client.actor(actor).call(
                run_input=run_input,
                timeout_secs=self._cfg.timeout_secs,
            )

        try:
            run = call_with_retries(
                _do_call,
                cfg=self._retry,
                is_retryable=apify_retry_policy,
                operation=f"apify.actor.call:{actor}",
                on_retry=self._on_retry,
                sleep_fn=self._sleep_fn,
                context=q,
            )
        except Exception as e:
            raise SearchQueryError(f"Apify Actor call failed ({actor}) for {q!r}: {e}") from e

        if run is None:
            raise SearchQueryError(f"Apify Actor run failed ({actor}) for {q!r}")

        dataset_id = (run.get("defaultDatasetId") or "").strip()
        if not dataset_id:
            raise SearchQueryError(f"Apify Actor run response missing default dataset id: {run}")

        def _do_fetch() -> list[dict[str, Any]]:
            return list(self._client.dataset(dataset_id).iterate_items(clean=True))

        try:
            items = call_with_retries(
                _do_fetch,
                cfg=self._retry,
                is_retryable=apify_retry_policy,
                operation=f"apify.dataset.iterate_items:{dataset_id}",
                on_retry=self._on_retry,
                sleep_fn=self._sleep_fn,
                context=q,
            )
        except Exception as e:
            raise SearchQueryError(f"Failed to read search results ({dataset_id}): {e}") from e

        return search_hits_from_dataset(items, limit=self._cfg.results_per_query)
