from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor
from typing import Sequence
from urllib.parse import urlsplit

from pydantic import ValidationError

from .config_schema import NavigatorConfig
from .errors import LLMError, QueryGenerationError
from .inference import StructuredInference
from .models import SearchHit, TriangulationResult
from .run_log import NullRunLogger, RunLogger
from .schema import (
    QUERIES_JSON_SCHEMA,
    QUERIES_SCHEMA_NAME,
    URL_DECISION_JSON_SCHEMA,
    URL_DECISION_SCHEMA_NAME,
    Postmark,
    QueryList,
    UrlDecision,
)
from .search import WebSearch

PLATFORM_SITE_HINTS: dict[str, str] = {
    "X": "site:x.com",
    "YouTube": "site:youtube.com",
    "Reddit": "site:reddit.com",
    "Instagram": "site:instagram.com",
}


def _engagement_json(postmark: Postmark) -> str:
    if postmark.engagement is None:
        return "null"
    return json.dumps(postmark.engagement.model_dump(mode="json"), ensure_ascii=False)


def build_query_prompt(postmark: Postmark, transcript: str, *, count: int, excerpt_chars: int) -> str:
    lines = [
        "You are the Navigator for Postcard, a digital forensics system.",
        "Your goal is to triangulate the exact source URL of a screenshot.",
        "",
        "Postmark metadata:",
        f"- Platform: {postmark.platform}",
        f"- Username: {postmark.username}",
        f"- Timestamp: {postmark.timestamp_text}",
        f"- Engagement: {_engagement_json(postmark)}",
        "",
        "Content preview:",
        transcript[:excerpt_chars],
        "",
        f"Generate {count} high-precision web search queries to find the original post or page.",
    ]
    hint = PLATFORM_SITE_HINTS.get(postmark.platform)
    if hint:
        lines.append(f"The platform is {postmark.platform}: use '{hint}' in at least one query.")
    lines.append("Focus on unique phrases, usernames, and timestamp alignment.")
    return "\n".join(lines)


def build_resolve_prompt(
    postmark: Postmark,
    transcript: str,
    results: Sequence[Sequence[SearchHit]],
    *,
    excerpt_chars: int,
) -> str:
    flat = [hit.to_dict() for hits in results for hit in hits]
    return "\n".join(
        [
            "Analyze these search results and identify the most likely original URL for a screenshot.",
            "",
            "Target metadata:",
            f"- Platform: {postmark.platform}",
            f"- Username: {postmark.username}",
            f"- Content snippet: {transcript[:excerpt_chars]}",
            "",
            "Search results:",
            json.dumps(flat, ensure_ascii=False),
            "",
            "If a high-confidence match is found, return its URL. If not, return null.",
        ]
    )


def clean_queries(raw: Sequence[str], *, limit: int) -> list[str]:
    out: list[str] = []
    seen: set[str] = set()
    for item in raw:
        q = " ".join((item or "").split())
        if not q:
            continue
        key = q.casefold()
        if key in seen:
            continue
        seen.add(key)
        out.append(q)
        if len(out) >= limit:
            break
    return out


def _is_absolute_http_url(value: str) -> bool:
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)


class Navigator:
    """
    Triangulates a postcard's live source URL.

    Single pass: GenerateQueries -> ExecuteSearch -> ResolveUrl, one external
    request per state and no loop back to refine queries.
    """

    def __init__(
        self,
        inference: StructuredInference,
        search: WebSearch,
        *,
        config: NavigatorConfig | None = None,
        logger: RunLogger | None = None,
    ) -> None:
        self._inference = inference
        self._search = search
        self._cfg = config or NavigatorConfig()
        self._log = logger or NullRunLogger()

    def triangulate(self, postmark: Postmark, transcript: str) -> TriangulationResult:
        try:
            queries = self.generate_queries(postmark, transcript)
        except QueryGenerationError as e:
            self._log.warning("query_generation_failed", error=str(e))
            return TriangulationResult.empty()

        results = self.execute_search(queries)
        url = self.resolve_url(postmark, transcript, results)
        return TriangulationResult(
            candidate_url=url,
            queries=tuple(queries),
            search_hits=tuple(tuple(hits) for hits in results),
        )

    def generate_queries(self, postmark: Postmark, transcript: str) -> list[str]:
        prompt = build_query_prompt(
            postmark,
            transcript,
            count=self._cfg.query_count,
            excerpt_chars=self._cfg.query_excerpt_chars,
        )
        try:
            raw = self._inference.infer(
                prompt,
                schema_name=QUERIES_SCHEMA_NAME,
                schema=QUERIES_JSON_SCHEMA,
            )
            parsed = QueryList.model_validate(raw)
        except LLMError as e:
            raise QueryGenerationError(f"query generation call failed: {e}") from e
        except ValidationError as e:
            raise QueryGenerationError(f"query generation returned an invalid payload: {e}") from e

        queries = clean_queries(parsed.queries, limit=self._cfg.query_count)
        if not queries:
            raise QueryGenerationError("query generation returned no usable queries")

        self._log.info("queries_generated", queries=queries)
        return queries

    def _search_one(self, index: int, query: str) -> list[SearchHit]:
        try:
            hits = list(self._search.search(query))
        except Exception as e:
            # A failed query only empties its own slot.
            self._log.exception("search_query_failed", exc=e, query=query, index=index)
            return []
        self._log.info("search_query_completed", query=query, index=index, hits=len(hits))
        return hits

    def execute_search(self, queries: Sequence[str]) -> list[list[SearchHit]]:
        """Run every query concurrently and return results in query order."""
        if not queries:
            return []
        with ThreadPoolExecutor(max_workers=len(queries), thread_name_prefix="postcard-search") as pool:
            futures = [pool.submit(self._search_one, i, q) for i, q in enumerate(queries)]
            return [f.result() for f in futures]

    def resolve_url(
        self,
        postmark: Postmark,
        transcript: str,
        results: Sequence[Sequence[SearchHit]],
    ) -> str | None:
        prompt = build_resolve_prompt(
            postmark,
            transcript,
            results,
            excerpt_chars=self._cfg.resolve_excerpt_chars,
        )
        try:
            raw = self._inference.infer(
                prompt,
                schema_name=URL_DECISION_SCHEMA_NAME,
                schema=URL_DECISION_JSON_SCHEMA,
            )
            decision = UrlDecision.model_validate(raw)
        except (LLMError, ValidationError) as e:
            self._log.warning("url_resolution_failed", error=str(e))
            return None
        except Exception as e:
            # Queries already issued stay in the result.
            self._log.exception("url_resolution_failed", exc=e)
            return None

        url = (decision.url or "").strip()
        if not url:
            self._log.info("url_unresolved")
            return None
        if not _is_absolute_http_url(url):
            self._log.warning("url_rejected", candidate=url)
            return None

        self._log.info("url_resolved", url=url)
        return url
