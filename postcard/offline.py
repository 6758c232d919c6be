from __future__ import annotations

import io
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from PIL import Image, ImageDraw

from .auditor import Auditor
from .browser import LivePage
from .errors import AuditNavigationError, LLMError, SearchQueryError
from .extractor import Extractor
from .models import SearchHit
from .navigator import Navigator
from .pipeline import PostcardPipeline
from .preprocess import PreprocessOptions
from .run_log import RunLogger
from .schema import EXTRACTION_SCHEMA_NAME, QUERIES_SCHEMA_NAME, URL_DECISION_SCHEMA_NAME

OFFLINE_URL = "https://x.com/postcard_demo/status/1"

_OFFLINE_EXTRACTION: dict[str, Any] = {
    "transcript": (
        "**Postcard Demo** @postcard_demo · 2h ago\n\n"
        "Screenshots travel faster than sources. Verify before you share.\n\n"
        "12 Reposts · 1.2K Likes · 40K Views"
    ),
    "postmark": {
        "platform": "X",
        "username": "@postcard_demo",
        "timestamp_text": "2h ago",
        "engagement": {"likes": "1.2K", "retweets": "12", "views": "40K"},
        "main_text": "Screenshots travel faster than sources. Verify before you share.",
        "ui_anchors": [
            {"element": "X logo", "position": "top center", "confidence": 0.8},
        ],
    },
}


@dataclass
class OfflineInference:
    """
    Schema-aware, network-free stand-in for the OpenAI client.

    Answers by schema name; `responses` entries override the canned payloads
    and an Exception value is raised instead of returned.
    """

    responses: Mapping[str, Any] = field(default_factory=dict)
    calls: list[dict[str, Any]] = field(default_factory=list)

    def infer(
        self,
        prompt: str,
        *,
        schema_name: str,
        schema: Mapping[str, Any],
        image: bytes | None = None,
        mime_type: str | None = None,
    ) -> dict[str, Any]:
        self.calls.append(
            {"prompt": prompt, "schema_name": schema_name, "image": image, "mime_type": mime_type}
        )
        if schema_name in self.responses:
            value = self.responses[schema_name]
            if isinstance(value, BaseException):
                raise value
            return value

        if schema_name == EXTRACTION_SCHEMA_NAME:
            return dict(_OFFLINE_EXTRACTION)
        if schema_name == QUERIES_SCHEMA_NAME:
            return {
                "queries": [
                    '"Screenshots travel faster than sources" site:x.com',
                    "@postcard_demo verify before you share",
                    '"postcard_demo" 2h ago',
                ]
            }
        if schema_name == URL_DECISION_SCHEMA_NAME:
            return {"url": OFFLINE_URL}
        raise LLMError(f"offline inference has no answer for schema {schema_name!r}")


@dataclass
class OfflineWebSearch:
    """Returns one hit per query, or raises for queries listed in `failing`."""

    failing: Sequence[str] = ()
    queries: list[str] = field(default_factory=list)

    def search(self, query: str) -> list[SearchHit]:
        self.queries.append(query)
        if query in self.failing:
            raise SearchQueryError(f"offline search refused {query!r}")
        return [SearchHit(url=OFFLINE_URL, title="Postcard Demo on X", snippet=query)]


@dataclass
class OfflinePageLoader:
    """Serves fixed pages by URL; unknown URLs fail like an unreachable host."""

    pages: Mapping[str, LivePage] = field(
        default_factory=lambda: {
            OFFLINE_URL: LivePage(
                url=OFFLINE_URL,
                title="Postcard Demo on X",
                visible_text=(
                    "Postcard Demo @postcard_demo 2h ago "
                    "Screenshots travel faster than sources. Verify before you share. "
                    "Sign up for X today"
                ),
            )
        }
    )
    loaded: list[str] = field(default_factory=list)

    def load(self, url: str) -> LivePage:
        self.loaded.append(url)
        page = self.pages.get(url)
        if page is None:
            raise AuditNavigationError(f"net::ERR_NAME_NOT_RESOLVED at {url}")
        return page


def sample_postcard_png(text: str = "@postcard_demo - 2h ago") -> bytes:
    """A small synthetic screenshot, enough to exercise decoding and preprocessing."""
    img = Image.new("RGB", (320, 120), color=(245, 248, 250))
    draw = ImageDraw.Draw(img)
    draw.rectangle((8, 8, 312, 112), outline=(29, 155, 240), width=2)
    draw.text((20, 24), text, fill=(15, 20, 25))
    draw.text((20, 60), "Verify before you share.", fill=(15, 20, 25))
    out = io.BytesIO()
    img.save(out, format="PNG")
    return out.getvalue()


def build_offline_pipeline(
    *,
    preprocess_options: PreprocessOptions | None = None,
    logger: RunLogger | None = None,
) -> PostcardPipeline:
    inference = OfflineInference()
    return PostcardPipeline(
        extractor=Extractor(inference, logger=logger),
        navigator=Navigator(inference, OfflineWebSearch(), logger=logger),
        auditor=Auditor(OfflinePageLoader(), logger=logger),
        preprocess_options=preprocess_options,
        logger=logger,
    )
