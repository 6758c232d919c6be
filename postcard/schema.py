from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


PLATFORM = Literal["X", "YouTube", "Reddit", "Instagram", "Other"]
PLATFORMS: tuple[str, ...] = ("X", "YouTube", "Reddit", "Instagram", "Other")

EXTRACTION_SCHEMA_NAME = "postcard_extraction"
QUERIES_SCHEMA_NAME = "postcard_search_queries"
URL_DECISION_SCHEMA_NAME = "postcard_url_decision"


def _nullable(json_type: str) -> dict[str, Any]:
    return {"type": [json_type, "null"]}


# NOTE: Hand-authored to stay inside the JSON Schema subset accepted by strict
# Structured Outputs: every property is required, optional values are nullable.
ENGAGEMENT_JSON_SCHEMA: dict[str, Any] = {
    "type": ["object", "null"],
    "additionalProperties": False,
    "properties": {
        "likes": _nullable("string"),
        "retweets": _nullable("string"),
        "views": _nullable("string"),
    },
    "required": ["likes", "retweets", "views"],
}

UI_ANCHOR_JSON_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "element": {"type": "string"},
        "position": {"type": "string"},
        "confidence": {"type": "number"},
    },
    "required": ["element", "position", "confidence"],
}

POSTMARK_JSON_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "platform": {"type": "string", "enum": list(PLATFORMS)},
        "username": _nullable("string"),
        "timestamp_text": _nullable("string"),
        "engagement": ENGAGEMENT_JSON_SCHEMA,
        "main_text": {"type": "string"},
        "ui_anchors": {
            "type": ["array", "null"],
            "items": UI_ANCHOR_JSON_SCHEMA,
        },
    },
    "required": [
        "platform",
        "username",
        "timestamp_text",
        "engagement",
        "main_text",
        "ui_anchors",
    ],
}

EXTRACTION_JSON_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "transcript": {"type": "string"},
        "postmark": POSTMARK_JSON_SCHEMA,
    },
    "required": ["transcript", "postmark"],
}

QUERIES_JSON_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "queries": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["queries"],
}

URL_DECISION_JSON_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "url": _nullable("string"),
    },
    "required": ["url"],
}


class Engagement(BaseModel):
    """Displayed counters, kept verbatim since platforms abbreviate them ("1.2K")."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    likes: str | None = None
    retweets: str | None = None
    views: str | None = None


class UIAnchor(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    element: str
    position: str
    confidence: float = Field(ge=0.0, le=1.0)


class Postmark(BaseModel):
    """Structured metadata read off a postcard. Only platform and main_text are guaranteed."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    platform: PLATFORM = "Other"
    username: str | None = None
    timestamp_text: str | None = None
    engagement: Engagement | None = None
    main_text: str
    ui_anchors: tuple[UIAnchor, ...] | None = None


class ExtractionPayload(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    transcript: str
    postmark: Postmark


class QueryList(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    queries: list[str]


class UrlDecision(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    url: str | None = None
