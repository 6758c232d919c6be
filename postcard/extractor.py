from __future__ import annotations

from pydantic import ValidationError

from .errors import ExtractionParseError, ExtractionServiceError, LLMError, LLMOutputError
from .inference import StructuredInference
from .models import Extraction
from .run_log import NullRunLogger, RunLogger
from .schema import EXTRACTION_JSON_SCHEMA, EXTRACTION_SCHEMA_NAME, ExtractionPayload

EXTRACTION_INSTRUCTIONS = """\
Analyze this screenshot as a "postcard" captured from the web.

1. transcript: transcribe ALL legible text as interleaved Markdown, in reading order.
2. postmark: identify the metadata printed on the postcard:
   - platform: X, YouTube, Reddit, Instagram, or Other when unsure
   - username: the author handle as shown (e.g. "@username"), or null
   - timestamp_text: the timestamp exactly as displayed (e.g. "2h ago", "Oct 12, 2025"), or null
   - engagement: likes / retweets / views exactly as displayed (e.g. "1.2K"), or null
   - main_text: the primary content of the post
   - ui_anchors: key interface elements (buttons, logos, badges) with their position
     and a confidence between 0 and 1, or null

Never guess values that are not visible; use null instead.
Return a JSON object that matches the provided schema EXACTLY.
"""


def _validation_summary(err: ValidationError) -> str:
    parts: list[str] = []
    for item in err.errors():
        loc = ".".join(str(p) for p in item.get("loc", [])) or "<root>"
        parts.append(f"{loc}: {item.get('msg', 'invalid value')}")
    return "; ".join(parts)


class Extractor:
    """Reads the transcript and Postmark off a screenshot with one vision call."""

    def __init__(self, inference: StructuredInference, *, logger: RunLogger | None = None) -> None:
        self._inference = inference
        self._log = logger or NullRunLogger()

    def extract(self, image_bytes: bytes, mime_hint: str | None = None) -> Extraction:
        try:
            raw = self._inference.infer(
                EXTRACTION_INSTRUCTIONS,
                schema_name=EXTRACTION_SCHEMA_NAME,
                schema=EXTRACTION_JSON_SCHEMA,
                image=image_bytes,
                mime_type=mime_hint,
            )
        except LLMOutputError as e:
            raise ExtractionParseError(str(e)) from e
        except LLMError as e:
            raise ExtractionServiceError(str(e)) from e
        except Exception as e:
            raise ExtractionServiceError(f"{type(e).__name__}: {e}") from e

        try:
            payload = ExtractionPayload.model_validate(raw)
        except ValidationError as e:
            raise ExtractionParseError(_validation_summary(e)) from e

        postmark = payload.postmark
        self._log.info(
            "extraction_completed",
            platform=postmark.platform,
            username=postmark.username,
            timestamp_text=postmark.timestamp_text,
            transcript_chars=len(payload.transcript),
        )
        return Extraction(transcript=payload.transcript, postmark=postmark)
