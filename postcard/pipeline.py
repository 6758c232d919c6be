from __future__ import annotations

from typing import Callable

from .auditor import Auditor
from .browser import PlaywrightPageLoader
from .config import RuntimeSecrets, config_sha256
from .config_schema import AppConfig
from .extractor import Extractor
from .inference import OpenAIStructuredInference
from .models import AuditResult, Extraction, PostcardReport, TriangulationResult
from .navigator import Navigator
from .preprocess import PreprocessOptions, preprocess, sniff_mime
from .run_log import NullRunLogger, RunLogger, utc_now_iso
from .schema import Postmark
from .search import ApifyGoogleSearch

NO_TARGET_URL = "Skipping audit: No target URL identified."

ClockFn = Callable[[], str]


class PostcardPipeline:
    """
    preprocess -> extract -> triangulate -> audit, strictly in order.

    Preprocess and extract failures abort the run. Triangulation and audit
    failures only degrade their part of the report.
    """

    def __init__(
        self,
        *,
        extractor: Extractor,
        navigator: Navigator,
        auditor: Auditor,
        preprocess_options: PreprocessOptions | None = None,
        logger: RunLogger | None = None,
        clock: ClockFn | None = None,
    ) -> None:
        self._extractor = extractor
        self._navigator = navigator
        self._auditor = auditor
        self._options = preprocess_options or PreprocessOptions()
        self._log = logger or NullRunLogger()
        self._clock = clock or utc_now_iso

    def process(self, image_bytes: bytes, mime_hint: str | None = None) -> PostcardReport:
        try:
            normalized = preprocess(image_bytes, self._options)
            mime = mime_hint if self._options.is_identity and mime_hint else sniff_mime(normalized)
            self._log.info("preprocess_completed", input_bytes=len(image_bytes), mime=mime)

            extraction = self._extractor.extract(normalized, mime)
        except Exception as e:
            self._log.exception("process_failed", exc=e)
            raise

        triangulation = self._triangulate(extraction.postmark, extraction.transcript)

        if triangulation.candidate_url is None:
            audit = AuditResult.skipped(NO_TARGET_URL)
            self._log.info("audit_skipped", reason=NO_TARGET_URL)
        else:
            audit = self._audit(triangulation.candidate_url, extraction)

        return PostcardReport(
            transcript=extraction.transcript,
            postmark=extraction.postmark,
            triangulation=triangulation,
            audit=audit,
            timestamp=self._clock(),
        )

    def _triangulate(self, postmark: Postmark, transcript: str) -> TriangulationResult:
        try:
            return self._navigator.triangulate(postmark, transcript)
        except Exception as e:
            self._log.exception("triangulation_failed", exc=e)
            return TriangulationResult.empty()

    def _audit(self, url: str, extraction: Extraction) -> AuditResult:
        try:
            return self._auditor.audit(url, extraction.postmark)
        except Exception as e:
            self._log.exception("audit_failed", exc=e, url=url)
            return AuditResult(
                origin_score=0,
                temporal_score=0.0,
                visual_score=0.0,
                audit_log=(f"Starting audit for URL: {url}", f"Audit failed: {e}"),
            )


def build_pipeline(
    config: AppConfig,
    secrets: RuntimeSecrets,
    *,
    logger: RunLogger | None = None,
) -> PostcardPipeline:
    """Wire the production OpenAI, Apify and Playwright capabilities from config."""
    log = logger or NullRunLogger()
    log.info("pipeline_configured", config_sha256=config_sha256(config))

    inference = OpenAIStructuredInference(
        secrets.openai_api_key,
        openai_cfg=config.openai,
        on_retry=log.retry_event,
    )
    search = ApifyGoogleSearch(
        secrets.apify_token,
        search_cfg=config.search,
        on_retry=log.retry_event,
    )
    loader = PlaywrightPageLoader(auditor_cfg=config.auditor, logger=log)

    return PostcardPipeline(
        extractor=Extractor(inference, logger=log),
        navigator=Navigator(inference, search, config=config.navigator, logger=log),
        auditor=Auditor(loader, logger=log),
        preprocess_options=PreprocessOptions.from_config(config.preprocess),
        logger=log,
    )
