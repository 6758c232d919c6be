from __future__ import annotations

from .browser import LivePage, PageLoader
from .errors import AuditNavigationError
from .models import AuditResult, weighted_total
from .run_log import NullRunLogger, RunLogger
from .schema import Postmark

TEMPORAL_MATCH = 1.0
TEMPORAL_UNCONFIRMED = 0.5
TEMPORAL_SKIPPED = 0.0
VISUAL_MATCH = 0.9
VISUAL_MISMATCH = 0.4


def temporal_check(postmark: Postmark, page: LivePage) -> tuple[float, str]:
    stamp = postmark.timestamp_text or ""
    if not stamp:
        return TEMPORAL_SKIPPED, "Temporal check skipped: no timestamp visible on the postcard."
    if stamp in page.visible_text:
        return TEMPORAL_MATCH, f"Temporal match: timestamp {stamp!r} found in live page content."
    # Live pages often reformat timestamps, so a miss is not a hard failure.
    return (
        TEMPORAL_UNCONFIRMED,
        f"Temporal warning: timestamp {stamp!r} not found verbatim in live page.",
    )


def visual_check(postmark: Postmark, page: LivePage) -> tuple[float, str]:
    platform = postmark.platform.casefold()
    if platform in page.visible_text.casefold():
        return VISUAL_MATCH, f"Visual consistency: live page carries {postmark.platform} platform markers."
    return (
        VISUAL_MISMATCH,
        f"Visual anomaly: no {postmark.platform} platform markers found on the live page.",
    )


class Auditor:
    """
    Scores how well a live page corroborates a postcard.

    origin (reachable), temporal (timestamp present) and visual (platform
    markers) sub-scores are combined with fixed weights; each step leaves an
    entry in the audit log.
    """

    def __init__(self, page_loader: PageLoader, *, logger: RunLogger | None = None) -> None:
        self._loader = page_loader
        self._log = logger or NullRunLogger()

    def audit(self, url: str, postmark: Postmark) -> AuditResult:
        audit_log: list[str] = [f"Starting audit for URL: {url}"]

        try:
            page = self._loader.load(url)
        except AuditNavigationError as e:
            audit_log.append(f"Audit failed: {e}")
            result = AuditResult(
                origin_score=0,
                temporal_score=0.0,
                visual_score=0.0,
                audit_log=tuple(audit_log),
            )
            self._log.warning("audit_unreachable", url=url, error=str(e))
            return result

        audit_log.append("URL verified: live page reachable.")
        if page.status is not None and page.status >= 400:
            audit_log.append(f"HTTP status warning: live page answered with status {page.status}.")

        if page.content_error is not None:
            audit_log.append(f"Content check failed: {page.content_error}")
            temporal_score, visual_score = TEMPORAL_SKIPPED, 0.0
        else:
            audit_log.append(f"Page title: {page.title}")

            temporal_score, entry = temporal_check(postmark, page)
            audit_log.append(entry)

            visual_score, entry = visual_check(postmark, page)
            audit_log.append(entry)

        total = weighted_total(1, temporal_score, visual_score)
        audit_log.append(
            f"Trust score: {total:.2f} "
            f"(origin=1, temporal={temporal_score:.2f}, visual={visual_score:.2f})"
        )
        result = AuditResult(
            origin_score=1,
            temporal_score=temporal_score,
            visual_score=visual_score,
            audit_log=tuple(audit_log),
        )

        self._log.info(
            "audit_completed",
            url=url,
            http_status=page.status,
            origin_score=result.origin_score,
            temporal_score=result.temporal_score,
            visual_score=result.visual_score,
            total_score=result.total_score,
        )
        return result
