from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Callable, Protocol

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from .config_schema import AuditorConfig
from .errors import AuditNavigationError
from .run_log import NullRunLogger, RunLogger

_LAUNCH_ARGS = [
    "--disable-gpu",
    "--disable-dev-shm-usage",
    "--no-sandbox",
    "--disable-blink-features=AutomationControlled",
]


@dataclass(frozen=True)
class LivePage:
    """
    What the auditor sees of a loaded URL.

    status is the main response HTTP status when known. content_error is set
    when navigation succeeded but the title or text could not be read.
    """

    url: str
    title: str
    visible_text: str
    status: int | None = None
    content_error: str | None = None


class PageLoader(Protocol):
    def load(self, url: str) -> LivePage: ...


class PlaywrightPageLoader:
    """
    Renders a URL in headless Chromium and returns its title and visible text.

    Every load owns a fresh browser, context and page, all closed before
    returning, including when navigation fails.
    """

    def __init__(
        self,
        *,
        auditor_cfg: AuditorConfig | None = None,
        playwright_factory: Callable[[], Any] | None = None,
        logger: RunLogger | None = None,
    ) -> None:
        self._cfg = auditor_cfg or AuditorConfig()
        self._factory = playwright_factory or sync_playwright
        self._log = logger or NullRunLogger()

    def _context_options(self) -> dict[str, Any]:
        opts: dict[str, Any] = {"extra_http_headers": {"Accept-Language": "en-US,en;q=0.9"}}
        if self._cfg.user_agent:
            opts["user_agent"] = self._cfg.user_agent
        return opts

    def _read_content(self, page: Any, url: str) -> LivePage:
        # Runs after goto resolved, so a failure here leaves the URL reachable.
        try:
            title = page.title() or ""
            text = page.inner_text("body") or ""
        except PlaywrightError as e:
            self._log.warning("page_content_failed", url=url, error=str(e))
            return LivePage(url=url, title="", visible_text="", content_error=str(e))
        return LivePage(url=url, title=title, visible_text=text)

    def load(self, url: str) -> LivePage:
        try:
            with self._factory() as pw:
                browser = pw.chromium.launch(headless=self._cfg.headless, args=_LAUNCH_ARGS)
                try:
                    context = browser.new_context(**self._context_options())
                    try:
                        page = context.new_page()
                        response = page.goto(
                            url,
                            wait_until=self._cfg.wait_until,
                            timeout=self._cfg.navigation_timeout_ms,
                        )
                        live = self._read_content(page, url)
                    finally:
                        context.close()
                finally:
                    browser.close()
        except PlaywrightError as e:
            self._log.warning("page_load_failed", url=url, error=str(e))
            raise AuditNavigationError(f"navigation to {url} failed: {e}") from e

        status = getattr(response, "status", None)
        live = replace(live, status=status if isinstance(status, int) else None)
        self._log.info(
            "page_loaded",
            url=url,
            status=live.status,
            title=live.title,
            text_chars=len(live.visible_text),
        )
        return live
