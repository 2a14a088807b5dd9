"""Stealth browser options for Playwright.

Hides the most obvious automation fingerprints (``navigator.webdriver``,
the AutomationControlled blink feature, missing plugins/languages) and sends
a realistic user agent and Accept-Language. This is best effort against
basic bot filters only; vendors change their defenses and these settings
need periodic retuning.
"""

import logging
from typing import Any, Dict, List, Optional

from playwright.async_api import Page

from src.config import settings
from src.ingest.user_agent_pool import user_agent_pool

logger = logging.getLogger(__name__)


STEALTH_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--disable-infobars",
]

STEALTH_INIT_SCRIPTS = [
    # Hide webdriver property
    """
    Object.defineProperty(navigator, 'webdriver', {
        get: () => undefined
    });
    """,

    # Mock plugins
    """
    Object.defineProperty(navigator, 'plugins', {
        get: () => [1, 2, 3, 4, 5]
    });
    """,

    # Mock languages
    """
    Object.defineProperty(navigator, 'languages', {
        get: () => ['en-US', 'en']
    });
    """,

    # Chrome runtime
    """
    window.chrome = {
        runtime: {}
    };
    """,
]


class StealthBrowser:
    """Builds launch arguments, context options and page scripts for stealthier rendering."""

    def __init__(
        self,
        enabled: Optional[bool] = None,
        user_agent: Optional[str] = None,
        rotate_user_agent: Optional[bool] = None,
        accept_language: Optional[str] = None,
    ):
        self.enabled = settings.stealth_enabled if enabled is None else enabled
        self.user_agent = user_agent or settings.browser_user_agent
        self.rotate_user_agent = (
            settings.rotate_user_agent if rotate_user_agent is None else rotate_user_agent
        )
        self.accept_language = accept_language or settings.accept_language

    def launch_args(self) -> List[str]:
        """Chromium command line flags."""
        args = list(STEALTH_LAUNCH_ARGS) if self.enabled else ["--no-sandbox"]
        args.append(f"--window-size={settings.viewport_width},{settings.viewport_height}")
        return args

    def pick_user_agent(self) -> str:
        """User agent for a new browser context."""
        if self.rotate_user_agent:
            return user_agent_pool.get_random()
        return self.user_agent

    def get_stealth_context_options(self) -> Dict[str, Any]:
        """
        Get Playwright context options with stealth settings.

        Returns:
            Dict of keyword arguments for ``browser.new_context``
        """
        return {
            "user_agent": self.pick_user_agent(),
            "viewport": {
                "width": settings.viewport_width,
                "height": settings.viewport_height,
            },
            "locale": self.accept_language.split(",")[0],
            "extra_http_headers": {
                "Accept-Language": self.accept_language,
            },
            "ignore_https_errors": True,
        }

    async def setup_stealth_page(self, page: Page) -> None:
        """
        Inject fingerprint masking scripts into a page before navigation.

        Failures are logged and ignored; a page without the scripts still renders.

        Args:
            page: Playwright page object
        """
        if not self.enabled:
            return

        for script in STEALTH_INIT_SCRIPTS:
            try:
                await page.add_init_script(script)
            except Exception as e:
                logger.debug(f"Error injecting stealth script: {e}")


# Global stealth browser instance
stealth_browser = StealthBrowser()
