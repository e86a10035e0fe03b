# Headless browser session against a line page.
#
# The stop selector is rendered client-side and only shows up once the cookie
# banner has been dealt with and the page reloaded, so plain HTTP is not enough.

import logging
import re
from typing import List, Optional

from bs4 import BeautifulSoup
from playwright.sync_api import Page, sync_playwright
from playwright.sync_api import Error as PlaywrightError

from .errors import UpstreamFormatError
from .lines import split_display_text
from .models import Stop, StopPage

log = logging.getLogger("dbus_proxy.browser")

COOKIE_ACCEPT_SELECTOR = ".cmplz-btn.cmplz-accept"
STOP_SELECT_ID = "select_paradas_1"
SECURITY_PATTERN = re.compile(r"security:\s*'(\w+)'")

BROWSER_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]


def find_security_token(soup: BeautifulSoup) -> Optional[str]:
    for script in soup.find_all("script"):
        text = script.string or script.get_text()
        if "security" not in text:
            continue
        match = SECURITY_PATTERN.search(text)
        if match:
            return match.group(1)
    return None


def parse_stop_page(html: str) -> StopPage:
    soup = BeautifulSoup(html, "html.parser")
    select = soup.find("select", id=STOP_SELECT_ID)
    if select is None:
        raise UpstreamFormatError(f"Stop selector #{STOP_SELECT_ID} not found in line page")

    stops: List[Stop] = []
    for option in select.find_all("option"):
        parts = split_display_text(option.get_text())
        if parts is None:
            continue
        code, name = parts
        stops.append(Stop(code=code, name=name, internal_id=str(option.get("value", ""))))

    return StopPage(stops=stops, token=find_security_token(soup))


class StopPageScraper:
    def __init__(self, consent_timeout_ms: int = 5000, headless: bool = True) -> None:
        self.consent_timeout_ms = consent_timeout_ms
        self.headless = headless

    def accept_cookies(self, page: Page) -> None:
        try:
            page.wait_for_selector(COOKIE_ACCEPT_SELECTOR, timeout=self.consent_timeout_ms)
            page.click(COOKIE_ACCEPT_SELECTOR)
        except PlaywrightError as exc:
            # No banner usually means consent was already given.
            log.warning("Unable to accept cookies: %s", exc)

    def render(self, url: str) -> str:
        with sync_playwright() as p:
            browser = p.chromium.launch(headless=self.headless, args=BROWSER_ARGS)
            try:
                page = browser.new_page()
                page.set_default_timeout(0)
                page.set_default_navigation_timeout(0)
                page.goto(url)
                self.accept_cookies(page)
                page.reload()
                page.wait_for_selector(f"#{STOP_SELECT_ID}", state="attached")
                return page.content()
            finally:
                browser.close()

    def fetch(self, url: str) -> StopPage:
        log.info("Scraping line page %s", url)
        return parse_stop_page(self.render(url))
