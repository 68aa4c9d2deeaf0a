from __future__ import annotations

import logging
import time

from selenium import webdriver
from selenium.common.exceptions import TimeoutException
from selenium.webdriver import ChromeOptions, FirefoxOptions
from selenium.webdriver.support.ui import WebDriverWait

from pagecompare.config.schema import CompareOptions, EnvironmentConfig
from pagecompare.core.exceptions import AcquisitionError
from pagecompare.utils.urls import parse_cookies

logger = logging.getLogger(__name__)


class BrowserSession:
    """Creates browser instances using Selenium Manager."""

    def __init__(self, options: CompareOptions) -> None:
        self.options = options

    def start(self, browser_name: str):
        normalized = browser_name.lower()
        width = self.options.viewport.width
        height = self.options.viewport.height
        if normalized == "chrome":
            options = ChromeOptions()
            if self.options.headless:
                options.add_argument("--headless=new")
            options.add_argument(f"--window-size={width},{height}")
            options.add_argument("--no-sandbox")
            options.add_argument("--disable-dev-shm-usage")
            driver = webdriver.Chrome(options=options)
        elif normalized == "firefox":
            options = FirefoxOptions()
            if self.options.headless:
                options.add_argument("-headless")
            driver = webdriver.Firefox(options=options)
            driver.set_window_size(width, height)
        else:
            raise ValueError(f"Unsupported browser: {browser_name}")
        driver.set_page_load_timeout(self.options.timeout_seconds)
        driver.implicitly_wait(0)
        return driver

    def open_page(self, driver, url: str, environment: EnvironmentConfig) -> None:
        """Navigates with the environment's headers and cookies applied, then waits for load."""

        if environment.headers:
            self._apply_headers(driver, environment.headers)
        driver.get(url)
        cookies = parse_cookies(environment.cookie, url)
        if cookies:
            for cookie in cookies:
                driver.add_cookie(cookie)
            driver.get(url)
        self._wait_for_document(driver, url)
        if self.options.settle_seconds > 0:
            time.sleep(self.options.settle_seconds)

    def _wait_for_document(self, driver, url: str) -> None:
        timeout = self.options.timeout_seconds
        try:
            WebDriverWait(driver, timeout, poll_frequency=0.2).until(
                lambda current: current.execute_script("return document.readyState;") == "complete"
            )
        except TimeoutException as exc:
            raise AcquisitionError(f"Timed out after {timeout}s waiting for {url} to load") from exc

    @staticmethod
    def _apply_headers(driver, headers: dict[str, str]) -> None:
        if not hasattr(driver, "execute_cdp_cmd"):
            logger.warning("Extra headers are only supported on Chromium drivers; skipping %s", sorted(headers))
            return
        driver.execute_cdp_cmd("Network.enable", {})
        driver.execute_cdp_cmd("Network.setExtraHTTPHeaders", {"headers": dict(headers)})
