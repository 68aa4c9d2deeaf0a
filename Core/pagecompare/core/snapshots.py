from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod

from selenium.common.exceptions import WebDriverException

from pagecompare.core.browser import BrowserSession
from pagecompare.core.exceptions import AcquisitionError
from pagecompare.core.metadata import PageRequest, PageSnapshot, ScreenshotCapture, ScreenshotPair
from pagecompare.logging.artifacts import ArtifactManager
from pagecompare.utils.dom_extract import extract_page_snapshot

logger = logging.getLogger(__name__)


class SnapshotProvider(ABC):
    """Acquires a rendered page and extracts its comparison snapshot."""

    @abstractmethod
    async def get_snapshot(self, request: PageRequest) -> PageSnapshot:
        raise NotImplementedError


class ScreenshotProvider(ABC):
    """Captures both pages of a comparison as image files."""

    @abstractmethod
    async def capture(self, request_a: PageRequest, request_b: PageRequest) -> ScreenshotPair:
        raise NotImplementedError


class SeleniumSnapshotProvider(SnapshotProvider):
    def __init__(self, browser_session: BrowserSession) -> None:
        self.browser_session = browser_session

    async def get_snapshot(self, request: PageRequest) -> PageSnapshot:
        return await asyncio.to_thread(self._get_snapshot, request)

    def _get_snapshot(self, request: PageRequest) -> PageSnapshot:
        try:
            driver = self.browser_session.start(request.browser)
        except WebDriverException as exc:
            raise AcquisitionError(f"Could not start {request.browser}: {exc.msg or exc}") from exc
        try:
            self.browser_session.open_page(driver, request.url, request.environment)
            snapshot = extract_page_snapshot(driver, request.root_selectors, request.ignore_selectors)
        except WebDriverException as exc:
            raise AcquisitionError(f"Could not capture {request.url}: {exc.msg or exc}") from exc
        finally:
            driver.quit()
        logger.debug("Captured %s using root selector %s", request.url, snapshot.metadata.root_selector)
        return snapshot


class SeleniumScreenshotProvider(ScreenshotProvider):
    def __init__(self, browser_session: BrowserSession, artifact_manager: ArtifactManager) -> None:
        self.browser_session = browser_session
        self.artifact_manager = artifact_manager

    async def capture(self, request_a: PageRequest, request_b: PageRequest) -> ScreenshotPair:
        page1, page2 = await asyncio.gather(
            asyncio.to_thread(self._capture_page, request_a, "_page1"),
            asyncio.to_thread(self._capture_page, request_b, "_page2"),
        )
        return ScreenshotPair(page1=page1, page2=page2)

    def _capture_page(self, request: PageRequest, suffix: str) -> ScreenshotCapture:
        try:
            driver = self.browser_session.start(request.browser)
        except WebDriverException as exc:
            raise AcquisitionError(f"Could not start {request.browser}: {exc.msg or exc}") from exc
        try:
            self.browser_session.open_page(driver, request.url, request.environment)
            path = self.artifact_manager.screenshot_path(request.url, request.browser, suffix)
            if hasattr(driver, "save_full_page_screenshot"):
                saved = driver.save_full_page_screenshot(str(path))
            else:
                saved = driver.save_screenshot(str(path))
            if not saved:
                return ScreenshotCapture(success=False, url=request.url, error="WebDriver did not write the screenshot")
            logger.info("Screenshot saved: %s", path)
            return ScreenshotCapture(success=True, url=request.url, path=str(path))
        except (AcquisitionError, OSError) as exc:
            logger.warning("Screenshot failed for %s: %s", request.url, exc)
            return ScreenshotCapture(success=False, url=request.url, error=str(exc))
        except WebDriverException as exc:
            logger.warning("Screenshot failed for %s: %s", request.url, exc.msg or exc)
            return ScreenshotCapture(success=False, url=request.url, error=str(exc.msg or exc))
        finally:
            driver.quit()
