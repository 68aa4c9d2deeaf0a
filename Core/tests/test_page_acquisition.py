from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
from selenium.common.exceptions import TimeoutException, WebDriverException

from pagecompare.config.schema import EnvironmentConfig
from pagecompare.core.browser import BrowserSession
from pagecompare.core.exceptions import AcquisitionError
from pagecompare.core.metadata import PageRequest
from pagecompare.core.snapshots import SeleniumScreenshotProvider, SeleniumSnapshotProvider
from pagecompare.utils.dom_extract import extract_page_snapshot
from tests.helpers import managed_driver

FIXTURE_PAGE = """<!doctype html>
<html>
  <head><title>Fixture Store</title></head>
  <body>
    <div class="ad">Buy now</div>
    <main id="app" class="layout container">
      <nav class="top-nav" role="navigation"><a href="#">Home</a> <a href="#">About</a></nav>
      <section class="hero"><h1>Welcome to the store</h1><p>Fast shipping</p></section>
      <span class="timestamp">2024-01-01 12:00</span>
    </main>
  </body>
</html>
"""


class FakeDriver:
    """Records the WebDriver calls made while opening a page."""

    def __init__(self, ready: bool = True, fail_on_get: bool = False, cdp: bool = True) -> None:
        self.ready = ready
        self.fail_on_get = fail_on_get
        self.calls: list[tuple] = []
        self.quit_called = False
        if cdp:
            self.execute_cdp_cmd = lambda command, params: self.calls.append(("cdp", command, params))

    def get(self, url):
        if self.fail_on_get:
            raise TimeoutException("page load timed out")
        self.calls.append(("get", url))

    def add_cookie(self, cookie):
        self.calls.append(("cookie", cookie["name"], cookie["value"], cookie["domain"]))

    def execute_script(self, script, *args):
        return "complete" if self.ready else "loading"

    def save_screenshot(self, path):
        Path(path).write_bytes(b"png")
        return True

    def quit(self):
        self.quit_called = True


class FakeSession(BrowserSession):
    def __init__(self, options, driver=None, start_error=None) -> None:
        super().__init__(options)
        self.driver = driver
        self.start_error = start_error

    def start(self, browser_name):
        if self.start_error is not None:
            raise self.start_error
        return self.driver


def _fast(options):
    return options.model_copy(update={"settle_seconds": 0, "timeout_seconds": 1})


def _request(url="https://stg.example.com/products", environment=None):
    return PageRequest(
        url=url,
        environment=environment or EnvironmentConfig(name="staging", domain="https://stg.example.com"),
        browser="chrome",
        root_selectors=("#app", "main"),
        ignore_selectors=(".ad",),
    )


def test_open_page_applies_headers_and_cookies(compare_options):
    driver = FakeDriver()
    environment = EnvironmentConfig(
        domain="https://stg.example.com",
        cookie="session=abc; locale=en",
        headers={"x-env": "staging"},
    )

    BrowserSession(_fast(compare_options)).open_page(driver, "https://stg.example.com/", environment)

    assert driver.calls == [
        ("cdp", "Network.enable", {}),
        ("cdp", "Network.setExtraHTTPHeaders", {"headers": {"x-env": "staging"}}),
        ("get", "https://stg.example.com/"),
        ("cookie", "session", "abc", "stg.example.com"),
        ("cookie", "locale", "en", "stg.example.com"),
        ("get", "https://stg.example.com/"),
    ]


def test_open_page_skips_headers_without_cdp(compare_options, caplog):
    driver = FakeDriver(cdp=False)
    environment = EnvironmentConfig(domain="https://stg.example.com", headers={"x-env": "staging"})

    BrowserSession(_fast(compare_options)).open_page(driver, "https://stg.example.com/", environment)

    assert driver.calls == [("get", "https://stg.example.com/")]
    assert "only supported on Chromium" in caplog.text


def test_open_page_times_out_when_document_never_loads(compare_options):
    session = BrowserSession(_fast(compare_options).model_copy(update={"timeout_seconds": 0}))
    with pytest.raises(AcquisitionError, match="Timed out"):
        session.open_page(FakeDriver(ready=False), "https://stg.example.com/", EnvironmentConfig(domain="https://stg.example.com"))


class SlowLoadingDriver(FakeDriver):
    def __init__(self, polls_until_ready: int) -> None:
        super().__init__()
        self.polls_until_ready = polls_until_ready
        self.polls = 0

    def execute_script(self, script, *args):
        self.polls += 1
        return "complete" if self.polls > self.polls_until_ready else "interactive"


def test_open_page_polls_until_document_is_complete(compare_options):
    driver = SlowLoadingDriver(polls_until_ready=2)

    BrowserSession(_fast(compare_options)).open_page(driver, "https://stg.example.com/", EnvironmentConfig(domain="https://stg.example.com"))

    assert driver.polls == 3


def test_unknown_browser_is_rejected(compare_options):
    with pytest.raises(ValueError):
        BrowserSession(compare_options).start("safari")


def test_snapshot_provider_wraps_navigation_failures(compare_options):
    driver = FakeDriver(fail_on_get=True)
    provider = SeleniumSnapshotProvider(FakeSession(_fast(compare_options), driver))

    with pytest.raises(AcquisitionError, match="page load timed out"):
        asyncio.run(provider.get_snapshot(_request()))
    assert driver.quit_called


def test_snapshot_provider_wraps_startup_failures(compare_options):
    provider = SeleniumSnapshotProvider(FakeSession(compare_options, start_error=WebDriverException("no driver")))
    with pytest.raises(AcquisitionError, match="Could not start chrome"):
        asyncio.run(provider.get_snapshot(_request()))


def test_screenshot_provider_saves_both_pages(compare_options, artifact_manager):
    provider = SeleniumScreenshotProvider(FakeSession(_fast(compare_options), FakeDriver()), artifact_manager)

    pair = asyncio.run(
        provider.capture(_request(), _request("https://www.example.com/products"))
    )

    assert pair.page1.success and pair.page2.success
    assert Path(pair.page1.path).exists()
    assert "_page1_" in Path(pair.page1.path).name
    assert Path(pair.page2.path).parent == artifact_manager.screenshot_root / "www.example.com" / "chrome"


def test_screenshot_provider_records_page_failures(compare_options, artifact_manager):
    provider = SeleniumScreenshotProvider(FakeSession(_fast(compare_options), FakeDriver(fail_on_get=True)), artifact_manager)

    pair = asyncio.run(provider.capture(_request(), _request()))

    assert pair.page1.success is False
    assert "page load timed out" in pair.page1.error
    assert pair.to_dict()["page2"]["success"] is False


def test_screenshot_paths_are_grouped_by_host_and_browser(artifact_manager):
    path = artifact_manager.screenshot_path("https://stg.example.com/docs/intro", "firefox", "_page1", "20240101")
    assert path == artifact_manager.screenshot_root / "stg.example.com" / "firefox" / "_docs_intro_page1_20240101.png"
    index = artifact_manager.screenshot_path("https://stg.example.com/", "chrome", timestamp="1")
    assert index.name == "_index_1.png"


@pytest.mark.integration
def test_snapshot_extraction_from_rendered_page(compare_options, tmp_path):
    page = tmp_path / "store.html"
    page.write_text(FIXTURE_PAGE, encoding="utf-8")

    with managed_driver(compare_options, "chrome") as (_, driver):
        driver.get(page.as_uri())
        snapshot = extract_page_snapshot(driver, ["#missing", "#app", "main"], [".ad", ".timestamp"])

    assert snapshot.metadata.title == "Fixture Store"
    assert snapshot.metadata.root_selector == "#app"
    root = snapshot.structure.root
    assert (root.tag, root.id, root.classes) == ("main", "app", ("container", "layout"))
    assert [snapshot.structure.node(index).tag for index in root.children] == ["nav", "section"]
    assert snapshot.structure.node(root.children[0]).attributes == {"role": "navigation"}
    assert "Buy now" not in snapshot.text
    assert "2024" not in snapshot.text
    assert snapshot.key_elements["h1"][0].text == "Welcome to the store"
    assert set(snapshot.key_elements) >= {"h1", "nav", "section"}


def test_screenshot_provider_records_load_timeouts(compare_options, artifact_manager):
    options = _fast(compare_options).model_copy(update={"timeout_seconds": 0})
    provider = SeleniumScreenshotProvider(FakeSession(options, FakeDriver(ready=False)), artifact_manager)

    pair = asyncio.run(provider.capture(_request(), _request()))

    assert pair.page1.success is False
    assert pair.page1.error.startswith("Timed out after 0s")


class FullDiskDriver(FakeDriver):
    def save_screenshot(self, path):
        raise OSError("No space left on device")


def test_screenshot_provider_records_write_failures(compare_options, artifact_manager):
    provider = SeleniumScreenshotProvider(FakeSession(_fast(compare_options), FullDiskDriver()), artifact_manager)

    pair = asyncio.run(provider.capture(_request(), _request("https://www.example.com/products")))

    assert (pair.page1.success, pair.page2.success) == (False, False)
    assert pair.page1.error == "No space left on device"
