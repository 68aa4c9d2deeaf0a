from __future__ import annotations

import asyncio
from contextlib import contextmanager
from typing import Any, Iterator

import pytest
from selenium.common.exceptions import WebDriverException

from pagecompare.config.schema import CompareOptions, EnvironmentConfig, PagePair
from pagecompare.core.browser import BrowserSession
from pagecompare.core.exceptions import AcquisitionError
from pagecompare.core.metadata import (
    PageRequest,
    PageSnapshot,
    ScreenshotCapture,
    ScreenshotPair,
    StructureTree,
)
from pagecompare.core.snapshots import ScreenshotProvider, SnapshotProvider

STAGING = EnvironmentConfig(name="staging", domain="https://stg.example.com")
PRODUCTION = EnvironmentConfig(name="production", domain="https://www.example.com")


def node(
    tag: str,
    *children: dict[str, Any],
    id: str | None = None,
    classes: list[str] | tuple[str, ...] = (),
    attributes: dict[str, str] | None = None,
) -> dict[str, Any]:
    return {
        "tag": tag,
        "id": id,
        "classes": list(classes),
        "attributes": attributes or {},
        "children": list(children),
    }


def tree(payload: dict[str, Any]) -> StructureTree:
    built = StructureTree.from_dict(payload)
    assert built is not None
    return built


def page_structure(extra_section: bool = False) -> dict[str, Any]:
    sections = [
        node("section", node("h2"), node("p"), classes=["hero"]),
        node("section", node("ul", node("li"), node("li")), id="features"),
    ]
    if extra_section:
        sections.append(node("section", node("p"), classes=["promo"]))
    return node(
        "main",
        node("nav", node("a", attributes={"role": "link"}), classes=["top-nav"]),
        *sections,
        id="app",
        classes=["container", "layout"],
    )


def key_elements() -> dict[str, list[dict[str, Any]]]:
    return {
        "h2": [{"tag": "h2", "text": "Welcome to the store", "classes": [], "id": None}],
        "nav": [{"tag": "nav", "text": "Home Products About", "classes": ["top-nav"], "id": None}],
        "section": [
            {"tag": "section", "text": "Welcome to the store", "classes": ["hero"], "id": None},
            {"tag": "section", "text": "Fast shipping", "classes": [], "id": "features"},
        ],
    }


def snapshot(
    structure: dict[str, Any] | None = None,
    text: str = "Home Products About Welcome to the store Fast shipping",
    key_elements_payload: dict[str, list[dict[str, Any]]] | None = None,
    root_selector: str = "main",
    title: str = "Store",
) -> PageSnapshot:
    return PageSnapshot.from_dict(
        {
            "structure": structure if structure is not None else page_structure(),
            "text": text,
            "keyElements": key_elements_payload if key_elements_payload is not None else key_elements(),
            "metadata": {
                "title": title,
                "rootSelector": root_selector,
                "elementCount": 12,
                "textLength": len(text),
            },
        }
    )


def make_pair(path: str) -> PagePair:
    return PagePair(
        url1=STAGING.url_for(path),
        url2=PRODUCTION.url_for(path),
        environment1=STAGING,
        environment2=PRODUCTION,
    )


class FakeSnapshotProvider(SnapshotProvider):
    """Serves prepared snapshots by URL, optionally delayed or failing."""

    def __init__(
        self,
        snapshots: dict[str, PageSnapshot | Exception] | None = None,
        default: PageSnapshot | None = None,
        delays: dict[str, float] | None = None,
    ) -> None:
        self.snapshots = snapshots or {}
        self.default = default or snapshot()
        self.delays = delays or {}
        self.requests: list[PageRequest] = []
        self.events: list[tuple[str, str]] = []

    async def get_snapshot(self, request: PageRequest) -> PageSnapshot:
        self.requests.append(request)
        self.events.append(("start", request.url))
        await asyncio.sleep(self.delays.get(request.url, 0))
        item = self.snapshots.get(request.url, self.default)
        self.events.append(("end", request.url))
        if isinstance(item, Exception):
            raise item
        return item


class FakeScreenshotProvider(ScreenshotProvider):
    def __init__(self, fail: bool = False, error: Exception | None = None) -> None:
        self.error = error or (AcquisitionError("browser crashed while capturing") if fail else None)
        self.calls: list[tuple[str, str]] = []

    async def capture(self, request_a: PageRequest, request_b: PageRequest) -> ScreenshotPair:
        self.calls.append((request_a.url, request_b.url))
        if self.error is not None:
            raise self.error
        return ScreenshotPair(
            page1=ScreenshotCapture(success=True, url=request_a.url, path="/tmp/page1.png"),
            page2=ScreenshotCapture(success=True, url=request_b.url, path="/tmp/page2.png"),
        )


@contextmanager
def managed_driver(options: CompareOptions, browser_name: str = "chrome") -> Iterator[tuple[BrowserSession, object]]:
    browser_session = BrowserSession(options)
    try:
        driver = browser_session.start(browser_name)
    except WebDriverException as exc:
        pytest.skip(f"WebDriver could not start for {browser_name}: {exc}")
    try:
        yield browser_session, driver
    finally:
        driver.quit()
