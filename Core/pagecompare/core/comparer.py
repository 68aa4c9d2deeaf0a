from __future__ import annotations

import asyncio
import logging
from dataclasses import replace

from pagecompare.config.schema import CompareOptions, EnvironmentConfig, PagePair
from pagecompare.core.exceptions import AcquisitionError
from pagecompare.core.metadata import (
    ComparisonResult,
    DomStructureReport,
    PageRequest,
    PageSnapshot,
    PassFlags,
    SimilarityScores,
)
from pagecompare.core.snapshots import ScreenshotProvider, SnapshotProvider
from pagecompare.utils.diff import analyze_differences
from pagecompare.utils.scoring import key_element_similarity, structure_similarity
from pagecompare.utils.text import text_similarity

logger = logging.getLogger(__name__)

STRUCTURE_WEIGHT = 0.5
TEXT_WEIGHT = 0.3
KEY_ELEMENT_WEIGHT = 0.2


def overall_similarity(structure: float, text: float, key_elements: float) -> float:
    return structure * STRUCTURE_WEIGHT + text * TEXT_WEIGHT + key_elements * KEY_ELEMENT_WEIGHT


class ComparisonEngine:
    """Scores one page pair and decides whether it passes the configured thresholds."""

    def __init__(
        self,
        options: CompareOptions,
        snapshot_provider: SnapshotProvider,
        screenshot_provider: ScreenshotProvider | None = None,
    ) -> None:
        self.options = options
        self.snapshot_provider = snapshot_provider
        self.screenshot_provider = screenshot_provider

    async def compare(self, pair: PagePair, browser: str) -> ComparisonResult:
        request_a = self._request(pair.url1, pair.environment1, browser)
        request_b = self._request(pair.url2, pair.environment2, browser)
        snapshot_a, snapshot_b = await asyncio.gather(
            self.snapshot_provider.get_snapshot(request_a),
            self.snapshot_provider.get_snapshot(request_b),
        )
        result = self.evaluate(snapshot_a, snapshot_b, url1=pair.url1, url2=pair.url2, browser=browser)

        capture = self.should_capture_screenshots(result)
        logger.info(
            "%s root=%s overall=%.1f%% %s%s",
            "PASS" if result.all_passed else "FAIL",
            result.root_selector,
            result.similarities.overall * 100,
            pair.url1,
            " (capturing screenshots)" if capture else "",
        )
        if not capture:
            return result

        try:
            screenshots = await self.screenshot_provider.capture(request_a, request_b)
        except AcquisitionError as exc:
            logger.warning("Screenshot capture failed for %s: %s", pair.url1, exc)
            return replace(result, screenshot_error=str(exc))
        except Exception as exc:
            logger.exception("Unexpected screenshot error for %s", pair.url1)
            return replace(result, screenshot_error=str(exc) or type(exc).__name__)
        return replace(result, screenshots=screenshots)

    def evaluate(
        self,
        snapshot_a: PageSnapshot,
        snapshot_b: PageSnapshot,
        *,
        url1: str = "",
        url2: str = "",
        browser: str = "",
    ) -> ComparisonResult:
        structure = structure_similarity(snapshot_a.structure, snapshot_b.structure)
        text = text_similarity(snapshot_a.text, snapshot_b.text)
        key_elements = key_element_similarity(snapshot_a.key_elements, snapshot_b.key_elements)
        overall = overall_similarity(structure, text, key_elements)
        differences = analyze_differences(snapshot_a.structure, snapshot_b.structure)

        thresholds = self.options.thresholds
        passed = PassFlags(
            structure=structure >= thresholds.structure,
            text=text >= thresholds.text,
            overall=overall >= thresholds.overall,
        )
        dom_structure = None
        if self.options.output_dom_structure:
            dom_structure = DomStructureReport(
                page1=snapshot_a.structure,
                page2=snapshot_b.structure,
                differences=differences,
            )
        return ComparisonResult(
            url1=url1,
            url2=url2,
            browser=browser,
            root_selector=snapshot_a.metadata.root_selector,
            similarities=SimilarityScores(
                structure=structure,
                text=text,
                key_elements=key_elements,
                overall=overall,
            ),
            passed=passed,
            all_passed=passed.all_passed,
            metadata={"page1": snapshot_a.metadata, "page2": snapshot_b.metadata},
            dom_structure=dom_structure,
            key_elements={"page1": snapshot_a.key_elements_dict(), "page2": snapshot_b.key_elements_dict()},
            text_content={"page1": snapshot_a.text_excerpt(), "page2": snapshot_b.text_excerpt()},
        )

    def should_capture_screenshots(self, result: ComparisonResult) -> bool:
        if not self.options.enable_screenshot or self.screenshot_provider is None:
            return False
        return (
            result.similarities.overall < 1.0
            or not result.all_passed
            or not self.options.screenshot_only_on_failure
        )

    def _request(self, url: str, environment: EnvironmentConfig, browser: str) -> PageRequest:
        return PageRequest(
            url=url,
            environment=environment,
            browser=browser,
            root_selectors=tuple(self.options.root_selectors),
            ignore_selectors=tuple(self.options.ignore_selectors),
        )
