from __future__ import annotations

import asyncio
import logging
from collections import Counter
from typing import Sequence

from pagecompare.config.schema import CompareOptions, PagePair
from pagecompare.core.comparer import ComparisonEngine
from pagecompare.core.exceptions import AcquisitionError, ConfigurationError
from pagecompare.core.metadata import BatchSummary, ComparisonResult
from pagecompare.logging.audit import CollectingSink, ResultSink
from pagecompare.utils.urls import page_label

logger = logging.getLogger(__name__)


def default_concurrency(pair_count: int) -> int:
    return min(5, max(1, pair_count // 2))


def chunked(items: Sequence[PagePair], size: int) -> list[Sequence[PagePair]]:
    return [items[start : start + size] for start in range(0, len(items), size)]


def summarize(results: Sequence[ComparisonResult]) -> BatchSummary:
    passed = sum(1 for result in results if result.all_passed)
    root_selector_stats = Counter(result.root_selector for result in results if result.root_selector)
    return BatchSummary(
        total=len(results),
        passed=passed,
        failed=len(results) - passed,
        root_selector_stats=dict(root_selector_stats),
        screenshot_count=sum(1 for result in results if result.screenshots is not None),
    )


class BatchOrchestrator:
    """Runs the comparison engine over many page pairs and browsers."""

    def __init__(
        self,
        engine: ComparisonEngine,
        options: CompareOptions,
        sink: ResultSink | None = None,
    ) -> None:
        self.engine = engine
        self.options = options
        self.sink = sink or CollectingSink()

    async def run(self, pairs: Sequence[PagePair], browsers: Sequence[str] | None = None) -> list[ComparisonResult]:
        browsers = list(browsers or self.options.browser_matrix)
        if not pairs:
            raise ConfigurationError("No page pairs were provided for comparison")
        if not browsers:
            raise ConfigurationError("No browsers were provided for comparison")

        logger.info(
            "Comparing %d page pairs on %s (root selectors: %s)",
            len(pairs),
            ", ".join(browsers),
            ", ".join(self.options.root_selectors),
        )
        all_results: list[ComparisonResult] = []
        for browser in browsers:
            if self.options.concurrent:
                concurrency = self.options.max_concurrency or default_concurrency(len(pairs))
                logger.info("[%s] concurrent mode, max concurrency %d", browser, concurrency)
                results = await self._run_concurrent(pairs, browser, concurrency)
            else:
                logger.info("[%s] serial mode", browser)
                results = await self._run_serial(pairs, browser)
            all_results.extend(results)

        summary = summarize(all_results)
        self.sink.close(summary)
        logger.info(
            "Batch finished: %d total, %d passed, %d failed (%.1f%%), %d with screenshots",
            summary.total,
            summary.passed,
            summary.failed,
            summary.pass_rate * 100,
            summary.screenshot_count,
        )
        return all_results

    async def _run_concurrent(self, pairs: Sequence[PagePair], browser: str, concurrency: int) -> list[ComparisonResult]:
        results: list[ComparisonResult] = []
        chunks = chunked(pairs, concurrency)
        for chunk_index, chunk in enumerate(chunks):
            logger.info("[%s] chunk %d/%d (%d comparisons)", browser, chunk_index + 1, len(chunks), len(chunk))
            chunk_results = await asyncio.gather(*(self._compare_one(pair, browser) for pair in chunk))
            results.extend(chunk_results)
            if chunk_index < len(chunks) - 1 and self.options.chunk_delay_seconds > 0:
                await asyncio.sleep(self.options.chunk_delay_seconds)
        return results

    async def _run_serial(self, pairs: Sequence[PagePair], browser: str) -> list[ComparisonResult]:
        results: list[ComparisonResult] = []
        for index, pair in enumerate(pairs):
            results.append(await self._compare_one(pair, browser))
            if index < len(pairs) - 1 and self.options.comparison_delay_seconds > 0:
                await asyncio.sleep(self.options.comparison_delay_seconds)
        return results

    async def _compare_one(self, pair: PagePair, browser: str) -> ComparisonResult:
        try:
            result = await self.engine.compare(pair, browser)
        except AcquisitionError as exc:
            logger.warning("[%s] comparison failed for %s: %s", browser, page_label(pair.url1), exc)
            result = ComparisonResult.failed(pair.url1, pair.url2, browser, str(exc))
        except Exception as exc:
            logger.exception("[%s] unexpected error comparing %s", browser, page_label(pair.url1))
            result = ComparisonResult.failed(pair.url1, pair.url2, browser, str(exc) or type(exc).__name__)
        self.sink.write(result)
        return result
