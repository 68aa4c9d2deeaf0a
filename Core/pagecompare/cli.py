from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any, Sequence

from pagecompare.config.loader import ConfigLoader
from pagecompare.config.schema import CompareSuiteConfig
from pagecompare.core.batch import BatchOrchestrator
from pagecompare.core.browser import BrowserSession
from pagecompare.core.comparer import ComparisonEngine
from pagecompare.core.exceptions import ConfigurationError
from pagecompare.core.metadata import ComparisonResult
from pagecompare.core.snapshots import SeleniumScreenshotProvider, SeleniumSnapshotProvider
from pagecompare.logging.artifacts import ArtifactManager
from pagecompare.logging.audit import JsonReportSink
from pagecompare.utils.urls import page_label

logger = logging.getLogger("pagecompare")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="page-compare",
        description="Compare the rendered structure and content of pages served by two environments.",
    )
    parser.add_argument("--compare-config", required=True, help="Path to the comparison config JSON file")
    parser.add_argument("--browser", choices=["chrome", "firefox"], help="Run on a single browser")
    parser.add_argument("--threshold", type=float, help="One threshold (0-1) for structure, text and overall")
    parser.add_argument("--root", help="Comma-separated root selector candidates")
    parser.add_argument("--ignore", help="Comma-separated selectors removed before capture")
    parser.add_argument("--no-dom-structure", action="store_true", help="Omit trees and differences from results")
    screenshots = parser.add_mutually_exclusive_group()
    screenshots.add_argument("--enable-screenshot", action="store_true", help="Force screenshot capture on")
    screenshots.add_argument("--disable-screenshot", action="store_true", help="Force screenshot capture off")
    parser.add_argument("--serial", action="store_true", help="Compare one page at a time")
    parser.add_argument("--max-concurrency", type=int, help="Comparisons per concurrent chunk")
    parser.add_argument("--artifacts-dir", help="Directory for screenshots and reports")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def apply_overrides(config: CompareSuiteConfig, args: argparse.Namespace) -> CompareSuiteConfig:
    """Returns a validated copy of ``config`` with command-line overrides applied."""

    update: dict[str, Any] = {}
    if args.threshold is not None:
        update["thresholds"] = {"structure": args.threshold, "text": args.threshold, "overall": args.threshold}
    if args.root:
        update["root_selectors"] = _split(args.root)
    if args.ignore:
        update["ignore_selectors"] = _split(args.ignore)
    if args.no_dom_structure:
        update["output_dom_structure"] = False
    if args.enable_screenshot:
        update["enable_screenshot"] = True
    if args.disable_screenshot:
        update["enable_screenshot"] = False
    if args.serial:
        update["concurrent"] = False
    if args.max_concurrency is not None:
        update["max_concurrency"] = args.max_concurrency
    if args.browser:
        update["browser_matrix"] = [args.browser]

    payload = config.model_dump()
    payload["compare"].update(update)
    if args.artifacts_dir:
        payload["artifacts_dir"] = args.artifacts_dir
    return ConfigLoader.validate(payload)


def report_config(config: CompareSuiteConfig) -> dict[str, Any]:
    return {
        "name": config.name,
        "description": config.description,
        "environment1": config.environment1.name or config.environment1.domain,
        "environment2": config.environment2.name or config.environment2.domain,
        "compare": config.compare.model_dump(),
    }


def log_failure_details(results: Sequence[ComparisonResult]) -> None:
    for index, result in enumerate((item for item in results if not item.all_passed), start=1):
        label = page_label(result.url1)
        if result.similarities is None:
            logger.warning("%d. %s [%s] error: %s", index, label, result.browser, result.error)
            continue
        scores = result.similarities
        logger.warning(
            "%d. %s [%s] root=%s overall %.1f%% | structure %.1f%% | text %.1f%% | key elements %.1f%%",
            index,
            label,
            result.browser,
            result.root_selector,
            scores.overall * 100,
            scores.structure * 100,
            scores.text * 100,
            scores.key_elements * 100,
        )
        differences = result.differences
        if differences is not None and differences.summary.total_differences:
            summary = differences.summary
            logger.warning(
                "   DOM differences: missing %d | extra %d | changed %d | total %d",
                summary.total_missing,
                summary.total_extra,
                summary.total_changed,
                summary.total_differences,
            )
            if differences.missing_elements:
                logger.warning("   missing: %s", ", ".join(f"<{entry.tag}>" for entry in differences.missing_elements[:2]))
            if differences.extra_elements:
                logger.warning("   extra: %s", ", ".join(f"<{entry.tag}>" for entry in differences.extra_elements[:2]))
            if differences.changed_elements:
                logger.warning(
                    "   changed: %s",
                    ", ".join(entry.path.rsplit("/", 1)[-1] for entry in differences.changed_elements[:2]),
                )
        if result.metadata:
            page1 = result.metadata["page1"]
            page2 = result.metadata["page2"]
            element_delta = abs(page1.element_count - page2.element_count)
            text_delta = abs(page1.text_length - page2.text_length)
            if element_delta > 10 or text_delta > 100:
                logger.warning("   metadata: element count delta %d | text length delta %d", element_delta, text_delta)
            if page1.title != page2.title:
                logger.warning('   title: "%s" vs "%s"', page1.title, page2.title)


async def run_suite(config: CompareSuiteConfig) -> list[ComparisonResult]:
    options = config.compare
    artifact_manager = ArtifactManager(config.artifacts_dir)
    browser_session = BrowserSession(options)
    screenshot_provider = None
    if options.enable_screenshot:
        screenshot_provider = SeleniumScreenshotProvider(browser_session, artifact_manager)
    engine = ComparisonEngine(options, SeleniumSnapshotProvider(browser_session), screenshot_provider)
    sink = JsonReportSink(artifact_manager, config=report_config(config))
    orchestrator = BatchOrchestrator(engine, options, sink)
    results = await orchestrator.run(config.page_pairs())
    logger.info("Report written to %s", sink.report_path)
    return results


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        config = apply_overrides(ConfigLoader.load(args.compare_config), args)
    except ConfigurationError as exc:
        logger.error("Invalid comparison config: %s", exc)
        return EXIT_CONFIG

    logger.info(
        "Suite %s: %s vs %s, %d paths",
        config.name or "(unnamed)",
        config.environment1.name or config.environment1.domain,
        config.environment2.name or config.environment2.domain,
        len(config.paths),
    )
    try:
        results = asyncio.run(run_suite(config))
    except ConfigurationError as exc:
        logger.error("Comparison aborted: %s", exc)
        return EXIT_CONFIG

    log_failure_details(results)
    return EXIT_OK if all(result.all_passed for result in results) else EXIT_FAILED


def _split(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


if __name__ == "__main__":
    sys.exit(main())
