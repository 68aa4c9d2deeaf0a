from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any

from pagecompare.core.metadata import BatchSummary, ComparisonResult, utc_timestamp
from pagecompare.logging.artifacts import ArtifactManager


class ResultSink(ABC):
    """Receives every finished comparison and the final batch summary."""

    @abstractmethod
    def write(self, result: ComparisonResult) -> None:
        raise NotImplementedError

    def close(self, summary: BatchSummary) -> None:
        return None


class CollectingSink(ResultSink):
    def __init__(self) -> None:
        self.results: list[ComparisonResult] = []
        self.summary: BatchSummary | None = None

    def write(self, result: ComparisonResult) -> None:
        self.results.append(result)

    def close(self, summary: BatchSummary) -> None:
        self.summary = summary


class JsonReportSink(ResultSink):
    """Appends results to a JSONL log and writes the full report on close."""

    def __init__(self, artifact_manager: ArtifactManager, config: dict[str, Any] | None = None) -> None:
        self.artifact_manager = artifact_manager
        self.config = config or {}
        self.results_path = artifact_manager.report_path("compare_results.jsonl")
        self.report_path = artifact_manager.report_path("compare_report.json")
        self._results: list[dict[str, Any]] = []
        self.results_path.write_text("", encoding="utf-8")

    def write(self, result: ComparisonResult) -> None:
        payload = result.to_dict()
        self._results.append(payload)
        with self.results_path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(payload, ensure_ascii=False) + "\n")

    def close(self, summary: BatchSummary) -> None:
        report = {
            "timestamp": utc_timestamp(),
            "config": self.config,
            "summary": summary.to_dict(),
            "results": self._results,
        }
        self.artifact_manager.write_report(self.report_path.name, report)

    def read_results(self) -> list[dict[str, Any]]:
        if not self.results_path.exists():
            return []
        with self.results_path.open("r", encoding="utf-8") as handle:
            return [json.loads(line) for line in handle if line.strip()]
