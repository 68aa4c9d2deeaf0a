from __future__ import annotations

import json
import re
import shutil
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

_UNSAFE_FILENAME = re.compile(r'[<>:"|?*\\]')


class ArtifactManager:
    """Creates and manages comparison artifact files."""

    def __init__(self, root: str | Path = "artifacts") -> None:
        self.root = Path(root)
        self.screenshot_root = self.root / "screenshots"
        self.report_root = self.root / "reports"
        self._ensure_structure()

    def _ensure_structure(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        self.screenshot_root.mkdir(parents=True, exist_ok=True)
        self.report_root.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def timestamp() -> str:
        return datetime.now(UTC).strftime("%Y%m%dT%H%M%S%fZ")

    def screenshot_path(self, url: str, browser: str, suffix: str = "", timestamp: str | None = None) -> Path:
        parsed = urlparse(url)
        pathname = parsed.path or "/"
        if pathname.endswith("/"):
            pathname += "index"
        pathname = _UNSAFE_FILENAME.sub("_", pathname).replace("/", "_")
        stamp = timestamp or self.timestamp()
        directory = self.screenshot_root / (parsed.hostname or "local") / browser
        directory.mkdir(parents=True, exist_ok=True)
        return directory / f"{pathname}{suffix}_{stamp}.png"

    def report_path(self, name: str) -> Path:
        return self.report_root / name

    def write_report(self, name: str, payload: dict[str, Any]) -> Path:
        path = self.report_path(name)
        path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        return path

    def reset(self) -> Path:
        self._ensure_structure()
        for directory in (self.screenshot_root, self.report_root):
            self._clear_directory(directory)
        return self.root

    @staticmethod
    def _clear_directory(directory: Path) -> None:
        for child in directory.iterdir():
            if child.is_dir():
                shutil.rmtree(child)
            elif child.is_file() and child.name != ".gitkeep":
                child.unlink()
