from __future__ import annotations

from pathlib import Path

import pytest

from pagecompare.config.loader import ConfigLoader
from pagecompare.logging.artifacts import ArtifactManager


@pytest.fixture()
def artifact_manager(tmp_path):
    manager = ArtifactManager(tmp_path / "artifacts")
    manager.reset()
    return manager


@pytest.fixture()
def suite_config():
    config_path = Path(__file__).resolve().parents[1] / "config" / "compare_suite.json"
    return ConfigLoader.load(config_path)


@pytest.fixture()
def compare_options(suite_config):
    return suite_config.compare.model_copy(
        update={
            "enable_screenshot": True,
            "comparison_delay_seconds": 0,
            "chunk_delay_seconds": 0,
            "thresholds": suite_config.compare.thresholds.model_copy(
                update={"structure": 0.9, "text": 0.85, "overall": 0.85}
            ),
        }
    )
