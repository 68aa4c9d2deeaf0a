from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from pagecompare.utils.urls import append_query

DEFAULT_ROOT_SELECTORS = ["main", "#app", ".container", "body"]
DEFAULT_IGNORE_SELECTORS = [
    ".timestamp",
    ".ad",
    ".banner",
    '[data-testid="random"]',
    ".live-count",
]


class Viewport(BaseModel):
    width: int = 1440
    height: int = 900


class EnvironmentConfig(BaseModel):
    name: str = ""
    domain: str
    cookie: str = ""
    headers: dict[str, str] = Field(default_factory=dict)
    query: dict[str, str | int | float | None] = Field(default_factory=dict)

    def url_for(self, path: str) -> str:
        url = self.domain.rstrip("/") + path
        if self.query:
            url = append_query(url, self.query)
        return url


class Thresholds(BaseModel):
    structure: float = 0.9
    text: float = 0.85
    overall: float = 0.85

    @field_validator("structure", "text", "overall")
    @classmethod
    def validate_ratio(cls, value: float) -> float:
        if not 0.0 <= value <= 1.0:
            raise ValueError("thresholds must be between 0 and 1")
        return value


class CompareOptions(BaseModel):
    root_selectors: list[str] = Field(default_factory=lambda: list(DEFAULT_ROOT_SELECTORS))
    ignore_selectors: list[str] = Field(default_factory=lambda: list(DEFAULT_IGNORE_SELECTORS))
    thresholds: Thresholds = Field(default_factory=Thresholds)
    output_dom_structure: bool = True
    enable_screenshot: bool = True
    screenshot_only_on_failure: bool = True
    concurrent: bool = True
    max_concurrency: int | None = None
    comparison_delay_seconds: float = 1.0
    chunk_delay_seconds: float = 1.0
    timeout_seconds: int = 60
    settle_seconds: float = 1.5
    viewport: Viewport = Field(default_factory=Viewport)
    headless: bool = True
    browser_matrix: list[str] = Field(default_factory=lambda: ["chrome"])

    @field_validator("browser_matrix")
    @classmethod
    def validate_browsers(cls, value: list[str]) -> list[str]:
        allowed = {"chrome", "firefox"}
        normalized = [item.lower() for item in value]
        invalid = [item for item in normalized if item not in allowed]
        if invalid:
            raise ValueError(f"Unsupported browsers: {', '.join(invalid)}")
        return normalized

    @field_validator("max_concurrency")
    @classmethod
    def validate_concurrency(cls, value: int | None) -> int | None:
        if value is not None and value < 1:
            raise ValueError("max_concurrency must be at least 1")
        return value

    @field_validator("root_selectors")
    @classmethod
    def validate_root_selectors(cls, value: list[str]) -> list[str]:
        selectors = [item.strip() for item in value if item.strip()]
        if not selectors:
            raise ValueError("root_selectors must contain at least one selector")
        return selectors


class PagePair(BaseModel):
    url1: str
    url2: str
    environment1: EnvironmentConfig
    environment2: EnvironmentConfig


class CompareSuiteConfig(BaseModel):
    name: str = ""
    description: str = ""
    environment1: EnvironmentConfig
    environment2: EnvironmentConfig
    paths: list[str]
    compare: CompareOptions = Field(default_factory=CompareOptions)
    artifacts_dir: str = "artifacts"

    @field_validator("paths")
    @classmethod
    def validate_paths(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("paths must list at least one page path")
        return value

    def page_pairs(self) -> list[PagePair]:
        return [
            PagePair(
                url1=self.environment1.url_for(path),
                url2=self.environment2.url_for(path),
                environment1=self.environment1,
                environment2=self.environment2,
            )
            for path in self.paths
        ]
