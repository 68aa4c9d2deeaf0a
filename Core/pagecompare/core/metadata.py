from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, ClassVar, Mapping

from pagecompare.config.schema import EnvironmentConfig

MAX_STRUCTURE_DEPTH = 8
MAX_STRUCTURE_CHILDREN = 10
MAX_KEY_ELEMENTS = 5
MAX_KEY_ELEMENT_TEXT = 100
TEXT_EXCERPT_LENGTH = 500


def utc_timestamp() -> str:
    return datetime.now(UTC).isoformat()


def normalize_classes(raw: Any) -> tuple[str, ...]:
    if not raw:
        return ()
    tokens = raw.split() if isinstance(raw, str) else [str(item) for item in raw]
    return tuple(sorted({token.strip() for token in tokens if token.strip()}))


@dataclass(frozen=True, slots=True)
class StructureNode:
    tag: str
    id: str | None
    classes: tuple[str, ...]
    attributes: Mapping[str, str]
    depth: int
    children: tuple[int, ...] = ()


@dataclass(frozen=True, slots=True)
class StructureTree:
    """Arena of structure nodes; children are indexes into ``nodes``."""

    ROOT: ClassVar[int] = 0

    nodes: tuple[StructureNode, ...]

    @classmethod
    def from_dict(
        cls,
        payload: Mapping[str, Any] | None,
        max_depth: int = MAX_STRUCTURE_DEPTH,
        max_children: int = MAX_STRUCTURE_CHILDREN,
    ) -> StructureTree | None:
        if not payload or not payload.get("tag"):
            return None
        nodes: list[StructureNode | None] = []

        def add(item: Mapping[str, Any], depth: int) -> int:
            index = len(nodes)
            nodes.append(None)
            child_indexes: list[int] = []
            if depth < max_depth:
                for child in list(item.get("children") or [])[:max_children]:
                    if isinstance(child, Mapping) and child.get("tag"):
                        child_indexes.append(add(child, depth + 1))
            nodes[index] = StructureNode(
                tag=str(item["tag"]).lower(),
                id=item.get("id") or None,
                classes=normalize_classes(item.get("classes")),
                attributes={str(key): str(value) for key, value in (item.get("attributes") or {}).items()},
                depth=depth,
                children=tuple(child_indexes),
            )
            return index

        add(payload, 0)
        return cls(nodes=tuple(nodes))

    @property
    def root(self) -> StructureNode:
        return self.nodes[self.ROOT]

    def node(self, index: int) -> StructureNode:
        return self.nodes[index]

    def __len__(self) -> int:
        return len(self.nodes)

    def to_dict(self, index: int = ROOT) -> dict[str, Any]:
        node = self.nodes[index]
        return {
            "tag": node.tag,
            "id": node.id,
            "classes": list(node.classes),
            "attributes": dict(node.attributes),
            "depth": node.depth,
            "children": [self.to_dict(child) for child in node.children],
        }


@dataclass(frozen=True, slots=True)
class KeyElement:
    tag: str
    text: str = ""
    classes: tuple[str, ...] = ()
    id: str | None = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> KeyElement:
        classes = payload.get("classes") or ()
        if isinstance(classes, str):
            classes = classes.split()
        return cls(
            tag=str(payload.get("tag", "")).lower(),
            text=str(payload.get("text") or "").strip()[:MAX_KEY_ELEMENT_TEXT],
            classes=tuple(item for item in classes if str(item).strip()),
            id=payload.get("id") or None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {"tag": self.tag, "text": self.text, "classes": list(self.classes), "id": self.id}


@dataclass(frozen=True, slots=True)
class PageMetadata:
    title: str = ""
    root_selector: str = "body"
    element_count: int = 0
    text_length: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "root_selector": self.root_selector,
            "element_count": self.element_count,
            "text_length": self.text_length,
        }


@dataclass(frozen=True, slots=True)
class PageSnapshot:
    structure: StructureTree | None
    text: str
    key_elements: Mapping[str, tuple[KeyElement, ...]]
    metadata: PageMetadata

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> PageSnapshot:
        key_elements = {
            str(category): tuple(KeyElement.from_dict(item) for item in list(items or [])[:MAX_KEY_ELEMENTS])
            for category, items in (payload.get("keyElements") or payload.get("key_elements") or {}).items()
        }
        raw_metadata = payload.get("metadata") or {}
        text = str(payload.get("text") or "")
        metadata = PageMetadata(
            title=str(raw_metadata.get("title") or ""),
            root_selector=str(raw_metadata.get("rootSelector") or raw_metadata.get("root_selector") or "body"),
            element_count=int(raw_metadata.get("elementCount") or raw_metadata.get("element_count") or 0),
            text_length=int(raw_metadata.get("textLength") or raw_metadata.get("text_length") or len(text)),
        )
        return cls(
            structure=StructureTree.from_dict(payload.get("structure")),
            text=text,
            key_elements=key_elements,
            metadata=metadata,
        )

    def key_elements_dict(self) -> dict[str, list[dict[str, Any]]]:
        return {category: [item.to_dict() for item in items] for category, items in self.key_elements.items()}

    def text_excerpt(self) -> str:
        if len(self.text) > TEXT_EXCERPT_LENGTH:
            return self.text[:TEXT_EXCERPT_LENGTH] + "..."
        return self.text


@dataclass(frozen=True, slots=True)
class PageRequest:
    url: str
    environment: EnvironmentConfig
    browser: str
    root_selectors: tuple[str, ...]
    ignore_selectors: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class DifferenceEntry:
    path: str
    kind: str
    element_a: dict[str, Any] | None = None
    element_b: dict[str, Any] | None = None
    changes: tuple[str, ...] = ()

    @property
    def tag(self) -> str:
        element = self.element_a or self.element_b or {}
        return element.get("tag", "")

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"path": self.path, "type": self.kind}
        if self.kind == "changed":
            payload["changes"] = list(self.changes)
            payload["element1"] = self.element_a
            payload["element2"] = self.element_b
        else:
            payload["element"] = self.element_a if self.element_a is not None else self.element_b
        return payload


@dataclass(frozen=True, slots=True)
class DifferenceSummary:
    total_missing: int = 0
    total_extra: int = 0
    total_changed: int = 0

    @property
    def total_differences(self) -> int:
        return self.total_missing + self.total_extra + self.total_changed

    def to_dict(self) -> dict[str, int]:
        return {
            "total_missing": self.total_missing,
            "total_extra": self.total_extra,
            "total_changed": self.total_changed,
            "total_differences": self.total_differences,
        }


@dataclass(frozen=True, slots=True)
class DifferenceReport:
    missing_elements: tuple[DifferenceEntry, ...] = ()
    extra_elements: tuple[DifferenceEntry, ...] = ()
    changed_elements: tuple[DifferenceEntry, ...] = ()

    @property
    def summary(self) -> DifferenceSummary:
        return DifferenceSummary(
            total_missing=len(self.missing_elements),
            total_extra=len(self.extra_elements),
            total_changed=len(self.changed_elements),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "missing_elements": [entry.to_dict() for entry in self.missing_elements],
            "extra_elements": [entry.to_dict() for entry in self.extra_elements],
            "changed_elements": [entry.to_dict() for entry in self.changed_elements],
            "summary": self.summary.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class DomStructureReport:
    page1: StructureTree | None
    page2: StructureTree | None
    differences: DifferenceReport

    def to_dict(self) -> dict[str, Any]:
        return {
            "page1": self.page1.to_dict() if self.page1 else None,
            "page2": self.page2.to_dict() if self.page2 else None,
            "differences": self.differences.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class SimilarityScores:
    structure: float
    text: float
    key_elements: float
    overall: float

    def to_dict(self) -> dict[str, float]:
        return {
            "structure": self.structure,
            "text": self.text,
            "key_elements": self.key_elements,
            "overall": self.overall,
        }


@dataclass(frozen=True, slots=True)
class PassFlags:
    structure: bool
    text: bool
    overall: bool

    @property
    def all_passed(self) -> bool:
        return self.structure and self.text and self.overall

    def to_dict(self) -> dict[str, bool]:
        return {"structure": self.structure, "text": self.text, "overall": self.overall}


@dataclass(frozen=True, slots=True)
class ScreenshotCapture:
    success: bool
    url: str
    path: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success, "url": self.url}
        if self.success:
            payload["path"] = self.path
        else:
            payload["error"] = self.error
        return payload


@dataclass(frozen=True, slots=True)
class ScreenshotPair:
    page1: ScreenshotCapture
    page2: ScreenshotCapture

    def to_dict(self) -> dict[str, Any]:
        return {"page1": self.page1.to_dict(), "page2": self.page2.to_dict()}


@dataclass(frozen=True, slots=True)
class ComparisonResult:
    url1: str
    url2: str
    browser: str
    root_selector: str | None = None
    similarities: SimilarityScores | None = None
    passed: PassFlags | None = None
    all_passed: bool = False
    metadata: Mapping[str, PageMetadata] | None = None
    dom_structure: DomStructureReport | None = None
    key_elements: Mapping[str, dict[str, list[dict[str, Any]]]] | None = None
    text_content: Mapping[str, str] | None = None
    screenshots: ScreenshotPair | None = None
    screenshot_error: str | None = None
    error: str | None = None
    timestamp: str = field(default_factory=utc_timestamp)

    @classmethod
    def failed(cls, url1: str, url2: str, browser: str, error: str) -> ComparisonResult:
        return cls(url1=url1, url2=url2, browser=browser, all_passed=False, error=error)

    @property
    def differences(self) -> DifferenceReport | None:
        return self.dom_structure.differences if self.dom_structure else None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "url1": self.url1,
            "url2": self.url2,
            "browser": self.browser,
            "root_selector": self.root_selector,
            "all_passed": self.all_passed,
            "timestamp": self.timestamp,
        }
        if self.error is not None:
            payload["error"] = self.error
            return payload
        payload["similarities"] = self.similarities.to_dict() if self.similarities else None
        payload["passed"] = self.passed.to_dict() if self.passed else None
        if self.metadata is not None:
            payload["metadata"] = {page: item.to_dict() for page, item in self.metadata.items()}
        if self.dom_structure is not None:
            payload["dom_structure"] = self.dom_structure.to_dict()
        if self.key_elements is not None:
            payload["key_elements"] = dict(self.key_elements)
        if self.text_content is not None:
            payload["text_content"] = dict(self.text_content)
        if self.screenshots is not None:
            payload["screenshots"] = self.screenshots.to_dict()
        if self.screenshot_error is not None:
            payload["screenshot_error"] = self.screenshot_error
        return payload


@dataclass(frozen=True, slots=True)
class BatchSummary:
    total: int
    passed: int
    failed: int
    root_selector_stats: Mapping[str, int] = field(default_factory=dict)
    screenshot_count: int = 0

    @property
    def pass_rate(self) -> float:
        return self.passed / self.total if self.total else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "pass_rate": f"{self.pass_rate * 100:.1f}%",
            "root_selector_stats": dict(self.root_selector_stats),
            "screenshot_count": self.screenshot_count,
        }
