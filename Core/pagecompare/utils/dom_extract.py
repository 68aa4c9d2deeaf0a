from __future__ import annotations

from typing import Sequence

from pagecompare.core.metadata import (
    MAX_KEY_ELEMENT_TEXT,
    MAX_KEY_ELEMENTS,
    MAX_STRUCTURE_CHILDREN,
    MAX_STRUCTURE_DEPTH,
    PageSnapshot,
)

KEY_ELEMENT_SELECTORS = (
    "h1",
    "h2",
    "h3",
    "nav",
    "main",
    "section",
    "article",
    "aside",
    "footer",
    "[data-testid]",
)
TRACKED_ATTRIBUTES = ("data-testid", "role", "aria-label", "type")

COLLECT_SNAPSHOT_SCRIPT = r"""
const [rootSelectors, ignoreSelectors, keySelectors, trackedAttributes, limits] = arguments;

for (const selector of ignoreSelectors) {
  try {
    document.querySelectorAll(selector).forEach((node) => node.remove());
  } catch (error) {}
}

let rootElement = null;
let rootSelector = "body";
for (const selector of rootSelectors) {
  let match = null;
  try {
    match = document.querySelector(selector);
  } catch (error) {}
  if (match) {
    rootElement = match;
    rootSelector = selector;
    break;
  }
}
if (!rootElement) {
  rootElement = document.body;
}

const classTokens = (node) => Array.from(node.classList || []).filter((name) => name.trim());

const keyAttributes = (node) => {
  const attrs = {};
  for (const name of trackedAttributes) {
    if (node.hasAttribute(name)) attrs[name] = node.getAttribute(name);
  }
  return attrs;
};

const structureOf = (node, depth) => {
  if (!node || !node.tagName || depth > limits.maxDepth) return null;
  return {
    tag: node.tagName.toLowerCase(),
    id: node.id || null,
    classes: classTokens(node).sort(),
    attributes: keyAttributes(node),
    depth: depth,
    children: Array.from(node.children)
      .slice(0, limits.maxChildren)
      .map((child) => structureOf(child, depth + 1))
      .filter((child) => child !== null),
  };
};

const text = (rootElement.innerText || "").replace(/\s+/g, " ").trim();

const keyElements = {};
for (const selector of keySelectors) {
  try {
    const matches = rootElement.querySelectorAll(selector);
    if (matches.length > 0) {
      keyElements[selector] = Array.from(matches).slice(0, limits.maxKeyElements).map((node) => ({
        text: (node.innerText || "").trim().substring(0, limits.maxKeyText),
        classes: classTokens(node),
        id: node.id || null,
        tag: node.tagName.toLowerCase(),
      }));
    }
  } catch (error) {}
}

return {
  structure: structureOf(rootElement, 0),
  text: text,
  keyElements: keyElements,
  metadata: {
    title: document.title,
    rootSelector: rootSelector,
    elementCount: rootElement.querySelectorAll("*").length,
    textLength: text.length,
  },
};
"""


def extract_page_snapshot(
    driver,
    root_selectors: Sequence[str],
    ignore_selectors: Sequence[str] = (),
) -> PageSnapshot:
    raw_snapshot = driver.execute_script(
        COLLECT_SNAPSHOT_SCRIPT,
        list(root_selectors),
        list(ignore_selectors),
        list(KEY_ELEMENT_SELECTORS),
        list(TRACKED_ATTRIBUTES),
        {
            "maxDepth": MAX_STRUCTURE_DEPTH,
            "maxChildren": MAX_STRUCTURE_CHILDREN,
            "maxKeyElements": MAX_KEY_ELEMENTS,
            "maxKeyText": MAX_KEY_ELEMENT_TEXT,
        },
    )
    return parse_snapshot(raw_snapshot or {})


def parse_snapshot(raw_snapshot: dict) -> PageSnapshot:
    return PageSnapshot.from_dict(raw_snapshot)
