from __future__ import annotations

from typing import Mapping, Sequence

from pagecompare.core.metadata import KeyElement, StructureNode, StructureTree
from pagecompare.utils.text import text_similarity

TAG_WEIGHT = 1.0
ID_WEIGHT = 0.8
CLASS_WEIGHT = 0.6
ATTRIBUTE_WEIGHT = 0.4
MAX_RECURSION_DEPTH = 10


def structure_similarity(tree_a: StructureTree | None, tree_b: StructureTree | None) -> float:
    """Weighted recursive match of two structure trees, paired child by child."""

    if tree_a is None or tree_b is None:
        return 0.0
    return _node_similarity(tree_a, StructureTree.ROOT, tree_b, StructureTree.ROOT, 0)


def _node_similarity(tree_a: StructureTree, index_a: int, tree_b: StructureTree, index_b: int, depth: int) -> float:
    node_a = tree_a.node(index_a)
    node_b = tree_b.node(index_b)
    score, total = _own_similarity(node_a, node_b)

    max_children = max(len(node_a.children), len(node_b.children))
    if max_children > 0 and depth < MAX_RECURSION_DEPTH:
        child_weight = max(0.5, 1 - depth * 0.1)
        total += max_children * child_weight
        # summed before weighting so identical subtrees reproduce ``total`` exactly
        paired = sum(
            _node_similarity(tree_a, child_a, tree_b, child_b, depth + 1)
            for child_a, child_b in zip(node_a.children, node_b.children)
        )
        score += paired * child_weight

    return score / total if total > 0 else 0.0


def _own_similarity(node_a: StructureNode, node_b: StructureNode) -> tuple[float, float]:
    score = TAG_WEIGHT if node_a.tag == node_b.tag else 0.0
    total = TAG_WEIGHT

    if node_a.id or node_b.id:
        total += ID_WEIGHT
        if node_a.id == node_b.id:
            score += ID_WEIGHT

    if node_a.classes or node_b.classes:
        total += CLASS_WEIGHT
        score += _class_overlap(node_a.classes, node_b.classes) * CLASS_WEIGHT

    attribute_keys = set(node_a.attributes) | set(node_b.attributes)
    if attribute_keys:
        total += ATTRIBUTE_WEIGHT
        matched = sum(1 for key in attribute_keys if node_a.attributes.get(key) == node_b.attributes.get(key))
        score += matched / len(attribute_keys) * ATTRIBUTE_WEIGHT

    return score, total


def _class_overlap(left: Sequence[str], right: Sequence[str]) -> float:
    left_set = set(left)
    right_set = set(right)
    union = left_set | right_set
    return len(left_set & right_set) / max(len(union), 1)


def key_element_similarity(
    key_elements_a: Mapping[str, Sequence[KeyElement]] | None,
    key_elements_b: Mapping[str, Sequence[KeyElement]] | None,
) -> float:
    """Mean per-category score of curated key element lists."""

    if key_elements_a is None or key_elements_b is None:
        return 0.0
    categories = set(key_elements_a) | set(key_elements_b)
    if not categories:
        return 1.0

    total_score = 0.0
    for category in categories:
        total_score += _category_similarity(
            key_elements_a.get(category) or (),
            key_elements_b.get(category) or (),
        )
    return total_score / len(categories)


def _category_similarity(elements_a: Sequence[KeyElement], elements_b: Sequence[KeyElement]) -> float:
    if not elements_a and not elements_b:
        return 1.0
    if not elements_a or not elements_b:
        return 0.0
    paired = sum(_element_similarity(left, right) for left, right in zip(elements_a, elements_b))
    return paired / max(len(elements_a), len(elements_b))


def _element_similarity(left: KeyElement, right: KeyElement) -> float:
    scores: list[float] = []
    if left.text or right.text:
        scores.append(text_similarity(left.text, right.text))
    scores.append(1.0 if left.tag == right.tag else 0.0)
    if left.id or right.id:
        scores.append(1.0 if left.id == right.id else 0.0)
    return sum(scores) / len(scores)
