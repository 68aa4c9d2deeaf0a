from __future__ import annotations

from pagecompare.core.metadata import DifferenceEntry, DifferenceReport, StructureNode, StructureTree

ROOT_PATH = "root"


def analyze_differences(tree_a: StructureTree | None, tree_b: StructureTree | None) -> DifferenceReport:
    """Walks both trees by child position and lists missing, extra and changed nodes.

    ``missing`` nodes exist only in ``tree_b``; ``extra`` nodes exist only in
    ``tree_a``. A node is ``changed`` when its tag, id or joined class string
    differs. Text and attributes are not inspected.
    """

    missing: list[DifferenceEntry] = []
    extra: list[DifferenceEntry] = []
    changed: list[DifferenceEntry] = []

    def walk(index_a: int | None, index_b: int | None, path: str) -> None:
        if index_a is None and index_b is None:
            return
        if index_a is None:
            missing.append(DifferenceEntry(path=path, kind="missing", element_b=tree_b.to_dict(index_b)))
            return
        if index_b is None:
            extra.append(DifferenceEntry(path=path, kind="extra", element_a=tree_a.to_dict(index_a)))
            return

        node_a = tree_a.node(index_a)
        node_b = tree_b.node(index_b)
        changes = describe_changes(node_a, node_b)
        if changes:
            changed.append(
                DifferenceEntry(
                    path=path,
                    kind="changed",
                    element_a=_summary(node_a),
                    element_b=_summary(node_b),
                    changes=tuple(changes),
                )
            )

        parent_tag = node_a.tag or node_b.tag
        for position in range(max(len(node_a.children), len(node_b.children))):
            child_a = node_a.children[position] if position < len(node_a.children) else None
            child_b = node_b.children[position] if position < len(node_b.children) else None
            walk(child_a, child_b, f"{path}/{parent_tag}[{position}]")

    walk(
        StructureTree.ROOT if tree_a is not None else None,
        StructureTree.ROOT if tree_b is not None else None,
        ROOT_PATH,
    )
    return DifferenceReport(
        missing_elements=tuple(missing),
        extra_elements=tuple(extra),
        changed_elements=tuple(changed),
    )


def describe_changes(node_a: StructureNode, node_b: StructureNode) -> list[str]:
    changes: list[str] = []
    if node_a.tag != node_b.tag:
        changes.append(f"tag: {node_a.tag} -> {node_b.tag}")
    if node_a.id != node_b.id:
        changes.append(f"id: {node_a.id or 'none'} -> {node_b.id or 'none'}")
    if " ".join(node_a.classes) != " ".join(node_b.classes):
        changes.append(f"classes: [{', '.join(node_a.classes)}] -> [{', '.join(node_b.classes)}]")
    return changes


def _summary(node: StructureNode) -> dict:
    return {
        "tag": node.tag,
        "id": node.id,
        "classes": list(node.classes),
        "attributes": dict(node.attributes),
        "depth": node.depth,
    }
