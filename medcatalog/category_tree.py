"""
Category tree helpers.

Categories form a forest through `parent_id`. The full list is fetched once per
request and handed to these helpers, so nothing here touches the database.

- descendant_ids: root id plus every id reachable downward (cycle-safe)
- expand_category_ids: union of descendant_ids over a selection
- flatten_tree: depth-first (category, depth) pairs for indented rendering
- would_create_cycle: guard used when re-parenting a category
"""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable


def _children_by_parent(categories: Iterable) -> dict:
    children = defaultdict(list)
    for category in categories:
        children[category.parent_id].append(category)
    return children


def descendant_ids(categories: Iterable, root_id: int) -> set[int]:
    """
    Return `root_id` plus the ids of all categories below it.

    A visited set stops the walk if a cycle was ever written by concurrent edits.
    """
    children = _children_by_parent(categories)

    result = {root_id}
    stack = [root_id]
    while stack:
        current = stack.pop()
        for child in children.get(current, []):
            if child.id in result:
                continue
            result.add(child.id)
            stack.append(child.id)

    return result


def expand_category_ids(categories: Iterable, selected_ids: Iterable[int]) -> set[int]:
    """Expand every selected id through `descendant_ids` and union the results."""
    categories = list(categories)
    expanded: set[int] = set()
    for category_id in selected_ids:
        if category_id in expanded:
            continue
        expanded |= descendant_ids(categories, category_id)
    return expanded


def flatten_tree(categories: Iterable) -> list[tuple]:
    """
    Depth-first (category, depth) pairs, roots first, siblings by name.

    Orphans whose parent is missing from the list are emitted as roots.
    """
    categories = list(categories)
    known_ids = {c.id for c in categories}
    children = _children_by_parent(categories)

    roots = [c for c in categories if c.parent_id is None or c.parent_id not in known_ids]

    out: list[tuple] = []
    seen: set[int] = set()

    def _walk(nodes, depth):
        for node in sorted(nodes, key=lambda c: (c.name or "").lower()):
            if node.id in seen:
                continue
            seen.add(node.id)
            out.append((node, depth))
            _walk(children.get(node.id, []), depth + 1)

    _walk(roots, 0)
    return out


def would_create_cycle(categories: Iterable, category_id: int, new_parent_id: int | None) -> bool:
    """True if making `new_parent_id` the parent of `category_id` would close a loop."""
    if new_parent_id is None:
        return False
    if new_parent_id == category_id:
        return True
    return new_parent_id in descendant_ids(categories, category_id)
