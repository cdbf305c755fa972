# -*- coding: utf-8 -*-
"""
Dependency Registry - TEUI Calculator State Layer

Records declared (precedent, dependent) edges between store keys for
visualization and diagnostics. The registry never drives execution:
calculation order comes from hand-sequenced module passes and targeted
listeners. It also keeps the documentation-only dirty set that
non-calculated writes populate.

Provides downstream/upstream traversal, BFS impact analysis, DFS cycle
detection, a topological ordering of dirty keys and graph exports per
scenario.

Example:
    >>> from teui.state.dependencies import DependencyRegistry
    >>> registry = DependencyRegistry()
    >>> registry.register("h_124", "m_129")
    >>> registry.register("m_129", "m_124")
    >>> registry.get_impact("h_124")["affected"]
    ['m_124', 'm_129']

Author: TEUI Calculator Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Set, Union

from teui.state.metrics import record_dependency_depth
from teui.state.models import (
    REFERENCE_PREFIX,
    DependencyNode,
    FieldKey,
    GraphMode,
    Scenario,
)

logger = logging.getLogger(__name__)

KeyLike = Union[str, FieldKey]


def _key(key: KeyLike) -> str:
    return key.to_store_key() if isinstance(key, FieldKey) else key


class DependencyRegistry:
    """Directed graph of documentation edges between store keys.

    Attributes:
        _nodes: Mapping of store key to DependencyNode.
        _owners: Mapping of store key to the module that publishes it.
        _dirty: Keys whose precedents changed since the last clear.
    """

    def __init__(self) -> None:
        self._nodes: Dict[str, DependencyNode] = {}
        self._owners: Dict[str, str] = {}
        self._dirty: Set[str] = set()
        logger.debug("DependencyRegistry initialized")

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, precedent: KeyLike, dependent: KeyLike) -> None:
        """Record that ``dependent`` is computed from ``precedent``.

        Args:
            precedent: Upstream store key.
            dependent: Downstream store key.
        """
        src, dst = _key(precedent), _key(dependent)
        self._ensure_node(src)
        self._ensure_node(dst)

        if dst not in self._nodes[src].dependents:
            self._nodes[src].dependents.append(dst)
        if src not in self._nodes[dst].precedents:
            self._nodes[dst].precedents.append(src)

        logger.debug("Registered dependency: %s -> %s", src, dst)

    def register_both(self, precedent: str, dependent: str) -> None:
        """Register an edge under both scenarios' keys."""
        for scenario in Scenario:
            self.register(
                FieldKey(precedent, scenario), FieldKey(dependent, scenario),
            )

    def set_owner(self, module_id: str, keys: Iterable[KeyLike]) -> None:
        """Annotate keys with the module that publishes them."""
        for key in keys:
            k = _key(key)
            self._ensure_node(k)
            self._owners[k] = module_id

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def precedents(self, key: KeyLike) -> List[str]:
        node = self._nodes.get(_key(key))
        return list(node.precedents) if node else []

    def dependents(self, key: KeyLike) -> List[str]:
        node = self._nodes.get(_key(key))
        return list(node.dependents) if node else []

    def get_impact(self, key: KeyLike) -> Dict[str, Any]:
        """Analyze the keys transitively affected by a change to ``key``.

        Args:
            key: The key being changed.

        Returns:
            Dictionary with the affected keys and the BFS depth reached.
        """
        start = _key(key)
        affected: Set[str] = set()
        visited: Set[str] = set()
        queue = [start]
        depth = 0

        while queue:
            next_queue: List[str] = []
            for current in queue:
                if current in visited:
                    continue
                visited.add(current)
                node = self._nodes.get(current)
                if node is None:
                    continue
                for dependent in node.dependents:
                    if dependent not in visited:
                        affected.add(dependent)
                        next_queue.append(dependent)
            queue = next_queue
            if next_queue:
                depth += 1

        record_dependency_depth(depth)
        affected.discard(start)

        return {
            "key": start,
            "affected": sorted(affected),
            "total_affected": len(affected),
            "max_depth": depth,
        }

    def detect_cycles(self) -> List[List[str]]:
        """Detect cycles in the graph using DFS.

        Returns:
            List of cycles; each is a key path that ends where it starts.
        """
        cycles: List[List[str]] = []
        visited: Set[str] = set()
        rec_stack: Set[str] = set()
        path: List[str] = []

        def _dfs(key: str) -> None:
            visited.add(key)
            rec_stack.add(key)
            path.append(key)

            for dependent in self._nodes[key].dependents:
                if dependent not in visited:
                    _dfs(dependent)
                elif dependent in rec_stack:
                    start = path.index(dependent)
                    cycles.append(path[start:] + [dependent])

            path.pop()
            rec_stack.discard(key)

        for key in list(self._nodes):
            if key not in visited:
                _dfs(key)

        if cycles:
            logger.info("Detected %d documented dependency cycles", len(cycles))
        return cycles

    def calculation_order(self, keys: Optional[Iterable[KeyLike]] = None) -> List[str]:
        """Topological order of ``keys`` and everything downstream of them.

        Defaults to the current dirty set. Documentation only: nothing in
        the substrate executes in this order. Back edges of a cycle are
        ignored, so the result is always finite.
        """
        roots = [_key(k) for k in keys] if keys is not None else sorted(self._dirty)
        visited: Set[str] = set()
        temp: Set[str] = set()
        order: List[str] = []

        def _visit(key: str) -> None:
            if key in temp or key in visited:
                return
            temp.add(key)
            node = self._nodes.get(key)
            if node:
                for dependent in node.dependents:
                    _visit(dependent)
            temp.discard(key)
            visited.add(key)
            order.append(key)

        for root in roots:
            _visit(root)

        order.reverse()
        return order

    # ------------------------------------------------------------------
    # Dirty tracking
    # ------------------------------------------------------------------

    def mark_dependents_dirty(self, key: KeyLike) -> Set[str]:
        """Mark every transitive dependent of ``key`` dirty.

        Returns:
            The keys newly marked by this call.
        """
        marked: Set[str] = set()
        visited: Set[str] = set()
        stack = [_key(key)]

        while stack:
            current = stack.pop()
            if current in visited:
                continue
            visited.add(current)
            node = self._nodes.get(current)
            if node is None:
                continue
            for dependent in node.dependents:
                if dependent not in self._dirty:
                    marked.add(dependent)
                self._dirty.add(dependent)
                stack.append(dependent)

        return marked

    def get_dirty_fields(self) -> List[str]:
        return sorted(self._dirty)

    def clear_dirty(self, keys: Optional[Iterable[KeyLike]] = None) -> None:
        """Clear the whole dirty set, or only ``keys``."""
        if keys is None:
            self._dirty.clear()
            return
        for key in keys:
            self._dirty.discard(_key(key))

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export_graph(self, mode: Union[GraphMode, str] = GraphMode.TARGET) -> Dict[str, Any]:
        """Export nodes and links for visualization.

        Args:
            mode: ``target`` keeps unprefixed keys, ``reference`` keeps
                prefixed keys, ``both`` keeps everything.

        Returns:
            ``{"mode", "nodes": [...], "links": [...]}``.
        """
        mode = GraphMode(mode)

        def _include(key: str) -> bool:
            is_ref = key.startswith(REFERENCE_PREFIX)
            if mode is GraphMode.TARGET:
                return not is_ref
            if mode is GraphMode.REFERENCE:
                return is_ref
            return True

        nodes = []
        links = []
        for key in sorted(self._nodes):
            if not _include(key):
                continue
            nodes.append({
                "id": key,
                "scenario": (
                    Scenario.REFERENCE.value
                    if key.startswith(REFERENCE_PREFIX)
                    else Scenario.TARGET.value
                ),
                "group": self._owners.get(key, "unassigned"),
            })
            for dependent in self._nodes[key].dependents:
                if _include(dependent):
                    links.append({"source": key, "target": dependent})

        return {"mode": mode.value, "nodes": nodes, "links": links}

    def dual_state_analysis(self) -> Dict[str, Any]:
        """Compare Target and Reference graph coverage."""
        target = self.export_graph(GraphMode.TARGET)
        reference = self.export_graph(GraphMode.REFERENCE)
        combined = self.export_graph(GraphMode.BOTH)

        target_nodes = len(target["nodes"])
        return {
            "target": {
                "node_count": target_nodes,
                "link_count": len(target["links"]),
            },
            "reference": {
                "node_count": len(reference["nodes"]),
                "link_count": len(reference["links"]),
            },
            "combined": {
                "node_count": len(combined["nodes"]),
                "link_count": len(combined["links"]),
            },
            "coverage_ratio": (
                len(reference["nodes"]) / target_nodes if target_nodes else 0.0
            ),
            "dual_state_compliant": len(reference["nodes"]) > 0,
        }

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def get_node(self, key: KeyLike) -> Optional[DependencyNode]:
        return self._nodes.get(_key(key))

    @property
    def count(self) -> int:
        return len(self._nodes)

    def clear(self) -> None:
        self._nodes.clear()
        self._owners.clear()
        self._dirty.clear()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ensure_node(self, key: str) -> None:
        if key not in self._nodes:
            self._nodes[key] = DependencyNode(key=key)


__all__ = [
    "DependencyRegistry",
]
