"""Workspace forest reconstruction from flat parent-pointer records.

The backend stores each workspace with a nullable ``parent_id`` and does
not guarantee the links are acyclic or that every parent exists. Every
traversal here keeps a visited set so it terminates on any input:

* a dangling ``parent_id`` makes the node a root,
* a node reachable only through a cycle that passes back through an
  already visited ancestor is skipped by :meth:`WorkspaceTree.descendants_of`
  (under-counted, never counted twice),
* :meth:`WorkspaceTree.forest` promotes the first unreached node of a pure
  cycle to a root so every node still appears exactly once.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from ..config.settings import settings
from ..core.models import WorkspaceNode
from ..utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class TreeNode:
    """A workspace placed in the reconstructed forest."""

    node: WorkspaceNode
    depth: int
    children: List["TreeNode"] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.node.id


class WorkspaceTree:
    """Traversable view over a flat set of workspace records."""

    def __init__(self, nodes: Iterable[WorkspaceNode]) -> None:
        self._nodes: Dict[str, WorkspaceNode] = {}
        self._order: List[str] = []
        for node in nodes:
            if node.id in self._nodes:
                logger.warning(f"Duplicate workspace id {node.id}; keeping first record")
                continue
            self._nodes[node.id] = node
            self._order.append(node.id)
        self._children: Dict[str, List[str]] = defaultdict(list)
        for node_id in self._order:
            parent_id = self._nodes[node_id].parent_id
            if parent_id is not None:
                self._children[parent_id].append(node_id)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    @property
    def nodes_by_id(self) -> Dict[str, WorkspaceNode]:
        return dict(self._nodes)

    def get(self, node_id: str) -> Optional[WorkspaceNode]:
        return self._nodes.get(node_id)

    def descendants_of(self, node_id: str) -> List[str]:
        """Every node id below ``node_id`` (pre-order), excluding ``node_id``.

        Unknown ids yield an empty list.
        """
        if node_id not in self._nodes:
            return []
        result: List[str] = []
        visited: Set[str] = {node_id}
        stack = list(reversed(self._children.get(node_id, [])))
        while stack:
            current = stack.pop()
            if current in visited:
                continue
            visited.add(current)
            result.append(current)
            stack.extend(reversed(self._children.get(current, [])))
        return result

    def self_and_descendants(self, node_id: str) -> List[str]:
        if node_id not in self._nodes:
            return []
        return [node_id] + self.descendants_of(node_id)

    def path_to_root(self, node_id: str, stop_at: Optional[str] = None) -> List[str]:
        """Names from the top of the walk down to ``node_id``.

        The walk follows ``parent_id`` until ``stop_at`` (not included) or a
        node without a known parent. With ``stop_at`` set to the root, the
        result has one name per edge between the node and the root.
        """
        names: List[str] = []
        seen: Set[str] = set()
        current: Optional[str] = node_id
        while current is not None and current != stop_at and current not in seen:
            node = self._nodes.get(current)
            if node is None:
                break
            seen.add(current)
            names.append(node.name)
            current = node.parent_id
        names.reverse()
        return names

    def depth_of(self, node_id: str) -> int:
        """1 for a root, 0 for an unknown id."""
        return len(self.path_to_root(node_id))

    def can_create_child(self, parent_id: Optional[str], max_depth: Optional[int] = None) -> bool:
        """Whether a new workspace under ``parent_id`` stays within the depth limit."""
        limit = max_depth if max_depth is not None else settings.max_workspace_depth
        if parent_id is None:
            return limit >= 1
        return self.depth_of(parent_id) + 1 <= limit

    def roots(self) -> List[str]:
        """Nodes without a parent or whose parent is not in the record set."""
        return [
            node_id
            for node_id in self._order
            if self._nodes[node_id].parent_id is None or self._nodes[node_id].parent_id not in self._nodes
        ]

    def forest(self) -> List[TreeNode]:
        """Nested :class:`TreeNode` forest covering every node exactly once."""
        visited: Set[str] = set()
        forest: List[TreeNode] = []

        def attach(root_id: str) -> TreeNode:
            root = TreeNode(node=self._nodes[root_id], depth=1)
            visited.add(root_id)
            stack = [root]
            while stack:
                parent = stack.pop()
                for child_id in self._children.get(parent.id, []):
                    if child_id in visited:
                        continue
                    visited.add(child_id)
                    child = TreeNode(node=self._nodes[child_id], depth=parent.depth + 1)
                    parent.children.append(child)
                    stack.append(child)
            return root

        for root_id in self.roots():
            forest.append(attach(root_id))
        for node_id in self._order:
            if node_id not in visited:
                logger.warning(f"Workspace {node_id} is part of a parent cycle; promoting to root")
                forest.append(attach(node_id))
        return forest
