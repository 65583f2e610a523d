"""Pane tree management: split, kill, resize, navigation and layout.

The tree lives in a PaneArena. Every node is either a leaf (``Single``) that
hosts a command, or a ``Split`` that divides its rectangle among two or more
children in proportion to their weights.

Invariants (checked by PaneManager.validate()):
    - exactly one node has no parent (the root)
    - every Split has at least two children
    - every weight is >= 1
    - the active key is a live leaf
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .arena import PaneArena, PaneKey
from .exceptions import InvalidTreeError

logger = logging.getLogger(__name__)


class Orientation(Enum):
    """How a split lays out its children."""
    HORIZONTAL = "Horizontal"  # side by side
    VERTICAL = "Vertical"  # stacked


class Direction(Enum):
    """Cardinal direction for navigation and resizing."""
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"

    @property
    def axis(self) -> Orientation:
        """The split orientation this direction resizes along.

        LEFT/RIGHT act on side-by-side (HORIZONTAL) splits and UP/DOWN on
        stacked ones, matching the border each key moves on screen.
        """
        if self in (Direction.LEFT, Direction.RIGHT):
            return Orientation.HORIZONTAL
        return Orientation.VERTICAL


@dataclass(frozen=True)
class Rect:
    """Screen rectangle in terminal cells."""
    x: int
    y: int
    width: int
    height: int

    @property
    def area(self) -> int:
        return self.width * self.height

    def center(self) -> tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)


@dataclass
class Single:
    """Leaf node. Hosts one command."""


@dataclass
class Split:
    """Container node dividing its space among children."""
    orientation: Orientation
    children: list[PaneKey] = field(default_factory=list)


@dataclass
class PaneNode:
    data: Single | Split
    parent: PaneKey | None = None
    weight: int = 1

    @property
    def is_leaf(self) -> bool:
        return isinstance(self.data, Single)


class PaneManager:
    """Owns the pane tree and the active selection.

    Structural operations return True when the tree changed and False for a
    harmless no-op (last pane, no matching split, unknown key).
    """

    def __init__(self) -> None:
        self.nodes: PaneArena[PaneNode] = PaneArena()
        root_key = self.nodes.insert(PaneNode(Single()))
        self.active: PaneKey = root_key
        self.friendly_ids: dict[PaneKey, int] = {root_key: 1}
        self.id_counter = 2

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def root(self) -> PaneKey | None:
        for key, node in self.nodes.items():
            if node.parent is None:
                return key
        return None

    def leaves(self) -> list[PaneKey]:
        """All leaf keys in left-to-right depth-first order."""
        keys: list[PaneKey] = []
        root = self.root()
        if root is not None:
            self._collect_leaves(root, keys)
        return keys

    def _collect_leaves(self, key: PaneKey, keys: list[PaneKey]) -> None:
        node = self.nodes.get(key)
        if node is None:
            return
        if isinstance(node.data, Split):
            for child in node.data.children:
                self._collect_leaves(child, keys)
        else:
            keys.append(key)

    def is_leaf(self, key: PaneKey) -> bool:
        node = self.nodes.get(key)
        return node is not None and node.is_leaf

    def friendly_id(self, key: PaneKey) -> int | None:
        return self.friendly_ids.get(key)

    def key_for_friendly_id(self, friendly_id: int) -> PaneKey | None:
        for key, fid in self.friendly_ids.items():
            if fid == friendly_id:
                return key
        return None

    # ------------------------------------------------------------------
    # Structural edits
    # ------------------------------------------------------------------

    def split(self, orientation: Orientation) -> bool:
        """Split the active leaf; the new leaf becomes active."""
        active_key = self.active
        node = self.nodes.get(active_key)
        if node is None or not node.is_leaf:
            return False

        logger.info("Splitting pane %r (%s)", active_key, orientation.value)
        parent_key = node.parent

        split_key = self.nodes.insert(
            PaneNode(Split(orientation, [active_key]), parent=parent_key, weight=node.weight)
        )
        new_key = self.nodes.insert(PaneNode(Single(), parent=split_key))
        self.nodes[split_key].data.children.append(new_key)

        node.parent = split_key
        node.weight = 1

        if parent_key is not None:
            self._replace_child(parent_key, active_key, split_key)

        self.active = new_key
        self.friendly_ids[new_key] = self.id_counter
        self.id_counter += 1

        logger.debug("%s", self)
        return True

    def kill(self) -> bool:
        return self.kill_active() is not None

    def kill_active(self) -> PaneKey | None:
        """Remove the active leaf and return its key.

        Returns None (and changes nothing) when the active pane is the last one.
        A split left with a single child is collapsed into its parent's slot.
        """
        active_key = self.active
        node = self.nodes.get(active_key)
        if node is None:
            return None
        if node.parent is None:
            logger.info("Can't kill last pane %r", active_key)
            return None

        logger.info("Killing pane %r", active_key)
        parent_key = node.parent
        parent = self.nodes[parent_key]
        children = parent.data.children
        children.remove(active_key)

        if len(children) == 1:
            survivor_key = children[0]
            survivor = self.nodes[survivor_key]
            grandparent_key = parent.parent
            survivor.parent = grandparent_key
            survivor.weight = parent.weight
            if grandparent_key is not None:
                self._replace_child(grandparent_key, parent_key, survivor_key)
            self.nodes.remove(parent_key)

        self.nodes.remove(active_key)
        self.friendly_ids.pop(active_key, None)

        # Last leaf in traversal order, not the previously active pane.
        self.active = self.leaves()[-1]

        logger.debug("%s", self)
        return active_key

    def cycle(self) -> bool:
        """Move the selection to the next leaf in traversal order, wrapping."""
        keys = self.leaves()
        if not keys:
            return False
        try:
            pos = keys.index(self.active)
        except ValueError:
            self.active = keys[0]
            return True
        self.active = keys[(pos + 1) % len(keys)]
        return True

    def resize(self, direction: Direction, amount: int) -> bool:
        """Shift weight between the active pane and a sibling.

        Walks up from the active leaf to the nearest split laid out along
        ``direction``'s axis. There the current child gains ``amount`` and its
        previous sibling (next sibling if it is first) loses it, both clamped
        to a minimum weight of 1.
        """
        current = self.active
        while True:
            node = self.nodes.get(current)
            if node is None or node.parent is None:
                return False

            parent = self.nodes[node.parent]
            split = parent.data
            if not isinstance(split, Split):
                return False

            if split.orientation is not direction.axis:
                current = node.parent
                continue

            index = split.children.index(current)
            sibling_key = split.children[1] if index == 0 else split.children[index - 1]
            sibling = self.nodes[sibling_key]

            new_weight = max(node.weight + amount, 1)
            new_sibling_weight = max(sibling.weight - amount, 1)
            if new_weight == node.weight and new_sibling_weight == sibling.weight:
                return False

            node.weight = new_weight
            sibling.weight = new_sibling_weight
            return True

    def _replace_child(self, parent_key: PaneKey, old: PaneKey, new: PaneKey) -> None:
        parent = self.nodes.get(parent_key)
        if parent is None or not isinstance(parent.data, Split):
            return
        children = parent.data.children
        if old in children:
            children[children.index(old)] = new

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------

    def bounds(self, total: Rect) -> dict[PaneKey, Rect]:
        """Map every leaf to its rectangle inside ``total``.

        Split boundaries are computed from cumulative weights with integer
        division, so adjacent rectangles always share an edge and the leaves
        cover ``total`` exactly.
        """
        result: dict[PaneKey, Rect] = {}
        root = self.root()
        if root is not None:
            self._layout(root, total, result)
        return result

    def _layout(self, key: PaneKey, rect: Rect, result: dict[PaneKey, Rect]) -> None:
        node = self.nodes.get(key)
        if node is None:
            return
        if not isinstance(node.data, Split):
            result[key] = rect
            return

        children = node.data.children
        weights = [self.nodes[child].weight for child in children]
        total_weight = sum(weights)
        horizontal = node.data.orientation is Orientation.HORIZONTAL
        extent = rect.width if horizontal else rect.height

        start = 0
        cumulative = 0
        for child, weight in zip(children, weights):
            cumulative += weight
            end = extent * cumulative // total_weight
            if horizontal:
                child_rect = Rect(rect.x + start, rect.y, end - start, rect.height)
            else:
                child_rect = Rect(rect.x, rect.y + start, rect.width, end - start)
            self._layout(child, child_rect, result)
            start = end

    def navigate(self, direction: Direction, total: Rect) -> bool:
        """Select the nearest leaf in ``direction`` by center distance."""
        bounds = self.bounds(total)
        active_rect = bounds.get(self.active)
        if active_rect is None:
            return False

        ax, ay = active_rect.center()
        best: PaneKey | None = None
        best_distance = 0.0

        for key in self.nodes.keys():
            rect = bounds.get(key)
            if rect is None or key == self.active:
                continue
            cx, cy = rect.center()
            if direction is Direction.UP:
                toward = cy < ay
            elif direction is Direction.DOWN:
                toward = cy > ay
            elif direction is Direction.LEFT:
                toward = cx < ax
            else:
                toward = cx > ax
            if not toward:
                continue
            distance = (cx - ax) ** 2 + (cy - ay) ** 2
            if best is None or distance < best_distance:
                best = key
                best_distance = distance

        if best is None:
            return False
        self.active = best
        return True

    # ------------------------------------------------------------------
    # Validation and persistence
    # ------------------------------------------------------------------

    def validate(self) -> None:
        """Check every structural invariant.

        Raises:
            InvalidTreeError: Describing the first violation found.
        """
        roots = [key for key, node in self.nodes.items() if node.parent is None]
        if len(roots) != 1:
            raise InvalidTreeError(f"Expected exactly one root, found {len(roots)}")

        seen: set[PaneKey] = set()
        stack = [roots[0]]
        while stack:
            key = stack.pop()
            if key in seen:
                raise InvalidTreeError(f"Node {key!r} is reachable more than once")
            seen.add(key)
            node = self.nodes.get(key)
            if node is None:
                raise InvalidTreeError(f"Dangling child reference {key!r}")
            if node.weight < 1:
                raise InvalidTreeError(f"Node {key!r} has weight {node.weight}")
            if isinstance(node.data, Split):
                if len(node.data.children) < 2:
                    raise InvalidTreeError(f"Split {key!r} has fewer than two children")
                for child in node.data.children:
                    child_node = self.nodes.get(child)
                    if child_node is not None and child_node.parent != key:
                        raise InvalidTreeError(f"Node {child!r} has the wrong parent")
                    stack.append(child)
            elif key not in self.friendly_ids:
                raise InvalidTreeError(f"Leaf {key!r} has no friendly id")

        if len(seen) != len(self.nodes):
            raise InvalidTreeError("Tree contains unreachable nodes")
        if not self.is_leaf(self.active):
            raise InvalidTreeError(f"Active pane {self.active!r} is not a live leaf")

    def to_dict(self) -> dict[str, Any]:
        nodes = []
        for key, node in self.nodes.items():
            entry: dict[str, Any] = {
                "key": key.to_token(),
                "parent": node.parent.to_token() if node.parent is not None else None,
                "weight": node.weight,
            }
            if isinstance(node.data, Split):
                entry["kind"] = "Split"
                entry["orientation"] = node.data.orientation.value
                entry["children"] = [child.to_token() for child in node.data.children]
            else:
                entry["kind"] = "Single"
            nodes.append(entry)

        return {
            "active": self.active.to_token(),
            "id_counter": self.id_counter,
            "friendly_ids": {key.to_token(): fid for key, fid in self.friendly_ids.items()},
            "nodes": nodes,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PaneManager":
        """Rebuild a manager from to_dict() output.

        Raises:
            InvalidTreeError: If the data is malformed or the tree is invalid.
        """
        manager = cls.__new__(cls)
        manager.nodes = PaneArena()
        try:
            for entry in data["nodes"]:
                key = PaneKey.from_token(entry["key"])
                parent = entry.get("parent")
                if entry["kind"] == "Split":
                    node_data: Single | Split = Split(
                        Orientation(entry["orientation"]),
                        [PaneKey.from_token(child) for child in entry["children"]],
                    )
                elif entry["kind"] == "Single":
                    node_data = Single()
                else:
                    raise InvalidTreeError(f"Unknown node kind {entry['kind']!r}")
                manager.nodes.insert_at(
                    key,
                    PaneNode(
                        node_data,
                        parent=PaneKey.from_token(parent) if parent is not None else None,
                        weight=int(entry.get("weight", 1)),
                    ),
                )
            manager.active = PaneKey.from_token(data["active"])
            manager.friendly_ids = {
                PaneKey.from_token(token): int(fid)
                for token, fid in data["friendly_ids"].items()
            }
            manager.id_counter = int(data["id_counter"])
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise InvalidTreeError(f"Malformed pane tree: {e}") from e

        # Drop ids for panes that no longer exist and keep the counter ahead of
        # every id in use, so a new pane can never collide with a restored one.
        manager.friendly_ids = {
            key: fid for key, fid in manager.friendly_ids.items() if manager.is_leaf(key)
        }
        if manager.friendly_ids:
            manager.id_counter = max(manager.id_counter, max(manager.friendly_ids.values()) + 1)

        manager.validate()
        return manager

    def __str__(self) -> str:
        lines = ["--- Pane Tree Structure ---"]
        root = self.root()
        if root is None:
            lines.append("Error: No root node found.")
        else:
            lines.append(f"Active pane: {self.active!r}")
            self._format_node(root, 0, lines)
        lines.append("---------------------------")
        return "\n".join(lines)

    def _format_node(self, key: PaneKey, depth: int, lines: list[str]) -> None:
        node = self.nodes.get(key)
        if node is None:
            return
        indent = "  " * depth
        if isinstance(node.data, Split):
            lines.append(
                f"{indent}[{key!r}] Split ({node.data.orientation.value}) "
                f"Children: {len(node.data.children)}, Weight: {node.weight}"
            )
            for child in node.data.children:
                self._format_node(child, depth + 1, lines)
        else:
            lines.append(
                f"{indent}[{key!r}] Single ID: {self.friendly_ids.get(key, 0)}, Weight: {node.weight}"
            )
