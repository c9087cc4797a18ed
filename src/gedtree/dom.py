"""
DOM - tree model for parsed GEDCOM.

Every level-0 line starts a record, level-1 lines are its fields, level-2
and level-3 lines are items. Lines at level 4 and deeper are not broken
down; they are kept verbatim in the `lines` buffer of the level-3 item
that encloses them.

Nodes produced by one parse live in a NodeArena and refer to their parent
and children by arena index, so a tree has no reference cycles and can be
dropped as a whole by dropping its arena.

Key invariant: reassembling a node (`assemble()`) gives back exactly the
source text it was parsed from, line terminators included.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .lines import Line

if TYPE_CHECKING:
    from .document import Document

MAX_STRUCTURED_LEVEL = 3

KIND_BY_LEVEL = {0: "record", 1: "field", 2: "item", 3: "item"}


class NodeArena:
    """Growable store of the nodes built by one parse."""

    def __init__(self, document: Document | None = None):
        self.document = document
        self._nodes: list[Node] = []

    def new(
        self,
        level: int,
        line: Line,
        tag: str | None,
        data: str = "",
        key: str | None = None,
    ) -> Node:
        node = Node(level=level, line=line, tag=tag, data=data, key=key,
                    arena=self, id=len(self._nodes))
        self._nodes.append(node)
        return node

    def __getitem__(self, node_id: int) -> Node:
        return self._nodes[node_id]

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[Node]:
        return iter(self._nodes)


@dataclass(eq=False)
class Node:
    """A record, field or item."""
    level: int
    line: Line
    tag: str | None
    data: str = ""
    key: str | None = None
    lines: list[Line] | None = None  # verbatim deeper lines, level 3 only
    arena: NodeArena | None = field(default=None, repr=False)
    id: int = field(default=-1, repr=False)
    parent_id: int | None = field(default=None, repr=False)
    child_ids: list[int] = field(default_factory=list, repr=False)
    _memo: dict[str, Node] = field(default_factory=dict, init=False, repr=False)

    @property
    def kind(self) -> str:
        return KIND_BY_LEVEL.get(self.level, "item")

    @property
    def pos(self) -> int:
        """Position of the node's first line in its source."""
        return self.line.pos

    @property
    def document(self) -> Document | None:
        return self.arena.document if self.arena is not None else None

    @property
    def children(self) -> list[Node]:
        if self.arena is None:
            return []
        return [self.arena[i] for i in self.child_ids]

    @property
    def parent(self) -> Node | None:
        if self.arena is None or self.parent_id is None:
            return None
        return self.arena[self.parent_id]

    def add_child(self, child: Node) -> Node:
        """Link a node from the same arena as the last child and return it."""
        if child.arena is not self.arena:
            raise ValueError("Child node belongs to a different arena")
        child.parent_id = self.id
        self.child_ids.append(child.id)
        return child

    def get(self, tag: str) -> Node | None:
        """
        First child whose tag is `tag`, or None.

        A hit is remembered on the node, so asking again for the same tag
        does not scan the children a second time.
        """
        hit = self._memo.get(tag)
        if hit is not None:
            return hit
        for child in self.children:
            if child.tag == tag:
                self._memo[tag] = child
                return child
        return None

    def get_all(self, tag: str) -> list[Node]:
        """All children whose tag is `tag`, in file order."""
        return [child for child in self.children if child.tag == tag]

    def __getitem__(self, tag: str) -> Node:
        node = self.get(tag)
        if node is None:
            raise KeyError(tag)
        return node

    def __contains__(self, tag: str) -> bool:
        return self.get(tag) is not None

    def __iter__(self) -> Iterator[Node]:
        return iter(self.children)

    def __len__(self) -> int:
        return len(self.child_ids)

    def __bool__(self) -> bool:
        # A leaf is still a node; do not let __len__ make it falsy.
        return True

    def depth_first(self) -> Iterator[Node]:
        """Traverse tree depth-first, yielding self then children."""
        yield self
        for child in self.children:
            yield from child.depth_first()

    def breadth_first(self) -> Iterator[Node]:
        """Traverse tree breadth-first."""
        queue: deque[Node] = deque([self])
        while queue:
            node = queue.popleft()
            yield node
            queue.extend(node.children)

    def raw_lines(self) -> Iterator[Line]:
        """Every source line of this subtree, in file order."""
        yield self.line
        if self.lines:
            yield from self.lines
        for child in self.children:
            yield from child.raw_lines()

    def assemble(self) -> str:
        """Source text of this subtree, terminators included."""
        return "".join(line.raw for line in self.raw_lines())
