"""Flat parse tree storage plus helpers for walking it.

Nodes live in one growable list and refer to their children by offset, never
by object reference. A node's children always occupy one contiguous run
``[child_start, child_start + child_count)`` which is allocated in a single
step, after the parent and before any grandchild.

Node tags. ``Node.tag`` is a generic slot each symbol interprets on its own:

    decorated_statement   Decoration (NONE, COMMAND, BUILTIN)
    boolean_statement     BooleanKind (AND, OR, NOT)
    block_header          BlockKind (FOR, WHILE, FUNCTION, BEGIN)
    plain_statement       StatementFlags (BACKGROUND when `&` follows)
    string                ParseKeyword the token was consumed as, else NONE
    everything else       0
"""
from __future__ import annotations

from enum import IntEnum, IntFlag
from typing import Iterator, List, Optional, Sequence, Union

from lark import Token as LarkToken, Tree as LarkTree
from typing_extensions import TypeAlias

from .errors import InternalParseError
from .token_types import ParseKeyword, ParseTokenType


class Decoration(IntEnum):
    NONE = 0
    COMMAND = 1
    BUILTIN = 2


class BooleanKind(IntEnum):
    AND = 1
    OR = 2
    NOT = 3


class BlockKind(IntEnum):
    FOR = 1
    WHILE = 2
    FUNCTION = 3
    BEGIN = 4


class StatementFlags(IntFlag):
    NONE = 0
    BACKGROUND = 1


class Node:
    """One grammar symbol instance."""
    __slots__ = ('kind', 'source_start', 'source_length', 'child_start', 'child_count', 'tag')

    def __init__(self, kind: ParseTokenType, source_start: int = 0, source_length: int = 0,
                 child_start: int = 0, child_count: int = 0, tag: int = 0):
        self.kind = kind
        self.source_start = source_start
        self.source_length = source_length
        self.child_start = child_start
        self.child_count = child_count
        self.tag = tag

    @property
    def source_end(self) -> int:
        return self.source_start + self.source_length

    def has_source(self) -> bool:
        return self.source_length > 0

    def child_offset(self, which: int) -> int:
        if not 0 <= which < self.child_count:
            raise IndexError(f"{self.kind.name.lower()} has no child {which}")
        return self.child_start + which

    @property
    def keyword(self) -> ParseKeyword:
        if self.kind != ParseTokenType.STRING:
            return ParseKeyword.NONE
        return ParseKeyword(self.tag)

    def describe(self) -> str:
        result = self.kind.name.lower()
        if self.has_source():
            result += f" [{self.source_start}+{self.source_length}]"
        if self.child_count:
            result += f" children={self.child_count}"
        if self.tag:
            result += f" tag={self.tag}"
        return result

    def __repr__(self) -> str:
        return f'Node({self.describe()})'


NodeOffset: TypeAlias = int


class NodeTree:
    """Append-only node store. Offsets stay valid however large it grows."""

    def __init__(self) -> None:
        self._nodes: List[Node] = []
        self._frozen = False

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def _check_writable(self) -> None:
        if self._frozen:
            raise InternalParseError("parse tree is frozen")

    def allocate(self, kind: ParseTokenType, source_start: int = 0, source_length: int = 0) -> NodeOffset:
        """Append a childless node and return its offset."""
        self._check_writable()
        self._nodes.append(Node(kind, source_start, source_length))
        return len(self._nodes) - 1

    def append_child_block(self, parent: NodeOffset, children: Sequence[Node]) -> range:
        """Append ``children`` as one run and make it ``parent``'s child range."""
        self._check_writable()
        node = self[parent]
        if node.child_count:
            raise InternalParseError(
                f"{node.kind.name.lower()} already has children", node.source_start
            )

        start = len(self._nodes)
        self._nodes.extend(children)
        node.child_start = start
        node.child_count = len(children)
        return range(start, start + len(children))

    def reserve_children(self, parent: NodeOffset, kinds: Sequence[ParseTokenType],
                         source_start: int = 0) -> range:
        """Allocate one empty child per kind; they are filled in afterwards."""
        return self.append_child_block(
            parent, [Node(kind, source_start) for kind in kinds]
        )

    def set_source(self, offset: NodeOffset, source_start: int, source_length: int) -> None:
        self._check_writable()
        node = self[offset]
        node.source_start = source_start
        node.source_length = source_length

    def set_tag(self, offset: NodeOffset, tag: int) -> None:
        self._check_writable()
        self[offset].tag = int(tag)

    def finish_span(self, offset: NodeOffset, empty_start: int) -> None:
        """Set a node's span to the hull of its children that cover source.

        A node with no such children becomes a zero-length node at
        ``empty_start``.
        """
        self._check_writable()
        node = self[offset]
        first: Optional[Node] = None
        last: Optional[Node] = None
        for child in self.children(offset):
            if child.has_source():
                if first is None:
                    first = child
                last = child

        if first is None or last is None:
            node.source_start = empty_start
            node.source_length = 0
            return

        node.source_start = first.source_start
        node.source_length = last.source_end - first.source_start

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def __getitem__(self, offset: NodeOffset) -> Node:
        return self._nodes[offset]

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[Node]:
        return iter(self._nodes)

    def size(self) -> int:
        return len(self._nodes)

    @property
    def root(self) -> Node:
        return self._nodes[0]

    def child_offsets(self, offset: NodeOffset) -> range:
        node = self[offset]
        return range(node.child_start, node.child_start + node.child_count)

    def children(self, offset: NodeOffset) -> List[Node]:
        return [self._nodes[i] for i in self.child_offsets(offset)]

    def child(self, offset: NodeOffset, which: int) -> Node:
        return self[self[offset].child_offset(which)]

    def find(self, kind: ParseTokenType, start: NodeOffset = 0) -> List[NodeOffset]:
        """Offsets of every node of ``kind`` in the subtree at ``start``, in source order."""
        found: List[NodeOffset] = []
        for offset in self.walk(start):
            if self[offset].kind == kind:
                found.append(offset)
        return found

    def walk(self, start: NodeOffset = 0) -> Iterator[NodeOffset]:
        """Pre-order traversal without recursion; list chains can be very deep."""
        stack = [start]
        while stack:
            offset = stack.pop()
            yield offset
            stack.extend(reversed(self.child_offsets(offset)))

    def source_text(self, offset: NodeOffset, source: str) -> str:
        node = self[offset]
        return source[node.source_start:node.source_end]

    # ------------------------------------------------------------------
    # Invariants
    # ------------------------------------------------------------------

    def check_invariants(self) -> None:
        """Raise InternalParseError if the tree breaks a structural invariant."""
        if not self._nodes:
            raise InternalParseError("parse tree has no root")
        if self.root.kind != ParseTokenType.JOB_LIST:
            raise InternalParseError("root is not a job_list")

        owner: List[Optional[NodeOffset]] = [None] * len(self._nodes)
        for offset, node in enumerate(self._nodes):
            if not node.child_count:
                continue
            if node.child_start <= offset or node.child_start + node.child_count > len(self._nodes):
                raise InternalParseError(
                    f"child range of {node.kind.name.lower()} at {offset} is out of bounds",
                    node.source_start,
                )
            for child in self.child_offsets(offset):
                if owner[child] is not None:
                    raise InternalParseError(
                        f"node {child} is claimed by {owner[child]} and {offset}",
                        node.source_start,
                    )
                owner[child] = offset
            self._check_spans(offset, is_root=offset == 0)

        for offset in range(1, len(self._nodes)):
            if owner[offset] is None:
                raise InternalParseError(f"node {offset} has no parent", self[offset].source_start)

    def _check_spans(self, offset: NodeOffset, is_root: bool) -> None:
        node = self[offset]
        sourced = [child for child in self.children(offset) if child.has_source()]
        prev_end = -1
        for child in sourced:
            if child.source_start < prev_end:
                raise InternalParseError(
                    f"children of {node.kind.name.lower()} overlap or are out of order",
                    child.source_start, child.source_length,
                )
            if child.source_start < node.source_start or child.source_end > node.source_end:
                raise InternalParseError(
                    f"child span escapes its {node.kind.name.lower()}",
                    child.source_start, child.source_length,
                )
            prev_end = child.source_end

        if is_root or not sourced:
            return
        if node.source_start != sourced[0].source_start or node.source_end != sourced[-1].source_end:
            raise InternalParseError(
                f"{node.kind.name.lower()} span is not the hull of its children",
                node.source_start, node.source_length,
            )

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def pretty(self, source: str, indent: str = '  ') -> str:
        """Return an indented dump of the tree, terminals with their text."""
        lines: List[str] = []
        stack = [(0, 0)] if self._nodes else []
        while stack:
            offset, level = stack.pop()
            node = self[offset]
            prefix = indent * level
            if node.kind.is_terminal:
                lines.append(f'{prefix}{node.kind.name}\t{self.source_text(offset, source)!r}\n')
            else:
                tag = f' <{node.tag}>' if node.tag else ''
                lines.append(f'{prefix}{node.kind.name.lower()}{tag}\n')
            stack.extend((child, level + 1) for child in reversed(self.child_offsets(offset)))
        return ''.join(lines)

    def __repr__(self) -> str:
        return f'NodeTree(size={len(self._nodes)})'


LarkNode: TypeAlias = Union[LarkTree, LarkToken]


def to_lark(tree: NodeTree, source: str, offset: NodeOffset = 0) -> LarkTree:
    """Export the subtree at ``offset`` as a lark Tree.

    Nonterminals become ``Tree(symbol_name, children)``; terminals become
    ``Token(KIND, text)`` carrying their source offsets.
    """
    if tree[offset].kind.is_terminal:
        raise ValueError("to_lark() needs a nonterminal root")

    # Post-order without recursion
    built: dict[NodeOffset, LarkNode] = {}
    stack = [(offset, False)]
    while stack:
        current, expanded = stack.pop()
        node = tree[current]

        if node.kind.is_terminal:
            built[current] = LarkToken(
                node.kind.name,
                tree.source_text(current, source),
                start_pos=node.source_start,
                end_pos=node.source_end,
            )
            continue

        if not expanded:
            stack.append((current, True))
            stack.extend((child, False) for child in tree.child_offsets(current))
            continue

        kids = [built.pop(child) for child in tree.child_offsets(current)]
        built[current] = LarkTree(node.kind.name.lower(), kids)

    result = built[offset]
    assert isinstance(result, LarkTree)
    return result
