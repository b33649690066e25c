"""In-order traversal of the multiway index trees stored in ``.dbx`` files."""

from __future__ import annotations

from dataclasses import dataclass

from lib import dbx_bytes
from dbx_migration.readers.dbx_errors import Diagnostics, FormatError, TreeStructureError

TREE_NODE_SIZE = 0x27C
ITEM_COUNT_OFFSET = 0x11
_ITEMS_BASE = 6
_ITEM_WORDS = 3
MAX_NODE_ITEMS = (TREE_NODE_SIZE // 4 - _ITEMS_BASE) // _ITEM_WORDS
DEFAULT_MAX_DEPTH = 64


@dataclass(frozen=True)
class TreeNode:
    address: int
    child_address: int
    parent_address: int
    item_count: int
    items: tuple[tuple[int, int], ...]


def read_tree_node(data: bytes, address: int) -> TreeNode:
    """Decode the fixed-size node at ``address``; items are (value, child) pairs."""

    if address + TREE_NODE_SIZE > len(data):
        raise FormatError(f"tree node at 0x{address:X} runs past end of file", address)

    words = dbx_bytes.read_uint32_array(data, address, TREE_NODE_SIZE // 4)
    if words[0] != address:
        raise FormatError(
            f"wrong object marker: expected tree node 0x{address:X}, found 0x{words[0]:X}",
            address,
        )

    item_count = data[address + ITEM_COUNT_OFFSET]
    if item_count > MAX_NODE_ITEMS:
        raise FormatError(
            f"tree node at 0x{address:X} declares {item_count} items, at most "
            f"{MAX_NODE_ITEMS} fit",
            address,
        )

    items = []
    for index in range(item_count):
        base = _ITEMS_BASE + index * _ITEM_WORDS
        items.append((words[base], words[base + 1]))

    return TreeNode(
        address=address,
        child_address=words[2],
        parent_address=words[3],
        item_count=item_count,
        items=tuple(items),
    )


class _Frame:
    __slots__ = ("node", "position")

    def __init__(self, node: TreeNode) -> None:
        self.node = node
        self.position = -1


def read_tree_addresses(
    data: bytes,
    root_address: int,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
    diagnostics: Diagnostics | None = None,
) -> list[int]:
    """Return the value addresses of the tree rooted at ``root_address`` in order.

    A node's first-child subtree comes before its own items, and each item's
    subtree follows the item. The walk keeps an explicit stack so a corrupt,
    cyclic or absurdly deep tree ends in :class:`TreeStructureError`.
    """

    if diagnostics is None:
        diagnostics = Diagnostics()
    addresses: list[int] = []
    if not root_address:
        return addresses

    visited: set[int] = set()
    stack: list[_Frame] = []

    def enter(address: int) -> None:
        if address in visited:
            raise TreeStructureError(f"tree node 0x{address:X} visited twice", address)
        if len(stack) >= max_depth:
            raise TreeStructureError(
                f"tree deeper than {max_depth} levels at node 0x{address:X}", address
            )
        visited.add(address)
        stack.append(_Frame(read_tree_node(data, address)))

    enter(root_address)
    while stack:
        frame = stack[-1]
        node = frame.node

        if frame.position < 0:
            frame.position = 0
            if node.child_address:
                enter(node.child_address)
            continue

        if frame.position < len(node.items):
            value, child = node.items[frame.position]
            frame.position += 1
            if value == 0:
                diagnostics.warn(f"tree node item {frame.position - 1} value is 0", node.address)
            addresses.append(value)
            if child:
                enter(child)
            continue

        stack.pop()

    return addresses


__all__ = [
    "DEFAULT_MAX_DEPTH",
    "MAX_NODE_ITEMS",
    "TREE_NODE_SIZE",
    "TreeNode",
    "read_tree_addresses",
    "read_tree_node",
]
