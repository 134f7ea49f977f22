"""Parses the indented accessibility text dump into a node tree.

A snapshot line looks like::

    - button "Select" [ref=e12] [cursor=pointer]:

Two spaces of indentation per tree level. Lines that carry no role token
(``- /url: /s/pages``, bare text) are kept as text-only nodes so that
document order, and therefore search-window counting, follows the dump
line for line.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterator, Optional

_INDENT_WIDTH = 2

_LINE_RE = re.compile(
    r'^(?P<indent>\s*)-\s+(?P<role>[A-Za-z][\w-]*)'
    r'(?:\s+"(?P<name>(?:[^"\\]|\\.)*)")?'
    r'(?P<rest>.*)$'
)
_ATTR_RE = re.compile(r'\[(?P<key>[\w-]+)(?:=(?P<value>[^\]]*))?\]')
_REF_VALUE_RE = re.compile(r'^e\d+$')
_ESCAPE_RE = re.compile(r'\\(.)')


@dataclass(frozen=True)
class ElementRef:
    """Opaque per-snapshot handle to one accessible node."""
    ref: str
    role: str
    name: str
    page_name: str = ""
    snapshot_id: int = 0

    def __str__(self) -> str:
        return f'{self.role} "{self.name}" [ref={self.ref}]'


@dataclass
class SnapshotNode:
    index: int  # position in document order
    depth: int
    line: str
    role: Optional[str] = None
    name: str = ""
    ref: Optional[str] = None
    attributes: dict[str, str] = field(default_factory=dict)
    text: str = ""  # inline text after the trailing colon
    children: list["SnapshotNode"] = field(default_factory=list)
    parent: Optional["SnapshotNode"] = field(default=None, repr=False, compare=False)


class Snapshot:
    """A parsed accessibility snapshot of one page at one point in time."""

    def __init__(
        self,
        nodes: list[SnapshotNode],
        roots: list[SnapshotNode],
        page_name: str = "",
        snapshot_id: int = 0,
        text: str = "",
    ):
        self.nodes = nodes
        self.roots = roots
        self.page_name = page_name
        self.snapshot_id = snapshot_id
        self.text = text
        self._by_ref = {n.ref: n for n in nodes if n.ref}

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator[SnapshotNode]:
        return iter(self.nodes)

    def node_for_ref(self, ref: str) -> SnapshotNode | None:
        return self._by_ref.get(ref)

    def element_ref(self, node: SnapshotNode) -> ElementRef:
        if not node.ref:
            raise ValueError(f"Snapshot line has no ref: {node.line.strip()}")
        return ElementRef(
            ref=node.ref,
            role=node.role or "",
            name=node.name,
            page_name=self.page_name,
            snapshot_id=self.snapshot_id,
        )


def parse_snapshot(text: str, page_name: str = "", snapshot_id: int = 0) -> Snapshot:
    """Parse a textual accessibility dump into a Snapshot.

    Ref ids must be unique within one dump; a repeated id means the text
    was stitched from two captures and is rejected.
    """
    nodes: list[SnapshotNode] = []
    roots: list[SnapshotNode] = []
    stack: list[SnapshotNode] = []
    seen_refs: set[str] = set()

    for raw in text.splitlines():
        if not raw.strip():
            continue
        node = _parse_line(raw, len(nodes))
        if node.ref:
            if node.ref in seen_refs:
                raise ValueError(f"Duplicate ref '{node.ref}' in snapshot")
            seen_refs.add(node.ref)

        while stack and stack[-1].depth >= node.depth:
            stack.pop()
        if stack:
            node.parent = stack[-1]
            stack[-1].children.append(node)
        else:
            roots.append(node)
        stack.append(node)
        nodes.append(node)

    return Snapshot(nodes, roots, page_name=page_name, snapshot_id=snapshot_id, text=text)


def _parse_line(raw: str, index: int) -> SnapshotNode:
    indent = len(raw) - len(raw.lstrip(" "))
    depth = indent // _INDENT_WIDTH
    match = _LINE_RE.match(raw)
    if not match:
        return SnapshotNode(index=index, depth=depth, line=raw, text=raw.strip().lstrip("- "))

    rest = match.group("rest") or ""
    attributes: dict[str, str] = {}
    for attr in _ATTR_RE.finditer(rest):
        attributes[attr.group("key")] = attr.group("value") if attr.group("value") is not None else ""

    ref = attributes.pop("ref", None)
    if ref is not None and not _REF_VALUE_RE.match(ref):
        ref = None

    inline_text = ""
    tail = _ATTR_RE.sub("", rest).strip()
    if tail.startswith(":"):
        inline_text = tail[1:].strip()

    name = _ESCAPE_RE.sub(r"\1", match.group("name") or "")
    return SnapshotNode(
        index=index,
        depth=depth,
        line=raw,
        role=match.group("role"),
        name=name,
        ref=ref,
        attributes=attributes,
        text=inline_text,
    )
