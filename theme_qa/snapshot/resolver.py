"""Finds the control that belongs to a row in an accessibility snapshot.

Row/control association is approximated by proximity in document order:
once a row line matches, the resolver scans at most ``search_window``
nodes in one direction for the first actionable control. That fits
list-row action menus and theme cards; deeply nested layouts may need a
larger window or a tighter row matcher.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal, Optional, Sequence

from theme_qa.errors import ControlNotFound, RowNotFound, StaleReferenceError
from theme_qa.snapshot.model import ElementRef, Snapshot, SnapshotNode

if TYPE_CHECKING:
    from theme_qa.models.config import ControlLookup

logger = logging.getLogger(__name__)

Direction = Literal["forward", "backward"]

FOUND = "found"
ROW_NOT_FOUND = "row_not_found"
CONTROL_NOT_FOUND = "control_not_found"


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


class NodeMatcher:
    """Predicate over snapshot nodes."""

    def matches(self, node: SnapshotNode) -> bool:
        raise NotImplementedError

    def describe(self) -> str:
        return type(self).__name__

    def __call__(self, node: SnapshotNode) -> bool:
        return self.matches(node)

    def __str__(self) -> str:
        return self.describe()


@dataclass(frozen=True)
class RoleMatcher(NodeMatcher):
    """Matches by role and, optionally, accessible name (substring unless exact).

    An empty ``roles`` tuple accepts any node that has a role.
    """
    roles: tuple[str, ...]
    name: Optional[str] = None
    exact: bool = False

    def matches(self, node: SnapshotNode) -> bool:
        if node.role is None:
            return False
        if self.roles and node.role not in self.roles:
            return False
        if self.name is None:
            return True
        if self.exact:
            return node.name.strip().lower() == self.name.lower()
        return self.name.lower() in node.name.lower()

    def describe(self) -> str:
        roles = "|".join(self.roles) or "*"
        if self.name is None:
            return roles
        op = "==" if self.exact else "~"
        return f'{roles} name{op}"{self.name}"'


@dataclass(frozen=True)
class QuotedTextMatcher(NodeMatcher):
    """Matches a line that contains ``"text"`` (the text in double quotes)."""
    text: str

    def matches(self, node: SnapshotNode) -> bool:
        return f'"{self.text}"' in node.line

    def describe(self) -> str:
        return f'line contains "{self.text}"'


@dataclass(frozen=True)
class AllOf(NodeMatcher):
    matchers: tuple[NodeMatcher, ...]

    def matches(self, node: SnapshotNode) -> bool:
        return all(m.matches(node) for m in self.matchers)

    def describe(self) -> str:
        return " & ".join(m.describe() for m in self.matchers)


@dataclass(frozen=True)
class AnyOf(NodeMatcher):
    matchers: tuple[NodeMatcher, ...]

    def matches(self, node: SnapshotNode) -> bool:
        return any(m.matches(node) for m in self.matchers)

    def describe(self) -> str:
        return " | ".join(m.describe() for m in self.matchers)


def matchers_from_lookup(lookup: ControlLookup, **params: str) -> tuple[NodeMatcher, NodeMatcher]:
    """Build (row, control) matchers from a configured lookup.

    ``params`` fill ``{id}`` / ``{theme}`` placeholders in the row fields.
    """
    row_parts: list[NodeMatcher] = []
    if lookup.row_quoted_text is not None:
        row_parts.append(QuotedTextMatcher(lookup.row_quoted_text.format(**params)))
    if lookup.row_role is not None or lookup.row_name is not None:
        roles = (lookup.row_role,) if lookup.row_role else ()
        name = lookup.row_name.format(**params) if lookup.row_name is not None else None
        row_parts.append(RoleMatcher(roles, name=name))
    if not row_parts:
        raise ValueError("Lookup needs a row role, name or quoted text")
    row = row_parts[0] if len(row_parts) == 1 else AllOf(tuple(row_parts))

    control = RoleMatcher(
        tuple(lookup.control_roles),
        name=lookup.control_name,
        exact=lookup.control_name_exact,
    )
    return row, control


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


class ControlSearchResult:
    """Outcome of one row -> control search."""

    def __init__(
        self,
        status: str,
        ref: ElementRef | None = None,
        row: SnapshotNode | None = None,
        control: SnapshotNode | None = None,
        row_matcher: str = "",
        control_matcher: str = "",
        search_window: int = 0,
        direction: str = "forward",
    ):
        self.status = status
        self.ref = ref
        self.row = row
        self.control = control
        self.row_matcher = row_matcher
        self.control_matcher = control_matcher
        self.search_window = search_window
        self.direction = direction

    @property
    def found(self) -> bool:
        return self.status == FOUND

    def require(self) -> ElementRef:
        """Return the ref or raise the error matching the failure status."""
        if self.status == ROW_NOT_FOUND:
            raise RowNotFound("No snapshot line matches the row", self.row_matcher)
        if self.status == CONTROL_NOT_FOUND:
            raise ControlNotFound(
                f"Row matched at line {self.row.index if self.row else '?'} but no control "
                f"within {self.search_window} lines {self.direction}",
                self.row_matcher, self.control_matcher, self.search_window,
            )
        return self.ref


def find_control_near_row(
    snapshot: Snapshot,
    row_matcher: NodeMatcher,
    control_matcher: NodeMatcher,
    search_window: int,
    direction: Direction = "backward",
) -> ControlSearchResult:
    """Find the first row matching ``row_matcher``, then its nearest control.

    The scan covers at most ``search_window`` nodes after (``forward``) or
    before (``backward``) the row, in document order, and only considers
    nodes that carry a ref. The row itself is never the control.
    """
    if direction not in ("forward", "backward"):
        raise ValueError(f"Unknown direction: {direction}")
    if search_window < 0:
        raise ValueError("search_window must be >= 0")

    desc = dict(
        row_matcher=row_matcher.describe(),
        control_matcher=control_matcher.describe(),
        search_window=search_window,
        direction=direction,
    )

    row = next((n for n in snapshot.nodes if row_matcher.matches(n)), None)
    if row is None:
        logger.debug("Resolver: no row matches %s", desc["row_matcher"])
        return ControlSearchResult(ROW_NOT_FOUND, **desc)

    logger.debug("Resolver: row %s matched at line %d: %s",
                 desc["row_matcher"], row.index, row.line.strip())

    for node in _window(snapshot.nodes, row.index, search_window, direction):
        if node.ref and control_matcher.matches(node):
            logger.debug("Resolver: control %s found at line %d (ref=%s)",
                         desc["control_matcher"], node.index, node.ref)
            return ControlSearchResult(
                FOUND, ref=snapshot.element_ref(node), row=row, control=node, **desc,
            )

    logger.debug("Resolver: no %s within %d lines %s of line %d",
                 desc["control_matcher"], search_window, direction, row.index)
    return ControlSearchResult(CONTROL_NOT_FOUND, row=row, **desc)


def _window(
    nodes: Sequence[SnapshotNode], start: int, size: int, direction: Direction,
) -> list[SnapshotNode]:
    if direction == "forward":
        return list(nodes[start + 1:start + 1 + size])
    lo = max(0, start - size)
    return list(reversed(nodes[lo:start]))


# ---------------------------------------------------------------------------
# Live resolution
# ---------------------------------------------------------------------------


async def resolve(client, ref: ElementRef):
    """Map a ref to a live actionable handle on the page it came from."""
    return await client.resolve_ref(ref.page_name, ref)


async def click_control(
    client,
    page_name: str,
    row_matcher: NodeMatcher,
    control_matcher: NodeMatcher,
    search_window: int,
    direction: Direction = "backward",
) -> ElementRef:
    """Capture a fresh snapshot, find the control and click it.

    A stale reference triggers one re-capture and retry; a second stale
    result propagates. Row/control misses raise immediately.
    """
    attempt = 0
    while True:
        attempt += 1
        snapshot = await client.snapshot(page_name)
        ref = find_control_near_row(
            snapshot, row_matcher, control_matcher, search_window, direction,
        ).require()
        try:
            handle = await resolve(client, ref)
            await handle.click()
            logger.debug("Clicked %s on page '%s'", ref, page_name)
            return ref
        except StaleReferenceError:
            if attempt > 1:
                raise
            logger.warning("Stale ref %s on page '%s', re-capturing snapshot", ref.ref, page_name)
