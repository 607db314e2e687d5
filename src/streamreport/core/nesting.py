"""Group nesting tracker.

Rebuilds the group tree from a flat stream of "group entered"
notifications. Each notification carries the group's ancestor depth
(1 for a top-level group). The tracker only remembers the depth of the
previously entered group; the set of open groups is always ``1..depth``.

Example for depths ``[1, 2, 3, 2, 1]``::

    OPEN(1) OPEN(2) OPEN(3) CLOSE(3) CLOSE(2) OPEN(2) CLOSE(2) CLOSE(1) OPEN(1)

and ``session_finished()`` then yields ``CLOSE(1)``.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from streamreport.errors import ErrorCode, ProtocolError

logger = logging.getLogger(__name__)


class OpKind(Enum):
    """Structural transition emitted by the tracker."""

    OPEN_TOP = "open_top"
    OPEN_NESTED = "open_nested"
    CLOSE = "close"


@dataclass(frozen=True)
class GroupNode:
    """One group-entry event.

    Attributes:
        depth: Ancestor chain length including this group.
        name: Group name, used for the element id.
        description: Display label.
    """

    depth: int
    name: str
    description: str

    @property
    def identifier(self) -> str:
        """Stable element id derived from the name."""
        return re.sub(r"[\W_]+", "-", self.name).lower()

    @property
    def anchor(self) -> str:
        """Named anchor derived from the description."""
        return re.sub(r"[^a-z0-9]+", "_", self.description.lower())


@dataclass(frozen=True)
class StructuralOp:
    """An open or close transition for the rendered document."""

    kind: OpKind
    depth: int
    group: Optional[GroupNode] = None

    @property
    def is_open(self) -> bool:
        return self.kind is not OpKind.CLOSE


class StackTracker:
    """Turns ancestor depths into balanced open/close operations.

    Args:
        strict: Reject depths that are <= 0 or jump more than one level
            deeper than the previous group. With ``strict=False`` such
            depths are accepted as-is and only logged.
    """

    def __init__(self, strict: bool = True) -> None:
        self.strict = strict
        self._previous_depth = 0

    @property
    def depth(self) -> int:
        """Depth of the innermost open group (0 when nothing is open)."""
        return self._previous_depth

    @property
    def open_depths(self) -> list[int]:
        """Currently open depths, outermost first."""
        return list(range(1, self._previous_depth + 1))

    def group_entered(
        self,
        depth: int,
        name: str,
        description: Optional[str] = None,
    ) -> list[StructuralOp]:
        """Record a group entry and return the transitions it causes."""
        self._check_depth(depth, name)

        ops: list[StructuralOp] = []
        previous = self._previous_depth
        if previous and previous >= depth:
            ops.extend(self._closes(previous, depth))

        group = GroupNode(depth=depth, name=name, description=description or name)
        kind = OpKind.OPEN_TOP if depth == 1 else OpKind.OPEN_NESTED
        ops.append(StructuralOp(kind=kind, depth=depth, group=group))

        logger.debug("nesting: %d, previous: %d", depth, previous)
        self._previous_depth = depth
        return ops

    def session_finished(self) -> list[StructuralOp]:
        """Close every group that is still open."""
        ops = self._closes(self._previous_depth, 1)
        self._previous_depth = 0
        return ops

    def _closes(self, innermost: int, outermost: int) -> list[StructuralOp]:
        return [
            StructuralOp(kind=OpKind.CLOSE, depth=d)
            for d in range(innermost, outermost - 1, -1)
        ]

    def _check_depth(self, depth: int, name: str) -> None:
        if depth <= 0:
            if self.strict:
                raise ProtocolError(f"{name!r} entered at depth {depth}", ErrorCode.E101)
            logger.warning("Group %r entered at non-positive depth %d", name, depth)
        elif depth > self._previous_depth + 1:
            details = (
                f"{name!r} entered at depth {depth} "
                f"directly after depth {self._previous_depth}"
            )
            if self.strict:
                raise ProtocolError(details, ErrorCode.E100)
            logger.warning("Group %s", details)
