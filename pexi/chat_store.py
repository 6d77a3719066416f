"""
In-memory storage for the current chat session.

The conversation is append-only: turns are never edited or deleted, and
insertion order is chronological order.  Nothing is written to disk; the
history lives exactly as long as the window.
"""

import logging
from typing import Iterable, Iterator

from .messages import ContentPart, Role, Turn

log = logging.getLogger("pexi")


class ChatStore:
    """Ordered, append-only list of :class:`Turn` objects."""

    def __init__(self) -> None:
        self._turns: list[Turn] = []
        self._ids: set[str] = set()

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def append(self, role: Role, parts: Iterable[ContentPart], *,
               failed: bool = False) -> Turn:
        """Create a turn from *role* and *parts* and append it."""
        return self.add_turn(Turn(role=role, parts=tuple(parts), failed=failed))

    def add_turn(self, turn: Turn) -> Turn:
        """Append an already-built *turn*.

        Raises
        ------
        ValueError
            If a turn with the same id is already stored.
        """
        if turn.id in self._ids:
            raise ValueError(f"Duplicate turn id: {turn.id}")
        self._turns.append(turn)
        self._ids.add(turn.id)
        log.debug("[CHAT] turn #%d appended (role=%s, %d part(s))",
                  len(self._turns), turn.role.value, len(turn.parts))
        return turn

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def turns(self) -> tuple[Turn, ...]:
        """Snapshot of every turn, oldest first."""
        return tuple(self._turns)

    # Request assembly reads the same snapshot.
    history = turns

    def last(self) -> Turn | None:
        return self._turns[-1] if self._turns else None

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(tuple(self._turns))
