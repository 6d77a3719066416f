"""
Conversation orchestration.

Ties the :class:`~pexi.chat_store.ChatStore` to a response client and guards
it with a single in-flight request slot::

    begin(parts)  → user turn appended, loading = True
    run(request)  → network round trip (may run on a worker thread)
    finish(reply) → model turn appended, loading = False

``begin`` and ``finish`` mutate state and must be called from the UI thread;
``run`` touches nothing but the client.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Protocol, Sequence

from .chat_store import ChatStore
from .gemini_api import Reply
from .messages import ContentPart, Role, Turn

log = logging.getLogger("pexi")


class ResponseClient(Protocol):
    """Anything that can answer a conversation with plain text."""

    def respond(
        self, history: Sequence[Turn], new_parts: Sequence[ContentPart],
    ) -> Reply:
        """Return the reply, flagged as failed when the request did not succeed."""


@dataclass(frozen=True)
class PendingRequest:
    """The in-flight request: prior history and the newly submitted parts."""

    history: tuple[Turn, ...]
    parts: tuple[ContentPart, ...]
    user_turn: Turn


class ChatSession:
    """Owns the conversation, the loading flag and the error banner."""

    def __init__(self, client: ResponseClient, store: ChatStore | None = None) -> None:
        self._client = client
        self._store = store if store is not None else ChatStore()
        self._loading = False
        self._error: str | None = None
        self._listeners: list[Callable[[], None]] = []

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def store(self) -> ChatStore:
        return self._store

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> str | None:
        """Transient banner text for the last failed request, if any."""
        return self._error

    def set_error(self, message: str | None) -> None:
        self._error = message
        self._notify()

    def turns(self) -> tuple[Turn, ...]:
        return self._store.turns()

    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Call *callback* after every state change; returns an unsubscriber."""
        self._listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _unsubscribe

    def _notify(self) -> None:
        for callback in list(self._listeners):
            callback()

    # ------------------------------------------------------------------
    # Request lifecycle
    # ------------------------------------------------------------------

    def begin(self, parts: Sequence[ContentPart] | None) -> PendingRequest | None:
        """Append the user turn and mark a request as in flight.

        Returns *None* without touching anything when a request is already
        in flight or *parts* is empty.
        """
        if self._loading or not parts:
            return None
        history = self._store.history()
        user_turn = self._store.append(Role.USER, parts)
        self._error = None
        self._loading = True
        log.info("[CHAT] request started (%d prior turn(s))", len(history))
        self._notify()
        return PendingRequest(history=history, parts=tuple(parts),
                              user_turn=user_turn)

    def run(self, request: PendingRequest) -> Reply:
        """Perform the round trip.  Never raises."""
        try:
            return self._client.respond(request.history, request.parts)
        except Exception as exc:  # noqa: BLE001
            log.error("[CHAT] response client raised: %s", exc, exc_info=True)
            return Reply.failure(str(exc))

    def finish(self, reply: Reply) -> Turn | None:
        """Append the model turn for the in-flight request and clear loading.

        Returns *None* and leaves the store alone when nothing is in flight,
        so every model turn answers exactly one user turn.
        """
        if not self._loading:
            log.warning("[CHAT] finish() called with no request in flight")
            return None
        turn = self._store.append(Role.MODEL, [ContentPart.from_text(reply.text)],
                                  failed=reply.failed)
        if reply.failed:
            self._error = reply.detail or "Failed to get a response."
            log.warning("[CHAT] request failed: %s", self._error)
        else:
            log.info("[CHAT] reply received (%d chars)", len(reply.text))
        self._loading = False
        self._notify()
        return turn

    def send(self, parts: Sequence[ContentPart] | None) -> Turn | None:
        """Run a whole exchange synchronously; returns the model turn."""
        request = self.begin(parts)
        if request is None:
            return None
        return self.finish(self.run(request))
