"""Abstract base class for chat session stores.

A session store keeps the ordered turns of a conversation under a session
id so a client may send only the new message instead of re-sending its
trailing history on every request.  Entries expire after a period of
inactivity.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from plantops.models.chat import Turn


# Concrete implementation: MemorySessionStore (plantops/providers/session/)
class ISessionStore(ABC):
    """Contract for session-id keyed turn storage with expiry."""

    @abstractmethod
    async def get_turns(self, session_id: str) -> list[Turn]:
        """Return the stored turns in insertion order, or ``[]`` if unknown or expired."""

    @abstractmethod
    async def append_turns(self, session_id: str, turns: list[Turn]) -> None:
        """Append *turns* to the session, creating it if needed.

        Appending refreshes the session's expiry.
        """

    @abstractmethod
    async def delete(self, session_id: str) -> None:
        """Forget a session (no-op if absent)."""
