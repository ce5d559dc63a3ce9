"""Conversation models for the chat endpoint and the session coordinator.

A conversation is an ordered list of :class:`Turn` objects.  Insertion order
is meaningful: it is the order in which prior turns are written into the
completion prompt.  Turns are frozen once created.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class TurnRole(str, Enum):
    """Who authored a turn."""

    USER = "user"
    ASSISTANT = "assistant"


class ChatMode(str, Enum):
    """Analysis style requested by the operator.

    Each mode selects a different block of system instructions in
    :class:`~plantops.services.session_coordinator.SessionCoordinator`.
    """

    GENERAL = "general"
    RCA = "rca"
    FMEA = "fmea"
    FISHBONE = "fishbone"
    HISTORICAL = "historical"


# ---------------------------------------------------------------------------
# Turn: one message in a conversation.
# ---------------------------------------------------------------------------
class Turn(BaseModel):
    """A single user or assistant message.

    The chat client sends history items as ``{id, type, content, timestamp,
    context}``; those names are accepted on input alongside the field names.

    ``references`` lists the chunk ids of the retrieved context that was
    included in the prompt which produced an assistant turn.  User turns
    normally carry no references.
    """

    model_config = ConfigDict(frozen=True)

    turn_id: str = Field(
        default_factory=lambda: str(uuid4()),
        validation_alias=AliasChoices("turn_id", "id"),
        description="Unique identifier for this turn.",
    )
    role: TurnRole = Field(
        validation_alias=AliasChoices("role", "type"),
        description="Author of the turn: user or assistant.",
    )
    content: str = Field(description="Message text.")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc),
        validation_alias=AliasChoices("created_at", "timestamp"),
        description="UTC timestamp when the turn was created.",
    )
    references: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("references", "context"),
        description="Ids of retrieved chunks used to produce this turn.",
    )


# ---------------------------------------------------------------------------
# DiagnosticContext: structured details about the equipment under discussion.
# ---------------------------------------------------------------------------
class DiagnosticContext(BaseModel):
    """Equipment and alarm details that accompany a chat or troubleshooting request.

    The frontend sends the alarm category as ``alarm``; it is exposed here
    as ``alarm_type``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    engine: str | None = Field(default=None, description="Engine or unit identifier.")
    alarm_type: str | None = Field(
        default=None,
        alias="alarm",
        description="Alarm category raised by the plant control system.",
    )
    description: str | None = Field(
        default=None, description="Free-text description of the symptoms."
    )

    def is_empty(self) -> bool:
        return not any((self.engine, self.alarm_type, self.description))

    def as_query_terms(self) -> list[str]:
        """Return the non-empty fields in a stable order for query building."""
        return [
            value.strip()
            for value in (self.engine, self.alarm_type, self.description)
            if value and value.strip()
        ]
