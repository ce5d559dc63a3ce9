"""Document models for the ingestion pipeline.

An :class:`UploadedFile` is the raw upload as received; a :class:`Document`
is the registry record tracking its processing.  Documents are frozen: the
ingestion service records progress by storing a new copy produced with
``model_copy(update=...)``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from pathlib import PurePath
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr


class DocumentStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class UploadedFile(BaseModel):
    """A file received from the upload endpoint or the offline CLI.

    The raw bytes are held in a private attribute so the model can be logged
    and serialized without dragging the payload along.
    """

    model_config = ConfigDict(frozen=True)

    filename: str = Field(description="Original filename supplied by the client.")
    media_type: str = Field(default="", description="Media type reported by the client.")
    size_bytes: int = Field(ge=0, description="Payload size in bytes.")

    _data: bytes = PrivateAttr(default=b"")

    @classmethod
    def from_bytes(cls, filename: str, data: bytes, media_type: str = "") -> UploadedFile:
        uploaded = cls(filename=filename, media_type=media_type, size_bytes=len(data))
        uploaded._data = data
        return uploaded

    @property
    def data(self) -> bytes:
        return self._data

    @property
    def extension(self) -> str:
        return PurePath(self.filename).suffix.lower().lstrip(".")


class Document(BaseModel):
    """Registry record for one uploaded document.

    ``status`` moves from ``processing`` to exactly one terminal state:
    ``completed`` (with ``chunk_count > 0``) or ``failed`` (with ``error``
    set).  Chunks of a document are visible to retrieval only once it is
    ``completed``.
    """

    model_config = ConfigDict(frozen=True)

    document_id: str = Field(
        default_factory=lambda: str(uuid4()),
        description="Unique identifier for this document.",
    )
    filename: str = Field(description="Original filename.")
    media_type: str = Field(description="Media type resolved from the file extension.")
    size_bytes: int = Field(ge=0, description="Payload size in bytes.")
    status: DocumentStatus = Field(default=DocumentStatus.PROCESSING)
    chunk_count: int = Field(default=0, ge=0, description="Chunks published for retrieval.")
    error: str | None = Field(default=None, description="Failure reason when status is failed.")
    uploaded_at: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))
    completed_at: datetime | None = Field(default=None)

    @property
    def is_terminal(self) -> bool:
        return self.status in (DocumentStatus.COMPLETED, DocumentStatus.FAILED)
