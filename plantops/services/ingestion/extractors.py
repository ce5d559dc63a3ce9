"""Format-specific text extraction for uploaded documents.

- PDF   -- PyMuPDF (``fitz``), page by page
- DOCX  -- python-docx, paragraph by paragraph
- text  -- UTF-8 decode (latin-1 fallback)
- image -- the completion provider's vision model

Paragraphs and pages are joined with blank lines so the chunker sees them
as separate paragraphs.  PyMuPDF and python-docx are synchronous, so their
parsing runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import io

import docx
import fitz  # PyMuPDF
import structlog

from plantops.interfaces.llm_provider import ILLMProvider
from plantops.models.document import UploadedFile
from plantops.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

_VISION_PROMPT = (
    "Transcribe all readable text in this image exactly as written: "
    "equipment labels, gauge readings, alarm panels, tables and handwritten "
    "notes. Separate distinct regions with a blank line. Return only the text."
)


def _extract_pdf(data: bytes) -> str:
    pages: list[str] = []
    with fitz.open(stream=data, filetype="pdf") as pdf:
        for page in pdf:
            text = page.get_text("text").strip()
            if text:
                pages.append(text)
    return "\n\n".join(pages)


def _extract_docx(data: bytes) -> str:
    document = docx.Document(io.BytesIO(data))
    return "\n\n".join(p.text for p in document.paragraphs if p.text.strip())


def _extract_text(data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return data.decode("latin-1")


class TextExtractor:
    """Dispatches an :class:`UploadedFile` to the extractor for its media type.

    Parameters
    ----------
    llm_provider:
        Used for image uploads; must support vision for images to succeed.
    """

    def __init__(self, llm_provider: ILLMProvider) -> None:
        self._llm = llm_provider

    async def extract(self, upload: UploadedFile, media_type: str) -> str:
        """Return the plain text of *upload*.

        Raises
        ------
        ExtractionError
            If the payload cannot be parsed or the format is unsupported.
        """
        if media_type.startswith("image/"):
            return await self._extract_image(upload)

        if media_type == "application/pdf":
            parser = _extract_pdf
        elif media_type.endswith("wordprocessingml.document"):
            parser = _extract_docx
        elif media_type.startswith("text/"):
            parser = _extract_text
        else:
            raise ExtractionError(message=f"no extractor for media type {media_type}")

        try:
            text = await asyncio.to_thread(parser, upload.data)
        except Exception as exc:
            raise ExtractionError(
                message=f"could not read {upload.filename}: {exc}",
            ) from exc

        logger.debug(
            "text_extracted",
            filename=upload.filename,
            media_type=media_type,
            chars=len(text),
        )
        return text

    async def _extract_image(self, upload: UploadedFile) -> str:
        if not self._llm.supports_vision():
            raise ExtractionError(
                message="image uploads need a vision-capable model",
                provider_name=self._llm.get_provider_name(),
            )
        text = await self._llm.vision_extract(upload.data, _VISION_PROMPT)
        logger.debug("image_text_extracted", filename=upload.filename, chars=len(text))
        return text
