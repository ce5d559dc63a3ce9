"""Session coordinator: one chat turn, retrieval first, then completion.

Flow for :meth:`SessionCoordinator.handle_turn`:

  1. VALIDATE   -- the new message must be non-empty after trimming.
  2. WINDOW     -- keep only the last ``history_window`` prior turns.
  3. RETRIEVE   -- query the vector store with the message plus any
                   diagnostic context.  Failure or timeout degrades to an
                   empty context; the turn still proceeds.
  4. COMPLETE   -- send system instructions, retrieved passages, windowed
                   history, diagnostic context and the message to the
                   completion provider.  Failure raises GenerationError.
  5. REPLY      -- return a new assistant Turn whose references are the ids
                   of the chunks that were written into the prompt.

The coordinator keeps no state between calls.
"""

from __future__ import annotations

import asyncio

import structlog

from plantops.interfaces.llm_provider import ILLMProvider
from plantops.interfaces.vector_store_provider import IVectorStoreProvider
from plantops.models.chat import ChatMode, DiagnosticContext, Turn, TurnRole
from plantops.models.rag import RetrievedChunk
from plantops.utils.errors import GenerationError, InputValidationError, PlantOpsError
from plantops.utils.logging import get_logger

logger: structlog.BoundLogger = get_logger(__name__)

_BASE_PROMPT = (
    "You are an expert assistant for power-plant engine operators and maintenance "
    "engineers. You help diagnose alarms, interpret readings and plan corrective "
    "actions for gas and diesel engines, turbines and their auxiliaries.\n\n"
    "Guidelines:\n"
    "- Use the reference passages from plant documentation when they are relevant "
    "and say which document a recommendation comes from\n"
    "- If the passages do not cover the question, say so and answer from general "
    "engineering knowledge\n"
    "- Put personnel safety first: call out lockout/tagout, pressure and high "
    "temperature hazards before any hands-on step\n"
    "- Be concise and concrete; prefer numbered steps for procedures\n"
    "- Never invent readings, part numbers or document references"
)

_MODE_INSTRUCTIONS: dict[ChatMode, str] = {
    ChatMode.GENERAL: "",
    ChatMode.RCA: (
        "Perform a root cause analysis. Separate symptoms from causes, walk the "
        "causal chain with the '5 whys', and finish with the most probable root "
        "cause and the checks that would confirm it."
    ),
    ChatMode.FMEA: (
        "Perform a failure modes and effects analysis. For each plausible failure "
        "mode give its effect, likely cause, severity, occurrence and detection "
        "ratings (1-10) and the resulting risk priority number, highest first."
    ),
    ChatMode.FISHBONE: (
        "Build a fishbone (Ishikawa) analysis. Group candidate causes under Man, "
        "Machine, Method, Material, Measurement and Environment, then name the "
        "branches worth investigating first."
    ),
    ChatMode.HISTORICAL: (
        "Focus on historical incidents. Compare the situation with past events in "
        "the reference passages, note recurring patterns and what resolved them."
    ),
}


def build_system_prompt(mode: ChatMode) -> str:
    extra = _MODE_INSTRUCTIONS.get(mode, "")
    if not extra:
        return _BASE_PROMPT
    return f"{_BASE_PROMPT}\n\nAnalysis mode: {mode.value.upper()}\n{extra}"


class SessionCoordinator:
    """Builds a reply turn from retrieval and completion.

    Parameters
    ----------
    llm:
        Completion provider.
    vector_store:
        Retrieval store queried before every completion.
    history_window:
        Number of most recent prior turns written into the prompt.
    top_k:
        Number of chunks requested from the vector store.
    retrieval_timeout:
        Seconds to wait for retrieval before continuing without context.
    temperature, max_tokens:
        Passed through to the completion provider.
    """

    def __init__(
        self,
        llm: ILLMProvider,
        vector_store: IVectorStoreProvider,
        history_window: int = 5,
        top_k: int = 5,
        retrieval_timeout: float = 10.0,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> None:
        self._llm = llm
        self._vector_store = vector_store
        self._history_window = max(0, history_window)
        self._top_k = top_k
        self._retrieval_timeout = retrieval_timeout
        self._temperature = temperature
        self._max_tokens = max_tokens

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def handle_turn(
        self,
        history: list[Turn],
        message: str,
        diagnostic_context: DiagnosticContext | None = None,
        mode: ChatMode = ChatMode.GENERAL,
    ) -> Turn:
        """Produce the assistant reply to *message*.

        Raises
        ------
        InputValidationError
            If *message* is empty after trimming.
        GenerationError
            If the completion provider fails or returns nothing.
        """
        text = message.strip() if message else ""
        if not text:
            raise InputValidationError(message="message must not be empty")

        window = self.window(history)
        context = (
            diagnostic_context
            if diagnostic_context is not None and not diagnostic_context.is_empty()
            else None
        )

        passages = await self._retrieve(self.build_query(text, context))

        user_prompt = self.build_user_prompt(text, window, passages, context)
        try:
            content = await self._llm.complete(
                system_prompt=build_system_prompt(mode),
                user_prompt=user_prompt,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )
        except GenerationError:
            logger.error("chat_generation_failed", mode=mode.value)
            raise
        except PlantOpsError as exc:
            logger.error("chat_generation_failed", mode=mode.value, error=str(exc))
            raise GenerationError(
                message="generation failed", provider_name=exc.provider_name
            ) from exc
        except Exception as exc:
            logger.error(
                "chat_generation_failed",
                mode=mode.value,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise GenerationError(
                message="generation failed",
                provider_name=self._llm.get_provider_name(),
            ) from exc

        if not content or not content.strip():
            logger.error("chat_generation_empty", mode=mode.value)
            raise GenerationError(
                message="generation failed: empty response",
                provider_name=self._llm.get_provider_name(),
            )

        reply = Turn(
            role=TurnRole.ASSISTANT,
            content=content.strip(),
            references=[p.chunk_id for p in passages],
        )
        logger.info(
            "chat_turn_completed",
            mode=mode.value,
            history_used=len(window),
            history_dropped=len(history) - len(window),
            references=len(reply.references),
        )
        return reply

    def window(self, history: list[Turn]) -> list[Turn]:
        """Return the most recent ``history_window`` turns in their original order."""
        if self._history_window == 0:
            return []
        return list(history[-self._history_window :])

    # ------------------------------------------------------------------
    # Prompt assembly
    # ------------------------------------------------------------------

    @staticmethod
    def build_query(message: str, context: DiagnosticContext | None) -> str:
        if context is None:
            return message
        return " ".join([message, *context.as_query_terms()])

    @staticmethod
    def build_user_prompt(
        message: str,
        history: list[Turn],
        passages: list[RetrievedChunk],
        context: DiagnosticContext | None,
    ) -> str:
        parts: list[str] = []

        if passages:
            parts.append("## Reference Passages")
            for i, passage in enumerate(passages, 1):
                source = passage.chunk.source_title or passage.source_document_id
                parts.append(f"[{i}] ({source}) {passage.chunk.text}")

        if history:
            parts.append("\n## Conversation So Far")
            for turn in history:
                speaker = "Operator" if turn.role == TurnRole.USER else "Assistant"
                parts.append(f"{speaker}: {turn.content}")

        if context is not None:
            parts.append("\n## Equipment Context")
            if context.engine:
                parts.append(f"Engine: {context.engine}")
            if context.alarm_type:
                parts.append(f"Alarm: {context.alarm_type}")
            if context.description:
                parts.append(f"Description: {context.description}")

        parts.append(f"\n## Operator Message\n{message}")
        return "\n".join(parts).lstrip()

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    async def _retrieve(self, query: str) -> list[RetrievedChunk]:
        """Query the store; any failure or timeout yields no passages."""
        try:
            return await asyncio.wait_for(
                self._vector_store.query(query, top_k=self._top_k),
                timeout=self._retrieval_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "chat_retrieval_timeout",
                timeout_seconds=self._retrieval_timeout,
            )
        except PlantOpsError as exc:
            logger.warning("chat_retrieval_failed", error=str(exc))
        except Exception as exc:
            logger.warning(
                "chat_retrieval_failed",
                error=str(exc),
                error_type=type(exc).__name__,
            )
        return []
