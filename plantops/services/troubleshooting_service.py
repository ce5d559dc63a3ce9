"""Troubleshooting wizard step generation.

Asks the completion provider for a JSON list of typed steps for an engine
alarm, grounded in passages retrieved from plant documentation, and
validates the reply into :class:`TroubleshootingStep` models.

There is no canned fallback: if the provider fails or its reply cannot be
parsed into at least one valid step, :class:`GenerationError` is raised and
the API answers 502.
"""

from __future__ import annotations

import asyncio
import json
import re
from typing import Any

import structlog
from pydantic import TypeAdapter, ValidationError

from plantops.interfaces.llm_provider import ILLMProvider
from plantops.interfaces.vector_store_provider import IVectorStoreProvider
from plantops.models.chat import DiagnosticContext
from plantops.models.rag import RetrievedChunk
from plantops.models.troubleshooting import TroubleshootingStep
from plantops.utils.errors import GenerationError, InputValidationError, PlantOpsError

logger = structlog.get_logger(logger_name=__name__)

_STEPS_ADAPTER = TypeAdapter(list[TroubleshootingStep])

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)


class TroubleshootingService:
    """Generates a step-by-step troubleshooting procedure.

    Parameters
    ----------
    llm:
        Completion provider.
    vector_store:
        Optional retrieval store for documentation passages.  Retrieval
        failures are logged and the procedure is generated without them.
    top_k:
        Passages requested from the store.
    retrieval_timeout:
        Seconds to wait for retrieval.
    """

    _SYSTEM_PROMPT = (
        "You are a senior power-plant maintenance engineer writing a guided "
        "troubleshooting procedure for an operator at the engine.\n\n"
        "Return ONLY valid JSON with this exact structure:\n"
        '{"steps": [{"id": "kebab-case-id", "title": "short title", '
        '"description": "one sentence", '
        '"type": "instruction | check | decision | measurement", '
        '"content": "what to do, may use bullet lines", '
        '"measurements": [{"parameter": "Oil Pressure", "expected_range": "40-60", '
        '"unit": "psi"}], '
        '"options": [{"id": "option-id", "text": "observed outcome", '
        '"next": "id of the step to go to"}]}]}\n\n'
        "Rules:\n"
        "- The first step is always a safety check (type \"check\")\n"
        "- measurement steps list the readings to take in \"measurements\"\n"
        "- decision steps list branches in \"options\"; every \"next\" names a step id\n"
        "- 4 to 10 steps, ordered as the operator should perform them\n"
        "- Use the documentation passages when they apply; never invent part numbers"
    )

    def __init__(
        self,
        llm: ILLMProvider,
        vector_store: IVectorStoreProvider | None = None,
        top_k: int = 5,
        retrieval_timeout: float = 10.0,
        max_tokens: int = 3000,
    ) -> None:
        self._llm = llm
        self._vector_store = vector_store
        self._top_k = top_k
        self._retrieval_timeout = retrieval_timeout
        self._max_tokens = max_tokens

    async def generate_steps(self, context: DiagnosticContext) -> list[TroubleshootingStep]:
        """Return the troubleshooting steps for *context*.

        Raises
        ------
        InputValidationError
            If none of engine, alarm or description is given.
        GenerationError
            If the provider fails or returns no usable steps.
        """
        if context.is_empty():
            raise InputValidationError(
                message="engine, alarm or description is required"
            )

        passages = await self._retrieve(" ".join(context.as_query_terms()))
        user_prompt = self._build_user_prompt(context, passages)

        try:
            raw = await self._llm.complete(
                system_prompt=self._SYSTEM_PROMPT,
                user_prompt=user_prompt,
                temperature=0.2,
                max_tokens=self._max_tokens,
            )
        except PlantOpsError as exc:
            logger.error("troubleshooting_generation_failed", error=str(exc))
            raise GenerationError(
                message="generation failed", provider_name=exc.provider_name
            ) from exc
        except Exception as exc:
            logger.error("troubleshooting_generation_failed", error=str(exc))
            raise GenerationError(
                message="generation failed",
                provider_name=self._llm.get_provider_name(),
            ) from exc

        steps = self.parse_steps(raw)
        logger.info(
            "troubleshooting_steps_generated",
            engine=context.engine,
            alarm=context.alarm_type,
            steps=len(steps),
            passages=len(passages),
        )
        return steps

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    @staticmethod
    def parse_steps(raw: str) -> list[TroubleshootingStep]:
        """Parse the model's JSON reply into validated steps.

        Accepts ``{"steps": [...]}`` or a bare list, optionally wrapped in a
        Markdown code fence.
        """
        text = _FENCE_RE.sub("", (raw or "").strip()).strip()
        start = min((i for i in (text.find("{"), text.find("[")) if i >= 0), default=-1)
        if start < 0:
            raise GenerationError(message="generation failed: reply contained no JSON")

        try:
            payload, _ = json.JSONDecoder().raw_decode(text[start:])
        except json.JSONDecodeError as exc:
            logger.warning("troubleshooting_json_parse_failed", preview=text[:200])
            raise GenerationError(message="generation failed: reply was not valid JSON") from exc

        items: Any = payload.get("steps") if isinstance(payload, dict) else payload
        if not isinstance(items, list) or not items:
            raise GenerationError(message="generation failed: reply contained no steps")

        try:
            steps = _STEPS_ADAPTER.validate_python(items)
        except ValidationError as exc:
            logger.warning("troubleshooting_step_validation_failed", errors=exc.error_count())
            raise GenerationError(message="generation failed: malformed steps") from exc
        return steps

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _build_user_prompt(context: DiagnosticContext, passages: list[RetrievedChunk]) -> str:
        parts: list[str] = ["## Equipment Context"]
        parts.append(f"Engine: {context.engine or 'unspecified'}")
        parts.append(f"Alarm: {context.alarm_type or 'unspecified'}")
        if context.description:
            parts.append(f"Description: {context.description}")
        if passages:
            parts.append("\n## Documentation Passages")
            for i, passage in enumerate(passages, 1):
                parts.append(f"[{i}] ({passage.chunk.source_title}) {passage.chunk.text}")
        parts.append("\nWrite the troubleshooting procedure as JSON.")
        return "\n".join(parts)

    async def _retrieve(self, query: str) -> list[RetrievedChunk]:
        if self._vector_store is None or not query:
            return []
        try:
            return await asyncio.wait_for(
                self._vector_store.query(query, top_k=self._top_k),
                timeout=self._retrieval_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("troubleshooting_retrieval_timeout")
        except Exception as exc:
            logger.warning("troubleshooting_retrieval_failed", error=str(exc))
        return []
