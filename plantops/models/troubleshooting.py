"""Troubleshooting wizard models.

The troubleshooting service asks the completion provider for a JSON list of
steps and validates it into these models.  Each step carries a type tag and
the payload that type needs: measurement rows for ``measurement`` steps and
branch options for ``decision`` steps.
"""

from __future__ import annotations

from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class StepType(str, Enum):
    INSTRUCTION = "instruction"
    CHECK = "check"
    DECISION = "decision"
    MEASUREMENT = "measurement"


class StepOption(BaseModel):
    """One branch of a decision step; ``next`` names the step it leads to."""

    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    next: str | None = None


class Measurement(BaseModel):
    """A reading the operator should take, with its acceptable range."""

    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    parameter: str
    expected_range: str = Field(
        validation_alias=AliasChoices("expected_range", "expectedRange", "expected"),
        description='Acceptable range, e.g. "40-60".',
    )
    unit: str = ""


class TroubleshootingStep(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str = ""
    type: StepType
    content: str = ""
    options: list[StepOption] = Field(default_factory=list)
    measurements: list[Measurement] = Field(default_factory=list)
    completed: bool = False
    result: str | None = None
