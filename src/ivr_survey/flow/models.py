"""
Call-flow schemas returned to the telephony platform.

A flow is an ordered list of steps. Each step is tagged by ``action`` and
carries action-specific ``options``, matching the platform's call-flow JSON.
"""

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field


class SayOptions(BaseModel):
    """Options for a text-to-speech step."""

    model_config = ConfigDict(frozen=True)

    payload: str = Field(..., description="Text to speak")
    voice: str = Field(default="male", description="Synthesised voice")
    language: str = Field(default="en-US", description="Speech language")


class SayStep(BaseModel):
    """Speak synthesised text."""

    model_config = ConfigDict(frozen=True)

    action: Literal["say"] = "say"
    options: SayOptions


class RecordOptions(BaseModel):
    """Options for a recording step."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    finish_on_key: str = Field(
        default="any",
        alias="finishOnKey",
        description="Key that ends the recording ('any' for any key)",
    )
    timeout: int = Field(
        default=10,
        ge=1,
        description="Seconds of silence before the recording ends",
    )
    on_finish: str = Field(
        ...,
        alias="onFinish",
        description="URL the platform calls once the recording ends",
    )


class RecordStep(BaseModel):
    """Capture audio, then call ``on_finish`` again."""

    model_config = ConfigDict(frozen=True)

    action: Literal["record"] = "record"
    options: RecordOptions


FlowStep = Annotated[SayStep | RecordStep, Field(discriminator="action")]


class CallFlow(BaseModel):
    """Ordered voice instructions for one callback."""

    title: str = "Survey Call Step"
    steps: list[FlowStep] = Field(default_factory=list)

    @property
    def say_steps(self) -> list[SayStep]:
        return [step for step in self.steps if isinstance(step, SayStep)]

    @property
    def record_steps(self) -> list[RecordStep]:
        return [step for step in self.steps if isinstance(step, RecordStep)]

    def to_wire(self) -> dict:
        """Serialise using the platform's field names."""
        return self.model_dump(mode="json", by_alias=True)
