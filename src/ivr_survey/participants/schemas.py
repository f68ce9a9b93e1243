"""
Pydantic schemas for participant data crossing the HTTP boundary.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RecordingRef(BaseModel):
    """Identifiers of a finished recording, as posted by the platform.

    The platform names the recording identifier ``id``; stored responses
    name it ``recordingId``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    leg_id: str = Field(..., alias="legId", min_length=1)
    recording_id: str = Field(..., alias="id", min_length=1)

    def to_response(self) -> "SurveyResponse":
        return SurveyResponse(leg_id=self.leg_id, recording_id=self.recording_id)


class SurveyResponse(BaseModel):
    """One stored answer."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    leg_id: str = Field(..., alias="legId")
    recording_id: str = Field(..., alias="recordingId")

    def to_document(self) -> dict[str, str]:
        return self.model_dump(by_alias=True)


class CallStepPayload(BaseModel):
    """Body of a ``/callStep`` callback; both fields are absent on first contact."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    leg_id: str | None = Field(default=None, alias="legId")
    id: str | None = None

    @field_validator("leg_id", "id", mode="before")
    @classmethod
    def blank_to_none(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def recording(self) -> RecordingRef | None:
        """The finished recording, or None unless both identifiers are present."""
        if self.leg_id is None or self.id is None:
            return None
        return RecordingRef(leg_id=self.leg_id, recording_id=self.id)

    @property
    def is_partial(self) -> bool:
        return (self.leg_id is None) != (self.id is None)
