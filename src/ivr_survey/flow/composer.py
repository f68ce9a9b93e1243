"""
Survey progression: maps answered-count to the next call flow.

States:
    start        -> answered_count == 0
    in progress  -> 0 < answered_count < N
    complete     -> answered_count >= N

The composer is pure; it never touches the store.
"""

from __future__ import annotations

from dataclasses import dataclass

from ivr_survey.config import Settings
from ivr_survey.flow.models import CallFlow, RecordOptions, RecordStep, SayOptions, SayStep
from ivr_survey.survey.questions import QuestionCatalog

WELCOME_TEMPLATE = (
    "Welcome to our survey! You will be asked {count} questions. "
    "The answers will be recorded. Speak your response for each and press any key "
    "on your phone to move on to the next question. Here is the first question:"
)
COMPLETED_MESSAGE = "You have completed our survey. Thank you for participating!"
FALLBACK_MESSAGE = (
    "We are sorry, something went wrong on our side. Please try again later. Goodbye."
)


@dataclass(frozen=True)
class VoiceOptions:
    """Voice and recording parameters shared by every emitted step."""

    voice: str = "male"
    language: str = "en-US"
    record_timeout_seconds: int = 10
    finish_on_key: str = "any"

    @classmethod
    def from_settings(cls, settings: Settings) -> VoiceOptions:
        return cls(
            voice=settings.survey_voice,
            language=settings.survey_language,
            record_timeout_seconds=settings.record_timeout_seconds,
            finish_on_key=settings.record_finish_on_key,
        )

    def say(self, text: str) -> SayStep:
        return SayStep(
            options=SayOptions(payload=text, voice=self.voice, language=self.language)
        )

    def record(self, callback_url: str) -> RecordStep:
        return RecordStep(
            options=RecordOptions(
                finish_on_key=self.finish_on_key,
                timeout=self.record_timeout_seconds,
                on_finish=callback_url,
            )
        )


def is_complete(catalog: QuestionCatalog, answered_count: int) -> bool:
    return answered_count >= len(catalog)


def compose_flow(
    catalog: QuestionCatalog,
    answered_count: int,
    callback_url: str,
    voice: VoiceOptions | None = None,
) -> CallFlow:
    """Build the flow for a participant who has answered ``answered_count`` questions.

    Args:
        catalog: Question catalog.
        answered_count: Responses stored so far, including the one
            received with the current callback.
        callback_url: URL the platform calls when the recording ends.
        voice: Voice/recording parameters.

    Returns:
        A non-empty CallFlow. Either a single closing ``say`` when every
        question is answered, or [welcome] + question + record.
    """
    if answered_count < 0:
        raise ValueError(f"answered_count must be >= 0, got {answered_count}")

    voice = voice or VoiceOptions()
    flow = CallFlow()

    if is_complete(catalog, answered_count):
        flow.steps.append(voice.say(COMPLETED_MESSAGE))
        return flow

    if answered_count == 0:
        flow.steps.append(voice.say(WELCOME_TEMPLATE.format(count=len(catalog))))

    flow.steps.append(voice.say(catalog[answered_count]))
    flow.steps.append(voice.record(callback_url))
    return flow


def fallback_flow(voice: VoiceOptions | None = None) -> CallFlow:
    """Apology flow used when the callback cannot be processed."""
    voice = voice or VoiceOptions()
    return CallFlow(steps=[voice.say(FALLBACK_MESSAGE)])
