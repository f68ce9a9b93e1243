"""
Domain exceptions shared across the service.
"""


class SurveyError(Exception):
    """Base exception for the survey service."""


class CatalogError(SurveyError):
    """The question catalog file is missing or malformed."""


class MalformedCallbackError(SurveyError):
    """A telephony callback is missing expected query or body fields."""


class SurveyStoreError(SurveyError):
    """Base exception for participant store failures."""


class StoreUnavailableError(SurveyStoreError):
    """The participant store could not be read."""


class StoreWriteError(SurveyStoreError):
    """A write to the participant store failed."""


class DuplicateParticipantError(StoreWriteError):
    """A participant record already exists for the call id."""

    def __init__(self, call_id: str) -> None:
        super().__init__(f"Participant already exists for call {call_id}")
        self.call_id = call_id


class ConcurrentUpdateError(StoreWriteError):
    """The participant record changed between read and conditional update."""

    def __init__(self, call_id: str, expected_count: int) -> None:
        super().__init__(
            f"Participant {call_id} no longer has {expected_count} responses"
        )
        self.call_id = call_id
        self.expected_count = expected_count


class UpstreamAudioFetchError(SurveyError):
    """The external voice API did not deliver a recording."""

    def __init__(self, message: str, status_code: int = 502) -> None:
        super().__init__(message)
        self.status_code = status_code
