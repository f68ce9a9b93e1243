"""
Participant records and their store.
"""

from ivr_survey.participants.models import Participant
from ivr_survey.participants.repository import ParticipantRepository

__all__ = ["Participant", "ParticipantRepository"]
