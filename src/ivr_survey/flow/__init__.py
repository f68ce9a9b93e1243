"""
Call-flow schemas and the survey flow composer.
"""

from ivr_survey.flow.composer import VoiceOptions, compose_flow, fallback_flow
from ivr_survey.flow.models import CallFlow, RecordStep, SayStep

__all__ = [
    "CallFlow",
    "RecordStep",
    "SayStep",
    "VoiceOptions",
    "compose_flow",
    "fallback_flow",
]
