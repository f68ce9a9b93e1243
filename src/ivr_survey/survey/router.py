"""
FastAPI router for the telephony call-step webhook.

The platform calls ``/callStep`` when the survey call connects and again
whenever a recording step ends. Every call must receive a well-formed flow,
so malformed callbacks are answered with the apology flow instead of an
HTTP error.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from ivr_survey.config import Settings
from ivr_survey.dependencies import get_app_settings, get_survey_service
from ivr_survey.flow.composer import VoiceOptions, fallback_flow
from ivr_survey.participants.schemas import CallStepPayload
from ivr_survey.shared.exceptions import MalformedCallbackError
from ivr_survey.shared.logging import get_logger
from ivr_survey.survey.service import SurveyCallService

logger = get_logger(__name__)

router = APIRouter(tags=["survey"])

CALL_STEP_PATH = "/callStep"


def _abs_base(request: Request, settings: Settings) -> str:
    """
    Public base URL reachable by the telephony platform.

    Priority:
      1) settings.public_base_url
      2) X-Forwarded-Proto / X-Forwarded-Host (tunnels such as ngrok)
      3) request.base_url
    """
    if settings.public_base_url:
        return settings.public_base_url

    xf_proto = (request.headers.get("x-forwarded-proto") or "").split(",")[0].strip()
    xf_host = (request.headers.get("x-forwarded-host") or "").split(",")[0].strip()
    if xf_host:
        proto = xf_proto or request.url.scheme
        return f"{proto}://{xf_host}"

    base = str(request.base_url).rstrip("/")
    if xf_proto and base.startswith(f"{request.url.scheme}://"):
        base = f"{xf_proto}://{base.split('://', 1)[1]}"
    return base


def callback_url(request: Request, settings: Settings) -> str:
    return f"{_abs_base(request, settings)}{CALL_STEP_PATH}"


async def _parse_payload(request: Request) -> CallStepPayload:
    """Parse the body as JSON whatever the Content-Type; an empty body is allowed."""
    raw = await request.body()
    if not raw.strip():
        return CallStepPayload()
    try:
        return CallStepPayload.model_validate_json(raw)
    except ValidationError as e:
        raise MalformedCallbackError(f"Invalid call step body: {e.errors()}") from e


@router.api_route(
    CALL_STEP_PATH,
    methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
)
async def call_step(
    request: Request,
    service: Annotated[SurveyCallService, Depends(get_survey_service)],
    settings: Annotated[Settings, Depends(get_app_settings)],
    call_id: Annotated[str | None, Query(alias="callID")] = None,
    destination: Annotated[str | None, Query()] = None,
) -> JSONResponse:
    try:
        if not call_id:
            raise MalformedCallbackError("Missing callID query parameter")
        payload = await _parse_payload(request)
    except MalformedCallbackError as e:
        logger.warning(
            "Malformed call step callback",
            extra={"call_id": call_id, "error": str(e)},
        )
        flow = fallback_flow(VoiceOptions.from_settings(settings))
        return JSONResponse(content=flow.to_wire())

    if payload.is_partial:
        logger.warning(
            "Call step body carries only one recording identifier",
            extra={"call_id": call_id, "leg_id": payload.leg_id, "recording_id": payload.id},
        )

    flow = await service.handle_call_step(
        call_id=call_id,
        destination=destination,
        recording=payload.recording,
        callback_url=callback_url(request, settings),
    )
    return JSONResponse(content=flow.to_wire())
