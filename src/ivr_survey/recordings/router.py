"""
Recording playback proxy.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from ivr_survey.dependencies import get_recording_client
from ivr_survey.recordings.client import RecordingClient

router = APIRouter(tags=["recordings"])


@router.get("/play/{call_id}/{leg_id}/{recording_id}")
async def play_recording(
    call_id: str,
    leg_id: str,
    recording_id: str,
    client: Annotated[RecordingClient, Depends(get_recording_client)],
) -> StreamingResponse:
    # Upstream errors raise before any byte is sent, so they map to a status code.
    stream = await client.open_recording(call_id, leg_id, recording_id)

    headers = {}
    if stream.content_length is not None:
        headers["Content-Length"] = stream.content_length

    return StreamingResponse(
        stream.iter_bytes(),
        media_type=stream.media_type,
        headers=headers,
        background=BackgroundTask(stream.aclose),
    )
