"""
Client for recordings held by the external voice API.

Recordings live at ``/calls/{call}/legs/{leg}/recordings/{recording}.wav``
and require the account credential in the ``Authorization`` header.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from urllib.parse import quote

import httpx

from ivr_survey.config import Settings
from ivr_survey.shared.exceptions import UpstreamAudioFetchError
from ivr_survey.shared.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RecordingStream:
    """An open upstream recording response."""

    response: httpx.Response

    @property
    def media_type(self) -> str:
        return self.response.headers.get("content-type", "audio/wav")

    @property
    def content_length(self) -> str | None:
        return self.response.headers.get("content-length")

    def iter_bytes(self) -> AsyncIterator[bytes]:
        return self.response.aiter_bytes()

    async def aclose(self) -> None:
        await self.response.aclose()


class RecordingClient:
    """Streams recordings from the voice API.

    The underlying ``httpx.AsyncClient`` is created on first use and shared
    by all requests until ``aclose``.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        auth_scheme: str = "AccessKey",
        timeout_seconds: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._auth_scheme = auth_scheme
        self._timeout_seconds = timeout_seconds
        self._http_client = http_client

    @classmethod
    def from_settings(cls, settings: Settings) -> RecordingClient:
        return cls(
            base_url=settings.voice_api_base_url,
            api_key=settings.voice_api_key,
            auth_scheme=settings.voice_api_auth_scheme,
            timeout_seconds=settings.voice_api_timeout_seconds,
        )

    def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout_seconds)
            )
        return self._http_client

    def recording_url(self, call_id: str, leg_id: str, recording_id: str) -> str:
        parts = [quote(p, safe="") for p in (call_id, leg_id, recording_id)]
        return (
            f"{self._base_url}/calls/{parts[0]}/legs/{parts[1]}"
            f"/recordings/{parts[2]}.wav"
        )

    async def open_recording(
        self,
        call_id: str,
        leg_id: str,
        recording_id: str,
    ) -> RecordingStream:
        """Open a streaming response for one recording.

        The caller owns the returned stream and must close it.

        Raises:
            UpstreamAudioFetchError: If no credential is configured (503),
                the API is unreachable (502) or answers with a non-2xx
                status (502, or 404 when the recording does not exist).
        """
        if not self._api_key:
            raise UpstreamAudioFetchError(
                "Voice API credential is not configured", status_code=503
            )

        url = self.recording_url(call_id, leg_id, recording_id)
        client = self._get_client()
        request = client.build_request(
            "GET",
            url,
            headers={"Authorization": f"{self._auth_scheme} {self._api_key}"},
        )

        try:
            response = await client.send(request, stream=True)
        except httpx.HTTPError as e:
            logger.warning(
                "Voice API request failed",
                extra={"call_id": call_id, "recording_id": recording_id, "error": str(e)},
            )
            raise UpstreamAudioFetchError(f"Voice API request failed: {e}") from e

        if not response.is_success:
            status_code = response.status_code
            await response.aclose()
            logger.warning(
                "Voice API returned error status",
                extra={
                    "call_id": call_id,
                    "recording_id": recording_id,
                    "upstream_status": status_code,
                },
            )
            raise UpstreamAudioFetchError(
                f"Voice API answered {status_code} for recording {recording_id}",
                status_code=404 if status_code == 404 else 502,
            )

        return RecordingStream(response=response)

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
