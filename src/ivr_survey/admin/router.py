"""
Admin page listing the question catalog and every participant's answers.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Sequence
from urllib.parse import quote

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from ivr_survey.dependencies import get_catalog, get_participant_repository
from ivr_survey.participants.models import Participant
from ivr_survey.participants.repository import ParticipantRepository
from ivr_survey.participants.schemas import SurveyResponse
from ivr_survey.survey.questions import QuestionCatalog

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

router = APIRouter(tags=["admin"])


@dataclass(frozen=True)
class ParticipantRow:
    call_id: str
    number: str | None
    answers: list[SurveyResponse | None]
    play_urls: list[str | None]

    @property
    def answered_count(self) -> int:
        return sum(1 for answer in self.answers if answer is not None)


def play_url(call_id: str, answer: SurveyResponse) -> str:
    """Local `/play` link for one answer; ids may contain any character."""
    parts = (call_id, answer.leg_id, answer.recording_id)
    return "/play/" + "/".join(quote(part, safe="") for part in parts)


def build_rows(
    catalog: QuestionCatalog,
    participants: Sequence[Participant],
) -> list[ParticipantRow]:
    """One row per participant, one answer slot per question."""
    rows = []
    for participant in participants:
        stored = [SurveyResponse.model_validate(r) for r in participant.responses]
        answers: list[SurveyResponse | None] = [
            stored[i] if i < len(stored) else None for i in range(len(catalog))
        ]
        rows.append(
            ParticipantRow(
                call_id=participant.call_id,
                number=participant.number,
                answers=answers,
                play_urls=[
                    play_url(participant.call_id, a) if a is not None else None
                    for a in answers
                ],
            )
        )
    return rows


@router.get("/admin", response_class=HTMLResponse)
async def admin_view(
    request: Request,
    repository: Annotated[ParticipantRepository, Depends(get_participant_repository)],
    catalog: Annotated[QuestionCatalog, Depends(get_catalog)],
) -> HTMLResponse:
    participants = await repository.list_all()
    return templates.TemplateResponse(
        request,
        "participants.html",
        {
            "questions": list(catalog),
            "participants": build_rows(catalog, participants),
        },
    )
