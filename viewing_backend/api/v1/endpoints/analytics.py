"""
analytics.py - Researcher statistics and exports.

All figures are computed from the full event log on every request.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session as DBSession

from viewing_backend.api.errors import rejected
from viewing_backend.auth import require_researcher
from viewing_backend.database import get_db
from viewing_backend.schemas import ParticipantStats, RejectionResponse, StudyStats
from viewing_backend.services import Aggregator, ViewingError, export_rows

router = APIRouter(dependencies=[Depends(require_researcher)])


@router.get("/stats", response_model=StudyStats)
def study_stats(db: DBSession = Depends(get_db)):
    return Aggregator(db).study_stats()


@router.get(
    "/participants/{participant_id}",
    response_model=ParticipantStats,
    responses={404: {"model": RejectionResponse}},
)
def participant_stats(participant_id: str, db: DBSession = Depends(get_db)):
    try:
        return Aggregator(db).participant_stats(participant_id)
    except ViewingError as e:
        raise rejected(db, e)


@router.get("/export", response_model=list[dict[str, Any]], responses={400: {"model": RejectionResponse}})
def export(
    kind: str = Query("events", alias="type", description="events, sessions or participants"),
    db: DBSession = Depends(get_db),
):
    try:
        return export_rows(db, kind)
    except ViewingError as e:
        raise rejected(db, e)
