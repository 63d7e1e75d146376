# backend/mentorslot/routes/v1/slots.py
"""
Slot routes - API v1

Read-only views of a mentor's bookable time.

Endpoints:
    GET /slots - 15-minute base slots for a mentor on a date
    GET /slots/consecutive - Windows of a given duration for a mentor on a date
"""

from datetime import date
import logging
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...api.dependencies import get_slot_calculator
from ...core.exceptions import DomainException
from ...schemas.slots import ConsecutiveSlotsResponse, SlotResponse, SlotsResponse
from ...services.slot_calculator import SlotCalculator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["slots-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.get("", response_model=SlotsResponse)
def get_slots(
    mentor_id: str = Query(..., min_length=1),
    slot_date: date = Query(..., alias="date"),
    slot_calculator: SlotCalculator = Depends(get_slot_calculator),
) -> SlotsResponse:
    """Base slots for the mentor's availability on ``date``; empty when they have none."""
    try:
        slots = slot_calculator.get_slots(mentor_id, slot_date)
    except DomainException as e:
        handle_domain_exception(e)
    return SlotsResponse(
        mentor_id=mentor_id,
        slot_date=slot_date,
        slots=[SlotResponse.from_slot(s) for s in slots],
    )


@router.get("/consecutive", response_model=ConsecutiveSlotsResponse)
def get_consecutive_slots(
    mentor_id: str = Query(..., min_length=1),
    slot_date: date = Query(..., alias="date"),
    duration: int = Query(..., description="Session length in minutes"),
    slot_calculator: SlotCalculator = Depends(get_slot_calculator),
) -> ConsecutiveSlotsResponse:
    try:
        slots = slot_calculator.get_consecutive_slots(mentor_id, slot_date, duration)
    except DomainException as e:
        handle_domain_exception(e)
    return ConsecutiveSlotsResponse(
        mentor_id=mentor_id,
        slot_date=slot_date,
        duration_minutes=duration,
        slots=[SlotResponse.from_slot(s) for s in slots],
    )
