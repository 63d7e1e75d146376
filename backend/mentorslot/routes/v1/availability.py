# backend/mentorslot/routes/v1/availability.py
"""
Availability routes - API v1

Endpoints:
    GET /{mentor_id} - A mentor's weekly windows and offerings
    PUT /windows - Replace the caller's weekly windows
    PUT /offerings - Replace the caller's offerings
"""

import logging
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.params import Path

from ...api.dependencies import get_availability_service, get_current_user_id
from ...core.exceptions import DomainException
from ...schemas.availability import (
    AvailabilityTemplateResponse,
    AvailabilityWindowOut,
    AvailabilityWindowsReplace,
    OfferingOut,
    OfferingsReplace,
)
from ...services.availability_service import AvailabilityService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["availability-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def _template_response(service: AvailabilityService, mentor_id: str) -> AvailabilityTemplateResponse:
    template = service.get_template(mentor_id)
    return AvailabilityTemplateResponse(
        mentor_id=mentor_id,
        windows=[AvailabilityWindowOut.from_model(w) for w in template["windows"]],
        offerings=[OfferingOut.from_model(o) for o in template["offerings"]],
    )


@router.put("/windows", response_model=AvailabilityTemplateResponse)
def replace_windows(
    payload: AvailabilityWindowsReplace,
    current_user_id: str = Depends(get_current_user_id),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityTemplateResponse:
    try:
        availability_service.replace_windows(
            current_user_id, [w.model_dump() for w in payload.windows]
        )
    except DomainException as e:
        handle_domain_exception(e)
    return _template_response(availability_service, current_user_id)


@router.put("/offerings", response_model=AvailabilityTemplateResponse)
def replace_offerings(
    payload: OfferingsReplace,
    current_user_id: str = Depends(get_current_user_id),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityTemplateResponse:
    try:
        availability_service.replace_offerings(
            current_user_id, [o.model_dump() for o in payload.offerings]
        )
    except DomainException as e:
        handle_domain_exception(e)
    return _template_response(availability_service, current_user_id)


@router.get("/{mentor_id}", response_model=AvailabilityTemplateResponse)
def get_template(
    mentor_id: str = Path(..., min_length=1),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityTemplateResponse:
    return _template_response(availability_service, mentor_id)
