from typing import Awaitable, Optional

from fastapi import APIRouter, Depends, HTTPException

from salon_agenda.dependencies.auth import get_principal
from salon_agenda.dependencies.services import get_booking_service
from salon_agenda.schemas.auth import Principal
from salon_agenda.schemas.booking import (
    Booking,
    BookingCreateRequest,
    BookingErrorKind,
    BookingListResponse,
    BookingRescheduleRequest,
    BookingResult,
    BookingStatus,
    BookingStatusUpdateRequest,
)
from salon_agenda.services import BookingService
from salon_agenda.services.exceptions import ServiceError

router = APIRouter()

ERROR_STATUS_CODES = {
    BookingErrorKind.SLOT_TAKEN: 409,
    BookingErrorKind.NOT_FOUND: 404,
    BookingErrorKind.NOT_OWNER: 403,
    BookingErrorKind.FORBIDDEN: 403,
}


async def _unwrap(pending: Awaitable[BookingResult]) -> Booking:
    try:
        result = await pending
    except ServiceError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    if not result.ok:
        raise HTTPException(
            status_code=ERROR_STATUS_CODES.get(result.error, 422),
            detail={"error": result.error.value, "message": result.message},
        )
    return result.booking


@router.post("", response_model=Booking, status_code=201)
async def create_booking(
    req: BookingCreateRequest,
    principal: Principal = Depends(get_principal),
    service: BookingService = Depends(get_booking_service),
):
    return await _unwrap(service.create_booking(req, principal))


@router.get("/mine", response_model=BookingListResponse)
async def list_my_bookings(
    status: Optional[BookingStatus] = None,
    principal: Principal = Depends(get_principal),
    service: BookingService = Depends(get_booking_service),
):
    try:
        return await service.list_customer_bookings(principal.user_id, status=status)
    except ServiceError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@router.post("/{booking_id}/cancel", response_model=Booking)
async def cancel_booking(
    booking_id: str,
    principal: Principal = Depends(get_principal),
    service: BookingService = Depends(get_booking_service),
):
    return await _unwrap(service.cancel_booking(booking_id, principal.user_id))


@router.post("/{booking_id}/staff-cancel", response_model=Booking)
async def staff_cancel_booking(
    booking_id: str,
    principal: Principal = Depends(get_principal),
    service: BookingService = Depends(get_booking_service),
):
    return await _unwrap(service.staff_cancel_booking(booking_id, principal))


@router.patch("/{booking_id}/status", response_model=Booking)
async def update_booking_status(
    booking_id: str,
    req: BookingStatusUpdateRequest,
    principal: Principal = Depends(get_principal),
    service: BookingService = Depends(get_booking_service),
):
    return await _unwrap(service.update_booking_status(booking_id, req.status, principal))


@router.post("/{booking_id}/reschedule", response_model=Booking)
async def reschedule_booking(
    booking_id: str,
    req: BookingRescheduleRequest,
    principal: Principal = Depends(get_principal),
    service: BookingService = Depends(get_booking_service),
):
    return await _unwrap(
        service.reschedule_booking(booking_id, req.date, req.start_time, principal)
    )
