import datetime as dt
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from salon_agenda.dependencies.auth import get_principal
from salon_agenda.dependencies.services import (
    get_availability_service,
    get_booking_service,
    get_catalog_service,
)
from salon_agenda.schemas.auth import Principal
from salon_agenda.schemas.availability import AvailabilityResponse
from salon_agenda.schemas.booking import AgendaSummary, BookingListResponse, BookingStatus
from salon_agenda.schemas.catalog import SalonDetail, SalonSearchResponse
from salon_agenda.services import AvailabilityService, BookingService, CatalogService
from salon_agenda.services.exceptions import ResourceNotFoundError, ServiceError

router = APIRouter()


def _require_salon_staff(principal: Principal, salon_id: str) -> None:
    if not principal.can_manage(salon_id):
        raise HTTPException(status_code=403, detail="Salon agenda is restricted to its staff")


@router.get("", response_model=SalonSearchResponse)
async def search_salons(
    city: Optional[str] = None,
    district: Optional[str] = None,
    search: Optional[str] = None,
    service: CatalogService = Depends(get_catalog_service),
):
    try:
        return await service.search_salons(city=city, district=district, query=search)
    except ServiceError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@router.get("/{salon_id}", response_model=SalonDetail)
async def get_salon(
    salon_id: str,
    service: CatalogService = Depends(get_catalog_service),
):
    try:
        return await service.get_salon(salon_id)
    except ResourceNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ServiceError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@router.get("/{salon_id}/availability", response_model=AvailabilityResponse)
async def get_available_slots(
    salon_id: str,
    service_id: str,
    date: dt.date,
    include_unavailable: bool = False,
    service: AvailabilityService = Depends(get_availability_service),
):
    try:
        return await service.get_available_slots(
            salon_id, service_id, date, include_unavailable=include_unavailable
        )
    except ResourceNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ServiceError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@router.get("/{salon_id}/bookings", response_model=BookingListResponse)
async def list_salon_bookings(
    salon_id: str,
    date: Optional[dt.date] = None,
    status: Optional[BookingStatus] = None,
    principal: Principal = Depends(get_principal),
    service: BookingService = Depends(get_booking_service),
):
    _require_salon_staff(principal, salon_id)
    try:
        return await service.list_salon_bookings(salon_id, date=date, status=status)
    except ServiceError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@router.get("/{salon_id}/agenda-summary", response_model=AgendaSummary)
async def agenda_summary(
    salon_id: str,
    date: dt.date = Query(...),
    principal: Principal = Depends(get_principal),
    service: BookingService = Depends(get_booking_service),
):
    _require_salon_staff(principal, salon_id)
    try:
        return await service.agenda_summary(salon_id, date)
    except ServiceError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
