from __future__ import annotations

import datetime as dt
from typing import TYPE_CHECKING, AsyncContextManager, Collection, List, Optional, Protocol

from salon_agenda.schemas.booking import Booking, BookingDraft, BookingStatus
from salon_agenda.schemas.catalog import OperatingWindow, Salon, SalonService

if TYPE_CHECKING:  # pragma: no cover - import for static analysis only
    from salon_agenda.clients.data_store import DataStoreClient


class AgendaRepository(Protocol):
    """Storage operations the booking engine relies on.

    ``slot_guard`` must make the read-check-write sequence performed under it
    atomic for one salon and date, or the store must reject the conflicting
    write with :class:`~salon_agenda.services.exceptions.StoreConflictError`.
    """

    async def get_salon(self, salon_id: str) -> Optional[Salon]: ...

    async def search_salons(
        self,
        *,
        city: Optional[str] = None,
        district: Optional[str] = None,
        query: Optional[str] = None,
    ) -> List[Salon]: ...

    async def list_services(
        self, salon_id: str, *, active_only: bool = False
    ) -> List[SalonService]: ...

    async def get_service(self, service_id: str) -> Optional[SalonService]: ...

    async def get_operating_window(
        self, salon_id: str, weekday: int
    ) -> Optional[OperatingWindow]: ...

    async def list_operating_windows(self, salon_id: str) -> List[OperatingWindow]: ...

    async def list_bookings(
        self,
        *,
        salon_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        date: Optional[dt.date] = None,
        statuses: Optional[Collection[BookingStatus]] = None,
    ) -> List[Booking]: ...

    async def get_booking(self, booking_id: str) -> Optional[Booking]: ...

    async def insert_booking(self, draft: BookingDraft) -> Booking: ...

    async def update_booking(
        self,
        booking_id: str,
        *,
        expected_status: BookingStatus,
        status: Optional[BookingStatus] = None,
        date: Optional[dt.date] = None,
        start_time: Optional[dt.time] = None,
    ) -> Optional[Booking]: ...

    def slot_guard(self, salon_id: str, date: dt.date) -> AsyncContextManager[None]: ...


def default_repository(client: "DataStoreClient") -> AgendaRepository:
    """Pick the in-memory store in mock mode and the REST store otherwise."""

    if client.use_mock_data:
        from salon_agenda.services.mock_store import get_mock_store

        return get_mock_store().agenda

    from salon_agenda.config import get_settings
    from salon_agenda.services.remote_store import RemoteAgendaRepository

    return RemoteAgendaRepository(
        client,
        default_granularity_minutes=get_settings().default_slot_granularity_minutes,
    )
