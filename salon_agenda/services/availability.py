from __future__ import annotations

import datetime as dt
import logging
from typing import Callable, List, Optional

from salon_agenda.clients.data_store import DataStoreClient
from salon_agenda.config import get_settings
from salon_agenda.schemas.availability import AvailabilityResponse, Slot
from salon_agenda.schemas.booking import ACTIVE_STATUSES
from salon_agenda.schemas.catalog import OperatingWindow
from salon_agenda.services.exceptions import ResourceNotFoundError
from salon_agenda.services.repository import AgendaRepository, default_repository
from salon_agenda.services.scheduling import (
    BusyInterval,
    busy_intervals,
    filter_available,
    generate_candidates,
    weekday_index,
)

logger = logging.getLogger(__name__)


class AvailabilityService:
    """Answers "which start times can still be booked" for a salon and day.

    Results are never cached: every call re-reads the operating hours and the
    bookings of the day, so the answer reflects the store at call time. It is
    a display aid only; :class:`BookingService` repeats the check when writing.
    """

    def __init__(
        self,
        client: DataStoreClient,
        *,
        repository: AgendaRepository | None = None,
        clock: Callable[[], dt.datetime] | None = None,
        tz: dt.tzinfo | None = None,
    ) -> None:
        self._client = client
        self._repository = repository or default_repository(client)
        settings = get_settings()
        self._tz = tz or settings.tzinfo
        self._clock = clock or (lambda: dt.datetime.now(self._tz))
        self._fallback_minutes = settings.default_slot_granularity_minutes

    def now(self) -> dt.datetime:
        return self._clock()

    def starts_at(self, date: dt.date, start_time: dt.time) -> dt.datetime:
        return dt.datetime.combine(date, start_time, tzinfo=self._tz)

    def hours_until(self, date: dt.date, start_time: dt.time) -> float:
        """Elapsed hours from now until the slot starts, across offset changes."""

        starts = self.starts_at(date, start_time).astimezone(dt.timezone.utc)
        remaining = starts - self.now().astimezone(dt.timezone.utc)
        return remaining.total_seconds() / 3600

    def is_past(self, date: dt.date, start_time: dt.time) -> bool:
        return self.hours_until(date, start_time) <= 0

    async def resolve_window(self, salon_id: str, date: dt.date) -> Optional[OperatingWindow]:
        """Return the operating window for the salon's weekday, or ``None`` when closed."""

        if self._client.use_mock_data:
            await self._client.simulate_latency()
        return await self._repository.get_operating_window(salon_id, weekday_index(date))

    async def load_busy_intervals(
        self,
        salon_id: str,
        date: dt.date,
        *,
        exclude_booking_id: Optional[str] = None,
    ) -> List[BusyInterval]:
        bookings = await self._repository.list_bookings(
            salon_id=salon_id, date=date, statuses=ACTIVE_STATUSES
        )
        services = await self._repository.list_services(salon_id)
        durations = {service.id: service.duration_minutes for service in services}
        return busy_intervals(
            bookings,
            durations,
            fallback_minutes=self._fallback_minutes,
            exclude_booking_id=exclude_booking_id,
        )

    async def get_available_slots(
        self,
        salon_id: str,
        service_id: str,
        date: dt.date,
        *,
        include_unavailable: bool = False,
    ) -> AvailabilityResponse:
        logger.info(
            "Computing availability for salon %s service %s on %s", salon_id, service_id, date
        )
        if self._client.use_mock_data:
            await self._client.simulate_latency()

        salon = await self._repository.get_salon(salon_id)
        if salon is None:
            raise ResourceNotFoundError(f"Salon {salon_id} not found")
        service = await self._repository.get_service(service_id)
        if service is None or service.salon_id != salon_id:
            raise ResourceNotFoundError(f"Service {service_id} not found for salon {salon_id}")

        window = await self.resolve_window(salon_id, date)
        if window is None:
            return AvailabilityResponse(
                salon_id=salon_id, service_id=service_id, date=date, closed=True, slots=[]
            )
        if not service.active:
            logger.info("Service %s is inactive; no slots offered", service_id)
            return AvailabilityResponse(
                salon_id=salon_id, service_id=service_id, date=date, slots=[]
            )

        candidates = generate_candidates(window, service.duration_minutes)
        busy = await self.load_busy_intervals(salon_id, date)
        free = set(filter_available(candidates, busy, service.duration_minutes))

        now = self.now().astimezone(dt.timezone.utc)
        slots: List[Slot] = []
        for candidate in candidates:
            starts = self.starts_at(date, candidate).astimezone(dt.timezone.utc)
            available = candidate in free and starts > now
            if available or include_unavailable:
                slots.append(Slot(date=date, start_time=candidate, available=available))
        return AvailabilityResponse(
            salon_id=salon_id, service_id=service_id, date=date, slots=slots
        )
