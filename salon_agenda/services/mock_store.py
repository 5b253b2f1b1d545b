from __future__ import annotations

import asyncio
import datetime as dt
import itertools
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Collection, Dict, Iterable, List, Optional, Tuple

from salon_agenda.schemas.booking import ACTIVE_STATUSES, Booking, BookingDraft, BookingStatus
from salon_agenda.schemas.catalog import OperatingWindow, Salon, SalonService
from salon_agenda.services.exceptions import StoreConflictError


def _utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class _BaseRepository:
    def __init__(self, prefix: str) -> None:
        self._prefix = prefix
        self._counter = itertools.count(1)

    def _next_id(self) -> str:
        return f"{self._prefix}-{next(self._counter):05d}"


def _weekly_hours(
    salon_id: str,
    hours: Dict[int, Tuple[str, str]],
    granularity: int,
) -> List[OperatingWindow]:
    return [
        OperatingWindow(
            salon_id=salon_id,
            weekday=weekday,
            opens_at=dt.time.fromisoformat(opens),
            closes_at=dt.time.fromisoformat(closes),
            slot_granularity_minutes=granularity,
        )
        for weekday, (opens, closes) in sorted(hours.items())
    ]


class MockAgendaRepository(_BaseRepository):
    """In-memory stand-in for the hosted data store.

    Writes run under a per-(salon, date) :class:`asyncio.Lock` and the insert
    path refuses a second active booking at the same salon, date and start
    time, mirroring the unique constraint the hosted schema carries.
    """

    def __init__(self, *, seed: bool = True) -> None:
        super().__init__("BKG")
        self._salons: Dict[str, Salon] = {}
        self._services: Dict[str, SalonService] = {}
        self._hours: Dict[Tuple[str, int], OperatingWindow] = {}
        self._bookings: Dict[str, Booking] = {}
        self._locks: Dict[Tuple[str, dt.date], asyncio.Lock] = {}
        self._lock_users: Dict[Tuple[str, dt.date], int] = {}
        if seed:
            self._seed_defaults()

    def _seed_defaults(self) -> None:
        self.add_salon(
            Salon(
                id="salon-bela-vista",
                name="Studio Bela Vista",
                address="Rua Treze de Maio, 820",
                city="São Paulo",
                district="Bela Vista",
                state="SP",
                whatsapp="+5511988887777",
                cancellation_policy_hours=24,
            ),
            services=[
                SalonService(id="svc-corte-feminino", salon_id="salon-bela-vista", name="Corte feminino", duration_minutes=60, price_minor_units=9000),
                SalonService(id="svc-escova", salon_id="salon-bela-vista", name="Escova modelada", duration_minutes=45, price_minor_units=6000),
                SalonService(id="svc-manicure", salon_id="salon-bela-vista", name="Manicure", duration_minutes=30, price_minor_units=3500),
                SalonService(id="svc-coloracao", salon_id="salon-bela-vista", name="Coloração", duration_minutes=120, price_minor_units=22000),
                SalonService(id="svc-hidratacao", salon_id="salon-bela-vista", name="Hidratação", duration_minutes=40, price_minor_units=None, active=False),
            ],
            hours=_weekly_hours(
                "salon-bela-vista",
                {
                    1: ("09:00", "19:00"),
                    2: ("09:00", "19:00"),
                    3: ("09:00", "19:00"),
                    4: ("09:00", "19:00"),
                    5: ("09:00", "20:00"),
                    6: ("08:00", "18:00"),
                },
                granularity=30,
            ),
        )
        self.add_salon(
            Salon(
                id="salon-barbearia-centro",
                name="Barbearia do Centro",
                address="Rua da Carioca, 45",
                city="Rio de Janeiro",
                district="Centro",
                state="RJ",
                whatsapp="+5521977776666",
                cancellation_policy_hours=2,
            ),
            services=[
                SalonService(id="svc-corte-masculino", salon_id="salon-barbearia-centro", name="Corte masculino", duration_minutes=30, price_minor_units=4500),
                SalonService(id="svc-barba", salon_id="salon-barbearia-centro", name="Barba", duration_minutes=20, price_minor_units=3000),
                SalonService(id="svc-corte-barba", salon_id="salon-barbearia-centro", name="Corte + barba", duration_minutes=50, price_minor_units=7000),
            ],
            hours=_weekly_hours(
                "salon-barbearia-centro",
                {weekday: ("10:00", "20:00") for weekday in range(2, 7)},
                granularity=20,
            ),
        )

        seeds = [
            BookingDraft(
                salon_id="salon-bela-vista",
                customer_id="cliente-ana",
                service_id="svc-corte-feminino",
                date=dt.date(2025, 9, 5),
                start_time=dt.time(17, 0),
                status=BookingStatus.CONFIRMED,
            ),
            BookingDraft(
                salon_id="salon-bela-vista",
                customer_id="cliente-julia",
                service_id="svc-manicure",
                date=dt.date(2025, 9, 6),
                start_time=dt.time(11, 30),
                status=BookingStatus.PENDING,
                notes="Prefere esmalte claro",
            ),
        ]
        for draft in seeds:
            self._store_draft(draft)

    def add_salon(
        self,
        salon: Salon,
        *,
        services: Iterable[SalonService] = (),
        hours: Iterable[OperatingWindow] = (),
    ) -> None:
        self._salons[salon.id] = salon
        for service in services:
            self._services[service.id] = service
        for window in hours:
            self._hours[(window.salon_id, window.weekday)] = window

    def iter_salons(self) -> Iterable[Salon]:
        return self._salons.values()

    def iter_services(self) -> Iterable[SalonService]:
        return self._services.values()

    def iter_operating_windows(self) -> Iterable[OperatingWindow]:
        return self._hours.values()

    def iter_bookings(self) -> Iterable[Booking]:
        return self._bookings.values()

    async def get_salon(self, salon_id: str) -> Optional[Salon]:
        salon = self._salons.get(salon_id)
        return salon.model_copy() if salon is not None else None

    async def search_salons(
        self,
        *,
        city: Optional[str] = None,
        district: Optional[str] = None,
        query: Optional[str] = None,
    ) -> List[Salon]:
        normalized = query.strip().lower() if query else ""
        matches = [
            salon
            for salon in self._salons.values()
            if (city is None or salon.city == city)
            and (district is None or salon.district == district)
            and (not normalized or normalized in salon.name.lower())
        ]
        matches.sort(key=lambda salon: salon.name)
        return [salon.model_copy() for salon in matches]

    async def list_services(
        self, salon_id: str, *, active_only: bool = False
    ) -> List[SalonService]:
        services = [
            service
            for service in self._services.values()
            if service.salon_id == salon_id and (service.active or not active_only)
        ]
        services.sort(key=lambda service: service.name)
        return [service.model_copy() for service in services]

    async def get_service(self, service_id: str) -> Optional[SalonService]:
        service = self._services.get(service_id)
        return service.model_copy() if service is not None else None

    async def get_operating_window(
        self, salon_id: str, weekday: int
    ) -> Optional[OperatingWindow]:
        window = self._hours.get((salon_id, weekday))
        return window.model_copy() if window is not None else None

    async def list_operating_windows(self, salon_id: str) -> List[OperatingWindow]:
        windows = [window for (owner, _), window in self._hours.items() if owner == salon_id]
        windows.sort(key=lambda window: window.weekday)
        return [window.model_copy() for window in windows]

    async def list_bookings(
        self,
        *,
        salon_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        date: Optional[dt.date] = None,
        statuses: Optional[Collection[BookingStatus]] = None,
    ) -> List[Booking]:
        # Yield like a network round trip would, so interleavings are realistic.
        await asyncio.sleep(0)
        matches = [
            booking
            for booking in self._bookings.values()
            if (salon_id is None or booking.salon_id == salon_id)
            and (customer_id is None or booking.customer_id == customer_id)
            and (date is None or booking.date == date)
            and (statuses is None or booking.status in statuses)
        ]
        matches.sort(key=lambda booking: (booking.date, booking.start_time))
        return [booking.model_copy() for booking in matches]

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        booking = self._bookings.get(booking_id)
        return booking.model_copy() if booking is not None else None

    async def insert_booking(self, draft: BookingDraft) -> Booking:
        await asyncio.sleep(0)
        return self._store_draft(draft).model_copy()

    async def update_booking(
        self,
        booking_id: str,
        *,
        expected_status: BookingStatus,
        status: Optional[BookingStatus] = None,
        date: Optional[dt.date] = None,
        start_time: Optional[dt.time] = None,
    ) -> Optional[Booking]:
        await asyncio.sleep(0)
        current = self._bookings.get(booking_id)
        if current is None or current.status != expected_status:
            return None

        changes: Dict[str, object] = {"updated_at": _utc_now()}
        if status is not None:
            changes["status"] = status
        if date is not None:
            changes["date"] = date
        if start_time is not None:
            changes["start_time"] = start_time
        updated = current.model_copy(update=changes)
        if updated.status in ACTIVE_STATUSES:
            self._check_unique_slot(
                updated.salon_id, updated.date, updated.start_time, ignore_id=booking_id
            )
        self._bookings[booking_id] = updated
        return updated.model_copy()

    @asynccontextmanager
    async def slot_guard(self, salon_id: str, date: dt.date) -> AsyncIterator[None]:
        key = (salon_id, date)
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            # Drop the lock once no holder or waiter refers to it.
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]

    def _store_draft(self, draft: BookingDraft) -> Booking:
        if draft.status in ACTIVE_STATUSES:
            self._check_unique_slot(draft.salon_id, draft.date, draft.start_time)
        now = _utc_now()
        booking = Booking(id=self._next_id(), created_at=now, updated_at=now, **draft.model_dump())
        self._bookings[booking.id] = booking
        return booking

    def _check_unique_slot(
        self,
        salon_id: str,
        date: dt.date,
        start_time: dt.time,
        *,
        ignore_id: Optional[str] = None,
    ) -> None:
        for booking in self._bookings.values():
            if (
                booking.id != ignore_id
                and booking.salon_id == salon_id
                and booking.date == date
                and booking.start_time == start_time
                and booking.status in ACTIVE_STATUSES
            ):
                raise StoreConflictError(
                    f"Slot {date} {start_time} at {salon_id} already holds booking {booking.id}"
                )


@dataclass
class MockDataStore:
    agenda: MockAgendaRepository


_mock_store: Optional[MockDataStore] = None


def get_mock_store() -> MockDataStore:
    global _mock_store
    if _mock_store is None:
        _mock_store = MockDataStore(agenda=MockAgendaRepository())
    return _mock_store


def reset_mock_store() -> None:
    global _mock_store
    _mock_store = None
