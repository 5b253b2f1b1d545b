from __future__ import annotations

import datetime as dt
import logging
from collections import Counter
from typing import Callable, Dict, FrozenSet, Optional

from salon_agenda.clients.data_store import DataStoreClient
from salon_agenda.schemas.auth import Principal
from salon_agenda.schemas.booking import (
    AgendaSummary,
    Booking,
    BookingCreateRequest,
    BookingDraft,
    BookingErrorKind,
    BookingListResponse,
    BookingResult,
    BookingStatus,
    TERMINAL_STATUSES,
)
from salon_agenda.services.availability import AvailabilityService
from salon_agenda.services.exceptions import StoreConflictError
from salon_agenda.services.notifications import LoggingNotificationSink, NotificationSink
from salon_agenda.services.repository import AgendaRepository, default_repository
from salon_agenda.services.scheduling import conflicts_for, fits_window

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset(
        {BookingStatus.COMPLETED, BookingStatus.NO_SHOW, BookingStatus.CANCELLED}
    ),
}


class BookingService:
    """Creates, cancels, moves and advances bookings.

    Every write that claims time re-checks conflicts against the bookings in
    the store at write time, inside the repository's ``slot_guard`` for that
    salon and date. Business rejections come back as a failed
    :class:`BookingResult`; only infrastructure problems raise.
    """

    def __init__(
        self,
        client: DataStoreClient,
        *,
        repository: AgendaRepository | None = None,
        notifier: NotificationSink | None = None,
        clock: Callable[[], dt.datetime] | None = None,
        tz: dt.tzinfo | None = None,
    ) -> None:
        self._client = client
        self._repository = repository or default_repository(client)
        self._notifier = notifier or LoggingNotificationSink()
        self._availability = AvailabilityService(
            client, repository=self._repository, clock=clock, tz=tz
        )

    def _notify(self, level: str, message: str) -> None:
        try:
            self._notifier.notify(level, message)
        except Exception:  # pragma: no cover - notification sinks are best effort
            logger.exception("Notification sink failed for message %r", message)

    def _reject(self, error: BookingErrorKind, message: str) -> BookingResult:
        logger.info("Booking operation rejected (%s): %s", error.value, message)
        self._notify("error", message)
        return BookingResult.failure(error, message)

    async def _check_slot(
        self, salon_id: str, date: dt.date, start_time: dt.time, duration_minutes: int
    ) -> Optional[BookingResult]:
        window = await self._availability.resolve_window(salon_id, date)
        if window is None or not fits_window(window, start_time, duration_minutes):
            return self._reject(
                BookingErrorKind.OUTSIDE_OPERATING_WINDOW,
                f"{date} {start_time:%H:%M} is outside the salon's opening hours",
            )
        if self._availability.is_past(date, start_time):
            return self._reject(
                BookingErrorKind.SLOT_IN_PAST,
                f"{date} {start_time:%H:%M} has already started",
            )
        return None

    def _slot_taken(self, date: dt.date, start_time: dt.time) -> BookingResult:
        return self._reject(
            BookingErrorKind.SLOT_TAKEN,
            f"{date} {start_time:%H:%M} is no longer available, please pick another time",
        )

    async def create_booking(
        self, request: BookingCreateRequest, principal: Principal
    ) -> BookingResult:
        logger.info(
            "Creating booking at salon %s for %s %s by %s",
            request.salon_id,
            request.date,
            request.start_time,
            principal.user_id,
        )
        if self._client.use_mock_data:
            await self._client.simulate_latency()

        if principal.is_staff and not principal.can_manage(request.salon_id):
            return self._reject(
                BookingErrorKind.FORBIDDEN, "Staff may only book for their own salon"
            )

        service = await self._repository.get_service(request.service_id)
        if service is None or service.salon_id != request.salon_id:
            return self._reject(BookingErrorKind.NOT_FOUND, "Service not found for this salon")
        if not service.active:
            return self._reject(
                BookingErrorKind.SERVICE_INACTIVE, f"{service.name} is not currently offered"
            )

        rejected = await self._check_slot(
            request.salon_id, request.date, request.start_time, service.duration_minutes
        )
        if rejected is not None:
            return rejected

        if principal.is_staff:
            customer_id = request.customer_id or principal.user_id
            status = BookingStatus.CONFIRMED
            origin = "salon"
        else:
            customer_id = principal.user_id
            status = BookingStatus.PENDING
            origin = "app"

        draft = BookingDraft(
            salon_id=request.salon_id,
            customer_id=customer_id,
            service_id=service.id,
            professional_id=request.professional_id,
            date=request.date,
            start_time=request.start_time,
            status=status,
            notes=request.notes,
            origin=origin,
        )

        async with self._repository.slot_guard(request.salon_id, request.date):
            busy = await self._availability.load_busy_intervals(request.salon_id, request.date)
            if conflicts_for(request.start_time, service.duration_minutes, busy):
                return self._slot_taken(request.date, request.start_time)
            try:
                booking = await self._repository.insert_booking(draft)
            except StoreConflictError:
                return self._slot_taken(request.date, request.start_time)

        logger.info("Booking %s created with status %s", booking.id, booking.status.value)
        self._notify("success", "Booking created successfully")
        return BookingResult.success(booking, "Booking created")

    async def cancel_booking(self, booking_id: str, acting_customer_id: str) -> BookingResult:
        """Customer self-cancellation, subject to the salon's cancellation policy."""

        logger.info("Customer %s cancelling booking %s", acting_customer_id, booking_id)
        if self._client.use_mock_data:
            await self._client.simulate_latency()

        booking = await self._repository.get_booking(booking_id)
        if booking is None:
            return self._reject(BookingErrorKind.NOT_FOUND, f"Booking {booking_id} not found")
        if booking.customer_id != acting_customer_id:
            return self._reject(BookingErrorKind.NOT_OWNER, "This booking belongs to another customer")
        if booking.status in TERMINAL_STATUSES:
            return self._reject(
                BookingErrorKind.ALREADY_TERMINAL,
                f"Booking is already {booking.status.value}",
            )

        salon = await self._repository.get_salon(booking.salon_id)
        min_hours = salon.cancellation_policy_hours if salon is not None else 0
        hours_until_start = self._availability.hours_until(booking.date, booking.start_time)
        if hours_until_start < min_hours:
            return self._reject(
                BookingErrorKind.TOO_LATE_TO_CANCEL,
                f"Cancellations require at least {min_hours}h notice",
            )

        return await self._transition(booking, BookingStatus.CANCELLED)

    async def staff_cancel_booking(self, booking_id: str, principal: Principal) -> BookingResult:
        """Cancellation by the salon; the customer cancellation policy does not apply."""

        return await self.update_booking_status(booking_id, BookingStatus.CANCELLED, principal)

    async def update_booking_status(
        self, booking_id: str, new_status: BookingStatus, principal: Principal
    ) -> BookingResult:
        logger.info(
            "User %s (%s) moving booking %s to %s",
            principal.user_id,
            principal.role.value,
            booking_id,
            new_status.value,
        )
        if self._client.use_mock_data:
            await self._client.simulate_latency()

        if not principal.is_staff:
            return self._reject(BookingErrorKind.FORBIDDEN, "Only salon staff may change a booking's status")
        booking = await self._repository.get_booking(booking_id)
        if booking is None:
            return self._reject(BookingErrorKind.NOT_FOUND, f"Booking {booking_id} not found")
        if not principal.can_manage(booking.salon_id):
            return self._reject(BookingErrorKind.FORBIDDEN, "Booking belongs to another salon")
        return await self._transition(booking, new_status)

    async def _transition(self, booking: Booking, new_status: BookingStatus) -> BookingResult:
        if booking.status in TERMINAL_STATUSES:
            return self._reject(
                BookingErrorKind.ALREADY_TERMINAL,
                f"Booking is already {booking.status.value}",
            )
        if new_status not in ALLOWED_TRANSITIONS.get(booking.status, frozenset()):
            return self._reject(
                BookingErrorKind.INVALID_TRANSITION,
                f"Cannot move a {booking.status.value} booking to {new_status.value}",
            )

        updated = await self._repository.update_booking(
            booking.id, expected_status=booking.status, status=new_status
        )
        if updated is None:
            # Someone else changed the booking first; judge against its new state.
            current = await self._repository.get_booking(booking.id)
            if current is None:
                return self._reject(BookingErrorKind.NOT_FOUND, f"Booking {booking.id} not found")
            return await self._transition(current, new_status)

        logger.info("Booking %s is now %s", updated.id, updated.status.value)
        self._notify("success", f"Booking {new_status.value}")
        return BookingResult.success(updated)

    async def reschedule_booking(
        self,
        booking_id: str,
        new_date: dt.date,
        new_start_time: dt.time,
        principal: Principal,
    ) -> BookingResult:
        """Move a booking in place, keeping its id and status."""

        logger.info(
            "User %s rescheduling booking %s to %s %s",
            principal.user_id,
            booking_id,
            new_date,
            new_start_time,
        )
        if self._client.use_mock_data:
            await self._client.simulate_latency()

        booking = await self._repository.get_booking(booking_id)
        if booking is None:
            return self._reject(BookingErrorKind.NOT_FOUND, f"Booking {booking_id} not found")
        if principal.is_staff:
            if not principal.can_manage(booking.salon_id):
                return self._reject(BookingErrorKind.FORBIDDEN, "Booking belongs to another salon")
        elif booking.customer_id != principal.user_id:
            return self._reject(BookingErrorKind.NOT_OWNER, "This booking belongs to another customer")
        if booking.status in TERMINAL_STATUSES:
            return self._reject(
                BookingErrorKind.ALREADY_TERMINAL,
                f"Booking is already {booking.status.value}",
            )

        service = await self._repository.get_service(booking.service_id)
        if service is None:
            return self._reject(BookingErrorKind.NOT_FOUND, "The booked service no longer exists")

        rejected = await self._check_slot(
            booking.salon_id, new_date, new_start_time, service.duration_minutes
        )
        if rejected is not None:
            return rejected

        async with self._repository.slot_guard(booking.salon_id, new_date):
            busy = await self._availability.load_busy_intervals(
                booking.salon_id, new_date, exclude_booking_id=booking.id
            )
            if conflicts_for(new_start_time, service.duration_minutes, busy):
                return self._slot_taken(new_date, new_start_time)
            try:
                updated = await self._repository.update_booking(
                    booking.id,
                    expected_status=booking.status,
                    date=new_date,
                    start_time=new_start_time,
                )
            except StoreConflictError:
                return self._slot_taken(new_date, new_start_time)

        if updated is None:
            current = await self._repository.get_booking(booking.id)
            if current is None:
                return self._reject(BookingErrorKind.NOT_FOUND, f"Booking {booking.id} not found")
            if current.status in TERMINAL_STATUSES:
                return self._reject(
                    BookingErrorKind.ALREADY_TERMINAL,
                    f"Booking is already {current.status.value}",
                )
            return await self.reschedule_booking(booking.id, new_date, new_start_time, principal)

        logger.info("Booking %s moved to %s %s", updated.id, updated.date, updated.start_time)
        self._notify("success", "Booking rescheduled")
        return BookingResult.success(updated, "Booking rescheduled")

    async def list_customer_bookings(
        self, customer_id: str, *, status: BookingStatus | None = None
    ) -> BookingListResponse:
        logger.info("Listing bookings for customer %s", customer_id)
        if self._client.use_mock_data:
            await self._client.simulate_latency()
        bookings = await self._repository.list_bookings(
            customer_id=customer_id, statuses={status} if status else None
        )
        bookings.sort(key=lambda booking: (booking.date, booking.start_time), reverse=True)
        return BookingListResponse(total=len(bookings), items=bookings)

    async def list_salon_bookings(
        self,
        salon_id: str,
        *,
        date: dt.date | None = None,
        status: BookingStatus | None = None,
    ) -> BookingListResponse:
        logger.info("Listing agenda for salon %s on %s", salon_id, date or "all dates")
        if self._client.use_mock_data:
            await self._client.simulate_latency()
        bookings = await self._repository.list_bookings(
            salon_id=salon_id, date=date, statuses={status} if status else None
        )
        bookings.sort(key=lambda booking: (booking.date, booking.start_time))
        return BookingListResponse(total=len(bookings), items=bookings)

    async def agenda_summary(self, salon_id: str, date: dt.date) -> AgendaSummary:
        bookings = await self._repository.list_bookings(salon_id=salon_id, date=date)
        counts = Counter(booking.status for booking in bookings)
        return AgendaSummary(
            salon_id=salon_id,
            date=date,
            total=len(bookings),
            counts={status: counts.get(status, 0) for status in BookingStatus},
        )
