"""Agenda repository backed by the hosted data store's REST API.

Rows use the hosted schema's vocabulary (``lojas``, ``servicos``,
``horarios_loja``, ``agendamentos``) and are converted to the engine's
schemas here. The ``agendamentos`` table carries an exclusion constraint over
the time range of every pending or confirmed row of a salon (at minimum a
partial unique index on ``(loja_id, data, hora)``); the data store answers a
violating insert or update with HTTP 409, which surfaces as
:class:`StoreConflictError`.
"""

from __future__ import annotations

import datetime as dt
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Collection, Dict, List, Optional

from salon_agenda.clients.data_store import DataStoreClient, eq, ilike, in_
from salon_agenda.schemas.booking import Booking, BookingDraft, BookingStatus
from salon_agenda.schemas.catalog import OperatingWindow, Salon, SalonService

logger = logging.getLogger(__name__)

STATUS_TO_STORE = {
    BookingStatus.PENDING: "pendente",
    BookingStatus.CONFIRMED: "confirmado",
    BookingStatus.CANCELLED: "cancelado",
    BookingStatus.COMPLETED: "concluido",
    BookingStatus.NO_SHOW: "nao_compareceu",
}
STATUS_FROM_STORE = {value: key for key, value in STATUS_TO_STORE.items()}


def _utc_now_iso() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat()


class RemoteAgendaRepository:
    def __init__(
        self, client: DataStoreClient, *, default_granularity_minutes: int = 30
    ) -> None:
        self._client = client
        self._default_granularity = default_granularity_minutes

    @staticmethod
    def _salon_from_row(row: Dict[str, Any]) -> Salon:
        return Salon(
            id=str(row["id"]),
            name=row["nome"],
            address=row.get("endereco"),
            city=row.get("cidade"),
            district=row.get("bairro"),
            state=row.get("uf"),
            whatsapp=row.get("whatsapp"),
            cancellation_policy_hours=row.get("politica_cancelamento_horas") or 0,
        )

    @staticmethod
    def _service_from_row(row: Dict[str, Any]) -> SalonService:
        return SalonService(
            id=str(row["id"]),
            salon_id=str(row["loja_id"]),
            name=row["nome"],
            duration_minutes=row["duracao_minutos"],
            price_minor_units=row.get("preco_centavos"),
            active=row.get("ativo", True),
        )

    def _window_from_row(self, salon_id: str, row: Dict[str, Any]) -> OperatingWindow:
        return OperatingWindow(
            salon_id=salon_id,
            weekday=row["dia_semana"],
            opens_at=row["abre"],
            closes_at=row["fecha"],
            slot_granularity_minutes=row.get("intervalo_minutos") or self._default_granularity,
        )

    @staticmethod
    def _booking_from_row(row: Dict[str, Any]) -> Booking:
        return Booking(
            id=str(row["id"]),
            salon_id=str(row["loja_id"]),
            customer_id=str(row["user_id"]),
            service_id=str(row["servico_id"]),
            professional_id=row.get("profissional_id"),
            date=row["data"],
            start_time=row["hora"],
            status=STATUS_FROM_STORE[row["status"]],
            notes=row.get("observacoes"),
            origin=row.get("origem") or "app",
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    async def get_salon(self, salon_id: str) -> Optional[Salon]:
        rows = await self._client.select("lojas", filters={"id": eq(salon_id)}, limit=1)
        return self._salon_from_row(rows[0]) if rows else None

    async def search_salons(
        self,
        *,
        city: Optional[str] = None,
        district: Optional[str] = None,
        query: Optional[str] = None,
    ) -> List[Salon]:
        filters: Dict[str, str] = {}
        if city:
            filters["cidade"] = eq(city)
        if district:
            filters["bairro"] = eq(district)
        if query:
            filters["nome"] = ilike(query)
        rows = await self._client.select("lojas", filters=filters, order="nome.asc")
        return [self._salon_from_row(row) for row in rows]

    async def list_services(
        self, salon_id: str, *, active_only: bool = False
    ) -> List[SalonService]:
        filters = {"loja_id": eq(salon_id)}
        if active_only:
            filters["ativo"] = eq("true")
        rows = await self._client.select("servicos", filters=filters, order="nome.asc")
        return [self._service_from_row(row) for row in rows]

    async def get_service(self, service_id: str) -> Optional[SalonService]:
        rows = await self._client.select("servicos", filters={"id": eq(service_id)}, limit=1)
        return self._service_from_row(rows[0]) if rows else None

    async def get_operating_window(
        self, salon_id: str, weekday: int
    ) -> Optional[OperatingWindow]:
        rows = await self._client.select(
            "horarios_loja",
            filters={"loja_id": eq(salon_id), "dia_semana": eq(weekday)},
            columns="dia_semana,abre,fecha,intervalo_minutos",
            limit=1,
        )
        return self._window_from_row(salon_id, rows[0]) if rows else None

    async def list_operating_windows(self, salon_id: str) -> List[OperatingWindow]:
        rows = await self._client.select(
            "horarios_loja",
            filters={"loja_id": eq(salon_id)},
            columns="dia_semana,abre,fecha,intervalo_minutos",
            order="dia_semana.asc",
        )
        return [self._window_from_row(salon_id, row) for row in rows]

    async def list_bookings(
        self,
        *,
        salon_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        date: Optional[dt.date] = None,
        statuses: Optional[Collection[BookingStatus]] = None,
    ) -> List[Booking]:
        filters: Dict[str, str] = {}
        if salon_id is not None:
            filters["loja_id"] = eq(salon_id)
        if customer_id is not None:
            filters["user_id"] = eq(customer_id)
        if date is not None:
            filters["data"] = eq(date.isoformat())
        if statuses is not None:
            filters["status"] = in_(sorted(STATUS_TO_STORE[status] for status in statuses))
        rows = await self._client.select(
            "agendamentos", filters=filters, order="data.asc,hora.asc"
        )
        return [self._booking_from_row(row) for row in rows]

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        rows = await self._client.select(
            "agendamentos", filters={"id": eq(booking_id)}, limit=1
        )
        return self._booking_from_row(rows[0]) if rows else None

    async def insert_booking(self, draft: BookingDraft) -> Booking:
        now = _utc_now_iso()
        row = {
            "loja_id": draft.salon_id,
            "user_id": draft.customer_id,
            "servico_id": draft.service_id,
            "profissional_id": draft.professional_id,
            "data": draft.date.isoformat(),
            "hora": draft.start_time.strftime("%H:%M"),
            "status": STATUS_TO_STORE[draft.status],
            "observacoes": draft.notes,
            "origem": draft.origin,
            "created_at": now,
            "updated_at": now,
        }
        created = await self._client.insert("agendamentos", row)
        return self._booking_from_row(created)

    async def update_booking(
        self,
        booking_id: str,
        *,
        expected_status: BookingStatus,
        status: Optional[BookingStatus] = None,
        date: Optional[dt.date] = None,
        start_time: Optional[dt.time] = None,
    ) -> Optional[Booking]:
        values: Dict[str, Any] = {"updated_at": _utc_now_iso()}
        if status is not None:
            values["status"] = STATUS_TO_STORE[status]
        if date is not None:
            values["data"] = date.isoformat()
        if start_time is not None:
            values["hora"] = start_time.strftime("%H:%M")
        rows = await self._client.update(
            "agendamentos",
            values,
            filters={"id": eq(booking_id), "status": eq(STATUS_TO_STORE[expected_status])},
        )
        if not rows:
            logger.info("Conditional update of booking %s matched no row", booking_id)
            return None
        return self._booking_from_row(rows[0])

    @asynccontextmanager
    async def slot_guard(self, salon_id: str, date: dt.date) -> AsyncIterator[None]:
        # Enforcement happens in the data store's unique index; see module docstring.
        yield
