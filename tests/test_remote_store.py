import asyncio
import json
import os
import sys
from datetime import date, datetime, time, timezone

import httpx
import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from salon_agenda.clients.data_store import DataStoreClient
from salon_agenda.schemas.auth import Principal
from salon_agenda.schemas.booking import (
    ACTIVE_STATUSES,
    BookingCreateRequest,
    BookingDraft,
    BookingErrorKind,
    BookingStatus,
)
from salon_agenda.services.booking import BookingService
from salon_agenda.services.exceptions import DownstreamServiceError, StoreConflictError
from salon_agenda.services.remote_store import RemoteAgendaRepository


BASE_URL = "https://example.supabase.co"
STAMP = "2024-12-01T08:00:00+00:00"

TABLES = {
    "lojas": [
        {
            "id": "loja-1",
            "nome": "Espaço Lírio",
            "endereco": "Av. Paulista, 1000",
            "cidade": "São Paulo",
            "bairro": "Bela Vista",
            "uf": "SP",
            "whatsapp": "+5511900000000",
            "politica_cancelamento_horas": 12,
        }
    ],
    "servicos": [
        {
            "id": "svc-1",
            "loja_id": "loja-1",
            "nome": "Corte",
            "duracao_minutos": 60,
            "preco_centavos": 8000,
            "ativo": True,
        }
    ],
    "horarios_loja": [
        {"dia_semana": 2, "abre": "09:00:00", "fecha": "12:00:00", "intervalo_minutos": None}
    ],
    "agendamentos": [
        {
            "id": "ag-1",
            "loja_id": "loja-1",
            "user_id": "cliente-1",
            "servico_id": "svc-1",
            "profissional_id": None,
            "data": "2024-12-10",
            "hora": "09:00:00",
            "status": "confirmado",
            "observacoes": None,
            "origem": None,
            "created_at": STAMP,
            "updated_at": STAMP,
        }
    ],
}


def _matches(row, key: str, expression: str) -> bool:
    if key not in row or not expression.startswith("eq."):
        return True
    return str(row[key]).lower() == expression[3:].lower()


class FakeDataStore:
    """Serves canned table rows and records every request it receives."""

    def __init__(self, *, post_status: int = 201, patch_rows=None) -> None:
        self.requests = []
        self.post_status = post_status
        self.patch_rows = patch_rows if patch_rows is not None else []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        table = request.url.path.rsplit("/", 1)[-1]
        if request.method == "GET":
            rows = [
                row
                for row in TABLES.get(table, [])
                if all(_matches(row, key, value) for key, value in request.url.params.items())
            ]
            return httpx.Response(200, json=rows)
        if request.method == "POST":
            if self.post_status >= 400:
                return httpx.Response(self.post_status, json={"message": "conflict"})
            body = json.loads(request.content)
            return httpx.Response(201, json=[{"id": "ag-2", **body}])
        return httpx.Response(200, json=self.patch_rows)


def _client(handler) -> DataStoreClient:
    return DataStoreClient(
        BASE_URL,
        api_key="k",
        use_mock_data=False,
        transport=httpx.MockTransport(handler),
    )


def test_client_without_base_url_stays_in_mock_mode() -> None:
    assert DataStoreClient(None, use_mock_data=False).use_mock_data is True
    assert DataStoreClient(BASE_URL, use_mock_data=False).use_mock_data is False


def test_get_salon_maps_store_columns() -> None:
    store = FakeDataStore()

    async def run():
        client = _client(store)
        try:
            return await RemoteAgendaRepository(client).get_salon("loja-1")
        finally:
            await client.close()

    salon = asyncio.run(run())

    assert salon.name == "Espaço Lírio"
    assert salon.district == "Bela Vista"
    assert salon.cancellation_policy_hours == 12
    request = store.requests[0]
    assert request.url.path == "/rest/v1/lojas"
    assert request.url.params["id"] == "eq.loja-1"
    assert request.url.params["limit"] == "1"
    assert request.headers["apikey"] == "k"
    assert request.headers["authorization"] == "Bearer k"


def test_operating_window_uses_default_granularity_when_unset() -> None:
    store = FakeDataStore()

    async def run():
        client = _client(store)
        try:
            repository = RemoteAgendaRepository(client, default_granularity_minutes=15)
            return await repository.get_operating_window("loja-1", 2)
        finally:
            await client.close()

    window = asyncio.run(run())

    assert window.opens_at == time(9, 0)
    assert window.closes_at == time(12, 0)
    assert window.slot_granularity_minutes == 15
    assert store.requests[0].url.params["dia_semana"] == "eq.2"


def test_list_bookings_filters_by_store_status_names() -> None:
    store = FakeDataStore()

    async def run():
        client = _client(store)
        try:
            return await RemoteAgendaRepository(client).list_bookings(
                salon_id="loja-1", date=date(2024, 12, 10), statuses=ACTIVE_STATUSES
            )
        finally:
            await client.close()

    bookings = asyncio.run(run())

    assert [booking.id for booking in bookings] == ["ag-1"]
    assert bookings[0].status == BookingStatus.CONFIRMED
    assert bookings[0].start_time == time(9, 0)
    assert bookings[0].origin == "app"
    params = store.requests[0].url.params
    assert params["status"] == "in.(confirmado,pendente)"
    assert params["data"] == "eq.2024-12-10"
    assert params["order"] == "data.asc,hora.asc"


def test_insert_booking_sends_store_vocabulary() -> None:
    store = FakeDataStore()
    draft = BookingDraft(
        salon_id="loja-1",
        customer_id="cliente-2",
        service_id="svc-1",
        date=date(2024, 12, 10),
        start_time=time(10, 30),
    )

    async def run():
        client = _client(store)
        try:
            return await RemoteAgendaRepository(client).insert_booking(draft)
        finally:
            await client.close()

    booking = asyncio.run(run())

    request = store.requests[0]
    body = json.loads(request.content)
    assert request.method == "POST"
    assert request.headers["prefer"] == "return=representation"
    assert body["hora"] == "10:30"
    assert body["status"] == "pendente"
    assert body["user_id"] == "cliente-2"
    assert booking.id == "ag-2"
    assert booking.status == BookingStatus.PENDING


def test_insert_conflict_raises_store_conflict() -> None:
    store = FakeDataStore(post_status=409)
    draft = BookingDraft(
        salon_id="loja-1",
        customer_id="cliente-2",
        service_id="svc-1",
        date=date(2024, 12, 10),
        start_time=time(9, 0),
    )

    async def run():
        client = _client(store)
        try:
            await RemoteAgendaRepository(client).insert_booking(draft)
        finally:
            await client.close()

    with pytest.raises(StoreConflictError):
        asyncio.run(run())


def test_server_error_raises_downstream_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"message": "boom"})

    async def run():
        client = _client(handler)
        try:
            await RemoteAgendaRepository(client).get_salon("loja-1")
        finally:
            await client.close()

    with pytest.raises(DownstreamServiceError) as excinfo:
        asyncio.run(run())

    assert excinfo.value.status_code == 500


def test_conditional_update_without_match_returns_none() -> None:
    store = FakeDataStore(patch_rows=[])

    async def run():
        client = _client(store)
        try:
            return await RemoteAgendaRepository(client).update_booking(
                "ag-1",
                expected_status=BookingStatus.PENDING,
                status=BookingStatus.CONFIRMED,
            )
        finally:
            await client.close()

    assert asyncio.run(run()) is None
    request = store.requests[0]
    assert request.method == "PATCH"
    assert request.url.params["id"] == "eq.ag-1"
    assert request.url.params["status"] == "eq.pendente"
    assert json.loads(request.content)["status"] == "confirmado"


def test_booking_service_reports_slot_taken_on_store_conflict() -> None:
    store = FakeDataStore(post_status=409)
    request = BookingCreateRequest(
        salon_id="loja-1", service_id="svc-1", date=date(2024, 12, 10), start_time=time(10, 0)
    )

    async def run():
        client = _client(store)
        try:
            service = BookingService(
                client,
                repository=RemoteAgendaRepository(client),
                clock=lambda: datetime(2024, 12, 1, 8, 0, tzinfo=timezone.utc),
                tz=timezone.utc,
            )
            return await service.create_booking(request, Principal(user_id="cliente-2"))
        finally:
            await client.close()

    result = asyncio.run(run())

    assert result.error == BookingErrorKind.SLOT_TAKEN
    assert [sent.method for sent in store.requests].count("POST") == 1
