from __future__ import annotations

import logging
from typing import Optional

from salon_agenda.clients.data_store import DataStoreClient
from salon_agenda.schemas.catalog import SalonDetail, SalonSearchResponse
from salon_agenda.services.exceptions import ResourceNotFoundError
from salon_agenda.services.repository import AgendaRepository, default_repository

logger = logging.getLogger(__name__)


class CatalogService:
    """Salon directory queries: salons, their services and weekly hours."""

    def __init__(
        self,
        client: DataStoreClient,
        *,
        repository: AgendaRepository | None = None,
    ) -> None:
        self._client = client
        self._repository = repository or default_repository(client)

    async def search_salons(
        self,
        *,
        city: Optional[str] = None,
        district: Optional[str] = None,
        query: Optional[str] = None,
    ) -> SalonSearchResponse:
        logger.info("Searching salons (city=%s, district=%s, query=%s)", city, district, query)
        if self._client.use_mock_data:
            await self._client.simulate_latency()
        salons = await self._repository.search_salons(city=city, district=district, query=query)
        return SalonSearchResponse(total=len(salons), items=salons)

    async def get_salon(self, salon_id: str, *, active_services_only: bool = True) -> SalonDetail:
        logger.info("Loading salon %s", salon_id)
        if self._client.use_mock_data:
            await self._client.simulate_latency()
        salon = await self._repository.get_salon(salon_id)
        if salon is None:
            raise ResourceNotFoundError(f"Salon {salon_id} not found")
        services = await self._repository.list_services(salon_id, active_only=active_services_only)
        hours = await self._repository.list_operating_windows(salon_id)
        return SalonDetail(**salon.model_dump(), services=services, operating_hours=hours)
