from __future__ import annotations

from functools import lru_cache

from fastapi import Depends

from salon_agenda.clients.data_store import DataStoreClient
from salon_agenda.config import Settings, get_settings
from salon_agenda.services import AvailabilityService, BookingService, CatalogService
from salon_agenda.services.notifications import LoggingNotificationSink


@lru_cache(maxsize=1)
def get_store_client_cached() -> DataStoreClient:
    settings = get_settings()
    return DataStoreClient(
        settings.store_base_url,
        api_key=settings.store_api_key,
        timeout=settings.store_timeout,
        use_mock_data=settings.use_mock_data,
    )


def get_store_client(settings: Settings = Depends(get_settings)) -> DataStoreClient:
    return get_store_client_cached()


def get_catalog_service(
    client: DataStoreClient = Depends(get_store_client),
) -> CatalogService:
    return CatalogService(client)


def get_availability_service(
    client: DataStoreClient = Depends(get_store_client),
) -> AvailabilityService:
    return AvailabilityService(client)


def get_booking_service(
    client: DataStoreClient = Depends(get_store_client),
    settings: Settings = Depends(get_settings),
) -> BookingService:
    notifier = LoggingNotificationSink(enabled=settings.notifications_enabled)
    return BookingService(client, notifier=notifier)
