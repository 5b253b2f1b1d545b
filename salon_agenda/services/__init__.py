"""Service package public API definitions.

Service implementations are imported lazily: ``salon_agenda.clients`` imports
``salon_agenda.services.exceptions``, and importing the services eagerly here
would loop back into the client module during start up.
"""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any

__all__ = [
    "AvailabilityService",
    "BookingService",
    "CatalogService",
]

_SERVICE_MODULES = {
    "AvailabilityService": "availability",
    "BookingService": "booking",
    "CatalogService": "catalog",
}


def __getattr__(name: str) -> Any:
    if name not in _SERVICE_MODULES:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

    module = import_module(f".{_SERVICE_MODULES[name]}", __name__)
    attr = getattr(module, name)
    globals()[name] = attr
    return attr


if TYPE_CHECKING:  # pragma: no cover - import for static analysis only
    from .availability import AvailabilityService as AvailabilityService
    from .booking import BookingService as BookingService
    from .catalog import CatalogService as CatalogService
