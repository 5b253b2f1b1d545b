from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from salon_agenda.config import get_settings
from salon_agenda.dependencies.services import get_store_client_cached
from salon_agenda.health import router as health_router
from salon_agenda.mock_data_view import router as mock_data_router
from salon_agenda.routes.bookings import router as bookings_router
from salon_agenda.routes.salons import router as salons_router


def configure_logging() -> None:
    """Ensure application logs use the INFO level by default."""
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )
    else:
        root_logger.setLevel(logging.INFO)


configure_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manages application startup and shutdown events.
    """
    settings = get_settings()

    settings_snapshot = settings.model_dump(exclude={"store_api_key"})
    logger.info("Application settings on startup: %s", settings_snapshot)

    client = get_store_client_cached()
    logger.info(
        "Application startup complete (%s data store).",
        "mock" if client.use_mock_data else "remote",
    )

    try:
        yield
    finally:
        logger.info("Closing data store client connection.")
        await client.close()
        logger.info("Application shutdown complete.")


settings = get_settings()
app = FastAPI(
    title=settings.app_name,
    lifespan=lifespan,
    redirect_slashes=False,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(salons_router, prefix="/salons")
app.include_router(bookings_router, prefix="/bookings")
app.include_router(health_router)
app.include_router(mock_data_router)
