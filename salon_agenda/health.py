from fastapi import APIRouter, Depends

from salon_agenda.config import Settings, get_settings

router = APIRouter()


@router.get("/health")
def health(settings: Settings = Depends(get_settings)):
    return {"ok": True, "store": "mock" if settings.use_mock_data or not settings.store_base_url else "remote"}
