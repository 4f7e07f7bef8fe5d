"""Process-wide services injected into the routers."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends
from slowapi import Limiter
from slowapi.util import get_remote_address

from winecard.config import settings
from winecard.services.capture import ImageCaptureService
from winecard.services.image_intake import ImageIntakeService
from winecard.services.sessions import SessionRegistry
from winecard.services.storage import MemStorage

# Shared by the app middleware (default limit) and per-route limits
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.rate_limit_per_minute}/minute"],
)


@lru_cache
def get_registry() -> SessionRegistry:
    return SessionRegistry(
        capture=ImageCaptureService(font_path=settings.font_path),
        max_sessions=settings.max_sessions,
        intake=ImageIntakeService(settings.max_upload_size_bytes),
    )


@lru_cache
def get_storage() -> MemStorage:
    return MemStorage(delay_seconds=settings.mock_save_delay_seconds)


def reset_services() -> None:
    """Drop all sessions and saved cards (used by tests and on shutdown)."""
    if get_registry.cache_info().currsize:
        get_registry().clear()
    get_registry.cache_clear()
    get_storage.cache_clear()


Registry = Annotated[SessionRegistry, Depends(get_registry)]
Storage = Annotated[MemStorage, Depends(get_storage)]
