"""Pytest configuration and fixtures for WineCard tests."""

import io
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image

from winecard.config import reset_settings
from winecard.dependencies import get_registry, get_storage, limiter, reset_services
from winecard.services.capture import ImageCaptureService
from winecard.services.image_intake import ImageIntakeService, encode_data_uri
from winecard.services.sessions import SessionRegistry
from winecard.services.storage import MemStorage


# Create a test-specific app to avoid lifespan conflicts
def create_test_app():
    """Create a FastAPI app configured for testing (no lifespan)."""
    from fastapi import FastAPI
    from slowapi import _rate_limit_exceeded_handler
    from slowapi.errors import RateLimitExceeded

    from winecard import __version__
    from winecard.errors import WineCardError
    from winecard.main import app as main_app
    from winecard.main import wine_card_error_handler

    @asynccontextmanager
    async def test_lifespan(app: FastAPI):
        yield

    test_app = FastAPI(
        title="WineCard Test",
        version=__version__,
        lifespan=test_lifespan,
    )
    # Copied routes resolve overrides via main_app, so share its override map
    test_app.dependency_overrides = main_app.dependency_overrides
    test_app.state.limiter = limiter
    test_app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    test_app.add_exception_handler(WineCardError, wine_card_error_handler)

    # Copy all routes from the main app
    for route in main_app.routes:
        test_app.routes.append(route)

    return test_app


# Get or create test app (singleton for test session)
_test_app = None


def get_test_app():
    """Get the test app singleton."""
    global _test_app
    if _test_app is None:
        _test_app = create_test_app()
    return _test_app


def make_image_bytes(
    width: int = 40,
    height: int = 30,
    fmt: str = "PNG",
    color: tuple[int, int, int] = (114, 47, 55),
) -> bytes:
    """Encode a solid-colour test image."""
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture(autouse=True)
def fresh_settings():
    """Reload configuration and drop process-wide services around each test."""
    reset_settings()
    reset_services()
    yield
    reset_services()
    reset_settings()


@pytest.fixture
def png_bytes() -> bytes:
    return make_image_bytes()


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_image_bytes(64, 48, fmt="JPEG")


@pytest.fixture
def png_data_uri(png_bytes) -> str:
    return encode_data_uri(png_bytes, "image/png")


@pytest.fixture
def intake() -> ImageIntakeService:
    return ImageIntakeService(max_size_bytes=10 * 1024 * 1024)


@pytest.fixture
def capture_service() -> ImageCaptureService:
    return ImageCaptureService()


@pytest.fixture
def registry(capture_service, intake) -> SessionRegistry:
    return SessionRegistry(capture=capture_service, max_sessions=10, intake=intake)


@pytest.fixture
def storage() -> MemStorage:
    return MemStorage(delay_seconds=0)


@pytest_asyncio.fixture(scope="function")
async def client(registry, storage) -> AsyncGenerator[AsyncClient, None]:
    """Async test client with in-memory services and no save delay."""
    app = get_test_app()
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_storage] = lambda: storage
    limiter.reset()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    registry.clear()


@pytest_asyncio.fixture
async def session_id(client) -> str:
    """Id of a freshly opened form session."""
    response = await client.post("/api/sessions")
    assert response.status_code == 201
    return response.json()["id"]


@pytest.fixture
def make_image():
    """Factory for encoded test images."""
    return make_image_bytes
