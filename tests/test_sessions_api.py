"""End-to-end tests for the form session API."""

import asyncio
import io
from urllib.parse import quote

import pytest
from httpx import AsyncClient
from PIL import Image

from winecard.schemas.export import CapturedImage
from winecard.services.capture import ImageCaptureService
from winecard.services.image_intake import encode_data_uri
from winecard.services.preview import PLACEHOLDER_DETAIL, PLACEHOLDER_PAIRED_FOOD, PLACEHOLDER_WINE_NAME

IPHONE_UA = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_5 like Mac OS X) AppleWebKit/605.1.15 Mobile/15E148"


class GatedCapture(ImageCaptureService):
    """Holds every capture until the gate opens."""

    def __init__(self, gate: asyncio.Event) -> None:
        super().__init__()
        self.gate = gate

    async def capture(self, view, draft) -> CapturedImage:
        await self.gate.wait()
        return await super().capture(view, draft)


async def put_field(client: AsyncClient, session_id: str, name: str, value):
    return await client.put(f"/api/sessions/{session_id}/fields/{name}", json={"value": value})


async def toggle(client: AsyncClient, session_id: str, field: str, value: str):
    return await client.post(f"/api/sessions/{session_id}/tags/{field}", json={"value": value})


# =============================================================================
# Sessions
# =============================================================================


@pytest.mark.asyncio
async def test_open_session_returns_empty_draft(client):
    response = await client.post("/api/sessions")
    assert response.status_code == 201

    data = response.json()
    assert data["id"]
    assert data["draft"]["wine_name"] == ""
    assert data["draft"]["theme_color"] == "red"
    assert data["errors"] == {}
    assert data["export_enabled"] is True


@pytest.mark.asyncio
async def test_unknown_session_is_404(client):
    response = await client.get("/api/sessions/does-not-exist")
    assert response.status_code == 404
    assert response.json()["kind"] == "session_not_found"


@pytest.mark.asyncio
async def test_close_session(client, session_id):
    response = await client.delete(f"/api/sessions/{session_id}")
    assert response.status_code == 204

    response = await client.get(f"/api/sessions/{session_id}")
    assert response.status_code == 404


# =============================================================================
# Field edits
# =============================================================================


@pytest.mark.asyncio
async def test_field_edit_updates_draft_and_preview(client, session_id):
    response = await put_field(client, session_id, "origin", "ブルゴーニュ")
    assert response.status_code == 200
    assert response.json()["draft"]["origin"] == "ブルゴーニュ"

    preview = await client.get(f"/api/sessions/{session_id}/preview")
    assert "ブルゴーニュ" in preview.text


@pytest.mark.asyncio
async def test_invalid_rating_keeps_prior_value(client, session_id):
    await put_field(client, session_id, "my_rating", 4)

    response = await put_field(client, session_id, "my_rating", 6)
    assert response.status_code == 422
    body = response.json()
    assert body["kind"] == "validation_error"
    assert body["field"] == "my_rating"

    state = (await client.get(f"/api/sessions/{session_id}")).json()
    assert state["draft"]["my_rating"] == 4
    assert "my_rating" in state["errors"]


@pytest.mark.asyncio
async def test_unknown_field_is_422(client, session_id):
    response = await put_field(client, session_id, "vintage", 2015)
    assert response.status_code == 422
    assert response.json()["field"] == "vintage"


@pytest.mark.asyncio
async def test_undecodable_image_field_is_422(client, session_id):
    header_only = encode_data_uri(b"\x89PNG\r\n\x1a\n" + b"\x00" * 16, "image/png")

    response = await put_field(client, session_id, "wine_image", header_only)
    assert response.status_code == 422
    assert response.json()["field"] == "wine_image"

    state = (await client.get(f"/api/sessions/{session_id}")).json()
    assert state["draft"]["wine_image"] is None


@pytest.mark.asyncio
async def test_create_card_rejects_undecodable_image(client):
    header_only = encode_data_uri(b"\x89PNG\r\n\x1a\n" + b"\x00" * 16, "image/png")

    response = await client.post("/api/cards", json={"wine_image": header_only})
    assert response.status_code == 422


# =============================================================================
# Tags
# =============================================================================


@pytest.mark.asyncio
async def test_cheese_steak_then_remove_cheese(client, session_id):
    await toggle(client, session_id, "paired_food", "チーズ")
    await toggle(client, session_id, "paired_food", "ステーキ")
    response = await toggle(client, session_id, "paired_food", "チーズ")

    assert response.status_code == 200
    assert response.json()["draft"]["paired_food"] == ["ステーキ"]


@pytest.mark.asyncio
async def test_toggle_unknown_tag_is_422(client, session_id):
    response = await toggle(client, session_id, "my_comment", "まずい")
    assert response.status_code == 422
    assert response.json()["kind"] == "validation_error"


# =============================================================================
# Photo upload
# =============================================================================


@pytest.mark.asyncio
async def test_upload_and_remove_photo(client, session_id, jpeg_bytes):
    response = await client.post(
        f"/api/sessions/{session_id}/image",
        files={"photo": ("bottle.jpg", jpeg_bytes, "image/jpeg")},
    )
    assert response.status_code == 200
    assert response.json()["draft"]["wine_image"].startswith("data:image/jpeg;base64,")

    preview = await client.get(f"/api/sessions/{session_id}/preview")
    assert 'class="wc-photo"' in preview.text

    response = await client.delete(f"/api/sessions/{session_id}/image")
    assert response.status_code == 200
    assert response.json()["draft"]["wine_image"] is None


@pytest.mark.asyncio
async def test_twelve_megabyte_upload_rejected(client, session_id):
    oversized = b"\xff\xd8\xff\xe0" + b"\x00" * (12 * 1024 * 1024)

    response = await client.post(
        f"/api/sessions/{session_id}/image",
        files={"photo": ("huge.jpg", oversized, "image/jpeg")},
    )
    assert response.status_code == 413
    assert response.json()["kind"] == "image_too_large"

    state = (await client.get(f"/api/sessions/{session_id}")).json()
    assert state["draft"]["wine_image"] is None
    assert "wine_image" in state["errors"]


@pytest.mark.asyncio
async def test_non_image_upload_rejected(client, session_id):
    response = await client.post(
        f"/api/sessions/{session_id}/image",
        files={"photo": ("label.png", b"this is not an image at all", "image/png")},
    )
    assert response.status_code == 400
    assert response.json()["kind"] == "image_decode_failed"


# =============================================================================
# Export
# =============================================================================


@pytest.mark.asyncio
async def test_empty_draft_preview_and_export(client, session_id):
    preview = await client.get(f"/api/sessions/{session_id}/preview")
    assert preview.status_code == 200
    assert PLACEHOLDER_WINE_NAME in preview.text
    assert PLACEHOLDER_DETAIL in preview.text
    assert PLACEHOLDER_PAIRED_FOOD in preview.text
    assert 'data-role="my_rating" data-filled="0"' in preview.text
    assert 'data-role="partner_rating" data-filled="0"' in preview.text

    response = await client.post(f"/api/sessions/{session_id}/export?touch=0")
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert "wine-card-untitled.png" in response.headers["content-disposition"]
    assert Image.open(io.BytesIO(response.content)).format == "PNG"


@pytest.mark.asyncio
async def test_named_card_preview_and_download(client, session_id):
    await put_field(client, session_id, "wine_name", "Château Margaux 2015")
    await put_field(client, session_id, "my_rating", 4)
    await put_field(client, session_id, "partner_rating", 3)
    await put_field(client, session_id, "theme_color", "red")

    preview = await client.get(f"/api/sessions/{session_id}/preview")
    assert "Château Margaux 2015" in preview.text
    assert 'data-theme="red"' in preview.text
    assert 'data-role="my_rating" data-filled="4"' in preview.text
    assert 'data-role="partner_rating" data-filled="3"' in preview.text

    response = await client.post(f"/api/sessions/{session_id}/export?touch=0")
    assert response.status_code == 200
    disposition = response.headers["content-disposition"]
    assert disposition.startswith("attachment")
    assert f"filename*=UTF-8''{quote('wine-card-Château Margaux 2015.png')}" in disposition

    image = Image.open(io.BytesIO(response.content))
    assert image.width == 360 * 2


@pytest.mark.asyncio
async def test_touch_export_returns_modal(client, session_id):
    response = await client.post(f"/api/sessions/{session_id}/export?touch=1")
    assert response.status_code == 200

    data = response.json()
    assert data["delivery"] == "modal"
    assert data["data_uri"].startswith("data:image/png;base64,")
    assert data["max_height_vh"] == 70
    assert data["dismissible"] is True
    assert 'data-action="dismiss"' in data["html"]


@pytest.mark.asyncio
async def test_touch_detected_from_user_agent(client, session_id):
    response = await client.post(
        f"/api/sessions/{session_id}/export",
        headers={"User-Agent": IPHONE_UA},
    )
    assert response.json()["delivery"] == "modal"


@pytest.mark.asyncio
async def test_concurrent_export_is_409(client, session_id, registry):
    gate = asyncio.Event()
    session = registry.get(session_id)
    session.trigger.strategy.capture = GatedCapture(gate)

    first = asyncio.create_task(client.post(f"/api/sessions/{session_id}/export?touch=0"))
    for _ in range(100):
        if not session.trigger.enabled:
            break
        await asyncio.sleep(0.01)

    state = (await client.get(f"/api/sessions/{session_id}")).json()
    assert state["export_enabled"] is False

    second = await client.post(f"/api/sessions/{session_id}/export?touch=0")
    assert second.status_code == 409
    assert second.json()["kind"] == "export_in_progress"

    gate.set()
    response = await first
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_capture_failure_is_500_and_form_stays_editable(client, session_id, registry):
    class FailingCapture(ImageCaptureService):
        def _rasterize(self, view, images) -> bytes:
            raise OSError("no canvas")

    registry.get(session_id).trigger.strategy.capture = FailingCapture()

    response = await client.post(f"/api/sessions/{session_id}/export?touch=0")
    assert response.status_code == 500
    assert response.json() == {
        "kind": "capture_failed",
        "message": "Could not create the card image. Please try again.",
        "field": None,
    }

    response = await put_field(client, session_id, "wine_name", "Retry")
    assert response.status_code == 200
    assert response.json()["export_enabled"] is True


# =============================================================================
# Save
# =============================================================================


@pytest.mark.asyncio
async def test_save_assigns_increasing_ids(client, session_id):
    await put_field(client, session_id, "wine_name", "Barolo")

    first = await client.post(f"/api/sessions/{session_id}/save")
    second = await client.post(f"/api/sessions/{session_id}/save")

    assert first.status_code == 201
    assert first.json()["id"] == 1
    assert first.json()["wine_name"] == "Barolo"
    assert second.json()["id"] == 2
