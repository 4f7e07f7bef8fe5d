"""Form session endpoints: live editing, preview and export."""

import logging
from typing import Annotated

from fastapi import APIRouter, File, Query, Request, UploadFile, status
from fastapi.responses import HTMLResponse, JSONResponse, Response

from winecard.config import settings
from winecard.dependencies import Registry, Storage, limiter
from winecard.schemas.card import FieldValue, SessionState, TagValue, WineCard
from winecard.services.delivery import DownloadDelivery, EnvironmentCapabilities, ModalDelivery

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def open_session(registry: Registry) -> SessionState:
    """Open a form session with an empty draft."""
    return registry.create().state()


@router.get("/{session_id}")
async def get_session(session_id: str, registry: Registry) -> SessionState:
    """Current draft, field errors and whether export is available."""
    return registry.get(session_id).state()


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def close_session(session_id: str, registry: Registry) -> Response:
    """Close a session when the page goes away."""
    registry.close(session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{session_id}/fields/{name}")
async def set_field(session_id: str, name: str, body: FieldValue, registry: Registry) -> SessionState:
    """Apply one field edit."""
    session = registry.get(session_id)
    session.form.set_field(name, body.value)
    return session.state()


@router.post("/{session_id}/tags/{field}")
async def toggle_tag(session_id: str, field: str, body: TagValue, registry: Registry) -> SessionState:
    """Toggle one tag in a multi-select field."""
    session = registry.get(session_id)
    session.form.toggle_tag(field, body.value)
    return session.state()


@router.post("/{session_id}/image")
async def upload_image(
    session_id: str,
    registry: Registry,
    photo: Annotated[UploadFile, File(description="Wine photo")],
) -> SessionState:
    """Attach a photo to the card."""
    session = registry.get(session_id)
    # Reject oversized uploads before reading them fully
    if photo.size is not None:
        session.form.check_image_size(photo.size)
    content = await photo.read()
    await session.form.load_image(content, photo.filename)
    return session.state()


@router.delete("/{session_id}/image")
async def remove_image(session_id: str, registry: Registry) -> SessionState:
    """Remove the photo from the card."""
    session = registry.get(session_id)
    session.form.remove_image()
    return session.state()


@router.get("/{session_id}/preview", response_class=HTMLResponse)
async def get_preview(session_id: str, registry: Registry) -> HTMLResponse:
    """The card as currently rendered."""
    return HTMLResponse(registry.get(session_id).preview_html())


@router.post("/{session_id}/export", response_model=None)
@limiter.limit(lambda: settings.export_rate_limit)
async def export_card(
    request: Request,  # Required for rate limiting
    session_id: str,
    registry: Registry,
    touch: Annotated[str | None, Query(description="1 if the page detected a touch device")] = None,
) -> Response:
    """Capture the card and deliver it.

    Desktop clients receive the PNG as an attachment. Touch clients receive
    JSON describing an overlay that shows the image for long-press saving.
    """
    session = registry.get(session_id)
    capabilities = EnvironmentCapabilities.from_request(touch, request.headers.get("user-agent"))

    outcome = await session.trigger.fire(capabilities)
    if outcome.error is not None:
        raise outcome.error

    delivery = outcome.delivery
    if isinstance(delivery, DownloadDelivery):
        return Response(
            content=delivery.content,
            media_type=delivery.content_type,
            headers=delivery.headers,
        )

    assert isinstance(delivery, ModalDelivery)
    return JSONResponse(
        content={
            "delivery": "modal",
            "filename": delivery.filename,
            "data_uri": delivery.data_uri,
            "width": delivery.width,
            "height": delivery.height,
            "max_height_vh": delivery.max_height_vh,
            "instructions": delivery.instructions,
            "dismissible": delivery.dismissible,
            "html": delivery.render_html(),
        }
    )


@router.post("/{session_id}/save", status_code=status.HTTP_201_CREATED)
async def save_card(session_id: str, registry: Registry, storage: Storage) -> WineCard:
    """Persist the current draft."""
    session = registry.get(session_id)
    return await storage.create_wine_card(session.draft)
