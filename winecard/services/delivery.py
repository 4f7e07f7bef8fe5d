"""Hand a captured card image to the user.

One export invocation walks ``IDLE -> CAPTURING -> DELIVERING_* -> DONE``
(or ``FAILED``). Desktop browsers get a file download; touch devices get an
overlay showing the image with long-press-to-save instructions, since mobile
browsers do not reliably honour download links for generated images.
"""

import asyncio
import base64
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from urllib.parse import quote

from winecard.errors import CaptureFailed, DeliveryFailed, ExportInProgress, WineCardError
from winecard.schemas.card import WineCardDraft
from winecard.schemas.export import CapturedImage
from winecard.services.capture import CAPTURE_SCALE, ImageCaptureService
from winecard.services.form_state import FormState
from winecard.services.preview import CardView, PreviewRenderer
from winecard.services.templating import render_template

logger = logging.getLogger(__name__)

MODAL_MAX_HEIGHT_VH = 70
MODAL_INSTRUCTIONS = "画像を長押しして保存してください"
MODAL_DISMISS_LABEL = "閉じる"

_TOUCH_USER_AGENT = re.compile(r"Mobi|Android|iPhone|iPad|iPod", re.IGNORECASE)


class ExportState(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    DELIVERING_DOWNLOAD = "delivering_download"
    DELIVERING_MODAL = "delivering_modal"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class EnvironmentCapabilities:
    """What the user's runtime can do, decided once per export."""

    touch: bool = False

    @classmethod
    def from_request(cls, touch_hint: str | None, user_agent: str | None) -> "EnvironmentCapabilities":
        """Build from the page's touch report, falling back to the User-Agent.

        Args:
            touch_hint: ``"1"``/``"true"`` or ``"0"``/``"false"`` as reported
                by the page, or None if it did not report.
            user_agent: The request's User-Agent header.
        """
        if touch_hint is not None:
            return cls(touch=touch_hint.strip().lower() in ("1", "true", "yes"))
        return cls(touch=bool(user_agent and _TOUCH_USER_AGENT.search(user_agent)))


def content_disposition(filename: str) -> str:
    """Attachment header with an ASCII fallback and an RFC 5987 UTF-8 name."""
    ascii_name = filename.encode("ascii", "replace").decode("ascii").replace("?", "_")
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"


@dataclass(frozen=True)
class DownloadDelivery:
    """A file download of the captured PNG."""

    filename: str
    content: bytes
    content_type: str = "image/png"

    @property
    def headers(self) -> dict[str, str]:
        return {"Content-Disposition": content_disposition(self.filename)}


@dataclass(frozen=True)
class ModalDelivery:
    """An overlay that shows the PNG until the user dismisses it."""

    data_uri: str
    filename: str
    width: int
    height: int
    max_height_vh: int = MODAL_MAX_HEIGHT_VH
    instructions: str = MODAL_INSTRUCTIONS
    dismissible: bool = True

    def render_html(self) -> str:
        """Overlay markup. Closing is left to the user; there is no timer."""
        return render_template("export_modal.html", modal=self, dismiss_label=MODAL_DISMISS_LABEL)


Delivery = DownloadDelivery | ModalDelivery


@dataclass
class ExportOutcome:
    """Result of one export invocation."""

    state: ExportState = ExportState.IDLE
    transitions: list[ExportState] = field(default_factory=lambda: [ExportState.IDLE])
    captured: CapturedImage | None = None
    delivery: Delivery | None = None
    error: WineCardError | None = None

    def advance(self, state: ExportState) -> None:
        self.state = state
        self.transitions.append(state)

    @property
    def succeeded(self) -> bool:
        return self.state is ExportState.DONE

    @property
    def notification(self) -> str | None:
        """Message for a dismissible toast when the export failed."""
        return self.error.message if self.error else None


class ExportDeliveryStrategy:
    """Runs capture and routes the bitmap to the right delivery path."""

    def __init__(self, capture: ImageCaptureService) -> None:
        self.capture = capture

    async def export(
        self,
        view: CardView,
        draft: WineCardDraft,
        capabilities: EnvironmentCapabilities,
    ) -> ExportOutcome:
        """Capture ``view`` and deliver it. Never raises for capture or delivery errors.

        The delivery branch is chosen from ``capabilities`` before capture starts.
        The download payload is built in the same call that captured it, so the
        response answering the user's click carries the file directly.
        """
        outcome = ExportOutcome()
        use_modal = capabilities.touch

        outcome.advance(ExportState.CAPTURING)
        try:
            captured = await self.capture.capture(view, draft)
        except CaptureFailed as e:
            return self._fail(outcome, e)
        outcome.captured = captured

        if use_modal:
            outcome.advance(ExportState.DELIVERING_MODAL)
            deliver: Callable[[CapturedImage], Delivery] = self.deliver_modal
        else:
            outcome.advance(ExportState.DELIVERING_DOWNLOAD)
            deliver = self.deliver_download

        try:
            outcome.delivery = deliver(captured)
        except Exception as e:
            logger.warning("Export delivery failed: %s", e)
            failure = DeliveryFailed()
            failure.__cause__ = e
            return self._fail(outcome, failure)

        outcome.advance(ExportState.DONE)
        logger.info("Exported %s via %s", captured.filename_hint, "modal" if use_modal else "download")
        return outcome

    def _fail(self, outcome: ExportOutcome, error: WineCardError) -> ExportOutcome:
        outcome.error = error
        outcome.advance(ExportState.FAILED)
        return outcome

    def deliver_download(self, captured: CapturedImage) -> DownloadDelivery:
        if not captured.bitmap_data:
            raise ValueError("captured image is empty")
        return DownloadDelivery(
            filename=captured.filename_hint,
            content=captured.bitmap_data,
            content_type=captured.content_type,
        )

    def deliver_modal(self, captured: CapturedImage) -> ModalDelivery:
        if not captured.bitmap_data:
            raise ValueError("captured image is empty")
        if not (captured.source_width and captured.source_height):
            raise ValueError("captured image has no size")
        encoded = base64.b64encode(captured.bitmap_data).decode("ascii")
        return ModalDelivery(
            data_uri=f"data:{captured.content_type};base64,{encoded}",
            filename=captured.filename_hint,
            # Shown at card size; the bitmap is oversampled
            width=captured.source_width // CAPTURE_SCALE,
            height=captured.source_height // CAPTURE_SCALE,
        )


class ExportTrigger:
    """The export button of one form session.

    Tracks the latest draft and rendered view through a FormState
    subscription and refuses a second export while one is running.
    A bitmap reflects the view at the moment its export started; edits made
    while it is being captured show up in the next export.
    """

    def __init__(
        self,
        form: FormState,
        strategy: ExportDeliveryStrategy,
        renderer: PreviewRenderer | None = None,
    ) -> None:
        self.strategy = strategy
        self.renderer = renderer or PreviewRenderer()
        self._lock = asyncio.Lock()
        self.draft: WineCardDraft = form.draft
        self.view: CardView = self.renderer.render(form.draft)
        self._unsubscribe = form.subscribe(self._on_change)

    def _on_change(self, draft: WineCardDraft) -> None:
        self.draft = draft
        self.view = self.renderer.render(draft)

    @property
    def enabled(self) -> bool:
        return not self._lock.locked()

    async def fire(self, capabilities: EnvironmentCapabilities) -> ExportOutcome:
        """Export the current view.

        Raises:
            ExportInProgress: If an export for this session is still running.
        """
        if self._lock.locked():
            raise ExportInProgress()
        async with self._lock:
            return await self.strategy.export(self.view, self.draft, capabilities)

    def close(self) -> None:
        self._unsubscribe()
