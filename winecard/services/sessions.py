"""Server-side form sessions, one per open browser page."""

import logging
import uuid
from collections import OrderedDict

from winecard.errors import SessionNotFound
from winecard.schemas.card import SessionState, WineCardDraft
from winecard.services.capture import ImageCaptureService
from winecard.services.delivery import ExportDeliveryStrategy, ExportTrigger
from winecard.services.form_state import FormState
from winecard.services.image_intake import ImageIntakeService
from winecard.services.preview import CardView, PreviewRenderer

logger = logging.getLogger(__name__)


class FormSession:
    """A FormState wired to its live preview and export button."""

    def __init__(
        self,
        session_id: str,
        capture: ImageCaptureService,
        intake: ImageIntakeService | None = None,
        renderer: PreviewRenderer | None = None,
    ) -> None:
        self.id = session_id
        self.renderer = renderer or PreviewRenderer()
        self.form = FormState(intake=intake)
        self.trigger = ExportTrigger(self.form, ExportDeliveryStrategy(capture), self.renderer)

    @property
    def draft(self) -> WineCardDraft:
        return self.form.draft

    @property
    def view(self) -> CardView:
        return self.trigger.view

    def preview_html(self) -> str:
        return self.renderer.render_html(self.trigger.view)

    def state(self) -> SessionState:
        return SessionState(
            id=self.id,
            draft=self.form.draft,
            errors=dict(self.form.errors),
            export_enabled=self.trigger.enabled,
        )

    def close(self) -> None:
        self.trigger.close()


class SessionRegistry:
    """Open sessions, evicting the least recently used past ``max_sessions``."""

    def __init__(
        self,
        capture: ImageCaptureService,
        max_sessions: int = 500,
        intake: ImageIntakeService | None = None,
    ) -> None:
        self.capture = capture
        self.max_sessions = max_sessions
        self.intake = intake
        self._sessions: OrderedDict[str, FormSession] = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def create(self) -> FormSession:
        session = FormSession(uuid.uuid4().hex, self.capture, self.intake)
        self._sessions[session.id] = session

        while len(self._sessions) > self.max_sessions:
            evicted_id, evicted = self._sessions.popitem(last=False)
            evicted.close()
            logger.info("Evicted idle form session %s", evicted_id)

        logger.debug("Opened form session %s", session.id)
        return session

    def get(self, session_id: str) -> FormSession:
        """Look up a session and mark it as recently used.

        Raises:
            SessionNotFound: If the id is unknown or was evicted.
        """
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound()
        self._sessions.move_to_end(session_id)
        return session

    def close(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is None:
            raise SessionNotFound()
        session.close()
        logger.debug("Closed form session %s", session_id)

    def clear(self) -> None:
        for session in self._sessions.values():
            session.close()
        self._sessions.clear()
