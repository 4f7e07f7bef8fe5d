"""Reactive in-memory state of one card being edited."""

import logging
from collections.abc import Callable

from pydantic import ValidationError

from winecard.errors import FieldValidationError, ImageDecodeFailed, ImageTooLarge
from winecard.schemas.card import TAG_VOCABULARIES, WineCardDraft
from winecard.services.image_intake import ImageIntakeService

logger = logging.getLogger(__name__)

Listener = Callable[[WineCardDraft], None]


def _first_error_message(error: ValidationError) -> str:
    """Return the first pydantic error message without the "Value error, " prefix."""
    message = error.errors()[0]["msg"]
    return message.removeprefix("Value error, ")


class FormState:
    """Single authoritative copy of a draft, with change notifications.

    Edits are applied synchronously and every subscriber is notified, in
    subscription order, before the edit call returns.
    """

    def __init__(
        self,
        draft: WineCardDraft | None = None,
        intake: ImageIntakeService | None = None,
    ) -> None:
        self._draft = draft or WineCardDraft()
        self._intake = intake or ImageIntakeService()
        self._listeners: list[Listener] = []
        self.errors: dict[str, str] = {}

    @property
    def draft(self) -> WineCardDraft:
        return self._draft

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` and call it once with the current draft.

        Returns:
            A callable that removes the listener.
        """
        self._listeners.append(listener)
        listener(self._draft)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, draft: WineCardDraft) -> None:
        self._draft = draft
        for listener in list(self._listeners):
            listener(draft)

    def _reject(self, name: str, message: str) -> FieldValidationError:
        self.errors[name] = message
        logger.debug("Rejected edit of %s: %s", name, message)
        return FieldValidationError(message, field=name)

    def set_field(self, name: str, value: object) -> WineCardDraft:
        """Validate and apply a single field edit.

        Raises:
            FieldValidationError: If the field is unknown or the value is out
                of its domain. The draft is left unchanged.
        """
        if name not in WineCardDraft.model_fields:
            raise self._reject(name, f"Unknown field '{name}'")

        candidate = self._draft.model_copy(deep=True)
        try:
            setattr(candidate, name, value)
        except ValidationError as e:
            raise self._reject(name, _first_error_message(e)) from e

        self.errors.pop(name, None)
        self._commit(candidate)
        return candidate

    def toggle_tag(self, field: str, value: str) -> list[str]:
        """Add ``value`` to a tag set if absent, otherwise remove it.

        Returns:
            The tag set after the toggle.
        """
        if field not in TAG_VOCABULARIES:
            raise self._reject(field, f"'{field}' is not a tag field")

        current: list[str] = getattr(self._draft, field)
        if value in current:
            updated = [tag for tag in current if tag != value]
        else:
            updated = [*current, value]

        return getattr(self.set_field(field, updated), field)

    def check_image_size(self, size: int) -> None:
        """Reject a photo by its declared size before it is read.

        Raises:
            ImageTooLarge: If ``size`` exceeds the upload limit.
        """
        try:
            self._intake.check_size(size)
        except ImageTooLarge as e:
            self.errors["wine_image"] = e.message
            raise

    async def load_image(self, content: bytes, filename: str | None = None) -> WineCardDraft:
        """Decode an uploaded photo and commit it to the draft.

        Raises:
            ImageTooLarge: If the file exceeds the upload limit.
            ImageDecodeFailed: If the file is not a decodable image. Any
                previous photo is kept.
        """
        try:
            data_uri = await self._intake.to_data_uri(content, filename)
        except (ImageTooLarge, ImageDecodeFailed) as e:
            self.errors["wine_image"] = e.message
            logger.info("Photo rejected (%s): %s", e.kind.value, e.message)
            raise

        return self.set_field("wine_image", data_uri)

    def remove_image(self) -> WineCardDraft:
        """Return the photo field to unset."""
        return self.set_field("wine_image", None)

    def reset(self) -> WineCardDraft:
        """Start over with an empty draft."""
        self.errors.clear()
        self._commit(WineCardDraft())
        return self._draft
