"""In-memory wine card store.

Stands in for a database during development; saves are delayed to mimic a
network round trip.
"""

import asyncio
import logging

from winecard.errors import SaveFailed
from winecard.schemas.card import WineCard, WineCardDraft

logger = logging.getLogger(__name__)

DEFAULT_SAVE_DELAY = 0.8


class MemStorage:
    """Counter-keyed map of saved cards."""

    def __init__(self, delay_seconds: float = DEFAULT_SAVE_DELAY) -> None:
        self.delay_seconds = delay_seconds
        self._cards: dict[int, WineCard] = {}
        self._next_id = 1

    async def create_wine_card(self, draft: WineCardDraft) -> WineCard:
        """Store ``draft`` under a new id.

        Raises:
            SaveFailed: If the card could not be stored.
        """
        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)

        try:
            card = WineCard(id=self._next_id, **draft.model_dump())
        except ValueError as e:
            logger.warning("Saving wine card failed: %s", e)
            raise SaveFailed() from e

        self._cards[card.id] = card
        self._next_id += 1
        logger.info("Saved wine card %d (%s)", card.id, card.wine_name or "untitled")
        return card

    async def get_wine_card(self, card_id: int) -> WineCard | None:
        return self._cards.get(card_id)

    async def list_wine_cards(self) -> list[WineCard]:
        return list(self._cards.values())
