"""Saved wine card endpoints."""

from fastapi import APIRouter, status

from winecard.dependencies import Storage
from winecard.schemas.card import TAG_VOCABULARIES, WineCard, WineCardDraft

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_wine_card(draft: WineCardDraft, storage: Storage) -> WineCard:
    """Save a completed draft to the card store."""
    return await storage.create_wine_card(draft)


@router.get("")
async def list_wine_cards(storage: Storage) -> list[WineCard]:
    """List saved cards, oldest first."""
    return await storage.list_wine_cards()


@router.get("/options")
async def get_tag_options() -> dict[str, list[str]]:
    """Allowed values of each multi-select tag field."""
    return {field: list(options) for field, options in TAG_VOCABULARIES.items()}
