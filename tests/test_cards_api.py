"""Tests for the card store, saved card endpoints and app shell."""

import pytest
from httpx import ASGITransport, AsyncClient

from winecard import __version__
from winecard.errors import SaveFailed
from winecard.schemas.card import COMMENT_OPTIONS, PAIRED_FOOD_OPTIONS, WineCardDraft
from winecard.services.storage import MemStorage


class TestMemStorage:
    """In-memory persistence."""

    @pytest.mark.asyncio
    async def test_create_assigns_counter_ids(self):
        storage = MemStorage(delay_seconds=0)

        first = await storage.create_wine_card(WineCardDraft(wine_name="Chablis"))
        second = await storage.create_wine_card(WineCardDraft(wine_name="Rioja"))

        assert (first.id, second.id) == (1, 2)
        assert await storage.get_wine_card(1) == first
        assert [card.wine_name for card in await storage.list_wine_cards()] == ["Chablis", "Rioja"]

    @pytest.mark.asyncio
    async def test_saved_card_is_a_copy(self):
        storage = MemStorage(delay_seconds=0)
        draft = WineCardDraft(paired_food=["チーズ"])

        card = await storage.create_wine_card(draft)
        draft.paired_food.append("ステーキ")

        assert card.paired_food == ["チーズ"]

    @pytest.mark.asyncio
    async def test_invalid_card_raises_save_failed(self):
        storage = MemStorage(delay_seconds=0)
        broken = WineCardDraft.model_construct(my_rating=9)

        with pytest.raises(SaveFailed) as exc_info:
            await storage.create_wine_card(broken)
        assert exc_info.value.status_code == 503
        assert exc_info.value.message == "Could not save your wine card. Please try again."
        assert await storage.list_wine_cards() == []


@pytest.mark.asyncio
async def test_create_card_endpoint(client):
    response = await client.post(
        "/api/cards",
        json={"wine_name": "Château Margaux 2015", "my_rating": 4, "paired_food": ["ステーキ"]},
    )
    assert response.status_code == 201
    data = response.json()
    assert data["id"] == 1
    assert data["wine_name"] == "Château Margaux 2015"
    assert data["theme_color"] == "red"

    listing = await client.get("/api/cards")
    assert [card["id"] for card in listing.json()] == [1]


@pytest.mark.asyncio
async def test_create_card_rejects_invalid_draft(client):
    response = await client.post("/api/cards", json={"my_rating": 6})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_tag_options(client):
    response = await client.get("/api/cards/options")
    assert response.status_code == 200
    data = response.json()
    assert data["paired_food"] == list(PAIRED_FOOD_OPTIONS)
    assert data["my_comment"] == data["partner_comment"] == list(COMMENT_OPTIONS)


@pytest.mark.asyncio
async def test_health_check(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "version": __version__, "app_name": "WineCard"}


@pytest.mark.asyncio
async def test_root_serves_page(client):
    response = await client.get("/")
    assert response.status_code == 200
    assert "text/html" in response.headers["content-type"]
    assert "export-button" in response.text


@pytest.mark.asyncio
async def test_security_headers_on_main_app():
    from winecard.main import app

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.get("/health")

    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert "img-src 'self' data: blob:" in response.headers["Content-Security-Policy"]
    assert "Strict-Transport-Security" not in response.headers
