"""Pydantic schemas for wine tasting cards."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from winecard.config import settings
from winecard.errors import ImageDecodeFailed
from winecard.services.image_intake import (
    ALLOWED_MIME_TYPES,
    decode_image,
    detect_image_type,
    parse_data_uri,
)

MAX_TEXT_LENGTH = 100
MAX_PRICE = 10_000_000
MAX_RATING = 5

COMMENT_OPTIONS: tuple[str, ...] = (
    "香りが良い",
    "飲みやすい",
    "後味が良い",
    "深い味わい",
    "フルーティー",
    "華やか",
    "しっかりした味",
    "爽やか",
    "上品",
    "クリーミー",
)

PAIRED_FOOD_OPTIONS: tuple[str, ...] = (
    "チーズ",
    "ステーキ",
    "魚料理",
    "和食",
    "パスタ",
    "チョコレート",
    "デザート",
    "海鮮",
    "フルーツ",
    "前菜",
)

# Tag-set fields and the vocabulary each one draws from
TAG_VOCABULARIES: dict[str, tuple[str, ...]] = {
    "paired_food": PAIRED_FOOD_OPTIONS,
    "my_comment": COMMENT_OPTIONS,
    "partner_comment": COMMENT_OPTIONS,
}


class ThemeColor(str, Enum):
    """Card palette, chosen by wine colour."""

    RED = "red"
    WHITE = "white"


def _check_tags(values: list[str], vocabulary: tuple[str, ...]) -> list[str]:
    seen: set[str] = set()
    for value in values:
        if value not in vocabulary:
            raise ValueError(f"'{value}' is not one of the available options")
        if value in seen:
            raise ValueError(f"'{value}' is selected more than once")
        seen.add(value)
    return values


class WineCardDraft(BaseModel):
    """The card a user is editing. Every field is optional until saved."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    wine_name: str = Field("", max_length=MAX_TEXT_LENGTH)
    origin: str | None = Field(None, max_length=MAX_TEXT_LENGTH)
    variety: str | None = Field(None, max_length=MAX_TEXT_LENGTH)
    location: str | None = Field(None, max_length=MAX_TEXT_LENGTH)
    price: int | None = Field(None, ge=0, le=MAX_PRICE, description="Price in yen")
    paired_food: list[str] = Field(default_factory=list)
    my_comment: list[str] = Field(default_factory=list)
    partner_comment: list[str] = Field(default_factory=list)
    my_rating: int = Field(0, ge=0, le=MAX_RATING)
    partner_rating: int = Field(0, ge=0, le=MAX_RATING)
    theme_color: ThemeColor = ThemeColor.RED
    wine_image: str | None = Field(None, description="Photo as a base64 data URI")

    @field_validator("origin", "variety", "location", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        """Treat empty text inputs as unset."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("paired_food")
    @classmethod
    def check_paired_food(cls, v: list[str]) -> list[str]:
        return _check_tags(v, PAIRED_FOOD_OPTIONS)

    @field_validator("my_comment", "partner_comment")
    @classmethod
    def check_comments(cls, v: list[str]) -> list[str]:
        return _check_tags(v, COMMENT_OPTIONS)

    @field_validator("wine_image")
    @classmethod
    def check_wine_image(cls, v: str | None) -> str | None:
        """Only data URIs carrying a decodable image within the upload limit are accepted."""
        if v is None:
            return None
        mime_type, content = parse_data_uri(v)
        if mime_type not in ALLOWED_MIME_TYPES:
            raise ValueError(f"unsupported image type '{mime_type}'")
        if detect_image_type(content) is None:
            raise ValueError("image data is not a recognised image format")
        if len(content) > settings.max_upload_size_bytes:
            raise ValueError(f"image exceeds the {settings.max_upload_size_mb} MB upload limit")
        try:
            decode_image(content).close()
        except ImageDecodeFailed as e:
            raise ValueError(e.message) from e
        return v


class WineCard(WineCardDraft):
    """A saved card."""

    id: int


class FieldValue(BaseModel):
    """Request body for a single field edit."""

    value: Any = None


class TagValue(BaseModel):
    """Request body for toggling one tag."""

    value: str = Field(..., min_length=1, max_length=MAX_TEXT_LENGTH)


class SessionState(BaseModel):
    """Snapshot of a form session returned to the browser."""

    id: str
    draft: WineCardDraft
    errors: dict[str, str]
    export_enabled: bool
