"""Pydantic schemas for the WineCard API."""

from winecard.schemas.card import (
    COMMENT_OPTIONS,
    PAIRED_FOOD_OPTIONS,
    TAG_VOCABULARIES,
    FieldValue,
    SessionState,
    TagValue,
    ThemeColor,
    WineCard,
    WineCardDraft,
)
from winecard.schemas.export import CapturedImage, export_filename

__all__ = [
    "COMMENT_OPTIONS",
    "PAIRED_FOOD_OPTIONS",
    "TAG_VOCABULARIES",
    "CapturedImage",
    "FieldValue",
    "SessionState",
    "TagValue",
    "ThemeColor",
    "WineCard",
    "WineCardDraft",
    "export_filename",
]
