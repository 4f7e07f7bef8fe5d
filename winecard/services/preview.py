"""Card preview renderer.

Projects a WineCardDraft onto a positioned card layout (``CardView``). The
same view is shown in the browser as HTML and rasterized on export, so what
the user sees is what the exported PNG contains.

Coordinates are CSS pixels relative to the card's top-left corner.
"""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass, field
from datetime import date

from winecard.schemas.card import MAX_RATING, ThemeColor, WineCardDraft
from winecard.services.templating import render_template

CARD_WIDTH = 360
MIN_CARD_HEIGHT = 600  # 3:5 card
CARD_PADDING = 32
CARD_RADIUS = 16
CONTENT_WIDTH = CARD_WIDTH - 2 * CARD_PADDING
MAX_IMAGE_HEIGHT = 320
IMAGE_PLACEHOLDER_HEIGHT = 120

TITLE_SIZE = 24
BODY_SIZE = 14
LABEL_SIZE = 12
BADGE_SIZE = 12
STAR_SIZE = 20
STAR_GAP = 4
LINE_SPACING = 1.4
SECTION_GAP = 20
BADGE_HEIGHT = 24
BADGE_PADDING_X = 10
BADGE_GAP = 6
DETAIL_LABEL_WIDTH = 88

PLACEHOLDER_WINE_NAME = "ワイン名未入力"
PLACEHOLDER_DETAIL = "未入力"
PLACEHOLDER_PAIRED_FOOD = "未選択"
PLACEHOLDER_MY_COMMENT = "香りはどう？口当たりは？後味は？"
PLACEHOLDER_PARTNER_COMMENT = "相手は甘い？辛い？心に残った？"
PLACEHOLDER_IMAGE = "写真未登録"
FOOTER_TOAST = "乾杯"
FOOTER_CAPTION = "テイスティングノート"


@dataclass(frozen=True)
class Palette:
    """Colours for one card theme."""

    name: str
    card_background: str
    border: str
    text: str
    accent: str
    muted: str
    divider: str
    star_filled: str
    star_empty: str
    badge_background: str
    badge_text: str
    page_background: str


PALETTES: dict[ThemeColor, Palette] = {
    ThemeColor.RED: Palette(
        name="red",
        card_background="#FDFBF7",
        border="#722F37",
        text="#2D2424",
        accent="#722F37",
        muted="#8C7F7F",
        divider="#E3D5D7",
        star_filled="#C5A059",
        star_empty="#D1D5DB",
        badge_background="#F3E6E8",
        badge_text="#722F37",
        page_background="#F5F5F0",
    ),
    ThemeColor.WHITE: Palette(
        name="white",
        card_background="#FFFFFF",
        border="#A8B5A2",
        text="#343A40",
        accent="#6B705C",
        muted="#868E96",
        divider="#E5E9E3",
        star_filled="#C5A059",
        star_empty="#D1D5DB",
        badge_background="#EEF1EC",
        badge_text="#6B705C",
        page_background="#F8F9FA",
    ),
}


@dataclass(frozen=True)
class Box:
    x: float
    y: float
    width: float
    height: float

    @property
    def bottom(self) -> float:
        return self.y + self.height


@dataclass(frozen=True)
class TextNode:
    box: Box
    text: str
    size: int
    color: str
    role: str
    align: str = "left"
    placeholder: bool = False


@dataclass(frozen=True)
class StarsNode:
    box: Box
    filled: int
    role: str
    total: int = MAX_RATING
    size: int = STAR_SIZE


@dataclass(frozen=True)
class BadgeNode:
    box: Box
    text: str
    role: str
    size: int = BADGE_SIZE


@dataclass(frozen=True)
class ImageNode:
    """Photo slot. ``source`` is a data URI, or None for the empty slot."""

    box: Box
    source: str | None
    role: str = "wine_image"


@dataclass(frozen=True)
class DividerNode:
    box: Box
    role: str = "divider"


Node = TextNode | StarsNode | BadgeNode | ImageNode | DividerNode

# Template branch for each node type
NODE_KINDS: dict[type, str] = {
    TextNode: "text",
    StarsNode: "stars",
    BadgeNode: "badge",
    ImageNode: "image",
    DividerNode: "divider",
}


@dataclass(frozen=True)
class CardView:
    """A fully laid-out card, ready for HTML display or rasterization."""

    width: int
    height: int
    theme: ThemeColor
    palette: Palette
    nodes: tuple[Node, ...] = field(default_factory=tuple)

    def by_role(self, role: str) -> list[Node]:
        return [node for node in self.nodes if node.role == role]

    def text(self, role: str) -> str:
        """Joined text of all text and badge nodes with ``role``."""
        return "".join(
            node.text for node in self.by_role(role) if isinstance(node, (TextNode, BadgeNode))
        )

    @property
    def image_nodes(self) -> list[ImageNode]:
        return [node for node in self.nodes if isinstance(node, ImageNode) and node.source]


def _char_width(char: str, size: int) -> float:
    if unicodedata.east_asian_width(char) in ("W", "F"):
        return float(size)
    return size * 0.6


def text_width(text: str, size: int) -> float:
    """Approximate rendered width of ``text`` at ``size`` px."""
    return sum(_char_width(char, size) for char in text)


def wrap_text(text: str, size: int, max_width: float) -> list[str]:
    """Greedy line wrap, breaking at spaces when possible and anywhere in CJK runs."""
    lines: list[str] = []
    current = ""
    for char in text:
        candidate = current + char
        if current and text_width(candidate, size) > max_width:
            space = current.rfind(" ")
            if space > 0 and char != " ":
                lines.append(current[:space])
                current = current[space + 1:] + char
            else:
                lines.append(current.rstrip())
                current = char.lstrip()
        else:
            current = candidate
    if current or not lines:
        lines.append(current)
    return lines


class _Layout:
    """Vertical flow cursor over the card's content column."""

    def __init__(self, palette: Palette) -> None:
        self.palette = palette
        self.y: float = CARD_PADDING
        self.nodes: list[Node] = []

    def add(self, node: Node) -> None:
        self.nodes.append(node)

    def text_block(
        self,
        text: str,
        size: int,
        role: str,
        *,
        x: float = CARD_PADDING,
        width: float = CONTENT_WIDTH,
        align: str = "left",
        color: str | None = None,
        placeholder: bool = False,
    ) -> float:
        """Add wrapped text at the cursor and return its height."""
        line_height = round(size * LINE_SPACING)
        lines = wrap_text(text, size, width)
        for index, line in enumerate(lines):
            self.add(
                TextNode(
                    box=Box(x, self.y + index * line_height, width, line_height),
                    text=line,
                    size=size,
                    color=color or (self.palette.muted if placeholder else self.palette.text),
                    role=role,
                    align=align,
                    placeholder=placeholder,
                )
            )
        return len(lines) * line_height

    def divider(self) -> None:
        self.add(DividerNode(box=Box(CARD_PADDING, self.y, CONTENT_WIDTH, 1)))
        self.y += 1 + SECTION_GAP

    def badges(self, tags: list[str], role: str, align: str) -> None:
        """Flow tag badges into rows; right-aligned rows hug the right edge."""
        rows: list[list[tuple[str, float]]] = [[]]
        row_width = 0.0
        for tag in tags:
            width = text_width(tag, BADGE_SIZE) + 2 * BADGE_PADDING_X
            needed = width if not rows[-1] else row_width + BADGE_GAP + width
            if rows[-1] and needed > CONTENT_WIDTH:
                rows.append([])
                row_width = 0.0
                needed = width
            rows[-1].append((tag, width))
            row_width = needed

        for row in rows:
            total = sum(width for _, width in row) + BADGE_GAP * (len(row) - 1)
            x = CARD_PADDING + CONTENT_WIDTH - total if align == "right" else CARD_PADDING
            for tag, width in row:
                self.add(BadgeNode(box=Box(x, self.y, width, BADGE_HEIGHT), text=tag, role=role))
                x += width + BADGE_GAP
            self.y += BADGE_HEIGHT + BADGE_GAP
        self.y -= BADGE_GAP


class PreviewRenderer:
    """Pure projection of a draft onto a themed card view."""

    def render(self, draft: WineCardDraft, today: date | None = None) -> CardView:
        """Lay out the card for ``draft``.

        Args:
            draft: The current draft; partially filled drafts are fine.
            today: Date printed in the footer. Defaults to today.
        """
        theme = ThemeColor(draft.theme_color)
        palette = PALETTES[theme]
        layout = _Layout(palette)

        self._photo(layout, draft)
        self._title(layout, draft)
        self._ratings(layout, draft)
        layout.divider()
        self._details(layout, draft)
        layout.divider()
        self._tag_section(layout, "合わせた料理", draft.paired_food, "paired_food", PLACEHOLDER_PAIRED_FOOD)
        self._tag_section(layout, "私の感想", draft.my_comment, "my_comment", PLACEHOLDER_MY_COMMENT)
        self._tag_section(
            layout, "パートナーの感想", draft.partner_comment, "partner_comment",
            PLACEHOLDER_PARTNER_COMMENT, align="right",
        )
        height = self._footer(layout, today or date.today())

        return CardView(
            width=CARD_WIDTH,
            height=height,
            theme=theme,
            palette=palette,
            nodes=tuple(layout.nodes),
        )

    def _photo(self, layout: _Layout, draft: WineCardDraft) -> None:
        if draft.wine_image:
            layout.add(ImageNode(box=Box(CARD_PADDING, layout.y, CONTENT_WIDTH, MAX_IMAGE_HEIGHT), source=draft.wine_image))
            layout.y += MAX_IMAGE_HEIGHT + SECTION_GAP
            return

        slot = Box(CARD_PADDING, layout.y, CONTENT_WIDTH, IMAGE_PLACEHOLDER_HEIGHT)
        layout.add(ImageNode(box=slot, source=None))
        line_height = round(LABEL_SIZE * LINE_SPACING)
        layout.add(
            TextNode(
                box=Box(slot.x, slot.y + (slot.height - line_height) / 2, slot.width, line_height),
                text=PLACEHOLDER_IMAGE,
                size=LABEL_SIZE,
                color=layout.palette.muted,
                role="image_placeholder",
                align="center",
                placeholder=True,
            )
        )
        layout.y += IMAGE_PLACEHOLDER_HEIGHT + SECTION_GAP

    def _title(self, layout: _Layout, draft: WineCardDraft) -> None:
        name = draft.wine_name.strip()
        layout.y += layout.text_block(
            name or PLACEHOLDER_WINE_NAME,
            TITLE_SIZE,
            "wine_name",
            align="center",
            placeholder=not name,
        )
        layout.y += 12

    def _ratings(self, layout: _Layout, draft: WineCardDraft) -> None:
        stars_width = MAX_RATING * STAR_SIZE + (MAX_RATING - 1) * STAR_GAP
        for label, rating, role in (
            ("私の評価", draft.my_rating, "my_rating"),
            ("パートナーの評価", draft.partner_rating, "partner_rating"),
        ):
            layout.text_block(
                label, LABEL_SIZE, f"{role}_label",
                width=CONTENT_WIDTH - stars_width, color=layout.palette.muted,
            )
            layout.add(
                StarsNode(
                    box=Box(CARD_PADDING + CONTENT_WIDTH - stars_width, layout.y, stars_width, STAR_SIZE),
                    filled=rating,
                    role=role,
                )
            )
            layout.y += STAR_SIZE + 8
        layout.y += SECTION_GAP - 8

    def _details(self, layout: _Layout, draft: WineCardDraft) -> None:
        price = f"¥{draft.price:,}" if draft.price is not None else None
        value_x = CARD_PADDING + DETAIL_LABEL_WIDTH
        value_width = CONTENT_WIDTH - DETAIL_LABEL_WIDTH
        for label, value, role in (
            ("産地", draft.origin, "origin"),
            ("品種", draft.variety, "variety"),
            ("購入場所", draft.location, "location"),
            ("価格", price, "price"),
        ):
            layout.text_block(
                label, LABEL_SIZE, f"{role}_label",
                width=DETAIL_LABEL_WIDTH, color=layout.palette.muted,
            )
            layout.y += layout.text_block(
                value or PLACEHOLDER_DETAIL, BODY_SIZE, role,
                x=value_x, width=value_width, placeholder=value is None,
            )
            layout.y += 4
        layout.y += SECTION_GAP - 4

    def _tag_section(
        self,
        layout: _Layout,
        heading: str,
        tags: list[str],
        role: str,
        placeholder: str,
        align: str = "left",
    ) -> None:
        layout.y += layout.text_block(
            heading, LABEL_SIZE, f"{role}_heading", align=align, color=layout.palette.muted,
        )
        layout.y += 6
        if tags:
            layout.badges(tags, role, align)
        else:
            layout.y += layout.text_block(placeholder, BODY_SIZE, role, align=align, placeholder=True)
        layout.y += SECTION_GAP

    def _footer(self, layout: _Layout, today: date) -> int:
        toast_height = round(22 * LINE_SPACING)
        caption_height = round(10 * LINE_SPACING)
        footer_height = toast_height + 4 + caption_height
        top = max(layout.y + 4, MIN_CARD_HEIGHT - CARD_PADDING - footer_height)

        layout.y = top
        layout.text_block(FOOTER_TOAST, 22, "footer", align="center", color=layout.palette.accent)
        layout.y = top + toast_height + 4
        layout.text_block(
            f"{FOOTER_CAPTION} • {today.year}/{today.month}/{today.day}",
            10, "footer_caption", align="center", color=layout.palette.muted,
        )
        return max(MIN_CARD_HEIGHT, round(top + footer_height + CARD_PADDING))

    def render_html(self, view: CardView) -> str:
        """Return the card as absolutely positioned HTML.

        Positions and sizes come straight from ``view`` so the on-screen
        card and the captured bitmap share one layout.
        """
        return render_template(
            "card.html",
            view=view,
            palette=view.palette,
            items=[(NODE_KINDS[type(node)], node) for node in view.nodes],
            card_radius=CARD_RADIUS,
            star_gap=STAR_GAP,
            max_image_height=MAX_IMAGE_HEIGHT,
        )
