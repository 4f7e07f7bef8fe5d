"""Rasterize a card view into a PNG.

Embedded photos are decoded concurrently, each bounded by a timeout, then
the whole view is painted with Pillow in a worker thread at a fixed 2x
oversampling.
"""

import asyncio
import io
import logging
import math
from functools import lru_cache
from pathlib import Path

from PIL import Image, ImageDraw, ImageFont

from winecard.errors import CaptureFailed
from winecard.schemas.card import WineCardDraft
from winecard.schemas.export import CapturedImage, export_filename
from winecard.services.awaiting import await_all_with_timeout
from winecard.services.image_intake import decode_image, parse_data_uri
from winecard.services.preview import (
    CARD_RADIUS,
    MAX_IMAGE_HEIGHT,
    STAR_GAP,
    BadgeNode,
    Box,
    CardView,
    DividerNode,
    ImageNode,
    Palette,
    StarsNode,
    TextNode,
)

logger = logging.getLogger(__name__)

CAPTURE_SCALE = 2
IMAGE_LOAD_TIMEOUT = 5.0

# Cross-platform candidates, CJK-capable first (macOS -> Linux -> Windows)
FONT_CANDIDATES = [
    "/System/Library/Fonts/ヒラギノ角ゴシック W3.ttc",
    "/System/Library/Fonts/Hiragino Sans GB.ttc",
    "/usr/share/fonts/opentype/noto/NotoSansCJK-Regular.ttc",
    "/usr/share/fonts/truetype/noto/NotoSansCJK-Regular.ttc",
    "/usr/share/fonts/noto-cjk/NotoSansCJK-Regular.ttc",
    "/usr/share/fonts/google-noto-cjk/NotoSansCJK-Regular.ttc",
    "C:/Windows/Fonts/meiryo.ttc",
    "C:/Windows/Fonts/msgothic.ttc",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/TTF/DejaVuSans.ttf",
]

Font = ImageFont.FreeTypeFont | ImageFont.ImageFont


@lru_cache(maxsize=64)
def load_font(size: int, font_path: Path | None = None) -> Font:
    """Load the first available font at ``size`` px, falling back to Pillow's own."""
    candidates = ([str(font_path)] if font_path else []) + FONT_CANDIDATES
    for path in candidates:
        try:
            return ImageFont.truetype(path, size)
        except OSError:
            continue
    logger.debug("No system font found, using Pillow default font")
    return ImageFont.load_default(size=size)


def fit_image(width: int, height: int, box: Box) -> tuple[float, float]:
    """Scale intrinsic ``width`` x ``height`` into ``box`` keeping aspect ratio.

    Height never exceeds MAX_IMAGE_HEIGHT.
    """
    if width <= 0 or height <= 0:
        return 0.0, 0.0
    max_height = min(box.height, MAX_IMAGE_HEIGHT)
    ratio = min(box.width / width, max_height / height)
    return width * ratio, height * ratio


def star_points(cx: float, cy: float, outer: float) -> list[tuple[float, float]]:
    """Vertices of a five-pointed star centred on (cx, cy)."""
    inner = outer * 0.45
    points = []
    for i in range(10):
        angle = -math.pi / 2 + i * math.pi / 5
        radius = outer if i % 2 == 0 else inner
        points.append((cx + radius * math.cos(angle), cy + radius * math.sin(angle)))
    return points


class ImageCaptureService:
    """Turns the on-screen card view into a PNG bitmap."""

    def __init__(
        self,
        font_path: Path | None = None,
        image_timeout: float = IMAGE_LOAD_TIMEOUT,
    ) -> None:
        self.font_path = font_path
        self.image_timeout = image_timeout
        self.scale = CAPTURE_SCALE

    async def load_embedded_image(self, source: str) -> Image.Image:
        """Decode one embedded data-URI photo off the event loop."""
        _, content = parse_data_uri(source)
        image = await asyncio.to_thread(decode_image, content)
        return image.convert("RGBA")

    async def _load_images(self, view: CardView) -> dict[int, Image.Image | None]:
        slots = [
            (index, node)
            for index, node in enumerate(view.nodes)
            if isinstance(node, ImageNode) and node.source
        ]
        results = await await_all_with_timeout(
            (self.load_embedded_image(node.source) for _, node in slots),
            timeout=self.image_timeout,
        )

        loaded: dict[int, Image.Image | None] = {}
        for (index, _), result in zip(slots, results):
            if result.timed_out:
                logger.warning("Embedded image did not load within %.1fs, capturing without it", self.image_timeout)
            elif result.error is not None:
                logger.warning("Embedded image failed to load, capturing without it: %s", result.error)
            loaded[index] = result.value
        return loaded

    async def capture(self, view: CardView, draft: WineCardDraft) -> CapturedImage:
        """Rasterize ``view``.

        Args:
            view: The card view currently shown to the user.
            draft: The draft behind ``view``; only used for the filename.

        Returns:
            The PNG with dimensions exactly ``scale`` times the view.

        Raises:
            CaptureFailed: If painting or encoding the bitmap fails.
        """
        images = await self._load_images(view)

        try:
            png = await asyncio.to_thread(self._rasterize, view, images)
        except Exception as e:
            logger.warning("Card capture failed: %s", e)
            raise CaptureFailed() from e

        captured = CapturedImage(
            bitmap_data=png,
            source_width=view.width * self.scale,
            source_height=view.height * self.scale,
            filename_hint=export_filename(draft.wine_name),
        )
        logger.info(
            "Captured %dx%d card (%d bytes)",
            captured.source_width, captured.source_height, len(png),
        )
        return captured

    def _rasterize(self, view: CardView, images: dict[int, Image.Image | None]) -> bytes:
        s = self.scale
        palette = view.palette
        size = (view.width * s, view.height * s)

        # Opaque canvas so viewers never composite the corners onto black
        canvas = Image.new("RGB", size, palette.page_background)
        draw = ImageDraw.Draw(canvas)
        draw.rounded_rectangle(
            (0, 0, size[0] - 1, size[1] - 1),
            radius=CARD_RADIUS * s,
            fill=palette.card_background,
            outline=palette.border,
            width=s,
        )

        for index, node in enumerate(view.nodes):
            if isinstance(node, TextNode):
                self._draw_text(draw, node.box, node.text, node.size, node.color, node.align)
            elif isinstance(node, StarsNode):
                self._draw_stars(draw, node, palette)
            elif isinstance(node, BadgeNode):
                self._draw_badge(draw, node, palette)
            elif isinstance(node, ImageNode):
                self._draw_image(canvas, draw, node, images.get(index), palette)
            elif isinstance(node, DividerNode):
                draw.rectangle(self._scaled(node.box), fill=palette.divider)

        buffer = io.BytesIO()
        canvas.save(buffer, format="PNG")
        return buffer.getvalue()

    def _scaled(self, box: Box) -> tuple[float, float, float, float]:
        s = self.scale
        return (box.x * s, box.y * s, (box.x + box.width) * s, (box.y + box.height) * s)

    def _draw_text(
        self,
        draw: ImageDraw.ImageDraw,
        box: Box,
        text: str,
        size: int,
        color: str,
        align: str,
    ) -> None:
        if not text:
            return
        s = self.scale
        font = load_font(size * s, self.font_path)
        left, top, right, bottom = self._scaled(box)
        width = draw.textlength(text, font=font)
        if align == "center":
            x = left + (right - left - width) / 2
        elif align == "right":
            x = right - width
        else:
            x = left
        y = top + (bottom - top - size * s) / 2
        draw.text((x, y), text, font=font, fill=color)

    def _draw_stars(self, draw: ImageDraw.ImageDraw, node: StarsNode, palette: Palette) -> None:
        s = self.scale
        outer = node.size * s / 2
        left, top, _, _ = self._scaled(node.box)
        for i in range(node.total):
            cx = left + (i * (node.size + STAR_GAP) + node.size / 2) * s
            color = palette.star_filled if i < node.filled else palette.star_empty
            draw.polygon(star_points(cx, top + outer, outer), fill=color)

    def _draw_badge(self, draw: ImageDraw.ImageDraw, node: BadgeNode, palette: Palette) -> None:
        rect = self._scaled(node.box)
        draw.rounded_rectangle(rect, radius=node.box.height * self.scale / 2, fill=palette.badge_background)
        self._draw_text(draw, node.box, node.text, node.size, palette.badge_text, "center")

    def _draw_image(
        self,
        canvas: Image.Image,
        draw: ImageDraw.ImageDraw,
        node: ImageNode,
        image: Image.Image | None,
        palette: Palette,
    ) -> None:
        if image is None:
            # Empty slot, or a photo that failed to load in time
            draw.rounded_rectangle(self._scaled(node.box), radius=8 * self.scale, fill=palette.badge_background)
            return

        s = self.scale
        width, height = fit_image(image.width, image.height, node.box)
        target = (max(1, round(width * s)), max(1, round(height * s)))
        resized = image.resize(target, Image.Resampling.LANCZOS)
        # Centred in the box, like object-fit: contain
        x = round((node.box.x + (node.box.width - width) / 2) * s)
        y = round((node.box.y + (node.box.height - height) / 2) * s)
        canvas.paste(resized, (x, y), resized)
