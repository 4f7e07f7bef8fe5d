"""Schemas for exported card images."""

import re
from dataclasses import dataclass

UNTITLED = "untitled"

# Path separators and control characters are not allowed in download names
_UNSAFE_FILENAME_CHARS = re.compile(r'[\\/\x00-\x1f\x7f"]')


def export_filename(wine_name: str | None) -> str:
    """Build the download name ``wine-card-<name>.png``.

    Non-ASCII characters are kept; the Content-Disposition header carries
    them in its RFC 5987 ``filename*`` parameter.
    """
    name = (wine_name or "").strip()
    name = _UNSAFE_FILENAME_CHARS.sub("_", name) or UNTITLED
    return f"wine-card-{name}.png"


@dataclass(frozen=True)
class CapturedImage:
    """A rasterized card preview, produced once per export."""

    bitmap_data: bytes
    source_width: int
    source_height: int
    filename_hint: str

    content_type: str = "image/png"
