"""Photo intake for wine cards.

Uploaded photos are validated (size, declared extension, magic bytes, full
decode) and turned into a base64 data URI that lives on the draft.
"""

import asyncio
import base64
import binascii
import io
import logging
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from winecard.config import settings
from winecard.errors import ImageDecodeFailed, ImageTooLarge

logger = logging.getLogger(__name__)

# File extension to MIME type mapping
EXTENSION_MIME_MAP = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}

ALLOWED_MIME_TYPES = frozenset(EXTENSION_MIME_MAP.values())

# Magic byte signatures for image formats
# Each entry is (magic_bytes, offset, detected_mime_type)
IMAGE_MAGIC_SIGNATURES = [
    # JPEG: starts with FF D8 FF
    (b"\xff\xd8\xff", 0, "image/jpeg"),
    # PNG: starts with 89 50 4E 47 0D 0A 1A 0A
    (b"\x89PNG\r\n\x1a\n", 0, "image/png"),
    # GIF87a and GIF89a
    (b"GIF87a", 0, "image/gif"),
    (b"GIF89a", 0, "image/gif"),
    # WebP: starts with RIFF....WEBP
    (b"RIFF", 0, "image/webp"),  # Additional check for WEBP at offset 8
]

_DATA_URI_PREFIX = "data:"
_BASE64_MARKER = ";base64,"


def detect_image_type(content: bytes) -> str | None:
    """Detect image MIME type from file content using magic bytes.

    Args:
        content: The file content bytes.

    Returns:
        The detected MIME type (e.g., "image/png") or None if not a known image.
    """
    if len(content) < 12:
        return None

    for magic, offset, mime_type in IMAGE_MAGIC_SIGNATURES:
        if content[offset:offset + len(magic)] == magic:
            # Special case for WebP: verify WEBP signature at offset 8
            if mime_type == "image/webp" and content[8:12] != b"WEBP":
                continue
            return mime_type

    return None


def encode_data_uri(content: bytes, mime_type: str) -> str:
    """Encode raw image bytes as a base64 data URI."""
    return f"{_DATA_URI_PREFIX}{mime_type}{_BASE64_MARKER}{base64.b64encode(content).decode('ascii')}"


def parse_data_uri(data_uri: str) -> tuple[str, bytes]:
    """Split a base64 image data URI into its MIME type and payload.

    Raises:
        ValueError: If the string is not a base64 data URI.
    """
    if not data_uri.startswith(_DATA_URI_PREFIX) or _BASE64_MARKER not in data_uri:
        raise ValueError("expected a base64 data URI")

    header, _, payload = data_uri.partition(_BASE64_MARKER)
    mime_type = header[len(_DATA_URI_PREFIX):].lower()
    try:
        content = base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        raise ValueError(f"invalid base64 payload: {e}") from e
    return mime_type, content


def decode_image(content: bytes) -> Image.Image:
    """Fully decode image bytes with Pillow.

    Blocking; call from a worker thread for large files.

    Raises:
        ImageDecodeFailed: If Pillow cannot decode the data.
    """
    try:
        image = Image.open(io.BytesIO(content))
        image.load()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError, Image.DecompressionBombError) as e:
        raise ImageDecodeFailed() from e
    return image


class ImageIntakeService:
    """Validates uploaded photos and converts them to data URIs."""

    def __init__(self, max_size_bytes: int | None = None) -> None:
        """Initialize the intake service.

        Args:
            max_size_bytes: Maximum file size in bytes. Defaults to config setting.
        """
        self.max_size_bytes = max_size_bytes or settings.max_upload_size_bytes

    def _validate_extension(self, filename: str | None) -> None:
        """Reject filenames whose extension is not a supported raster format."""
        if not filename:
            return

        ext = Path(filename).suffix.lower()
        if ext and ext not in EXTENSION_MIME_MAP:
            raise ImageDecodeFailed(
                f"Invalid file type. Allowed types: {', '.join(EXTENSION_MIME_MAP.keys())}"
            )

    def check_size(self, size: int) -> None:
        """Raise ImageTooLarge if ``size`` exceeds the upload limit."""
        if size > self.max_size_bytes:
            max_mb = self.max_size_bytes / (1024 * 1024)
            raise ImageTooLarge(f"File size exceeds maximum allowed size of {max_mb:.1f} MB")

    async def to_data_uri(self, content: bytes, filename: str | None = None) -> str:
        """Validate an uploaded photo and return it as a data URI.

        Args:
            content: Raw file bytes.
            filename: Original filename, used for an extension check.

        Returns:
            A ``data:image/...;base64,`` string.

        Raises:
            ImageTooLarge: If the file exceeds the size limit.
            ImageDecodeFailed: If the file is not a supported, decodable image.
        """
        self.check_size(len(content))
        self._validate_extension(filename)

        # Magic bytes decide the type, never the declared extension
        mime_type = detect_image_type(content)
        if mime_type is None:
            raise ImageDecodeFailed()

        await asyncio.to_thread(decode_image, content)

        logger.debug("Accepted %s photo (%d bytes)", mime_type, len(content))
        return encode_data_uri(content, mime_type)
