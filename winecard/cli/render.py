"""Render a wine card draft to PNG without the web UI.

Usage:
    winecard-render DRAFT.json [-o OUT.png] [--image PHOTO]
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

import aiofiles
from pydantic import ValidationError

from winecard.config import settings
from winecard.errors import WineCardError
from winecard.schemas.card import WineCardDraft
from winecard.services.capture import ImageCaptureService
from winecard.services.form_state import FormState
from winecard.services.image_intake import ImageIntakeService
from winecard.services.preview import PreviewRenderer

logger = logging.getLogger(__name__)


async def render_draft(
    draft_path: Path,
    output: Path | None = None,
    image_path: Path | None = None,
) -> Path:
    """Run a draft file through the preview and capture pipeline.

    Args:
        draft_path: JSON object with WineCardDraft fields.
        output: Where to write the PNG. Defaults to the export filename in
            the current directory.
        image_path: Optional photo to embed, replacing any in the draft.

    Returns:
        The path written.
    """
    async with aiofiles.open(draft_path, "r", encoding="utf-8") as f:
        data = json.loads(await f.read())

    form = FormState(
        WineCardDraft.model_validate(data),
        intake=ImageIntakeService(settings.max_upload_size_bytes),
    )
    if image_path is not None:
        async with aiofiles.open(image_path, "rb") as f:
            content = await f.read()
        await form.load_image(content, image_path.name)

    view = PreviewRenderer().render(form.draft)
    captured = await ImageCaptureService(font_path=settings.font_path).capture(view, form.draft)

    target = output or Path(captured.filename_hint)
    async with aiofiles.open(target, "wb") as f:
        await f.write(captured.bitmap_data)

    logger.info("Wrote %s (%dx%d)", target, captured.source_width, captured.source_height)
    return target


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="winecard-render",
        description="Render a wine card draft (JSON) to a PNG image",
    )
    parser.add_argument("draft", type=Path, help="JSON file with the card fields")
    parser.add_argument("-o", "--output", type=Path, help="Output PNG path")
    parser.add_argument("--image", type=Path, help="Photo to embed in the card")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        target = asyncio.run(render_draft(args.draft, args.output, args.image))
    except (OSError, json.JSONDecodeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ValidationError as e:
        print(f"Invalid draft: {e}", file=sys.stderr)
        return 1
    except WineCardError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    print(target)
    return 0


if __name__ == "__main__":
    sys.exit(main())
