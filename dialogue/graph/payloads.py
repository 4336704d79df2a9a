"""
Structured payloads carried in node content (card carousels, media).

Authors write these in a loose object notation inside the CSV, so parsing
is lenient. A parser returns None when the content cannot be understood;
callers fall back to showing the raw text.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Literal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Card:
    title: str
    content: str


@dataclass(frozen=True)
class CarouselPayload:
    """Horizontally scrolling cards with an optional heading."""

    type: Literal["card-carousel"] = "card-carousel"
    heading: str | None = None
    cards: tuple[Card, ...] = ()


MediaType = Literal["pdf", "image", "video"]

_EXTENSION_TYPES: dict[str, MediaType] = {
    "pdf": "pdf",
    "jpg": "image",
    "jpeg": "image",
    "png": "image",
    "gif": "image",
    "heic": "image",
    "mp4": "video",
    "mov": "video",
    "avi": "video",
}


@dataclass(frozen=True)
class MediaFile:
    filename: str
    media_type: MediaType
    caption: str | None = None


@dataclass(frozen=True)
class MediaPayload:
    """One or more media files shown inline in the conversation."""

    type: Literal["media"] = "media"
    files: tuple[MediaFile, ...] = field(default_factory=tuple)
    caption: str | None = None


StructuredPayload = CarouselPayload | MediaPayload

_HEADING_RE = re.compile(r"heading:\s*([^,]*)")
_CARD_RE = re.compile(r"\{\s*title:\s*(.*?)\s*,\s*content:\s*(.*?)\s*\}", re.DOTALL)
_BARE_KEY_RE = re.compile(r"(\w+):")


def parse_carousel(content: str) -> CarouselPayload | None:
    """
    Parse carousel notation like:

        {heading: Traits, cards: [{title: Curiosity, content: Asks why}, ...]}

    Keys and values are unquoted. Returns None when the content is not
    wrapped in braces or holds no cards.
    """
    trimmed = content.strip()
    if not (trimmed.startswith("{") and trimmed.endswith("}")):
        logger.warning(f"Carousel content not wrapped in braces: {content[:60]!r}")
        return None

    inner = trimmed[1:-1]
    heading = None
    cards_at = inner.find("cards:")
    head_part = inner if cards_at < 0 else inner[:cards_at]
    match = _HEADING_RE.search(head_part)
    if match:
        heading = match.group(1).strip() or None

    cards: tuple[Card, ...] = ()
    if cards_at >= 0:
        cards = tuple(
            Card(title=title.strip(), content=body.strip())
            for title, body in _CARD_RE.findall(inner[cards_at:])
        )

    if not cards:
        logger.warning(f"Carousel content has no cards: {content[:60]!r}")
        return None
    return CarouselPayload(heading=heading, cards=cards)


def parse_media(content: str) -> MediaPayload | None:
    """
    Parse media content: either a bare filename ("intro.pdf") whose type is
    inferred from the extension, or an object such as
    {files: [{filename: 'a.png', type: 'image', caption: 'A'}], caption: 'x'}.
    """
    text = content.strip()
    if text.startswith("{"):
        fixed = _BARE_KEY_RE.sub(r'"\1":', text).replace("'", '"')
        try:
            raw = json.loads(fixed)
            files = tuple(
                MediaFile(
                    filename=entry["filename"],
                    media_type=_media_type(entry["type"]),
                    caption=entry.get("caption"),
                )
                for entry in raw["files"]
            )
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Failed to decode media payload: {e}")
            return None
        if not files:
            return None
        return MediaPayload(files=files, caption=raw.get("caption"))

    extension = text.rsplit(".", 1)[-1].lower() if "." in text else ""
    media_type = _EXTENSION_TYPES.get(extension)
    if media_type is None:
        return None
    return MediaPayload(files=(MediaFile(filename=text, media_type=media_type),))


def _media_type(value: str) -> MediaType:
    if value not in ("pdf", "image", "video"):
        raise ValueError(f"Unknown media type: {value}")
    return value
