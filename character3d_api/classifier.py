"""Normalizes a provider chat-completion reply into exactly one result variant.

Precedence, first match wins: a non-empty top-level ``images`` list, then
image URLs embedded in the reply text (up to five), then the first
``image_url`` content item, then plain text. Text never replaces an image;
it rides along as the caption or analysis.
"""

import logging
import re
from collections.abc import Mapping
from typing import Any

from character3d_api.results import (
    DEFAULT_GALLERY_SOURCE,
    DEFAULT_GALLERY_TITLE,
    ClassifiedResult,
    Failure,
    GalleryImage,
    ImageGallery,
    SingleImage,
    TextOnly,
)

SHAPE_ERROR = "unexpected response shape"
NO_CONTENT_ERROR = "no image or text returned"
MAX_TEXT_GALLERY_IMAGES = 5

IMAGE_URL_PATTERN = re.compile(
    r"https?://[^\s<>\"'()\[\]]+\.(?:jpe?g|png|gif|webp)\b(?:\?[^\s<>\"'()\[\]]*)?",
    re.IGNORECASE,
)

logger = logging.getLogger(__name__)


def classify_reply(reply: Any) -> ClassifiedResult:
    try:
        return _classify(reply)
    except Exception:  # noqa: BLE001
        logger.exception("provider reply could not be parsed")
        return Failure(reason=SHAPE_ERROR, raw_details=reply)


def _classify(reply: Any) -> ClassifiedResult:
    if not isinstance(reply, Mapping):
        return Failure(reason=SHAPE_ERROR, raw_details=reply)

    choices = reply.get("choices")
    raw_images = reply.get("images")
    has_choices = isinstance(choices, list) and len(choices) > 0
    has_images = isinstance(raw_images, list) and len(raw_images) > 0
    if not has_choices and not has_images:
        return Failure(reason=SHAPE_ERROR, raw_details=reply)

    image_url, text = _extract_content(choices) if has_choices else (None, None)

    gallery: list[GalleryImage] = _gallery_from_images(raw_images) if has_images else []
    if not gallery and text:
        gallery = _gallery_from_text(text, image_url)

    if gallery:
        return ImageGallery(images=tuple(gallery), analysis=text)
    if image_url:
        return SingleImage(url=image_url, caption=text)
    if text:
        return TextOnly(text=text)
    return Failure(reason=NO_CONTENT_ERROR, raw_details=reply)


def _extract_content(choices: list) -> tuple[str | None, str | None]:
    first = choices[0]
    message = first.get("message") if isinstance(first, Mapping) else None
    content = message.get("content") if isinstance(message, Mapping) else None

    if isinstance(content, str):
        return None, content if content.strip() else None
    if not isinstance(content, list):
        return None, None

    image_url: str | None = None
    text: str | None = None
    for item in content:
        if not isinstance(item, Mapping):
            continue
        kind = item.get("type")
        if kind == "image_url" and image_url is None:
            image_url = _content_item_url(item)
        elif kind == "text" and text is None:
            value = item.get("text")
            if isinstance(value, str) and value.strip():
                text = value
    return image_url, text


def _content_item_url(item: Mapping) -> str | None:
    payload = item.get("image_url")
    if isinstance(payload, Mapping):
        payload = payload.get("url")
    if isinstance(payload, str) and payload.strip():
        return payload.strip()
    return None


def _gallery_from_images(raw_images: list) -> list[GalleryImage]:
    gallery: list[GalleryImage] = []
    for entry in raw_images:
        if isinstance(entry, str):
            if entry.strip():
                gallery.append(GalleryImage(url=entry.strip()))
            continue
        if not isinstance(entry, Mapping):
            continue

        url = _first_str(entry, "url", "image_url")
        if not url:
            continue
        gallery.append(
            GalleryImage(
                url=url,
                title=_first_str(entry, "title") or DEFAULT_GALLERY_TITLE,
                source_url=_first_str(entry, "origin_url", "source_url", "source") or DEFAULT_GALLERY_SOURCE,
            )
        )
    return gallery


def _gallery_from_text(text: str, primary_url: str | None) -> list[GalleryImage]:
    # The primary image alone never makes a gallery, only extra URLs do.
    urls = [url for url in extract_image_urls(text) if url != primary_url]
    if not urls:
        return []
    if primary_url:
        urls = [primary_url, *urls][:MAX_TEXT_GALLERY_IMAGES]
    return [GalleryImage(url=url) for url in urls]


def extract_image_urls(text: str, limit: int = MAX_TEXT_GALLERY_IMAGES) -> list[str]:
    found: list[str] = []
    for match in IMAGE_URL_PATTERN.finditer(text):
        url = match.group(0)
        if url not in found:
            found.append(url)
        if len(found) >= limit:
            break
    return found


def _first_str(entry: Mapping, *keys: str) -> str | None:
    for key in keys:
        value = entry.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None
